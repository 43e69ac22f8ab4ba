"""Pytest configuration and fixtures."""

import asyncio
import base64
import io
from contextlib import asynccontextmanager

import pytest
from PIL import Image

from docrender.blocks import BlockExtractor
from docrender.config import RenderSettings
from docrender.interfaces import IBrowserPool, IImageFetcher


def make_png(size=(8, 6), color="red") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class FakeFetcher(IImageFetcher):
    """Serves a fixed set of URLs and fails for anything else."""

    def __init__(self, images=None):
        self.images = images or {}
        self.calls = []

    def fetch(self, url, timeout):
        self.calls.append((url, timeout))
        if url not in self.images:
            raise TimeoutError(f"timed out fetching {url}")
        return self.images[url]


class FakePage:
    """Stand-in for a Playwright page."""

    def __init__(self, pdf_bytes=b"%PDF-1.4 fake", pdf_error=None, pdf_delay=None, evaluate_error=None):
        self.content = None
        self.set_content_kwargs = None
        self.evaluated = []
        self.pdf_kwargs = None
        self.pdf_bytes = pdf_bytes
        self.pdf_error = pdf_error
        self.pdf_delay = pdf_delay
        self.evaluate_error = evaluate_error

    async def set_content(self, html, **kwargs):
        self.content = html
        self.set_content_kwargs = kwargs

    async def evaluate(self, script, arg=None):
        if self.evaluate_error:
            raise self.evaluate_error
        self.evaluated.append((script, arg))

    async def pdf(self, **kwargs):
        self.pdf_kwargs = kwargs
        if self.pdf_delay:
            await asyncio.sleep(self.pdf_delay)
        if self.pdf_error:
            raise self.pdf_error
        return self.pdf_bytes


class FakePool(IBrowserPool):
    """Hands out FakePage objects and counts releases."""

    def __init__(self, **page_kwargs):
        self.page_kwargs = page_kwargs
        self.pages = []
        self.active = 0
        self.released = 0

    @asynccontextmanager
    async def acquire(self):
        page = FakePage(**self.page_kwargs)
        self.pages.append(page)
        self.active += 1
        try:
            yield page
        finally:
            self.active -= 1
            self.released += 1


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def png_data_uri(png_bytes):
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def png_base64(png_bytes):
    return base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def settings():
    return RenderSettings(_env_file=None)


@pytest.fixture
def fetcher(png_bytes):
    return FakeFetcher({"https://cdn.example.com/logo.png": png_bytes})


@pytest.fixture
def extractor(fetcher):
    return BlockExtractor(fetcher, fetch_timeout=2.0)


@pytest.fixture
def fake_pool():
    return FakePool()
