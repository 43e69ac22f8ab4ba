"""Image sources: data URIs, remote fetch and Pillow helpers."""

import base64
import binascii
import io
import logging
import re
from typing import Optional
from urllib.parse import unquote_to_bytes

import requests
from PIL import Image

from .interfaces import IImageFetcher

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>[\w.+\-]+/[\w.+\-]+)?(?P<params>(?:;[^;,]*)*?),(?P<data>.*)$", re.DOTALL)


class HttpImageFetcher(IImageFetcher):
    """Downloads images over HTTP(S) with ``requests``."""

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    def fetch(self, url: str, timeout: float) -> bytes:
        if not url.lower().startswith(("http://", "https://")):
            raise ValueError(f"Unsupported image source: {url[:80]}")
        response = self.session.get(url, timeout=timeout)
        response.raise_for_status()
        if not response.content:
            raise ValueError(f"Empty image response from {url}")
        return response.content


def is_data_uri(src: str) -> bool:
    return src.strip().lower().startswith("data:")


def decode_data_uri(src: str) -> bytes:
    """Decode an inline ``data:`` image source."""
    match = DATA_URI_PATTERN.match(src.strip())
    if not match:
        raise ValueError("Malformed data URI")
    payload = match.group("data")
    if ";base64" in (match.group("params") or "").lower():
        try:
            return base64.b64decode("".join(payload.split()), validate=True)
        except binascii.Error as e:
            raise ValueError("Data URI is not valid base64") from e
    return unquote_to_bytes(payload)


def sniff_mime_type(data: bytes, default: str = "image/png") -> str:
    """Best-effort MIME type of image bytes."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except Exception:
        return default
    return Image.MIME.get(fmt, default) if fmt else default


def to_data_uri(data: bytes) -> str:
    mime = sniff_mime_type(data)
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def fade_image(data: bytes, opacity: float) -> bytes:
    """Return a PNG copy of ``data`` with its alpha channel scaled by ``opacity``."""
    with Image.open(io.BytesIO(data)) as img:
        rgba = img.convert("RGBA")
    alpha = rgba.getchannel("A").point(lambda a: int(a * opacity))
    rgba.putalpha(alpha)
    out = io.BytesIO()
    rgba.save(out, format="PNG")
    return out.getvalue()


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as img:
        return img.size
