"""Pool of headless Chromium processes for the PDF backend."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from .config import RenderSettings
from .errors import ResourceExhaustion
from .interfaces import IBrowserPool

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--disable-dev-shm-usage",  # /tmp instead of /dev/shm
    "--disable-gpu",
    "--no-sandbox",
]


class BrowserPool(IBrowserPool):
    """
    Fixed number of Chromium processes shared by concurrent renders.

    Each ``acquire()`` borrows one process and opens a fresh page on it. The
    page is closed and the process handed back on every exit path, including
    cancellation. A process that died while borrowed is relaunched before it
    goes back into the pool.

    Usage:
        pool = BrowserPool(settings)
        await pool.start()
        async with pool.acquire() as page:
            await page.set_content(html)
            pdf = await page.pdf()
        await pool.close()
    """

    def __init__(self, settings: RenderSettings):
        self.size = max(1, settings.browser_pool_size)
        self.acquire_timeout = settings.browser_acquire_timeout_s
        self._playwright: Optional[Playwright] = None
        self._browsers: list[Browser] = []
        self._idle: Optional[asyncio.Queue] = None
        self._start_lock = asyncio.Lock()

    @property
    def started(self) -> bool:
        return self._idle is not None

    async def start(self) -> None:
        async with self._start_lock:
            if self.started:
                return
            self._playwright = await async_playwright().start()
            idle: asyncio.Queue = asyncio.Queue()
            for _ in range(self.size):
                browser = await self._launch()
                self._browsers.append(browser)
                idle.put_nowait(browser)
            self._idle = idle
        logger.info(f"Browser pool started with {self.size} instance(s)")

    async def close(self) -> None:
        browsers, self._browsers = self._browsers, []
        for browser in browsers:
            try:
                await browser.close()
            except Exception as e:
                logger.warning(f"Failed to close browser: {e}")
        if self._playwright is not None:
            await self._playwright.stop()
        self._playwright = None
        self._idle = None
        logger.info("Browser pool closed")

    async def _launch(self) -> Browser:
        return await self._playwright.chromium.launch(headless=True, args=LAUNCH_ARGS)

    async def _healthy(self, browser: Browser) -> Browser:
        if browser.is_connected():
            return browser
        logger.warning("Browser process died, relaunching")
        # A failed launch leaves the dead entry in place so the next checkout retries
        replacement = await self._launch()
        if browser in self._browsers:
            self._browsers.remove(browser)
        self._browsers.append(replacement)
        return replacement

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Page]:
        if not self.started:
            await self.start()

        try:
            browser = await asyncio.wait_for(self._idle.get(), timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            raise ResourceExhaustion(
                "No browser instance available",
                {"timeoutMs": int(self.acquire_timeout * 1000)},
            )

        page: Optional[Page] = None
        try:
            browser = await self._healthy(browser)
            page = await browser.new_page()
            yield page
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.warning(f"Failed to close browser page: {e}")
            if self._idle is not None:
                self._idle.put_nowait(browser)
