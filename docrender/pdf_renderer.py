"""PDF backend: headless Chromium prints the composed HTML."""

import asyncio
import html as html_lib
import logging
import re
from typing import Optional

from .config import RenderSettings
from .images import is_data_uri, to_data_uri
from .interfaces import IBrowserPool, IDocumentBackend, IImageFetcher
from .models import WatermarkSpec
from .watermark import DEFAULT_POLICY, WatermarkPolicy, apply_pdf_watermark

logger = logging.getLogger(__name__)

PAGE_MARGIN = {"top": "1in", "bottom": "1in", "left": "1in", "right": "1in"}

BASE_CSS = """
html, body {
  margin: 0; padding: 0; background: #ffffff; color: #24292f;
  font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", "Noto Sans",
               Helvetica, Arial, sans-serif;
  font-size: 12pt;
  line-height: 1.5;
}

h1, h2, h3, h4, h5, h6 { font-weight: 600; line-height: 1.25; margin: 0.6em 0 0.3em; }
p, ul, ol, table { margin: 0.4em 0; }
ul, ol { padding-left: 2em; }

table { width: 100%; border-collapse: collapse; }
table th, table td {
  border: 1px solid #d0d7de;
  padding: 6px 8px;
  vertical-align: top;
  word-wrap: break-word;
  overflow-wrap: break-word;
}
table th { background: #f3f4f6; font-weight: bold; }

img { max-width: 100%; }

.page-break { break-after: page; page-break-after: always; height: 0; }
"""

# Chromium renders header/footer templates with zero-size text unless told otherwise
RUNNING_TEMPLATE = (
    '<div style="font-size: 9pt; width: 100%; text-align: center; '
    'margin: 0 1in; color: #57606a;">{html}</div>'
)

_PAGE_TOKEN = re.compile(r"\{\{\s*page\s*\}\}")
_TOTAL_TOKEN = re.compile(r"\{\{\s*total\s*\}\}")
IMG_SRC_PATTERN = re.compile(r"""(<img\b[^>]*?\bsrc\s*=\s*)(["'])(.*?)\2""", re.IGNORECASE | re.DOTALL)


def to_running_template(html: str) -> str:
    """Header/footer template with page tokens mapped to Chromium's counters."""
    html = _PAGE_TOKEN.sub('<span class="pageNumber"></span>', html or "")
    html = _TOTAL_TOKEN.sub('<span class="totalPages"></span>', html)
    return RUNNING_TEMPLATE.format(html=html)


def inline_images(html: str, fetcher: Optional[IImageFetcher], timeout: float) -> str:
    """Replace remote image sources with data URIs.

    Chromium does not load network resources for header and footer templates.
    A source that cannot be fetched is left as it is, with a warning.
    """

    def replace(match: re.Match) -> str:
        src = html_lib.unescape(match.group(3)).strip()
        if is_data_uri(src):
            return match.group(0)
        try:
            if fetcher is None:
                raise ValueError("no image fetcher configured")
            data = fetcher.fetch(src, timeout)
        except Exception as e:
            logger.warning(f"Running header/footer image {src[:80]!r} will be missing from the PDF: {e}")
            return match.group(0)
        quote = match.group(2)
        return f"{match.group(1)}{quote}{to_data_uri(data)}{quote}"

    return IMG_SRC_PATTERN.sub(replace, html or "")


def compose_document(content: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8" />
  <style>{BASE_CSS}</style>
</head>
<body>
  <main class="document-body">
    {content}
  </main>
</body>
</html>"""


class PdfRenderer(IDocumentBackend):
    """
    Prints composed HTML to PDF through a pooled browser page.

    Layout, pagination and running header/footer page numbers are left to the
    browser. A requested watermark is injected as a fixed overlay node just
    before printing. Remote images in the header and footer are inlined as data
    URIs, since Chromium does not load them for page templates. No retries
    happen here.
    """

    def __init__(
        self,
        pool: IBrowserPool,
        settings: RenderSettings,
        policy: WatermarkPolicy = DEFAULT_POLICY,
        fetcher: Optional[IImageFetcher] = None,
    ):
        self.pool = pool
        self.timeout_ms = settings.render_timeout_ms
        self.policy = policy
        self.fetcher = fetcher
        self.fetch_timeout = settings.image_fetch_timeout_s

    async def render(
        self,
        header: str,
        content: str,
        footer: str,
        watermark: Optional[WatermarkSpec] = None,
    ) -> bytes:
        html = compose_document(content)
        header_template = await self._running_template(header)
        footer_template = await self._running_template(footer)

        async with self.pool.acquire() as page:
            await page.set_content(html, wait_until="networkidle", timeout=self.timeout_ms)

            if watermark is not None:
                try:
                    await apply_pdf_watermark(page, watermark, self.policy)
                except Exception as e:
                    logger.warning(f"Could not apply {watermark.kind.value} watermark to PDF: {e}")

            pdf_bytes = await asyncio.wait_for(
                page.pdf(
                    format="A4",
                    margin=PAGE_MARGIN,
                    print_background=True,
                    display_header_footer=True,
                    header_template=header_template,
                    footer_template=footer_template,
                ),
                timeout=self.timeout_ms / 1000.0,
            )

        logger.info(f"Rendered PDF ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    async def _running_template(self, html: str) -> str:
        inlined = await asyncio.to_thread(inline_images, html, self.fetcher, self.fetch_timeout)
        return to_running_template(inlined)
