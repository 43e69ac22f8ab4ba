"""Block model extraction: split body HTML into typed content blocks and pages.

Only a fixed set of block markers is recognized (paragraphs, headings, lists,
tables, images and explicit page breaks). Anything else is flattened to plain
text. A block that cannot be converted is downgraded or skipped with a warning,
it never aborts the document.
"""

import html as html_lib
import logging
import re
from typing import Iterator, Optional

from .images import decode_data_uri, is_data_uri
from .interfaces import IImageFetcher
from .models import (
    ContentBlock,
    Heading,
    ImageBlock,
    ListBlock,
    Page,
    PageBreak,
    Paragraph,
    Table,
)

logger = logging.getLogger(__name__)

PAGE_BREAK_PATTERN = re.compile(
    r"""<div\b[^>]*?\bclass\s*=\s*["'][^"']*(?<![\w-])page-break(?![\w-])[^"']*["'][^>]*>(?:\s*</div\s*>)?""",
    re.IGNORECASE,
)
TAG_PATTERN = re.compile(r"<(/?)([a-zA-Z][a-zA-Z0-9]*)\b[^>]*>")
LEADING_TAG_PATTERN = re.compile(r"\s*<([a-zA-Z][a-zA-Z0-9]*)\b", re.DOTALL)

ROW_OPEN_PATTERN = re.compile(r"<tr\b", re.IGNORECASE)
ROW_CLOSE_PATTERN = re.compile(r"</tr\s*>", re.IGNORECASE)
ROW_PATTERN = re.compile(r"<tr\b[^>]*>(.*?)</tr\s*>", re.IGNORECASE | re.DOTALL)
CELL_PATTERN = re.compile(r"<t([dh])\b[^>]*>(.*?)</t\1\s*>", re.IGNORECASE | re.DOTALL)
ITEM_PATTERN = re.compile(r"<li\b[^>]*>(.*?)</li\s*>", re.IGNORECASE | re.DOTALL)
ITEM_CLOSE_PATTERN = re.compile(r"</li\s*>", re.IGNORECASE)
IMG_TAG_PATTERN = re.compile(r"\s*<img\b[^>]*>", re.IGNORECASE | re.DOTALL)
BLOCK_BOUNDARY_TAG_PATTERN = re.compile(
    r"</?(?:p|div|td|th|tr|li|h[1-6]|table|thead|tbody|ul|ol)\b[^>]*>", re.IGNORECASE
)
SRC_PATTERN = re.compile(r"""\bsrc\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+))""", re.IGNORECASE)

HEADING_TAGS = {f"h{level}" for level in range(1, 7)}
CONTAINER_TAGS = {"table", "ul", "ol"}
BLOCK_TAGS = {"p", "img"} | CONTAINER_TAGS | HEADING_TAGS


def strip_tags(fragment: str) -> str:
    """Plain text of an HTML fragment.

    ``<br>`` becomes a line break, other markup is removed and entities are
    decoded, with non-breaking spaces turned into ordinary spaces.
    """
    text = re.sub(r"\s+", " ", fragment)
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    text = BLOCK_BOUNDARY_TAG_PATTERN.sub(" ", text)
    text = re.sub(r"<[^>]*>", "", text)
    text = text.replace("&nbsp;", " ")
    text = html_lib.unescape(text).replace("\xa0", " ")
    lines = [re.sub(r" {2,}", " ", line).strip() for line in text.split("\n")]
    return "\n".join(lines).strip()


def _attr_int(tag: str, name: str) -> Optional[int]:
    match = re.search(rf"""\b{name}\s*=\s*["']?(\d+)""", tag, re.IGNORECASE)
    return int(match.group(1)) if match else None


def split_pages(html: str) -> list[str]:
    """Split at explicit page-break markers. ``k`` markers give ``k + 1`` parts."""
    return PAGE_BREAK_PATTERN.split(html or "")


def split_segments(html: str) -> Iterator[tuple[str, bool]]:
    """Yield ``(segment, inside_paragraph)`` pairs in document order.

    A segment starts at every block-opening marker that is not nested inside a
    table or list. ``inside_paragraph`` is true for an ``<img>`` segment that
    opened while a ``<p>`` was still open. Whitespace-only segments are dropped.
    """
    start = 0
    container_depth = 0
    in_paragraph = False
    starts: list[tuple[int, bool]] = [(0, False)]

    for match in TAG_PATTERN.finditer(html):
        closing, tag = match.group(1) == "/", match.group(2).lower()

        if closing:
            if tag in CONTAINER_TAGS and container_depth:
                container_depth -= 1
            elif tag == "p":
                in_paragraph = False
            continue

        if tag not in BLOCK_TAGS:
            continue

        if container_depth == 0:
            inline = tag == "img" and in_paragraph
            if match.start() > start:
                starts.append((match.start(), inline))
                start = match.start()
            else:
                starts[-1] = (start, inline)
            if tag == "p":
                in_paragraph = True
            elif tag != "img":
                in_paragraph = False

        if tag in CONTAINER_TAGS:
            container_depth += 1

    bounds = starts + [(len(html), False)]
    last = len(starts) - 1
    for i, ((begin, inline), (end, _)) in enumerate(zip(bounds, bounds[1:])):
        segment = html[begin:end]
        if i == last and container_depth:
            # Unclosed table or list: keep its rows and re-split what follows
            cut = _container_end(segment)
            if cut:
                logger.warning("Unclosed table or list, splitting the markup that follows it")
                yield segment[:cut], inline
                yield from split_segments(segment[cut:])
                continue
        if segment.strip():
            yield segment, inline


def _container_end(segment: str) -> int:
    """End offset of the last closed row or item of a container segment, or 0."""
    match = LEADING_TAG_PATTERN.match(segment)
    tag = match.group(1).lower() if match else ""
    pattern = ROW_CLOSE_PATTERN if tag == "table" else ITEM_CLOSE_PATTERN
    ends = [m.end() for m in pattern.finditer(segment)]
    return ends[-1] if ends else 0


class BlockExtractor:
    """
    Converts body HTML into pages of content blocks.

    Remote image sources are fetched through ``fetcher``; a source that cannot
    be resolved within ``fetch_timeout`` seconds is skipped.
    """

    def __init__(self, fetcher: Optional[IImageFetcher] = None, fetch_timeout: float = 10.0):
        self.fetcher = fetcher
        self.fetch_timeout = fetch_timeout

    def extract_pages(self, html: str) -> list[Page]:
        """Group the blocks of ``html`` into pages bounded by page breaks."""
        pages: list[list[ContentBlock]] = [[]]
        for block in self.extract_blocks(html):
            if isinstance(block, PageBreak):
                pages.append([])
            else:
                pages[-1].append(block)
        return [Page(index=i, blocks=tuple(blocks)) for i, blocks in enumerate(pages)]

    def extract_blocks(self, html: str) -> list[ContentBlock]:
        """Flat block sequence, with a ``PageBreak`` for every marker."""
        blocks: list[ContentBlock] = []
        for page_number, page_html in enumerate(split_pages(html)):
            if page_number:
                blocks.append(PageBreak())
            for segment, inline in split_segments(page_html):
                blocks.extend(self.convert_segment(segment, inline))
        return blocks

    def convert_segment(self, segment: str, inline: bool = False) -> list[ContentBlock]:
        """Classify one segment by its leading marker and convert it."""
        match = LEADING_TAG_PATTERN.match(segment)
        tag = match.group(1).lower() if match else ""

        if tag == "table":
            return self._convert_table(segment)
        if tag in ("ul", "ol"):
            return self._convert_list(segment, ordered=tag == "ol")
        if tag in HEADING_TAGS:
            text = strip_tags(segment)
            return [Heading(level=int(tag[1]), text=text)] if text else []
        if tag == "img":
            return self._convert_image(segment, inline)
        return self._paragraph(segment)

    def _paragraph(self, fragment: str) -> list[ContentBlock]:
        text = strip_tags(fragment)
        return [Paragraph(text)] if text else []

    def _convert_table(self, segment: str) -> list[ContentBlock]:
        opened = len(ROW_OPEN_PATTERN.findall(segment))
        closed = len(ROW_CLOSE_PATTERN.findall(segment))
        rows = []
        if opened == closed:
            for row_html in ROW_PATTERN.findall(segment):
                cells = tuple(strip_tags(cell) for _, cell in CELL_PATTERN.findall(row_html))
                if cells:
                    rows.append(cells)

        if not rows:
            logger.warning("Table has no well-formed rows, rendering it as a paragraph")
            return self._paragraph(segment)
        return [Table(rows=tuple(rows))]

    def _convert_list(self, segment: str, ordered: bool) -> list[ContentBlock]:
        items = tuple(text for text in (strip_tags(item) for item in ITEM_PATTERN.findall(segment)) if text)
        if not items:
            logger.warning("List has no extractable items, rendering it as a paragraph")
            return self._paragraph(segment)
        return [ListBlock(items=items, ordered=ordered)]

    def _convert_image(self, segment: str, inline: bool) -> list[ContentBlock]:
        tag_match = IMG_TAG_PATTERN.match(segment)
        tag = tag_match.group(0)
        blocks: list[ContentBlock] = []

        image = self._load_image(tag, inline)
        if image is not None:
            blocks.append(image)

        # Text after the tag inside the same paragraph
        blocks.extend(self._paragraph(segment[tag_match.end():]))
        return blocks

    def _load_image(self, tag: str, inline: bool) -> Optional[ImageBlock]:
        src_match = SRC_PATTERN.search(tag)
        src = next((g for g in src_match.groups() if g is not None), "").strip() if src_match else ""
        if not src:
            logger.warning("Image without a source attribute skipped")
            return None

        try:
            if is_data_uri(src):
                data = decode_data_uri(src)
            elif self.fetcher is None:
                raise ValueError("no image fetcher configured")
            else:
                data = self.fetcher.fetch(html_lib.unescape(src), self.fetch_timeout)
        except Exception as e:
            logger.warning(f"Skipping image {src[:80]!r}: {e}")
            return None

        return ImageBlock(
            source=src,
            data=data,
            width=_attr_int(tag, "width"),
            height=_attr_int(tag, "height"),
            inline=inline,
        )
