"""DOCX backend: one python-docx section per page of content blocks."""

import asyncio
import io
import logging
import zipfile
from typing import Optional, Sequence

from docx import Document
from docx.enum.section import WD_SECTION
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Emu, Pt, RGBColor, Twips

from .blocks import BlockExtractor
from .images import image_size
from .interfaces import IDocumentBackend
from .models import (
    ContentBlock,
    Heading,
    ImageBlock,
    ListBlock,
    PageBreak,
    Paragraph,
    Table,
    WatermarkSpec,
)
from .placeholders import substitute_page_numbers
from .watermark import DEFAULT_POLICY, WatermarkPolicy, apply_docx_watermark

logger = logging.getLogger(__name__)

PAGE_MARGIN = Twips(1440)  # 1 inch
BODY_FONT_SIZE = Pt(12)
RUNNING_FONT_SIZE = Pt(10)
PARAGRAPH_SPACING = Pt(6)

EMU_PER_PX = 9525
BODY_IMAGE_SIZE = (400, 300)
RUNNING_IMAGE_SIZE = (550, 80)

# Stable member timestamps so identical input gives identical bytes
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)


def validate_docx_file(docx_bytes: bytes) -> bool:
    """Check that the bytes are a zip holding the required DOCX parts."""
    if not docx_bytes or not docx_bytes.startswith(b"PK"):
        return False
    try:
        with zipfile.ZipFile(io.BytesIO(docx_bytes), "r") as zip_file:
            names = set(zip_file.namelist())
    except zipfile.BadZipFile:
        return False
    return {"[Content_Types].xml", "word/document.xml"} <= names


def normalize_package(docx_bytes: bytes) -> bytes:
    """Rewrite the zip container with fixed timestamps, keeping member order."""
    out = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(docx_bytes), "r") as src, zipfile.ZipFile(out, "w") as dst:
        for info in src.infolist():
            member = zipfile.ZipInfo(info.filename, date_time=ZIP_TIMESTAMP)
            member.compress_type = zipfile.ZIP_DEFLATED
            member.external_attr = info.external_attr
            dst.writestr(member, src.read(info.filename))
    return out.getvalue()


def _px(value: int) -> Emu:
    return Emu(value * EMU_PER_PX)


def _image_dimensions(block: ImageBlock, default: tuple[int, int]) -> tuple[int, int]:
    """Explicit size wins; one missing side keeps the picture's aspect ratio."""
    if block.width and block.height:
        return block.width, block.height
    if block.width or block.height:
        natural_w, natural_h = image_size(block.data)
        if block.width:
            return block.width, max(1, round(block.width * natural_h / natural_w))
        return max(1, round(block.height * natural_w / natural_h)), block.height
    return default


def block_text(block: ContentBlock) -> str:
    """Flatten any text block to one line, for header and footer use."""
    if isinstance(block, (Paragraph, Heading)):
        return block.text
    if isinstance(block, ListBlock):
        return " ".join(block.items)
    if isinstance(block, Table):
        return " ".join(" | ".join(row) for row in block.rows)
    return ""


class DocxAssembler(IDocumentBackend):
    """
    Builds a DOCX document from body, header and footer HTML.

    Each page of content (split at explicit page breaks) becomes its own
    section with fixed margins and its own header and footer; the footer has
    ``{{page}}`` and ``{{total}}`` filled for that section. A watermark that
    cannot be applied is logged and left out.
    """

    def __init__(self, extractor: BlockExtractor, policy: WatermarkPolicy = DEFAULT_POLICY):
        self.extractor = extractor
        self.policy = policy

    async def render(
        self,
        header: str,
        content: str,
        footer: str,
        watermark: Optional[WatermarkSpec] = None,
    ) -> bytes:
        return await asyncio.to_thread(self.build, header, content, footer, watermark)

    def build(
        self,
        header: str,
        content: str,
        footer: str,
        watermark: Optional[WatermarkSpec] = None,
    ) -> bytes:
        """Synchronous render, returning the saved package bytes."""
        doc = self.assemble(header, content, footer, watermark)

        buf = io.BytesIO()
        doc.save(buf)
        data = normalize_package(buf.getvalue())

        if not validate_docx_file(data):
            raise RuntimeError("Generated file is not a valid DOCX")

        logger.info(f"Rendered DOCX ({len(data)} bytes, {len(doc.sections)} section(s))")
        return data

    def assemble(
        self,
        header: str,
        content: str,
        footer: str,
        watermark: Optional[WatermarkSpec] = None,
    ):
        """Build the python-docx ``Document`` without saving it."""
        pages = self.extractor.extract_pages(content)
        header_blocks = self._running_blocks(header)
        footer_blocks = self._running_blocks(footer)

        doc = Document()
        for page in pages:
            if page.index == 0:
                section = doc.sections[0]
                section.start_type = WD_SECTION.CONTINUOUS
            else:
                section = doc.add_section(WD_SECTION.NEW_PAGE)

            section.top_margin = PAGE_MARGIN
            section.bottom_margin = PAGE_MARGIN
            section.left_margin = PAGE_MARGIN
            section.right_margin = PAGE_MARGIN

            section.header.is_linked_to_previous = False
            section.footer.is_linked_to_previous = False
            self._fill_running(section.header, header_blocks)
            self._fill_running(section.footer, footer_blocks, page=(page.number, len(pages)))

            for block in page.blocks:
                self.add_block(doc, block)

        if watermark is not None:
            try:
                apply_docx_watermark(doc, watermark, self.policy)
            except Exception as e:
                logger.warning(f"Could not apply {watermark.kind.value} watermark to DOCX: {e}")

        return doc

    def _running_blocks(self, html: str) -> list[ContentBlock]:
        return [b for b in self.extractor.extract_blocks(html) if not isinstance(b, PageBreak)]

    def _fill_running(
        self,
        container,
        blocks: Sequence[ContentBlock],
        page: Optional[tuple[int, int]] = None,
    ) -> None:
        """Header/footer content: centered, smaller than body text.

        ``page`` is ``(number, total)`` for filling ``{{page}}`` and ``{{total}}``.
        """
        paragraphs = []
        for block in blocks:
            if isinstance(block, ImageBlock):
                paragraphs.append(block)
            else:
                text = block_text(block)
                if page is not None:
                    text = substitute_page_numbers(text, *page)
                if text:
                    paragraphs.append(text)

        for i, item in enumerate(paragraphs):
            para = container.paragraphs[0] if i == 0 and container.paragraphs else container.add_paragraph()
            para.alignment = WD_ALIGN_PARAGRAPH.CENTER
            if isinstance(item, ImageBlock):
                self._add_picture(para, item, RUNNING_IMAGE_SIZE)
            else:
                run = para.add_run(item)
                run.font.size = RUNNING_FONT_SIZE

    def add_block(self, doc, block: ContentBlock) -> None:
        """Append one content block to the body of ``doc``."""
        if isinstance(block, Paragraph):
            para = doc.add_paragraph()
            para.alignment = WD_ALIGN_PARAGRAPH.LEFT
            para.paragraph_format.space_before = PARAGRAPH_SPACING
            para.paragraph_format.space_after = PARAGRAPH_SPACING
            run = para.add_run(block.text)
            run.font.size = BODY_FONT_SIZE

        elif isinstance(block, Heading):
            heading = doc.add_heading(block.text, level=block.level)
            heading.paragraph_format.space_before = Pt(12)
            heading.paragraph_format.space_after = PARAGRAPH_SPACING
            for run in heading.runs:
                run.font.bold = True
                run.font.size = Pt(16 - block.level)
                run.font.color.rgb = RGBColor(0, 0, 0)  # Explicit black

        elif isinstance(block, ListBlock):
            style = "List Number" if block.ordered else "List Bullet"
            for item in block.items:
                para = doc.add_paragraph(style=style)
                run = para.add_run(item)
                run.font.size = BODY_FONT_SIZE

        elif isinstance(block, Table):
            table = doc.add_table(rows=len(block.rows), cols=block.column_count)
            table.style = "Table Grid"  # Plain black grid style
            for i, row_data in enumerate(block.rows):
                row_cells = table.rows[i].cells
                for j, cell_text in enumerate(row_data):
                    row_cells[j].text = cell_text

        elif isinstance(block, ImageBlock):
            para = doc.add_paragraph()
            para.alignment = WD_ALIGN_PARAGRAPH.LEFT if block.inline else WD_ALIGN_PARAGRAPH.CENTER
            if not self._add_picture(para, block, BODY_IMAGE_SIZE):
                para._p.getparent().remove(para._p)

    def _add_picture(self, para, block: ImageBlock, default: tuple[int, int]) -> bool:
        try:
            width, height = _image_dimensions(block, default)
            para.add_run().add_picture(io.BytesIO(block.data), width=_px(width), height=_px(height))
        except Exception as e:
            logger.warning(f"Skipping unreadable image {block.source[:80]!r}: {e}")
            return False
        return True
