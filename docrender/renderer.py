"""
Document rendering core.

Single entry point that takes a ``DocumentRequest`` through validation,
sanitization and placeholder substitution, dispatches to the PDF or DOCX
backend and applies the size governor to the result.
"""

import logging
from typing import Optional

from .blocks import BlockExtractor
from .browser_pool import BrowserPool
from .config import RenderSettings
from .docx_assembler import DocxAssembler
from .errors import DocumentError, RenderingFailure, ValidationFailure
from .governor import FileSizeGovernor
from .images import HttpImageFetcher
from .interfaces import IDocumentBackend, ISanitizer
from .models import DocumentRequest, DocumentType, RenderedArtifact, WatermarkKind
from .pdf_renderer import PdfRenderer
from .placeholders import substitute_all
from .sanitizer import BleachSanitizer

logger = logging.getLogger(__name__)


class DocumentRenderer:
    """
    Turns a document request into a finished PDF or DOCX artifact.

    Usage:
        renderer = DocumentRenderer.from_settings(settings)
        artifact = await renderer.render(request)
    """

    def __init__(
        self,
        settings: RenderSettings,
        sanitizer: ISanitizer,
        backends: dict[DocumentType, IDocumentBackend],
    ):
        self.settings = settings
        self.sanitizer = sanitizer
        self.backends = backends
        self.governor = FileSizeGovernor(settings.max_artifact_size_bytes)

    @classmethod
    def from_settings(
        cls,
        settings: RenderSettings,
        pool: Optional[BrowserPool] = None,
        sanitizer: Optional[ISanitizer] = None,
    ) -> "DocumentRenderer":
        """Wire the default collaborators: bleach, requests and Playwright."""
        fetcher = HttpImageFetcher()
        extractor = BlockExtractor(fetcher, fetch_timeout=settings.image_fetch_timeout_s)
        backends = {
            DocumentType.PDF: PdfRenderer(pool or BrowserPool(settings), settings, fetcher=fetcher),
            DocumentType.DOCX: DocxAssembler(extractor),
        }
        return cls(settings, sanitizer or BleachSanitizer(), backends)

    def validate(self, request: DocumentRequest) -> None:
        """Checks that depend on configured limits rather than on the wire schema."""
        watermark = request.watermark
        if watermark is not None and watermark.kind is WatermarkKind.TEXT:
            limit = self.settings.max_watermark_text_length
            if len(watermark.payload) > limit:
                raise ValidationFailure(
                    f"Watermark text must not exceed {limit} characters",
                    {"field": "watermark", "length": len(watermark.payload)},
                )
        if request.document_type not in self.backends:
            raise ValidationFailure(f"Unsupported document type: {request.document_type.value}")

    async def render(self, request: DocumentRequest) -> RenderedArtifact:
        """
        Render one request.

        Raises:
            ValidationFailure: Bad watermark or disallowed markup
            ResourceExhaustion: No browser instance available in time
            RenderingFailure: The backend could not produce the document
        """
        document_type = request.document_type
        logger.info(f"Starting {document_type.value} generation for request {request.request_id}")

        self.validate(request)

        header = self.sanitizer.sanitize(request.header, "header")
        content = self.sanitizer.sanitize(request.content, "content")
        footer = self.sanitizer.sanitize(request.footer, "footer")
        header, content, footer = substitute_all(header, content, footer, request.placeholders)

        backend = self.backends[document_type]
        try:
            data = await backend.render(header, content, footer, request.watermark)
        except DocumentError:
            raise
        except Exception as e:
            logger.error(f"Document rendering failed for {request.request_id}: {e}", exc_info=True)
            raise RenderingFailure(
                f"Failed to generate {document_type.value.upper()}",
                document_type=document_type.value,
                cause=e,
            ) from e

        artifact = RenderedArtifact(
            data=data,
            mime_type=document_type.mime_type,
            filename=f"{request.request_id}.{document_type.extension}",
        )
        artifact = self.governor.enforce(artifact)

        logger.info(f"Document generation completed for request {request.request_id} ({len(artifact)} bytes)")
        return artifact
