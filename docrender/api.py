"""HTTP surface for the document rendering service."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from .browser_pool import BrowserPool
from .config import RenderSettings
from .errors import DocumentError
from .log import configure_logging
from .models import DocumentRequest
from .renderer import DocumentRenderer

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[RenderSettings] = None,
    renderer: Optional[DocumentRenderer] = None,
) -> FastAPI:
    """Build the FastAPI app.

    When no ``renderer`` is given, a browser pool is started and stopped with
    the app lifespan.
    """
    settings = settings or RenderSettings()
    configure_logging(settings.log_level)

    pool: Optional[BrowserPool] = None
    if renderer is None:
        pool = BrowserPool(settings)
        renderer = DocumentRenderer.from_settings(settings, pool=pool)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if pool is not None:
            await pool.start()
        try:
            yield
        finally:
            if pool is not None:
                await pool.close()

    app = FastAPI(
        title="Document Render API",
        version="1.0.0",
        description="Render templated HTML to PDF and DOCX.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.renderer = renderer

    @app.exception_handler(DocumentError)
    async def document_error_handler(request: Request, exc: DocumentError):
        logger.error(f"{type(exc).__name__}: {exc.message}")
        headers = {"Retry-After": "1"} if exc.retryable else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [f"{'.'.join(str(p) for p in err['loc'][1:])}: {err['msg']}" for err in exc.errors()]
        return JSONResponse(status_code=400, content={"status": "error", "errors": errors})

    @app.post("/api/v1/document")
    async def generate_document(req: DocumentRequest):
        artifact = await app.state.renderer.render(req)

        headers = {
            "Content-Disposition": f'attachment; filename="{artifact.filename}"',
            "X-Request-Id": req.request_id,
        }
        if artifact.compressed:
            headers["Content-Encoding"] = "gzip"
        return Response(content=artifact.data, media_type=artifact.mime_type, headers=headers)

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "limits": {
                "maxArtifactSizeMB": settings.max_artifact_size_mb,
                "renderTimeoutMs": settings.render_timeout_ms,
                "maxWatermarkTextLength": settings.max_watermark_text_length,
                "browserPoolSize": settings.browser_pool_size,
            },
        }

    return app
