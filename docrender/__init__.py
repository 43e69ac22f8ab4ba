"""Render templated HTML into paginated PDF and DOCX documents."""

from .config import RenderSettings
from .errors import DocumentError, RenderingFailure, ResourceExhaustion, ValidationFailure
from .models import DocumentRequest, DocumentType, RenderedArtifact, WatermarkKind, WatermarkSpec
from .renderer import DocumentRenderer

__version__ = "1.0.0"

__all__ = [
    "DocumentError",
    "DocumentRenderer",
    "DocumentRequest",
    "DocumentType",
    "RenderedArtifact",
    "RenderSettings",
    "RenderingFailure",
    "ResourceExhaustion",
    "ValidationFailure",
    "WatermarkKind",
    "WatermarkSpec",
]
