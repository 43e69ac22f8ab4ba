"""
Interfaces for the rendering core

Collaborators the core consumes (sanitizer, image fetcher, browser pool) and
the contract both output backends implement.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Optional

from .models import WatermarkSpec


class ISanitizer(ABC):
    """Strips dangerous markup before it reaches either backend."""

    @abstractmethod
    def sanitize(self, html: str, context: str) -> str:
        """
        Return HTML that is safe to render.

        Args:
            html: Raw HTML fragment
            context: Which part of the request this is (header, content, footer)

        Raises:
            ValidationFailure: If the fragment contains disallowed elements
        """


class IImageFetcher(ABC):
    """Fetches remote image sources referenced by ``<img src>``."""

    @abstractmethod
    def fetch(self, url: str, timeout: float) -> bytes:
        """Return the raw bytes at ``url``, raising on failure or timeout."""


class IBrowserPool(ABC):
    """Pool of headless browser processes used by the PDF backend."""

    @abstractmethod
    def acquire(self) -> AsyncContextManager[Any]:
        """
        Borrow a printable surface for one render.

        The surface is returned to the pool when the context exits, whether
        the render succeeded, failed or was cancelled.

        Raises:
            ResourceExhaustion: If no browser becomes available in time
        """


class IDocumentBackend(ABC):
    """Turns composed header/body/footer HTML into finished document bytes."""

    @abstractmethod
    async def render(
        self,
        header: str,
        content: str,
        footer: str,
        watermark: Optional[WatermarkSpec] = None,
    ) -> bytes:
        """
        Render one document.

        Args:
            header: Placeholder-substituted header HTML
            content: Placeholder-substituted body HTML
            footer: Placeholder-substituted footer HTML, may contain
                ``{{page}}`` and ``{{total}}``
            watermark: Optional watermark to apply on every page

        Returns:
            Document bytes
        """
