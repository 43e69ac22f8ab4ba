"""Post-render size check: oversized artifacts are gzip-compressed."""

import gzip
import logging

from .models import RenderedArtifact

logger = logging.getLogger(__name__)


class FileSizeGovernor:
    """Compresses an artifact in place when it exceeds ``max_bytes``.

    MIME type and filename are left untouched; ``compressed`` tells the
    delivery layer to announce ``Content-Encoding: gzip``.
    """

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes

    def enforce(self, artifact: RenderedArtifact) -> RenderedArtifact:
        size = len(artifact.data)
        if size <= self.max_bytes or artifact.compressed:
            return artifact

        logger.warning(
            f"{artifact.filename} is {size / (1024 * 1024):.2f}MB, "
            f"over the {self.max_bytes / (1024 * 1024):.2f}MB limit, compressing"
        )
        # mtime=0 keeps the gzip header deterministic
        artifact.data = gzip.compress(artifact.data, compresslevel=9, mtime=0)
        artifact.compressed = True
        logger.info(f"Compressed {artifact.filename} to {len(artifact.data) / (1024 * 1024):.2f}MB")
        return artifact
