"""Configuration for the document rendering service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class RenderSettings(BaseSettings):
    """Render limits, loaded from ``DOCRENDER_*`` environment variables.

    Build one instance at startup and pass it to the components that need it.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCRENDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Output
    max_artifact_size_mb: float = 10

    # Backends
    render_timeout_ms: int = 30000
    image_fetch_timeout_ms: int = 10000

    # Browser pool
    browser_pool_size: int = 2
    browser_acquire_timeout_ms: int = 10000

    # Validation
    max_watermark_text_length: int = 100

    # Logging
    log_level: str = "INFO"

    @property
    def max_artifact_size_bytes(self) -> int:
        return int(self.max_artifact_size_mb * 1024 * 1024)

    @property
    def render_timeout_s(self) -> float:
        return self.render_timeout_ms / 1000.0

    @property
    def image_fetch_timeout_s(self) -> float:
        return self.image_fetch_timeout_ms / 1000.0

    @property
    def browser_acquire_timeout_s(self) -> float:
        return self.browser_acquire_timeout_ms / 1000.0
