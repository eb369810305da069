"""
Application Settings (Pydantic Settings).

Loads configuration from environment variables (.env file or system env).

Credentials are never read from the tool file; they come from the environment
(or a .env file next to the working directory) only.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Invalid or missing configuration. Fatal at construction time."""

    pass


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings documented in .env.example.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # ========================================================================
    # MARQETA API
    # ========================================================================
    MARQETA_API_URL: str = Field(default="", description="Base URL; https:// added if absent")
    MARQETA_USERNAME: str = Field(default="", description="Basic-auth application token")
    MARQETA_PASSWORD: str = Field(default="", description="Basic-auth admin access token")
    MARQETA_PROGRAM_SHORT_CODE: str | None = Field(
        default=None,
        description="Sent as X-Program-Short-Code when set",
    )
    MARQETA_REQUEST_TIMEOUT_SECONDS: float = Field(default=30.0)

    # ========================================================================
    # TOOL SELECTION
    # ========================================================================
    MARQETA_TOOLS_PATH: str = Field(default="tools.json")
    MARQETA_SERVICE: str | None = Field(
        default=None,
        description="Comma-separated service allow-list (e.g. users,cards)",
    )
    MARQETA_SCOPE: Literal["read", "all"] = Field(default="all")

    # ========================================================================
    # RATE LIMITER
    # ========================================================================
    MARQETA_RATE_LIMIT_ENABLED: bool = Field(default=True)
    MARQETA_RATE_LIMIT_INTERVAL_MS: int = Field(
        default=500,
        description="Minimum spacing between dispatch starts (milliseconds)",
    )
    MARQETA_MAX_CONCURRENT_REQUESTS: int = Field(default=2)
    MARQETA_RATE_LIMIT_QUEUE_SIZE: int = Field(default=10)

    # ========================================================================
    # LOGGING
    # ========================================================================
    LOG_LEVEL: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    LOG_FORMAT: str = Field(default="json", pattern="^(json|text)$")

    # ========================================================================
    # METRICS & TRACING
    # ========================================================================
    METRICS_PORT: int = Field(default=0, description="Prometheus exporter port (0 disables)")
    OTEL_TRACES_ENABLED: bool = Field(default=False)
    OTEL_SERVICE_NAME: str = Field(default="marqeta-mcp")
    OTEL_EXPORTER_OTLP_ENDPOINT: str = Field(default="http://localhost:4317")

    def require_credentials(self) -> None:
        """Raise ConfigurationError for the first missing API setting."""
        for name in ("MARQETA_API_URL", "MARQETA_USERNAME", "MARQETA_PASSWORD"):
            if not getattr(self, name):
                raise ConfigurationError(f"{name} is required")
