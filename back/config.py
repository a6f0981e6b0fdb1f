"""
Runtime configuration, loaded from environment variables (or a .env file)
once at startup through pydantic-settings.

Variable names match the field names, case-insensitively:
TMDB_API_KEY, CONSUMET_API_URL, ALLOWED_ORIGINS, HTTP_TIMEOUT, PORT...
Malformed values fail at startup with a validation message.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONSUMET_URL = "http://127.0.0.1:3000"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # API keys (TMDB routes answer 503 without one)
    tmdb_api_key: Optional[str] = Field(default=None)
    consumet_api_url: str = Field(default=DEFAULT_CONSUMET_URL)

    # comma-separated list, "*" when empty
    allowed_origins: str = Field(default="*")
    default_source: str = Field(default="videasy")

    # Timeouts (seconds) and health-check policy
    http_timeout: float = Field(default=10.0, gt=0)
    image_timeout: float = Field(default=15.0, gt=0)
    health_timeout: float = Field(default=5.0, gt=0)
    health_retries: int = Field(default=3, ge=1)
    health_retry_delay: float = Field(default=1.0, ge=0)

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, ge=1, le=65535)

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def blank_key_is_missing(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator("consumet_api_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> str:
        return (v or DEFAULT_CONSUMET_URL).rstrip("/")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls()

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return origins or ["*"]

    @property
    def tmdb_enabled(self) -> bool:
        return self.tmdb_api_key is not None


def report_missing_keys(settings: Settings) -> None:
    """Print a one-time startup banner for missing mandatory keys."""
    if settings.tmdb_enabled:
        print("✓ TMDB API key loaded")
        return
    print("=" * 60)
    print("✗ TMDB_API_KEY is not set.")
    print("  TMDB-dependent routes will answer 503 until it is configured.")
    print("=" * 60)
