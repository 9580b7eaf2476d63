"""Folio configuration settings."""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _csv_env(var_name: str, default: str = "") -> list[str]:
    raw = os.getenv(var_name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class RetryConfig(BaseModel):
    """Retry and backoff configuration.

    Backoff is linear: the wait before attempt ``n + 1`` is
    ``backoff_base_ms * n``.
    """

    model_config = ConfigDict(validate_default=True)

    max_retries: int = Field(default_factory=lambda: int(os.getenv("FOLIO_MAX_RETRIES", "3")))
    backoff_base_ms: int = Field(
        default_factory=lambda: int(os.getenv("FOLIO_BACKOFF_BASE_MS", "2000"))
    )

    @field_validator("max_retries")
    @classmethod
    def _validate_max_retries(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_retries must be >= 1")
        return value

    @field_validator("backoff_base_ms")
    @classmethod
    def _validate_backoff(cls, value: int) -> int:
        if value < 0:
            raise ValueError("backoff_base_ms cannot be negative")
        return value


class TimeoutConfig(BaseModel):
    """Timeout budgets per browser call and per request."""

    global_timeout_s: float = Field(
        default_factory=lambda: float(os.getenv("FOLIO_GLOBAL_TIMEOUT_S", "180"))
    )
    page_load_timeout_s: float = Field(
        default_factory=lambda: float(os.getenv("FOLIO_PAGE_LOAD_TIMEOUT_S", "30"))
    )
    selector_timeout_s: float = 10
    consent_wait_ms: int = 1000


class BrowserConfig(BaseModel):
    """Browser layer configuration."""

    headless: bool = Field(
        default_factory=lambda: os.getenv("FOLIO_HEADLESS", "true").lower() != "false"
    )
    viewport_width: int = 1366
    viewport_height: int = 768
    user_agent: str | None = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    locale: str = "de-DE"
    auto_scroll: bool = True
    scroll_step_px: int = 400
    scroll_max_steps: int = 40


class ValidationConfig(BaseModel):
    """Required-field set and the caller policy applied to validation results."""

    model_config = ConfigDict(validate_default=True)

    required_fields: list[str] = Field(
        default_factory=lambda: _csv_env("FOLIO_REQUIRED_FIELDS", "title,author")
    )
    attach_warning: bool = True
    substitute_missing: bool = False
    placeholders: dict[str, str] = Field(
        default_factory=lambda: {"title": "Unknown Title", "author": "Unknown Author"}
    )

    @field_validator("required_fields")
    @classmethod
    def _validate_required_fields(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("required_fields cannot be empty")
        return value


class TelemetryConfig(BaseModel):
    """Per-attempt signal ledger configuration."""

    ledger_dir: Path | None = Field(
        default_factory=lambda: (
            Path(os.environ["FOLIO_LEDGER_DIR"]) if os.getenv("FOLIO_LEDGER_DIR") else None
        )
    )


class APIConfig(BaseModel):
    """HTTP surface controls from environment."""

    allowed_origins: list[str] = Field(
        default_factory=lambda: APIConfig.parse_allowed_origins(
            os.getenv("FOLIO_ALLOWED_ORIGINS", "")
        )
    )

    @staticmethod
    def parse_allowed_origins(value: str) -> list[str]:
        if not value.strip():
            return ["http://localhost", "http://127.0.0.1"]
        origins = [origin.strip() for origin in value.split(",") if origin.strip()]
        if "*" in origins:
            raise ValueError("FOLIO_ALLOWED_ORIGINS cannot include '*'")
        return origins

    @field_validator("allowed_origins")
    @classmethod
    def _validate_allowed_origins(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("allowed_origins cannot be empty")
        for origin in value:
            parsed = urlparse(origin)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                raise ValueError(f"Invalid CORS origin: {origin}")
        return value


class ScrapeConfig(BaseModel):
    """Root configuration for a scrape request."""

    model_config = ConfigDict(validate_default=True)

    retry: RetryConfig = Field(default_factory=RetryConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    fix_data: bool = True
    normalize_data: bool = True
    validate_data: bool = True
    log_level: str = Field(default_factory=lambda: os.getenv("FOLIO_LOG_LEVEL", "INFO"))

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level
