"""Error taxonomy and structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    INVALID_URL = "INVALID_URL"
    NAVIGATION_TIMEOUT = "NAVIGATION_TIMEOUT"
    NAVIGATION_FAILED = "NAVIGATION_FAILED"
    CONSENT_DISMISS_FAILED = "CONSENT_DISMISS_FAILED"
    PROBE_FAILED = "PROBE_FAILED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    ATTEMPT_FAILED = "ATTEMPT_FAILED"
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    RENDERER_UNAVAILABLE = "RENDERER_UNAVAILABLE"
    SIGNAL_SUBSCRIBER_FAILURE = "SIGNAL_SUBSCRIBER_FAILURE"
    BROWSER_CLEANUP_FAILED = "BROWSER_CLEANUP_FAILED"


class FolioError(Exception):
    """Base class for all scrape pipeline errors."""

    code: ErrorCode = ErrorCode.ATTEMPT_FAILED


class InvalidURLError(FolioError):
    """URL is not a detail page of a supported site. Never retried."""

    code = ErrorCode.INVALID_URL


class NavigationTimeout(FolioError):
    """Page load exceeded its budget. Renderers keep the partial HTML instead of raising."""

    code = ErrorCode.NAVIGATION_TIMEOUT


class NavigationError(FolioError):
    """Page could not be loaded at all."""

    code = ErrorCode.NAVIGATION_FAILED


class ExtractionError(FolioError):
    """Rendered HTML could not be parsed into candidates."""

    code = ErrorCode.EXTRACTION_FAILED


class RendererUnavailableError(FolioError):
    """The browser capability cannot be started. Fatal for the request."""

    code = ErrorCode.RENDERER_UNAVAILABLE


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    url: str | None = None,
    attempt: int | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging."""
    logger.error(
        "folio_error",
        extra={
            "error_code": code,
            "error_message": message,
            "suppressed": suppressed,
            "url": url,
            "attempt": attempt,
            "details": details or {},
        },
    )
