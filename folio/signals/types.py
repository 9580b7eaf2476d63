"""Signal type definitions for per-attempt scrape telemetry."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SignalType(str, Enum):
    """All signal types emitted during a scrape."""

    PHASE_TRANSITION = "PHASE_TRANSITION"
    ATTEMPT_STARTED = "ATTEMPT_STARTED"
    ATTEMPT_SUCCEEDED = "ATTEMPT_SUCCEEDED"
    ATTEMPT_FAILED = "ATTEMPT_FAILED"
    RETRY_SCHEDULED = "RETRY_SCHEDULED"
    PARTIAL_PAGE = "PARTIAL_PAGE"
    CONSENT_DISMISSED = "CONSENT_DISMISSED"
    VALIDATION_WARNING = "VALIDATION_WARNING"
    DEGRADED_RECORD = "DEGRADED_RECORD"
    RUN_COMPLETE = "RUN_COMPLETE"
    RUN_FAILED = "RUN_FAILED"


class Signal(BaseModel):
    """One frozen event in a scrape's signal log, ordered by ``sequence``."""

    sequence: int = Field(description="Monotonic sequence number within the scrape")
    signal_type: SignalType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    run_id: str
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}
