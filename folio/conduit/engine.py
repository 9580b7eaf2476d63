"""The Conduit — retry/recovery controller for one product-page scrape.

The Conduit is a finite state machine. It does not parse pages and it does
not talk to the browser directly. It owns the attempt loop around the
render → extract → reconcile → fix → normalize pipeline.

Responsibilities:
- Classify the URL before any browser work; invalid input is never rendered
- Run up to ``retry.max_retries`` attempts with linear backoff between them
- Keep the most recent partial record so an exhausted run still returns data
- Fall back to a record derived from the URL when no attempt produced one
- Enforce the overall per-request deadline across all attempts
- Validate the final record and apply the configured policy
- Emit Signals at every phase boundary and for every attempt

MUST NOT:
- Hard-fail a structurally valid URL (only a missing renderer is fatal)
- Retry indefinitely without a ceiling
- Mutate a record in place
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from folio.browser.page import PageRenderer
from folio.conduit.phases import TERMINAL_PHASES, VALID_TRANSITIONS, AttemptPhase
from folio.config.settings import ScrapeConfig
from folio.config.sites import ClassifiedURL, classify_url
from folio.pipeline.candidates import extract_candidates
from folio.pipeline.degraded import build_degraded_record
from folio.pipeline.fixer import fix_record
from folio.pipeline.normalize import normalize_record
from folio.pipeline.reconcile import reconcile
from folio.pipeline.record import (
    AttemptOutcome,
    BookRecord,
    CandidateSet,
    RetryAttempt,
    SourceKind,
    ValidationResult,
)
from folio.pipeline.validate import apply_validation_policy, validate_record
from folio.signals.emitter import SignalEmitter
from folio.signals.types import SignalType
from folio.telemetry.errors import (
    ErrorCode,
    ExtractionError,
    RendererUnavailableError,
    emit_structured_error,
)

logger = logging.getLogger(__name__)


class ConduitError(Exception):
    """Raised when the Conduit is driven outside its state machine."""


class ScrapeOutcome(BaseModel):
    """Result of one scrape: the final record plus how it was obtained."""

    model_config = ConfigDict(frozen=True)

    record: BookRecord
    site: str
    canonical_url: str
    attempts: list[RetryAttempt] = Field(default_factory=list)
    degraded: bool = False
    validation: ValidationResult


def backoff_delay_s(base_ms: int, attempt: int) -> float:
    """Linear backoff: ``base × attempt`` milliseconds, returned in seconds."""
    return base_ms * attempt / 1000.0


def is_hollow(record: BookRecord) -> bool:
    """A record with no title, no author and no description carries no usable identity."""
    return not (record.title.strip() or record.author.strip() or record.description.strip())


class Conduit:
    """The runtime controller for a single scrape.

    One instance serves one ``scrape`` call. Concurrent requests use
    separate instances and share nothing but the (immutable) config.
    """

    def __init__(
        self,
        config: ScrapeConfig | None = None,
        renderer: PageRenderer | None = None,
        signals: SignalEmitter | None = None,
    ) -> None:
        self._config = config or ScrapeConfig()
        self._run_id = f"scrape_{uuid.uuid4().hex[:12]}"
        self._phase = AttemptPhase.INIT
        self._start_time: float | None = None

        if renderer is None:
            from folio.browser.layer import PlaywrightRenderer

            renderer = PlaywrightRenderer()
        self._renderer = renderer

        if signals is None:
            ledger_dir = self._config.telemetry.ledger_dir
            signals = SignalEmitter(
                run_id=self._run_id,
                ledger_path=ledger_dir / f"{self._run_id}.jsonl" if ledger_dir else None,
            )
        self._signals = signals

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def phase(self) -> AttemptPhase:
        return self._phase

    @property
    def signals(self) -> SignalEmitter:
        return self._signals

    # --- Phase Transition ---

    async def _transition(self, to_phase: AttemptPhase, context: dict[str, Any] | None = None) -> None:
        """Transition to a new phase with guard validation and signal emission.

        Every phase transition MUST go through this method.
        """
        if to_phase not in VALID_TRANSITIONS.get(self._phase, set()):
            raise ConduitError(
                f"Invalid transition: {self._phase.value} -> {to_phase.value}"
            )

        from_phase = self._phase
        self._phase = to_phase

        await self._signals.emit_phase_transition(
            from_phase=from_phase.value,
            to_phase=to_phase.value,
            context=context or {},
        )

    # --- Retry Logic ---

    async def _backoff(self, attempt: int) -> None:
        """Linear backoff, capped by what is left of the global deadline."""
        delay = backoff_delay_s(self._config.retry.backoff_base_ms, attempt)
        delay = min(delay, max(self._remaining_s(), 0.0))
        if delay > 0:
            await asyncio.sleep(delay)

    def _remaining_s(self) -> float:
        """Seconds left of the global deadline."""
        if self._start_time is None:
            return self._config.timeouts.global_timeout_s
        elapsed = time.monotonic() - self._start_time
        return self._config.timeouts.global_timeout_s - elapsed

    # --- Main Run Loop ---

    async def scrape(self, url: str, allowed_sites: tuple[str, ...] | None = None) -> ScrapeOutcome:
        """Scrape one product URL.

        Raises:
            InvalidURLError: the URL is not a detail page of a supported site.
            RendererUnavailableError: no browser could be started at all.
        """
        if self._phase != AttemptPhase.INIT:
            raise ConduitError(f"Conduit {self._run_id} has already run")

        classified = classify_url(url, allowed_sites=allowed_sites)
        self._start_time = time.monotonic()

        max_attempts = self._config.retry.max_retries
        attempts: list[RetryAttempt] = []
        latest_partial: BookRecord | None = None
        record: BookRecord | None = None
        index = 0

        await self._transition(
            AttemptPhase.ATTEMPTING,
            {"url": classified.canonical_url, "site": classified.site.name},
        )

        while self._phase not in TERMINAL_PHASES:
            index += 1
            attempt = await self._run_attempt(classified, index)
            attempts.append(attempt)

            if attempt.outcome == AttemptOutcome.SUCCEEDED:
                record = attempt.partial_record
                await self._transition(AttemptPhase.SUCCEEDED, {"attempt": index})
                break

            if attempt.partial_record is not None:
                latest_partial = attempt.partial_record

            if index >= max_attempts or self._remaining_s() <= 0:
                await self._transition(
                    AttemptPhase.EXHAUSTED,
                    {"attempts_made": index, "deadline_hit": self._remaining_s() <= 0},
                )
                break

            await self._transition(AttemptPhase.RETRYING, {"attempt": index})
            await self._signals.emit(
                SignalType.RETRY_SCHEDULED,
                {
                    "attempt_number": index + 1,
                    "max_attempts": max_attempts,
                    "delay_s": backoff_delay_s(self._config.retry.backoff_base_ms, index),
                    "reason": attempt.error or attempt.outcome.value,
                },
            )
            await self._backoff(index)
            if self._remaining_s() <= 0:
                await self._transition(
                    AttemptPhase.EXHAUSTED, {"attempts_made": index, "deadline_hit": True}
                )
                break
            await self._transition(AttemptPhase.ATTEMPTING, {"attempt": index + 1})

        degraded = False
        if record is None:
            emit_structured_error(
                logger,
                code=ErrorCode.RETRIES_EXHAUSTED,
                message=f"No complete record after {len(attempts)} attempt(s)",
                suppressed=True,
                url=classified.canonical_url,
                attempt=len(attempts),
            )
            if latest_partial is not None:
                record = latest_partial
            else:
                record = build_degraded_record(classified)
                degraded = True
                await self._signals.emit(
                    SignalType.DEGRADED_RECORD,
                    {"url": classified.canonical_url, "title": record.title},
                )

        record, validation = await self._validate(record)

        await self._signals.emit_run_complete(
            attempts_made=len(attempts),
            total_duration_s=round(time.monotonic() - self._start_time, 2),
            degraded=degraded,
        )

        return ScrapeOutcome(
            record=record,
            site=classified.site.name,
            canonical_url=classified.canonical_url,
            attempts=attempts,
            degraded=degraded,
            validation=validation,
        )

    # --- Attempt ---

    async def _run_attempt(self, classified: ClassifiedURL, index: int) -> RetryAttempt:
        """Run one attempt under the remaining deadline and classify its outcome."""
        await self._signals.emit(
            SignalType.ATTEMPT_STARTED,
            {"attempt_number": index, "url": classified.canonical_url},
        )

        try:
            record = await asyncio.wait_for(
                self._attempt_pipeline(classified, index),
                timeout=max(self._remaining_s(), 0.0),
            )
        except RendererUnavailableError as e:
            emit_structured_error(
                logger,
                code=e.code,
                message=str(e),
                suppressed=False,
                url=classified.canonical_url,
                attempt=index,
            )
            await self._signals.emit_run_failed(failure_reason=str(e), attempts_made=index)
            raise
        except asyncio.TimeoutError:
            return await self._attempt_failed(
                classified, index, "Global deadline exceeded", ErrorCode.DEADLINE_EXCEEDED
            )
        except Exception as e:
            code = getattr(e, "code", ErrorCode.ATTEMPT_FAILED)
            return await self._attempt_failed(classified, index, f"{type(e).__name__}: {e}", code)

        if is_hollow(record):
            attempt = RetryAttempt(
                index=index,
                outcome=AttemptOutcome.PARTIAL,
                partial_record=record,
                error="No title, author or description found",
            )
            await self._signals.emit_attempt_failed(index, attempt.outcome.value, attempt.error)
            return attempt

        await self._signals.emit(
            SignalType.ATTEMPT_SUCCEEDED,
            {"attempt_number": index, "title": record.title, "author": record.author},
        )
        return RetryAttempt(index=index, outcome=AttemptOutcome.SUCCEEDED, partial_record=record)

    async def _attempt_failed(
        self, classified: ClassifiedURL, index: int, error: str, code: ErrorCode
    ) -> RetryAttempt:
        emit_structured_error(
            logger,
            code=code,
            message=error,
            suppressed=True,
            url=classified.canonical_url,
            attempt=index,
        )
        await self._signals.emit_attempt_failed(index, AttemptOutcome.FAILED.value, error)
        return RetryAttempt(index=index, outcome=AttemptOutcome.FAILED, error=error)

    async def _attempt_pipeline(self, classified: ClassifiedURL, index: int) -> BookRecord:
        """render → extract → reconcile → fix → normalize."""
        page = await self._renderer.render(classified.canonical_url, self._config)

        if page.consent_dismissed:
            await self._signals.emit(SignalType.CONSENT_DISMISSED, {"attempt_number": index})
        if page.partial:
            await self._signals.emit(
                SignalType.PARTIAL_PAGE,
                {"attempt_number": index, "html_size": len(page.html or "")},
            )

        try:
            candidates = extract_candidates(page, classified.site)
        except ExtractionError as e:
            emit_structured_error(
                logger,
                code=e.code,
                message=str(e),
                suppressed=True,
                url=classified.canonical_url,
                attempt=index,
            )
            candidates = CandidateSet()

        if classified.site.name == "amazon" and classified.product_id:
            candidates.add("asin", classified.product_id, SourceKind.URL)

        record = reconcile(candidates)
        if self._config.fix_data:
            record = fix_record(record, classified.site)
        if self._config.normalize_data:
            record = normalize_record(record)
        return record

    # --- Validation ---

    async def _validate(self, record: BookRecord) -> tuple[BookRecord, ValidationResult]:
        result = validate_record(record, self._config.validation.required_fields)
        if not self._config.validate_data:
            return record, result
        if not result.is_valid:
            logger.warning(
                "Record for %s is missing required fields: %s",
                self._run_id,
                ", ".join(result.missing_fields),
            )
            await self._signals.emit(
                SignalType.VALIDATION_WARNING,
                {"missing_fields": list(result.missing_fields)},
            )
        return apply_validation_policy(record, result, self._config.validation), result
