"""Per-attempt scrape telemetry, kept out of the controller's control flow.

The Conduit reports what happened to a ``SignalEmitter``; the optional JSONL
ledger and any subscribers decide what to do with it. Subscriber failures are
logged and never reach the scrape.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Callable

from folio.signals.types import Signal, SignalType
from folio.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

Subscriber = Callable[[Signal], Any]


class SignalEmitter:
    """Append-only signal log for one scrape.

    - Sequence numbers start at 1 and never repeat
    - Each signal is appended to ``ledger_path`` (JSONL) when one is given
    - Subscribers see signals in emission order; async subscribers are awaited
    """

    def __init__(self, run_id: str, ledger_path: Path | None = None) -> None:
        self._run_id = run_id
        self._ledger = ledger_path
        self._log: list[Signal] = []
        self._subscribers: list[Subscriber] = []
        self._lock = asyncio.Lock()

        if self._ledger is not None:
            self._ledger.parent.mkdir(parents=True, exist_ok=True)

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def ledger_path(self) -> Path | None:
        return self._ledger

    @property
    def signals(self) -> list[Signal]:
        """Snapshot of everything emitted so far."""
        return list(self._log)

    def of_type(self, signal_type: SignalType) -> list[Signal]:
        return [s for s in self._log if s.signal_type == signal_type]

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers = [s for s in self._subscribers if s is not callback]

    async def emit(self, signal_type: SignalType, payload: dict[str, Any] | None = None) -> Signal:
        """Record a signal, persist it, and hand it to subscribers."""
        async with self._lock:
            signal = Signal(
                sequence=len(self._log) + 1,
                signal_type=signal_type,
                run_id=self._run_id,
                payload=payload or {},
            )
            self._log.append(signal)
            if self._ledger is not None:
                with self._ledger.open("a", encoding="utf-8") as ledger:
                    ledger.write(signal.model_dump_json() + "\n")

        for subscriber in list(self._subscribers):
            await self._notify(subscriber, signal)
        return signal

    async def _notify(self, subscriber: Subscriber, signal: Signal) -> None:
        try:
            result = subscriber(signal)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            emit_structured_error(
                logger,
                code=ErrorCode.SIGNAL_SUBSCRIBER_FAILURE,
                message=str(e),
                suppressed=True,
                details={"signal_type": signal.signal_type.value, "sequence": signal.sequence},
            )

    # --- Convenience emitters used by the Conduit ---

    async def emit_phase_transition(
        self, from_phase: str, to_phase: str, context: dict[str, Any] | None = None
    ) -> Signal:
        return await self.emit(
            SignalType.PHASE_TRANSITION,
            {"from_phase": from_phase, "to_phase": to_phase, **(context or {})},
        )

    async def emit_attempt_failed(self, attempt_number: int, outcome: str, error: str) -> Signal:
        return await self.emit(
            SignalType.ATTEMPT_FAILED,
            {"attempt_number": attempt_number, "outcome": outcome, "error": error},
        )

    async def emit_run_complete(
        self, attempts_made: int, total_duration_s: float, degraded: bool
    ) -> Signal:
        return await self.emit(
            SignalType.RUN_COMPLETE,
            {
                "attempts_made": attempts_made,
                "total_duration_s": total_duration_s,
                "degraded": degraded,
            },
        )

    async def emit_run_failed(self, failure_reason: str, attempts_made: int) -> Signal:
        return await self.emit(
            SignalType.RUN_FAILED,
            {"failure_reason": failure_reason, "attempts_made": attempts_made},
        )

    @staticmethod
    def load_ledger(ledger_path: Path) -> list[Signal]:
        """Read a JSONL ledger back into signals; a missing file is an empty ledger."""
        if not ledger_path.exists():
            return []
        with ledger_path.open(encoding="utf-8") as ledger:
            return [Signal.model_validate_json(line) for line in ledger if line.strip()]
