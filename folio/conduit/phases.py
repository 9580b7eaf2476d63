"""Controller phase definitions — the attempt loop's states and transitions."""

from __future__ import annotations

from enum import Enum


class AttemptPhase(str, Enum):
    """States of the retry/recovery controller for one scrape."""

    INIT = "INIT"
    ATTEMPTING = "ATTEMPTING"
    RETRYING = "RETRYING"
    SUCCEEDED = "SUCCEEDED"
    EXHAUSTED = "EXHAUSTED"


# Valid phase transitions. Each key maps to a set of phases it can transition to.
VALID_TRANSITIONS: dict[AttemptPhase, set[AttemptPhase]] = {
    AttemptPhase.INIT: {AttemptPhase.ATTEMPTING},
    AttemptPhase.ATTEMPTING: {
        AttemptPhase.SUCCEEDED,
        AttemptPhase.RETRYING,
        AttemptPhase.EXHAUSTED,
    },
    AttemptPhase.RETRYING: {AttemptPhase.ATTEMPTING, AttemptPhase.EXHAUSTED},
    AttemptPhase.SUCCEEDED: set(),  # terminal
    AttemptPhase.EXHAUSTED: set(),  # terminal
}

TERMINAL_PHASES = {AttemptPhase.SUCCEEDED, AttemptPhase.EXHAUSTED}
