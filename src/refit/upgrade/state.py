"""Upgrade phases and the transitions allowed between them.

    IDLE -> DETECTING_SOURCE -> PREVIEWING
    PREVIEWING -> STOPPED (dry run) | COMPLETE (up to date)
               | AWAITING_CONFIRMATION | BACKING_UP (confirmation skipped)
    AWAITING_CONFIRMATION -> BACKING_UP
    BACKING_UP -> MERGING -> MIGRATING -> VALIDATING -> COMPLETE
    BACKING_UP..VALIDATING -> ROLLING_BACK -> ROLLED_BACK | FATAL

Any phase before MERGING may also end in ABORTED (nothing was changed).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from refit.core.errors import IllegalTransitionError
from refit.gateway.time.abc import Time

logger = logging.getLogger(__name__)


class UpgradePhase(Enum):
    IDLE = "idle"
    DETECTING_SOURCE = "detecting_source"
    PREVIEWING = "previewing"
    STOPPED = "stopped"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    BACKING_UP = "backing_up"
    MERGING = "merging"
    MIGRATING = "migrating"
    VALIDATING = "validating"
    COMPLETE = "complete"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"
    FATAL = "fatal"
    ABORTED = "aborted"


ALLOWED_TRANSITIONS: dict[UpgradePhase, frozenset[UpgradePhase]] = {
    UpgradePhase.IDLE: frozenset({UpgradePhase.DETECTING_SOURCE, UpgradePhase.ABORTED}),
    UpgradePhase.DETECTING_SOURCE: frozenset({UpgradePhase.PREVIEWING, UpgradePhase.ABORTED}),
    UpgradePhase.PREVIEWING: frozenset(
        {
            UpgradePhase.STOPPED,
            UpgradePhase.COMPLETE,
            UpgradePhase.AWAITING_CONFIRMATION,
            UpgradePhase.BACKING_UP,
            UpgradePhase.ABORTED,
        }
    ),
    UpgradePhase.AWAITING_CONFIRMATION: frozenset(
        {UpgradePhase.BACKING_UP, UpgradePhase.ABORTED}
    ),
    UpgradePhase.BACKING_UP: frozenset(
        {UpgradePhase.MERGING, UpgradePhase.ROLLING_BACK, UpgradePhase.ABORTED}
    ),
    UpgradePhase.MERGING: frozenset({UpgradePhase.MIGRATING, UpgradePhase.ROLLING_BACK}),
    UpgradePhase.MIGRATING: frozenset({UpgradePhase.VALIDATING, UpgradePhase.ROLLING_BACK}),
    UpgradePhase.VALIDATING: frozenset({UpgradePhase.COMPLETE, UpgradePhase.ROLLING_BACK}),
    UpgradePhase.ROLLING_BACK: frozenset({UpgradePhase.ROLLED_BACK, UpgradePhase.FATAL}),
    UpgradePhase.STOPPED: frozenset(),
    UpgradePhase.COMPLETE: frozenset(),
    UpgradePhase.ROLLED_BACK: frozenset(),
    UpgradePhase.FATAL: frozenset(),
    UpgradePhase.ABORTED: frozenset(),
}

TERMINAL_PHASES = frozenset(phase for phase, targets in ALLOWED_TRANSITIONS.items() if not targets)


@dataclass(frozen=True)
class PhaseTransition:
    from_phase: UpgradePhase
    to_phase: UpgradePhase
    at: datetime


class UpgradeStateMachine:
    """Tracks the current phase of one upgrade run and rejects illegal moves."""

    def __init__(self, time: Time) -> None:
        self._time = time
        self._phase = UpgradePhase.IDLE
        self._history: list[PhaseTransition] = []

    @property
    def phase(self) -> UpgradePhase:
        return self._phase

    @property
    def history(self) -> tuple[PhaseTransition, ...]:
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._phase in TERMINAL_PHASES

    def can_transition(self, to_phase: UpgradePhase) -> bool:
        return to_phase in ALLOWED_TRANSITIONS[self._phase]

    def transition(self, to_phase: UpgradePhase) -> None:
        """Move to to_phase.

        Raises:
            IllegalTransitionError: If the move is not in ALLOWED_TRANSITIONS
        """
        if not self.can_transition(to_phase):
            raise IllegalTransitionError(
                f"Illegal upgrade transition: {self._phase.value} -> {to_phase.value}"
            )
        logger.debug("Upgrade phase: %s -> %s", self._phase.value, to_phase.value)
        self._history.append(PhaseTransition(self._phase, to_phase, self._time.now()))
        self._phase = to_phase

    def visited(self) -> tuple[UpgradePhase, ...]:
        """Every phase entered so far, starting with IDLE."""
        return (UpgradePhase.IDLE, *(t.to_phase for t in self._history))
