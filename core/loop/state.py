"""Turn loop state machine."""

from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class LoopState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TURN_LIMIT_REACHED = "turn_limit_reached"
    CANCELLED = "cancelled"


VALID_TRANSITIONS = {
    LoopState.IDLE: [LoopState.RUNNING, LoopState.CANCELLED],
    LoopState.RUNNING: [
        LoopState.COMPLETED,
        LoopState.FAILED,
        LoopState.TURN_LIMIT_REACHED,
        LoopState.CANCELLED,
    ],
    LoopState.COMPLETED: [],
    LoopState.FAILED: [],
    LoopState.TURN_LIMIT_REACHED: [],
    LoopState.CANCELLED: [],
}

TERMINAL_STATES = frozenset(state for state, targets in VALID_TRANSITIONS.items() if not targets)


class InvalidTransitionError(RuntimeError):
    def __init__(self, current: LoopState, target: LoopState):
        super().__init__(f"Illegal loop transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


class LoopStateMachine:
    """Tracks one loop's state; every change goes through transition()."""

    def __init__(self) -> None:
        self.state = LoopState.IDLE
        self.history: list[LoopState] = [LoopState.IDLE]

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can_transition(self, new_state: LoopState) -> bool:
        return new_state in VALID_TRANSITIONS.get(self.state, [])

    def transition(self, new_state: LoopState) -> None:
        if not self.can_transition(new_state):
            raise InvalidTransitionError(self.state, new_state)
        logger.debug("Loop state %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)
