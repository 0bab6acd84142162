from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    INTERRUPTED = "interrupted"
    CLOSING = "closing"
    CLOSED = "closed"


_ALLOWED: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.CONNECTING}),
    SessionState.CONNECTING: frozenset({SessionState.ACTIVE, SessionState.CLOSING, SessionState.CLOSED}),
    SessionState.ACTIVE: frozenset({SessionState.INTERRUPTED, SessionState.CLOSING}),
    SessionState.INTERRUPTED: frozenset({SessionState.ACTIVE, SessionState.CLOSING}),
    SessionState.CLOSING: frozenset({SessionState.CLOSED}),
    SessionState.CLOSED: frozenset({SessionState.CONNECTING}),
}


class IllegalTransition(RuntimeError):
    pass


@dataclass
class SessionStateTracker:
    state: SessionState = SessionState.IDLE
    last_error: str | None = None

    def can_move(self, target: SessionState) -> bool:
        return target in _ALLOWED[self.state]

    def move(self, target: SessionState) -> None:
        if not self.can_move(target):
            raise IllegalTransition(f"{self.state.value} -> {target.value}")
        if target == SessionState.CONNECTING:
            self.last_error = None
        self.state = target

    def set_error(self, detail: str) -> None:
        self.last_error = detail

    @property
    def is_running(self) -> bool:
        return self.state in (SessionState.CONNECTING, SessionState.ACTIVE, SessionState.INTERRUPTED)
