"""
Lifecycle states of a chat session.

Transitions only move forward: Initializing -> Active -> Closing -> Closed,
with Initializing allowed to skip straight to Closing when the upstream
handshake fails.
"""

from enum import Enum
from typing import Dict, FrozenSet


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        return self is SessionState.CLOSED

    def can_transition_to(self, target: "SessionState") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.INITIALIZING: frozenset({SessionState.ACTIVE, SessionState.CLOSING}),
    SessionState.ACTIVE: frozenset({SessionState.CLOSING}),
    SessionState.CLOSING: frozenset({SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}
