"""
Call session state and the registry of live sessions.

Each CallSession is owned by exactly one coordinator. The SessionRegistry only
tracks which sessions are alive so the health endpoint can report them; it holds
no per-call state that another call could observe or change.
"""

import time
import uuid
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class CallState(str, Enum):
    INITIALIZING = "initializing"
    NEGOTIATING = "negotiating"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


# Legal forward moves; every state may also fall through to CLOSING/CLOSED
TRANSITIONS = {
    CallState.INITIALIZING: {CallState.NEGOTIATING, CallState.CLOSING},
    CallState.NEGOTIATING: {CallState.ACTIVE, CallState.CLOSING},
    CallState.ACTIVE: {CallState.CLOSING},
    CallState.CLOSING: {CallState.CLOSED},
    CallState.CLOSED: set(),
}


class CallSession(BaseModel):
    """Identity and lifecycle state of one phone call."""

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    state: CallState = CallState.INITIALIZING
    call_sid: Optional[str] = None
    stream_sid: Optional[str] = None
    created_at: float = Field(default_factory=time.time)

    def can_transition(self, new_state: CallState) -> bool:
        return new_state in TRANSITIONS[self.state]

    @property
    def is_terminal(self) -> bool:
        return self.state in (CallState.CLOSING, CallState.CLOSED)


class SessionRegistry:
    """
    Tracks the call sessions currently alive in this process.

    Sessions are added when a caller connection is accepted and removed once
    both of its legs are closed.
    """

    def __init__(self):
        """Initialize an empty dictionary of active sessions."""
        self.active_sessions: Dict[str, CallSession] = {}

    def add_session(self, session: CallSession):
        """
        Register a session.

        Args:
            session: The session to track, keyed by its session_id
        """
        self.active_sessions[session.session_id] = session

    def get_session(self, session_id: str) -> Optional[CallSession]:
        """
        Get an active session by its ID.

        Returns:
            The session, or None if it is not registered
        """
        return self.active_sessions.get(session_id)

    def remove_session(self, session_id: str):
        """Remove a session; unknown IDs are ignored."""
        self.active_sessions.pop(session_id, None)

    def get_all_sessions(self) -> Dict[str, CallSession]:
        return self.active_sessions

    def __len__(self) -> int:
        return len(self.active_sessions)
