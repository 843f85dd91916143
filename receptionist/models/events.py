"""
Internal event types exchanged between the legs, the dispatcher and the coordinator.

Both connectors translate their wire frames into these types, so the coordinator
never touches protocol JSON directly.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Leg(str, Enum):
    CALL = "call"
    MODEL = "model"


class Direction(str, Enum):
    CALLER_TO_MODEL = "caller_to_model"
    MODEL_TO_CALLER = "model_to_caller"


class AudioFrame(BaseModel):
    """One chunk of base64 encoded audio travelling in a single direction."""
    payload: str
    direction: Direction


class CallStarted(BaseModel):
    call_sid: Optional[str] = None
    stream_sid: Optional[str] = None


class UtteranceStopped(BaseModel):
    """The caller leg signalled the end of an utterance."""


class ToolCallRequest(BaseModel):
    """A model-initiated tool invocation awaiting exactly one result."""
    name: str
    call_id: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    arguments_error: Optional[str] = None


class ToolCallResult(BaseModel):
    """Structured tool output correlated to its request by ``call_id``."""
    call_id: str
    output: Dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.output.get("ok", True) is not False


class ModelError(BaseModel):
    """A non-fatal ``error`` event reported by the model."""
    message: str = ""
    code: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class LegClosed(BaseModel):
    """Terminal notification that one leg is gone."""
    leg: Leg
    reason: Optional[str] = None
    error: bool = False


class NegotiationResult(BaseModel):
    """
    Outcome of the session negotiation request.

    Failures are values rather than exceptions so every way negotiation can go
    wrong is visible to the caller.
    """
    ok: bool
    client_secret: Optional[str] = None
    expires_at: Optional[int] = None
    status_code: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, client_secret: str, expires_at: Optional[int] = None,
                status_code: int = 200) -> "NegotiationResult":
        return cls(ok=True, client_secret=client_secret, expires_at=expires_at,
                   status_code=status_code)

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None) -> "NegotiationResult":
        return cls(ok=False, error=error, status_code=status_code)


class EstablishFailed(BaseModel):
    """The model leg could not be brought up (negotiation or connect)."""
    stage: str
    error: Optional[str] = None


class ModelLegReady(BaseModel):
    """The model leg negotiated, connected and greeted the caller."""
    expires_at: Optional[int] = None
