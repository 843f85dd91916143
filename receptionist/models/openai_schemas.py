"""
Pydantic models for OpenAI Realtime API message structures.

This module provides type-safe models for the session negotiation request and
response, the client events the bridge sends on the model leg, and the server
events it reacts to.
"""

import json
import logging
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from receptionist.config.constants import (
    AUDIO_FORMAT_G711_ULAW,
    LOGGER_NAME,
    MODEL_EVENT_AUDIO_APPEND,
    MODEL_EVENT_AUDIO_COMMIT,
    MODEL_EVENT_AUDIO_DELTA_ALIASES,
    MODEL_EVENT_ERROR,
    MODEL_EVENT_FUNCTION_CALL_ALIASES,
    MODEL_EVENT_FUNCTION_OUTPUT,
    MODEL_EVENT_RESPONSE_CREATE,
)

logger = logging.getLogger(LOGGER_NAME)


# Session negotiation
class TurnDetection(BaseModel):
    """Server-side voice activity detection settings."""
    type: str = "server_vad"
    threshold: float


class FunctionParameters(BaseModel):
    type: Literal["object"] = "object"
    properties: Dict[str, Dict[str, Any]]
    required: Optional[List[str]] = None


class ToolDefinition(BaseModel):
    """Schema of one callable tool, as declared to the model."""
    type: Literal["function"] = "function"
    name: str
    description: str
    parameters: FunctionParameters


class RealtimeSessionRequest(BaseModel):
    """Body of the one-shot session negotiation request."""
    model: str
    voice: str
    input_audio_format: str = AUDIO_FORMAT_G711_ULAW
    output_audio_format: str = AUDIO_FORMAT_G711_ULAW
    turn_detection: TurnDetection
    instructions: str
    tools: List[ToolDefinition]


class ClientSecret(BaseModel):
    value: str
    expires_at: Optional[int] = None


class RealtimeSessionResponse(BaseModel):
    """Response from session creation endpoint."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    client_secret: ClientSecret
    expires_at: Optional[int] = None


# Client events (bridge -> model)
class RealtimeBaseMessage(BaseModel):
    """Base model for Realtime API messages."""
    type: str


class InputAudioBufferAppend(RealtimeBaseMessage):
    type: Literal["input_audio_buffer.append"] = MODEL_EVENT_AUDIO_APPEND
    audio: str


class InputAudioBufferCommit(RealtimeBaseMessage):
    type: Literal["input_audio_buffer.commit"] = MODEL_EVENT_AUDIO_COMMIT


class ResponseOptions(BaseModel):
    modalities: Optional[List[str]] = None
    instructions: Optional[str] = None


class ResponseCreate(RealtimeBaseMessage):
    type: Literal["response.create"] = MODEL_EVENT_RESPONSE_CREATE
    response: Optional[ResponseOptions] = None


class FunctionCallOutput(RealtimeBaseMessage):
    type: Literal["response.function_call_output"] = MODEL_EVENT_FUNCTION_OUTPUT
    call_id: str
    output: str = Field(..., description="JSON encoded tool result")


# Server events (model -> bridge)
class RealtimeAudioDelta(RealtimeBaseMessage):
    """A chunk of synthesized audio. Older previews send ``audio``, GA sends ``delta``."""
    model_config = ConfigDict(extra="allow")

    audio: Optional[str] = None
    delta: Optional[str] = None

    @property
    def payload(self) -> Optional[str]:
        return self.audio or self.delta


class RealtimeFunctionCall(RealtimeBaseMessage):
    """Function call request from the model."""
    model_config = ConfigDict(extra="allow")

    name: str
    call_id: str
    arguments: Union[str, Dict[str, Any], None] = None


class RealtimeErrorMessage(RealtimeBaseMessage):
    """Error message from OpenAI Realtime API."""
    model_config = ConfigDict(extra="allow")

    type: Literal["error"] = MODEL_EVENT_ERROR
    error: Optional[Dict[str, Any]] = None


IncomingRealtimeMessage = Union[RealtimeAudioDelta, RealtimeFunctionCall, RealtimeErrorMessage]


def parse_realtime_message(raw: Union[str, bytes]) -> Optional[IncomingRealtimeMessage]:
    """
    Parse one raw model-leg frame.

    Args:
        raw: Text (or bytes) frame received from the Realtime API

    Returns:
        The typed message, or None when the frame is malformed or of a type
        the bridge does not act on
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Discarding unparseable model frame: {str(raw)[:100]}")
        return None

    if not isinstance(data, dict):
        logger.warning("Discarding model frame that is not a JSON object")
        return None

    message_type = data.get("type")
    if message_type in MODEL_EVENT_AUDIO_DELTA_ALIASES:
        model = RealtimeAudioDelta
    elif message_type in MODEL_EVENT_FUNCTION_CALL_ALIASES:
        model = RealtimeFunctionCall
    elif message_type == MODEL_EVENT_ERROR:
        model = RealtimeErrorMessage
    else:
        logger.debug(f"Received message of type: {message_type}")
        return None

    try:
        return model(**data)
    except ValidationError as e:
        logger.warning(f"Discarding invalid model '{message_type}' frame: {e}")
        return None
