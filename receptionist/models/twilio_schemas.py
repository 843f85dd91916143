"""
Pydantic models for the Twilio Media Streams WebSocket protocol.

This module defines the inbound events the bridge understands (start, media, stop)
and the outbound frames it sends back (media, mark). Anything else Twilio sends
(connected, dtmf, mark echoes) is accepted by the transport and ignored here.

Protocol reference:
  https://www.twilio.com/docs/voice/media-streams/websocket-messages
"""

import json
import logging
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from receptionist.config.constants import (
    CALL_EVENT_MEDIA,
    CALL_EVENT_START,
    CALL_EVENT_STOP,
    LOGGER_NAME,
)

logger = logging.getLogger(LOGGER_NAME)


class CallBaseMessage(BaseModel):
    """Base model for all Media Streams messages."""

    model_config = ConfigDict(extra="allow")

    event: str = Field(..., description="Event type identifier")
    streamSid: Optional[str] = Field(None, description="Media stream identifier")
    sequenceNumber: Optional[str] = None


# Inbound
class StartPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    streamSid: Optional[str] = None
    callSid: Optional[str] = None
    accountSid: Optional[str] = None
    customParameters: Dict[str, str] = Field(default_factory=dict)


class CallStartMessage(CallBaseMessage):
    """Stream metadata, sent once after the socket opens."""

    event: Literal["start"]
    start: StartPayload = Field(default_factory=StartPayload)


class MediaPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    payload: str = Field(..., description="Base64 encoded u-law audio")
    track: Optional[str] = None
    chunk: Optional[str] = None
    timestamp: Optional[str] = None


class CallMediaMessage(CallBaseMessage):
    """A chunk of caller audio."""

    event: Literal["media"]
    media: MediaPayload


class CallStopMessage(CallBaseMessage):
    """End of the caller's utterance / stream."""

    event: Literal["stop"]
    stop: Optional[Dict[str, Any]] = None


IncomingCallMessage = Union[CallStartMessage, CallMediaMessage, CallStopMessage]

_INCOMING_MODELS = {
    CALL_EVENT_START: CallStartMessage,
    CALL_EVENT_MEDIA: CallMediaMessage,
    CALL_EVENT_STOP: CallStopMessage,
}


# Outbound
class OutgoingMediaPayload(BaseModel):
    payload: str


class OutgoingMediaMessage(CallBaseMessage):
    """Model audio sent back to the caller."""

    event: Literal["media"] = "media"
    media: OutgoingMediaPayload


class MarkPayload(BaseModel):
    name: str


class MarkMessage(CallBaseMessage):
    """Mark frame, echoed by Twilio once audio before it has played."""

    event: Literal["mark"] = "mark"
    mark: MarkPayload


def parse_call_message(raw: Union[str, bytes]) -> Optional[IncomingCallMessage]:
    """
    Parse one raw Media Streams frame.

    Args:
        raw: The text (or bytes) frame received from Twilio

    Returns:
        The typed message, or None when the frame is malformed or of a kind
        the bridge does not act on
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Discarding unparseable caller frame: {str(raw)[:100]}")
        return None

    if not isinstance(data, dict):
        logger.warning("Discarding caller frame that is not a JSON object")
        return None

    event = data.get("event")
    model = _INCOMING_MODELS.get(event)
    if model is None:
        logger.debug(f"Ignoring caller event: {event}")
        return None

    try:
        return model(**data)
    except ValidationError as e:
        logger.warning(f"Discarding invalid caller '{event}' frame: {e}")
        return None
