"""
Caller side of a call: one Twilio Media Streams WebSocket.

Inbound frames are parsed into typed events (call started, caller audio,
utterance stopped); outbound model audio is wrapped in Twilio media frames and
written in the order it arrives. A keepalive mark is sent at a fixed interval
while the stream is open.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional, Union

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from receptionist.config.constants import (
    KEEPALIVE_INTERVAL,
    KEEPALIVE_MARK_NAME,
    LOGGER_NAME,
)
from receptionist.models.events import (
    AudioFrame,
    CallStarted,
    Direction,
    Leg,
    LegClosed,
    UtteranceStopped,
)
from receptionist.models.twilio_schemas import (
    CallBaseMessage,
    CallMediaMessage,
    CallStartMessage,
    CallStopMessage,
    MarkMessage,
    MarkPayload,
    OutgoingMediaMessage,
    OutgoingMediaPayload,
    parse_call_message,
)

logger = logging.getLogger(LOGGER_NAME)

CallEvent = Union[CallStarted, AudioFrame, UtteranceStopped, LegClosed]


class TwilioCallLeg:
    """
    Wraps the accepted Media Streams WebSocket.

    Attributes:
        websocket: The FastAPI WebSocket for this call
        stream_sid: Twilio stream SID, known after the ``start`` event
        call_sid: Twilio call SID, known after the ``start`` event
    """

    def __init__(self, websocket: WebSocket, keepalive_interval: float = KEEPALIVE_INTERVAL):
        self.websocket = websocket
        self.keepalive_interval = keepalive_interval
        self.stream_sid: Optional[str] = None
        self.call_sid: Optional[str] = None
        self._keepalive_task: Optional[asyncio.Task] = None
        self._closed = False

    async def accept(self) -> None:
        """Complete the WebSocket handshake and start the keepalive."""
        await self.websocket.accept()
        logger.info("Twilio media stream CONNECTED")
        self._keepalive_task = asyncio.create_task(self._keepalive())

    async def events(self) -> AsyncIterator[CallEvent]:
        """Yield typed caller events until the socket disconnects, ending with a LegClosed."""
        while True:
            try:
                message = await self.websocket.receive()
            except RuntimeError as e:
                # Raised by Starlette when receiving on a socket that is already gone
                yield LegClosed(leg=Leg.CALL, reason=str(e), error=True)
                return

            if message["type"] == "websocket.disconnect":
                code = message.get("code")
                logger.info(f"Twilio media stream CLOSED: code={code}")
                yield LegClosed(leg=Leg.CALL, reason=f"disconnect code={code}")
                return

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue

            parsed = parse_call_message(raw)
            if parsed is None:
                continue

            event = self._to_event(parsed)
            if event is not None:
                yield event

    def _to_event(self, message) -> Optional[CallEvent]:
        if isinstance(message, CallStartMessage):
            self.stream_sid = message.start.streamSid or message.streamSid
            self.call_sid = message.start.callSid
            logger.info(f"Twilio START: call_sid={self.call_sid} stream_sid={self.stream_sid}")
            return CallStarted(call_sid=self.call_sid, stream_sid=self.stream_sid)

        if isinstance(message, CallMediaMessage):
            return AudioFrame(payload=message.media.payload, direction=Direction.CALLER_TO_MODEL)

        if isinstance(message, CallStopMessage):
            logger.info("Twilio STOP")
            return UtteranceStopped()
        return None

    async def send_media(self, frame: AudioFrame) -> bool:
        """Send one chunk of model audio to the caller."""
        message = OutgoingMediaMessage(
            streamSid=self.stream_sid,
            media=OutgoingMediaPayload(payload=frame.payload),
        )
        return await self._send(message)

    async def _send(self, message: CallBaseMessage) -> bool:
        if self._closed:
            return False
        try:
            await self.websocket.send_text(message.model_dump_json(exclude_none=True))
            return True
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.warning(f"Failed to send {message.event} to Twilio: {e}")
            return False

    async def _keepalive(self) -> None:
        """
        Periodically send a mark frame.

        ASGI exposes no ping frame, so the probe is an application-level mark;
        it is skipped until the stream SID is known.
        """
        while not self._closed:
            await asyncio.sleep(self.keepalive_interval)
            if self._closed:
                break
            if not self.stream_sid:
                continue
            await self._send(
                MarkMessage(streamSid=self.stream_sid, mark=MarkPayload(name=KEEPALIVE_MARK_NAME))
            )

    async def close(self) -> None:
        """Close the media stream and cancel the keepalive; repeat calls are no-ops."""
        if self._closed:
            return
        self._closed = True

        if self._keepalive_task:
            self._keepalive_task.cancel()

        try:
            await self.websocket.close()
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.debug(f"Twilio media stream already closed: {e}")
        logger.info(f"Twilio channel closed (call_sid={self.call_sid})")
