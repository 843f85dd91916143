import asyncio
import json
import logging
import time
from typing import AsyncIterator, Optional, Union

import requests
import websockets
from pydantic import BaseModel
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from receptionist.config.constants import (
    CONNECTION_TIMEOUT,
    KEEPALIVE_INTERVAL,
    LOGGER_NAME,
    NEGOTIATION_TIMEOUT,
    REALTIME_SESSIONS_URL,
    REALTIME_WS_URL,
)
from receptionist.config.prompts import GREETING_INSTRUCTIONS
from receptionist.models.events import (
    AudioFrame,
    Direction,
    Leg,
    LegClosed,
    ModelError,
    NegotiationResult,
    ToolCallRequest,
    ToolCallResult,
)
from receptionist.models.openai_schemas import (
    FunctionCallOutput,
    InputAudioBufferAppend,
    InputAudioBufferCommit,
    RealtimeAudioDelta,
    RealtimeErrorMessage,
    RealtimeFunctionCall,
    RealtimeSessionRequest,
    RealtimeSessionResponse,
    ResponseCreate,
    ResponseOptions,
    parse_realtime_message,
)

logger = logging.getLogger(LOGGER_NAME)

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
PONG_TIMEOUT = 10

ModelEvent = Union[AudioFrame, ToolCallRequest, ModelError, LegClosed]


def parse_tool_arguments(arguments) -> tuple:
    """
    Normalize function-call arguments to a dict.

    Returns:
        tuple: (arguments dict, error message or None)
    """
    if arguments is None or arguments == "":
        return {}, None
    if isinstance(arguments, dict):
        return arguments, None
    try:
        parsed = json.loads(arguments)
    except (TypeError, ValueError) as e:
        return {}, f"arguments are not valid JSON: {e}"
    if not isinstance(parsed, dict):
        return {}, "arguments must be a JSON object"
    return parsed, None


class RealtimeModelLeg:
    """
    Model side of a call: one OpenAI Realtime session.

    Lifecycle: ``negotiate()`` creates the session over HTTPS and returns a
    NegotiationResult; ``connect()`` opens the event stream with the returned
    short-lived secret, greets the caller and starts the keepalive; ``events()``
    yields typed events until the socket closes; ``close()`` tears everything
    down and may be called any number of times.
    """

    def __init__(self, api_key: str, session_request: RealtimeSessionRequest,
                 keepalive_interval: float = KEEPALIVE_INTERVAL):
        self.api_key = api_key
        self.session_request = session_request
        self.model = session_request.model
        self.keepalive_interval = keepalive_interval
        self.ws = None
        self._keepalive_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self.ws is not None and not self._closed

    async def negotiate(self) -> NegotiationResult:
        """
        Create a Realtime session carrying the audio, voice, VAD, instruction
        and tool configuration.

        Returns:
            NegotiationResult: success with the client secret, or failure with
            the reason; never raises for HTTP or transport errors
        """
        if not self.api_key:
            return NegotiationResult.failure("OPENAI_API_KEY is not configured")

        logger.info(f"Negotiating Realtime session for model: {self.model}")
        try:
            response = await asyncio.to_thread(
                requests.post,
                REALTIME_SESSIONS_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=self.session_request.model_dump(exclude_none=True),
                timeout=NEGOTIATION_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error(f"Session negotiation request failed: {e}")
            return NegotiationResult.failure(f"request failed: {e}")

        if not response.ok:
            logger.error(f"Session negotiation rejected ({response.status_code}): {response.text[:400]}")
            return NegotiationResult.failure(response.text[:400], status_code=response.status_code)

        try:
            session = RealtimeSessionResponse.model_validate(response.json())
        except ValueError as e:
            logger.error(f"Unexpected negotiation response: {e}")
            return NegotiationResult.failure(
                f"malformed session response: {e}", status_code=response.status_code
            )

        logger.info(f"Realtime session negotiated: {session.id}")
        return NegotiationResult.success(
            session.client_secret.value,
            expires_at=session.client_secret.expires_at or session.expires_at,
            status_code=response.status_code,
        )

    async def connect(self, client_secret: str) -> bool:
        """
        Open the Realtime event stream and greet the caller.

        Args:
            client_secret: Short-lived credential returned by negotiate()

        Returns:
            bool: True if the stream is open, False otherwise
        """
        if self._closed:
            logger.warning("Cannot connect - model leg is closed")
            return False

        url = f"{REALTIME_WS_URL}?model={self.model}"
        headers = {
            "Authorization": f"Bearer {client_secret}",
            "OpenAI-Beta": "realtime=v1",
        }

        try:
            connection_start = time.time()
            # Library pings are off; _keepalive is the only probe on this leg
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    max_size=WS_MAX_SIZE,
                    ping_interval=None,
                    compression=None,
                    additional_headers=headers,
                ),
                timeout=CONNECTION_TIMEOUT,
            )
            logger.debug(f"Realtime WebSocket established in {time.time() - connection_start:.2f} seconds")
        except asyncio.TimeoutError:
            logger.error(f"Timeout while connecting to OpenAI Realtime API (after {CONNECTION_TIMEOUT}s)")
            return False
        except Exception as e:
            logger.error(f"Failed to connect to OpenAI Realtime API: {e}")
            return False

        logger.info("OpenAI Realtime connected")
        self._keepalive_task = asyncio.create_task(self._keepalive())
        await self.send_greeting()
        return True

    async def events(self) -> AsyncIterator[ModelEvent]:
        """Yield typed events from the model until the stream ends with a LegClosed."""
        if self.ws is None:
            yield LegClosed(leg=Leg.MODEL, reason="not connected", error=True)
            return

        try:
            async for raw in self.ws:
                message = parse_realtime_message(raw)
                if message is None:
                    continue
                event = self._to_event(message)
                if event is not None:
                    yield event
        except ConnectionClosedOK:
            yield LegClosed(leg=Leg.MODEL, reason="closed")
        except ConnectionClosed as e:
            logger.warning(f"Realtime connection closed unexpectedly: {e}")
            yield LegClosed(leg=Leg.MODEL, reason=str(e), error=True)
        else:
            yield LegClosed(leg=Leg.MODEL, reason="closed")

    def _to_event(self, message) -> Optional[ModelEvent]:
        if isinstance(message, RealtimeAudioDelta):
            if not message.payload:
                return None
            return AudioFrame(payload=message.payload, direction=Direction.MODEL_TO_CALLER)

        if isinstance(message, RealtimeFunctionCall):
            arguments, error = parse_tool_arguments(message.arguments)
            logger.info(f"Function call from model: {message.name} ({message.call_id})")
            return ToolCallRequest(
                name=message.name,
                call_id=message.call_id,
                arguments=arguments,
                arguments_error=error,
            )

        if isinstance(message, RealtimeErrorMessage):
            error = message.error or {}
            return ModelError(
                message=str(error.get("message", "")),
                code=error.get("code"),
                details=error,
            )
        return None

    async def send_event(self, event: BaseModel) -> bool:
        """
        Send one client event on the model leg.

        Returns:
            bool: True if the event was written to the socket
        """
        if not self.is_open:
            logger.warning(f"Cannot send {getattr(event, 'type', 'event')} - model leg not open")
            return False
        try:
            await self.ws.send(event.model_dump_json(exclude_none=True))
            return True
        except ConnectionClosed as e:
            logger.warning(f"Model leg closed while sending {getattr(event, 'type', 'event')}: {e}")
            return False

    async def append_audio(self, payload: str) -> bool:
        return await self.send_event(InputAudioBufferAppend(audio=payload))

    async def commit_audio(self) -> bool:
        return await self.send_event(InputAudioBufferCommit())

    async def create_response(self, instructions: Optional[str] = None,
                              modalities: Optional[list] = None) -> bool:
        options = None
        if instructions or modalities:
            options = ResponseOptions(instructions=instructions, modalities=modalities)
        return await self.send_event(ResponseCreate(response=options))

    async def send_greeting(self) -> bool:
        """Ask the model to speak first so the caller does not hear dead air."""
        return await self.create_response(
            instructions=GREETING_INSTRUCTIONS, modalities=["audio"]
        )

    async def send_function_output(self, result: ToolCallResult) -> bool:
        return await self.send_event(
            FunctionCallOutput(call_id=result.call_id, output=json.dumps(result.output))
        )

    async def _keepalive(self) -> None:
        """Ping the Realtime socket at a fixed interval."""
        while self.is_open:
            await asyncio.sleep(self.keepalive_interval)
            if not self.is_open:
                break
            try:
                pong_waiter = await self.ws.ping()
                await asyncio.wait_for(pong_waiter, timeout=PONG_TIMEOUT)
                logger.debug("Realtime keepalive acknowledged")
            except asyncio.TimeoutError:
                logger.warning(f"Realtime keepalive not answered within {PONG_TIMEOUT}s")
            except ConnectionClosed:
                logger.debug("Realtime keepalive stopped, connection closed")
                break

    async def close(self) -> None:
        """Close the Realtime connection and cancel the keepalive; repeat calls are no-ops."""
        if self._closed:
            return
        self._closed = True

        if self._keepalive_task:
            self._keepalive_task.cancel()

        if self.ws is not None:
            try:
                await self.ws.close()
            except Exception as e:
                logger.warning(f"Error closing Realtime WebSocket: {e}")
        logger.info("OpenAI Realtime client closed")
