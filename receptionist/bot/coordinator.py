"""
Per-call coordinator bridging the Twilio call leg and the OpenAI model leg.

Each call runs one coordinator. It owns a single inbox fed by:
- the call-leg reader (caller audio, stop, start, close)
- the establish task (negotiation + connect of the model leg)
- the model-leg reader (model audio, function calls, errors, close)
- tool tasks (correlated tool results)

Only the coordinator loop writes to either leg, so each leg has exactly one
ordered output path, while tool calls run as separate tasks and never hold up
audio relay.

State machine:
    INITIALIZING -> NEGOTIATING -> ACTIVE -> CLOSING -> CLOSED
Any failure or leg close moves to CLOSING; CLOSING always ends in CLOSED.
"""

import asyncio
import logging
import time
from typing import AsyncIterator, Dict, Optional, Set

from receptionist.bot.call_leg import TwilioCallLeg
from receptionist.bot.realtime_api import RealtimeModelLeg
from receptionist.config.constants import LOGGER_NAME
from receptionist.models.events import (
    AudioFrame,
    CallStarted,
    Direction,
    EstablishFailed,
    Leg,
    LegClosed,
    ModelError,
    ModelLegReady,
    ToolCallRequest,
    ToolCallResult,
    UtteranceStopped,
)
from receptionist.models.session import CallSession, CallState, SessionRegistry
from receptionist.services.tool_dispatcher import ToolDispatcher

logger = logging.getLogger(LOGGER_NAME)


class SessionCoordinator:
    """
    Runs one call from accepted caller connection to both legs closed.

    Attributes:
        session: Identity and state of this call
        call_leg: Accepted Twilio media stream
        model_leg: Realtime connector, not yet negotiated
        dispatcher: This call's tool dispatcher
        registry: Optional registry the session is listed in while alive
    """

    def __init__(self, call_leg: TwilioCallLeg, model_leg: RealtimeModelLeg,
                 dispatcher: ToolDispatcher, registry: Optional[SessionRegistry] = None,
                 session: Optional[CallSession] = None):
        self.session = session or CallSession()
        self.call_leg = call_leg
        self.model_leg = model_leg
        self.dispatcher = dispatcher
        self.registry = registry

        self._inbox: asyncio.Queue = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()
        self._tool_tasks: Dict[str, asyncio.Task] = {}
        self.dropped_frames = 0

    @property
    def state(self) -> CallState:
        return self.session.state

    def _transition(self, new_state: CallState) -> bool:
        old_state = self.session.state
        if old_state == new_state:
            return False
        if not self.session.can_transition(new_state):
            logger.warning(f"Session {self.session.session_id}: ignoring {old_state.value} -> {new_state.value}")
            return False
        self.session.state = new_state
        logger.info(f"Session {self.session.session_id}: {old_state.value} -> {new_state.value}")
        return True

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self) -> None:
        """
        Drive the call until both legs are closed.

        Never raises for leg or tool failures; they end the call through the
        CLOSING state instead.
        """
        if self.registry is not None:
            self.registry.add_session(self.session)

        try:
            self._spawn(self._pump(Leg.CALL, self.call_leg.events()))
            self._transition(CallState.NEGOTIATING)
            self._spawn(self._establish())

            while not self.session.is_terminal:
                source, event = await self._inbox.get()
                await self._handle(source, event)
        except Exception as e:
            logger.error(f"Session {self.session.session_id} failed: {e}", exc_info=True)
        finally:
            await self._shutdown()

    async def _pump(self, source: Leg, events: AsyncIterator) -> None:
        """Forward one leg's events into the inbox; always ends with a LegClosed."""
        try:
            async for event in events:
                await self._inbox.put((source, event))
                if isinstance(event, LegClosed):
                    return
        except Exception as e:
            logger.error(f"{source.value} leg reader failed: {e}", exc_info=True)
            await self._inbox.put((source, LegClosed(leg=source, reason=str(e), error=True)))
            return
        await self._inbox.put((source, LegClosed(leg=source, reason="stream ended")))

    async def _establish(self) -> None:
        """Negotiate and connect the model leg, reporting the outcome to the inbox."""
        try:
            result = await self.model_leg.negotiate()
            if not result.ok:
                await self._inbox.put((Leg.MODEL, EstablishFailed(stage="negotiation", error=result.error)))
                return

            if not await self.model_leg.connect(result.client_secret):
                await self._inbox.put((Leg.MODEL, EstablishFailed(stage="connect")))
                return

            await self._inbox.put((Leg.MODEL, ModelLegReady(expires_at=result.expires_at)))
        except Exception as e:
            logger.error(f"Establishing model leg failed: {e}", exc_info=True)
            await self._inbox.put((Leg.MODEL, EstablishFailed(stage="establish", error=str(e))))

    async def _run_tool(self, request: ToolCallRequest) -> None:
        result = await self.dispatcher.dispatch(request)
        await self._inbox.put((Leg.MODEL, result))

    async def _handle(self, source: Leg, event) -> None:
        if isinstance(event, LegClosed):
            log = logger.warning if event.error else logger.info
            log(f"Session {self.session.session_id}: {source.value} leg closed ({event.reason})")
            self._transition(CallState.CLOSING)

        elif isinstance(event, EstablishFailed):
            logger.error(f"Session {self.session.session_id}: model leg {event.stage} failed: {event.error}")
            self._transition(CallState.CLOSING)

        elif isinstance(event, ModelLegReady):
            if self._transition(CallState.ACTIVE):
                self._spawn(self._pump(Leg.MODEL, self.model_leg.events()))

        elif isinstance(event, CallStarted):
            self.session.call_sid = event.call_sid
            self.session.stream_sid = event.stream_sid

        elif isinstance(event, AudioFrame):
            await self._relay_audio(event)

        elif isinstance(event, UtteranceStopped):
            if self.state == CallState.ACTIVE:
                await self.model_leg.commit_audio()
                await self.model_leg.create_response()
            else:
                logger.debug(f"Dropping caller stop in state {self.state.value}")

        elif isinstance(event, ToolCallRequest):
            if self.state == CallState.ACTIVE:
                self._tool_tasks[event.call_id] = self._spawn(self._run_tool(event))

        elif isinstance(event, ToolCallResult):
            self._tool_tasks.pop(event.call_id, None)
            if self.state == CallState.ACTIVE:
                await self.model_leg.send_function_output(event)

        elif isinstance(event, ModelError):
            logger.error(f"RT ERROR ({event.code}): {event.message}")

    async def _relay_audio(self, frame: AudioFrame) -> None:
        if frame.direction == Direction.MODEL_TO_CALLER:
            await self.call_leg.send_media(frame)
        elif self.state == CallState.ACTIVE:
            await self.model_leg.append_audio(frame.payload)
        else:
            # No model leg yet; caller audio before ACTIVE has nowhere to go
            self.dropped_frames += 1

    async def _shutdown(self) -> None:
        """Cancel this call's tasks, close both legs and reach CLOSED."""
        self._transition(CallState.CLOSING)

        if self._tool_tasks:
            logger.warning(
                f"Session {self.session.session_id}: abandoning tool calls {sorted(self._tool_tasks)}"
            )
            self._tool_tasks.clear()

        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        try:
            await self._close_leg(Leg.MODEL, self.model_leg)
            await self._close_leg(Leg.CALL, self.call_leg)
        finally:
            if self.dropped_frames:
                logger.info(f"Session {self.session.session_id}: dropped {self.dropped_frames} caller frames before ACTIVE")

            self._transition(CallState.CLOSED)
            if self.registry is not None:
                self.registry.remove_session(self.session.session_id)
            logger.info(
                f"Session {self.session.session_id} ended after "
                f"{time.time() - self.session.created_at:.1f}s"
            )

    async def _close_leg(self, source: Leg, leg) -> None:
        try:
            await leg.close()
        except Exception as e:
            logger.error(f"Session {self.session.session_id}: closing {source.value} leg failed: {e}", exc_info=True)
