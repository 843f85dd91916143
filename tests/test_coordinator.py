"""
Tests for the SessionCoordinator using in-memory legs.

The fake legs record what the coordinator writes and let each test decide
when caller and model events arrive.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from starlette.websockets import WebSocketDisconnect

from receptionist.bot.call_leg import TwilioCallLeg
from receptionist.bot.coordinator import SessionCoordinator
from receptionist.models.events import (
    AudioFrame,
    CallStarted,
    Direction,
    Leg,
    LegClosed,
    ModelError,
    NegotiationResult,
    ToolCallRequest,
    UtteranceStopped,
)
from receptionist.models.reference import DEFAULT_REFERENCE_DATA
from receptionist.models.session import CallState, SessionRegistry
from receptionist.services.notifier import NotificationError
from receptionist.services.tool_dispatcher import ToolDispatcher


class FakeLeg:
    """Leg whose inbound events are pushed by the test."""

    def __init__(self, leg):
        self.leg = leg
        self.inbound = asyncio.Queue()
        self.close_count = 0

    async def events(self):
        while True:
            event = await self.inbound.get()
            yield event
            if isinstance(event, LegClosed):
                return

    def push(self, event):
        self.inbound.put_nowait(event)

    def hang_up(self):
        self.push(LegClosed(leg=self.leg, reason="hang up"))

    async def close(self):
        self.close_count += 1


class FakeCallLeg(FakeLeg):

    def __init__(self):
        super().__init__(Leg.CALL)
        self.sent = []

    async def send_media(self, frame):
        self.sent.append(frame.payload)
        return True


class FakeModelLeg(FakeLeg):

    def __init__(self, negotiation=None, connect_ok=True, gate=None):
        super().__init__(Leg.MODEL)
        self.negotiation = negotiation or NegotiationResult.success("ek_test")
        self.connect_ok = connect_ok
        self.gate = gate
        self.connected_with = None
        self.outbound = []

    async def negotiate(self):
        if self.gate is not None:
            await self.gate.wait()
        return self.negotiation

    async def connect(self, client_secret):
        self.connected_with = client_secret
        return self.connect_ok

    async def append_audio(self, payload):
        self.outbound.append(("append", payload))
        return True

    async def commit_audio(self):
        self.outbound.append(("commit",))
        return True

    async def create_response(self, instructions=None, modalities=None):
        self.outbound.append(("response.create",))
        return True

    async def send_function_output(self, result):
        self.outbound.append(("function_output", result.call_id, result.output))
        return True

    def outputs(self):
        return [item for item in self.outbound if item[0] == "function_output"]


def caller_audio(payload):
    return AudioFrame(payload=payload, direction=Direction.CALLER_TO_MODEL)


def model_audio(payload):
    return AudioFrame(payload=payload, direction=Direction.MODEL_TO_CALLER)


async def wait_until(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.send.return_value = "SM123"
    return mock


def make_coordinator(model_leg=None, notifier=None, registry=None, tool_timeout=1.0):
    call_leg = FakeCallLeg()
    model_leg = model_leg or FakeModelLeg()
    if notifier is None:
        notifier = AsyncMock()
        notifier.send.return_value = "SM123"
    dispatcher = ToolDispatcher(DEFAULT_REFERENCE_DATA, notifier, tool_timeout=tool_timeout)
    coordinator = SessionCoordinator(call_leg, model_leg, dispatcher, registry=registry)
    return coordinator, call_leg, model_leg


async def start_active(coordinator):
    task = asyncio.create_task(coordinator.run())
    await wait_until(lambda: coordinator.state == CallState.ACTIVE)
    return task


async def finish(task, call_leg):
    call_leg.hang_up()
    await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_reaches_active_with_negotiated_secret():
    coordinator, call_leg, model_leg = make_coordinator()

    task = await start_active(coordinator)

    assert model_leg.connected_with == "ek_test"
    await finish(task, call_leg)
    assert coordinator.state == CallState.CLOSED


@pytest.mark.asyncio
async def test_call_started_records_sids():
    coordinator, call_leg, model_leg = make_coordinator()
    task = await start_active(coordinator)

    call_leg.push(CallStarted(call_sid="CA1", stream_sid="MZ1"))
    await wait_until(lambda: coordinator.session.stream_sid == "MZ1")

    assert coordinator.session.call_sid == "CA1"
    await finish(task, call_leg)


@pytest.mark.asyncio
async def test_audio_relayed_in_order_both_ways():
    coordinator, call_leg, model_leg = make_coordinator()
    task = await start_active(coordinator)

    for payload in ("c1", "c2", "c3"):
        call_leg.push(caller_audio(payload))
    for payload in ("m1", "m2", "m3"):
        model_leg.push(model_audio(payload))

    await wait_until(lambda: len(call_leg.sent) == 3 and len(model_leg.outbound) == 3)

    assert model_leg.outbound == [("append", "c1"), ("append", "c2"), ("append", "c3")]
    assert call_leg.sent == ["m1", "m2", "m3"]
    await finish(task, call_leg)


@pytest.mark.asyncio
async def test_each_stop_commits_then_requests_response():
    coordinator, call_leg, model_leg = make_coordinator()
    task = await start_active(coordinator)

    call_leg.push(caller_audio("c1"))
    call_leg.push(UtteranceStopped())
    call_leg.push(caller_audio("c2"))
    call_leg.push(UtteranceStopped())

    await wait_until(lambda: len(model_leg.outbound) == 6)

    assert model_leg.outbound == [
        ("append", "c1"), ("commit",), ("response.create",),
        ("append", "c2"), ("commit",), ("response.create",),
    ]
    await finish(task, call_leg)


@pytest.mark.asyncio
async def test_caller_events_before_active_are_dropped():
    gate = asyncio.Event()
    coordinator, call_leg, model_leg = make_coordinator(FakeModelLeg(gate=gate))
    task = asyncio.create_task(coordinator.run())

    call_leg.push(caller_audio("early"))
    call_leg.push(UtteranceStopped())
    await wait_until(lambda: coordinator.dropped_frames == 1)
    assert coordinator.state == CallState.NEGOTIATING

    gate.set()
    await wait_until(lambda: coordinator.state == CallState.ACTIVE)
    call_leg.push(caller_audio("late"))
    await wait_until(lambda: model_leg.outbound)

    assert model_leg.outbound == [("append", "late")]
    await finish(task, call_leg)


@pytest.mark.asyncio
async def test_tool_call_answered_exactly_once():
    coordinator, call_leg, model_leg = make_coordinator()
    task = await start_active(coordinator)

    model_leg.push(ToolCallRequest(name="getFAQ", call_id="call_1", arguments={"question": "hours?"}))
    model_leg.push(ToolCallRequest(name="bookSlot", call_id="call_2", arguments={
        "slotId": "wed-0900", "name": "Jane Doe", "phone": "+15551234567",
    }))
    await wait_until(lambda: len(model_leg.outputs()) == 2)
    await asyncio.sleep(0.02)

    outputs = {call_id: output for _, call_id, output in model_leg.outputs()}
    assert len(model_leg.outputs()) == 2
    assert outputs["call_1"] == {"answer": "Mon-Fri 8am-5pm; Sat 9am-1pm; closed Sunday."}
    assert outputs["call_2"]["booked"]["label"] == "Wed 9:00 AM (Dr. Lee)"
    await finish(task, call_leg)


@pytest.mark.asyncio
async def test_failing_tool_still_answers(notifier):
    notifier.send.side_effect = NotificationError("rejected")
    coordinator, call_leg, model_leg = make_coordinator(notifier=notifier)
    task = await start_active(coordinator)

    model_leg.push(ToolCallRequest(name="sendSMS", call_id="call_9", arguments={"to": "+1555", "message": "hi"}))
    model_leg.push(ToolCallRequest(name="teleport", call_id="call_10"))
    await wait_until(lambda: len(model_leg.outputs()) == 2)

    outputs = {call_id: output for _, call_id, output in model_leg.outputs()}
    assert outputs["call_9"]["error"] == "tool-failed"
    assert outputs["call_10"]["error"] == "unknown-tool"
    await finish(task, call_leg)


@pytest.mark.asyncio
async def test_slow_tool_does_not_block_audio(notifier):
    release = asyncio.Event()

    async def slow_send(to, body):
        await release.wait()
        return "SM999"

    notifier.send = AsyncMock(side_effect=slow_send)
    coordinator, call_leg, model_leg = make_coordinator(notifier=notifier)
    task = await start_active(coordinator)

    model_leg.push(ToolCallRequest(name="sendSMS", call_id="call_1", arguments={"to": "+1555", "message": "hi"}))
    model_leg.push(model_audio("m1"))
    call_leg.push(caller_audio("c1"))

    await wait_until(lambda: call_leg.sent == ["m1"] and ("append", "c1") in model_leg.outbound)
    assert model_leg.outputs() == []

    release.set()
    await wait_until(lambda: model_leg.outputs())
    assert model_leg.outputs()[0][1:] == ("call_1", {"ok": True, "sid": "SM999"})
    await finish(task, call_leg)


@pytest.mark.asyncio
async def test_model_error_is_not_fatal():
    coordinator, call_leg, model_leg = make_coordinator()
    task = await start_active(coordinator)

    model_leg.push(ModelError(message="bad event", code="invalid"))
    model_leg.push(model_audio("m1"))
    await wait_until(lambda: call_leg.sent == ["m1"])

    assert coordinator.state == CallState.ACTIVE
    await finish(task, call_leg)


@pytest.mark.asyncio
async def test_negotiation_failure_closes_call_leg():
    model_leg = FakeModelLeg(negotiation=NegotiationResult.failure("401", status_code=401))
    coordinator, call_leg, model_leg = make_coordinator(model_leg)

    await asyncio.wait_for(coordinator.run(), timeout=1.0)

    assert coordinator.state == CallState.CLOSED
    assert call_leg.close_count == 1
    assert model_leg.close_count == 1
    assert model_leg.connected_with is None


@pytest.mark.asyncio
async def test_connect_failure_closes_call_leg():
    coordinator, call_leg, model_leg = make_coordinator(FakeModelLeg(connect_ok=False))

    await asyncio.wait_for(coordinator.run(), timeout=1.0)

    assert coordinator.state == CallState.CLOSED
    assert call_leg.close_count == 1


@pytest.mark.asyncio
async def test_caller_hangs_up_during_negotiation():
    gate = asyncio.Event()
    coordinator, call_leg, model_leg = make_coordinator(FakeModelLeg(gate=gate))
    task = asyncio.create_task(coordinator.run())
    await wait_until(lambda: coordinator.state == CallState.NEGOTIATING)

    call_leg.hang_up()
    await asyncio.wait_for(task, timeout=1.0)

    assert coordinator.state == CallState.CLOSED
    assert model_leg.close_count == 1
    assert call_leg.close_count == 1
    assert model_leg.connected_with is None


@pytest.mark.asyncio
async def test_model_leg_close_ends_call():
    coordinator, call_leg, model_leg = make_coordinator()
    task = await start_active(coordinator)

    model_leg.push(LegClosed(leg=Leg.MODEL, reason="server went away", error=True))
    await asyncio.wait_for(task, timeout=1.0)

    assert coordinator.state == CallState.CLOSED
    assert call_leg.close_count == 1
    assert model_leg.close_count == 1


@pytest.mark.asyncio
async def test_pending_tool_abandoned_on_close(notifier):
    async def hang(to, body):
        await asyncio.sleep(5)

    notifier.send = AsyncMock(side_effect=hang)
    coordinator, call_leg, model_leg = make_coordinator(notifier=notifier, tool_timeout=5.0)
    task = await start_active(coordinator)

    model_leg.push(ToolCallRequest(name="sendSMS", call_id="call_1", arguments={"to": "+1555", "message": "hi"}))
    await wait_until(lambda: notifier.send.await_count == 1)
    await finish(task, call_leg)

    assert coordinator.state == CallState.CLOSED
    assert model_leg.outputs() == []


@pytest.mark.asyncio
async def test_registry_tracks_live_sessions():
    registry = SessionRegistry()
    coordinator, call_leg, model_leg = make_coordinator(registry=registry)
    task = await start_active(coordinator)

    assert registry.get_session(coordinator.session.session_id) is coordinator.session

    await finish(task, call_leg)
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_concurrent_sessions_are_isolated():
    registry = SessionRegistry()
    first, first_call, first_model = make_coordinator(registry=registry)
    second, second_call, second_model = make_coordinator(registry=registry)
    first_task = await start_active(first)
    second_task = await start_active(second)
    assert len(registry) == 2

    first_model.push(ToolCallRequest(name="bookSlot", call_id="call_a", arguments={
        "slotId": "wed-0900", "name": "Jane Doe", "phone": "+15551234567",
    }))
    second_model.push(ToolCallRequest(name="getSlots", call_id="call_b"))
    first_call.push(caller_audio("first"))
    second_call.push(caller_audio("second"))

    await wait_until(lambda: first_model.outputs() and second_model.outputs())
    await wait_until(lambda: len(first_model.outbound) == 2 and len(second_model.outbound) == 2)

    assert [item[1] for item in first_model.outputs()] == ["call_a"]
    assert [item[1] for item in second_model.outputs()] == ["call_b"]
    assert len(second_model.outputs()[0][2]["slots"]) == 3
    assert ("append", "first") in first_model.outbound
    assert ("append", "second") in second_model.outbound

    await finish(first_task, first_call)
    assert second.state == CallState.ACTIVE
    await finish(second_task, second_call)
    assert len(registry) == 0


class BrokenSocket:
    """Socket whose transport is already gone when the call is torn down."""

    def __init__(self):
        self.accept = AsyncMock()
        self.close = AsyncMock(side_effect=WebSocketDisconnect(1006))

    async def receive(self):
        await asyncio.sleep(5)

    async def send_text(self, text):
        raise WebSocketDisconnect(1006)


@pytest.mark.asyncio
async def test_dropped_call_socket_still_reaches_closed():
    registry = SessionRegistry()
    call_leg = TwilioCallLeg(BrokenSocket(), keepalive_interval=60)
    await call_leg.accept()
    model_leg = FakeModelLeg(negotiation=NegotiationResult.failure("unauthorized", status_code=401))
    dispatcher = ToolDispatcher(DEFAULT_REFERENCE_DATA, AsyncMock())
    coordinator = SessionCoordinator(call_leg, model_leg, dispatcher, registry=registry)

    await asyncio.wait_for(coordinator.run(), timeout=1.0)

    assert coordinator.state == CallState.CLOSED
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_failing_leg_close_still_reaches_closed():
    registry = SessionRegistry()
    coordinator, call_leg, model_leg = make_coordinator(registry=registry)
    call_leg.close = AsyncMock(side_effect=OSError("connection reset"))
    model_leg.close = AsyncMock(side_effect=RuntimeError("already closed"))
    task = await start_active(coordinator)

    await finish(task, call_leg)

    assert coordinator.state == CallState.CLOSED
    call_leg.close.assert_awaited_once()
    model_leg.close.assert_awaited_once()
    assert len(registry) == 0
