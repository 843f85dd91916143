"""
Routes model tool calls to the practice's FAQ, scheduling and SMS operations.

A dispatcher is created per call around the shared, read-only reference data.
``dispatch`` always produces exactly one ToolCallResult for a request: handler
errors, invalid arguments, unknown tools and timeouts all become error-typed
results instead of escaping to the caller.
"""

import asyncio
import datetime
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ValidationError

from receptionist.config.constants import (
    DEFAULT_TOOL_TIMEOUT,
    LOGGER_NAME,
    TOOL_LIST_OPTIONS,
    TOOL_LOOKUP,
    TOOL_NOTIFY,
    TOOL_RESERVE,
)
from receptionist.models.events import ToolCallRequest, ToolCallResult
from receptionist.models.reference import AppointmentSlot, ReferenceData

logger = logging.getLogger(LOGGER_NAME)

ERROR_NOT_FOUND = "not-found"
ERROR_UNKNOWN_TOOL = "unknown-tool"
ERROR_INVALID_ARGUMENTS = "invalid-arguments"
ERROR_TOOL_FAILED = "tool-failed"
ERROR_TIMEOUT = "timeout"

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class LookupArguments(BaseModel):
    question: str


class ListOptionsArguments(BaseModel):
    date: Optional[str] = None
    provider: Optional[str] = None
    window: Optional[str] = None


class ReserveArguments(BaseModel):
    slotId: str
    name: str
    phone: str
    reason: Optional[str] = None


class NotifyArguments(BaseModel):
    to: str
    message: str


def error_output(code: str, message: str) -> Dict[str, Any]:
    return {"ok": False, "error": code, "message": message}


def _weekday_key(date: str) -> Optional[str]:
    """Map '2025-03-04' or 'Tuesday' to the three-letter slot prefix ('tue')."""
    text = date.strip().lower()
    try:
        return datetime.date.fromisoformat(text).strftime("%a").lower()
    except ValueError:
        pass
    if len(text) >= 3 and text[:3] in {"mon", "tue", "wed", "thu", "fri", "sat", "sun"}:
        return text[:3]
    return None


def slot_matches(slot: AppointmentSlot, date: Optional[str] = None,
                 provider: Optional[str] = None, window: Optional[str] = None) -> bool:
    """Filter predicate used when slot filtering is enabled."""
    label = slot.label.lower()
    if provider and provider.strip().lower() not in label:
        return False
    if date:
        weekday = _weekday_key(date)
        if weekday and not slot.id.lower().startswith(weekday):
            return False
    if window:
        wanted = window.strip().lower()
        if wanted == "morning" and " am" not in label:
            return False
        if wanted in ("afternoon", "evening") and " pm" not in label:
            return False
    return True


class ToolDispatcher:
    """
    Closed set of tools the model may call.

    Attributes:
        reference: Shared, immutable FAQ and slot data
        notifier: Object with ``async send(to, body) -> str``
        tool_timeout: Upper bound in seconds for any single tool call
        apply_slot_filters: When False, getSlots ignores its filters and always
            returns the full list
    """

    def __init__(self, reference: ReferenceData, notifier,
                 tool_timeout: float = DEFAULT_TOOL_TIMEOUT,
                 apply_slot_filters: bool = False):
        self.reference = reference
        self.notifier = notifier
        self.tool_timeout = tool_timeout
        self.apply_slot_filters = apply_slot_filters

        self.handlers: Dict[str, ToolHandler] = {
            TOOL_LOOKUP: self._handle_lookup,
            TOOL_LIST_OPTIONS: self._handle_list_options,
            TOOL_RESERVE: self._handle_reserve,
            TOOL_NOTIFY: self._handle_notify,
        }

    def lookup(self, question: str) -> Dict[str, Any]:
        for entry in self.reference.knowledge:
            if entry.matches(question):
                return {"answer": entry.answer}
        return {"answer": self.reference.deflection}

    def list_options(self, date: Optional[str] = None, provider: Optional[str] = None,
                     window: Optional[str] = None) -> Dict[str, Any]:
        slots = self.reference.slots
        if self.apply_slot_filters:
            slots = [s for s in slots if slot_matches(s, date, provider, window)]
        return {"slots": [slot.model_dump() for slot in slots]}

    async def reserve(self, slotId: str, name: str, phone: str,
                      reason: Optional[str] = None) -> Dict[str, Any]:
        """
        Book a slot and text a confirmation.

        The slot list is not modified, so the same slot can be booked again.
        A failed confirmation SMS is logged and does not fail the booking.
        """
        slot = self.reference.find_slot(slotId)
        if slot is None:
            logger.info(f"Booking rejected, unknown slot: {slotId}")
            return error_output(ERROR_NOT_FOUND, "Slot not found")

        logger.info(f"Booking {slot.id} for {name}" + (f" ({reason})" if reason else ""))

        if phone:
            address = self.reference.answer_for("address") or ""
            body = f"Booked: {slot.label}. Address: {address}".strip()
            try:
                await asyncio.wait_for(
                    self.notifier.send(phone, body), timeout=self.tool_timeout / 2
                )
            except Exception as e:
                logger.warning(f"Booking confirmation SMS to {phone} failed: {e}")

        return {"ok": True, "booked": slot.model_dump()}

    async def notify(self, to: str, message: str) -> Dict[str, Any]:
        sid = await self.notifier.send(to, message)
        return {"ok": True, "sid": sid}

    async def _handle_lookup(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        args = LookupArguments(**arguments)
        return self.lookup(args.question)

    async def _handle_list_options(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        args = ListOptionsArguments(**arguments)
        return self.list_options(args.date, args.provider, args.window)

    async def _handle_reserve(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        args = ReserveArguments(**arguments)
        return await self.reserve(args.slotId, args.name, args.phone, args.reason)

    async def _handle_notify(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        args = NotifyArguments(**arguments)
        return await self.notify(args.to, args.message)

    async def dispatch(self, request: ToolCallRequest) -> ToolCallResult:
        """
        Run one tool call and correlate its output.

        Args:
            request: The model's tool call

        Returns:
            ToolCallResult: Always exactly one, carrying ``request.call_id``
        """
        handler = self.handlers.get(request.name)

        if handler is None:
            logger.warning(f"Model called unknown tool: {request.name}")
            output = error_output(ERROR_UNKNOWN_TOOL, f"Unknown tool: {request.name}")
        elif request.arguments_error:
            logger.warning(f"Unparseable arguments for {request.name}: {request.arguments_error}")
            output = error_output(ERROR_INVALID_ARGUMENTS, request.arguments_error)
        else:
            try:
                output = await asyncio.wait_for(handler(request.arguments), timeout=self.tool_timeout)
            except ValidationError as e:
                logger.warning(f"Invalid arguments for {request.name}: {e}")
                output = error_output(ERROR_INVALID_ARGUMENTS, str(e))
            except asyncio.TimeoutError:
                logger.error(f"Tool {request.name} timed out after {self.tool_timeout}s")
                output = error_output(ERROR_TIMEOUT, f"{request.name} timed out")
            except Exception as e:
                logger.error(f"Tool {request.name} failed: {e}", exc_info=True)
                output = error_output(ERROR_TOOL_FAILED, str(e))

        logger.info(f"Tool {request.name} ({request.call_id}) -> {output}")
        return ToolCallResult(call_id=request.call_id, output=output)
