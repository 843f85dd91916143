"""
Models module for data structures and state management.

Key components:
- twilio_schemas: Pydantic models for Twilio Media Streams frames.
- openai_schemas: Pydantic models for Realtime session negotiation and events.
- events: internal event types passed between the legs and the coordinator.
- session: CallState, CallSession and the SessionRegistry.
- reference: immutable FAQ table and appointment slots.
"""

from receptionist.models.events import (
    AudioFrame,
    CallStarted,
    Direction,
    EstablishFailed,
    Leg,
    LegClosed,
    ModelError,
    ModelLegReady,
    NegotiationResult,
    ToolCallRequest,
    ToolCallResult,
    UtteranceStopped,
)
from receptionist.models.reference import (
    DEFAULT_REFERENCE_DATA,
    AppointmentSlot,
    KnowledgeEntry,
    ReferenceData,
    load_reference_data,
)
from receptionist.models.session import CallSession, CallState, SessionRegistry
