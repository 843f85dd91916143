"""
Negotiation payload for the model leg: audio formats, voice, turn detection,
system instructions and the tool schemas the model may call.
"""

from typing import List

from receptionist.config.constants import (
    AUDIO_FORMAT_G711_ULAW,
    TOOL_LIST_OPTIONS,
    TOOL_LOOKUP,
    TOOL_NOTIFY,
    TOOL_RESERVE,
)
from receptionist.config.prompts import SYSTEM_INSTRUCTIONS
from receptionist.config.settings import Settings
from receptionist.models.openai_schemas import (
    FunctionParameters,
    RealtimeSessionRequest,
    ToolDefinition,
    TurnDetection,
)

_STRING = {"type": "string"}

TOOL_DEFINITIONS: List[ToolDefinition] = [
    ToolDefinition(
        name=TOOL_LOOKUP,
        description="Answer basic FAQ",
        parameters=FunctionParameters(
            properties={"question": _STRING},
            required=["question"],
        ),
    ),
    ToolDefinition(
        name=TOOL_LIST_OPTIONS,
        description="List appointment slots",
        parameters=FunctionParameters(
            properties={"date": _STRING, "provider": _STRING, "window": _STRING},
        ),
    ),
    ToolDefinition(
        name=TOOL_RESERVE,
        description="Book a slot",
        parameters=FunctionParameters(
            properties={
                "slotId": _STRING,
                "name": _STRING,
                "phone": _STRING,
                "reason": _STRING,
            },
            required=["slotId", "name", "phone"],
        ),
    ),
    ToolDefinition(
        name=TOOL_NOTIFY,
        description="Send an SMS via Twilio",
        parameters=FunctionParameters(
            properties={"to": _STRING, "message": _STRING},
            required=["to", "message"],
        ),
    ),
]


def build_session_request(settings: Settings) -> RealtimeSessionRequest:
    return RealtimeSessionRequest(
        model=settings.realtime_model,
        voice=settings.voice,
        input_audio_format=AUDIO_FORMAT_G711_ULAW,
        output_audio_format=AUDIO_FORMAT_G711_ULAW,
        turn_detection=TurnDetection(threshold=settings.vad_threshold),
        instructions=SYSTEM_INSTRUCTIONS,
        tools=TOOL_DEFINITIONS,
    )
