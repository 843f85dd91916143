"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for wire names, endpoints and timing values so both
legs of a call agree on them.
"""

# Logger name used throughout the application
LOGGER_NAME = "receptionist"

# OpenAI Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview"
DEFAULT_VOICE = "alloy"
DEFAULT_VAD_THRESHOLD = 0.7
REALTIME_SESSIONS_URL = "https://api.openai.com/v1/realtime/sessions"
REALTIME_WS_URL = "wss://api.openai.com/v1/realtime"

# Both legs carry G.711 u-law at 8kHz, so audio is relayed without transcoding
AUDIO_FORMAT_G711_ULAW = "g711_ulaw"

# Timing (seconds)
KEEPALIVE_INTERVAL = 15
NEGOTIATION_TIMEOUT = 15
CONNECTION_TIMEOUT = 30
DEFAULT_TOOL_TIMEOUT = 10

# Caller leg
CALL_LEG_PATH = "/twilio-media"
CALL_EVENT_START = "start"
CALL_EVENT_MEDIA = "media"
CALL_EVENT_STOP = "stop"
KEEPALIVE_MARK_NAME = "keepalive"

# Model leg, outbound
MODEL_EVENT_AUDIO_APPEND = "input_audio_buffer.append"
MODEL_EVENT_AUDIO_COMMIT = "input_audio_buffer.commit"
MODEL_EVENT_RESPONSE_CREATE = "response.create"
MODEL_EVENT_FUNCTION_OUTPUT = "response.function_call_output"

# Model leg, inbound
MODEL_EVENT_AUDIO_DELTA_ALIASES = ("audio.delta", "response.audio.delta")
MODEL_EVENT_FUNCTION_CALL_ALIASES = (
    "response.function_call",
    "response.function_call_arguments.done",
)
MODEL_EVENT_ERROR = "error"

# Tool wire names declared to the model
TOOL_LOOKUP = "getFAQ"
TOOL_LIST_OPTIONS = "getSlots"
TOOL_RESERVE = "bookSlot"
TOOL_NOTIFY = "sendSMS"
