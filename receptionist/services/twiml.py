"""
TwiML responses for the call-control webhooks.

These sit outside the bridge itself: they only tell Twilio where to open the
media stream, or where to dial when the bridge cannot take the call.
"""

from twilio.twiml.voice_response import Connect, VoiceResponse

from receptionist.config.constants import CALL_LEG_PATH
from receptionist.config.prompts import CONNECTING_MESSAGE, FALLBACK_MESSAGE


def stream_url(host: str) -> str:
    """Build the wss:// URL of the media stream endpoint for a bare or schemed host."""
    host = host.strip().rstrip("/")
    for prefix in ("https://", "http://", "wss://", "ws://"):
        if host.startswith(prefix):
            host = host[len(prefix):]
            break
    return f"wss://{host}{CALL_LEG_PATH}"


def connect_stream_twiml(host: str, stream_name: str = "receptionist") -> str:
    """Greet the caller, then hand the call's audio to the media stream."""
    response = VoiceResponse()
    response.say(CONNECTING_MESSAGE)
    connect = Connect()
    connect.stream(url=stream_url(host), name=stream_name)
    response.append(connect)
    return str(response)


def front_desk_twiml(front_desk_number: str, announce: bool = True) -> str:
    """Dial the front desk; used when the bridge cannot serve the call."""
    response = VoiceResponse()
    if announce:
        response.say(FALLBACK_MESSAGE)
    if front_desk_number:
        response.dial(front_desk_number)
    else:
        response.hangup()
    return str(response)
