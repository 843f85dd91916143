"""
FastAPI server for the dental receptionist voice bridge.

This module wires the process together: it loads settings and reference data
once, exposes the Twilio webhooks that start a call, and runs one
SessionCoordinator per accepted media stream on the WebSocket endpoint.
Media streams on any other path are refused before the handshake completes.
"""

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import Response

from receptionist.bot.call_leg import TwilioCallLeg
from receptionist.bot.coordinator import SessionCoordinator
from receptionist.bot.realtime_api import RealtimeModelLeg
from receptionist.bot.session_config import build_session_request
from receptionist.config.constants import CALL_LEG_PATH
from receptionist.config.logging_config import configure_logging
from receptionist.config.settings import load_settings
from receptionist.models.reference import load_reference_data
from receptionist.models.session import SessionRegistry
from receptionist.services.notifier import SmsNotifier
from receptionist.services.tool_dispatcher import ToolDispatcher
from receptionist.services.twiml import connect_stream_twiml, front_desk_twiml

settings = load_settings()
logger = configure_logging(settings.log_level)

# Loaded once; every call's dispatcher shares these read-only objects
reference_data = load_reference_data(settings.reference_data_path)
notifier = SmsNotifier.from_settings(settings)
session_request = build_session_request(settings)
session_registry = SessionRegistry()

app = FastAPI(
    title="Receptionist Bridge",
    description="Bridge between Twilio Media Streams and the OpenAI Realtime API",
    version="1.0.0",
)


def create_coordinator(call_leg: TwilioCallLeg) -> SessionCoordinator:
    """Build the per-call model leg and dispatcher around an accepted call leg."""
    model_leg = RealtimeModelLeg(
        settings.openai_api_key,
        session_request,
        keepalive_interval=settings.keepalive_interval,
    )
    dispatcher = ToolDispatcher(
        reference_data,
        notifier,
        tool_timeout=settings.tool_timeout,
        apply_slot_filters=settings.apply_slot_filters,
    )
    return SessionCoordinator(call_leg, model_leg, dispatcher, registry=session_registry)


@app.websocket(CALL_LEG_PATH)
async def twilio_media(websocket: WebSocket):
    """WebSocket endpoint for Twilio Media Streams; one coordinator per call."""
    call_leg = TwilioCallLeg(websocket, keepalive_interval=settings.keepalive_interval)
    await call_leg.accept()

    if not settings.openai_api_key:
        logger.error("OPENAI_API_KEY not set, closing media stream")
        await call_leg.close()
        return

    coordinator = create_coordinator(call_leg)
    await coordinator.run()


@app.post("/voice")
async def voice(request: Request):
    """
    Twilio voice webhook.

    Returns TwiML that opens the media stream, or dials the front desk when the
    bridge cannot take the call.
    """
    if not settings.openai_api_key:
        logger.error("Missing OPENAI_API_KEY, dialing front desk fallback")
        return Response(content=front_desk_twiml(settings.front_desk_number), media_type="text/xml")

    host = (
        settings.public_host
        or request.headers.get("x-forwarded-host")
        or request.headers.get("host", "")
    )
    logger.info(f"VOICE webhook hit. host = {host}")
    return Response(content=connect_stream_twiml(host), media_type="text/xml")


@app.post("/dtmf")
async def dtmf():
    """Send the caller straight to the front desk."""
    return Response(
        content=front_desk_twiml(settings.front_desk_number, announce=False),
        media_type="text/xml",
    )


@app.post("/stream-status")
async def stream_status(request: Request):
    """Log Twilio stream status callbacks."""
    form = await request.form()
    logger.info(f"STREAM STATUS: {dict(form)}")
    return Response(status_code=200)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status information including the number of live calls
    """
    return {
        "status": "healthy",
        "openai_api_key_configured": bool(settings.openai_api_key),
        "sms_configured": notifier.configured,
        "active_sessions": len(session_registry),
    }


@app.get("/")
async def root():
    """Basic information about the service."""
    return {
        "name": "Receptionist Bridge",
        "description": "Dental receptionist over Twilio Media Streams and OpenAI Realtime",
        "version": "1.0.0",
        "endpoints": {
            CALL_LEG_PATH: "WebSocket endpoint for Twilio Media Streams",
            "/voice": "Twilio voice webhook (TwiML)",
            "/dtmf": "Front desk transfer (TwiML)",
            "/stream-status": "Twilio stream status callback",
            "/health": "Health check endpoint",
        },
    }
