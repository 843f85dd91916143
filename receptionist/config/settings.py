"""
Environment-driven settings for the receptionist bridge.

Values come from the process environment, optionally seeded from a ``.env``
file in the working directory. ``load_settings()`` is called once at startup
and the resulting object is passed down explicitly; nothing below the
FastAPI app reads the environment on its own.
"""

import os
from pathlib import Path
from typing import List, Optional

import dotenv
from pydantic import BaseModel, Field

from receptionist.config.constants import (
    DEFAULT_REALTIME_MODEL,
    DEFAULT_TOOL_TIMEOUT,
    DEFAULT_VAD_THRESHOLD,
    DEFAULT_VOICE,
    KEEPALIVE_INTERVAL,
)

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Process configuration."""

    openai_api_key: str = ""
    realtime_model: str = DEFAULT_REALTIME_MODEL
    voice: str = DEFAULT_VOICE
    vad_threshold: float = Field(DEFAULT_VAD_THRESHOLD, ge=0.0, le=1.0)

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_number: str = ""
    front_desk_number: str = ""
    public_host: str = ""

    keepalive_interval: float = Field(KEEPALIVE_INTERVAL, gt=0)
    tool_timeout: float = Field(DEFAULT_TOOL_TIMEOUT, gt=0)
    apply_slot_filters: bool = False
    reference_data_path: Optional[str] = None

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @property
    def sms_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_number)

    def validate_startup(self) -> List[str]:
        """Return warnings for settings that degrade the service without stopping it."""
        warnings = []
        if not self.openai_api_key:
            warnings.append(
                "OPENAI_API_KEY not set. Calls will be routed to the front desk."
            )
        if not self.sms_configured:
            warnings.append(
                "Twilio SMS credentials incomplete. Booking confirmations will not be sent."
            )
        if not self.front_desk_number:
            warnings.append("FRONT_DESK_NUMBER not set. Human fallback has nowhere to dial.")
        return warnings


def load_settings(env_file: str = ".env") -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional dotenv file loaded first; existing variables win

    Returns:
        Settings: The parsed configuration
    """
    env_path = Path(env_file)
    if env_path.exists():
        dotenv.load_dotenv(env_path)

    def env(name: str, default: str = "") -> str:
        return os.getenv(name, default).strip()

    return Settings(
        openai_api_key=env("OPENAI_API_KEY"),
        realtime_model=env("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
        voice=env("OPENAI_VOICE", DEFAULT_VOICE),
        vad_threshold=float(env("VAD_THRESHOLD", str(DEFAULT_VAD_THRESHOLD))),
        twilio_account_sid=env("TWILIO_ACCOUNT_SID"),
        twilio_auth_token=env("TWILIO_AUTH_TOKEN"),
        twilio_number=env("TWILIO_NUMBER"),
        front_desk_number=env("FRONT_DESK_NUMBER"),
        public_host=env("PUBLIC_HOST"),
        keepalive_interval=float(env("KEEPALIVE_INTERVAL", str(KEEPALIVE_INTERVAL))),
        tool_timeout=float(env("TOOL_TIMEOUT_SECONDS", str(DEFAULT_TOOL_TIMEOUT))),
        apply_slot_filters=env("APPLY_SLOT_FILTERS").lower() in _TRUTHY,
        reference_data_path=env("REFERENCE_DATA_PATH") or None,
        host=env("HOST", "0.0.0.0"),
        port=int(env("PORT", "8000")),
        log_level=env("LOG_LEVEL", "INFO").upper(),
    )
