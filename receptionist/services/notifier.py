"""
Outbound SMS through Twilio's REST API.

The Twilio helper library is synchronous, so each send runs in a worker thread
to keep the event loop free for audio relay.
"""

import asyncio
import logging
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from receptionist.config.constants import LOGGER_NAME
from receptionist.config.settings import Settings

logger = logging.getLogger(LOGGER_NAME)


class NotificationError(Exception):
    """The SMS could not be handed to the transport."""


class SmsNotifier:
    """Sends text messages from the practice's Twilio number."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str,
                 client: Optional[Client] = None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmsNotifier":
        return cls(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_number,
        )

    @property
    def configured(self) -> bool:
        if self._client is not None:
            return bool(self.from_number)
        return bool(self.account_sid and self.auth_token and self.from_number)

    def _get_client(self) -> Client:
        # Lazily created so a process without credentials still starts
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    async def send(self, to: str, body: str) -> str:
        """
        Send an SMS.

        Args:
            to: Destination phone number (E.164)
            body: Message text

        Returns:
            str: The Twilio message SID

        Raises:
            NotificationError: If SMS is not configured or Twilio rejects the message
        """
        if not self.configured:
            raise NotificationError("Twilio SMS is not configured")

        client = self._get_client()
        try:
            message = await asyncio.to_thread(
                client.messages.create,
                to=to,
                from_=self.from_number,
                body=body,
            )
        except TwilioException as e:
            raise NotificationError(f"Twilio rejected SMS to {to}: {e}") from e

        logger.info(f"SMS sent to {to}: sid={message.sid}")
        return message.sid
