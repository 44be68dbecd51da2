"""Twilio voice and SMS adapter."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode
from uuid import UUID

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client as TwilioClient

from guardian_checkin.config import is_public_url
from guardian_checkin.domain.scripts import RECORDING_MAX_SECONDS
from guardian_checkin.services.notifications import NotificationProvider, ProviderError

_logger = logging.getLogger(__name__)

_STATUS_EVENTS = ["initiated", "ringing", "answered", "completed"]
_RING_TIMEOUT_SECONDS = RECORDING_MAX_SECONDS


@dataclass
class TwilioNotificationProvider(NotificationProvider):
    """Places calls and sends texts through the Twilio REST API.

    The SDK is blocking, so every request runs in a worker thread.
    """

    client: TwilioClient
    from_number: str
    public_base_url: str

    @classmethod
    def create(
        cls, account_sid: str, auth_token: str, from_number: str, public_base_url: str
    ) -> "TwilioNotificationProvider":
        """Create a provider with its own Twilio REST client."""
        return cls(
            client=TwilioClient(account_sid, auth_token),
            from_number=from_number,
            public_base_url=public_base_url,
        )

    async def start_interaction(self, phone: str, session_id: UUID) -> str:
        """Dial the subject; Twilio fetches the voice script when answered."""
        if not is_public_url(self.public_base_url):
            _logger.warning(
                "PUBLIC_BASE_URL is not public; Twilio cannot fetch the voice script"
            )
        query = {"session_id": str(session_id)}
        call = await self._call(
            lambda: self.client.calls.create(
                to=phone,
                from_=self.from_number,
                url=self._webhook_url("voice", query),
                status_callback=self._webhook_url("call-status", query),
                status_callback_event=_STATUS_EVENTS,
                timeout=_RING_TIMEOUT_SECONDS,
            ),
            action="check-in call",
            destination=phone,
        )
        return str(call.sid)

    async def send_alert(self, phone: str, text: str) -> str:
        """Send an SMS."""
        message = await self._call(
            lambda: self.client.messages.create(
                body=text, from_=self.from_number, to=phone
            ),
            action="sms",
            destination=phone,
        )
        return str(message.sid)

    async def start_voice_alert(
        self, phone: str, session_id: UUID, subject_phone: str
    ) -> str:
        """Call an emergency contact with the script from the voice-alert webhook."""
        query = {"session_id": str(session_id), "subject_phone": subject_phone}
        call = await self._call(
            lambda: self.client.calls.create(
                to=phone,
                from_=self.from_number,
                url=self._webhook_url("voice-alert", query),
                timeout=_RING_TIMEOUT_SECONDS,
            ),
            action="voice alert",
            destination=phone,
        )
        return str(call.sid)

    def _webhook_url(self, path: str, query: dict[str, str]) -> str:
        base = self.public_base_url.rstrip("/")
        return f"{base}/api/webhooks/{path}?{urlencode(query)}"

    async def _call(
        self, func: Callable[[], Any], *, action: str, destination: str
    ) -> Any:
        try:
            return await asyncio.to_thread(func)
        except TwilioRestException as exc:
            _logger.error(
                "Twilio %s to %s failed: code=%s status=%s message=%s",
                action,
                destination,
                exc.code,
                exc.status,
                exc.msg,
            )
            message = exc.msg or str(exc)
            if "verified" in message.lower():
                message = (
                    "Twilio trial account: the destination number must be verified. "
                    + message
                )
            raise ProviderError(message, status_code=exc.code or exc.status) from exc
