"""Outbound notification interface and alert message templates."""

from typing import Protocol
from uuid import UUID


class ProviderError(RuntimeError):
    """Raised when the provider cannot place a call or deliver a message."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotificationProvider(Protocol):
    """Interface for voice and text delivery."""

    async def start_interaction(self, phone: str, session_id: UUID) -> str:
        """Place the check-in call and return the provider interaction id."""

    async def send_alert(self, phone: str, text: str) -> str:
        """Send a one-way text message and return the provider message id."""

    async def start_voice_alert(
        self, phone: str, session_id: UUID, subject_phone: str
    ) -> str:
        """Call an emergency contact with the voice alert script."""


def location_request_message(location_url: str) -> str:
    """Text sent to the subject asking them to share where they are."""
    return (
        "GUARDIAN AI has triggered an emergency alert for you.\n\n"
        "Your emergency contacts have been notified.\n\n"
        f"Reply with your location or submit it here: {location_url}\n\n"
        "Stay safe."
    )


def distress_alert_message(user_phone: str, location: str | None) -> str:
    """Level 1 alert sent to every emergency contact."""
    location_text = f"\n\nLocation: {location}" if location else ""
    return (
        "GUARDIAN AI DISTRESS ALERT\n\n"
        f"We received an escalation signal from {user_phone}.\n\n"
        f"Please check on them immediately.{location_text}\n\n"
        "This is an automated alert from Guardian AI."
    )


def location_update_message(user_phone: str, location: str) -> str:
    """Follow-up alert carrying a location submitted after escalation."""
    return (
        "GUARDIAN AI - LOCATION UPDATE\n\n"
        f"User {user_phone} has provided their location.\n\n"
        f"Location: {location}\n\n"
        "Please check on them immediately.\n\n"
        "This is an automated alert from Guardian AI."
    )
