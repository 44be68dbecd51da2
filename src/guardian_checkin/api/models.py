"""Pydantic models for API requests and responses."""

import re
from datetime import UTC, datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from guardian_checkin.domain.sessions import EmergencyContact, SessionDraft

_NON_DIGIT = re.compile(r"\D")
_MIN_DIGITS = 8
_MAX_DIGITS = 15


def normalize_phone(phone: str) -> str:
    """Normalize a phone number to E.164, assuming +1 for 10-digit numbers."""
    digits = _NON_DIGIT.sub("", phone)
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


def _validated_phone(value: str) -> str:
    normalized = normalize_phone(value)
    digits = len(normalized) - 1
    if digits < _MIN_DIGITS or digits > _MAX_DIGITS:
        raise ValueError(f"Invalid phone number: {value}")
    return normalized


class ContactIn(BaseModel):
    """Emergency contact in an activation request."""

    phone: str
    is_primary: bool = False

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        return _validated_phone(value)


class ActivateRequest(BaseModel):
    """Request body for scheduling a check-in."""

    user_phone: str
    safe_word: str = Field(min_length=1, max_length=100)
    escalation_word: str = Field(min_length=1, max_length=100)
    scheduled_at: datetime
    location: str | None = Field(default=None, max_length=500)
    contacts: list[ContactIn] = Field(min_length=1)

    @field_validator("user_phone")
    @classmethod
    def _check_user_phone(cls, value: str) -> str:
        return _validated_phone(value)

    @field_validator("safe_word", "escalation_word")
    @classmethod
    def _strip_word(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Trigger words must not be blank")
        return cleaned

    @field_validator("scheduled_at")
    @classmethod
    def _check_future(cls, value: datetime) -> datetime:
        aware = value if value.tzinfo else value.replace(tzinfo=UTC)
        if aware <= datetime.now(tz=UTC):
            raise ValueError("scheduled_at must be a future date/time")
        return aware.astimezone(UTC)

    def to_draft(self) -> SessionDraft:
        """Convert to a domain draft; contacts keep their request order."""
        location = self.location.strip() if self.location else None
        return SessionDraft(
            user_phone=self.user_phone,
            safe_word=self.safe_word,
            escalation_word=self.escalation_word,
            scheduled_at=self.scheduled_at,
            location=location or None,
            contacts=[
                EmergencyContact(
                    phone_number=contact.phone,
                    is_primary=contact.is_primary,
                    display_order=index,
                )
                for index, contact in enumerate(self.contacts)
            ],
        )


class ActivateResponse(BaseModel):
    """Response body for a scheduled check-in."""

    session_id: UUID
    scheduled_at: datetime
    message: str


class LocationRequest(BaseModel):
    """Request body for a late location submission."""

    session_id: UUID
    location: str = Field(min_length=1, max_length=500)
