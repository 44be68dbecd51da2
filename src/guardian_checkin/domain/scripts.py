"""Declarative voice scripts returned to the telephony provider."""

from dataclasses import dataclass
from uuid import UUID

CHECKIN_GREETING = "Hey, just checking in. Everything good?"
RECORDING_MAX_SECONDS = 30


@dataclass(frozen=True)
class InteractionScript:
    """Speak a greeting, record the answer, transcribe it and call back."""

    session_id: UUID
    greeting: str = CHECKIN_GREETING
    max_length_seconds: int = RECORDING_MAX_SECONDS
    finish_on_key: str = "#"
    transcribe: bool = True
    play_beep: bool = True


@dataclass(frozen=True)
class VoiceAlertScript:
    """Message read to the primary contact during a Level 2 alert."""

    spoken_phone: str
    location: str | None = None
    pause_seconds: int = 2

    @property
    def opening(self) -> str:
        location_text = f"Their location is {self.location}. " if self.location else ""
        return (
            "This is Guardian AI. We have received a distress signal from "
            f"{self.spoken_phone}. Please check on them immediately. "
            f"{location_text}This is an automated emergency alert."
        )

    @property
    def closing(self) -> str:
        return f"Again, please check on {self.spoken_phone} immediately. Goodbye."


def spell_digits(phone: str) -> str:
    """Return the digits of a phone number separated by spaces."""
    return " ".join(char for char in phone if char.isdigit())
