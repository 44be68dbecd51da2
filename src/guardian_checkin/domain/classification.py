"""Models for response analysis and distress classification results."""

from enum import Enum

from pydantic import BaseModel, Field


class ResponseOutcome(str, Enum):
    """Result of keyword analysis over a transcript."""

    ESCALATE = "escalate"
    SAFE = "safe"
    UNKNOWN = "unknown"


class DistressScore(BaseModel):
    """Structured output expected from the distress model."""

    score: float = Field(ge=0.0, le=1.0)
    reason: str = "Unknown"


class DistressAssessment(BaseModel):
    """Classifier verdict for a free-text response."""

    probability: float = Field(ge=0.0, le=1.0)
    rationale: str
    is_distressed: bool
    available: bool = True
