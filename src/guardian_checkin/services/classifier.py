"""Distress classification for inconclusive check-in responses."""

import logging
from dataclasses import dataclass
from typing import Protocol

from guardian_checkin.domain.classification import DistressAssessment, DistressScore

DISTRESS_THRESHOLD = 0.7

DISTRESS_PROMPT = """You are a safety classifier. Given a short spoken response \
from someone during a check-in call, determine if they sound distressed, in \
danger, or need help.

Respond with ONLY a JSON object in this exact format:
{"score": 0.0-1.0, "reason": "brief explanation"}

- score: 0.0 = clearly fine, 1.0 = clearly distressed/in danger
- Consider: tone indicators, urgency, fear, confusion, coded language, hesitation
- "I'm fine" with normal tone = low score
- Crying, screaming, "help me" = high score
- Mumbled/unclear = medium score (err on side of caution)"""

_logger = logging.getLogger(__name__)


class DistressClient(Protocol):
    """Interface for the model that scores a transcript."""

    async def score(self, *, model: str, prompt: str, text: str) -> dict[str, object]:
        """Return a raw ``{"score": float, "reason": str}`` payload."""


@dataclass
class DistressClassifier:
    """Scores free text and applies the escalation threshold.

    Never raises. When the model call fails the verdict depends on
    ``fail_open``: "not distressed" (probability 0) when true, "distressed"
    (probability 1) otherwise.
    """

    client: DistressClient
    model: str
    threshold: float = DISTRESS_THRESHOLD
    fail_open: bool = True

    async def classify(self, text: str | None) -> DistressAssessment:
        """Return the distress verdict for a transcript."""
        if not text or not text.strip():
            return DistressAssessment(
                probability=0.0, rationale="Empty response", is_distressed=False
            )
        try:
            raw = await self.client.score(
                model=self.model, prompt=DISTRESS_PROMPT, text=text
            )
            parsed = DistressScore.model_validate(_coerce_score(raw))
        except (ValueError, TypeError) as exc:
            _logger.warning("Distress classifier returned malformed output: %s", exc)
            return self._unavailable(f"Malformed model output: {exc}")
        except Exception as exc:
            _logger.exception("Distress classifier call failed")
            return self._unavailable(f"API error: {exc}")
        return DistressAssessment(
            probability=parsed.score,
            rationale=parsed.reason,
            is_distressed=parsed.score >= self.threshold,
        )

    def _unavailable(self, rationale: str) -> DistressAssessment:
        probability = 0.0 if self.fail_open else 1.0
        return DistressAssessment(
            probability=probability,
            rationale=rationale,
            is_distressed=not self.fail_open,
            available=False,
        )


def _coerce_score(raw: dict[str, object]) -> dict[str, object]:
    """Accept numeric strings for the score the way the model sometimes sends them."""
    if not isinstance(raw, dict):
        raise TypeError("Model output is not a JSON object")
    coerced = dict(raw)
    score = coerced.get("score")
    if isinstance(score, str):
        coerced["score"] = float(score)
    if not coerced.get("reason"):
        coerced["reason"] = "Unknown"
    return coerced
