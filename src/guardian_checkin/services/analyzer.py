"""Keyword analysis of check-in transcripts."""

import re

from guardian_checkin.domain.classification import ResponseOutcome

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    if not text or not isinstance(text, str):
        return ""
    lowered = _NON_WORD.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", lowered).strip()


def contains_phrase(text: str | None, phrase: str | None) -> bool:
    """Return whether a trigger phrase occurs in the text.

    Both sides are normalized first. A whole-word match and a plain substring
    match are both accepted; the substring form keeps short, noisy
    transcripts ("pineapples", "bananahelp") matching.
    """
    normalized_phrase = normalize_text(phrase)
    if not normalized_phrase:
        return False
    normalized_text = normalize_text(text)
    if not normalized_text:
        return False
    whole_word = re.compile(rf"\b{re.escape(normalized_phrase)}\b")
    if whole_word.search(normalized_text):
        return True
    return normalized_phrase in normalized_text


def analyze_response(
    transcript: str | None, safe_word: str, escalation_word: str
) -> ResponseOutcome:
    """Classify a transcript by its trigger phrases.

    The escalation phrase is checked first, so a transcript holding both
    phrases escalates.
    """
    if contains_phrase(transcript, escalation_word):
        return ResponseOutcome.ESCALATE
    if contains_phrase(transcript, safe_word):
        return ResponseOutcome.SAFE
    return ResponseOutcome.UNKNOWN
