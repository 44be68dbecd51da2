"""Tests for distress classification."""

import asyncio

from guardian_checkin.services.classifier import DistressClassifier
from tests.conftest import FakeDistressClient


def test_empty_text_skips_model() -> None:
    client = FakeDistressClient()
    classifier = DistressClassifier(client=client, model="gpt-4o-mini")

    result = asyncio.run(classifier.classify("   "))

    assert result.probability == 0.0
    assert result.rationale == "Empty response"
    assert not result.is_distressed
    assert client.calls == []


def test_threshold_is_inclusive() -> None:
    client = FakeDistressClient(payload={"score": 0.7, "reason": "shaky voice"})
    classifier = DistressClassifier(client=client, model="gpt-4o-mini")

    result = asyncio.run(classifier.classify("uh, I guess"))

    assert result.is_distressed
    assert result.rationale == "shaky voice"


def test_below_threshold_is_not_distressed() -> None:
    client = FakeDistressClient(payload={"score": "0.69", "reason": ""})
    classifier = DistressClassifier(client=client, model="gpt-4o-mini")

    result = asyncio.run(classifier.classify("I am okay"))

    assert result.probability == 0.69
    assert result.rationale == "Unknown"
    assert not result.is_distressed


def test_model_failure_fails_open_by_default() -> None:
    client = FakeDistressClient(error=RuntimeError("timeout"))
    classifier = DistressClassifier(client=client, model="gpt-4o-mini")

    result = asyncio.run(classifier.classify("hmm"))

    assert not result.is_distressed
    assert not result.available
    assert result.probability == 0.0


def test_model_failure_fails_closed_when_configured() -> None:
    client = FakeDistressClient(error=RuntimeError("timeout"))
    classifier = DistressClassifier(client=client, model="gpt-4o-mini", fail_open=False)

    result = asyncio.run(classifier.classify("hmm"))

    assert result.is_distressed
    assert result.probability == 1.0


def test_malformed_output_is_unavailable() -> None:
    client = FakeDistressClient(payload={"score": 4.2, "reason": "out of range"})
    classifier = DistressClassifier(client=client, model="gpt-4o-mini")

    result = asyncio.run(classifier.classify("hmm"))

    assert not result.available
    assert not result.is_distressed
    assert result.rationale.startswith("Malformed model output")
