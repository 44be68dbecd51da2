"""Tests for logging configuration."""

import logging

from guardian_checkin.app_logging import configure_logging


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("guardian_checkin")
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging()
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1


def test_configure_logging_sets_levels() -> None:
    configure_logging("debug")

    assert logging.getLogger("guardian_checkin").level == logging.DEBUG
    assert logging.getLogger("twilio.http_client").level == logging.WARNING

    configure_logging()
