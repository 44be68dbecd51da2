"""Logging configuration helpers."""

import logging

# Logs every REST request with its form body, which holds phone numbers and
# alert text.
_TWILIO_HTTP_LOGGER = "twilio.http_client"


def configure_logging(level: str = "INFO") -> None:
    """Configure the package logger once and keep SDK request logs quiet."""
    logger = logging.getLogger("guardian_checkin")
    logger.setLevel(level.upper())
    logging.getLogger(_TWILIO_HTTP_LOGGER).setLevel(logging.WARNING)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
