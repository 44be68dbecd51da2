"""Application configuration."""

import os
from urllib.parse import urlsplit

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")
_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    twilio_account_sid: str
    twilio_auth_token: str
    twilio_phone_number: str
    twilio_validate_signatures: bool = True
    public_base_url: str = "http://localhost:8000"
    openai_api_key: str
    openai_model: str = "gpt-4o-mini"
    openai_transcription_model: str = "whisper-1"
    distress_threshold: float = 0.7
    classifier_fail_open: bool = True
    scheduler_enabled: bool = True
    scheduler_interval_seconds: float = 60.0
    max_initiation_attempts: int | None = None
    initiation_backoff_seconds: float = 0.0
    active_timeout_seconds: float | None = None
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def is_public_url(url: str | None) -> bool:
    """Return whether a base URL can be reached by the telephony provider."""
    if url is None:
        return False
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return False
    return parts.hostname not in _LOCAL_HOSTS
