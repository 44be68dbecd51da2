"""Recording download and Whisper transcription."""

import logging
from dataclasses import dataclass

import httpx
from openai import AsyncOpenAI

from guardian_checkin.services.controller import Transcriber

_logger = logging.getLogger(__name__)


@dataclass
class WhisperTranscriber(Transcriber):
    """Downloads a provider recording and transcribes it with OpenAI."""

    openai_client: AsyncOpenAI
    http_client: httpx.AsyncClient
    account_sid: str
    auth_token: str
    model: str = "whisper-1"
    language: str = "en"

    @classmethod
    def create(
        cls, api_key: str, account_sid: str, auth_token: str, model: str = "whisper-1"
    ) -> "WhisperTranscriber":
        """Create a transcriber with managed OpenAI and httpx clients."""
        return cls(
            openai_client=AsyncOpenAI(api_key=api_key),
            http_client=httpx.AsyncClient(),
            account_sid=account_sid,
            auth_token=auth_token,
            model=model,
        )

    async def transcribe(self, recording_url: str) -> str:
        """Return the text of a recording."""
        audio = await self.download(recording_url)
        _logger.info("Transcribing recording: bytes=%s", len(audio))
        transcription = await self.openai_client.audio.transcriptions.create(
            file=("recording.wav", audio),
            model=self.model,
            language=self.language,
        )
        return transcription.text or ""

    async def download(self, recording_url: str) -> bytes:
        """Fetch recording bytes with the provider's basic auth."""
        response = await self.http_client.get(
            recording_url,
            auth=(self.account_sid, self.auth_token),
            follow_redirects=True,
            timeout=30,
        )
        response.raise_for_status()
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()
