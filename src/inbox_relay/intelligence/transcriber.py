"""Speech-to-text client for voice notes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from inbox_relay.core.config import TranscriptionSettings
from inbox_relay.core.interfaces import TranscriptionError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class WhisperTranscriber:
    """Client for an OpenAI-compatible ``/v1/audio/transcriptions`` endpoint."""

    settings: TranscriptionSettings
    client: httpx.Client | None = None

    def transcribe(self, audio: bytes, filename: str) -> str:
        """Upload ``audio`` and return the transcript text."""
        if not audio:
            raise TranscriptionError("No audio to transcribe")
        endpoint = self.settings.base_url.rstrip("/") + "/v1/audio/transcriptions"
        headers = {}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
        data = {"model": self.settings.model}
        if self.settings.language:
            data["language"] = self.settings.language
        files = {"file": (filename, audio, "audio/ogg")}

        try:
            response = self._http().post(
                endpoint,
                headers=headers,
                data=data,
                files=files,
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            LOGGER.error("Failed to transcribe audio: %s", exc)
            raise TranscriptionError("Transcription request failed") from exc
        except ValueError as exc:
            raise TranscriptionError("Transcription returned invalid JSON") from exc

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise TranscriptionError("Transcription response missing 'text'")
        LOGGER.info("Transcribed audio: %s...", text[:50])
        return text.strip()

    def _http(self) -> httpx.Client:
        if self.client is None:
            self.client = httpx.Client()
        return self.client


__all__ = ["WhisperTranscriber"]
