"""Tests for the voice-note transcriber."""

from __future__ import annotations

import httpx
import pytest

from inbox_relay.core.config import TranscriptionSettings
from inbox_relay.core.interfaces import TranscriptionError
from inbox_relay.intelligence import WhisperTranscriber


def _transcriber(handler) -> WhisperTranscriber:
    settings = TranscriptionSettings(
        base_url="https://stt.example.com/", api_key="secret", language="pt"
    )
    return WhisperTranscriber(settings, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_transcribe_posts_multipart_upload() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"text": "  send the report to Ana  "})

    text = _transcriber(handler).transcribe(b"OggS-audio", "voice.ogg")

    assert text == "send the report to Ana"
    request = seen[0]
    assert str(request.url) == "https://stt.example.com/v1/audio/transcriptions"
    assert request.headers["Authorization"] == "Bearer secret"
    body = request.content
    assert b'name="model"' in body and b"whisper-1" in body
    assert b'name="language"' in body
    assert b'filename="voice.ogg"' in body
    assert b"OggS-audio" in body


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="oops"),
        httpx.Response(200, json={"text": ""}),
        httpx.Response(200, text="not json"),
    ],
)
def test_transcribe_errors(response: httpx.Response) -> None:
    with pytest.raises(TranscriptionError):
        _transcriber(lambda request: response).transcribe(b"audio", "voice.ogg")


def test_transcribe_rejects_empty_audio() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(TranscriptionError):
        _transcriber(handler).transcribe(b"", "voice.ogg")
