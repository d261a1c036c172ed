"""LLM client abstractions used by intelligence features."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urljoin

import httpx

from inbox_relay.core.config import LlmSettings


class LLMError(RuntimeError):
    """Raised when the LLM provider fails to respond as expected."""


class LLMClient(Protocol):
    """Protocol describing the minimal LLM client behaviour."""

    @property
    def provider_id(self) -> str:
        """Identifier describing the backing model/provider."""
        raise NotImplementedError

    def generate(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        json_output: bool = False,
    ) -> str:
        """Return the raw text completion for ``prompt``."""
        raise NotImplementedError


@dataclass(slots=True)
class OllamaClient:
    """Thin synchronous client for the Ollama HTTP API."""

    settings: LlmSettings
    max_attempts: int = 3

    def generate(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        json_output: bool = False,
    ) -> str:
        """Send a completion request to the Ollama server."""
        endpoint = _resolve_endpoint(self.settings.base_url)
        options: dict[str, object] = {
            "temperature": (
                self.settings.temperature if temperature is None else temperature
            ),
        }
        if self.settings.max_output_tokens is not None:
            options["num_predict"] = self.settings.max_output_tokens
        payload: dict[str, object] = {
            "model": self.settings.model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }
        if json_output:
            payload["format"] = "json"

        data: object = None
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = httpx.post(
                    endpoint,
                    json=payload,
                    timeout=self.settings.timeout_seconds,
                )
                response.raise_for_status()
                data = response.json()
                break
            except httpx.HTTPError as exc:  # pragma: no cover - network dependent
                last_error = exc
            except json.JSONDecodeError as exc:
                raise LLMError("LLM returned invalid JSON") from exc

            if attempt < self.max_attempts:
                delay = min(2**attempt, 8)
                time.sleep(delay)

        if data is None:
            raise LLMError("LLM request failed after retries") from last_error

        if not isinstance(data, dict):
            raise LLMError("LLM returned a non-object payload")
        result = data.get("response")
        if not isinstance(result, str):
            raise LLMError("LLM response missing 'response' field")
        return result

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"ollama:{self.settings.model}"


def parse_json_object(raw: str) -> dict[str, Any]:
    """Decode the JSON object in ``raw``, tolerating fenced or padded output."""
    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`")
        text = text.removeprefix("json").strip()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ValueError("Model output did not contain a JSON object")
    try:
        payload = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ValueError("Model output was not valid JSON") from exc
    if not isinstance(payload, dict):
        raise ValueError("Model output must be a JSON object")
    return payload


def _resolve_endpoint(base_url: str) -> str:
    trimmed = base_url.rstrip("/") + "/"
    return urljoin(trimmed, "api/generate")


__all__ = ["LLMClient", "OllamaClient", "LLMError", "parse_json_object"]
