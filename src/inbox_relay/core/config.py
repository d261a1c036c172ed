"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field


class LlmSettings(BaseModel):
    """Settings for the local LLM provider."""

    base_url: str = Field(
        default="http://localhost:11434", description="Ollama server URL"
    )
    model: str = Field(default="gpt-oss:20b", description="Model identifier")
    timeout_seconds: int = Field(
        default=30, description="Request timeout for LLM calls"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for classification style completions",
    )
    draft_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Sampling temperature used when drafting or revising emails",
    )
    max_output_tokens: int | None = Field(
        default=512,
        ge=32,
        description="Maximum tokens to request from the provider",
    )


class TranscriptionSettings(BaseModel):
    """Settings for the speech-to-text provider used for voice notes."""

    base_url: str = Field(
        default="https://api.openai.com",
        description="Base URL of an OpenAI-compatible transcription API",
    )
    api_key: str | None = Field(default=None, description="Bearer token")
    model: str = Field(default="whisper-1", description="Transcription model")
    language: str | None = Field(
        default="pt", description="ISO language hint passed to the provider"
    )
    timeout_seconds: int = Field(default=60, description="Request timeout")


class GmailSettings(BaseModel):
    """OAuth client and endpoint settings for the Gmail REST API."""

    client_id: str | None = Field(default=None, description="OAuth client id")
    client_secret: str | None = Field(
        default=None, description="OAuth client secret"
    )
    api_base: str = Field(
        default="https://gmail.googleapis.com/gmail/v1",
        description="Gmail API base URL",
    )
    token_url: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="OAuth token endpoint used for refreshes",
    )
    timeout_seconds: int = Field(default=30, description="Request timeout")


class ChatSettings(BaseModel):
    """Settings for the WhatsApp (Twilio) chat channel."""

    account_sid: str | None = Field(default=None, description="Twilio account SID")
    auth_token: str | None = Field(default=None, description="Twilio auth token")
    from_number: str = Field(
        default="", description="WhatsApp sender number in E.164 format"
    )
    verify_token: str | None = Field(
        default=None, description="Shared token for the webhook handshake"
    )
    link_url: str = Field(
        default="http://localhost:3000/auth/google",
        description="URL users open to connect their mailbox",
    )
    api_base: str = Field(
        default="https://api.twilio.com/2010-04-01",
        description="Twilio REST API base URL",
    )
    timeout_seconds: int = Field(default=30, description="Request timeout")


class StorageSettings(BaseModel):
    """Settings for local persistence."""

    db_path: Path = Field(
        default=Path("./inbox_relay.db"), description="SQLite database path"
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class SyncSettings(BaseModel):
    """Settings controlling mail polling cadence and bounds."""

    fetch_limit: int = Field(
        default=10, ge=1, description="Newest inbox messages fetched per user"
    )
    sent_scan_limit: int = Field(
        default=100, ge=1, description="Sent messages scanned for style analysis"
    )
    inbox_scan_limit: int = Field(
        default=20, ge=0, description="Inbox messages used to learn rules"
    )
    poll_interval_seconds: int = Field(
        default=300, ge=1, description="Delay between poll cycles"
    )
    poll_enabled: bool = Field(default=True, description="Run the poll loop")


class DigestSettings(BaseModel):
    """Settings for the digest batcher loop."""

    interval_seconds: int = Field(
        default=60,
        ge=1,
        description="Delay between digest checks; must not exceed one minute "
        "for minute-level schedule matching",
    )
    enabled: bool = Field(default=True, description="Run the digest loop")


class DispatchSettings(BaseModel):
    """Settings for the notification task queue."""

    workers: int = Field(default=4, ge=1, description="Dispatcher worker threads")


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    llm: LlmSettings = Field(default_factory=LlmSettings)
    transcription: TranscriptionSettings = Field(
        default_factory=TranscriptionSettings
    )
    gmail: GmailSettings = Field(default_factory=GmailSettings)
    chat: ChatSettings = Field(default_factory=ChatSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    digest: DigestSettings = Field(default_factory=DigestSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)


ENV_PREFIX = "INBOX_RELAY_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool = True
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
        _merge_into_tree(collected, path, normalized_value)

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    *,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(
        env_file, include_environment=include_environment
    )
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "ChatSettings",
    "DigestSettings",
    "DispatchSettings",
    "GmailSettings",
    "LlmSettings",
    "LoggingSettings",
    "StorageSettings",
    "SyncSettings",
    "TranscriptionSettings",
    "load_app_settings",
]
