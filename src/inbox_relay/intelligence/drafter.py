"""Drafting service that writes and revises emails in the user's style."""

from __future__ import annotations

import logging

from inbox_relay.core.models import EmailDraft, WritingStyle

from .llm import LLMClient, LLMError, parse_json_object
from .prompts import build_draft_prompt, build_revision_prompt

LOGGER = logging.getLogger(__name__)

DEFAULT_SUBJECT = "New Email"


class DraftingError(RuntimeError):
    """Raised when a draft cannot be produced or revised."""


class DraftingService:
    """Generate email drafts using an LLM."""

    def __init__(self, llm_client: LLMClient, *, temperature: float = 0.7) -> None:
        self._llm_client = llm_client
        self._temperature = temperature

    def generate_draft(
        self, instruction: str, style: WritingStyle, context: str | None = None
    ) -> EmailDraft:
        """Return a subject and body written from ``instruction``."""
        prompt = build_draft_prompt(instruction, style, context)
        try:
            raw_output = self._llm_client.generate(
                prompt, temperature=self._temperature, json_output=True
            )
        except LLMError as exc:
            LOGGER.error("Failed to generate email draft: %s", exc)
            raise DraftingError("Draft could not be generated") from exc

        try:
            payload = parse_json_object(raw_output)
        except ValueError:
            payload = {}
        subject = payload.get("subject")
        body = payload.get("body")
        if not isinstance(body, str) or not body.strip():
            body = raw_output
        if not body.strip():
            raise DraftingError("Draft could not be generated")
        return EmailDraft(
            subject=(
                subject.strip()
                if isinstance(subject, str) and subject.strip()
                else DEFAULT_SUBJECT
            ),
            body=body.strip(),
        )

    def revise_draft(self, original_body: str, feedback: str, style: WritingStyle) -> str:
        """Return ``original_body`` rewritten according to ``feedback``."""
        prompt = build_revision_prompt(original_body, feedback, style)
        try:
            revised = self._llm_client.generate(prompt, temperature=self._temperature)
        except LLMError as exc:
            LOGGER.error("Failed to revise email draft: %s", exc)
            raise DraftingError("Draft could not be revised") from exc
        if not revised.strip():
            raise DraftingError("Revision came back empty")
        return revised.strip()


__all__ = ["DEFAULT_SUBJECT", "DraftingError", "DraftingService"]
