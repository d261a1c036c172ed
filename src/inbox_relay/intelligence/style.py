"""Writing-style inference from a user's sent mail."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from inbox_relay.core.datetime_utils import utc_now
from inbox_relay.core.interfaces import MailProvider, Repository
from inbox_relay.core.models import EmailAccount, StyleProfile, WritingStyle

from .llm import LLMClient, LLMError, parse_json_object
from .prompts import build_style_prompt

LOGGER = logging.getLogger(__name__)

ANALYSIS_SAMPLE_LIMIT = 10
STORED_SAMPLE_LIMIT = 5
# Used when the model fails to describe a style.
ANALYSIS_FALLBACK_FORMALITY = 0.6


def default_style() -> WritingStyle:
    """Return the style assumed when a user has no stored profile."""
    return WritingStyle()


class StyleAnalyzer:
    """Infer and persist the writing style of a user."""

    def __init__(
        self,
        repository: Repository,
        mail_provider: MailProvider,
        llm_client: LLMClient,
        *,
        sent_scan_limit: int = 100,
        temperature: float = 0.3,
    ) -> None:
        self._repository = repository
        self._mail_provider = mail_provider
        self._llm_client = llm_client
        self._sent_scan_limit = sent_scan_limit
        self._temperature = temperature

    def analyze_samples(self, samples: Sequence[str]) -> WritingStyle:
        """Describe the style of ``samples``; falls back to defaults on failure."""
        prompt = build_style_prompt(samples)
        try:
            raw_output = self._llm_client.generate(
                prompt, temperature=self._temperature, json_output=True
            )
            style = _parse_style(parse_json_object(raw_output))
        except (LLMError, ValueError) as exc:
            LOGGER.error("Failed to analyze writing style: %s", exc)
            return WritingStyle(formality_score=ANALYSIS_FALLBACK_FORMALITY)
        LOGGER.info("Analyzed writing style: %s", style.tone)
        return style

    def learn_from_sent_mail(
        self, user_id: int, account: EmailAccount
    ) -> StyleProfile | None:
        """Scan sent mail, infer a style and store it.

        Returns ``None`` when the mailbox has no usable sent messages.
        Mail provider errors propagate to the caller.
        """
        sent = self._mail_provider.scan_sent_emails(account, self._sent_scan_limit)
        bodies = [item.body for item in sent if item.body.strip()]
        if not bodies:
            LOGGER.info("No sent mail to analyze for user %s", user_id)
            return None

        style = self.analyze_samples(bodies[:ANALYSIS_SAMPLE_LIMIT])
        profile = StyleProfile(
            user_id=user_id,
            style=style,
            sample_texts=tuple(bodies[:STORED_SAMPLE_LIMIT]),
            updated_at=utc_now(),
        )
        self._repository.upsert_style_profile(profile)
        return profile

    def style_for(self, user_id: int) -> WritingStyle:
        """Return the stored style for ``user_id`` or the defaults."""
        profile = self._repository.get_style_profile(user_id)
        if profile is None:
            return default_style()
        return profile.style


def _parse_style(payload: dict[str, Any]) -> WritingStyle:
    defaults = WritingStyle()
    tone = payload.get("tone")
    if not isinstance(tone, str) or not tone.strip():
        raise ValueError("Style output missing 'tone'")

    paragraph_length = payload.get("avgParagraphLength", defaults.avg_paragraph_length)
    if isinstance(paragraph_length, bool) or not isinstance(
        paragraph_length, (int, float)
    ):
        raise ValueError("'avgParagraphLength' must be numeric")

    formality = payload.get("formalityScore", defaults.formality_score)
    if isinstance(formality, bool) or not isinstance(formality, (int, float)):
        raise ValueError("'formalityScore' must be numeric")

    return WritingStyle(
        tone=tone.strip().lower(),
        avg_paragraph_length=int(paragraph_length),
        uses_greeting=bool(payload.get("usesGreeting", defaults.uses_greeting)),
        greeting_style=str(payload.get("greetingStyle") or defaults.greeting_style),
        uses_signature=bool(payload.get("usesSignature", defaults.uses_signature)),
        signature_style=str(
            payload.get("signatureStyle") or defaults.signature_style
        ),
        formality_score=max(0.0, min(float(formality), 1.0)),
    )


__all__ = ["StyleAnalyzer", "default_style"]
