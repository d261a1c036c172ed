"""LLM-backed email classification and rule extraction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from inbox_relay.core.models import Classification, LearnedRule, RuleType

from .catalog import CATEGORY_NAMES
from .llm import LLMClient, LLMError, parse_json_object
from .prompts import build_classification_prompt, build_rule_learning_prompt

LOGGER = logging.getLogger(__name__)


class ClassificationError(RuntimeError):
    """Raised when the model cannot produce a usable classification."""


class EmailClassifier:
    """Ask the language model to classify emails and propose rules."""

    def __init__(self, llm_client: LLMClient, *, temperature: float = 0.3) -> None:
        self._llm_client = llm_client
        self._temperature = temperature

    def classify(self, sender: str, subject: str, snippet: str) -> Classification:
        """Return the model's category, confidence, urgency and summary."""
        prompt = build_classification_prompt(sender, subject, snippet)
        try:
            raw_output = self._llm_client.generate(
                prompt, temperature=self._temperature, json_output=True
            )
            classification = _parse_classification(parse_json_object(raw_output))
        except (LLMError, ValueError) as exc:
            raise ClassificationError(f"Classification failed: {exc}") from exc
        LOGGER.info("Classified email from %s: %s", sender, classification.category)
        return classification

    def extract_rules(
        self, labeled: Sequence[tuple[str, str, str]]
    ) -> list[LearnedRule]:
        """Return rules generalising the (from, subject, category) triples."""
        if not labeled:
            return []
        prompt = build_rule_learning_prompt(labeled)
        try:
            raw_output = self._llm_client.generate(
                prompt, temperature=self._temperature, json_output=True
            )
            payload = parse_json_object(raw_output)
        except (LLMError, ValueError) as exc:
            raise ClassificationError(f"Rule extraction failed: {exc}") from exc

        raw_rules = payload.get("rules")
        if not isinstance(raw_rules, list):
            raise ClassificationError("Rule output missing 'rules' list")

        rules: list[LearnedRule] = []
        for item in raw_rules:
            try:
                rules.append(_parse_rule(item))
            except ValueError as exc:
                LOGGER.debug("Ignoring malformed rule %r: %s", item, exc)
        return rules


def _parse_classification(payload: dict[str, Any]) -> Classification:
    category = payload.get("category")
    if not isinstance(category, str):
        raise ValueError("Classification missing 'category'")
    category = category.strip().lower()
    if category not in CATEGORY_NAMES:
        raise ValueError(f"Unknown category {category!r}")

    confidence = _coerce_confidence(payload.get("confidence", 0.5))
    is_urgent = payload.get("isUrgent", False)
    if not isinstance(is_urgent, bool):
        raise ValueError("'isUrgent' must be a boolean")
    summary = payload.get("summary") or ""
    if not isinstance(summary, str):
        raise ValueError("'summary' must be a string")
    reasoning = payload.get("reasoning")

    return Classification(
        category=category,
        confidence=confidence,
        is_urgent=is_urgent,
        summary=summary.strip(),
        reasoning=reasoning if isinstance(reasoning, str) else None,
    )


def _parse_rule(item: Any) -> LearnedRule:
    if not isinstance(item, dict):
        raise ValueError("rule must be an object")
    pattern = item.get("pattern")
    if not isinstance(pattern, str) or not pattern.strip():
        raise ValueError("rule pattern must be a non-empty string")
    category_name = item.get("categoryName")
    if not isinstance(category_name, str):
        raise ValueError("rule categoryName must be a string")
    return LearnedRule(
        rule_type=RuleType(item.get("ruleType")),
        pattern=pattern.strip(),
        category_name=category_name.strip().lower(),
        confidence=_coerce_confidence(item.get("confidence")),
    )


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("confidence must be numeric")
    return max(0.0, min(float(value), 1.0))


__all__ = ["ClassificationError", "EmailClassifier"]
