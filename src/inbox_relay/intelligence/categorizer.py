"""Categorisation service combining learned rules with the language model."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass

from inbox_relay.core.interfaces import Repository, RepositoryError
from inbox_relay.core.models import (
    Categorization,
    Category,
    CategoryRule,
    CategorySuggestion,
)

from .catalog import CATEGORY_CATALOG, FALLBACK_CATEGORY, FALLBACK_CONFIDENCE
from .classifier import ClassificationError, EmailClassifier
from .rules import match_rules

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EmailSample:
    """Fields of an email the categorizer looks at."""

    sender: str
    subject: str
    snippet: str = ""


@dataclass(frozen=True, slots=True)
class LabeledEmail:
    """An email together with the category it belongs to."""

    sender: str
    subject: str
    category: str


class Categorizer:
    """Assign catalog categories to emails and learn per-user rules."""

    def __init__(self, repository: Repository, classifier: EmailClassifier) -> None:
        self._repository = repository
        self._classifier = classifier

    # Catalog -----------------------------------------------------------------
    def initialize_categories(self) -> None:
        """Seed the fixed catalog; safe to call on every startup."""
        self._repository.seed_categories(
            [
                Category(
                    id=0,
                    name=spec.name,
                    display_name=spec.display_name,
                    description=spec.description,
                    icon=spec.icon,
                )
                for spec in CATEGORY_CATALOG
            ]
        )
        LOGGER.info("Initialized email categories")

    def list_categories(self) -> list[Category]:
        """Return every catalog entry ordered by name."""
        return self._repository.list_categories()

    def get_category_by_name(self, name: str) -> Category | None:
        """Return the catalog entry called ``name``."""
        return self._repository.get_category_by_name(name)

    # Classification ----------------------------------------------------------
    def categorize(self, user_id: int, email: EmailSample) -> Categorization:
        """Return the category for ``email``; never raises.

        A trusted rule short-circuits the model. Urgency is only known when
        the model classified the email, so rule hits report ``False``.
        """
        try:
            rules = self._repository.list_rules(user_id)
        except RepositoryError as exc:
            LOGGER.warning("Could not load rules for user %s: %s", user_id, exc)
            rules = []

        rule = match_rules(rules, email.sender, email.subject)
        if rule is not None:
            LOGGER.info(
                "Matched rule: %s=%s -> %s",
                rule.rule_type,
                rule.pattern,
                rule.category_name,
            )
            return Categorization(
                category=rule.category_name or self._category_name(rule),
                confidence=rule.confidence,
                is_urgent=False,
                matched_rule=True,
            )

        try:
            classification = self._classifier.classify(
                email.sender, email.subject, email.snippet
            )
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error(
                "Failed to classify email from %s: %s",
                email.sender,
                exc,
                exc_info=not isinstance(exc, ClassificationError),
            )
            return Categorization(
                category=FALLBACK_CATEGORY,
                confidence=FALLBACK_CONFIDENCE,
                is_urgent=False,
                summary=email.subject,
            )
        return Categorization(
            category=classification.category,
            confidence=classification.confidence,
            is_urgent=classification.is_urgent,
            summary=classification.summary,
        )

    # Rule learning -----------------------------------------------------------
    def learn_patterns(
        self, user_id: int, labeled_emails: Sequence[LabeledEmail]
    ) -> list[CategoryRule]:
        """Ask the model for rules and persist those with a known category.

        Best effort: a model failure yields no rules, and rules already
        stored stay stored if a later one fails.
        """
        triples = [(item.sender, item.subject, item.category) for item in labeled_emails]
        try:
            learned = self._classifier.extract_rules(triples)
        except ClassificationError as exc:
            LOGGER.error("Failed to learn categorization patterns: %s", exc)
            return []

        persisted: list[CategoryRule] = []
        categories: dict[str, Category | None] = {}
        for candidate in learned:
            if candidate.category_name not in categories:
                categories[candidate.category_name] = self.get_category_by_name(
                    candidate.category_name
                )
            category = categories[candidate.category_name]
            if category is None:
                LOGGER.debug(
                    "Dropping rule %s=%s for unknown category %s",
                    candidate.rule_type,
                    candidate.pattern,
                    candidate.category_name,
                )
                continue
            try:
                persisted.append(
                    self._repository.add_rule(
                        CategoryRule(
                            id=None,
                            user_id=user_id,
                            category_id=category.id,
                            rule_type=candidate.rule_type,
                            pattern=candidate.pattern,
                            confidence=candidate.confidence,
                            category_name=category.name,
                        )
                    )
                )
            except RepositoryError as exc:
                LOGGER.warning("Failed to persist rule for user %s: %s", user_id, exc)

        LOGGER.info("Learned %s rules for user %s", len(persisted), user_id)
        return persisted

    def scan_inbox_and_learn(
        self, user_id: int, emails: Sequence[EmailSample]
    ) -> list[CategorySuggestion]:
        """Classify a sample of the inbox, learn rules and suggest categories."""
        LOGGER.info("Scanning %s emails for user %s", len(emails), user_id)
        classified: list[tuple[EmailSample, str, float]] = []
        for email in emails:
            try:
                verdict = self._classifier.classify(
                    email.sender, email.subject, email.snippet
                )
                classified.append((email, verdict.category, verdict.confidence))
            except ClassificationError as exc:
                LOGGER.warning("Skipping unclassifiable email from %s: %s", email.sender, exc)

        self.learn_patterns(
            user_id,
            [
                LabeledEmail(sender=email.sender, subject=email.subject, category=name)
                for email, name, _ in classified
            ],
        )

        grouped: dict[str, list[tuple[EmailSample, float]]] = defaultdict(list)
        for email, name, confidence in classified:
            grouped[name].append((email, confidence))

        suggestions: list[CategorySuggestion] = []
        for name, members in grouped.items():
            category = self.get_category_by_name(name)
            if category is None:
                continue
            suggestions.append(
                CategorySuggestion(
                    category_name=category.name,
                    display_name=category.display_name,
                    sample_emails=tuple(
                        (email.sender, email.subject) for email, _ in members[:3]
                    ),
                    confidence=sum(conf for _, conf in members) / len(members),
                )
            )

        self._repository.mark_inbox_scanned(user_id)
        return suggestions

    def _category_name(self, rule: CategoryRule) -> str:
        category = self._repository.get_category(rule.category_id)
        return category.name if category else FALLBACK_CATEGORY


__all__ = ["Categorizer", "EmailSample", "LabeledEmail"]
