"""Matchers evaluating learned category rules against an email."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from inbox_relay.core.models import CategoryRule, RuleType

# A rule is trusted over the model only above this confidence.
RULE_CONFIDENCE_THRESHOLD = 0.7


class RuleMatcher(Protocol):
    """Predicate deciding whether a rule pattern applies to an email."""

    pattern: str

    def matches(self, sender: str, subject: str) -> bool:
        """Return ``True`` when the email satisfies the pattern."""
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class SenderDomainMatcher:
    """Pattern is a case-sensitive substring of the sender."""

    pattern: str

    def matches(self, sender: str, subject: str) -> bool:
        del subject
        return self.pattern in sender


@dataclass(frozen=True, slots=True)
class SenderEmailMatcher:
    """Sender equals the pattern, ignoring case."""

    pattern: str

    def matches(self, sender: str, subject: str) -> bool:
        del subject
        return sender.lower() == self.pattern.lower()


@dataclass(frozen=True, slots=True)
class SubjectKeywordMatcher:
    """Subject contains the pattern, ignoring case."""

    pattern: str

    def matches(self, sender: str, subject: str) -> bool:
        del sender
        return self.pattern.lower() in subject.lower()


@dataclass(frozen=True, slots=True)
class FromContainsMatcher:
    """Sender contains the pattern, ignoring case."""

    pattern: str

    def matches(self, sender: str, subject: str) -> bool:
        del subject
        return self.pattern.lower() in sender.lower()


_MATCHERS: dict[RuleType, type[RuleMatcher]] = {
    RuleType.SENDER_DOMAIN: SenderDomainMatcher,
    RuleType.SENDER_EMAIL: SenderEmailMatcher,
    RuleType.SUBJECT_KEYWORD: SubjectKeywordMatcher,
    RuleType.FROM_CONTAINS: FromContainsMatcher,
}

if set(_MATCHERS) != set(RuleType):  # pragma: no cover - import-time guard
    raise RuntimeError("Every rule type needs a matcher")


def build_matcher(rule_type: RuleType | str, pattern: str) -> RuleMatcher:
    """Return the matcher variant for ``rule_type``."""
    try:
        matcher_cls = _MATCHERS[RuleType(rule_type)]
    except ValueError as exc:
        raise ValueError(f"Unknown rule type: {rule_type!r}") from exc
    return matcher_cls(pattern)


def match_rules(
    rules: Iterable[CategoryRule], sender: str, subject: str
) -> CategoryRule | None:
    """Return the highest-confidence rule that matches and is trusted.

    Rule type plays no part in precedence; only confidence orders the search.
    """
    ordered = sorted(rules, key=lambda rule: rule.confidence, reverse=True)
    for rule in ordered:
        matcher = build_matcher(rule.rule_type, rule.pattern)
        if matcher.matches(sender, subject) and rule.confidence > RULE_CONFIDENCE_THRESHOLD:
            return rule
    return None


__all__ = [
    "FromContainsMatcher",
    "RULE_CONFIDENCE_THRESHOLD",
    "RuleMatcher",
    "SenderDomainMatcher",
    "SenderEmailMatcher",
    "SubjectKeywordMatcher",
    "build_matcher",
    "match_rules",
]
