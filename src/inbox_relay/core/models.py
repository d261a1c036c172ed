"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class RuleType(StrEnum):
    """Kinds of learned classification patterns."""

    SENDER_DOMAIN = "sender_domain"
    SENDER_EMAIL = "sender_email"
    SUBJECT_KEYWORD = "subject_keyword"
    FROM_CONTAINS = "from_contains"


class DeliveryMode(StrEnum):
    """How notifications for a category reach the user."""

    IMMEDIATE = "immediate"
    BATCHED_DAILY = "batched_daily"
    BATCHED_WEEKLY = "batched_weekly"


@dataclass(slots=True)
class User:
    """A person reachable over the chat channel."""

    id: int
    chat_address: str
    created_at: datetime | None = None


@dataclass(slots=True)
class EmailAccount:
    """Linked mailbox with refreshable OAuth credentials."""

    id: int | None
    user_id: int
    email_address: str
    access_token: str | None
    refresh_token: str | None
    token_expiry: datetime | None = None
    provider: str = "gmail"


@dataclass(slots=True)
class Category:
    """Entry of the fixed category catalog."""

    id: int
    name: str
    display_name: str
    description: str
    icon: str


@dataclass(slots=True)
class CategoryRule:
    """Learned per-user pattern mapping emails to a category."""

    id: int | None
    user_id: int
    category_id: int
    rule_type: RuleType
    pattern: str
    confidence: float
    category_name: str | None = None


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class EmailMetadata:
    """Ingested inbox item; ``provider_id`` is the dedup key."""

    id: int | None
    user_id: int
    provider_id: str
    thread_id: str | None
    sender: str
    subject: str
    summary: str
    category_id: int | None
    is_urgent: bool
    notified: bool = False
    notified_at: datetime | None = None
    received_at: datetime | None = None


@dataclass(slots=True)
class NotificationSchedule:
    """Delivery preferences for one (user, category) pair."""

    id: int | None
    user_id: int
    category_id: int
    delivery_mode: DeliveryMode
    time1: str | None = None
    time2: str | None = None
    weekly_day: int | None = None
    weekly_time: str | None = None


@dataclass(slots=True)
class WritingStyle:
    """Writing-style attributes used to condition drafts."""

    tone: str = "semi-formal"
    avg_paragraph_length: int = 50
    uses_greeting: bool = True
    greeting_style: str = "Hi"
    uses_signature: bool = True
    signature_style: str = "Best"
    formality_score: float = 0.5


@dataclass(slots=True)
class StyleProfile:
    """Stored writing style inferred from a user's sent mail."""

    user_id: int
    style: WritingStyle
    sample_texts: tuple[str, ...] = ()
    updated_at: datetime | None = None


@dataclass(slots=True)
class Preference:
    """Onboarding answers and flags for a user."""

    user_id: int
    promo_handling: str | None = None
    onboarding_completed: bool = False
    inbox_scanned: bool = False


@dataclass(slots=True)
class InboundEmail:
    """Inbox message as returned by the mail provider."""

    id: str
    thread_id: str | None
    sender: str
    subject: str
    snippet: str
    received_at: datetime | None = None


@dataclass(slots=True)
class SentEmail:
    """Message from the user's sent folder."""

    sender: str
    to: str
    subject: str
    body: str


@dataclass(slots=True)
class Classification:
    """Model verdict for a single email."""

    category: str
    confidence: float
    is_urgent: bool
    summary: str
    reasoning: str | None = None


@dataclass(slots=True)
class Categorization:
    """Outcome of categorising an email, by rule or by model."""

    category: str
    confidence: float
    is_urgent: bool
    summary: str = ""
    matched_rule: bool = False


@dataclass(slots=True)
class LearnedRule:
    """Rule proposed by the model before it is persisted."""

    rule_type: RuleType
    pattern: str
    category_name: str
    confidence: float


@dataclass(slots=True)
class CategorySuggestion:
    """Per-category summary produced by an inbox scan."""

    category_name: str
    display_name: str
    sample_emails: tuple[tuple[str, str], ...]
    confidence: float


@dataclass(slots=True)
class EmailDraft:
    """Subject and body proposed for an outgoing email."""

    subject: str
    body: str


@dataclass(slots=True)
class Contact:
    """Recipient harvested from sent mail."""

    name: str
    email: str
    frequency: int = 0


@dataclass(frozen=True, slots=True)
class NotificationTask:
    """Payload of a ``dispatch-notification`` task."""

    email_id: int
    user_id: int
    category_id: int
    is_urgent: bool


@dataclass(slots=True)
class PollReport:
    """Outcome summary for a poll cycle."""

    users: int = 0
    ingested: int = 0
    skipped: int = 0
    enqueued: int = 0
    failed_users: list[int] = field(default_factory=list)


__all__ = [
    "Categorization",
    "Category",
    "CategoryRule",
    "CategorySuggestion",
    "Classification",
    "Contact",
    "DeliveryMode",
    "EmailAccount",
    "EmailDraft",
    "EmailMetadata",
    "InboundEmail",
    "LearnedRule",
    "NotificationSchedule",
    "NotificationTask",
    "PollReport",
    "Preference",
    "RuleType",
    "SentEmail",
    "StyleProfile",
    "User",
    "WritingStyle",
]
