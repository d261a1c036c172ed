"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from .models import (
    Category,
    CategoryRule,
    EmailAccount,
    EmailMetadata,
    InboundEmail,
    NotificationSchedule,
    NotificationTask,
    Preference,
    SentEmail,
    StyleProfile,
    User,
)


class RepositoryError(RuntimeError):
    """Raised when the persistence layer rejects an operation."""


class MailProviderError(RuntimeError):
    """Raised when the mail provider cannot complete a request."""


class MailAuthError(MailProviderError):
    """Raised when stored credentials were revoked and need re-authentication."""


class ChatGatewayError(RuntimeError):
    """Raised when a chat message cannot be delivered or media fetched."""


class TranscriptionError(RuntimeError):
    """Raised when a voice note cannot be transcribed."""


class MailProvider(Protocol):
    """Abstraction over a user's linked mailbox such as Gmail."""

    def fetch_new_emails(self, account: EmailAccount, limit: int) -> list[InboundEmail]:
        """Return up to ``limit`` newest inbox messages."""
        raise NotImplementedError

    def scan_sent_emails(self, account: EmailAccount, limit: int) -> list[SentEmail]:
        """Return up to ``limit`` sent messages that carry a text body."""
        raise NotImplementedError

    def send_message(
        self, account: EmailAccount, to: str, subject: str, body: str
    ) -> str:
        """Send a plain-text email and return the provider message id."""
        raise NotImplementedError


class ChatGateway(Protocol):
    """Abstraction over the chat channel used to reach users."""

    def send_message(self, to: str, text: str) -> None:
        """Deliver ``text`` to the chat address ``to``."""
        raise NotImplementedError

    def download_media(self, url: str) -> bytes:
        """Return the raw bytes of media attached to an inbound message."""
        raise NotImplementedError


class Transcriber(Protocol):
    """Speech-to-text provider for voice notes."""

    def transcribe(self, audio: bytes, filename: str) -> str:
        """Return the transcript of ``audio``."""
        raise NotImplementedError


class TaskSink(Protocol):
    """Anything that accepts notification tasks for later dispatch."""

    def enqueue(self, task: NotificationTask) -> None:
        """Schedule ``task`` for processing."""
        raise NotImplementedError


class Repository(Protocol):
    """Persistence contract for users, mail metadata and schedules."""

    # Users and accounts ------------------------------------------------------
    def get_user(self, user_id: int) -> User | None:
        """Return the user with ``user_id``."""
        raise NotImplementedError

    def get_user_by_address(self, chat_address: str) -> User | None:
        """Return the user owning ``chat_address``."""
        raise NotImplementedError

    def get_or_create_user(self, chat_address: str) -> User:
        """Return the user for ``chat_address``, creating it on first contact."""
        raise NotImplementedError

    def get_email_account(self, user_id: int) -> EmailAccount | None:
        """Return the linked mail account for ``user_id``."""
        raise NotImplementedError

    def upsert_email_account(self, account: EmailAccount) -> EmailAccount:
        """Create or replace the account for (user, provider)."""
        raise NotImplementedError

    def update_account_tokens(
        self, account_id: int, access_token: str, token_expiry: datetime | None
    ) -> None:
        """Persist refreshed OAuth tokens."""
        raise NotImplementedError

    def list_users_with_accounts(self) -> list[tuple[User, EmailAccount]]:
        """Return every user holding at least one linked account."""
        raise NotImplementedError

    # Categories and rules ----------------------------------------------------
    def seed_categories(self, categories: Sequence[Category]) -> None:
        """Insert or refresh catalog entries by name."""
        raise NotImplementedError

    def list_categories(self) -> list[Category]:
        """Return the catalog ordered by name."""
        raise NotImplementedError

    def get_category(self, category_id: int) -> Category | None:
        """Return a category by id."""
        raise NotImplementedError

    def get_category_by_name(self, name: str) -> Category | None:
        """Return a category by its well-known name."""
        raise NotImplementedError

    def list_rules(self, user_id: int) -> list[CategoryRule]:
        """Return the user's rules by descending confidence."""
        raise NotImplementedError

    def add_rule(self, rule: CategoryRule) -> CategoryRule:
        """Persist a learned rule."""
        raise NotImplementedError

    # Email metadata ----------------------------------------------------------
    def email_exists(self, provider_id: str) -> bool:
        """Return ``True`` when ``provider_id`` was already ingested."""
        raise NotImplementedError

    def insert_email(self, email: EmailMetadata) -> EmailMetadata | None:
        """Store a new row; return ``None`` if the provider id already exists."""
        raise NotImplementedError

    def get_email(self, email_id: int) -> EmailMetadata | None:
        """Return a metadata row by id."""
        raise NotImplementedError

    def list_unnotified(self, user_id: int, category_id: int) -> list[EmailMetadata]:
        """Return unnotified rows for the pair, oldest first."""
        raise NotImplementedError

    def mark_notified(self, email_ids: Sequence[int], notified_at: datetime) -> int:
        """Flip ``notified`` for still-unnotified rows; return rows changed."""
        raise NotImplementedError

    def latest_notified(self, user_id: int) -> EmailMetadata | None:
        """Return the most recently notified row for ``user_id``."""
        raise NotImplementedError

    # Schedules, style, preferences ------------------------------------------
    def get_schedule(
        self, user_id: int, category_id: int
    ) -> NotificationSchedule | None:
        """Return the schedule for the pair if one exists."""
        raise NotImplementedError

    def create_schedule_if_absent(self, schedule: NotificationSchedule) -> bool:
        """Insert ``schedule`` unless the pair already has one."""
        raise NotImplementedError

    def list_schedules_at(self, time_of_day: str) -> list[NotificationSchedule]:
        """Return schedules whose daily or weekly time equals ``time_of_day``."""
        raise NotImplementedError

    def get_style_profile(self, user_id: int) -> StyleProfile | None:
        """Return the stored style profile."""
        raise NotImplementedError

    def upsert_style_profile(self, profile: StyleProfile) -> None:
        """Create or replace the style profile."""
        raise NotImplementedError

    def get_preference(self, user_id: int) -> Preference | None:
        """Return onboarding preferences."""
        raise NotImplementedError

    def upsert_preference(self, preference: Preference) -> None:
        """Create or replace onboarding preferences."""
        raise NotImplementedError

    def mark_inbox_scanned(self, user_id: int) -> None:
        """Record that rules were learned from the user's inbox."""
        raise NotImplementedError

    def close(self) -> None:
        """Close database connections if necessary."""
        raise NotImplementedError


__all__ = [
    "ChatGateway",
    "ChatGatewayError",
    "MailAuthError",
    "MailProvider",
    "MailProviderError",
    "Repository",
    "RepositoryError",
    "TaskSink",
    "TranscriptionError",
    "Transcriber",
]
