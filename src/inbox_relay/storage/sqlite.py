"""SQLite-backed repository implementation."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from types import TracebackType

from ..core.config import StorageSettings
from ..core.datetime_utils import parse_datetime, serialize_datetime, utc_now
from ..core.interfaces import Repository, RepositoryError
from ..core.models import (
    Category,
    CategoryRule,
    DeliveryMode,
    EmailAccount,
    EmailMetadata,
    NotificationSchedule,
    Preference,
    RuleType,
    StyleProfile,
    User,
    WritingStyle,
)

LOGGER = logging.getLogger(__name__)

_EMAIL_COLUMNS = (
    "id, user_id, provider_id, thread_id, sender, subject, summary, category_id, "
    "is_urgent, notified, notified_at, received_at"
)
_SCHEDULE_COLUMNS = (
    "id, user_id, category_id, delivery_mode, time1, time2, weekly_day, weekly_time"
)


class SqliteRepository(Repository):
    """Persist users, mail metadata, rules and schedules using SQLite.

    A single connection is shared between the web handlers, the queue
    workers and the timer loops, so every statement runs under one
    re-entrant lock.
    """

    def __init__(self, settings: StorageSettings) -> None:
        """Initialise the repository and apply migrations."""
        self._settings = settings
        db_path = Path(settings.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._connection = sqlite3.connect(
            db_path,
            detect_types=sqlite3.PARSE_DECLTYPES,
            check_same_thread=False,
        )
        self._connection.row_factory = sqlite3.Row
        self._enable_foreign_keys()
        self._apply_migrations()

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SqliteRepository:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    # Users and accounts ------------------------------------------------------
    def get_user(self, user_id: int) -> User | None:
        """Return the user with ``user_id``."""
        with self._lock:
            row = self._connection.execute(
                "SELECT id, chat_address, created_at FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        return _row_to_user(row) if row else None

    def get_user_by_address(self, chat_address: str) -> User | None:
        """Return the user owning ``chat_address``."""
        with self._lock:
            row = self._connection.execute(
                "SELECT id, chat_address, created_at FROM users WHERE chat_address = ?",
                (chat_address,),
            ).fetchone()
        return _row_to_user(row) if row else None

    def get_or_create_user(self, chat_address: str) -> User:
        """Return the user for ``chat_address``, creating it on first contact."""
        if not chat_address:
            raise ValueError("Chat address is required")
        with self._lock:
            with self._connection:
                cursor = self._connection.execute(
                    """
                    INSERT INTO users (chat_address, created_at) VALUES (?, ?)
                    ON CONFLICT(chat_address) DO NOTHING
                    """,
                    (chat_address, serialize_datetime(utc_now())),
                )
            if cursor.rowcount:
                LOGGER.info("Created user for chat address %s", chat_address)
            user = self.get_user_by_address(chat_address)
        if user is None:  # pragma: no cover - guarded by the insert above
            raise RepositoryError(f"User for {chat_address} could not be created")
        return user

    def get_email_account(self, user_id: int) -> EmailAccount | None:
        """Return the linked mail account for ``user_id``."""
        with self._lock:
            row = self._connection.execute(
                """
                SELECT id, user_id, provider, email_address, access_token,
                       refresh_token, token_expiry
                FROM email_accounts WHERE user_id = ?
                ORDER BY id LIMIT 1
                """,
                (user_id,),
            ).fetchone()
        return _row_to_account(row) if row else None

    def upsert_email_account(self, account: EmailAccount) -> EmailAccount:
        """Create or replace the account for (user, provider)."""
        LOGGER.debug(
            "Linking %s account %s to user %s",
            account.provider,
            account.email_address,
            account.user_id,
        )
        with self._lock:
            try:
                with self._connection:
                    self._connection.execute(
                        """
                        INSERT INTO email_accounts (
                            user_id, provider, email_address, access_token,
                            refresh_token, token_expiry
                        ) VALUES (?, ?, ?, ?, ?, ?)
                        ON CONFLICT(user_id, provider) DO UPDATE SET
                            email_address=excluded.email_address,
                            access_token=excluded.access_token,
                            refresh_token=excluded.refresh_token,
                            token_expiry=excluded.token_expiry
                        """,
                        (
                            account.user_id,
                            account.provider,
                            account.email_address,
                            account.access_token,
                            account.refresh_token,
                            serialize_datetime(account.token_expiry),
                        ),
                    )
            except sqlite3.IntegrityError as exc:
                raise RepositoryError(
                    f"Cannot link account for user {account.user_id}: {exc}"
                ) from exc
            stored = self.get_email_account(account.user_id)
        if stored is None:  # pragma: no cover - guarded by the upsert above
            raise RepositoryError("Account upsert did not persist")
        return stored

    def update_account_tokens(
        self, account_id: int, access_token: str, token_expiry: datetime | None
    ) -> None:
        """Persist refreshed OAuth tokens."""
        with self._lock, self._connection:
            self._connection.execute(
                """
                UPDATE email_accounts
                SET access_token = ?, token_expiry = COALESCE(?, token_expiry)
                WHERE id = ?
                """,
                (access_token, serialize_datetime(token_expiry), account_id),
            )

    def list_users_with_accounts(self) -> list[tuple[User, EmailAccount]]:
        """Return every user holding at least one linked account."""
        with self._lock:
            rows = self._connection.execute(
                """
                SELECT u.id AS u_id, u.chat_address, u.created_at,
                       a.id, a.user_id, a.provider, a.email_address,
                       a.access_token, a.refresh_token, a.token_expiry
                FROM users u
                JOIN email_accounts a ON a.user_id = u.id
                ORDER BY u.id, a.id
                """
            ).fetchall()
        pairs: list[tuple[User, EmailAccount]] = []
        seen: set[int] = set()
        for row in rows:
            if row["u_id"] in seen:
                continue
            seen.add(row["u_id"])
            user = User(
                id=row["u_id"],
                chat_address=row["chat_address"],
                created_at=parse_datetime(row["created_at"]),
            )
            pairs.append((user, _row_to_account(row)))
        return pairs

    # Categories and rules ----------------------------------------------------
    def seed_categories(self, categories: Sequence[Category]) -> None:
        """Insert or refresh catalog entries by name."""
        with self._lock, self._connection:
            for category in categories:
                self._connection.execute(
                    """
                    INSERT INTO categories (name, display_name, description, icon)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        display_name=excluded.display_name,
                        description=excluded.description,
                        icon=excluded.icon
                    """,
                    (
                        category.name,
                        category.display_name,
                        category.description,
                        category.icon,
                    ),
                )

    def list_categories(self) -> list[Category]:
        """Return the catalog ordered by name."""
        with self._lock:
            rows = self._connection.execute(
                "SELECT id, name, display_name, description, icon FROM categories "
                "ORDER BY name ASC"
            ).fetchall()
        return [_row_to_category(row) for row in rows]

    def get_category(self, category_id: int) -> Category | None:
        """Return a category by id."""
        with self._lock:
            row = self._connection.execute(
                "SELECT id, name, display_name, description, icon FROM categories "
                "WHERE id = ?",
                (category_id,),
            ).fetchone()
        return _row_to_category(row) if row else None

    def get_category_by_name(self, name: str) -> Category | None:
        """Return a category by its well-known name."""
        with self._lock:
            row = self._connection.execute(
                "SELECT id, name, display_name, description, icon FROM categories "
                "WHERE name = ?",
                (name,),
            ).fetchone()
        return _row_to_category(row) if row else None

    def list_rules(self, user_id: int) -> list[CategoryRule]:
        """Return the user's rules by descending confidence."""
        with self._lock:
            rows = self._connection.execute(
                """
                SELECT r.id, r.user_id, r.category_id, r.rule_type, r.pattern,
                       r.confidence, c.name AS category_name
                FROM category_rules r
                JOIN categories c ON c.id = r.category_id
                WHERE r.user_id = ?
                ORDER BY r.confidence DESC, r.id ASC
                """,
                (user_id,),
            ).fetchall()
        return [
            CategoryRule(
                id=row["id"],
                user_id=row["user_id"],
                category_id=row["category_id"],
                rule_type=RuleType(row["rule_type"]),
                pattern=row["pattern"],
                confidence=float(row["confidence"]),
                category_name=row["category_name"],
            )
            for row in rows
        ]

    def add_rule(self, rule: CategoryRule) -> CategoryRule:
        """Persist a learned rule."""
        with self._lock:
            try:
                with self._connection:
                    cursor = self._connection.execute(
                        """
                        INSERT INTO category_rules (
                            user_id, category_id, rule_type, pattern, confidence,
                            created_at
                        ) VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (
                            rule.user_id,
                            rule.category_id,
                            str(rule.rule_type),
                            rule.pattern,
                            rule.confidence,
                            serialize_datetime(utc_now()),
                        ),
                    )
            except sqlite3.IntegrityError as exc:
                raise RepositoryError(f"Invalid category rule: {exc}") from exc
        rule.id = cursor.lastrowid
        return rule

    # Email metadata ----------------------------------------------------------
    def email_exists(self, provider_id: str) -> bool:
        """Return ``True`` when ``provider_id`` was already ingested."""
        with self._lock:
            row = self._connection.execute(
                "SELECT 1 FROM email_metadata WHERE provider_id = ?",
                (provider_id,),
            ).fetchone()
        return row is not None

    def insert_email(self, email: EmailMetadata) -> EmailMetadata | None:
        """Store a new row; return ``None`` if the provider id already exists."""
        if not email.provider_id:
            raise ValueError("Provider id is required")
        with self._lock:
            try:
                with self._connection:
                    cursor = self._connection.execute(
                        """
                        INSERT INTO email_metadata (
                            user_id, provider_id, thread_id, sender, subject,
                            summary, category_id, is_urgent, notified, notified_at,
                            received_at, created_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, NULL, ?, ?)
                        ON CONFLICT(provider_id) DO NOTHING
                        """,
                        (
                            email.user_id,
                            email.provider_id,
                            email.thread_id,
                            email.sender,
                            email.subject,
                            email.summary,
                            email.category_id,
                            int(email.is_urgent),
                            serialize_datetime(email.received_at),
                            serialize_datetime(utc_now()),
                        ),
                    )
            except sqlite3.IntegrityError as exc:
                LOGGER.error(
                    "Database integrity error persisting email %s: %s",
                    email.provider_id,
                    exc,
                    exc_info=True,
                )
                raise RepositoryError(
                    f"Failed to persist email {email.provider_id}: {exc}"
                ) from exc
        if not cursor.rowcount:
            LOGGER.debug("Email %s already ingested", email.provider_id)
            return None
        email.id = cursor.lastrowid
        email.notified = False
        email.notified_at = None
        return email

    def get_email(self, email_id: int) -> EmailMetadata | None:
        """Return a metadata row by id."""
        with self._lock:
            row = self._connection.execute(
                f"SELECT {_EMAIL_COLUMNS} FROM email_metadata WHERE id = ?",
                (email_id,),
            ).fetchone()
        return _row_to_email(row) if row else None

    def list_unnotified(self, user_id: int, category_id: int) -> list[EmailMetadata]:
        """Return unnotified rows for the pair, oldest first."""
        with self._lock:
            rows = self._connection.execute(
                f"""
                SELECT {_EMAIL_COLUMNS} FROM email_metadata
                WHERE user_id = ? AND category_id = ? AND notified = 0
                ORDER BY COALESCE(received_at, created_at) ASC, id ASC
                """,
                (user_id, category_id),
            ).fetchall()
        return [_row_to_email(row) for row in rows]

    def mark_notified(self, email_ids: Sequence[int], notified_at: datetime) -> int:
        """Flip ``notified`` for still-unnotified rows; return rows changed."""
        ids = list(email_ids)
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        with self._lock, self._connection:
            cursor = self._connection.execute(
                f"""
                UPDATE email_metadata SET notified = 1, notified_at = ?
                WHERE notified = 0 AND id IN ({placeholders})
                """,
                (serialize_datetime(notified_at), *ids),
            )
        LOGGER.debug("Marked %s of %s email(s) notified", cursor.rowcount, len(ids))
        return cursor.rowcount

    def latest_notified(self, user_id: int) -> EmailMetadata | None:
        """Return the most recently notified row for ``user_id``."""
        with self._lock:
            row = self._connection.execute(
                f"""
                SELECT {_EMAIL_COLUMNS} FROM email_metadata
                WHERE user_id = ? AND notified = 1
                ORDER BY notified_at DESC, id DESC
                LIMIT 1
                """,
                (user_id,),
            ).fetchone()
        return _row_to_email(row) if row else None

    # Schedules ---------------------------------------------------------------
    def get_schedule(
        self, user_id: int, category_id: int
    ) -> NotificationSchedule | None:
        """Return the schedule for the pair if one exists."""
        with self._lock:
            row = self._connection.execute(
                f"""
                SELECT {_SCHEDULE_COLUMNS} FROM notification_schedules
                WHERE user_id = ? AND category_id = ?
                """,
                (user_id, category_id),
            ).fetchone()
        return _row_to_schedule(row) if row else None

    def create_schedule_if_absent(self, schedule: NotificationSchedule) -> bool:
        """Insert ``schedule`` unless the pair already has one."""
        with self._lock, self._connection:
            cursor = self._connection.execute(
                """
                INSERT INTO notification_schedules (
                    user_id, category_id, delivery_mode, time1, time2,
                    weekly_day, weekly_time
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, category_id) DO NOTHING
                """,
                (
                    schedule.user_id,
                    schedule.category_id,
                    str(schedule.delivery_mode),
                    schedule.time1,
                    schedule.time2,
                    schedule.weekly_day,
                    schedule.weekly_time,
                ),
            )
        created = bool(cursor.rowcount)
        if created:
            schedule.id = cursor.lastrowid
        return created

    def list_schedules_at(self, time_of_day: str) -> list[NotificationSchedule]:
        """Return schedules whose daily or weekly time equals ``time_of_day``."""
        with self._lock:
            rows = self._connection.execute(
                f"""
                SELECT {_SCHEDULE_COLUMNS} FROM notification_schedules
                WHERE time1 = ? OR time2 = ? OR weekly_time = ?
                ORDER BY id
                """,
                (time_of_day, time_of_day, time_of_day),
            ).fetchall()
        return [_row_to_schedule(row) for row in rows]

    # Style profiles and preferences -----------------------------------------
    def get_style_profile(self, user_id: int) -> StyleProfile | None:
        """Return the stored style profile."""
        with self._lock:
            row = self._connection.execute(
                """
                SELECT user_id, sample_texts, tone, avg_paragraph_length,
                       uses_greeting, greeting_style, uses_signature,
                       signature_style, formality_score, updated_at
                FROM style_profiles WHERE user_id = ?
                """,
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return StyleProfile(
            user_id=row["user_id"],
            style=WritingStyle(
                tone=row["tone"],
                avg_paragraph_length=row["avg_paragraph_length"],
                uses_greeting=bool(row["uses_greeting"]),
                greeting_style=row["greeting_style"],
                uses_signature=bool(row["uses_signature"]),
                signature_style=row["signature_style"],
                formality_score=float(row["formality_score"]),
            ),
            sample_texts=tuple(json.loads(row["sample_texts"] or "[]")),
            updated_at=parse_datetime(row["updated_at"]),
        )

    def upsert_style_profile(self, profile: StyleProfile) -> None:
        """Create or replace the style profile."""
        style = profile.style
        updated_at = profile.updated_at or utc_now()
        with self._lock, self._connection:
            self._connection.execute(
                """
                INSERT INTO style_profiles (
                    user_id, sample_texts, tone, avg_paragraph_length,
                    uses_greeting, greeting_style, uses_signature,
                    signature_style, formality_score, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    sample_texts=excluded.sample_texts,
                    tone=excluded.tone,
                    avg_paragraph_length=excluded.avg_paragraph_length,
                    uses_greeting=excluded.uses_greeting,
                    greeting_style=excluded.greeting_style,
                    uses_signature=excluded.uses_signature,
                    signature_style=excluded.signature_style,
                    formality_score=excluded.formality_score,
                    updated_at=excluded.updated_at
                """,
                (
                    profile.user_id,
                    json.dumps(list(profile.sample_texts)),
                    style.tone,
                    style.avg_paragraph_length,
                    int(style.uses_greeting),
                    style.greeting_style,
                    int(style.uses_signature),
                    style.signature_style,
                    style.formality_score,
                    serialize_datetime(updated_at),
                ),
            )
        LOGGER.debug("Saved style profile for user %s", profile.user_id)

    def get_preference(self, user_id: int) -> Preference | None:
        """Return onboarding preferences."""
        with self._lock:
            row = self._connection.execute(
                """
                SELECT user_id, promo_handling, onboarding_completed, inbox_scanned
                FROM preferences WHERE user_id = ?
                """,
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return Preference(
            user_id=row["user_id"],
            promo_handling=row["promo_handling"],
            onboarding_completed=bool(row["onboarding_completed"]),
            inbox_scanned=bool(row["inbox_scanned"]),
        )

    def upsert_preference(self, preference: Preference) -> None:
        """Create or replace onboarding preferences."""
        with self._lock, self._connection:
            self._connection.execute(
                """
                INSERT INTO preferences (
                    user_id, promo_handling, onboarding_completed, inbox_scanned
                ) VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    promo_handling=excluded.promo_handling,
                    onboarding_completed=excluded.onboarding_completed,
                    inbox_scanned=excluded.inbox_scanned
                """,
                (
                    preference.user_id,
                    preference.promo_handling,
                    int(preference.onboarding_completed),
                    int(preference.inbox_scanned),
                ),
            )

    def mark_inbox_scanned(self, user_id: int) -> None:
        """Record that rules were learned from the user's inbox."""
        with self._lock, self._connection:
            self._connection.execute(
                """
                INSERT INTO preferences (user_id, inbox_scanned) VALUES (?, 1)
                ON CONFLICT(user_id) DO UPDATE SET inbox_scanned = 1
                """,
                (user_id,),
            )

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        with self._lock:
            self._connection.close()

    # Internal helpers --------------------------------------------------------
    def _enable_foreign_keys(self) -> None:
        with self._connection:
            self._connection.execute("PRAGMA foreign_keys = ON")

    def _apply_migrations(self) -> None:
        schema_dir = Path(__file__).resolve().parent / "schema"
        migrations = sorted(schema_dir.glob("*.sql"))
        for migration in migrations:
            LOGGER.debug("Applying migration %s", migration.name)
            script = migration.read_text(encoding="utf-8")
            try:
                with self._connection:
                    self._connection.executescript(script)
            except sqlite3.Error as exc:  # pragma: no cover - logged for visibility
                LOGGER.warning(
                    "Migration %s failed (possibly already applied): %s",
                    migration.name,
                    exc,
                )


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        chat_address=row["chat_address"],
        created_at=parse_datetime(row["created_at"]),
    )


def _row_to_account(row: sqlite3.Row) -> EmailAccount:
    return EmailAccount(
        id=row["id"],
        user_id=row["user_id"],
        provider=row["provider"],
        email_address=row["email_address"],
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        token_expiry=parse_datetime(row["token_expiry"]),
    )


def _row_to_category(row: sqlite3.Row) -> Category:
    return Category(
        id=row["id"],
        name=row["name"],
        display_name=row["display_name"],
        description=row["description"],
        icon=row["icon"],
    )


def _row_to_email(row: sqlite3.Row) -> EmailMetadata:
    return EmailMetadata(
        id=row["id"],
        user_id=row["user_id"],
        provider_id=row["provider_id"],
        thread_id=row["thread_id"],
        sender=row["sender"],
        subject=row["subject"],
        summary=row["summary"],
        category_id=row["category_id"],
        is_urgent=bool(row["is_urgent"]),
        notified=bool(row["notified"]),
        notified_at=parse_datetime(row["notified_at"]),
        received_at=parse_datetime(row["received_at"]),
    )


def _row_to_schedule(row: sqlite3.Row) -> NotificationSchedule:
    return NotificationSchedule(
        id=row["id"],
        user_id=row["user_id"],
        category_id=row["category_id"],
        delivery_mode=DeliveryMode(row["delivery_mode"]),
        time1=row["time1"],
        time2=row["time2"],
        weekly_day=row["weekly_day"],
        weekly_time=row["weekly_time"],
    )


__all__ = ["SqliteRepository"]
