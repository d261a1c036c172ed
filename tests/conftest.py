"""Shared fixtures for the test suite."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from inbox_relay.core.config import StorageSettings
from inbox_relay.core.models import Category, EmailAccount, User
from inbox_relay.intelligence.catalog import CATEGORY_CATALOG
from inbox_relay.storage import SqliteRepository


def seed_catalog(repository: SqliteRepository) -> None:
    repository.seed_categories(
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


@pytest.fixture
def repository(tmp_path: Path) -> Iterator[SqliteRepository]:
    """A migrated database with the category catalog seeded."""
    repo = SqliteRepository(StorageSettings(db_path=tmp_path / "relay.db"))
    seed_catalog(repo)
    yield repo
    repo.close()


@pytest.fixture
def linked_user(repository: SqliteRepository) -> tuple[User, EmailAccount]:
    """A user with a linked Gmail account."""
    user = repository.get_or_create_user("whatsapp:+15550001111")
    account = repository.upsert_email_account(
        EmailAccount(
            id=None,
            user_id=user.id,
            email_address="me@example.com",
            access_token="access",
            refresh_token="refresh",
        )
    )
    return user, account
