"""Tests for digest batching."""

from __future__ import annotations

import os
import time
from datetime import UTC, datetime, timedelta

import pytest

from inbox_relay.conversation.locks import KeyedLock
from inbox_relay.core.datetime_utils import (
    format_time_of_day,
    local_now,
    sunday_based_weekday,
)
from inbox_relay.core.interfaces import ChatGatewayError
from inbox_relay.core.models import DeliveryMode, EmailMetadata, NotificationSchedule
from inbox_relay.notifications import DigestBatcher
from inbox_relay.storage import SqliteRepository

# 2024-05-05 is a Sunday, 2024-05-06 a Monday.
SUNDAY_NINE = datetime(2024, 5, 5, 9, 0, tzinfo=UTC)
MONDAY_NINE = datetime(2024, 5, 6, 9, 0, tzinfo=UTC)


class RecordingGateway:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str]] = []
        self._fail = fail

    def send_message(self, to: str, text: str) -> None:
        if self._fail:
            raise ChatGatewayError("boom")
        self.sent.append((to, text))

    def download_media(self, url: str) -> bytes:
        raise NotImplementedError


def _category_id(repository: SqliteRepository, name: str) -> int:
    category = repository.get_category_by_name(name)
    assert category is not None
    return category.id


def _add_emails(repository: SqliteRepository, user_id: int, category: str, count: int):
    category_id = _category_id(repository, category)
    stored = []
    for index in range(count):
        email = repository.insert_email(
            EmailMetadata(
                id=None,
                user_id=user_id,
                provider_id=f"{category}-{index}",
                thread_id=None,
                sender=f"sender{index}@example.com",
                subject=f"Subject {index}",
                summary=f"Summary {index}",
                category_id=category_id,
                is_urgent=False,
            )
        )
        assert email is not None
        stored.append(email)
    return stored


def _schedule(repository: SqliteRepository, user_id: int, category: str, **fields) -> None:
    repository.create_schedule_if_absent(
        NotificationSchedule(
            id=None,
            user_id=user_id,
            category_id=_category_id(repository, category),
            **fields,
        )
    )


def test_sunday_is_day_zero() -> None:
    assert sunday_based_weekday(SUNDAY_NINE) == 0
    assert sunday_based_weekday(MONDAY_NINE) == 1


def test_daily_schedule_sends_one_digest(repository: SqliteRepository, linked_user) -> None:
    user, _ = linked_user
    _schedule(
        repository,
        user.id,
        "work",
        delivery_mode=DeliveryMode.BATCHED_DAILY,
        time1="09:00",
        time2="17:00",
    )
    emails = _add_emails(repository, user.id, "work", 3)
    gateway = RecordingGateway()

    sent = DigestBatcher(repository, gateway, KeyedLock()).batch_cycle(MONDAY_NINE)

    assert sent == 1
    assert len(gateway.sent) == 1
    to, text = gateway.sent[0]
    assert to == user.chat_address
    assert text.startswith("*Work Digest* 📨\n\n")
    assert text.count("• ") == 3
    work_id = _category_id(repository, "work")
    assert repository.list_unnotified(user.id, work_id) == []
    reloaded = repository.get_email(emails[0].id)
    assert reloaded is not None and reloaded.notified_at == MONDAY_NINE


def test_second_daily_slot_also_fires(repository: SqliteRepository, linked_user) -> None:
    user, _ = linked_user
    _schedule(
        repository,
        user.id,
        "personal",
        delivery_mode=DeliveryMode.BATCHED_DAILY,
        time1="09:00",
        time2="17:00",
    )
    _add_emails(repository, user.id, "personal", 1)
    gateway = RecordingGateway()

    sent = DigestBatcher(repository, gateway, KeyedLock()).batch_cycle(
        datetime(2024, 5, 6, 17, 0, tzinfo=UTC)
    )

    assert sent == 1


def test_weekly_schedule_fires_only_on_its_day(
    repository: SqliteRepository, linked_user
) -> None:
    user, _ = linked_user
    _schedule(
        repository,
        user.id,
        "promotions",
        delivery_mode=DeliveryMode.BATCHED_WEEKLY,
        weekly_day=1,
        weekly_time="09:00",
    )
    _add_emails(repository, user.id, "promotions", 2)
    gateway = RecordingGateway()
    batcher = DigestBatcher(repository, gateway, KeyedLock())

    assert batcher.batch_cycle(SUNDAY_NINE) == 0
    assert batcher.batch_cycle(MONDAY_NINE) == 1
    assert "*Promotions Digest*" in gateway.sent[0][1]


def test_immediate_and_empty_schedules_send_nothing(
    repository: SqliteRepository, linked_user
) -> None:
    user, _ = linked_user
    _schedule(
        repository,
        user.id,
        "apps",
        delivery_mode=DeliveryMode.IMMEDIATE,
        time1="09:00",
    )
    _add_emails(repository, user.id, "apps", 1)
    _schedule(
        repository,
        user.id,
        "work",
        delivery_mode=DeliveryMode.BATCHED_DAILY,
        time1="09:00",
        time2="17:00",
    )
    gateway = RecordingGateway()

    sent = DigestBatcher(repository, gateway, KeyedLock()).batch_cycle(MONDAY_NINE)

    assert sent == 0
    assert gateway.sent == []


def test_failed_send_keeps_emails_for_next_cycle(
    repository: SqliteRepository, linked_user
) -> None:
    user, _ = linked_user
    _schedule(
        repository,
        user.id,
        "work",
        delivery_mode=DeliveryMode.BATCHED_DAILY,
        time1="09:00",
        time2="17:00",
    )
    _add_emails(repository, user.id, "work", 2)
    work_id = _category_id(repository, "work")

    failed = DigestBatcher(repository, RecordingGateway(fail=True), KeyedLock())
    assert failed.batch_cycle(MONDAY_NINE) == 0
    assert len(repository.list_unnotified(user.id, work_id)) == 2

    gateway = RecordingGateway()
    assert DigestBatcher(repository, gateway, KeyedLock()).send_digest(user.id, work_id)
    assert repository.list_unnotified(user.id, work_id) == []


@pytest.fixture
def sao_paulo_timezone():
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "America/Sao_Paulo"
    time.tzset()
    yield
    if previous is None:
        del os.environ["TZ"]
    else:
        os.environ["TZ"] = previous
    time.tzset()


def test_schedule_times_follow_local_wall_clock(
    repository: SqliteRepository, linked_user, sao_paulo_timezone
) -> None:
    user, _ = linked_user
    now = local_now()
    assert now.utcoffset() == timedelta(hours=-3)
    # Both minutes are scheduled so a minute rollover mid-test still matches.
    _schedule(
        repository,
        user.id,
        "work",
        delivery_mode=DeliveryMode.BATCHED_DAILY,
        time1=format_time_of_day(now),
        time2=format_time_of_day(now + timedelta(minutes=1)),
    )
    emails = _add_emails(repository, user.id, "work", 1)
    gateway = RecordingGateway()

    sent = DigestBatcher(repository, gateway, KeyedLock()).batch_cycle()

    assert sent == 1
    reloaded = repository.get_email(emails[0].id)
    assert reloaded is not None and reloaded.notified_at is not None
    assert reloaded.notified_at - now < timedelta(minutes=2)
