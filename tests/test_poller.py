"""Tests for the mail poller."""

from __future__ import annotations

from datetime import UTC, datetime

from inbox_relay.core.interfaces import MailAuthError, MailProviderError
from inbox_relay.core.models import (
    Classification,
    EmailAccount,
    InboundEmail,
    NotificationTask,
    SentEmail,
)
from inbox_relay.ingestion import MailPoller
from inbox_relay.intelligence import Categorizer, ClassificationError
from inbox_relay.storage import SqliteRepository


class StubMailProvider:
    """Serve canned inbox pages per mailbox, or raise per mailbox."""

    def __init__(self, inbox: dict[str, list[InboundEmail]], errors=None) -> None:
        self._inbox = inbox
        self._errors: dict[str, Exception] = errors or {}
        self.limits: list[int] = []

    def fetch_new_emails(self, account: EmailAccount, limit: int) -> list[InboundEmail]:
        self.limits.append(limit)
        if account.email_address in self._errors:
            raise self._errors[account.email_address]
        return list(self._inbox.get(account.email_address, []))[:limit]

    def scan_sent_emails(self, account: EmailAccount, limit: int) -> list[SentEmail]:
        return []

    def send_message(self, account: EmailAccount, to: str, subject: str, body: str) -> str:
        raise NotImplementedError


class StubClassifier:
    def __init__(self, verdicts: dict[str, Classification]) -> None:
        self._verdicts = verdicts

    def classify(self, sender: str, subject: str, snippet: str) -> Classification:
        del subject, snippet
        if sender not in self._verdicts:
            raise ClassificationError("unknown sender")
        return self._verdicts[sender]

    def extract_rules(self, labeled):
        return []


class ListSink:
    def __init__(self) -> None:
        self.tasks: list[NotificationTask] = []

    def enqueue(self, task: NotificationTask) -> None:
        self.tasks.append(task)


def _inbound(message_id: str, sender: str, subject: str = "Hello") -> InboundEmail:
    return InboundEmail(
        id=message_id,
        thread_id=f"thread-{message_id}",
        sender=sender,
        subject=subject,
        snippet="preview",
        received_at=datetime(2024, 5, 1, 8, 0, tzinfo=UTC),
    )


def _poller(repository: SqliteRepository, provider: StubMailProvider, sink: ListSink):
    classifier = StubClassifier(
        {
            "boss@work.com": Classification("work", 0.9, True, "Deadline moved"),
            "deals@shop.com": Classification("promotions", 0.8, False, "Sale"),
        }
    )
    return MailPoller(
        provider, repository, Categorizer(repository, classifier), sink, fetch_limit=5
    )


def test_poll_cycle_ingests_and_enqueues(repository: SqliteRepository, linked_user) -> None:
    user, _ = linked_user
    provider = StubMailProvider(
        {
            "me@example.com": [
                _inbound("m-1", "boss@work.com"),
                _inbound("m-2", "deals@shop.com"),
                _inbound("m-3", "stranger@nowhere.com", subject="Who dis"),
            ]
        }
    )
    sink = ListSink()

    report = _poller(repository, provider, sink).poll_cycle()

    assert report.users == 1
    assert report.ingested == 3
    assert report.enqueued == 3
    assert report.failed_users == []
    assert provider.limits == [5]
    work = repository.get_category_by_name("work")
    promos = repository.get_category_by_name("promotions")
    assert work is not None and promos is not None
    assert sink.tasks[0] == NotificationTask(
        email_id=sink.tasks[0].email_id,
        user_id=user.id,
        category_id=work.id,
        is_urgent=True,
    )
    # Unclassifiable mail lands in the fallback bucket with its subject as summary.
    fallback = repository.get_email(sink.tasks[2].email_id)
    assert fallback is not None
    assert fallback.category_id == promos.id
    assert fallback.summary == "Who dis"


def test_poll_cycle_skips_known_messages(repository: SqliteRepository, linked_user) -> None:
    provider = StubMailProvider({"me@example.com": [_inbound("m-1", "boss@work.com")]})
    sink = ListSink()
    poller = _poller(repository, provider, sink)

    poller.poll_cycle()
    second = poller.poll_cycle()

    assert second.ingested == 0
    assert second.skipped == 1
    assert len(sink.tasks) == 1


def test_failing_user_does_not_block_others(
    repository: SqliteRepository, linked_user
) -> None:
    user, _ = linked_user
    revoked = repository.get_or_create_user("whatsapp:+15550002222")
    repository.upsert_email_account(
        EmailAccount(
            id=None,
            user_id=revoked.id,
            email_address="revoked@example.com",
            access_token=None,
            refresh_token="gone",
        )
    )
    broken = repository.get_or_create_user("whatsapp:+15550003333")
    repository.upsert_email_account(
        EmailAccount(
            id=None,
            user_id=broken.id,
            email_address="broken@example.com",
            access_token="x",
            refresh_token="y",
        )
    )
    provider = StubMailProvider(
        {"me@example.com": [_inbound("m-1", "deals@shop.com")]},
        errors={
            "revoked@example.com": MailAuthError("invalid_grant"),
            "broken@example.com": MailProviderError("500"),
        },
    )
    sink = ListSink()

    report = _poller(repository, provider, sink).poll_cycle()

    assert report.users == 3
    assert report.ingested == 1
    assert sorted(report.failed_users) == sorted([revoked.id, broken.id])
    assert [task.user_id for task in sink.tasks] == [user.id]
