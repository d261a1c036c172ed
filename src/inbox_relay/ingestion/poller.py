"""Mail polling orchestration logic."""

from __future__ import annotations

import logging

from ..core.interfaces import (
    MailAuthError,
    MailProvider,
    MailProviderError,
    Repository,
    TaskSink,
)
from ..core.models import (
    EmailAccount,
    EmailMetadata,
    InboundEmail,
    NotificationTask,
    PollReport,
    User,
)
from ..intelligence.categorizer import Categorizer, EmailSample

LOGGER = logging.getLogger(__name__)


class MailPoller:
    """Pull new inbox items for every linked user, categorise and store them."""

    def __init__(
        self,
        mail_provider: MailProvider,
        repository: Repository,
        categorizer: Categorizer,
        task_sink: TaskSink,
        *,
        fetch_limit: int = 10,
    ) -> None:
        if fetch_limit <= 0:
            raise ValueError("fetch_limit must be positive")
        self._mail_provider = mail_provider
        self._repository = repository
        self._categorizer = categorizer
        self._task_sink = task_sink
        self._fetch_limit = fetch_limit

    def poll_cycle(self) -> PollReport:
        """Run one cycle over all users and return a summary."""
        report = PollReport()
        pairs = self._repository.list_users_with_accounts()
        LOGGER.info("Polling emails for %s user(s)", len(pairs))

        for user, account in pairs:
            report.users += 1
            try:
                self._poll_user(user, account, report)
            except MailAuthError as exc:
                LOGGER.warning("User %s needs to re-link their mailbox: %s", user.id, exc)
                report.failed_users.append(user.id)
            except MailProviderError as exc:
                LOGGER.error("Failed to poll emails for user %s: %s", user.id, exc)
                report.failed_users.append(user.id)
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.error(
                    "Unexpected error polling user %s: %s", user.id, exc, exc_info=True
                )
                report.failed_users.append(user.id)

        LOGGER.info(
            "Poll cycle finished: %s ingested, %s skipped, %s enqueued, %s failed user(s)",
            report.ingested,
            report.skipped,
            report.enqueued,
            len(report.failed_users),
        )
        return report

    def _poll_user(self, user: User, account: EmailAccount, report: PollReport) -> None:
        emails = self._mail_provider.fetch_new_emails(account, self._fetch_limit)
        for email in emails:
            if self._repository.email_exists(email.id):
                report.skipped += 1
                continue
            stored = self._ingest(user, email)
            if stored is None:
                report.skipped += 1
                continue
            report.ingested += 1
            if stored.category_id is None or stored.id is None:
                continue
            self._task_sink.enqueue(
                NotificationTask(
                    email_id=stored.id,
                    user_id=user.id,
                    category_id=stored.category_id,
                    is_urgent=stored.is_urgent,
                )
            )
            report.enqueued += 1

    def _ingest(self, user: User, email: InboundEmail) -> EmailMetadata | None:
        verdict = self._categorizer.categorize(
            user.id,
            EmailSample(sender=email.sender, subject=email.subject, snippet=email.snippet),
        )
        category = self._categorizer.get_category_by_name(verdict.category)
        if category is None:
            LOGGER.warning(
                "Category %s is not seeded; storing email %s uncategorised",
                verdict.category,
                email.id,
            )
        # A concurrent cycle may have inserted the same id since the check.
        stored = self._repository.insert_email(
            EmailMetadata(
                id=None,
                user_id=user.id,
                provider_id=email.id,
                thread_id=email.thread_id,
                sender=email.sender,
                subject=email.subject,
                summary=verdict.summary,
                category_id=category.id if category else None,
                is_urgent=verdict.is_urgent,
                received_at=email.received_at,
            )
        )
        if stored is not None:
            LOGGER.info(
                "Saved email %s (%s) for user %s", email.id, verdict.category, user.id
            )
        return stored


__all__ = ["MailPoller"]
