"""Digest batching for categories delivered on a schedule."""

from __future__ import annotations

import logging
from datetime import datetime

from ..conversation.locks import KeyedLock
from ..core.datetime_utils import format_time_of_day, local_now, sunday_based_weekday
from ..core.interfaces import ChatGateway, ChatGatewayError, Repository
from ..core.models import DeliveryMode, NotificationSchedule
from .templates import render_digest

LOGGER = logging.getLogger(__name__)


class DigestBatcher:
    """Send one digest per due (user, category) schedule."""

    def __init__(
        self,
        repository: Repository,
        gateway: ChatGateway,
        user_locks: KeyedLock,
    ) -> None:
        self._repository = repository
        self._gateway = gateway
        self._user_locks = user_locks

    def batch_cycle(self, now: datetime | None = None) -> int:
        """Send digests for schedules due at ``now``; return how many were sent.

        Schedule times are wall-clock ``HH:MM`` values in the local timezone.
        """
        now = now or local_now()
        current_time = format_time_of_day(now)
        LOGGER.info("Checking digests for %s", current_time)

        sent = 0
        for schedule in self._repository.list_schedules_at(current_time):
            if not _is_due(schedule, now, current_time):
                continue
            try:
                if self.send_digest(schedule.user_id, schedule.category_id, now):
                    sent += 1
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.error(
                    "Failed to process digest for user %s: %s",
                    schedule.user_id,
                    exc,
                    exc_info=True,
                )
        return sent

    def send_digest(
        self, user_id: int, category_id: int, now: datetime | None = None
    ) -> bool:
        """Send every unnotified email of the pair in one message.

        Returns ``True`` when a digest went out. A failed send leaves the
        emails unnotified so the next due cycle picks them up.
        """
        user = self._repository.get_user(user_id)
        category = self._repository.get_category(category_id)
        if user is None or category is None or not user.chat_address:
            return False

        with self._user_locks.hold(user_id):
            emails = self._repository.list_unnotified(user_id, category_id)
            if not emails:
                LOGGER.info(
                    "No unnotified emails for user %s in category %s",
                    user_id,
                    category.name,
                )
                return False

            LOGGER.info(
                "Generating digest for user %s, category %s (%s emails)",
                user_id,
                category.name,
                len(emails),
            )
            try:
                self._gateway.send_message(
                    user.chat_address, render_digest(category, emails)
                )
            except ChatGatewayError as exc:
                LOGGER.error("Failed to send digest for user %s: %s", user_id, exc)
                return False

            self._repository.mark_notified(
                [email.id for email in emails if email.id is not None],
                now or local_now(),
            )
        LOGGER.info("Digest sent to user %s for category %s", user_id, category.name)
        return True


def _is_due(schedule: NotificationSchedule, now: datetime, current_time: str) -> bool:
    if schedule.delivery_mode == DeliveryMode.IMMEDIATE:
        return False
    if schedule.delivery_mode == DeliveryMode.BATCHED_WEEKLY:
        return (
            schedule.weekly_day == sunday_based_weekday(now)
            and schedule.weekly_time == current_time
        )
    return current_time in (schedule.time1, schedule.time2)


__all__ = ["DigestBatcher"]
