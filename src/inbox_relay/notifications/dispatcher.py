"""Deliver or defer the notification for a single ingested email."""

from __future__ import annotations

import logging
from enum import StrEnum

from ..conversation.locks import KeyedLock
from ..core.datetime_utils import utc_now
from ..core.interfaces import ChatGateway, ChatGatewayError, Repository
from ..core.models import DeliveryMode, NotificationTask
from .templates import render_notification

LOGGER = logging.getLogger(__name__)


class DispatchOutcome(StrEnum):
    """What happened to a dispatch task."""

    SENT = "sent"
    DEFERRED = "deferred"
    SKIPPED = "skipped"


class NotificationDispatcher:
    """Send immediate notifications and leave batched ones for the digest."""

    def __init__(
        self,
        repository: Repository,
        gateway: ChatGateway,
        user_locks: KeyedLock,
    ) -> None:
        self._repository = repository
        self._gateway = gateway
        self._user_locks = user_locks

    def dispatch(self, task: NotificationTask) -> DispatchOutcome:
        """Process one ``dispatch-notification`` task."""
        LOGGER.info("Processing notification for email %s", task.email_id)
        user = self._repository.get_user(task.user_id)
        if user is None or not user.chat_address:
            LOGGER.debug("User %s has no chat address; skipping", task.user_id)
            return DispatchOutcome.SKIPPED

        with self._user_locks.hold(task.user_id):
            email = self._repository.get_email(task.email_id)
            if email is None or email.category_id is None:
                return DispatchOutcome.SKIPPED
            if email.notified:
                LOGGER.debug("Email %s already notified", email.id)
                return DispatchOutcome.SKIPPED
            category = self._repository.get_category(email.category_id)
            if category is None:
                return DispatchOutcome.SKIPPED

            schedule = self._repository.get_schedule(task.user_id, task.category_id)
            send_now = (
                task.is_urgent
                or schedule is None
                or schedule.delivery_mode == DeliveryMode.IMMEDIATE
            )
            if not send_now:
                LOGGER.info("Email %s queued for batch delivery", email.id)
                return DispatchOutcome.DEFERRED

            try:
                self._gateway.send_message(
                    user.chat_address, render_notification(category, email)
                )
            except ChatGatewayError as exc:
                LOGGER.error(
                    "Failed to send notification for email %s: %s", email.id, exc
                )
                return DispatchOutcome.SKIPPED

            self._repository.mark_notified([email.id], utc_now())
            return DispatchOutcome.SENT


__all__ = ["DispatchOutcome", "NotificationDispatcher"]
