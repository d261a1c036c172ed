"""Notification dispatch, digests and the timers that drive them."""

from .digest import DigestBatcher
from .dispatcher import DispatchOutcome, NotificationDispatcher
from .queue import DISPATCH_NOTIFICATION_TASK, POLL_EMAILS_TASK, NotificationQueue
from .scheduler import PeriodicJob
from .templates import render_digest, render_notification

__all__ = [
    "DISPATCH_NOTIFICATION_TASK",
    "DigestBatcher",
    "DispatchOutcome",
    "NotificationDispatcher",
    "NotificationQueue",
    "POLL_EMAILS_TASK",
    "PeriodicJob",
    "render_digest",
    "render_notification",
]
