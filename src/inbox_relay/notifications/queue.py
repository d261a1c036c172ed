"""In-process task queue feeding notification tasks to worker threads."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from typing import Any

from ..core.models import NotificationTask

LOGGER = logging.getLogger(__name__)

POLL_EMAILS_TASK = "poll-emails"
DISPATCH_NOTIFICATION_TASK = "dispatch-notification"

_STOP = object()


class NotificationQueue:
    """Run ``handler`` for each enqueued task on a fixed pool of threads."""

    def __init__(
        self,
        handler: Callable[[NotificationTask], Any],
        *,
        workers: int = 4,
        name: str = DISPATCH_NOTIFICATION_TASK,
    ) -> None:
        if workers <= 0:
            raise ValueError("workers must be positive")
        self._handler = handler
        self._worker_count = workers
        self._name = name
        self._queue: queue.Queue[object] = queue.Queue()
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        """Return ``True`` while worker threads are alive."""
        with self._lock:
            return any(thread.is_alive() for thread in self._threads)

    def enqueue(self, task: NotificationTask) -> None:
        """Schedule ``task`` for processing."""
        self._queue.put(task)

    def start(self) -> None:
        """Spawn the worker threads; calling twice is a no-op."""
        with self._lock:
            if self._threads:
                return
            for index in range(self._worker_count):
                thread = threading.Thread(
                    target=self._work,
                    name=f"{self._name}-{index}",
                    daemon=True,
                )
                thread.start()
                self._threads.append(thread)
        LOGGER.info("Started %s %s worker(s)", self._worker_count, self._name)

    def join(self) -> None:
        """Block until every enqueued task has been processed."""
        self._queue.join()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Finish queued tasks, then stop the workers."""
        with self._lock:
            threads = list(self._threads)
            self._threads.clear()
        for _ in threads:
            self._queue.put(_STOP)
        for thread in threads:
            thread.join(timeout)
        if threads:
            LOGGER.info("Stopped %s worker(s)", self._name)

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._run(item)
            finally:
                self._queue.task_done()

    def _run(self, item: object) -> None:
        try:
            self._handler(item)  # type: ignore[arg-type]
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("Task %s failed: %s", item, exc, exc_info=True)


__all__ = [
    "DISPATCH_NOTIFICATION_TASK",
    "NotificationQueue",
    "POLL_EMAILS_TASK",
]
