"""Asyncio timer loops driving the poll and digest cycles."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

LOGGER = logging.getLogger(__name__)


class PeriodicJob:
    """Run a blocking ``func`` in a worker thread every ``interval_seconds``."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        func: Callable[[], Any],
        *,
        run_immediately: bool = False,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self._func = func
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        LOGGER.info(
            "Scheduled %s every %s second(s)", self.name, self.interval_seconds
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for it to unwind."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        LOGGER.info("Stopped %s", self.name)

    async def run_once(self) -> Any:
        """Run ``func`` in a thread; failures are logged, never raised."""
        try:
            return await asyncio.to_thread(self._func)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("%s failed: %s", self.name, exc, exc_info=True)
            return None

    async def _loop(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self.interval_seconds)
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)


__all__ = ["PeriodicJob"]
