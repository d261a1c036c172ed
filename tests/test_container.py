"""Tests for the service container and application wiring."""

from __future__ import annotations

from pathlib import Path

import pytest

from inbox_relay.core import AppSettings, ServiceContainer
from inbox_relay.core.config import StorageSettings
from inbox_relay.notifications import NotificationDispatcher, NotificationQueue
from inbox_relay.wiring import (
    CATEGORIZER,
    DIGEST,
    NOTIFICATION_QUEUE,
    POLLER,
    REPOSITORY,
    build_container,
)


class Closable:
    def __init__(self, name: str, log: list[str], fail: bool = False) -> None:
        self._name = name
        self._log = log
        self._fail = fail

    def close(self) -> None:
        self._log.append(self._name)
        if self._fail:
            raise RuntimeError("close failed")


def test_resolve_builds_once_and_closes_in_reverse() -> None:
    log: list[str] = []
    builds: list[str] = []
    container = ServiceContainer()

    def make(name: str, fail: bool = False):
        def factory(_container: ServiceContainer) -> Closable:
            builds.append(name)
            return Closable(name, log, fail)

        return factory

    container.register("a", make("a", fail=True))
    container.register("b", make("b"))

    assert container.resolve("a") is container.resolve("a")
    container.resolve("b")
    container.close()

    assert builds == ["a", "b"]
    assert log == ["b", "a"]
    assert "a" in container
    with pytest.raises(KeyError):
        container.resolve("missing")


def test_build_container_shares_services(tmp_path: Path) -> None:
    settings = AppSettings(storage=StorageSettings(db_path=tmp_path / "wired.db"))
    container = build_container(settings)
    try:
        queue = container.resolve(NOTIFICATION_QUEUE)
        poller = container.resolve(POLLER)
        categorizer = container.resolve(CATEGORIZER)
        container.resolve(DIGEST)
        categorizer.initialize_categories()

        assert isinstance(queue, NotificationQueue)
        assert poller._task_sink is queue  # pylint: disable=protected-access
        assert isinstance(
            queue._handler.__self__, NotificationDispatcher  # pylint: disable=protected-access
        )
        assert len(container.resolve(REPOSITORY).list_categories()) == 5
    finally:
        container.close()
