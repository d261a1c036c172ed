"""Service container shared by the web app, the CLI and background loops."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

LOGGER = logging.getLogger(__name__)

Factory = Callable[["ServiceContainer"], Any]


class ServiceContainer:
    """Lazy singletons keyed by name; safe to resolve from several threads."""

    def __init__(self) -> None:
        self._factories: dict[str, Factory] = {}
        self._instances: dict[str, Any] = {}
        self._lock = threading.RLock()

    def register(self, key: str, factory: Factory) -> None:
        """Register ``factory`` under ``key``, dropping any cached instance."""
        with self._lock:
            self._factories[key] = factory
            self._instances.pop(key, None)

    def register_instance(self, key: str, instance: Any) -> None:
        """Register an already built service."""
        with self._lock:
            self._factories[key] = lambda _container: instance
            self._instances[key] = instance

    def resolve(self, key: str) -> Any:
        """Return the service for ``key``, building it on first use."""
        with self._lock:
            if key in self._instances:
                return self._instances[key]
            factory = self._factories.get(key)
            if factory is None:
                raise KeyError(f"Service '{key}' is not registered")
            instance = factory(self)
            self._instances[key] = instance
            return instance

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._factories

    def close(self) -> None:
        """Close built services that expose ``close`` in reverse build order."""
        with self._lock:
            instances = list(self._instances.items())
            self._instances.clear()
        for key, instance in reversed(instances):
            closer = getattr(instance, "close", None)
            if not callable(closer):
                continue
            try:
                closer()
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.warning("Failed to close service %s: %s", key, exc)


__all__ = ["ServiceContainer"]
