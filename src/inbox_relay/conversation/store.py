"""Storage for conversation contexts keyed by chat address."""

from __future__ import annotations

import threading
from typing import Protocol

from .state import ConversationContext


class ConversationStore(Protocol):
    """Keeps the context of every active conversation."""

    def get(self, address: str) -> ConversationContext | None:
        """Return the context for ``address`` if one is held."""
        raise NotImplementedError

    def put(self, address: str, context: ConversationContext) -> None:
        """Store ``context`` for ``address``."""
        raise NotImplementedError

    def delete(self, address: str) -> None:
        """Forget ``address``."""
        raise NotImplementedError


class InMemoryConversationStore:
    """Process-local store; contexts are lost on restart."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._contexts: dict[str, ConversationContext] = {}

    def get(self, address: str) -> ConversationContext | None:
        with self._lock:
            return self._contexts.get(address)

    def put(self, address: str, context: ConversationContext) -> None:
        with self._lock:
            self._contexts[address] = context

    def delete(self, address: str) -> None:
        with self._lock:
            self._contexts.pop(address, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)


__all__ = ["ConversationStore", "InMemoryConversationStore"]
