"""Chat conversation handling: onboarding, compose and reply flows."""

from .contacts import ContactService
from .engine import ConversationEngine, webhook_sender
from .locks import KeyedLock
from .state import (
    Active,
    ComposeStep,
    ConversationContext,
    DraftScratch,
    Onboarding,
    OnboardingState,
)
from .store import ConversationStore, InMemoryConversationStore

__all__ = [
    "Active",
    "ComposeStep",
    "ContactService",
    "ConversationContext",
    "ConversationEngine",
    "ConversationStore",
    "DraftScratch",
    "InMemoryConversationStore",
    "KeyedLock",
    "Onboarding",
    "OnboardingState",
    "webhook_sender",
]
