"""Assemble the application's services into a container."""

from __future__ import annotations

from .conversation import ContactService, ConversationEngine, KeyedLock
from .core.config import AppSettings
from .core.container import ServiceContainer
from .ingestion import MailPoller
from .intelligence import (
    Categorizer,
    DraftingService,
    EmailClassifier,
    OllamaClient,
    StyleAnalyzer,
    WhisperTranscriber,
)
from .notifications import DigestBatcher, NotificationDispatcher, NotificationQueue
from .storage import SqliteRepository
from .transport import GmailClient, TwilioGateway

SETTINGS = "settings"
REPOSITORY = "repository"
LLM = "llm"
CLASSIFIER = "classifier"
CATEGORIZER = "categorizer"
MAIL_PROVIDER = "mail_provider"
CHAT_GATEWAY = "chat_gateway"
TRANSCRIBER = "transcriber"
STYLE_ANALYZER = "style_analyzer"
DRAFTER = "drafter"
CONTACTS = "contacts"
USER_LOCKS = "user_locks"
DISPATCHER = "dispatcher"
NOTIFICATION_QUEUE = "notification_queue"
POLLER = "poller"
DIGEST = "digest"
ENGINE = "engine"


def build_container(settings: AppSettings) -> ServiceContainer:
    """Register every service for ``settings``; nothing is built until resolved."""
    container = ServiceContainer()
    container.register_instance(SETTINGS, settings)

    container.register(REPOSITORY, lambda c: SqliteRepository(settings.storage))
    container.register(LLM, lambda c: OllamaClient(settings.llm))
    container.register(
        CLASSIFIER,
        lambda c: EmailClassifier(c.resolve(LLM), temperature=settings.llm.temperature),
    )
    container.register(
        CATEGORIZER,
        lambda c: Categorizer(c.resolve(REPOSITORY), c.resolve(CLASSIFIER)),
    )
    container.register(
        MAIL_PROVIDER,
        lambda c: GmailClient(
            settings.gmail,
            on_token_refresh=c.resolve(REPOSITORY).update_account_tokens,
        ),
    )
    container.register(CHAT_GATEWAY, lambda c: TwilioGateway(settings.chat))
    container.register(TRANSCRIBER, lambda c: WhisperTranscriber(settings.transcription))
    container.register(
        STYLE_ANALYZER,
        lambda c: StyleAnalyzer(
            c.resolve(REPOSITORY),
            c.resolve(MAIL_PROVIDER),
            c.resolve(LLM),
            sent_scan_limit=settings.sync.sent_scan_limit,
            temperature=settings.llm.temperature,
        ),
    )
    container.register(
        DRAFTER,
        lambda c: DraftingService(
            c.resolve(LLM), temperature=settings.llm.draft_temperature
        ),
    )
    container.register(
        CONTACTS,
        lambda c: ContactService(c.resolve(REPOSITORY), c.resolve(MAIL_PROVIDER)),
    )
    container.register(USER_LOCKS, lambda c: KeyedLock())
    container.register(
        DISPATCHER,
        lambda c: NotificationDispatcher(
            c.resolve(REPOSITORY), c.resolve(CHAT_GATEWAY), c.resolve(USER_LOCKS)
        ),
    )
    container.register(
        NOTIFICATION_QUEUE,
        lambda c: NotificationQueue(
            c.resolve(DISPATCHER).dispatch, workers=settings.dispatch.workers
        ),
    )
    container.register(
        POLLER,
        lambda c: MailPoller(
            c.resolve(MAIL_PROVIDER),
            c.resolve(REPOSITORY),
            c.resolve(CATEGORIZER),
            c.resolve(NOTIFICATION_QUEUE),
            fetch_limit=settings.sync.fetch_limit,
        ),
    )
    container.register(
        DIGEST,
        lambda c: DigestBatcher(
            c.resolve(REPOSITORY), c.resolve(CHAT_GATEWAY), c.resolve(USER_LOCKS)
        ),
    )
    container.register(
        ENGINE,
        lambda c: ConversationEngine(
            repository=c.resolve(REPOSITORY),
            gateway=c.resolve(CHAT_GATEWAY),
            mail_provider=c.resolve(MAIL_PROVIDER),
            categorizer=c.resolve(CATEGORIZER),
            style_analyzer=c.resolve(STYLE_ANALYZER),
            drafter=c.resolve(DRAFTER),
            contacts=c.resolve(CONTACTS),
            transcriber=c.resolve(TRANSCRIBER),
            link_url=settings.chat.link_url,
            inbox_scan_limit=settings.sync.inbox_scan_limit,
        ),
    )
    return container


__all__ = [
    "CATEGORIZER",
    "CHAT_GATEWAY",
    "DIGEST",
    "ENGINE",
    "NOTIFICATION_QUEUE",
    "POLLER",
    "REPOSITORY",
    "SETTINGS",
    "build_container",
]
