"""Conversation engine driving onboarding and compose flows over chat."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..core.interfaces import (
    ChatGateway,
    ChatGatewayError,
    MailProvider,
    MailProviderError,
    Repository,
    Transcriber,
    TranscriptionError,
)
from ..core.models import (
    Contact,
    DeliveryMode,
    NotificationSchedule,
    Preference,
    User,
)
from ..intelligence.categorizer import Categorizer, EmailSample
from ..intelligence.drafter import DraftingError, DraftingService
from ..intelligence.style import StyleAnalyzer
from . import messages
from .contacts import ContactService
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

LOGGER = logging.getLogger(__name__)

LINK_CONFIRMATIONS = frozenset({"done", "connected", "linked"})
COMPOSE_COMMANDS = frozenset({"compose", "new email"})
PROMO_CHOICES = {"1": "weekly", "2": "daily", "3": "none", "4": "immediate"}

DAILY_TIMES = ("09:00", "17:00")
PROMO_DAILY_TIME = "18:00"
PROMO_WEEKLY_DAY = 1  # Monday, with Sunday as 0
PROMO_WEEKLY_TIME = "09:00"
VOICE_NOTE_FILENAME = "voice_note.ogg"


class ConversationEngine:
    """Advance each user's conversation one inbound message at a time."""

    # pylint: disable=too-many-instance-attributes
    def __init__(
        self,
        *,
        repository: Repository,
        gateway: ChatGateway,
        mail_provider: MailProvider,
        categorizer: Categorizer,
        style_analyzer: StyleAnalyzer,
        drafter: DraftingService,
        contacts: ContactService,
        transcriber: Transcriber,
        link_url: str,
        store: ConversationStore | None = None,
        locks: KeyedLock | None = None,
        inbox_scan_limit: int = 20,
    ) -> None:
        # pylint: disable=too-many-arguments
        self._repository = repository
        self._gateway = gateway
        self._mail_provider = mail_provider
        self._categorizer = categorizer
        self._style_analyzer = style_analyzer
        self._drafter = drafter
        self._contacts = contacts
        self._transcriber = transcriber
        self._link_url = link_url
        self._store = store if store is not None else InMemoryConversationStore()
        self._locks = locks if locks is not None else KeyedLock()
        self._inbox_scan_limit = inbox_scan_limit

    # Entry points ------------------------------------------------------------
    def handle_webhook(self, payload: Mapping[str, Any]) -> bool:
        """Process an inbound webhook body; return ``False`` when it was ignored.

        Accepts Twilio field names (``From``/``Body``/``MediaUrl0``) and the
        lowercase ``from``/``message`` pair used by local test clients.
        """
        address = webhook_sender(payload)
        text = payload.get("Body") or payload.get("message") or ""
        media_url = payload.get("MediaUrl0") or None
        media_type = payload.get("MediaContentType0") or None

        if not address or (not text and not media_url):
            LOGGER.warning("Invalid webhook payload - missing from or message/media")
            return False
        self.handle_message(address, str(text), media_url, media_type)
        return True

    def handle_message(
        self,
        address: str,
        text: str,
        media_url: str | None = None,
        media_type: str | None = None,
    ) -> ConversationContext:
        """Run one transition for ``address`` and return the resulting context.

        Messages from the same address are processed strictly in order.
        """
        with self._locks.hold(address):
            LOGGER.info("Processing message from %s: %s", address, text)
            context = self._resolve_context(address)
            if isinstance(context, Active):
                updated = self._handle_active(
                    address, context, text.strip(), media_url, media_type
                )
            else:
                updated = self._handle_onboarding(address, context, text.strip().lower())
            self._store.put(address, updated)
            return updated

    def context_for(self, address: str) -> ConversationContext | None:
        """Return the stored context for ``address`` without changing it."""
        return self._store.get(address)

    # Context resolution ------------------------------------------------------
    def _resolve_context(self, address: str) -> ConversationContext:
        context = self._store.get(address)
        if context is not None:
            return context

        user = self._repository.get_user_by_address(address)
        if user is None:
            return Onboarding(stage=OnboardingState.NEW)
        if self._repository.get_email_account(user.id) is None:
            return Onboarding(stage=OnboardingState.NEW, user_id=user.id)
        preference = self._repository.get_preference(user.id)
        if preference is not None and preference.onboarding_completed:
            return Active(user_id=user.id)
        return Onboarding(
            stage=OnboardingState.LINKED,
            user_id=user.id,
            promo_handling=preference.promo_handling if preference else None,
        )

    # Onboarding --------------------------------------------------------------
    def _handle_onboarding(
        self, address: str, context: Onboarding, text: str
    ) -> ConversationContext:
        stage = context.stage
        if stage == OnboardingState.NEW:
            return self._welcome(address)
        if stage == OnboardingState.AWAITING_LINK:
            return self._await_link(address, context, text)
        if stage == OnboardingState.LINKED:
            return self._on_linked(address, context)
        if stage == OnboardingState.COLLECTING_PROMO_PREF:
            return self._collect_promo(address, context, text)
        if stage == OnboardingState.COLLECTING_SCHEDULE:
            return self._collect_schedule(address, context, text)
        if stage == OnboardingState.COLLECTING_STYLE:
            return self._finish_onboarding(address, context)
        raise ValueError(f"Unhandled onboarding stage {stage}")

    def _welcome(self, address: str) -> Onboarding:
        user = self._repository.get_or_create_user(address)
        self._send(address, messages.welcome(self._link_url))
        return Onboarding(stage=OnboardingState.AWAITING_LINK, user_id=user.id)

    def _await_link(self, address: str, context: Onboarding, text: str) -> ConversationContext:
        if text not in LINK_CONFIRMATIONS:
            self._send(address, messages.LINK_REPROMPT)
            return context

        user = self._repository.get_user_by_address(address)
        if user is None or self._repository.get_email_account(user.id) is None:
            self._send(address, messages.LINK_PENDING)
            return context

        linked = Onboarding(stage=OnboardingState.LINKED, user_id=user.id)
        return self._on_linked(address, linked)

    def _on_linked(self, address: str, context: Onboarding) -> Onboarding:
        user_id = self._require_user(address, context).id
        account = self._repository.get_email_account(user_id)
        self._send(address, messages.SCANNING)

        if account is not None:
            try:
                self._style_analyzer.learn_from_sent_mail(user_id, account)
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.error("Failed to scan sent emails for user %s: %s", user_id, exc)

            if self._inbox_scan_limit:
                try:
                    inbox = self._mail_provider.fetch_new_emails(
                        account, self._inbox_scan_limit
                    )
                    self._categorizer.scan_inbox_and_learn(
                        user_id,
                        [
                            EmailSample(
                                sender=item.sender,
                                subject=item.subject,
                                snippet=item.snippet,
                            )
                            for item in inbox
                        ],
                    )
                except Exception as exc:  # pylint: disable=broad-except
                    LOGGER.error("Failed to scan inbox for user %s: %s", user_id, exc)

        self._send(address, messages.PROMO_MENU)
        return Onboarding(stage=OnboardingState.COLLECTING_PROMO_PREF, user_id=user_id)

    def _collect_promo(self, address: str, context: Onboarding, text: str) -> Onboarding:
        promo_handling = PROMO_CHOICES.get(text)
        if promo_handling is None:
            self._send(address, messages.PROMO_REPROMPT)
            return context
        self._send(address, messages.SCHEDULE_MENU)
        return Onboarding(
            stage=OnboardingState.COLLECTING_SCHEDULE,
            user_id=context.user_id,
            promo_handling=promo_handling,
        )

    def _collect_schedule(self, address: str, context: Onboarding, text: str) -> Active:
        if not (text == "1" or "yes" in text):
            self._send(address, messages.CUSTOM_SCHEDULE_UNSUPPORTED)
        return self._finish_onboarding(address, context)

    def _finish_onboarding(self, address: str, context: Onboarding) -> Active:
        user_id = self._require_user(address, context).id
        existing = self._repository.get_preference(user_id)
        promo_handling = context.promo_handling or (
            existing.promo_handling if existing else None
        )
        self._repository.upsert_preference(
            Preference(
                user_id=user_id,
                promo_handling=promo_handling,
                onboarding_completed=True,
                inbox_scanned=existing.inbox_scanned if existing else False,
            )
        )
        self._create_default_schedules(user_id, promo_handling)
        self._send(address, messages.ONBOARDING_COMPLETE)
        LOGGER.info("User %s finished onboarding", user_id)
        return Active(user_id=user_id)

    def _create_default_schedules(self, user_id: int, promo_handling: str | None) -> None:
        for name in ("work", "personal"):
            category = self._categorizer.get_category_by_name(name)
            if category is None:
                continue
            self._repository.create_schedule_if_absent(
                NotificationSchedule(
                    id=None,
                    user_id=user_id,
                    category_id=category.id,
                    delivery_mode=DeliveryMode.BATCHED_DAILY,
                    time1=DAILY_TIMES[0],
                    time2=DAILY_TIMES[1],
                )
            )

        promotions = self._categorizer.get_category_by_name("promotions")
        if promotions is None:
            return
        if promo_handling == "weekly":
            schedule = NotificationSchedule(
                id=None,
                user_id=user_id,
                category_id=promotions.id,
                delivery_mode=DeliveryMode.BATCHED_WEEKLY,
                weekly_day=PROMO_WEEKLY_DAY,
                weekly_time=PROMO_WEEKLY_TIME,
            )
        elif promo_handling == "daily":
            schedule = NotificationSchedule(
                id=None,
                user_id=user_id,
                category_id=promotions.id,
                delivery_mode=DeliveryMode.BATCHED_DAILY,
                time1=PROMO_DAILY_TIME,
            )
        else:
            schedule = NotificationSchedule(
                id=None,
                user_id=user_id,
                category_id=promotions.id,
                delivery_mode=DeliveryMode.IMMEDIATE,
            )
        self._repository.create_schedule_if_absent(schedule)

    # Active users ------------------------------------------------------------
    def _handle_active(
        self,
        address: str,
        context: Active,
        text: str,
        media_url: str | None,
        media_type: str | None,
    ) -> Active:
        if context.step is ComposeStep.COMPOSING_TO:
            return self._choose_recipient(address, context, text)
        if context.step is ComposeStep.COMPOSING_BODY:
            return self._write_draft(address, context, text, media_url, media_type)
        if context.step is ComposeStep.CONFIRMING_DRAFT:
            return self._confirm_draft(address, context, text)

        command = text.lower()
        if command in COMPOSE_COMMANDS:
            context.step = ComposeStep.COMPOSING_TO
            context.draft = DraftScratch()
            self._send(address, messages.ASK_RECIPIENT)
            return context
        if command == "reply":
            return self._start_reply(address, context)
        self._send(address, messages.help_text(text))
        return context

    def _start_reply(self, address: str, context: Active) -> Active:
        last = self._repository.latest_notified(context.user_id)
        if last is None:
            self._send(address, messages.NOTHING_TO_REPLY)
            return context
        context.step = ComposeStep.COMPOSING_BODY
        context.draft = DraftScratch(
            to=last.sender,
            subject=f"Re: {last.subject}",
            reply_to_id=last.id,
            context=(
                f'Replying to email from {last.sender} with subject "{last.subject}". '
                f"Original snippet: {last.summary or ''}"
            ),
        )
        self._send(address, messages.replying_to(last))
        return context

    def _choose_recipient(self, address: str, context: Active, text: str) -> Active:
        try:
            matches = self._contacts.search_contacts(context.user_id, text)
        except MailProviderError as exc:
            LOGGER.error("Contact search failed for user %s: %s", context.user_id, exc)
            matches = None

        chosen: Contact | None = matches[0] if matches and len(matches) == 1 else None
        if chosen is not None:
            recipient = chosen.email
        elif "@" in text:
            recipient = text
        elif matches is None:
            self._send(address, messages.CONTACT_LOOKUP_FAILED)
            return context
        elif not matches:
            self._send(address, messages.no_contacts(text))
            return context
        else:
            self._send(address, messages.multiple_contacts(matches))
            return context

        context.draft.to = recipient
        context.step = ComposeStep.COMPOSING_BODY
        self._send(address, messages.drafting_to(recipient, chosen))
        return context

    def _write_draft(
        self,
        address: str,
        context: Active,
        text: str,
        media_url: str | None,
        media_type: str | None,
    ) -> Active:
        instruction = text
        if media_url and media_type and media_type.startswith("audio/"):
            self._send(address, messages.TRANSCRIBING)
            try:
                audio = self._gateway.download_media(media_url)
                instruction = self._transcriber.transcribe(audio, VOICE_NOTE_FILENAME)
            except (ChatGatewayError, TranscriptionError) as exc:
                LOGGER.error("Failed to process voice note: %s", exc)
                self._send(address, messages.VOICE_FAILED)
                return context

        if not instruction:
            self._send(address, messages.ASK_BODY)
            return context

        style = self._style_analyzer.style_for(context.user_id)
        scratch = context.draft
        try:
            draft = self._drafter.generate_draft(
                instruction, style, scratch.context or f"Email to {scratch.to}"
            )
        except DraftingError as exc:
            LOGGER.error("Drafting failed for user %s: %s", context.user_id, exc)
            self._send(address, messages.DRAFT_FAILED)
            return context

        scratch.subject = scratch.subject or draft.subject
        scratch.body = draft.body
        context.step = ComposeStep.CONFIRMING_DRAFT
        self._send(address, messages.draft_preview(scratch.subject, scratch.body))
        return context

    def _confirm_draft(self, address: str, context: Active, text: str) -> Active:
        scratch = context.draft
        if text.lower() == "send":
            account = self._repository.get_email_account(context.user_id)
            try:
                if account is None or not scratch.to:
                    raise MailProviderError("No linked account or recipient")
                self._mail_provider.send_message(
                    account, scratch.to, scratch.subject or "", scratch.body or ""
                )
            except MailProviderError as exc:
                LOGGER.error("Failed to send email for user %s: %s", context.user_id, exc)
                self._send(address, messages.SEND_FAILED)
                return context
            self._send(address, messages.SENT)
            context.reset()
            return context

        style = self._style_analyzer.style_for(context.user_id)
        try:
            revised = self._drafter.revise_draft(scratch.body or "", text, style)
        except DraftingError as exc:
            LOGGER.error("Revision failed for user %s: %s", context.user_id, exc)
            self._send(address, messages.REVISION_FAILED)
            return context
        scratch.body = revised
        self._send(
            address,
            messages.draft_preview(scratch.subject or "", revised, revised=True),
        )
        return context

    # Helpers -----------------------------------------------------------------
    def _require_user(self, address: str, context: Onboarding) -> User:
        if context.user_id is not None:
            user = self._repository.get_user(context.user_id)
            if user is not None:
                return user
        return self._repository.get_or_create_user(address)

    def _send(self, address: str, text: str) -> None:
        try:
            self._gateway.send_message(address, text)
        except ChatGatewayError as exc:
            LOGGER.error("Failed to deliver reply to %s: %s", address, exc)


def webhook_sender(payload: Mapping[str, Any]) -> str | None:
    """Return the chat address a webhook body was sent from, if any."""
    address = payload.get("From") or payload.get("from")
    return str(address) if address else None


__all__ = ["ConversationEngine", "webhook_sender"]
