"""Tests for writing-style analysis and contact lookup."""

from __future__ import annotations

import json

from inbox_relay.conversation.contacts import ContactService, collect_contacts
from inbox_relay.core.models import EmailAccount, InboundEmail, SentEmail, WritingStyle
from inbox_relay.intelligence import LLMError, StyleAnalyzer, default_style
from inbox_relay.storage import SqliteRepository


class StubLLM:
    provider_id = "stub"

    def __init__(self, response: str | Exception) -> None:
        self._response = response
        self.prompts: list[str] = []

    def generate(
        self, prompt: str, *, temperature: float | None = None, json_output: bool = False
    ) -> str:
        del temperature, json_output
        self.prompts.append(prompt)
        if isinstance(self._response, Exception):
            raise self._response
        return self._response


class SentMailbox:
    def __init__(self, sent: list[SentEmail]) -> None:
        self._sent = sent
        self.limits: list[int] = []

    def fetch_new_emails(self, account: EmailAccount, limit: int) -> list[InboundEmail]:
        return []

    def scan_sent_emails(self, account: EmailAccount, limit: int) -> list[SentEmail]:
        self.limits.append(limit)
        return self._sent[:limit]

    def send_message(self, account: EmailAccount, to: str, subject: str, body: str) -> str:
        raise NotImplementedError


def _sent(to: str, body: str = "Hi,\n\nThanks!\n\nBest") -> SentEmail:
    return SentEmail(sender="me@example.com", to=to, subject="Re: hi", body=body)


STYLE_JSON = json.dumps(
    {
        "tone": "Casual",
        "avgParagraphLength": 42.5,
        "usesGreeting": True,
        "greetingStyle": "Hey",
        "usesSignature": False,
        "signatureStyle": "",
        "formalityScore": 0.2,
    }
)


def test_learn_from_sent_mail_stores_profile(
    repository: SqliteRepository, linked_user
) -> None:
    user, account = linked_user
    mailbox = SentMailbox([_sent("a@x.com", body=f"Body {i}") for i in range(12)])
    llm = StubLLM(STYLE_JSON)
    analyzer = StyleAnalyzer(repository, mailbox, llm, sent_scan_limit=50)

    profile = analyzer.learn_from_sent_mail(user.id, account)

    assert profile is not None
    assert mailbox.limits == [50]
    assert profile.style.tone == "casual"
    assert profile.style.avg_paragraph_length == 42
    assert profile.style.signature_style == "Best"
    assert profile.sample_texts == tuple(f"Body {i}" for i in range(5))
    assert "Body 9" in llm.prompts[0]
    assert "Body 10" not in llm.prompts[0]
    assert analyzer.style_for(user.id).greeting_style == "Hey"


def test_learn_from_empty_sent_folder_stores_nothing(
    repository: SqliteRepository, linked_user
) -> None:
    user, account = linked_user
    analyzer = StyleAnalyzer(repository, SentMailbox([_sent("a@x.com", "  ")]), StubLLM(""))

    assert analyzer.learn_from_sent_mail(user.id, account) is None
    assert repository.get_style_profile(user.id) is None
    assert analyzer.style_for(user.id) == default_style()


def test_analysis_failure_uses_fallback_formality(repository: SqliteRepository) -> None:
    analyzer = StyleAnalyzer(repository, SentMailbox([]), StubLLM(LLMError("down")))

    style = analyzer.analyze_samples(["Hello"])

    assert style == WritingStyle(formality_score=0.6)


def test_collect_contacts_counts_and_orders() -> None:
    contacts = collect_contacts(
        [
            "Ana Silva <ana@example.com>",
            "ana@EXAMPLE.com, bob@example.com",
            "Ana <ana@example.com>",
            "",
        ]
    )

    assert [(c.name, c.email, c.frequency) for c in contacts] == [
        ("Ana Silva", "ana@example.com", 3),
        ("bob", "bob@example.com", 1),
    ]


def test_search_contacts_matches_name_or_address(
    repository: SqliteRepository, linked_user
) -> None:
    user, _ = linked_user
    mailbox = SentMailbox(
        [
            _sent("Ana Silva <ana@example.com>"),
            _sent("Bruno <bruno@work.com>"),
            _sent("Ana Silva <ana@example.com>"),
        ]
    )
    service = ContactService(repository, mailbox, scan_limit=20)

    assert [c.email for c in service.search_contacts(user.id, "ana")] == [
        "ana@example.com"
    ]
    assert [c.name for c in service.search_contacts(user.id, "WORK.com")] == ["Bruno"]
    assert service.search_contacts(user.id, "zed") == []
    assert mailbox.limits == [20, 20, 20]


def test_search_contacts_without_account(repository: SqliteRepository) -> None:
    user = repository.get_or_create_user("whatsapp:+15550004444")

    assert ContactService(repository, SentMailbox([])).search_contacts(user.id, "a") == []
