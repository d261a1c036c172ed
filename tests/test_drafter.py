"""Tests for the drafting service."""

from __future__ import annotations

import json

import pytest

from inbox_relay.core.models import EmailDraft, WritingStyle
from inbox_relay.intelligence import DraftingError, DraftingService, LLMError
from inbox_relay.intelligence.drafter import DEFAULT_SUBJECT


class StubLLM:
    provider_id = "stub"

    def __init__(self, response: str | Exception) -> None:
        self._response = response
        self.calls: list[tuple[str, float | None, bool]] = []

    def generate(
        self, prompt: str, *, temperature: float | None = None, json_output: bool = False
    ) -> str:
        self.calls.append((prompt, temperature, json_output))
        if isinstance(self._response, Exception):
            raise self._response
        return self._response


def test_generate_draft_parses_json() -> None:
    llm = StubLLM(json.dumps({"subject": " Lunch ", "body": "Hi Ana,\n\nLunch Friday?"}))
    style = WritingStyle(tone="casual", greeting_style="Hey")

    draft = DraftingService(llm).generate_draft(
        "ask Ana for lunch on Friday", style, context="Previous thread"
    )

    assert draft == EmailDraft(subject="Lunch", body="Hi Ana,\n\nLunch Friday?")
    prompt, temperature, json_output = llm.calls[0]
    assert "ask Ana for lunch on Friday" in prompt
    assert "Previous thread" in prompt
    assert temperature == 0.7
    assert json_output is True


def test_generate_draft_uses_raw_output_when_not_json() -> None:
    llm = StubLLM("Hello team, the report is attached.")

    draft = DraftingService(llm).generate_draft("send report", WritingStyle())

    assert draft.subject == DEFAULT_SUBJECT
    assert draft.body == "Hello team, the report is attached."


def test_generate_draft_raises_when_model_unavailable() -> None:
    with pytest.raises(DraftingError):
        DraftingService(StubLLM(LLMError("down"))).generate_draft("x", WritingStyle())


def test_revise_draft_returns_plain_text() -> None:
    llm = StubLLM("  Shorter body.  ")

    revised = DraftingService(llm, temperature=0.5).revise_draft(
        "A very long body.", "make it shorter", WritingStyle()
    )

    assert revised == "Shorter body."
    prompt, temperature, json_output = llm.calls[0]
    assert "make it shorter" in prompt
    assert "A very long body." in prompt
    assert temperature == 0.5
    assert json_output is False


@pytest.mark.parametrize("response", [LLMError("down"), "   "])
def test_revise_draft_failures(response: str | Exception) -> None:
    with pytest.raises(DraftingError):
        DraftingService(StubLLM(response)).revise_draft("body", "feedback", WritingStyle())
