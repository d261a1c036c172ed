"""Prompt templates for LLM-driven classification and drafting."""

from __future__ import annotations

from collections.abc import Sequence
from textwrap import dedent

from inbox_relay.core.models import WritingStyle

from .catalog import CATEGORY_CATALOG


def _category_lines() -> str:
    return "\n".join(f"- {spec.name}: {spec.description}" for spec in CATEGORY_CATALOG)


def _category_choices() -> str:
    return "|".join(spec.name for spec in CATEGORY_CATALOG)


def formality_label(score: float) -> str:
    """Map a formality score in [0, 1] onto a coarse label."""
    if score > 0.7:
        return "Formal"
    if score > 0.4:
        return "Semi-formal"
    return "Casual"


def build_classification_prompt(sender: str, subject: str, snippet: str) -> str:
    """Compose a JSON-only prompt classifying one email."""
    prompt = """
    You are an email classification assistant. Classify this email into ONE of these categories:

    Categories:
    {categories}

    Email details:
    From: {sender}
    Subject: {subject}
    Preview: {snippet}

    Respond strictly with JSON using this schema:
    {{
      "category": "one of: {choices}",
      "confidence": number between 0 and 1,
      "isUrgent": true|false,
      "summary": "one-line summary of the email",
      "reasoning": "brief explanation of why this category"
    }}
    """
    return (
        dedent(prompt)
        .strip()
        .format(
            categories=_category_lines(),
            sender=sender or "(unknown sender)",
            subject=subject or "(no subject)",
            snippet=snippet or "(empty)",
            choices=_category_choices(),
        )
    )


def build_style_prompt(samples: Sequence[str]) -> str:
    """Compose a prompt asking the model to describe a writing style."""
    sample_block = "\n".join(
        f"Sample {index}:\n{sample}\n" for index, sample in enumerate(samples, start=1)
    )
    prompt = """
    Analyze the writing style from these email/message samples:

    {samples}

    Respond strictly with JSON using this schema:
    {{
      "tone": "formal|semi-formal|casual",
      "avgParagraphLength": number,  # average words per paragraph
      "usesGreeting": true|false,
      "greetingStyle": "Hi|Hello|Dear|Hey|...",
      "usesSignature": true|false,
      "signatureStyle": "Best|Regards|Cheers|Thanks|...",
      "formalityScore": number between 0 (very casual) and 1 (very formal)
    }}
    """
    return dedent(prompt).strip().format(samples=sample_block)


def _style_guide(style: WritingStyle) -> str:
    greeting = style.greeting_style if style.uses_greeting else "No greeting"
    signature = style.signature_style if style.uses_signature else "No signature"
    return "\n".join(
        (
            "Writing Style:",
            f"- Tone: {style.tone}",
            f"- Greeting: {greeting}",
            f"- Signature: {signature}",
            f"- Formality: {formality_label(style.formality_score)}",
            f"- Paragraph length: ~{style.avg_paragraph_length} words",
        )
    )


def build_draft_prompt(
    instruction: str, style: WritingStyle, context: str | None = None
) -> str:
    """Compose a prompt drafting a new email in the user's style."""
    sections = [
        "You are writing an email for the user. Follow their writing style exactly.",
        "",
        _style_guide(style),
        "",
    ]
    if context:
        sections.extend([f"Context: {context}", ""])
    sections.extend(
        [
            f"User instruction: {instruction}",
            "",
            "Respond strictly with JSON using this schema:",
            "{",
            '  "subject": "appropriate subject line",',
            '  "body": "email body only"',
            "}",
        ]
    )
    return "\n".join(sections)


def build_revision_prompt(
    original_draft: str, feedback: str, style: WritingStyle
) -> str:
    """Compose a prompt revising a draft body according to user feedback."""
    prompt = """
    You are revising an email draft based on user feedback.

    Original draft:
    {draft}

    User feedback: {feedback}

    Revise the email incorporating the feedback while maintaining the writing style:
    - Tone: {tone}
    - Formality: {formality}

    Provide only the revised email body.
    """
    return (
        dedent(prompt)
        .strip()
        .format(
            draft=original_draft,
            feedback=feedback,
            tone=style.tone,
            formality=formality_label(style.formality_score),
        )
    )


def build_rule_learning_prompt(labeled: Sequence[tuple[str, str, str]]) -> str:
    """Compose a prompt extracting reusable rules from labeled emails."""
    lines = "\n".join(
        f"{index}. From: {sender}, Subject: {subject} -> Category: {category}"
        for index, (sender, subject, category) in enumerate(labeled, start=1)
    )
    prompt = """
    Analyze these categorized emails and extract categorization rules.

    {lines}

    Extract patterns like:
    - sender_domain: emails from @domain.com go to category X
    - sender_email: emails from specific@email.com go to category Y
    - subject_keyword: emails with keyword "invoice" go to category Z
    - from_contains: emails whose sender contains a word go to category W

    Respond strictly with JSON using this schema:
    {{
      "rules": [
        {{
          "ruleType": "sender_domain|sender_email|subject_keyword|from_contains",
          "pattern": "the pattern to match",
          "categoryName": "{choices}",
          "confidence": number between 0 and 1
        }}
      ]
    }}
    """
    return dedent(prompt).strip().format(lines=lines, choices=_category_choices())


__all__ = [
    "build_classification_prompt",
    "build_draft_prompt",
    "build_revision_prompt",
    "build_rule_learning_prompt",
    "build_style_prompt",
    "formality_label",
]
