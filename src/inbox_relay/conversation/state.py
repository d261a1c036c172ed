"""Per-user conversation context."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class OnboardingState(StrEnum):
    """Onboarding stages; ``COMPLETED`` is represented by :class:`Active`."""

    NEW = "NEW"
    AWAITING_LINK = "AWAITING_LINK"
    LINKED = "LINKED"
    COLLECTING_PROMO_PREF = "COLLECTING_PROMO_PREF"
    COLLECTING_SCHEDULE = "COLLECTING_SCHEDULE"
    COLLECTING_STYLE = "COLLECTING_STYLE"
    COMPLETED = "COMPLETED"


class ComposeStep(StrEnum):
    """Sub-steps of composing or replying once onboarding is done."""

    COMPOSING_TO = "COMPOSING_TO"
    COMPOSING_BODY = "COMPOSING_BODY"
    CONFIRMING_DRAFT = "CONFIRMING_DRAFT"


@dataclass(slots=True)
class DraftScratch:
    """Work-in-progress email shared across compose steps."""

    to: str | None = None
    subject: str | None = None
    body: str | None = None
    reply_to_id: int | None = None
    context: str | None = None


@dataclass(slots=True)
class Onboarding:
    """Context of a user who has not finished onboarding."""

    stage: OnboardingState = OnboardingState.NEW
    user_id: int | None = None
    promo_handling: str | None = None

    def __post_init__(self) -> None:
        if self.stage == OnboardingState.COMPLETED:
            raise ValueError("Completed users are represented by Active")


@dataclass(slots=True)
class Active:
    """Context of an onboarded user, optionally in the middle of a compose."""

    user_id: int
    step: ComposeStep | None = None
    draft: DraftScratch = field(default_factory=DraftScratch)

    @property
    def stage(self) -> OnboardingState:
        return OnboardingState.COMPLETED

    def reset(self) -> None:
        """Return to the idle loop and discard the scratch draft."""
        self.step = None
        self.draft = DraftScratch()


ConversationContext = Onboarding | Active


__all__ = [
    "Active",
    "ComposeStep",
    "ConversationContext",
    "DraftScratch",
    "Onboarding",
    "OnboardingState",
]
