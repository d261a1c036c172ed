"""The fixed category catalog shared by rules, prompts and storage seeding."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CategorySpec:
    """Static definition of one catalog entry."""

    name: str
    display_name: str
    description: str
    icon: str


CATEGORY_CATALOG: tuple[CategorySpec, ...] = (
    CategorySpec(
        name="banks",
        display_name="Banks",
        description="Bills, expenses, and promotional offers from financial institutions",
        icon="🏦",
    ),
    CategorySpec(
        name="apps",
        display_name="Apps",
        description="Purchase confirmations, crypto transfers, and app notifications",
        icon="📱",
    ),
    CategorySpec(
        name="promotions",
        display_name="Promotions",
        description="Campaign ads, time-sensitive deals, Black Friday, flash sales",
        icon="🎯",
    ),
    CategorySpec(
        name="work",
        display_name="Work",
        description="Professional correspondence and work-related emails",
        icon="💼",
    ),
    CategorySpec(
        name="personal",
        display_name="Personal",
        description=(
            "Passport renewals, legal matters, hotel/flight confirmations, "
            "personal appointments"
        ),
        icon="✉️",
    ),
)

CATEGORY_NAMES: frozenset[str] = frozenset(spec.name for spec in CATEGORY_CATALOG)

# Lowest-priority bucket, used whenever classification cannot decide.
FALLBACK_CATEGORY = "promotions"
FALLBACK_CONFIDENCE = 0.5

__all__ = [
    "CATEGORY_CATALOG",
    "CATEGORY_NAMES",
    "CategorySpec",
    "FALLBACK_CATEGORY",
    "FALLBACK_CONFIDENCE",
]
