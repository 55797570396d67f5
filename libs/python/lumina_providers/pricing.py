"""Static credit pricing tables and store catalogue."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from lumina_schemas import GenerationKind, SubscriptionTier

PER_PAGE_STORY_COST = 300


@dataclass(frozen=True)
class _CreditPricing:
    """Credits charged for one unit of an operation."""

    credits: int
    per_page: bool = False


_CREDIT_PRICING: Mapping[GenerationKind, _CreditPricing] = {
    GenerationKind.STORY: _CreditPricing(credits=PER_PAGE_STORY_COST, per_page=True),
    GenerationKind.REGENERATE: _CreditPricing(credits=300),
    GenerationKind.UPSCALE: _CreditPricing(credits=500),
    GenerationKind.VIDEO: _CreditPricing(credits=1200),
    GenerationKind.AUDIO: _CreditPricing(credits=200),
    GenerationKind.AD: _CreditPricing(credits=800),
    GenerationKind.CHARACTER: _CreditPricing(credits=600),
    GenerationKind.LAB_IMAGE: _CreditPricing(credits=300),
    GenerationKind.LAB_VIDEO: _CreditPricing(credits=1200),
}


@dataclass(frozen=True)
class CreditPack:
    id: str
    credits: int
    price_label: str


@dataclass(frozen=True)
class SubscriptionPlan:
    id: str
    tier: SubscriptionTier
    name: str
    price_label: str


CREDIT_PACKS: Mapping[str, CreditPack] = {
    "pack_500": CreditPack(id="pack_500", credits=500, price_label="$4.99"),
    "pack_2000": CreditPack(id="pack_2000", credits=2000, price_label="$14.99"),
    "pack_5000": CreditPack(id="pack_5000", credits=5000, price_label="$29.99"),
}

SUBSCRIPTION_PLANS: Mapping[str, SubscriptionPlan] = {
    "plan_pro": SubscriptionPlan(
        id="plan_pro", tier=SubscriptionTier.PRO, name="Lumina Pro", price_label="$19/mo"
    ),
    "plan_elite": SubscriptionPlan(
        id="plan_elite", tier=SubscriptionTier.ELITE, name="Lumina Elite", price_label="$49/mo"
    ),
}


def credit_cost(kind: GenerationKind | str, page_count: int = 1) -> int:
    """Return the credits charged for ``kind``.

    Args:
        kind: Operation being priced.
        page_count: Number of pages, only used for per-page operations.

    Returns:
        Integer credit cost.

    Raises:
        ValueError: If the kind is unknown or the page count is not positive.
    """

    try:
        pricing = _CREDIT_PRICING[GenerationKind(kind)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"No credit pricing for operation: {kind}") from exc

    if not pricing.per_page:
        return pricing.credits
    if page_count < 1:
        raise ValueError("page_count must be at least 1")
    return pricing.credits * page_count


__all__ = [
    "CREDIT_PACKS",
    "PER_PAGE_STORY_COST",
    "SUBSCRIPTION_PLANS",
    "CreditPack",
    "SubscriptionPlan",
    "credit_cost",
]
