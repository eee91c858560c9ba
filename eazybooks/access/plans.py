"""
Pricing plans and per-tier usage limits.

The plan catalog drives the upgrade page. Checkout links are configured
per deployment; a plan without one simply has no checkout button.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from eazybooks.access.evaluator import TierLike, features_for_tier, resolve_tier
from eazybooks.config import CheckoutSettings, get_settings
from eazybooks.models.access import Feature, Tier


# None means unlimited
TIER_LIMITS: dict[Tier, dict[str, Optional[int]]] = {
    Tier.FREE: {
        "customers": 10,
        "team_members": 1,
    },
    Tier.PREMIUM: {
        "customers": None,
        "team_members": 5,
    },
    Tier.ENTERPRISE: {
        "customers": None,
        "team_members": None,
    },
}


class PricingPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: Tier
    name: str
    price: str
    interval: str
    description: str
    popular: bool = False
    features: frozenset[Feature] = Field(default_factory=frozenset)


PRICING_PLANS: tuple[PricingPlan, ...] = (
    PricingPlan(
        tier=Tier.FREE,
        name="Free",
        price="$0",
        interval="forever",
        description="Perfect for individuals and small businesses just starting out",
        features=features_for_tier(Tier.FREE),
    ),
    PricingPlan(
        tier=Tier.PREMIUM,
        name="Professional",
        price="$19",
        interval="per month",
        description="For growing businesses and teams",
        popular=True,
        features=features_for_tier(Tier.PREMIUM),
    ),
    PricingPlan(
        tier=Tier.ENTERPRISE,
        name="Enterprise",
        price="$49",
        interval="per month",
        description="Complete solution for businesses of all sizes",
        features=features_for_tier(Tier.ENTERPRISE),
    ),
)


def get_plan(tier: TierLike) -> PricingPlan:
    resolved = resolve_tier(tier)
    return next(plan for plan in PRICING_PLANS if plan.tier == resolved)


def limit_for(tier: TierLike, resource: str) -> Optional[int]:
    """Usage cap for `resource` on `tier`; None means unlimited."""
    limits = TIER_LIMITS[resolve_tier(tier)]
    if resource not in limits:
        raise KeyError(f"Unknown limited resource: {resource}")
    return limits[resource]


def within_limit(tier: TierLike, resource: str, current_count: int) -> bool:
    """Can one more `resource` be added on top of `current_count`?"""
    cap = limit_for(tier, resource)
    return cap is None or current_count < cap


def checkout_url_for(
    plan_id: TierLike,
    settings: Optional[CheckoutSettings] = None,
) -> Optional[str]:
    """
    Checkout link for upgrading to `plan_id`.

    The free plan never has one. Unknown plan ids resolve to free.
    """
    settings = settings or get_settings().checkout
    tier = resolve_tier(plan_id)
    if tier == Tier.PREMIUM:
        return settings.premium_url
    if tier == Tier.ENTERPRISE:
        return settings.enterprise_url
    return None
