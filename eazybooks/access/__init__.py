"""Feature gating and guard decisions."""

from eazybooks.access.evaluator import (
    FEATURE_MINIMUM_TIER,
    FEATURE_TIERS,
    TIER_RANK,
    features_for_tier,
    has_enterprise_access,
    has_premium_access,
    is_feature_available,
    is_tier_at_least,
    minimum_tier_for,
    resolve_tier,
)
from eazybooks.access.guards import (
    AccessDecision,
    DenialReason,
    GuardController,
    GuardState,
    IdentityState,
    UpsellPanel,
    decide_admin_access,
    decide_feature_access,
    decide_role_access,
    has_elevated_capability,
)
from eazybooks.access.navigation import SIDEBAR_LINKS, NavLink, VisibleLink, visible_links
from eazybooks.access.plans import (
    PRICING_PLANS,
    TIER_LIMITS,
    PricingPlan,
    checkout_url_for,
    get_plan,
    limit_for,
    within_limit,
)

__all__ = [
    # Evaluator
    "FEATURE_MINIMUM_TIER",
    "FEATURE_TIERS",
    "TIER_RANK",
    "features_for_tier",
    "has_enterprise_access",
    "has_premium_access",
    "is_feature_available",
    "is_tier_at_least",
    "minimum_tier_for",
    "resolve_tier",
    # Guards
    "AccessDecision",
    "DenialReason",
    "GuardController",
    "GuardState",
    "IdentityState",
    "UpsellPanel",
    "decide_admin_access",
    "decide_feature_access",
    "decide_role_access",
    "has_elevated_capability",
    # Navigation
    "SIDEBAR_LINKS",
    "NavLink",
    "VisibleLink",
    "visible_links",
    # Plans
    "PRICING_PLANS",
    "TIER_LIMITS",
    "PricingPlan",
    "checkout_url_for",
    "get_plan",
    "limit_for",
    "within_limit",
]
