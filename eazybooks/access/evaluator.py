"""
Access Evaluator

Answers one question: may a holder of tier T use feature F?

DESIGN DECISION: The feature map is built from a single minimum tier per
feature. Each allow-set is therefore "this tier and everything above it",
which makes the map monotonic by construction: upgrading never takes a
feature away.

Both tables are read-only mappings created at import time. Everything
here is pure and synchronous; callers pass the tier in explicitly.
"""

from types import MappingProxyType
from typing import Mapping, Optional, Union

import structlog

from eazybooks.models.access import Feature, Tier


logger = structlog.get_logger(__name__)


# =============================================================================
# TIER ORDERING TABLE
# =============================================================================

TIER_RANK: Mapping[Tier, int] = MappingProxyType({
    Tier.FREE: 0,
    Tier.PREMIUM: 1,
    Tier.ENTERPRISE: 2,
})


# =============================================================================
# FEATURE MAP
# =============================================================================

FEATURE_MINIMUM_TIER: Mapping[Feature, Tier] = MappingProxyType({
    Feature.BASIC_REPORTING: Tier.FREE,
    Feature.INCOME_EXPENSE_TRACKING: Tier.FREE,
    Feature.BASIC_INVOICING: Tier.FREE,
    Feature.ADVANCED_REPORTING: Tier.PREMIUM,
    Feature.FULL_INVOICING: Tier.PREMIUM,
    Feature.BANK_INTEGRATION: Tier.PREMIUM,
    Feature.PAYROLL_MANAGEMENT: Tier.PREMIUM,
    Feature.UNLIMITED_CUSTOMERS: Tier.PREMIUM,
    Feature.PROJECT_MANAGEMENT: Tier.ENTERPRISE,
    Feature.TEAM_MANAGEMENT: Tier.ENTERPRISE,
    Feature.AI_INSIGHTS: Tier.ENTERPRISE,
})


def _tiers_from(minimum: Tier) -> frozenset[Tier]:
    """All tiers ranked at or above `minimum`."""
    return frozenset(
        tier for tier, rank in TIER_RANK.items()
        if rank >= TIER_RANK[minimum]
    )


FEATURE_TIERS: Mapping[Feature, frozenset[Tier]] = MappingProxyType({
    feature: _tiers_from(minimum)
    for feature, minimum in FEATURE_MINIMUM_TIER.items()
})


TierLike = Union[Tier, str, None]
FeatureLike = Union[Feature, str]


# =============================================================================
# EVALUATOR
# =============================================================================

def resolve_tier(value: TierLike) -> Tier:
    """
    Normalize a tier read from profile state.

    None, blank and unrecognised values resolve to FREE, the
    least-privileged tier. This never raises.
    """
    if isinstance(value, Tier):
        return value
    if value is None or not str(value).strip():
        return Tier.FREE
    try:
        return Tier(str(value).strip().lower())
    except ValueError:
        logger.warning("unknown_tier", tier=str(value))
        return Tier.FREE


def coerce_feature(feature: FeatureLike) -> Optional[Feature]:
    """Map a feature name to its enum member, or None if it isn't one."""
    if isinstance(feature, Feature):
        return feature
    try:
        return Feature(feature)
    except ValueError:
        return None


def is_feature_available(feature: FeatureLike, current_tier: TierLike) -> bool:
    """
    Check whether `current_tier` may use `feature`.

    Feature names that are not in the feature map are denied and
    logged as a configuration warning. They are never granted.
    """
    key = coerce_feature(feature)
    allowed = FEATURE_TIERS.get(key) if key is not None else None
    if allowed is None:
        logger.warning("feature_not_mapped", feature=str(feature))
        return False
    return resolve_tier(current_tier) in allowed


def is_tier_at_least(current_tier: TierLike, required_tier: Union[Tier, str]) -> bool:
    """
    Coarse gate: does `current_tier` rank at or above `required_tier`?

    The current tier is normalized like any profile value. The required
    tier comes from code, so an invalid one raises ValueError.
    """
    return TIER_RANK[resolve_tier(current_tier)] >= TIER_RANK[Tier(required_tier)]


def minimum_tier_for(feature: FeatureLike) -> Optional[Tier]:
    """Lowest tier that unlocks `feature`, or None for unmapped names."""
    key = coerce_feature(feature)
    if key is None:
        return None
    return FEATURE_MINIMUM_TIER.get(key)


def features_for_tier(current_tier: TierLike) -> frozenset[Feature]:
    """Every feature the tier unlocks."""
    tier = resolve_tier(current_tier)
    return frozenset(
        feature for feature, allowed in FEATURE_TIERS.items()
        if tier in allowed
    )


def has_premium_access(current_tier: TierLike) -> bool:
    return is_tier_at_least(current_tier, Tier.PREMIUM)


def has_enterprise_access(current_tier: TierLike) -> bool:
    return is_tier_at_least(current_tier, Tier.ENTERPRISE)
