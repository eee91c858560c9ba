"""Tests for the tier ordering table, feature map and access evaluator."""

import itertools

import pytest

from eazybooks.access.evaluator import (
    FEATURE_MINIMUM_TIER,
    FEATURE_TIERS,
    TIER_RANK,
    coerce_feature,
    features_for_tier,
    has_enterprise_access,
    has_premium_access,
    is_feature_available,
    is_tier_at_least,
    minimum_tier_for,
    resolve_tier,
)
from eazybooks.models.access import Feature, Tier


class TestTierOrdering:
    """Tests for the tier ordering table."""

    def test_ranks(self):
        """Test free < premium < enterprise."""
        assert TIER_RANK[Tier.FREE] < TIER_RANK[Tier.PREMIUM] < TIER_RANK[Tier.ENTERPRISE]

    def test_table_is_read_only(self):
        """Test that the ordering table cannot be changed at runtime."""
        with pytest.raises(TypeError):
            TIER_RANK[Tier.FREE] = 5

    @pytest.mark.parametrize("tier", list(Tier))
    def test_is_tier_at_least_reflexive(self, tier):
        """Test every tier is at least itself."""
        assert is_tier_at_least(tier, tier) is True

    def test_free_is_not_enterprise(self):
        """Test free does not reach enterprise."""
        assert is_tier_at_least(Tier.FREE, Tier.ENTERPRISE) is False
        assert is_tier_at_least(Tier.ENTERPRISE, Tier.FREE) is True

    def test_is_tier_at_least_accepts_strings(self):
        """Test tier names are accepted on both sides."""
        assert is_tier_at_least("premium", "free") is True
        assert is_tier_at_least(None, "premium") is False

    def test_invalid_required_tier_raises(self):
        """Test a required tier outside the vocabulary is a programming error."""
        with pytest.raises(ValueError):
            is_tier_at_least(Tier.ENTERPRISE, "platinum")

    def test_shortcuts(self):
        """Test premium and enterprise shortcuts."""
        assert has_premium_access(Tier.PREMIUM) is True
        assert has_premium_access(Tier.FREE) is False
        assert has_enterprise_access(Tier.PREMIUM) is False
        assert has_enterprise_access(Tier.ENTERPRISE) is True


class TestResolveTier:
    """Tests for reading tiers out of profile state."""

    @pytest.mark.parametrize("value", [None, "", "   ", "platinum", "gold"])
    def test_missing_or_unknown_resolves_to_free(self, value):
        """Test least-privilege default."""
        assert resolve_tier(value) == Tier.FREE

    def test_known_strings(self):
        """Test case and whitespace are normalized."""
        assert resolve_tier(" Premium ") == Tier.PREMIUM
        assert resolve_tier("enterprise") == Tier.ENTERPRISE
        assert resolve_tier(Tier.PREMIUM) == Tier.PREMIUM


class TestFeatureMap:
    """Tests for the feature map."""

    def test_every_feature_is_mapped(self):
        """Test no Feature member falls through to the fallback-deny path."""
        assert set(FEATURE_MINIMUM_TIER) == set(Feature)
        assert set(FEATURE_TIERS) == set(Feature)

    def test_monotonicity(self):
        """Test a feature available at a lower tier stays available above it."""
        tiers = sorted(Tier, key=TIER_RANK.__getitem__)
        for feature in Feature:
            for low, high in itertools.combinations(tiers, 2):
                if is_feature_available(feature, low):
                    assert is_feature_available(feature, high), (feature, low, high)

    def test_allow_sets_are_upward_closed(self):
        """Test every allow-set is 'minimum tier and above'."""
        for feature, allowed in FEATURE_TIERS.items():
            minimum = FEATURE_MINIMUM_TIER[feature]
            expected = {t for t in Tier if TIER_RANK[t] >= TIER_RANK[minimum]}
            assert allowed == expected

    def test_free_features(self):
        """Test the free plan's features."""
        assert features_for_tier(Tier.FREE) == {
            Feature.BASIC_REPORTING,
            Feature.INCOME_EXPENSE_TRACKING,
            Feature.BASIC_INVOICING,
        }

    def test_enterprise_has_everything(self):
        """Test enterprise unlocks every feature."""
        assert features_for_tier(Tier.ENTERPRISE) == frozenset(Feature)

    def test_minimum_tier_for(self):
        """Test the lowest tier that unlocks a feature."""
        assert minimum_tier_for(Feature.BANK_INTEGRATION) == Tier.PREMIUM
        assert minimum_tier_for("ai_insights") == Tier.ENTERPRISE
        assert minimum_tier_for("undefined_feature_xyz") is None


class TestIsFeatureAvailable:
    """Tests for the access evaluator."""

    @pytest.mark.parametrize("tier", [*Tier, None, "platinum"])
    def test_unknown_feature_always_denied(self, tier):
        """Test unmapped feature names fail closed."""
        assert is_feature_available("undefined_feature_xyz", tier) is False

    def test_feature_by_name(self):
        """Test dynamic names are coerced to the enum."""
        assert is_feature_available("bank_integration", "premium") is True
        assert is_feature_available("bank_integration", "free") is False

    def test_missing_tier_is_free(self):
        """Test a profile without a tier gets free features only."""
        assert is_feature_available(Feature.BASIC_INVOICING, None) is True
        assert is_feature_available(Feature.FULL_INVOICING, None) is False

    def test_coerce_feature(self):
        """Test feature name coercion."""
        assert coerce_feature("team_management") == Feature.TEAM_MANAGEMENT
        assert coerce_feature(Feature.AI_INSIGHTS) == Feature.AI_INSIGHTS
        assert coerce_feature("nope") is None
