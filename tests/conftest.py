"""Shared fixtures: identities at every role/tier combination."""

import pytest

from eazybooks.models.access import Business, Identity, Role, Tier, UserProfile


def build_identity(
    role: Role = Role.BUSINESS_OWNER,
    tier=Tier.FREE,
    user_id: str = "user-1",
    email: str = "owner@example.com",
    is_admin: bool = False,
) -> Identity:
    profile = UserProfile(
        id=f"profile-{user_id}",
        user_id=user_id,
        first_name="Ada",
        email=email,
        role=role,
        subscription_tier=tier,
        is_admin=is_admin,
    )
    business = Business(id=f"business-{user_id}", name="Ada's Bakery", owner_id=user_id)
    return Identity(user_id=user_id, email=email, profile=profile, business=business)


@pytest.fixture
def make_identity():
    """Factory for identities; see build_identity for defaults."""
    return build_identity


@pytest.fixture
def owner():
    return build_identity()
