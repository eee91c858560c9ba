"""
Identity and Access Models

These models describe WHO is asking: the authenticated identity, its
profile (role + subscription tier) and its business. They also define
the closed vocabularies the access layer reasons about.

DESIGN DECISION: Features are a closed enum rather than free text.
A typo in a feature name is caught when the code is written, not when
a paying customer is shown an upsell panel by mistake.
"""

from enum import Enum
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator


logger = structlog.get_logger(__name__)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Tier(str, Enum):
    """
    Subscription tier.

    Totally ordered by upgrade rank: free < premium < enterprise.
    The rank itself lives in the access evaluator's ordering table.
    """
    FREE = "free"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class Role(str, Enum):
    """
    Functional category of a user.

    Independent of Tier: a client on an enterprise plan is still a client.
    """
    BUSINESS_OWNER = "business_owner"
    EMPLOYEE = "employee"
    CLIENT = "client"


class Feature(str, Enum):
    """Known feature identifiers that can be gated by tier."""
    # Free plan
    BASIC_REPORTING = "basic_reporting"
    INCOME_EXPENSE_TRACKING = "income_expense_tracking"
    BASIC_INVOICING = "basic_invoicing"

    # Premium plan
    ADVANCED_REPORTING = "advanced_reporting"
    FULL_INVOICING = "full_invoicing"
    BANK_INTEGRATION = "bank_integration"
    PAYROLL_MANAGEMENT = "payroll_management"
    UNLIMITED_CUSTOMERS = "unlimited_customers"

    # Enterprise plan
    PROJECT_MANAGEMENT = "project_management"
    TEAM_MANAGEMENT = "team_management"
    AI_INSIGHTS = "ai_insights"


# =============================================================================
# IDENTITY MODELS
# =============================================================================

class UserProfile(BaseModel):
    """
    Profile row attached to an authenticated user.

    `subscription_tier` is nullable on purpose: older profiles were
    created before tiers existed. Readers resolve None to free.
    Tier values are matched case-insensitively; unrecognised ones load
    as free.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    role: Role
    subscription_tier: Optional[Tier] = None
    is_admin: bool = Field(
        default=False,
        description="Elevated capability flag granted by the platform"
    )
    belongs_to_business_id: Optional[str] = None
    onboarding_completed: bool = False

    @field_validator("subscription_tier", mode="before")
    @classmethod
    def normalize_tier(cls, v: Any) -> Any:
        if v is None or isinstance(v, Tier):
            return v
        value = str(v).strip().lower()
        if not value:
            return None
        try:
            return Tier(value)
        except ValueError:
            logger.warning("unknown_tier", tier=str(v))
            return Tier.FREE

    @property
    def display_name(self) -> str:
        """First name, else the local part of the email, else 'User'."""
        if self.first_name:
            return self.first_name
        if self.email:
            return self.email.split("@")[0]
        return "User"


class Business(BaseModel):
    """Business record owned by a business_owner profile."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    owner_id: str = Field(..., min_length=1)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    default_tax_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    tax_id: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    @property
    def address_line(self) -> Optional[str]:
        """City, state and country joined with commas, or None if all are empty."""
        parts = [part for part in (self.city, self.state, self.country) if part]
        return ", ".join(parts) if parts else None


class Identity(BaseModel):
    """
    A resolved session.

    The profile may be missing (a user who signed up but never finished
    onboarding). Guards treat a missing profile the same as no session.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    profile: Optional[UserProfile] = None
    business: Optional[Business] = None

    @property
    def owner_id(self) -> str:
        """Id that owns this identity's records."""
        return self.user_id
