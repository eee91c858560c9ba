"""
Guard Decisions

A guard decides whether protected content may be shown to the current
identity. Every guard goes through the same state machine:

    loading -> allowed
    loading -> denied(reason)

`loading` lasts while the identity is being resolved. Once a guard
settles it never changes again.

DESIGN DECISION: Deciding and rendering are separate. The functions in
this module return an AccessDecision and render nothing. The ui package
turns a decision into a spinner, the children, a redirect or an upsell
panel.

Failure semantics:
- Identity fetch errors are treated exactly like "no session": denied.
- Nothing in this module raises into the caller, except ValueError for
  a required tier that is not a Tier (a programming error, not a
  runtime condition).
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from eazybooks.access.evaluator import (
    TIER_RANK,
    coerce_feature,
    is_feature_available,
    is_tier_at_least,
    minimum_tier_for,
    resolve_tier,
)
from eazybooks.models.access import Feature, Identity, Role, Tier, UserProfile


logger = structlog.get_logger(__name__)

DEFAULT_FALLBACK_PATH = "/dashboard"
DEFAULT_UPGRADE_PATH = "/upgrade"


# =============================================================================
# DECISION TYPES
# =============================================================================

class GuardState(str, Enum):
    LOADING = "loading"
    ALLOWED = "allowed"
    DENIED = "denied"


class DenialReason(str, Enum):
    """Why a guard said no."""
    NO_SESSION = "no_session"
    IDENTITY_UNAVAILABLE = "identity_unavailable"
    ROLE_NOT_ALLOWED = "role_not_allowed"
    NOT_ADMIN = "not_admin"
    TIER_TOO_LOW = "tier_too_low"
    FEATURE_UNAVAILABLE = "feature_unavailable"


class UpsellPanel(BaseModel):
    """Inline panel shown in place of a gated feature."""
    model_config = ConfigDict(frozen=True)

    title: str
    message: str
    required_tier: Tier
    current_tier: Tier
    upgrade_path: str = DEFAULT_UPGRADE_PATH
    show_upgrade_button: bool = True


class AccessDecision(BaseModel):
    """
    Outcome of a guard.

    A denied decision carries exactly one of `fallback_path` (role and
    admin guards redirect) or `panel` (the feature guard keeps the page
    and shows an upsell panel).
    """
    model_config = ConfigDict(frozen=True)

    state: GuardState
    reason: Optional[DenialReason] = None
    fallback_path: Optional[str] = None
    panel: Optional[UpsellPanel] = None
    via_override: bool = Field(
        default=False,
        description="Granted through the admin override identity"
    )

    @classmethod
    def loading(cls) -> "AccessDecision":
        return cls(state=GuardState.LOADING)

    @classmethod
    def allowed(cls, via_override: bool = False) -> "AccessDecision":
        return cls(state=GuardState.ALLOWED, via_override=via_override)

    @classmethod
    def redirect(cls, reason: DenialReason, fallback_path: str) -> "AccessDecision":
        return cls(state=GuardState.DENIED, reason=reason, fallback_path=fallback_path)

    @classmethod
    def upsell(cls, reason: DenialReason, panel: UpsellPanel) -> "AccessDecision":
        return cls(state=GuardState.DENIED, reason=reason, panel=panel)

    @property
    def is_loading(self) -> bool:
        return self.state == GuardState.LOADING

    @property
    def is_allowed(self) -> bool:
        return self.state == GuardState.ALLOWED

    @property
    def is_denied(self) -> bool:
        return self.state == GuardState.DENIED


class IdentityState(BaseModel):
    """
    What the auth provider currently knows.

    `error` set means the fetch failed; guards deny exactly as if
    there were no session.
    """
    model_config = ConfigDict(frozen=True)

    loading: bool = False
    identity: Optional[Identity] = None
    error: Optional[str] = None

    @classmethod
    def pending(cls) -> "IdentityState":
        return cls(loading=True)

    @classmethod
    def resolved(cls, identity: Optional[Identity]) -> "IdentityState":
        return cls(identity=identity)

    @classmethod
    def failed(cls, error: str) -> "IdentityState":
        return cls(error=error)

    @property
    def profile(self) -> Optional[UserProfile]:
        if self.error or self.identity is None:
            return None
        return self.identity.profile


def _missing_profile_reason(state: IdentityState) -> DenialReason:
    if state.error:
        return DenialReason.IDENTITY_UNAVAILABLE
    return DenialReason.NO_SESSION


# =============================================================================
# DECISION FUNCTIONS
# =============================================================================

def decide_role_access(
    state: IdentityState,
    allowed_roles: Iterable[Role],
    fallback_path: str = DEFAULT_FALLBACK_PATH,
) -> AccessDecision:
    """Allow only profiles whose role is in `allowed_roles`."""
    if state.loading:
        return AccessDecision.loading()

    profile = state.profile
    if profile is None:
        return AccessDecision.redirect(_missing_profile_reason(state), fallback_path)

    if profile.role not in set(allowed_roles):
        return AccessDecision.redirect(DenialReason.ROLE_NOT_ALLOWED, fallback_path)

    return AccessDecision.allowed()


def has_elevated_capability(profile: UserProfile) -> bool:
    """
    Whether a profile counts as an admin on its own merits.

    Besides the explicit flag, enterprise accounts and premium business
    owners manage their own workspace's admin pages.
    """
    tier = resolve_tier(profile.subscription_tier)
    if profile.is_admin or tier == Tier.ENTERPRISE:
        return True
    return profile.role == Role.BUSINESS_OWNER and tier == Tier.PREMIUM


def decide_admin_access(
    state: IdentityState,
    fallback_path: str = DEFAULT_FALLBACK_PATH,
    override_email: Optional[str] = None,
) -> AccessDecision:
    """
    Allow admins, plus the configured override identity if any.

    The override is a convenience for the UI only; the record store must
    enforce its own authorization. Decisions granted through it are
    flagged with `via_override` so callers can audit them.
    """
    if state.loading:
        return AccessDecision.loading()

    profile = state.profile
    if profile is None:
        return AccessDecision.redirect(_missing_profile_reason(state), fallback_path)

    if has_elevated_capability(profile):
        return AccessDecision.allowed()

    if override_email:
        email = profile.email or state.identity.email
        if email and email.strip().lower() == override_email.strip().lower():
            return AccessDecision.allowed(via_override=True)

    return AccessDecision.redirect(DenialReason.NOT_ADMIN, fallback_path)


def _upsell_message(required_tier: Tier, current_tier: Tier) -> str:
    return (
        f"This feature requires a {required_tier.value} subscription. "
        f"Your current plan is {current_tier.value}."
    )


def decide_feature_access(
    state: IdentityState,
    feature: Union[Feature, str],
    required_tier: Union[Tier, str],
    fallback_message: Optional[str] = None,
    show_upgrade_button: bool = True,
    upgrade_path: str = DEFAULT_UPGRADE_PATH,
) -> AccessDecision:
    """
    Allow if the feature is mapped for the current tier and the tier
    reaches `required_tier`. Denial keeps the layout and yields a panel.
    """
    if state.loading:
        return AccessDecision.loading()

    required = Tier(required_tier)
    profile = state.profile
    current = resolve_tier(profile.subscription_tier if profile else None)

    # Advertise whichever is higher: the caller's tier or the feature's own
    shown = required
    minimum = minimum_tier_for(feature)
    if minimum is not None and TIER_RANK[minimum] > TIER_RANK[required]:
        shown = minimum

    panel = UpsellPanel(
        title=f"{shown.value.capitalize()} Feature",
        message=fallback_message or _upsell_message(shown, current),
        required_tier=shown,
        current_tier=current,
        upgrade_path=upgrade_path,
        show_upgrade_button=show_upgrade_button,
    )

    if profile is None:
        return AccessDecision.upsell(_missing_profile_reason(state), panel)

    if not is_tier_at_least(current, required):
        return AccessDecision.upsell(DenialReason.TIER_TOO_LOW, panel)

    if not is_feature_available(feature, current):
        reason = (
            DenialReason.TIER_TOO_LOW
            if coerce_feature(feature) is not None
            else DenialReason.FEATURE_UNAVAILABLE
        )
        return AccessDecision.upsell(reason, panel)

    return AccessDecision.allowed()


# =============================================================================
# STATE MACHINE
# =============================================================================

IdentityFetcher = Callable[[], Awaitable[Optional[Identity]]]
Decider = Callable[[IdentityState], AccessDecision]


class GuardController:
    """
    Drives one guard from loading to a settled decision.

    Usage:
        controller = GuardController(
            provider.get_identity,
            lambda s: decide_role_access(s, [Role.EMPLOYEE]),
        )
        controller.mount()
        decision = await controller.wait()

    Each mounted guard owns its controller; controllers share nothing.
    After `unmount()` the pending fetch is cancelled and any late result
    is dropped.
    """

    def __init__(
        self,
        fetch_identity: IdentityFetcher,
        decide: Decider,
        on_settled: Optional[Callable[[AccessDecision, IdentityState], None]] = None,
    ):
        self._fetch_identity = fetch_identity
        self._decide = decide
        self._on_settled = on_settled
        self._decision = decide(IdentityState.pending())
        self._task: Optional[asyncio.Task] = None
        self._mounted = False

    @property
    def decision(self) -> AccessDecision:
        return self._decision

    @property
    def mounted(self) -> bool:
        return self._mounted

    def mount(self) -> None:
        """Start identity resolution on the running event loop."""
        if self._mounted or self._task is not None:
            return
        self._mounted = True
        self._task = asyncio.ensure_future(self._resolve())

    def unmount(self) -> None:
        """Stop caring about the result. Safe to call more than once."""
        self._mounted = False
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> AccessDecision:
        """Wait for the pending resolution (if any) and return the decision."""
        if self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self._decision

    async def _resolve(self) -> None:
        try:
            identity = await self._fetch_identity()
            state = IdentityState.resolved(identity)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("guard_identity_failed", error=str(e))
            state = IdentityState.failed(str(e))

        if not self._mounted:
            return
        self._settle(state)

    def _settle(self, state: IdentityState) -> None:
        if not self._decision.is_loading:
            return
        try:
            decision = self._decide(state)
        except Exception as e:
            logger.error("guard_decision_failed", error=str(e))
            decision = AccessDecision.redirect(
                DenialReason.IDENTITY_UNAVAILABLE, DEFAULT_FALLBACK_PATH
            )
        if decision.is_loading:
            # The decider saw a resolved state; loading here would never end.
            decision = AccessDecision.redirect(
                DenialReason.IDENTITY_UNAVAILABLE, DEFAULT_FALLBACK_PATH
            )
        self._decision = decision
        if self._on_settled is not None:
            self._on_settled(decision, state)
