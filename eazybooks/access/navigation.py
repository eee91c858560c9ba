"""
Sidebar navigation, filtered by role and tier.

Each link can name the roles that may see it and the feature it leads
to. A link is visible when both checks pass. Links gated only by
feature stay visible with `locked=True` so the UI can show a padlock
and send the user to the upgrade page instead.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from eazybooks.access.evaluator import is_feature_available, resolve_tier
from eazybooks.models.access import Feature, Role, UserProfile


ALL_ROLES = frozenset(Role)
STAFF_ROLES = frozenset({Role.BUSINESS_OWNER, Role.EMPLOYEE})
OWNER_ONLY = frozenset({Role.BUSINESS_OWNER})


class NavLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    path: str
    roles: frozenset[Role] = ALL_ROLES
    feature: Optional[Feature] = None
    children: tuple["NavLink", ...] = ()


class VisibleLink(BaseModel):
    """A link as shown to one profile."""
    model_config = ConfigDict(frozen=True)

    label: str
    path: str
    locked: bool = False
    children: list["VisibleLink"] = Field(default_factory=list)


SIDEBAR_LINKS: tuple[NavLink, ...] = (
    NavLink(label="Dashboard", path="/dashboard"),
    NavLink(label="Bank", path="/bank", roles=OWNER_ONLY, feature=Feature.BANK_INTEGRATION),
    NavLink(label="Income", path="/income", roles=STAFF_ROLES, feature=Feature.INCOME_EXPENSE_TRACKING),
    NavLink(label="Expenses", path="/expenses", roles=STAFF_ROLES, feature=Feature.INCOME_EXPENSE_TRACKING),
    NavLink(label="Customers", path="/customers", roles=STAFF_ROLES),
    NavLink(label="Invoices", path="/invoices", feature=Feature.BASIC_INVOICING),
    NavLink(label="Taxes", path="/taxes", roles=OWNER_ONLY),
    NavLink(
        label="Payroll",
        path="/payroll",
        roles=OWNER_ONLY,
        feature=Feature.PAYROLL_MANAGEMENT,
        children=(
            NavLink(label="Payroll Records", path="/payroll"),
            NavLink(label="Employees", path="/payroll/employees"),
        ),
    ),
    NavLink(label="Leave", path="/leaves", roles=STAFF_ROLES),
    NavLink(
        label="Projects",
        path="/projects",
        feature=Feature.PROJECT_MANAGEMENT,
        children=(
            NavLink(label="All Projects", path="/projects"),
            NavLink(label="Job Requests", path="/projects/job-requests"),
            NavLink(label="Tasks", path="/projects/tasks", roles=STAFF_ROLES),
            NavLink(label="Services", path="/projects/services", roles=OWNER_ONLY),
        ),
    ),
    NavLink(label="Reports", path="/reports", roles=STAFF_ROLES, feature=Feature.BASIC_REPORTING),
    NavLink(label="Upgrade", path="/upgrade", roles=OWNER_ONLY),
)


def _visible(link: NavLink, profile: UserProfile, parent_locked: bool) -> Optional[VisibleLink]:
    if profile.role not in link.roles:
        return None

    locked = parent_locked
    if link.feature is not None:
        tier = resolve_tier(profile.subscription_tier)
        locked = locked or not is_feature_available(link.feature, tier)

    children = []
    for child in link.children:
        shown = _visible(child, profile, locked)
        if shown is not None:
            children.append(shown)

    return VisibleLink(label=link.label, path=link.path, locked=locked, children=children)


def visible_links(
    profile: Optional[UserProfile],
    links: tuple[NavLink, ...] = SIDEBAR_LINKS,
) -> list[VisibleLink]:
    """Sidebar links for `profile`; nothing for an anonymous session."""
    if profile is None:
        return []

    result = []
    for link in links:
        shown = _visible(link, profile, parent_locked=False)
        if shown is not None:
            result.append(shown)
    return result
