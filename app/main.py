"""
Streamlit Frontend for EazyBooks

This is the interface small-business owners, their employees and their
clients use day to day.

DESIGN PRINCIPLES:
1. Every page goes through a guard before anything is rendered
2. Locked features stay visible in the sidebar, with an upgrade path
3. Clear error messages in simple language
4. Summaries are recomputed on every visit, never cached

Navigation is session-state based: `st.session_state.page` holds the
current path and guards redirect by rewriting it.
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from eazybooks.access import (
    PRICING_PLANS,
    AccessDecision,
    IdentityState,
    VisibleLink,
    checkout_url_for,
    get_plan,
    has_elevated_capability,
    resolve_tier,
    visible_links,
)
from eazybooks.audit import create_correlation_id
from eazybooks.config import get_settings, validate_all_settings
from eazybooks.models import (
    BankTransaction,
    Customer,
    Employee,
    Expense,
    Feature,
    Income,
    IncomeSource,
    IncomeStatus,
    Invoice,
    InvoiceStatus,
    LeaveApplication,
    LineItem,
    Role,
    TaxCategory,
    TaxStatus,
    Tier,
)
from eazybooks.orchestrator import (
    RecordServiceError,
    SessionFlows,
    create_app_components,
    create_session_flows,
)
from eazybooks.ui import render_guard
from eazybooks.ui.streamlit_renderer import StreamlitRenderer


# Page configuration
st.set_page_config(
    page_title="EazyBooks",
    page_icon="📒",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .upsell-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


STAFF = [Role.BUSINESS_OWNER, Role.EMPLOYEE]
OWNER = [Role.BUSINESS_OWNER]


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create shared application components (cached)."""
    return create_app_components(use_storage=True)


def show_error(error: RecordServiceError) -> None:
    st.markdown(f"""
    <div class="error-box">
        <p>{error.user_message}</p>
    </div>
    """, unsafe_allow_html=True)


def main():
    """Main application entry point."""
    components = get_components()
    renderer = StreamlitRenderer()

    if "page" not in st.session_state:
        st.session_state.page = get_settings().access.default_fallback_path

    st.sidebar.title("📒 EazyBooks")
    user_id, email, local_tier, local_role = render_sign_in(components.sheets_client is None)

    flows = create_session_flows(components, user_id, email, local_tier, local_role)
    correlation_id = create_correlation_id()
    state = run_async(flows.access.resolve(correlation_id))

    render_sidebar_links(state)

    if state.identity is None:
        st.title("Welcome to EazyBooks")
        st.info("Sign in from the sidebar to get started.")
        return

    page = st.session_state.page
    handler, guard = PAGES.get(page, PAGES["/dashboard"])
    decision = run_async(guard(flows, state, page, correlation_id))
    render_guard(decision, lambda: handler(flows, state), renderer)


def render_sign_in(local_mode: bool):
    """Session inputs. Local mode also lets you pick the plan and role."""
    with st.sidebar.expander("👤 Session", expanded="user_id" not in st.session_state):
        user_id = st.text_input("User ID", key="user_id")
        email = st.text_input("Email", key="email")
        local_tier, local_role = Tier.FREE, Role.BUSINESS_OWNER
        if local_mode:
            st.caption("Local mode: storage isn't configured, data lives in memory.")
            local_tier = st.selectbox("Plan", list(Tier), format_func=lambda t: t.value.capitalize())
            local_role = st.selectbox("Role", list(Role), format_func=lambda r: r.value.replace("_", " ").title())
    return user_id or None, email or None, local_tier, local_role


def render_sidebar_links(state: IdentityState) -> None:
    st.sidebar.markdown("---")
    links = visible_links(state.profile)
    if state.profile is not None and has_elevated_capability(state.profile):
        links.append(VisibleLink(label="Admin", path="/admin"))
    for link in links:
        label = f"🔒 {link.label}" if link.locked else link.label
        if st.sidebar.button(label, key=f"nav-{link.path}"):
            st.session_state.page = link.path
            st.rerun()
        for child in link.children:
            child_label = f"🔒 {child.label}" if child.locked else child.label
            if st.sidebar.button(f"↳ {child_label}", key=f"nav-{link.path}-{child.path}"):
                st.session_state.page = child.path
                st.rerun()


# =============================================================================
# GUARDS PER PAGE
# =============================================================================

def any_role(flows: SessionFlows, state, path, correlation_id):
    return flows.access.check_role(state, list(Role), path, correlation_id=correlation_id)


def staff_only(flows, state, path, correlation_id):
    return flows.access.check_role(state, STAFF, path, correlation_id=correlation_id)


def owner_only(flows, state, path, correlation_id):
    return flows.access.check_role(state, OWNER, path, correlation_id=correlation_id)


def admin_only(flows, state, path, correlation_id):
    return flows.access.check_admin(state, path, correlation_id=correlation_id)


def feature(name: Feature, tier: Tier, roles=None):
    """Role check first (redirect), then the feature check (upsell)."""
    async def guard(flows, state, path, correlation_id) -> AccessDecision:
        if roles is not None:
            decision = await flows.access.check_role(state, roles, path, correlation_id=correlation_id)
            if not decision.is_allowed:
                return decision
        return await flows.access.check_feature(state, name, tier, correlation_id=correlation_id)
    return guard


# =============================================================================
# PAGES
# =============================================================================

def render_dashboard(flows: SessionFlows, state: IdentityState):
    identity = state.identity
    profile = state.profile
    st.title(f"👋 Welcome, {profile.display_name}")
    if identity.business:
        st.caption(identity.business.name)

    try:
        income = run_async(flows.dashboard.income_summary(identity))
        taxes = run_async(flows.dashboard.tax_summary(identity))
    except RecordServiceError as e:
        show_error(e)
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Received", f"{income.total_received:,.2f}", f"{income.received_count} payments")
    col2.metric("Pending", f"{income.total_pending:,.2f}", f"{income.pending_count} payments")
    if income.top_source:
        col3.metric("Top source", income.top_source.value.title(), f"{income.top_amount:,.2f}")
    else:
        col3.metric("Top source", "None yet")

    st.subheader("🧾 Taxes")
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Paid", f"{taxes.paid:,.2f}")
    col2.metric("Upcoming", f"{taxes.upcoming:,.2f}")
    col3.metric("Overdue", f"{taxes.overdue:,.2f}")
    col4.metric("Pending", f"{taxes.pending:,.2f}")

    tier = resolve_tier(profile.subscription_tier)
    st.caption(f"Current plan: {get_plan(tier).name}")


def render_income(flows: SessionFlows, state: IdentityState):
    identity = state.identity
    st.title("💵 Income")

    with st.expander("➕ Record income"):
        with st.form("new-income", clear_on_submit=True):
            description = st.text_input("Description")
            amount = st.number_input("Amount", min_value=0.0, step=0.01)
            income_date = st.date_input("Date", value=date.today())
            source = st.selectbox("Source", list(IncomeSource), format_func=lambda s: s.value.title())
            status = st.selectbox("Status", list(IncomeStatus), format_func=lambda s: s.value.title())
            if st.form_submit_button("Save", type="primary"):
                try:
                    run_async(flows.records.create_record(Income, identity, {
                        "description": description,
                        "amount": Decimal(str(amount)).quantize(Decimal("0.01")),
                        "income_date": income_date,
                        "source": source,
                        "status": status,
                    }))
                    st.success("Income saved.")
                except RecordServiceError as e:
                    show_error(e)

    render_record_table(flows, Income, state, columns=["income_date", "description", "source", "status", "amount"])


def render_taxes(flows: SessionFlows, state: IdentityState):
    identity = state.identity
    st.title("🧾 Taxes")

    col1, col2 = st.columns(2)
    category = col1.selectbox("Category", [None, *TaxCategory], format_func=lambda c: "All" if c is None else c.value.title())
    status = col2.selectbox("Status", [None, *TaxStatus], format_func=lambda s: "All" if s is None else s.value.title())

    try:
        summary = run_async(flows.dashboard.tax_summary(identity))
        taxes = run_async(flows.dashboard.taxes(identity, category=category, status=status))
    except RecordServiceError as e:
        show_error(e)
        return

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total", f"{summary.total:,.2f}")
    col2.metric("Paid", f"{summary.paid:,.2f}")
    col3.metric("Upcoming", f"{summary.upcoming:,.2f}")
    col4.metric("Overdue", f"{summary.overdue:,.2f}")

    if taxes:
        st.dataframe([
            {"Name": t.name, "Category": t.category.value, "Due": t.due_date, "Status": t.status.value, "Amount": float(t.amount)}
            for t in taxes
        ], use_container_width=True)
    else:
        st.info("No taxes match these filters.")


def render_invoices(flows: SessionFlows, state: IdentityState):
    identity = state.identity
    st.title("📄 Invoices")

    with st.expander("➕ New invoice"):
        with st.form("new-invoice", clear_on_submit=True):
            number = st.text_input("Invoice number")
            issue_date = st.date_input("Issue date", value=date.today())
            due_date = st.date_input("Due date", value=date.today())
            description = st.text_input("Item")
            quantity = st.number_input("Quantity", min_value=0.0, value=1.0)
            price = st.number_input("Price", min_value=0.0, step=0.01)
            if st.form_submit_button("Create", type="primary"):
                try:
                    run_async(flows.records.create_record(Invoice, identity, {
                        "invoice_number": number,
                        "issue_date": issue_date,
                        "due_date": due_date,
                        "items": [LineItem(
                            description=description,
                            quantity=Decimal(str(quantity)),
                            price=Decimal(str(price)),
                        )],
                    }))
                    st.success("Invoice created.")
                except RecordServiceError as e:
                    show_error(e)

    col1, col2 = st.columns([3, 1])
    search = col1.text_input("🔍 Search by number or customer")
    status = col2.selectbox("Status", [None, *InvoiceStatus], format_func=lambda s: "All" if s is None else s.value.title())

    try:
        invoices = run_async(flows.dashboard.invoices(identity, status=status, search=search))
    except RecordServiceError as e:
        show_error(e)
        return

    if not invoices:
        st.info("No invoices found.")
        return

    st.dataframe([
        {
            "Number": inv.invoice_number,
            "Customer": inv.customer.name if inv.customer else "",
            "Issued": inv.issue_date,
            "Due": inv.due_date,
            "Status": inv.status.value,
            "Total": float(inv.total_amount),
        }
        for inv in invoices
    ], use_container_width=True)


def render_customers(flows: SessionFlows, state: IdentityState):
    identity = state.identity
    st.title("👥 Customers")

    try:
        can_add = run_async(flows.dashboard.can_add_customer(identity))
    except RecordServiceError as e:
        show_error(e)
        return

    if can_add:
        with st.expander("➕ Add customer"):
            with st.form("new-customer", clear_on_submit=True):
                name = st.text_input("Name")
                email = st.text_input("Email")
                phone = st.text_input("Phone")
                if st.form_submit_button("Save", type="primary"):
                    try:
                        run_async(flows.records.create_record(Customer, identity, {
                            "name": name,
                            "email": email or None,
                            "phone": phone or None,
                        }))
                        st.success("Customer saved.")
                    except RecordServiceError as e:
                        show_error(e)
    else:
        st.warning("You've reached your plan's customer limit. Upgrade for unlimited customers.")

    render_record_table(flows, Customer, state, columns=["name", "email", "phone"])


def render_record_table(flows: SessionFlows, model, state: IdentityState, columns=None):
    try:
        records = run_async(flows.records.list_records(model, state.identity))
    except RecordServiceError as e:
        show_error(e)
        return

    if not records:
        st.info(f"No {model.record_type.replace('_', ' ')} yet.")
        return

    rows = [record.model_dump(mode="json") for record in records]
    if columns:
        rows = [{c: row.get(c) for c in columns} for row in rows]
    st.dataframe(rows, use_container_width=True)


def simple_table_page(title: str, model, columns=None):
    def page(flows: SessionFlows, state: IdentityState):
        st.title(title)
        render_record_table(flows, model, state, columns)
    return page


def render_reports(flows: SessionFlows, state: IdentityState):
    st.title("📊 Reports")
    try:
        income = run_async(flows.dashboard.income_summary(state.identity))
    except RecordServiceError as e:
        show_error(e)
        return

    if not income.by_source:
        st.info("No income recorded yet.")
        return

    st.dataframe([
        {"Source": s.value.title(), "Received": float(v)}
        for s, v in income.by_source.items()
    ], use_container_width=True)

    decision = run_async(flows.access.check_feature(
        state,
        Feature.ADVANCED_REPORTING,
        Tier.PREMIUM,
        fallback_message=(
            "Advanced reporting is only available on Premium and Enterprise plans. "
            "Upgrade to access detailed charts and analytics."
        ),
    ))
    render_guard(decision, lambda: st.bar_chart(
        {
            "Source": [s.value.title() for s in income.by_source],
            "Received": [float(v) for v in income.by_source.values()],
        },
        x="Source",
        y="Received",
    ), StreamlitRenderer())


def render_projects(flows: SessionFlows, state: IdentityState):
    st.title("📁 Projects")
    st.info("Projects, job requests and tasks are managed here.")


def render_admin(flows: SessionFlows, state: IdentityState):
    st.title("🛠️ Admin")
    status = validate_all_settings()
    for name in ("access", "google_sheets", "checkout", "app"):
        label = name.replace("_", " ").title()
        if status.get(name):
            st.success(f"✅ {label} configured")
        else:
            st.error(f"❌ {label} not configured")
            st.caption(status.get(f"{name}_error", ""))


def render_upgrade(flows: SessionFlows, state: IdentityState):
    st.title("⭐ Choose your plan")
    current = resolve_tier(state.profile.subscription_tier)

    for col, plan in zip(st.columns(len(PRICING_PLANS)), PRICING_PLANS):
        with col:
            badge = " (Most popular)" if plan.popular else ""
            st.subheader(f"{plan.name}{badge}")
            st.markdown(f"**{plan.price}** {plan.interval}")
            st.caption(plan.description)
            for feature_name in sorted(f.value for f in plan.features):
                st.markdown(f"- {feature_name.replace('_', ' ').capitalize()}")

            if plan.tier == current:
                st.button("Current plan", disabled=True, key=f"plan-{plan.tier.value}")
                continue
            url = checkout_url_for(plan.tier)
            if url:
                st.link_button(f"Get {plan.name}", url)


PAGES = {
    "/dashboard": (render_dashboard, any_role),
    "/income": (render_income, feature(Feature.INCOME_EXPENSE_TRACKING, Tier.FREE, STAFF)),
    "/expenses": (
        simple_table_page("💸 Expenses", Expense, ["expense_date", "category", "description", "status", "amount"]),
        feature(Feature.INCOME_EXPENSE_TRACKING, Tier.FREE, STAFF),
    ),
    "/customers": (render_customers, staff_only),
    "/invoices": (render_invoices, feature(Feature.BASIC_INVOICING, Tier.FREE)),
    "/taxes": (render_taxes, owner_only),
    "/bank": (
        simple_table_page("🏦 Bank", BankTransaction, ["transaction_date", "description", "transaction_type", "amount"]),
        feature(Feature.BANK_INTEGRATION, Tier.PREMIUM, OWNER),
    ),
    "/payroll": (
        simple_table_page("💼 Payroll", Employee, ["first_name", "last_name", "position", "salary", "status"]),
        feature(Feature.PAYROLL_MANAGEMENT, Tier.PREMIUM, OWNER),
    ),
    "/payroll/employees": (
        simple_table_page("💼 Employees", Employee, ["first_name", "last_name", "email", "department", "status"]),
        feature(Feature.PAYROLL_MANAGEMENT, Tier.PREMIUM, OWNER),
    ),
    "/leaves": (
        simple_table_page("🌴 Leave", LeaveApplication, ["employee_id", "start_date", "end_date", "leave_type", "status"]),
        staff_only,
    ),
    "/projects": (render_projects, feature(Feature.PROJECT_MANAGEMENT, Tier.ENTERPRISE)),
    "/projects/job-requests": (render_projects, feature(Feature.PROJECT_MANAGEMENT, Tier.ENTERPRISE)),
    "/projects/tasks": (render_projects, feature(Feature.PROJECT_MANAGEMENT, Tier.ENTERPRISE, STAFF)),
    "/projects/services": (render_projects, feature(Feature.PROJECT_MANAGEMENT, Tier.ENTERPRISE, OWNER)),
    "/reports": (render_reports, feature(Feature.BASIC_REPORTING, Tier.FREE, STAFF)),
    "/upgrade": (render_upgrade, owner_only),
    "/admin": (render_admin, admin_only),
}


if __name__ == "__main__":
    main()
