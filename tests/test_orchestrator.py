"""
Integration tests for the flows.

Everything runs against the in-memory backends; audit events are read
back from InMemoryAuditStorage.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from eazybooks.access.guards import DenialReason, decide_role_access
from eazybooks.audit import AuditLogger
from eazybooks.config import AccessSettings
from eazybooks.models import (
    Customer,
    Income,
    IncomeSource,
    IncomeStatus,
    Invoice,
    LineItem,
    Role,
    Tax,
    TaxCategory,
    Tier,
)
from eazybooks.models.audit import AuditEventBuilder, AuditEventType
from eazybooks.orchestrator import (
    AccessFlow,
    DashboardFlow,
    RecordsFlow,
    RecordServiceError,
    create_app_components,
    create_session_flows,
)
from eazybooks.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryIdentityProvider,
    InMemoryRecordStore,
    InvalidRecordError,
    StorageError,
)

from tests.conftest import build_identity


def event_types(storage):
    return [event.event_type for event in storage.events]


class BrokenRecordStore(InMemoryRecordStore):
    """Record store whose reads and writes always fail."""

    async def list_records(self, model, owner_id):
        raise StorageError("backend unavailable")

    async def create_record(self, record):
        raise StorageError("backend unavailable")


class SingleWriteRecordStore(InMemoryRecordStore):
    """Record store that accepts one update and fails every one after it."""

    def __init__(self):
        super().__init__()
        self.updates = 0

    async def update_record(self, model, owner_id, record_id, patch):
        self.updates += 1
        if self.updates > 1:
            raise StorageError("quota exceeded")
        return await super().update_record(model, owner_id, record_id, patch)


class CorruptRecordStore(InMemoryRecordStore):
    async def get_record(self, model, owner_id, record_id):
        raise InvalidRecordError(f"Malformed {model.record_type} row {record_id}")


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise StorageError("audit sheet unavailable")


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def records(audit_storage):
    return RecordsFlow(InMemoryRecordStore(), AuditLogger(audit_storage))


def access_flow(identity=None, audit_storage=None, error=None, **settings):
    return AccessFlow(
        InMemoryIdentityProvider(identity, error=error),
        AuditLogger(audit_storage) if audit_storage is not None else None,
        AccessSettings(**settings),
    )


class TestAccessFlow:
    """Tests for identity resolution and audited guards."""

    def test_resolve_identity(self, owner):
        """Test the resolved state carries the identity."""
        state = asyncio.run(access_flow(owner).resolve())
        assert state.identity == owner
        assert state.error is None

    def test_resolve_failure_is_audited(self, audit_storage):
        """Test a provider failure becomes a failed state and an audit event."""
        flow = access_flow(audit_storage=audit_storage, error=RuntimeError("auth down"))
        state = asyncio.run(flow.resolve())
        assert state.error == "auth down"
        assert state.profile is None
        assert event_types(audit_storage) == [AuditEventType.IDENTITY_RESOLUTION_FAILED]

    def test_role_denial_is_audited(self, audit_storage):
        """Test denials are recorded against the route."""
        client = build_identity(role=Role.CLIENT)
        flow = access_flow(client, audit_storage)

        async def scenario():
            state = await flow.resolve()
            return await flow.check_role(state, [Role.EMPLOYEE], "/leaves")

        decision = asyncio.run(scenario())
        assert decision.reason == DenialReason.ROLE_NOT_ALLOWED
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.ACCESS_DENIED
        assert event.entity_id == "/leaves"
        assert event.actor_id == client.user_id

    def test_allowed_is_not_audited(self, owner, audit_storage):
        """Test routine grants don't flood the audit log."""
        flow = access_flow(owner, audit_storage)

        async def scenario():
            return await flow.check_role(await flow.resolve(), [Role.BUSINESS_OWNER], "/taxes")

        assert asyncio.run(scenario()).is_allowed
        assert audit_storage.events == []

    def test_admin_override_is_audited(self, audit_storage):
        """Test the configured override identity is allowed and logged."""
        employee = build_identity(role=Role.EMPLOYEE, email="Root@Example.com")
        flow = access_flow(employee, audit_storage, super_admin_email="root@example.com")

        async def scenario():
            return await flow.check_admin(await flow.resolve(), "/admin")

        decision = asyncio.run(scenario())
        assert decision.is_allowed
        assert decision.via_override is True
        assert event_types(audit_storage) == [AuditEventType.ADMIN_OVERRIDE_USED]

    def test_admin_override_off_by_default(self, audit_storage):
        """Test no override without configuration."""
        employee = build_identity(role=Role.EMPLOYEE, email="root@example.com")
        flow = access_flow(employee, audit_storage)

        async def scenario():
            return await flow.check_admin(await flow.resolve(), "/admin")

        assert asyncio.run(scenario()).reason == DenialReason.NOT_ADMIN

    def test_unmapped_feature_is_audited(self, audit_storage):
        """Test unknown feature names log a configuration warning and deny."""
        flow = access_flow(build_identity(tier=Tier.ENTERPRISE), audit_storage)

        async def scenario():
            return await flow.check_feature(await flow.resolve(), "undefined_feature_xyz", Tier.FREE)

        decision = asyncio.run(scenario())
        assert decision.reason == DenialReason.FEATURE_UNAVAILABLE
        assert event_types(audit_storage) == [
            AuditEventType.FEATURE_NOT_MAPPED,
            AuditEventType.ACCESS_DENIED,
        ]

    def test_feature_upgrade_path_from_settings(self):
        """Test the upsell button points at the configured page."""
        flow = access_flow(build_identity(tier=Tier.FREE), upgrade_path="/plans")

        async def scenario():
            return await flow.check_feature(await flow.resolve(), "bank_integration", "premium")

        assert asyncio.run(scenario()).panel.upgrade_path == "/plans"

    def test_controller_audits_fetch_failure(self, audit_storage):
        """Test a guard controller built by the flow records identity failures."""
        flow = access_flow(audit_storage=audit_storage, error=RuntimeError("down"))

        async def scenario():
            controller = flow.controller(lambda s: decide_role_access(s, list(Role)))
            controller.mount()
            return await controller.wait()

        decision = asyncio.run(scenario())
        assert decision.reason == DenialReason.IDENTITY_UNAVAILABLE
        assert event_types(audit_storage) == [AuditEventType.IDENTITY_RESOLUTION_FAILED]


class TestRecordsFlow:
    """Tests for owner-scoped record operations."""

    def test_create_uses_identity_as_owner(self, owner, records, audit_storage):
        """Test callers cannot create records for someone else."""
        saved = asyncio.run(records.create_record(Customer, owner, {"name": "Bob", "user_id": "intruder"}))
        assert saved.user_id == owner.user_id
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.RECORD_CREATED
        assert event.entity_id == saved.id

    def test_invoice_total_is_computed(self, owner, records):
        """Test invoice totals come from their items."""
        saved = asyncio.run(records.create_record(Invoice, owner, {
            "invoice_number": "INV-001",
            "issue_date": date(2024, 6, 1),
            "due_date": date(2024, 6, 30),
            "items": [
                LineItem(description="Bread", quantity=Decimal("3"), price=Decimal("2.50")),
                LineItem(description="Cake", quantity=Decimal("1"), price=Decimal("20")),
            ],
        }))
        assert saved.total_amount == Decimal("27.50")
        assert [item.amount for item in saved.items] == [Decimal("7.50"), Decimal("20.00")]

    def test_update_items_recomputes_total(self, owner, records, audit_storage):
        """Test patching items refreshes the total."""
        async def scenario():
            saved = await records.create_record(Invoice, owner, {
                "invoice_number": "INV-002",
                "issue_date": date(2024, 6, 1),
                "due_date": date(2024, 6, 30),
            })
            return await records.update_record(Invoice, owner, saved.id, {
                "items": [LineItem(description="Pie", quantity=Decimal("2"), price=Decimal("4"))],
            })

        updated = asyncio.run(scenario())
        assert updated.total_amount == Decimal("8.00")
        assert audit_storage.events[-1].details == {"fields": ["items"]}

    def test_items_update_is_a_single_write(self, owner):
        """Test new items and their total are stored in one update."""
        store = SingleWriteRecordStore()
        flow = RecordsFlow(store)

        async def scenario():
            saved = await flow.create_record(Invoice, owner, {
                "invoice_number": "INV-004",
                "issue_date": date(2024, 6, 1),
                "due_date": date(2024, 6, 30),
                "items": [LineItem(description="Tart", quantity=Decimal("1"), price=Decimal("10"))],
            })
            await flow.update_record(Invoice, owner, saved.id, {
                "items": [{"description": "Tart", "quantity": "3", "price": "10"}],
            })
            return await store.get_record(Invoice, owner.user_id, saved.id)

        stored = asyncio.run(scenario())
        assert store.updates == 1
        assert [item.amount for item in stored.items] == [Decimal("30.00")]
        assert stored.total_amount == Decimal("30.00")

    def test_corrupt_record_becomes_service_error(self, owner, audit_storage):
        """Test a malformed stored row reaches the caller as a readable error."""
        flow = RecordsFlow(CorruptRecordStore(), AuditLogger(audit_storage))
        with pytest.raises(RecordServiceError) as excinfo:
            asyncio.run(flow.get_record(Invoice, owner, "inv-9"))
        assert excinfo.value.user_message == "Couldn't load your invoices. Please try again."
        assert event_types(audit_storage) == [AuditEventType.DATA_ERROR]

    def test_invalid_data_raises_service_error(self, owner, records, audit_storage):
        """Test validation failures reach the caller with a readable message."""
        with pytest.raises(RecordServiceError) as excinfo:
            asyncio.run(records.create_record(Invoice, owner, {
                "invoice_number": "INV-003",
                "issue_date": date(2024, 6, 30),
                "due_date": date(2024, 6, 1),
            }))
        assert "invoices" in excinfo.value.user_message
        assert excinfo.value.record_type == "invoices"
        assert event_types(audit_storage) == [AuditEventType.DATA_ERROR]

    def test_update_missing_record(self, owner, records):
        """Test updating an unknown record is reported as gone."""
        with pytest.raises(RecordServiceError) as excinfo:
            asyncio.run(records.update_record(Customer, owner, "missing", {"name": "X"}))
        assert excinfo.value.user_message == "That customers record no longer exists."

    def test_delete_is_audited(self, owner, records, audit_storage):
        """Test deletions are recorded; no-op deletes are not."""
        async def scenario():
            saved = await records.create_record(Customer, owner, {"name": "Bob"})
            return (
                await records.delete_record(Customer, owner, saved.id),
                await records.delete_record(Customer, owner, saved.id),
            )

        assert asyncio.run(scenario()) == (True, False)
        assert event_types(audit_storage) == [
            AuditEventType.RECORD_CREATED,
            AuditEventType.RECORD_DELETED,
        ]

    def test_storage_failure_becomes_service_error(self, owner, audit_storage):
        """Test backend errors are wrapped and audited."""
        flow = RecordsFlow(BrokenRecordStore(), AuditLogger(audit_storage))
        with pytest.raises(RecordServiceError) as excinfo:
            asyncio.run(flow.list_records(Income, owner))
        assert excinfo.value.user_message == "Couldn't load your incomes. Please try again."
        assert isinstance(excinfo.value.__cause__, StorageError)
        assert audit_storage.events[-1].error_message == "backend unavailable"


class TestDashboardFlow:
    """Tests for fetch-then-aggregate flows."""

    def test_income_summary_is_owner_scoped(self, owner, records):
        """Test other owners' income never leaks into the summary."""
        stranger = build_identity(user_id="user-2")
        dashboard = DashboardFlow(records, AccessSettings())

        async def scenario():
            for identity, amount in ((owner, "100"), (stranger, "999")):
                await records.create_record(Income, identity, {
                    "description": "Sale",
                    "amount": Decimal(amount),
                    "income_date": date(2024, 6, 1),
                    "source": IncomeSource.SALES,
                    "status": IncomeStatus.RECEIVED,
                })
            return await dashboard.income_summary(owner)

        summary = asyncio.run(scenario())
        assert summary.total_received == Decimal("100")
        assert summary.top_source == IncomeSource.SALES

    def test_tax_summary_uses_configured_window(self, owner, records):
        """Test the upcoming window comes from settings."""
        dashboard = DashboardFlow(records, AccessSettings(upcoming_tax_window_days=3))

        async def scenario():
            await records.create_record(Tax, owner, {
                "name": "VAT",
                "category": TaxCategory.SALES,
                "amount": Decimal("20"),
                "due_date": date(2024, 6, 20),
            })
            return await dashboard.tax_summary(owner, today=date(2024, 6, 15))

        summary = asyncio.run(scenario())
        assert summary.pending == Decimal("20")
        assert summary.upcoming == Decimal("0")

    def test_invoice_search(self, owner, records):
        """Test the invoice list is filtered after fetching."""
        dashboard = DashboardFlow(records, AccessSettings())

        async def scenario():
            for number in ("INV-006", "INV-007"):
                await records.create_record(Invoice, owner, {
                    "invoice_number": number,
                    "issue_date": date(2024, 6, 1),
                    "due_date": date(2024, 6, 30),
                })
            return await dashboard.invoices(owner, search="inv-007")

        assert [inv.invoice_number for inv in asyncio.run(scenario())] == ["INV-007"]

    def test_customer_limit_on_free_plan(self, records):
        """Test free owners can't add an eleventh customer."""
        free_owner = build_identity(tier=Tier.FREE)
        premium_owner = build_identity(tier=Tier.PREMIUM, user_id="user-9")
        dashboard = DashboardFlow(records, AccessSettings())

        async def scenario():
            for identity in (free_owner, premium_owner):
                for i in range(10):
                    await records.create_record(Customer, identity, {"name": f"Customer {i}"})
            return (
                await dashboard.can_add_customer(free_owner),
                await dashboard.can_add_customer(premium_owner),
            )

        assert asyncio.run(scenario()) == (False, True)


class TestFactories:
    """Tests for component wiring."""

    def test_without_storage_uses_memory(self):
        """Test the in-memory fallback."""
        components = create_app_components(use_storage=False)
        assert isinstance(components.record_store, InMemoryRecordStore)
        assert components.sheets_client is None

    def test_local_session_identity(self):
        """Test local sessions get an identity with the chosen plan and role."""
        components = create_app_components(use_storage=False)
        flows = create_session_flows(components, "local-1", "me@example.com", Tier.PREMIUM, Role.EMPLOYEE)
        state = asyncio.run(flows.access.resolve())
        assert state.profile.subscription_tier == Tier.PREMIUM
        assert state.profile.role == Role.EMPLOYEE

    def test_no_user_means_no_session(self):
        """Test an empty sign-in resolves to no identity."""
        flows = create_session_flows(create_app_components(use_storage=False), None)
        assert asyncio.run(flows.access.resolve()).identity is None


class TestAuditLogger:
    """Tests for the audit logger."""

    def test_storage_failure_is_swallowed(self):
        """Test audit failures never break the calling flow."""
        logger = AuditLogger(BrokenAuditStorage())
        event = AuditEventBuilder.record_deleted("u1", "incomes", "rec-1")
        assert asyncio.run(logger.log(event)) is False

    def test_local_only_logging(self):
        """Test logging without storage succeeds."""
        event = AuditEventBuilder.system_error("boom", "something failed")
        assert asyncio.run(AuditLogger().log(event)) is True

    def test_helpers_append_events(self, audit_storage):
        """Test helper methods persist their events."""
        logger = AuditLogger(audit_storage)
        asyncio.run(logger.log_record_updated("u1", "taxes", "t1", ["status"]))
        event = audit_storage.events[0]
        assert event.event_type == AuditEventType.RECORD_UPDATED
        assert event.details == {"fields": ["status"]}

    def test_storage_interface_is_abstract(self):
        """Test audit storage can't be instantiated without an implementation."""
        with pytest.raises(TypeError):
            AuditStorageInterface()
