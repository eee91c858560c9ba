"""
Main Orchestrator for EazyBooks

This module ties together all the components and defines the
end-to-end flows for:
1. Access (resolve identity → decide → audit)
2. Records (owner-scoped create / read / update / delete)
3. Dashboard (fetch → aggregate)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Records are always read and written for the signed-in owner only
- Access denials and override grants are always audited
- Storage failures reach the UI as a RecordServiceError with a message
  a user can act on, never as a raw backend exception

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from datetime import date
from typing import Any, Callable, NamedTuple, Optional, Union
from uuid import UUID

import structlog

from eazybooks.access.evaluator import coerce_feature, resolve_tier
from eazybooks.access.guards import (
    AccessDecision,
    GuardController,
    IdentityState,
    decide_admin_access,
    decide_feature_access,
    decide_role_access,
)
from eazybooks.access.plans import within_limit
from eazybooks.aggregation import (
    calculate_items_total,
    filter_invoices,
    filter_taxes,
    prepare_line_items,
    summarize_income,
    summarize_taxes,
    with_computed_total,
)
from eazybooks.audit import AuditLogger, create_correlation_id
from eazybooks.config import AccessSettings, get_settings
from eazybooks.models.access import (
    Business,
    Feature,
    Identity,
    Role,
    Tier,
    UserProfile,
)
from eazybooks.models.records import (
    Customer,
    Income,
    IncomeSummary,
    Invoice,
    InvoiceStatus,
    LineItem,
    Quotation,
    Tax,
    TaxCategory,
    TaxStatus,
    TaxSummary,
)
from eazybooks.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsIdentityProvider,
    GoogleSheetsRecordStore,
    IdentityProviderInterface,
    InMemoryAuditStorage,
    InMemoryIdentityProvider,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class RecordServiceError(Exception):
    """
    A record operation failed.

    `user_message` is safe to show in the UI as-is.
    """

    def __init__(
        self,
        message: str,
        user_message: str,
        record_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.user_message = user_message
        self.record_type = record_type


def _label(model: type) -> str:
    return model.record_type.replace("_", " ")


# =============================================================================
# ACCESS
# =============================================================================

class AccessFlow:
    """
    Resolves the current identity and runs guards against it.

    Flow:
    1. Resolve → ask the identity provider (failures become "no session")
    2. Decide → pure guard decision
    3. Audit → denials, override grants and unmapped features

    The `check_*` methods take an already-resolved IdentityState so one
    page render resolves identity once and runs any number of guards.
    """

    def __init__(
        self,
        identity_provider: IdentityProviderInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AccessSettings] = None,
    ):
        self._identity_provider = identity_provider
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().access

    async def _fetch_identity(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Identity]:
        try:
            return await self._identity_provider.get_identity()
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_identity_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    async def resolve(self, correlation_id: Optional[UUID] = None) -> IdentityState:
        """Resolve identity once. Never raises."""
        try:
            identity = await self._fetch_identity(correlation_id)
        except Exception as e:
            logger.warning("identity_resolution_failed", error=str(e))
            return IdentityState.failed(str(e))
        return IdentityState.resolved(identity)

    def controller(
        self,
        decide: Callable[[IdentityState], AccessDecision],
        correlation_id: Optional[UUID] = None,
    ) -> GuardController:
        """A guard controller that resolves identity through this flow."""
        return GuardController(
            lambda: self._fetch_identity(correlation_id),
            decide,
        )

    async def _audit(
        self,
        decision: AccessDecision,
        state: IdentityState,
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID],
    ) -> None:
        if not self._audit_logger:
            return

        actor_id = state.identity.user_id if state.identity else None
        if decision.is_denied and decision.reason is not None:
            await self._audit_logger.log_access_denied(
                actor_id=actor_id,
                entity_type=entity_type,
                entity_id=entity_id,
                reason=decision.reason.value,
                correlation_id=correlation_id,
            )
        elif decision.via_override and state.identity is not None:
            profile = state.profile
            await self._audit_logger.log_admin_override(
                actor_id=state.identity.user_id,
                email=(profile.email if profile else None) or state.identity.email or "",
                correlation_id=correlation_id,
            )

    async def check_role(
        self,
        state: IdentityState,
        allowed_roles: list[Role],
        path: str,
        fallback_path: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AccessDecision:
        decision = decide_role_access(
            state,
            allowed_roles,
            fallback_path or self._settings.default_fallback_path,
        )
        await self._audit(decision, state, "route", path, correlation_id)
        return decision

    async def check_admin(
        self,
        state: IdentityState,
        path: str,
        fallback_path: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AccessDecision:
        decision = decide_admin_access(
            state,
            fallback_path or self._settings.default_fallback_path,
            override_email=self._settings.super_admin_email,
        )
        await self._audit(decision, state, "route", path, correlation_id)
        return decision

    async def check_feature(
        self,
        state: IdentityState,
        feature: Union[Feature, str],
        required_tier: Union[Tier, str],
        fallback_message: Optional[str] = None,
        show_upgrade_button: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> AccessDecision:
        feature_name = feature.value if isinstance(feature, Feature) else str(feature)
        if coerce_feature(feature) is None and self._audit_logger:
            await self._audit_logger.log_feature_not_mapped(
                feature_name=feature_name,
                actor_id=state.identity.user_id if state.identity else None,
            )

        decision = decide_feature_access(
            state,
            feature,
            required_tier,
            fallback_message=fallback_message,
            show_upgrade_button=show_upgrade_button,
            upgrade_path=self._settings.upgrade_path,
        )
        await self._audit(decision, state, "feature", feature_name, correlation_id)
        return decision


# =============================================================================
# RECORDS
# =============================================================================

class RecordsFlow:
    """
    Owner-scoped record operations with auditing.

    The owner always comes from the identity, never from the caller's
    data, so a user can only ever touch their own records.
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = record_store
        self._audit_logger = audit_logger

    async def _fail(
        self,
        identity: Identity,
        model: type,
        operation: str,
        error: Exception,
        correlation_id: Optional[UUID],
    ) -> RecordServiceError:
        if self._audit_logger:
            await self._audit_logger.log_data_error(
                actor_id=identity.user_id,
                record_type=model.record_type,
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
            )

        if isinstance(error, NotFoundError):
            user_message = f"That {_label(model)} record no longer exists."
        elif isinstance(error, ValueError):
            user_message = f"Some of the {_label(model)} details are invalid: {error}"
        else:
            user_message = f"Couldn't {operation} your {_label(model)}. Please try again."

        return RecordServiceError(
            f"{operation} {model.record_type} failed: {error}",
            user_message=user_message,
            record_type=model.record_type,
        )

    async def list_records(
        self,
        model: type,
        identity: Identity,
        correlation_id: Optional[UUID] = None,
    ) -> list:
        try:
            return await self._store.list_records(model, identity.owner_id)
        except StorageError as e:
            raise await self._fail(identity, model, "load", e, correlation_id) from e

    async def get_record(
        self,
        model: type,
        identity: Identity,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Any]:
        try:
            return await self._store.get_record(model, identity.owner_id, record_id)
        except StorageError as e:
            raise await self._fail(identity, model, "load", e, correlation_id) from e

    async def create_record(
        self,
        model: type,
        identity: Identity,
        data: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Any:
        """
        Build a `model` owned by the identity from `data` and store it.

        Invoice and quotation totals are recomputed from their items.
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            record = model(**{**data, "user_id": identity.owner_id})
            if isinstance(record, (Invoice, Quotation)):
                record = with_computed_total(record)
            saved = await self._store.create_record(record)
        except (StorageError, ValueError) as e:
            raise await self._fail(identity, model, "save", e, correlation_id) from e

        if self._audit_logger:
            await self._audit_logger.log_record_created(
                actor_id=identity.user_id,
                record_type=model.record_type,
                record_id=saved.id,
                correlation_id=correlation_id,
            )
        return saved

    async def update_record(
        self,
        model: type,
        identity: Identity,
        record_id: str,
        patch: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Any:
        correlation_id = correlation_id or create_correlation_id()
        fields = sorted(patch)
        try:
            if model in (Invoice, Quotation) and "items" in patch:
                # Items and total are written together so they never disagree
                items = prepare_line_items(
                    LineItem.model_validate(item) for item in patch["items"]
                )
                patch = {
                    **patch,
                    "items": items,
                    "total_amount": calculate_items_total(items),
                }
            updated = await self._store.update_record(
                model, identity.owner_id, record_id, patch
            )
        except (StorageError, ValueError) as e:
            raise await self._fail(identity, model, "update", e, correlation_id) from e

        if self._audit_logger:
            await self._audit_logger.log_record_updated(
                actor_id=identity.user_id,
                record_type=model.record_type,
                record_id=record_id,
                fields=fields,
                correlation_id=correlation_id,
            )
        return updated

    async def delete_record(
        self,
        model: type,
        identity: Identity,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        try:
            deleted = await self._store.delete_record(model, identity.owner_id, record_id)
        except StorageError as e:
            raise await self._fail(identity, model, "delete", e, correlation_id) from e

        if deleted and self._audit_logger:
            await self._audit_logger.log_record_deleted(
                actor_id=identity.user_id,
                record_type=model.record_type,
                record_id=record_id,
                correlation_id=correlation_id,
            )
        return deleted


# =============================================================================
# DASHBOARD
# =============================================================================

class DashboardFlow:
    """Fetches owner-scoped records and hands them to the aggregation routines."""

    def __init__(
        self,
        records: RecordsFlow,
        settings: Optional[AccessSettings] = None,
    ):
        self._records = records
        self._settings = settings or get_settings().access

    async def income_summary(self, identity: Identity) -> IncomeSummary:
        incomes = await self._records.list_records(Income, identity)
        return summarize_income(incomes)

    async def tax_summary(
        self,
        identity: Identity,
        today: Optional[date] = None,
    ) -> TaxSummary:
        taxes = await self._records.list_records(Tax, identity)
        return summarize_taxes(
            taxes,
            today or date.today(),
            upcoming_window_days=self._settings.upcoming_tax_window_days,
        )

    async def taxes(
        self,
        identity: Identity,
        category: Optional[TaxCategory] = None,
        status: Optional[TaxStatus] = None,
    ) -> list[Tax]:
        taxes = await self._records.list_records(Tax, identity)
        return filter_taxes(taxes, category=category, status=status)

    async def invoices(
        self,
        identity: Identity,
        status: Optional[InvoiceStatus] = None,
        search: str = "",
    ) -> list[Invoice]:
        invoices = await self._records.list_records(Invoice, identity)
        return filter_invoices(invoices, status=status, search=search)

    async def can_add_customer(self, identity: Identity) -> bool:
        """Whether the plan's customer cap leaves room for one more."""
        tier = resolve_tier(identity.profile.subscription_tier if identity.profile else None)
        customers = await self._records.list_records(Customer, identity)
        return within_limit(tier, "customers", len(customers))


# =============================================================================
# FACTORIES
# =============================================================================

class AppComponents(NamedTuple):
    record_store: RecordStoreInterface
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient]


class SessionFlows(NamedTuple):
    access: AccessFlow
    records: RecordsFlow
    dashboard: DashboardFlow


def create_app_components(use_storage: bool = True) -> AppComponents:
    """
    Factory function to create the shared application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Falls back to in-memory storage when False or
                    when Sheets isn't configured.
    """
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.get_spreadsheet()
            return AppComponents(
                record_store=GoogleSheetsRecordStore(sheets_client),
                audit_logger=AuditLogger(GoogleSheetsAuditStorage(sheets_client)),
                sheets_client=sheets_client,
            )
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))

    return AppComponents(
        record_store=InMemoryRecordStore(),
        audit_logger=AuditLogger(InMemoryAuditStorage()),
        sheets_client=None,
    )


def local_identity(
    user_id: str,
    email: Optional[str] = None,
    tier: Tier = Tier.FREE,
    role: Role = Role.BUSINESS_OWNER,
) -> Identity:
    """Identity for local runs without an identity backend."""
    profile = UserProfile(
        id=f"profile-{user_id}",
        user_id=user_id,
        email=email,
        role=role,
        subscription_tier=tier,
        onboarding_completed=True,
    )
    business = Business(id=f"business-{user_id}", name="My Business", owner_id=user_id)
    return Identity(user_id=user_id, email=email, profile=profile, business=business)


def create_session_flows(
    components: AppComponents,
    user_id: Optional[str],
    email: Optional[str] = None,
    local_tier: Tier = Tier.FREE,
    local_role: Role = Role.BUSINESS_OWNER,
) -> SessionFlows:
    """
    Flows bound to one signed-in session.

    With Google Sheets configured the identity comes from the Profiles
    sheet; otherwise a local identity is built from `local_tier` and
    `local_role`.
    """
    if components.sheets_client is not None:
        identity_provider: IdentityProviderInterface = GoogleSheetsIdentityProvider(
            user_id, email, components.sheets_client
        )
    elif user_id:
        identity_provider = InMemoryIdentityProvider(
            local_identity(user_id, email, local_tier, local_role)
        )
    else:
        identity_provider = InMemoryIdentityProvider()

    records = RecordsFlow(components.record_store, components.audit_logger)
    return SessionFlows(
        access=AccessFlow(identity_provider, components.audit_logger),
        records=records,
        dashboard=DashboardFlow(records),
    )
