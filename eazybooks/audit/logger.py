"""
Audit Logger

DESIGN DECISION: Every access denial, override grant and record
mutation is logged. This provides:
1. Traceability of who was turned away from what
2. Visibility whenever the admin override identity is used
3. Debugging capability when storage fails

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from eazybooks.models.audit import AuditEvent, AuditEventBuilder
from eazybooks.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (Google Sheets in production, memory in tests)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_access_denied(
        self,
        actor_id: Optional[str],
        entity_type: str,
        entity_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a guard turning a user away."""
        event = AuditEventBuilder.access_denied(
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_admin_override(
        self,
        actor_id: str,
        email: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log admin access granted through the override identity."""
        event = AuditEventBuilder.admin_override_used(
            actor_id=actor_id,
            email=email,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_feature_not_mapped(
        self,
        feature_name: str,
        actor_id: Optional[str] = None,
    ) -> None:
        event = AuditEventBuilder.feature_not_mapped(
            feature_name=feature_name,
            actor_id=actor_id,
        )
        await self.log(event)

    async def log_identity_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.identity_resolution_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_created(
        self,
        actor_id: str,
        record_type: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_created(
            actor_id=actor_id,
            record_type=record_type,
            record_id=record_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_updated(
        self,
        actor_id: str,
        record_type: str,
        record_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_updated(
            actor_id=actor_id,
            record_type=record_type,
            record_id=record_id,
            fields=fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_deleted(
        self,
        actor_id: str,
        record_type: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_deleted(
            actor_id=actor_id,
            record_type=record_type,
            record_id=record_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_data_error(
        self,
        actor_id: Optional[str],
        record_type: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed fetch or write."""
        event = AuditEventBuilder.data_error(
            actor_id=actor_id,
            record_type=record_type,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., opening a page).
    Pass it through all subsequent operations.
    """
    return uuid4()
