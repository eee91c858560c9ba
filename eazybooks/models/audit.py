"""
Audit Models for EazyBooks

Access decisions and record mutations are logged for audit purposes.
This provides:
1. A record of who was turned away from what, and why
2. Visibility whenever the admin override identity is used
3. Debugging information when storage fails
4. Ability to reconstruct a record's history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Access control
    ACCESS_DENIED = "access_denied"
    ADMIN_OVERRIDE_USED = "admin_override_used"
    FEATURE_NOT_MAPPED = "feature_not_mapped"
    IDENTITY_RESOLUTION_FAILED = "identity_resolution_failed"

    # Records
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    DATA_ERROR = "data_error"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who triggered it (None for anonymous sessions)
    actor_id: Optional[str] = None

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'incomes', 'feature', 'route')"
    )
    entity_id: Optional[str] = None

    # For tracking related events
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "actor_id": self.actor_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, actor_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.actor_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.access_denied(actor_id, "route", "/admin", "not_admin")
        event = AuditEventBuilder.record_created(actor_id, "incomes", income.id)
    """

    @staticmethod
    def access_denied(
        actor_id: Optional[str],
        entity_type: str,
        entity_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_DENIED,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Access denied to {entity_type} {entity_id}: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def admin_override_used(
        actor_id: str,
        email: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADMIN_OVERRIDE_USED,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            entity_type="identity",
            entity_id=actor_id,
            correlation_id=correlation_id,
            description="Admin access granted through the override identity",
            details={"email": email},
        )

    @staticmethod
    def feature_not_mapped(
        feature_name: str,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FEATURE_NOT_MAPPED,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            entity_type="feature",
            entity_id=feature_name,
            description=f"Feature '{feature_name}' is not in the feature map",
        )

    @staticmethod
    def identity_resolution_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_RESOLUTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="identity",
            correlation_id=correlation_id,
            description="Identity could not be resolved; treated as no session",
            error_message=error_message,
        )

    @staticmethod
    def record_created(
        actor_id: str,
        record_type: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            actor_id=actor_id,
            entity_type=record_type,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Created {record_type} record",
        )

    @staticmethod
    def record_updated(
        actor_id: str,
        record_type: str,
        record_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            actor_id=actor_id,
            entity_type=record_type,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Updated {record_type} record ({len(fields)} fields)",
            details={"fields": fields},
        )

    @staticmethod
    def record_deleted(
        actor_id: str,
        record_type: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            actor_id=actor_id,
            entity_type=record_type,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Deleted {record_type} record",
        )

    @staticmethod
    def data_error(
        actor_id: Optional[str],
        record_type: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_ERROR,
            severity=AuditSeverity.ERROR,
            actor_id=actor_id,
            entity_type=record_type,
            correlation_id=correlation_id,
            description=f"Failed to {operation} {record_type}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
