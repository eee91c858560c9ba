"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for the hosted backend.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interfaces are intentionally simple - we're not building a full ORM.
One generic record store covers every record type: the model class
tells the store which collection to use.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional, TypeVar
from uuid import UUID

from eazybooks.models.access import Identity
from eazybooks.models.audit import AuditEvent
from eazybooks.models.records import OwnedRecord


RecordT = TypeVar("RecordT", bound=OwnedRecord)

# Fields a partial patch may never touch
PROTECTED_FIELDS = frozenset({"id", "user_id", "created_at"})


class RecordStoreInterface(ABC):
    """
    Abstract interface for owner-scoped record storage.

    Every operation takes the owner id; a record owned by someone else
    behaves exactly like a missing record.
    """

    @abstractmethod
    async def list_records(
        self,
        model: type[RecordT],
        owner_id: str,
    ) -> list[RecordT]:
        """
        List every record of `model`'s type owned by `owner_id`.

        Returns:
            Records in storage order (oldest first)

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def get_record(
        self,
        model: type[RecordT],
        owner_id: str,
        record_id: str,
    ) -> Optional[RecordT]:
        """
        Retrieve one record.

        Returns:
            The record if found and owned by `owner_id`, None otherwise
        """
        pass

    @abstractmethod
    async def create_record(self, record: RecordT) -> RecordT:
        """
        Insert a new record.

        Returns:
            The stored record

        Raises:
            DuplicateError: If a record with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_record(
        self,
        model: type[RecordT],
        owner_id: str,
        record_id: str,
        patch: dict[str, Any],
    ) -> RecordT:
        """
        Apply a partial patch to an existing record.

        Returns:
            The updated record

        Raises:
            NotFoundError: If the record doesn't exist for this owner
            ValueError: If the patch touches protected fields or
                        produces an invalid record
        """
        pass

    @abstractmethod
    async def delete_record(
        self,
        model: type[RecordT],
        owner_id: str,
        record_id: str,
    ) -> bool:
        """
        Delete a record by id.

        Returns:
            True if a record was deleted, False if none matched
        """
        pass


class IdentityProviderInterface(ABC):
    """
    Abstract interface for the auth/session provider.

    Resolution is asynchronous and may fail; callers decide how a
    failure is treated (guards treat it as "no session").
    """

    @abstractmethod
    async def get_identity(self) -> Optional[Identity]:
        """
        Resolve the current session.

        Returns:
            The identity with profile and business, or None when
            nobody is signed in

        Raises:
            StorageError: If the provider cannot be reached
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """List of related events in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """List of events for one entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """List of recent events (newest first)."""
        pass


def apply_patch(record: RecordT, patch: dict[str, Any]) -> RecordT:
    """
    Return a re-validated copy of `record` with `patch` applied.

    `updated_at` is refreshed. Unknown fields and protected fields
    raise ValueError.
    """
    touched = set(patch)
    protected = touched & PROTECTED_FIELDS
    if protected:
        raise ValueError(f"Cannot patch protected fields: {sorted(protected)}")
    unknown = touched - set(type(record).model_fields)
    if unknown:
        raise ValueError(f"Unknown fields for {type(record).record_type}: {sorted(unknown)}")

    data = record.model_dump()
    data.update(patch)
    data["updated_at"] = datetime.now(timezone.utc)
    return type(record).model_validate(data)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class InvalidRecordError(StorageError):
    """Stored data doesn't match its schema. Retrying won't help."""
    pass
