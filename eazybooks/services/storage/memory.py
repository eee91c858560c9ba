"""
In-Memory Storage

Process-local implementations of the storage interfaces. Used by the
test suite and by the app when Google Sheets isn't configured.

Records are copied on the way in and on the way out so callers can
never mutate stored state by accident.
"""

from typing import Any, Optional
from uuid import UUID

from eazybooks.models.access import Identity
from eazybooks.models.audit import AuditEvent
from eazybooks.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    IdentityProviderInterface,
    NotFoundError,
    RecordStoreInterface,
    RecordT,
    apply_patch,
)


class InMemoryRecordStore(RecordStoreInterface):
    """Dictionary-backed record store keyed by record type, then id."""

    def __init__(self):
        self._tables: dict[str, dict[str, Any]] = {}

    def _table(self, model: type) -> dict[str, Any]:
        return self._tables.setdefault(model.record_type, {})

    async def list_records(
        self,
        model: type[RecordT],
        owner_id: str,
    ) -> list[RecordT]:
        return [
            record.model_copy(deep=True)
            for record in self._table(model).values()
            if record.user_id == owner_id
        ]

    async def get_record(
        self,
        model: type[RecordT],
        owner_id: str,
        record_id: str,
    ) -> Optional[RecordT]:
        record = self._table(model).get(record_id)
        if record is None or record.user_id != owner_id:
            return None
        return record.model_copy(deep=True)

    async def create_record(self, record: RecordT) -> RecordT:
        table = self._table(type(record))
        if record.id in table:
            raise DuplicateError(f"{record.record_type} already exists: {record.id}")
        table[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def update_record(
        self,
        model: type[RecordT],
        owner_id: str,
        record_id: str,
        patch: dict[str, Any],
    ) -> RecordT:
        table = self._table(model)
        current = table.get(record_id)
        if current is None or current.user_id != owner_id:
            raise NotFoundError(f"{model.record_type} not found: {record_id}")

        updated = apply_patch(current, patch)
        table[record_id] = updated
        return updated.model_copy(deep=True)

    async def delete_record(
        self,
        model: type[RecordT],
        owner_id: str,
        record_id: str,
    ) -> bool:
        table = self._table(model)
        current = table.get(record_id)
        if current is None or current.user_id != owner_id:
            return False
        del table[record_id]
        return True


class InMemoryIdentityProvider(IdentityProviderInterface):
    """
    Identity provider holding a fixed session.

    `sign_in` / `sign_out` swap the session; pass `error` to simulate
    an unreachable auth service.
    """

    def __init__(
        self,
        identity: Optional[Identity] = None,
        error: Optional[Exception] = None,
    ):
        self._identity = identity
        self._error = error

    def sign_in(self, identity: Identity) -> None:
        self._identity = identity
        self._error = None

    def sign_out(self) -> None:
        self._identity = None

    async def get_identity(self) -> Optional[Identity]:
        if self._error is not None:
            raise self._error
        return self._identity


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
