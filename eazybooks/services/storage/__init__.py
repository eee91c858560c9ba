"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory backend serves tests
and unconfigured local runs.
"""

from eazybooks.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    IdentityProviderInterface,
    InvalidRecordError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
    apply_patch,
)
from eazybooks.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryIdentityProvider,
    InMemoryRecordStore,
)
from eazybooks.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsIdentityProvider,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "IdentityProviderInterface",
    "RecordStoreInterface",
    "apply_patch",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "InvalidRecordError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryIdentityProvider",
    "InMemoryRecordStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsIdentityProvider",
    "GoogleSheetsRecordStore",
]
