"""
Storage Services Package

Provides abstract interfaces and concrete implementations for row storage.
Google Sheets is the hosted backend; the in-memory store backs tests and
local runs. Both are swappable behind RowStoreInterface.
"""

from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    InvariantViolationError,
    NotFoundError,
    Row,
    RowStoreInterface,
    StorageError,
)
from finance_tracker.services.storage.memory import InMemoryRowStore
from finance_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRowStore,
    RowStoreAuditStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "Row",
    "RowStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "InvariantViolationError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRowStore",
    "InMemoryRowStore",
    "RowStoreAuditStorage",
]
