"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Two ledger backends share one interface: an in-memory/JSON-file local store
and Google Sheets. Audit events are persisted to Google Sheets only.
"""

from finvoice.services.storage.interface import (
    AuditStorageInterface,
    LedgerStoreInterface,
    MalformedRecordError,
    NotAuthenticatedError,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
)
from finvoice.services.storage.local import LocalLedgerStore, storage_key
from finvoice.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStoreInterface",
    # Exceptions
    "MalformedRecordError",
    "NotAuthenticatedError",
    "NotFoundError",
    "StoreError",
    "StoreUnavailableError",
    # Local implementation
    "LocalLedgerStore",
    "storage_key",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
]
