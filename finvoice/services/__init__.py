"""Services package."""

from finvoice.services.extraction import (
    EmptyTextError,
    ExtractionError,
    ReceiptTextExtractor,
)
from finvoice.services.identity import IdentityProvider, StaticIdentity
from finvoice.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    LedgerStoreInterface,
    LocalLedgerStore,
    NotAuthenticatedError,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
)

__all__ = [
    # Extraction
    "EmptyTextError",
    "ExtractionError",
    "ReceiptTextExtractor",
    # Identity
    "IdentityProvider",
    "StaticIdentity",
    # Storage services
    "AuditStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "LedgerStoreInterface",
    "LocalLedgerStore",
    "NotAuthenticatedError",
    "NotFoundError",
    "StoreError",
    "StoreUnavailableError",
]
