"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run the same coordinator on the local store and on Google Sheets
2. Use in-memory storage for testing
3. Keep every derived-aggregate rule out of the storage layer

The interface is intentionally simple - we're not building a full ORM.
A store keeps per-user collections of JSON-safe dicts and knows nothing
about budgets, goals or the rules tying them together.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from finvoice.models.audit import AuditEvent
from finvoice.models.ledger import Collection


class LedgerStoreInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Records are plain dicts as produced by `LedgerRecord.to_store()`.
    Every call is scoped to one user; a store never returns another
    user's rows.
    """

    @abstractmethod
    async def list_records(
        self,
        user_id: str,
        collection: Collection,
    ) -> list[dict[str, Any]]:
        """
        List every record of a collection.

        Args:
            user_id: Owner of the records
            collection: Collection to read

        Returns:
            Records in insertion order

        Raises:
            StoreError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def get_record(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
    ) -> Optional[dict[str, Any]]:
        """
        Retrieve a record by its ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert_record(
        self,
        user_id: str,
        collection: Collection,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Insert a new record.

        The store assigns `id` and `created_at`; values for them in `data`
        are ignored.

        Args:
            user_id: Owner of the record
            collection: Target collection
            data: Field values of the record

        Returns:
            The stored record including `id` and `created_at`

        Raises:
            NotAuthenticatedError: If `user_id` is empty
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def update_record(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Merge `changes` into an existing record.

        `id` and `created_at` cannot be changed.

        Returns:
            The record after the update

        Raises:
            NotFoundError: If the record doesn't exist
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_record(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
    ) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if a record was removed, False if there was none
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

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one goal contribution).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific record.

        Args:
            entity_type: Collection of the record (e.g., 'budgets')
            entity_id: The record's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StoreError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StoreError):
    """Record not found in storage."""
    pass


class NotAuthenticatedError(StoreError):
    """No user identity is available for a user-scoped operation."""
    pass


class StoreUnavailableError(StoreError):
    """Could not connect to storage backend."""
    pass


class MalformedRecordError(StoreError):
    """A stored record could not be decoded."""
    pass
