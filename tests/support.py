"""
Test doubles shared by the test modules.

FlakyStore fails chosen store calls, GatedStore holds inserts until
released, and MemoryAuditStorage keeps audit events in a list.
"""

import asyncio
from datetime import date
from typing import Any, Optional
from uuid import UUID

from finvoice.models.audit import AuditEvent
from finvoice.models.ledger import Collection
from finvoice.services.storage import (
    AuditStorageInterface,
    LedgerStoreInterface,
    LocalLedgerStore,
    StoreError,
)


USER_ID = "user-1"


class FlakyStore(LedgerStoreInterface):
    """
    Wraps a real store and fails chosen calls.

    `fail("insert_record", Collection.EXPENSES)` fails the next insert into
    expenses; `skip` lets that many matching calls through first.
    """

    def __init__(self, inner: Optional[LedgerStoreInterface] = None):
        self.inner = inner or LocalLedgerStore()
        self.calls: list[tuple[str, Collection]] = []
        self._rules: list[dict[str, Any]] = []

    def fail(
        self,
        method: str,
        collection: Optional[Collection] = None,
        skip: int = 0,
        times: int = 1,
    ) -> None:
        self._rules.append(
            {"method": method, "collection": collection, "skip": skip, "times": times}
        )

    def _check(self, method: str, collection: Collection) -> None:
        self.calls.append((method, collection))
        for rule in self._rules:
            if rule["method"] != method or rule["times"] <= 0:
                continue
            if rule["collection"] is not None and rule["collection"] != collection:
                continue
            if rule["skip"] > 0:
                rule["skip"] -= 1
                continue
            rule["times"] -= 1
            raise StoreError(f"injected {method} failure on {collection.value}")

    async def list_records(self, user_id, collection):
        self._check("list_records", collection)
        return await self.inner.list_records(user_id, collection)

    async def get_record(self, user_id, collection, record_id):
        self._check("get_record", collection)
        return await self.inner.get_record(user_id, collection, record_id)

    async def insert_record(self, user_id, collection, data):
        self._check("insert_record", collection)
        return await self.inner.insert_record(user_id, collection, data)

    async def update_record(self, user_id, collection, record_id, changes):
        self._check("update_record", collection)
        return await self.inner.update_record(user_id, collection, record_id, changes)

    async def delete_record(self, user_id, collection, record_id):
        self._check("delete_record", collection)
        return await self.inner.delete_record(user_id, collection, record_id)

    @property
    def writes(self) -> list[tuple[str, Collection]]:
        return [c for c in self.calls if c[0] in ("insert_record", "update_record", "delete_record")]


class GatedStore(LocalLedgerStore):
    """Local store whose inserts wait until `release` is set."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def insert_record(self, user_id, collection, data):
        self.entered.set()
        await self.release.wait()
        return await super().insert_record(user_id, collection, data)


class MemoryAuditStorage(AuditStorageInterface):
    """Audit storage that keeps events in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self.events if e.correlation_id == correlation_id]

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        return [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]


def expense_data(
    amount: float,
    category: str = "Travel",
    day: date = date(2024, 5, 10),
    description: str = "Trip",
) -> dict[str, Any]:
    return {
        "amount": amount,
        "category": category,
        "description": description,
        "date": day.isoformat(),
    }

