"""
Local Ledger Store

DESIGN DECISION: The local store is the optimistic backend. If a file path
is configured the whole store is mirrored to one JSON document on each
write, so a restarted session sees the same ledger. A write only reaches
memory once the file has been written.

Records live under keys of the form `finvoice_<user>_<collection>`, one
list of dicts per key.

TRADEOFFS:
- The file is rewritten in full on every mutation (fine for personal use)
- No cross-process locking (two processes on one file race, last write wins)
"""

import copy
import json
from pathlib import Path
from typing import Any, Optional, Union
from uuid import uuid4

import structlog

from finvoice.models.ledger import Collection, utc_now
from finvoice.services.storage.interface import (
    LedgerStoreInterface,
    NotAuthenticatedError,
    NotFoundError,
    StoreError,
)


logger = structlog.get_logger(__name__)

PROTECTED_FIELDS = frozenset({"id", "created_at"})


def storage_key(user_id: str, collection: Collection) -> str:
    """Key a user's collection is kept under."""
    return f"finvoice_{user_id}_{collection.value}"


class LocalLedgerStore(LedgerStoreInterface):
    """
    In-memory ledger store, optionally mirrored to a JSON file.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Initialize the store.

        Args:
            path: JSON file to load from and mirror to.
                  If None, the store lives in memory only.
        """
        self._path = Path(path) if path else None
        self._data: dict[str, list[dict[str, Any]]] = {}
        if self._path is not None and self._path.exists():
            self._load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def _load(self) -> None:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            raise StoreError(f"Failed to load local store {self._path}: {e}")
        if not isinstance(raw, dict):
            raise StoreError(f"Local store {self._path} is not a JSON object")
        self._data = {key: list(rows) for key, rows in raw.items()}
        logger.debug("local_store_loaded", path=str(self._path), keys=len(self._data))

    def _flush(self, data: dict[str, list[dict[str, Any]]]) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as e:
            raise StoreError(f"Failed to write local store {self._path}: {e}")

    def _commit(self, key: str, rows: list[dict[str, Any]]) -> None:
        # Memory only changes once the file write has succeeded
        data = dict(self._data)
        data[key] = rows
        self._flush(data)
        self._data = data

    def _rows(self, user_id: str, collection: Collection) -> list[dict[str, Any]]:
        if not user_id:
            raise NotAuthenticatedError("A user id is required to access the ledger")
        return self._data.get(storage_key(user_id, collection), [])

    async def list_records(
        self,
        user_id: str,
        collection: Collection,
    ) -> list[dict[str, Any]]:
        return copy.deepcopy(self._rows(user_id, collection))

    async def get_record(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
    ) -> Optional[dict[str, Any]]:
        for row in self._rows(user_id, collection):
            if row.get("id") == record_id:
                return copy.deepcopy(row)
        return None

    async def insert_record(
        self,
        user_id: str,
        collection: Collection,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        rows = self._rows(user_id, collection)
        record = {k: v for k, v in copy.deepcopy(data).items() if k not in PROTECTED_FIELDS}
        record["id"] = uuid4().hex
        record["created_at"] = utc_now().isoformat()
        self._commit(storage_key(user_id, collection), rows + [record])
        return copy.deepcopy(record)

    async def update_record(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        rows = self._rows(user_id, collection)
        for idx, row in enumerate(rows):
            if row.get("id") == record_id:
                updated = dict(row)
                for key, value in copy.deepcopy(changes).items():
                    if key not in PROTECTED_FIELDS:
                        updated[key] = value
                self._commit(
                    storage_key(user_id, collection),
                    rows[:idx] + [updated] + rows[idx + 1:],
                )
                return copy.deepcopy(updated)
        raise NotFoundError(f"{collection.value} record not found: {record_id}")

    async def delete_record(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
    ) -> bool:
        rows = self._rows(user_id, collection)
        for idx, row in enumerate(rows):
            if row.get("id") == record_id:
                self._commit(storage_key(user_id, collection), rows[:idx] + rows[idx + 1:])
                return True
        return False
