"""
Tests for the local JSON-backed ledger store.
"""

import json

import pytest

from finvoice.models.ledger import Collection
from finvoice.services.storage import (
    LocalLedgerStore,
    NotAuthenticatedError,
    NotFoundError,
    StoreError,
    storage_key,
)


class TestStorageKey:

    def test_key_format(self):
        """Keys are finvoice_<user>_<collection>."""
        assert storage_key("u1", Collection.EXPENSES) == "finvoice_u1_expenses"


class TestInMemory:
    """Behaviour without a backing file."""

    @pytest.mark.asyncio
    async def test_insert_assigns_id_and_timestamp(self):
        """The store owns id and created_at."""
        store = LocalLedgerStore()

        record = await store.insert_record(
            "u1", Collection.EXPENSES, {"amount": 5, "id": "mine", "created_at": "then"}
        )

        assert record["id"] != "mine"
        assert record["created_at"] != "then"
        assert record["amount"] == 5

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self):
        """Mutating a returned dict does not touch the store."""
        store = LocalLedgerStore()
        record = await store.insert_record("u1", Collection.GOALS, {"title": "Car"})

        record["title"] = "Boat"
        listed = await store.list_records("u1", Collection.GOALS)
        listed[0]["title"] = "Plane"

        fetched = await store.get_record("u1", Collection.GOALS, record["id"])
        assert fetched["title"] == "Car"

    @pytest.mark.asyncio
    async def test_users_are_isolated(self):
        """One user's records are invisible to another."""
        store = LocalLedgerStore()
        record = await store.insert_record("u1", Collection.EXPENSES, {"amount": 5})

        assert await store.list_records("u2", Collection.EXPENSES) == []
        assert await store.get_record("u2", Collection.EXPENSES, record["id"]) is None

    @pytest.mark.asyncio
    async def test_update_protects_identity(self):
        """id and created_at cannot be overwritten."""
        store = LocalLedgerStore()
        record = await store.insert_record("u1", Collection.BUDGETS, {"spent": 0})

        updated = await store.update_record(
            "u1", Collection.BUDGETS, record["id"], {"spent": 10, "id": "x", "created_at": "y"}
        )

        assert updated["spent"] == 10
        assert updated["id"] == record["id"]
        assert updated["created_at"] == record["created_at"]

    @pytest.mark.asyncio
    async def test_update_unknown(self):
        """Updating a missing record raises NotFoundError."""
        store = LocalLedgerStore()

        with pytest.raises(NotFoundError):
            await store.update_record("u1", Collection.BUDGETS, "missing", {"spent": 1})

    @pytest.mark.asyncio
    async def test_delete(self):
        """Delete reports whether something was removed."""
        store = LocalLedgerStore()
        record = await store.insert_record("u1", Collection.CARDS, {"name": "A"})

        assert await store.delete_record("u1", Collection.CARDS, record["id"]) is True
        assert await store.delete_record("u1", Collection.CARDS, record["id"]) is False

    @pytest.mark.asyncio
    async def test_requires_user(self):
        """An empty user id is rejected."""
        store = LocalLedgerStore()

        with pytest.raises(NotAuthenticatedError):
            await store.list_records("", Collection.EXPENSES)


class TestPersistence:
    """Mirroring to a JSON file."""

    @pytest.mark.asyncio
    async def test_reload(self, tmp_path):
        """A new store on the same file sees the old records."""
        path = tmp_path / "ledger.json"
        store = LocalLedgerStore(path)
        record = await store.insert_record("u1", Collection.EXPENSES, {"amount": 7})

        reopened = LocalLedgerStore(path)

        assert await reopened.list_records("u1", Collection.EXPENSES) == [record]
        raw = json.loads(path.read_text(encoding="utf-8"))
        assert "finvoice_u1_expenses" in raw

    @pytest.mark.asyncio
    async def test_delete_is_persisted(self, tmp_path):
        """Deletes reach the file too."""
        path = tmp_path / "nested" / "ledger.json"
        store = LocalLedgerStore(path)
        record = await store.insert_record("u1", Collection.EXPENSES, {"amount": 7})
        await store.delete_record("u1", Collection.EXPENSES, record["id"])

        assert await LocalLedgerStore(path).list_records("u1", Collection.EXPENSES) == []

    def test_corrupt_file(self, tmp_path):
        """Unreadable JSON is a StoreError."""
        path = tmp_path / "ledger.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StoreError):
            LocalLedgerStore(path)

    def test_wrong_shape(self, tmp_path):
        """The file must hold an object."""
        path = tmp_path / "ledger.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(StoreError):
            LocalLedgerStore(path)

    def test_empty_file(self, tmp_path):
        """An empty file is an empty store."""
        path = tmp_path / "ledger.json"
        path.write_text("", encoding="utf-8")

        assert LocalLedgerStore(path).path == path


class TestFailedWrites:
    """A write that cannot reach the file leaves the store unchanged."""

    @pytest.fixture
    def blocked_store(self, tmp_path):
        path = tmp_path / "ledger.json"
        store = LocalLedgerStore(path)
        return store, path

    @staticmethod
    def block(path):
        path.with_suffix(".json.tmp").mkdir()

    @pytest.mark.asyncio
    async def test_insert_not_kept(self, blocked_store):
        """A failed insert is not visible in memory."""
        store, path = blocked_store
        self.block(path)

        with pytest.raises(StoreError):
            await store.insert_record("u1", Collection.EXPENSES, {"amount": 10})

        assert await store.list_records("u1", Collection.EXPENSES) == []

    @pytest.mark.asyncio
    async def test_update_not_kept(self, blocked_store):
        """A failed update leaves the old values."""
        store, path = blocked_store
        record = await store.insert_record("u1", Collection.BUDGETS, {"spent": 5})
        self.block(path)

        with pytest.raises(StoreError):
            await store.update_record("u1", Collection.BUDGETS, record["id"], {"spent": 15})

        fetched = await store.get_record("u1", Collection.BUDGETS, record["id"])
        assert fetched["spent"] == 5

    @pytest.mark.asyncio
    async def test_delete_not_kept(self, blocked_store):
        """A failed delete keeps the record."""
        store, path = blocked_store
        record = await store.insert_record("u1", Collection.CARDS, {"name": "A"})
        self.block(path)

        with pytest.raises(StoreError):
            await store.delete_record("u1", Collection.CARDS, record["id"])

        assert await store.get_record("u1", Collection.CARDS, record["id"]) == record
