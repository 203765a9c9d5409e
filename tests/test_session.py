"""
Tests for session wiring.
"""

from datetime import date

import pytest

from finvoice import Session, create_session
from finvoice.config import Settings, get_settings, validate_all_settings
from finvoice.models.audit import AuditEventType
from finvoice.services.identity import StaticIdentity
from finvoice.services.storage import LocalLedgerStore, StoreUnavailableError

from tests.support import MemoryAuditStorage, expense_data


@pytest.fixture
def local_env(monkeypatch, tmp_path):
    """Environment for a local session that writes into tmp_path."""
    monkeypatch.setenv("FINVOICE_LEDGER_BACKEND", "local")
    monkeypatch.setenv("FINVOICE_LEDGER_LOCAL_STORE_PATH", str(tmp_path / "ledger.json"))
    monkeypatch.setenv("FINVOICE_INSIGHTS_INTERACTION_LOG_PATH", str(tmp_path / "log.jsonl"))
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


class TestCreateSession:

    def test_local_backend(self, local_env):
        """The local backend mirrors to the configured file."""
        session = create_session(StaticIdentity("u1"))

        assert isinstance(session, Session)
        assert isinstance(session.coordinator._store, LocalLedgerStore)
        assert session.coordinator._store.path == local_env / "ledger.json"

    def test_explicit_store(self, local_env):
        """A caller-supplied store wins over the configured backend."""
        store = LocalLedgerStore()

        session = create_session(StaticIdentity("u1"), store=store)

        assert session.coordinator._store is store

    def test_unconfigured_remote(self, monkeypatch, tmp_path):
        """Selecting Google Sheets without its settings fails loudly."""
        monkeypatch.setenv("FINVOICE_LEDGER_BACKEND", "google_sheets")
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        monkeypatch.chdir(tmp_path)

        with pytest.raises(StoreUnavailableError):
            create_session(StaticIdentity("u1"), settings=Settings())


class TestSessionFlow:

    @pytest.mark.asyncio
    async def test_insights_are_audited(self, local_env):
        """Running insights leaves an insights_generated audit event."""
        storage = MemoryAuditStorage()
        session = create_session(StaticIdentity("u1"), audit_storage=storage)
        await session.coordinator.add_budget({"category": "Travel", "amount": 100})
        await session.coordinator.add_expense(expense_data(120, day=date(2024, 5, 2)))

        report = await session.insights(as_of=date(2024, 5, 15))

        assert [i.title for i in report.high_priority] == [
            "Travel Budget Alert",
            "Insufficient Emergency Fund",
        ]
        assert storage.events[-1].event_type == AuditEventType.INSIGHTS_GENERATED
        assert storage.events[-1].details["insight_count"] == len(report.insights)

    @pytest.mark.asyncio
    async def test_record_interaction(self, local_env):
        """An interaction stores the current context and is audited."""
        storage = MemoryAuditStorage()
        session = create_session(StaticIdentity("u1"), audit_storage=storage)
        await session.coordinator.add_expense(expense_data(40))

        entry = await session.record_interaction("meal_plan", "food", "positive")

        assert entry.context["total_expenses"] == 40
        assert session.interactions.weights() == {"food": 1.1}
        assert storage.events[-1].event_type == AuditEventType.INTERACTION_RECORDED
        assert (local_env / "log.jsonl").exists()


class TestValidateAllSettings:

    def test_missing_remote_settings_reported(self, local_env, monkeypatch):
        """Unset Google Sheets settings are reported, not raised."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        monkeypatch.chdir(local_env)

        results = validate_all_settings()

        assert results["ledger"] is True
        assert results["insights"] is True
        assert results["app"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
