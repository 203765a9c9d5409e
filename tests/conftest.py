"""
Shared fixtures for FinVoice tests.

Test strategy:
1. Unit tests for models, the engine and the extractor
2. Coordinator tests against the local store, with a wrapper that injects
   store failures on chosen calls
3. No real API calls in tests (Google Sheets is faked in memory)
"""

import pytest

from finvoice.audit import AuditLogger
from finvoice.config import InsightSettings, LedgerSettings
from finvoice.ledger import LedgerCoordinator
from finvoice.services.identity import StaticIdentity

from tests.support import USER_ID, FlakyStore, MemoryAuditStorage


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(backend="local", local_store_path=None, amount_precision=6)


@pytest.fixture
def insight_settings() -> InsightSettings:
    return InsightSettings()


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity(USER_ID)


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def audit_storage() -> MemoryAuditStorage:
    return MemoryAuditStorage()


@pytest.fixture
def coordinator(store, identity, audit_storage, ledger_settings) -> LedgerCoordinator:
    return LedgerCoordinator(
        store,
        identity,
        audit_logger=AuditLogger(audit_storage),
        settings=ledger_settings,
    )


@pytest.fixture
def events(coordinator) -> list:
    """Every event the coordinator publishes, in order."""
    received = []
    coordinator.subscribe(received.append)
    return received
