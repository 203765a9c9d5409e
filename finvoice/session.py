"""
Session Factory

DESIGN DECISION: There is no module-level ledger singleton. A presentation
layer opens one Session per signed-in user and passes it around explicitly;
the session owns the coordinator (and with it the subscriber registry), the
insight engine and the interaction log.
"""

from datetime import date
from typing import Optional, Union

import pydantic

from finvoice.audit import AuditLogger, configure_logging
from finvoice.config import Settings, get_settings
from finvoice.insights import InsightEngine, InteractionLog, financial_context
from finvoice.ledger import LedgerCoordinator
from finvoice.models.audit import AuditEventBuilder
from finvoice.models.insight import InsightReport, InteractionOutcome, InteractionRecord
from finvoice.services.identity import IdentityProvider
from finvoice.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    LedgerStoreInterface,
    LocalLedgerStore,
    StoreUnavailableError,
)


class Session:
    """Everything one user's session needs, wired together."""

    def __init__(
        self,
        coordinator: LedgerCoordinator,
        engine: InsightEngine,
        interactions: InteractionLog,
        audit_logger: AuditLogger,
    ):
        self.coordinator = coordinator
        self.engine = engine
        self.interactions = interactions
        self.audit_logger = audit_logger

    async def insights(self, as_of: Optional[date] = None) -> InsightReport:
        """Snapshot the ledger and run the insight engine on it."""
        snapshot = await self.coordinator.snapshot()
        report = self.engine.analyze(snapshot, as_of)
        await self.audit_logger.log(AuditEventBuilder.insights_generated(
            insight_count=len(report.insights),
            health_score=report.health_score,
        ))
        return report

    async def record_interaction(
        self,
        action: str,
        category: str,
        outcome: Union[InteractionOutcome, str],
    ) -> InteractionRecord:
        """Append to the interaction log with the current financial context."""
        snapshot = await self.coordinator.snapshot()
        entry = self.interactions.record(
            action, category, outcome, context=financial_context(snapshot)
        )
        await self.audit_logger.log(AuditEventBuilder.interaction_recorded(
            action=entry.action,
            category=entry.category,
            outcome=entry.outcome.value,
        ))
        return entry


def _remote_components(settings: Settings) -> tuple[GoogleSheetsLedgerStore, GoogleSheetsAuditStorage]:
    try:
        sheets_settings = settings.google_sheets
    except pydantic.ValidationError as e:
        raise StoreUnavailableError(f"Google Sheets is not configured: {e}")
    client = GoogleSheetsClient(sheets_settings)
    return GoogleSheetsLedgerStore(client), GoogleSheetsAuditStorage(client)


def create_session(
    identity: IdentityProvider,
    settings: Optional[Settings] = None,
    store: Optional[LedgerStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> Session:
    """
    Factory function to create a session.

    Args:
        identity: Who the session acts for
        settings: Configuration; loaded from the environment if None
        store: Ledger store to use instead of the configured backend
        audit_storage: Where audit events are persisted. With the Google
                       Sheets backend this defaults to its audit worksheet;
                       otherwise events are only logged locally.

    Raises:
        StoreUnavailableError: If the Google Sheets backend is selected but
                               not configured
    """
    settings = settings or get_settings()
    configure_logging(settings.app.log_level)
    ledger_settings = settings.ledger

    if store is None:
        if ledger_settings.backend == "google_sheets":
            store, remote_audit = _remote_components(settings)
            audit_storage = audit_storage or remote_audit
        else:
            store = LocalLedgerStore(ledger_settings.local_store_path)

    audit_logger = AuditLogger(audit_storage)
    insight_settings = settings.insights
    return Session(
        coordinator=LedgerCoordinator(
            store,
            identity,
            audit_logger=audit_logger,
            settings=ledger_settings,
        ),
        engine=InsightEngine(insight_settings),
        interactions=InteractionLog(insight_settings.interaction_log_path),
        audit_logger=audit_logger,
    )
