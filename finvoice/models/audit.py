"""
Audit Models for FinVoice

Every ledger mutation, every failed mutation and every insight run is
recorded as an AuditEvent. This provides:
1. Traceability of how a derived aggregate reached its value
2. Debugging information when a compound operation fails half-way
3. A history the user can inspect

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finvoice.models.ledger import Collection, utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Plain record lifecycle (any collection)
    RECORD_ADDED = "record_added"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"

    # Derived aggregates
    BUDGET_SPENT_ADJUSTED = "budget_spent_adjusted"
    BUDGETS_RECONCILED = "budgets_reconciled"

    # Goal contributions
    GOAL_CONTRIBUTION = "goal_contribution"
    COMPENSATION_APPLIED = "compensation_applied"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORE_ERROR = "store_error"
    CONSISTENCY_ERROR = "consistency_error"
    SUBSCRIBER_FAILED = "subscriber_failed"

    # Insights
    INSIGHTS_GENERATED = "insights_generated"
    INTERACTION_RECORDED = "interaction_recorded"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which user and which record is this about?
    user_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection of the record (e.g. 'expenses', 'budgets')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Store id of the record this event relates to"
    )

    # Correlation - all events of one coordinator call share this
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_added(Collection.EXPENSES, expense.id, user_id, cid)
        event = AuditEventBuilder.store_error("add_expense", str(exc), user_id, cid)
    """

    @staticmethod
    def record_added(
        collection: Collection,
        record_id: str,
        user_id: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_ADDED,
            user_id=user_id,
            entity_type=collection.value,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Added {collection.value} record {record_id}",
            details=details or {},
        )

    @staticmethod
    def record_updated(
        collection: Collection,
        record_id: str,
        user_id: str,
        changes: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            user_id=user_id,
            entity_type=collection.value,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Updated {collection.value} record {record_id}",
            details={"changes": changes},
        )

    @staticmethod
    def record_deleted(
        collection: Collection,
        record_id: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            user_id=user_id,
            entity_type=collection.value,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Deleted {collection.value} record {record_id}",
        )

    @staticmethod
    def budget_spent_adjusted(
        budget_id: str,
        category: str,
        delta: float,
        spent: float,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SPENT_ADJUSTED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type=Collection.BUDGETS.value,
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget '{category}' spent adjusted by {delta:+.2f}",
            details={"category": category, "delta": delta, "spent": spent},
        )

    @staticmethod
    def budgets_reconciled(
        corrected: dict[str, float],
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGETS_RECONCILED,
            severity=AuditSeverity.WARNING if corrected else AuditSeverity.INFO,
            user_id=user_id,
            entity_type=Collection.BUDGETS.value,
            correlation_id=correlation_id,
            description=f"Reconciled budgets, {len(corrected)} corrected",
            details={"corrected": corrected},
        )

    @staticmethod
    def goal_contribution(
        goal_id: str,
        amount: float,
        expense_id: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CONTRIBUTION,
            user_id=user_id,
            entity_type=Collection.GOALS.value,
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Contributed {amount:.2f} to goal {goal_id}",
            details={"amount": amount, "mirrored_expense_id": expense_id},
        )

    @staticmethod
    def compensation_applied(
        operation: str,
        undone: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMPENSATION_APPLIED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation}: undid {undone} after a failed step",
            details={"operation": operation, "undone": undone},
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={"operation": operation, "issues": issues},
        )

    @staticmethod
    def store_error(
        operation: str,
        error_message: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Store failure during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def consistency_error(
        operation: str,
        missing: str,
        error_message: str,
        user_id: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONSISTENCY_ERROR,
            severity=AuditSeverity.CRITICAL,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} left partially applied, missing {missing}",
            error_message=error_message,
            details={"operation": operation, "missing": missing, **(details or {})},
        )

    @staticmethod
    def subscriber_failed(
        event_name: str,
        error_message: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIBER_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"Subscriber raised while handling {event_name}",
            error_message=error_message,
            details={"event": event_name},
        )

    @staticmethod
    def insights_generated(
        insight_count: int,
        health_score: float,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHTS_GENERATED,
            user_id=user_id,
            description=f"Generated {insight_count} insights, health score {health_score:.0f}",
            details={"insight_count": insight_count, "health_score": health_score},
        )

    @staticmethod
    def interaction_recorded(
        action: str,
        category: str,
        outcome: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTERACTION_RECORDED,
            severity=AuditSeverity.DEBUG,
            description=f"User {outcome} on '{action}' in {category}",
            details={"action": action, "category": category, "outcome": outcome},
        )
