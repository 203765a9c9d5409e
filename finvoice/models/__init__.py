"""
Data Models Package

This package contains all Pydantic models used by FinVoice Core.
All data flowing through the ledger and the insight engine conforms to these
schemas.
"""

from finvoice.models.ledger import (
    GOAL_CONTRIBUTION_PREFIX,
    RECORD_MODELS,
    BalanceSummary,
    Budget,
    BudgetInput,
    BudgetPatch,
    BudgetPeriod,
    Card,
    CardInput,
    CardPatch,
    CardStatus,
    CardType,
    Collection,
    ContributionInput,
    Expense,
    ExpenseInput,
    ExpensePatch,
    ExpenseSuggestion,
    Goal,
    GoalInput,
    GoalPatch,
    IncomeFrequency,
    IncomeInput,
    IncomePatch,
    IncomeSource,
    Investment,
    InvestmentInput,
    InvestmentPatch,
    LedgerInput,
    LedgerPatch,
    LedgerRecord,
    Snapshot,
    goal_contribution_category,
)
from finvoice.models.events import (
    AnyLedgerEvent,
    BudgetAdded,
    BudgetChanged,
    BudgetDeleted,
    CardChanged,
    ChangeAction,
    ExpenseAdded,
    ExpenseDeleted,
    ExpenseUpdated,
    GoalAdded,
    GoalContributed,
    GoalDeleted,
    GoalUpdated,
    IncomeChanged,
    InvestmentChanged,
    LedgerEvent,
)
from finvoice.models.insight import (
    FinancialInsight,
    InsightPriority,
    InsightReport,
    InsightType,
    InteractionOutcome,
    InteractionRecord,
    RiskLevel,
    SpendingPattern,
    Trend,
)
from finvoice.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "GOAL_CONTRIBUTION_PREFIX",
    "RECORD_MODELS",
    "BalanceSummary",
    "Budget",
    "BudgetInput",
    "BudgetPatch",
    "BudgetPeriod",
    "Card",
    "CardInput",
    "CardPatch",
    "CardStatus",
    "CardType",
    "Collection",
    "ContributionInput",
    "Expense",
    "ExpenseInput",
    "ExpensePatch",
    "ExpenseSuggestion",
    "Goal",
    "GoalInput",
    "GoalPatch",
    "IncomeFrequency",
    "IncomeInput",
    "IncomePatch",
    "IncomeSource",
    "Investment",
    "InvestmentInput",
    "InvestmentPatch",
    "LedgerInput",
    "LedgerPatch",
    "LedgerRecord",
    "Snapshot",
    "goal_contribution_category",
    # Change events
    "AnyLedgerEvent",
    "BudgetAdded",
    "BudgetChanged",
    "BudgetDeleted",
    "CardChanged",
    "ChangeAction",
    "ExpenseAdded",
    "ExpenseDeleted",
    "ExpenseUpdated",
    "GoalAdded",
    "GoalContributed",
    "GoalDeleted",
    "GoalUpdated",
    "IncomeChanged",
    "InvestmentChanged",
    "LedgerEvent",
    # Insight models
    "FinancialInsight",
    "InsightPriority",
    "InsightReport",
    "InsightType",
    "InteractionOutcome",
    "InteractionRecord",
    "RiskLevel",
    "SpendingPattern",
    "Trend",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
