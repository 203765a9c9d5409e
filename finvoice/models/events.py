"""
Ledger Change Events

Every mutation the coordinator completes is announced as one or more of the
events below. Each event type belongs to exactly one collection, so a
subscriber can listen to a single collection and match on the event class.
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from finvoice.models.ledger import (
    Budget,
    Card,
    Collection,
    Expense,
    Goal,
    IncomeSource,
    Investment,
    utc_now,
)


class ChangeAction(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


class LedgerEvent(BaseModel):
    """Base of all change events."""
    model_config = ConfigDict(frozen=True)

    collection: ClassVar[Collection]

    user_id: str
    occurred_at: datetime = Field(default_factory=utc_now)


# Expenses

class ExpenseAdded(LedgerEvent):
    collection: ClassVar[Collection] = Collection.EXPENSES
    expense: Expense


class ExpenseUpdated(LedgerEvent):
    collection: ClassVar[Collection] = Collection.EXPENSES
    before: Expense
    after: Expense


class ExpenseDeleted(LedgerEvent):
    collection: ClassVar[Collection] = Collection.EXPENSES
    expense: Expense


# Budgets

class BudgetAdded(LedgerEvent):
    collection: ClassVar[Collection] = Collection.BUDGETS
    budget: Budget


class BudgetChanged(LedgerEvent):
    """A budget's limit, period, category or derived `spent` changed."""
    collection: ClassVar[Collection] = Collection.BUDGETS
    budget: Budget
    previous_spent: float


class BudgetDeleted(LedgerEvent):
    collection: ClassVar[Collection] = Collection.BUDGETS
    budget: Budget


# Goals

class GoalAdded(LedgerEvent):
    collection: ClassVar[Collection] = Collection.GOALS
    goal: Goal


class GoalUpdated(LedgerEvent):
    collection: ClassVar[Collection] = Collection.GOALS
    goal: Goal


class GoalDeleted(LedgerEvent):
    collection: ClassVar[Collection] = Collection.GOALS
    goal: Goal


class GoalContributed(LedgerEvent):
    collection: ClassVar[Collection] = Collection.GOALS
    goal: Goal
    amount: float
    mirrored_expense_id: str


# Plain collections

class CardChanged(LedgerEvent):
    collection: ClassVar[Collection] = Collection.CARDS
    action: ChangeAction
    card: Card


class InvestmentChanged(LedgerEvent):
    collection: ClassVar[Collection] = Collection.INVESTMENTS
    action: ChangeAction
    investment: Investment


class IncomeChanged(LedgerEvent):
    collection: ClassVar[Collection] = Collection.INCOME
    action: ChangeAction
    income: IncomeSource


AnyLedgerEvent = Union[
    ExpenseAdded,
    ExpenseUpdated,
    ExpenseDeleted,
    BudgetAdded,
    BudgetChanged,
    BudgetDeleted,
    GoalAdded,
    GoalUpdated,
    GoalDeleted,
    GoalContributed,
    CardChanged,
    InvestmentChanged,
    IncomeChanged,
]


def event_collection(event: LedgerEvent) -> Optional[Collection]:
    """Collection an event instance belongs to."""
    return getattr(type(event), "collection", None)
