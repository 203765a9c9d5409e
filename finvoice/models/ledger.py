"""
Core Ledger Models for FinVoice

These models define the schemas of everything the ledger stores and of every
input the coordinator accepts. Three families live here:

1. Stored records (Expense, Budget, Goal, Card, Investment, IncomeSource).
   Frozen: a change always produces a new record.
2. Inputs and patches (ExpenseInput, ExpensePatch, ...). Anything a caller
   hands the coordinator is parsed through one of these first.
3. Read models (Snapshot, BalanceSummary, ExpenseSuggestion).

DESIGN DECISION: Amounts are plain floats. NaN and infinity are rejected at
the model boundary (allow_inf_nan=False) so they can never reach a derived
aggregate.
"""

import datetime as dt
from enum import Enum
from typing import Any, ClassVar, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


GOAL_CONTRIBUTION_PREFIX = "Goal Contribution – "


def goal_contribution_category(goal_title: str) -> str:
    """Category of the expense mirrored by a contribution to `goal_title`."""
    return f"{GOAL_CONTRIBUTION_PREFIX}{goal_title}"


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Collection(str, Enum):
    """Persistent collections of the ledger store."""
    EXPENSES = "expenses"
    BUDGETS = "budgets"
    GOALS = "goals"
    CARDS = "cards"
    INVESTMENTS = "investments"
    INCOME = "income"


class BudgetPeriod(str, Enum):
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    YEARLY = "yearly"


class IncomeFrequency(str, Enum):
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    YEARLY = "yearly"


class CardType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class CardStatus(str, Enum):
    ACTIVE = "active"
    LOCKED = "locked"


# =============================================================================
# STORED RECORDS
# =============================================================================

class LedgerRecord(BaseModel):
    """
    Base for everything the store persists.

    `id` and `created_at` are assigned by the store on insert.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        allow_inf_nan=False,
        extra="ignore",
    )

    id: str = Field(..., min_length=1, description="Opaque store-assigned id")
    created_at: dt.datetime = Field(default_factory=utc_now)

    def to_store(self) -> dict[str, Any]:
        """JSON-safe dict as handed to a store."""
        return self.model_dump(mode="json")


class Expense(LedgerRecord):
    """
    One ledger entry.

    The append boundary for every derived aggregate: Budget.spent is always
    the sum of the expenses in its category.
    """

    amount: float = Field(..., gt=0, description="Amount spent")
    category: str = Field(..., min_length=1, max_length=250)
    description: str = Field(..., min_length=1, max_length=500)
    voice_note: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="Transcribed voice note the expense was logged from"
    )
    date: dt.date = Field(..., description="Day the money was spent")


class Budget(LedgerRecord):
    """A spending limit for one category."""

    category: str = Field(..., min_length=1, max_length=250)
    amount: float = Field(..., gt=0, description="Limit for the period")
    spent: float = Field(
        default=0.0,
        description="Derived: sum of expenses in this category"
    )
    period: BudgetPeriod = BudgetPeriod.MONTHLY

    @property
    def utilization(self) -> float:
        """Spent as a fraction of the limit."""
        return self.spent / self.amount


class Goal(LedgerRecord):
    """
    A savings goal.

    `current_amount` only moves through contributions.
    """

    title: str = Field(..., min_length=1, max_length=200)
    target_amount: float = Field(..., gt=0)
    current_amount: float = Field(default=0.0, ge=0)
    category: str = Field(..., min_length=1, max_length=250)
    description: Optional[str] = Field(default=None, max_length=1000)
    monthly_contribution: Optional[float] = Field(default=None, ge=0)
    deadline: dt.date

    @property
    def progress(self) -> float:
        """Funded fraction (may exceed 1 for an over-funded goal)."""
        return self.current_amount / self.target_amount


class Card(LedgerRecord):
    """A payment card tracked alongside the ledger."""

    name: str = Field(..., min_length=1, max_length=100)
    last4: str = Field(..., pattern=r"^\d{4}$")
    type: CardType
    bank: str = Field(..., min_length=1, max_length=100)
    limit: Optional[float] = Field(default=None, ge=0)
    balance: Optional[float] = Field(default=None, ge=0)
    status: CardStatus = CardStatus.ACTIVE
    due_date: Optional[dt.date] = None


class Investment(LedgerRecord):
    """A holding, grouped by `type` for diversification scoring."""

    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., min_length=1, max_length=50)
    amount: float = Field(..., ge=0, description="Amount invested")
    current_value: float = Field(..., ge=0)
    returns: float = Field(default=0.0, description="Return in percent, may be negative")


class IncomeSource(LedgerRecord):
    """A recurring or dated income entry."""

    source: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., gt=0)
    frequency: IncomeFrequency = IncomeFrequency.MONTHLY
    is_active: bool = True
    received_on: Optional[dt.date] = Field(
        default=None,
        description="Day a one-off payment arrived; feeds the income history"
    )

    @property
    def monthly_amount(self) -> float:
        """Amount normalised to one month."""
        if self.frequency == IncomeFrequency.WEEKLY:
            return self.amount * 4.33
        if self.frequency == IncomeFrequency.YEARLY:
            return self.amount / 12
        return self.amount


RECORD_MODELS: dict[Collection, type[LedgerRecord]] = {
    Collection.EXPENSES: Expense,
    Collection.BUDGETS: Budget,
    Collection.GOALS: Goal,
    Collection.CARDS: Card,
    Collection.INVESTMENTS: Investment,
    Collection.INCOME: IncomeSource,
}


# =============================================================================
# INPUTS AND PATCHES
# =============================================================================

class LedgerInput(BaseModel):
    """Base for caller-supplied data. Unknown fields are rejected."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        allow_inf_nan=False,
        extra="forbid",
    )

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class LedgerPatch(LedgerInput):
    """
    Base for partial updates.

    Only fields the caller actually set are applied. A field may be set to
    None only if it is listed in `nullable_fields`.
    """

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_required(self) -> "LedgerPatch":
        for name in self.model_fields_set:
            if getattr(self, name) is None and name not in self.nullable_fields:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> dict[str, Any]:
        """The set fields, JSON-safe."""
        return self.model_dump(mode="json", exclude_unset=True)

    def is_empty(self) -> bool:
        return not self.model_fields_set


class ExpenseInput(LedgerInput):
    amount: float = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=250)
    description: str = Field(..., min_length=1, max_length=500)
    voice_note: Optional[str] = Field(default=None, max_length=2000)
    date: dt.date


class ExpensePatch(LedgerPatch):
    nullable_fields: ClassVar[frozenset[str]] = frozenset({"voice_note"})

    amount: Optional[float] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=250)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    voice_note: Optional[str] = Field(default=None, max_length=2000)
    date: Optional[dt.date] = None


class BudgetInput(LedgerInput):
    category: str = Field(..., min_length=1, max_length=250)
    amount: float = Field(..., gt=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY


class BudgetPatch(LedgerPatch):
    category: Optional[str] = Field(default=None, min_length=1, max_length=250)
    amount: Optional[float] = Field(default=None, gt=0)
    period: Optional[BudgetPeriod] = None


class GoalInput(LedgerInput):
    title: str = Field(..., min_length=1, max_length=200)
    target_amount: float = Field(..., gt=0)
    current_amount: float = Field(default=0.0, ge=0)
    category: str = Field(..., min_length=1, max_length=250)
    description: Optional[str] = Field(default=None, max_length=1000)
    monthly_contribution: Optional[float] = Field(default=None, ge=0)
    deadline: dt.date


class GoalPatch(LedgerPatch):
    """Goal fields a caller may change. `current_amount` is not one of them."""
    nullable_fields: ClassVar[frozenset[str]] = frozenset(
        {"description", "monthly_contribution"}
    )

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    target_amount: Optional[float] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=250)
    description: Optional[str] = Field(default=None, max_length=1000)
    monthly_contribution: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[dt.date] = None


class ContributionInput(LedgerInput):
    amount: float = Field(..., gt=0)
    note: Optional[str] = Field(default=None, max_length=500)
    date: Optional[dt.date] = None


class CardInput(LedgerInput):
    name: str = Field(..., min_length=1, max_length=100)
    last4: str = Field(..., pattern=r"^\d{4}$")
    type: CardType
    bank: str = Field(..., min_length=1, max_length=100)
    limit: Optional[float] = Field(default=None, ge=0)
    balance: Optional[float] = Field(default=None, ge=0)
    status: CardStatus = CardStatus.ACTIVE
    due_date: Optional[dt.date] = None


class CardPatch(LedgerPatch):
    nullable_fields: ClassVar[frozenset[str]] = frozenset({"limit", "balance", "due_date"})

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last4: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    type: Optional[CardType] = None
    bank: Optional[str] = Field(default=None, min_length=1, max_length=100)
    limit: Optional[float] = Field(default=None, ge=0)
    balance: Optional[float] = Field(default=None, ge=0)
    status: Optional[CardStatus] = None
    due_date: Optional[dt.date] = None


class InvestmentInput(LedgerInput):
    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., min_length=1, max_length=50)
    amount: float = Field(..., ge=0)
    current_value: float = Field(..., ge=0)
    returns: float = 0.0


class InvestmentPatch(LedgerPatch):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    type: Optional[str] = Field(default=None, min_length=1, max_length=50)
    amount: Optional[float] = Field(default=None, ge=0)
    current_value: Optional[float] = Field(default=None, ge=0)
    returns: Optional[float] = None


class IncomeInput(LedgerInput):
    source: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., gt=0)
    frequency: IncomeFrequency = IncomeFrequency.MONTHLY
    is_active: bool = True
    received_on: Optional[dt.date] = None


class IncomePatch(LedgerPatch):
    nullable_fields: ClassVar[frozenset[str]] = frozenset({"received_on"})

    source: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[float] = Field(default=None, gt=0)
    frequency: Optional[IncomeFrequency] = None
    is_active: Optional[bool] = None
    received_on: Optional[dt.date] = None


# =============================================================================
# READ MODELS
# =============================================================================

class Snapshot(BaseModel):
    """
    Read-only, point-in-time view of a user's ledger.

    This is the only thing the insight engine ever sees. The optional
    overrides replace values the engine would otherwise have to guess.
    """
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    expenses: tuple[Expense, ...] = ()
    budgets: tuple[Budget, ...] = ()
    goals: tuple[Goal, ...] = ()
    income: tuple[IncomeSource, ...] = ()
    investments: tuple[Investment, ...] = ()
    cards: tuple[Card, ...] = ()

    emergency_fund: Optional[float] = Field(
        default=None,
        ge=0,
        description="Cash set aside for emergencies"
    )
    monthly_debt_payments: Optional[float] = Field(
        default=None,
        ge=0,
        description="Debt service due per month"
    )
    income_history: tuple[float, ...] = Field(
        default=(),
        description="Total income per past month, oldest first"
    )
    taken_at: dt.datetime = Field(default_factory=utc_now)

    @field_validator("income_history")
    @classmethod
    def non_negative_history(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        if any(amount < 0 for amount in v):
            raise ValueError("Income history cannot contain negative months")
        return v


class BalanceSummary(BaseModel):
    """Headline totals for a dashboard."""

    income: float = Field(..., description="Monthly-normalised active income")
    expenses: float = Field(..., description="Sum of all expenses")
    balance: float
    saved: float = Field(..., description="Money already put into goals")


class ExpenseSuggestion(BaseModel):
    """
    Structured guess produced from receipt or voice text.

    CRITICAL: This is PROPOSED data, NOT verified. It only becomes an expense
    through LedgerCoordinator.add_expense, which validates it like any other
    input.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[float] = Field(default=None, description="Detected total")
    description: str
    category: str = "other"
    merchant: Optional[str] = None
    date: Optional[dt.date] = Field(default=None, description="Parsed receipt date")
    raw_date: Optional[str] = Field(
        default=None,
        description="Date text as it appeared on the receipt"
    )
    source: Literal["receipt", "voice"] = "receipt"

    def to_expense_data(self, **overrides: Any) -> dict[str, Any]:
        """
        Draft input for `add_expense`.

        Fields the extraction could not find are left out so validation
        reports them as missing. `overrides` wins over extracted values.
        """
        data: dict[str, Any] = {
            "category": self.category,
            "description": self.description,
        }
        if self.amount is not None:
            data["amount"] = self.amount
        if self.date is not None:
            data["date"] = self.date.isoformat()
        if self.source == "voice":
            data["voice_note"] = self.description
        data.update(overrides)
        return data
