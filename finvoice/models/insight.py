"""
Insight Models

Outputs of the insight engine: per-category spending patterns, individual
insights and the report bundling them with the health score. Also the
records of the advisory interaction log.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from finvoice.models.ledger import utc_now


class InsightType(str, Enum):
    WARNING = "warning"
    OPPORTUNITY = "opportunity"
    ACHIEVEMENT = "achievement"
    RECOMMENDATION = "recommendation"


class InsightPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort key, higher is more urgent."""
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SpendingPattern(BaseModel):
    """Statistical profile of one spending category."""
    model_config = ConfigDict(frozen=True)

    category: str
    average_monthly: float = Field(..., ge=0)
    trend: Trend
    seasonality: bool
    peak_days: list[str] = Field(
        default_factory=list,
        description="Weekday names with the highest totals, largest first"
    )
    risk_level: RiskLevel
    monthly_totals: list[float] = Field(
        default_factory=list,
        description="Per-month totals the pattern was derived from, oldest first"
    )


class FinancialInsight(BaseModel):
    """A categorized, prioritized, human-readable observation."""
    model_config = ConfigDict(frozen=True)

    type: InsightType
    title: str
    description: str
    priority: InsightPriority
    actionable: bool
    suggested_action: Optional[str] = None
    impact: int = Field(..., ge=1, le=10)
    category: str


class InsightReport(BaseModel):
    """Everything the insights page renders, computed from one snapshot."""

    generated_at: datetime = Field(default_factory=utc_now)
    as_of: date
    health_score: float = Field(..., ge=0, le=100)
    patterns: list[SpendingPattern] = Field(default_factory=list)
    insights: list[FinancialInsight] = Field(default_factory=list)
    recommendations: list[FinancialInsight] = Field(default_factory=list)

    @property
    def high_priority(self) -> list[FinancialInsight]:
        return [i for i in self.insights if i.priority == InsightPriority.HIGH]


class InteractionOutcome(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class InteractionRecord(BaseModel):
    """One entry of the append-only interaction log."""

    timestamp: datetime = Field(default_factory=utc_now)
    action: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=200)
    outcome: InteractionOutcome
    context: dict[str, Any] = Field(
        default_factory=dict,
        description="Financial context at the time of the interaction"
    )
