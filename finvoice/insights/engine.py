"""
Insight Engine

DESIGN DECISION: Insight generation is DETERMINISTIC.
Every result is a pure function of a Snapshot and an explicit `as_of` date.
The engine never reads the clock on its own (unless `as_of` is omitted),
never touches a store and never raises for a well-formed Snapshot.

Empty inputs short-circuit to defined defaults instead of producing NaN:
- no expenses in a category: no pattern for it
- no goals: goal score 0
- no months of history: trend component full marks

Thresholds come from InsightSettings, so every rule can be tuned without
touching this module.
"""

import calendar
import math
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

import structlog

from finvoice.config import InsightSettings, get_settings
from finvoice.models.insight import (
    FinancialInsight,
    InsightPriority,
    InsightReport,
    InsightType,
    RiskLevel,
    SpendingPattern,
    Trend,
)
from finvoice.models.ledger import Expense, Snapshot


logger = structlog.get_logger(__name__)

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

DINING_CATEGORIES = frozenset({"food & dining", "food", "dining"})
TRANSPORT_CATEGORIES = frozenset({"transportation", "transport"})


# =============================================================================
# BREAKDOWNS
# =============================================================================

def monthly_totals(expenses: Iterable[Expense]) -> dict[str, float]:
    """Total spent per calendar month ("YYYY-MM"), oldest month first."""
    totals: dict[str, float] = defaultdict(float)
    for expense in expenses:
        totals[expense.date.strftime("%Y-%m")] += expense.amount
    return {key: totals[key] for key in sorted(totals)}


def category_totals(expenses: Iterable[Expense]) -> dict[str, float]:
    """Total spent per category, largest first."""
    totals: dict[str, float] = defaultdict(float)
    for expense in expenses:
        totals[expense.category] += expense.amount
    return dict(sorted(totals.items(), key=lambda item: item[1], reverse=True))


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _variance(values: list[float]) -> float:
    """Population variance."""
    if not values:
        return 0.0
    mean = _mean(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def _months_back(day: date, months: int) -> date:
    """Same day `months` calendar months earlier, clamped to the month's end."""
    index = day.year * 12 + day.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def _sort_by_priority(insights: list[FinancialInsight]) -> list[FinancialInsight]:
    # sorted() is stable: equal priorities keep generation order
    return sorted(insights, key=lambda i: i.priority.rank, reverse=True)


class InsightEngine:
    """
    Derives spending patterns, insights and a health score from a Snapshot.

    GUARANTEES:
    - Same Snapshot and `as_of` always give the same output
    - No NaN or infinity in any output
    - Insights come sorted high > medium > low, stable within a priority
    """

    def __init__(self, settings: Optional[InsightSettings] = None):
        self._settings = settings or get_settings().insights

    # =========================================================================
    # SPENDING PATTERNS
    # =========================================================================

    def _trend(self, months: list[float]) -> Trend:
        window = self._settings.trend_window_months
        padded = [0.0] * max(0, 2 * window - len(months)) + months
        recent_avg = sum(padded[-window:]) / window
        older_avg = sum(padded[-2 * window:-window]) / window
        if recent_avg > older_avg * self._settings.trend_increase_ratio:
            return Trend.INCREASING
        if recent_avg < older_avg * self._settings.trend_decrease_ratio:
            return Trend.DECREASING
        return Trend.STABLE

    def _risk(self, variance: float, average: float) -> RiskLevel:
        if variance > average * self._settings.high_risk_variance_ratio:
            return RiskLevel.HIGH
        if variance > average * self._settings.medium_risk_variance_ratio:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def _peak_days(self, expenses: list[Expense]) -> list[str]:
        totals: dict[str, float] = {}
        for expense in expenses:
            day = WEEKDAYS[expense.date.weekday()]
            totals[day] = totals.get(day, 0.0) + expense.amount
        ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
        return [day for day, _ in ranked[:self._settings.peak_day_count]]

    def analyze_spending_patterns(self, snapshot: Snapshot) -> list[SpendingPattern]:
        """One pattern per category, in order of the category's first expense."""
        by_category: dict[str, list[Expense]] = {}
        for expense in snapshot.expenses:
            by_category.setdefault(expense.category, []).append(expense)

        patterns = []
        for category, expenses in by_category.items():
            months = list(monthly_totals(expenses).values())
            average = _mean(months)
            variance = _variance(months)
            seasonal = (
                len(months) >= self._settings.seasonality_min_months
                and variance > average * self._settings.seasonality_variance_ratio
            )
            patterns.append(SpendingPattern(
                category=category,
                average_monthly=average,
                trend=self._trend(months),
                seasonality=seasonal,
                peak_days=self._peak_days(expenses),
                risk_level=self._risk(variance, average),
                monthly_totals=months,
            ))
        return patterns

    # =========================================================================
    # INSIGHTS
    # =========================================================================

    def _budget_insights(self, snapshot: Snapshot) -> list[FinancialInsight]:
        insights = []
        for budget in snapshot.budgets:
            utilization = budget.utilization
            if utilization < self._settings.budget_warning_ratio:
                continue
            insights.append(FinancialInsight(
                type=InsightType.WARNING,
                title=f"{budget.category} Budget Alert",
                description=(
                    f"You've spent {utilization * 100:.1f}% of your {budget.category} "
                    "budget. Consider reducing spending in this category."
                ),
                priority=InsightPriority.HIGH if utilization >= 1 else InsightPriority.MEDIUM,
                actionable=True,
                suggested_action=(
                    f"Review recent {budget.category} expenses and identify areas to cut back"
                ),
                impact=8,
                category=budget.category,
            ))
        return insights

    def _pattern_insights(self, patterns: list[SpendingPattern]) -> list[FinancialInsight]:
        insights = []
        for pattern in patterns:
            if pattern.trend == Trend.INCREASING and pattern.risk_level == RiskLevel.HIGH:
                insights.append(FinancialInsight(
                    type=InsightType.WARNING,
                    title=f"Rising {pattern.category} Spending",
                    description=(
                        f"Your {pattern.category} spending has increased significantly. "
                        f"Average monthly: ₹{pattern.average_monthly:.0f}"
                    ),
                    priority=InsightPriority.MEDIUM,
                    actionable=True,
                    suggested_action=(
                        f"Set a stricter budget for {pattern.category} and track daily expenses"
                    ),
                    impact=7,
                    category=pattern.category,
                ))
            if pattern.trend == Trend.DECREASING:
                insights.append(FinancialInsight(
                    type=InsightType.ACHIEVEMENT,
                    title=f"Great Progress on {pattern.category}",
                    description=(
                        f"You've successfully reduced your {pattern.category} spending. "
                        "Keep up the good work!"
                    ),
                    priority=InsightPriority.LOW,
                    actionable=False,
                    impact=5,
                    category=pattern.category,
                ))
        return insights

    def _goal_insights(self, snapshot: Snapshot, as_of: date) -> list[FinancialInsight]:
        insights = []
        for goal in snapshot.goals:
            days_left = (goal.deadline - as_of).days
            if goal.progress >= self._settings.goal_attention_progress:
                continue
            if days_left >= self._settings.goal_attention_days:
                continue
            remaining = goal.target_amount - goal.current_amount
            # A deadline today or in the past leaves one month to close the gap
            required = remaining / (days_left / 30) if days_left > 0 else remaining
            insights.append(FinancialInsight(
                type=InsightType.RECOMMENDATION,
                title=f"{goal.title} Needs Attention",
                description=(
                    f"You need to save ₹{required:.0f} monthly to reach your goal on time."
                ),
                priority=InsightPriority.HIGH,
                actionable=True,
                suggested_action="Increase monthly savings or adjust goal timeline",
                impact=9,
                category="goals",
            ))
        return insights

    def _cash_insights(self, snapshot: Snapshot) -> list[FinancialInsight]:
        income = sum(i.amount for i in snapshot.income)
        spent = sum(e.amount for e in snapshot.expenses)
        available = max(0.0, income - spent)
        if available <= self._settings.idle_cash_threshold:
            return []
        return [FinancialInsight(
            type=InsightType.OPPORTUNITY,
            title="Investment Opportunity",
            description=(
                f"You have ₹{available:.0f} in cash. Consider investing for better returns."
            ),
            priority=InsightPriority.MEDIUM,
            actionable=True,
            suggested_action="Explore SIP investments or fixed deposits",
            impact=6,
            category="investments",
        )]

    def _seasonal_insights(self, as_of: date) -> list[FinancialInsight]:
        if as_of.month not in self._settings.festival_months_list:
            return []
        return [FinancialInsight(
            type=InsightType.RECOMMENDATION,
            title="Festival Season Budget Planning",
            description=(
                "Festival season is approaching. Plan your budget for gifts, travel, "
                "and celebrations."
            ),
            priority=InsightPriority.MEDIUM,
            actionable=True,
            suggested_action="Create a separate festival budget and start saving now",
            impact=7,
            category="planning",
        )]

    def generate_insights(
        self,
        snapshot: Snapshot,
        as_of: Optional[date] = None,
    ) -> list[FinancialInsight]:
        """
        Every insight rule plus the risk rules, sorted by priority.
        """
        as_of = as_of or date.today()
        patterns = self.analyze_spending_patterns(snapshot)

        insights: list[FinancialInsight] = []
        insights.extend(self._budget_insights(snapshot))
        insights.extend(self._pattern_insights(patterns))
        insights.extend(self._goal_insights(snapshot, as_of))
        insights.extend(self._cash_insights(snapshot))
        insights.extend(self._seasonal_insights(as_of))
        insights.extend(self.identify_risks(snapshot, as_of))
        return _sort_by_priority(insights)

    # =========================================================================
    # RISKS
    # =========================================================================

    def identify_risks(
        self,
        snapshot: Snapshot,
        as_of: Optional[date] = None,
    ) -> list[FinancialInsight]:
        """
        Emergency fund, debt load and income stability checks.

        A rule whose inputs are unknown (None override, no spending this
        month, no income, fewer than two months of income history) is skipped.
        """
        as_of = as_of or date.today()
        risks = []

        month_spend = sum(
            e.amount for e in snapshot.expenses
            if (e.date.year, e.date.month) == (as_of.year, as_of.month)
        )
        if snapshot.emergency_fund is not None and month_spend > 0:
            covered = snapshot.emergency_fund / month_spend
            if covered < self._settings.emergency_fund_months:
                risks.append(FinancialInsight(
                    type=InsightType.WARNING,
                    title="Insufficient Emergency Fund",
                    description=(
                        f"Your emergency fund covers only {covered:.1f} months of expenses. "
                        "Aim for 6 months."
                    ),
                    priority=InsightPriority.HIGH,
                    actionable=True,
                    suggested_action="Increase emergency fund savings by ₹5,000 monthly",
                    impact=10,
                    category="emergency",
                ))

        monthly_income = sum(i.monthly_amount for i in snapshot.income if i.is_active)
        if snapshot.monthly_debt_payments is not None and monthly_income > 0:
            debt_ratio = snapshot.monthly_debt_payments / monthly_income * 100
            if debt_ratio > self._settings.debt_to_income_limit:
                risks.append(FinancialInsight(
                    type=InsightType.WARNING,
                    title="High Debt-to-Income Ratio",
                    description=(
                        f"Your debt payments are {debt_ratio:.1f}% of income. This is above "
                        f"the recommended {self._settings.debt_to_income_limit:.0f}%."
                    ),
                    priority=InsightPriority.HIGH,
                    actionable=True,
                    suggested_action="Consider debt consolidation or increase income sources",
                    impact=9,
                    category="debt",
                ))

        history = list(snapshot.income_history)
        if len(history) >= 2 and _mean(history) > 0:
            variability = math.sqrt(_variance(history)) / _mean(history)
            if variability > self._settings.income_variability_limit:
                risks.append(FinancialInsight(
                    type=InsightType.WARNING,
                    title="Irregular Income Pattern",
                    description=(
                        "Your income shows high variability. Consider building a larger "
                        "emergency fund."
                    ),
                    priority=InsightPriority.MEDIUM,
                    actionable=True,
                    suggested_action=(
                        "Diversify income sources and maintain 8-month emergency fund"
                    ),
                    impact=7,
                    category="income",
                ))

        return risks

    # =========================================================================
    # RECOMMENDATIONS
    # =========================================================================

    def personalized_recommendations(self, snapshot: Snapshot) -> list[FinancialInsight]:
        """Category-specific advice derived from the spending patterns."""
        recommendations = []
        for pattern in self.analyze_spending_patterns(snapshot):
            category = pattern.category.lower()
            if (
                category in DINING_CATEGORIES
                and pattern.average_monthly > self._settings.dining_monthly_limit
            ):
                recommendations.append(FinancialInsight(
                    type=InsightType.RECOMMENDATION,
                    title="Optimize Food Expenses",
                    description=(
                        "Consider meal planning and cooking at home to reduce dining expenses."
                    ),
                    priority=InsightPriority.MEDIUM,
                    actionable=True,
                    suggested_action="Set a weekly meal plan and grocery budget",
                    impact=6,
                    category=pattern.category,
                ))
            if category in TRANSPORT_CATEGORIES and "Monday" in pattern.peak_days:
                recommendations.append(FinancialInsight(
                    type=InsightType.RECOMMENDATION,
                    title="Transportation Optimization",
                    description=(
                        "You spend more on transportation on Mondays. Consider carpooling "
                        "or public transport."
                    ),
                    priority=InsightPriority.LOW,
                    actionable=True,
                    suggested_action="Explore monthly transport passes or ride-sharing options",
                    impact=4,
                    category=pattern.category,
                ))
        return recommendations

    # =========================================================================
    # HEALTH SCORE
    # =========================================================================

    def health_score(self, snapshot: Snapshot, as_of: Optional[date] = None) -> float:
        """
        Financial health from 0 to 100.

        Components:
        - budget adherence, up to 30
        - goal progress, up to 25
        - investment diversification, up to 25
        - expense trend, up to 20
        """
        as_of = as_of or date.today()

        budget_score = 30.0
        for budget in snapshot.budgets:
            if budget.utilization > 1:
                budget_score -= 10
            elif budget.utilization > 0.9:
                budget_score -= 5

        goal_score = 0.0
        if snapshot.goals:
            goal_score = sum(min(1.0, g.progress) for g in snapshot.goals) * 25 / len(snapshot.goals)

        types = {i.type for i in snapshot.investments}
        diversification_score = min(25.0, len(types) * 6.25)

        month_ago = _months_back(as_of, 1)
        two_months_ago = _months_back(as_of, 2)
        recent = sum(e.amount for e in snapshot.expenses if month_ago <= e.date <= as_of)
        previous = sum(
            e.amount for e in snapshot.expenses if two_months_ago <= e.date < month_ago
        )
        if recent <= previous:
            trend_score = 20.0
        elif previous == 0:
            trend_score = 0.0
        else:
            trend_score = max(0.0, 20 - (recent - previous) / previous * 100)

        total = budget_score + goal_score + diversification_score + trend_score
        return max(0.0, min(100.0, total))

    # =========================================================================
    # REPORT
    # =========================================================================

    def analyze(self, snapshot: Snapshot, as_of: Optional[date] = None) -> InsightReport:
        """Patterns, insights, recommendations and health score in one report."""
        as_of = as_of or date.today()
        report = InsightReport(
            as_of=as_of,
            health_score=self.health_score(snapshot, as_of),
            patterns=self.analyze_spending_patterns(snapshot),
            insights=self.generate_insights(snapshot, as_of),
            recommendations=self.personalized_recommendations(snapshot),
        )
        logger.info(
            "insights_generated",
            as_of=as_of.isoformat(),
            insight_count=len(report.insights),
            health_score=report.health_score,
        )
        return report
