"""
Tests for the insight engine.

Every test builds a Snapshot by hand and passes an explicit `as_of`, so the
results never depend on the day the suite runs.
"""

from datetime import date
from itertools import count

import pytest

from finvoice.config import InsightSettings
from finvoice.insights import InsightEngine, category_totals, monthly_totals
from finvoice.models.insight import InsightPriority, InsightType, RiskLevel, Trend
from finvoice.models.ledger import (
    Budget,
    Expense,
    Goal,
    IncomeSource,
    Investment,
    Snapshot,
)


_ids = count(1)

AS_OF = date(2024, 5, 15)


def expense(amount: float, day: date, category: str = "Shopping") -> Expense:
    return Expense(
        id=f"e{next(_ids)}",
        amount=amount,
        category=category,
        description="test",
        date=day,
    )


def monthly(amounts: list[float], category: str = "Shopping", year: int = 2024) -> list[Expense]:
    """One expense on the 10th of each month, starting in January."""
    return [
        expense(amount, date(year + i // 12, i % 12 + 1, 10), category)
        for i, amount in enumerate(amounts)
    ]


def budget(category: str, amount: float, spent: float) -> Budget:
    return Budget(id=f"b{next(_ids)}", category=category, amount=amount, spent=spent)


def goal(current: float, target: float, deadline: date, title: str = "Car") -> Goal:
    return Goal(
        id=f"g{next(_ids)}",
        title=title,
        target_amount=target,
        current_amount=current,
        category="Savings",
        deadline=deadline,
    )


def income(amount: float, is_active: bool = True) -> IncomeSource:
    return IncomeSource(id=f"i{next(_ids)}", source="Salary", amount=amount, is_active=is_active)


def investment(kind: str) -> Investment:
    return Investment(
        id=f"v{next(_ids)}", name=kind, type=kind, amount=1000, current_value=1000
    )


@pytest.fixture
def engine() -> InsightEngine:
    return InsightEngine(InsightSettings())


# =============================================================================
# SPENDING PATTERNS
# =============================================================================

class TestSpendingPatterns:
    """Per-category statistics."""

    def test_increasing_trend(self, engine):
        """Three months at 200 after three at 100 is increasing and high risk."""
        snapshot = Snapshot(expenses=monthly([100, 100, 100, 200, 200, 200]))

        [pattern] = engine.analyze_spending_patterns(snapshot)

        assert pattern.category == "Shopping"
        assert pattern.average_monthly == 150
        assert pattern.trend == Trend.INCREASING
        assert pattern.risk_level == RiskLevel.HIGH
        assert pattern.monthly_totals == [100, 100, 100, 200, 200, 200]

    def test_decreasing_trend(self, engine):
        """The reverse sequence is decreasing."""
        snapshot = Snapshot(expenses=monthly([200, 200, 200, 100, 100, 100]))

        [pattern] = engine.analyze_spending_patterns(snapshot)

        assert pattern.trend == Trend.DECREASING

    def test_flat_spending(self, engine):
        """Identical months are stable with no variance."""
        snapshot = Snapshot(expenses=monthly([100] * 6))

        [pattern] = engine.analyze_spending_patterns(snapshot)

        assert pattern.trend == Trend.STABLE
        assert pattern.risk_level == RiskLevel.LOW

    def test_short_history_padded_with_zero(self, engine):
        """A single month compares against empty months and reads as increasing."""
        snapshot = Snapshot(expenses=monthly([100]))

        [pattern] = engine.analyze_spending_patterns(snapshot)

        assert pattern.trend == Trend.INCREASING
        assert pattern.risk_level == RiskLevel.LOW

    def test_medium_risk(self, engine):
        """Variance between 0.2 and 0.5 of the mean is medium risk."""
        # mean 10, population variance 4
        snapshot = Snapshot(expenses=monthly([8, 12]))

        [pattern] = engine.analyze_spending_patterns(snapshot)

        assert pattern.risk_level == RiskLevel.MEDIUM

    def test_seasonality_needs_a_year(self, engine):
        """Volatile spending is seasonal only with twelve months of history."""
        eleven = Snapshot(expenses=monthly([100, 300] * 5 + [100]))
        twelve = Snapshot(expenses=monthly([100, 300] * 6))

        assert engine.analyze_spending_patterns(eleven)[0].seasonality is False
        assert engine.analyze_spending_patterns(twelve)[0].seasonality is True

    def test_peak_days(self, engine):
        """The two weekdays with the highest totals, largest first."""
        snapshot = Snapshot(expenses=[
            expense(50, date(2024, 5, 6)),    # Monday
            expense(20, date(2024, 5, 7)),    # Tuesday
            expense(300, date(2024, 5, 11)),  # Saturday
        ])

        [pattern] = engine.analyze_spending_patterns(snapshot)

        assert pattern.peak_days == ["Saturday", "Monday"]

    def test_one_pattern_per_category(self, engine):
        """Categories appear in order of their first expense."""
        snapshot = Snapshot(expenses=[
            expense(10, date(2024, 5, 1), "Food"),
            expense(10, date(2024, 5, 2), "Travel"),
            expense(10, date(2024, 5, 3), "Food"),
        ])

        categories = [p.category for p in engine.analyze_spending_patterns(snapshot)]

        assert categories == ["Food", "Travel"]

    def test_no_expenses(self, engine):
        """An empty ledger has no patterns."""
        assert engine.analyze_spending_patterns(Snapshot()) == []


# =============================================================================
# INSIGHT RULES
# =============================================================================

class TestBudgetRule:
    """Budget alerts at 90% and 100%."""

    def test_near_limit_is_medium(self, engine):
        """950 of 1000 raises a medium warning."""
        snapshot = Snapshot(budgets=[budget("Food", 1000, 950)])

        [insight] = engine.generate_insights(snapshot, AS_OF)

        assert insight.type == InsightType.WARNING
        assert insight.priority == InsightPriority.MEDIUM
        assert insight.impact == 8
        assert "95.0%" in insight.description

    def test_over_limit_is_high(self, engine):
        """1050 of 1000 raises a high warning."""
        snapshot = Snapshot(budgets=[budget("Food", 1000, 1050)])

        [insight] = engine.generate_insights(snapshot, AS_OF)

        assert insight.priority == InsightPriority.HIGH

    def test_under_threshold(self, engine):
        """899 of 1000 is fine."""
        snapshot = Snapshot(budgets=[budget("Food", 1000, 899)])

        assert engine.generate_insights(snapshot, AS_OF) == []


class TestPatternRules:
    """Insights derived from spending patterns."""

    def test_rising_spending_warning(self, engine):
        """Increasing and high risk gives a medium warning."""
        snapshot = Snapshot(expenses=monthly([100, 100, 100, 200, 200, 200]))

        titles = [i.title for i in engine.generate_insights(snapshot, AS_OF)]

        assert "Rising Shopping Spending" in titles

    def test_decreasing_is_an_achievement(self, engine):
        """A falling category earns a low priority achievement."""
        snapshot = Snapshot(expenses=monthly([200, 200, 200, 100, 100, 100]))

        achievements = [
            i for i in engine.generate_insights(snapshot, AS_OF)
            if i.type == InsightType.ACHIEVEMENT
        ]

        assert len(achievements) == 1
        assert achievements[0].priority == InsightPriority.LOW
        assert achievements[0].impact == 5
        assert achievements[0].actionable is False


class TestGoalRule:
    """Goals under half funded close to their deadline."""

    def test_required_top_up(self, engine):
        """8000 left with 60 days to go needs 4000 a month."""
        snapshot = Snapshot(goals=[goal(2000, 10000, date(2024, 7, 14))])

        [insight] = engine.generate_insights(snapshot, AS_OF)

        assert insight.type == InsightType.RECOMMENDATION
        assert insight.priority == InsightPriority.HIGH
        assert insight.impact == 9
        assert "₹4000 monthly" in insight.description

    def test_past_deadline(self, engine):
        """An overdue goal asks for the whole remainder."""
        snapshot = Snapshot(goals=[goal(2000, 10000, date(2024, 4, 1))])

        [insight] = engine.generate_insights(snapshot, AS_OF)

        assert "₹8000 monthly" in insight.description

    def test_well_funded_or_distant(self, engine):
        """Half-funded or far-off goals raise nothing."""
        snapshot = Snapshot(goals=[
            goal(5000, 10000, date(2024, 6, 1)),
            goal(0, 10000, date(2025, 5, 15)),
        ])

        assert engine.generate_insights(snapshot, AS_OF) == []


class TestCashRule:
    """Idle cash becomes an investment opportunity."""

    def test_idle_cash(self, engine):
        """Every recorded income counts, inactive sources included."""
        snapshot = Snapshot(
            income=[income(100000), income(40000, is_active=False)],
            expenses=[expense(10000, date(2024, 1, 10))],
        )

        opportunities = [
            i for i in engine.generate_insights(snapshot, AS_OF)
            if i.type == InsightType.OPPORTUNITY
        ]

        assert len(opportunities) == 1
        assert opportunities[0].impact == 6
        assert "₹130000" in opportunities[0].description

    def test_below_threshold(self, engine):
        """40000 available is not enough."""
        snapshot = Snapshot(income=[income(50000)], expenses=[expense(10000, date(2024, 1, 10))])

        assert not [
            i for i in engine.generate_insights(snapshot, AS_OF)
            if i.type == InsightType.OPPORTUNITY
        ]


class TestSeasonalRule:
    """Festival season planning."""

    def test_in_festival_season(self, engine):
        """November triggers the reminder."""
        [insight] = engine.generate_insights(Snapshot(), date(2024, 11, 5))

        assert insight.title == "Festival Season Budget Planning"
        assert insight.priority == InsightPriority.MEDIUM
        assert insight.impact == 7

    def test_outside_festival_season(self, engine):
        """May does not."""
        assert engine.generate_insights(Snapshot(), AS_OF) == []

    def test_configurable_months(self):
        """The festival window comes from settings."""
        engine = InsightEngine(InsightSettings(festival_months="5"))

        assert len(engine.generate_insights(Snapshot(), AS_OF)) == 1


# =============================================================================
# RISKS
# =============================================================================

class TestRisks:
    """Emergency fund, debt and income stability."""

    def test_thin_emergency_fund(self, engine):
        """50000 against 30000 a month covers under three months."""
        snapshot = Snapshot(
            expenses=[expense(30000, date(2024, 5, 2))],
            emergency_fund=50000,
        )

        [risk] = engine.identify_risks(snapshot, AS_OF)

        assert risk.title == "Insufficient Emergency Fund"
        assert risk.priority == InsightPriority.HIGH
        assert risk.impact == 10
        assert "1.7 months" in risk.description

    def test_healthy_emergency_fund(self, engine):
        """Four months of cover is enough."""
        snapshot = Snapshot(
            expenses=[expense(30000, date(2024, 5, 2))],
            emergency_fund=120000,
        )

        assert engine.identify_risks(snapshot, AS_OF) == []

    def test_unknown_emergency_fund_skipped(self, engine):
        """Without a fund figure the rule does not guess."""
        snapshot = Snapshot(expenses=[expense(30000, date(2024, 5, 2))])

        assert engine.identify_risks(snapshot, AS_OF) == []

    def test_no_spending_this_month_skipped(self, engine):
        """No divide by zero when the month has no expenses."""
        snapshot = Snapshot(expenses=[expense(30000, date(2024, 1, 2))], emergency_fund=0)

        assert engine.identify_risks(snapshot, AS_OF) == []

    def test_high_debt_ratio(self, engine):
        """Debt at half of income is flagged."""
        snapshot = Snapshot(income=[income(50000)], monthly_debt_payments=25000)

        [risk] = engine.identify_risks(snapshot, AS_OF)

        assert risk.title == "High Debt-to-Income Ratio"
        assert risk.impact == 9
        assert "50.0%" in risk.description

    def test_debt_without_income_skipped(self, engine):
        """No income means no ratio."""
        snapshot = Snapshot(monthly_debt_payments=25000)

        assert engine.identify_risks(snapshot, AS_OF) == []

    def test_irregular_income(self, engine):
        """A coefficient of variation above 0.3 is a medium warning."""
        snapshot = Snapshot(income_history=(10000, 50000))

        [risk] = engine.identify_risks(snapshot, AS_OF)

        assert risk.title == "Irregular Income Pattern"
        assert risk.priority == InsightPriority.MEDIUM
        assert risk.impact == 7

    def test_steady_or_short_income_history(self, engine):
        """Steady income or a single month raises nothing."""
        assert engine.identify_risks(Snapshot(income_history=(50000, 52000)), AS_OF) == []
        assert engine.identify_risks(Snapshot(income_history=(50000,)), AS_OF) == []

    def test_risks_are_part_of_insights(self, engine):
        """generate_insights includes the risk rules."""
        snapshot = Snapshot(income_history=(10000, 50000))

        titles = [i.title for i in engine.generate_insights(snapshot, AS_OF)]

        assert titles == ["Irregular Income Pattern"]


class TestOrdering:
    """High before medium before low, stable within a priority."""

    def test_sorted_by_priority(self, engine):
        """Mixed priorities come out ranked."""
        snapshot = Snapshot(
            budgets=[budget("Food", 1000, 950), budget("Rent", 1000, 1200)],
            expenses=monthly([200, 200, 200, 100, 100, 100], category="Travel"),
        )

        priorities = [i.priority for i in engine.generate_insights(snapshot, date(2024, 11, 5))]

        assert priorities == [
            InsightPriority.HIGH,
            InsightPriority.MEDIUM,
            InsightPriority.MEDIUM,
            InsightPriority.LOW,
        ]

    def test_ties_keep_generation_order(self, engine):
        """Budget warnings come before the festival reminder."""
        snapshot = Snapshot(budgets=[budget("Food", 1000, 950), budget("Fuel", 1000, 960)])

        titles = [i.title for i in engine.generate_insights(snapshot, date(2024, 11, 5))]

        assert titles == [
            "Food Budget Alert",
            "Fuel Budget Alert",
            "Festival Season Budget Planning",
        ]


class TestRecommendations:
    """Category-specific advice."""

    def test_heavy_dining(self, engine):
        """Dining above the monthly limit suggests meal planning."""
        snapshot = Snapshot(expenses=monthly([20000, 18000], category="Food & Dining"))

        [rec] = engine.personalized_recommendations(snapshot)

        assert rec.title == "Optimize Food Expenses"
        assert rec.priority == InsightPriority.MEDIUM
        assert rec.impact == 6

    def test_monday_transport(self, engine):
        """Transport peaking on Monday suggests a pass."""
        snapshot = Snapshot(expenses=[
            expense(500, date(2024, 5, 6), "Transportation"),
            expense(100, date(2024, 5, 8), "Transportation"),
        ])

        [rec] = engine.personalized_recommendations(snapshot)

        assert rec.title == "Transportation Optimization"
        assert rec.priority == InsightPriority.LOW
        assert rec.impact == 4

    def test_nothing_to_recommend(self, engine):
        """Modest dining raises nothing."""
        snapshot = Snapshot(expenses=monthly([2000], category="Food"))

        assert engine.personalized_recommendations(snapshot) == []


# =============================================================================
# HEALTH SCORE
# =============================================================================

class TestHealthScore:
    """The four-component score."""

    def test_empty_snapshot(self, engine):
        """Full budget and trend marks, nothing for goals or investments."""
        assert engine.health_score(Snapshot(), AS_OF) == 50

    def test_budget_penalties(self, engine):
        """Minus 10 over the limit, minus 5 above 90%."""
        snapshot = Snapshot(budgets=[
            budget("Food", 1000, 1100),
            budget("Fuel", 1000, 950),
            budget("Fun", 1000, 100),
        ])

        assert engine.health_score(snapshot, AS_OF) == 15 + 20

    def test_budget_component_can_go_negative(self, engine):
        """Four blown budgets pull the other components down."""
        snapshot = Snapshot(budgets=[budget(f"c{i}", 100, 200) for i in range(4)])

        assert engine.health_score(snapshot, AS_OF) == 10

    def test_total_clamped_at_zero(self, engine):
        """Many blown budgets still score no lower than 0."""
        snapshot = Snapshot(budgets=[budget(f"c{i}", 100, 200) for i in range(8)])

        assert engine.health_score(snapshot, AS_OF) == 0

    def test_goal_progress(self, engine):
        """Average progress scaled to 25, each goal capped at fully funded."""
        snapshot = Snapshot(goals=[
            goal(5000, 10000, date(2025, 1, 1)),
            goal(30000, 10000, date(2025, 1, 1)),
        ])

        assert engine.health_score(snapshot, AS_OF) == pytest.approx(50 + 18.75)

    def test_diversification(self, engine):
        """6.25 per distinct type, at most 25."""
        two = Snapshot(investments=[investment("stocks"), investment("stocks"), investment("gold")])
        five = Snapshot(investments=[investment(k) for k in ("a", "b", "c", "d", "e")])

        assert engine.health_score(two, AS_OF) == 62.5
        assert engine.health_score(five, AS_OF) == 75

    def test_spending_increase_reduces_trend(self, engine):
        """Spending 110 after 100 costs 10 points."""
        snapshot = Snapshot(expenses=[
            expense(100, date(2024, 4, 1)),
            expense(110, date(2024, 5, 1)),
        ])

        assert engine.health_score(snapshot, AS_OF) == pytest.approx(40)

    def test_spending_after_quiet_month(self, engine):
        """Any spending after a month with none scores no trend points."""
        snapshot = Snapshot(expenses=[expense(100, date(2024, 5, 1))])

        assert engine.health_score(snapshot, AS_OF) == 30

    def test_perfect_score(self, engine):
        """Every component at its maximum gives 100."""
        snapshot = Snapshot(
            goals=[goal(10000, 10000, date(2025, 1, 1))],
            investments=[investment(k) for k in ("a", "b", "c", "d")],
        )

        assert engine.health_score(snapshot, AS_OF) == 100

    def test_bounds(self, engine):
        """The score stays in [0, 100] for a busy ledger."""
        snapshot = Snapshot(
            expenses=monthly([100, 5000, 20, 9000, 1, 40000]),
            budgets=[budget("Shopping", 10, 54121)] * 5,
            goals=[goal(0, 1, date(2024, 1, 1))],
        )

        assert 0 <= engine.health_score(snapshot, AS_OF) <= 100


class TestReport:
    """analyze bundles everything."""

    def test_report_is_deterministic(self, engine):
        """Same snapshot and date give the same content."""
        snapshot = Snapshot(
            expenses=monthly([100, 100, 100, 200, 200, 200]),
            budgets=[budget("Shopping", 1000, 1200)],
        )

        first = engine.analyze(snapshot, AS_OF)
        second = engine.analyze(snapshot, AS_OF)

        assert first.as_of == AS_OF
        assert first.insights == second.insights
        assert first.patterns == second.patterns
        assert first.health_score == second.health_score
        assert [i.title for i in first.high_priority] == ["Shopping Budget Alert"]

    def test_empty_report(self, engine):
        """An empty snapshot produces an empty, well-formed report."""
        report = engine.analyze(Snapshot(), AS_OF)

        assert report.insights == []
        assert report.patterns == []
        assert report.recommendations == []
        assert report.health_score == 50


class TestBreakdowns:
    """Chart helpers."""

    def test_monthly_totals(self):
        """Keyed by YYYY-MM, oldest first."""
        expenses = [
            expense(10, date(2024, 3, 1)),
            expense(5, date(2024, 1, 9)),
            expense(7, date(2024, 3, 30)),
        ]

        assert monthly_totals(expenses) == {"2024-01": 5, "2024-03": 17}
        assert list(monthly_totals(expenses)) == ["2024-01", "2024-03"]

    def test_category_totals(self):
        """Largest category first."""
        expenses = [
            expense(10, date(2024, 3, 1), "Food"),
            expense(50, date(2024, 3, 2), "Rent"),
            expense(15, date(2024, 3, 3), "Food"),
        ]

        assert list(category_totals(expenses).items()) == [("Rent", 50), ("Food", 25)]
