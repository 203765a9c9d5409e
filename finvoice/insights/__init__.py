"""
Insights Package

Pure analysis of a ledger Snapshot, plus the advisory interaction log.
"""

from finvoice.insights.engine import (
    InsightEngine,
    category_totals,
    monthly_totals,
)
from finvoice.insights.interactions import InteractionLog, financial_context

__all__ = [
    "InsightEngine",
    "InteractionLog",
    "category_totals",
    "financial_context",
    "monthly_totals",
]
