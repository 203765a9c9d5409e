"""
Ledger Package

The coordinator that keeps budgets and goals consistent with the expense
ledger, and the channel that announces every change.
"""

from finvoice.ledger.channel import ChangeChannel
from finvoice.ledger.coordinator import (
    ConsistencyError,
    LedgerCoordinator,
    ValidationError,
)

__all__ = [
    "ChangeChannel",
    "ConsistencyError",
    "LedgerCoordinator",
    "ValidationError",
]
