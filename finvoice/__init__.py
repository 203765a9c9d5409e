"""
FinVoice Core

Personal-finance ledger with budget and goal aggregates kept consistent by
a coordinator, and a deterministic insight engine over ledger snapshots.
"""

__version__ = "0.1.0"

from finvoice.session import Session, create_session

__all__ = ["Session", "__version__", "create_session"]
