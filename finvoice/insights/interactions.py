"""
Interaction Log

Append-only record of how the user reacted to advice: which action, in which
category, with a positive or negative outcome, plus the financial context at
that moment.

DESIGN DECISION: The log is ADVISORY only. It exposes per-category weights a
presentation layer may use to order recommendations, but the insight engine
never reads it, so engine output stays a pure function of the Snapshot.
"""

from pathlib import Path
from typing import Any, Optional, Union

import pydantic
import structlog

from finvoice.models.insight import InteractionOutcome, InteractionRecord
from finvoice.models.ledger import Snapshot


logger = structlog.get_logger(__name__)

WEIGHT_STEP = 0.1
MIN_WEIGHT = 0.5
MAX_WEIGHT = 1.5


def financial_context(snapshot: Snapshot) -> dict[str, Any]:
    """Summary of a snapshot stored alongside an interaction."""
    return {
        "total_expenses": sum(e.amount for e in snapshot.expenses),
        "budget_utilization": [b.utilization for b in snapshot.budgets],
        "goal_progress": [g.progress for g in snapshot.goals],
    }


class InteractionLog:
    """
    Append-only interaction history, optionally persisted as JSON lines.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self._path = Path(path) if path else None
        self._records: list[InteractionRecord] = []
        if self._path is not None and self._path.exists():
            self._load()

    def _load(self) -> None:
        with self._path.open(encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    self._records.append(InteractionRecord.model_validate_json(line))
                except pydantic.ValidationError as e:
                    logger.warning(
                        "interaction_line_skipped",
                        path=str(self._path),
                        line=line_no,
                        error=str(e),
                    )

    @property
    def records(self) -> tuple[InteractionRecord, ...]:
        return tuple(self._records)

    def record(
        self,
        action: str,
        category: str,
        outcome: Union[InteractionOutcome, str],
        context: Optional[dict[str, Any]] = None,
    ) -> InteractionRecord:
        """
        Append one interaction.

        Raises:
            pydantic.ValidationError: If action, category or outcome is invalid
        """
        entry = InteractionRecord(
            action=action,
            category=category,
            outcome=outcome,
            context=context or {},
        )
        self._records.append(entry)
        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(entry.model_dump_json() + "\n")
        logger.info(
            "interaction_recorded",
            action=entry.action,
            category=entry.category,
            outcome=entry.outcome.value,
        )
        return entry

    def weights(self) -> dict[str, float]:
        """
        Per-category weight, 1.0 meaning neutral.

        Each positive outcome adds 0.1 and each negative one subtracts 0.1,
        clamped to [0.5, 1.5].
        """
        scores: dict[str, float] = {}
        for entry in self._records:
            step = WEIGHT_STEP if entry.outcome == InteractionOutcome.POSITIVE else -WEIGHT_STEP
            scores[entry.category] = scores.get(entry.category, 1.0) + step
        return {
            category: round(min(MAX_WEIGHT, max(MIN_WEIGHT, score)), 6)
            for category, score in scores.items()
        }

