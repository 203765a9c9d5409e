"""
Ledger Coordinator

The single authority for every ledger mutation. It wraps a ledger store and
keeps the derived aggregates consistent with the expense ledger:

- Budget.spent == sum of the amounts of expenses in the budget's category,
  for every budget (a category may carry several budgets).
- Goal.current_amount moves only through contributions, and every
  contribution is mirrored by one expense in the category
  "Goal Contribution – <goal title>".

DESIGN DECISION: Compound operations are not transactions (neither backend
has them). Each completed step registers how to undo itself; when a later
step fails the completed steps are undone in reverse order and the original
StoreError is re-raised. If an undo fails as well, ConsistencyError reports
which steps are still applied and which are missing.

DESIGN DECISION: A dispatched mutation is shielded from cancellation of its
caller. It runs to completion, and publishes its notifications, even if the
awaiting coroutine is cancelled.

Flow of every mutation:
1. Resolve the user (NotAuthenticatedError before any store call)
2. Validate the input (ValidationError, nothing written)
3. Store writes plus invariant re-derivation (compensated on failure)
4. Audit, then notify subscribers
"""

import asyncio
import datetime as dt
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union
from uuid import UUID

import pydantic
import structlog

from finvoice.audit import AuditLogger, create_correlation_id
from finvoice.config import LedgerSettings, get_settings
from finvoice.ledger.channel import ChangeChannel, Handler
from finvoice.models.audit import AuditEvent, AuditEventBuilder
from finvoice.models.events import (
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
from finvoice.models.ledger import (
    RECORD_MODELS,
    BalanceSummary,
    Budget,
    BudgetInput,
    BudgetPatch,
    Card,
    CardInput,
    CardPatch,
    CardType,
    Collection,
    ContributionInput,
    Expense,
    ExpenseInput,
    ExpensePatch,
    Goal,
    GoalInput,
    GoalPatch,
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
from finvoice.services.identity import IdentityProvider
from finvoice.services.storage import (
    LedgerStoreInterface,
    NotAuthenticatedError,
    NotFoundError,
    StoreError,
)


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=LedgerRecord)
InputT = TypeVar("InputT", bound=LedgerInput)

InputData = Union[dict[str, Any], LedgerInput]


# =============================================================================
# ERRORS
# =============================================================================

class ValidationError(Exception):
    """Input rejected before anything was written."""

    def __init__(self, message: str, issues: Optional[list[dict]] = None):
        self.issues = issues or []
        super().__init__(message)


class ConsistencyError(Exception):
    """
    A compound operation failed half-way and could not be undone.

    `applied` lists the steps that are still in effect, `missing` the ones
    that never happened or were undone. Retrying the missing steps restores
    the invariants.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        applied: list[str],
        missing: list[str],
    ):
        self.operation = operation
        self.applied = applied
        self.missing = missing
        super().__init__(message)


# =============================================================================
# OPERATION STATE
# =============================================================================

@dataclass
class _Operation:
    """Bookkeeping of one coordinator call."""
    name: str
    correlation_id: UUID
    user_id: Optional[str] = None
    events: list[LedgerEvent] = field(default_factory=list)
    audit: list[AuditEvent] = field(default_factory=list)
    planned: list[str] = field(default_factory=list)
    undo_stack: list[tuple[str, Callable[[], Awaitable[Any]]]] = field(default_factory=list)

    def plan(self, step: str) -> None:
        if step not in self.planned:
            self.planned.append(step)

    def completed(self, step: str, undo: Callable[[], Awaitable[Any]]) -> None:
        self.undo_stack.append((step, undo))


def _issues(error: pydantic.ValidationError) -> list[dict]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "__root__",
            "message": err["msg"],
            "type": err["type"],
        }
        for err in error.errors()
    ]


class LedgerCoordinator:
    """
    Session handle for reading and mutating one user's ledger.

    Usage:
        coordinator = LedgerCoordinator(LocalLedgerStore(), StaticIdentity("u1"))
        expense = await coordinator.add_expense({...})
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        identity: IdentityProvider,
        channel: Optional[ChangeChannel] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._identity = identity
        self._audit_logger = audit_logger or AuditLogger()
        self._channel = channel or ChangeChannel(self._audit_logger)
        self._precision = (settings or get_settings().ledger).amount_precision
        self._in_flight: set[asyncio.Future] = set()

    @property
    def channel(self) -> ChangeChannel:
        return self._channel

    def subscribe(self, handler: Handler, collections=None) -> Callable[[], None]:
        """Register a change handler. See ChangeChannel.subscribe."""
        return self._channel.subscribe(handler, collections)

    async def wait_idle(self) -> None:
        """Wait until every dispatched mutation has finished."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    # =========================================================================
    # PLUMBING
    # =========================================================================

    def _require_user(self) -> str:
        user_id = self._identity.current_user_id()
        if not user_id:
            raise NotAuthenticatedError("No signed-in user")
        return user_id

    def _parse(self, model: type[InputT], data: InputData, operation: str) -> InputT:
        if isinstance(data, model):
            parsed = data
        else:
            if isinstance(data, pydantic.BaseModel):
                data = data.model_dump()
            try:
                parsed = model.model_validate(data)
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid input for {operation}", _issues(e))
        # Finer amounts would be lost when spent is rounded
        amount = getattr(parsed, "amount", None)
        if amount is not None and round(amount, self._precision) != amount:
            raise ValidationError(f"Invalid input for {operation}", [{
                "field": "amount",
                "message": f"At most {self._precision} decimal places are allowed",
                "type": "precision",
            }])
        return parsed

    def _record(self, model: type[RecordT], row: dict[str, Any]) -> RecordT:
        try:
            return model.model_validate(row)
        except pydantic.ValidationError as e:
            raise StoreError(f"Malformed {model.__name__} record {row.get('id')}: {e}")

    async def _list(self, user_id: str, collection: Collection) -> list:
        model = RECORD_MODELS[collection]
        records = []
        for row in await self._store.list_records(user_id, collection):
            try:
                records.append(model.model_validate(row))
            except pydantic.ValidationError as e:
                logger.warning(
                    "malformed_record_skipped",
                    collection=collection.value,
                    record_id=row.get("id"),
                    error=str(e),
                )
        return records

    async def _require(self, op: _Operation, collection: Collection, record_id: str):
        row = await self._store.get_record(op.user_id, collection, record_id)
        if row is None:
            raise NotFoundError(f"{collection.value} record not found: {record_id}")
        return self._record(RECORD_MODELS[collection], row)

    async def _run(self, name: str, impl: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        task = asyncio.ensure_future(self._execute(name, impl, *args))
        self._in_flight.add(task)
        task.add_done_callback(self._finished)
        return await asyncio.shield(task)

    def _finished(self, task: asyncio.Future) -> None:
        self._in_flight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("mutation_failed", error=str(task.exception()))

    async def _execute(self, name: str, impl: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        op = _Operation(name=name, correlation_id=create_correlation_id())
        try:
            op.user_id = self._require_user()
            result = await impl(op, *args)
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                name, e.issues, op.user_id, op.correlation_id
            )
            raise
        except StoreError as e:
            try:
                if op.undo_stack:
                    await self._compensate(op)
            except ConsistencyError as consistency_error:
                await self._flush_audit(op)
                await self._audit_logger.log(AuditEventBuilder.consistency_error(
                    operation=name,
                    missing=", ".join(consistency_error.missing),
                    error_message=str(e),
                    user_id=op.user_id,
                    correlation_id=op.correlation_id,
                    details={"applied": consistency_error.applied},
                ))
                raise
            await self._flush_audit(op)
            await self._audit_logger.log_store_error(name, str(e), op.user_id, op.correlation_id)
            raise

        await self._flush_audit(op)
        await self._channel.publish(op.events)
        return result

    async def _flush_audit(self, op: _Operation) -> None:
        for event in op.audit:
            await self._audit_logger.log(event)
        op.audit.clear()

    async def _compensate(self, op: _Operation) -> None:
        while op.undo_stack:
            step, undo = op.undo_stack[-1]
            try:
                await undo()
            except StoreError as undo_error:
                applied = [s for s, _ in op.undo_stack]
                missing = [s for s in op.planned if s not in applied]
                raise ConsistencyError(
                    f"{op.name} failed and undoing {step} failed too: {undo_error}",
                    operation=op.name,
                    applied=applied,
                    missing=missing,
                ) from undo_error
            op.undo_stack.pop()
            op.audit.append(AuditEventBuilder.compensation_applied(
                op.name, step, op.user_id, op.correlation_id
            ))
            logger.warning("step_compensated", operation=op.name, step=step)

    # =========================================================================
    # DERIVED AGGREGATES
    # =========================================================================

    async def _adjust_budgets(self, op: _Operation, category: str, delta: float) -> None:
        """Add `delta` to `spent` of every budget in `category`."""
        if delta == 0:
            return
        for budget in await self._list(op.user_id, Collection.BUDGETS):
            if budget.category != category:
                continue
            step = f"budget_adjustment:{budget.id}"
            op.plan(step)
            spent = round(budget.spent + delta, self._precision)
            row = await self._store.update_record(
                op.user_id, Collection.BUDGETS, budget.id, {"spent": spent}
            )
            op.completed(step, self._undo_update(
                op.user_id, Collection.BUDGETS, budget.id, {"spent": budget.spent}
            ))
            after = self._record(Budget, row)
            op.events.append(BudgetChanged(
                user_id=op.user_id, budget=after, previous_spent=budget.spent
            ))
            op.audit.append(AuditEventBuilder.budget_spent_adjusted(
                budget.id, category, delta, after.spent, op.user_id, op.correlation_id
            ))

    async def _category_total(self, user_id: str, category: str) -> float:
        expenses = await self._list(user_id, Collection.EXPENSES)
        return round(
            sum(e.amount for e in expenses if e.category == category),
            self._precision,
        )

    def _undo_update(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
        previous: dict[str, Any],
    ) -> Callable[[], Awaitable[Any]]:
        async def undo() -> None:
            await self._store.update_record(user_id, collection, record_id, previous)
        return undo

    def _undo_insert(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
    ) -> Callable[[], Awaitable[Any]]:
        async def undo() -> None:
            await self._store.delete_record(user_id, collection, record_id)
        return undo

    # =========================================================================
    # EXPENSES
    # =========================================================================

    async def add_expense(self, data: InputData) -> Expense:
        """Insert an expense and add its amount to the budgets of its category."""
        return await self._run("add_expense", self._add_expense, data)

    async def _add_expense(self, op: _Operation, data: InputData) -> Expense:
        expense_input = self._parse(ExpenseInput, data, op.name)
        return await self._insert_expense(op, expense_input)

    async def _insert_expense(
        self,
        op: _Operation,
        expense_input: ExpenseInput,
        step: str = "expense_insert",
    ) -> Expense:
        op.plan(step)
        row = await self._store.insert_record(
            op.user_id, Collection.EXPENSES, expense_input.to_store()
        )
        expense = self._record(Expense, row)
        op.completed(step, self._undo_insert(
            op.user_id, Collection.EXPENSES, expense.id
        ))
        op.events.append(ExpenseAdded(user_id=op.user_id, expense=expense))
        op.audit.append(AuditEventBuilder.record_added(
            Collection.EXPENSES, expense.id, op.user_id, op.correlation_id,
            details={"amount": expense.amount, "category": expense.category},
        ))

        await self._adjust_budgets(op, expense.category, expense.amount)
        return expense

    async def update_expense(self, expense_id: str, patch: InputData) -> Expense:
        """
        Patch an expense.

        A changed amount or category first takes the old amount off the old
        category's budgets, then puts the new amount on the new category's
        budgets, and only then persists the expense.
        """
        return await self._run("update_expense", self._update_expense, expense_id, patch)

    async def _update_expense(self, op: _Operation, expense_id: str, patch: InputData) -> Expense:
        expense_patch = self._parse(ExpensePatch, patch, op.name)
        before = await self._require(op, Collection.EXPENSES, expense_id)
        if expense_patch.is_empty():
            return before

        changes = expense_patch.changes()
        new_amount = changes.get("amount", before.amount)
        new_category = changes.get("category", before.category)

        if new_category != before.category:
            await self._adjust_budgets(op, before.category, -before.amount)
            await self._adjust_budgets(op, new_category, new_amount)
        elif new_amount != before.amount:
            await self._adjust_budgets(op, before.category, new_amount - before.amount)

        op.plan("expense_update")
        row = await self._store.update_record(
            op.user_id, Collection.EXPENSES, expense_id, changes
        )
        after = self._record(Expense, row)
        op.events.insert(0, ExpenseUpdated(user_id=op.user_id, before=before, after=after))
        op.audit.append(AuditEventBuilder.record_updated(
            Collection.EXPENSES, expense_id, op.user_id, changes, op.correlation_id
        ))
        return after

    async def delete_expense(self, expense_id: str) -> None:
        """Take an expense's amount off its budgets, then remove it."""
        await self._run("delete_expense", self._delete_expense, expense_id)

    async def _delete_expense(self, op: _Operation, expense_id: str) -> None:
        expense = await self._require(op, Collection.EXPENSES, expense_id)
        await self._adjust_budgets(op, expense.category, -expense.amount)

        op.plan("expense_delete")
        removed = await self._store.delete_record(op.user_id, Collection.EXPENSES, expense_id)
        if not removed:
            logger.warning("expense_already_removed", expense_id=expense_id)
        op.events.insert(0, ExpenseDeleted(user_id=op.user_id, expense=expense))
        op.audit.append(AuditEventBuilder.record_deleted(
            Collection.EXPENSES, expense_id, op.user_id, op.correlation_id
        ))

    async def list_expenses(self) -> list[Expense]:
        return await self._list(self._require_user(), Collection.EXPENSES)

    # =========================================================================
    # BUDGETS
    # =========================================================================

    async def add_budget(self, data: InputData) -> Budget:
        """Insert a budget whose `spent` starts at the category's ledger total."""
        return await self._run("add_budget", self._add_budget, data)

    async def _add_budget(self, op: _Operation, data: InputData) -> Budget:
        budget_input = self._parse(BudgetInput, data, op.name)
        spent = await self._category_total(op.user_id, budget_input.category)
        row = await self._store.insert_record(
            op.user_id, Collection.BUDGETS, {**budget_input.to_store(), "spent": spent}
        )
        budget = self._record(Budget, row)
        op.events.append(BudgetAdded(user_id=op.user_id, budget=budget))
        op.audit.append(AuditEventBuilder.record_added(
            Collection.BUDGETS, budget.id, op.user_id, op.correlation_id,
            details={"category": budget.category, "spent": budget.spent},
        ))
        return budget

    async def update_budget(self, budget_id: str, patch: InputData) -> Budget:
        """
        Patch a budget's limit, period or category.

        `spent` is not patchable. A new category re-derives it from the ledger.
        """
        return await self._run("update_budget", self._update_budget, budget_id, patch)

    async def _update_budget(self, op: _Operation, budget_id: str, patch: InputData) -> Budget:
        budget_patch = self._parse(BudgetPatch, patch, op.name)
        before = await self._require(op, Collection.BUDGETS, budget_id)
        if budget_patch.is_empty():
            return before

        changes = budget_patch.changes()
        if changes.get("category", before.category) != before.category:
            changes["spent"] = await self._category_total(op.user_id, changes["category"])

        row = await self._store.update_record(op.user_id, Collection.BUDGETS, budget_id, changes)
        after = self._record(Budget, row)
        op.events.append(BudgetChanged(
            user_id=op.user_id, budget=after, previous_spent=before.spent
        ))
        op.audit.append(AuditEventBuilder.record_updated(
            Collection.BUDGETS, budget_id, op.user_id, changes, op.correlation_id
        ))
        return after

    async def delete_budget(self, budget_id: str) -> None:
        await self._run("delete_budget", self._delete_budget, budget_id)

    async def _delete_budget(self, op: _Operation, budget_id: str) -> None:
        budget = await self._require(op, Collection.BUDGETS, budget_id)
        await self._store.delete_record(op.user_id, Collection.BUDGETS, budget_id)
        op.events.append(BudgetDeleted(user_id=op.user_id, budget=budget))
        op.audit.append(AuditEventBuilder.record_deleted(
            Collection.BUDGETS, budget_id, op.user_id, op.correlation_id
        ))

    async def list_budgets(self) -> list[Budget]:
        return await self._list(self._require_user(), Collection.BUDGETS)

    async def reconcile_budgets(self) -> list[Budget]:
        """
        Recompute every budget's `spent` from the ledger.

        Repairs drift left by concurrent writers. Never called implicitly.

        Returns:
            The budgets that were corrected
        """
        return await self._run("reconcile_budgets", self._reconcile_budgets)

    async def _reconcile_budgets(self, op: _Operation) -> list[Budget]:
        totals: dict[str, float] = defaultdict(float)
        for expense in await self._list(op.user_id, Collection.EXPENSES):
            totals[expense.category] += expense.amount

        corrected = []
        for budget in await self._list(op.user_id, Collection.BUDGETS):
            spent = round(totals.get(budget.category, 0.0), self._precision)
            if spent == budget.spent:
                continue
            row = await self._store.update_record(
                op.user_id, Collection.BUDGETS, budget.id, {"spent": spent}
            )
            after = self._record(Budget, row)
            corrected.append(after)
            op.events.append(BudgetChanged(
                user_id=op.user_id, budget=after, previous_spent=budget.spent
            ))

        op.audit.append(AuditEventBuilder.budgets_reconciled(
            {b.id: b.spent for b in corrected}, op.user_id, op.correlation_id
        ))
        return corrected

    # =========================================================================
    # GOALS
    # =========================================================================

    async def add_goal(self, data: InputData) -> Goal:
        return await self._run("add_goal", self._add_plain, Collection.GOALS, GoalInput, data)

    async def update_goal(self, goal_id: str, patch: InputData) -> Goal:
        """Patch a goal. `current_amount` is rejected; use contribute_to_goal."""
        return await self._run(
            "update_goal", self._update_plain, Collection.GOALS, GoalPatch, goal_id, patch
        )

    async def delete_goal(self, goal_id: str) -> None:
        await self._run("delete_goal", self._delete_plain, Collection.GOALS, goal_id)

    async def list_goals(self) -> list[Goal]:
        return await self._list(self._require_user(), Collection.GOALS)

    async def contribute_to_goal(
        self,
        goal_id: str,
        amount: float,
        note: Optional[str] = None,
        date: Optional[dt.date] = None,
    ) -> Goal:
        """
        Move money into a goal.

        Increments the goal's `current_amount` and inserts the mirrored
        expense as one unit: if the expense cannot be stored the increment
        is rolled back.

        Raises:
            ValidationError: If `amount` is not positive or the goal is unknown
        """
        return await self._run(
            "contribute_to_goal",
            self._contribute_to_goal,
            goal_id,
            {"amount": amount, "note": note, "date": date},
        )

    async def _contribute_to_goal(
        self,
        op: _Operation,
        goal_id: str,
        data: dict[str, Any],
    ) -> Goal:
        contribution = self._parse(ContributionInput, data, op.name)
        row = await self._store.get_record(op.user_id, Collection.GOALS, goal_id)
        if row is None:
            raise ValidationError(
                f"Unknown goal: {goal_id}",
                [{"field": "goal_id", "message": "Goal does not exist", "type": "not_found"}],
            )
        goal = self._record(Goal, row)
        mirror = self._parse(ExpenseInput, {
            "amount": contribution.amount,
            "category": goal_contribution_category(goal.title),
            "description": contribution.note or f"Contribution to {goal.title}",
            "date": contribution.date or dt.date.today(),
        }, op.name)

        op.plan("goal_increment")
        op.plan("mirror_expense")
        current = round(goal.current_amount + contribution.amount, self._precision)
        row = await self._store.update_record(
            op.user_id, Collection.GOALS, goal_id, {"current_amount": current}
        )
        op.completed("goal_increment", self._undo_update(
            op.user_id, Collection.GOALS, goal_id, {"current_amount": goal.current_amount}
        ))
        updated = self._record(Goal, row)

        expense = await self._insert_expense(op, mirror, step="mirror_expense")

        op.events.insert(0, GoalContributed(
            user_id=op.user_id,
            goal=updated,
            amount=contribution.amount,
            mirrored_expense_id=expense.id,
        ))
        op.audit.append(AuditEventBuilder.goal_contribution(
            goal_id, contribution.amount, expense.id, op.user_id, op.correlation_id
        ))
        return updated

    # =========================================================================
    # CARDS, INVESTMENTS, INCOME
    # =========================================================================

    async def add_card(self, data: InputData) -> Card:
        return await self._run("add_card", self._add_plain, Collection.CARDS, CardInput, data)

    async def update_card(self, card_id: str, patch: InputData) -> Card:
        return await self._run(
            "update_card", self._update_plain, Collection.CARDS, CardPatch, card_id, patch
        )

    async def delete_card(self, card_id: str) -> None:
        await self._run("delete_card", self._delete_plain, Collection.CARDS, card_id)

    async def list_cards(self) -> list[Card]:
        return await self._list(self._require_user(), Collection.CARDS)

    async def add_investment(self, data: InputData) -> Investment:
        return await self._run(
            "add_investment", self._add_plain, Collection.INVESTMENTS, InvestmentInput, data
        )

    async def update_investment(self, investment_id: str, patch: InputData) -> Investment:
        return await self._run(
            "update_investment",
            self._update_plain,
            Collection.INVESTMENTS,
            InvestmentPatch,
            investment_id,
            patch,
        )

    async def delete_investment(self, investment_id: str) -> None:
        await self._run(
            "delete_investment", self._delete_plain, Collection.INVESTMENTS, investment_id
        )

    async def list_investments(self) -> list[Investment]:
        return await self._list(self._require_user(), Collection.INVESTMENTS)

    async def add_income(self, data: InputData) -> IncomeSource:
        return await self._run("add_income", self._add_plain, Collection.INCOME, IncomeInput, data)

    async def update_income(self, income_id: str, patch: InputData) -> IncomeSource:
        return await self._run(
            "update_income", self._update_plain, Collection.INCOME, IncomePatch, income_id, patch
        )

    async def delete_income(self, income_id: str) -> None:
        await self._run("delete_income", self._delete_plain, Collection.INCOME, income_id)

    async def list_income(self) -> list[IncomeSource]:
        return await self._list(self._require_user(), Collection.INCOME)

    def _plain_event(
        self,
        op: _Operation,
        collection: Collection,
        action: ChangeAction,
        record: LedgerRecord,
    ) -> LedgerEvent:
        if collection == Collection.GOALS:
            event_type = {
                ChangeAction.ADDED: GoalAdded,
                ChangeAction.UPDATED: GoalUpdated,
                ChangeAction.DELETED: GoalDeleted,
            }[action]
            return event_type(user_id=op.user_id, goal=record)
        if collection == Collection.CARDS:
            return CardChanged(user_id=op.user_id, action=action, card=record)
        if collection == Collection.INVESTMENTS:
            return InvestmentChanged(user_id=op.user_id, action=action, investment=record)
        return IncomeChanged(user_id=op.user_id, action=action, income=record)

    async def _add_plain(
        self,
        op: _Operation,
        collection: Collection,
        input_model: type[LedgerInput],
        data: InputData,
    ) -> LedgerRecord:
        parsed = self._parse(input_model, data, op.name)
        row = await self._store.insert_record(op.user_id, collection, parsed.to_store())
        record = self._record(RECORD_MODELS[collection], row)
        op.events.append(self._plain_event(op, collection, ChangeAction.ADDED, record))
        op.audit.append(AuditEventBuilder.record_added(
            collection, record.id, op.user_id, op.correlation_id
        ))
        return record

    async def _update_plain(
        self,
        op: _Operation,
        collection: Collection,
        patch_model: type[LedgerPatch],
        record_id: str,
        patch: InputData,
    ) -> LedgerRecord:
        parsed = self._parse(patch_model, patch, op.name)
        before = await self._require(op, collection, record_id)
        if parsed.is_empty():
            return before
        changes = parsed.changes()
        row = await self._store.update_record(op.user_id, collection, record_id, changes)
        record = self._record(RECORD_MODELS[collection], row)
        op.events.append(self._plain_event(op, collection, ChangeAction.UPDATED, record))
        op.audit.append(AuditEventBuilder.record_updated(
            collection, record_id, op.user_id, changes, op.correlation_id
        ))
        return record

    async def _delete_plain(
        self,
        op: _Operation,
        collection: Collection,
        record_id: str,
    ) -> None:
        record = await self._require(op, collection, record_id)
        await self._store.delete_record(op.user_id, collection, record_id)
        op.events.append(self._plain_event(op, collection, ChangeAction.DELETED, record))
        op.audit.append(AuditEventBuilder.record_deleted(
            collection, record_id, op.user_id, op.correlation_id
        ))

    # =========================================================================
    # READ MODELS
    # =========================================================================

    async def snapshot(
        self,
        emergency_fund: Optional[float] = None,
        monthly_debt_payments: Optional[float] = None,
        income_history: Optional[list[float]] = None,
    ) -> Snapshot:
        """
        Assemble a read-only Snapshot of the whole ledger.

        Values not passed in are derived:
        - emergency fund: money in goals whose title or category mentions
          "emergency"
        - monthly debt payments: outstanding credit-card balances
        - income history: dated income entries totalled per month
        """
        user_id = self._require_user()
        expenses = await self._list(user_id, Collection.EXPENSES)
        budgets = await self._list(user_id, Collection.BUDGETS)
        goals = await self._list(user_id, Collection.GOALS)
        income = await self._list(user_id, Collection.INCOME)
        investments = await self._list(user_id, Collection.INVESTMENTS)
        cards = await self._list(user_id, Collection.CARDS)

        if emergency_fund is None:
            emergency_fund = sum(
                g.current_amount for g in goals
                if "emergency" in g.title.lower() or "emergency" in g.category.lower()
            )
        if monthly_debt_payments is None:
            monthly_debt_payments = sum(
                c.balance or 0.0 for c in cards if c.type == CardType.CREDIT
            )
        if income_history is None:
            per_month: dict[tuple[int, int], float] = defaultdict(float)
            for entry in income:
                if entry.received_on is not None:
                    per_month[(entry.received_on.year, entry.received_on.month)] += entry.amount
            income_history = [per_month[key] for key in sorted(per_month)]

        return Snapshot(
            expenses=tuple(expenses),
            budgets=tuple(budgets),
            goals=tuple(goals),
            income=tuple(income),
            investments=tuple(investments),
            cards=tuple(cards),
            emergency_fund=emergency_fund,
            monthly_debt_payments=monthly_debt_payments,
            income_history=tuple(income_history),
        )

    async def balance_summary(self) -> BalanceSummary:
        """Monthly active income minus all expenses, plus money saved in goals."""
        user_id = self._require_user()
        income = sum(
            i.monthly_amount for i in await self._list(user_id, Collection.INCOME) if i.is_active
        )
        expenses = sum(e.amount for e in await self._list(user_id, Collection.EXPENSES))
        saved = sum(g.current_amount for g in await self._list(user_id, Collection.GOALS))
        return BalanceSummary(
            income=income,
            expenses=expenses,
            balance=income - expenses + saved,
            saved=saved,
        )
