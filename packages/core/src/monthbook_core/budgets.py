"""Budget (envelope) resolution and the cross-month carry chain.

Each envelope keeps a monthly ledger. Whatever is left at the end of a month
(credit) or overspent (debt) is carried into the next month, where it
adjusts the amount that has to be transferred into the envelope:

    adjusted  = target + carry-over debt - carry-over credit
    funding   = max(0, adjusted)
    available = max(carry-over credit - carry-over debt, target)
    remaining = available - spent

The remaining balance becomes next month's carry: debt when negative,
credit when positive. Two per-month flags let the user intervene:

* ``carryOverHandled`` clears whatever comes in from the previous month.
* ``carryForwardHandled`` forgives the debt going out of this month. A
  leftover credit always carries forward; only debt can be written off.

The chain only starts at the earliest month that holds any data for the
envelope (a snapshot, an expense or a handled flag). Earlier months carry
nothing in, which keeps a lookup for a month far from the data cheap.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from .models import (
    AppState,
    Budget,
    BudgetExpense,
    BudgetSnapshot,
    MonthData,
    ResolvedBudget,
)
from .months import ym_add
from .shares import account_names, my_share_for, split_percent_for

logger = structlog.get_logger()


@dataclass(frozen=True)
class LedgerEntry:
    """Carry figures for one budget in one month."""

    ym: str
    budget_id: str
    snapshot: BudgetSnapshot
    expenses: list[BudgetExpense] = field(default_factory=list)
    carry_over_handled: bool = False
    carry_forward_handled: bool = False
    carry_over_source_debt: int = 0
    carry_over_source_credit: int = 0
    carry_over_debt: int = 0
    carry_over_credit: int = 0
    adjusted_amount: int = 0
    funding: int = 0
    spent: int = 0
    remaining_to_fund: int = 0
    available: int = 0
    remaining: int = 0
    carry_forward_source_debt: int = 0
    carry_forward_source_credit: int = 0
    carry_forward_debt: int = 0
    carry_forward_credit: int = 0


def carry_floors(state: AppState) -> dict[str, str]:
    """Earliest month holding a carry signal, per budget id."""
    floors: dict[str, str] = {}
    for ym, month in state.months.items():
        for budget_id, override in month.budgets.items():
            if not override.has_carry_signal:
                continue
            current = floors.get(budget_id)
            if current is None or ym < current:
                floors[budget_id] = ym
    return floors


def compute_entry(
    ym: str,
    budget_id: str,
    snapshot: BudgetSnapshot,
    expenses: list[BudgetExpense],
    carry_over_handled: bool,
    carry_forward_handled: bool,
    source_debt: int,
    source_credit: int,
) -> LedgerEntry:
    """Apply the monthly envelope arithmetic to one budget."""
    if carry_over_handled:
        debt, credit = 0, 0
    else:
        debt, credit = source_debt, source_credit

    target = snapshot.amount_cents
    adjusted = target + debt - credit
    spent = sum(e.amount_cents for e in expenses)
    available = max(credit - debt, target)
    remaining = available - spent
    forward_debt = max(0, -remaining)
    forward_credit = max(0, remaining)

    return LedgerEntry(
        ym=ym,
        budget_id=budget_id,
        snapshot=snapshot,
        expenses=list(expenses),
        carry_over_handled=carry_over_handled,
        carry_forward_handled=carry_forward_handled,
        carry_over_source_debt=source_debt,
        carry_over_source_credit=source_credit,
        carry_over_debt=debt,
        carry_over_credit=credit,
        adjusted_amount=adjusted,
        funding=max(0, adjusted),
        spent=spent,
        remaining_to_fund=target - spent,
        available=available,
        remaining=remaining,
        carry_forward_source_debt=forward_debt,
        carry_forward_source_credit=forward_credit,
        carry_forward_debt=0 if carry_forward_handled else forward_debt,
        carry_forward_credit=forward_credit,
    )


class CarryLedger:
    """Memoized per-call ledger of (month, budget id) entries.

    Entries are computed oldest first with an explicit walk back to the
    carry floor, so long histories never deepen the Python stack. A ledger
    reads one immutable state document; build a new one for another state.
    """

    def __init__(self, state: AppState):
        self.state = state
        self._budgets: dict[str, Budget] = {b.id: b for b in state.budgets}
        self._floors = carry_floors(state)
        self._memo: dict[tuple[str, str], Optional[LedgerEntry]] = {}

    def floor(self, budget_id: str) -> Optional[str]:
        return self._floors.get(budget_id)

    def snapshot_for(
        self, month: Optional[MonthData], budget_id: str
    ) -> Optional[BudgetSnapshot]:
        """Archived months read their snapshot only; live ones prefer the definition."""
        override = month.budgets.get(budget_id) if month is not None else None
        if month is not None and month.archived:
            return override.snapshot if override is not None else None
        definition = self._budgets.get(budget_id)
        if definition is not None:
            return definition.to_snapshot()
        return override.snapshot if override is not None else None

    def entry(self, ym: str, budget_id: str) -> Optional[LedgerEntry]:
        """Return the ledger entry for a budget in a month.

        Returns:
            None when the budget has neither a live definition nor a
            snapshot for that month.
        """
        key = (ym, budget_id)
        if key in self._memo:
            return self._memo[key]

        floor = self._floors.get(budget_id)
        pending = [ym]
        current = ym
        while floor is not None:
            previous = ym_add(current, -1)
            if previous < floor or (previous, budget_id) in self._memo:
                break
            pending.append(previous)
            current = previous

        for month_ym in reversed(pending):
            self._memo[(month_ym, budget_id)] = self._compute(month_ym, budget_id)
        return self._memo[key]

    def _carry_in(self, ym: str, budget_id: str) -> tuple[int, int]:
        floor = self._floors.get(budget_id)
        previous = ym_add(ym, -1)
        if floor is None or previous < floor:
            return 0, 0
        prior = self._memo.get((previous, budget_id))
        if prior is None:
            return 0, 0
        return prior.carry_forward_debt, prior.carry_forward_credit

    def _compute(self, ym: str, budget_id: str) -> Optional[LedgerEntry]:
        month = self.state.month(ym)
        snapshot = self.snapshot_for(month, budget_id)
        if snapshot is None:
            return None
        override = month.budgets.get(budget_id) if month is not None else None
        source_debt, source_credit = self._carry_in(ym, budget_id)
        return compute_entry(
            ym,
            budget_id,
            snapshot,
            override.expenses if override is not None else [],
            bool(override is not None and override.carry_over_handled),
            bool(override is not None and override.carry_forward_handled),
            source_debt,
            source_credit,
        )


def _candidate_ids(state: AppState, month: Optional[MonthData], ym: str) -> list[str]:
    """Budget ids that may produce a row for the month.

    Archived months: ids holding a snapshot. Live months: every budget
    enabled in the month, then any id with recorded expenses, even if the
    budget has since been removed.
    """
    if month is not None and month.archived:
        return [
            budget_id
            for budget_id, override in month.budgets.items()
            if override.snapshot is not None
        ]

    ids = [b.id for b in state.budgets if b.is_enabled_in(ym)]
    seen = set(ids)
    if month is not None:
        for budget_id, override in month.budgets.items():
            if budget_id not in seen and override.expenses:
                ids.append(budget_id)
                seen.add(budget_id)
    return ids


def build_budget_row(entry: LedgerEntry, names: dict[str, str]) -> ResolvedBudget:
    """Turn a ledger entry into the resolved row, shares included."""
    snapshot = entry.snapshot
    split = split_percent_for(snapshot.scope, snapshot.split_percent)
    carry_delta = entry.carry_over_debt - entry.carry_over_credit
    return ResolvedBudget(
        id=entry.budget_id,
        name=snapshot.name,
        amount_cents=snapshot.amount_cents,
        account_id=snapshot.account_id,
        account_name=names.get(snapshot.account_id, snapshot.account_id),
        scope=snapshot.scope,
        split_percent=split,
        expenses=entry.expenses,
        spent_cents=entry.spent,
        remaining_cents=entry.remaining,
        remaining_to_fund_cents=entry.remaining_to_fund,
        available_cents=entry.available,
        carry_over_handled=entry.carry_over_handled,
        carry_forward_handled=entry.carry_forward_handled,
        carry_over_source_debt_cents=entry.carry_over_source_debt,
        carry_over_source_credit_cents=entry.carry_over_source_credit,
        carry_over_debt_cents=entry.carry_over_debt,
        carry_over_credit_cents=entry.carry_over_credit,
        adjusted_amount_cents=entry.adjusted_amount,
        funding_cents=entry.funding,
        carry_forward_source_debt_cents=entry.carry_forward_source_debt,
        carry_forward_source_credit_cents=entry.carry_forward_source_credit,
        carry_forward_debt_cents=entry.carry_forward_debt,
        carry_forward_credit_cents=entry.carry_forward_credit,
        my_share_cents=my_share_for(snapshot.scope, entry.funding, split),
        base_my_share_cents=my_share_for(snapshot.scope, snapshot.amount_cents, split),
        carry_over_my_share_cents=my_share_for(snapshot.scope, carry_delta, split),
        carry_over_debt_my_share_cents=my_share_for(
            snapshot.scope, entry.carry_over_debt, split
        ),
    )


def resolve_budgets(
    state: AppState,
    ym: str,
    *,
    ledger: Optional[CarryLedger] = None,
) -> list[ResolvedBudget]:
    """Resolve every envelope that applies to a month.

    Args:
        state: The whole state document.
        ym: Target year-month (``YYYY-MM``).
        ledger: Optional ledger to share memoized entries between calls on
            the same state. A fresh one is built otherwise.

    Returns:
        Resolved rows sorted by name.
    """
    if ledger is None or ledger.state is not state:
        ledger = CarryLedger(state)
    month = state.month(ym)
    names = account_names(state.accounts)

    rows: list[ResolvedBudget] = []
    for budget_id in _candidate_ids(state, month, ym):
        entry = ledger.entry(ym, budget_id)
        if entry is None:
            logger.debug("budget_row_dropped", ym=ym, budget_id=budget_id)
            continue
        rows.append(build_budget_row(entry, names))

    rows.sort(key=lambda r: (r.name.casefold(), r.name, r.id))
    return rows
