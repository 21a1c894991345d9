"""Archiving and unarchiving a month.

Archiving freezes a month: every active charge and envelope definition gets a
snapshot of its fields stored in the month record, and resolution of an
archived month reads those snapshots only. Later edits to the definitions no
longer reach the month. Charges hidden for the month are not frozen.

The transition is re-entrant: live -> archived -> live -> archived ...
Unarchiving only clears the flag; snapshots stay in place. They are ignored
while a live definition exists and remain the only source of truth for
month-only rows.
"""

from datetime import date, datetime
from typing import Optional, Union

import structlog

from .charges import default_paid
from .models import (
    AppState,
    Budget,
    BudgetSnapshot,
    Charge,
    ChargeSnapshot,
    MonthBudgetState,
    MonthChargeState,
    MonthData,
    Scope,
)
from .months import now_iso, today_iso
from .shares import clamp_split_percent

logger = structlog.get_logger()


def charge_snapshot(charge: Charge) -> ChargeSnapshot:
    """Copy a charge definition, with the split fixed for shared charges."""
    split = clamp_split_percent(charge.split_percent) if charge.scope == Scope.SHARED else None
    return charge.to_snapshot().model_copy(update={"split_percent": split})


def budget_snapshot(budget: Budget) -> BudgetSnapshot:
    split = clamp_split_percent(budget.split_percent) if budget.scope == Scope.SHARED else None
    return budget.to_snapshot().model_copy(update={"split_percent": split})


def archive_month(
    state: AppState,
    ym: str,
    *,
    now: Optional[datetime] = None,
    today: Optional[Union[date, str]] = None,
) -> AppState:
    """Snapshot the active definitions into a month and mark it archived.

    Rows that already hold a snapshot keep it, so archiving an archived month
    only (re)sets the flag. A charge without a paid marker gets the automatic
    paid default for ``today``.

    Args:
        state: The whole state document.
        ym: Month to archive.
        now: Timestamp for the month's ``updatedAt``.
        today: Local date used for the automatic paid default.

    Returns:
        A new state document with the month archived.
    """
    stamp = now_iso(now)
    today_value = today_iso(today)
    month = state.month(ym) or MonthData.empty(ym, stamp)

    charges = dict(month.charges)
    frozen_charges = 0
    for charge in state.charges:
        if not charge.active:
            continue
        current = charges.get(charge.id)
        if current is not None and (current.removed or current.snapshot is not None):
            continue
        paid = current.paid if current is not None else default_paid(charge, ym, today_value)
        charges[charge.id] = MonthChargeState(paid=paid, snapshot=charge_snapshot(charge))
        frozen_charges += 1

    budgets = dict(month.budgets)
    frozen_budgets = 0
    for budget in state.budgets:
        if not budget.active:
            continue
        current = budgets.get(budget.id)
        if current is not None and current.snapshot is not None:
            continue
        budgets[budget.id] = MonthBudgetState(
            expenses=current.expenses if current is not None else [],
            snapshot=budget_snapshot(budget),
            carry_over_handled=current.carry_over_handled if current is not None else None,
            carry_forward_handled=(
                current.carry_forward_handled if current is not None else None
            ),
        )
        frozen_budgets += 1

    logger.info(
        "month_archived",
        ym=ym,
        charges_frozen=frozen_charges,
        budgets_frozen=frozen_budgets,
    )
    archived = month.model_copy(
        update={
            "archived": True,
            "charges": charges,
            "budgets": budgets,
            "updated_at": stamp,
        }
    )
    return state.with_month(archived)


def unarchive_month(
    state: AppState,
    ym: str,
    *,
    now: Optional[datetime] = None,
) -> AppState:
    """Reopen a month. Snapshots are kept."""
    stamp = now_iso(now)
    month = state.month(ym) or MonthData.empty(ym, stamp)
    logger.info("month_unarchived", ym=ym)
    return state.with_month(month.model_copy(update={"archived": False, "updated_at": stamp}))
