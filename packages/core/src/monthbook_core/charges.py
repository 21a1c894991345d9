"""Charge resolution for a single month.

Given the state document and a year-month, rebuild the list of charges that
apply to that month, in display order.

Live months read the global definitions and only fall back to a month
snapshot for month-only rows (charges that never had a definition). Archived
months read their snapshots and nothing else, so later edits to a definition
leave them untouched.

Resolution is total: a row that cannot be resolved is left out, never
reported as an error.
"""

from datetime import date
from typing import Optional, Union

import structlog

from .models import (
    AppState,
    Charge,
    ChargeSnapshot,
    MonthData,
    PaymentMode,
    ResolvedBudget,
    ResolvedCharge,
    Scope,
)
from .months import due_date_iso, today_iso
from .savings import apply_auto_savings
from .shares import account_names, my_share_for, split_percent_for

logger = structlog.get_logger()

SCOPE_ORDER = {Scope.SHARED: 0, Scope.PERSONAL: 1}


def _candidate_ids(state: AppState, month: Optional[MonthData]) -> list[str]:
    """Charge ids that may produce a row for the month.

    Archived months: ids holding a non-removed snapshot. Live months: every
    active definition, then any id the month still references (a paid marker
    on a since-deactivated charge, or a month-only row), minus hidden ones.
    """
    if month is not None and month.archived:
        return [
            charge_id
            for charge_id, override in month.charges.items()
            if override.snapshot is not None and not override.removed
        ]

    overrides = month.charges if month is not None else {}
    ids: list[str] = []
    seen: set[str] = set()
    for charge in state.charges:
        if not charge.active:
            continue
        override = overrides.get(charge.id)
        if override is not None and override.removed:
            continue
        ids.append(charge.id)
        seen.add(charge.id)

    for charge_id, override in overrides.items():
        if charge_id in seen or override.removed:
            continue
        ids.append(charge_id)
        seen.add(charge_id)
    return ids


def default_paid(charge: Union[Charge, ChargeSnapshot], ym: str, today: str) -> bool:
    """Automatic charges count as paid once their due date has passed."""
    return charge.payment == PaymentMode.AUTO and due_date_iso(ym, charge.day_of_month) <= today


def resolve_charge_source(
    charges_by_id: dict[str, Charge],
    month: Optional[MonthData],
    ym: str,
    charge_id: str,
    today: str,
) -> Optional[tuple[bool, ChargeSnapshot]]:
    """Resolve one charge id to its (paid, snapshot) pair for the month.

    Returns:
        None when neither a usable snapshot nor a live definition exists.
    """
    override = month.charges.get(charge_id) if month is not None else None

    if month is not None and month.archived:
        if override is not None and override.snapshot is not None:
            return override.paid, override.snapshot
        return None

    definition = charges_by_id.get(charge_id)
    if definition is None:
        if override is not None and override.snapshot is not None:
            return override.paid, override.snapshot
        return None

    if override is None:
        paid = default_paid(definition, ym, today)
    else:
        paid = override.paid
    return paid, definition.to_snapshot()


def build_charge_row(
    charge_id: str,
    snapshot: ChargeSnapshot,
    paid: bool,
    ym: str,
    names: dict[str, str],
) -> ResolvedCharge:
    """Compute the derived fields of a resolved charge row."""
    split = split_percent_for(snapshot.scope, snapshot.split_percent)
    destination = snapshot.destination
    if destination is None:
        destination_label = None
    elif destination.kind == "account":
        destination_label = names.get(destination.account_id, destination.account_id)
    else:
        destination_label = destination.text

    return ResolvedCharge(
        id=charge_id,
        name=snapshot.name,
        amount_cents=snapshot.amount_cents,
        sort_order=snapshot.sort_order,
        day_of_month=snapshot.day_of_month,
        due_date=due_date_iso(ym, snapshot.day_of_month),
        account_id=snapshot.account_id,
        account_name=names.get(snapshot.account_id, snapshot.account_id),
        scope=snapshot.scope,
        split_percent=split,
        payment=snapshot.payment,
        destination=destination,
        destination_label=destination_label,
        paid=paid,
        my_share_cents=my_share_for(snapshot.scope, snapshot.amount_cents, split),
    )


def charge_sort_key(row: ResolvedCharge) -> tuple:
    """Shared before personal, then rank, due day and name; id breaks full ties."""
    return (SCOPE_ORDER[row.scope], row.sort_order, row.day_of_month, row.name, row.id)


def resolve_charges(
    state: AppState,
    ym: str,
    *,
    today: Optional[Union[date, str]] = None,
    auto_savings: bool = True,
    budgets: Optional[list[ResolvedBudget]] = None,
) -> list[ResolvedCharge]:
    """Resolve every charge that applies to a month.

    Args:
        state: The whole state document.
        ym: Target year-month (``YYYY-MM``).
        today: Local date used for the automatic paid default. Defaults to
            the current date.
        auto_savings: Apply the automatic savings adjustment on live months.
        budgets: Already resolved budget rows for the month, reused by the
            savings adjustment instead of resolving them again.

    Returns:
        Resolved rows, shared scope first, then by sort order, due day and name.
    """
    month = state.month(ym)
    today_value = today_iso(today)
    charges_by_id = {c.id: c for c in state.charges}
    names = account_names(state.accounts)

    rows: list[ResolvedCharge] = []
    for charge_id in _candidate_ids(state, month):
        source = resolve_charge_source(charges_by_id, month, ym, charge_id, today_value)
        if source is None:
            logger.debug("charge_row_dropped", ym=ym, charge_id=charge_id)
            continue
        paid, snapshot = source
        rows.append(build_charge_row(charge_id, snapshot, paid, ym, names))

    rows.sort(key=charge_sort_key)

    if auto_savings and not (month is not None and month.archived):
        budgets_total = None
        if budgets is not None:
            budgets_total = sum(b.my_share_cents for b in budgets)
        rows = apply_auto_savings(state, ym, rows, budgets_my_share_cents=budgets_total)
    return rows
