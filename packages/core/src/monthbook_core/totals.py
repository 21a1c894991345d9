"""Month and account totals.

Pure reducers over resolved rows. Both functions accept already resolved
charge and budget rows so a caller rendering a month resolves it only once.
"""

from datetime import date
from typing import Optional, Union

from .budgets import resolve_budgets
from .charges import resolve_charges
from .models import (
    AccountKind,
    AccountTotals,
    AppState,
    MonthTotals,
    ResolvedBudget,
    ResolvedCharge,
    Scope,
)


def _rows(
    state: AppState,
    ym: str,
    charges: Optional[list[ResolvedCharge]],
    budgets: Optional[list[ResolvedBudget]],
    today: Optional[Union[date, str]],
) -> tuple[list[ResolvedCharge], list[ResolvedBudget]]:
    if budgets is None:
        budgets = resolve_budgets(state, ym)
    if charges is None:
        charges = resolve_charges(state, ym, today=today, budgets=budgets)
    return charges, budgets


def month_totals(
    state: AppState,
    ym: str,
    *,
    charges: Optional[list[ResolvedCharge]] = None,
    budgets: Optional[list[ResolvedBudget]] = None,
    today: Optional[Union[date, str]] = None,
) -> MonthTotals:
    """Aggregate a month's charges and envelopes against the salary.

    Args:
        state: The whole state document.
        ym: Target year-month.
        charges: Pre-resolved charge rows (resolved here when omitted).
        budgets: Pre-resolved budget rows (resolved here when omitted).
        today: Local date forwarded to charge resolution.

    Returns:
        MonthTotals for the month.
    """
    charges, budgets = _rows(state, ym, charges, budgets, today)

    shared = shared_mine = personal = mine = pending = 0
    for row in charges:
        if not row.paid:
            pending += 1
        if row.scope == Scope.SHARED:
            shared += row.amount_cents
            shared_mine += row.my_share_cents
        else:
            personal += row.amount_cents
        mine += row.my_share_cents

    return MonthTotals(
        salary_cents=state.salary_for(ym),
        total_shared_cents=shared,
        total_shared_my_share_cents=shared_mine,
        total_personal_cents=personal,
        total_my_charges_cents=mine,
        total_budgets_base_cents=sum(b.base_my_share_cents for b in budgets),
        total_budgets_carry_cents=sum(b.carry_over_my_share_cents for b in budgets),
        total_budgets_cents=sum(b.my_share_cents for b in budgets),
        total_budget_spent_cents=sum(b.spent_cents for b in budgets),
        total_provision_cents=(
            sum(r.amount_cents for r in charges) + sum(b.funding_cents for b in budgets)
        ),
        pending_count=pending,
        count=len(charges),
    )


def account_totals(
    state: AppState,
    ym: str,
    *,
    charges: Optional[list[ResolvedCharge]] = None,
    budgets: Optional[list[ResolvedBudget]] = None,
    today: Optional[Union[date, str]] = None,
) -> list[AccountTotals]:
    """Amounts to provision per account for a month.

    Charges are routed to their destination account when they have one,
    otherwise to their owning account. Envelopes are routed to their owning
    account with their funding. Accounts without activity are left out.
    Known accounts come first in document order, then unknown ids
    alphabetically.
    """
    charges, budgets = _rows(state, ym, charges, budgets, today)

    sums: dict[str, dict[str, int]] = {}

    def bucket(account_id: str) -> dict[str, int]:
        return sums.setdefault(account_id, {"charges": 0, "paid": 0, "budgets": 0})

    for row in charges:
        entry = bucket(row.routed_account_id)
        entry["charges"] += row.amount_cents
        if row.paid:
            entry["paid"] += row.amount_cents
    for b in budgets:
        bucket(b.account_id)["budgets"] += b.funding_cents

    known_ids = [a.id for a in state.accounts]
    unknown_ids = sorted(set(sums) - set(known_ids))
    accounts = {a.id: a for a in state.accounts}

    result: list[AccountTotals] = []
    for account_id in known_ids + unknown_ids:
        entry = sums.get(account_id)
        if entry is None:
            continue
        account = accounts.get(account_id)
        totals = AccountTotals(
            account_id=account_id,
            account_name=account.name if account is not None else account_id,
            kind=account.kind if account is not None else AccountKind.PERSONAL,
            is_known_account=account is not None,
            charges_cents=entry["charges"],
            paid_cents=entry["paid"],
            budgets_cents=entry["budgets"],
        )
        if totals.total_cents == 0:
            continue
        result.append(totals)
    return result
