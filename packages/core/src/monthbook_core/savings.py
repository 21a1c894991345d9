"""Automatic savings transfer.

One personal, automatic charge can act as the household's savings transfer:
it absorbs whatever salary is left once every other charge and envelope has
been covered, but never drops below its configured amount (the floor).

The savings charge is recognised by name. Names are folded (lower case,
accents stripped, whitespace collapsed) and matched against "epargne",
including the common "eparne" typo. When several charges match, the best
one wins:

1. exact names ("epargne", "virement epargne" and their typo variants),
2. names starting with "virement epargne" / "virement eparne",
3. the lowest sort order,
4. the id, as a final tiebreak.

Name matching is fragile; an explicit flag on the charge would be sturdier.
The adjustment only changes the resolved row; the definition keeps its
configured amount.
"""

import re
import unicodedata
from typing import Optional

from .budgets import resolve_budgets
from .models import AppState, Charge, PaymentMode, ResolvedCharge, Scope

SAVINGS_STEMS = ("epargne", "eparne")
EXACT_NAMES = frozenset(
    {"epargne", "virement epargne", "eparne", "virement eparne"}
)
PREFERRED_PREFIXES = ("virement epargne", "virement eparne")

EXACT_BONUS = 100
PREFERRED_BONUS = 10

_WHITESPACE = re.compile(r"\s+")


def fold_name(name: str) -> str:
    """Lower-case, strip diacritics and collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", name.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped).strip()


def is_savings_name(name: str) -> bool:
    folded = fold_name(name)
    return any(stem in folded for stem in SAVINGS_STEMS)


def savings_rank(name: str) -> int:
    """Name bonus used to pick between several savings candidates."""
    folded = fold_name(name)
    rank = 0
    if folded in EXACT_NAMES:
        rank += EXACT_BONUS
    if folded.startswith(PREFERRED_PREFIXES):
        rank += PREFERRED_BONUS
    return rank


def find_savings_charge(
    rows: list[ResolvedCharge], charges_by_id: dict[str, Charge]
) -> Optional[ResolvedCharge]:
    """Pick the row acting as the savings transfer, if any.

    Only personal rows backed by an automatic live definition are candidates.
    The definition must also be active: a deactivated charge can still show
    in a month through its paid marker, and it must not absorb the salary
    left over.
    """
    candidates = []
    for row in rows:
        definition = charges_by_id.get(row.id)
        if definition is None or not definition.active:
            continue
        if row.scope != Scope.PERSONAL or definition.payment != PaymentMode.AUTO:
            continue
        if not is_savings_name(row.name):
            continue
        candidates.append(row)

    if not candidates:
        return None
    candidates.sort(key=lambda r: (-savings_rank(r.name), r.sort_order, r.id))
    return candidates[0]


def savings_amount(
    floor_cents: int, salary_cents: int, other_charges_cents: int, budgets_cents: int
) -> int:
    """Floor plus whatever salary is left after everything else.

    Example:
        >>> savings_amount(10000, 300000, 60000, 0)
        240000
    """
    floor = max(0, floor_cents)
    extra = max(0, salary_cents - other_charges_cents - budgets_cents - floor)
    return floor + extra


def apply_auto_savings(
    state: AppState,
    ym: str,
    rows: list[ResolvedCharge],
    *,
    budgets_my_share_cents: Optional[int] = None,
) -> list[ResolvedCharge]:
    """Recompute the savings row of a live month.

    Args:
        state: The whole state document.
        ym: Target year-month.
        rows: Resolved charge rows for the month.
        budgets_my_share_cents: Sum of envelope my-shares, when already known.

    Returns:
        The rows with the savings row's amount and my-share replaced, or the
        rows unchanged when no savings charge is found.
    """
    charges_by_id = {c.id: c for c in state.charges}
    selected = find_savings_charge(rows, charges_by_id)
    if selected is None:
        return rows

    if budgets_my_share_cents is None:
        budgets_my_share_cents = sum(b.my_share_cents for b in resolve_budgets(state, ym))
    others = sum(r.my_share_cents for r in rows if r.id != selected.id)
    amount = savings_amount(
        charges_by_id[selected.id].amount_cents,
        state.salary_for(ym),
        others,
        budgets_my_share_cents,
    )

    adjusted = selected.model_copy(update={"amount_cents": amount, "my_share_cents": amount})
    return [adjusted if r.id == selected.id else r for r in rows]
