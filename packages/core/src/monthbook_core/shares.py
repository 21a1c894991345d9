"""Scope and split-percent rules shared by charges and budgets."""

import math
from typing import Optional

from .models.state import DEFAULT_SPLIT_PERCENT, Account, Scope
from .money import share_cents


def clamp_split_percent(value: Optional[float], default: int = DEFAULT_SPLIT_PERCENT) -> int:
    """Round a split percent and clamp it to 0..100.

    Missing or non-finite values fall back to the default.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return max(0, min(100, int(math.floor(number + 0.5))))


def split_percent_for(scope: Scope, split_percent: Optional[float]) -> int:
    """Effective split: the clamped percent for shared rows, 100 for personal ones."""
    if scope == Scope.SHARED:
        return clamp_split_percent(split_percent)
    return 100


def my_share_for(scope: Scope, amount_cents: int, split_percent: int) -> int:
    """My part of an amount under the scope/split rule."""
    if scope == Scope.SHARED:
        return share_cents(amount_cents, split_percent)
    return amount_cents


def account_names(accounts: list[Account]) -> dict[str, str]:
    return {a.id: a.name or a.id for a in accounts}
