"""Monthbook Core - Monthly charges, budget envelopes and carry-over."""

__version__ = "0.1.0"

from .archive import archive_month, unarchive_month
from .budgets import CarryLedger, resolve_budgets
from .charges import resolve_charges
from .exceptions import ConfigurationError, MonthbookError, StorageError, ValidationError
from .models import AppState, MonthTotals, AccountTotals, ResolvedBudget, ResolvedCharge
from .normalize import load_state, normalize_document
from .reducer import reduce
from .storage import JsonStateStore
from .sync import SyncDecision, decide_sync
from .totals import account_totals, month_totals

__all__ = [
    "AppState",
    "ResolvedCharge",
    "ResolvedBudget",
    "MonthTotals",
    "AccountTotals",
    "CarryLedger",
    "resolve_charges",
    "resolve_budgets",
    "month_totals",
    "account_totals",
    "archive_month",
    "unarchive_month",
    "reduce",
    "normalize_document",
    "load_state",
    "JsonStateStore",
    "SyncDecision",
    "decide_sync",
    "MonthbookError",
    "ValidationError",
    "StorageError",
    "ConfigurationError",
]
