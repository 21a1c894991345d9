"""Data models for monthbook-core.

This package provides:
- The persisted state document: accounts, charge and budget definitions,
  per-month overrides and snapshots (state.py)
- The computed views returned by the resolution engine (resolved.py)
"""

from monthbook_core.models.state import (
    # Enumerations
    AccountKind,
    Scope,
    PaymentMode,
    # Definitions
    Account,
    AccountDestination,
    TextDestination,
    Destination,
    Charge,
    Budget,
    # Month overrides
    ChargeSnapshot,
    BudgetSnapshot,
    BudgetExpense,
    MonthChargeState,
    MonthBudgetState,
    MonthData,
    # Document
    AppState,
    DEFAULT_SORT_ORDER,
    DEFAULT_SPLIT_PERCENT,
)
from monthbook_core.models.resolved import (
    ResolvedCharge,
    ResolvedBudget,
    MonthTotals,
    AccountTotals,
)

__all__ = [
    # Enumerations
    "AccountKind",
    "Scope",
    "PaymentMode",
    # Definitions
    "Account",
    "AccountDestination",
    "TextDestination",
    "Destination",
    "Charge",
    "Budget",
    # Month overrides
    "ChargeSnapshot",
    "BudgetSnapshot",
    "BudgetExpense",
    "MonthChargeState",
    "MonthBudgetState",
    "MonthData",
    # Document
    "AppState",
    "DEFAULT_SORT_ORDER",
    "DEFAULT_SPLIT_PERCENT",
    # Resolved views
    "ResolvedCharge",
    "ResolvedBudget",
    "MonthTotals",
    "AccountTotals",
]
