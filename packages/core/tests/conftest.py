"""Shared fixtures for monthbook-core tests."""

from datetime import datetime, timezone

import pytest
import structlog

from monthbook_core.models import (
    Account,
    AccountKind,
    AppState,
    Budget,
    Charge,
    PaymentMode,
    Scope,
)

FIXED_NOW = datetime(2025, 10, 2, 8, 0, 0, tzinfo=timezone.utc)
FIXED_NOW_ISO = "2025-10-02T08:00:00.000Z"


@pytest.fixture
def now() -> datetime:
    """A fixed clock for timestamped transitions."""
    return FIXED_NOW


@pytest.fixture
def accounts() -> list[Account]:
    """The three default household accounts."""
    return [
        Account(id="PERSONAL_MAIN", kind=AccountKind.PERSONAL),
        Account(id="PERSONAL_SAVINGS", kind=AccountKind.PERSONAL),
        Account(id="JOINT_MAIN", kind=AccountKind.SHARED),
    ]


@pytest.fixture
def make_charge():
    """Factory for charge definitions with overridable fields."""

    def factory(**overrides) -> Charge:
        data = {
            "id": "chg_phone",
            "name": "Téléphone",
            "amount_cents": 2000,
            "sort_order": 10,
            "day_of_month": 5,
            "account_id": "PERSONAL_MAIN",
            "scope": Scope.PERSONAL,
            "payment": PaymentMode.MANUAL,
        }
        data.update(overrides)
        return Charge(**data)

    return factory


@pytest.fixture
def make_budget():
    """Factory for budget (envelope) definitions."""

    def factory(**overrides) -> Budget:
        data = {
            "id": "bud_food",
            "name": "Courses",
            "amount_cents": 20000,
            "account_id": "PERSONAL_MAIN",
            "scope": Scope.PERSONAL,
        }
        data.update(overrides)
        return Budget(**data)

    return factory


@pytest.fixture
def make_state(accounts):
    """Factory for state documents on the default accounts."""

    def factory(**overrides) -> AppState:
        data = {
            "modified_at": "2025-10-01T00:00:00.000Z",
            "salary_cents": 0,
            "accounts": accounts,
        }
        data.update(overrides)
        return AppState(**data)

    return factory


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by the command line entry point."""
    yield
    structlog.reset_defaults()
