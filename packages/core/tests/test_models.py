"""Tests for the state document models.

This module tests the persisted models:
- Account name defaulting
- Destination tagged union
- Budget enablement after removal
- camelCase JSON round-trip of the document
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from monthbook_core.models import (
    Account,
    AccountDestination,
    AppState,
    Budget,
    Charge,
    MonthBudgetState,
    MonthData,
    Scope,
    TextDestination,
)


class TestAccount:
    def test_name_defaults_to_id(self):
        """Accounts without a name display their id."""
        account = Account(id="JOINT_MAIN")
        assert account.name == "JOINT_MAIN"
        assert account.active is True

    def test_models_are_frozen(self):
        account = Account(id="JOINT_MAIN")
        with pytest.raises(PydanticValidationError):
            account.active = False


class TestDestination:
    """Tests for the account/text destination union."""

    def test_parses_account_destination(self):
        charge = Charge.model_validate(
            {
                "id": "chg_1",
                "name": "Virement épargne",
                "amountCents": 10000,
                "accountId": "PERSONAL_MAIN",
                "destination": {"kind": "account", "accountId": "PERSONAL_SAVINGS"},
            }
        )
        assert isinstance(charge.destination, AccountDestination)
        assert charge.destination.account_id == "PERSONAL_SAVINGS"

    def test_parses_text_destination(self):
        charge = Charge.model_validate(
            {
                "id": "chg_1",
                "name": "Pension",
                "amountCents": 10000,
                "accountId": "PERSONAL_MAIN",
                "destination": {"kind": "text", "text": "Livret A"},
            }
        )
        assert isinstance(charge.destination, TextDestination)
        assert charge.destination.text == "Livret A"

    def test_rejects_unknown_kind(self):
        with pytest.raises(PydanticValidationError):
            Charge.model_validate(
                {
                    "id": "chg_1",
                    "name": "X",
                    "amountCents": 1,
                    "accountId": "A",
                    "destination": {"kind": "iban", "value": "FR76"},
                }
            )


class TestBudget:
    def test_removed_budget_enabled_before_removal_month(self):
        """A removed budget keeps appearing in months before its removal."""
        budget = Budget(
            id="bud_1",
            name="Essence",
            amount_cents=12000,
            account_id="PERSONAL_MAIN",
            active=False,
            inactive_from_ym="2025-06",
        )
        assert budget.is_enabled_in("2025-05")
        assert not budget.is_enabled_in("2025-06")
        assert not budget.is_enabled_in("2025-07")

    def test_inactive_without_removal_month_is_disabled(self):
        budget = Budget(id="bud_1", name="X", amount_cents=1, account_id="A", active=False)
        assert not budget.is_enabled_in("2020-01")


class TestMonthBudgetState:
    def test_carry_signal(self):
        assert not MonthBudgetState().has_carry_signal
        assert MonthBudgetState(carry_over_handled=True).has_carry_signal
        assert not MonthBudgetState(carry_over_handled=False).has_carry_signal


class TestAppState:
    """Tests for the document aggregate."""

    def test_document_uses_camel_case(self, make_state, make_charge):
        state = make_state(
            salary_cents=300000,
            charges=[make_charge(scope=Scope.SHARED, split_percent=50)],
            months={"2025-10": MonthData.empty("2025-10", "2025-10-01T00:00:00.000Z")},
        )
        doc = state.to_document()

        assert doc["version"] == 1
        assert doc["salaryCents"] == 300000
        assert doc["charges"][0]["splitPercent"] == 50
        assert doc["charges"][0]["scope"] == "shared"
        assert doc["months"]["2025-10"]["createdAt"] == "2025-10-01T00:00:00.000Z"
        assert "salaryCents" not in doc["months"]["2025-10"]

    def test_document_round_trip(self, make_state, make_charge):
        state = make_state(charges=[make_charge()])
        assert AppState.model_validate(state.to_document()) == state

    def test_salary_for_prefers_month_override(self, make_state):
        state = make_state(
            salary_cents=300000,
            months={"2025-09": MonthData(ym="2025-09", salary_cents=280000)},
        )
        assert state.salary_for("2025-09") == 280000
        assert state.salary_for("2025-10") == 300000

    def test_with_month_leaves_original_untouched(self, make_state):
        state = make_state()
        updated = state.with_month(MonthData(ym="2025-10"))
        assert "2025-10" in updated.months
        assert state.months == {}

    def test_rejects_unknown_version(self):
        with pytest.raises(PydanticValidationError):
            AppState.model_validate({"version": 2})
