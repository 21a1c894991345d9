"""Computed views returned by the resolution engine.

These models are never stored. They are rebuilt from the state document on
every call and serialize with the same camelCase convention.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from ..money import share_cents
from .state import AccountKind, BudgetExpense, Destination, PaymentMode, Scope


class ResolvedModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ResolvedCharge(ResolvedModel):
    """A charge as it applies to one month."""

    id: str
    name: str
    amount_cents: int
    sort_order: int
    day_of_month: int
    due_date: str = Field(description="YYYY-MM-DD, clamped into the month")
    account_id: str
    account_name: str
    scope: Scope
    split_percent: int = Field(ge=0, le=100)
    payment: PaymentMode
    destination: Optional[Destination] = None
    destination_label: Optional[str] = None
    paid: bool
    my_share_cents: int

    @computed_field
    @property
    def other_share_cents(self) -> int:
        """The other party's part of a shared charge (zero for personal ones)."""
        if self.scope != Scope.SHARED:
            return 0
        return share_cents(self.amount_cents, 100 - self.split_percent)

    @property
    def destination_account_id(self) -> Optional[str]:
        destination = self.destination
        if destination is not None and destination.kind == "account":
            return destination.account_id
        return None

    @property
    def routed_account_id(self) -> str:
        """Account the money for this charge must be provisioned on."""
        return self.destination_account_id or self.account_id


class ResolvedBudget(ResolvedModel):
    """An envelope as it applies to one month, carry chain included."""

    id: str
    name: str
    amount_cents: int = Field(description="Unadjusted monthly target")
    account_id: str
    account_name: str
    scope: Scope
    split_percent: int = Field(ge=0, le=100)
    expenses: list[BudgetExpense] = Field(default_factory=list)
    spent_cents: int
    remaining_cents: int
    remaining_to_fund_cents: int
    available_cents: int

    carry_over_handled: bool = False
    carry_forward_handled: bool = False
    carry_over_source_debt_cents: int = 0
    carry_over_source_credit_cents: int = 0
    carry_over_debt_cents: int = 0
    carry_over_credit_cents: int = 0
    adjusted_amount_cents: int
    funding_cents: int
    carry_forward_source_debt_cents: int = 0
    carry_forward_source_credit_cents: int = 0
    carry_forward_debt_cents: int = 0
    carry_forward_credit_cents: int = 0

    my_share_cents: int = Field(description="Share of the funding")
    base_my_share_cents: int = Field(description="Share of the unadjusted target")
    carry_over_my_share_cents: int = Field(
        description="Signed share of the applied carry (debt positive, credit negative)"
    )
    carry_over_debt_my_share_cents: int = 0


class MonthTotals(ResolvedModel):
    """Aggregate figures for one month."""

    salary_cents: int
    total_shared_cents: int = 0
    total_shared_my_share_cents: int = 0
    total_personal_cents: int = 0
    total_my_charges_cents: int = 0
    total_budgets_base_cents: int = 0
    total_budgets_carry_cents: int = 0
    total_budgets_cents: int = 0
    total_budget_spent_cents: int = 0
    total_provision_cents: int = 0
    pending_count: int = 0
    count: int = 0

    @computed_field
    @property
    def total_with_budgets_cents(self) -> int:
        """My charges plus funded envelope shares."""
        return self.total_my_charges_cents + self.total_budgets_cents

    @computed_field
    @property
    def money_left_cents(self) -> int:
        """Salary left after my charges."""
        return self.salary_cents - self.total_my_charges_cents

    @computed_field
    @property
    def money_left_after_budgets_cents(self) -> int:
        """Salary left after my charges and envelope funding."""
        return self.salary_cents - self.total_with_budgets_cents


class AccountTotals(ResolvedModel):
    """What has to be provisioned on one account for a month."""

    account_id: str
    account_name: str
    kind: AccountKind
    is_known_account: bool
    charges_cents: int = 0
    paid_cents: int = 0
    budgets_cents: int = 0

    @computed_field
    @property
    def total_cents(self) -> int:
        return self.charges_cents + self.budgets_cents
