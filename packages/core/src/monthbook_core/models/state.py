"""Persisted state document models.

The state document is the whole aggregate the engine works on: accounts,
recurring charge and budget definitions, and a sparse map of per-month
overrides. It round-trips to a single JSON tree with camelCase keys.

Definitions are the single source of truth for future months. A month holds
only what differs from them: paid markers, budget expenses, handled flags and,
once the month has been archived (or for month-only rows), frozen snapshots of
the definition fields that matter for resolution.

All models are frozen. State transitions build new instances with
``model_copy(update=...)`` and never mutate an existing document.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_SORT_ORDER = 9999
DEFAULT_SPLIT_PERCENT = 50


class DocumentModel(BaseModel):
    """Base for every model stored in the state document."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class AccountKind(str, Enum):
    """Whether an account belongs to one person or is held jointly."""

    PERSONAL = "personal"
    SHARED = "shared"


class Scope(str, Enum):
    """Whether an amount is split between two parties or borne by one."""

    SHARED = "shared"
    PERSONAL = "personal"


class PaymentMode(str, Enum):
    """How a charge leaves the account.

    Automatic charges count as paid once their due date has passed.
    """

    AUTO = "auto"
    MANUAL = "manual"


class Account(DocumentModel):
    """A bank account charges and budgets are drawn from.

    Accounts are never deleted, only deactivated. The id doubles as the
    display key.
    """

    id: str = Field(min_length=1, description="Account identifier and display key")
    name: str = Field(default="", description="Display name (normalized to the id)")
    kind: AccountKind = Field(default=AccountKind.PERSONAL)
    active: bool = Field(default=True)

    @model_validator(mode="before")
    @classmethod
    def default_name_to_id(cls, data):
        """Accounts without a name display their id."""
        if isinstance(data, dict) and not data.get("name"):
            data = {**data, "name": data.get("id", "")}
        return data


class AccountDestination(DocumentModel):
    """Charge money goes to another tracked account."""

    kind: Literal["account"] = "account"
    account_id: str


class TextDestination(DocumentModel):
    """Charge money goes somewhere described in free text."""

    kind: Literal["text"] = "text"
    text: str


Destination = Annotated[
    Union[AccountDestination, TextDestination],
    Field(discriminator="kind"),
]


class ChargeSnapshot(DocumentModel):
    """Frozen copy of the charge fields that matter for resolution."""

    name: str
    amount_cents: int
    sort_order: int = DEFAULT_SORT_ORDER
    day_of_month: int = Field(default=1, ge=1, le=31)
    account_id: str
    scope: Scope = Scope.PERSONAL
    split_percent: Optional[float] = None
    payment: PaymentMode = PaymentMode.MANUAL
    destination: Optional[Destination] = None


class Charge(DocumentModel):
    """A recurring monthly charge definition.

    The definition applies to every live month. Archived months read their
    own snapshot instead, so editing a charge never rewrites history.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "id": "chg_rent",
                    "name": "Loyer",
                    "amountCents": 120000,
                    "sortOrder": 10,
                    "dayOfMonth": 5,
                    "accountId": "JOINT_MAIN",
                    "scope": "shared",
                    "splitPercent": 50,
                    "payment": "auto",
                    "active": True,
                }
            ]
        }
    )

    id: str = Field(min_length=1)
    name: str
    amount_cents: int = Field(description="Amount in cents")
    sort_order: int = Field(
        default=DEFAULT_SORT_ORDER,
        description="Manual rank within the scope, gaps of 10",
    )
    day_of_month: int = Field(
        default=1,
        ge=1,
        le=31,
        description="Due day, clamped to the month length when resolved",
    )
    account_id: str
    scope: Scope = Scope.PERSONAL
    split_percent: Optional[float] = Field(
        default=None,
        description="My share in percent, shared scope only (default 50)",
    )
    payment: PaymentMode = PaymentMode.MANUAL
    destination: Optional[Destination] = None
    active: bool = True

    def to_snapshot(self) -> ChargeSnapshot:
        """Freeze the resolution-relevant fields of this charge."""
        return ChargeSnapshot(
            name=self.name,
            amount_cents=self.amount_cents,
            sort_order=self.sort_order,
            day_of_month=self.day_of_month,
            account_id=self.account_id,
            scope=self.scope,
            split_percent=self.split_percent,
            payment=self.payment,
            destination=self.destination,
        )


class BudgetSnapshot(DocumentModel):
    """Frozen copy of the budget fields that matter for resolution."""

    name: str
    amount_cents: int
    account_id: str
    scope: Scope = Scope.PERSONAL
    split_percent: Optional[float] = None


class Budget(DocumentModel):
    """A recurring monthly envelope definition."""

    id: str = Field(min_length=1)
    name: str
    amount_cents: int = Field(description="Monthly target in cents")
    account_id: str
    scope: Scope = Scope.PERSONAL
    split_percent: Optional[float] = None
    active: bool = True
    inactive_from_ym: Optional[str] = Field(
        default=None,
        description="First month the budget no longer appears in once removed",
    )

    def is_enabled_in(self, ym: str) -> bool:
        """A removed budget keeps appearing in months before its removal month."""
        if self.active:
            return True
        return self.inactive_from_ym is not None and ym < self.inactive_from_ym

    def to_snapshot(self) -> BudgetSnapshot:
        return BudgetSnapshot(
            name=self.name,
            amount_cents=self.amount_cents,
            account_id=self.account_id,
            scope=self.scope,
            split_percent=self.split_percent,
        )


class BudgetExpense(DocumentModel):
    """One spend recorded against an envelope."""

    id: str
    date: str = Field(description="YYYY-MM-DD")
    label: str = ""
    amount_cents: int = Field(ge=0, description="Positive number = spending")


class MonthChargeState(DocumentModel):
    """Per-month override for one charge id."""

    paid: bool = False
    snapshot: Optional[ChargeSnapshot] = None
    removed: Optional[bool] = None


class MonthBudgetState(DocumentModel):
    """Per-month override for one budget id."""

    expenses: list[BudgetExpense] = Field(default_factory=list)
    snapshot: Optional[BudgetSnapshot] = None
    carry_over_handled: Optional[bool] = None
    carry_forward_handled: Optional[bool] = None

    @property
    def has_carry_signal(self) -> bool:
        """True when this override takes part in the carry chain."""
        return bool(
            self.snapshot is not None
            or self.expenses
            or self.carry_over_handled
            or self.carry_forward_handled
        )


class MonthData(DocumentModel):
    """Sparse overrides and snapshots for one year-month."""

    ym: str
    archived: bool = False
    created_at: str = ""
    updated_at: str = ""
    salary_cents: Optional[int] = None
    charges: dict[str, MonthChargeState] = Field(default_factory=dict)
    budgets: dict[str, MonthBudgetState] = Field(default_factory=dict)

    @classmethod
    def empty(cls, ym: str, now: str) -> "MonthData":
        """A fresh live month with no overrides."""
        return cls(ym=ym, created_at=now, updated_at=now)


class AppState(DocumentModel):
    """The whole persisted document for one household."""

    version: Literal[1] = 1
    modified_at: Optional[str] = None
    salary_cents: int = 0
    accounts: list[Account] = Field(default_factory=list)
    charges: list[Charge] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    months: dict[str, MonthData] = Field(default_factory=dict)

    def month(self, ym: str) -> Optional[MonthData]:
        return self.months.get(ym)

    def charge(self, charge_id: str) -> Optional[Charge]:
        return next((c for c in self.charges if c.id == charge_id), None)

    def budget(self, budget_id: str) -> Optional[Budget]:
        return next((b for b in self.budgets if b.id == budget_id), None)

    def account(self, account_id: str) -> Optional[Account]:
        return next((a for a in self.accounts if a.id == account_id), None)

    def salary_for(self, ym: str) -> int:
        """Month salary override, else the global salary."""
        month = self.months.get(ym)
        if month is not None and month.salary_cents is not None:
            return month.salary_cents
        return self.salary_cents

    def with_month(self, month: MonthData) -> "AppState":
        """Return a copy of the document with one month record replaced."""
        return self.model_copy(update={"months": {**self.months, month.ym: month}})

    def to_document(self) -> dict:
        """Serialize to the JSON tree the persistence layer stores."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
