"""State transitions (the mutation engine).

Every change to the state document goes through ``reduce(state, action)``.
Actions are small pydantic models discriminated by their ``type`` so they
can be logged, queued or sent over the wire as JSON. Each transition returns
a new document and leaves the input untouched.

Any transition that changes the document stamps ``modifiedAt``, except
``hydrate`` (which replaces the document wholesale) and ``ensure_month``
(bookkeeping only). A transition that changes nothing returns the very same
object, so callers can skip persisting it.

Input is checked here, at the boundary: non-finite or negative amounts,
days of month outside 1..31, malformed year-months and dates raise
ValidationError. Split percents are clamped to 0..100 rather than rejected.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Annotated, Any, Callable, Literal, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .archive import archive_month, unarchive_month
from .exceptions import ValidationError
from .models import (
    DEFAULT_SPLIT_PERCENT,
    Account,
    AccountKind,
    AppState,
    Budget,
    BudgetExpense,
    Charge,
    ChargeSnapshot,
    Destination,
    MonthBudgetState,
    MonthChargeState,
    MonthData,
    PaymentMode,
    Scope,
    TextDestination,
)
from .months import is_valid_ym, now_iso
from .shares import clamp_split_percent

logger = structlog.get_logger()

SORT_GAP = 10


def new_id(prefix: str = "id") -> str:
    """Generate a prefixed unique identifier, e.g. ``chg_6f1c...``."""
    return f"{prefix}_{uuid.uuid4()}"


# =============================================================================
# ACTION MODELS
# =============================================================================


class ActionModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ChargeDraft(ActionModel):
    """Fields of a new charge. Numbers are checked by the reducer."""

    name: str
    amount_cents: float
    day_of_month: int = 1
    account_id: str
    scope: Scope = Scope.PERSONAL
    split_percent: Optional[float] = None
    payment: PaymentMode = PaymentMode.MANUAL
    destination: Optional[Destination] = None
    active: bool = True


class ChargePatch(ActionModel):
    """Partial update of a charge. Only the fields set are applied."""

    name: Optional[str] = None
    amount_cents: Optional[float] = None
    sort_order: Optional[int] = None
    day_of_month: Optional[int] = None
    account_id: Optional[str] = None
    scope: Optional[Scope] = None
    split_percent: Optional[float] = None
    payment: Optional[PaymentMode] = None
    destination: Optional[Destination] = None
    active: Optional[bool] = None


class BudgetDraft(ActionModel):
    name: str
    amount_cents: float
    account_id: str
    scope: Scope = Scope.PERSONAL
    split_percent: Optional[float] = None


class BudgetPatch(ActionModel):
    name: Optional[str] = None
    amount_cents: Optional[float] = None
    account_id: Optional[str] = None
    scope: Optional[Scope] = None
    split_percent: Optional[float] = None
    active: Optional[bool] = None


class ExpenseDraft(ActionModel):
    date: str
    label: str = ""
    amount_cents: float


class ExpensePatch(ActionModel):
    date: Optional[str] = None
    label: Optional[str] = None
    amount_cents: Optional[float] = None


class AccountPatch(ActionModel):
    kind: Optional[AccountKind] = None


class Hydrate(ActionModel):
    type: Literal["hydrate"] = "hydrate"
    state: AppState


class EnsureMonth(ActionModel):
    type: Literal["ensure_month"] = "ensure_month"
    ym: str


class SetSalary(ActionModel):
    type: Literal["set_salary"] = "set_salary"
    ym: str
    salary_cents: float


class AddAccount(ActionModel):
    type: Literal["add_account"] = "add_account"
    account_id: str
    kind: AccountKind = AccountKind.PERSONAL


class UpdateAccount(ActionModel):
    type: Literal["update_account"] = "update_account"
    account_id: str
    patch: AccountPatch


class RemoveAccount(ActionModel):
    type: Literal["remove_account"] = "remove_account"
    account_id: str
    move_to_account_id: str


class AddCharge(ActionModel):
    type: Literal["add_charge"] = "add_charge"
    charge: ChargeDraft


class UpdateCharge(ActionModel):
    type: Literal["update_charge"] = "update_charge"
    charge_id: str
    patch: ChargePatch


class RemoveCharge(ActionModel):
    type: Literal["remove_charge"] = "remove_charge"
    charge_id: str


class ReorderCharges(ActionModel):
    type: Literal["reorder_charges"] = "reorder_charges"
    scope: Scope
    ordered_ids: list[str]


class AddBudget(ActionModel):
    type: Literal["add_budget"] = "add_budget"
    budget: BudgetDraft


class UpdateBudget(ActionModel):
    type: Literal["update_budget"] = "update_budget"
    budget_id: str
    patch: BudgetPatch


class RemoveBudget(ActionModel):
    type: Literal["remove_budget"] = "remove_budget"
    ym: str
    budget_id: str


class ToggleChargePaid(ActionModel):
    type: Literal["toggle_charge_paid"] = "toggle_charge_paid"
    ym: str
    charge_id: str
    paid: bool


class SetChargesPaid(ActionModel):
    type: Literal["set_charges_paid"] = "set_charges_paid"
    ym: str
    charge_ids: list[str]
    paid: bool


class HideChargeForMonth(ActionModel):
    type: Literal["hide_charge_for_month"] = "hide_charge_for_month"
    ym: str
    charge_id: str


class AddMonthCharge(ActionModel):
    type: Literal["add_month_charge"] = "add_month_charge"
    ym: str
    charge: ChargeDraft


class UpdateMonthCharge(ActionModel):
    type: Literal["update_month_charge"] = "update_month_charge"
    ym: str
    charge_id: str
    patch: ChargePatch


class RemoveMonthCharge(ActionModel):
    type: Literal["remove_month_charge"] = "remove_month_charge"
    ym: str
    charge_id: str


class ArchiveMonth(ActionModel):
    type: Literal["archive_month"] = "archive_month"
    ym: str


class UnarchiveMonth(ActionModel):
    type: Literal["unarchive_month"] = "unarchive_month"
    ym: str


class SetBudgetCarryHandled(ActionModel):
    type: Literal["set_budget_carry_handled"] = "set_budget_carry_handled"
    ym: str
    budget_id: str
    handled: bool


class SetBudgetCarryForwardHandled(ActionModel):
    type: Literal["set_budget_carry_forward_handled"] = "set_budget_carry_forward_handled"
    ym: str
    budget_id: str
    handled: bool


class AddBudgetExpense(ActionModel):
    type: Literal["add_budget_expense"] = "add_budget_expense"
    ym: str
    budget_id: str
    expense: ExpenseDraft


class UpdateBudgetExpense(ActionModel):
    type: Literal["update_budget_expense"] = "update_budget_expense"
    ym: str
    budget_id: str
    expense_id: str
    patch: ExpensePatch


class RemoveBudgetExpense(ActionModel):
    type: Literal["remove_budget_expense"] = "remove_budget_expense"
    ym: str
    budget_id: str
    expense_id: str


Action = Annotated[
    Union[
        Hydrate,
        EnsureMonth,
        SetSalary,
        AddAccount,
        UpdateAccount,
        RemoveAccount,
        AddCharge,
        UpdateCharge,
        RemoveCharge,
        ReorderCharges,
        AddBudget,
        UpdateBudget,
        RemoveBudget,
        ToggleChargePaid,
        SetChargesPaid,
        HideChargeForMonth,
        AddMonthCharge,
        UpdateMonthCharge,
        RemoveMonthCharge,
        ArchiveMonth,
        UnarchiveMonth,
        SetBudgetCarryHandled,
        SetBudgetCarryForwardHandled,
        AddBudgetExpense,
        UpdateBudgetExpense,
        RemoveBudgetExpense,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# INPUT CHECKS
# =============================================================================


def _cents(value: Any, field: str) -> int:
    """Validate an amount in cents and round it to an integer."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("Amount must be a number", field=field, value=value)
    if not math.isfinite(value):
        raise ValidationError(
            "Amount must be finite", field=field, value=str(value), constraint="finite number"
        )
    if value < 0:
        raise ValidationError(
            "Amount cannot be negative", field=field, value=value, constraint=">= 0"
        )
    return int(math.floor(value + 0.5))


def _day(value: int) -> int:
    if not 1 <= value <= 31:
        raise ValidationError(
            "Invalid day of month",
            field="day_of_month",
            value=value,
            constraint="Must be between 1 and 31",
        )
    return value


def _ym(value: str) -> str:
    if not is_valid_ym(value):
        raise ValidationError(
            "Invalid year-month", field="ym", value=value, constraint="YYYY-MM"
        )
    return value


def _iso_date(value: str) -> str:
    try:
        date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(
            "Invalid date", field="date", value=value, constraint="YYYY-MM-DD"
        ) from None
    return value


def _split_for(scope: Scope, split_percent: Optional[float]) -> Optional[int]:
    if scope != Scope.SHARED:
        return None
    return clamp_split_percent(split_percent, DEFAULT_SPLIT_PERCENT)


# =============================================================================
# TRANSITIONS
# =============================================================================


@dataclass(frozen=True)
class TransitionContext:
    stamp: str
    now: Optional[datetime] = None
    today: Optional[Union[date, str]] = None


Handler = Callable[[AppState, Any, TransitionContext], AppState]
_HANDLERS: dict[type, Handler] = {}


def handles(action_type: type) -> Callable[[Handler], Handler]:
    def register(func: Handler) -> Handler:
        _HANDLERS[action_type] = func
        return func

    return register


def _update_month(
    state: AppState,
    ym: str,
    ctx: TransitionContext,
    updater: Callable[[MonthData], MonthData],
) -> AppState:
    """Apply updater to a month record, creating the month when missing."""
    current = state.month(ym) or MonthData.empty(ym, ctx.stamp)
    updated = updater(current)
    if updated is current:
        return state
    return state.with_month(updated.model_copy(update={"updated_at": ctx.stamp}))


def _max_sort_order(charges: list[Charge], scope: Scope, exclude: Optional[str] = None) -> int:
    return max(
        (c.sort_order for c in charges if c.scope == scope and c.id != exclude),
        default=0,
    )


@handles(EnsureMonth)
def _ensure_month(state: AppState, action: EnsureMonth, ctx: TransitionContext) -> AppState:
    ym = _ym(action.ym)
    if ym in state.months:
        return state
    return state.with_month(MonthData.empty(ym, ctx.stamp))


@handles(SetSalary)
def _set_salary(state: AppState, action: SetSalary, ctx: TransitionContext) -> AppState:
    """Change the salary from a month on; earlier months keep the old one."""
    ym = _ym(action.ym)
    salary = _cents(action.salary_cents, "salary_cents")
    previous = state.salary_cents

    months = dict(state.months)
    for key, month in state.months.items():
        if key >= ym or month.salary_cents is not None:
            continue
        months[key] = month.model_copy(update={"salary_cents": previous, "updated_at": ctx.stamp})

    current = months.get(ym) or MonthData.empty(ym, ctx.stamp)
    if current.salary_cents != salary or ym not in months:
        months[ym] = current.model_copy(update={"salary_cents": salary, "updated_at": ctx.stamp})

    return state.model_copy(update={"salary_cents": salary, "months": months})


@handles(AddAccount)
def _add_account(state: AppState, action: AddAccount, ctx: TransitionContext) -> AppState:
    account_id = action.account_id.strip()
    if not account_id:
        raise ValidationError("Account id cannot be empty", field="account_id")

    existing = state.account(account_id)
    if existing is not None:
        if existing.active and existing.kind == action.kind:
            return state
        accounts = [
            a.model_copy(update={"active": True, "kind": action.kind}) if a.id == account_id else a
            for a in state.accounts
        ]
        return state.model_copy(update={"accounts": accounts})

    account = Account(id=account_id, name=account_id, kind=action.kind, active=True)
    return state.model_copy(update={"accounts": [*state.accounts, account]})


@handles(UpdateAccount)
def _update_account(state: AppState, action: UpdateAccount, ctx: TransitionContext) -> AppState:
    changes = action.patch.model_dump(exclude_unset=True, exclude_none=True)
    if state.account(action.account_id) is None or not changes:
        return state
    accounts = [
        a.model_copy(update=changes) if a.id == action.account_id else a for a in state.accounts
    ]
    return state.model_copy(update={"accounts": accounts})


@handles(RemoveAccount)
def _remove_account(state: AppState, action: RemoveAccount, ctx: TransitionContext) -> AppState:
    """Deactivate an account and move everything that references it.

    Destinations pointing at the account become free text naming it.
    """
    source_id, target_id = action.account_id, action.move_to_account_id
    if source_id == target_id:
        return state

    source = state.account(source_id)
    target = state.account(target_id)
    if source is None:
        raise ValidationError("Unknown account", field="account_id", value=source_id)
    if target is None or not target.active:
        raise ValidationError(
            "Target account must exist and be active",
            field="move_to_account_id",
            value=target_id,
        )
    # The active target keeps at least one account active.

    charges = []
    for charge in state.charges:
        changes: dict[str, Any] = {}
        if charge.account_id == source_id:
            changes["account_id"] = target_id
        destination = charge.destination
        if destination is not None and destination.kind == "account" and destination.account_id == source_id:
            changes["destination"] = TextDestination(text=source_id)
        charges.append(charge.model_copy(update=changes) if changes else charge)

    budgets = [
        b.model_copy(update={"account_id": target_id}) if b.account_id == source_id else b
        for b in state.budgets
    ]
    accounts = [
        a.model_copy(update={"active": False}) if a.id == source_id else a for a in state.accounts
    ]
    return state.model_copy(update={"accounts": accounts, "charges": charges, "budgets": budgets})


@handles(AddCharge)
def _add_charge(state: AppState, action: AddCharge, ctx: TransitionContext) -> AppState:
    draft = action.charge
    charge = Charge(
        id=new_id("chg"),
        name=draft.name,
        amount_cents=_cents(draft.amount_cents, "amount_cents"),
        sort_order=_max_sort_order(state.charges, draft.scope) + SORT_GAP,
        day_of_month=_day(draft.day_of_month),
        account_id=draft.account_id,
        scope=draft.scope,
        split_percent=_split_for(draft.scope, draft.split_percent),
        payment=draft.payment,
        destination=draft.destination,
        active=draft.active,
    )
    return state.model_copy(update={"charges": [*state.charges, charge]})


def _charge_changes(patch: ChargePatch) -> dict[str, Any]:
    changes = patch.model_dump(exclude_unset=True)
    if changes.get("amount_cents") is not None:
        changes["amount_cents"] = _cents(changes["amount_cents"], "amount_cents")
    if changes.get("day_of_month") is not None:
        changes["day_of_month"] = _day(changes["day_of_month"])
    if "destination" in changes:
        changes["destination"] = patch.destination
    # Explicit None only makes sense for the optional fields.
    return {
        k: v
        for k, v in changes.items()
        if v is not None or k in ("destination", "split_percent")
    }


@handles(UpdateCharge)
def _update_charge(state: AppState, action: UpdateCharge, ctx: TransitionContext) -> AppState:
    current = state.charge(action.charge_id)
    if current is None:
        return state
    changes = _charge_changes(action.patch)
    if not changes:
        return state

    scope = changes.get("scope", current.scope)
    if scope != current.scope and "sort_order" not in changes:
        changes["sort_order"] = _max_sort_order(state.charges, scope, exclude=current.id) + SORT_GAP
    split = changes.get("split_percent", current.split_percent)
    changes["split_percent"] = _split_for(scope, split)

    updated = current.model_copy(update=changes)
    if updated == current:
        return state
    charges = [updated if c.id == current.id else c for c in state.charges]
    return state.model_copy(update={"charges": charges})


@handles(RemoveCharge)
def _remove_charge(state: AppState, action: RemoveCharge, ctx: TransitionContext) -> AppState:
    current = state.charge(action.charge_id)
    if current is None or not current.active:
        return state
    charges = [
        c.model_copy(update={"active": False}) if c.id == current.id else c for c in state.charges
    ]
    return state.model_copy(update={"charges": charges})


@handles(ReorderCharges)
def _reorder_charges(state: AppState, action: ReorderCharges, ctx: TransitionContext) -> AppState:
    """Rewrite the ranks of one scope as 10, 20, 30... in the requested order.

    Unknown ids are ignored; charges of the scope missing from the list keep
    their relative order after the listed ones.
    """
    in_scope = [c for c in state.charges if c.scope == action.scope]
    existing = {c.id for c in in_scope}
    wanted: list[str] = []
    for charge_id in action.ordered_ids:
        if charge_id in existing and charge_id not in wanted:
            wanted.append(charge_id)
    remaining = [
        c.id for c in sorted(in_scope, key=lambda c: c.sort_order) if c.id not in set(wanted)
    ]
    order = {charge_id: (i + 1) * SORT_GAP for i, charge_id in enumerate(wanted + remaining)}

    if all(c.sort_order == order[c.id] for c in in_scope):
        return state
    charges = [
        c.model_copy(update={"sort_order": order[c.id]}) if c.id in order else c
        for c in state.charges
    ]
    return state.model_copy(update={"charges": charges})


@handles(AddBudget)
def _add_budget(state: AppState, action: AddBudget, ctx: TransitionContext) -> AppState:
    draft = action.budget
    budget = Budget(
        id=new_id("bud"),
        name=draft.name,
        amount_cents=_cents(draft.amount_cents, "amount_cents"),
        account_id=draft.account_id,
        scope=draft.scope,
        split_percent=_split_for(draft.scope, draft.split_percent),
    )
    return state.model_copy(update={"budgets": [*state.budgets, budget]})


@handles(UpdateBudget)
def _update_budget(state: AppState, action: UpdateBudget, ctx: TransitionContext) -> AppState:
    current = state.budget(action.budget_id)
    if current is None:
        return state
    changes = action.patch.model_dump(exclude_unset=True)
    changes = {k: v for k, v in changes.items() if v is not None or k == "split_percent"}
    if changes.get("amount_cents") is not None:
        changes["amount_cents"] = _cents(changes["amount_cents"], "amount_cents")
    if not changes:
        return state
    scope = changes.get("scope", current.scope)
    changes["split_percent"] = _split_for(scope, changes.get("split_percent", current.split_percent))

    updated = current.model_copy(update=changes)
    if updated == current:
        return state
    budgets = [updated if b.id == current.id else b for b in state.budgets]
    return state.model_copy(update={"budgets": budgets})


@handles(RemoveBudget)
def _remove_budget(state: AppState, action: RemoveBudget, ctx: TransitionContext) -> AppState:
    """Deactivate a budget; it keeps showing in months before ``ym``."""
    ym = _ym(action.ym)
    if state.budget(action.budget_id) is None:
        return state
    budgets = [
        b.model_copy(update={"active": False, "inactive_from_ym": ym})
        if b.id == action.budget_id
        else b
        for b in state.budgets
    ]
    return state.model_copy(update={"budgets": budgets})


@handles(ToggleChargePaid)
def _toggle_charge_paid(state: AppState, action: ToggleChargePaid, ctx: TransitionContext) -> AppState:
    def update(month: MonthData) -> MonthData:
        current = month.charges.get(action.charge_id) or MonthChargeState()
        charges = {**month.charges, action.charge_id: current.model_copy(update={"paid": action.paid})}
        return month.model_copy(update={"charges": charges})

    return _update_month(state, _ym(action.ym), ctx, update)


@handles(SetChargesPaid)
def _set_charges_paid(state: AppState, action: SetChargesPaid, ctx: TransitionContext) -> AppState:
    def update(month: MonthData) -> MonthData:
        if month.archived:
            return month
        charges = dict(month.charges)
        changed = False
        for charge_id in action.charge_ids:
            current = charges.get(charge_id) or MonthChargeState()
            if current.paid == action.paid and charge_id in charges:
                continue
            charges[charge_id] = current.model_copy(update={"paid": action.paid})
            changed = True
        if not changed:
            return month
        return month.model_copy(update={"charges": charges})

    return _update_month(state, _ym(action.ym), ctx, update)


@handles(HideChargeForMonth)
def _hide_charge_for_month(state: AppState, action: HideChargeForMonth, ctx: TransitionContext) -> AppState:
    def update(month: MonthData) -> MonthData:
        if month.archived:
            return month
        current = month.charges.get(action.charge_id) or MonthChargeState()
        if current.removed:
            return month
        charges = {**month.charges, action.charge_id: current.model_copy(update={"removed": True})}
        return month.model_copy(update={"charges": charges})

    return _update_month(state, _ym(action.ym), ctx, update)


def _month_sort_order(state: AppState, month: MonthData, scope: Scope) -> int:
    local = max(
        (
            o.snapshot.sort_order
            for o in month.charges.values()
            if o.snapshot is not None and o.snapshot.scope == scope
        ),
        default=0,
    )
    return max(_max_sort_order(state.charges, scope), local) + SORT_GAP


@handles(AddMonthCharge)
def _add_month_charge(state: AppState, action: AddMonthCharge, ctx: TransitionContext) -> AppState:
    """Add a charge that exists in one month only, held as a snapshot."""
    draft = action.charge

    def update(month: MonthData) -> MonthData:
        if month.archived:
            return month
        snapshot = ChargeSnapshot(
            name=draft.name,
            amount_cents=_cents(draft.amount_cents, "amount_cents"),
            sort_order=_month_sort_order(state, month, draft.scope),
            day_of_month=_day(draft.day_of_month),
            account_id=draft.account_id,
            scope=draft.scope,
            split_percent=_split_for(draft.scope, draft.split_percent),
            payment=draft.payment,
            destination=draft.destination,
        )
        charges = {**month.charges, new_id("mchg"): MonthChargeState(paid=False, snapshot=snapshot)}
        return month.model_copy(update={"charges": charges})

    return _update_month(state, _ym(action.ym), ctx, update)


def _month_only(state: AppState, month: MonthData, charge_id: str) -> Optional[MonthChargeState]:
    """The override of a month-only charge, or None for anything else."""
    override = month.charges.get(charge_id)
    if month.archived or override is None or override.snapshot is None:
        return None
    if state.charge(charge_id) is not None:
        return None
    return override


@handles(UpdateMonthCharge)
def _update_month_charge(state: AppState, action: UpdateMonthCharge, ctx: TransitionContext) -> AppState:
    def update(month: MonthData) -> MonthData:
        override = _month_only(state, month, action.charge_id)
        if override is None:
            return month
        changes = _charge_changes(action.patch)
        changes.pop("active", None)
        if not changes:
            return month
        snapshot = override.snapshot.model_copy(update=changes)
        snapshot = snapshot.model_copy(
            update={"split_percent": _split_for(snapshot.scope, snapshot.split_percent)}
        )
        charges = {**month.charges, action.charge_id: override.model_copy(update={"snapshot": snapshot})}
        return month.model_copy(update={"charges": charges})

    return _update_month(state, _ym(action.ym), ctx, update)


@handles(RemoveMonthCharge)
def _remove_month_charge(state: AppState, action: RemoveMonthCharge, ctx: TransitionContext) -> AppState:
    def update(month: MonthData) -> MonthData:
        if _month_only(state, month, action.charge_id) is None:
            return month
        charges = {k: v for k, v in month.charges.items() if k != action.charge_id}
        return month.model_copy(update={"charges": charges})

    return _update_month(state, _ym(action.ym), ctx, update)


@handles(ArchiveMonth)
def _archive(state: AppState, action: ArchiveMonth, ctx: TransitionContext) -> AppState:
    return archive_month(state, _ym(action.ym), now=ctx.now, today=ctx.today)


@handles(UnarchiveMonth)
def _unarchive(state: AppState, action: UnarchiveMonth, ctx: TransitionContext) -> AppState:
    return unarchive_month(state, _ym(action.ym), now=ctx.now)


def _set_budget_flag(
    state: AppState, ym: str, budget_id: str, flag: str, other: str, handled: bool, ctx: TransitionContext
) -> AppState:
    def update(month: MonthData) -> MonthData:
        if month.archived:
            return month
        existing = month.budgets.get(budget_id)
        current_value = bool(getattr(existing, flag)) if existing is not None else False
        if current_value == handled:
            return month

        # Drop the override entirely when clearing the flag leaves it empty.
        if (
            not handled
            and not existing.expenses
            and existing.snapshot is None
            and not getattr(existing, other)
        ):
            budgets = {k: v for k, v in month.budgets.items() if k != budget_id}
            return month.model_copy(update={"budgets": budgets})

        base = existing or MonthBudgetState()
        budgets = {**month.budgets, budget_id: base.model_copy(update={flag: handled})}
        return month.model_copy(update={"budgets": budgets})

    return _update_month(state, ym, ctx, update)


@handles(SetBudgetCarryHandled)
def _set_carry_handled(state: AppState, action: SetBudgetCarryHandled, ctx: TransitionContext) -> AppState:
    return _set_budget_flag(
        state, _ym(action.ym), action.budget_id,
        "carry_over_handled", "carry_forward_handled", action.handled, ctx,
    )


@handles(SetBudgetCarryForwardHandled)
def _set_carry_forward_handled(
    state: AppState, action: SetBudgetCarryForwardHandled, ctx: TransitionContext
) -> AppState:
    return _set_budget_flag(
        state, _ym(action.ym), action.budget_id,
        "carry_forward_handled", "carry_over_handled", action.handled, ctx,
    )


@handles(AddBudgetExpense)
def _add_budget_expense(state: AppState, action: AddBudgetExpense, ctx: TransitionContext) -> AppState:
    draft = action.expense
    expense = BudgetExpense(
        id=new_id("exp"),
        date=_iso_date(draft.date),
        label=draft.label,
        amount_cents=_cents(draft.amount_cents, "amount_cents"),
    )

    def update(month: MonthData) -> MonthData:
        current = month.budgets.get(action.budget_id) or MonthBudgetState()
        updated = current.model_copy(update={"expenses": [expense, *current.expenses]})
        return month.model_copy(update={"budgets": {**month.budgets, action.budget_id: updated}})

    return _update_month(state, _ym(action.ym), ctx, update)


@handles(UpdateBudgetExpense)
def _update_budget_expense(state: AppState, action: UpdateBudgetExpense, ctx: TransitionContext) -> AppState:
    changes = {k: v for k, v in action.patch.model_dump(exclude_unset=True).items() if v is not None}
    if "amount_cents" in changes:
        changes["amount_cents"] = _cents(changes["amount_cents"], "amount_cents")
    if "date" in changes:
        changes["date"] = _iso_date(changes["date"])

    def update(month: MonthData) -> MonthData:
        current = month.budgets.get(action.budget_id)
        if current is None or not changes:
            return month
        if not any(e.id == action.expense_id for e in current.expenses):
            return month
        expenses = [
            e.model_copy(update=changes) if e.id == action.expense_id else e for e in current.expenses
        ]
        updated = current.model_copy(update={"expenses": expenses})
        return month.model_copy(update={"budgets": {**month.budgets, action.budget_id: updated}})

    return _update_month(state, _ym(action.ym), ctx, update)


@handles(RemoveBudgetExpense)
def _remove_budget_expense(state: AppState, action: RemoveBudgetExpense, ctx: TransitionContext) -> AppState:
    def update(month: MonthData) -> MonthData:
        current = month.budgets.get(action.budget_id)
        if current is None or not any(e.id == action.expense_id for e in current.expenses):
            return month
        expenses = [e for e in current.expenses if e.id != action.expense_id]
        updated = current.model_copy(update={"expenses": expenses})
        return month.model_copy(update={"budgets": {**month.budgets, action.budget_id: updated}})

    return _update_month(state, _ym(action.ym), ctx, update)


def reduce(
    state: AppState,
    action: Action,
    *,
    now: Optional[datetime] = None,
    today: Optional[Union[date, str]] = None,
) -> AppState:
    """Apply one action to the state document.

    Args:
        state: Current document.
        action: One of the action models of this module.
        now: Clock override for timestamps (tests, replays).
        today: Local date override for the automatic paid default.

    Returns:
        The new document, or ``state`` itself when nothing changed.

    Raises:
        ValidationError: If the action carries invalid input.
    """
    if isinstance(action, Hydrate):
        return action.state

    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise ValidationError("Unknown action", field="type", value=type(action).__name__)

    ctx = TransitionContext(stamp=now_iso(now), now=now, today=today)
    next_state = handler(state, action, ctx)
    if next_state is state or isinstance(action, EnsureMonth):
        return next_state

    logger.debug("state_transition", action=action.type)
    return next_state.model_copy(update={"modified_at": ctx.stamp})
