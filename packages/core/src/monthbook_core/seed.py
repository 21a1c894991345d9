"""Starter document for a first run.

A typical household: a joint account for shared bills, a personal current
account and a savings account fed by the automatic savings transfer.
"""

from datetime import datetime, timezone
from typing import Optional

from .models import (
    Account,
    AccountDestination,
    AccountKind,
    AppState,
    Budget,
    Charge,
    MonthData,
    PaymentMode,
    Scope,
)
from .money import euros_to_cents
from .months import now_iso, ym_from_date
from .reducer import new_id

SEED_SALARY_EUROS = 3000

SEED_ACCOUNTS = [
    ("PERSONAL_MAIN", AccountKind.PERSONAL),
    ("PERSONAL_SAVINGS", AccountKind.PERSONAL),
    ("JOINT_MAIN", AccountKind.SHARED),
]

# (name, euros, sort order, day, account, scope, payment)
SEED_CHARGES = [
    ("Loyer", 1200, 10, 5, "JOINT_MAIN", Scope.SHARED, PaymentMode.AUTO),
    ("Électricité", 110, 20, 10, "JOINT_MAIN", Scope.SHARED, PaymentMode.AUTO),
    ("Internet", 35.99, 30, 12, "JOINT_MAIN", Scope.SHARED, PaymentMode.AUTO),
    ("Assurance habitation", 24.9, 40, 15, "JOINT_MAIN", Scope.SHARED, PaymentMode.AUTO),
    ("Courses", 450, 50, 28, "JOINT_MAIN", Scope.SHARED, PaymentMode.MANUAL),
    ("Virement épargne", 100, 10, 1, "PERSONAL_MAIN", Scope.PERSONAL, PaymentMode.AUTO),
    ("Transport", 75, 20, 2, "PERSONAL_MAIN", Scope.PERSONAL, PaymentMode.AUTO),
    ("Téléphone", 19.99, 30, 5, "PERSONAL_MAIN", Scope.PERSONAL, PaymentMode.AUTO),
    ("Mutuelle", 60, 40, 7, "PERSONAL_MAIN", Scope.PERSONAL, PaymentMode.AUTO),
    ("Remboursement", 120, 50, 15, "PERSONAL_MAIN", Scope.PERSONAL, PaymentMode.MANUAL),
]

SEED_BUDGETS = [
    ("Budget perso", 200, "PERSONAL_MAIN"),
    ("Essence", 120, "PERSONAL_MAIN"),
]


def build_seed_state(now: Optional[datetime] = None) -> AppState:
    """Build the starter document, with the current month already created."""
    moment = now or datetime.now(timezone.utc)
    stamp = now_iso(moment)

    accounts = [Account(id=account_id, name=account_id, kind=kind) for account_id, kind in SEED_ACCOUNTS]

    charges = []
    for name, euros, sort_order, day, account_id, scope, payment in SEED_CHARGES:
        destination = None
        if name == "Virement épargne":
            destination = AccountDestination(account_id="PERSONAL_SAVINGS")
        charges.append(
            Charge(
                id=new_id("chg"),
                name=name,
                amount_cents=euros_to_cents(euros),
                sort_order=sort_order,
                day_of_month=day,
                account_id=account_id,
                scope=scope,
                split_percent=50 if scope == Scope.SHARED else None,
                payment=payment,
                destination=destination,
            )
        )

    budgets = [
        Budget(id=new_id("bud"), name=name, amount_cents=euros_to_cents(euros), account_id=account_id)
        for name, euros, account_id in SEED_BUDGETS
    ]

    ym = ym_from_date(moment)
    return AppState(
        modified_at=stamp,
        salary_cents=euros_to_cents(SEED_SALARY_EUROS),
        accounts=accounts,
        charges=charges,
        budgets=budgets,
        months={ym: MonthData.empty(ym, stamp)},
    )
