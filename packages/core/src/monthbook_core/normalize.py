"""Schema normalizer for stored state documents.

Older documents predate several fields and used French enum values. The
normalizer brings any raw JSON tree up to the current shape before it is
validated into an ``AppState``:

- ``modifiedAt`` back-filled from the latest month timestamp (else now)
- a finite integer ``salaryCents``
- the default accounts when none are stored; account names equal their ids;
  at least one active account
- legacy enum values: ``commun`` -> ``shared``, ``perso`` -> ``personal``,
  ``manuel`` -> ``manual``
- charge ``sortOrder`` per scope, by day of month then name (10, 20, ...)
- archived snapshot ``sortOrder`` from the live definition, else by day then
  name

Normalization is idempotent: running it on its own output changes nothing.
"""

import copy
from datetime import datetime
from typing import Any, Optional

import structlog

from .exceptions import ValidationError
from .models import DEFAULT_SORT_ORDER, AppState
from .money import is_finite_number
from .months import now_iso

logger = structlog.get_logger()

SCOPE_ALIASES = {"commun": "shared", "perso": "personal"}
PAYMENT_ALIASES = {"manuel": "manual"}
SCOPES = ("shared", "personal")

DEFAULT_ACCOUNTS = [
    {"id": "PERSONAL_MAIN", "name": "PERSONAL_MAIN", "kind": "personal", "active": True},
    {"id": "PERSONAL_SAVINGS", "name": "PERSONAL_SAVINGS", "kind": "personal", "active": True},
    {"id": "JOINT_MAIN", "name": "JOINT_MAIN", "kind": "shared", "active": True},
]


def _scope(value: Any) -> str:
    if not isinstance(value, str):
        return "personal"
    value = SCOPE_ALIASES.get(value, value)
    return value if value in SCOPES else "personal"


def _payment(value: Any) -> str:
    if not isinstance(value, str):
        return "manual"
    value = PAYMENT_ALIASES.get(value, value)
    return "auto" if value == "auto" else "manual"


def _has_rank(item: dict) -> bool:
    value = item.get("sortOrder")
    return isinstance(value, int) and not isinstance(value, bool)


def _day_name_key(item: dict) -> tuple:
    day = item.get("dayOfMonth")
    return (day if isinstance(day, int) else 1, str(item.get("name", "")))


def _normalize_enums(item: dict, changes: set[str], where: str) -> None:
    """Map legacy scope/payment values in place."""
    scope = _scope(item.get("scope"))
    if item.get("scope") != scope:
        item["scope"] = scope
        changes.add(f"{where}_scope")
    if where in ("charge", "charge_snapshot"):
        payment = _payment(item.get("payment"))
        if item.get("payment") != payment:
            item["payment"] = payment
            changes.add(f"{where}_payment")


def _latest_month_stamp(months: dict) -> Optional[str]:
    stamps = []
    for month in months.values():
        if not isinstance(month, dict):
            continue
        for key in ("updatedAt", "createdAt"):
            value = month.get(key)
            if isinstance(value, str) and value:
                stamps.append(value)
    return max(stamps) if stamps else None


def _require_dict_items(items: Any, where: str) -> None:
    if not all(isinstance(item, dict) for item in items):
        raise ValidationError(
            f"Malformed {where} entry",
            field=where,
            constraint="Entries must be JSON objects",
        )


def _require_string_ids(items: list, where: str) -> None:
    for item in items:
        if not isinstance(item.get("id", ""), str):
            raise ValidationError(
                f"Malformed {where} id",
                field=f"{where}.id",
                value=item.get("id"),
                constraint="Ids must be strings",
            )


def _check_structure(doc: Any) -> None:
    """Reject documents whose shape the normalizer cannot repair.

    Raises:
        ValidationError: If the document, a definition list, a month record
            or a month override is not the expected kind of JSON value.
    """
    if not isinstance(doc, dict):
        raise ValidationError("State document must be a JSON object", field="state")

    if isinstance(doc.get("accounts"), list):
        _require_dict_items(doc["accounts"], "accounts")
        _require_string_ids(doc["accounts"], "accounts")
    for key in ("charges", "budgets"):
        items = doc.get(key)
        if items is None:
            continue
        if not isinstance(items, list):
            raise ValidationError(f"{key} must be a list", field=key, constraint="JSON array")
        _require_dict_items(items, key)
        _require_string_ids(items, key)

    months = doc.get("months")
    if not isinstance(months, dict):
        return
    _require_dict_items(months.values(), "months")
    for month in months.values():
        for key in ("charges", "budgets"):
            overrides = month.get(key)
            if overrides is None:
                continue
            if not isinstance(overrides, dict):
                raise ValidationError(f"Month {key} must be an object", field=f"months.{key}")
            _require_dict_items(overrides.values(), f"months.{key}")


def _normalize_accounts(doc: dict, changes: set[str]) -> None:
    accounts = doc.get("accounts")
    if not isinstance(accounts, list) or not accounts:
        doc["accounts"] = copy.deepcopy(DEFAULT_ACCOUNTS)
        changes.add("default_accounts")
        return

    for account in accounts:
        account_id = account.get("id", "")
        if account.get("name") != account_id:
            account["name"] = account_id
            changes.add("account_name")
        if not isinstance(account.get("active"), bool):
            account["active"] = True
            changes.add("account_active")
        kind = "shared" if account.get("kind") in ("shared", "commun") else "personal"
        if account.get("kind") != kind:
            account["kind"] = kind
            changes.add("account_kind")

    if not any(a["active"] for a in accounts):
        accounts[0]["active"] = True
        changes.add("active_account")


def _normalize_charges(doc: dict, changes: set[str]) -> None:
    charges = doc["charges"] = doc.get("charges") or []
    for charge in charges:
        _normalize_enums(charge, changes, "charge")

    if all(_has_rank(c) for c in charges):
        return
    changes.add("charge_sort_order")
    ranks: dict[str, int] = {}
    for scope in SCOPES:
        group = sorted((c for c in charges if c["scope"] == scope), key=_day_name_key)
        for index, charge in enumerate(group):
            ranks[charge.get("id")] = (index + 1) * 10
    for charge in charges:
        charge["sortOrder"] = ranks.get(charge.get("id"), DEFAULT_SORT_ORDER)


def _normalize_months(doc: dict, changes: set[str]) -> None:
    ranks = {c.get("id"): c["sortOrder"] for c in doc.get("charges", [])}
    for month in doc.setdefault("months", {}).values():
        for override in (month.get("budgets") or {}).values():
            if isinstance(override.get("snapshot"), dict):
                _normalize_enums(override["snapshot"], changes, "budget_snapshot")

        snapshots = {
            charge_id: override["snapshot"]
            for charge_id, override in (month.get("charges") or {}).items()
            if isinstance(override.get("snapshot"), dict)
        }
        for snapshot in snapshots.values():
            _normalize_enums(snapshot, changes, "charge_snapshot")

        missing = [charge_id for charge_id, s in snapshots.items() if not _has_rank(s)]
        if not missing:
            continue
        changes.add("snapshot_sort_order")
        ordered = sorted(snapshots, key=lambda charge_id: _day_name_key(snapshots[charge_id]))
        fallback = {charge_id: (index + 1) * 10 for index, charge_id in enumerate(ordered)}
        for charge_id in missing:
            snapshots[charge_id]["sortOrder"] = ranks.get(charge_id, fallback[charge_id])


def normalize_document(raw: dict, *, now: Optional[datetime] = None) -> dict:
    """Bring a raw state document up to the current schema.

    Args:
        raw: Parsed JSON document. It is not modified.
        now: Clock override used when no timestamp can be recovered.

    Returns:
        A normalized copy of the document.
    """
    _check_structure(raw)
    doc = copy.deepcopy(raw)
    changes: set[str] = set()

    if doc.get("version") != 1:
        doc["version"] = 1
        changes.add("version")

    months = doc.get("months")
    if not isinstance(months, dict):
        doc["months"] = months = {}
        changes.add("months")

    if not isinstance(doc.get("modifiedAt"), str) or not doc["modifiedAt"]:
        doc["modifiedAt"] = _latest_month_stamp(months) or now_iso(now)
        changes.add("modified_at")

    salary = doc.get("salaryCents")
    if not is_finite_number(salary):
        doc["salaryCents"] = 0
        changes.add("salary")
    elif not isinstance(salary, int):
        doc["salaryCents"] = int(round(salary))
        changes.add("salary")

    _normalize_accounts(doc, changes)
    _normalize_charges(doc, changes)
    doc["budgets"] = doc.get("budgets") or []
    for budget in doc["budgets"]:
        _normalize_enums(budget, changes, "budget")
    _normalize_months(doc, changes)

    if changes:
        logger.info("document_normalized", changes=sorted(changes))
    return doc


def load_state(raw: dict, *, now: Optional[datetime] = None) -> AppState:
    """Normalize a raw document and validate it into an ``AppState``.

    Raises:
        ValidationError: If the document has a shape the normalizer cannot repair.
        pydantic.ValidationError: If the normalized document is still invalid.
    """
    return AppState.model_validate(normalize_document(raw, now=now))
