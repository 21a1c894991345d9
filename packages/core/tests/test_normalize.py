"""Tests for the stored document normalizer."""

import pytest

from monthbook_core.exceptions import ValidationError
from monthbook_core.models import AccountKind, PaymentMode, Scope
from monthbook_core.normalize import DEFAULT_ACCOUNTS, load_state, normalize_document


@pytest.fixture
def legacy_document() -> dict:
    """A document saved by an older version with French enum values."""
    return {
        "version": 1,
        "salaryCents": 300000,
        "accounts": [
            {"id": "PERSONAL_MAIN", "name": "Compte courant", "kind": "perso"},
            {"id": "JOINT_MAIN", "name": "JOINT_MAIN", "kind": "commun", "active": True},
        ],
        "charges": [
            {"id": "c1", "name": "Loyer", "amountCents": 120000, "dayOfMonth": 5,
             "accountId": "JOINT_MAIN", "scope": "commun", "splitPercent": 50, "payment": "auto",
             "active": True},
            {"id": "c2", "name": "Internet", "amountCents": 3599, "dayOfMonth": 5,
             "accountId": "JOINT_MAIN", "scope": "commun", "payment": "auto", "active": True},
            {"id": "c3", "name": "Courses", "amountCents": 45000, "dayOfMonth": 2,
             "accountId": "JOINT_MAIN", "scope": "commun", "payment": "manuel", "active": True},
            {"id": "c4", "name": "Téléphone", "amountCents": 1999, "dayOfMonth": 5,
             "accountId": "PERSONAL_MAIN", "scope": "perso", "payment": "auto", "active": True},
        ],
        "budgets": [
            {"id": "b1", "name": "Essence", "amountCents": 12000, "accountId": "PERSONAL_MAIN",
             "scope": "perso", "active": True},
        ],
        "months": {
            "2025-08": {
                "ym": "2025-08",
                "archived": True,
                "createdAt": "2025-08-01T07:00:00.000Z",
                "updatedAt": "2025-09-01T07:00:00.000Z",
                "charges": {
                    "c1": {"paid": True, "snapshot": {"name": "Loyer", "amountCents": 110000, "dayOfMonth": 5,
                                                      "accountId": "JOINT_MAIN", "scope": "commun",
                                                      "payment": "auto"}},
                    "old": {"paid": True, "snapshot": {"name": "Abonnement", "amountCents": 999, "dayOfMonth": 1,
                                                       "accountId": "PERSONAL_MAIN", "scope": "perso",
                                                       "payment": "manuel"}},
                },
                "budgets": {},
            },
            "2025-09": {
                "ym": "2025-09",
                "archived": False,
                "createdAt": "2025-09-01T07:00:00.000Z",
                "updatedAt": "2025-09-20T18:30:00.000Z",
                "charges": {},
                "budgets": {},
            },
        },
    }


class TestNormalizeDocument:
    """Tests for schema back-fills."""

    def test_modified_at_from_latest_month_stamp(self, legacy_document):
        doc = normalize_document(legacy_document)
        assert doc["modifiedAt"] == "2025-09-20T18:30:00.000Z"

    def test_modified_at_defaults_to_now(self, now):
        doc = normalize_document({"months": {}}, now=now)
        assert doc["modifiedAt"] == "2025-10-02T08:00:00.000Z"

    def test_legacy_enum_values_are_mapped(self, legacy_document):
        doc = normalize_document(legacy_document)

        assert [a["kind"] for a in doc["accounts"]] == ["personal", "shared"]
        assert {c["scope"] for c in doc["charges"]} == {"shared", "personal"}
        assert doc["charges"][2]["payment"] == "manual"
        assert doc["budgets"][0]["scope"] == "personal"
        snapshot = doc["months"]["2025-08"]["charges"]["old"]["snapshot"]
        assert snapshot["scope"] == "personal"
        assert snapshot["payment"] == "manual"

    def test_account_names_and_activity(self, legacy_document):
        doc = normalize_document(legacy_document)
        assert doc["accounts"][0]["name"] == "PERSONAL_MAIN"
        assert doc["accounts"][0]["active"] is True

    def test_default_accounts_when_missing(self):
        doc = normalize_document({"accounts": []})
        assert [a["id"] for a in doc["accounts"]] == [a["id"] for a in DEFAULT_ACCOUNTS]

    def test_one_account_reactivated(self):
        doc = normalize_document({"accounts": [{"id": "A", "active": False}, {"id": "B", "active": False}]})
        assert [a["active"] for a in doc["accounts"]] == [True, False]

    def test_charge_sort_order_by_day_then_name(self, legacy_document):
        doc = normalize_document(legacy_document)
        ranks = {c["id"]: c["sortOrder"] for c in doc["charges"]}
        # Shared: Courses (2), Internet (5), Loyer (5); personal: Téléphone.
        assert ranks == {"c3": 10, "c2": 20, "c1": 30, "c4": 10}

    def test_existing_sort_orders_are_kept(self, legacy_document):
        for index, charge in enumerate(legacy_document["charges"]):
            charge["sortOrder"] = 100 + index
        doc = normalize_document(legacy_document)
        assert [c["sortOrder"] for c in doc["charges"]] == [100, 101, 102, 103]

    def test_snapshot_sort_order(self, legacy_document):
        """Snapshots take the live rank, else a day/name rank within the month."""
        doc = normalize_document(legacy_document)
        charges = doc["months"]["2025-08"]["charges"]
        assert charges["c1"]["snapshot"]["sortOrder"] == 30
        assert charges["old"]["snapshot"]["sortOrder"] == 10

    def test_bad_salary_reset(self):
        assert normalize_document({"salaryCents": "lots"})["salaryCents"] == 0
        assert normalize_document({"salaryCents": 1234.6})["salaryCents"] == 1235

    def test_input_not_modified(self, legacy_document):
        normalize_document(legacy_document)
        assert "modifiedAt" not in legacy_document
        assert legacy_document["charges"][0]["scope"] == "commun"

    def test_idempotent(self, legacy_document, now):
        once = normalize_document(legacy_document, now=now)
        assert normalize_document(once, now=now) == once


class TestLoadState:
    def test_loads_legacy_document(self, legacy_document):
        state = load_state(legacy_document)

        assert state.account("JOINT_MAIN").kind == AccountKind.SHARED
        assert state.charge("c3").payment == PaymentMode.MANUAL
        assert state.charge("c1").scope == Scope.SHARED
        assert state.month("2025-08").charges["old"].snapshot.sort_order == 10

    def test_empty_document_loads(self, now):
        state = load_state({}, now=now)
        assert state.salary_cents == 0
        assert len(state.accounts) == 3
        assert state.modified_at == "2025-10-02T08:00:00.000Z"


class TestMalformedDocuments:
    """Shapes the normalizer refuses instead of guessing."""

    @pytest.mark.parametrize(
        "document,field",
        [
            ([], "state"),
            ({"charges": [None]}, "charges"),
            ({"accounts": [42]}, "accounts"),
            ({"budgets": "none"}, "budgets"),
            ({"months": {"2025-10": None}}, "months"),
            ({"months": {"2025-10": {"charges": []}}}, "months.charges"),
            ({"months": {"2025-10": {"budgets": {"b1": "x"}}}}, "months.budgets"),
            ({"charges": [{"id": 7}]}, "charges.id"),
        ],
    )
    def test_raises_validation_error(self, document, field):
        with pytest.raises(ValidationError) as exc_info:
            normalize_document(document)
        assert exc_info.value.field == field

    def test_null_lists_are_filled(self, now):
        doc = normalize_document({"charges": None, "budgets": None, "months": {"2025-10": {"charges": None}}}, now=now)
        assert doc["charges"] == []
        assert doc["budgets"] == []

    def test_non_string_enum_values(self):
        doc = normalize_document({"charges": [{"id": "c1", "scope": ["commun"], "payment": {"x": 1}}]})
        assert doc["charges"][0]["scope"] == "personal"
        assert doc["charges"][0]["payment"] == "manual"
