"""Tests for the JSON state store."""

import json

import pytest

from monthbook_core.exceptions import StorageError
from monthbook_core.storage import RECORD_VERSION, JsonStateStore


@pytest.fixture
def store(tmp_path):
    return JsonStateStore(tmp_path / "state.json")


@pytest.fixture
def state(make_state, make_charge, make_budget):
    return make_state(
        salary_cents=300000,
        charges=[make_charge(name="Électricité")],
        budgets=[make_budget()],
    )


class TestLoad:
    """Unusable records load as None."""

    def test_missing_file(self, store):
        assert store.exists() is False
        assert store.load() is None
        assert store.modified_at() is None

    def test_unparseable_json(self, store):
        store.path.write_text("{not json", encoding="utf-8")
        assert store.load() is None

    def test_wrong_version_tag(self, store, state):
        record = {"v": 2, "modifiedAt": state.modified_at, "state": state.to_document()}
        store.path.write_text(json.dumps(record), encoding="utf-8")
        assert store.load() is None

    def test_not_an_envelope(self, store):
        store.path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
        assert store.read_record() is None

    def test_missing_state(self, store):
        store.path.write_text(json.dumps({"v": RECORD_VERSION}), encoding="utf-8")
        assert store.load() is None

    def test_invalid_document(self, store):
        record = {"v": RECORD_VERSION, "state": {"charges": [{"id": "c1"}]}}
        store.path.write_text(json.dumps(record), encoding="utf-8")
        assert store.load() is None

    @pytest.mark.parametrize(
        "document",
        [
            {"charges": [None]},
            {"accounts": ["PERSONAL_MAIN"]},
            {"budgets": {"b1": {}}},
            {"months": {"2025-10": None}},
            {"months": {"2025-10": {"charges": {"c1": None}}}},
            {"months": {"2025-10": {"budgets": []}}},
            {"charges": [{"id": ["c1"], "scope": "commun"}]},
        ],
    )
    def test_malformed_structure(self, store, document):
        """Records whose shape cannot be repaired load as None instead of raising."""
        store.path.write_text(json.dumps({"v": RECORD_VERSION, "state": document}), encoding="utf-8")
        assert store.load() is None

    def test_legacy_document_is_normalized(self, store):
        record = {
            "v": RECORD_VERSION,
            "state": {
                "salaryCents": 100000,
                "charges": [
                    {"id": "c1", "name": "Loyer", "amountCents": 50000, "accountId": "JOINT_MAIN",
                     "scope": "commun", "payment": "manuel"},
                ],
            },
        }
        store.path.write_text(json.dumps(record), encoding="utf-8")

        loaded = store.load()

        assert loaded is not None
        assert loaded.charge("c1").scope.value == "shared"
        assert loaded.charge("c1").sort_order == 10
        assert len(loaded.accounts) == 3


class TestSave:
    def test_round_trip(self, store, state):
        store.save(state)

        assert store.exists()
        assert store.load() == state

    def test_envelope(self, store, state):
        store.save(state)
        record = json.loads(store.path.read_text(encoding="utf-8"))

        assert record["v"] == RECORD_VERSION
        assert record["modifiedAt"] == state.modified_at
        assert record["state"]["salaryCents"] == 300000
        assert record["state"]["charges"][0]["name"] == "Électricité"
        assert store.modified_at() == state.modified_at

    def test_creates_parent_directory(self, tmp_path, state):
        store = JsonStateStore(tmp_path / "nested" / "dir" / "state.json")
        store.save(state)
        assert store.exists()

    def test_no_temporary_files_left(self, store, state):
        store.save(state)
        store.save(state)
        assert [p.name for p in store.path.parent.iterdir()] == ["state.json"]

    def test_write_failure_raises_storage_error(self, tmp_path, state):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = JsonStateStore(blocker / "state.json")

        with pytest.raises(StorageError) as exc_info:
            store.save(state)

        assert exc_info.value.operation == "save"
        assert exc_info.value.path == str(blocker / "state.json")
