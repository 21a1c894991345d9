"""Tests for the monthbook command line."""

import json

import pytest

from monthbook_core.cli import build_parser, main, month_report, render_month
from monthbook_core.models import PaymentMode, Scope
from monthbook_core.seed import SEED_CHARGES


@pytest.fixture
def state_file(monkeypatch, tmp_path):
    path = tmp_path / "state.json"
    for name in ("MONTHBOOK_ENV", "MONTHBOOK_LOG_LEVEL", "MONTHBOOK_DATA_DIR", "MONTHBOOK_ENGINE_DEFAULT_MONTH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MONTHBOOK_STATE_FILE", str(path))
    monkeypatch.setenv("MONTHBOOK_ENGINE_AUTO_SAVINGS", "true")
    monkeypatch.chdir(tmp_path)
    return path


def _show_json(capsys, month="2025-10"):
    capsys.readouterr()
    assert main(["show", "--json", "--month", month]) == 0
    return json.loads(capsys.readouterr().out)


class TestParser:
    def test_month_argument_validated(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["show", "--month", "2025-1"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestInit:
    def test_writes_seed_document(self, state_file, capsys):
        assert main(["init"]) == 0

        record = json.loads(state_file.read_text(encoding="utf-8"))
        assert record["v"] == 1
        assert record["state"]["salaryCents"] == 300000
        assert len(record["state"]["charges"]) == len(SEED_CHARGES)
        assert "Created" in capsys.readouterr().out

    def test_refuses_to_overwrite(self, state_file, capsys):
        main(["init"])
        assert main(["init"]) == 1
        assert "already exists" in capsys.readouterr().err

    def test_force_overwrites(self, state_file):
        main(["init"])
        assert main(["init", "--force"]) == 0


class TestShow:
    def test_json_report(self, state_file, capsys):
        main(["init"])
        report = _show_json(capsys)

        assert report["ym"] == "2025-10"
        assert report["archived"] is False
        assert len(report["charges"]) == len(SEED_CHARGES)
        assert [b["name"] for b in report["budgets"]] == ["Budget perso", "Essence"]
        assert report["totals"]["salaryCents"] == 300000
        assert report["totals"]["moneyLeftAfterBudgetsCents"] == 0
        assert sum(a["totalCents"] for a in report["accounts"]) == report["totals"]["totalProvisionCents"]

    def test_falls_back_to_seed_without_writing(self, state_file, capsys):
        report = _show_json(capsys)

        assert report["totals"]["salaryCents"] == 300000
        assert not state_file.exists()

    def test_text_report(self, state_file, capsys):
        main(["init"])
        capsys.readouterr()
        assert main(["show", "--month", "2025-10"]) == 0

        out = capsys.readouterr().out
        assert "OCTOBRE 2025" in out
        assert "CHARGES COMMUNES" in out
        assert "Loyer" in out
        assert "ENVELOPPES" in out

    def test_auto_savings_disabled(self, state_file, monkeypatch, capsys):
        main(["init"])
        monkeypatch.setenv("MONTHBOOK_ENGINE_AUTO_SAVINGS", "false")
        report = _show_json(capsys)

        savings = next(c for c in report["charges"] if c["name"] == "Virement épargne")
        assert savings["amountCents"] == 10000

    def test_invalid_config_exit_code(self, state_file, monkeypatch, capsys):
        monkeypatch.setenv("MONTHBOOK_LOG_LEVEL", "loud")
        assert main(["show"]) == 2
        assert "Invalid configuration" in capsys.readouterr().err


class TestArchive:
    def test_archive_then_unarchive(self, state_file, capsys):
        main(["init"])

        assert main(["archive", "2025-10"]) == 0
        assert "archivé" in capsys.readouterr().out
        assert _show_json(capsys)["archived"] is True

        assert main(["unarchive", "2025-10"]) == 0
        assert _show_json(capsys)["archived"] is False

    def test_archived_month_survives_amount_change(self, state_file, capsys):
        main(["init"])
        main(["archive", "2025-10"])
        before = _show_json(capsys)

        savings = next(c for c in before["charges"] if c["name"] == "Virement épargne")
        assert savings["amountCents"] == 10000

        record = json.loads(state_file.read_text(encoding="utf-8"))
        for charge in record["state"]["charges"]:
            charge["amountCents"] += 100
        state_file.write_text(json.dumps(record), encoding="utf-8")

        after = _show_json(capsys)
        assert [c["amountCents"] for c in after["charges"]] == [c["amountCents"] for c in before["charges"]]


class TestMonthReport:
    def test_report_shape(self, make_state, make_charge, make_budget):
        state = make_state(
            salary_cents=200000,
            charges=[
                make_charge(
                    id="chg_rent",
                    name="Loyer",
                    amount_cents=100000,
                    account_id="JOINT_MAIN",
                    scope=Scope.SHARED,
                    split_percent=50,
                    payment=PaymentMode.AUTO,
                )
            ],
            budgets=[make_budget()],
        )

        report = month_report(state, "2025-10")

        assert set(report) == {"ym", "archived", "charges", "budgets", "totals", "accounts"}
        assert report["charges"][0]["myShareCents"] == 50000
        assert report["budgets"][0]["fundingCents"] == 20000
        assert report["totals"]["moneyLeftAfterBudgetsCents"] == 130000

    def test_render_lists_scopes(self, make_state, make_charge):
        state = make_state(salary_cents=100000, charges=[make_charge(name="Mutuelle", amount_cents=6000)])

        text = render_month(month_report(state, "2025-10"))

        assert "CHARGES PERSO" in text
        assert "CHARGES COMMUNES" not in text
        assert "60,00 €" in text
        assert "Reste à vivre" in text
