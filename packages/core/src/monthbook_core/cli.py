"""Command-line front-end.

Usage:
    monthbook init
    monthbook show --month 2025-10
    monthbook show --json
    monthbook archive 2025-09
    monthbook unarchive 2025-09

The state file location comes from the configuration (MONTHBOOK_DATA_DIR or
MONTHBOOK_STATE_FILE).
"""

import argparse
import json
import sys
from datetime import date
from typing import Optional

import structlog

from .budgets import resolve_budgets
from .charges import resolve_charges
from .config import MonthbookConfig, configure_logging, load_config
from .exceptions import MonthbookError
from .models import AppState, Scope
from .money import format_eur
from .months import is_valid_ym, month_label, ym_from_date
from .reducer import ArchiveMonth, UnarchiveMonth, reduce
from .seed import build_seed_state
from .storage import JsonStateStore
from .totals import account_totals, month_totals

logger = structlog.get_logger()


def month_report(state: AppState, ym: str, *, auto_savings: bool = True) -> dict:
    """Resolve a month once and gather rows and totals as a JSON tree."""
    budgets = resolve_budgets(state, ym)
    charges = resolve_charges(state, ym, auto_savings=auto_savings, budgets=budgets)
    totals = month_totals(state, ym, charges=charges, budgets=budgets)
    accounts = account_totals(state, ym, charges=charges, budgets=budgets)
    month = state.month(ym)

    def dump(model):
        return model.model_dump(by_alias=True, mode="json", exclude_none=True)

    return {
        "ym": ym,
        "archived": bool(month is not None and month.archived),
        "charges": [dump(c) for c in charges],
        "budgets": [dump(b) for b in budgets],
        "totals": dump(totals),
        "accounts": [dump(a) for a in accounts],
    }


def render_month(report: dict) -> str:
    """Plain-text rendering of a month report."""
    lines = []
    title = month_label(report["ym"])
    if report["archived"]:
        title += " (archivé)"
    lines.append("=" * 70)
    lines.append(title.upper())
    lines.append("=" * 70)

    for scope, heading in ((Scope.SHARED.value, "CHARGES COMMUNES"), (Scope.PERSONAL.value, "CHARGES PERSO")):
        rows = [c for c in report["charges"] if c["scope"] == scope]
        if not rows:
            continue
        lines.append("")
        lines.append(heading)
        lines.append("-" * 40)
        for row in rows:
            mark = "x" if row["paid"] else " "
            lines.append(
                f"  [{mark}] {row['dueDate'][-2:]}  {row['name']:<28} "
                f"{format_eur(row['amountCents']):>14}  {row['accountName']}"
            )

    if report["budgets"]:
        lines.append("")
        lines.append("ENVELOPPES")
        lines.append("-" * 40)
        for row in report["budgets"]:
            lines.append(
                f"  {row['name']:<32} à verser {format_eur(row['fundingCents']):>14}"
                f"  reste {format_eur(row['remainingCents']):>14}"
            )

    totals = report["totals"]
    lines.append("")
    lines.append("TOTAUX")
    lines.append("-" * 40)
    lines.append(f"  Salaire                      {format_eur(totals['salaryCents']):>14}")
    lines.append(f"  Mes charges                  {format_eur(totals['totalMyChargesCents']):>14}")
    lines.append(f"  Mes enveloppes               {format_eur(totals['totalBudgetsCents']):>14}")
    lines.append(f"  Reste à vivre                {format_eur(totals['moneyLeftAfterBudgetsCents']):>14}")
    lines.append(f"  À payer                      {totals['pendingCount']:>14}")

    if report["accounts"]:
        lines.append("")
        lines.append("À PROVISIONNER PAR COMPTE")
        lines.append("-" * 40)
        for account in report["accounts"]:
            lines.append(f"  {account['accountName']:<28} {format_eur(account['totalCents']):>14}")
    return "\n".join(lines)


def _load(store: JsonStateStore) -> AppState:
    state = store.load()
    if state is None:
        logger.info("state_missing_using_seed", path=str(store.path))
        state = build_seed_state()
    return state


def cmd_show(args: argparse.Namespace, config: MonthbookConfig, store: JsonStateStore) -> int:
    ym = args.month or config.engine.default_month or ym_from_date(date.today())
    report = month_report(_load(store), ym, auto_savings=config.engine.auto_savings)
    if args.json:
        print(json.dumps(report, ensure_ascii=False, indent=2))
    else:
        print(render_month(report))
    return 0


def cmd_archive(args: argparse.Namespace, config: MonthbookConfig, store: JsonStateStore) -> int:
    state = _load(store)
    action = ArchiveMonth(ym=args.month) if args.command == "archive" else UnarchiveMonth(ym=args.month)
    store.save(reduce(state, action))
    print(f"{month_label(args.month)}: {'archivé' if args.command == 'archive' else 'rouvert'}")
    return 0


def cmd_init(args: argparse.Namespace, config: MonthbookConfig, store: JsonStateStore) -> int:
    if store.exists() and not args.force:
        print(f"State file already exists: {store.path} (use --force to overwrite)", file=sys.stderr)
        return 1
    store.save(build_seed_state())
    print(f"Created {store.path}")
    return 0


def _ym_arg(value: str) -> str:
    if not is_valid_ym(value):
        raise argparse.ArgumentTypeError(f"invalid month {value!r}, expected YYYY-MM")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monthbook",
        description="Monthly charges and budget envelopes for a household",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    show = subparsers.add_parser("show", help="Print a month's charges, envelopes and totals")
    show.add_argument(
        "--month", "-m",
        type=_ym_arg,
        default=None,
        help="Month to show as YYYY-MM (default: current month)",
    )
    show.add_argument(
        "--json",
        action="store_true",
        help="Output the resolved month as JSON",
    )
    show.set_defaults(handler=cmd_show)

    for name, help_text in (("archive", "Freeze a month"), ("unarchive", "Reopen an archived month")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("month", type=_ym_arg, help="Month as YYYY-MM")
        sub.set_defaults(handler=cmd_archive)

    init = subparsers.add_parser("init", help="Write a starter state file")
    init.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing state file",
    )
    init.set_defaults(handler=cmd_init)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the ``monthbook`` command."""
    args = build_parser().parse_args(argv)
    try:
        config = load_config()
    except MonthbookError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    configure_logging(config)
    store = JsonStateStore(config.state_path)

    logger.debug("cli_command", command=args.command, state_path=str(store.path))
    try:
        return args.handler(args, config, store)
    except MonthbookError as e:
        logger.error("cli_command_failed", command=args.command, error=e.message, details=e.details)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
