from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from chargerecon.app import initialise_database, list_enabled_plugins, run_ledger_audit
from chargerecon.config import configure_logging
from chargerecon.domain.rates import format_money

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from chargerecon.domain.charges import AuditReport, VerificationResult

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Charge plugin reconciliation tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("plugins", help="List enabled charge plugins")

    init_db = subparsers.add_parser("init-db", help="Create the charge schema")
    init_db.add_argument(
        "--database-uri",
        type=str,
        help="SQLAlchemy database URI (defaults to DATABASE_URI or the data dir)",
    )

    audit = subparsers.add_parser("audit", help="Verify stored plugin entries for drift")
    audit.add_argument(
        "--plugin",
        type=str,
        help="Only audit entries owned by this plugin id",
    )

    return parser.parse_args(list(argv))


def _format_discrepancy(result: VerificationResult) -> str:
    expected = format_money(result.expected_amount) if result.expected_amount is not None else "-"
    return (
        f"{result.charge_plugin} {result.charge_plugin_key} "
        f"(actual {format_money(result.actual_amount)}, expected {expected}): "
        + "; ".join(result.discrepancies)
    )


def _print_report(report: AuditReport) -> None:
    for result in report.invalid:
        print(_format_discrepancy(result))  # noqa: T201
    print(  # noqa: T201
        f"Checked {report.checked} entries: {report.valid_count} valid, "
        f"{len(report.invalid)} with discrepancies"
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "plugins":
            for plugin in asyncio.run(list_enabled_plugins()):
                metadata = plugin.metadata
                triggers = ", ".join(sorted(metadata.triggers))
                print(f"{metadata.id}\t{metadata.name}\t[{triggers}]")  # noqa: T201
        elif parsed_args.command == "init-db":
            initialise_database(database_uri=parsed_args.database_uri)
        elif parsed_args.command == "audit":
            report = asyncio.run(run_ledger_audit(plugin_id=parsed_args.plugin))
            _print_report(report)
            if report.invalid:
                sys.exit(1)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except SystemExit:
        raise
    except Exception:
        log.exception("Fatal error while running %s", parsed_args.command)
        sys.exit(2)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
