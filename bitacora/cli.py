"""Command line entry point for ingesting transaction notification emails."""
import argparse
from datetime import datetime, timezone
from pathlib import Path

from bitacora.core.logging import configure_logging
from bitacora.pipeline import DEFAULT_WORKSHEET, run_pipeline


def _timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI entry point."""

    parser = argparse.ArgumentParser(description="Ingest Binance transaction emails")
    parser.add_argument(
        "--emails-dir",
        type=Path,
        default=Path("sample_data/emails"),
        help="Directory containing exported .eml notification emails",
    )
    parser.add_argument(
        "--ledger",
        type=Path,
        default=Path("output/ledger.sqlite3"),
        help="SQLite file recording which messages were already processed",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("output/transactions.csv"),
        help="CSV file to write extracted transactions to",
    )
    parser.add_argument(
        "--sink",
        choices=["csv", "sheets", "excel"],
        default="csv",
        help="Where to forward extracted rows after writing the CSV",
    )
    parser.add_argument(
        "--spreadsheet-id",
        help="Google Sheets spreadsheet ID for the sheets sink",
    )
    parser.add_argument(
        "--worksheet",
        default=DEFAULT_WORKSHEET,
        help="Worksheet title inside the Google Sheets document",
    )
    parser.add_argument(
        "--service-account",
        type=Path,
        help="Path to a Google service account JSON key used for Sheets pushes",
    )
    parser.add_argument(
        "--excel-output",
        type=Path,
        default=Path("output/transactions.xlsx"),
        help="Excel file to write when --sink=excel",
    )
    parser.add_argument(
        "--customers",
        type=Path,
        help="JSON customer directory used for the Customer column and digests",
    )
    parser.add_argument(
        "--notify",
        action="store_true",
        help="Send per-customer daily digests through Telegram",
    )
    parser.add_argument("--since", type=_timestamp, help="Only ingest messages received at or after this ISO time")
    parser.add_argument("--until", type=_timestamp, help="Only ingest messages received at or before this ISO time")
    return parser


def main() -> None:
    """Entrypoint for running the ingestion from the command line."""

    configure_logging()
    args = build_parser().parse_args()
    result = run_pipeline(
        args.emails_dir,
        args.output,
        ledger_path=args.ledger,
        sink=args.sink,
        spreadsheet_id=args.spreadsheet_id,
        worksheet_title=args.worksheet,
        service_account_path=args.service_account,
        excel_path=args.excel_output,
        customers_path=args.customers,
        notify=args.notify,
        since=args.since,
        until=args.until,
    )
    print(result.summary.describe())
    for failure in result.summary.failures:
        print(f"FAILED {failure}")


if __name__ == "__main__":
    main()
