"""End-to-end run: read messages, ingest them, export rows and send digests."""
from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from bitacora.core.config import ParserConfig, load_parser_config
from bitacora.core.utils import load_env_file
from bitacora.export.sinks import push_to_google_sheets, write_csv, write_excel
from bitacora.export.templates import records_to_template_rows
from bitacora.ingestion.emails import load_messages
from bitacora.ingestion.ledger import DedupLedger, SqliteLedger
from bitacora.ingestion.pipeline import IngestionResult, ingest_messages
from bitacora.notify.customers import CustomerDirectory, load_customers
from bitacora.notify.summary import build_daily_summaries, send_summaries

DEFAULT_SERVICE_ACCOUNT_PATHS = [
    Path("secrets/service_account.json"),
    Path("credentials/service_account.json"),
]
DEFAULT_SHEETS_ENV_FILE = Path("secrets/sheets.env")
DEFAULT_WORKSHEET = "Transactions"
_SHEETS_ENV_LOADED = False


logger = logging.getLogger(__name__)


def _ensure_sheets_env() -> None:
    """Populate Google Sheets env vars from secrets/sheets.env."""

    global _SHEETS_ENV_LOADED
    if _SHEETS_ENV_LOADED:
        return
    _SHEETS_ENV_LOADED = True

    env_path = Path(os.getenv("GOOGLE_SHEETS_ENV_FILE", DEFAULT_SHEETS_ENV_FILE))
    load_env_file(env_path)


def _default_service_account_path() -> Optional[Path]:
    for candidate in DEFAULT_SERVICE_ACCOUNT_PATHS:
        if candidate.exists():
            return candidate
    return None


def _resolve_sheets_target(
    spreadsheet_id: Optional[str],
    worksheet_title: str,
    explicit_account_path: Optional[Path],
) -> Dict[str, Any]:
    _ensure_sheets_env()
    spreadsheet_id = spreadsheet_id or os.getenv("GOOGLE_SHEETS_SPREADSHEET_ID")
    if not spreadsheet_id:
        raise ValueError("spreadsheet_id is required when sink='sheets'")

    account_env = os.getenv("GOOGLE_SHEETS_SERVICE_ACCOUNT")
    account_path = explicit_account_path or (Path(account_env) if account_env else _default_service_account_path())
    if not account_path:
        raise ValueError(
            "Provide --service-account pointing to your Google credentials or place a file at "
            f"{DEFAULT_SERVICE_ACCOUNT_PATHS[0]}"
        )

    return {
        "spreadsheet_id": spreadsheet_id,
        "worksheet_title": worksheet_title,
        "service_account_path": account_path,
    }


def auto_sheets_target() -> Optional[Dict[str, Any]]:
    _ensure_sheets_env()
    if os.getenv("GOOGLE_SHEETS_AUTO_SYNC", "0") != "1":
        return None

    spreadsheet_id = os.getenv("GOOGLE_SHEETS_SPREADSHEET_ID")
    if not spreadsheet_id:
        logger.warning("Auto Sheets sync is enabled but GOOGLE_SHEETS_SPREADSHEET_ID is missing.")
        return None

    worksheet = os.getenv("GOOGLE_SHEETS_WORKSHEET", DEFAULT_WORKSHEET)
    account_env = os.getenv("GOOGLE_SHEETS_SERVICE_ACCOUNT")
    account_path = Path(account_env) if account_env else _default_service_account_path()
    if not account_path:
        logger.warning("Auto Sheets sync is enabled but no service account JSON was found.")
        return None

    return {
        "spreadsheet_id": spreadsheet_id,
        "worksheet_title": worksheet,
        "service_account_path": account_path,
    }


def run_pipeline(
    emails_dir: Path,
    output_path: Path,
    ledger: DedupLedger | None = None,
    ledger_path: Path = Path("output/ledger.sqlite3"),
    sink: str = "csv",
    spreadsheet_id: str | None = None,
    worksheet_title: str = DEFAULT_WORKSHEET,
    service_account_path: Path | None = None,
    excel_path: Path | None = None,
    customers_path: Path | None = None,
    notify: bool = False,
    since: datetime | None = None,
    until: datetime | None = None,
    config: ParserConfig | None = None,
) -> IngestionResult:
    """Ingest unseen messages under ``emails_dir`` and forward new transactions."""

    if not emails_dir.is_dir():
        message = f"Email directory {emails_dir} does not exist."
        logger.error(message)
        raise ValueError(message)

    logger.info("Pipeline starting for %s", emails_dir)
    config = config or load_parser_config()
    ledger = ledger if ledger is not None else SqliteLedger(ledger_path)

    messages, alerts = load_messages(emails_dir, since=since, until=until)
    if alerts:
        logger.warning("Encountered %d ingestion alerts during loading", len(alerts))
        for alert in alerts:
            logger.warning("Alert: %s", alert)
    if not messages:
        logger.warning("No messages found under %s", emails_dir)

    result = ingest_messages(messages, ledger, config)
    customers = load_customers(customers_path) if customers_path else None

    rows = records_to_template_rows(result.records, customers)
    write_csv(rows, output_path)
    logger.info("Wrote CSV output to %s", output_path)

    if sink == "excel":
        excel_target = excel_path or output_path.with_suffix(".xlsx")
        write_excel(rows, excel_target)
        logger.info("Wrote Excel output to %s", excel_target)
    elif sink == "sheets":
        sheets_target = _resolve_sheets_target(
            spreadsheet_id=spreadsheet_id,
            worksheet_title=worksheet_title,
            explicit_account_path=service_account_path,
        )
        _push_rows_to_sheets(rows, sheets_target)
    else:
        _maybe_auto_sync(rows)

    if notify:
        _notify_customers(result, customers)
    return result


def _notify_customers(result: IngestionResult, customers: CustomerDirectory | None) -> None:
    if customers is None:
        logger.warning("Notifications requested but no customer directory was provided")
        return
    days = sorted({record.time.date() for record in result.records})
    for day in days:
        summaries = build_daily_summaries(result.records, customers, day)
        sent = send_summaries(summaries)
        logger.info("Sent %d of %d summaries for %s", sent, len(summaries), day.isoformat())


def _push_rows_to_sheets(rows: Iterable[Dict[str, Any]], target: Dict[str, Any]) -> None:
    push_to_google_sheets(
        rows,
        spreadsheet_id=target["spreadsheet_id"],
        worksheet_title=target["worksheet_title"],
        service_account_path=target["service_account_path"],
    )


def _maybe_auto_sync(rows: List[Dict[str, Any]]) -> None:
    target = auto_sheets_target()
    if not target:
        return
    _push_rows_to_sheets(rows, target)
    logger.info(
        "Pushed %d rows to Google Sheets document %s (worksheet %s)",
        len(rows),
        target["spreadsheet_id"],
        target["worksheet_title"],
    )
