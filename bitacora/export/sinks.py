"""Sinks for exporting transaction rows to CSV, Excel and Google Sheets."""
from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

from bitacora.export.templates import TEMPLATE_HEADERS

logger = logging.getLogger(__name__)


def ensure_output_dir(output_path: Path) -> None:
    """Create parent folders for sink outputs when missing."""

    output_path.parent.mkdir(parents=True, exist_ok=True)


def write_csv(rows: Iterable[Dict[str, Any]], output_path: Path) -> None:
    """Write transaction rows to a CSV file with the sheet headers."""

    rows = list(rows)
    ensure_output_dir(output_path)
    if not rows:
        return

    with output_path.open("w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=TEMPLATE_HEADERS)
        writer.writeheader()
        writer.writerows(rows)


def push_to_google_sheets(
    rows: Iterable[Dict[str, Any]],
    spreadsheet_id: str,
    worksheet_title: str = "Transactions",
    service_account_path: Path | None = None,
) -> None:
    """Append rows to a Google Sheets worksheet using a service account.

    The worksheet is created with a header row when it does not exist yet;
    existing rows are kept.
    """

    rows = list(rows)
    if not rows:
        return

    try:
        import gspread
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise ImportError("gspread is required for Google Sheets sinks") from exc

    client = (
        gspread.service_account(filename=str(service_account_path))
        if service_account_path
        else gspread.service_account()
    )
    spreadsheet = client.open_by_key(spreadsheet_id)
    try:
        worksheet = spreadsheet.worksheet(worksheet_title)
    except gspread.WorksheetNotFound:
        logger.info("Worksheet %s does not exist; creating it", worksheet_title)
        worksheet = spreadsheet.add_worksheet(
            title=worksheet_title, rows=2000, cols=len(TEMPLATE_HEADERS)
        )
        worksheet.append_row(TEMPLATE_HEADERS)

    worksheet.append_rows(
        [[row.get(header, "") for header in TEMPLATE_HEADERS] for row in rows],
        value_input_option="USER_ENTERED",
    )


def write_excel(rows: Iterable[Dict[str, Any]], output_path: Path) -> None:
    """Write rows to an Excel workbook using openpyxl."""

    rows = list(rows)
    if not rows:
        return

    try:
        from openpyxl import Workbook
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise ImportError("openpyxl is required for Excel sinks") from exc

    ensure_output_dir(output_path)
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Transactions"
    headers: List[str] = list(TEMPLATE_HEADERS)
    sheet.append(headers)
    for row in rows:
        sheet.append([row.get(header, "") for header in headers])
    workbook.save(output_path)
