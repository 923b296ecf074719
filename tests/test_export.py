"""Sink coverage for CSV, Excel and Google Sheets exports."""
import csv
from pathlib import Path

import gspread
import pytest
from openpyxl import load_workbook

from bitacora.export.sinks import push_to_google_sheets, write_csv, write_excel
from bitacora.export.templates import TEMPLATE_HEADERS


def _row(order_id: str, quantity: str = "10") -> dict[str, str]:
    row = {header: "" for header in TEMPLATE_HEADERS}
    row.update({"Order ID": order_id, "Transaction Type": "DEPOSIT", "Symbol": "USDT", "Quantity": quantity})
    return row


def test_write_csv_creates_parent_directories(tmp_path: Path):
    output = tmp_path / "nested" / "out.csv"

    write_csv([_row("DEP1"), _row("DEP2", "2.5")], output)

    with output.open(encoding="utf-8") as fh:
        rows = list(csv.DictReader(fh))
    assert [row["Order ID"] for row in rows] == ["DEP1", "DEP2"]
    assert rows[1]["Quantity"] == "2.5"


def test_write_csv_skips_empty_batches(tmp_path: Path):
    output = tmp_path / "out.csv"
    write_csv([], output)
    assert not output.exists()


def test_write_excel_uses_transactions_sheet(tmp_path: Path):
    output = tmp_path / "out.xlsx"

    write_excel([_row("DEP1")], output)

    sheet = load_workbook(output).active
    assert sheet.title == "Transactions"
    assert [cell.value for cell in sheet[1]] == TEMPLATE_HEADERS
    assert sheet.max_row == 2


class FakeWorksheet:
    def __init__(self) -> None:
        self.rows: list[list[str]] = []

    def append_row(self, row):
        self.rows.append(list(row))

    def append_rows(self, rows, value_input_option=None):
        self.value_input_option = value_input_option
        self.rows.extend(rows)


class FakeSpreadsheet:
    def __init__(self, existing: dict[str, FakeWorksheet]) -> None:
        self.worksheets = existing

    def worksheet(self, title):
        if title not in self.worksheets:
            raise gspread.WorksheetNotFound(title)
        return self.worksheets[title]

    def add_worksheet(self, title, rows, cols):
        self.worksheets[title] = FakeWorksheet()
        return self.worksheets[title]


class FakeClient:
    def __init__(self, spreadsheet: FakeSpreadsheet) -> None:
        self.spreadsheet = spreadsheet
        self.opened = None

    def open_by_key(self, key):
        self.opened = key
        return self.spreadsheet


@pytest.fixture
def fake_client(monkeypatch: pytest.MonkeyPatch):
    client = FakeClient(FakeSpreadsheet({}))
    monkeypatch.setattr(gspread, "service_account", lambda filename=None: client)
    return client


def test_push_to_google_sheets_creates_worksheet_with_header(fake_client, fake_service_account_file: Path):
    push_to_google_sheets([_row("DEP1")], "sheet-123", service_account_path=fake_service_account_file)

    worksheet = fake_client.spreadsheet.worksheets["Transactions"]
    assert fake_client.opened == "sheet-123"
    assert worksheet.rows[0] == TEMPLATE_HEADERS
    assert worksheet.rows[1][0] == "DEP1"
    assert worksheet.value_input_option == "USER_ENTERED"


def test_push_to_google_sheets_appends_to_existing_worksheet(fake_client, fake_service_account_file: Path):
    existing = FakeWorksheet()
    existing.append_row(TEMPLATE_HEADERS)
    existing.append_row(["OLD"])
    fake_client.spreadsheet.worksheets["Ledger"] = existing

    push_to_google_sheets(
        [_row("DEP2")], "sheet-123", worksheet_title="Ledger", service_account_path=fake_service_account_file
    )

    assert [row[0] for row in existing.rows] == ["Order ID", "OLD", "DEP2"]
