"""Export destinations for transaction records."""
from bitacora.export.sinks import ensure_output_dir, push_to_google_sheets, write_csv, write_excel
from bitacora.export.templates import TEMPLATE_HEADERS, record_to_template_row, records_to_template_rows

__all__ = [
    "ensure_output_dir",
    "push_to_google_sheets",
    "record_to_template_row",
    "records_to_template_rows",
    "TEMPLATE_HEADERS",
    "write_csv",
    "write_excel",
]
