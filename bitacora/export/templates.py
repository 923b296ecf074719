"""Mapping utilities to align transaction records with the Transactions sheet."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from bitacora.core.models import TransactionRecord
from bitacora.notify.customers import CustomerDirectory

TEMPLATE_HEADERS = [
    "Order ID",
    "Platform",
    "Transaction Type",
    "Customer",
    "Title",
    "Symbol",
    "Side",
    "Type",
    "Price",
    "Quantity",
    "Quote Quantity",
    "Status",
    "Time",
    "Update Time",
    "Wallet Address",
    "Payment Info",
    "Source",
]


def _format_amount(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    return format(value.normalize(), "f")


def _format_time(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def record_to_template_row(
    record: TransactionRecord, customers: CustomerDirectory | None = None
) -> Dict[str, Any]:
    """Convert a TransactionRecord into a Transactions sheet row dictionary."""

    customer = customers.customer_for(record) if customers else None
    row = {
        "Order ID": record.external_id,
        "Platform": record.platform,
        "Transaction Type": record.transaction_type.value,
        "Customer": customer.name if customer else "Unknown",
        "Title": record.title or "",
        "Symbol": record.symbol,
        "Side": record.side.value,
        "Type": record.order_type,
        "Price": _format_amount(record.price),
        "Quantity": _format_amount(record.quantity),
        "Quote Quantity": _format_amount(record.quote_quantity),
        "Status": record.status,
        "Time": _format_time(record.time),
        "Update Time": _format_time(record.update_time),
        "Wallet Address": record.wallet_address or "",
        "Payment Info": record.payment_details.describe() if record.payment_details else "",
        "Source": record.source_type,
    }
    return row


def records_to_template_rows(
    records: Iterable[TransactionRecord], customers: CustomerDirectory | None = None
) -> List[Dict[str, Any]]:
    """Convert an iterable of TransactionRecord objects into sheet-aligned rows."""

    return [record_to_template_row(record, customers) for record in records]
