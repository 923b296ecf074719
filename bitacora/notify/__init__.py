"""Customer attribution and notification digests."""
from bitacora.notify.customers import Customer, CustomerDirectory, load_customers
from bitacora.notify.summary import (
    CustomerSummary,
    TelegramNotifier,
    build_daily_summaries,
    format_daily_summary,
    send_summaries,
)

__all__ = [
    "build_daily_summaries",
    "Customer",
    "CustomerDirectory",
    "CustomerSummary",
    "format_daily_summary",
    "load_customers",
    "send_summaries",
    "TelegramNotifier",
]
