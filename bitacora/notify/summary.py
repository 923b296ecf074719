"""Per-customer daily digests delivered through the Telegram Bot API."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import requests

from bitacora.core.models import TransactionRecord, TransactionType
from bitacora.core.utils import get_config_value
from bitacora.notify.customers import Customer, CustomerDirectory

logger = logging.getLogger(__name__)

DEFAULT_TELEGRAM_API_URL = "https://api.telegram.org"


@dataclass
class CustomerSummary:
    customer: Customer
    deposits: List[TransactionRecord]
    p2p_sells: List[TransactionRecord]
    message: str
    message_sent: bool = False

    @property
    def deposits_total(self) -> Decimal:
        return sum((record.quantity for record in self.deposits), Decimal(0))

    @property
    def p2p_sells_total(self) -> Decimal:
        return sum((record.quote_quantity for record in self.p2p_sells), Decimal(0))


def format_daily_summary(
    customer: Customer,
    deposits: List[TransactionRecord],
    p2p_sells: List[TransactionRecord],
    day: date,
) -> str:
    """Render the HTML digest text for one customer."""

    total_deposits = sum((record.quantity for record in deposits), Decimal(0))
    total_sells = sum((record.quote_quantity for record in p2p_sells), Decimal(0))

    lines = [f"<b>Daily Summary for {day.strftime('%m/%d/%y')}</b>", ""]
    lines.append(f"Hello <b>{customer.name}</b>,")
    lines.append("")
    lines.append(f"<b>USDT Received:</b> {total_deposits:.2f} USDT")
    lines.append(f"<i>{len(deposits)} deposit(s) from your wallet</i>" if deposits else "<i>No deposits today</i>")
    lines.append("")
    lines.append(f"<b>Payments to your account:</b> {total_sells:.2f} USD")
    lines.append(f"<i>{len(p2p_sells)} payment(s) to your account</i>" if p2p_sells else "<i>No payments today</i>")

    if deposits or p2p_sells:
        lines.append("")
        lines.append("<b>Transaction Details:</b>")
        index = 1
        for record in deposits:
            lines.append(f"{index}. {record.time:%H:%M} - Received {record.quantity:.2f} {record.symbol}")
            index += 1
        for record in p2p_sells:
            currency = record.payment_details.currency if record.payment_details else "USD"
            lines.append(f"{index}. {record.time:%H:%M} - Paid {record.quote_quantity:.2f} {currency} to your account")
            index += 1

    lines.append("")
    lines.append("Thank you for your business!")
    return "\n".join(lines)


def build_daily_summaries(
    records: Iterable[TransactionRecord],
    customers: CustomerDirectory,
    day: date,
) -> List[CustomerSummary]:
    """Group the day's deposits and P2P sells by customer and format digests.

    Customers without deposits or P2P sells on ``day`` get no digest.
    """

    grouped: Dict[str, Dict[str, List[TransactionRecord]]] = {}
    for record in records:
        if record.time.date() != day:
            continue
        if record.transaction_type not in (TransactionType.DEPOSIT, TransactionType.P2P_SELL):
            continue
        customer = customers.customer_for(record)
        if customer is None:
            logger.debug("No customer for record %s", record.external_id)
            continue
        bucket = grouped.setdefault(customer.id, {"deposits": [], "p2p_sells": []})
        key = "deposits" if record.transaction_type is TransactionType.DEPOSIT else "p2p_sells"
        bucket[key].append(record)

    summaries: List[CustomerSummary] = []
    for customer in customers.customers:
        bucket = grouped.get(customer.id)
        if not bucket:
            continue
        message = format_daily_summary(customer, bucket["deposits"], bucket["p2p_sells"], day)
        summaries.append(CustomerSummary(customer, bucket["deposits"], bucket["p2p_sells"], message))

    logger.info("Built %d customer summaries for %s", len(summaries), day.isoformat())
    return summaries


class TelegramNotifier:
    """Send HTML messages through a Telegram bot."""

    def __init__(self, token: str | None = None, api_url: str | None = None) -> None:
        self.token = token or get_config_value("TELEGRAM_BOT_TOKEN")
        self.api_url = (api_url or get_config_value("TELEGRAM_API_URL", DEFAULT_TELEGRAM_API_URL)).rstrip("/")
        self.session = requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    def send_message(self, chat_id: str, text: str) -> Dict:
        response = self.session.post(
            f"{self.api_url}/bot{self.token}/sendMessage",
            json={"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
            timeout=30,
        )
        response.raise_for_status()
        logger.info("Message sent to Telegram chat %s", chat_id)
        return response.json()


def send_summaries(summaries: Iterable[CustomerSummary], notifier: Optional[TelegramNotifier] = None) -> int:
    """Deliver digests to customers with a Telegram id; returns how many were sent.

    A delivery failure for one customer is logged and does not stop the rest.
    """

    notifier = notifier or TelegramNotifier()
    if not notifier.enabled:
        logger.warning("TELEGRAM_BOT_TOKEN is not set; skipping digest delivery")
        return 0

    sent = 0
    for summary in summaries:
        if not summary.customer.telegram_id:
            logger.warning("Could not send summary to %s - no Telegram ID", summary.customer.name)
            continue
        try:
            notifier.send_message(summary.customer.telegram_id, summary.message)
        except requests.RequestException:
            logger.exception("Failed to send summary to %s", summary.customer.name)
            continue
        summary.message_sent = True
        sent += 1
    return sent
