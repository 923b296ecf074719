"""Customer digests and their Telegram delivery."""
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

import requests

from bitacora.core.models import PaymentDetails, Side, TransactionRecord, TransactionType
from bitacora.notify.customers import load_customers
from bitacora.notify.summary import (
    TelegramNotifier,
    build_daily_summaries,
    format_daily_summary,
    send_summaries,
)

DAY = date(2025, 4, 11)


def _record(kind: TransactionType, quantity: str, hour: int, wallet: str | None = None, quote: str | None = None, day: int = 11):
    moment = datetime(2025, 4, day, hour, 30, tzinfo=timezone.utc)
    return TransactionRecord(
        external_id=f"{kind.value}-{hour}",
        transaction_type=kind,
        symbol="USDT",
        side=Side.BUY if kind is TransactionType.DEPOSIT else Side.SELL,
        quantity=Decimal(quantity),
        price=Decimal(1),
        quote_quantity=Decimal(quote or quantity),
        time=moment,
        update_time=moment,
        order_type=kind.value,
        wallet_address=wallet,
        payment_details=PaymentDetails(currency="USD") if kind is TransactionType.P2P_SELL else None,
    )


def test_load_customers_reads_json(customers_file: Path):
    directory = load_customers(customers_file)

    assert [customer.id for customer in directory.customers] == ["customer1", "desk"]
    assert directory.by_wallet("0x0cd2cb36963e9d13d8bf805d21c66ad96c30cfae").name == "John Doe"
    assert directory.by_wallet("0xunknown") is None
    assert directory.catch_all().id == "desk"


def test_build_daily_summaries_groups_by_customer(customers_file: Path):
    records = [
        _record(TransactionType.DEPOSIT, "100", 9, wallet="0x0cD2CB36963e9D13d8Bf805d21c66AD96C30cFAE"),
        _record(TransactionType.DEPOSIT, "50", 10),
        _record(TransactionType.P2P_SELL, "20", 11, quote="19.90"),
        _record(TransactionType.PAYMENT, "5", 12),
        _record(TransactionType.DEPOSIT, "999", 9, day=12),
    ]

    summaries = build_daily_summaries(records, load_customers(customers_file), DAY)

    assert [summary.customer.id for summary in summaries] == ["customer1", "desk"]
    john, desk = summaries
    assert john.deposits_total == Decimal("100")
    assert john.p2p_sells == []
    assert desk.deposits_total == Decimal("50")
    assert desk.p2p_sells_total == Decimal("19.90")


def test_format_daily_summary_lists_transactions(customers_file: Path):
    customer = load_customers(customers_file).customers[0]
    deposits = [_record(TransactionType.DEPOSIT, "1250.5", 9)]
    sells = [_record(TransactionType.P2P_SELL, "100", 15, quote="99.50")]

    message = format_daily_summary(customer, deposits, sells, DAY)

    assert message.startswith("<b>Daily Summary for 04/11/25</b>")
    assert "<b>USDT Received:</b> 1250.50 USDT" in message
    assert "1. 09:30 - Received 1250.50 USDT" in message
    assert "2. 15:30 - Paid 99.50 USD to your account" in message
    assert message.endswith("Thank you for your business!")


def test_format_daily_summary_without_activity(customers_file: Path):
    customer = load_customers(customers_file).customers[0]

    message = format_daily_summary(customer, [], [], DAY)

    assert "<i>No deposits today</i>" in message
    assert "Transaction Details" not in message


class FakeNotifier:
    enabled = True

    def __init__(self, failing_chat: str | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self.failing_chat = failing_chat

    def send_message(self, chat_id, text):
        if chat_id == self.failing_chat:
            raise requests.ConnectionError("telegram unreachable")
        self.sent.append((chat_id, text))
        return {"ok": True}


def _summaries(customers_file: Path):
    records = [
        _record(TransactionType.DEPOSIT, "100", 9, wallet="0x0cD2CB36963e9D13d8Bf805d21c66AD96C30cFAE"),
        _record(TransactionType.DEPOSIT, "50", 10),
    ]
    return build_daily_summaries(records, load_customers(customers_file), DAY)


def test_send_summaries_delivers_to_telegram_ids(customers_file: Path):
    notifier = FakeNotifier()
    summaries = _summaries(customers_file)

    assert send_summaries(summaries, notifier) == 2
    assert [chat for chat, _ in notifier.sent] == ["1674607484", "99887766"]
    assert all(summary.message_sent for summary in summaries)


def test_send_summaries_continues_after_delivery_failure(customers_file: Path, caplog):
    notifier = FakeNotifier(failing_chat="1674607484")
    summaries = _summaries(customers_file)

    caplog.set_level("ERROR")
    assert send_summaries(summaries, notifier) == 1
    assert not summaries[0].message_sent
    assert summaries[1].message_sent
    assert "John Doe" in caplog.text


def test_send_summaries_skips_without_token(customers_file: Path):
    notifier = TelegramNotifier(token="")
    assert send_summaries(_summaries(customers_file), notifier) == 0


def test_telegram_notifier_posts_html_messages(monkeypatch):
    captured = {}

    class FakeResponse:
        def raise_for_status(self):
            return None

        def json(self):
            return {"ok": True}

    def fake_post(url, json=None, timeout=None):
        captured.update(url=url, json=json, timeout=timeout)
        return FakeResponse()

    notifier = TelegramNotifier(token="123:abc", api_url="https://telegram.example/")
    monkeypatch.setattr(notifier.session, "post", fake_post)

    assert notifier.send_message("42", "<b>hi</b>") == {"ok": True}
    assert captured["url"] == "https://telegram.example/bot123:abc/sendMessage"
    assert captured["json"] == {"chat_id": "42", "text": "<b>hi</b>", "parse_mode": "HTML"}
    assert captured["timeout"] == 30
