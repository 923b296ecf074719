"""Per-type parsers that turn notification text into transaction records.

Each parser walks an ordered list of ``(pattern, extractor)`` rules and keeps
the first extraction that succeeds. Notification templates change over time,
so the lists run from the most specific wording to the loosest catch-all;
supporting a new template is usually one more rule in the right place.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from bitacora.core.config import ParserConfig
from bitacora.core.models import PaymentDetails, Side, TransactionRecord, TransactionType
from bitacora.ingestion.classifier import Classification, trade_side
from bitacora.ingestion.common import generate_external_id, parse_amount, subject_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")
Rule = Tuple[re.Pattern, Callable[[re.Match], Optional[T]]]

NUMBER = r"(?P<amount>[0-9][0-9,]*(?:\.\d+)?)"
DECIMAL = r"(?P<amount>[0-9][0-9,]*\.\d+)"
SYMBOL = r"(?P<symbol>(?-i:[A-Z]{2,10}))\b"
SHORT_SYMBOL = r"(?P<symbol>(?-i:[A-Z]{3,5}))\b"
# Labelled ids contain at least one digit so narrative words are never taken as ids.
LABELED_ID = r"([A-Za-z0-9-]*\d[A-Za-z0-9-]*)"

FIAT_CURRENCIES = ("USD", "EUR", "GBP", "ARS")
# Uppercase tokens that follow numbers in notifications without being assets.
NON_ASSET_TOKENS = set(FIAT_CURRENCIES) | {"UTC", "GMT", "AM", "PM", "ID"}

PAYMENT_SUBJECT = re.compile(r"Payment Transaction Detail", re.IGNORECASE)
PAYMENT_METHOD = "BINANCE_PAY"


@dataclass(frozen=True)
class Amount:
    quantity: Decimal
    symbol: Optional[str] = None


def first_match(rules: Iterable[Rule[T]], text: str) -> Optional[T]:
    """Return the first non-empty extraction produced by ``rules`` over ``text``."""

    for pattern, extract in rules:
        for match in pattern.finditer(text):
            value = extract(match)
            if value is not None:
                logger.debug("Matched %r with pattern %s", match.group(0), pattern.pattern)
                return value
    return None


def _amount(match: re.Match) -> Optional[Amount]:
    quantity = parse_amount(match.group("amount"))
    if quantity is None or quantity <= 0:
        return None
    symbol = match.groupdict().get("symbol")
    return Amount(quantity, symbol.upper() if symbol else None)


def _asset_amount(match: re.Match) -> Optional[Amount]:
    amount = _amount(match)
    if amount is None or amount.symbol in NON_ASSET_TOKENS:
        return None
    return amount


def _group(match: re.Match) -> Optional[str]:
    return match.group(1) or None


def _rule(pattern: str, extract: Callable[[re.Match], Optional[T]] = _amount, flags: int = re.IGNORECASE) -> Rule[T]:
    return re.compile(pattern, flags), extract


DEPOSIT_RULES = [
    _rule(rf"deposit of {NUMBER}\s*{SYMBOL}\s+is now available"),
    _rule(rf"deposit of {NUMBER}\s*{SYMBOL}"),
    _rule(rf"{NUMBER}\s*{SYMBOL}\s+has been deposited"),
    _rule(rf"Amount:\s*{NUMBER}\s*{SYMBOL}"),
    _rule(rf"deposit of {NUMBER}(?![0-9.,])"),
]

WITHDRAWAL_RULES = [
    _rule(rf"withdrawn\s+{NUMBER}\s*{SYMBOL}"),
    _rule(rf"Withdrawal Amount:\s*{NUMBER}\s*{SYMBOL}"),
    _rule(rf"{NUMBER}\s*{SYMBOL}\s+has been withdrawn"),
]

TRANSACTION_ID_RULES = [
    _rule(r"\b(?:Transaction ID|TxID|Hash)\b:?\s*(0x[a-fA-F0-9]+)", _group),
    _rule(rf"\bTransaction ID:\s*{LABELED_ID}", _group),
    _rule(rf"\bTxID:\s*{LABELED_ID}", _group),
    _rule(rf"\bHash:\s*{LABELED_ID}", _group),
]

WALLET_ADDRESS_RULES = [
    _rule(r"Withdrawal Address:?\s*(0x[a-fA-F0-9]+)", _group),
    _rule(r"Withdrawal Address:?\s*([a-zA-Z0-9]{24,})", _group),
    _rule(r"Receiving Address:?\s*([a-zA-Z0-9]{24,})", _group),
    _rule(r"\bAddress:?\s*([a-zA-Z0-9]{24,})", _group),
    _rule(r"\bto:?\s*([a-zA-Z0-9]{24,})", _group),
]

ASSET_RULES = [
    _rule(rf"{NUMBER}\s*{SYMBOL}", _asset_amount, flags=0),
]

FIAT_RULES = [
    _rule(rf"{NUMBER}\s*(?P<symbol>{'|'.join(FIAT_CURRENCIES)})\b"),
]

PRICE_RULES = [
    _rule(rf"\bprice:?\s*{NUMBER}"),
    _rule(rf"\bat:?\s*{NUMBER}(?![\d,.]*:)"),
]

PAYMENT_AMOUNT_RULES = [
    _rule(rf"Amount:[ \t]*{NUMBER}\s*{SYMBOL}"),
    _rule(rf"Amount:\s*[\r\n]+\s*{NUMBER}\s*{SYMBOL}"),
    _rule(rf"Time:\s*.*?\s+{DECIMAL}\s*{SHORT_SYMBOL}", flags=re.IGNORECASE | re.DOTALL),
    _rule(rf"\bfor\s+{DECIMAL}\s*{SHORT_SYMBOL}"),
    _rule(rf"\bof\s+{DECIMAL}\s*{SHORT_SYMBOL}"),
    _rule(rf"{DECIMAL}\s*{SHORT_SYMBOL}\s*(?:has been sent|paid)"),
    _rule(rf"{DECIMAL}\s*{SHORT_SYMBOL}", flags=0),
]

ORDER_ID_RULES = [
    _rule(r"\b(?:Order|Transaction)\s*(?:No|ID|Number)?\.?:\s*([A-Za-z0-9-]+)", _group),
]

PAYMENT_METHOD_RULES = [
    _rule(r"payment method:?\s*([a-zA-Z]+)", _group),
]

TITLE_PATTERN = re.compile(r"\[[^\]]+\]\s*(.*?)(?:\s*-\s*|$)")


def _require_timestamp(timestamp: Optional[datetime]) -> datetime:
    if timestamp is None:
        raise ValueError("message has no usable timestamp")
    return timestamp


def _known_currency(body: str, start: int, config: ParserConfig) -> Optional[str]:
    """Find a whitelisted currency code, preferring the text after ``start``."""

    if not config.known_currencies:
        return None
    pattern = re.compile(
        r"\b(" + "|".join(re.escape(code) for code in config.known_currencies) + r")\b",
        re.IGNORECASE,
    )
    match = pattern.search(body, start) or pattern.search(body)
    return match.group(1).upper() if match else None


def parse_deposit(body: str, timestamp: datetime | None, config: ParserConfig | None = None) -> List[TransactionRecord]:
    """Extract a deposit; the configured default currency fills a missing symbol."""

    config = config or ParserConfig()
    amount = first_match(DEPOSIT_RULES, body)
    if amount is None:
        logger.warning("Could not parse deposit amount")
        return []

    symbol = amount.symbol
    if not symbol:
        position = re.search(r"deposit of", body, re.IGNORECASE)
        symbol = _known_currency(body, position.end() if position else 0, config)
    if not symbol:
        if not config.default_currency:
            logger.warning("Deposit currency missing and no default currency configured")
            return []
        logger.warning("Could not determine deposit currency, using %s", config.default_currency)
        symbol = config.default_currency

    moment = _require_timestamp(timestamp)
    return [
        TransactionRecord(
            external_id=generate_external_id("DEP", moment),
            transaction_type=TransactionType.DEPOSIT,
            symbol=symbol,
            side=Side.BUY,
            quantity=amount.quantity,
            price=Decimal(1),
            quote_quantity=amount.quantity,
            time=moment,
            update_time=moment,
            order_type="DEPOSIT",
            platform=config.platform,
        )
    ]


def parse_withdrawal(body: str, timestamp: datetime | None, config: ParserConfig | None = None) -> List[TransactionRecord]:
    """Extract a withdrawal with its on-chain transaction id and destination address."""

    config = config or ParserConfig()
    amount = first_match(WITHDRAWAL_RULES, body)
    if amount is None:
        logger.warning("Could not parse withdrawal amount")
        return []

    moment = _require_timestamp(timestamp)
    tx_id = first_match(TRANSACTION_ID_RULES, body)
    wallet_address = first_match(WALLET_ADDRESS_RULES, body)

    return [
        TransactionRecord(
            external_id=tx_id or generate_external_id("WD", moment),
            transaction_type=TransactionType.WITHDRAWAL,
            symbol=amount.symbol,
            side=Side.SELL,
            quantity=amount.quantity,
            price=Decimal(1),
            quote_quantity=amount.quantity,
            time=moment,
            update_time=moment,
            order_type="WITHDRAWAL",
            platform=config.platform,
            wallet_address=wallet_address,
        )
    ]


def parse_p2p(body: str, timestamp: datetime | None, config: ParserConfig | None = None) -> List[TransactionRecord]:
    """Extract a P2P sale: the crypto sold and the fiat received for it."""

    config = config or ParserConfig()
    crypto = first_match(ASSET_RULES, body)
    fiat = first_match(FIAT_RULES, body)
    if crypto is None or fiat is None:
        logger.warning("Could not parse P2P amounts")
        return []

    moment = _require_timestamp(timestamp)
    method = first_match(PAYMENT_METHOD_RULES, body)
    reference = first_match(ORDER_ID_RULES, body)

    return [
        TransactionRecord(
            external_id=generate_external_id("P2P", moment),
            transaction_type=TransactionType.P2P_SELL,
            symbol=crypto.symbol,
            side=Side.SELL,
            quantity=crypto.quantity,
            price=fiat.quantity / crypto.quantity,
            quote_quantity=fiat.quantity,
            time=moment,
            update_time=moment,
            order_type="P2P",
            platform=config.platform,
            payment_details=PaymentDetails(currency=fiat.symbol, method=method, reference=reference),
        )
    ]


def parse_trade(
    body: str,
    timestamp: datetime | None,
    side: Side | None = None,
    config: ParserConfig | None = None,
) -> List[TransactionRecord]:
    """Extract a filled order.

    Narrative fill notices do not say whether the order was a limit or a
    market order, so every trade is recorded as MARKET.
    """

    config = config or ParserConfig()
    amount = first_match(ASSET_RULES, body)
    if amount is None:
        logger.warning("Could not parse trade quantity and symbol")
        return []

    moment = _require_timestamp(timestamp)
    price_match = first_match(PRICE_RULES, body)
    price = price_match.quantity if price_match else Decimal(1)

    return [
        TransactionRecord(
            external_id=generate_external_id("TRD", moment),
            transaction_type=TransactionType.TRADE,
            symbol=amount.symbol,
            side=side or trade_side(body),
            quantity=amount.quantity,
            price=price,
            quote_quantity=price * amount.quantity,
            time=moment,
            update_time=moment,
            order_type="MARKET",
            platform=config.platform,
        )
    ]


def is_payment_subject(subject: str | None) -> bool:
    return bool(PAYMENT_SUBJECT.search(subject or ""))


def payment_title(subject: str) -> str:
    match = TITLE_PATTERN.search(subject)
    title = match.group(1).strip() if match else ""
    return title or "Payment Transaction Detail"


def parse_payment(
    body: str,
    subject: str,
    timestamp: datetime | None,
    config: ParserConfig | None = None,
) -> List[TransactionRecord]:
    """Extract a Binance Pay payment; the subject must name a payment detail notice."""

    config = config or ParserConfig()
    if not is_payment_subject(subject):
        logger.debug("Not a payment transaction subject: %r", subject)
        return []

    amount = first_match(PAYMENT_AMOUNT_RULES, body)
    if amount is None:
        logger.warning("Could not parse amount and currency from payment email: %r", body[:200])
        return []

    moment = subject_timestamp(subject) or _require_timestamp(timestamp)
    order_id = first_match(ORDER_ID_RULES, body)

    return [
        TransactionRecord(
            external_id=order_id or generate_external_id("PAY", moment),
            transaction_type=TransactionType.PAYMENT,
            symbol=amount.symbol,
            side=Side.SELL,
            quantity=amount.quantity,
            price=None,
            quote_quantity=amount.quantity,
            time=moment,
            update_time=moment,
            order_type="PAYMENT",
            platform=config.platform,
            payment_details=PaymentDetails(currency=amount.symbol, method=PAYMENT_METHOD, reference=order_id),
            title=payment_title(subject),
        )
    ]


def keyword_check(classification: Classification) -> Optional[str]:
    """Return why a classified message should be ignored, or ``None`` if it applies.

    Body-keyword classification can route a message to the payment parser
    even though its subject is not a payment notice; such messages are not
    transaction emails.
    """

    if classification.transaction_type is TransactionType.PAYMENT and not is_payment_subject(classification.subject):
        return "subject is not a payment transaction notice"
    return None


def parse_transaction(classification: Classification, config: ParserConfig | None = None) -> List[TransactionRecord]:
    """Dispatch a classified message to its type parser."""

    body = classification.body
    timestamp = classification.timestamp
    kind = classification.transaction_type

    if kind is TransactionType.DEPOSIT:
        return parse_deposit(body, timestamp, config)
    if kind is TransactionType.WITHDRAWAL:
        return parse_withdrawal(body, timestamp, config)
    if kind is TransactionType.P2P_SELL:
        return parse_p2p(body, timestamp, config)
    if kind is TransactionType.TRADE:
        return parse_trade(body, timestamp, classification.side, config)
    if kind is TransactionType.PAYMENT:
        return parse_payment(body, classification.subject, timestamp, config)
    return []
