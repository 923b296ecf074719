"""Decide which transaction parser applies to a notification message."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from bitacora.core.config import ParserConfig
from bitacora.core.models import Side, TransactionType
from bitacora.ingestion.common import (
    FORWARD_MARKER,
    as_utc,
    forwarded_content,
    html_to_text,
    looks_like_html,
    strip_forward_prefix,
    subject_timestamp,
)

logger = logging.getLogger(__name__)

# Evaluated in order; the first match wins.
SUBJECT_RULES = [
    (re.compile(r"USDT Deposit Confirmed", re.IGNORECASE), TransactionType.DEPOSIT),
    (re.compile(r"USDT Withdrawal Successful", re.IGNORECASE), TransactionType.WITHDRAWAL),
    (re.compile(r"P2P order completed", re.IGNORECASE), TransactionType.P2P_SELL),
    (re.compile(r"Order Filled", re.IGNORECASE), TransactionType.TRADE),
    (re.compile(r"Payment Transaction Detail", re.IGNORECASE), TransactionType.PAYMENT),
]

TAGGED_SUBJECT = re.compile(r"\[[^\]]+\]\s*([A-Za-z\s]+)")

DESCRIPTION_KEYWORDS = [
    (("deposit",), TransactionType.DEPOSIT),
    (("withdrawal",), TransactionType.WITHDRAWAL),
    (("payment",), TransactionType.PAYMENT),
    (("order", "trade"), TransactionType.TRADE),
]

FORWARDED_SENDER = re.compile(r"From:\s*.*?[<\s]([^>@\s]+@[^>@\s]+)[>\s]", re.IGNORECASE)


@dataclass(frozen=True)
class Classification:
    """Result of classifying one message, with the text the parser should read."""

    transaction_type: TransactionType
    subject: str
    body: str
    timestamp: Optional[datetime]
    side: Optional[Side] = None

    @property
    def is_transaction(self) -> bool:
        return self.transaction_type is not TransactionType.OTHER


def normalize(subject: str | None, body: str | None) -> tuple[str, str]:
    """Strip forwarding prefixes/wrappers and HTML markup from a message."""

    normalized_subject = strip_forward_prefix(subject or "")
    text = body or ""
    if looks_like_html(text):
        text = html_to_text(text)
    return normalized_subject, forwarded_content(text)


def trade_side(body: str) -> Side:
    """Fills that mention selling are SELL, everything else is a BUY."""

    return Side.SELL if re.search(r"sold", body, re.IGNORECASE) else Side.BUY


def _type_from_subject(subject: str) -> TransactionType:
    for pattern, transaction_type in SUBJECT_RULES:
        if pattern.search(subject):
            return transaction_type

    tagged = TAGGED_SUBJECT.search(subject)
    if tagged:
        description = tagged.group(1).strip().lower()
        for keywords, transaction_type in DESCRIPTION_KEYWORDS:
            if any(keyword in description for keyword in keywords):
                return transaction_type

    return TransactionType.OTHER


def _type_from_body(body: str) -> TransactionType:
    lowered = body.lower()
    if "deposit" in lowered and "completed" in lowered:
        return TransactionType.DEPOSIT
    if "withdrawal" in lowered and ("completed" in lowered or "successful" in lowered):
        return TransactionType.WITHDRAWAL
    if "payment" in lowered and "transaction" in lowered:
        return TransactionType.PAYMENT
    return TransactionType.OTHER


def classify(subject: str | None, body: str | None, received_at: datetime | None) -> Classification:
    """Assign a message to a transaction type, or OTHER when nothing matches.

    Subject rules are tried first, then a looser ``[Tag] description`` match
    on the subject, then keyword pairs in the body. The returned
    classification carries the de-forwarded subject/body and the message
    timestamp (subject-embedded if present, otherwise ``received_at``).
    """

    normalized_subject, normalized_body = normalize(subject, body)

    transaction_type = _type_from_subject(normalized_subject)
    if transaction_type is TransactionType.OTHER:
        transaction_type = _type_from_body(normalized_body)

    side = trade_side(normalized_body) if transaction_type is TransactionType.TRADE else None
    timestamp = subject_timestamp(normalized_subject)
    if timestamp is None and isinstance(received_at, datetime):
        timestamp = as_utc(received_at)

    logger.debug("Classified %r as %s", normalized_subject, transaction_type.value)
    return Classification(
        transaction_type=transaction_type,
        subject=normalized_subject,
        body=normalized_body,
        timestamp=timestamp,
        side=side,
    )


def is_known_sender(sender: str | None, body: str | None, config: ParserConfig) -> bool:
    """Check the From header, then a forwarded ``From:`` line, against known domains."""

    domains = config.sender_domains
    if sender and any(domain in sender.lower() for domain in domains):
        return True

    parts = FORWARD_MARKER.split(body or "", maxsplit=1)
    if len(parts) < 2:
        return False
    forwarded = FORWARDED_SENDER.search(parts[1])
    if not forwarded:
        return False
    original_sender = forwarded.group(1).lower()
    return any(domain in original_sender for domain in domains)
