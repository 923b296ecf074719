"""Data models for messages, normalized transactions and ledger outcomes."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    P2P_SELL = "P2P_SELL"
    TRADE = "TRADE"
    PAYMENT = "PAYMENT"
    OTHER = "OTHER"


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OutcomeStatus(str, Enum):
    PROCESSED = "PROCESSED"
    IGNORED = "IGNORED"
    FAILED = "FAILED"


COMPLETED = "COMPLETED"
EMAIL_SOURCE = "EMAIL"


@dataclass(frozen=True)
class RawMessage:
    """A candidate notification as delivered by a source fetcher."""

    id: str
    subject: str
    body: str
    received_at: datetime
    sender: Optional[str] = None


@dataclass(frozen=True)
class PaymentDetails:
    currency: str
    method: Optional[str] = None
    reference: Optional[str] = None

    def describe(self) -> str:
        """Return a compact, comma separated summary for spreadsheet cells."""

        return ", ".join(part for part in (self.method, self.currency, self.reference) if part)


@dataclass(frozen=True)
class TransactionRecord:
    """Normalized transaction extracted from a single message.

    ``price`` is ``None`` where no price concept exists (payments);
    ``wallet_address`` is only set for withdrawals and ``payment_details``
    only for P2P sells and payments.
    """

    external_id: str
    transaction_type: TransactionType
    symbol: str
    side: Side
    quantity: Decimal
    price: Optional[Decimal]
    quote_quantity: Decimal
    time: datetime
    update_time: datetime
    order_type: str
    status: str = COMPLETED
    platform: str = "BINANCE"
    wallet_address: Optional[str] = None
    payment_details: Optional[PaymentDetails] = None
    title: Optional[str] = None
    source_type: str = EMAIL_SOURCE

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain dictionary representation."""

        return asdict(self)


@dataclass(frozen=True)
class ProcessingOutcome:
    """Dedup ledger entry describing what happened to one message."""

    status: OutcomeStatus
    produced_external_ids: Tuple[str, ...] = ()
    reason: Optional[str] = None
    subject: Optional[str] = None
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def processed(cls, external_ids: List[str], subject: str | None = None) -> "ProcessingOutcome":
        return cls(OutcomeStatus.PROCESSED, tuple(external_ids), subject=subject)

    @classmethod
    def ignored(cls, reason: str, subject: str | None = None) -> "ProcessingOutcome":
        return cls(OutcomeStatus.IGNORED, reason=reason, subject=subject)

    @classmethod
    def failed(cls, reason: str, subject: str | None = None) -> "ProcessingOutcome":
        return cls(OutcomeStatus.FAILED, reason=reason, subject=subject)


@dataclass
class BatchSummary:
    """Aggregate counts reported after each ingestion run."""

    processed: int = 0
    ignored: int = 0
    failed: int = 0
    skipped: int = 0
    records: int = 0
    failures: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.processed + self.ignored + self.failed + self.skipped

    def count(self, outcome: ProcessingOutcome) -> None:
        if outcome.status is OutcomeStatus.PROCESSED:
            self.processed += 1
        elif outcome.status is OutcomeStatus.IGNORED:
            self.ignored += 1
        else:
            self.failed += 1

    def describe(self) -> str:
        return (
            f"{self.total} messages: {self.processed} processed, {self.ignored} ignored, "
            f"{self.failed} failed, {self.skipped} already seen; {self.records} transactions"
        )
