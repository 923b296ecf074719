"""Message ingestion: source fetching, classification, parsing and dedup."""
from bitacora.ingestion.classifier import Classification, classify
from bitacora.ingestion.emails import load_messages, read_message
from bitacora.ingestion.ledger import (
    DedupLedger,
    DuplicateEntryError,
    InMemoryLedger,
    LedgerError,
    SqliteLedger,
)
from bitacora.ingestion.parsers import (
    parse_deposit,
    parse_p2p,
    parse_payment,
    parse_trade,
    parse_transaction,
    parse_withdrawal,
)
from bitacora.ingestion.pipeline import IngestionResult, ingest_messages

__all__ = [
    "Classification",
    "classify",
    "DedupLedger",
    "DuplicateEntryError",
    "IngestionResult",
    "InMemoryLedger",
    "ingest_messages",
    "LedgerError",
    "load_messages",
    "parse_deposit",
    "parse_p2p",
    "parse_payment",
    "parse_trade",
    "parse_transaction",
    "parse_withdrawal",
    "read_message",
    "SqliteLedger",
]
