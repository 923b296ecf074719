"""Ingest crypto transaction notification emails into normalized records."""
from bitacora.core import (
    BatchSummary,
    OutcomeStatus,
    ParserConfig,
    PaymentDetails,
    ProcessingOutcome,
    RawMessage,
    Side,
    TransactionRecord,
    TransactionType,
    configure_logging,
    load_parser_config,
)
from bitacora.export import TEMPLATE_HEADERS, records_to_template_rows, write_csv
from bitacora.ingestion import (
    InMemoryLedger,
    SqliteLedger,
    classify,
    ingest_messages,
    load_messages,
    parse_transaction,
)
from bitacora.pipeline import run_pipeline

__all__ = [
    "BatchSummary",
    "classify",
    "configure_logging",
    "ingest_messages",
    "InMemoryLedger",
    "load_messages",
    "load_parser_config",
    "OutcomeStatus",
    "ParserConfig",
    "parse_transaction",
    "PaymentDetails",
    "ProcessingOutcome",
    "RawMessage",
    "records_to_template_rows",
    "run_pipeline",
    "Side",
    "SqliteLedger",
    "TEMPLATE_HEADERS",
    "TransactionRecord",
    "TransactionType",
    "write_csv",
]
