"""Core building blocks for the bitacora package."""
from bitacora.core.config import ParserConfig, load_parser_config
from bitacora.core.logging import configure_logging
from bitacora.core.models import (
    BatchSummary,
    OutcomeStatus,
    PaymentDetails,
    ProcessingOutcome,
    RawMessage,
    Side,
    TransactionRecord,
    TransactionType,
)

__all__ = [
    "BatchSummary",
    "configure_logging",
    "load_parser_config",
    "OutcomeStatus",
    "ParserConfig",
    "PaymentDetails",
    "ProcessingOutcome",
    "RawMessage",
    "Side",
    "TransactionRecord",
    "TransactionType",
]
