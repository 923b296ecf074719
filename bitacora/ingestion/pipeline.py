"""Batch ingestion: dedup check, classification, parsing and ledger updates."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from bitacora.core.config import ParserConfig
from bitacora.core.models import (
    BatchSummary,
    OutcomeStatus,
    ProcessingOutcome,
    RawMessage,
    TransactionRecord,
)
from bitacora.ingestion.classifier import classify, is_known_sender
from bitacora.ingestion.ledger import DedupLedger, DuplicateEntryError
from bitacora.ingestion.parsers import keyword_check, parse_transaction

logger = logging.getLogger(__name__)

UNCLASSIFIED = "unclassified"
NO_TRANSACTION = "parser produced no transaction"
UNKNOWN_SENDER = "not a Binance email"


@dataclass
class IngestionResult:
    """Records produced by a batch, in input order, plus per-message outcomes."""

    records: List[TransactionRecord] = field(default_factory=list)
    outcomes: Dict[str, ProcessingOutcome] = field(default_factory=dict)
    summary: BatchSummary = field(default_factory=BatchSummary)


def process_message(
    message: RawMessage, config: ParserConfig
) -> Tuple[ProcessingOutcome, List[TransactionRecord]]:
    """Classify and parse one message without touching the ledger."""

    subject = message.subject
    if config.require_known_sender and not is_known_sender(message.sender, message.body, config):
        return ProcessingOutcome.ignored(UNKNOWN_SENDER, subject), []

    classification = classify(message.subject, message.body, message.received_at)
    if not classification.is_transaction:
        return ProcessingOutcome.ignored(UNCLASSIFIED, subject), []

    reason = keyword_check(classification)
    if reason:
        return ProcessingOutcome.ignored(reason, subject), []

    records = parse_transaction(classification, config)
    if not records:
        return ProcessingOutcome.failed(NO_TRANSACTION, subject), []

    return ProcessingOutcome.processed([record.external_id for record in records], subject), records


def ingest_messages(
    messages: Iterable[RawMessage],
    ledger: DedupLedger,
    config: ParserConfig | None = None,
) -> IngestionResult:
    """Run every unseen message through classification and parsing.

    Each message gets exactly one ledger entry. Failures inside a single
    message are logged and recorded as FAILED; ledger errors propagate and
    abort the batch so the run can be retried as a whole.
    """

    config = config or ParserConfig()
    result = IngestionResult()
    summary = result.summary

    for message in messages:
        if ledger.has_entry(message.id):
            logger.debug("Skipping already processed message %s", message.id)
            summary.skipped += 1
            continue

        try:
            outcome, records = process_message(message, config)
        except Exception as exc:
            logger.exception("Failed to process message %s (%r)", message.id, message.subject)
            outcome, records = ProcessingOutcome.failed(str(exc) or type(exc).__name__, message.subject), []

        try:
            ledger.write_entry(message.id, outcome)
        except DuplicateEntryError:
            logger.info("Message %s was recorded by another run; skipping", message.id)
            summary.skipped += 1
            continue

        result.outcomes[message.id] = outcome
        summary.count(outcome)
        if outcome.status is OutcomeStatus.FAILED:
            summary.failures.append(f"{message.id}: {outcome.reason}")
            logger.warning("Message %s (%r) failed: %s", message.id, message.subject, outcome.reason)
        elif outcome.status is OutcomeStatus.IGNORED:
            logger.debug("Ignored message %s (%r): %s", message.id, message.subject, outcome.reason)

        result.records.extend(records)
        summary.records += len(records)

    log = logger.warning if summary.failed else logger.info
    log("Ingestion finished: %s", summary.describe())
    return result
