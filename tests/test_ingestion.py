"""Batch ingestion behaviour: dedup, outcome recording and failure isolation."""
from copy import deepcopy

import pytest

import bitacora.ingestion.pipeline as ingestion
from bitacora.core.config import ParserConfig
from bitacora.core.models import OutcomeStatus, TransactionType
from bitacora.ingestion.ledger import DuplicateEntryError, InMemoryLedger, LedgerError

DEPOSIT = ("[Binance] USDT Deposit Confirmed - 2025-04-11 09:12:44 (UTC)", "Your deposit of 10,000 USDT is now available.")
WITHDRAWAL = (
    "[Binance] USDT Withdrawal Successful",
    "You've successfully withdrawn 50 USDT.\nTransaction ID: 0xabc123",
)
NEWSLETTER = ("[Binance] Weekly Market Highlights", "Top movers this week.")
BROKEN_PAYMENT = ("[Binance]Payment Transaction Detail", "Your payment has been processed.")


def test_ingest_records_every_message_outcome(make_message, ledger):
    messages = [
        make_message(*DEPOSIT, message_id="dep"),
        make_message(*NEWSLETTER, message_id="news"),
        make_message(*BROKEN_PAYMENT, message_id="pay"),
    ]

    result = ingestion.ingest_messages(messages, ledger)

    assert [record.transaction_type for record in result.records] == [TransactionType.DEPOSIT]
    assert ledger.get_entry("dep").status is OutcomeStatus.PROCESSED
    assert ledger.get_entry("dep").produced_external_ids == (result.records[0].external_id,)

    ignored = ledger.get_entry("news")
    assert ignored.status is OutcomeStatus.IGNORED
    assert ignored.reason == "unclassified"
    assert ignored.produced_external_ids == ()

    failed = ledger.get_entry("pay")
    assert failed.status is OutcomeStatus.FAILED
    assert failed.reason == "parser produced no transaction"

    summary = result.summary
    assert (summary.processed, summary.ignored, summary.failed, summary.skipped) == (1, 1, 1, 0)
    assert summary.records == 1
    assert summary.failures == ["pay: parser produced no transaction"]


def test_second_run_is_idempotent(make_message, ledger):
    messages = [
        make_message(*DEPOSIT, message_id="dep"),
        make_message(*WITHDRAWAL, message_id="wd"),
        make_message(*NEWSLETTER, message_id="news"),
        make_message(*BROKEN_PAYMENT, message_id="pay"),
    ]

    first = ingestion.ingest_messages(messages, ledger)
    snapshot = deepcopy(ledger.entries)
    second = ingestion.ingest_messages(messages, ledger)

    assert len(first.records) == 2
    assert second.records == []
    assert second.summary.skipped == 4
    assert ledger.entries == snapshot


def test_ledger_entry_blocks_reprocessing_even_when_failed(make_message, ledger, monkeypatch):
    message = make_message(*BROKEN_PAYMENT, message_id="pay")
    ingestion.ingest_messages([message], ledger)

    calls = []
    monkeypatch.setattr(ingestion, "classify", lambda *args: calls.append(args))
    ingestion.ingest_messages([message], ledger)

    assert calls == []


def test_exception_in_one_message_does_not_abort_batch(make_message, ledger, monkeypatch):
    original = ingestion.parse_transaction

    def exploding(classification, config=None):
        if classification.transaction_type is TransactionType.WITHDRAWAL:
            raise RuntimeError("template drifted")
        return original(classification, config)

    monkeypatch.setattr(ingestion, "parse_transaction", exploding)

    messages = [
        make_message(*DEPOSIT, message_id="dep-1"),
        make_message(*NEWSLETTER, message_id="news"),
        make_message(*WITHDRAWAL, message_id="wd"),
        make_message(*BROKEN_PAYMENT, message_id="pay"),
        make_message(*DEPOSIT, message_id="dep-2"),
    ]
    result = ingestion.ingest_messages(messages, ledger)

    statuses = {message_id: ledger.get_entry(message_id).status for message_id in ledger.entries}
    assert statuses == {
        "dep-1": OutcomeStatus.PROCESSED,
        "news": OutcomeStatus.IGNORED,
        "wd": OutcomeStatus.FAILED,
        "pay": OutcomeStatus.FAILED,
        "dep-2": OutcomeStatus.PROCESSED,
    }
    assert ledger.get_entry("wd").reason == "template drifted"
    assert ledger.get_entry("pay").reason == "parser produced no transaction"
    assert len(result.records) == 2
    assert result.summary.failures == ["wd: template drifted", "pay: parser produced no transaction"]


def test_missing_timestamp_is_recorded_as_failure(make_message, ledger):
    message = make_message("[Binance] USDT Deposit Confirmed", "Your deposit of 5 USDT is now available.", received_at=None)

    result = ingestion.ingest_messages([message], ledger)

    assert result.records == []
    assert ledger.get_entry("msg-1").status is OutcomeStatus.FAILED
    assert "timestamp" in ledger.get_entry("msg-1").reason


def test_body_routed_payment_without_payment_subject_is_ignored(make_message, ledger):
    message = make_message("Monthly statement", "Your payment transaction history is attached.")

    ingestion.ingest_messages([message], ledger)

    outcome = ledger.get_entry("msg-1")
    assert outcome.status is OutcomeStatus.IGNORED
    assert "payment" in outcome.reason


class BrokenLedger(InMemoryLedger):
    def write_entry(self, message_id, outcome):
        raise LedgerError("database is locked")


def test_ledger_errors_abort_the_batch(make_message):
    with pytest.raises(LedgerError):
        ingestion.ingest_messages([make_message(*DEPOSIT)], BrokenLedger())


class RacingLedger(InMemoryLedger):
    """Simulates another run writing the same id between check and write."""

    def write_entry(self, message_id, outcome):
        if message_id == "dep":
            raise DuplicateEntryError(message_id)
        super().write_entry(message_id, outcome)


def test_concurrent_duplicate_write_is_treated_as_skip(make_message):
    ledger = RacingLedger()
    messages = [make_message(*DEPOSIT, message_id="dep"), make_message(*WITHDRAWAL, message_id="wd")]

    result = ingestion.ingest_messages(messages, ledger)

    assert [record.transaction_type for record in result.records] == [TransactionType.WITHDRAWAL]
    assert result.summary.skipped == 1
    assert "dep" not in result.outcomes


def test_unknown_sender_is_ignored_when_required(make_message, ledger):
    config = ParserConfig(require_known_sender=True)
    messages = [
        make_message(*DEPOSIT, message_id="spoof", sender="Fake <alerts@binance-support.example>"),
        make_message(*DEPOSIT, message_id="real", sender="Binance <do_not_reply@directmail.binance.com>"),
    ]

    result = ingestion.ingest_messages(messages, ledger, config)

    assert ledger.get_entry("spoof").status is OutcomeStatus.IGNORED
    assert ledger.get_entry("spoof").reason == "not a Binance email"
    assert ledger.get_entry("real").status is OutcomeStatus.PROCESSED
    assert len(result.records) == 1


def test_summary_description_reports_counts(make_message, ledger):
    result = ingestion.ingest_messages(
        [make_message(*DEPOSIT), make_message(*NEWSLETTER), make_message(*BROKEN_PAYMENT)], ledger
    )

    assert result.summary.describe() == (
        "3 messages: 1 processed, 1 ignored, 1 failed, 0 already seen; 1 transactions"
    )
