"""Dedup ledgers recording the processing outcome of every message id."""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol

from bitacora.core.models import OutcomeStatus, ProcessingOutcome

logger = logging.getLogger(__name__)


class LedgerError(RuntimeError):
    """The ledger store could not be read or written."""


class DuplicateEntryError(LedgerError):
    """An entry for the message id already exists (e.g. written by a concurrent run)."""


class DedupLedger(Protocol):
    def has_entry(self, message_id: str) -> bool:
        ...

    def write_entry(self, message_id: str, outcome: ProcessingOutcome) -> None:
        ...


class InMemoryLedger:
    """Dictionary-backed ledger for tests and dry runs."""

    def __init__(self) -> None:
        self.entries: Dict[str, ProcessingOutcome] = {}

    def has_entry(self, message_id: str) -> bool:
        return message_id in self.entries

    def write_entry(self, message_id: str, outcome: ProcessingOutcome) -> None:
        if message_id in self.entries:
            raise DuplicateEntryError(message_id)
        self.entries[message_id] = outcome

    def get_entry(self, message_id: str) -> Optional[ProcessingOutcome]:
        return self.entries.get(message_id)

    def count_by_status(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for outcome in self.entries.values():
            counts[outcome.status.value] = counts.get(outcome.status.value, 0) + 1
        return counts


class SqliteLedger:
    """Ledger persisted in SQLite with ``message_id`` as the primary key.

    The primary key makes check-then-write safe across concurrent runs: a
    second insert for the same id fails with :class:`DuplicateEntryError`.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.path)
        except sqlite3.Error as exc:
            raise LedgerError(f"Cannot open ledger {self.path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as exc:
            conn.rollback()
            raise LedgerError(f"Ledger operation failed on {self.path}: {exc}") from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS processed_messages (
                    message_id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    reason TEXT,
                    subject TEXT,
                    external_ids TEXT NOT NULL DEFAULT '[]',
                    processed_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_processed_at ON processed_messages (processed_at)"
            )

    def has_entry(self, message_id: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM processed_messages WHERE message_id = ?", (message_id,)
            ).fetchone()
        return row is not None

    def write_entry(self, message_id: str, outcome: ProcessingOutcome) -> None:
        try:
            with self._connection() as conn:
                conn.execute(
                    """
                    INSERT INTO processed_messages
                        (message_id, status, reason, subject, external_ids, processed_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        message_id,
                        outcome.status.value,
                        outcome.reason,
                        outcome.subject,
                        json.dumps(list(outcome.produced_external_ids)),
                        outcome.processed_at.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateEntryError(message_id) from exc

    def get_entry(self, message_id: str) -> Optional[ProcessingOutcome]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM processed_messages WHERE message_id = ?", (message_id,)
            ).fetchone()
        if row is None:
            return None
        return ProcessingOutcome(
            status=OutcomeStatus(row["status"]),
            produced_external_ids=tuple(json.loads(row["external_ids"])),
            reason=row["reason"],
            subject=row["subject"],
            processed_at=datetime.fromisoformat(row["processed_at"]),
        )

    def count_by_status(self) -> Dict[str, int]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS total FROM processed_messages GROUP BY status"
            ).fetchall()
        return {row["status"]: row["total"] for row in rows}

    def clear_older_than(self, days: int) -> int:
        """Delete entries processed more than ``days`` ago; returns the number removed.

        Removed message ids become eligible for processing again.
        """

        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM processed_messages WHERE processed_at < ?", (cutoff.isoformat(),)
            )
            removed = cursor.rowcount
        logger.info("Removed %d ledger entries older than %d days", removed, days)
        return removed
