"""Source fetcher reading exported notification emails (.eml files)."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import List, Optional, Tuple

from bitacora.core.models import RawMessage
from bitacora.ingestion.common import html_to_text

logger = logging.getLogger(__name__)


def _parse_email_date(date_header: str | None) -> Optional[datetime]:
    """Return an aware UTC datetime derived from an email Date header."""

    if not date_header:
        return None

    try:
        parsed = parsedate_to_datetime(date_header)
    except (TypeError, ValueError):
        return None

    if not parsed:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _extract_text_body(message: EmailMessage) -> str:
    if message.is_multipart():
        part = message.get_body(preferencelist=("plain", "html"))
        if part:
            content = part.get_content()
            if part.get_content_subtype() == "html":
                return html_to_text(content)
            return content.strip()

    if message.get_content_type().startswith("text/"):
        content = message.get_content()
        if message.get_content_subtype() == "html":
            return html_to_text(content)
        return content.strip()

    payload = message.get_payload(decode=True)
    if payload:
        charset = message.get_content_charset() or "utf-8"
        return payload.decode(charset, errors="ignore").strip()
    return ""


def read_message(path: Path) -> RawMessage:
    """Parse an EML file into a :class:`RawMessage`.

    The Message-ID header is the dedup key (the file name when it is
    missing); the Date header gives ``received_at``, falling back to the
    file modification time.
    """

    with path.open("rb") as eml_file:
        message = BytesParser(policy=policy.default).parse(eml_file)

    message_id = (message["Message-ID"] or "").strip().strip("<>") or path.name
    received_at = _parse_email_date(message.get("Date"))
    if received_at is None:
        received_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    body = _extract_text_body(message).replace("\r\n", "\n").replace("\r", "\n")

    return RawMessage(
        id=message_id,
        subject=str(message["Subject"] or ""),
        body=body,
        received_at=received_at,
        sender=str(message["From"] or "") or None,
    )


def load_messages(
    emails_dir: Path,
    since: datetime | None = None,
    until: datetime | None = None,
) -> Tuple[List[RawMessage], List[str]]:
    """Read every ``*.eml`` under ``emails_dir`` received inside the optional window.

    Returns the messages ordered by ``received_at`` and a list of alerts for
    files that could not be parsed.
    """

    messages: List[RawMessage] = []
    alerts: List[str] = []

    logger.info("Loading messages from %s", emails_dir)

    for email_path in sorted(emails_dir.glob("*.eml")):
        try:
            message = read_message(email_path)
        except Exception:
            logger.exception("Failed to read email %s", email_path)
            alerts.append(f"Failed to read email {email_path.name}")
            continue
        if since and message.received_at < since:
            continue
        if until and message.received_at > until:
            continue
        messages.append(message)

    messages.sort(key=lambda item: item.received_at)
    logger.info("Loaded %d messages", len(messages))
    return messages, alerts
