"""Shared helpers for turning notification text into normalized values."""
from __future__ import annotations

import html
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

FORWARD_MARKER = re.compile(r"-{5,}\s*(?:Forwarded message|Original Message)\s*-{5,}", re.IGNORECASE)
FORWARD_PREFIX = re.compile(r"^\s*fwd?\s*:\s*", re.IGNORECASE)
HTML_TAG = re.compile(r"<\s*/?\s*(?:html|body|div|p|br|table|tr|td|span|a|b|strong)\b[^>]*>", re.IGNORECASE)
SUBJECT_TIMESTAMP = re.compile(r"(\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2})")


def html_to_text(raw: str) -> str:
    """Convert HTML content into normalized plain text."""

    with_breaks = re.sub(r"(?i)<\s*br\s*/?>", "\n", raw)
    with_breaks = re.sub(r"(?i)</p>", "\n", with_breaks)
    with_breaks = re.sub(r"(?i)</div>", "\n", with_breaks)
    with_breaks = re.sub(r"(?i)</tr>", "\n", with_breaks)
    text = re.sub(r"<[^>]+>", " ", with_breaks)
    text = html.unescape(text)
    lines = [" ".join(line.split()) for line in text.splitlines() if line.strip()]
    return "\n".join(lines)


def looks_like_html(text: str) -> bool:
    return bool(HTML_TAG.search(text))


def strip_forward_prefix(subject: str) -> str:
    """Remove any number of leading ``Fwd:``/``Fw:`` prefixes from a subject."""

    previous = None
    while previous != subject:
        previous = subject
        subject = FORWARD_PREFIX.sub("", subject, count=1)
    return subject.strip()


def forwarded_content(body: str) -> str:
    """Return the text after the last forwarding marker, or the body unchanged."""

    parts = FORWARD_MARKER.split(body)
    return parts[-1] if len(parts) > 1 else body


def parse_amount(raw: str | None) -> Optional[Decimal]:
    """Convert strings like ``10,000.50`` into a Decimal, stripping thousands commas.

    Returns ``None`` when the text is not a finite number.
    """

    if not raw:
        return None
    try:
        value = Decimal(raw.replace(",", "").strip())
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def subject_timestamp(subject: str) -> Optional[datetime]:
    """Extract a ``YYYY-MM-DD HH:MM:SS`` timestamp from a subject, read as UTC."""

    match = SUBJECT_TIMESTAMP.search(subject or "")
    if not match:
        return None
    try:
        parsed = datetime.strptime(match.group(1), "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate_external_id(prefix: str, moment: datetime) -> str:
    """Synthesize ``<prefix><epoch-millis>-<random>`` for messages without an id.

    The timestamp is only there for readability; uniqueness comes from the
    uuid4 suffix.
    """

    millis = int(as_utc(moment).timestamp() * 1000)
    return f"{prefix}{millis}-{uuid.uuid4().hex[:12]}"
