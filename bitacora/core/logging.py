"""Process-wide logging setup for CLI runs and scheduled ingestion jobs."""
from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
# The Sheets and Telegram clients log every HTTP request at DEBUG.
NOISY_LOGGERS = ("urllib3", "google.auth")


def configure_logging(level: str | None = None) -> int:
    """Configure the root logger and return the numeric level in effect.

    ``level`` wins over ``LOG_LEVEL``; unknown level names fall back to INFO.
    HTTP client loggers never go below WARNING so a DEBUG run shows the
    classifier and parser decisions instead of connection chatter.
    """

    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(resolved, logging.WARNING))
    return resolved
