"""Shared utility functions for the bitacora package."""
import logging
import os
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


def get_config_value(key: str, default: str = "") -> str:
    """Return a configuration value from the environment, or ``default``."""

    return os.getenv(key, default)


def get_config_list(key: str, default: List[str]) -> List[str]:
    """Read a comma separated setting into a list of stripped, non-empty items."""

    raw = os.getenv(key)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_env_file(path: Path) -> None:
    """Load environment variables from a file if it exists.

    Variables already present in the environment win over the file.
    """
    if not path.exists():
        return

    try:
        with path.open(encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                if not key or key in os.environ:
                    continue
                os.environ[key] = value.strip().strip('"').strip("'")
    except OSError as exc:
        logger.debug("Could not load env file %s: %s", path, exc)
