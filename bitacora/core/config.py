"""Business-policy settings consumed by the classifier and the type parsers."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from bitacora.core.utils import get_config_list, get_config_value, load_env_file

DEFAULT_ENV_FILE = Path("secrets/bitacora.env")
DEFAULT_CURRENCY = "USDT"
KNOWN_CURRENCIES = ("USDT", "BTC", "ETH", "BNB", "BUSD")
BINANCE_SENDER_DOMAINS = (
    "@binance.com",
    "@binancemail.com",
    "@info.binance.com",
    "@binance-mail.com",
    "@email.binance.com",
    "@binance.zendesk.com",
    "@dmail.binance.com",
    "@directmail.binance.com",
    "@mgdirectmail.binance.com",
)


@dataclass(frozen=True)
class ParserConfig:
    """Settings that shape extraction without being part of the patterns.

    ``default_currency`` is the symbol assigned to deposits whose body names
    no currency; ``None`` makes such deposits fail extraction instead.
    """

    default_currency: Optional[str] = DEFAULT_CURRENCY
    known_currencies: Tuple[str, ...] = KNOWN_CURRENCIES
    platform: str = "BINANCE"
    sender_domains: Tuple[str, ...] = field(default=BINANCE_SENDER_DOMAINS)
    require_known_sender: bool = False


def load_parser_config(env_file: Path | None = None) -> ParserConfig:
    """Build a :class:`ParserConfig` from ``BITACORA_*`` environment variables."""

    env_path = env_file or Path(os.getenv("BITACORA_ENV_FILE", DEFAULT_ENV_FILE))
    load_env_file(env_path)

    default_currency = get_config_value("BITACORA_DEFAULT_CURRENCY", DEFAULT_CURRENCY).strip()
    currencies = get_config_list("BITACORA_KNOWN_CURRENCIES", list(KNOWN_CURRENCIES))
    domains = get_config_list("BITACORA_SENDER_DOMAINS", list(BINANCE_SENDER_DOMAINS))

    return ParserConfig(
        default_currency=default_currency.upper() or None,
        known_currencies=tuple(code.upper() for code in currencies),
        sender_domains=tuple(domain.lower() for domain in domains),
        require_known_sender=get_config_value("BITACORA_REQUIRE_KNOWN_SENDER", "0") == "1",
    )
