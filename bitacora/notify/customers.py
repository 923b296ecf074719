"""Customer directory used to attribute transactions and address digests."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from bitacora.core.models import TransactionRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    wallet_addresses: tuple = field(default_factory=tuple)
    telegram_id: Optional[str] = None
    catch_all: bool = False


class CustomerDirectory:
    """Look customers up by wallet address, with an optional catch-all entry.

    A catch-all customer receives every record that carries no matching
    wallet address, which is the usual case for single-account setups where
    deposit notices do not name the source wallet.
    """

    def __init__(self, customers: Iterable[Customer]) -> None:
        self.customers: List[Customer] = list(customers)

    def by_wallet(self, wallet_address: str | None) -> Optional[Customer]:
        if not wallet_address:
            return None
        wanted = wallet_address.lower()
        for customer in self.customers:
            if any(address.lower() == wanted for address in customer.wallet_addresses):
                return customer
        return None

    def catch_all(self) -> Optional[Customer]:
        return next((customer for customer in self.customers if customer.catch_all), None)

    def customer_for(self, record: TransactionRecord) -> Optional[Customer]:
        return self.by_wallet(record.wallet_address) or self.catch_all()


def load_customers(path: Path) -> CustomerDirectory:
    """Read a JSON list of customers.

    Each entry needs ``id`` and ``name``; ``wallet_addresses``,
    ``telegram_id`` and ``catch_all`` are optional.
    """

    raw = json.loads(path.read_text(encoding="utf-8"))
    customers = [
        Customer(
            id=str(entry["id"]),
            name=entry["name"],
            wallet_addresses=tuple(entry.get("wallet_addresses", [])),
            telegram_id=str(entry["telegram_id"]) if entry.get("telegram_id") else None,
            catch_all=bool(entry.get("catch_all", False)),
        )
        for entry in raw
    ]
    logger.info("Loaded %d customers from %s", len(customers), path)
    return CustomerDirectory(customers)
