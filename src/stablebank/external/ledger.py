"""
Ledger: durable record of settled transfers.

The bank hands each accepted settlement to a Ledger and treats a failure as
fatal for that operation. InMemoryLedger keeps the batches as a hash chain so
that tampering with recorded history is detectable.
"""

import hashlib
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable

import structlog
from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

from stablebank.core.errors import LedgerError
from stablebank.core.models import Transfer
from stablebank.core.money import ZERO, Address, CurrencyCode, exact

logger = structlog.get_logger()


@runtime_checkable
class Ledger(Protocol):
    """Records a batch of transfers atomically, or raises."""

    def record_transfers(self, transfers: Sequence[Transfer]) -> object:
        ...


class LedgerEntry(BaseModel):
    """One recorded batch of transfers in the chain."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: str(ULID()))
    number: int
    hash: str = ""
    previous_hash: str
    transfers: tuple[Transfer, ...] = Field(default_factory=tuple)
    merkle_root: str = ""
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass
class LedgerStats:
    """Statistics about the ledger."""

    height: int
    total_transfers: int
    volume: dict[str, Decimal]  # By currency
    chain_valid: bool


class InMemoryLedger:
    """Hash-chained, append-only ledger held in memory."""

    GENESIS_HASH = "0" * 64

    def __init__(self) -> None:
        self._entries: list[LedgerEntry] = []
        self._lock = threading.Lock()
        self._log = logger.bind(component="ledger")

        genesis = LedgerEntry(
            number=0,
            hash=self.GENESIS_HASH,
            previous_hash="",
            merkle_root=_merkle_root([]),
        )
        self._entries.append(genesis)

    @property
    def height(self) -> int:
        return len(self._entries) - 1

    @property
    def entries(self) -> tuple[LedgerEntry, ...]:
        return tuple(self._entries)

    @property
    def transfer_count(self) -> int:
        return sum(len(e.transfers) for e in self._entries)

    def get_entry(self, number: int) -> LedgerEntry | None:
        """Get an entry by chain position."""
        if 0 <= number < len(self._entries):
            return self._entries[number]
        return None

    def get_latest_entry(self) -> LedgerEntry:
        return self._entries[-1]

    def record_transfers(self, transfers: Sequence[Transfer]) -> LedgerEntry:
        """Append a batch of transfers as one chain entry."""
        batch = tuple(transfers)
        if not batch:
            raise LedgerError("Refusing to record an empty batch")

        with self._lock:
            latest = self._entries[-1]
            number = latest.number + 1
            merkle_root = _merkle_root([_transfer_digest(t) for t in batch])
            entry = LedgerEntry(
                number=number,
                hash=_entry_hash(number, latest.hash, merkle_root),
                previous_hash=latest.hash,
                transfers=batch,
                merkle_root=merkle_root,
            )
            self._entries.append(entry)

        self._log.info("settlement_recorded", number=number, transfer_count=len(batch))
        return entry

    def balance_of(self, address: Address, currency: CurrencyCode) -> Decimal:
        """Net amount of a currency an address has received across all entries."""
        total = ZERO
        with exact():
            for entry in self._entries:
                for t in entry.transfers:
                    if t.currency != currency:
                        continue
                    if t.recipient == address:
                        total += t.amount
                    if t.sender == address:
                        total -= t.amount
        return total

    def validate_chain(self) -> bool:
        """Re-derive every link and hash in the chain."""
        for i in range(1, len(self._entries)):
            entry = self._entries[i]
            previous = self._entries[i - 1]

            if entry.previous_hash != previous.hash:
                self._log.warning("chain_invalid", entry=i, reason="previous_hash_mismatch")
                return False

            merkle_root = _merkle_root([_transfer_digest(t) for t in entry.transfers])
            if entry.merkle_root != merkle_root:
                self._log.warning("chain_invalid", entry=i, reason="merkle_root_mismatch")
                return False

            if entry.hash != _entry_hash(entry.number, entry.previous_hash, entry.merkle_root):
                self._log.warning("chain_invalid", entry=i, reason="hash_mismatch")
                return False

        return True

    def get_stats(self) -> LedgerStats:
        """Get ledger statistics."""
        volume: dict[str, Decimal] = {}
        with exact():
            for entry in self._entries:
                for t in entry.transfers:
                    volume[t.currency] = volume.get(t.currency, ZERO) + t.amount

        return LedgerStats(
            height=self.height,
            total_transfers=self.transfer_count,
            volume=volume,
            chain_valid=self.validate_chain(),
        )


def _transfer_digest(transfer: Transfer) -> str:
    data = f"{transfer.sender}|{transfer.recipient}|{transfer.amount}|{transfer.currency}"
    return hashlib.sha256(data.encode()).hexdigest()


def _merkle_root(digests: list[str]) -> str:
    if not digests:
        return hashlib.sha256(b"empty").hexdigest()

    hashes = list(digests)
    while len(hashes) > 1:
        if len(hashes) % 2 == 1:
            hashes.append(hashes[-1])  # Duplicate last
        hashes = [
            hashlib.sha256((hashes[i] + hashes[i + 1]).encode()).hexdigest()
            for i in range(0, len(hashes), 2)
        ]
    return hashes[0]


def _entry_hash(number: int, previous_hash: str, merkle_root: str) -> str:
    return hashlib.sha256(f"{number}{previous_hash}{merkle_root}".encode()).hexdigest()
