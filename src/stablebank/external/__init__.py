"""External collaborators consumed by the bank: price oracle and ledger."""

from stablebank.external.ledger import InMemoryLedger, Ledger, LedgerEntry, LedgerStats
from stablebank.external.oracle import ExchangeOracle, ExchangeRate, InMemoryOracle

__all__ = [
    "ExchangeOracle",
    "ExchangeRate",
    "InMemoryLedger",
    "InMemoryOracle",
    "Ledger",
    "LedgerEntry",
    "LedgerStats",
]
