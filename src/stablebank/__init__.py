"""
stablebank

A reserve-backed bank issuing two tokens against one base currency:
a stable token pegged to an external currency, and a residual token
that holds the bank's equity and absorbs reserve volatility.

- PricingEngine → liabilities, equity, nominal prices, reserve bounds
- SolvencyPolicy → admissible reserve band
- TransactionValidator → price/fee/solvency consistency
- Bank → the single mutating operation, mint_or_redeem
"""

__version__ = "0.1.0"

from stablebank.bank import Bank, BankStats, Quote
from stablebank.core.errors import BankError, InvariantViolation, LedgerError, RateUnavailable
from stablebank.core.models import (
    BankConfig,
    BankState,
    MintOrRedeemResult,
    MintOrRedeemStatus,
    RejectionReason,
    SettlementRecord,
    TransactionProposal,
    Transfer,
)
from stablebank.engine import PricingEngine, SolvencyPolicy, TransactionValidator
from stablebank.external import ExchangeOracle, InMemoryLedger, InMemoryOracle, Ledger

__all__ = [
    "__version__",
    "Bank",
    "BankConfig",
    "BankError",
    "BankState",
    "BankStats",
    "ExchangeOracle",
    "InMemoryLedger",
    "InMemoryOracle",
    "InvariantViolation",
    "Ledger",
    "LedgerError",
    "MintOrRedeemResult",
    "MintOrRedeemStatus",
    "PricingEngine",
    "Quote",
    "RateUnavailable",
    "RejectionReason",
    "SettlementRecord",
    "SolvencyPolicy",
    "TransactionProposal",
    "TransactionValidator",
    "Transfer",
]
