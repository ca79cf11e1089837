"""Core money types, models and errors for the stablebank system."""

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
from stablebank.core.money import (
    EXACT_CONTEXT,
    PRICE_CONTEXT,
    Address,
    CurrencyCode,
    Money,
    exact,
    rounded,
    to_money,
)

__all__ = [
    "EXACT_CONTEXT",
    "PRICE_CONTEXT",
    "Address",
    "BankConfig",
    "BankError",
    "BankState",
    "CurrencyCode",
    "InvariantViolation",
    "LedgerError",
    "MintOrRedeemResult",
    "MintOrRedeemStatus",
    "Money",
    "RateUnavailable",
    "RejectionReason",
    "SettlementRecord",
    "TransactionProposal",
    "Transfer",
    "exact",
    "rounded",
    "to_money",
]
