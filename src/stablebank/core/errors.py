"""
Error taxonomy for the bank.

Policy rejection is deliberately absent: a request that would leave reserves
outside the admissible band is an ordinary negative outcome, reported through
MintOrRedeemResult rather than raised.
"""

from typing import Any


class BankError(Exception):
    """Base class for failures that abort a bank operation."""


class RateUnavailable(BankError, LookupError):
    """The oracle has not published a rate for the ordered currency pair."""

    def __init__(self, from_currency: str, to_currency: str) -> None:
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(f"No conversion rate published for {from_currency} -> {to_currency}")


class InvariantViolation(BankError):
    """An engine contract does not hold. Indicates a bug; never corrected."""

    def __init__(self, message: str, **context: Any) -> None:
        self.context = context
        details = ", ".join(f"{k}={v}" for k, v in context.items())
        super().__init__(f"{message} ({details})" if details else message)


class LedgerError(BankError):
    """The ledger failed to record a settlement."""
