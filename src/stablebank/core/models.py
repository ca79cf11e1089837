"""
Bank domain models: configuration, state snapshots, proposals and settlements.

Configuration and state are immutable pydantic models. The bank replaces its
state snapshot wholesale on every accepted transition; nothing here mutates.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum, auto
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from ulid import ULID

from stablebank.core.money import ZERO, Address, CurrencyCode, Money, exact


class BankConfig(BaseModel):
    """Immutable bank parameters, fixed at construction."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: Address = "bank"

    # Fee charged on the gross notional of both token legs
    fee_rate: Money = Field(ge=0, lt=1)

    # Reserve band, as multiples of the stable supply valued at the peg rate
    min_reserve_ratio: Money = Field(ge=0)
    max_reserve_ratio: Money = Field(ge=0)

    # Residual token price while no residual tokens are outstanding
    residual_default_price: Money = Field(gt=0)

    base_currency: CurrencyCode = Field(min_length=1)
    peg_currency: CurrencyCode = Field(min_length=1)
    stable_token: CurrencyCode = Field(min_length=1)
    residual_token: CurrencyCode = Field(min_length=1)

    @model_validator(mode="after")
    def validate_band_and_currencies(self) -> Self:
        if self.max_reserve_ratio < self.min_reserve_ratio:
            raise ValueError(
                f"max_reserve_ratio ({self.max_reserve_ratio}) below "
                f"min_reserve_ratio ({self.min_reserve_ratio})"
            )
        codes = [self.base_currency, self.peg_currency, self.stable_token, self.residual_token]
        if len(set(codes)) != len(codes):
            raise ValueError(f"Currency codes must be distinct, got {codes}")
        return self


class BankState(BaseModel):
    """Snapshot of the bank's reserves and outstanding token supplies."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    reserves: Money = Field(default=ZERO, ge=0)
    stable_supply: Money = Field(default=ZERO, ge=0)
    residual_supply: Money = Field(default=ZERO, ge=0)


class TransactionProposal(BaseModel):
    """
    A mint/redeem transaction as submitted for validation.

    Positive token amounts mint, negative redeem. A positive amount_base is a
    withdrawal from the reserves by the counterparty, negative a deposit.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    amount_base: Money
    amount_stable: Money
    amount_residual: Money
    fee: Money

    @property
    def reserve_delta(self) -> Decimal:
        with exact():
            return self.fee - self.amount_base

    @property
    def mints_stable(self) -> bool:
        return self.amount_stable > 0

    @property
    def mints_residual(self) -> bool:
        return self.amount_residual > 0

    @property
    def redeems_residual(self) -> bool:
        return self.amount_residual < 0


class Transfer(BaseModel):
    """A single movement of one currency between two ledger addresses."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    sender: Address
    recipient: Address
    amount: Money = Field(gt=0)
    currency: CurrencyCode


class SettlementRecord(BaseModel):
    """The transfers that settle one accepted mint/redeem transaction."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: str(ULID()))
    counterparty: Address
    transfers: tuple[Transfer, ...]
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def net_flow(self, address: Address, currency: CurrencyCode) -> Decimal:
        """Net amount of a currency received by an address."""
        total = ZERO
        with exact():
            for t in self.transfers:
                if t.currency != currency:
                    continue
                if t.recipient == address:
                    total += t.amount
                if t.sender == address:
                    total -= t.amount
        return total


class MintOrRedeemStatus(Enum):
    """Outcome of a mint/redeem request."""

    ACCEPTED = auto()
    REJECTED = auto()


class RejectionReason(Enum):
    """Which admissibility bound a rejected request would have broken."""

    BELOW_MIN_RESERVE = "below_min_reserve"
    ABOVE_MAX_RESERVE = "above_max_reserve"
    NEGATIVE_SUPPLY = "negative_supply"
    NEGATIVE_RESERVES = "negative_reserves"


@dataclass(frozen=True)
class MintOrRedeemResult:
    """Result of Bank.mint_or_redeem."""

    status: MintOrRedeemStatus
    amount_base: Decimal | None = None
    fee: Decimal | None = None
    reason: RejectionReason | None = None
    settlement: SettlementRecord | None = None

    @property
    def accepted(self) -> bool:
        return self.status == MintOrRedeemStatus.ACCEPTED

    @classmethod
    def accept(
        cls,
        amount_base: Decimal,
        fee: Decimal,
        settlement: SettlementRecord | None = None,
    ) -> "MintOrRedeemResult":
        return cls(
            status=MintOrRedeemStatus.ACCEPTED,
            amount_base=amount_base,
            fee=fee,
            settlement=settlement,
        )

    @classmethod
    def reject(cls, reason: RejectionReason) -> "MintOrRedeemResult":
        return cls(status=MintOrRedeemStatus.REJECTED, reason=reason)
