"""
TransactionValidator: cross-checks a submitted transaction against the engine.

A transaction minting/redeeming `amount_stable` and `amount_residual` and
withdrawing/depositing `amount_base` is valid iff:

1. the resulting reserve change is acceptable to the solvency policy,
2. the base flow exactly offsets both token legs at current nominal prices,
3. the fee equals the fee rate applied to the gross notional of both legs.

All three use the prices of the state before the transition.
"""

from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from stablebank.core.models import BankState, TransactionProposal
from stablebank.core.money import exact, to_money
from stablebank.engine.policy import SolvencyPolicy
from stablebank.engine.pricing import PricingEngine

logger = structlog.get_logger()


@dataclass
class ValidationResult:
    """Result of transaction validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)


class TransactionValidator:
    """Checks price, fee and solvency consistency of a proposal."""

    def __init__(self, engine: PricingEngine, policy: SolvencyPolicy) -> None:
        self._engine = engine
        self._policy = policy
        self._log = logger.bind(component="transaction_validator")

    def validate(
        self,
        state: BankState,
        proposal: TransactionProposal,
        rate: Decimal | None = None,
    ) -> ValidationResult:
        """Validate a proposal against a committed state, collecting every failure."""
        p = self._engine.peg_rate() if rate is None else rate
        errors: list[str] = []

        legs = self._engine.value_legs(state, proposal.amount_stable, proposal.amount_residual, p)
        with exact():
            new_reserves = state.reserves + proposal.reserve_delta
            new_stable_supply = state.stable_supply + proposal.amount_stable
            imbalance = legs.stable_value + legs.residual_value + proposal.amount_base

        decision = self._policy.check(
            proposal.mints_stable,
            proposal.mints_residual,
            proposal.redeems_residual,
            new_reserves,
            new_stable_supply,
            p,
        )
        if not decision.acceptable:
            assert decision.reason is not None
            errors.append(f"Unacceptable reserve change: {decision.reason.value}")

        if imbalance != 0:
            errors.append(f"Base amount does not match nominal prices (off by {imbalance})")

        expected_fee = self._engine.fee_for(legs)
        if proposal.fee != expected_fee:
            errors.append(f"Incorrect fee: expected {expected_fee}, got {proposal.fee}")

        if errors:
            self._log.debug("transaction_invalid", errors=errors)
        return ValidationResult(valid=not errors, errors=errors)

    def is_valid_transaction(
        self,
        state: BankState,
        amount_base: Decimal | int | str,
        amount_stable: Decimal | int | str,
        amount_residual: Decimal | int | str,
        fee: Decimal | int | str,
        rate: Decimal | None = None,
    ) -> bool:
        proposal = TransactionProposal(
            amount_base=to_money(amount_base),
            amount_stable=to_money(amount_stable),
            amount_residual=to_money(amount_residual),
            fee=to_money(fee),
        )
        return self.validate(state, proposal, rate).valid
