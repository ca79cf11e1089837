"""
Bank: owner of the reserve and supply state, and the only thing that changes it.

The bank keeps a reserve of a base currency and issues two tokens against it:
a stable token pegged to an external currency, and a residual token that owns
whatever the reserves hold beyond the stable holders' claim. Prices, bounds and
validity come from the pure engine; the bank only sequences them.

mint_or_redeem runs read-check-settle-commit under a lock. The settlement is
handed to the ledger before the new state is published, so a ledger failure
leaves the bank exactly as it was.
"""

import threading
from dataclasses import dataclass
from decimal import Decimal

import structlog

from stablebank.core.errors import InvariantViolation, LedgerError, RateUnavailable
from stablebank.core.models import (
    BankConfig,
    BankState,
    MintOrRedeemResult,
    RejectionReason,
    SettlementRecord,
    TransactionProposal,
    Transfer,
)
from stablebank.core.money import ZERO, Address, exact, to_money
from stablebank.engine.policy import SolvencyPolicy
from stablebank.engine.pricing import PricingEngine
from stablebank.engine.validator import TransactionValidator
from stablebank.external.ledger import Ledger
from stablebank.external.oracle import ExchangeOracle

logger = structlog.get_logger()

ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class Quote:
    """What a mint/redeem request would do to the bank, without doing it."""

    amount_base: Decimal
    fee: Decimal
    new_state: BankState | None
    reason: RejectionReason | None = None

    @property
    def acceptable(self) -> bool:
        return self.reason is None


@dataclass
class BankStats:
    """Statistics about the bank."""

    state: BankState
    accepted_transactions: int
    rejected_transactions: int
    total_fees: Decimal
    reserve_ratio: Decimal | None


class Bank:
    """
    Reserve-backed two-token bank.

    Example:
        bank = Bank(config, oracle, ledger)
        result = bank.mint_or_redeem(Decimal("100"), Decimal("0"), counterparty="alice")
        if result.accepted:
            print(result.amount_base, result.fee)
    """

    def __init__(
        self,
        config: BankConfig,
        oracle: ExchangeOracle,
        ledger: Ledger,
        initial_state: BankState | None = None,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._engine = PricingEngine(config, oracle)
        self._policy = SolvencyPolicy(self._engine)
        self._validator = TransactionValidator(self._engine, self._policy)

        self._state = initial_state or BankState()
        self._lock = threading.Lock()
        self._accepted = 0
        self._rejected = 0
        self._total_fees = ZERO
        self._log = logger.bind(component="bank", address=config.address)

    @property
    def config(self) -> BankConfig:
        return self._config

    @property
    def engine(self) -> PricingEngine:
        return self._engine

    @property
    def policy(self) -> SolvencyPolicy:
        return self._policy

    @property
    def validator(self) -> TransactionValidator:
        return self._validator

    @property
    def state(self) -> BankState:
        return self.snapshot()

    def snapshot(self) -> BankState:
        """The committed state. Immutable, so safe to hold on to."""
        with self._lock:
            return self._state

    # --- Read-only views ---

    def prices(self) -> tuple[Decimal, Decimal]:
        """Current (stable, residual) nominal prices in base currency."""
        return self._engine.prices(self.snapshot())

    def reserve_ratio(self) -> Decimal | None:
        state = self.snapshot()
        return self._engine.reserve_ratio(state.reserves, state.stable_supply)

    def quote(
        self,
        amount_stable: Decimal | int | str,
        amount_residual: Decimal | int | str,
    ) -> Quote:
        """Price a request against the committed state without committing it."""
        state = self.snapshot()
        return self._plan(
            state,
            to_money(amount_stable),
            to_money(amount_residual),
            self._engine.peg_rate(),
        )

    def is_valid_transaction(
        self,
        amount_base: Decimal | int | str,
        amount_stable: Decimal | int | str,
        amount_residual: Decimal | int | str,
        fee: Decimal | int | str,
    ) -> bool:
        """Check a transaction against the committed state."""
        return self._validator.is_valid_transaction(
            self.snapshot(), amount_base, amount_stable, amount_residual, fee
        )

    # --- State transition ---

    def mint_or_redeem(
        self,
        amount_stable: Decimal | int | str,
        amount_residual: Decimal | int | str,
        *,
        counterparty: Address = ANONYMOUS,
    ) -> MintOrRedeemResult:
        """
        Mint (positive) or redeem (negative) stable and residual tokens.

        Returns an accepted result with the base amount withdrawn (positive) or
        deposited (negative) by the counterparty and the fee it pays, or a
        rejected result naming the bound the request would break. Rejection
        leaves the state untouched.

        Raises:
            RateUnavailable: the oracle has no peg rate; nothing is committed.
            InvariantViolation: the engine contradicted itself; nothing is committed.
            LedgerError: the settlement could not be recorded; nothing is committed.
        """
        amount_stable = to_money(amount_stable)
        amount_residual = to_money(amount_residual)

        with self._lock:
            state = self._state
            try:
                rate = self._engine.peg_rate()
            except RateUnavailable:
                self._log.warning("mint_or_redeem_failed", reason="rate_unavailable")
                raise

            plan = self._plan(state, amount_stable, amount_residual, rate)
            if plan.reason is not None:
                self._rejected += 1
                self._log.info(
                    "mint_or_redeem_rejected",
                    amount_stable=str(amount_stable),
                    amount_residual=str(amount_residual),
                    reason=plan.reason.value,
                )
                return MintOrRedeemResult.reject(plan.reason)

            proposal = TransactionProposal(
                amount_base=plan.amount_base,
                amount_stable=amount_stable,
                amount_residual=amount_residual,
                fee=plan.fee,
            )
            validation = self._validator.validate(state, proposal, rate)
            if not validation.valid:
                self._log.error("invariant_violation", check="accepted_is_valid", errors=validation.errors)
                raise InvariantViolation(
                    "Accepted transaction fails validation",
                    errors=validation.errors,
                )

            assert plan.new_state is not None
            settlement = self._settlement(proposal, counterparty)
            self._record(settlement)

            self._state = plan.new_state
            self._accepted += 1
            with exact():
                self._total_fees += plan.fee

        self._log.info(
            "mint_or_redeem_accepted",
            counterparty=counterparty,
            amount_stable=str(amount_stable),
            amount_residual=str(amount_residual),
            amount_base=str(plan.amount_base),
            fee=str(plan.fee),
            settlement_id=settlement.id,
        )
        return MintOrRedeemResult.accept(plan.amount_base, plan.fee, settlement)

    def get_stats(self) -> BankStats:
        """Get bank statistics."""
        with self._lock:
            state = self._state
            accepted, rejected, fees = self._accepted, self._rejected, self._total_fees

        return BankStats(
            state=state,
            accepted_transactions=accepted,
            rejected_transactions=rejected,
            total_fees=fees,
            reserve_ratio=self._engine.reserve_ratio(state.reserves, state.stable_supply),
        )

    # --- Internals ---

    def _plan(
        self,
        state: BankState,
        amount_stable: Decimal,
        amount_residual: Decimal,
        rate: Decimal,
    ) -> Quote:
        legs = self._engine.value_legs(state, amount_stable, amount_residual, rate)
        amount_base = legs.amount_base
        fee = self._engine.fee_for(legs)

        with exact():
            new_reserves = state.reserves + (fee - amount_base)
            new_stable_supply = state.stable_supply + amount_stable
            new_residual_supply = state.residual_supply + amount_residual

        if new_stable_supply < 0 or new_residual_supply < 0:
            return Quote(amount_base, fee, None, RejectionReason.NEGATIVE_SUPPLY)
        if new_reserves < 0:
            return Quote(amount_base, fee, None, RejectionReason.NEGATIVE_RESERVES)

        decision = self._policy.check(
            amount_stable > 0,
            amount_residual > 0,
            amount_residual < 0,
            new_reserves,
            new_stable_supply,
            rate,
        )
        if not decision.acceptable:
            return Quote(amount_base, fee, None, decision.reason)

        new_state = BankState(
            reserves=new_reserves,
            stable_supply=new_stable_supply,
            residual_supply=new_residual_supply,
        )
        return Quote(amount_base, fee, new_state)

    def _settlement(self, proposal: TransactionProposal, counterparty: Address) -> SettlementRecord:
        bank = self._config.address
        transfers: list[Transfer] = []

        def leg(amount: Decimal, currency: str) -> None:
            # Positive: bank pays the counterparty. Negative: counterparty pays the bank.
            if amount > 0:
                transfers.append(Transfer(sender=bank, recipient=counterparty, amount=amount, currency=currency))
            elif amount < 0:
                transfers.append(Transfer(sender=counterparty, recipient=bank, amount=-amount, currency=currency))

        with exact():
            leg(proposal.amount_stable, self._config.stable_token)
            leg(proposal.amount_residual, self._config.residual_token)
            leg(proposal.amount_base, self._config.base_currency)
            leg(-proposal.fee, self._config.base_currency)

        return SettlementRecord(counterparty=counterparty, transfers=tuple(transfers))

    def _record(self, settlement: SettlementRecord) -> None:
        if not settlement.transfers:
            return
        try:
            self._ledger.record_transfers(settlement.transfers)
        except LedgerError:
            self._log.error("ledger_record_failed", settlement_id=settlement.id)
            raise
        except Exception as e:
            self._log.error("ledger_record_failed", settlement_id=settlement.id, error=str(e))
            raise LedgerError(f"Ledger failed to record settlement {settlement.id}") from e
