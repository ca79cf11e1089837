"""Tests for the pure engine: PricingEngine, SolvencyPolicy, TransactionValidator."""

import itertools
from decimal import Decimal

import pytest

from stablebank.core.errors import InvariantViolation, RateUnavailable
from stablebank.core.models import BankConfig, BankState, RejectionReason, TransactionProposal
from stablebank.engine.policy import SolvencyPolicy
from stablebank.engine.pricing import PricingEngine
from stablebank.engine.validator import TransactionValidator
from stablebank.external.oracle import InMemoryOracle

D = Decimal


def make_config(**overrides: object) -> BankConfig:
    params: dict[str, object] = {
        "fee_rate": D("0.01"),
        "min_reserve_ratio": D("1.0"),
        "max_reserve_ratio": D("2.0"),
        "residual_default_price": D("1.5"),
        "base_currency": "ERG",
        "peg_currency": "USD",
        "stable_token": "SUSD",
        "residual_token": "SRSV",
    }
    params.update(overrides)
    return BankConfig(**params)


def make_engine(rate: str | None = "1", **overrides: object) -> PricingEngine:
    oracle = InMemoryOracle()
    if rate is not None:
        oracle.update_conversion_rate("USD", "ERG", rate)
    return PricingEngine(make_config(**overrides), oracle)


class ConstantOracle:
    """Oracle that answers every pair with one fixed rate."""

    def __init__(self, rate: Decimal) -> None:
        self.rate = rate

    def conversion_rate(self, from_currency: str, to_currency: str) -> Decimal:
        return self.rate


RESERVES = [D("0"), D("0.000001"), D("1"), D("7"), D("100"), D("1000"), D("123456.789")]
SUPPLIES = [D("0"), D("0.000001"), D("1"), D("3"), D("500"), D("99999.5")]
RATES = ["0.5", "1", "3.14159"]


# ============================================================================
# PricingEngine Tests
# ============================================================================


class TestPricingEngine:
    @pytest.fixture
    def engine(self) -> PricingEngine:
        return make_engine()

    def test_peg_rate(self) -> None:
        assert make_engine("2.5").peg_rate() == D("2.5")

    def test_missing_rate_propagates(self) -> None:
        engine = make_engine(rate=None)
        with pytest.raises(RateUnavailable):
            engine.stable_nominal_price(D("1000"), D("0"))

    def test_non_positive_rate_is_invariant_violation(self) -> None:
        engine = PricingEngine(make_config(), ConstantOracle(D("0")))
        with pytest.raises(InvariantViolation):
            engine.peg_rate()

    def test_liabilities_fully_backed(self, engine: PricingEngine) -> None:
        assert engine.liabilities(D("1000"), D("500")) == D("500")

    def test_liabilities_capped_at_reserves(self, engine: PricingEngine) -> None:
        assert engine.liabilities(D("100"), D("500")) == D("100")

    def test_equity(self, engine: PricingEngine) -> None:
        assert engine.equity(D("1000"), D("500")) == D("500")
        assert engine.equity(D("100"), D("500")) == D("0")

    def test_stable_price_at_par(self, engine: PricingEngine) -> None:
        assert engine.stable_nominal_price(D("1000"), D("500")) == D("1")

    def test_stable_price_below_par_when_undercollateralized(self, engine: PricingEngine) -> None:
        """Test the peg is abandoned for an equal share of the reserves."""
        assert engine.stable_nominal_price(D("400"), D("500")) == D("0.8")

    def test_stable_price_zero_supply_is_raw_rate(self) -> None:
        engine = make_engine("2.75")
        assert engine.stable_nominal_price(D("0"), D("0")) == D("2.75")
        assert engine.stable_nominal_price(D("1000"), D("0")) == D("2.75")

    def test_residual_price_book_value(self, engine: PricingEngine) -> None:
        assert engine.residual_nominal_price(D("1000"), D("500"), D("100")) == D("5")

    def test_residual_price_zero_supply_is_default(self, engine: PricingEngine) -> None:
        assert engine.residual_nominal_price(D("1000"), D("500"), D("0")) == D("1.5")

    def test_residual_price_zero_supply_needs_no_rate(self) -> None:
        engine = make_engine(rate=None)
        assert engine.residual_nominal_price(D("0"), D("0"), D("0")) == D("1.5")

    def test_residual_price_zero_when_insolvent(self, engine: PricingEngine) -> None:
        assert engine.residual_nominal_price(D("400"), D("500"), D("100")) == D("0")

    def test_reserve_bounds(self) -> None:
        engine = make_engine("2")
        assert engine.min_reserve(D("500")) == D("1000")
        assert engine.max_reserve(D("500")) == D("2000")
        assert engine.min_reserve(D("0")) == D("0")

    def test_reserve_ratio(self, engine: PricingEngine) -> None:
        assert engine.reserve_ratio(D("1000"), D("500")) == D("2")
        assert engine.reserve_ratio(D("1000"), D("0")) is None

    def test_explicit_rate_overrides_oracle(self, engine: PricingEngine) -> None:
        assert engine.liabilities(D("1000"), D("500"), rate=D("1.5")) == D("750")

    def test_value_legs_and_fee(self, engine: PricingEngine) -> None:
        state = BankState(reserves=D("1000"), stable_supply=D("500"), residual_supply=D("100"))
        legs = engine.value_legs(state, D("100"), D("-10"))
        assert legs.stable_value == D("100")
        assert legs.residual_value == D("-50")
        assert legs.amount_base == D("-50")
        assert legs.gross_notional == D("150")
        assert engine.fee_for(legs) == D("1.5")

    def test_prices(self, engine: PricingEngine) -> None:
        state = BankState(reserves=D("1000"), stable_supply=D("500"), residual_supply=D("100"))
        assert engine.prices(state) == (D("1"), D("5"))

    @pytest.mark.parametrize("rate", RATES)
    def test_liabilities_never_exceed_reserves(self, rate: str) -> None:
        engine = make_engine(rate)
        for r, sc in itertools.product(RESERVES, SUPPLIES):
            assert engine.liabilities(r, sc) <= r

    @pytest.mark.parametrize("rate", RATES)
    def test_equity_never_negative(self, rate: str) -> None:
        engine = make_engine(rate)
        for r, sc in itertools.product(RESERVES, SUPPLIES):
            assert engine.equity(r, sc) >= 0

    @pytest.mark.parametrize("rate", RATES)
    def test_stable_price_non_increasing_in_supply(self, rate: str) -> None:
        engine = make_engine(rate)
        for r in RESERVES:
            prices = [engine.stable_nominal_price(r, sc) for sc in sorted(SUPPLIES)]
            assert all(a >= b for a, b in itertools.pairwise(prices))

    @pytest.mark.parametrize("rate", RATES)
    def test_stable_price_never_above_par(self, rate: str) -> None:
        engine = make_engine(rate)
        for r, sc in itertools.product(RESERVES, SUPPLIES):
            assert engine.stable_nominal_price(r, sc) <= D(rate)


# ============================================================================
# SolvencyPolicy Tests
# ============================================================================


class TestSolvencyPolicy:
    @pytest.fixture
    def policy(self) -> SolvencyPolicy:
        # Band for 500 stable tokens at rate 1: [500, 1000]
        return SolvencyPolicy(make_engine())

    def test_mint_stable_above_floor(self, policy: SolvencyPolicy) -> None:
        assert policy.acceptable_reserve_change(True, False, False, D("600"), D("500")) is True

    def test_mint_stable_below_floor(self, policy: SolvencyPolicy) -> None:
        decision = policy.check(True, False, False, D("499.99"), D("500"))
        assert decision.acceptable is False
        assert decision.reason == RejectionReason.BELOW_MIN_RESERVE
        assert decision.min_reserve == D("500")

    def test_floor_is_inclusive(self, policy: SolvencyPolicy) -> None:
        assert policy.acceptable_reserve_change(True, False, False, D("500"), D("500")) is True

    def test_redeem_residual_below_floor(self, policy: SolvencyPolicy) -> None:
        assert policy.acceptable_reserve_change(False, False, True, D("400"), D("500")) is False

    def test_mint_residual_above_ceiling(self, policy: SolvencyPolicy) -> None:
        decision = policy.check(False, True, False, D("1000.01"), D("500"))
        assert decision.acceptable is False
        assert decision.reason == RejectionReason.ABOVE_MAX_RESERVE
        assert decision.max_reserve == D("1000")

    def test_ceiling_is_inclusive(self, policy: SolvencyPolicy) -> None:
        assert policy.acceptable_reserve_change(False, True, False, D("1000"), D("500")) is True

    def test_mint_residual_ignores_floor(self, policy: SolvencyPolicy) -> None:
        """Test only the ceiling binds residual issuance."""
        assert policy.acceptable_reserve_change(False, True, False, D("100"), D("500")) is True

    def test_redeem_stable_unconstrained(self, policy: SolvencyPolicy) -> None:
        """Test stable holders can exit even past the ceiling."""
        assert policy.acceptable_reserve_change(False, False, False, D("5000"), D("500")) is True
        assert policy.acceptable_reserve_change(False, False, False, D("1"), D("500")) is True

    def test_both_bounds_when_minting_both(self, policy: SolvencyPolicy) -> None:
        assert policy.acceptable_reserve_change(True, True, False, D("750"), D("500")) is True
        assert policy.acceptable_reserve_change(True, True, False, D("499"), D("500")) is False
        assert policy.acceptable_reserve_change(True, True, False, D("1001"), D("500")) is False

    def test_unconstrained_check_skips_oracle(self) -> None:
        policy = SolvencyPolicy(make_engine(rate=None))
        assert policy.acceptable_reserve_change(False, False, False, D("10"), D("500")) is True
        with pytest.raises(RateUnavailable):
            policy.acceptable_reserve_change(True, False, False, D("10"), D("500"))


# ============================================================================
# TransactionValidator Tests
# ============================================================================


class TestTransactionValidator:
    @pytest.fixture
    def validator(self) -> TransactionValidator:
        engine = make_engine()
        return TransactionValidator(engine, SolvencyPolicy(engine))

    @pytest.fixture
    def state(self) -> BankState:
        return BankState(reserves=D("1000"), stable_supply=D("500"), residual_supply=D("100"))

    def test_valid_stable_mint(self, validator: TransactionValidator, state: BankState) -> None:
        assert validator.is_valid_transaction(state, "-100", "100", "0", "1") is True

    def test_valid_stable_redeem(self, validator: TransactionValidator, state: BankState) -> None:
        assert validator.is_valid_transaction(state, "100", "-100", "0", "1") is True

    def test_wrong_fee(self, validator: TransactionValidator, state: BankState) -> None:
        proposal = TransactionProposal(
            amount_base=D("-100"), amount_stable=D("100"), amount_residual=D("0"), fee=D("2")
        )
        result = validator.validate(state, proposal)
        assert result.valid is False
        assert any("Incorrect fee" in e for e in result.errors)

    def test_wrong_price(self, validator: TransactionValidator, state: BankState) -> None:
        """Test a counterparty cannot keep an arbitrage margin."""
        proposal = TransactionProposal(
            amount_base=D("-99"), amount_stable=D("100"), amount_residual=D("0"), fee=D("1")
        )
        result = validator.validate(state, proposal)
        assert result.valid is False
        assert any("nominal prices" in e for e in result.errors)

    def test_unacceptable_reserve_change(
        self, validator: TransactionValidator, state: BankState
    ) -> None:
        # Residual at book value 5; reserves already at the 1000 ceiling
        proposal = TransactionProposal(
            amount_base=D("-50"), amount_stable=D("0"), amount_residual=D("10"), fee=D("0.5")
        )
        result = validator.validate(state, proposal)
        assert result.valid is False
        assert result.errors == ["Unacceptable reserve change: above_max_reserve"]

    def test_fee_on_gross_notional(self, validator: TransactionValidator, state: BankState) -> None:
        """Test the fee is charged on both legs, not on the net base flow."""
        assert validator.is_valid_transaction(state, "-50", "100", "-10", "1.5") is True
        assert validator.is_valid_transaction(state, "-50", "100", "-10", "0.5") is False

    def test_prices_from_pre_transition_state(self, validator: TransactionValidator) -> None:
        """Test redemption uses the current below-par price, not a post-trade price."""
        state = BankState(reserves=D("400"), stable_supply=D("500"), residual_supply=D("100"))
        # 0.8 per stable token; fee 1% of 80
        assert validator.is_valid_transaction(state, "80", "-100", "0", "0.8") is True
        assert validator.is_valid_transaction(state, "100", "-100", "0", "1") is False

    def test_collects_all_errors(self, validator: TransactionValidator, state: BankState) -> None:
        proposal = TransactionProposal(
            amount_base=D("0"), amount_stable=D("0"), amount_residual=D("10"), fee=D("0")
        )
        result = validator.validate(state, proposal)
        assert len(result.errors) == 2
