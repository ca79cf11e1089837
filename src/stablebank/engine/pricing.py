"""
PricingEngine: valuation of the bank's balance sheet and both tokens.

Every function here is pure over an explicit (reserves, stable supply,
residual supply) snapshot plus the peg->base rate. Callers that need several
values consistent with one another fetch the rate once with `peg_rate()` and
pass it to each call; otherwise each call reads the oracle itself.

Division by a zero supply is a defined case: the stable token is then priced
at par and the residual token at the configured default price.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog

from stablebank.core.errors import InvariantViolation
from stablebank.core.models import BankConfig, BankState
from stablebank.core.money import exact, money_min, rounded
from stablebank.external.oracle import ExchangeOracle

logger = structlog.get_logger()


@dataclass(frozen=True)
class LegValuation:
    """Base-currency value of the two token legs of a request."""

    stable_value: Decimal
    residual_value: Decimal

    @property
    def amount_base(self) -> Decimal:
        """Base flowing to the counterparty that offsets both legs exactly."""
        with exact():
            return -(self.stable_value + self.residual_value)

    @property
    def gross_notional(self) -> Decimal:
        with exact():
            return abs(self.stable_value) + abs(self.residual_value)


class PricingEngine:
    """Liabilities, equity, nominal prices and reserve bounds."""

    def __init__(self, config: BankConfig, oracle: ExchangeOracle) -> None:
        self._config = config
        self._oracle = oracle
        self._log = logger.bind(component="pricing_engine")

    @property
    def config(self) -> BankConfig:
        return self._config

    def peg_rate(self) -> Decimal:
        """Units of base currency per unit of peg currency."""
        rate = self._oracle.conversion_rate(self._config.peg_currency, self._config.base_currency)
        if rate <= 0:
            self._log.error("invariant_violation", check="peg_rate_positive", rate=str(rate))
            raise InvariantViolation("Oracle returned a non-positive peg rate", rate=rate)
        return rate

    def _rate(self, rate: Decimal | None) -> Decimal:
        return self.peg_rate() if rate is None else rate

    def liabilities(self, r: Decimal, sc: Decimal, rate: Decimal | None = None) -> Decimal:
        """What the bank owes stable holders, capped at what it holds."""
        p = self._rate(rate)
        with exact():
            result = money_min(r, sc * p)
        if result > r:
            self._log.error("invariant_violation", check="liabilities_le_reserves")
            raise InvariantViolation("Liabilities exceed reserves", liabilities=result, reserves=r)
        return result

    def equity(self, r: Decimal, sc: Decimal, rate: Decimal | None = None) -> Decimal:
        """Reserves left over for residual holders after liabilities."""
        with exact():
            result = r - self.liabilities(r, sc, rate)
        if result < 0:
            self._log.error("invariant_violation", check="equity_non_negative")
            raise InvariantViolation("Negative equity", equity=result, reserves=r)
        return result

    def stable_nominal_price(self, r: Decimal, sc: Decimal, rate: Decimal | None = None) -> Decimal:
        """
        Price of one stable token in base currency.

        At par while the stable supply is fully backed; below par, an equal
        share of the reserves, once it is not.
        """
        p = self._rate(rate)
        if sc == 0:
            return p
        liabilities = self.liabilities(r, sc, p)
        with rounded():
            share = liabilities / sc
        return money_min(p, share)

    def residual_nominal_price(
        self,
        r: Decimal,
        sc: Decimal,
        rc: Decimal,
        rate: Decimal | None = None,
    ) -> Decimal:
        """Book value per residual token, or the default price at zero supply."""
        if rc == 0:
            return self._config.residual_default_price
        equity = self.equity(r, sc, rate)
        with rounded():
            return equity / rc

    def min_reserve(self, sc: Decimal, rate: Decimal | None = None) -> Decimal:
        p = self._rate(rate)
        with exact():
            return self._config.min_reserve_ratio * sc * p

    def max_reserve(self, sc: Decimal, rate: Decimal | None = None) -> Decimal:
        p = self._rate(rate)
        with exact():
            return self._config.max_reserve_ratio * sc * p

    def reserve_ratio(self, r: Decimal, sc: Decimal, rate: Decimal | None = None) -> Decimal | None:
        """Reserves over the peg value of the stable supply; None with no supply."""
        if sc == 0:
            return None
        p = self._rate(rate)
        with exact():
            peg_value = sc * p
        with rounded():
            return r / peg_value

    def value_legs(
        self,
        state: BankState,
        amount_stable: Decimal,
        amount_residual: Decimal,
        rate: Decimal | None = None,
    ) -> LegValuation:
        """Value both token legs at the nominal prices of `state`."""
        p = self._rate(rate)
        r, sc, rc = state.reserves, state.stable_supply, state.residual_supply
        with exact():
            return LegValuation(
                stable_value=amount_stable * self.stable_nominal_price(r, sc, p),
                residual_value=amount_residual * self.residual_nominal_price(r, sc, rc, p),
            )

    def fee_for(self, legs: LegValuation) -> Decimal:
        """Fee on the gross notional of both legs."""
        with exact():
            return legs.gross_notional * self._config.fee_rate

    def prices(self, state: BankState, rate: Decimal | None = None) -> tuple[Decimal, Decimal]:
        """(stable, residual) nominal prices for a state, under one rate."""
        p = self._rate(rate)
        r, sc, rc = state.reserves, state.stable_supply, state.residual_supply
        return self.stable_nominal_price(r, sc, p), self.residual_nominal_price(r, sc, rc, p)

