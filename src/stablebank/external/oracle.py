"""
ExchangeOracle: source of conversion rates between currencies.

The bank only ever reads rates. InMemoryOracle is the reference publisher,
used by tests and demos; production deployments plug in their own feed.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable

import structlog
from pydantic import BaseModel, ConfigDict, Field

from stablebank.core.errors import RateUnavailable
from stablebank.core.money import CurrencyCode, Money, to_money

logger = structlog.get_logger()


@runtime_checkable
class ExchangeOracle(Protocol):
    """Anything that can quote how many `to` units one `from` unit is worth."""

    def conversion_rate(self, from_currency: CurrencyCode, to_currency: CurrencyCode) -> Decimal:
        ...


class ExchangeRate(BaseModel):
    """A published exchange rate between an ordered pair of currencies."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: CurrencyCode
    target: CurrencyCode
    rate: Money = Field(gt=0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class InMemoryOracle:
    """Oracle backed by a dictionary of published rates."""

    def __init__(self) -> None:
        self._rates: dict[tuple[CurrencyCode, CurrencyCode], ExchangeRate] = {}
        self._log = logger.bind(component="oracle")

    @property
    def rate_count(self) -> int:
        return len(self._rates)

    def update_conversion_rate(
        self,
        from_currency: CurrencyCode,
        to_currency: CurrencyCode,
        rate: Decimal | int | str,
    ) -> ExchangeRate:
        """Publish (or replace) the rate for an ordered currency pair."""
        exchange_rate = ExchangeRate(
            source=from_currency,
            target=to_currency,
            rate=to_money(rate),
        )
        # Single dict assignment: concurrent readers see the old or the new rate
        self._rates[(from_currency, to_currency)] = exchange_rate
        self._log.debug(
            "conversion_rate_updated",
            source=from_currency,
            target=to_currency,
            rate=str(exchange_rate.rate),
        )
        return exchange_rate

    def get_exchange_rate(
        self,
        from_currency: CurrencyCode,
        to_currency: CurrencyCode,
    ) -> ExchangeRate | None:
        """Get the published rate model, if any."""
        return self._rates.get((from_currency, to_currency))

    def conversion_rate(self, from_currency: CurrencyCode, to_currency: CurrencyCode) -> Decimal:
        """Rate for the ordered pair. Never inverts or defaults a missing pair."""
        exchange_rate = self._rates.get((from_currency, to_currency))
        if exchange_rate is None:
            self._log.warning("rate_unavailable", source=from_currency, target=to_currency)
            raise RateUnavailable(from_currency, to_currency)
        return exchange_rate.rate

    def clear(self) -> int:
        """Drop all published rates. Returns count cleared."""
        count = len(self._rates)
        self._rates.clear()
        return count
