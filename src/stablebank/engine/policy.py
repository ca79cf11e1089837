"""
SolvencyPolicy: admissibility of a hypothetical next reserve level.

Two bounds, each guarding a different class of holder:

* Minting stable tokens or redeeming residual tokens must leave reserves at or
  above the minimum, so the stable supply stays collateralized.
* Minting residual tokens must leave reserves at or below the maximum, so
  existing residual holders are not diluted.

Redeeming stable tokens is never constrained. Stable holders can always exit,
even when that pushes reserves above the maximum.
"""

from dataclasses import dataclass
from decimal import Decimal

from stablebank.core.models import RejectionReason
from stablebank.engine.pricing import PricingEngine


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of a reserve-change check."""

    acceptable: bool
    reason: RejectionReason | None = None
    min_reserve: Decimal | None = None
    max_reserve: Decimal | None = None


class SolvencyPolicy:
    """Pure predicate over (new reserves, new stable supply)."""

    def __init__(self, engine: PricingEngine) -> None:
        self._engine = engine

    def check(
        self,
        mints_stable: bool,
        mints_residual: bool,
        redeems_residual: bool,
        new_reserves: Decimal,
        new_stable_supply: Decimal,
        rate: Decimal | None = None,
    ) -> PolicyDecision:
        """Check a reserve change and report which bound, if any, it breaks."""
        needs_floor = mints_stable or redeems_residual
        if not (needs_floor or mints_residual):
            return PolicyDecision(acceptable=True)

        p = self._engine.peg_rate() if rate is None else rate
        floor = self._engine.min_reserve(new_stable_supply, p) if needs_floor else None
        ceiling = self._engine.max_reserve(new_stable_supply, p) if mints_residual else None

        if floor is not None and new_reserves < floor:
            return PolicyDecision(
                acceptable=False,
                reason=RejectionReason.BELOW_MIN_RESERVE,
                min_reserve=floor,
                max_reserve=ceiling,
            )
        if ceiling is not None and new_reserves > ceiling:
            return PolicyDecision(
                acceptable=False,
                reason=RejectionReason.ABOVE_MAX_RESERVE,
                min_reserve=floor,
                max_reserve=ceiling,
            )
        return PolicyDecision(acceptable=True, min_reserve=floor, max_reserve=ceiling)

    def acceptable_reserve_change(
        self,
        mints_stable: bool,
        mints_residual: bool,
        redeems_residual: bool,
        new_reserves: Decimal,
        new_stable_supply: Decimal,
        rate: Decimal | None = None,
    ) -> bool:
        return self.check(
            mints_stable,
            mints_residual,
            redeems_residual,
            new_reserves,
            new_stable_supply,
            rate,
        ).acceptable
