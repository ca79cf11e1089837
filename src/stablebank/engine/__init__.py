"""Pure valuation, solvency and validation logic."""

from stablebank.engine.policy import PolicyDecision, SolvencyPolicy
from stablebank.engine.pricing import LegValuation, PricingEngine
from stablebank.engine.validator import TransactionValidator, ValidationResult

__all__ = [
    "LegValuation",
    "PolicyDecision",
    "PricingEngine",
    "SolvencyPolicy",
    "TransactionValidator",
    "ValidationResult",
]
