"""
Money: exact decimal quantities for reserves, supplies, prices and fees.

Sums, differences and products of amounts are exact: they run in a context
with maximal precision that traps `Inexact`, so the reserves and supplies
always agree to the last digit with the transfers recorded for them.
Quotients (nominal prices, reserve ratios) cannot always be exact; they are
rounded once, to `PRICE_PRECISION` digits, and the rounded value is then
used exactly. Binary floats are refused outright.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from decimal import (
    MAX_EMAX,
    MAX_PREC,
    MIN_EMIN,
    ROUND_HALF_EVEN,
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import Annotated

from pydantic import BeforeValidator

PRICE_PRECISION = 60

EXACT_CONTEXT = Context(
    prec=MAX_PREC,
    Emax=MAX_EMAX,
    Emin=MIN_EMIN,
    rounding=ROUND_HALF_EVEN,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact],
)

PRICE_CONTEXT = Context(
    prec=PRICE_PRECISION,
    rounding=ROUND_HALF_EVEN,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)

ZERO = Decimal("0")

CurrencyCode = str
Address = str


def to_money(value: object) -> Decimal:
    """
    Coerce a value to an exact Decimal.

    Accepts Decimal, int and numeric strings. Floats are rejected because
    they cannot represent most decimal amounts exactly.
    """
    if isinstance(value, bool):
        raise TypeError("Booleans are not monetary amounts")
    if isinstance(value, float):
        raise TypeError(
            f"Float {value!r} is not an exact amount; pass a Decimal, int or str"
        )
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(value)
        except InvalidOperation as e:
            raise ValueError(f"Not a decimal amount: {value!r}") from e
    else:
        raise TypeError(f"Unsupported amount type: {type(value).__name__}")

    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got {amount}")
    return amount


@contextmanager
def exact() -> Iterator[Context]:
    """
    Run the enclosed block with exact arithmetic.

    Any operation whose result would need rounding raises `decimal.Inexact`.
    Never divide in here; use `rounded` for quotients.
    """
    with localcontext(EXACT_CONTEXT) as ctx:
        yield ctx


@contextmanager
def rounded() -> Iterator[Context]:
    """Run the enclosed block at price precision, rounding half-even."""
    with localcontext(PRICE_CONTEXT) as ctx:
        yield ctx


def money_min(x: Decimal, y: Decimal) -> Decimal:
    return x if x < y else y


def _validate_money(value: object) -> Decimal:
    # pydantic only reports ValueError/AssertionError as validation errors
    try:
        return to_money(value)
    except TypeError as e:
        raise ValueError(str(e)) from e


Money = Annotated[Decimal, BeforeValidator(_validate_money)]
