"""
Fixed-point money helpers.

Monetary columns are held as integer cents inside a snapshot so that sums over
any number of lines are exact. Conversion back to currency units happens only
when a result is produced.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

import polars as pl

CENTS = 100
TWO_PLACES = Decimal("0.01")


def to_cents(column: str, alias: Optional[str] = None) -> pl.Expr:
    """Currency-unit column -> Int64 cents, rounded to the nearest cent."""
    return (
        (pl.col(column).cast(pl.Float64) * CENTS)
        .round(0)
        .cast(pl.Int64)
        .alias(alias or f"{column}_cents")
    )


def as_amount(expr: Union[str, pl.Expr]) -> pl.Expr:
    """Cents expression -> currency units."""
    if isinstance(expr, str):
        expr = pl.col(expr)
    return expr / CENTS


def to_decimal(cents: Union[int, float, None]) -> Decimal:
    """Exact two-place Decimal from a cents value."""
    if cents is None:
        cents = 0
    return (Decimal(str(cents)) / CENTS).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
