"""
Aggregation Primitives

Grouped sum / count / count-distinct / mean / min / max over arbitrary key
expressions, plus the division helpers every analysis shares.

Division policy:
- Column helpers (``ratio_expr``, ``percentage_expr``) yield null for a row
  whose denominator is zero or null. The row is kept, never zeroed.
- Scalar helpers (``ratio``, ``percentage``) raise ``DivisionUndefinedError``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

import polars as pl
import structlog

from retail_analytics.core.money import CENTS
from retail_analytics.exceptions import DivisionUndefinedError, EmptyPartitionError

logger = structlog.get_logger(__name__)

KeySpec = Union[str, pl.Expr, Sequence[Union[str, pl.Expr]]]


class AggregateFunction(str, Enum):
    """Supported aggregate functions"""
    SUM = "sum"
    COUNT = "count"
    COUNT_DISTINCT = "count_distinct"
    MEAN = "mean"
    MIN = "min"
    MAX = "max"


# Functions that have no value over an empty partition
_NEEDS_ROWS = {AggregateFunction.MEAN, AggregateFunction.MIN, AggregateFunction.MAX}


@dataclass(frozen=True)
class Aggregate:
    """
    One requested aggregate.

    ``money=True`` treats the column as integer cents: the aggregate runs on
    the exact integers and the result is converted to currency units.
    """
    function: AggregateFunction
    column: Optional[str] = None
    alias: Optional[str] = None
    money: bool = False
    digits: Optional[int] = None

    @property
    def name(self) -> str:
        return self.alias or f"{self.function.value}_{self.column or 'rows'}"

    def to_expr(self) -> pl.Expr:
        if self.function == AggregateFunction.COUNT:
            expr = pl.len() if self.column is None else pl.col(self.column).count()
        elif self.column is None:
            raise ValueError(f"Aggregate '{self.function.value}' requires a column")
        elif self.function == AggregateFunction.COUNT_DISTINCT:
            expr = pl.col(self.column).n_unique()
        elif self.function == AggregateFunction.SUM:
            expr = pl.col(self.column).sum()
        elif self.function == AggregateFunction.MEAN:
            expr = pl.col(self.column).mean()
        elif self.function == AggregateFunction.MIN:
            expr = pl.col(self.column).min()
        else:
            expr = pl.col(self.column).max()

        if self.money:
            expr = expr / CENTS
        if self.digits is not None:
            expr = expr.round(self.digits)
        return expr.alias(self.name)


def total(column: str, alias: Optional[str] = None, money: bool = False, digits: Optional[int] = None) -> Aggregate:
    return Aggregate(AggregateFunction.SUM, column, alias, money, digits)


def count(column: Optional[str] = None, alias: Optional[str] = None) -> Aggregate:
    return Aggregate(AggregateFunction.COUNT, column, alias)


def count_distinct(column: str, alias: Optional[str] = None) -> Aggregate:
    return Aggregate(AggregateFunction.COUNT_DISTINCT, column, alias)


def average(column: str, alias: Optional[str] = None, money: bool = False, digits: Optional[int] = None) -> Aggregate:
    return Aggregate(AggregateFunction.MEAN, column, alias, money, digits)


def minimum(column: str, alias: Optional[str] = None, money: bool = False) -> Aggregate:
    return Aggregate(AggregateFunction.MIN, column, alias, money)


def maximum(column: str, alias: Optional[str] = None, money: bool = False) -> Aggregate:
    return Aggregate(AggregateFunction.MAX, column, alias, money)


def _key_list(keys: KeySpec) -> List[Union[str, pl.Expr]]:
    if isinstance(keys, (str, pl.Expr)):
        return [keys]
    return list(keys)


def _key_name(key: Union[str, pl.Expr]) -> str:
    return key if isinstance(key, str) else key.meta.output_name()


def group_aggregate(
    df: pl.DataFrame,
    keys: KeySpec,
    aggregates: Sequence[Aggregate],
    sort: bool = True,
) -> pl.DataFrame:
    """
    Partition rows by key and compute aggregates per partition.

    Input row order is irrelevant; the result is sorted by the key columns
    unless ``sort`` is False.

    Args:
        df: Input rows
        keys: Column name(s) or polars expression(s) acting as the key function
        aggregates: Aggregates to compute per partition

    Returns:
        One row per distinct key with one column per aggregate
    """
    if not aggregates:
        raise ValueError("At least one aggregate is required")

    key_list = _key_list(keys)
    result = df.group_by(key_list).agg([agg.to_expr() for agg in aggregates])

    if sort:
        result = result.sort([_key_name(k) for k in key_list], nulls_last=True)
    return result


def aggregate(df: pl.DataFrame, aggregates: Sequence[Aggregate]) -> Dict[str, Any]:
    """
    Compute aggregates over the whole frame as a single partition.

    Raises:
        EmptyPartitionError: mean/min/max requested over an empty frame
    """
    if df.is_empty():
        empty = [agg.name for agg in aggregates if agg.function in _NEEDS_ROWS]
        if empty:
            raise EmptyPartitionError(
                f"Cannot compute {', '.join(empty)} over an empty partition",
                details={"aggregates": empty},
            )
    return df.select([agg.to_expr() for agg in aggregates]).row(0, named=True)


# =============================================================================
# DIVISION HELPERS
# =============================================================================

def ratio(numerator: Optional[float], denominator: Optional[float], what: str = "ratio") -> float:
    """Scalar division that refuses an undefined denominator."""
    if denominator is None or denominator == 0 or numerator is None:
        raise DivisionUndefinedError(
            f"{what} is undefined for denominator {denominator!r}",
            details={"numerator": numerator, "denominator": denominator},
        )
    return float(numerator) / float(denominator)


def percentage(
    numerator: Optional[float],
    denominator: Optional[float],
    digits: int = 2,
    what: str = "percentage",
) -> float:
    return round(ratio(numerator, denominator, what) * 100, digits)


def ratio_expr(numerator: Union[str, pl.Expr], denominator: Union[str, pl.Expr]) -> pl.Expr:
    """Column division; null where the denominator is zero or null."""
    num = pl.col(numerator) if isinstance(numerator, str) else numerator
    den = pl.col(denominator) if isinstance(denominator, str) else denominator
    return (
        pl.when(den.is_null() | (den == 0))
        .then(pl.lit(None, dtype=pl.Float64))
        .otherwise(num.cast(pl.Float64) / den.cast(pl.Float64))
    )


def percentage_expr(
    numerator: Union[str, pl.Expr],
    denominator: Union[str, pl.Expr],
    digits: int = 2,
) -> pl.Expr:
    return (ratio_expr(numerator, denominator) * 100).round(digits)
