"""
Window Primitives

Ordered partition processing for the analytical catalog:
- Lag-by-N within a partition (and growth rates derived from it)
- Trailing rolling average
- Dense rank within a partition
- Equal-frequency bucketing (NTILE)

Every primitive takes an explicit partition key list, ordering key list and
tie-breaker list. The frame is stably sorted by partition, ordering and
tie-breakers (ascending) before the window is applied, and the sorted frame
is returned, so two runs over the same input produce the same output.
"""

from typing import List, Optional, Sequence, Union

import polars as pl

from retail_analytics.exceptions import DivisionUndefinedError, InvalidRangeError

Columns = Optional[Union[str, Sequence[str]]]


def _as_list(columns: Columns) -> List[str]:
    if columns is None:
        return []
    if isinstance(columns, str):
        return [columns]
    return list(columns)


def _ordered(
    df: pl.DataFrame,
    order_by: Columns,
    descending: bool = False,
    partition_by: Columns = None,
    tie_breakers: Columns = None,
) -> pl.DataFrame:
    partition = _as_list(partition_by)
    order = _as_list(order_by)
    ties = [c for c in _as_list(tie_breakers) if c not in order]
    by = partition + order + ties
    if not by:
        return df
    flags = [False] * len(partition) + [descending] * len(order) + [False] * len(ties)
    return df.sort(by, descending=flags, nulls_last=True, maintain_order=True)


def _over(expr: pl.Expr, partition_by: Columns) -> pl.Expr:
    partition = _as_list(partition_by)
    return expr.over(partition) if partition else expr


def lag(
    df: pl.DataFrame,
    column: str,
    order_by: Columns,
    *,
    partition_by: Columns = None,
    tie_breakers: Columns = None,
    alias: Optional[str] = None,
    offset: int = 1,
) -> pl.DataFrame:
    """
    Add the value of ``column`` from ``offset`` rows earlier in the same
    partition. The first rows of each partition get null (no previous value).
    """
    if offset < 1:
        raise InvalidRangeError("Lag offset must be at least 1", details={"offset": offset})
    ordered = _ordered(df, order_by, partition_by=partition_by, tie_breakers=tie_breakers)
    return ordered.with_columns(
        _over(pl.col(column).shift(offset), partition_by).alias(alias or f"previous_{column}")
    )


def growth_rate(current: Optional[float], previous: Optional[float], digits: int = 2) -> float:
    """
    ``(current - previous) / previous * 100`` rounded.

    Raises:
        DivisionUndefinedError: previous is None or zero
    """
    if previous is None or previous == 0 or current is None:
        raise DivisionUndefinedError(
            "Growth rate is undefined without a non-zero previous value",
            details={"current": current, "previous": previous},
        )
    return round((float(current) - float(previous)) / float(previous) * 100, digits)


def growth_rate_expr(current: str, previous: str, digits: int = 2) -> pl.Expr:
    """Column form of ``growth_rate``; null where undefined, never zero."""
    prev = pl.col(previous).cast(pl.Float64)
    return (
        pl.when(prev.is_null() | (prev == 0))
        .then(pl.lit(None, dtype=pl.Float64))
        .otherwise((pl.col(current).cast(pl.Float64) - prev) / prev * 100)
        .round(digits)
    )


def rolling_average(
    df: pl.DataFrame,
    column: str,
    order_by: Columns,
    *,
    window: int = 3,
    partition_by: Columns = None,
    tie_breakers: Columns = None,
    alias: Optional[str] = None,
    digits: Optional[int] = None,
) -> pl.DataFrame:
    """
    Trailing mean over rows ``[max(0, i - window + 1) .. i]`` of each
    partition. Early rows average what is available; nothing is zero-padded.
    """
    if window < 1:
        raise InvalidRangeError("Rolling window must be at least 1", details={"window": window})
    ordered = _ordered(df, order_by, partition_by=partition_by, tie_breakers=tie_breakers)
    expr = pl.col(column).cast(pl.Float64).rolling_mean(window_size=window, min_samples=1)
    if digits is not None:
        expr = expr.round(digits)
    return ordered.with_columns(
        _over(expr, partition_by).alias(alias or f"rolling_{column}")
    )


def dense_rank(
    df: pl.DataFrame,
    column: str,
    *,
    descending: bool = True,
    partition_by: Columns = None,
    tie_breakers: Columns = None,
    alias: str = "rank",
) -> pl.DataFrame:
    """
    Rank rows by ``column`` within each partition. Ties share a rank and the
    next distinct value gets ``rank + 1``, so ranks have no gaps.
    """
    ordered = _ordered(
        df, column, descending=descending, partition_by=partition_by, tie_breakers=tie_breakers
    )
    rank = pl.col(column).rank(method="dense", descending=descending).cast(pl.Int64)
    return ordered.with_columns(_over(rank, partition_by).alias(alias))


def bucket_sizes(rows: int, buckets: int) -> List[int]:
    """
    Row count of each bucket when ``rows`` rows are split into ``buckets``
    equal-frequency buckets: the first ``rows % buckets`` buckets take one
    extra row. Buckets beyond ``rows`` are empty.
    """
    if buckets < 1:
        raise InvalidRangeError("Bucket count must be at least 1", details={"buckets": buckets})
    base, extra = divmod(rows, buckets)
    return [base + 1 if i < extra else base for i in range(buckets)]


def ntile(
    df: pl.DataFrame,
    order_by: Columns,
    buckets: int,
    *,
    descending: bool = False,
    partition_by: Columns = None,
    tie_breakers: Columns = None,
    alias: str = "bucket",
) -> pl.DataFrame:
    """
    Assign each row a bucket number ``1..buckets`` in sorted order so that
    bucket sizes differ by at most one (SQL ``NTILE``). Bucket 1 holds the
    first rows of the declared ordering.

    Args:
        df: Rows to bucket
        order_by: Ordering key(s)
        buckets: Number of buckets (k)
        descending: Order the key descending
        partition_by: Optional partition key(s); bucketing restarts per partition
        tie_breakers: Secondary ascending keys resolving ties deterministically
        alias: Output column name

    Returns:
        Sorted frame with the bucket column added
    """
    if buckets < 1:
        raise InvalidRangeError("Bucket count must be at least 1", details={"buckets": buckets})

    ordered = _ordered(
        df, order_by, descending=descending, partition_by=partition_by, tie_breakers=tie_breakers
    )

    position = _over(pl.int_range(0, pl.len(), dtype=pl.Int64), partition_by)
    size = _over(pl.len(), partition_by).cast(pl.Int64)
    base = size // buckets
    extra = size % buckets
    # rows held by the larger leading buckets
    leading = extra * (base + 1)

    bucket = (
        pl.when(position < leading)
        .then(position // (base + 1))
        .otherwise(extra + (position - leading) // pl.max_horizontal(base, pl.lit(1, dtype=pl.Int64)))
        + 1
    )
    return ordered.with_columns(bucket.cast(pl.Int64).alias(alias))
