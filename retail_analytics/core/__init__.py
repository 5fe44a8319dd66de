"""
Core primitives: snapshot, aggregation, windows, money and period keys
"""
from .aggregation import (
    Aggregate,
    AggregateFunction,
    aggregate,
    average,
    count,
    count_distinct,
    group_aggregate,
    maximum,
    minimum,
    percentage,
    percentage_expr,
    ratio,
    ratio_expr,
    total,
)
from .money import as_amount, to_cents, to_decimal
from .periods import Granularity, month_key, period_key, quarter_key, year_key
from .snapshot import DateRange, IntegrityMode, Snapshot
from .window import bucket_sizes, dense_rank, growth_rate, growth_rate_expr, lag, ntile, rolling_average

__all__ = [
    "Aggregate",
    "AggregateFunction",
    "aggregate",
    "average",
    "count",
    "count_distinct",
    "group_aggregate",
    "maximum",
    "minimum",
    "percentage",
    "percentage_expr",
    "ratio",
    "ratio_expr",
    "total",
    "as_amount",
    "to_cents",
    "to_decimal",
    "Granularity",
    "month_key",
    "period_key",
    "quarter_key",
    "year_key",
    "DateRange",
    "IntegrityMode",
    "Snapshot",
    "bucket_sizes",
    "dense_rank",
    "growth_rate",
    "growth_rate_expr",
    "lag",
    "ntile",
    "rolling_average",
]
