"""
Calendar period keys used to truncate order dates for trend analysis.
"""

from enum import Enum
from typing import Union

import polars as pl

from retail_analytics.exceptions import InvalidRangeError


class Granularity(str, Enum):
    """Trend granularity"""
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    @classmethod
    def parse(cls, value: Union[str, "Granularity"]) -> "Granularity":
        try:
            return cls(value)
        except ValueError:
            allowed = [g.value for g in cls]
            raise InvalidRangeError(
                f"Granularity must be one of: {allowed}",
                details={"granularity": value},
            ) from None


def month_key(column: str = "order_date", alias: str = "month") -> pl.Expr:
    """``YYYY-MM``; sorts chronologically as a string."""
    return pl.col(column).dt.strftime("%Y-%m").alias(alias)


def quarter_key(column: str = "order_date", alias: str = "quarter") -> pl.Expr:
    """``YYYY-Qn``"""
    return (
        pl.col(column).dt.year().cast(pl.Utf8)
        + pl.lit("-Q")
        + pl.col(column).dt.quarter().cast(pl.Utf8)
    ).alias(alias)


def year_key(column: str = "order_date", alias: str = "year") -> pl.Expr:
    return pl.col(column).dt.year().cast(pl.Utf8).alias(alias)


def period_key(granularity: Union[str, Granularity], column: str = "order_date", alias: str = "period") -> pl.Expr:
    granularity = Granularity.parse(granularity)
    if granularity == Granularity.MONTH:
        return month_key(column, alias)
    if granularity == Granularity.QUARTER:
        return quarter_key(column, alias)
    return year_key(column, alias)
