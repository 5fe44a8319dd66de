"""
Shared plumbing for the analyzer groups.
"""

from typing import Optional, Tuple

import polars as pl

from retail_analytics.config import get_settings
from retail_analytics.config.settings import AnalyticsSettings
from retail_analytics.core.money import as_amount
from retail_analytics.core.snapshot import Snapshot
from retail_analytics.exceptions import InvalidRangeError


def amount(column: str, alias: Optional[str] = None, digits: int = 2) -> pl.Expr:
    """Cents column -> currency column rounded to ``digits``"""
    return as_amount(column).round(digits).alias(alias or column.replace("_cents", ""))


class Analyzer:
    """
    Base class for an analyzer group.

    ``COMPUTATIONS`` names the public methods the engine exposes as
    ``"<GROUP>.<name>"``.
    """

    GROUP: str = ""
    COMPUTATIONS: Tuple[str, ...] = ()

    def __init__(self, snapshot: Snapshot, settings: Optional[AnalyticsSettings] = None):
        self.snapshot = snapshot
        self.settings = settings or get_settings().analytics

    @property
    def lines(self) -> pl.DataFrame:
        return self.snapshot.lines

    @staticmethod
    def _limit(df: pl.DataFrame, limit: Optional[int]) -> pl.DataFrame:
        if limit is None:
            return df
        if limit < 0:
            raise InvalidRangeError("Limit must not be negative", details={"limit": limit})
        return df.head(limit)
