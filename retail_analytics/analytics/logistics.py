"""
Logistics Analytics

Shipping duration, delays, ship-mode mix and order volume. Duration is
``ship_date - order_date`` in days; orders that have not shipped are left
out of every duration statistic but still count as orders.
"""

from dataclasses import dataclass
from typing import Optional

import polars as pl
import structlog

from retail_analytics.analytics.base import Analyzer, amount
from retail_analytics.core.aggregation import (
    aggregate,
    average,
    count,
    count_distinct,
    group_aggregate,
    maximum,
    minimum,
    percentage,
    percentage_expr,
    ratio_expr,
    total,
)
from retail_analytics.core.money import as_amount
from retail_analytics.core.periods import month_key
from retail_analytics.exceptions import DivisionUndefinedError

logger = structlog.get_logger(__name__)


@dataclass
class DelaySummary:
    """Orders that took longer than the expected shipping time"""
    delayed_orders: int
    avg_shipping_delay: Optional[float]
    longest_delay: Optional[int]
    shortest_delay: Optional[int]


class LogisticsAnalytics(Analyzer):
    """Shipping performance and order volume"""

    GROUP = "logistics"
    COMPUTATIONS = (
        "average_shipping_time",
        "shipping_time_by_city",
        "shipping_time_by_state",
        "slowest_states",
        "fastest_states",
        "delay_summary",
        "delays_by_ship_mode",
        "ship_mode_distribution",
        "ship_mode_profitability",
        "orders_by_region",
        "orders_by_state",
        "order_volume_by_month",
        "orders_by_day_of_week",
        "monthly_shipping_trend",
        "on_time_rate",
        "product_shipping_speed",
    )

    @property
    def shipped(self) -> pl.DataFrame:
        return self.snapshot.orders.filter(pl.col("shipping_days").is_not_null())

    @property
    def delayed(self) -> pl.DataFrame:
        expected = self.settings.expected_shipping_days
        return self.shipped.filter(pl.col("shipping_days") > expected).with_columns(
            (pl.col("shipping_days") - expected).alias("delay_days"),
        )

    # -------------------------------------------------------------------------
    # Shipping time
    # -------------------------------------------------------------------------

    def average_shipping_time(self) -> float:
        """
        Mean shipping days over shipped orders.

        Raises:
            EmptyPartitionError: no order has shipped
        """
        result = aggregate(self.shipped, [average("shipping_days", "avg_shipping_time")])
        return round(result["avg_shipping_time"], 1)

    def _shipping_time_by(self, key: str) -> pl.DataFrame:
        return group_aggregate(self.shipped, key, [
            count_distinct("order_id", "total_orders"),
            average("shipping_days", "avg_shipping_time", digits=2),
        ])

    def shipping_time_by_city(self) -> pl.DataFrame:
        return self._shipping_time_by("city").sort(
            ["avg_shipping_time", "city"], descending=[True, False]
        )

    def shipping_time_by_state(self) -> pl.DataFrame:
        return self._shipping_time_by("state").sort(
            ["avg_shipping_time", "state"], descending=[True, False]
        )

    def slowest_states(self, limit: Optional[int] = 5) -> pl.DataFrame:
        return self._limit(self.shipping_time_by_state(), limit)

    def fastest_states(self, limit: Optional[int] = 5) -> pl.DataFrame:
        fastest = self._shipping_time_by("state").sort(["avg_shipping_time", "state"])
        return self._limit(fastest, limit)

    def monthly_shipping_trend(self) -> pl.DataFrame:
        """Average shipping time of each order month; null when nothing shipped"""
        return group_aggregate(self.snapshot.orders, month_key(), [
            average("shipping_days", "avg_shipping_time", digits=2),
            count_distinct("order_id", "total_orders"),
        ])

    def on_time_rate(self) -> float:
        """
        Percent of all orders delivered within the on-time threshold.

        Unshipped orders are in the denominator and count as not on time.
        """
        orders = self.snapshot.orders
        on_time = orders.filter(pl.col("shipping_days") <= self.settings.on_time_threshold_days).height
        return percentage(on_time, orders.height, what="on-time rate")

    def product_shipping_speed(self) -> pl.DataFrame:
        """Average shipping time per product and its speed category"""
        speeds = group_aggregate(
            self.lines.filter(pl.col("shipping_days").is_not_null()),
            ["product_id", "product_name"],
            [average("shipping_days", "avg_shipping_time", digits=2)],
        )
        return speeds.with_columns(
            pl.when(pl.col("avg_shipping_time") <= self.settings.fast_shipping_days)
            .then(pl.lit("Fast Shipping"))
            .when(pl.col("avg_shipping_time") <= self.settings.moderate_shipping_days)
            .then(pl.lit("Moderate Shipping"))
            .otherwise(pl.lit("Slow Shipping"))
            .alias("shipping_category"),
        ).sort(["avg_shipping_time", "product_id"])

    # -------------------------------------------------------------------------
    # Delays
    # -------------------------------------------------------------------------

    def delay_summary(self) -> DelaySummary:
        delayed = self.delayed
        if delayed.is_empty():
            return DelaySummary(0, None, None, None)

        result = aggregate(delayed, [
            count(alias="delayed_orders"),
            average("delay_days", "avg_shipping_delay", digits=2),
            maximum("delay_days", "longest_delay"),
            minimum("delay_days", "shortest_delay"),
        ])
        return DelaySummary(**result)

    def delays_by_ship_mode(self) -> pl.DataFrame:
        return group_aggregate(self.delayed, "ship_mode", [
            count(alias="delayed_orders"),
            average("delay_days", "avg_shipping_delay", digits=2),
            maximum("delay_days", "longest_delay"),
            minimum("delay_days", "shortest_delay"),
        ]).sort(["avg_shipping_delay", "ship_mode"], descending=[True, False])

    # -------------------------------------------------------------------------
    # Ship modes
    # -------------------------------------------------------------------------

    def ship_mode_distribution(self) -> pl.DataFrame:
        """Share of all orders per ship mode"""
        orders = self.snapshot.orders
        if orders.is_empty():
            raise DivisionUndefinedError("No orders to distribute across ship modes")
        modes = group_aggregate(orders, "ship_mode", [count(alias="total_orders")])
        return modes.with_columns(
            percentage_expr("total_orders", pl.lit(orders.height)).alias("order_percentage"),
        ).sort(["total_orders", "ship_mode"], descending=[True, False])

    def ship_mode_profitability(self) -> pl.DataFrame:
        modes = group_aggregate(self.lines, "ship_mode", [
            total("profit_cents", "profit_cents"),
            count_distinct("order_id", "total_orders"),
        ])
        return modes.select(
            "ship_mode",
            amount("profit_cents", "total_profit"),
            as_amount(ratio_expr("profit_cents", "total_orders")).round(2).alias("profit_per_order"),
        ).sort(["profit_per_order", "ship_mode"], descending=[True, False])

    # -------------------------------------------------------------------------
    # Order volume
    # -------------------------------------------------------------------------

    def _order_counts(self, key) -> pl.DataFrame:
        counts = group_aggregate(self.snapshot.orders, key, [count(alias="total_orders")])
        name = counts.columns[0]
        return counts.sort(["total_orders", name], descending=[True, False])

    def orders_by_region(self) -> pl.DataFrame:
        return self._order_counts("region")

    def orders_by_state(self, limit: Optional[int] = 10) -> pl.DataFrame:
        return self._limit(self._order_counts("state"), limit)

    def order_volume_by_month(self) -> pl.DataFrame:
        """Orders per month, busiest months first"""
        return self._order_counts(month_key())

    def orders_by_day_of_week(self) -> pl.DataFrame:
        return self._order_counts(pl.col("order_date").dt.strftime("%A").alias("day_of_week"))
