"""
Sales & Revenue Analytics

Totals, period trends, growth, rolling forecasts, regional rankings and
discount impact over the joined sale lines.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

import polars as pl
import structlog

from retail_analytics.analytics.base import Analyzer, amount
from retail_analytics.core.aggregation import (
    aggregate,
    average,
    count_distinct,
    group_aggregate,
    maximum,
    percentage,
    percentage_expr,
    ratio_expr,
    total,
)
from retail_analytics.core.money import as_amount, to_decimal
from retail_analytics.core.periods import Granularity, period_key
from retail_analytics.core.window import dense_rank, growth_rate_expr, lag, rolling_average

logger = structlog.get_logger(__name__)

# (label, inclusive upper bound); the first band holds exactly zero
DISCOUNT_BANDS = [
    ("No Discount", 0.0),
    ("Low Discount (<= 10%)", 0.10),
    ("Medium Discount (<= 25%)", 0.25),
]
HIGH_DISCOUNT = "High Discount (> 25%)"


@dataclass
class SalesTotals:
    """Whole-snapshot sales summary"""
    total_revenue: Decimal
    total_profit: Decimal
    average_discount: float
    average_order_value: Decimal
    total_orders: int
    total_quantity: int
    profit_margin: float


def discount_status(column: str = "discount") -> pl.Expr:
    return (
        pl.when(pl.col(column) > 0)
        .then(pl.lit("Discounted"))
        .otherwise(pl.lit("Non-Discounted"))
        .alias("discount_status")
    )


def discount_band(column: str = "discount") -> pl.Expr:
    label, _ = DISCOUNT_BANDS[0]
    expr = pl.when(pl.col(column) == 0).then(pl.lit(label))
    for label, upper in DISCOUNT_BANDS[1:]:
        expr = expr.when(pl.col(column) <= upper).then(pl.lit(label))
    return expr.otherwise(pl.lit(HIGH_DISCOUNT)).alias("discount_range")


class SalesAnalytics(Analyzer):
    """
    Revenue and profit over time, place and discount level.

    Example:
        sales = SalesAnalytics(snapshot)
        sales.growth_rates("quarter")
    """

    GROUP = "sales"
    COMPUTATIONS = (
        "totals",
        "trend",
        "monthly_trend",
        "quarterly_trend",
        "yearly_trend",
        "seasonality",
        "growth_rates",
        "rolling_forecast",
        "regional_performance",
        "state_rankings",
        "discount_profit_curve",
        "discount_vs_non_discount",
        "category_discount_impact",
        "discount_bands",
    )

    def totals(self) -> SalesTotals:
        """
        Total revenue, profit, average discount and order value.

        Raises:
            EmptyPartitionError: the snapshot has no sale lines
            DivisionUndefinedError: total revenue is zero
        """
        result = aggregate(self.lines, [
            total("sales_cents"),
            total("profit_cents"),
            average("discount"),
            count_distinct("order_id", "orders"),
            total("quantity"),
        ])

        revenue_cents = result["sum_sales_cents"]
        profit_cents = result["sum_profit_cents"]
        orders = result["orders"]

        return SalesTotals(
            total_revenue=to_decimal(revenue_cents),
            total_profit=to_decimal(profit_cents),
            average_discount=round(result["mean_discount"], 2),
            average_order_value=to_decimal(Decimal(revenue_cents) / orders),
            total_orders=orders,
            total_quantity=result["sum_quantity"],
            profit_margin=percentage(profit_cents, revenue_cents, what="profit margin"),
        )

    # -------------------------------------------------------------------------
    # Trends
    # -------------------------------------------------------------------------

    def _trend(self, granularity: Union[str, Granularity], alias: str = "period") -> pl.DataFrame:
        return group_aggregate(self.lines, period_key(granularity, alias=alias), [
            total("sales_cents", "total_sales", money=True, digits=2),
            total("profit_cents", "total_profit", money=True, digits=2),
        ])

    def trend(self, granularity: Union[str, Granularity] = Granularity.MONTH) -> pl.DataFrame:
        """Sales and profit per period, oldest first"""
        return self._trend(granularity)

    def monthly_trend(self) -> pl.DataFrame:
        return self.trend(Granularity.MONTH)

    def quarterly_trend(self) -> pl.DataFrame:
        return self.trend(Granularity.QUARTER)

    def yearly_trend(self) -> pl.DataFrame:
        return self.trend(Granularity.YEAR)

    def seasonality(self) -> pl.DataFrame:
        """Months above the average monthly total are peak months"""
        monthly = self._trend(Granularity.MONTH, alias="month")
        return monthly.select(
            "month",
            "total_sales",
            pl.when(pl.col("total_sales") > pl.col("total_sales").mean())
            .then(pl.lit("Peak"))
            .otherwise(pl.lit("Off-Peak"))
            .alias("seasonality"),
        )

    def growth_rates(self, granularity: Union[str, Granularity] = Granularity.MONTH) -> pl.DataFrame:
        """Period-over-period growth; the first period has no growth rate"""
        periods = lag(
            self._trend(granularity),
            "total_sales",
            "period",
            alias="previous_sales",
        )
        return periods.select(
            "period",
            "total_sales",
            "previous_sales",
            growth_rate_expr("total_sales", "previous_sales").alias("growth_rate"),
        )

    def rolling_forecast(self, window: Optional[int] = None) -> pl.DataFrame:
        """Trailing monthly average used as the next month's forecast"""
        if window is None:
            window = self.settings.rolling_window
        monthly = rolling_average(
            self._trend(Granularity.MONTH, alias="month"),
            "total_sales",
            "month",
            window=window,
            alias="forecasted_sales",
            digits=2,
        )
        return monthly.select("month", "total_sales", "forecasted_sales")

    # -------------------------------------------------------------------------
    # Geography
    # -------------------------------------------------------------------------

    def _ranked_by_sales(self, key: str) -> pl.DataFrame:
        totals = group_aggregate(self.lines, key, [
            total("sales_cents", "total_sales", money=True, digits=2),
            total("profit_cents", "total_profit", money=True, digits=2),
        ])
        return dense_rank(totals, "total_sales", tie_breakers=key, alias="sales_rank")

    def regional_performance(self) -> pl.DataFrame:
        return self._ranked_by_sales("region")

    def state_rankings(self, limit: Optional[int] = 10) -> pl.DataFrame:
        return self._limit(self._ranked_by_sales("state"), limit)

    # -------------------------------------------------------------------------
    # Discounts
    # -------------------------------------------------------------------------

    def discount_profit_curve(self) -> pl.DataFrame:
        """Average line profit at each discount level"""
        return group_aggregate(self.lines, "discount", [
            average("profit_cents", "avg_profit", money=True, digits=2),
        ])

    def discount_vs_non_discount(self) -> pl.DataFrame:
        """
        Order-level comparison: an order counts as discounted when any of
        its lines carries a discount.
        """
        orders = group_aggregate(self.lines, "order_id", [
            maximum("discount", "max_discount"),
            total("sales_cents", "sales_cents"),
            total("profit_cents", "profit_cents"),
        ], sort=False).with_columns(discount_status("max_discount"))

        by_status = group_aggregate(orders, "discount_status", [
            count_distinct("order_id", "total_orders"),
            total("sales_cents", "sales_cents"),
            total("profit_cents", "profit_cents"),
        ])
        return by_status.select(
            "discount_status",
            "total_orders",
            amount("sales_cents", "total_sales"),
            amount("profit_cents", "total_profit"),
            percentage_expr("profit_cents", "sales_cents").alias("profit_margin"),
            as_amount(ratio_expr("sales_cents", "total_orders")).round(2).alias("avg_sales_per_order"),
            as_amount(ratio_expr("profit_cents", "total_orders")).round(2).alias("avg_profit_per_order"),
        )

    def category_discount_impact(self) -> pl.DataFrame:
        """Line-level discounted vs full-price sales per category"""
        return group_aggregate(self.lines, ["category", discount_status()], [
            total("sales_cents", "total_sales", money=True, digits=2),
            total("profit_cents", "total_profit", money=True, digits=2),
        ])

    def discount_bands(self) -> pl.DataFrame:
        """Sales, profit and margin per discount band, most profitable first"""
        bands = group_aggregate(self.lines, discount_band(), [
            total("sales_cents", "sales_cents"),
            total("profit_cents", "profit_cents"),
        ])
        return bands.select(
            "discount_range",
            amount("sales_cents", "total_sales"),
            amount("profit_cents", "total_profit"),
            percentage_expr("profit_cents", "sales_cents").alias("profit_margin"),
        ).sort(["total_profit", "discount_range"], descending=[True, False])
