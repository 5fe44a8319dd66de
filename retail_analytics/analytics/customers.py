"""
Customer Analytics

Customer value, purchase behaviour, segmentation and retention:
- Order values, frequency and purchase intervals
- Spending bands and value tiers
- RFM (Recency, Frequency, Monetary) scoring
- Repeat purchase, return and churn rates
- Customer lifetime value
"""

from datetime import date
from typing import List, Optional, Tuple

import polars as pl
import structlog

from retail_analytics.analytics.base import Analyzer, amount
from retail_analytics.core.aggregation import (
    average,
    count_distinct,
    group_aggregate,
    maximum,
    minimum,
    percentage,
    ratio_expr,
    total,
)
from retail_analytics.core.money import CENTS, as_amount
from retail_analytics.core.periods import month_key
from retail_analytics.core.window import dense_rank, lag, ntile
from retail_analytics.exceptions import EmptyPartitionError, InvalidRangeError

logger = structlog.get_logger(__name__)

# (label, inclusive upper bound in currency units); the first bound is exclusive
SPENDING_BANDS: List[Tuple[str, Optional[float]]] = [
    ("<1K", 1000),
    ("1K-2K", 2000),
    ("2K-3K", 3000),
    ("3K-5K", 5000),
    ("5K-10K", 10000),
    (">10K", None),
]

HIGH_VALUE = "High-Value"
MEDIUM_VALUE = "Medium-Value"
LOW_VALUE = "Low-Value"


def _offset(day: date, months: int) -> date:
    return pl.select(pl.lit(day).dt.offset_by(f"{months}mo")).item()


class CustomerAnalytics(Analyzer):
    """
    Customer-level analytics over the snapshot.

    Monetary values come from the sale lines; order counts and dates come
    from the orders a customer placed.
    """

    GROUP = "customers"
    COMPUTATIONS = (
        "unique_customers",
        "top_customers",
        "average_order_values",
        "new_customers_by_month",
        "order_frequency",
        "monthly_activity",
        "spending_distribution",
        "purchase_intervals",
        "geographic_behavior",
        "top_spenders",
        "value_segments",
        "segment_order_values",
        "segment_geography",
        "rfm_values",
        "rfm_scores",
        "repeat_purchase_rate",
        "return_rate",
        "new_vs_returning_sales",
        "customer_activity",
        "churn_rate",
        "lifetime_values",
    )

    # -------------------------------------------------------------------------
    # Shared per-customer frames
    # -------------------------------------------------------------------------

    def _customer_totals(self) -> pl.DataFrame:
        """One row per purchasing customer with exact cent totals"""
        return group_aggregate(self.lines, ["customer_id", "customer_name"], [
            count_distinct("order_id", "total_orders"),
            total("sales_cents", "sales_cents"),
            total("profit_cents", "profit_cents"),
            minimum("order_date", "first_order_date"),
            maximum("order_date", "last_order_date"),
        ])

    def _customer_orders(self) -> pl.DataFrame:
        """One row per ordering customer with order count and first/last dates"""
        return group_aggregate(self.snapshot.customer_orders, ["customer_id", "customer_name"], [
            count_distinct("order_id", "total_orders"),
            minimum("order_date", "first_order_date"),
            maximum("order_date", "last_order_date"),
        ])

    def _value_tier(self, column: str = "sales_cents") -> pl.Expr:
        high = self.settings.high_value_threshold * CENTS
        medium = self.settings.medium_value_threshold * CENTS
        return (
            pl.when(pl.col(column) > high).then(pl.lit(HIGH_VALUE))
            .when(pl.col(column) >= medium).then(pl.lit(MEDIUM_VALUE))
            .otherwise(pl.lit(LOW_VALUE))
            .alias("customer_segment")
        )

    def _value_tiers(self) -> pl.DataFrame:
        return self._customer_totals().with_columns(
            self._value_tier(),
            as_amount(ratio_expr("sales_cents", "total_orders")).alias("avg_order_value"),
        )

    # -------------------------------------------------------------------------
    # Value
    # -------------------------------------------------------------------------

    def unique_customers(self) -> int:
        return self.snapshot.customers["customer_id"].n_unique()

    def top_customers(self, limit: Optional[int] = 10, by: str = "sales") -> pl.DataFrame:
        """Customers ranked by total sales or total profit"""
        if by not in ("sales", "profit"):
            raise InvalidRangeError("Rank customers by 'sales' or 'profit'", details={"by": by})
        ranked = self._customer_totals().select(
            "customer_id",
            "customer_name",
            amount("sales_cents", "total_sales"),
            amount("profit_cents", "total_profit"),
        ).sort([f"total_{by}", "customer_id"], descending=[True, False])
        return self._limit(ranked, limit)

    def average_order_values(self) -> pl.DataFrame:
        return self._customer_totals().select(
            "customer_id",
            "customer_name",
            "total_orders",
            amount("sales_cents", "total_sales"),
            as_amount(ratio_expr("sales_cents", "total_orders")).round(2).alias("avg_order_value"),
        ).sort(["avg_order_value", "customer_id"], descending=[True, False], nulls_last=True)

    def top_spenders(self, percent: float = 10) -> pl.DataFrame:
        """
        Customers in the top ``percent`` percentiles of total sales.

        Percentiles are equal-frequency buckets, so with fewer than 100
        customers every customer sits in a percentile of its own.
        """
        if not 0 < percent <= 100:
            raise InvalidRangeError("Percent must be in (0, 100]", details={"percent": percent})
        totals = self._customer_totals().select(
            "customer_id",
            "customer_name",
            amount("sales_cents", "total_sales"),
        )
        ranked = ntile(
            totals, "total_sales", 100,
            descending=True, tie_breakers="customer_id", alias="percentile_rank",
        )
        return ranked.filter(pl.col("percentile_rank") <= percent)

    def value_segments(self) -> pl.DataFrame:
        """High / Medium / Low value tier per customer"""
        return self._value_tiers().select(
            "customer_id",
            "customer_name",
            amount("sales_cents", "total_sales"),
            "total_orders",
            "customer_segment",
        ).sort(["total_sales", "customer_id"], descending=[True, False])

    def segment_order_values(self) -> pl.DataFrame:
        """Average of per-customer order values within each value tier"""
        return group_aggregate(self._value_tiers(), "customer_segment", [
            count_distinct("customer_id", "customer_count"),
            average("avg_order_value", "avg_order_value", digits=2),
        ]).sort(["avg_order_value", "customer_segment"], descending=[True, False])

    def segment_geography(self) -> pl.DataFrame:
        """Distinct customers of each value tier per place"""
        tiers = self._value_tiers().select("customer_id", "customer_segment")
        placed = self.lines.select("customer_id", "state", "city", "region").join(
            tiers, on="customer_id", how="inner",
        )

        def customers_in(tier: str, alias: str) -> pl.Expr:
            return pl.col("customer_id").filter(pl.col("customer_segment") == tier).n_unique().alias(alias)

        return placed.group_by(["state", "city", "region"]).agg(
            customers_in(HIGH_VALUE, "high_value_customers"),
            customers_in(MEDIUM_VALUE, "medium_value_customers"),
            customers_in(LOW_VALUE, "low_value_customers"),
        ).sort(
            ["high_value_customers", "state", "city", "region"],
            descending=[True, False, False, False],
        )

    def lifetime_values(self) -> pl.DataFrame:
        """
        Customer lifetime value from its three factors.

        ``clv = avg_purchase_value * avg_purchase_frequency * lifespan_years``,
        where the purchase value is profit per order and the frequency is
        orders per year of lifespan. A customer whose orders all fall on one
        day has no lifespan, so frequency and CLV stay null unless
        ``clv_min_lifespan_days`` sets a floor.
        """
        lifespan_days = (pl.col("last_order_date") - pl.col("first_order_date")).dt.total_days()
        floor = self.settings.clv_min_lifespan_days
        if floor is not None:
            lifespan_days = pl.max_horizontal(lifespan_days, pl.lit(floor))

        values = self._customer_totals().with_columns(
            (lifespan_days.cast(pl.Float64) / 365.0).alias("lifespan_years"),
            as_amount(ratio_expr("profit_cents", "total_orders")).alias("purchase_value"),
        ).with_columns(
            ratio_expr("total_orders", "lifespan_years").alias("purchase_frequency"),
        ).with_columns(
            (pl.col("purchase_value") * pl.col("purchase_frequency") * pl.col("lifespan_years"))
            .round(2)
            .alias("clv"),
        )

        return values.select(
            "customer_id",
            "customer_name",
            "total_orders",
            amount("profit_cents", "total_profit"),
            pl.col("lifespan_years").round(2).alias("customer_lifespan_years"),
            pl.col("purchase_value").round(2).alias("avg_purchase_value"),
            pl.col("purchase_frequency").round(2).alias("avg_purchase_frequency"),
            "clv",
        ).sort(["clv", "customer_id"], descending=[True, False], nulls_last=True)

    # -------------------------------------------------------------------------
    # Behaviour
    # -------------------------------------------------------------------------

    def new_customers_by_month(self) -> pl.DataFrame:
        """Customers counted in the month of their first order"""
        return group_aggregate(self._customer_orders(), month_key("first_order_date"), [
            count_distinct("customer_id", "new_customers"),
        ])

    def order_frequency(self, limit: Optional[int] = 10) -> pl.DataFrame:
        ranked = dense_rank(
            self._customer_orders().select("customer_id", "customer_name", "total_orders"),
            "total_orders",
            tie_breakers="customer_id",
            alias="order_rank",
        )
        return self._limit(ranked, limit)

    def monthly_activity(self) -> pl.DataFrame:
        return group_aggregate(self.snapshot.customer_orders, month_key(), [
            count_distinct("customer_id", "active_customers"),
            count_distinct("order_id", "total_orders"),
        ])

    def spending_distribution(self) -> pl.DataFrame:
        """Customer counts per total-sales band, in band order"""
        cents = pl.col("sales_cents")
        label, upper = SPENDING_BANDS[0]
        band = pl.when(cents < upper * CENTS).then(pl.lit(label))
        order = pl.when(cents < upper * CENTS).then(pl.lit(0))
        for position, (label, upper) in enumerate(SPENDING_BANDS[1:-1], start=1):
            band = band.when(cents <= upper * CENTS).then(pl.lit(label))
            order = order.when(cents <= upper * CENTS).then(pl.lit(position))
        band = band.otherwise(pl.lit(SPENDING_BANDS[-1][0])).alias("sales_range")
        order = order.otherwise(pl.lit(len(SPENDING_BANDS) - 1)).alias("band_order")

        return (
            group_aggregate(self._customer_totals(), [band, order], [
                count_distinct("customer_id", "customer_count"),
            ], sort=False)
            .sort("band_order")
            .select("sales_range", "customer_count")
        )

    def purchase_intervals(self) -> pl.DataFrame:
        """
        Average days between consecutive orders per repeat customer.

        Single-order customers have no interval and are left out.
        """
        orders = lag(
            self.snapshot.customer_orders.select("customer_id", "customer_name", "order_id", "order_date"),
            "order_date",
            "order_date",
            partition_by="customer_id",
            tie_breakers="order_id",
            alias="previous_order_date",
        ).with_columns(
            (pl.col("order_date") - pl.col("previous_order_date")).dt.total_days().alias("days_between"),
        )

        intervals = group_aggregate(orders, ["customer_id", "customer_name"], [
            count_distinct("order_id", "total_orders"),
            average("days_between", "avg_days_between_orders", digits=1),
        ]).filter(pl.col("total_orders") > 1)

        return intervals.with_columns(
            pl.when(pl.col("avg_days_between_orders") <= self.settings.monthly_buyer_days)
            .then(pl.lit("Monthly Buyer"))
            .when(pl.col("avg_days_between_orders") <= self.settings.quarterly_buyer_days)
            .then(pl.lit("Quarterly Buyer"))
            .otherwise(pl.lit("Yearly Buyer"))
            .alias("buyer_category"),
        ).sort(["avg_days_between_orders", "customer_id"])

    def geographic_behavior(self) -> pl.DataFrame:
        """Sales, orders and customers per city"""
        places = group_aggregate(self.lines, ["state", "city", "region"], [
            total("sales_cents", "total_sales", money=True, digits=2),
            total("profit_cents", "total_profit", money=True, digits=2),
            count_distinct("order_id", "total_orders"),
            count_distinct("customer_id", "customer_count"),
        ])
        return places.sort(["total_sales", "state", "city"], descending=[True, False, False])

    def new_vs_returning_sales(self) -> pl.DataFrame:
        """Monthly sales split by whether the order falls in the customer's first purchase month"""
        first_months = self._customer_orders().select(
            "customer_id", month_key("first_order_date", alias="first_purchase_month"),
        )
        lines = (
            self.lines.join(first_months, on="customer_id", how="inner")
            .with_columns(month_key(alias="order_month"))
            .with_columns((pl.col("order_month") == pl.col("first_purchase_month")).alias("is_new"))
        )
        cents = pl.col("sales_cents")
        return lines.group_by("order_month").agg(
            (cents.filter(pl.col("is_new")).sum() / CENTS).round(2).alias("new_customer_sales"),
            (cents.filter(~pl.col("is_new")).sum() / CENTS).round(2).alias("returning_customer_sales"),
        ).sort("order_month")

    # -------------------------------------------------------------------------
    # RFM
    # -------------------------------------------------------------------------

    def rfm_values(self) -> pl.DataFrame:
        """Raw recency (days), frequency (orders) and monetary (sales) per customer"""
        reference = self.snapshot.max_order_date
        if reference is None:
            raise EmptyPartitionError("No orders to measure recency against")
        return self._customer_totals().select(
            "customer_id",
            "customer_name",
            (pl.lit(reference) - pl.col("last_order_date")).dt.total_days().alias("recency"),
            pl.col("total_orders").alias("frequency"),
            amount("sales_cents", "monetary"),
        ).sort("customer_id")

    def rfm_scores(self) -> pl.DataFrame:
        """
        Score each RFM dimension 1-5 with 5 the best.

        Every dimension is bucketed best-first (lowest recency, highest
        frequency, highest monetary; ties broken by customer id) and the
        bucket inverted, so the most recent customer scores 5 even when
        there are fewer customers than buckets.
        """
        buckets = self.settings.rfm_buckets
        scored = self.rfm_values()
        for dimension, descending in (("recency", False), ("frequency", True), ("monetary", True)):
            scored = ntile(
                scored, dimension, buckets,
                descending=descending, tie_breakers="customer_id", alias=f"{dimension}_bucket",
            ).with_columns(
                (buckets + 1 - pl.col(f"{dimension}_bucket")).alias(f"{dimension}_score"),
            ).drop(f"{dimension}_bucket")

        scored = scored.with_columns(
            pl.concat_str(
                pl.col("recency_score").cast(pl.Utf8),
                pl.col("frequency_score").cast(pl.Utf8),
                pl.col("monetary_score").cast(pl.Utf8),
            ).alias("rfm_score"),
        )
        return scored.sort(["rfm_score", "customer_id"], descending=[True, False])

    # -------------------------------------------------------------------------
    # Retention
    # -------------------------------------------------------------------------

    def repeat_purchase_rate(self) -> float:
        """Percent of ordering customers with more than one order"""
        customers = self._customer_orders()
        repeat = customers.filter(pl.col("total_orders") > 1).height
        return percentage(repeat, customers.height, what="repeat purchase rate")

    def return_rate(self, months: Optional[int] = None) -> float:
        """Percent of customers who ordered again within ``months`` of their first order"""
        if months is None:
            months = self.settings.return_window_months
        firsts = self._customer_orders().select("customer_id", "first_order_date")
        returned = (
            self.snapshot.orders.select("customer_id", "order_date")
            .join(firsts, on="customer_id", how="inner")
            .filter(
                (pl.col("order_date") > pl.col("first_order_date"))
                & (pl.col("order_date") <= pl.col("first_order_date").dt.offset_by(f"{months}mo"))
            )
            .select(pl.col("customer_id").n_unique())
            .item()
        )
        return percentage(returned, firsts.height, what="return rate")

    def customer_activity(self, months: Optional[int] = None) -> pl.DataFrame:
        """
        Last order, inactivity and churn flag per ordering customer.

        A customer is churned when the last order falls before the global
        latest order date minus ``months``; an order on the cutoff counts
        as active.
        """
        if months is None:
            months = self.settings.churn_window_months
        reference = self.snapshot.max_order_date
        if reference is None:
            raise EmptyPartitionError("No orders to measure customer activity against")
        cutoff = _offset(reference, -months)

        return self._customer_orders().select(
            "customer_id",
            "customer_name",
            "last_order_date",
            (pl.lit(reference) - pl.col("last_order_date")).dt.total_days().alias("days_inactive"),
            (pl.col("last_order_date") < cutoff).alias("is_churned"),
        ).sort(["days_inactive", "customer_id"], descending=[True, False])

    def churn_rate(self, months: Optional[int] = None) -> float:
        activity = self.customer_activity(months)
        churned = activity.filter(pl.col("is_churned")).height
        logger.debug("Churn computed", churned=churned, customers=activity.height)
        return percentage(churned, activity.height, what="churn rate")
