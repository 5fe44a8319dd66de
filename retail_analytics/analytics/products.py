"""
Product & Market Analytics

Product performance, category contribution, discount exposure, monthly
price movement per category and market-basket pairs.
"""

from typing import List, Optional

import polars as pl
import structlog

from retail_analytics.analytics.base import Analyzer, amount
from retail_analytics.core.aggregation import (
    average,
    count,
    count_distinct,
    group_aggregate,
    percentage_expr,
    ratio_expr,
    total,
)
from retail_analytics.core.money import as_amount
from retail_analytics.core.periods import month_key
from retail_analytics.core.window import dense_rank, lag
from retail_analytics.exceptions import DivisionUndefinedError

logger = structlog.get_logger(__name__)

PRODUCT = ["product_id", "product_name"]


class ProductAnalytics(Analyzer):
    """Product-level and category-level analytics over the sale lines"""

    GROUP = "products"
    COMPUTATIONS = (
        "unique_products",
        "product_order_values",
        "product_margins",
        "quantity_frequency",
        "lifetime_revenue",
        "best_sellers",
        "worst_margins",
        "loss_making_orders",
        "top_products_by_category",
        "segment_discounts",
        "product_discounts",
        "subcategory_discount_impact",
        "category_price_changes",
        "category_contribution",
        "subcategory_contribution",
        "segment_category_profit",
        "market_basket",
    )

    def _product_totals(self) -> pl.DataFrame:
        return group_aggregate(self.lines, PRODUCT, [
            count_distinct("order_id", "total_orders"),
            total("sales_cents", "sales_cents"),
            total("profit_cents", "profit_cents"),
            total("quantity", "total_quantity"),
        ])

    # -------------------------------------------------------------------------
    # Performance
    # -------------------------------------------------------------------------

    def unique_products(self) -> int:
        return self.snapshot.products["product_id"].n_unique()

    def product_order_values(self) -> pl.DataFrame:
        return self._product_totals().select(
            *PRODUCT,
            "total_orders",
            amount("sales_cents", "total_sales"),
            as_amount(ratio_expr("sales_cents", "total_orders")).round(2).alias("avg_order_value"),
        ).sort(["avg_order_value", "product_id"], descending=[True, False], nulls_last=True)

    def product_margins(self) -> pl.DataFrame:
        """Profit margin per product; null for a product with no sales"""
        return self._product_totals().select(
            *PRODUCT,
            amount("sales_cents", "total_sales"),
            amount("profit_cents", "total_profit"),
            percentage_expr("profit_cents", "sales_cents").alias("profit_margin"),
        ).sort(["profit_margin", "product_id"], descending=[True, False], nulls_last=True)

    def quantity_frequency(self) -> pl.DataFrame:
        """How often each line quantity occurs"""
        return group_aggregate(self.lines, "quantity", [count(alias="frequency")])

    def lifetime_revenue(self) -> pl.DataFrame:
        return self._product_totals().select(
            *PRODUCT,
            "total_orders",
            amount("sales_cents", "total_lifetime_revenue"),
        ).sort(["total_lifetime_revenue", "product_id"], descending=[True, False])

    def best_sellers(self, limit: Optional[int] = None) -> pl.DataFrame:
        """Products by total sales with their average price per unit"""
        sellers = self._product_totals().select(
            *PRODUCT,
            amount("sales_cents", "total_sales"),
            amount("profit_cents", "total_profit"),
            "total_quantity",
            as_amount(ratio_expr("sales_cents", "total_quantity")).round(2).alias("avg_price_per_unit"),
        ).sort(["total_sales", "product_id"], descending=[True, False])
        return self._limit(sellers, limit)

    def worst_margins(self, limit: Optional[int] = 5) -> pl.DataFrame:
        worst = self._product_totals().select(
            *PRODUCT,
            amount("profit_cents", "total_profit"),
            percentage_expr("profit_cents", "sales_cents").alias("profit_margin"),
        ).sort(["profit_margin", "product_id"], nulls_last=True)
        return self._limit(worst, limit)

    def loss_making_orders(self, limit: Optional[int] = 10) -> pl.DataFrame:
        """Sale lines with negative profit, biggest loss first"""
        losses = self.lines.filter(pl.col("profit_cents") < 0).select(
            "order_id",
            "customer_name",
            *PRODUCT,
            amount("sales_cents", "sales"),
            amount("profit_cents", "profit"),
        ).sort(["profit", "order_id", "product_id"])
        return self._limit(losses, limit)

    def top_products_by_category(self, top_n: int = 5) -> pl.DataFrame:
        """Best-selling products by quantity, ranked within each category"""
        quantities = group_aggregate(self.lines, ["category", *PRODUCT], [
            total("quantity", "total_quantity"),
        ])
        ranked = dense_rank(
            quantities,
            "total_quantity",
            partition_by="category",
            tie_breakers="product_id",
            alias="product_rank",
        )
        return ranked.filter(pl.col("product_rank") <= top_n)

    # -------------------------------------------------------------------------
    # Discounts
    # -------------------------------------------------------------------------

    def segment_discounts(self) -> pl.DataFrame:
        return group_aggregate(self.lines, "segment", [
            average("discount", "avg_discount", digits=4),
        ]).sort(["avg_discount", "segment"], descending=[True, False])

    def product_discounts(self, limit: Optional[int] = 10) -> pl.DataFrame:
        discounts = group_aggregate(self.lines, PRODUCT, [
            average("discount", "avg_discount", digits=4),
        ]).sort(["avg_discount", "product_id"], descending=[True, False])
        return self._limit(discounts, limit)

    def subcategory_discount_impact(self) -> pl.DataFrame:
        """Sales and profit with and without discount per sub-category"""
        discounted = pl.col("discount") > 0

        def split(column: str, alias: str, mask: pl.Expr) -> pl.Expr:
            return as_amount(pl.col(column).filter(mask).sum()).round(2).alias(alias)

        return self.lines.group_by(["category", "sub_category"]).agg(
            pl.col("discount").mean().round(4).alias("avg_discount"),
            split("sales_cents", "sales_with_discount", discounted),
            split("profit_cents", "profit_with_discount", discounted),
            split("sales_cents", "sales_without_discount", ~discounted),
            split("profit_cents", "profit_without_discount", ~discounted),
        ).sort(["category", "sub_category"])

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def category_price_changes(self) -> pl.DataFrame:
        """
        Month-over-month change in average unit price, quantity and profit
        per category. The first month of each category has no change.
        """
        monthly = group_aggregate(self.lines, [month_key(alias="sales_month"), "category"], [
            total("sales_cents", "sales_cents"),
            total("quantity", "total_quantity_sold"),
            total("profit_cents", "profit_cents"),
        ]).with_columns(
            as_amount(ratio_expr("sales_cents", "total_quantity_sold")).alias("unit_price"),
        )

        for column, alias in (
            ("unit_price", "previous_unit_price"),
            ("total_quantity_sold", "previous_quantity"),
            ("profit_cents", "previous_profit_cents"),
        ):
            monthly = lag(monthly, column, "sales_month", partition_by="category", alias=alias)

        return monthly.select(
            "sales_month",
            "category",
            amount("sales_cents", "total_sales"),
            "total_quantity_sold",
            pl.col("unit_price").round(2).alias("avg_price_per_unit"),
            amount("profit_cents", "total_profit"),
            pl.col("previous_unit_price").round(2).alias("previous_avg_price"),
            (pl.col("unit_price") - pl.col("previous_unit_price")).round(2).alias("price_change"),
            (pl.col("total_quantity_sold") - pl.col("previous_quantity")).alias("quantity_change"),
            as_amount(pl.col("profit_cents") - pl.col("previous_profit_cents")).round(2).alias("profit_change"),
        )

    def _contribution(self, keys: List[str]) -> pl.DataFrame:
        totals = group_aggregate(self.lines, keys, [
            total("sales_cents", "sales_cents"),
            total("profit_cents", "profit_cents"),
        ])
        grand_sales = totals["sales_cents"].sum()
        grand_profit = totals["profit_cents"].sum()
        if not grand_sales:
            raise DivisionUndefinedError(
                "Contribution shares need non-zero grand total sales",
                details={"grand_sales_cents": grand_sales},
            )
        # zero grand profit leaves only the profit share undefined
        if grand_profit:
            profit_share = (pl.col("profit_cents") * 100 / grand_profit).round(2)
        else:
            profit_share = pl.lit(None, dtype=pl.Float64)

        return totals.select(
            *keys,
            amount("sales_cents", "total_sales"),
            amount("profit_cents", "total_profit"),
            (pl.col("sales_cents") * 100 / grand_sales).round(2).alias("sales_contribution"),
            profit_share.alias("profit_contribution"),
        ).sort(["sales_contribution", *keys], descending=[True] + [False] * len(keys))

    def category_contribution(self) -> pl.DataFrame:
        """Share of grand-total sales and profit per category (percent)"""
        return self._contribution(["category"])

    def subcategory_contribution(self) -> pl.DataFrame:
        return self._contribution(["category", "sub_category"])

    def segment_category_profit(self) -> pl.DataFrame:
        return group_aggregate(self.lines, ["segment", "category"], [
            total("profit_cents", "total_profit", money=True, digits=2),
        ])

    # -------------------------------------------------------------------------
    # Market basket
    # -------------------------------------------------------------------------

    def market_basket(self, limit: Optional[int] = 10) -> pl.DataFrame:
        """
        Products bought together.

        Each unordered product pair is counted once per order that holds
        both, whatever the quantities.
        """
        items = self.lines.select("order_id", "product_id").unique()
        pairs = (
            items.join(items, on="order_id", how="inner", suffix="_2")
            .filter(pl.col("product_id") < pl.col("product_id_2"))
            .group_by(["product_id", "product_id_2"])
            .agg(pl.len().alias("frequency"))
        )

        names = self.snapshot.products.select(*PRODUCT)
        basket = (
            pairs.rename({"product_id": "product1_id", "product_id_2": "product2_id"})
            .join(names.rename({"product_id": "product1_id", "product_name": "product1_name"}), on="product1_id")
            .join(names.rename({"product_id": "product2_id", "product_name": "product2_name"}), on="product2_id")
            .select("product1_id", "product1_name", "product2_id", "product2_name", "frequency")
            .sort(["frequency", "product1_id", "product2_id"], descending=[True, False, False])
        )
        return self._limit(basket, limit)
