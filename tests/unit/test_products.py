"""
Unit Tests - Product & Market Analytics
"""
from datetime import date

import pytest
import polars as pl

from retail_analytics.analytics.products import ProductAnalytics
from retail_analytics.core.snapshot import DateRange, Snapshot
from retail_analytics.exceptions import DivisionUndefinedError


@pytest.fixture
def products(snapshot, analytics_settings) -> ProductAnalytics:
    return ProductAnalytics(snapshot, analytics_settings)


class TestPerformance:
    """Tests for product performance"""

    def test_unique_products(self, products):
        """Test distinct product count"""
        assert products.unique_products() == 4

    def test_product_order_values(self, products):
        """Test sales over distinct orders per product"""
        values = products.product_order_values()

        assert values.select("product_id", "total_orders", "avg_order_value").rows() == [
            ("P4", 1, 1200.0),
            ("P1", 3, 583.33),
            ("P2", 3, 116.67),
            ("P3", 2, 75.0),
        ]

    def test_product_margins(self, products):
        """Test margin is profit over sales in percent"""
        margins = dict(products.product_margins().select("product_id", "profit_margin").iter_rows())

        assert margins == {"P1": 17.14, "P2": 20.0, "P3": 2.0, "P4": -10.0}

    def test_best_sellers(self, products):
        """Test sales ranking with unit price"""
        sellers = products.best_sellers()

        assert sellers.select("product_id", "total_quantity", "avg_price_per_unit").rows() == [
            ("P1", 7, 250.0),
            ("P4", 1, 1200.0),
            ("P2", 35, 10.0),
            ("P3", 5, 30.0),
        ]

    def test_best_sellers_limit(self, products):
        """Test a limit keeps the top rows"""
        assert products.best_sellers(limit=1)["product_id"].to_list() == ["P1"]

    def test_worst_margins(self, products):
        """Test lowest margin first"""
        assert products.worst_margins()["product_id"].to_list() == ["P4", "P3", "P1", "P2"]

    def test_lifetime_revenue(self, products):
        """Test lifetime revenue per product"""
        revenue = products.lifetime_revenue()

        assert revenue["total_lifetime_revenue"].to_list() == [1750.0, 1200.0, 350.0, 150.0]

    def test_loss_making_orders(self, products):
        """Test negative-profit lines, biggest loss first"""
        assert products.loss_making_orders().rows() == [
            ("O4", "Bob Brown", "P4", "Bookcase", 1200.0, -120.0),
            ("O3", "Alice Adams", "P3", "Phone Case", 90.0, -9.0),
        ]

    def test_quantity_frequency(self, products):
        """Test occurrences of each line quantity"""
        assert products.quantity_frequency().rows() == [
            (1, 2), (2, 2), (3, 1), (4, 1), (5, 1), (10, 1), (20, 1),
        ]

    def test_top_products_by_category(self, products):
        """Test quantity ranks restart in each category"""
        ranked = products.top_products_by_category()

        assert ranked.select("category", "product_id", "product_rank").rows() == [
            ("Furniture", "P1", 1),
            ("Furniture", "P4", 2),
            ("Office Supplies", "P2", 1),
            ("Technology", "P3", 1),
        ]

    def test_top_products_by_category_limit(self, products):
        """Test top_n keeps ranks up to n per category"""
        ranked = products.top_products_by_category(top_n=1)

        assert ranked["product_id"].to_list() == ["P1", "P2", "P3"]


class TestDiscounts:
    """Tests for discount exposure"""

    def test_segment_discounts(self, products):
        """Test mean line discount per customer segment"""
        assert products.segment_discounts().rows() == [
            ("Corporate", 0.1333),
            ("Consumer", 0.07),
            ("Home Office", 0.0),
        ]

    def test_product_discounts(self, products):
        """Test highest average discount first"""
        assert products.product_discounts()["product_id"].to_list() == ["P4", "P3", "P2", "P1"]

    def test_subcategory_discount_impact(self, products):
        """Test sales and profit split by whether the line was discounted"""
        impact = products.subcategory_discount_impact()
        chairs = impact.filter(pl.col("sub_category") == "Chairs").row(0, named=True)

        assert chairs["avg_discount"] == 0.0333
        assert chairs["sales_with_discount"] == 1000.0
        assert chairs["profit_with_discount"] == 150.0
        assert chairs["sales_without_discount"] == 750.0
        assert chairs["profit_without_discount"] == 150.0


class TestCategories:
    """Tests for category contribution and price movement"""

    def test_category_contribution(self, products):
        """Test shares of grand-total sales and profit"""
        assert products.category_contribution().rows() == [
            ("Furniture", 2950.0, 180.0, 85.51, 71.15),
            ("Office Supplies", 350.0, 70.0, 10.14, 27.67),
            ("Technology", 150.0, 3.0, 4.35, 1.19),
        ]

    def test_contribution_sums_to_hundred(self, generated_snapshot, analytics_settings):
        """Test category sales shares add up to 100 within rounding"""
        shares = ProductAnalytics(generated_snapshot, analytics_settings).category_contribution()

        assert shares["sales_contribution"].sum() == pytest.approx(100.0, abs=0.02)

    def test_zero_profit_leaves_sales_shares(self, customers_df, orders_df, products_df, sales_df, analytics_settings):
        """Test a zero grand profit nulls only the profit share"""
        sales = sales_df.with_columns(pl.lit(0.0).alias("profit"))
        snapshot = Snapshot.build(customers_df, orders_df, products_df, sales)

        shares = ProductAnalytics(snapshot, analytics_settings).category_contribution()

        assert shares.select("category", "sales_contribution").rows() == [
            ("Furniture", 85.51),
            ("Office Supplies", 10.14),
            ("Technology", 4.35),
        ]
        assert shares["profit_contribution"].null_count() == shares.height

    def test_contribution_needs_sales(self, snapshot, analytics_settings):
        """Test no sales in range makes the shares undefined"""
        empty = snapshot.restrict(DateRange(date(2030, 1, 1), date(2030, 1, 2)))

        with pytest.raises(DivisionUndefinedError):
            ProductAnalytics(empty, analytics_settings).category_contribution()

    def test_subcategory_contribution(self, products):
        """Test one row per sub-category"""
        shares = products.subcategory_contribution()

        assert shares.height == 4
        assert shares.row(0, named=True)["sub_category"] == "Chairs"

    def test_segment_category_profit(self, products):
        """Test profit per segment and category"""
        assert products.segment_category_profit().rows() == [
            ("Consumer", "Furniture", 150.0),
            ("Consumer", "Office Supplies", 30.0),
            ("Consumer", "Technology", -9.0),
            ("Corporate", "Furniture", 30.0),
            ("Corporate", "Technology", 12.0),
            ("Home Office", "Office Supplies", 40.0),
        ]

    def test_category_price_changes(self, products):
        """Test month-over-month unit price, quantity and profit change"""
        furniture = products.category_price_changes().filter(pl.col("category") == "Furniture")

        assert furniture.select(
            "sales_month", "avg_price_per_unit", "total_quantity_sold", "total_profit",
            "price_change", "quantity_change", "profit_change",
        ).rows() == [
            ("2023-01", 566.67, 3, -20.0, None, None, None),
            ("2023-02", 250.0, 1, 50.0, -316.67, -2, 70.0),
            ("2023-09", 250.0, 4, 150.0, 0.0, 3, 100.0),
        ]


class TestMarketBasket:
    """Tests for product pairs bought together"""

    def test_pairs(self, products):
        """Test each unordered pair counted once per order"""
        assert products.market_basket().rows() == [
            ("P1", "Desk Chair", "P2", "Paper Pack", 2),
            ("P3", "Phone Case", "P4", "Bookcase", 1),
        ]

    def test_independent_of_quantity(self, customers_df, orders_df, products_df, sales_df, analytics_settings):
        """Test quantities never change pair frequency"""
        sales = sales_df.with_columns((pl.col("quantity") * 7).alias("quantity"))
        snapshot = Snapshot.build(customers_df, orders_df, products_df, sales)

        basket = ProductAnalytics(snapshot, analytics_settings).market_basket()

        assert basket["frequency"].to_list() == [2, 1]

    def test_single_line_orders_have_no_pairs(self, snapshot_factory, analytics_settings):
        """Test orders with one product produce no pairs"""
        snapshot = snapshot_factory([("A", date(2023, 1, 1)), ("B", date(2023, 1, 2))])

        assert ProductAnalytics(snapshot, analytics_settings).market_basket().is_empty()
