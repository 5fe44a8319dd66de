"""
Unit Tests - Sales & Revenue Analytics
"""
from datetime import date
from decimal import Decimal

import pytest
import polars as pl

from retail_analytics.analytics.sales import SalesAnalytics
from retail_analytics.core.snapshot import DateRange
from retail_analytics.exceptions import EmptyPartitionError, InvalidRangeError


@pytest.fixture
def sales(snapshot, analytics_settings) -> SalesAnalytics:
    return SalesAnalytics(snapshot, analytics_settings)


class TestTotals:
    """Tests for whole-snapshot totals"""

    def test_totals(self, sales):
        """Test revenue, profit, discount, order value and margin"""
        totals = sales.totals()

        assert totals.total_revenue == Decimal("3450.00")
        assert totals.total_profit == Decimal("253.00")
        assert totals.average_discount == 0.08
        assert totals.average_order_value == Decimal("575.00")
        assert totals.total_orders == 6
        assert totals.total_quantity == 48
        assert totals.profit_margin == 7.33

    def test_totals_empty_snapshot(self, snapshot, analytics_settings):
        """Test averages over an empty snapshot are undefined"""
        empty = snapshot.restrict(DateRange(date(2030, 1, 1), date(2030, 12, 31)))

        with pytest.raises(EmptyPartitionError):
            SalesAnalytics(empty, analytics_settings).totals()


class TestTrends:
    """Tests for period trends"""

    def test_monthly_trend(self, sales):
        """Test sales and profit per month, oldest first"""
        trend = sales.monthly_trend()

        assert trend.rows() == [
            ("2023-01", 1860.0, 12.0),
            ("2023-02", 300.0, 60.0),
            ("2023-03", 290.0, 31.0),
            ("2023-09", 1000.0, 150.0),
        ]

    def test_quarterly_and_yearly(self, sales):
        """Test quarter and year keys"""
        assert sales.quarterly_trend()["period"].to_list() == ["2023-Q1", "2023-Q3"]
        assert sales.quarterly_trend()["total_sales"].to_list() == [2450.0, 1000.0]
        assert sales.yearly_trend().rows() == [("2023", 3450.0, 253.0)]

    def test_unknown_granularity(self, sales):
        """Test an unknown granularity is rejected"""
        with pytest.raises(InvalidRangeError):
            sales.trend("week")

    def test_trend_is_deterministic(self, sales):
        """Test repeated runs give identical ordered output"""
        assert sales.monthly_trend().equals(sales.monthly_trend())

    def test_seasonality(self, sales):
        """Test months above the monthly average are peaks"""
        seasons = dict(sales.seasonality().select("month", "seasonality").iter_rows())

        assert seasons == {
            "2023-01": "Peak",
            "2023-02": "Off-Peak",
            "2023-03": "Off-Peak",
            "2023-09": "Peak",
        }

    def test_growth_rates(self, sales):
        """Test month-over-month growth; the first month has none"""
        growth = sales.growth_rates()

        assert growth["previous_sales"].to_list() == [None, 1860.0, 300.0, 290.0]
        assert growth["growth_rate"].to_list() == [None, -83.87, -3.33, 244.83]

    def test_quarterly_growth(self, sales):
        """Test growth at quarter granularity"""
        growth = sales.growth_rates("quarter")

        assert growth["growth_rate"].to_list() == [None, -59.18]

    def test_rolling_forecast(self, sales):
        """Test trailing three-month average"""
        forecast = sales.rolling_forecast()

        assert forecast["forecasted_sales"].to_list() == [1860.0, 1080.0, 816.67, 530.0]

    def test_rolling_forecast_window(self, sales):
        """Test a custom window"""
        forecast = sales.rolling_forecast(window=2)

        assert forecast["forecasted_sales"].to_list() == [1860.0, 1080.0, 295.0, 645.0]


class TestGeography:
    """Tests for regional and state rankings"""

    def test_regional_performance(self, sales):
        """Test regions ranked by sales"""
        regions = sales.regional_performance()

        assert regions.rows() == [
            ("East", 2260.0, 42.0, 1),
            ("West", 990.0, 171.0, 2),
            ("Central", 200.0, 40.0, 3),
        ]

    def test_state_rankings_limit(self, sales):
        """Test the state ranking honours its limit"""
        states = sales.state_rankings(limit=2)

        assert states["state"].to_list() == ["New York", "California"]
        assert states["sales_rank"].to_list() == [1, 2]


class TestDiscounts:
    """Tests for discount analysis"""

    def test_discount_profit_curve(self, sales):
        """Test average line profit per discount level"""
        curve = sales.discount_profit_curve()

        assert curve.rows() == [
            (0.0, 42.4),
            (0.1, 150.0),
            (0.15, 20.0),
            (0.2, -9.0),
            (0.3, -120.0),
        ]

    def test_discount_vs_non_discount(self, sales):
        """Test an order with any discounted line counts as discounted"""
        comparison = {row["discount_status"]: row for row in sales.discount_vs_non_discount().to_dicts()}

        discounted = comparison["Discounted"]
        assert discounted["total_orders"] == 4
        assert discounted["total_sales"] == 2950.0
        assert discounted["total_profit"] == 153.0
        assert discounted["profit_margin"] == 5.19
        assert discounted["avg_sales_per_order"] == 737.5
        assert discounted["avg_profit_per_order"] == 38.25

        full_price = comparison["Non-Discounted"]
        assert full_price["total_orders"] == 2
        assert full_price["profit_margin"] == 20.0

    def test_mixed_order_is_discounted(self, snapshot, analytics_settings):
        """Test an order with one 15% line and one full-price line is discounted"""
        only_o1 = snapshot.restrict(DateRange(date(2023, 1, 5), date(2023, 1, 5)))

        comparison = SalesAnalytics(only_o1, analytics_settings).discount_vs_non_discount()

        assert comparison["discount_status"].to_list() == ["Discounted"]
        assert comparison["total_sales"].to_list() == [600.0]

    def test_category_discount_impact(self, sales):
        """Test line-level discount split per category"""
        impact = sales.category_discount_impact()
        furniture = impact.filter(pl.col("category") == "Furniture")

        assert furniture.rows() == [
            ("Furniture", "Discounted", 2200.0, 30.0),
            ("Furniture", "Non-Discounted", 750.0, 150.0),
        ]

    def test_discount_bands(self, sales):
        """Test fixed bands ordered by profit"""
        bands = sales.discount_bands()

        assert bands.rows() == [
            ("No Discount", 1060.0, 212.0, 20.0),
            ("Low Discount (<= 10%)", 1000.0, 150.0, 15.0),
            ("Medium Discount (<= 25%)", 190.0, 11.0, 5.79),
            ("High Discount (> 25%)", 1200.0, -120.0, -10.0),
        ]
