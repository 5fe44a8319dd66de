"""
Unit Tests - Snapshot (join/index layer)
"""
from datetime import date
from decimal import Decimal

import pytest
import polars as pl

from retail_analytics.core.snapshot import DateRange, IntegrityMode, Snapshot
from retail_analytics.data.schemas import (
    Customer,
    Order,
    Product,
    Sale,
    customers_frame,
    orders_frame,
    products_frame,
    sales_frame,
)
from retail_analytics.exceptions import (
    DataQualityError,
    InvalidRangeError,
    ReferentialIntegrityError,
)


class TestSnapshotBuild:
    """Tests for normalization and validation on build"""

    def test_money_held_as_cents(self, snapshot):
        """Test sales and profit become exact integer cents"""
        sales = snapshot.sales

        assert sales.schema["sales_cents"] == pl.Int64
        assert sales["sales_cents"].sum() == 345000
        assert sales["profit_cents"].sum() == 25300

    def test_shipping_days_derived(self, snapshot):
        """Test shipping days added per order, null when unshipped"""
        days = dict(snapshot.orders.select("order_id", "shipping_days").iter_rows())

        assert days == {"O1": 3, "O2": 5, "O3": 1, "O4": 6, "O5": None, "O6": 2}

    def test_string_dates_parsed(self, customers_df, orders_df, products_df, sales_df):
        """Test ISO date strings are accepted"""
        orders = orders_df.with_columns(
            pl.col("order_date").dt.strftime("%Y-%m-%d"),
            pl.col("ship_date").dt.strftime("%Y-%m-%d"),
        )

        snapshot = Snapshot.build(customers_df, orders, products_df, sales_df)

        assert snapshot.orders.schema["order_date"] == pl.Date
        assert snapshot.max_order_date == date(2023, 9, 15)

    def test_missing_column_rejected(self, customers_df, orders_df, products_df, sales_df):
        """Test a missing required column fails the build"""
        with pytest.raises(DataQualityError) as exc_info:
            Snapshot.build(customers_df, orders_df, products_df, sales_df.drop("quantity"))

        assert exc_info.value.table == "sales"

    def test_invalid_discount_rejected(self, customers_df, orders_df, products_df, sales_df):
        """Test a discount outside [0, 1] fails validation"""
        sales = sales_df.with_columns(
            pl.when(pl.col("order_id") == "O3").then(1.5).otherwise(pl.col("discount")).alias("discount")
        )

        with pytest.raises(DataQualityError) as exc_info:
            Snapshot.build(customers_df, orders_df, products_df, sales)

        assert "range_discount" in exc_info.value.failed_checks

    def test_ship_before_order_rejected(self, customers_df, orders_df, products_df, sales_df):
        """Test a ship date before the order date fails validation"""
        orders = orders_df.with_columns(
            pl.when(pl.col("order_id") == "O1")
            .then(pl.lit(date(2022, 12, 31)))
            .otherwise(pl.col("ship_date"))
            .alias("ship_date")
        )

        with pytest.raises(DataQualityError):
            Snapshot.build(customers_df, orders, products_df, sales_df)

    def test_duplicate_line_key_rejected(self, customers_df, orders_df, products_df, sales_df):
        """Test (order_id, product_id) must be unique"""
        sales = pl.concat([sales_df, sales_df.head(1)])

        with pytest.raises(DataQualityError) as exc_info:
            Snapshot.build(customers_df, orders_df, products_df, sales)

        assert "unique_order_id_product_id" in exc_info.value.failed_checks


class TestIntegrity:
    """Tests for referential integrity modes"""

    @pytest.fixture
    def orphan_sales(self, sales_df) -> pl.DataFrame:
        return pl.concat([
            sales_df,
            pl.DataFrame({
                "order_id": ["O99"],
                "product_id": ["P1"],
                "quantity": [1],
                "sales": [10.0],
                "discount": [0.0],
                "profit": [1.0],
            }),
        ])

    def test_strict_mode_raises(self, customers_df, orders_df, products_df, orphan_sales):
        """Test strict mode aborts on an orphaned sale line"""
        with pytest.raises(ReferentialIntegrityError) as exc_info:
            Snapshot.build(customers_df, orders_df, products_df, orphan_sales, integrity_mode="strict")

        violation = exc_info.value.violations["sales.order_id"]
        assert violation["orphan_count"] == 1
        assert violation["missing_keys"] == ["O99"]

    def test_lenient_mode_drops_orphans(self, customers_df, orders_df, products_df, orphan_sales):
        """Test lenient mode drops the orphan and keeps the rest"""
        snapshot = Snapshot.build(
            customers_df, orders_df, products_df, orphan_sales, integrity_mode=IntegrityMode.LENIENT,
        )

        assert snapshot.integrity_mode == IntegrityMode.LENIENT
        assert snapshot.sales.height == 9
        assert "O99" not in snapshot.sales["order_id"].to_list()

    def test_lenient_mode_cascades(self, customers_df, orders_df, products_df, sales_df):
        """Test dropping an orphaned order also drops its lines"""
        customers = customers_df.filter(pl.col("customer_id") != "C3")

        snapshot = Snapshot.build(customers, orders_df, products_df, sales_df, integrity_mode="lenient")

        assert "O6" not in snapshot.orders["order_id"].to_list()
        assert "O6" not in snapshot.sales["order_id"].to_list()
        assert snapshot.sales.height == 8

    def test_unknown_product_reported(self, customers_df, orders_df, products_df, sales_df):
        """Test every orphaned relation is listed"""
        products = products_df.filter(pl.col("product_id") != "P4")

        with pytest.raises(ReferentialIntegrityError) as exc_info:
            Snapshot.build(customers_df, orders_df, products, sales_df)

        assert list(exc_info.value.violations) == ["sales.product_id"]


class TestLookups:
    """Tests for the snapshot indexes"""

    def test_orders_for_customer(self, snapshot):
        """Test customer -> orders, oldest first"""
        orders = snapshot.orders_for_customer("C1")

        assert orders["order_id"].to_list() == ["O1", "O2", "O3"]

    def test_orders_for_customer_without_orders(self, snapshot):
        """Test a customer with no orders yields an empty frame"""
        orders = snapshot.orders_for_customer("C4")

        assert orders.is_empty()
        assert orders.columns == snapshot.orders.columns

    def test_lines_for_order(self, snapshot):
        """Test order -> lines"""
        assert snapshot.lines_for_order("O1").height == 2
        assert snapshot.lines_for_order("missing").is_empty()

    def test_lines_for_product(self, snapshot):
        """Test product -> lines"""
        lines = snapshot.lines_for_product("P1")

        assert sorted(lines["order_id"].to_list()) == ["O1", "O2", "O5"]

    def test_order_back_reference(self, snapshot):
        """Test line -> order"""
        order = snapshot.order("O4")

        assert order["customer_id"] == "C2"
        assert order["ship_mode"] == "Second Class"

    def test_order_unknown(self, snapshot):
        """Test an unknown order id raises KeyError"""
        with pytest.raises(KeyError):
            snapshot.order("O99")

    def test_joined_lines(self, snapshot):
        """Test every sale line carries its order, product and customer"""
        lines = snapshot.lines

        assert lines.height == 9
        for column in ("order_date", "category", "customer_name", "segment", "shipping_days"):
            assert column in lines.columns

    def test_table_overview(self, snapshot):
        """Test row counts per record set"""
        overview = dict(snapshot.table_overview().iter_rows())

        assert overview == {"customers": 4, "orders": 6, "products": 4, "sales": 9}


class TestDateRange:
    """Tests for date ranges and restriction"""

    def test_invalid_range(self):
        """Test start after end is rejected"""
        with pytest.raises(InvalidRangeError):
            DateRange(date(2023, 2, 1), date(2023, 1, 1))

    def test_restrict_inclusive(self, snapshot):
        """Test both bounds are inclusive"""
        restricted = snapshot.restrict(DateRange(date(2023, 1, 5), date(2023, 2, 4)))

        assert sorted(restricted.orders["order_id"].to_list()) == ["O1", "O2", "O4"]
        assert restricted.sales.height == 6
        assert restricted.customers.height == 4

    def test_restrict_open_ended(self, snapshot):
        """Test an open start keeps everything up to the end"""
        restricted = snapshot.restrict(DateRange(end=date(2023, 1, 31)))

        assert sorted(restricted.orders["order_id"].to_list()) == ["O1", "O4"]

    def test_restrict_leaves_original(self, snapshot):
        """Test restriction does not mutate the snapshot"""
        snapshot.restrict(DateRange(date(2023, 9, 1), date(2023, 9, 30)))

        assert snapshot.orders.height == 6
        assert snapshot.lines.height == 9


class TestRecords:
    """Tests for building from typed records"""

    def test_build_from_records(self):
        """Test record collections convert to frames a snapshot accepts"""
        snapshot = Snapshot.build(
            customers_frame([Customer("C1", "Alice Adams", "Consumer")]),
            orders_frame([
                Order("O1", "C1", date(2023, 1, 5), date(2023, 1, 8), "Standard Class",
                      "West", "United States", "California", "Los Angeles"),
            ]),
            products_frame([Product("P1", "Desk Chair", "Furniture", "Chairs")]),
            sales_frame([Sale("O1", "P1", 3, Decimal("19.99"), Decimal("0.1"), Decimal("-0.05"))]),
        )

        line = snapshot.lines.row(0, named=True)
        assert line["sales_cents"] == 1999
        assert line["profit_cents"] == -5
        assert line["shipping_days"] == 3
        assert line["postal_code"] is None

    def test_empty_records(self):
        """Test empty collections keep their schema"""
        assert customers_frame([]).columns == ["customer_id", "customer_name", "segment"]
