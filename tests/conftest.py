"""
Test Suite Configuration
"""
from datetime import date, timedelta

import pytest
import polars as pl

from retail_analytics.analytics import AnalyticsEngine
from retail_analytics.config import AnalyticsSettings, Settings
from retail_analytics.core.snapshot import Snapshot
from retail_analytics.data.generators import GeneratedSnapshot, SnapshotGenerator


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def analytics_settings() -> AnalyticsSettings:
    """Analytics thresholds at their defaults"""
    return AnalyticsSettings()


# =============================================================================
# HAND-COMPUTED DATASET
# =============================================================================
# C1 orders monthly in Q1, C2 twice eight months apart (O5 not yet shipped),
# C3 once, C4 never. O4 holds the only heavily discounted, loss-making line.

@pytest.fixture
def customers_df() -> pl.DataFrame:
    return pl.DataFrame({
        "customer_id": ["C1", "C2", "C3", "C4"],
        "customer_name": ["Alice Adams", "Bob Brown", "Cara Cole", "Dan Diaz"],
        "segment": ["Consumer", "Corporate", "Home Office", "Consumer"],
    })


@pytest.fixture
def orders_df() -> pl.DataFrame:
    return pl.DataFrame({
        "order_id": ["O1", "O2", "O3", "O4", "O5", "O6"],
        "customer_id": ["C1", "C1", "C1", "C2", "C2", "C3"],
        "order_date": [
            date(2023, 1, 5),
            date(2023, 2, 4),
            date(2023, 3, 6),
            date(2023, 1, 20),
            date(2023, 9, 15),
            date(2023, 3, 10),
        ],
        "ship_date": [
            date(2023, 1, 8),
            date(2023, 2, 9),
            date(2023, 3, 7),
            date(2023, 1, 26),
            None,
            date(2023, 3, 12),
        ],
        "ship_mode": [
            "Standard Class",
            "Standard Class",
            "First Class",
            "Second Class",
            "Same Day",
            "First Class",
        ],
        "region": ["West", "West", "West", "East", "East", "Central"],
        "country": ["United States"] * 6,
        "state": ["California", "California", "California", "New York", "New York", "Texas"],
        "city": ["Los Angeles", "Los Angeles", "San Francisco", "New York City", "New York City", "Houston"],
        "postal_code": ["90036", "90036", "94122", "10035", "10035", "77095"],
    })


@pytest.fixture
def products_df() -> pl.DataFrame:
    return pl.DataFrame({
        "product_id": ["P1", "P2", "P3", "P4"],
        "product_name": ["Desk Chair", "Paper Pack", "Phone Case", "Bookcase"],
        "category": ["Furniture", "Office Supplies", "Technology", "Furniture"],
        "sub_category": ["Chairs", "Paper", "Phones", "Bookcases"],
    })


@pytest.fixture
def sales_df() -> pl.DataFrame:
    return pl.DataFrame({
        "order_id": ["O1", "O1", "O2", "O2", "O3", "O4", "O4", "O5", "O6"],
        "product_id": ["P1", "P2", "P2", "P1", "P3", "P4", "P3", "P1", "P2"],
        "quantity": [2, 10, 5, 1, 3, 1, 2, 4, 20],
        "sales": [500.0, 100.0, 50.0, 250.0, 90.0, 1200.0, 60.0, 1000.0, 200.0],
        "discount": [0.0, 0.15, 0.0, 0.0, 0.2, 0.3, 0.0, 0.1, 0.0],
        "profit": [100.0, 20.0, 10.0, 50.0, -9.0, -120.0, 12.0, 150.0, 40.0],
    })


@pytest.fixture
def snapshot(customers_df, orders_df, products_df, sales_df) -> Snapshot:
    """Strict, validated snapshot of the hand-computed dataset"""
    return Snapshot.build(
        customers_df, orders_df, products_df, sales_df,
        integrity_mode="strict",
        validate=True,
    )


@pytest.fixture
def engine(snapshot, analytics_settings) -> AnalyticsEngine:
    return AnalyticsEngine(snapshot, settings=analytics_settings)


# =============================================================================
# GENERATED DATASET
# =============================================================================

@pytest.fixture(scope="session")
def generated_data() -> GeneratedSnapshot:
    """Seeded synthetic dataset for property checks"""
    return SnapshotGenerator(seed=7).generate(n_customers=40, n_products=25, n_orders=300)


@pytest.fixture(scope="session")
def generated_snapshot(generated_data) -> Snapshot:
    return Snapshot.build(
        generated_data.customers,
        generated_data.orders,
        generated_data.products,
        generated_data.sales,
        integrity_mode="strict",
    )


@pytest.fixture
def snapshot_factory():
    """
    Build a snapshot from ``(customer_id, order_date)`` pairs.

    Each order ships two days later and holds one line of P1 for 100.00.
    """
    def build(placed, **kwargs) -> Snapshot:
        customer_ids = sorted({customer_id for customer_id, _ in placed})
        order_ids = [f"O{i + 1}" for i in range(len(placed))]
        customers = pl.DataFrame({
            "customer_id": customer_ids,
            "customer_name": [f"Customer {c}" for c in customer_ids],
            "segment": ["Consumer"] * len(customer_ids),
        })
        orders = pl.DataFrame({
            "order_id": order_ids,
            "customer_id": [customer_id for customer_id, _ in placed],
            "order_date": [day for _, day in placed],
            "ship_date": [day + timedelta(days=2) for _, day in placed],
            "ship_mode": ["Standard Class"] * len(placed),
            "region": ["West"] * len(placed),
            "country": ["United States"] * len(placed),
            "state": ["California"] * len(placed),
            "city": ["Los Angeles"] * len(placed),
            "postal_code": ["90036"] * len(placed),
        })
        products = pl.DataFrame({
            "product_id": ["P1"],
            "product_name": ["Desk Chair"],
            "category": ["Furniture"],
            "sub_category": ["Chairs"],
        })
        sales = pl.DataFrame({
            "order_id": order_ids,
            "product_id": ["P1"] * len(placed),
            "quantity": [1] * len(placed),
            "sales": [100.0] * len(placed),
            "discount": [0.0] * len(placed),
            "profit": [20.0] * len(placed),
        })
        return Snapshot.build(customers, orders, products, sales, **kwargs)

    return build
