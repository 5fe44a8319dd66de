"""
Synthetic Data Generator

Generates realistic Superstore-style data for testing and demos.
Includes:
- Customers across the three market segments
- Products across categories and sub-categories
- Orders with ship modes, regions and shipping delays
- Sale lines with quantities, discounts and signed profit

Every generator draws from its own seeded ``random.Random`` and ``Faker``
instance, so the same seed always yields the same dataset and the output is
referentially consistent (every order has a customer, every line an order
and a product).
"""

import random
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Tuple

import polars as pl
from faker import Faker

from retail_analytics.data.schemas import (
    CUSTOMER_SCHEMA,
    ORDER_SCHEMA,
    PRODUCT_SCHEMA,
    SALE_SCHEMA,
    SEGMENTS,
)


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = [
    ("Furniture", ["Bookcases", "Chairs", "Furnishings", "Tables"], (20, 1500)),
    ("Office Supplies", ["Art", "Binders", "Envelopes", "Paper", "Storage"], (2, 300)),
    ("Technology", ["Accessories", "Copiers", "Machines", "Phones"], (10, 3000)),
]

SHIP_MODES = [
    # (mode, weight, shipping days range)
    ("Standard Class", 0.60, (4, 7)),
    ("Second Class", 0.20, (2, 5)),
    ("First Class", 0.15, (1, 3)),
    ("Same Day", 0.05, (0, 0)),
]

REGIONS = {
    "West": ["California", "Washington", "Oregon", "Arizona", "Colorado"],
    "East": ["New York", "Pennsylvania", "Ohio", "Massachusetts", "New Jersey"],
    "Central": ["Texas", "Illinois", "Michigan", "Minnesota", "Indiana"],
    "South": ["Florida", "Georgia", "North Carolina", "Virginia", "Tennessee"],
}

DISCOUNTS = [0.0, 0.0, 0.0, 0.1, 0.15, 0.2, 0.3, 0.5]


# =============================================================================
# GENERATORS
# =============================================================================

class CustomerGenerator:
    """Generate customers with realistic names"""

    def __init__(self, rng: random.Random, fake: Faker):
        self.rng = rng
        self.fake = fake
        self.segments = {
            "Consumer": 0.52,
            "Corporate": 0.30,
            "Home Office": 0.18,
        }

    def generate(self, n: int = 100) -> pl.DataFrame:
        """Generate n customers"""
        customers = []

        for i in range(n):
            first, last = self.fake.first_name(), self.fake.last_name()
            customers.append({
                "customer_id": f"{first[0]}{last[0]}-{10000 + i * 15}",
                "customer_name": f"{first} {last}",
                "segment": self.rng.choices(
                    SEGMENTS,
                    weights=[self.segments[s] for s in SEGMENTS],
                )[0],
            })

        return pl.DataFrame(customers, schema=CUSTOMER_SCHEMA)


class ProductGenerator:
    """Generate a product catalog with list prices"""

    def __init__(self, rng: random.Random, fake: Faker):
        self.rng = rng
        self.fake = fake

    def generate(self, n: int = 50) -> Tuple[pl.DataFrame, dict]:
        """Generate n products and their list prices"""
        products = []
        prices = {}

        for i in range(n):
            category, sub_categories, (low, high) = self.rng.choice(CATEGORIES)
            sub_category = self.rng.choice(sub_categories)
            product_id = f"{category[:3].upper()}-{sub_category[:2].upper()}-{10000000 + i}"

            products.append({
                "product_id": product_id,
                "product_name": f"{self.fake.company()} {sub_category}",
                "category": category,
                "sub_category": sub_category,
            })
            prices[product_id] = round(self.rng.uniform(low, high), 2)

        return pl.DataFrame(products, schema=PRODUCT_SCHEMA), prices


class OrderGenerator:
    """Generate orders and their sale lines"""

    def __init__(
        self,
        rng: random.Random,
        fake: Faker,
        customers_df: pl.DataFrame,
        prices: dict,
    ):
        self.rng = rng
        self.fake = fake
        self.customer_ids = customers_df["customer_id"].to_list()
        self.prices = prices
        self.product_ids = sorted(prices)

    def _ship_date(self, order_date: date) -> Tuple[str, Optional[date]]:
        mode, _, (low, high) = self.rng.choices(SHIP_MODES, weights=[m[1] for m in SHIP_MODES])[0]
        # a few recent orders are still waiting to ship
        if self.rng.random() < 0.02:
            return mode, None
        return mode, order_date + timedelta(days=self.rng.randint(low, high))

    def generate(
        self,
        n: int = 500,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Tuple[pl.DataFrame, pl.DataFrame]:
        """Generate n orders with lines"""
        start_date = start_date or date(2020, 1, 1)
        end_date = end_date or date(2023, 12, 31)
        span = (end_date - start_date).days

        orders = []
        sales = []

        for i in range(n):
            order_id = f"US-{start_date.year + i % 4}-{100000 + i}"
            order_date = start_date + timedelta(days=self.rng.randint(0, span))
            ship_mode, ship_date = self._ship_date(order_date)
            region = self.rng.choice(sorted(REGIONS))
            state = self.rng.choice(REGIONS[region])

            orders.append({
                "order_id": order_id,
                "customer_id": self.rng.choice(self.customer_ids),
                "order_date": order_date,
                "ship_date": ship_date,
                "ship_mode": ship_mode,
                "region": region,
                "country": "United States",
                "state": state,
                "city": self.fake.city(),
                "postal_code": self.fake.postcode(),
            })

            # Most orders have 1-3 distinct products
            num_items = self.rng.choices([1, 2, 3, 4, 5], weights=[0.40, 0.30, 0.15, 0.10, 0.05])[0]
            for product_id in self.rng.sample(self.product_ids, min(num_items, len(self.product_ids))):
                quantity = self.rng.choices([1, 2, 3, 4, 5, 7], weights=[0.30, 0.30, 0.20, 0.10, 0.07, 0.03])[0]
                discount = self.rng.choice(DISCOUNTS)
                amount = round(self.prices[product_id] * quantity * (1 - discount), 2)
                # heavy discounts push margins negative
                margin = self.rng.uniform(0.05, 0.35) - discount * 0.8

                sales.append({
                    "order_id": order_id,
                    "product_id": product_id,
                    "quantity": quantity,
                    "sales": amount,
                    "discount": discount,
                    "profit": round(amount * margin, 2),
                })

        return pl.DataFrame(orders, schema=ORDER_SCHEMA), pl.DataFrame(sales, schema=SALE_SCHEMA)


# =============================================================================
# MAIN GENERATOR
# =============================================================================

@dataclass
class GeneratedSnapshot:
    """The four record sets of one generated dataset"""
    customers: pl.DataFrame
    orders: pl.DataFrame
    products: pl.DataFrame
    sales: pl.DataFrame


class SnapshotGenerator:
    """
    Main data generator orchestrator.

    Example:
        data = SnapshotGenerator(seed=7).generate(n_customers=50, n_orders=300)
        snapshot = Snapshot.build(data.customers, data.orders, data.products, data.sales)
    """

    def __init__(self, seed: int = 42):
        self.seed = seed
        self.rng = random.Random(seed)
        self.fake = Faker("en_US")
        self.fake.seed_instance(seed)

    def generate(
        self,
        n_customers: int = 100,
        n_products: int = 50,
        n_orders: int = 500,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> GeneratedSnapshot:
        """Generate a complete, referentially consistent dataset"""
        customers_df = CustomerGenerator(self.rng, self.fake).generate(n_customers)
        products_df, prices = ProductGenerator(self.rng, self.fake).generate(n_products)
        orders_df, sales_df = OrderGenerator(self.rng, self.fake, customers_df, prices).generate(
            n_orders, start_date=start_date, end_date=end_date,
        )

        return GeneratedSnapshot(
            customers=customers_df,
            orders=orders_df,
            products=products_df,
            sales=sales_df,
        )
