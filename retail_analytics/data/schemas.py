"""
Record types and frame schemas for the four record sets.

A loader hands the engine either polars frames with these columns or
collections of the typed records below, converted with the ``*_frame``
helpers.
"""

from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import polars as pl

CUSTOMER_SCHEMA: Dict[str, pl.DataType] = {
    "customer_id": pl.Utf8,
    "customer_name": pl.Utf8,
    "segment": pl.Utf8,
}

ORDER_SCHEMA: Dict[str, pl.DataType] = {
    "order_id": pl.Utf8,
    "customer_id": pl.Utf8,
    "order_date": pl.Date,
    "ship_date": pl.Date,
    "ship_mode": pl.Utf8,
    "region": pl.Utf8,
    "country": pl.Utf8,
    "state": pl.Utf8,
    "city": pl.Utf8,
    "postal_code": pl.Utf8,
}

PRODUCT_SCHEMA: Dict[str, pl.DataType] = {
    "product_id": pl.Utf8,
    "product_name": pl.Utf8,
    "category": pl.Utf8,
    "sub_category": pl.Utf8,
}

SALE_SCHEMA: Dict[str, pl.DataType] = {
    "order_id": pl.Utf8,
    "product_id": pl.Utf8,
    "quantity": pl.Int64,
    "sales": pl.Float64,
    "discount": pl.Float64,
    "profit": pl.Float64,
}

SEGMENTS = ["Consumer", "Corporate", "Home Office"]


@dataclass(frozen=True)
class Customer:
    customer_id: str
    customer_name: str
    segment: str


@dataclass(frozen=True)
class Order:
    order_id: str
    customer_id: str
    order_date: date
    ship_date: Optional[date]
    ship_mode: str
    region: str
    country: str
    state: str
    city: str
    postal_code: Optional[str] = None


@dataclass(frozen=True)
class Product:
    product_id: str
    product_name: str
    category: str
    sub_category: str


@dataclass(frozen=True)
class Sale:
    order_id: str
    product_id: str
    quantity: int
    sales: Decimal
    discount: Decimal
    profit: Decimal


def _frame(records: Iterable, schema: Dict[str, pl.DataType]) -> pl.DataFrame:
    rows: List[dict] = []
    for record in records:
        row = asdict(record)
        for key, value in row.items():
            if isinstance(value, Decimal):
                row[key] = float(value)
        rows.append(row)
    return pl.DataFrame(rows, schema=schema) if rows else pl.DataFrame(schema=schema)


def customers_frame(records: Iterable[Customer]) -> pl.DataFrame:
    return _frame(records, CUSTOMER_SCHEMA)


def orders_frame(records: Iterable[Order]) -> pl.DataFrame:
    return _frame(records, ORDER_SCHEMA)


def products_frame(records: Iterable[Product]) -> pl.DataFrame:
    return _frame(records, PRODUCT_SCHEMA)


def sales_frame(records: Iterable[Sale]) -> pl.DataFrame:
    return _frame(records, SALE_SCHEMA)
