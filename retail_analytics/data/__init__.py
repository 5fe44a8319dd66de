"""
Record types and synthetic data generation
"""
from .generators import GeneratedSnapshot, SnapshotGenerator
from .schemas import (
    Customer,
    Order,
    Product,
    Sale,
    customers_frame,
    orders_frame,
    products_frame,
    sales_frame,
)

__all__ = [
    "Customer",
    "Order",
    "Product",
    "Sale",
    "customers_frame",
    "orders_frame",
    "products_frame",
    "sales_frame",
    "GeneratedSnapshot",
    "SnapshotGenerator",
]
