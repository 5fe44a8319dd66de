"""
Join/Index Layer

Builds the immutable, integrity-checked snapshot every analysis runs on:
- normalizes the four record sets (dates, integer cents, derived shipping days)
- runs data quality checks
- enforces referential integrity (strict: abort, lenient: drop orphans)
- joins sale lines with their order, product and customer
- indexes customer -> orders, order -> lines, product -> lines
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from functools import cached_property
from typing import Any, Dict, Optional, Tuple, Union

import polars as pl
import structlog

from retail_analytics.config import get_settings
from retail_analytics.core.money import to_cents
from retail_analytics.data.schemas import CUSTOMER_SCHEMA, ORDER_SCHEMA, PRODUCT_SCHEMA, SALE_SCHEMA
from retail_analytics.exceptions import DataQualityError, InvalidRangeError, ReferentialIntegrityError
from retail_analytics.quality.validators import (
    create_customers_validator,
    create_orders_validator,
    create_products_validator,
    create_sales_validator,
)

logger = structlog.get_logger(__name__)


class IntegrityMode(str, Enum):
    """How orphaned rows are handled while building a snapshot"""
    STRICT = "strict"  # abort the whole build
    LENIENT = "lenient"  # drop the offending rows


@dataclass(frozen=True)
class DateRange:
    """Inclusive order-date range; either bound may be open."""
    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self):
        if self.start is not None and self.end is not None and self.start > self.end:
            raise InvalidRangeError(
                f"Date range start {self.start} is after end {self.end}",
                details={"start": str(self.start), "end": str(self.end)},
            )

    def contains(self, column: str = "order_date") -> pl.Expr:
        expr = pl.lit(True)
        if self.start is not None:
            expr = expr & (pl.col(column) >= self.start)
        if self.end is not None:
            expr = expr & (pl.col(column) <= self.end)
        return expr


# =============================================================================
# NORMALIZATION
# =============================================================================

def _require_columns(df: pl.DataFrame, table: str, columns) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataQualityError(table, [f"missing_column_{c}" for c in missing], details={"missing": missing})


def _date_expr(df: pl.DataFrame, column: str) -> pl.Expr:
    dtype = df.schema[column]
    if dtype == pl.Utf8:
        return pl.col(column).str.to_date("%Y-%m-%d", strict=False).alias(column)
    if dtype == pl.Datetime:
        return pl.col(column).dt.date().alias(column)
    return pl.col(column).cast(pl.Date).alias(column)


def normalize_customers(df: pl.DataFrame) -> pl.DataFrame:
    _require_columns(df, "customers", CUSTOMER_SCHEMA)
    return df.select([pl.col(c).cast(t) for c, t in CUSTOMER_SCHEMA.items()])


def normalize_orders(df: pl.DataFrame) -> pl.DataFrame:
    required = [c for c in ORDER_SCHEMA if c not in ("ship_date", "postal_code", "country")]
    _require_columns(df, "orders", required)
    for optional in ("ship_date", "postal_code", "country"):
        if optional not in df.columns:
            df = df.with_columns(pl.lit(None).cast(ORDER_SCHEMA[optional]).alias(optional))

    text_columns = [c for c, t in ORDER_SCHEMA.items() if t == pl.Utf8]
    return (
        df.select(list(ORDER_SCHEMA))
        .with_columns([pl.col(c).cast(pl.Utf8) for c in text_columns])
        .with_columns([_date_expr(df, "order_date"), _date_expr(df, "ship_date")])
        .with_columns(
            (pl.col("ship_date") - pl.col("order_date")).dt.total_days().cast(pl.Int64).alias("shipping_days")
        )
    )


def normalize_products(df: pl.DataFrame) -> pl.DataFrame:
    _require_columns(df, "products", PRODUCT_SCHEMA)
    return df.select([pl.col(c).cast(t) for c, t in PRODUCT_SCHEMA.items()])


def normalize_sales(df: pl.DataFrame) -> pl.DataFrame:
    _require_columns(df, "sales", SALE_SCHEMA)
    return df.select(
        pl.col("order_id").cast(pl.Utf8),
        pl.col("product_id").cast(pl.Utf8),
        pl.col("quantity").cast(pl.Int64),
        to_cents("sales"),
        pl.col("discount").cast(pl.Float64).fill_null(0.0),
        to_cents("profit"),
    )


# =============================================================================
# SNAPSHOT
# =============================================================================

Relation = Tuple[str, str, str, str]

# (child table, child column, parent table, parent column)
RELATIONS: Tuple[Relation, ...] = (
    ("orders", "customer_id", "customers", "customer_id"),
    ("sales", "order_id", "orders", "order_id"),
    ("sales", "product_id", "products", "product_id"),
)


def _index(df: pl.DataFrame, key: str) -> Dict[Any, pl.DataFrame]:
    index = {}
    for group_key, frame in df.partition_by(key, as_dict=True, maintain_order=True).items():
        index[group_key[0] if isinstance(group_key, tuple) else group_key] = frame
    return index


class Snapshot:
    """
    Immutable view over customers, orders, products and sale lines.

    Build with ``Snapshot.build``; the constructor takes frames that are
    already normalized and integrity-checked. Nothing mutates the frames after
    construction, and every derived index is computed lazily from them.

    Example:
        snapshot = Snapshot.build(customers_df, orders_df, products_df, sales_df)
        snapshot.orders_for_customer("CG-12520")
    """

    def __init__(
        self,
        customers: pl.DataFrame,
        orders: pl.DataFrame,
        products: pl.DataFrame,
        sales: pl.DataFrame,
        integrity_mode: IntegrityMode = IntegrityMode.STRICT,
    ):
        self._customers = customers
        self._orders = orders
        self._products = products
        self._sales = sales
        self.integrity_mode = integrity_mode

    @classmethod
    def build(
        cls,
        customers: pl.DataFrame,
        orders: pl.DataFrame,
        products: pl.DataFrame,
        sales: pl.DataFrame,
        integrity_mode: Optional[Union[str, IntegrityMode]] = None,
        validate: Optional[bool] = None,
    ) -> "Snapshot":
        """
        Normalize, validate and integrity-check the four record sets.

        Args:
            customers: Customer rows
            orders: Order rows
            products: Product rows
            sales: Sale line rows
            integrity_mode: "strict" (default from settings) or "lenient"
            validate: Run data quality checks (default from settings)

        Raises:
            DataQualityError: a required column is missing or an error-severity check failed
            ReferentialIntegrityError: strict mode and a row references a missing parent
        """
        config = get_settings().analytics
        mode = IntegrityMode(integrity_mode or config.integrity_mode)
        if validate is None:
            validate = config.validate_snapshot

        frames = {
            "customers": normalize_customers(customers),
            "orders": normalize_orders(orders),
            "products": normalize_products(products),
            "sales": normalize_sales(sales),
        }

        if validate:
            cls._validate(frames)

        frames = cls._enforce_integrity(frames, mode)

        logger.info(
            "Snapshot built",
            integrity_mode=mode.value,
            customers=frames["customers"].height,
            orders=frames["orders"].height,
            products=frames["products"].height,
            sales=frames["sales"].height,
        )
        return cls(
            frames["customers"],
            frames["orders"],
            frames["products"],
            frames["sales"],
            integrity_mode=mode,
        )

    @staticmethod
    def _validate(frames: Dict[str, pl.DataFrame]) -> None:
        validators = {
            "customers": create_customers_validator(),
            "orders": create_orders_validator(),
            "products": create_products_validator(),
            "sales": create_sales_validator(),
        }
        for table, validator in validators.items():
            result = validator.validate(frames[table])
            if result.errors:
                raise DataQualityError(
                    table,
                    [check.name for check in result.errors],
                    details={check.name: check.message for check in result.errors},
                )

    @staticmethod
    def _enforce_integrity(frames: Dict[str, pl.DataFrame], mode: IntegrityMode) -> Dict[str, pl.DataFrame]:
        frames = dict(frames)
        violations: Dict[str, Dict[str, Any]] = {}

        # parents are filtered before their children so drops cascade
        for child, column, parent, parent_column in RELATIONS:
            orphans = frames[child].join(
                frames[parent].select(pl.col(parent_column).alias(column)),
                on=column,
                how="anti",
            )
            if orphans.is_empty():
                continue

            relation = f"{child}.{column}"
            violations[relation] = {
                "orphan_count": orphans.height,
                "missing_keys": orphans[column].unique().sort().head(10).to_list(),
            }
            if mode == IntegrityMode.LENIENT:
                frames[child] = frames[child].join(
                    orphans.select(column).unique(), on=column, how="anti"
                )
                logger.warning(
                    f"Dropped {orphans.height} orphaned rows",
                    relation=relation,
                    missing_keys=violations[relation]["missing_keys"],
                )

        if violations and mode == IntegrityMode.STRICT:
            raise ReferentialIntegrityError(violations)
        return frames

    # -------------------------------------------------------------------------
    # Record sets
    # -------------------------------------------------------------------------

    @property
    def customers(self) -> pl.DataFrame:
        return self._customers

    @property
    def orders(self) -> pl.DataFrame:
        """Orders with the derived ``shipping_days`` column (null if unshipped)"""
        return self._orders

    @property
    def products(self) -> pl.DataFrame:
        return self._products

    @property
    def sales(self) -> pl.DataFrame:
        """Sale lines with ``sales_cents`` and ``profit_cents``"""
        return self._sales

    @property
    def is_empty(self) -> bool:
        return self._orders.is_empty()

    @cached_property
    def lines(self) -> pl.DataFrame:
        """Sale lines joined with their order, product and customer"""
        return (
            self._sales
            .join(self._orders, on="order_id", how="inner")
            .join(self._products, on="product_id", how="inner")
            .join(
                self._customers.select("customer_id", "customer_name", "segment"),
                on="customer_id",
                how="inner",
            )
        )

    @cached_property
    def customer_orders(self) -> pl.DataFrame:
        """Orders with their customer's name and segment, lines or not"""
        return self._orders.join(
            self._customers.select("customer_id", "customer_name", "segment"),
            on="customer_id",
            how="inner",
        )

    @cached_property
    def max_order_date(self) -> Optional[date]:
        """Latest order date in the snapshot"""
        return self._orders["order_date"].max()

    def table_overview(self) -> pl.DataFrame:
        return pl.DataFrame({
            "table_name": ["customers", "orders", "products", "sales"],
            "total_records": [
                self._customers.height,
                self._orders.height,
                self._products.height,
                self._sales.height,
            ],
        })

    # -------------------------------------------------------------------------
    # Indexes
    # -------------------------------------------------------------------------

    @cached_property
    def _orders_by_customer(self) -> Dict[str, pl.DataFrame]:
        return _index(self._orders.sort("order_date", "order_id"), "customer_id")

    @cached_property
    def _lines_by_order(self) -> Dict[str, pl.DataFrame]:
        return _index(self._sales.sort("order_id", "product_id"), "order_id")

    @cached_property
    def _lines_by_product(self) -> Dict[str, pl.DataFrame]:
        return _index(self._sales.sort("product_id", "order_id"), "product_id")

    @cached_property
    def _orders_by_id(self) -> Dict[str, Dict[str, Any]]:
        return {row["order_id"]: row for row in self._orders.iter_rows(named=True)}

    def orders_for_customer(self, customer_id: str) -> pl.DataFrame:
        """Orders placed by a customer, oldest first"""
        return self._orders_by_customer.get(customer_id, self._orders.clear())

    def lines_for_order(self, order_id: str) -> pl.DataFrame:
        return self._lines_by_order.get(order_id, self._sales.clear())

    def lines_for_product(self, product_id: str) -> pl.DataFrame:
        return self._lines_by_product.get(product_id, self._sales.clear())

    def order(self, order_id: str) -> Dict[str, Any]:
        """The order a sale line belongs to"""
        try:
            return self._orders_by_id[order_id]
        except KeyError:
            raise KeyError(f"Order '{order_id}' not in snapshot") from None

    # -------------------------------------------------------------------------
    # Derivations
    # -------------------------------------------------------------------------

    def restrict(self, date_range: DateRange) -> "Snapshot":
        """Snapshot limited to orders placed inside ``date_range`` and their lines"""
        orders = self._orders.filter(date_range.contains("order_date"))
        sales = self._sales.join(orders.select("order_id"), on="order_id", how="semi")
        logger.debug(
            "Snapshot restricted",
            start=str(date_range.start),
            end=str(date_range.end),
            orders=orders.height,
        )
        return Snapshot(self._customers, orders, self._products, sales, integrity_mode=self.integrity_mode)
