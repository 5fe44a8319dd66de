"""
Data Quality Module
"""
from .validators import (
    DataValidator,
    ValidationResult,
    ValidationSeverity,
    ValidationStatus,
    create_customers_validator,
    create_orders_validator,
    create_products_validator,
    create_sales_validator,
)

__all__ = [
    "DataValidator",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationStatus",
    "create_customers_validator",
    "create_orders_validator",
    "create_products_validator",
    "create_sales_validator",
]
