"""
Data Validation Module

Rule-based quality checks run against the record sets before a snapshot is
accepted. Implements validation patterns inspired by Great Expectations.

Features:
- Null checks
- Single and composite key uniqueness
- Range/boundary checks
- Allowed-value checks
- Business rule validation (custom checks)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import polars as pl
import structlog

from retail_analytics.data.schemas import SEGMENTS

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Critical - blocks the snapshot
    WARNING = "warning"  # Non-critical - logged but continues
    INFO = "info"  # Informational only


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    @property
    def errors(self) -> List[ValidationCheck]:
        """Failed checks that block the snapshot"""
        return [c for c in self.checks if not c.passed and c.severity == ValidationSeverity.ERROR]


class DataValidator:
    """
    Data validator with a chainable check suite.

    Example:
        validator = DataValidator()
        validator.add_not_null_check("customer_id")
        validator.add_range_check("discount", min_value=0, max_value=1)
        result = validator.validate(df)
    """

    def __init__(self, name: str = "dataset", strict_mode: bool = False):
        self.name = name
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def reset(self) -> None:
        """Reset validator state"""
        self._checks = []

    @staticmethod
    def _missing(name: str, columns: Sequence[str], df: pl.DataFrame, severity: ValidationSeverity) -> Optional[ValidationCheck]:
        missing = [c for c in columns if c not in df.columns]
        if not missing:
            return None
        return ValidationCheck(
            name=name,
            passed=False,
            severity=severity,
            message=f"Column(s) {missing} not found",
            details={"missing_columns": missing},
        )

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"not_null_{column}"
            missing = self._missing(name, [column], df, severity)
            if missing:
                return missing

            null_count = df[column].null_count()
            total = len(df)
            passed = null_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                details={"null_count": null_count, "null_percentage": (null_count / total) * 100 if total > 0 else 0},
                failed_rows=null_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        columns: Union[str, Sequence[str]],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for uniqueness of a column or a composite key"""
        key = [columns] if isinstance(columns, str) else list(columns)
        name = f"unique_{'_'.join(key)}"

        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = self._missing(name, key, df, severity)
            if missing:
                return missing

            total = len(df)
            unique_count = df.select(key).unique().height
            duplicate_count = total - unique_count
            passed = duplicate_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Key {key} has {duplicate_count} duplicate values" if not passed else f"Key {key} values are unique",
                details={"unique_count": unique_count, "duplicate_count": duplicate_count},
                failed_rows=duplicate_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range (inclusive)"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"range_{column}"
            missing = self._missing(name, [column], df, severity)
            if missing:
                return missing

            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)

            if not conditions:
                return ValidationCheck(
                    name=name,
                    passed=True,
                    severity=severity,
                    message="No range specified",
                )

            combined = conditions[0]
            for cond in conditions[1:]:
                combined = combined | cond

            out_of_range = df.filter(combined).height
            total = len(df)
            passed = out_of_range == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside range [{min_value}, {max_value}]" if not passed else "All values in range",
                details={"min": min_value, "max": max_value, "out_of_range_count": out_of_range},
                failed_rows=out_of_range,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_positive_check(
        self,
        column: str,
        allow_zero: bool = True,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for positive values"""
        if allow_zero:
            return self.add_range_check(column, min_value=0, severity=severity)
        return self.add_custom_check(
            name=f"positive_{column}",
            check_func=lambda df: df.filter(pl.col(column) <= 0).height == 0,
            message_on_fail=f"Column '{column}' has non-positive values",
            severity=severity,
        )

    def add_enum_check(
        self,
        column: str,
        allowed_values: List[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values in allowed set"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"enum_{column}"
            missing = self._missing(name, [column], df, severity)
            if missing:
                return missing

            invalid = df.filter(
                ~pl.col(column).is_in(allowed_values) & pl.col(column).is_not_null()
            ).height
            total = len(df)
            passed = invalid == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {invalid} invalid values" if not passed else "All values are valid",
                details={"allowed_values": allowed_values, "invalid_count": invalid},
                failed_rows=invalid,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_custom_check(
        self,
        name: str,
        check_func: Callable[[pl.DataFrame], bool],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add custom validation check"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            try:
                passed = bool(check_func(df))
            except pl.exceptions.PolarsError as e:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {e}",
                )
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message="Check passed" if passed else message_on_fail,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.utcnow()
        results = []

        logger.debug(f"Running {len(self._checks)} validation checks on {len(df)} rows", dataset=self.name)

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    dataset=self.name,
                    message=result.message,
                    severity=result.severity.value,
                )

        completed_at = datetime.utcnow()

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=completed_at,
        )


# Pre-built validators for the four record sets
def create_customers_validator() -> DataValidator:
    """Create pre-configured validator for customers"""
    return (
        DataValidator("customers")
        .add_not_null_check("customer_id")
        .add_not_null_check("customer_name")
        .add_unique_check("customer_id")
        .add_enum_check("segment", SEGMENTS, severity=ValidationSeverity.WARNING)
    )


def create_orders_validator() -> DataValidator:
    """Create pre-configured validator for orders"""
    return (
        DataValidator("orders")
        .add_not_null_check("order_id")
        .add_not_null_check("customer_id")
        .add_not_null_check("order_date")
        .add_unique_check("order_id")
        .add_custom_check(
            name="ship_date_after_order_date",
            check_func=lambda df: df.filter(pl.col("ship_date") < pl.col("order_date")).height == 0,
            message_on_fail="Orders shipped before they were placed",
        )
    )


def create_products_validator() -> DataValidator:
    """Create pre-configured validator for products"""
    return (
        DataValidator("products")
        .add_not_null_check("product_id")
        .add_not_null_check("product_name")
        .add_unique_check("product_id")
    )


def create_sales_validator() -> DataValidator:
    """Create pre-configured validator for normalized sale lines"""
    return (
        DataValidator("sales")
        .add_not_null_check("order_id")
        .add_not_null_check("product_id")
        .add_unique_check(["order_id", "product_id"])
        .add_positive_check("quantity", allow_zero=False)
        .add_positive_check("sales_cents")
        .add_range_check("discount", min_value=0, max_value=1)
    )
