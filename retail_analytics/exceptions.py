"""
Custom exceptions for the Retail Analytics Engine.

Every error is local to one computation call, except integrity and quality
errors, which abort the snapshot build and therefore every analysis.
"""

from typing import Any, Dict, List, Optional


class AnalyticsError(Exception):
    """Base class for all analytics errors"""

    error_code = "ANALYTICS_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.error_code, "message": self.message, "details": self.details}


# =============================================================================
# SNAPSHOT ERRORS
# =============================================================================

class ReferentialIntegrityError(AnalyticsError):
    """A fact row references a missing parent key"""

    error_code = "REFERENTIAL_INTEGRITY"

    def __init__(self, violations: Dict[str, Dict[str, Any]]):
        relations = ", ".join(
            f"{relation} ({info['orphan_count']} orphans)" for relation, info in violations.items()
        )
        super().__init__(f"Referential integrity violated: {relations}", details=violations)
        self.violations = violations


class DataQualityError(AnalyticsError):
    """Snapshot input failed an error-severity quality check"""

    error_code = "DATA_QUALITY"

    def __init__(self, table: str, failed_checks: List[str], details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Data quality checks failed for {table}: {', '.join(failed_checks)}",
            details=details,
        )
        self.table = table
        self.failed_checks = failed_checks


# =============================================================================
# COMPUTATION ERRORS
# =============================================================================

class DivisionUndefinedError(AnalyticsError, ZeroDivisionError):
    """A computation-level denominator is zero or missing"""

    error_code = "DIVISION_UNDEFINED"


class EmptyPartitionError(DivisionUndefinedError):
    """An average, minimum or maximum was requested over no rows"""

    error_code = "EMPTY_PARTITION"


class InvalidRangeError(AnalyticsError, ValueError):
    """Malformed date range, bucket count or other computation parameter"""

    error_code = "INVALID_RANGE"


class UnknownComputationError(AnalyticsError, KeyError):
    """Requested computation is not part of the catalog"""

    error_code = "UNKNOWN_COMPUTATION"

    def __init__(self, name: str):
        super().__init__(f"Unknown computation '{name}'", details={"name": name})
        self.name = name

    def __str__(self) -> str:
        return self.message
