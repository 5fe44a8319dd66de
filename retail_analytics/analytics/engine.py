"""
Analytics Engine

Single entry point over one snapshot. Exposes the four analyzer groups and a
named catalog (``"<group>.<operation>"``) so callers can run computations by
name, optionally over a date-restricted view, or collect several into one
report.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

import polars as pl
import structlog

from retail_analytics.analytics.customers import CustomerAnalytics
from retail_analytics.analytics.logistics import LogisticsAnalytics
from retail_analytics.analytics.products import ProductAnalytics
from retail_analytics.analytics.sales import SalesAnalytics
from retail_analytics.config import get_settings
from retail_analytics.config.settings import AnalyticsSettings
from retail_analytics.core.snapshot import DateRange, IntegrityMode, Snapshot
from retail_analytics.exceptions import DivisionUndefinedError, UnknownComputationError

logger = structlog.get_logger(__name__)

ANALYZERS = (SalesAnalytics, CustomerAnalytics, ProductAnalytics, LogisticsAnalytics)


@dataclass
class AnalyticsReport:
    """Results of several computations; undefined ones land in ``errors``"""
    results: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, DivisionUndefinedError] = field(default_factory=dict)
    date_range: Optional[DateRange] = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return not self.errors


class AnalyticsEngine:
    """
    Facade over the analyzer groups of one snapshot.

    Example:
        engine = AnalyticsEngine.from_frames(customers, orders, products, sales)
        engine.sales.monthly_trend()
        engine.run("customers.top_customers", limit=5)
        report = engine.report(["sales.totals", "logistics.on_time_rate"])
    """

    def __init__(self, snapshot: Snapshot, settings: Optional[AnalyticsSettings] = None):
        self.snapshot = snapshot
        self.settings = settings or get_settings().analytics

        analyzers = self._analyzers(snapshot)
        self.sales: SalesAnalytics = analyzers["sales"]
        self.customers: CustomerAnalytics = analyzers["customers"]
        self.products: ProductAnalytics = analyzers["products"]
        self.logistics: LogisticsAnalytics = analyzers["logistics"]

    @classmethod
    def from_frames(
        cls,
        customers: pl.DataFrame,
        orders: pl.DataFrame,
        products: pl.DataFrame,
        sales: pl.DataFrame,
        integrity_mode: Optional[Union[str, IntegrityMode]] = None,
        validate: Optional[bool] = None,
        settings: Optional[AnalyticsSettings] = None,
    ) -> "AnalyticsEngine":
        """Build the snapshot from raw frames, then the engine over it"""
        if settings is not None:
            integrity_mode = integrity_mode or settings.integrity_mode
            if validate is None:
                validate = settings.validate_snapshot
        snapshot = Snapshot.build(
            customers, orders, products, sales,
            integrity_mode=integrity_mode,
            validate=validate,
        )
        return cls(snapshot, settings=settings)

    def _analyzers(self, snapshot: Snapshot) -> Dict[str, Any]:
        return {analyzer.GROUP: analyzer(snapshot, self.settings) for analyzer in ANALYZERS}

    @staticmethod
    def catalog() -> List[str]:
        """Every named computation as ``"<group>.<operation>"``"""
        return [
            f"{analyzer.GROUP}.{operation}"
            for analyzer in ANALYZERS
            for operation in analyzer.COMPUTATIONS
        ]

    def _resolve(self, name: str, date_range: Optional[DateRange]):
        group, _, operation = name.partition(".")
        if name not in self.catalog():
            raise UnknownComputationError(name)

        if date_range is None:
            analyzer = getattr(self, group)
        else:
            analyzer = self._analyzers(self.snapshot.restrict(date_range))[group]
        return getattr(analyzer, operation)

    def run(self, name: str, date_range: Optional[DateRange] = None, **params: Any) -> Any:
        """
        Run one named computation.

        Args:
            name: Catalog name, e.g. ``"sales.monthly_trend"``
            date_range: Restrict to orders placed inside this inclusive range
            **params: Passed through to the computation

        Raises:
            UnknownComputationError: name is not in the catalog
        """
        computation = self._resolve(name, date_range)
        result = computation(**params)

        logger.info(
            "Computation finished",
            computation=name,
            rows=result.height if isinstance(result, pl.DataFrame) else None,
        )
        return result

    def report(
        self,
        names: Optional[Sequence[str]] = None,
        date_range: Optional[DateRange] = None,
    ) -> AnalyticsReport:
        """
        Run several computations with their default parameters.

        A computation whose denominator is undefined on this snapshot is
        recorded in ``errors`` and the report carries on.
        """
        names = list(names) if names is not None else self.catalog()
        report = AnalyticsReport(date_range=date_range)
        engine = self if date_range is None else AnalyticsEngine(self.snapshot.restrict(date_range), self.settings)

        for name in names:
            try:
                report.results[name] = engine.run(name)
            except DivisionUndefinedError as e:
                logger.warning(f"Computation undefined: {name}", error=e.message)
                report.errors[name] = e

        logger.info(
            "Report generated",
            computations=len(names),
            errors=len(report.errors),
        )
        return report
