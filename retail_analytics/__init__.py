"""
Retail Analytics Engine

Fixed catalog of analytical computations (sales trends, customer
segmentation, product performance, shipping efficiency) over an immutable,
integrity-checked snapshot of retail transactions.
"""

from retail_analytics.analytics import (
    AnalyticsEngine,
    AnalyticsReport,
    CustomerAnalytics,
    DelaySummary,
    LogisticsAnalytics,
    ProductAnalytics,
    SalesAnalytics,
    SalesTotals,
)
from retail_analytics.core import DateRange, Granularity, IntegrityMode, Snapshot

__version__ = "1.0.0"

__all__ = [
    "AnalyticsEngine",
    "AnalyticsReport",
    "CustomerAnalytics",
    "DateRange",
    "DelaySummary",
    "Granularity",
    "IntegrityMode",
    "LogisticsAnalytics",
    "ProductAnalytics",
    "SalesAnalytics",
    "SalesTotals",
    "Snapshot",
]
