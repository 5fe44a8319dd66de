"""
Analytical catalog: sales, customer, product and logistics analyzers
"""
from .customers import CustomerAnalytics
from .engine import AnalyticsEngine, AnalyticsReport
from .logistics import DelaySummary, LogisticsAnalytics
from .products import ProductAnalytics
from .sales import SalesAnalytics, SalesTotals

__all__ = [
    "AnalyticsEngine",
    "AnalyticsReport",
    "CustomerAnalytics",
    "DelaySummary",
    "LogisticsAnalytics",
    "ProductAnalytics",
    "SalesAnalytics",
    "SalesTotals",
]
