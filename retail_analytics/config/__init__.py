"""
Retail Analytics Engine
Configuration Module
"""
from .settings import AnalyticsSettings, Settings, get_settings
from .logging import configure_logging, get_logger

__all__ = ["AnalyticsSettings", "Settings", "get_settings", "configure_logging", "get_logger"]
