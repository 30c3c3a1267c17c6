"""Strepsil - usage metering and reporting for AI API calls."""
__version__ = "1.0.0"
