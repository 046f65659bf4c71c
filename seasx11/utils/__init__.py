"""Logging, error handling and configuration utilities."""

from .error_handling import (
    SeasonalAdjustmentError,
    ConfigurationError,
    KernelConfigurationError,
    InsufficientDataError,
    DegeneracyRecord,
)
from .logging_config import setup_logging, get_logger

__all__ = [
    "SeasonalAdjustmentError",
    "ConfigurationError",
    "KernelConfigurationError",
    "InsufficientDataError",
    "DegeneracyRecord",
    "setup_logging",
    "get_logger",
]
