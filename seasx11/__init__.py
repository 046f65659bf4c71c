"""Approximate X-11 seasonal adjustment."""

from seasx11.decomposition import (
    DecompositionMode,
    X11Config,
    DecompositionResult,
    X11Decomposer,
    x11,
    decompose_frame,
    method1,
    seas,
    fixed_seasonal,
)
from seasx11.utils.config_manager import ConfigManager
from seasx11.utils.error_handling import (
    SeasonalAdjustmentError,
    ConfigurationError,
    InsufficientDataError,
)

__version__ = "0.1.0"

__all__ = [
    "DecompositionMode",
    "X11Config",
    "DecompositionResult",
    "X11Decomposer",
    "x11",
    "decompose_frame",
    "method1",
    "seas",
    "fixed_seasonal",
    "ConfigManager",
    "SeasonalAdjustmentError",
    "ConfigurationError",
    "InsufficientDataError",
]
