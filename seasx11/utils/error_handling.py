"""Error taxonomy and degeneracy bookkeeping for the decomposition engine.

Configuration problems and insufficient data are fatal and raised before any
stage runs. Numerical degeneracies (zero-variance windows, empty averaging
ranges, too few years for a correction factor) are never raised: they are
resolved with a documented fallback and recorded as a DegeneracyRecord.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class SeasonalAdjustmentError(Exception):
    """Base class for all errors raised by the engine."""


class ConfigurationError(SeasonalAdjustmentError, ValueError):
    """Invalid filter family, span, period, mode, edge policy or data sign."""


class KernelConfigurationError(ConfigurationError):
    """Unknown kernel family, missing or surplus parameter, non-positive span."""


class InsufficientDataError(SeasonalAdjustmentError, ValueError):
    """The series is too short for the requested period."""


@dataclass
class DegeneracyRecord:
    """Documents a numerical fallback taken during a run."""
    stage: str
    quantity: str
    reason: str
    fallback: Any
    timestamp: float = field(default_factory=time.time)
    details: Dict[str, Any] = field(default_factory=dict)

    def log(self, level: int = logging.WARNING) -> "DegeneracyRecord":
        """Emit the record on the module logger and return it."""
        logger.log(
            level,
            f"[{self.stage}] {self.quantity}: {self.reason}; using {self.fallback}",
            extra={"props": self.to_dict()},
        )
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "stage": self.stage,
            "quantity": self.quantity,
            "reason": self.reason,
            "fallback": self.fallback,
            "timestamp": self.timestamp,
            "details": self.details,
        }


def safe_ratio(
    numerator: float,
    denominator: float,
    stage: str,
    quantity: str,
) -> Tuple[float, Optional[DegeneracyRecord]]:
    """
    Ratio of two non-negative mean absolute changes.

    The selection rules are defined on ratios, so a zero denominator is mapped
    to the nearest defined regime instead of raising: infinity when the
    numerator is positive, zero when both vanish.

    Returns:
        Tuple of (ratio, record or None)
    """
    if denominator > 0 and denominator == denominator:
        return numerator / denominator, None
    if numerator > 0:
        fallback = float("inf")
    else:
        fallback = 0.0
    record = DegeneracyRecord(
        stage=stage,
        quantity=quantity,
        reason=f"denominator is {denominator}, numerator is {numerator}",
        fallback=fallback,
    ).log()
    return fallback, record
