"""Sliding-window detection and dampening of extreme values."""

from dataclasses import dataclass
from typing import Optional
import logging
import math

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from seasx11.filters.kernels import KernelCache, MovingAverage
from seasx11.filters.seasonal import seasonal_filter
from seasx11.filters.smoothers import EdgePolicy
from seasx11.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)

# Points closer than LOWER_SIGMA to the local mean are fully trusted, points
# beyond UPPER_SIGMA get zero weight; the weight ramps linearly in between.
LOWER_SIGMA = 1.5
UPPER_SIGMA = 2.5

# Windows with a smaller spread count as zero-variance windows
SIGMA_FLOOR = 1e-10


@dataclass(frozen=True, eq=False)
class OutlierResult:
    """Local statistics, dampening weights and flags of a residual series."""
    mean: np.ndarray
    sigma: np.ndarray
    deviation: np.ndarray
    weights: np.ndarray
    flags: np.ndarray

    @property
    def n_flagged(self) -> int:
        return int(self.flags.sum())


def _mirror_without_edge(values: np.ndarray, half: int) -> np.ndarray:
    head = values[half:0:-1]
    tail = values[-2:-2 - half:-1]
    return np.concatenate([head, values, tail])


def detect_outliers(residuals, bandwidth: float) -> OutlierResult:
    """
    Flag and downweight points far from their local mean.

    The series is mirrored at both ends (without repeating the edge point)
    by ``ceil(bandwidth / 2)`` observations. For every point the mean and the
    sample standard deviation over the centered window of width
    ``2 * half + 1`` give ``deviation = |value - mean| / sigma``.

    Args:
        residuals: Series centered around a reference (e.g. irregular minus
            its neutral value)
        bandwidth: Full width of the window, typically five periods

    Returns:
        OutlierResult with weights ``clip(2.5 - deviation, 0, 1)`` and flags
        ``deviation > 1.5``. Zero-variance windows give deviation 0, missing
        values get weight 1 and are never flagged.
    """
    z = np.asarray(residuals, dtype=float).ravel()
    if not bandwidth > 0:
        raise ConfigurationError(f"Outlier bandwidth must be positive, got {bandwidth}")
    nobs = z.size
    if nobs < 2:
        ones = np.ones(nobs)
        return OutlierResult(z.copy(), np.zeros(nobs), np.zeros(nobs), ones, ones < 0)

    half = min(math.ceil(bandwidth / 2), nobs - 1)
    windows = sliding_window_view(_mirror_without_edge(z, half), 2 * half + 1)

    valid = ~np.isnan(windows)
    counts = valid.sum(axis=1)
    filled = np.where(valid, windows, 0.0)
    mean = np.divide(filled.sum(axis=1), counts, out=np.full(nobs, np.nan), where=counts > 0)
    squares = np.where(valid, windows - mean[:, np.newaxis], 0.0) ** 2
    sigma = np.sqrt(np.divide(
        squares.sum(axis=1), counts - 1, out=np.zeros(nobs), where=counts > 1
    ))

    deviation = np.zeros(nobs)
    spread = (sigma > SIGMA_FLOOR) & ~np.isnan(z)
    deviation[spread] = np.abs(z[spread] - mean[spread]) / sigma[spread]

    weights = np.clip(UPPER_SIGMA - deviation, 0.0, 1.0)
    flags = deviation > LOWER_SIGMA
    if flags.any():
        logger.debug(f"{int(flags.sum())} of {nobs} points beyond {LOWER_SIGMA} sigma")
    return OutlierResult(mean, sigma, deviation, weights, flags)


def replace_extremes(
    si,
    period: int,
    outliers: OutlierResult,
    multiplicative: bool = False,
    cache: Optional[KernelCache] = None,
) -> np.ndarray:
    """
    Replace flagged SI values instead of deleting them.

    A flagged value is replaced by the 3-term per-period mean of the SI
    values around it, rescaled by the 5-term per-period mean of the outlier
    weights, so the point keeps a reduced influence.

    Args:
        si: SI differences or ratios
        period: Length of the cycle
        outliers: Detection result on the SI series (or a derived series)
        multiplicative: Whether SI values are ratios
        cache: Optional kernel weight cache

    Returns:
        Corrected copy of ``si``
    """
    si = np.asarray(si, dtype=float)
    xbar = 1.0 if multiplicative else 0.0
    idx = outliers.flags
    corrected = si.copy()
    if not idx.any():
        return corrected

    local = seasonal_filter(si, period, MovingAverage(3), edge=EdgePolicy.mirror(2), cache=cache)
    mean_weights = seasonal_filter(
        outliers.weights, period, MovingAverage(5), edge=EdgePolicy.mirror(2), cache=cache
    )
    replacement = local[idx]
    scale = mean_weights[idx]
    # a neighbourhood with zero total weight keeps the plain local mean
    usable = scale > 0
    replacement[usable] = (replacement[usable] - xbar) / scale[usable] + xbar
    corrected[idx] = replacement
    return corrected


def extreme_part(irregular, weights, multiplicative: bool = False) -> np.ndarray:
    """
    Part of the irregular attributed to extreme values.

    Full weight leaves nothing (the neutral value), zero weight attributes
    the whole irregular to the extreme part.
    """
    irregular = np.asarray(irregular, dtype=float)
    weights = np.asarray(weights, dtype=float)
    if multiplicative:
        return irregular / (1 + weights * (irregular - 1))
    return irregular * (1 - weights)
