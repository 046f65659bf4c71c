"""Reshaping a series into one sub-series per position in the cycle."""

from typing import Optional

import numpy as np

from seasx11.utils.error_handling import ConfigurationError


def split_periods(data, period: int) -> np.ndarray:
    """
    Split a series into ``period`` columns, one per position in the cycle.

    Row ``y`` holds the observations of cycle ``y`` (for monthly data,
    column 0 holds all Januaries). An incomplete last cycle is padded with
    missing values.

    Args:
        data: 1-D series
        period: Length of the cycle

    Returns:
        Array of shape (number of cycles, period)
    """
    if int(period) != period or period < 1:
        raise ConfigurationError(f"The period must be a positive integer, got {period}")
    period = int(period)
    values = np.asarray(data, dtype=float).ravel()
    pad = (-values.size) % period
    values = np.concatenate([values, np.full(pad, np.nan)])
    return values.reshape(-1, period)


def join_periods(columns, nobs: Optional[int] = None) -> np.ndarray:
    """
    Re-interleave per-period columns into one series in calendar order.

    Args:
        columns: Array of shape (number of cycles, period)
        nobs: Target length; the series is truncated or padded with missing
            values to this length. If None, missing values after the last
            valid observation are dropped.

    Returns:
        1-D series
    """
    values = np.asarray(columns, dtype=float).ravel()
    if nobs is not None:
        nobs = int(nobs)
        if nobs <= values.size:
            return values[:nobs].copy()
        return np.concatenate([values, np.full(nobs - values.size, np.nan)])
    valid = np.flatnonzero(~np.isnan(values))
    if valid.size == 0:
        return values[:0].copy()
    return values[:valid[-1] + 1].copy()
