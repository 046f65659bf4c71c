"""Period-wise smoothing and the residual operator."""

from typing import Optional, Union
import logging

import numpy as np

from seasx11.filters.kernels import KernelCache
from seasx11.filters.periods import join_periods, split_periods
from seasx11.filters.smoothers import EdgePolicy, FilterMethod, smoother_from_name, trend_filter

logger = logging.getLogger(__name__)


def seasonal_filter(
    data,
    period: int,
    method: Union[FilterMethod, str],
    *params: float,
    edge: Optional[EdgePolicy] = None,
    cache: Optional[KernelCache] = None,
) -> np.ndarray:
    """
    Smooth each position in the cycle separately across cycles.

    For monthly data this smooths the sequence of Januaries, the sequence of
    Februaries, and so on. Applied to SI values it yields seasonal factors.
    The edge half-width is limited to the number of available cycles.

    Args:
        data: 1-D series or 2-D array of columns
        period: Length of the cycle
        method: Smoothing method (see ``trend_filter``)
        *params: Parameters when ``method`` is a name
        edge: Padding policy of the per-period smoothing
        cache: Optional kernel weight cache

    Returns:
        Smoothed array with the shape of ``data``
    """
    if isinstance(method, str):
        method = smoother_from_name(method, *params)

    arr = np.asarray(data, dtype=float)
    was_1d = arr.ndim == 1
    if was_1d:
        arr = arr.reshape(-1, 1)

    result = np.full(arr.shape, np.nan)
    for c in range(arr.shape[1]):
        cycles = split_periods(arr[:, c], period)
        policy = edge.clamped(cycles.shape[0]) if edge is not None else None
        smoothed = trend_filter(cycles, method, edge=policy, cache=cache)
        result[:, c] = join_periods(smoothed, arr.shape[0])

    return result[:, 0] if was_1d else result


def normalize(data, reference, multiplicative: bool = False) -> np.ndarray:
    """
    Deviation of ``data`` from ``reference``.

    Returns ``data - reference``, or ``data / reference`` if multiplicative.
    Log-additive callers pass logged inputs, so this is always a plain
    difference or a plain ratio.
    """
    data = np.asarray(data, dtype=float)
    reference = np.asarray(reference, dtype=float)
    if multiplicative:
        return data / reference
    return data - reference


def recombine(reference, residual, multiplicative: bool = False) -> np.ndarray:
    """Inverse of ``normalize``: ``reference + residual`` or ``reference * residual``."""
    reference = np.asarray(reference, dtype=float)
    residual = np.asarray(residual, dtype=float)
    if multiplicative:
        return reference * residual
    return reference + residual
