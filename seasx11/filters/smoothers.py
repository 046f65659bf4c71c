"""Weighted smoothing of (possibly multi-column) series.

``trend_filter`` pads each column according to an ``EdgePolicy``, smooths it
either with kernel weights (local weighted mean) or with one of the analytic
methods below (global fits), and trims the padding off again. Columns are
always independent of each other, except for the deviation methods that
compare column means with each other by construction.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union
import logging

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view
from scipy import sparse
from scipy.sparse import linalg as sparse_linalg
from scipy.interpolate import make_smoothing_spline

from seasx11.data.preprocessors import fill_holes
from seasx11.filters.kernels import KernelCache, KernelSpec, kernel_from_name, resolve_name
from seasx11.utils.error_handling import ConfigurationError, KernelConfigurationError

logger = logging.getLogger(__name__)

DIRECTIONS = ("centered", "backward", "forward")


@dataclass(frozen=True)
class EdgePolicy:
    """
    Padding applied before smoothing and removed afterwards.

    'mirror' prepends the first ``half_width`` observations in reverse order
    and appends the last ones in reverse order. 'extend' copies the same
    blocks without reversing them, which only works well for stationary data.
    """
    kind: str = "mirror"
    half_width: int = 0

    def __post_init__(self):
        if self.kind not in ("mirror", "extend"):
            raise ConfigurationError(
                f"Unknown edge policy '{self.kind}'. Use 'mirror' or 'extend'"
            )
        if self.half_width != int(self.half_width) or self.half_width < 0:
            raise ConfigurationError(
                f"Edge half-width must be a non-negative integer, got {self.half_width}"
            )
        object.__setattr__(self, "half_width", int(self.half_width))

    @classmethod
    def mirror(cls, half_width: int) -> "EdgePolicy":
        return cls("mirror", half_width)

    @classmethod
    def extend(cls, half_width: int) -> "EdgePolicy":
        return cls("extend", half_width)

    def clamped(self, nobs: int) -> "EdgePolicy":
        """Same policy with the half-width limited to ``nobs``."""
        return EdgePolicy(self.kind, min(self.half_width, nobs))

    def pad(self, data: np.ndarray) -> np.ndarray:
        """Pad the rows of a 2-D array."""
        e = self.half_width
        nobs = data.shape[0]
        if e > nobs:
            raise ConfigurationError(
                f"Edge half-width {e} exceeds the series length {nobs}"
            )
        if e == 0:
            return data
        head, tail = data[:e], data[nobs - e:]
        if self.kind == "mirror":
            head, tail = np.flipud(head), np.flipud(tail)
        return np.vstack([head, data, tail])

    def trim(self, data: np.ndarray) -> np.ndarray:
        e = self.half_width
        return data[e:data.shape[0] - e]


def _as_2d(data) -> Tuple[np.ndarray, bool]:
    if isinstance(data, (pd.Series, pd.DataFrame)):
        data = data.to_numpy()
    arr = np.asarray(data, dtype=float)
    if arr.ndim == 1:
        return arr.reshape(-1, 1), True
    if arr.ndim != 2:
        raise ConfigurationError(f"Expected a 1-D or 2-D array, got {arr.ndim} dimensions")
    return arr, False


def weighted_mean(data, weights, direction: str = "centered") -> np.ndarray:
    """
    Local weighted mean of every column.

    Only weights that correspond to existing observations are used, and the
    used weights are renormalized, so the sample edges and missing values are
    handled without padding. The result has the shape of ``data``; it is
    missing only where no observation falls inside the window.

    Args:
        data: 1-D series or 2-D array of columns
        weights: Odd number of weights
        direction: 'centered', 'backward' (current and past observations
            only) or 'forward' (current and future observations only)

    Returns:
        Smoothed array with the shape of ``data``
    """
    w = np.asarray(weights, dtype=float).ravel()
    if w.size % 2 != 1:
        raise ConfigurationError(
            f"Weights vector must contain an odd number of components, got {w.size}"
        )
    if direction not in DIRECTIONS:
        raise ConfigurationError(
            f"Unknown direction '{direction}'. Supported: {list(DIRECTIONS)}"
        )

    laglead = (w.size - 1) // 2
    if direction == "backward":
        w = w.copy()
        w[laglead + 1:] = 0.0
    elif direction == "forward":
        w = w.copy()
        w[:laglead] = 0.0

    arr, was_1d = _as_2d(data)
    result = np.full(arr.shape, np.nan)
    gap = np.full(laglead, np.nan)
    for c in range(arr.shape[1]):
        padded = np.concatenate([gap, arr[:, c], gap])
        windows = sliding_window_view(padded, w.size)
        valid = ~np.isnan(windows)
        numerator = np.where(valid, windows, 0.0) @ w
        denominator = valid.astype(float) @ w
        np.divide(numerator, denominator, out=result[:, c], where=denominator != 0)

    return result[:, 0] if was_1d else result


@dataclass(frozen=True)
class SmootherSpec:
    """Base class of the analytic (global) smoothing methods."""

    @property
    def family(self) -> str:
        return type(self).__name__

    def apply(self, data: np.ndarray) -> np.ndarray:
        raise NotImplementedError


@dataclass(frozen=True)
class Mean(SmootherSpec):
    """Arithmetic mean over the whole column."""

    def apply(self, data: np.ndarray) -> np.ndarray:
        return np.repeat(_column_means(data)[np.newaxis, :], data.shape[0], axis=0)


@dataclass(frozen=True)
class Deviation(SmootherSpec):
    """Deviation of the column means from their common mean."""

    def apply(self, data: np.ndarray) -> np.ndarray:
        means = _column_means(data)
        dev = means - np.nanmean(means) if np.any(~np.isnan(means)) else means
        return np.repeat(dev[np.newaxis, :], data.shape[0], axis=0)


@dataclass(frozen=True)
class RelativeDeviation(SmootherSpec):
    """Ratio of the column means to their common mean."""

    def apply(self, data: np.ndarray) -> np.ndarray:
        means = _column_means(data)
        rel = means / np.nanmean(means) if np.any(~np.isnan(means)) else means
        return np.repeat(rel[np.newaxis, :], data.shape[0], axis=0)


@dataclass(frozen=True)
class Detrend(SmootherSpec):
    """Least-squares linear trend, continuous piecewise linear with breakpoints."""
    breakpoints: Tuple[float, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "breakpoints", tuple(float(b) for b in np.ravel(self.breakpoints)))

    def apply(self, data: np.ndarray) -> np.ndarray:
        t = np.arange(data.shape[0], dtype=float)
        columns = [np.ones_like(t), t]
        columns += [np.maximum(t - bp, 0.0) for bp in self.breakpoints]
        X = np.column_stack(columns)
        result = np.full(data.shape, np.nan)
        for c in range(data.shape[1]):
            keep = ~np.isnan(data[:, c])
            if keep.sum() < 2:
                continue
            beta, *_ = np.linalg.lstsq(X[keep], data[keep, c], rcond=None)
            result[:, c] = X @ beta
        return result


@dataclass(frozen=True)
class HodrickPrescott(SmootherSpec):
    """
    Hodrick-Prescott filter with smoothing parameter ``lam``.

    Solves (I + lam * D'D) tr = data, where D is the second difference
    operator; the first and last two rows carry the boundary corrections.
    Inner holes are filled linearly first, holes at the edges are left out
    of the system.
    """
    lam: float = 1600.0

    def __post_init__(self):
        if not np.isfinite(self.lam) or self.lam < 0:
            raise KernelConfigurationError(f"HP lambda must be non-negative, got {self.lam}")

    def system(self, nobs: int) -> sparse.csc_matrix:
        eye = sparse.eye(nobs, format="csc")
        D = eye[1:] - eye[:-1]
        D = D[1:] - D[:-1]
        return (eye + self.lam * (D.T @ D)).tocsc()

    def apply(self, data: np.ndarray) -> np.ndarray:
        filled = fill_holes(data)
        result = np.full(data.shape, np.nan)
        for c in range(data.shape[1]):
            valid = ~np.isnan(filled[:, c])
            nvalid = int(valid.sum())
            if nvalid < 3:
                result[valid, c] = filled[valid, c]
                continue
            result[valid, c] = sparse_linalg.spsolve(self.system(nvalid), filled[valid, c])
        return result


@dataclass(frozen=True)
class SmoothingSpline(SmootherSpec):
    """
    Cubic smoothing spline through the valid observations.

    ``roughness`` lies in [0, 1]: 0 gives the least-squares straight line,
    1 interpolates the data.
    """
    roughness: float = 0.5

    def __post_init__(self):
        if not 0.0 <= self.roughness <= 1.0:
            raise KernelConfigurationError(
                f"Spline roughness must lie in [0, 1], got {self.roughness}"
            )

    def apply(self, data: np.ndarray) -> np.ndarray:
        result = np.full(data.shape, np.nan)
        for c in range(data.shape[1]):
            keep = np.flatnonzero(~np.isnan(data[:, c]))
            y = data[keep, c]
            if keep.size == 0:
                continue
            if self.roughness >= 1.0 or keep.size == 1:
                result[keep, c] = y
            elif self.roughness <= 0.0 or keep.size < 5:
                # make_smoothing_spline needs five points; fewer get the line
                deg = min(1, keep.size - 1)
                fit = np.polynomial.Polynomial.fit(keep, y, deg)
                result[keep, c] = fit(keep)
            else:
                lam = (1.0 - self.roughness) / self.roughness
                spline = make_smoothing_spline(keep.astype(float), y, lam=lam)
                result[keep, c] = spline(keep)
        return result


@dataclass(frozen=True)
class Polynomial(SmootherSpec):
    """Least-squares polynomial of the given degree (on scaled time)."""
    degree: int = 3

    def __post_init__(self):
        if self.degree != int(self.degree) or self.degree < 0:
            raise KernelConfigurationError(
                f"Polynomial degree must be a non-negative integer, got {self.degree}"
            )

    def apply(self, data: np.ndarray) -> np.ndarray:
        result = np.full(data.shape, np.nan)
        for c in range(data.shape[1]):
            keep = np.flatnonzero(~np.isnan(data[:, c]))
            if keep.size == 0:
                continue
            deg = min(int(self.degree), keep.size - 1)
            fit = np.polynomial.Polynomial.fit(keep, data[keep, c], deg)
            result[keep, c] = fit(keep)
        return result


def _column_means(data: np.ndarray) -> np.ndarray:
    valid = ~np.isnan(data)
    counts = valid.sum(axis=0)
    sums = np.where(valid, data, 0.0).sum(axis=0)
    return np.divide(sums, counts, out=np.full(data.shape[1], np.nan), where=counts > 0)


SMOOTHER_ALIASES: Dict[str, str] = {
    "mean": "mean",
    "deviation": "deviation",
    "reldeviation": "reldeviation",
    "detrend": "detrend",
    "hp": "hp",
    "hodrick-prescott": "hp",
    "spline": "spline",
    "polynomial": "polynomial",
}

FilterMethod = Union[KernelSpec, SmootherSpec]


def smoother_from_name(name: str, *params: float) -> FilterMethod:
    """
    Parse a method name into an analytic smoother or a kernel variant.

    Raises:
        KernelConfigurationError: Unknown name, missing or surplus parameters
    """
    family = resolve_name(name, SMOOTHER_ALIASES)
    if family is None:
        return kernel_from_name(name, *params)

    def one_param() -> float:
        if len(params) != 1:
            raise KernelConfigurationError(
                f"'{name}' expects exactly one parameter, got {len(params)}"
            )
        return float(params[0])

    if family in ("mean", "deviation", "reldeviation"):
        if params:
            raise KernelConfigurationError(f"'{name}' takes no parameters")
        return {"mean": Mean, "deviation": Deviation, "reldeviation": RelativeDeviation}[family]()
    if family == "detrend":
        return Detrend(tuple(np.ravel(params)) if params else ())
    if family == "hp":
        return HodrickPrescott(one_param())
    if family == "spline":
        return SmoothingSpline(one_param())
    return Polynomial(int(one_param()))


def trend_filter(
    data,
    method: Union[FilterMethod, str],
    *params: float,
    edge: Optional[EdgePolicy] = None,
    direction: str = "centered",
    cache: Optional[KernelCache] = None,
) -> np.ndarray:
    """
    Smooth every column of ``data``.

    Args:
        data: 1-D series or 2-D array of columns
        method: Kernel variant, analytic smoother variant, or a method name
            followed by its numeric parameters
        *params: Parameters when ``method`` is a name
        edge: Padding policy; None filters the series as is
        direction: Kernel direction, see ``weighted_mean``
        cache: Optional kernel weight cache

    Returns:
        Smoothed array with the shape of ``data``
    """
    if isinstance(method, str):
        method = smoother_from_name(method, *params)
    elif params:
        raise KernelConfigurationError(
            "Parameters are only accepted together with a method name"
        )

    arr, was_1d = _as_2d(data)
    if edge is not None:
        arr = edge.pad(arr)

    if isinstance(method, KernelSpec):
        w = cache.get(method) if cache is not None else method.weights()
        smoothed = weighted_mean(arr, w, direction)
    elif isinstance(method, SmootherSpec):
        smoothed = method.apply(arr)
    else:
        raise KernelConfigurationError(f"Unsupported smoothing method: {method!r}")

    if edge is not None:
        smoothed = edge.trim(smoothed)

    return smoothed[:, 0] if was_1d else smoothed
