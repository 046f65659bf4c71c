"""Generic filter toolkit: kernels, smoothers, period-wise filters and outliers."""

from seasx11.filters.kernels import (
    KernelSpec,
    MovingAverage,
    CenteredMovingAverage,
    Henderson,
    Bongard,
    RehommeLadiray,
    Spencer,
    FiniteKernel,
    InfiniteKernel,
    KernelCache,
    kernel_from_name,
    kernel_weights,
)
from seasx11.filters.smoothers import (
    EdgePolicy,
    SmootherSpec,
    Mean,
    Deviation,
    RelativeDeviation,
    Detrend,
    HodrickPrescott,
    SmoothingSpline,
    Polynomial,
    smoother_from_name,
    weighted_mean,
    trend_filter,
)
from seasx11.filters.periods import split_periods, join_periods
from seasx11.filters.seasonal import seasonal_filter, normalize, recombine
from seasx11.filters.outliers import (
    OutlierResult,
    detect_outliers,
    replace_extremes,
    extreme_part,
)

__all__ = [
    "KernelSpec",
    "MovingAverage",
    "CenteredMovingAverage",
    "Henderson",
    "Bongard",
    "RehommeLadiray",
    "Spencer",
    "FiniteKernel",
    "InfiniteKernel",
    "KernelCache",
    "kernel_from_name",
    "kernel_weights",
    "EdgePolicy",
    "SmootherSpec",
    "Mean",
    "Deviation",
    "RelativeDeviation",
    "Detrend",
    "HodrickPrescott",
    "SmoothingSpline",
    "Polynomial",
    "smoother_from_name",
    "weighted_mean",
    "trend_filter",
    "split_periods",
    "join_periods",
    "seasonal_filter",
    "normalize",
    "recombine",
    "OutlierResult",
    "detect_outliers",
    "replace_extremes",
    "extreme_part",
]
