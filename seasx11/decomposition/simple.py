"""Simpler seasonal decompositions sharing the X-11 building blocks.

``method1`` is an approximation of the Census Bureau's Method I (Shiskin,
1954), the predecessor of X-11. ``fixed_seasonal`` estimates one constant
factor per position in the cycle, the equivalent of a regression on seasonal
dummies. ``seas`` is a single pass of trend and seasonal filters, a starting
point for experimenting with other filter choices.
"""

from typing import Any, Optional, Union
import logging
import math

import numpy as np

from seasx11.data.preprocessors import SeriesPreprocessor
from seasx11.data.validators import SeriesValidator
from seasx11.decomposition.structs import (
    DecompositionMode,
    DecompositionResult,
    StageOutput,
    X11Config,
)
from seasx11.filters.kernels import (
    Bongard,
    CenteredMovingAverage,
    FiniteKernel,
    Henderson,
    KernelCache,
    MovingAverage,
    RehommeLadiray,
    Spencer,
)
from seasx11.filters.seasonal import normalize, seasonal_filter
from seasx11.filters.smoothers import (
    Deviation,
    Detrend,
    EdgePolicy,
    FilterMethod,
    HodrickPrescott,
    Polynomial,
    RelativeDeviation,
    SmoothingSpline,
    smoother_from_name,
    trend_filter,
)

logger = logging.getLogger(__name__)

# HP smoothing parameter as a function of the period, log-linear fit
HP_SLOPE = 5.91863781313348
HP_INTERCEPT = -7.10636


def _prepare(data, config: X11Config):
    preprocessor = SeriesPreprocessor()
    values, index = preprocessor.to_array(data)
    report = SeriesValidator().validate(values, config)
    work = values
    if report.has_gaps:
        work = preprocessor.handle_missing_values(values, "interpolate")
    if config.mode.is_log:
        work = preprocessor.log_transform(work)
    return preprocessor, values, index, work


def _publish(method, config, values, index, preprocessor, stage: StageOutput) -> DecompositionResult:
    level = preprocessor.exp_transform if config.mode.is_log else np.asarray
    published = {
        name: level(getattr(stage, name))
        for name in ("trend", "si", "raw_seasonal", "seasonal", "seasonally_adjusted", "irregular")
    }
    return DecompositionResult(
        method=method,
        config=config,
        data=values,
        trend=published["trend"],
        seasonal=published["seasonal"],
        seasonally_adjusted=published["seasonally_adjusted"],
        irregular=published["irregular"],
        si=published["si"],
        modified_seasonally_adjusted=published["seasonally_adjusted"],
        modified_irregular=published["irregular"],
        index=index,
        stages=(StageOutput(stage=stage.stage, **published),),
    )


def method1(
    data,
    period: int,
    mode: Any = DecompositionMode.LOG_ADDITIVE,
    cache: Optional[KernelCache] = None,
) -> DecompositionResult:
    """
    Census Method I.

    A centered moving average gives a first trend-cycle, a 3x3 seasonal
    moving average of the SI a first seasonal factor. A 5-term moving
    average of the seasonally adjusted series gives the final trend-cycle,
    from which the SI and the seasonal factor are computed once more.

    Args:
        data: pandas Series, numpy array or sequence
        period: Length of the seasonal cycle
        mode: 'additive', 'multiplicative' or 'log-additive'
        cache: Optional kernel weight cache

    Returns:
        DecompositionResult with a single stage ('M1'); the modified series
        equal the unmodified ones since extremes are not treated
    """
    config = X11Config(period=period, mode=mode)
    preprocessor, values, index, work = _prepare(data, config)
    mult = config.mode.is_multiplicative
    nobs = work.size

    first_trend = trend_filter(
        work, CenteredMovingAverage(period),
        edge=EdgePolicy.mirror(math.ceil(period / 2)).clamped(nobs), cache=cache,
    )
    first_si = normalize(work, first_trend, mult)
    first_seasonal = seasonal_filter(first_si, period, MovingAverage((3, 3)),
                                     edge=EdgePolicy.mirror(3), cache=cache)
    first_sa = normalize(work, first_seasonal, mult)

    trend = trend_filter(first_sa, MovingAverage(5), edge=EdgePolicy.mirror(3).clamped(nobs), cache=cache)
    si = normalize(work, trend, mult)
    seasonal = seasonal_filter(si, period, MovingAverage((3, 3)), edge=EdgePolicy.mirror(3), cache=cache)
    sa = normalize(work, seasonal, mult)
    irregular = normalize(sa, trend, mult)
    logger.info(f"Method I decomposition of {nobs} observations, period {period}")

    stage = StageOutput(
        stage="M1",
        trend=trend,
        si=si,
        raw_seasonal=first_seasonal,
        seasonal=seasonal,
        seasonally_adjusted=sa,
        irregular=irregular,
    )
    return _publish("method1", config, values, index, preprocessor, stage)


def seas(
    data,
    period: int,
    mode: Any = DecompositionMode.LOG_ADDITIVE,
    cache: Optional[KernelCache] = None,
) -> DecompositionResult:
    """
    Quick one-pass filter decomposition.

    The trend-cycle is a composite centered moving average over one, one half
    and one third of a period; the seasonal factor smooths each position of
    the SI across cycles with a 5-term Epanechnikov kernel.

    Args:
        data: pandas Series, numpy array or sequence
        period: Length of the seasonal cycle
        mode: 'additive', 'multiplicative' or 'log-additive'
        cache: Optional kernel weight cache

    Returns:
        DecompositionResult with a single stage ('S')
    """
    config = X11Config(period=period, mode=mode)
    preprocessor, values, index, work = _prepare(data, config)
    mult = config.mode.is_multiplicative
    nobs = work.size

    half_width = math.ceil(period / 2) + math.ceil(period / 4) + math.ceil(period / 6) + 1
    trend = trend_filter(
        work, CenteredMovingAverage((period, period / 2, period / 3)),
        edge=EdgePolicy.mirror(half_width).clamped(nobs), cache=cache,
    )
    si = normalize(work, trend, mult)
    nyears = math.ceil(nobs / period)
    seasonal = seasonal_filter(si, period, FiniteKernel("epanechnikov", (5,)),
                               edge=EdgePolicy.mirror(nyears), cache=cache)
    sa = normalize(work, seasonal, mult)
    irregular = normalize(sa, trend, mult)
    logger.info(f"Quick filter decomposition of {nobs} observations, period {period}")

    stage = StageOutput(
        stage="S",
        trend=trend,
        si=si,
        raw_seasonal=seasonal,
        seasonal=seasonal,
        seasonally_adjusted=sa,
        irregular=irregular,
    )
    return _publish("seas", config, values, index, preprocessor, stage)


def default_trend_method(name: str, period: int, nobs: int) -> FilterMethod:
    """
    Trend-cycle method for a family name given without parameters.

    Spans default to one period (two periods minus one for the Henderson
    family), the spline roughness and the HP parameter scale with the
    period, the polynomial degree is the number of cycles.
    """
    family = name.strip().lower()
    if family == "spline":
        h = 1.0 / period
        return SmoothingSpline(1.0 / (1.0 + h ** 3 / 0.6))
    if family == "polynomial":
        return Polynomial(nobs // period)
    if family in ("hp", "hodrick-prescott"):
        return HodrickPrescott(math.exp(HP_INTERCEPT + HP_SLOPE * math.log(period)))
    if family == "detrend":
        return Detrend()
    if family == "henderson":
        return Henderson(2 * period - 1)
    if family == "bongard":
        return Bongard(2 * period - 1)
    if family == "rehomme-ladiray":
        return RehommeLadiray(2 * period - 1)
    if family.startswith("spencer"):
        return Spencer()
    if family in ("mean", "deviation", "reldeviation"):
        return smoother_from_name(family)
    return smoother_from_name(name, period)


def fixed_seasonal(
    data,
    period: int,
    mode: Any = DecompositionMode.LOG_ADDITIVE,
    method: Optional[Union[FilterMethod, str]] = None,
    cache: Optional[KernelCache] = None,
) -> DecompositionResult:
    """
    Decomposition with seasonal factors that are constant across cycles.

    Args:
        data: pandas Series, numpy array or sequence
        period: Length of the seasonal cycle
        mode: 'additive', 'multiplicative' or 'log-additive'
        method: Trend-cycle method; a variant, or a family name whose
            parameters are derived from the period (default: centered
            moving average over one period)
        cache: Optional kernel weight cache

    Returns:
        DecompositionResult with a single stage ('F')
    """
    config = X11Config(period=period, mode=mode)
    preprocessor, values, index, work = _prepare(data, config)
    mult = config.mode.is_multiplicative

    if method is None:
        method = CenteredMovingAverage(period)
    elif isinstance(method, str):
        method = default_trend_method(method, period, work.size)

    trend = trend_filter(work, method, edge=EdgePolicy.mirror(period), cache=cache)
    si = normalize(work, trend, mult)
    seasonal = seasonal_filter(si, period, RelativeDeviation() if mult else Deviation())
    sa = normalize(work, seasonal, mult)
    irregular = normalize(sa, trend, mult)
    logger.info(f"Fixed seasonal decomposition with {method.family}, period {period}")

    stage = StageOutput(
        stage="F",
        trend=trend,
        si=si,
        raw_seasonal=seasonal,
        seasonal=seasonal,
        seasonally_adjusted=sa,
        irregular=irregular,
    )
    return _publish("fixed_seasonal", config, values, index, preprocessor, stage)
