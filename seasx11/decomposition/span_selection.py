"""Adaptive choice of the Henderson span and of the seasonal moving average.

Two rules from X-11:

* The I/C ratio compares the average absolute month-to-month change of the
  irregular with that of the trend-cycle. Noisy series get a longer
  Henderson filter, smooth series a shorter one.
* The moving seasonality ratio (MSR) compares the year-over-year change of
  the irregular with that of the seasonal component. Stable seasonality gets
  a short seasonal moving average (3x3), unstable seasonality a long one (3x9).
"""

from typing import List, Optional, Tuple
import logging
import math

import numpy as np

from seasx11.decomposition.structs import SeasonalChoice, SpanChoice
from seasx11.filters.kernels import Henderson, KernelCache, MovingAverage
from seasx11.filters.periods import split_periods
from seasx11.filters.seasonal import normalize, seasonal_filter
from seasx11.filters.smoothers import EdgePolicy, trend_filter
from seasx11.utils.error_handling import DegeneracyRecord, safe_ratio

logger = logging.getLogger(__name__)

IC_LONG_THRESHOLD = 3.5
IC_DEFAULT_THRESHOLD = 1.0
MSR_SHORT_THRESHOLD = 3.0
MSR_LONG_THRESHOLD = 6.0

# Correction factors need at least this many year-over-year changes; fewer
# use the values for this count.
MIN_CORRECTION_YEARS = 4


def odd_up(value: float) -> int:
    """Smallest odd integer weakly greater than ``value``."""
    z = math.ceil(value)
    return z + (z + 1) % 2


def odd_dn(value: float) -> int:
    """Greatest odd integer weakly less than ``value``."""
    z = math.floor(value)
    return z - (z - 1) % 2


def abs_growth(values, lag: int, multiplicative: bool = False) -> np.ndarray:
    """
    Absolute change over ``lag`` observations.

    Differences for additive data, growth rates in percent for
    multiplicative data. The first ``lag`` entries are missing.
    """
    values = np.asarray(values, dtype=float)
    xbar = 1.0 if multiplicative else 0.0
    xfactor = 100.0 if multiplicative else 1.0
    growth = np.full(values.shape, np.nan)
    if lag < values.size:
        growth[lag:] = normalize(values[lag:], values[:-lag], multiplicative) - xbar
    return xfactor * np.abs(growth)


def _mean(values: np.ndarray) -> float:
    valid = values[~np.isnan(values)]
    return float(valid.mean()) if valid.size else float("nan")


def henderson_regimes(period: int) -> Tuple[int, int, int]:
    """Short, default and long Henderson spans for ``period``."""
    return odd_up(period * 2 / 3), odd_up(period), odd_dn(period * 2)


def select_henderson_span(ic_ratio: float, period: int, allow_long: bool = True) -> int:
    """
    Henderson span chosen by the I/C ratio.

    Ratios above 3.5 select about two periods (only when ``allow_long``),
    ratios above 1 one period, smaller ratios about two thirds of a period.
    Missing ratios fall back to the default span.
    """
    short, default, long = henderson_regimes(period)
    if ic_ratio != ic_ratio:
        return default
    if allow_long and ic_ratio > IC_LONG_THRESHOLD:
        return long
    if ic_ratio > IC_DEFAULT_THRESHOLD:
        return default
    return short


def henderson_trend(
    seasonally_adjusted,
    period: int,
    multiplicative: bool,
    step: str,
    allow_long: bool = True,
    trim_edges: bool = True,
    span_override: Optional[int] = None,
    half_width: Optional[int] = None,
    cache: Optional[KernelCache] = None,
) -> Tuple[np.ndarray, SpanChoice, List[DegeneracyRecord]]:
    """
    Fit a Henderson trend-cycle with the span chosen by the I/C ratio rule.

    A first Henderson filter of one period (rounded up to odd) separates
    trend and irregular. ``Cbar`` is the mean absolute change of that trend,
    ``Ibar`` the mean absolute change of the irregular, leaving out the first
    two and the last cycle when ``trim_edges`` is set.

    Args:
        seasonally_adjusted: Seasonally adjusted series
        period: Length of the cycle
        multiplicative: Whether the decomposition is multiplicative
        step: Table name used in diagnostics (e.g. 'B7')
        allow_long: Whether the long (two periods) regime is available
        trim_edges: Whether to leave the edges out of ``Ibar``
        span_override: Fixed span bypassing the rule
        half_width: Mirror half-width; defaults to half the span
        cache: Optional kernel weight cache

    Returns:
        Tuple of (trend-cycle, SpanChoice, degeneracy records)
    """
    sa = np.asarray(seasonally_adjusted, dtype=float)
    nobs = sa.size
    xfactor = 100.0 if multiplicative else 1.0
    records: List[DegeneracyRecord] = []

    def fit(span: int) -> np.ndarray:
        e = half_width if half_width is not None else math.ceil(span / 2)
        return trend_filter(sa, Henderson(span), edge=EdgePolicy.mirror(min(e, nobs)), cache=cache)

    default_span = odd_up(period)
    first = fit(default_span)
    irregular = xfactor * normalize(first, sa, multiplicative)
    cbar = _mean(abs_growth(first, 1, multiplicative))
    irregular_growth = abs_growth(irregular, 1, multiplicative)

    if trim_edges:
        inner = irregular_growth[2 * period:nobs - period]
        ibar = _mean(inner)
        if ibar != ibar:
            ibar = _mean(irregular_growth)
            records.append(DegeneracyRecord(
                stage=step,
                quantity="Ibar",
                reason="no observations left after leaving out the edge cycles",
                fallback="mean over the full sample",
                details={"nobs": nobs, "period": period},
            ).log())
    else:
        ibar = _mean(irregular_growth)

    ratio, record = safe_ratio(ibar, cbar, step, "I/C ratio")
    if record is not None:
        records.append(record)

    if span_override is not None:
        span = int(span_override)
    else:
        span = select_henderson_span(ratio, period, allow_long)
    trend = first if span == default_span else fit(span)

    choice = SpanChoice(
        step=step,
        ibar=ibar,
        cbar=cbar,
        ic_ratio=ratio,
        henderson_span=span,
        overridden=span_override is not None,
    )
    logger.info(
        f"{step} IC ratio {ratio:.4g} (Ibar {ibar:.4g}, Cbar {cbar:.4g}) --> Henderson({span})",
        extra={"props": choice.to_dict()},
    )
    return trend, choice, records


def correction_factors(years: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Finite-sample corrections of Sbar (CS) and Ibar (FIS).

    ``years`` is the number of available year-over-year changes per position
    in the cycle. Four, five and six years use closed forms; more years use
    the general formula; fewer than four use the values for four.
    """
    n = np.maximum(np.asarray(years, dtype=float), MIN_CORRECTION_YEARS)
    sqrt2, sqrt3, sqrt6 = math.sqrt(2), math.sqrt(3), math.sqrt(6)

    with np.errstate(divide="ignore", invalid="ignore"):
        cs = sqrt2 * n / (6 * sqrt2 + (n - 6) * sqrt3)
        fis = 5 * sqrt6 * n / (6 * math.sqrt(149) + 5 * sqrt6 * (n - 6))

    cs = np.where(n == 6, 5 * sqrt6 / (8 + sqrt2), cs)
    cs = np.where(n == 5, 2 * sqrt2 / (1 + sqrt3), cs)
    cs = np.where(n == 4, 3.0, cs)
    fis = np.where(n == 6, 25 * sqrt3 / (2 * math.sqrt(298) + math.sqrt(67)), fis)
    fis = np.where(n == 5, 60 / (math.sqrt(894) + 2 * math.sqrt(211)), fis)
    fis = np.where(n == 4, 90 / (2 * math.sqrt(842) + 21 * sqrt2), fis)
    return cs, fis


def select_seasonal_ma(msr: float) -> Tuple[int, int]:
    """3x3 below 3, 3x5 up to 6, 3x9 otherwise (including NaN)."""
    if msr < MSR_SHORT_THRESHOLD:
        return (3, 3)
    if msr <= MSR_LONG_THRESHOLD:
        return (3, 5)
    return (3, 9)


def overall_seasonality_ratio(
    ibar,
    sbar,
    years,
    step: str = "D10",
) -> Tuple[float, Optional[DegeneracyRecord]]:
    """
    Combine the per-position ratios into one MSR.

    With ``a = Ibar * N`` and ``b = Sbar * N`` the ratio is the least-squares
    scalar solving ``msr * b = a``, that is ``(a . b) / (b . b)``. Positions
    with a missing Ibar or Sbar are left out. When every Sbar vanishes the
    usual degenerate-ratio fallback applies, decided by ``sum(a)``.

    Returns:
        Tuple of (ratio, record or None)
    """
    ibar = np.asarray(ibar, dtype=float)
    sbar = np.asarray(sbar, dtype=float)
    years = np.asarray(years, dtype=float)
    usable = ~np.isnan(sbar) & ~np.isnan(ibar)
    a = ibar[usable] * years[usable]
    b = sbar[usable] * years[usable]
    denominator = float(b @ b)
    numerator = float(a @ b) if denominator > 0 else float(a.sum())
    return safe_ratio(numerator, denominator, step, "moving seasonality ratio")


def moving_seasonality_ratio(
    si,
    period: int,
    multiplicative: bool,
    step: str = "D10",
    ma_override: Optional[Tuple[int, ...]] = None,
    half_width: int = 3,
    cache: Optional[KernelCache] = None,
) -> Tuple[SeasonalChoice, List[DegeneracyRecord]]:
    """
    Choose the final seasonal moving average with the MSR.

    The SI series is lightly smoothed per period (7-term moving average).
    ``Sbar(i)`` is the mean absolute year-over-year change of the smoothed
    series at position i, ``Ibar(i)`` that of the remainder; both carry the
    finite-sample corrections. See ``overall_seasonality_ratio`` for how the
    positions are combined.

    Args:
        si: SI differences or ratios
        period: Length of the cycle
        multiplicative: Whether the decomposition is multiplicative
        step: Table name used in diagnostics
        ma_override: Fixed moving average bypassing the rule
        half_width: Mirror half-width of the light smoothing
        cache: Optional kernel weight cache

    Returns:
        Tuple of (SeasonalChoice, degeneracy records)
    """
    si = np.asarray(si, dtype=float)
    xfactor = 100.0 if multiplicative else 1.0
    records: List[DegeneracyRecord] = []

    smoothed = seasonal_filter(si, period, MovingAverage(7), edge=EdgePolicy.mirror(half_width), cache=cache)
    remainder = xfactor * normalize(si, smoothed, multiplicative)

    s_growth = split_periods(abs_growth(smoothed, period, multiplicative), period)
    i_growth = split_periods(abs_growth(remainder, period, multiplicative), period)

    years = (~np.isnan(s_growth)).sum(axis=0)
    sbar = np.array([_mean(s_growth[:, i]) for i in range(period)])
    ibar = np.array([_mean(i_growth[:, i]) for i in range(period)])

    if np.any(years < MIN_CORRECTION_YEARS):
        records.append(DegeneracyRecord(
            stage=step,
            quantity="correction factors",
            reason=f"fewer than {MIN_CORRECTION_YEARS} year-over-year changes",
            fallback=f"factors for {MIN_CORRECTION_YEARS} years",
            details={"years": years.tolist()},
        ).log())

    cs, fis = correction_factors(years)
    sbar = sbar * cs
    ibar = ibar * fis

    with np.errstate(divide="ignore", invalid="ignore"):
        ratios = ibar / sbar

    msr, record = overall_seasonality_ratio(ibar, sbar, years, step)
    if record is not None:
        records.append(record)

    if ma_override is not None:
        spans = tuple(int(s) for s in ma_override)
    else:
        spans = select_seasonal_ma(msr)

    choice = SeasonalChoice(
        step=step,
        ibar=tuple(float(v) for v in ibar),
        sbar=tuple(float(v) for v in sbar),
        ratios=tuple(float(v) for v in ratios),
        years=tuple(int(v) for v in years),
        msr=msr,
        seasonal_ma=spans,
        overridden=ma_override is not None,
    )
    logger.info(
        f"{step} RSM ratio {msr:.4g} --> MA[{'x'.join(str(s) for s in spans)}]",
        extra={"props": choice.to_dict()},
    )
    return choice, records
