"""Approximate X-11 seasonal adjustment.

The decomposition runs four stages, each on the output of the previous one:

* Stage B: trial decomposition, correction of extreme SI values, first
  Henderson trend-cycle, extreme irregulars removed from the data.
* Stage C: the same on the corrected data (no SI correction pass); its
  outlier weights are reused in stage E.
* Stage D: final decomposition with the seasonal moving average chosen by
  the moving seasonality ratio and the final Henderson trend-cycle.
* Stage E: stage D series modified for extreme values with the stage C
  weights.

There is no ARIMA extension of the series. The edges are handled by
mirroring the series before each filter, so values close to the edges differ
from the Census Bureau X-11 program.

Table names (B1 ... E11) follow Ladiray and Quenneville, "Seasonal
Adjustment with the X-11 Method" (2001).
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple
import logging
import math

import numpy as np
import pandas as pd

from seasx11.data.preprocessors import SeriesPreprocessor
from seasx11.data.validators import SeriesValidator, ValidationReport
from seasx11.decomposition.span_selection import (
    henderson_trend,
    moving_seasonality_ratio,
    odd_up,
)
from seasx11.decomposition.structs import (
    DecompositionMode,
    DecompositionResult,
    StageOutput,
    X11Config,
)
from seasx11.filters.kernels import CenteredMovingAverage, KernelCache, MovingAverage
from seasx11.filters.outliers import detect_outliers, extreme_part, replace_extremes
from seasx11.filters.seasonal import normalize, recombine, seasonal_filter
from seasx11.filters.smoothers import EdgePolicy, trend_filter
from seasx11.utils.error_handling import DegeneracyRecord

logger = logging.getLogger(__name__)

# Tables not expressed in the units of the data: outlier weights and sigmas,
# and the extreme parts of the irregular.
NON_LEVEL_TABLES = frozenset({
    "B4e", "B4f", "B9e", "B9f", "B17", "B17a", "B20", "C17", "C17a", "C20",
})


@dataclass
class _RunState:
    """Mutable bookkeeping of one run; never shared between runs."""
    keep_intermediate: bool
    tables: Dict[str, np.ndarray] = field(default_factory=dict)
    records: List[DegeneracyRecord] = field(default_factory=list)

    def keep(self, **named: np.ndarray) -> None:
        if self.keep_intermediate:
            for name, values in named.items():
                self.tables[name[0].upper() + name[1:]] = np.array(values, dtype=float)


def modify_for_extremes(
    data,
    trend,
    seasonal,
    seasonally_adjusted,
    irregular,
    weights,
    multiplicative: bool = False,
) -> Dict[str, np.ndarray]:
    """
    Stage E: dampen extreme values in the final series.

    Where a point has full weight the final series are kept, where it has
    zero weight the seasonally adjusted series is replaced by the trend-cycle
    and the irregular by its neutral value; partial weights blend linearly.

    Args:
        data: Data the final decomposition refers to
        trend: Final trend-cycle (D12)
        seasonal: Final seasonal factor (D10)
        seasonally_adjusted: Final seasonally adjusted series (D11)
        irregular: Final irregular (D13)
        weights: Outlier weights in [0, 1]
        multiplicative: Whether the decomposition is multiplicative

    Returns:
        Dict with 'e1' (trend combined with seasonal), 'e2' (modified
        seasonally adjusted), 'e3' (modified irregular) and 'e11' (robust seasonally
        adjusted series)
    """
    xbar = 1.0 if multiplicative else 0.0
    data = np.asarray(data, dtype=float)
    trend = np.asarray(trend, dtype=float)
    w = np.asarray(weights, dtype=float)

    e1 = recombine(trend, seasonal, multiplicative)
    e2 = w * np.asarray(seasonally_adjusted, dtype=float) + (1 - w) * trend
    e3 = w * np.asarray(irregular, dtype=float) + (1 - w) * xbar
    e11 = w * e2 + (1 - w) * (trend + data - e1)
    return {"e1": e1, "e2": e2, "e3": e3, "e11": e11}


class X11Decomposer:
    """
    Runs the B, C, D and E stages on one series.

    A decomposer holds only its configuration and an optional kernel weight
    cache, so one instance can decompose any number of series.
    """

    def __init__(self, config: X11Config, cache: Optional[KernelCache] = None):
        """
        Initialize the decomposer.

        Args:
            config: Run configuration
            cache: Kernel weight cache; a private one is created if None
        """
        self.config = config
        self.cache = cache if cache is not None else KernelCache()
        self.preprocessor = SeriesPreprocessor()
        self.validator = SeriesValidator()

    @property
    def period(self) -> int:
        return self.config.period

    @property
    def mode(self) -> DecompositionMode:
        return self.config.mode

    @property
    def multiplicative(self) -> bool:
        return self.config.mode.is_multiplicative

    @property
    def xbar(self) -> float:
        return self.config.mode.xbar

    def validate(self, data) -> ValidationReport:
        """Check ``data`` without decomposing it."""
        values, _ = self.preprocessor.to_array(data)
        return self.validator.validate(values, self.config)

    def decompose(self, data) -> DecompositionResult:
        """
        Decompose a series into trend-cycle, seasonal and irregular.

        Args:
            data: pandas Series (any index), numpy array or sequence; missing
                values are interpolated before filtering

        Returns:
            DecompositionResult with the stage D series as the final
            components and the stage E series as the modified ones

        Raises:
            InsufficientDataError: Fewer than two full cycles of data
            ConfigurationError: Data or overrides incompatible with the run
        """
        values, index = self.preprocessor.to_array(data)
        report = self.validator.validate(values, self.config)

        work = values
        if report.has_gaps:
            work = self.preprocessor.handle_missing_values(values, "interpolate")
        if self.mode.is_log:
            work = self.preprocessor.log_transform(work)

        logger.debug(
            f"Decomposing {values.size} observations, period {self.period}, "
            f"mode {self.mode.value}"
        )
        state = _RunState(keep_intermediate=self.config.keep_intermediate)
        state.keep(b1=work)

        stage_b = self._stage_b(work, state)
        stage_c = self._stage_c(work, stage_b.corrected, state)
        stage_d = self._stage_d(work, stage_c.corrected, state)

        final = modify_for_extremes(
            work,
            stage_d.trend,
            stage_d.seasonal,
            stage_d.seasonally_adjusted,
            stage_d.irregular,
            stage_c.weights,
            self.multiplicative,
        )
        state.keep(**final)
        logger.debug(
            f"Stage E: {int((stage_c.weights < 1).sum())} points dampened with the stage C weights"
        )

        level = self._to_level
        tables = {
            name: (values_ if name in NON_LEVEL_TABLES else level(values_))
            for name, values_ in state.tables.items()
        }

        result = DecompositionResult(
            method="x11",
            config=self.config,
            data=values,
            trend=level(stage_d.trend),
            seasonal=level(stage_d.seasonal),
            seasonally_adjusted=level(stage_d.seasonally_adjusted),
            irregular=level(stage_d.irregular),
            si=level(stage_d.si),
            modified_seasonally_adjusted=level(final["e2"]),
            modified_irregular=level(final["e3"]),
            robust_seasonally_adjusted=level(final["e11"]),
            trend_seasonal=level(final["e1"]),
            index=index,
            stages=tuple(self._stage_to_level(s) for s in (stage_b, stage_c, stage_d)),
            degeneracies=tuple(state.records),
            tables=tables,
        )
        logger.info(
            f"X-11 decomposition finished: Henderson({stage_d.henderson_span}), "
            f"seasonal MA {'x'.join(str(s) for s in stage_d.seasonal_choice.seasonal_ma)}, "
            f"{len(state.records)} degenerate ratios",
            extra={"props": result.to_dict()},
        )
        return result

    # -- building blocks -------------------------------------------------

    def _to_level(self, values: np.ndarray) -> np.ndarray:
        if self.mode.is_log:
            return self.preprocessor.exp_transform(np.asarray(values, dtype=float))
        return np.asarray(values, dtype=float)

    def _stage_to_level(self, stage: StageOutput) -> StageOutput:
        if not self.mode.is_log:
            return stage
        level = self._to_level
        return replace(
            stage,
            trend=level(stage.trend),
            si=level(stage.si),
            raw_seasonal=level(stage.raw_seasonal),
            seasonal=level(stage.seasonal),
            seasonally_adjusted=level(stage.seasonally_adjusted),
            irregular=level(stage.irregular),
            corrected=level(stage.corrected) if stage.corrected is not None else None,
        )

    def _cma_trend(self, values: np.ndarray) -> np.ndarray:
        """Centered moving average over one period."""
        half = self.config.trend_half_width
        if half is None:
            half = math.ceil(odd_up(self.period) / 2)
        edge = EdgePolicy.mirror(half).clamped(values.size)
        return trend_filter(values, CenteredMovingAverage(self.period), edge=edge, cache=self.cache)

    def _seasonal_factor(
        self,
        si: np.ndarray,
        spans: Tuple[int, ...],
        half_width: int,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Seasonal moving average of the SI with its drift removed.

        Returns:
            Tuple of (raw factor, centered moving average of the raw factor,
            normalized factor)
        """
        if self.config.seasonal_half_width is not None:
            half_width = self.config.seasonal_half_width
        raw = seasonal_filter(
            si, self.period, MovingAverage(spans), edge=EdgePolicy.mirror(half_width), cache=self.cache
        )
        edge = EdgePolicy.extend(self.period).clamped(raw.size)
        drift = trend_filter(raw, CenteredMovingAverage(self.period), edge=edge, cache=self.cache)
        return raw, drift, normalize(raw, drift, self.multiplicative)

    def _corrected_si(
        self,
        si: np.ndarray,
        spans: Tuple[int, ...],
        state: _RunState,
        prefix: str,
    ) -> np.ndarray:
        """Detect extreme SI values and replace them (tables B4 and B9)."""
        raw, drift, factor = self._seasonal_factor(si, spans, half_width=5)
        residual = normalize(si, factor, self.multiplicative)
        outliers = detect_outliers(residual, self.config.bandwidth)
        corrected = replace_extremes(si, self.period, outliers, self.multiplicative, cache=self.cache)
        logger.debug(f"{prefix}: {outliers.n_flagged} extreme SI values replaced")

        replaced = np.full(si.shape, np.nan)
        replaced[outliers.flags] = corrected[outliers.flags]
        state.keep(**{
            prefix: replaced,
            f"{prefix}a": raw,
            f"{prefix}b": drift,
            f"{prefix}c": factor,
            f"{prefix}d": residual,
            f"{prefix}e": outliers.sigma,
            f"{prefix}f": outliers.weights,
            f"{prefix}g": corrected,
        })
        return corrected

    def _henderson(
        self,
        seasonally_adjusted: np.ndarray,
        step: str,
        state: _RunState,
        allow_long: bool = True,
        trim_edges: bool = True,
    ):
        trend, choice, records = henderson_trend(
            seasonally_adjusted,
            self.period,
            self.multiplicative,
            step,
            allow_long=allow_long,
            trim_edges=trim_edges,
            span_override=self.config.henderson_span,
            half_width=self.config.trend_half_width,
            cache=self.cache,
        )
        state.records.extend(records)
        return trend, choice

    def _extremes(self, irregular: np.ndarray, step: str, state: _RunState):
        """Outlier weights of the irregular and its extreme part (tables x17, x20)."""
        outliers = detect_outliers(irregular - self.xbar, self.config.bandwidth)
        extreme = extreme_part(irregular, outliers.weights, self.multiplicative)
        state.keep(**{
            f"{step}17": outliers.weights,
            f"{step}17a": outliers.sigma,
            f"{step}20": extreme,
        })
        logger.debug(
            f"{step.upper()}17: {outliers.n_flagged} extreme irregular values, "
            f"{int((outliers.weights == 0).sum())} with zero weight"
        )
        return outliers, extreme

    # -- stages ----------------------------------------------------------

    def _stage_b(self, b1: np.ndarray, state: _RunState) -> StageOutput:
        """Trial decomposition of the original data."""
        mult = self.multiplicative
        logger.debug("Stage B: trial decomposition")

        b2 = self._cma_trend(b1)
        b3 = normalize(b1, b2, mult)
        b4g = self._corrected_si(b3, (3, 3), state, "b4")

        b5a, b5b, b5 = self._seasonal_factor(b4g, (3, 3), half_width=3)
        b6 = normalize(b1, b5, mult)

        b7, b7_choice = self._henderson(b6, "B7", state, allow_long=False)
        b8 = normalize(b1, b7, mult)
        b9g = self._corrected_si(b8, (3, 5), state, "b9")

        b10a, b10b, b10 = self._seasonal_factor(b9g, (3, 5), half_width=3)
        b11 = normalize(b1, b10, mult)
        b13 = normalize(b11, b7, mult)

        outliers, b20 = self._extremes(b13, "b", state)
        c1 = normalize(b1, b20, mult)

        state.keep(b2=b2, b3=b3, b5=b5, b5a=b5a, b5b=b5b, b6=b6, b7=b7, b8=b8,
                   b10=b10, b10a=b10a, b10b=b10b, b11=b11, b13=b13, c1=c1)
        return StageOutput(
            stage="B",
            trend=b7,
            si=b8,
            raw_seasonal=b10a,
            seasonal=b10,
            seasonally_adjusted=b11,
            irregular=b13,
            weights=outliers.weights,
            flags=outliers.flags,
            corrected=c1,
            span_choices=(b7_choice,),
        )

    def _stage_c(self, b1: np.ndarray, c1: np.ndarray, state: _RunState) -> StageOutput:
        """Decomposition of the data corrected in stage B."""
        mult = self.multiplicative
        logger.debug("Stage C: decomposition of the corrected data")

        c2 = self._cma_trend(c1)
        c4 = normalize(c1, c2, mult)
        c5a, c5b, c5 = self._seasonal_factor(c4, (3, 3), half_width=3)
        c6 = normalize(c1, c5, mult)

        c7, c7_choice = self._henderson(c6, "C7", state)
        c9 = normalize(c1, c7, mult)
        c10a, c10b, c10 = self._seasonal_factor(c9, (3, 5), half_width=3)

        c11 = normalize(b1, c10, mult)
        c13 = normalize(c11, c7, mult)

        outliers, c20 = self._extremes(c13, "c", state)
        d1 = normalize(b1, c20, mult)

        state.keep(c2=c2, c4=c4, c5=c5, c5a=c5a, c5b=c5b, c6=c6, c7=c7, c9=c9,
                   c10=c10, c10a=c10a, c10b=c10b, c11=c11, c13=c13, d1=d1)
        return StageOutput(
            stage="C",
            trend=c7,
            si=c9,
            raw_seasonal=c10a,
            seasonal=c10,
            seasonally_adjusted=c11,
            irregular=c13,
            weights=outliers.weights,
            flags=outliers.flags,
            corrected=d1,
            span_choices=(c7_choice,),
        )

    def _stage_d(
        self,
        b1: np.ndarray,
        d1: np.ndarray,
        state: _RunState,
    ) -> StageOutput:
        """Final decomposition with the adaptive seasonal moving average."""
        mult = self.multiplicative
        xfactor = self.mode.xfactor
        logger.debug("Stage D: final decomposition")

        d2 = self._cma_trend(d1)
        d4 = normalize(d1, d2, mult)
        d5a, d5b, d5 = self._seasonal_factor(d4, (3, 3), half_width=3)
        d6 = normalize(d1, d5, mult)

        d7, d7_choice = self._henderson(d6, "D7", state)
        d8 = normalize(b1, d7, mult)
        d9bis = normalize(d1, d7, mult)

        seasonal_choice, records = moving_seasonality_ratio(
            d9bis,
            self.period,
            mult,
            step="D10",
            ma_override=self.config.seasonal_ma,
            cache=self.cache,
        )
        state.records.extend(records)

        d10bis, d10ter, d10 = self._seasonal_factor(d9bis, seasonal_choice.seasonal_ma, half_width=3)
        d11 = normalize(b1, d10, mult)
        d11bis = normalize(d1, d10, mult)

        d12, d12_choice = self._henderson(d11bis, "D12", state, trim_edges=False)
        d13 = normalize(d11, d12, mult)

        if state.keep_intermediate:
            d9 = np.where(d8 == d9bis, np.nan, d9bis)
            d9a1 = seasonal_filter(d9bis, self.period, MovingAverage(7),
                                   edge=EdgePolicy.mirror(3), cache=self.cache)
            state.keep(
                d2=d2, d4=d4, d5=d5, d5a=d5a, d5b=d5b, d6=d6, d7=d7, d8=d8, d9=d9,
                d9a1=d9a1, d9a2=xfactor * normalize(d9bis, d9a1, mult),
                d10=d10, d10bis=d10bis, d10ter=d10ter, d11=d11, d11bis=d11bis,
                d12=d12, d13=d13,
            )

        return StageOutput(
            stage="D",
            trend=d12,
            si=d8,
            raw_seasonal=d10bis,
            seasonal=d10,
            seasonally_adjusted=d11,
            irregular=d13,
            span_choices=(d7_choice, d12_choice),
            seasonal_choice=seasonal_choice,
        )


def x11(
    data,
    period: int,
    mode: Any = DecompositionMode.LOG_ADDITIVE,
    cache: Optional[KernelCache] = None,
    **overrides: Any,
) -> DecompositionResult:
    """
    Decompose a series with the approximate X-11 method.

    Args:
        data: pandas Series, numpy array or sequence
        period: Length of the seasonal cycle (12 for monthly data)
        mode: 'additive', 'multiplicative' or 'log-additive'
        cache: Optional kernel weight cache shared between runs
        **overrides: Further X11Config settings (henderson_span, seasonal_ma,
            trend_half_width, seasonal_half_width, outlier_bandwidth,
            keep_intermediate)

    Returns:
        DecompositionResult
    """
    config = X11Config.from_dict({"period": period, "mode": mode, **overrides})
    return X11Decomposer(config, cache=cache).decompose(data)


def decompose_frame(
    frame: pd.DataFrame,
    config: X11Config,
    cache: Optional[KernelCache] = None,
) -> Dict[str, DecompositionResult]:
    """
    Decompose every column of a DataFrame independently.

    Args:
        frame: One series per column, sharing the index
        config: Run configuration applied to every column
        cache: Optional kernel weight cache shared between the columns

    Returns:
        Dict mapping column name to its DecompositionResult
    """
    decomposer = X11Decomposer(config, cache=cache)
    results = {}
    for column in frame.columns:
        logger.info(f"Decomposing column '{column}'")
        results[column] = decomposer.decompose(frame[column])
    return results
