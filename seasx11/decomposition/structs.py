"""Configuration and result containers of the decomposition engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import logging

import numpy as np
import pandas as pd

from seasx11.utils.error_handling import ConfigurationError, DegeneracyRecord

logger = logging.getLogger(__name__)


class DecompositionMode(Enum):
    """How data, trend-cycle, seasonal and irregular combine."""
    ADDITIVE = "additive"
    MULTIPLICATIVE = "multiplicative"
    LOG_ADDITIVE = "log-additive"

    @classmethod
    def parse(cls, value: Any) -> "DecompositionMode":
        """Accept enum members, canonical values and the usual short names."""
        if isinstance(value, cls):
            return value
        aliases = {
            "additive": cls.ADDITIVE,
            "add": cls.ADDITIVE,
            "none": cls.ADDITIVE,
            "multiplicative": cls.MULTIPLICATIVE,
            "mult": cls.MULTIPLICATIVE,
            "log-additive": cls.LOG_ADDITIVE,
            "logadditive": cls.LOG_ADDITIVE,
            "logadd": cls.LOG_ADDITIVE,
            "log": cls.LOG_ADDITIVE,
        }
        key = str(value).strip().lower()
        if key not in aliases:
            raise ConfigurationError(
                f"Unknown decomposition mode: {value}. "
                f"Supported modes are: {[m.value for m in cls]}"
            )
        return aliases[key]

    @property
    def is_multiplicative(self) -> bool:
        return self is DecompositionMode.MULTIPLICATIVE

    @property
    def is_log(self) -> bool:
        return self is DecompositionMode.LOG_ADDITIVE

    @property
    def xbar(self) -> float:
        """Neutral value of seasonal factors and irregulars."""
        return 1.0 if self.is_multiplicative else 0.0

    @property
    def xfactor(self) -> float:
        """Scale of growth rates (percent for multiplicative data)."""
        return 100.0 if self.is_multiplicative else 1.0


SEASONAL_MA_CHOICES = ((3, 3), (3, 5), (3, 9))


@dataclass(frozen=True)
class X11Config:
    """
    Settings of one decomposition run.

    Attributes:
        period: Length of the seasonal cycle (12 for monthly data)
        mode: Decomposition mode
        henderson_span: Fixed Henderson span; bypasses the I/C ratio rule
        seasonal_ma: Fixed final seasonal moving average, e.g. (3, 5);
            bypasses the moving seasonality ratio rule
        trend_half_width: Mirror half-width of the trend-cycle filters
        seasonal_half_width: Mirror half-width of the seasonal moving averages
        outlier_bandwidth: Full width of the outlier detection window
            (default 5 * period)
        keep_intermediate: Keep every intermediate table (B1 ... E11)
    """
    period: int
    mode: DecompositionMode = DecompositionMode.LOG_ADDITIVE
    henderson_span: Optional[int] = None
    seasonal_ma: Optional[Tuple[int, ...]] = None
    trend_half_width: Optional[int] = None
    seasonal_half_width: Optional[int] = None
    outlier_bandwidth: Optional[float] = None
    keep_intermediate: bool = False

    def __post_init__(self):
        object.__setattr__(self, "mode", DecompositionMode.parse(self.mode))
        if self.seasonal_ma is not None:
            spans = self.seasonal_ma
            if isinstance(spans, (int, float, np.integer)):
                spans = (spans,)
            object.__setattr__(self, "seasonal_ma", tuple(int(s) for s in spans))
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError for settings that cannot be run."""
        if isinstance(self.period, bool) or int(self.period) != self.period or self.period < 1:
            raise ConfigurationError(
                f"The period must be a positive integer, got {self.period}"
            )
        object.__setattr__(self, "period", int(self.period))
        if self.period < 2:
            raise ConfigurationError("A seasonal cycle needs a period of at least 2")
        if self.henderson_span is not None:
            span = self.henderson_span
            if int(span) != span or span < 3 or int(span) % 2 != 1:
                raise ConfigurationError(
                    f"henderson_span must be an odd integer >= 3, got {span}"
                )
        if self.seasonal_ma is not None:
            if not self.seasonal_ma or any(s < 1 for s in self.seasonal_ma):
                raise ConfigurationError(
                    f"seasonal_ma spans must be positive integers, got {self.seasonal_ma}"
                )
            if (sum(self.seasonal_ma) - len(self.seasonal_ma)) % 2 != 0:
                raise ConfigurationError(
                    f"seasonal_ma {self.seasonal_ma} does not produce a centered filter"
                )
        for name in ("trend_half_width", "seasonal_half_width"):
            value = getattr(self, name)
            if value is not None and (int(value) != value or value < 0):
                raise ConfigurationError(f"{name} must be a non-negative integer, got {value}")
        if self.outlier_bandwidth is not None and not self.outlier_bandwidth > 0:
            raise ConfigurationError(
                f"outlier_bandwidth must be positive, got {self.outlier_bandwidth}"
            )

    @property
    def bandwidth(self) -> float:
        return self.outlier_bandwidth if self.outlier_bandwidth is not None else 5 * self.period

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "period": self.period,
            "mode": self.mode.value,
            "henderson_span": self.henderson_span,
            "seasonal_ma": list(self.seasonal_ma) if self.seasonal_ma else None,
            "trend_half_width": self.trend_half_width,
            "seasonal_half_width": self.seasonal_half_width,
            "outlier_bandwidth": self.outlier_bandwidth,
            "keep_intermediate": self.keep_intermediate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "X11Config":
        """Create from dictionary."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        unknown = set(data) - set(known)
        if unknown:
            raise ConfigurationError(f"Unknown X11Config settings: {sorted(unknown)}")
        if "period" not in known:
            raise ConfigurationError("X11Config requires a period")
        return cls(**known)


def freeze(values: np.ndarray) -> np.ndarray:
    """Read-only float copy of a series."""
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class SpanChoice:
    """Diagnostics of one application of the I/C ratio rule."""
    step: str
    ibar: float
    cbar: float
    ic_ratio: float
    henderson_span: int
    overridden: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "ibar": self.ibar,
            "cbar": self.cbar,
            "ic_ratio": self.ic_ratio,
            "henderson_span": self.henderson_span,
            "overridden": self.overridden,
        }


@dataclass(frozen=True)
class SeasonalChoice:
    """Diagnostics of the moving seasonality ratio rule."""
    step: str
    ibar: Tuple[float, ...]
    sbar: Tuple[float, ...]
    ratios: Tuple[float, ...]
    years: Tuple[int, ...]
    msr: float
    seasonal_ma: Tuple[int, ...]
    overridden: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "ibar": list(self.ibar),
            "sbar": list(self.sbar),
            "ratios": list(self.ratios),
            "years": list(self.years),
            "msr": self.msr,
            "seasonal_ma": list(self.seasonal_ma),
            "overridden": self.overridden,
        }


@dataclass(frozen=True, eq=False)
class StageOutput:
    """
    Named bundle of the series one stage produces.

    Attributes:
        stage: 'B', 'C' or 'D'
        trend: Trend-cycle
        si: SI differences or ratios (data against the trend-cycle)
        raw_seasonal: Seasonal moving average of the SI before drift removal
        seasonal: Seasonal factor
        seasonally_adjusted: Data adjusted by the seasonal factor
        irregular: Irregular component
        weights: Outlier weights of the irregular (None in stage D)
        flags: Points flagged as extreme (None in stage D)
        corrected: Data corrected for extremes, input of the next stage
        span_choices: I/C ratio diagnostics
        seasonal_choice: Moving seasonality diagnostics (stage D only)
    """
    stage: str
    trend: np.ndarray
    si: np.ndarray
    raw_seasonal: np.ndarray
    seasonal: np.ndarray
    seasonally_adjusted: np.ndarray
    irregular: np.ndarray
    weights: Optional[np.ndarray] = None
    flags: Optional[np.ndarray] = None
    corrected: Optional[np.ndarray] = None
    span_choices: Tuple[SpanChoice, ...] = ()
    seasonal_choice: Optional[SeasonalChoice] = None

    def __post_init__(self):
        for name in ("trend", "si", "raw_seasonal", "seasonal", "seasonally_adjusted",
                     "irregular", "weights", "corrected"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, freeze(value))
        if self.flags is not None:
            flags = np.array(self.flags, dtype=bool)
            flags.setflags(write=False)
            object.__setattr__(self, "flags", flags)

    @property
    def henderson_span(self) -> int:
        """The span that produced this stage's published trend-cycle."""
        return self.span_choices[-1].henderson_span

    def to_frame(self, index: Optional[pd.Index] = None) -> pd.DataFrame:
        columns = {
            "trend": self.trend,
            "si": self.si,
            "raw_seasonal": self.raw_seasonal,
            "seasonal": self.seasonal,
            "seasonally_adjusted": self.seasonally_adjusted,
            "irregular": self.irregular,
        }
        if self.weights is not None:
            columns["weights"] = self.weights
            columns["flags"] = self.flags
        if self.corrected is not None:
            columns["corrected"] = self.corrected
        return pd.DataFrame(columns, index=index)


@dataclass(frozen=True, eq=False)
class DecompositionResult:
    """
    Published output of a decomposition run.

    The final series come from stage D, the "modified for extremes" series
    from stage E. Stage bundles and diagnostics are kept for reproducibility.
    """
    method: str
    config: X11Config
    data: np.ndarray
    trend: np.ndarray
    seasonal: np.ndarray
    seasonally_adjusted: np.ndarray
    irregular: np.ndarray
    si: np.ndarray
    modified_seasonally_adjusted: np.ndarray
    modified_irregular: np.ndarray
    robust_seasonally_adjusted: Optional[np.ndarray] = None
    trend_seasonal: Optional[np.ndarray] = None
    index: Optional[pd.Index] = None
    stages: Tuple[StageOutput, ...] = ()
    degeneracies: Tuple[DegeneracyRecord, ...] = ()
    tables: Dict[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("data", "trend", "seasonal", "seasonally_adjusted", "irregular", "si",
                     "modified_seasonally_adjusted", "modified_irregular",
                     "robust_seasonally_adjusted", "trend_seasonal"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, freeze(value))

    @property
    def period(self) -> int:
        return self.config.period

    @property
    def mode(self) -> DecompositionMode:
        return self.config.mode

    def stage(self, name: str) -> StageOutput:
        """Stage bundle by name ('B', 'C' or 'D')."""
        for stage in self.stages:
            if stage.stage == name:
                return stage
        raise KeyError(f"No stage '{name}' in this result")

    @property
    def span_choices(self) -> List[SpanChoice]:
        return [choice for stage in self.stages for choice in stage.span_choices]

    @property
    def seasonal_choice(self) -> Optional[SeasonalChoice]:
        for stage in self.stages:
            if stage.seasonal_choice is not None:
                return stage.seasonal_choice
        return None

    @property
    def diagnostics(self) -> Dict[str, Dict[str, Any]]:
        """Per-step diagnostic scalars keyed by table name (B7, C7, D7, D10, D12)."""
        result = {choice.step: choice.to_dict() for choice in self.span_choices}
        seasonal = self.seasonal_choice
        if seasonal is not None:
            result[seasonal.step] = seasonal.to_dict()
        return result

    def to_frame(self) -> pd.DataFrame:
        """Published series as a DataFrame indexed like the input."""
        columns = {
            "data": self.data,
            "trend": self.trend,
            "seasonal": self.seasonal,
            "seasonally_adjusted": self.seasonally_adjusted,
            "irregular": self.irregular,
            "si": self.si,
            "modified_seasonally_adjusted": self.modified_seasonally_adjusted,
            "modified_irregular": self.modified_irregular,
        }
        if self.robust_seasonally_adjusted is not None:
            columns["robust_seasonally_adjusted"] = self.robust_seasonally_adjusted
        if self.trend_seasonal is not None:
            columns["trend_seasonal"] = self.trend_seasonal
        return pd.DataFrame(columns, index=self.index)

    def to_dict(self) -> Dict[str, Any]:
        """Run settings and diagnostics for reporting."""
        return {
            "method": self.method,
            "config": self.config.to_dict(),
            "nobs": int(self.data.size),
            "diagnostics": self.diagnostics,
            "degeneracies": [record.to_dict() for record in self.degeneracies],
        }
