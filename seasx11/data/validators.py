"""Input checks run before any decomposition stage."""

from typing import TYPE_CHECKING, Any, Dict, List
from dataclasses import dataclass, field
import logging

import numpy as np

from seasx11.utils.error_handling import ConfigurationError, InsufficientDataError

if TYPE_CHECKING:
    from seasx11.decomposition.structs import X11Config

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    """Summary of a series checked against a run configuration."""
    nobs: int
    n_valid: int
    n_missing: int
    n_edge_missing: int
    period: int
    mode: str
    cycles: float
    warnings: List[str] = field(default_factory=list)

    @property
    def has_gaps(self) -> bool:
        return self.n_missing > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "nobs": self.nobs,
            "n_valid": self.n_valid,
            "n_missing": self.n_missing,
            "n_edge_missing": self.n_edge_missing,
            "period": self.period,
            "mode": self.mode,
            "cycles": self.cycles,
            "warnings": self.warnings,
        }


class SeriesValidator:
    """Rejects inputs the engine cannot decompose, before any work is done."""

    def validate(self, values: np.ndarray, config: "X11Config") -> ValidationReport:
        """
        Check a series against a run configuration.

        Args:
            values: 1-D float series, missing values as NaN
            config: Run configuration

        Returns:
            ValidationReport

        Raises:
            InsufficientDataError: Fewer than two full cycles of data, or
                fewer than two valid observations
            ConfigurationError: Non-finite values, non-positive data in a
                multiplicative or log-additive run, or overrides that do
                not fit the series
        """
        values = np.asarray(values, dtype=float)
        nobs = values.size
        period = config.period
        missing = np.isnan(values)
        n_valid = int((~missing).sum())

        if np.isinf(values).any():
            raise ConfigurationError("The series contains infinite values")

        if n_valid < 2:
            raise InsufficientDataError(
                f"At least two valid observations are required, got {n_valid}"
            )
        if nobs < 2 * period:
            raise InsufficientDataError(
                f"The series has {nobs} observations; at least two full cycles "
                f"({2 * period}) are required for period {period}"
            )

        if config.mode.is_multiplicative or config.mode.is_log:
            valid = values[~missing]
            if np.any(valid <= 0):
                raise ConfigurationError(
                    f"Data must be strictly positive for {config.mode.value} decomposition"
                )

        if config.henderson_span is not None and config.henderson_span > nobs:
            raise ConfigurationError(
                f"henderson_span {config.henderson_span} exceeds the series length {nobs}"
            )
        for name in ("trend_half_width", "seasonal_half_width"):
            value = getattr(config, name)
            if value is not None and value > nobs:
                raise ConfigurationError(
                    f"{name} {value} exceeds the series length {nobs}"
                )
        if config.seasonal_ma is not None:
            terms = sum(config.seasonal_ma) - len(config.seasonal_ma) + 1
            years = -(-nobs // period)
            if terms > 2 * years + 1:
                raise ConfigurationError(
                    f"seasonal_ma {config.seasonal_ma} spans {terms} cycles, "
                    f"the series only has {years}"
                )

        warnings: List[str] = []
        edge_missing = 0
        if missing.any():
            valid_idx = np.flatnonzero(~missing)
            edge_missing = int(valid_idx[0] + (nobs - 1 - valid_idx[-1]))
            warnings.append(
                f"{int(missing.sum())} missing values will be interpolated "
                f"({edge_missing} at the edges)"
            )
        if n_valid < 3 * period:
            warnings.append(
                f"Only {n_valid / period:.1f} cycles of valid data; "
                f"seasonal factors will be dominated by edge treatment"
            )

        report = ValidationReport(
            nobs=nobs,
            n_valid=n_valid,
            n_missing=int(missing.sum()),
            n_edge_missing=edge_missing,
            period=period,
            mode=config.mode.value,
            cycles=nobs / period,
            warnings=warnings,
        )
        for message in warnings:
            logger.warning(message)
        return report
