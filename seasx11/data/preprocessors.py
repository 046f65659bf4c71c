"""Input preparation for the decomposition engine."""

from typing import Optional, Tuple
import logging

import numpy as np
import pandas as pd

from seasx11.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)


def fill_holes(data) -> np.ndarray:
    """
    Fill inner gaps column-wise by linear interpolation.

    Missing values at the edges of a column are left untouched, no
    extrapolation is performed.

    Args:
        data: 1-D series or 2-D array of columns

    Returns:
        Array of the same shape with inner gaps filled
    """
    arr = np.array(data, dtype=float)
    was_1d = arr.ndim == 1
    if was_1d:
        arr = arr.reshape(-1, 1)

    valid = ~np.isnan(arr)
    if valid.all():
        return arr[:, 0] if was_1d else arr

    x = np.arange(arr.shape[0])
    for c in range(arr.shape[1]):
        keep = valid[:, c]
        if keep.sum() < 2:
            continue
        first, last = np.flatnonzero(keep)[[0, -1]]
        inner = ~keep & (x > first) & (x < last)
        arr[inner, c] = np.interp(x[inner], x[keep], arr[keep, c])

    return arr[:, 0] if was_1d else arr


class SeriesPreprocessor:
    """Converts caller input into the plain arrays the engine works on."""

    def to_array(self, data) -> Tuple[np.ndarray, Optional[pd.Index]]:
        """
        Extract the values (and index, if any) of a single series.

        Args:
            data: pandas Series, single-column DataFrame, numpy array or sequence

        Returns:
            Tuple of (float values, index or None)
        """
        index = None
        if isinstance(data, pd.DataFrame):
            if data.shape[1] != 1:
                raise ConfigurationError(
                    f"Expected a single series, got a frame with {data.shape[1]} columns; "
                    f"use decompose_frame for several series"
                )
            data = data.iloc[:, 0]
        if isinstance(data, pd.Series):
            index = data.index
            values = pd.to_numeric(data, errors="coerce").to_numpy(dtype=float)
        else:
            values = np.asarray(data, dtype=float)
        if values.ndim == 2 and 1 in values.shape:
            values = values.ravel()
        if values.ndim != 1:
            raise ConfigurationError(
                f"Expected a vector, got an array of shape {values.shape}"
            )
        return values.copy(), index

    def handle_missing_values(
        self,
        values: np.ndarray,
        strategy: str = "interpolate"
    ) -> np.ndarray:
        """
        Handle missing values using specified strategy.

        Args:
            values: Series with potential missing values
            strategy: Only 'interpolate' (inner gaps linearly, edge gaps with
                the nearest valid value)

        Returns:
            Copy with missing values handled

        Raises:
            ValueError: If strategy is unknown
        """
        series = pd.Series(values, dtype=float)

        if strategy == "interpolate":
            # edge gaps take the nearest valid value
            return series.interpolate(method="linear", limit_direction="both").to_numpy()
        else:
            raise ValueError(f"Unknown strategy: {strategy}")

    def log_transform(self, values: np.ndarray) -> np.ndarray:
        """Natural log of strictly positive data."""
        valid = values[~np.isnan(values)]
        if np.any(valid <= 0):
            raise ConfigurationError(
                "Data must be strictly positive for log-additive decomposition"
            )
        return np.log(values)

    def exp_transform(self, values: np.ndarray) -> np.ndarray:
        return np.exp(values)
