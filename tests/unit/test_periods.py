"""
Unit tests for splitting a series by position in the cycle and joining it back.
"""

import numpy as np
import pytest

from seasx11.filters.periods import join_periods, split_periods
from seasx11.utils.error_handling import ConfigurationError


class TestSplitPeriods:
    """Tests for split_periods."""

    def test_columns_hold_one_position_each(self):
        columns = split_periods(np.arange(24), 12)
        assert columns.shape == (2, 12)
        np.testing.assert_array_equal(columns[:, 0], [0, 12])
        np.testing.assert_array_equal(columns[:, 11], [11, 23])

    def test_incomplete_last_cycle_is_padded(self):
        columns = split_periods(np.arange(10), 4)
        assert columns.shape == (3, 4)
        assert np.isnan(columns[2, 2:]).all()
        np.testing.assert_array_equal(columns[2, :2], [8, 9])

    @pytest.mark.parametrize("period", [0, -2, 2.5])
    def test_invalid_period(self, period):
        with pytest.raises(ConfigurationError):
            split_periods(np.arange(10), period)


class TestJoinPeriods:
    """Tests for join_periods."""

    def test_drops_trailing_padding(self):
        series = np.arange(10, dtype=float)
        np.testing.assert_array_equal(join_periods(split_periods(series, 4)), series)

    def test_target_length_truncates(self):
        columns = split_periods(np.arange(12, dtype=float), 4)
        np.testing.assert_array_equal(join_periods(columns, 6), np.arange(6))

    def test_target_length_pads(self):
        columns = split_periods(np.arange(4, dtype=float), 4)
        joined = join_periods(columns, 6)
        assert joined.size == 6
        assert np.isnan(joined[4:]).all()

    def test_keeps_inner_missing_values(self):
        series = np.array([1.0, np.nan, 3.0, 4.0, 5.0])
        joined = join_periods(split_periods(series, 2))
        np.testing.assert_array_equal(np.isnan(joined), np.isnan(series))

    def test_all_missing(self):
        assert join_periods(np.full((2, 3), np.nan)).size == 0
