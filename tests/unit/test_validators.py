"""
Unit tests for SeriesValidator.
"""

import numpy as np
import pytest

from seasx11.data.validators import SeriesValidator, ValidationReport
from seasx11.decomposition.structs import X11Config
from seasx11.utils.error_handling import ConfigurationError, InsufficientDataError


@pytest.fixture
def validator():
    return SeriesValidator()


@pytest.fixture
def monthly_values():
    t = np.arange(72)
    return 100 + 10 * np.sin(2 * np.pi * t / 12)


class TestSeriesValidator:
    """Tests for validate."""

    def test_valid_series(self, validator, monthly_values):
        report = validator.validate(monthly_values, X11Config(period=12))
        assert isinstance(report, ValidationReport)
        assert report.nobs == 72
        assert report.n_missing == 0
        assert report.cycles == 6.0
        assert report.mode == "log-additive"
        assert not report.has_gaps
        assert report.warnings == []

    def test_too_short(self, validator):
        with pytest.raises(InsufficientDataError):
            validator.validate(np.ones(23), X11Config(period=12))

    def test_too_few_valid_values(self, validator):
        values = np.full(30, np.nan)
        values[3] = 1.0
        with pytest.raises(InsufficientDataError):
            validator.validate(values, X11Config(period=12))

    def test_infinite_values(self, validator, monthly_values):
        monthly_values[5] = np.inf
        with pytest.raises(ConfigurationError):
            validator.validate(monthly_values, X11Config(period=12, mode="additive"))

    @pytest.mark.parametrize("mode", ["multiplicative", "log-additive"])
    def test_non_positive_data(self, validator, monthly_values, mode):
        monthly_values[10] = -1.0
        with pytest.raises(ConfigurationError):
            validator.validate(monthly_values, X11Config(period=12, mode=mode))

    def test_additive_accepts_negative_data(self, validator, monthly_values):
        report = validator.validate(monthly_values - 200, X11Config(period=12, mode="additive"))
        assert report.n_valid == 72

    def test_henderson_span_longer_than_series(self, validator):
        with pytest.raises(ConfigurationError):
            validator.validate(np.ones(24), X11Config(period=12, henderson_span=25))

    def test_half_width_longer_than_series(self, validator):
        with pytest.raises(ConfigurationError):
            validator.validate(np.ones(24), X11Config(period=12, trend_half_width=30))

    def test_seasonal_ma_longer_than_series(self, validator):
        with pytest.raises(ConfigurationError):
            validator.validate(np.ones(24), X11Config(period=12, seasonal_ma=(3, 9)))

    def test_gaps_are_reported(self, validator, monthly_values):
        monthly_values[[0, 20, 21]] = np.nan
        report = validator.validate(monthly_values, X11Config(period=12))
        assert report.has_gaps
        assert report.n_missing == 3
        assert report.n_edge_missing == 1
        assert any("missing values" in w for w in report.warnings)

    def test_short_history_warning(self, validator):
        report = validator.validate(np.ones(30), X11Config(period=12))
        assert any("cycles of valid data" in w for w in report.warnings)

