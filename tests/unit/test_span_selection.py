"""
Unit tests for the I/C ratio and moving seasonality ratio rules.
"""

import math

import numpy as np
import pytest

from seasx11.decomposition.span_selection import (
    abs_growth,
    correction_factors,
    henderson_regimes,
    henderson_trend,
    moving_seasonality_ratio,
    odd_dn,
    odd_up,
    overall_seasonality_ratio,
    select_henderson_span,
    select_seasonal_ma,
)


class TestOddRounding:
    """Tests for odd_up and odd_dn."""

    @pytest.mark.parametrize("value,expected", [(12, 13), (13, 13), (8, 9), (7.2, 9), (2.5, 3)])
    def test_odd_up(self, value, expected):
        assert odd_up(value) == expected

    @pytest.mark.parametrize("value,expected", [(24, 23), (23, 23), (23.5, 23), (8, 7)])
    def test_odd_dn(self, value, expected):
        assert odd_dn(value) == expected


class TestAbsGrowth:
    """Tests for abs_growth."""

    def test_additive_differences(self):
        growth = abs_growth([1.0, 3.0, 6.0, 2.0], 1)
        assert np.isnan(growth[0])
        np.testing.assert_allclose(growth[1:], [2.0, 3.0, 4.0])

    def test_multiplicative_percent(self):
        growth = abs_growth([100.0, 110.0, 99.0], 1, multiplicative=True)
        np.testing.assert_allclose(growth[1:], [10.0, 10.0])

    def test_lag_beyond_length(self):
        assert np.isnan(abs_growth([1.0, 2.0], 5)).all()


class TestHendersonSpanRule:
    """Tests for the I/C ratio regimes."""

    def test_monthly_regimes(self):
        assert henderson_regimes(12) == (9, 13, 23)

    def test_quarterly_regimes(self):
        assert henderson_regimes(4) == (3, 5, 7)

    @pytest.mark.parametrize(
        "ratio,allow_long,expected",
        [
            (0.5, True, 9),
            (1.0, True, 9),
            (2.0, True, 13),
            (3.5, True, 13),
            (4.0, True, 23),
            (4.0, False, 13),
            (float("inf"), True, 23),
            (float("nan"), True, 13),
        ],
    )
    def test_select_henderson_span(self, ratio, allow_long, expected):
        assert select_henderson_span(ratio, 12, allow_long) == expected


class TestHendersonTrend:
    """Tests for henderson_trend."""

    def test_smooth_series_gets_short_span(self):
        """A straight line has no irregular, so the I/C ratio is zero."""
        sa = 100.0 + 0.5 * np.arange(120)
        trend, choice, records = henderson_trend(sa, 12, False, "B7")
        assert choice.henderson_span == 9
        assert choice.ic_ratio == pytest.approx(0.0, abs=1e-8)
        assert not choice.overridden
        np.testing.assert_allclose(trend[12:-12], sa[12:-12], atol=1e-8)

    def test_constant_series_records_degenerate_ratio(self):
        sa = np.full(120, 50.0)
        trend, choice, records = henderson_trend(sa, 12, False, "C7")
        assert choice.ic_ratio == 0.0
        assert choice.henderson_span == 9
        assert any(r.quantity == "I/C ratio" and r.stage == "C7" for r in records)
        np.testing.assert_allclose(trend, sa)

    def test_noisy_series_gets_long_span(self):
        rng = np.random.default_rng(0)
        sa = 100.0 + 0.01 * np.arange(120) + rng.normal(scale=5.0, size=120)
        _, choice, _ = henderson_trend(sa, 12, False, "D7")
        assert choice.ic_ratio > 3.5
        assert choice.henderson_span == 23

    def test_long_span_disabled(self):
        rng = np.random.default_rng(0)
        sa = 100.0 + 0.01 * np.arange(120) + rng.normal(scale=5.0, size=120)
        _, choice, _ = henderson_trend(sa, 12, False, "B7", allow_long=False)
        assert choice.henderson_span == 13

    def test_override(self):
        sa = 100.0 + 0.5 * np.arange(120)
        _, choice, _ = henderson_trend(sa, 12, False, "D12", span_override=17)
        assert choice.henderson_span == 17
        assert choice.overridden

    def test_short_series_falls_back_to_full_sample(self):
        """Two cycles leave nothing once the edge cycles are left out."""
        rng = np.random.default_rng(1)
        sa = 100.0 + rng.normal(size=24)
        _, choice, records = henderson_trend(sa, 12, False, "B7")
        assert any(r.quantity == "Ibar" for r in records)
        assert not math.isnan(choice.ibar)

    def test_multiplicative_uses_percent_changes(self):
        sa = 100.0 * 1.01 ** np.arange(120)
        _, choice, _ = henderson_trend(sa, 12, True, "B7")
        # 1 percent a month, flattened a little by the mirrored edges
        assert 0.8 < choice.cbar < 1.1


class TestMovingSeasonality:
    """Tests for the correction factors and the MSR rule."""

    def test_correction_factors_closed_forms(self):
        cs, fis = correction_factors(np.array([4, 5, 6]))
        np.testing.assert_allclose(cs, [3.0, 2 * math.sqrt(2) / (1 + math.sqrt(3)),
                                        5 * math.sqrt(6) / (8 + math.sqrt(2))])
        np.testing.assert_allclose(fis[0], 90 / (2 * math.sqrt(842) + 21 * math.sqrt(2)))

    def test_correction_factors_general_formula(self):
        cs, fis = correction_factors(np.array([10]))
        expected_cs = math.sqrt(2) * 10 / (6 * math.sqrt(2) + 4 * math.sqrt(3))
        expected_fis = 5 * math.sqrt(6) * 10 / (6 * math.sqrt(149) + 20 * math.sqrt(6))
        assert cs[0] == pytest.approx(expected_cs)
        assert fis[0] == pytest.approx(expected_fis)

    def test_few_years_use_four_year_factors(self):
        cs, fis = correction_factors(np.array([2, 4]))
        assert cs[0] == cs[1]
        assert fis[0] == fis[1]

    @pytest.mark.parametrize(
        "msr,expected",
        [(2.9, (3, 3)), (3.0, (3, 5)), (6.0, (3, 5)), (6.01, (3, 9)), (float("nan"), (3, 9))],
    )
    def test_select_seasonal_ma(self, msr, expected):
        assert select_seasonal_ma(msr) == expected

    def test_steadily_moving_seasonality_gets_short_average(self):
        """Seasonal amplitude growing every year, no irregular: 3x3."""
        t = np.arange(120)
        pattern = np.sin(2 * np.pi * (t % 12) / 12 + 0.3)
        si = (t // 12 + 1) * pattern
        choice, records = moving_seasonality_ratio(si, 12, False)
        assert choice.msr < 3.0
        assert choice.seasonal_ma == (3, 3)
        assert choice.years == tuple([9] * 12)
        assert records == []

    def test_override(self):
        si = np.random.default_rng(2).normal(size=120)
        choice, _ = moving_seasonality_ratio(si, 12, False, ma_override=[3, 9])
        assert choice.seasonal_ma == (3, 9)
        assert choice.overridden

    def test_few_years_are_recorded(self):
        si = np.random.default_rng(3).normal(size=48)
        choice, records = moving_seasonality_ratio(si, 12, False)
        assert any(r.quantity == "correction factors" for r in records)
        assert choice.years == tuple([3] * 12)

    def test_fixed_seasonality_records_degenerate_ratio(self):
        si = np.tile(np.linspace(-1.0, 1.0, 12), 10)
        choice, records = moving_seasonality_ratio(si, 12, False)
        assert choice.msr == 0.0
        assert choice.seasonal_ma == (3, 3)
        assert any(r.quantity == "moving seasonality ratio" for r in records)


class TestOverallSeasonalityRatio:
    """Tests for combining the per-position ratios into one MSR."""

    def test_least_squares_combination(self):
        # a = Ibar*N = [4, 12], b = Sbar*N = [4, 6]: (a.b)/(b.b) = 88/52
        msr, record = overall_seasonality_ratio([1.0, 2.0], [1.0, 1.0], [4, 6])
        assert msr == pytest.approx(88.0 / 52.0)
        assert msr != pytest.approx(16.0 / 10.0)
        assert record is None

    def test_missing_positions_are_left_out(self):
        msr, _ = overall_seasonality_ratio([1.0, 2.0, np.nan], [1.0, 1.0, 0.5], [4, 6, 6])
        assert msr == pytest.approx(88.0 / 52.0)

    def test_equal_ratios_give_that_ratio(self):
        msr, _ = overall_seasonality_ratio([2.0, 5.0, 8.0], [0.5, 1.25, 2.0], [9, 8, 8])
        assert msr == pytest.approx(4.0)

    def test_vanishing_sbar_with_moving_irregular(self):
        msr, record = overall_seasonality_ratio([1.0, 2.0], [0.0, 0.0], [5, 5])
        assert msr == math.inf
        assert record.quantity == "moving seasonality ratio"

    def test_matches_seasonal_choice(self):
        si = np.random.default_rng(8).normal(size=96) + np.tile(np.linspace(-1.0, 1.0, 12), 8)
        choice, _ = moving_seasonality_ratio(si, 12, False)
        msr, _ = overall_seasonality_ratio(choice.ibar, choice.sbar, choice.years)
        assert choice.msr == pytest.approx(msr)
        assert choice.seasonal_ma == select_seasonal_ma(msr)
