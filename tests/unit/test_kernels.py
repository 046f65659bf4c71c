"""
Unit tests for kernel weights and the kernel cache.
"""

import numpy as np
import pytest

from seasx11.filters.kernels import (
    FINITE_KERNELS,
    INFINITE_KERNELS,
    Bongard,
    CenteredMovingAverage,
    FiniteKernel,
    Henderson,
    InfiniteKernel,
    KernelCache,
    MovingAverage,
    RehommeLadiray,
    Spencer,
    kernel_from_name,
    kernel_weights,
    rehomme_ladiray_weights,
)
from seasx11.utils.error_handling import ConfigurationError, KernelConfigurationError


class TestMovingAverages:
    """Tests for simple and centered moving averages."""

    def test_simple_moving_average_is_uniform(self):
        """MA(5) has five equal weights."""
        np.testing.assert_allclose(MovingAverage(5).weights(), np.full(5, 0.2))

    def test_3x3_seasonal_moving_average(self):
        """Composing two 3-term averages gives weights 1, 2, 3, 2, 1 over 9."""
        w = MovingAverage((3, 3)).weights()
        np.testing.assert_allclose(w, np.array([1, 2, 3, 2, 1]) / 9)

    def test_3x5_seasonal_moving_average(self):
        """The 3x5 average has seven terms: 1, 2, 3, 3, 3, 2, 1 over 15."""
        w = MovingAverage((3, 5)).weights()
        np.testing.assert_allclose(w, np.array([1, 2, 3, 3, 3, 2, 1]) / 15)

    def test_2x12_centered_moving_average(self):
        """An even span gets half weights on both ends."""
        w = CenteredMovingAverage(12).weights()
        assert w.size == 13
        assert w[0] == pytest.approx(1 / 24)
        assert w[-1] == pytest.approx(1 / 24)
        np.testing.assert_allclose(w[1:-1], np.full(11, 1 / 12))

    def test_odd_centered_span_is_plain_average(self):
        """An odd span needs no half weights."""
        np.testing.assert_allclose(CenteredMovingAverage(5).weights(), np.full(5, 0.2))

    def test_spans_are_stored_as_tuple(self):
        """A scalar span is wrapped into a tuple of floats."""
        assert MovingAverage(3).spans == (3.0,)
        assert MovingAverage((3, 5)).spans == (3.0, 5.0)

    @pytest.mark.parametrize("span", [0, -3, float("nan")])
    def test_non_positive_span_rejected(self, span):
        """Spans must be positive and finite."""
        with pytest.raises(KernelConfigurationError):
            MovingAverage(span)

    def test_empty_spans_rejected(self):
        """At least one span is required."""
        with pytest.raises(KernelConfigurationError):
            CenteredMovingAverage(())


class TestHendersonFamily:
    """Tests for Henderson, Bongard and Rehomme-Ladiray weights."""

    def test_henderson_13_matches_published_weights(self):
        """The 13-term Henderson weights are the classical ones."""
        expected_half = [-0.01935, -0.02786, 0.0, 0.06549, 0.14736, 0.21434, 0.24006]
        expected = np.array(expected_half + expected_half[-2::-1])
        np.testing.assert_allclose(Henderson(13).weights(), expected, atol=5e-5)

    @pytest.mark.parametrize("terms", [5, 9, 13, 23])
    def test_henderson_reproduces_cubics(self, terms):
        """Henderson weights sum to one and annihilate lags up to degree 3."""
        w = Henderson(terms).weights()
        lags = np.arange(terms) - (terms - 1) / 2
        assert w.sum() == pytest.approx(1.0)
        assert np.dot(w, lags) == pytest.approx(0.0, abs=1e-10)
        assert np.dot(w, lags ** 2) == pytest.approx(0.0, abs=1e-8)
        assert np.dot(w, lags ** 3) == pytest.approx(0.0, abs=1e-8)

    def test_henderson_is_symmetric(self):
        """Weights read the same in both directions."""
        w = Henderson(23).weights()
        np.testing.assert_allclose(w, w[::-1], atol=1e-12)

    @pytest.mark.parametrize("terms", [12, 1, 2])
    def test_henderson_rejects_invalid_terms(self, terms):
        """Henderson filters need an odd number of terms of at least 3."""
        with pytest.raises(KernelConfigurationError):
            Henderson(terms).weights()

    def test_bongard_sums_to_one(self):
        """Bongard weights are normalized and symmetric."""
        w = Bongard(9).weights()
        assert w.sum() == pytest.approx(1.0)
        np.testing.assert_allclose(w, w[::-1], atol=1e-12)

    def test_rehomme_ladiray_extremes(self):
        """h=1 gives Henderson, h=0 gives Bongard."""
        np.testing.assert_allclose(
            rehomme_ladiray_weights(13, 3, 1.0), Henderson(13).weights(), atol=1e-10
        )
        np.testing.assert_allclose(
            rehomme_ladiray_weights(13, 3, 0.0), Bongard(13).weights(), atol=1e-10
        )

    def test_rehomme_ladiray_degree_one_is_moving_average(self):
        """Minimal sum of squares under the sum constraint is the plain average."""
        np.testing.assert_allclose(rehomme_ladiray_weights(7, 1, 0.0), np.full(7, 1 / 7))

    def test_rehomme_ladiray_rejects_large_degree(self):
        """The degree cannot exceed the number of terms."""
        with pytest.raises(KernelConfigurationError):
            RehommeLadiray(5, 7).weights()


class TestOtherKernels:
    """Tests for Spencer and the named kernel families."""

    def test_spencer_15_weights(self):
        """Spencer's 15-term average has its classical integer weights."""
        expected = np.array([-3, -6, -5, 3, 21, 46, 67, 74, 67, 46, 21, 3, -5, -6, -3]) / 320
        np.testing.assert_allclose(Spencer().weights(), expected)

    def test_spencer_repeat(self):
        """Repeating Spencer convolves the filter with itself."""
        assert Spencer(2).weights().size == 29

    def test_spencer_rejects_zero_repeat(self):
        with pytest.raises(KernelConfigurationError):
            Spencer(0)

    @pytest.mark.parametrize("name", FINITE_KERNELS)
    def test_finite_kernels_are_normalized(self, name):
        """Every finite-support kernel has odd length and sums to one."""
        w = FiniteKernel(name, (7,)).weights()
        assert w.size % 2 == 1
        assert w.sum() == pytest.approx(1.0)
        assert np.all(w > 0)

    @pytest.mark.parametrize("name", sorted(INFINITE_KERNELS))
    def test_infinite_kernels_are_normalized(self, name):
        """Truncated infinite-support kernels are normalized and symmetric."""
        w = InfiniteKernel(name, 2.0).weights()
        assert w.size % 2 == 1
        assert w.sum() == pytest.approx(1.0)
        np.testing.assert_allclose(w, w[::-1], atol=1e-15)

    def test_infinite_kernel_explicit_length(self):
        assert InfiniteKernel("gaussian", 1.0, 11).weights().size == 11

    def test_finite_kernel_bandwidth_must_exceed_one(self):
        with pytest.raises(KernelConfigurationError):
            FiniteKernel("triangle", (1,))

    def test_unknown_finite_kernel(self):
        with pytest.raises(KernelConfigurationError):
            FiniteKernel("gaussian", (5,))


class TestKernelFromName:
    """Tests for parsing family names and parameters."""

    def test_aliases_resolve(self):
        """Aliases and unique prefixes select the same family."""
        assert kernel_from_name("ma", 3, 3) == MovingAverage((3, 3))
        assert kernel_from_name("box", 12) == CenteredMovingAverage(12)
        assert kernel_from_name("epan", 5) == FiniteKernel("epanechnikov", (5,))
        assert kernel_from_name("Normal", 2) == InfiniteKernel("gaussian", 2.0)

    def test_list_parameters_are_flattened(self):
        assert kernel_from_name("ma", [3, 5]) == MovingAverage((3, 5))

    def test_spencer_without_parameters(self):
        assert kernel_from_name("spencer") == Spencer(1)

    def test_rehomme_ladiray_defaults(self):
        assert kernel_from_name("rehomme-ladiray", 9) == RehommeLadiray(9, 3, 0.5)

    def test_unknown_family(self):
        with pytest.raises(KernelConfigurationError, match="Unknown kernel family"):
            kernel_from_name("nonsense", 3)

    def test_ambiguous_prefix(self):
        """A prefix shared by several families is rejected."""
        with pytest.raises(KernelConfigurationError):
            kernel_from_name("t", 5)

    def test_missing_parameter(self):
        with pytest.raises(KernelConfigurationError):
            kernel_from_name("henderson")

    def test_surplus_parameters(self):
        with pytest.raises(KernelConfigurationError):
            kernel_from_name("gaussian", 1, 11, 3)

    def test_kernel_weights_rejects_params_with_variant(self):
        with pytest.raises(KernelConfigurationError):
            kernel_weights(MovingAverage(3), 5)

    def test_kernel_errors_are_configuration_errors(self):
        """Callers can catch every kernel problem as a ConfigurationError."""
        with pytest.raises(ConfigurationError):
            kernel_weights("henderson", 12)


class TestKernelCache:
    """Tests for the explicit weight memo."""

    def test_hits_and_misses(self):
        cache = KernelCache()
        first = cache.get(Henderson(13))
        second = cache.get(Henderson(13))
        assert first is second
        assert cache.misses == 1
        assert cache.hits == 1
        assert len(cache) == 1

    def test_cached_weights_are_read_only(self):
        w = KernelCache().get(MovingAverage(3))
        with pytest.raises(ValueError):
            w[0] = 1.0

    def test_equal_variants_share_an_entry(self):
        """Variants built from equal parameters hash alike."""
        cache = KernelCache()
        cache.get(MovingAverage((3, 3)))
        cache.get(kernel_from_name("ma", 3, 3))
        assert len(cache) == 1

    def test_clear(self):
        cache = KernelCache()
        cache.get(Spencer())
        cache.clear()
        assert len(cache) == 0
        assert cache.hits == 0
        assert cache.misses == 0
