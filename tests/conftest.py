"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest
import pandas as pd
import numpy as np


REPO_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def monthly_index():
    """Ten years of month-start dates."""
    return pd.date_range(start="2010-01-01", periods=120, freq="MS")


@pytest.fixture
def flat_series(monthly_index):
    """Constant series of 100."""
    return pd.Series(np.full(120, 100.0), index=monthly_index)


@pytest.fixture
def sinusoid_series(monthly_index):
    """Pure seasonal sinusoid around 100 with amplitude 10, no noise."""
    t = np.arange(120)
    return pd.Series(100 + 10 * np.sin(2 * np.pi * t / 12), index=monthly_index)


@pytest.fixture
def spike_series():
    """Eight years of a flat series with a single spike at position 45."""
    values = np.full(96, 100.0)
    values[45] = 500.0
    return values


@pytest.fixture
def seasonal_positive_series():
    """Growing trend times a seasonal pattern times small noise, twelve years."""
    rng = np.random.default_rng(42)
    t = np.arange(144)
    trend = 100 * np.exp(0.003 * t)
    seasonal = 1 + 0.1 * np.sin(2 * np.pi * t / 12) + 0.05 * np.cos(4 * np.pi * t / 12)
    noise = 1 + 0.005 * rng.standard_normal(144)
    index = pd.date_range(start="2008-01-01", periods=144, freq="MS")
    return pd.Series(trend * seasonal * noise, index=index)


@pytest.fixture
def quarterly_series():
    """Seven years of quarterly data with a linear trend and seasonality."""
    rng = np.random.default_rng(7)
    t = np.arange(28)
    pattern = np.array([5.0, -2.0, 3.0, -6.0])
    return 50 + 0.5 * t + pattern[t % 4] + 0.3 * rng.standard_normal(28)


@pytest.fixture
def config_dir():
    """The repository's configuration directory."""
    return REPO_ROOT / "config"
