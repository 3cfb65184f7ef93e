import numpy as np
import pandas as pd
import pytest

from cpi_forecaster_src.forecasting_utils import SearchConfig


def _monthly(values, start="2000-01-01", name="TEST"):
    idx = pd.date_range(start, periods=len(values), freq="MS")
    return pd.Series(values, index=idx, name=name)


@pytest.fixture
def trend_series() -> pd.Series:
    """120 months of linear trend plus small Gaussian noise."""
    rng = np.random.default_rng(7)
    t = np.arange(120)
    return _monthly(100.0 + 0.3 * t + rng.normal(0.0, 0.3, size=len(t)), name="TREND")


@pytest.fixture
def white_noise_series() -> pd.Series:
    """60 months of white noise around a constant level."""
    rng = np.random.default_rng(11)
    return _monthly(50.0 + rng.normal(0.0, 1.0, size=60), name="WN")


@pytest.fixture
def ar1_series() -> pd.Series:
    """Stationary AR(1) with phi=0.6 around 10."""
    rng = np.random.default_rng(3)
    n, phi = 150, 0.6
    x = np.zeros(n)
    eps = rng.normal(0.0, 1.0, size=n)
    for t in range(1, n):
        x[t] = phi * x[t - 1] + eps[t]
    return _monthly(10.0 + x, start="2005-01-01", name="AR1")


@pytest.fixture
def small_search() -> SearchConfig:
    """Narrow bounds so that real SARIMAX fits stay fast."""
    return SearchConfig(max_p=1, max_d=1, max_q=1, max_P=1, max_D=1, max_Q=1, max_order=2)
