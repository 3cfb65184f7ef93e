import numpy as np
import pandas as pd
import pytest

from cpi_forecaster_src.data_utils import normalize_series
from cpi_forecaster_src.domain import TimeSeries
from cpi_forecaster_src.exceptions import StationarityTestInconclusive
from cpi_forecaster_src.transform_utils import (
    apply_difference,
    check_stationarity,
    invert_difference,
    kpss_select_d,
    restore_series,
    select_seasonal_D,
    seasonal_strength,
)


def _ts(values, start="2000-01-01"):
    idx = pd.date_range(start, periods=len(values), freq="MS")
    return TimeSeries(index=idx, values=np.asarray(values, dtype=float), name="T")


@pytest.mark.parametrize("order", [0, 1])
def test_difference_round_trip(trend_series, order):
    series = normalize_series(trend_series, window_start="1990-01")
    state = apply_difference(series, order)

    assert len(state.series) == len(series) - order
    assert len(state.seed) == order
    np.testing.assert_allclose(restore_series(state), series.values, rtol=0, atol=1e-9)


def test_differenced_series_starts_one_month_later(trend_series):
    series = normalize_series(trend_series, window_start="1990-01")
    state = apply_difference(series, 1)
    assert state.series.index[0] == series.index[1]
    assert state.seed == (series.values[-1],)


def test_invert_difference_cumulates_from_last_level():
    out = invert_difference([1.0, 2.0, -0.5], seed=(10.0,))
    np.testing.assert_allclose(out, [11.0, 13.0, 12.5])
    np.testing.assert_allclose(invert_difference([1.0, 2.0], seed=()), [1.0, 2.0])


def test_unsupported_order_rejected():
    with pytest.raises(ValueError):
        apply_difference(_ts(np.arange(40.0)), 2)


def test_time_series_is_read_only():
    ts = _ts(np.arange(40.0))
    with pytest.raises(ValueError):
        ts.values[0] = 5.0


def test_time_series_rejects_gaps():
    idx = pd.DatetimeIndex(["2000-01-01", "2000-02-01", "2000-04-01"])
    with pytest.raises(ValueError):
        TimeSeries(index=idx, values=[1.0, 2.0, 3.0])


def test_trend_is_non_stationary(trend_series):
    verdict = check_stationarity(normalize_series(trend_series, window_start="1990-01"))
    assert not verdict.is_stationary
    assert 0.0 <= verdict.p_value <= 1.0
    assert not verdict.inconclusive


def test_white_noise_is_stationary(white_noise_series):
    verdict = check_stationarity(normalize_series(white_noise_series, window_start="1990-01"))
    assert verdict.is_stationary
    assert verdict.p_value <= 0.05


def test_constant_series_is_inconclusive(caplog):
    verdict = check_stationarity(_ts(np.full(48, 3.0)))
    assert verdict.inconclusive
    assert verdict.is_stationary is False
    assert verdict.p_value == 1.0
    assert any("inconclusive" in r.getMessage() for r in caplog.records)
    assert issubclass(StationarityTestInconclusive, UserWarning)


def test_kpss_selects_difference_for_random_walk():
    rng = np.random.default_rng(5)
    walk = np.cumsum(rng.normal(0.0, 1.0, size=200))
    assert kpss_select_d(walk, max_d=2) >= 1
    assert kpss_select_d(rng.normal(0.0, 1.0, size=200), max_d=0) == 0


def test_seasonal_difference_selected_for_strong_seasonality():
    rng = np.random.default_rng(9)
    t = np.arange(144)
    seasonal = 10.0 * np.sin(2 * np.pi * t / 12) + rng.normal(0.0, 0.2, size=len(t))
    assert seasonal_strength(seasonal, 12) > 0.64
    assert select_seasonal_D(seasonal, 12, max_D=1) == 1
    assert select_seasonal_D(seasonal, 12, max_D=0) == 0


def test_seasonal_strength_needs_two_seasons():
    assert np.isnan(seasonal_strength(np.arange(20.0), 12))
