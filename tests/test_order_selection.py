import math
import time
import warnings

import numpy as np
import pandas as pd
import pytest

import cpi_forecaster_src.forecasting_utils as fu
from cpi_forecaster_src.data_utils import normalize_series
from cpi_forecaster_src.domain import CandidateScore, ModelSpec
from cpi_forecaster_src.exceptions import NoConvergentModelError
from cpi_forecaster_src.forecasting_utils import (
    SearchConfig,
    compute_aicc,
    generate_candidate_orders,
    pick_best,
    select_model,
)


def _spec(order, seasonal=(0, 0, 0, 12), aicc=100.0, n_params=None):
    k = n_params if n_params is not None else sum(order) + sum(seasonal[:3])
    return ModelSpec(order=order, seasonal_order=seasonal, coefficients={}, aicc=aicc, aic=aicc,
                     n_params=k, n_effective=100)


def _fake_fit(score_fn):
    """Replacement for fit_candidate driven by a scoring function of the orders."""
    calls = []

    def _fit(endog, order, seasonal_order, maxiter=200):
        calls.append((order, seasonal_order))
        aicc = score_fn(order, seasonal_order)
        if aicc is None:
            return CandidateScore(order, seasonal_order, converged=False, reason="not_converged"), None
        k = order[0] + order[2] + seasonal_order[0] + seasonal_order[2]
        spec = _spec(order, seasonal_order, aicc=aicc, n_params=k)
        return CandidateScore(order, seasonal_order, converged=True, aicc=aicc, n_params=k), spec

    _fit.calls = calls
    return _fit


def test_compute_aicc():
    # k=3, n=50: 2*3*4/46
    assert compute_aicc(100.0, 3, 50) == pytest.approx(100.0 + 24.0 / 46.0)
    assert compute_aicc(100.0, 0, 50) == pytest.approx(100.0)
    assert math.isinf(compute_aicc(100.0, 10, 11))
    assert math.isinf(compute_aicc(float("nan"), 1, 50))


def test_candidate_grid_respects_bounds_and_max_order():
    cfg = SearchConfig(max_p=2, max_q=2, max_P=1, max_Q=1, max_order=2)
    grid = generate_candidate_orders(cfg, [1], [0])
    assert grid[0] == ((0, 1, 0), (0, 0, 0, 12))
    for (p, d, q), (P, D, Q, s) in grid:
        assert p + q + P + Q <= 2
        assert (d, D, s) == (1, 0, 12)
    assert len(grid) == len(set(grid))
    # simplest candidates come first
    sizes = [p + q + P + Q for (p, _, q), (P, _, Q, _) in grid]
    assert sizes == sorted(sizes)


def test_pick_best_prefers_fewer_parameters_on_tie():
    a = _spec((2, 0, 1), aicc=50.0)
    b = _spec((1, 0, 0), aicc=50.0 + 5e-7)
    c = _spec((0, 0, 1), aicc=60.0)
    best = pick_best([a, b, c])
    assert best is b

    # outside epsilon the lower AICc wins even with more parameters
    d = _spec((1, 0, 0), aicc=50.1)
    assert pick_best([a, d]) is a


def test_selection_is_minimal_over_converged_candidates(monkeypatch):
    def score(order, seasonal):
        p, d, q = order
        P, D, Q, _ = seasonal
        if (p, q) == (1, 1):
            return None  # does not converge
        return 10.0 + abs(p - 1) + abs(q - 0) + P + Q

    fake = _fake_fit(score)
    monkeypatch.setattr(fu, "fit_candidate", fake)
    cfg = SearchConfig(max_p=2, max_d=0, max_q=2, max_P=1, max_D=0, max_Q=1, max_order=4, differencing="search")
    series = normalize_series(pd.Series(np.arange(60.0), index=pd.date_range("2000-01-01", periods=60, freq="MS")))

    result = select_model(series, cfg)

    converged = [c for c in result.candidates if c.converged]
    assert all(result.model.aicc <= c.aicc for c in converged)
    assert result.model.order == (1, 0, 0)
    assert result.model.seasonal_order == (0, 0, 0, 12)
    assert len(result.candidates) == len(fake.calls)
    assert any(c.reason == "not_converged" for c in result.candidates)
    assert result.to_frame()["AICc"].iloc[0] == result.model.aicc


def test_no_convergent_model_raises(monkeypatch):
    monkeypatch.setattr(fu, "fit_candidate", _fake_fit(lambda o, s: None))
    cfg = SearchConfig(max_p=1, max_d=0, max_q=1, max_P=0, max_D=0, max_Q=0, differencing="search")
    series = normalize_series(pd.Series(np.arange(60.0), index=pd.date_range("2000-01-01", periods=60, freq="MS")))

    with pytest.raises(NoConvergentModelError) as excinfo:
        select_model(series, cfg)
    assert excinfo.value.n_candidates == 4
    assert set(excinfo.value.reasons.values()) == {"not_converged"}


def test_candidate_budget_truncates_search(monkeypatch):
    fake = _fake_fit(lambda o, s: 10.0 - o[0] - o[2])
    monkeypatch.setattr(fu, "fit_candidate", fake)
    cfg = SearchConfig(max_p=2, max_d=0, max_q=2, max_P=0, max_D=0, max_Q=0, max_candidates=3,
                       differencing="search")
    series = normalize_series(pd.Series(np.arange(60.0), index=pd.date_range("2000-01-01", periods=60, freq="MS")))

    result = select_model(series, cfg)
    assert len(fake.calls) == 3
    assert result.budget_exhausted
    # only the simplest part of the grid was visited
    assert all(o[0] + o[2] <= 1 for o, _ in fake.calls)


def test_parallel_search_matches_serial(monkeypatch):
    score = lambda o, s: 20.0 + (o[0] - 1) ** 2 + (o[2] - 2) ** 2 + s[0]
    monkeypatch.setattr(fu, "fit_candidate", _fake_fit(score))
    series = normalize_series(pd.Series(np.arange(60.0), index=pd.date_range("2000-01-01", periods=60, freq="MS")))
    base = dict(max_p=2, max_d=0, max_q=2, max_P=1, max_D=0, max_Q=0, max_order=5, differencing="search")

    serial = select_model(series, SearchConfig(**base))
    parallel = select_model(series, SearchConfig(n_jobs=3, **base))
    assert serial.model.order == parallel.model.order == (1, 0, 2)
    assert len(serial.candidates) == len(parallel.candidates)


@pytest.mark.parametrize("n_jobs", [1, 3])
def test_time_budget_stops_search_early(monkeypatch, n_jobs):
    fake = _fake_fit(lambda o, s: 10.0 - o[0] - o[2])

    def _slow_fit(endog, order, seasonal_order, maxiter=200):
        time.sleep(0.01)
        return fake(endog, order, seasonal_order, maxiter=maxiter)

    monkeypatch.setattr(fu, "fit_candidate", _slow_fit)
    cfg = SearchConfig(max_p=2, max_d=0, max_q=2, max_P=0, max_D=0, max_Q=0, time_budget_seconds=0.0,
                       n_jobs=n_jobs, differencing="search")
    series = normalize_series(pd.Series(np.arange(60.0), index=pd.date_range("2000-01-01", periods=60, freq="MS")))
    grid = generate_candidate_orders(cfg, [0], [0])

    result = select_model(series, cfg)
    assert 1 <= len(fake.calls) < len(grid)
    assert result.budget_exhausted
    assert result.model.order == fake.calls[0][0]


def test_parallel_search_leaves_warning_filters_intact(monkeypatch):
    fake = _fake_fit(lambda o, s: 10.0 + o[0] + o[2])

    def _noisy_fit(endog, order, seasonal_order, maxiter=200):
        warnings.warn("optimizer did not converge", UserWarning)
        return fake(endog, order, seasonal_order, maxiter=maxiter)

    monkeypatch.setattr(fu, "fit_candidate", _noisy_fit)
    cfg = SearchConfig(max_p=2, max_d=0, max_q=2, max_P=0, max_D=0, max_Q=0, n_jobs=3, differencing="search")
    series = normalize_series(pd.Series(np.arange(60.0), index=pd.date_range("2000-01-01", periods=60, freq="MS")))

    before = list(warnings.filters)
    with warnings.catch_warnings():
        warnings.simplefilter("always")
        inner = list(warnings.filters)
        result = select_model(series, cfg)
        assert list(warnings.filters) == inner
    assert list(warnings.filters) == before
    assert result.model.order == (0, 0, 0)


def test_stepwise_reaches_local_optimum(monkeypatch):
    def score(order, seasonal):
        p, _, q = order
        P, _, Q, _ = seasonal
        return 10.0 + (p - 1) ** 2 + (q - 1) ** 2 + P + Q

    fake = _fake_fit(score)
    monkeypatch.setattr(fu, "fit_candidate", fake)
    cfg = SearchConfig(max_p=2, max_d=1, max_q=2, max_P=1, max_D=0, max_Q=1,
                       method="stepwise", differencing="search")
    series = normalize_series(pd.Series(np.arange(60.0), index=pd.date_range("2000-01-01", periods=60, freq="MS")))

    result = select_model(series, cfg)
    assert result.method == "stepwise"
    assert result.model.order == (1, 0, 1)
    assert result.model.seasonal_order == (0, 0, 0, 12)
    # fewer fits than the full grid
    assert len(fake.calls) < len(generate_candidate_orders(cfg, [0, 1], [0]))


def test_real_fits_minimal_aicc(ar1_series, small_search):
    series = normalize_series(ar1_series, window_start="1990-01")
    result = select_model(series, small_search)

    converged = [c for c in result.candidates if c.converged]
    assert converged
    assert result.model.aicc == min(c.aicc for c in converged)
    assert result.model.results is not None
    assert result.model.label.startswith("ARIMA(")
    assert set(result.model.coefficients) == set(result.model.results.model.param_names)


def test_search_config_validation():
    with pytest.raises(ValueError):
        SearchConfig(method="random")
    with pytest.raises(ValueError):
        SearchConfig(differencing="maybe")
    with pytest.raises(ValueError):
        SearchConfig(max_p=-1)
    with pytest.raises(ValueError):
        SearchConfig(max_candidates=0)
