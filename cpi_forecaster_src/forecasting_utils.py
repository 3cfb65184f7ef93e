# cpi_forecaster_src/forecasting_utils.py

import time
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import product
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm.auto import tqdm
import logging

from statsmodels.tsa.statespace.sarimax import SARIMAX

from helpers.temporal import next_month_dates

from .domain import CandidateScore, DifferencingState, ForecastResult, ModelSpec, SelectionResult, TimeSeries
from .exceptions import InvalidHorizonError, NoConvergentModelError
from .transform_utils import invert_difference, kpss_select_d, select_seasonal_D

logger = logging.getLogger(__name__)

AICC_TIE_EPSILON = 1e-6
ROOT_TOLERANCE = 1e-6
DEFAULT_HORIZON_BOUNDS = (1, 60)

Order = Tuple[int, int, int]
SeasonalOrder = Tuple[int, int, int, int]
Candidate = Tuple[Order, SeasonalOrder]


@dataclass(frozen=True)
class SearchConfig:
    """
    Bounds and policy for the SARIMA order search.

    Attributes
    ----------
    max_p, max_d, max_q : int
        Upper bounds of the non-seasonal orders
    max_P, max_D, max_Q : int
        Upper bounds of the seasonal orders
    max_order : int
        Upper bound on p+q+P+Q during exhaustive search
    period : int
        Seasonal period (12 for monthly data)
    method : str
        'exhaustive' (full bounded grid) or 'stepwise' (greedy neighbour search)
    differencing : str
        'test' picks d by KPSS and D by seasonal strength before the search;
        'search' enumerates d and D inside the grid
    max_candidates, time_budget_seconds : optional
        Budget limiting the number of fits or wall-clock time of the search
    n_jobs : int
        Worker threads used to fit candidates
    """

    max_p: int = 5
    max_d: int = 2
    max_q: int = 5
    max_P: int = 2
    max_D: int = 1
    max_Q: int = 2
    max_order: int = 5
    period: int = 12
    method: str = "exhaustive"
    differencing: str = "test"
    max_candidates: Optional[int] = None
    time_budget_seconds: Optional[float] = None
    n_jobs: int = 1
    maxiter: int = 200
    progress: bool = False

    def __post_init__(self):
        if self.method not in ("exhaustive", "stepwise"):
            raise ValueError(f"Unknown search method '{self.method}'")
        if self.differencing not in ("test", "search"):
            raise ValueError(f"Unknown differencing policy '{self.differencing}'")
        bounds = (self.max_p, self.max_d, self.max_q, self.max_P, self.max_D, self.max_Q, self.max_order)
        if any(int(b) < 0 for b in bounds):
            raise ValueError("Search bounds must be non-negative")
        if self.period < 2:
            raise ValueError("Seasonal period must be at least 2")
        if self.max_candidates is not None and self.max_candidates < 1:
            raise ValueError("max_candidates must be at least 1")
        if self.n_jobs < 1:
            raise ValueError("n_jobs must be at least 1")


def compute_aicc(aic: float, k: int, n: int) -> float:
    """
    Corrected Akaike Information Criterion.

    AICc = AIC + 2k(k+1)/(n-k-1), with k the parameter count and n the
    effective sample size after differencing. Returns +inf when n-k-1 <= 0.
    """
    denom = n - k - 1
    if denom <= 0 or not np.isfinite(aic):
        return float("inf")
    return float(aic + 2.0 * k * (k + 1) / denom)


def candidate_complexity(candidate: Candidate) -> int:
    (p, d, q), (P, D, Q, _) = candidate
    return p + q + P + Q + d + D


def _trend_for(order: Order, seasonal_order: SeasonalOrder) -> str:
    # A constant is only identifiable without differencing
    return "c" if order[1] + seasonal_order[1] == 0 else "n"


def is_admissible(results, tol: float = ROOT_TOLERANCE) -> bool:
    """
    True when the fitted AR polynomial is stationary and the MA polynomial invertible.

    Both reduced-form polynomials (non-seasonal times seasonal) must have all
    roots strictly outside the unit circle.
    """
    for attr in ("arroots", "maroots"):
        roots = np.asarray(getattr(results, attr, []))
        if roots.size and np.any(np.abs(roots) <= 1.0 + tol):
            return False
    return True


def fit_candidate(endog: pd.Series,
                  order: Order,
                  seasonal_order: SeasonalOrder,
                  maxiter: int = 200) -> Tuple[CandidateScore, Optional[ModelSpec]]:
    """
    Fit one SARIMA candidate by maximum likelihood and score it by AICc.

    Parameters
    ----------
    endog : pd.Series
        Training series with a monthly DatetimeIndex
    order, seasonal_order : tuple
        (p, d, q) and (P, D, Q, s)
    maxiter : int, default=200
        Optimizer iteration cap

    Returns
    -------
    Tuple[CandidateScore, Optional[ModelSpec]]
        The score row and, for an accepted candidate, its ModelSpec.

    Notes
    -----
    A candidate is rejected when the fit raises, the optimizer does not report
    convergence, the fitted roots violate stationarity/invertibility, or the
    AICc is undefined for the effective sample size.
    """
    trend = _trend_for(order, seasonal_order)
    try:
        results = SARIMAX(
            endog,
            order=order,
            seasonal_order=seasonal_order,
            trend=trend,
            enforce_stationarity=True,
            enforce_invertibility=True,
            simple_differencing=False,
        ).fit(disp=False, maxiter=maxiter)
    except Exception as e:
        logger.debug("Fit failed for %s%s: %s", order, seasonal_order, e)
        return CandidateScore(order, seasonal_order, converged=False, reason=f"fit_error: {e}"), None

    if not results.mle_retvals.get("converged", False) or not np.isfinite(results.llf):
        return CandidateScore(order, seasonal_order, converged=False, reason="not_converged"), None

    if not is_admissible(results):
        return CandidateScore(order, seasonal_order, converged=False, reason="inadmissible_roots"), None

    k = int(len(results.params))
    n_eff = int(results.nobs) - order[1] - seasonal_order[1] * seasonal_order[3]
    aic = float(results.aic)
    aicc = compute_aicc(aic, k, n_eff)
    if not np.isfinite(aicc):
        return CandidateScore(order, seasonal_order, converged=False, n_params=k, reason="aicc_undefined"), None

    spec = ModelSpec(
        order=tuple(order),
        seasonal_order=tuple(seasonal_order),
        coefficients={name: float(v) for name, v in zip(results.model.param_names, np.asarray(results.params))},
        aicc=aicc,
        aic=aic,
        n_params=k,
        n_effective=n_eff,
        trend=trend,
        results=results,
    )
    return CandidateScore(order, seasonal_order, converged=True, aicc=aicc, n_params=k), spec


def pick_best(specs: Sequence[ModelSpec], epsilon: float = AICC_TIE_EPSILON) -> ModelSpec:
    """
    Minimum-AICc model; ties within ``epsilon`` go to the fewest parameters.
    """
    if not specs:
        raise ValueError("No models to choose from")
    best_aicc = min(s.aicc for s in specs)
    tied = [s for s in specs if s.aicc - best_aicc <= epsilon]
    return min(tied, key=lambda s: (s.n_params, s.aicc, s.order, s.seasonal_order[:3]))


def generate_candidate_orders(config: SearchConfig,
                              d_values: Iterable[int],
                              D_values: Iterable[int]) -> List[Candidate]:
    """
    Enumerate the bounded (p,d,q)(P,D,Q) grid, simplest candidates first.

    Seasonal terms are only generated when the period allows (P, Q > 0 need
    a seasonal period); p+q+P+Q never exceeds ``config.max_order``.
    """
    s = config.period
    grid: List[Candidate] = []
    for p, d, q, P, D, Q in product(
        range(config.max_p + 1), d_values, range(config.max_q + 1),
        range(config.max_P + 1), D_values, range(config.max_Q + 1),
    ):
        if p + q + P + Q > config.max_order:
            continue
        grid.append(((p, d, q), (P, D, Q, s)))
    grid.sort(key=lambda c: (candidate_complexity(c), c[0], c[1]))
    return grid


def _differencing_orders(endog: pd.Series, config: SearchConfig) -> Tuple[List[int], List[int]]:
    if config.differencing == "search":
        return list(range(config.max_d + 1)), list(range(config.max_D + 1))

    D = select_seasonal_D(endog.values, period=config.period, max_D=config.max_D)
    x = endog.values
    for _ in range(D):
        x = x[config.period:] - x[:-config.period]
    d = kpss_select_d(x, max_d=config.max_d)
    logger.info("Differencing orders chosen by unit-root tests: d=%d, D=%d", d, D)
    return [d], [D]


class _SearchState:
    """Shared bookkeeping for one search: cache of fits and budget checks."""

    def __init__(self, endog: pd.Series, config: SearchConfig):
        self.endog = endog
        self.config = config
        self.scores: Dict[Candidate, CandidateScore] = {}
        self.specs: Dict[Candidate, ModelSpec] = {}
        self.deadline = (
            time.monotonic() + config.time_budget_seconds
            if config.time_budget_seconds is not None else None
        )
        self.budget_exhausted = False

    def budget_left(self) -> bool:
        if self.config.max_candidates is not None and len(self.scores) >= self.config.max_candidates:
            self.budget_exhausted = True
            return False
        if self.deadline is not None and self.scores and time.monotonic() > self.deadline:
            self.budget_exhausted = True
            return False
        return True

    def evaluate(self, candidate: Candidate) -> Optional[ModelSpec]:
        if candidate in self.scores:
            return self.specs.get(candidate)
        order, seasonal_order = candidate
        score, spec = fit_candidate(self.endog, order, seasonal_order, maxiter=self.config.maxiter)
        self.record(candidate, score, spec)
        return spec

    def record(self, candidate: Candidate, score: CandidateScore, spec: Optional[ModelSpec]) -> None:
        self.scores[candidate] = score
        if spec is not None:
            self.specs[candidate] = spec


def _exhaustive_search(state: _SearchState, candidates: List[Candidate]) -> None:
    config = state.config
    if config.max_candidates is not None and len(candidates) > config.max_candidates:
        state.budget_exhausted = True
        candidates = candidates[: config.max_candidates]

    if config.n_jobs <= 1:
        for cand in tqdm(candidates, desc="Grid search SARIMA", disable=not config.progress):
            if not state.budget_left():
                break
            state.evaluate(cand)
        return

    def _task(cand: Candidate):
        if state.deadline is not None and time.monotonic() > state.deadline:
            return cand, None, None
        score, spec = fit_candidate(state.endog, cand[0], cand[1], maxiter=config.maxiter)
        return cand, score, spec

    # The simplest candidate is always fitted so a tiny time budget still yields a result
    state.evaluate(candidates[0])
    with ThreadPoolExecutor(max_workers=config.n_jobs) as executor:
        outcomes = executor.map(_task, candidates[1:])
        for cand, score, spec in tqdm(outcomes, total=len(candidates) - 1,
                                      desc="Grid search SARIMA", disable=not config.progress):
            if score is None:
                state.budget_exhausted = True
                continue
            state.record(cand, score, spec)


def _neighbours(candidate: Candidate, config: SearchConfig) -> List[Candidate]:
    (p, d, q), (P, D, Q, s) = candidate
    steps = [
        (dp, 0, dq, dP, 0, dQ)
        for dp, dq, dP, dQ in [
            (-1, 0, 0, 0), (1, 0, 0, 0), (0, -1, 0, 0), (0, 1, 0, 0),
            (-1, -1, 0, 0), (1, 1, 0, 0),
            (0, 0, -1, 0), (0, 0, 1, 0), (0, 0, 0, -1), (0, 0, 0, 1),
            (0, 0, -1, -1), (0, 0, 1, 1),
        ]
    ]
    if config.differencing == "search":
        steps += [(0, -1, 0, 0, 0, 0), (0, 1, 0, 0, 0, 0), (0, 0, 0, 0, -1, 0), (0, 0, 0, 0, 1, 0)]

    out: List[Candidate] = []
    for dp, dd, dq, dP, dD, dQ in steps:
        new = (p + dp, d + dd, q + dq, P + dP, D + dD, Q + dQ)
        limits = (config.max_p, config.max_d, config.max_q, config.max_P, config.max_D, config.max_Q)
        if all(0 <= v <= hi for v, hi in zip(new, limits)):
            out.append(((new[0], new[1], new[2]), (new[3], new[4], new[5], s)))
    return out


def _stepwise_search(state: _SearchState, d_values: List[int], D_values: List[int]) -> None:
    """
    Greedy neighbour search starting from a small set of seed orders.

    Moves to the best improving neighbour until none improves the AICc, which
    may stop at a local optimum.
    """
    config = state.config
    s = config.period

    def _clip(p, q, P, Q):
        return min(p, config.max_p), min(q, config.max_q), min(P, config.max_P), min(Q, config.max_Q)

    seeds: List[Candidate] = []
    for d, D in product(d_values[:1], D_values[:1]):
        for p, q, P, Q in [(2, 2, 1, 1), (0, 0, 0, 0), (1, 0, 1, 0), (0, 1, 0, 1)]:
            p, q, P, Q = _clip(p, q, P, Q)
            cand = ((p, d, q), (P, D, Q, s))
            if cand not in seeds:
                seeds.append(cand)

    for cand in seeds:
        if not state.budget_left():
            return
        state.evaluate(cand)

    if not state.specs:
        return
    current = pick_best(list(state.specs.values()))

    while True:
        for cand in _neighbours((current.order, current.seasonal_order), config):
            if cand in state.scores:
                continue
            if not state.budget_left():
                return
            state.evaluate(cand)
        best = pick_best(list(state.specs.values()))
        if best.aicc >= current.aicc - AICC_TIE_EPSILON:
            return
        current = best


def select_model(series: TimeSeries, config: Optional[SearchConfig] = None) -> SelectionResult:
    """
    Search the bounded SARIMA order space and return the minimum-AICc model.

    Parameters
    ----------
    series : TimeSeries
        Training series, possibly pre-differenced by the pipeline
    config : SearchConfig, optional
        Search bounds and policy; defaults to SearchConfig()

    Returns
    -------
    SelectionResult
        Winning ModelSpec and the score of every evaluated candidate.

    Raises
    ------
    NoConvergentModelError
        If no evaluated candidate converged to an admissible model.
    """
    config = config or SearchConfig(period=series.period)
    endog = series.to_series()

    d_values, D_values = _differencing_orders(endog, config)
    state = _SearchState(endog, config)

    # Filters are process-global: set once here, never inside worker threads
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        if config.method == "stepwise":
            _stepwise_search(state, d_values, D_values)
        else:
            _exhaustive_search(state, generate_candidate_orders(config, d_values, D_values))

    if state.budget_exhausted:
        logger.warning("Order search for %s stopped by budget after %d candidates",
                       series.name or "series", len(state.scores))

    if not state.specs:
        reasons = {f"{c[0]}{c[1]}": s.reason for c, s in state.scores.items()}
        raise NoConvergentModelError(len(state.scores), reasons)

    best = pick_best(list(state.specs.values()))
    logger.info("Selected %s with AICc=%.3f (%d of %d candidates converged)",
                best.label, best.aicc, len(state.specs), len(state.scores))
    return SelectionResult(
        model=best,
        candidates=tuple(state.scores.values()),
        method=config.method,
        budget_exhausted=state.budget_exhausted,
    )


def validate_horizon(horizon, bounds: Tuple[int, int] = DEFAULT_HORIZON_BOUNDS) -> int:
    """
    Check that ``horizon`` is an integer inside ``bounds`` (inclusive).

    Raises
    ------
    InvalidHorizonError
        For non-integers, booleans and out-of-range values.
    """
    lower, upper = bounds
    if isinstance(horizon, bool) or not isinstance(horizon, (int, np.integer)):
        raise InvalidHorizonError(horizon, lower, upper)
    if not lower <= int(horizon) <= upper:
        raise InvalidHorizonError(horizon, lower, upper)
    return int(horizon)


def forecast_model(model: ModelSpec,
                   horizon: int,
                   differencing: Optional[DifferencingState] = None,
                   last_date: Optional[pd.Timestamp] = None,
                   horizon_bounds: Tuple[int, int] = DEFAULT_HORIZON_BOUNDS) -> ForecastResult:
    """
    Project a fitted model ``horizon`` steps ahead with 80% and 95% intervals.

    Parameters
    ----------
    model : ModelSpec
        Fitted model from select_model
    horizon : int
        Number of monthly steps
    differencing : DifferencingState, optional
        When the pipeline differenced the series, point forecasts and interval
        bounds are cumulated back to levels from the state's seed
    last_date : pd.Timestamp, optional
        Last observed month; forecast dates start the month after

    Returns
    -------
    ForecastResult
        Point forecast and nested Gaussian prediction intervals.

    Notes
    -----
    Interval bounds are passed through the same cumulative-sum inversion as the
    point forecast, so level-scale bands are wider than the exact level
    variance would imply.
    """
    h = validate_horizon(horizon, horizon_bounds)
    if model.results is None:
        raise ValueError("ModelSpec carries no fitted results to forecast from")

    fc = model.results.get_forecast(steps=h)
    mean = np.asarray(fc.predicted_mean, dtype=np.float64)
    ci80 = np.asarray(fc.conf_int(alpha=0.20), dtype=np.float64)
    ci95 = np.asarray(fc.conf_int(alpha=0.05), dtype=np.float64)
    bands = [mean, ci80[:, 0], ci80[:, 1], ci95[:, 0], ci95[:, 1]]

    if differencing is not None and differencing.order > 0:
        bands = [invert_difference(b, differencing.seed) for b in bands]

    dates = next_month_dates(last_date, h) if last_date is not None else None
    return ForecastResult(
        horizon=h,
        point_forecast=bands[0],
        lower_80=bands[1],
        upper_80=bands[2],
        lower_95=bands[3],
        upper_95=bands[4],
        dates=dates,
    )
