# cpi_forecaster_src/pipeline.py

"""
Per-series forecasting pipeline.

Stages run in dependency order, each returning an immutable value:

    normalize -> stationarity test -> (difference) -> order search
              -> residual diagnostics -> forecast -> export table

``run_forecast_pipeline`` is a pure function of its inputs, so independent
series can run concurrently (``run_batch_pipeline``). Results are aggregated in
mappings owned by the caller; interactive callers memoize whole runs with
``PipelineCache``.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

import pandas as pd
import logging

from .data_utils import DEFAULT_MIN_OBSERVATIONS, DEFAULT_WINDOW_START, RawSeries, normalize_series
from .diagnostics_utils import DEFAULT_LJUNG_BOX_LAGS, compute_residual_report
from .domain import ForecastResult, ModelSpec, ResidualReport, SelectionResult, StationarityVerdict, TimeSeries
from .forecasting_utils import DEFAULT_HORIZON_BOUNDS, SearchConfig, forecast_model, select_model, validate_horizon
from .report_utils import build_forecast_table
from .transform_utils import apply_difference, check_stationarity

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], pd.Series]


@dataclass(frozen=True)
class PipelineConfig:
    """Run-scoped configuration: plain values only."""

    horizon: int = 24
    horizon_bounds: Tuple[int, int] = DEFAULT_HORIZON_BOUNDS
    window_start: str = DEFAULT_WINDOW_START
    min_observations: int = DEFAULT_MIN_OBSERVATIONS
    stationarity_alpha: float = 0.05
    search: SearchConfig = field(default_factory=SearchConfig)
    acf_lags: Optional[int] = None
    ljung_box_lags: int = DEFAULT_LJUNG_BOX_LAGS
    diagnostics_alpha: float = 0.05

    def __post_init__(self):
        object.__setattr__(self, "horizon_bounds", tuple(self.horizon_bounds))
        lower, upper = self.horizon_bounds
        if not 1 <= lower <= upper:
            raise ValueError(f"Invalid horizon bounds {self.horizon_bounds!r}")
        if self.min_observations <= self.search.max_order + self.search.max_d + 1:
            raise ValueError(
                f"min_observations ({self.min_observations}) must exceed the largest candidate model order"
            )

    def with_horizon(self, horizon: int) -> "PipelineConfig":
        return replace(self, horizon=horizon)


@dataclass(frozen=True, eq=False)
class PipelineResult:
    """Everything the presentation layer needs for one series."""

    series_id: str
    series: TimeSeries
    verdict: StationarityVerdict
    differencing_order: int
    selection: SelectionResult
    residuals: ResidualReport
    forecast: ForecastResult
    table: pd.DataFrame

    @property
    def model(self) -> ModelSpec:
        return self.selection.model

    @property
    def total_differencing(self) -> int:
        """Pipeline differencing plus the model's own non-seasonal d."""
        return self.differencing_order + self.model.order[1]

    def summary_row(self) -> dict:
        return {
            "series_id": self.series_id,
            "model": self.model.label,
            "AICc": self.model.aicc,
            "adf_pvalue": self.verdict.p_value,
            "ljung_box_pvalue": self.residuals.ljung_box_pvalue,
            "pipeline_d": self.differencing_order,
            "status": "ok",
        }


def run_forecast_pipeline(series_id: str,
                          config: Optional[PipelineConfig] = None,
                          raw: Optional[RawSeries] = None,
                          fetcher: Optional[Fetcher] = None) -> PipelineResult:
    """
    Run the full forecasting pipeline for one series.

    Parameters
    ----------
    series_id : str
        Identifier of the series (country ISO code)
    config : PipelineConfig, optional
        Run configuration; defaults to PipelineConfig()
    raw : pd.Series or iterable of (date, value), optional
        Raw observations, ascending by date
    fetcher : callable, optional
        Used as ``fetcher(series_id)`` when ``raw`` is not given

    Returns
    -------
    PipelineResult

    Raises
    ------
    InvalidHorizonError
        Before any data handling, for an out-of-range horizon
    EmptySeriesError
        When too little history remains after normalization
    NoConvergentModelError
        When no candidate order converges
    """
    config = config or PipelineConfig()
    horizon = validate_horizon(config.horizon, config.horizon_bounds)

    if raw is None:
        if fetcher is None:
            raise ValueError("Either raw data or a fetcher must be provided")
        raw = fetcher(series_id)

    logger.info("--- Processing %s ---", series_id)
    series = normalize_series(raw, config.window_start, config.min_observations, series_id)

    verdict = check_stationarity(series, alpha=config.stationarity_alpha)
    d = 0 if verdict.is_stationary else 1
    state = apply_difference(series, d)
    if d:
        logger.info("%s: differenced once before order search", series_id)

    search = config.search if config.search.period == series.period else replace(config.search, period=series.period)
    selection = select_model(state.series, search)

    report = compute_residual_report(
        selection.model,
        acf_lags=config.acf_lags,
        ljung_box_lags=config.ljung_box_lags,
        significance_level=config.diagnostics_alpha,
    )
    logger.info("%s: ADF p=%.4f | Ljung-Box p=%.4f", series_id, verdict.p_value, report.ljung_box_pvalue)

    forecast = forecast_model(
        selection.model,
        horizon,
        differencing=state if d else None,
        last_date=series.last_date,
        horizon_bounds=config.horizon_bounds,
    )
    table = build_forecast_table(forecast)

    return PipelineResult(
        series_id=series_id,
        series=series,
        verdict=verdict,
        differencing_order=d,
        selection=selection,
        residuals=report,
        forecast=forecast,
        table=table,
    )


def run_batch_pipeline(series_ids: Iterable[str],
                       config: Optional[PipelineConfig] = None,
                       raw_by_id: Optional[Mapping[str, RawSeries]] = None,
                       fetcher: Optional[Fetcher] = None,
                       max_workers: int = 1) -> Tuple[Dict[str, PipelineResult], Dict[str, Exception]]:
    """
    Run independent pipelines for several series.

    A failure for one series is logged and recorded; it never affects the
    others.

    Returns
    -------
    Tuple[Dict[str, PipelineResult], Dict[str, Exception]]
        (results, failures) keyed by series id.
    """
    ids = list(series_ids)
    raw_by_id = raw_by_id or {}

    def _run(series_id: str):
        try:
            return series_id, run_forecast_pipeline(series_id, config, raw=raw_by_id.get(series_id), fetcher=fetcher), None
        except Exception as e:
            logger.error("Forecast pipeline failed for %s: %s", series_id, e)
            return series_id, None, e

    if max_workers <= 1:
        outcomes = [_run(s) for s in ids]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(_run, ids))

    results: Dict[str, PipelineResult] = {}
    failures: Dict[str, Exception] = {}
    for series_id, result, error in outcomes:
        if error is None:
            results[series_id] = result
        else:
            failures[series_id] = error
    return results, failures


class PipelineCache:
    """
    Memoizes pipeline runs by series id and the full run configuration.

    Meant for interactive use where the same selection is requested
    repeatedly. Safe to share between threads.
    """

    def __init__(self, fetcher: Optional[Fetcher] = None):
        self.fetcher = fetcher
        self._results: Dict[tuple, PipelineResult] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(series_id: str, config: PipelineConfig) -> tuple:
        return (series_id, config)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def get(self, series_id: str, config: PipelineConfig) -> Optional[PipelineResult]:
        with self._lock:
            return self._results.get(self.key(series_id, config))

    def get_or_run(self, series_id: str,
                   config: PipelineConfig,
                   raw: Optional[Union[RawSeries, Callable[[], RawSeries]]] = None) -> PipelineResult:
        """
        Return a cached result or compute, store and return a new one.

        ``raw`` may be a zero-argument callable so data is only fetched on a miss.
        """
        key = self.key(series_id, config)
        with self._lock:
            cached = self._results.get(key)
        if cached is not None:
            logger.debug("Pipeline cache hit for %s (horizon %d)", series_id, config.horizon)
            return cached

        data = raw() if callable(raw) else raw
        result = run_forecast_pipeline(series_id, config, raw=data, fetcher=self.fetcher)
        with self._lock:
            self._results.setdefault(key, result)
            return self._results[key]

    def clear(self) -> None:
        with self._lock:
            self._results.clear()
