# cpi_forecaster_src/transform_utils.py

import warnings
from typing import Sequence, Union

import numpy as np
import pandas as pd
import logging

from statsmodels.tsa.stattools import adfuller, kpss

from .domain import DifferencingState, StationarityVerdict, TimeSeries
from .exceptions import StationarityTestInconclusive

logger = logging.getLogger(__name__)

SEASONAL_STRENGTH_THRESHOLD = 0.64


def check_stationarity(series: TimeSeries, alpha: float = 0.05) -> StationarityVerdict:
    """
    Run the Augmented Dickey-Fuller test and decide on stationarity.

    Parameters
    ----------
    series : TimeSeries
        Normalized input series
    alpha : float, default=0.05
        The series is declared stationary iff the p-value is <= alpha

    Returns
    -------
    StationarityVerdict
        Decision, p-value, test statistic and chosen lag.

    Notes
    -----
    - ADF null hypothesis: the series has a unit root (non-stationary)
    - If the test cannot be computed (e.g. a constant series) the verdict is
      flagged inconclusive and reported as non-stationary with p-value 1.0,
      so the pipeline applies one difference instead of aborting.
    """
    try:
        stat, p_value, used_lag, _, _, _ = adfuller(np.asarray(series.values), autolag="AIC")
        p_value = float(p_value)
        if not np.isfinite(p_value):
            raise ValueError("ADF p-value is not finite")
    except (ValueError, np.linalg.LinAlgError) as e:
        warning = StationarityTestInconclusive(
            f"ADF test inconclusive for {series.name or 'series'} ({e}); treating as non-stationary"
        )
        logger.warning("%s", warning)
        return StationarityVerdict(is_stationary=False, p_value=1.0, inconclusive=True)

    verdict = StationarityVerdict(
        is_stationary=p_value <= alpha,
        p_value=min(max(p_value, 0.0), 1.0),
        test_statistic=float(stat),
        used_lag=int(used_lag),
    )
    logger.info(
        "ADF test on %s: statistic=%.3f, p-value=%.4f -> %s",
        series.name or "series", verdict.test_statistic, verdict.p_value,
        "stationary" if verdict.is_stationary else "non-stationary",
    )
    return verdict


def apply_difference(series: TimeSeries, order: int) -> DifferencingState:
    """
    Difference a series ``order`` times (order in {0, 1}).

    Returns
    -------
    DifferencingState
        Differenced series (length reduced by ``order``) with the trailing and
        leading ``order`` values of the input for inversion.
    """
    if order not in (0, 1):
        raise ValueError(f"Only differencing orders 0 and 1 are supported, got {order}")
    if order == 0:
        return DifferencingState(order=0, series=series)
    if len(series) < 2:
        raise ValueError("At least two observations are required to difference a series")

    diffed = TimeSeries(
        index=series.index[1:],
        values=np.diff(series.values),
        name=series.name,
        period=series.period,
    )
    return DifferencingState(
        order=1,
        series=diffed,
        seed=(float(series.values[-1]),),
        initial=(float(series.values[0]),),
    )


def invert_difference(values: Union[Sequence[float], np.ndarray],
                      seed: Sequence[float]) -> np.ndarray:
    """
    Rebuild levels from a differenced sequence by cumulative summation.

    Parameters
    ----------
    values : sequence of float
        Differenced values following the last known level.
    seed : sequence of float
        Trailing level(s) preceding ``values``; empty for order 0.

    Returns
    -------
    np.ndarray
        Values in original-level units.
    """
    arr = np.asarray(values, dtype=np.float64)
    if len(seed) == 0:
        return arr.copy()
    if len(seed) != 1:
        raise ValueError("Only single differencing can be inverted")
    return float(seed[-1]) + np.cumsum(arr)


def restore_series(state: DifferencingState) -> np.ndarray:
    """Reconstruct the full original series from a DifferencingState."""
    if state.order == 0:
        return np.array(state.series.values)
    tail = invert_difference(state.series.values, state.initial)
    return np.concatenate([np.asarray(state.initial, dtype=np.float64), tail])


def kpss_select_d(series: Union[pd.Series, np.ndarray], max_d: int = 2, alpha: float = 0.05) -> int:
    """
    Select the non-seasonal differencing order by repeated KPSS tests.

    The series is differenced while the KPSS test rejects level stationarity
    (p < alpha), up to ``max_d`` times.

    Notes
    -----
    KPSS null hypothesis: the series is level stationary. This mirrors the
    conventional auto-ARIMA choice of d before the order search.
    """
    x = pd.Series(np.asarray(series, dtype=np.float64)).dropna()
    d = 0
    while d < max_d:
        if len(x) < 3 or np.ptp(x.values) == 0:
            break
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            try:
                p_value = kpss(x.values, regression="c", nlags="auto")[1]
            except (ValueError, np.linalg.LinAlgError, OverflowError):
                break
        if not np.isfinite(p_value) or p_value >= alpha:
            break
        x = x.diff().dropna()
        d += 1
    return d


def seasonal_strength(series: Union[pd.Series, np.ndarray], period: int = 12) -> float:
    """
    STL seasonal strength: max(0, 1 - Var(remainder) / Var(seasonal + remainder)).

    Returns NaN when fewer than two full seasons are available.
    """
    from statsmodels.tsa.seasonal import STL

    x = np.asarray(series, dtype=np.float64)
    x = x[np.isfinite(x)]
    if len(x) < 2 * period + 1:
        return float("nan")
    res = STL(x, period=period, robust=True).fit()
    var_sr = np.var(res.seasonal + res.resid)
    if var_sr <= 0:
        return 0.0
    return float(max(0.0, 1.0 - np.var(res.resid) / var_sr))


def select_seasonal_D(series: Union[pd.Series, np.ndarray], period: int = 12, max_D: int = 1) -> int:
    """
    Select the seasonal differencing order from STL seasonal strength.

    One seasonal difference is taken while the strength exceeds 0.64, up to
    ``max_D`` times.
    """
    x = np.asarray(series, dtype=np.float64)
    D = 0
    while D < max_D:
        try:
            strength = seasonal_strength(x, period)
        except (ValueError, np.linalg.LinAlgError):
            break
        if not np.isfinite(strength) or strength <= SEASONAL_STRENGTH_THRESHOLD:
            break
        x = x[period:] - x[:-period]
        D += 1
    return D
