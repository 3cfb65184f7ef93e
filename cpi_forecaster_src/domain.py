# cpi_forecaster_src/domain.py

"""
Immutable values exchanged between pipeline stages.

Each stage owns and returns one of these values; none of them is mutated after
construction. Arrays are stored as read-only copies.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .exceptions import ResidualDiagnosticWarning

MONTHLY_PERIOD = 12


def _frozen_array(values) -> np.ndarray:
    arr = np.array(values, dtype=np.float64, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class TimeSeries:
    """
    Gap-free monthly series indexed at month start.

    Parameters
    ----------
    index : pd.DatetimeIndex
        Month-start timestamps, strictly increasing by one month
    values : np.ndarray
        Finite float observations aligned with ``index``
    name : str, optional
        Series identifier (country ISO code or FRED code)
    """

    index: pd.DatetimeIndex
    values: np.ndarray
    name: Optional[str] = None
    period: int = MONTHLY_PERIOD

    def __post_init__(self):
        index = pd.DatetimeIndex(self.index)
        values = _frozen_array(self.values)
        if len(index) != len(values):
            raise ValueError("index and values must have the same length")
        if not np.all(np.isfinite(values)):
            raise ValueError("TimeSeries values must be finite")
        if len(index) > 1:
            expected = pd.date_range(index[0], periods=len(index), freq="MS")
            if not index.equals(expected):
                raise ValueError("TimeSeries index must be gap-free month starts")
        object.__setattr__(self, "index", index)
        object.__setattr__(self, "values", values)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def start_year(self) -> int:
        return int(self.index[0].year)

    @property
    def start_month(self) -> int:
        return int(self.index[0].month)

    @property
    def last_date(self) -> pd.Timestamp:
        return self.index[-1]

    def to_series(self) -> pd.Series:
        """Return a (writable) pandas copy with an ``MS`` frequency index."""
        idx = pd.DatetimeIndex(self.index, freq="MS")
        return pd.Series(np.array(self.values), index=idx, name=self.name)


@dataclass(frozen=True)
class StationarityVerdict:
    """Outcome of the unit-root test on the normalized series."""

    is_stationary: bool
    p_value: float
    test_statistic: float = float("nan")
    used_lag: Optional[int] = None
    inconclusive: bool = False


@dataclass(frozen=True, eq=False)
class DifferencingState:
    """
    A differenced series plus what is needed to undo the differencing.

    ``seed`` holds the trailing ``order`` values of the original series (used to
    bring forecasts back to levels); ``initial`` holds the leading ones (used to
    restore the full original series).
    """

    order: int
    series: TimeSeries
    seed: Tuple[float, ...] = ()
    initial: Tuple[float, ...] = ()


@dataclass(frozen=True)
class ModelSpec:
    """A fitted seasonal ARIMA model selected by the order search."""

    order: Tuple[int, int, int]
    seasonal_order: Tuple[int, int, int, int]
    coefficients: Dict[str, float]
    aicc: float
    aic: float
    n_params: int
    n_effective: int
    trend: str = "n"
    results: Any = field(default=None, compare=False, repr=False)

    @property
    def label(self) -> str:
        p, d, q = self.order
        P, D, Q, s = self.seasonal_order
        return f"ARIMA({p},{d},{q})({P},{D},{Q})[{s}]"


@dataclass(frozen=True)
class CandidateScore:
    """Outcome of fitting one candidate order."""

    order: Tuple[int, int, int]
    seasonal_order: Tuple[int, int, int, int]
    converged: bool
    aicc: float = float("inf")
    n_params: int = 0
    reason: Optional[str] = None


@dataclass(frozen=True)
class SelectionResult:
    """Winning model plus the scores of every candidate that was evaluated."""

    model: ModelSpec
    candidates: Tuple[CandidateScore, ...]
    method: str
    budget_exhausted: bool = False

    def to_frame(self) -> pd.DataFrame:
        """Candidate table sorted ascending by AICc."""
        rows = [
            {
                "order": c.order,
                "seasonal_order": c.seasonal_order,
                "converged": c.converged,
                "AICc": c.aicc,
                "n_params": c.n_params,
                "reason": c.reason or "",
            }
            for c in self.candidates
        ]
        df = pd.DataFrame(rows, columns=["order", "seasonal_order", "converged", "AICc", "n_params", "reason"])
        return df.sort_values(by="AICc", ascending=True).reset_index(drop=True)


@dataclass(frozen=True, eq=False)
class ResidualReport:
    """Residual diagnostics for a fitted model; reporting only."""

    autocorrelations: Tuple[Tuple[int, float], ...]
    ljung_box_pvalue: float
    residual_sample: Tuple[float, ...]
    ljung_box_statistic: float = float("nan")
    ljung_box_lags: int = 0
    acf_confidence_bound: float = float("nan")
    jarque_bera_pvalue: float = float("nan")
    mean: float = float("nan")
    std: float = float("nan")
    skewness: float = float("nan")
    kurtosis: float = float("nan")
    warnings: Tuple[ResidualDiagnosticWarning, ...] = ()

    @property
    def is_white_noise(self) -> bool:
        return not any(w.test_name == "ljung_box" for w in self.warnings)


@dataclass(frozen=True, eq=False)
class ForecastResult:
    """Point forecast with nested 80% and 95% prediction intervals."""

    horizon: int
    point_forecast: np.ndarray
    lower_80: np.ndarray
    upper_80: np.ndarray
    lower_95: np.ndarray
    upper_95: np.ndarray
    dates: Optional[pd.DatetimeIndex] = None

    def __post_init__(self):
        for name in ("point_forecast", "lower_80", "upper_80", "lower_95", "upper_95"):
            arr = _frozen_array(getattr(self, name))
            if len(arr) != self.horizon:
                raise ValueError(f"{name} has length {len(arr)}, expected {self.horizon}")
            object.__setattr__(self, name, arr)

    @property
    def width_80(self) -> np.ndarray:
        return self.upper_80 - self.lower_80

    @property
    def width_95(self) -> np.ndarray:
        return self.upper_95 - self.lower_95
