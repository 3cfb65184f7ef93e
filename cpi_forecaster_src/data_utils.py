# cpi_forecaster_src/data_utils.py

from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd
import logging

from helpers.temporal import parse_year_month, to_month_start

from .domain import MONTHLY_PERIOD, TimeSeries
from .exceptions import EmptySeriesError

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_START = "1990-01"
DEFAULT_MIN_OBSERVATIONS = 36

RawSeries = Union[pd.Series, Iterable[Tuple[object, Optional[float]]]]


def _as_dated_series(raw: RawSeries) -> pd.Series:
    """Coerce a Series or an iterable of (date, value) pairs into a float Series."""
    if isinstance(raw, pd.Series):
        s = raw.copy()
    else:
        pairs = list(raw)
        if not pairs:
            return pd.Series(dtype=float)
        dates, values = zip(*pairs)
        s = pd.Series(list(values), index=pd.to_datetime(list(dates)))
    return pd.to_numeric(s, errors="coerce").astype(float)


def normalize_series(raw: RawSeries,
                     window_start: Union[str, pd.Timestamp] = DEFAULT_WINDOW_START,
                     min_obs: int = DEFAULT_MIN_OBSERVATIONS,
                     series_id: Optional[str] = None) -> TimeSeries:
    """
    Convert a raw dated sequence into a canonical gap-free monthly TimeSeries.

    Parameters
    ----------
    raw : pd.Series or iterable of (date, value)
        Raw provider output, possibly containing nulls. Expected ascending by date.
    window_start : str or pd.Timestamp, default "1990-01"
        First calendar month kept. A series starting later is kept as-is (no backfill).
    min_obs : int, default 36
        Minimum number of observations required after filtering.
    series_id : str, optional
        Identifier attached to the result and to error messages.

    Returns
    -------
    TimeSeries
        Month-start indexed series with period 12 and no missing months.

    Raises
    ------
    EmptySeriesError
        If fewer than ``min_obs`` observations remain.

    Notes
    -----
    Null and non-finite entries are dropped. Months missing strictly inside the
    remaining range are filled by linear interpolation so that downstream stages
    always see a regular monthly grid.
    """
    s = _as_dated_series(raw)
    n_raw = len(s)
    s = s[np.isfinite(s.values)]

    if s.empty:
        raise EmptySeriesError(0, min_obs, series_id)

    if not s.index.is_monotonic_increasing:
        logger.debug("Raw series %s not sorted by date; sorting.", series_id or "")
        s = s.sort_index()

    s = to_month_start(s)
    start = parse_year_month(window_start)
    s = s[s.index >= start]

    if s.empty:
        raise EmptySeriesError(0, min_obs, series_id)

    full_index = pd.date_range(s.index[0], s.index[-1], freq="MS")
    n_missing = len(full_index) - len(s)
    if n_missing > 0:
        logger.info("Interpolating %d missing month(s) in %s", n_missing, series_id or "series")
        s = s.reindex(full_index).interpolate(method="linear")

    if len(s) < min_obs:
        raise EmptySeriesError(len(s), min_obs, series_id)

    logger.debug(
        "Normalized %s: %d raw rows -> %d months from %s to %s",
        series_id or "series", n_raw, len(s), s.index[0].date(), s.index[-1].date(),
    )
    return TimeSeries(index=full_index, values=s.values, name=series_id, period=MONTHLY_PERIOD)


def load_cpi_series_csv(series_path: Path) -> pd.Series:
    """
    Load a CPI series from a CSV file with 'date' and 'value' columns.

    Rows with an unparseable date are dropped; unparseable values are kept as
    NaN so that normalization decides how to treat them.

    Parameters
    ----------
    series_path : Path
        Path to the CSV file.

    Returns
    -------
    pd.Series
        Float series with DatetimeIndex, sorted ascending.

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist.
    ValueError
        If required columns are missing or no rows could be parsed.
    """
    if not series_path.exists():
        raise FileNotFoundError(f"Series CSV not found: {series_path}")

    logger.info("Loading CPI series from: %s", series_path)
    df_series = pd.read_csv(series_path)

    if "date" not in df_series.columns or "value" not in df_series.columns:
        raise ValueError("Series CSV must contain 'date' and 'value' columns.")

    df_series["date"] = pd.to_datetime(df_series["date"], errors="coerce")
    df_series["value"] = pd.to_numeric(df_series["value"], errors="coerce")
    df_series = df_series.dropna(subset=["date"]).sort_values("date").reset_index(drop=True)

    if df_series.empty:
        raise ValueError("No valid rows found in series CSV after parsing.")

    return pd.Series(df_series["value"].values, index=df_series["date"], name=infer_series_id_from_path(series_path))


def infer_series_id_from_path(series_path: Path) -> str:
    """
    Infer a series identifier from a CSV filename following 'cpi_{ISO}.csv'.

    Examples
    --------
    >>> infer_series_id_from_path(Path("cpi_USA.csv"))
    'USA'
    >>> infer_series_id_from_path(Path("my_data.csv"))
    'my_data'
    """
    stem = series_path.stem
    return stem[4:] if stem.lower().startswith("cpi_") else (stem or "series")
