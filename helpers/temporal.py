# -*- coding: utf-8 -*-
"""
Temporal utilities for monthly calendar alignment.

Functions
---------
- to_month_start(series): Re-index a dated series at month start, keeping the
  last observation within each calendar month.
- parse_year_month(value): Parse 'YYYY-MM' (or a date) into a month-start Timestamp.
- next_month_dates(last_date, periods): Monthly dates beginning the month after
  ``last_date``.
"""

from __future__ import annotations

from typing import Union

import pandas as pd


def _ensure_datetime_index(s: pd.Series) -> pd.Series:
    """
    Ensure a DatetimeIndex for the input series.

    - If PeriodIndex, convert to Timestamp index at period start.
    - Otherwise parse the index with ``pd.to_datetime``.
    """
    if isinstance(s.index, pd.PeriodIndex):
        s = s.copy()
        s.index = s.index.to_timestamp(how="start")
    elif not isinstance(s.index, pd.DatetimeIndex):
        s = s.copy()
        try:
            s.index = pd.to_datetime(s.index)
        except (TypeError, ValueError) as e:
            raise TypeError("Expected a Series with a date-like index.") from e
    return s


def to_month_start(series: pd.Series) -> pd.Series:
    """
    Align a dated series to month-start timestamps.

    Parameters
    ----------
    series : pd.Series
        Series with DatetimeIndex, PeriodIndex or parseable date labels.

    Returns
    -------
    pd.Series
        Series indexed by month start; if a month holds several observations
        the last one is kept. Missing months are NOT filled.
    """
    if not isinstance(series, pd.Series):
        raise TypeError("series must be a pandas Series")

    s = _ensure_datetime_index(series)
    if s.index.tz is not None:
        s = s.tz_localize(None)
    month_start = s.index.to_period("M").to_timestamp(how="start")
    out = pd.Series(s.values, index=month_start, name=series.name)
    return out[~out.index.duplicated(keep="last")]


def parse_year_month(value: Union[str, pd.Timestamp]) -> pd.Timestamp:
    """
    Parse a window-start value like '1990-01' into a month-start Timestamp.

    Examples
    --------
    >>> parse_year_month("1990-01")
    Timestamp('1990-01-01 00:00:00')
    >>> parse_year_month("2001-07-15")
    Timestamp('2001-07-01 00:00:00')
    """
    ts = pd.Timestamp(value)
    return ts.to_period("M").to_timestamp(how="start")


def next_month_dates(last_date: Union[str, pd.Timestamp], periods: int) -> pd.DatetimeIndex:
    """
    Month-start dates beginning the month after ``last_date``.

    Examples
    --------
    >>> list(next_month_dates("2024-12-01", 2))
    [Timestamp('2025-01-01 00:00:00'), Timestamp('2025-02-01 00:00:00')]
    """
    start = parse_year_month(last_date) + pd.DateOffset(months=1)
    return pd.date_range(start=start, periods=periods, freq="MS")
