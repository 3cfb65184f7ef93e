# cpi_forecaster_src/report_utils.py

from typing import Optional

import pandas as pd
import logging

from helpers.temporal import next_month_dates

from .domain import ForecastResult

logger = logging.getLogger(__name__)

FORECAST_TABLE_COLUMNS = ["Date", "Forecast", "Lo80", "Hi80", "Lo95", "Hi95"]


def build_forecast_table(forecast: ForecastResult,
                         last_date: Optional[pd.Timestamp] = None,
                         decimals: Optional[int] = None) -> pd.DataFrame:
    """
    Assemble the dated export table, one row per forecast step.

    Parameters
    ----------
    forecast : ForecastResult
        Output of forecast_model
    last_date : pd.Timestamp, optional
        Last observed month; required when ``forecast.dates`` is not set
    decimals : int, optional
        Round numeric columns for display (the CSV export keeps full precision)

    Returns
    -------
    pd.DataFrame
        Columns ``Date, Forecast, Lo80, Hi80, Lo95, Hi95``; ``Date`` starts the
        month after the last observation and advances monthly.
    """
    if forecast.dates is not None:
        dates = pd.DatetimeIndex(forecast.dates)
    elif last_date is not None:
        dates = next_month_dates(last_date, forecast.horizon)
    else:
        raise ValueError("Forecast dates unknown: pass last_date")

    table = pd.DataFrame({
        "Date": dates,
        "Forecast": forecast.point_forecast,
        "Lo80": forecast.lower_80,
        "Hi80": forecast.upper_80,
        "Lo95": forecast.lower_95,
        "Hi95": forecast.upper_95,
    }, columns=FORECAST_TABLE_COLUMNS)

    if decimals is not None:
        numeric = FORECAST_TABLE_COLUMNS[1:]
        table[numeric] = table[numeric].round(decimals)
    return table
