# cpi_forecaster_src/plotting_utils.py

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from pathlib import Path
from typing import Dict, Optional
from scipy import stats
import logging

from helpers.temporal import next_month_dates

from .domain import ForecastResult, ResidualReport, TimeSeries
from .file_utils import ensure_dir

logger = logging.getLogger(__name__)


def plot_cpi_series(series: TimeSeries, out_path: Path, title: Optional[str] = None) -> None:
    """
    Render and save the monthly CPI level series.

    Parameters
    ----------
    series : TimeSeries
        Normalized CPI series
    out_path : Path
        File path to save the rendered PNG (parents are created if missing)
    title : str, optional
        Plot title; defaults to 'Monthly CPI - {name}'
    """
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(8, 4))
    ax.plot(series.index, series.values, color="tab:blue", linewidth=1.2)
    ax.set_title(title or f"Monthly CPI - {series.name or ''}")
    ax.set_xlabel("Year")
    ax.set_ylabel("CPI Index")
    fig.autofmt_xdate()
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def plot_residual_acf(report: ResidualReport, out_path: Path) -> None:
    """
    Residual ACF with ±1.96/sqrt(n) bounds.

    Lags are taken from the report so the figure matches the tabulated
    autocorrelations. Spikes outside the dashed bounds indicate
    autocorrelation left unexplained by the model.
    """
    from statsmodels.graphics.tsaplots import plot_acf

    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(8, 4))
    plot_acf(np.asarray(report.residual_sample), ax=ax, lags=len(report.autocorrelations), zero=False, alpha=None)
    bound = report.acf_confidence_bound
    if np.isfinite(bound):
        ax.axhline(bound, color="tab:red", linestyle="--", linewidth=1)
        ax.axhline(-bound, color="tab:red", linestyle="--", linewidth=1)
    ax.set_title("ACF of Residuals")
    ax.set_xlabel("Lag")
    ax.set_ylabel("ACF")
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def plot_residual_histogram(report: ResidualReport, out_path: Path, bins: int = 30) -> None:
    """Histogram of residuals."""
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.hist(report.residual_sample, bins=bins, color="steelblue")
    ax.set_title("Residual Histogram")
    ax.set_xlabel("Residual")
    ax.set_ylabel("Count")
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def plot_residual_qq(report: ResidualReport, out_path: Path) -> None:
    """Normal Q-Q plot of residuals with a least-squares reference line."""
    ensure_dir(out_path.parent)
    (theoretical, ordered), (slope, intercept, _) = stats.probplot(np.asarray(report.residual_sample), dist="norm")
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.scatter(theoretical, ordered, s=8, color="tab:blue")
    ax.plot(theoretical, slope * theoretical + intercept, color="tab:red", linewidth=1)
    ax.set_title("Q-Q Plot")
    ax.set_xlabel("Theoretical quantiles")
    ax.set_ylabel("Sample quantiles")
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def plot_forecast(series: TimeSeries, forecast: ForecastResult, out_path: Path,
                  title: Optional[str] = None) -> None:
    """
    Fan chart: observed history, point forecast and the 80%/95% bands.
    """
    ensure_dir(out_path.parent)
    dates = forecast.dates if forecast.dates is not None else next_month_dates(series.last_date, forecast.horizon)

    fig, ax = plt.subplots(figsize=(8, 4))
    ax.plot(series.index, series.values, color="black", linewidth=1.2, label="observed")
    ax.fill_between(dates, forecast.lower_95, forecast.upper_95, color="tab:blue", alpha=0.2, label="95%")
    ax.fill_between(dates, forecast.lower_80, forecast.upper_80, color="tab:blue", alpha=0.35, label="80%")
    ax.plot(dates, forecast.point_forecast, color="tab:blue", linewidth=1.5, label="forecast")
    ax.set_title(title or f"CPI Forecast - {series.name or ''}")
    ax.set_xlabel("Year")
    ax.set_ylabel("Forecasted CPI")
    ax.legend(loc="upper left")
    fig.autofmt_xdate()
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def save_country_figures(result, out_dir: Path) -> Dict[str, Path]:
    """
    Write the five standard figures for one pipeline result.

    Returns
    -------
    Dict[str, Path]
        Figure kind -> written path. Figures that fail to render are logged
        and skipped.
    """
    iso = result.series_id
    targets = {
        "raw": (out_dir / f"{iso}_1_raw_cpi.png", lambda p: plot_cpi_series(result.series, p)),
        "acf": (out_dir / f"{iso}_2_residuals_acf.png", lambda p: plot_residual_acf(result.residuals, p)),
        "hist": (out_dir / f"{iso}_3_residuals_hist.png", lambda p: plot_residual_histogram(result.residuals, p)),
        "qq": (out_dir / f"{iso}_4_residuals_qq.png", lambda p: plot_residual_qq(result.residuals, p)),
        "forecast": (out_dir / f"{iso}_5_forecast.png", lambda p: plot_forecast(result.series, result.forecast, p)),
    }
    written: Dict[str, Path] = {}
    for kind, (path, render) in targets.items():
        try:
            render(path)
            written[kind] = path
        except (ValueError, TypeError, OSError) as e:
            logger.warning("Failed to render %s figure for %s: %s", kind, iso, e)
    logger.debug("Saved %d figure(s) for %s to %s", len(written), iso, out_dir)
    return written
