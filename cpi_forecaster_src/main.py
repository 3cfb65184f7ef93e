# cpi_forecaster_src/main.py

"""
Monthly CPI forecasting with automatic seasonal ARIMA selection.

This is the main entry point of the CPI forecasting system.

Purpose
-------
- Fetch monthly CPI per country from FRED (or load a local CSV)
- Normalize to a gap-free month-start series from the window start onwards
- ADF stationarity check; difference once when the unit-root null is not rejected
- Search seasonal ARIMA orders and keep the model with minimum AICc
- Residual diagnostics (ACF, Ljung-Box at lag 24, Jarque-Bera)
- Forecast with 80% and 95% prediction intervals; export CSV tables and figures

Data Sources & Attribution
---------------------------
CPI data is sourced from FRED (Federal Reserve Bank of St. Louis):
- USA: CPIAUCNS (BLS, Public Domain)
- GBR, BRA, ZAF, IND: OECD Main Economic Indicators via FRED

Configuration-Driven Workflow
-----------------------------
Model parameters, data sources and output settings are managed via the YAML
configuration file in config/. CLI arguments override configuration values.
"""

import argparse
import logging
import sys
import warnings
from pathlib import Path
from typing import Dict, Optional

from fetchers import COUNTRY_CPI_CODES, FredCPIFetcher

from .config_utils import initialize_config, get_config_value
from .data_utils import (
    DEFAULT_MIN_OBSERVATIONS, DEFAULT_WINDOW_START, infer_series_id_from_path, load_cpi_series_csv
)
from .diagnostics_utils import DEFAULT_LJUNG_BOX_LAGS, interpret_residual_report
from .file_utils import SUMMARY_HEADER, append_summary_csv_row, ensure_dir, resolve_path, write_forecast_csv
from .forecasting_utils import DEFAULT_HORIZON_BOUNDS, SearchConfig
from .parsing_utils import parse_countries, validate_log_level, validate_window_start
from .pipeline import PipelineConfig, PipelineResult, run_batch_pipeline
from .plotting_utils import save_country_figures

logger = logging.getLogger(__name__)


def build_search_config(args: Optional[argparse.Namespace] = None) -> SearchConfig:
    """
    Assemble the order-search configuration from CLI arguments and the config file.
    """
    def _opt(key: str, cli_param: str):
        return get_config_value(key, None, args, cli_param)

    method = "stepwise" if getattr(args, "stepwise", False) else get_config_value("model.search.method", "exhaustive")
    max_candidates = _opt("model.search.max_candidates", "max_candidates")
    time_budget = _opt("model.search.time_budget_seconds", "time_budget")

    return SearchConfig(
        max_p=int(get_config_value("model.search_space.max_p", 5, args, "max_p")),
        max_d=int(get_config_value("model.search_space.max_d", 2, args, "max_d")),
        max_q=int(get_config_value("model.search_space.max_q", 5, args, "max_q")),
        max_P=int(get_config_value("model.search_space.max_P", 2, args, "max_P")),
        max_D=int(get_config_value("model.search_space.max_D", 1, args, "max_D")),
        max_Q=int(get_config_value("model.search_space.max_Q", 2, args, "max_Q")),
        max_order=int(get_config_value("model.search_space.max_order", 5, args, "max_order")),
        period=int(get_config_value("model.seasonal_period", 12)),
        method=method,
        differencing=get_config_value("model.search.differencing", "test", args, "differencing"),
        max_candidates=int(max_candidates) if max_candidates is not None else None,
        time_budget_seconds=float(time_budget) if time_budget is not None else None,
        n_jobs=int(get_config_value("model.search.n_jobs", 1, args, "n_jobs")),
        maxiter=int(get_config_value("model.search.maxiter", 200)),
        progress=bool(getattr(args, "progress", False)),
    )


def build_pipeline_config(args: Optional[argparse.Namespace] = None) -> PipelineConfig:
    """
    Assemble the run-scoped PipelineConfig (CLI -> config file -> default).

    Raises
    ------
    ValueError
        If the window start or any bound is malformed.
    """
    bounds = get_config_value("forecast.horizon_bounds", list(DEFAULT_HORIZON_BOUNDS))
    acf_lags = get_config_value("diagnostics.acf_lags", None)
    window_start = validate_window_start(
        str(get_config_value("data.window_start", DEFAULT_WINDOW_START, args, "window_start"))
    )
    return PipelineConfig(
        horizon=get_config_value("forecast.horizon", 24, args, "horizon"),
        horizon_bounds=(int(bounds[0]), int(bounds[1])),
        window_start=window_start,
        min_observations=int(get_config_value("data.min_observations", DEFAULT_MIN_OBSERVATIONS)),
        stationarity_alpha=float(get_config_value("model.stationarity_alpha", 0.05)),
        search=build_search_config(args),
        acf_lags=int(acf_lags) if acf_lags is not None else None,
        ljung_box_lags=int(get_config_value("diagnostics.ljung_box_lags", DEFAULT_LJUNG_BOX_LAGS)),
        diagnostics_alpha=float(get_config_value("diagnostics.significance_level", 0.05)),
    )


def build_fetcher(args: Optional[argparse.Namespace] = None) -> FredCPIFetcher:
    """Create the FRED fetcher from configuration (series map, key, timeout)."""
    codes = get_config_value("data_sources.fred.series", COUNTRY_CPI_CODES)
    return FredCPIFetcher(
        api_key=get_config_value("data_sources.fred.api_key", None, args, "fred_api_key"),
        series_codes={str(k).upper(): str(v) for k, v in codes.items()},
        timeout=float(get_config_value("data_sources.fred.timeout_seconds", 30)),
    )


def export_country_result(result: PipelineResult, out_dir: Path, plots: bool = True) -> None:
    """
    Write the forecast table, the standard figures and the adequacy summary log
    for one successful pipeline run.
    """
    write_forecast_csv(result.table, out_dir, result.series_id)
    if plots:
        save_country_figures(result, out_dir)

    adequacy = interpret_residual_report(result.residuals)
    logger.info(
        "%s: %s | AICc=%.2f | residuals %s",
        result.series_id, result.model.label, result.model.aicc, adequacy["overall_adequacy"],
    )
    for rec in adequacy["recommendations"]:
        logger.info("%s: %s", result.series_id, rec)


def run_country_workflow(series_ids, out_dir: Path, config: PipelineConfig,
                         raw_by_id: Optional[Dict] = None,
                         fetcher: Optional[FredCPIFetcher] = None,
                         plots: bool = True,
                         max_workers: int = 1) -> int:
    """
    Run the pipeline for each series, export results and write the run summary.

    Parameters
    ----------
    series_ids : iterable of str
        Country ISO codes (or series ids for CSV input)
    out_dir : Path
        Output directory for CSV tables, figures and summary.csv
    config : PipelineConfig
        Run configuration
    raw_by_id : dict, optional
        Pre-loaded raw series keyed by id; otherwise ``fetcher`` is used
    fetcher : FredCPIFetcher, optional
        Ingestion collaborator
    plots : bool, default=True
        Whether to render figures
    max_workers : int, default=1
        Number of series processed concurrently

    Returns
    -------
    int
        Number of series that completed successfully.
    """
    ids = list(series_ids)
    ensure_dir(out_dir)
    summary_csv = out_dir / "summary.csv"
    if summary_csv.exists():
        summary_csv.unlink()

    results, failures = run_batch_pipeline(ids, config, raw_by_id=raw_by_id, fetcher=fetcher, max_workers=max_workers)

    for series_id in ids:
        if series_id in results:
            result = results[series_id]
            try:
                export_country_result(result, out_dir, plots=plots)
                append_summary_csv_row(summary_csv, result.summary_row(), SUMMARY_HEADER)
            except OSError as e:
                logger.error("Failed to export results for %s: %s", series_id, e)
                failures[series_id] = e
                results.pop(series_id)
        if series_id in failures:
            append_summary_csv_row(summary_csv, {
                "series_id": series_id,
                "status": f"failed: {type(failures[series_id]).__name__}: {failures[series_id]}",
            }, SUMMARY_HEADER)

    logger.info("Completed %d of %d series; summary written to %s", len(results), len(ids), summary_csv)
    return len(results)


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Unset options default to None so that configuration file values apply.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="Monthly CPI forecasting with automatic seasonal ARIMA selection."
    )

    # Data and output arguments
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to a YAML configuration file (defaults to config/forecast_config.yaml)."
    )
    parser.add_argument(
        "--countries", type=str, default=None,
        help="Comma-separated ISO codes (e.g. 'USA,GBR'); 'ALL' or empty for every configured country."
    )
    parser.add_argument(
        "--series-csv", type=str, default=None,
        help="Forecast a local CSV with columns 'date' and 'value' instead of fetching from FRED."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Directory for CSV tables, figures and summary.csv (resolved relative to the project root)."
    )
    parser.add_argument(
        "--no-plots", action="store_true", default=False,
        help="Skip figure rendering."
    )
    parser.add_argument(
        "--fred-api-key", dest="fred_api_key", type=str, default=None,
        help="FRED API key; without one the public CSV download is used."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level."
    )

    # Forecast controls
    parser.add_argument(
        "--horizon", type=int, default=None,
        help="Forecast horizon in months."
    )
    parser.add_argument(
        "--window-start", type=str, default=None,
        help="Earliest month kept, as YYYY-MM."
    )
    parser.add_argument(
        "--workers", type=int, default=1,
        help="Number of countries processed concurrently."
    )

    # Order search controls
    for name, help_text in (
        ("max-p", "Upper bound for AR order p."),
        ("max-d", "Upper bound for differencing order d."),
        ("max-q", "Upper bound for MA order q."),
        ("max-P", "Upper bound for seasonal AR order P."),
        ("max-D", "Upper bound for seasonal differencing order D."),
        ("max-Q", "Upper bound for seasonal MA order Q."),
        ("max-order", "Upper bound for p+q+P+Q in the exhaustive search."),
    ):
        parser.add_argument(f"--{name}", dest=name.replace("-", "_"), type=int, default=None, help=help_text)
    parser.add_argument(
        "--stepwise", action="store_true", default=False,
        help="Use the greedy stepwise search instead of the exhaustive grid."
    )
    parser.add_argument(
        "--differencing", choices=["test", "search"], default=None,
        help="Choose d/D by unit-root heuristics ('test') or enumerate them in the grid ('search')."
    )
    parser.add_argument(
        "--max-candidates", type=int, default=None,
        help="Stop the search after this many candidate fits."
    )
    parser.add_argument(
        "--time-budget", type=float, default=None,
        help="Stop the search after this many seconds."
    )
    parser.add_argument(
        "--n-jobs", type=int, default=None,
        help="Worker threads used to fit candidates."
    )
    parser.add_argument(
        "--progress", action="store_true", default=False,
        help="Show a progress bar during the order search."
    )

    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Configure warnings based on log level
    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from statsmodels.tools.sm_exceptions import ConvergenceWarning
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def main(argv=None) -> int:
    """
    Main entry point for the CPI forecasting application.

    Returns
    -------
    int
        Process exit code: 0 when at least one series succeeded, 1 otherwise.
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    # Initialize configuration system early
    initialize_config(args.config)

    base_dir = Path(__file__).resolve().parent.parent

    try:
        config = build_pipeline_config(args)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    out_dir = resolve_path(str(get_config_value("output.dir", "CPI_Forecast_Plots", args, "output_dir")), base_dir)
    plots = bool(get_config_value("output.plots", True)) and not args.no_plots

    if args.series_csv:
        series_path = resolve_path(args.series_csv, base_dir)
        series_id = infer_series_id_from_path(series_path)
        try:
            raw_by_id = {series_id: load_cpi_series_csv(series_path)}
        except (FileNotFoundError, ValueError) as e:
            logger.error("Failed to load %s: %s", series_path, e)
            return 1
        n_ok = run_country_workflow([series_id], out_dir, config, raw_by_id=raw_by_id, plots=plots)
        return 0 if n_ok else 1

    fetcher = build_fetcher(args)
    countries = parse_countries(args.countries, list(fetcher.series_codes))
    if not countries:
        logger.warning("No valid countries provided to --countries; nothing to run.")
        return 1

    n_ok = run_country_workflow(countries, out_dir, config, fetcher=fetcher, plots=plots, max_workers=args.workers)
    return 0 if n_ok else 1


if __name__ == "__main__":
    sys.exit(main())
