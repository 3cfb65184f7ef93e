# cpi_forecaster_src/__init__.py

"""
CPI Forecaster - Monthly Consumer Price Index Forecasting Package

Automatic seasonal ARIMA forecasting of monthly CPI series with prediction
intervals, residual diagnostics and CSV/figure export.

Key Components
--------------
- domain: Immutable values passed between pipeline stages
- exceptions: Error hierarchy and non-fatal diagnostic values
- data_utils: Series normalization and CSV loading
- transform_utils: Stationarity testing and differencing
- forecasting_utils: Order search by AICc and interval forecasts
- diagnostics_utils: Residual autocorrelation and normality checks
- report_utils: Forecast export table
- pipeline: Per-series pipeline, batch runner and result cache
- plotting_utils, file_utils: Figures and file output
- config_utils, parsing_utils: Configuration and CLI parsing
- main: Command-line entry point

Usage
-----
    # Command-line usage
    python -m cpi_forecaster_src.main --countries USA,GBR --horizon 24

    # Programmatic usage
    from cpi_forecaster_src import run_forecast_pipeline, PipelineConfig
    result = run_forecast_pipeline("USA", PipelineConfig(horizon=12), raw=series)
"""

__version__ = "1.0.0"
__author__ = "CPI Forecaster Development Team"

from .config_utils import initialize_config, get_config_value
from .data_utils import load_cpi_series_csv, normalize_series
from .exceptions import (
    CPIForecastError,
    EmptySeriesError,
    InvalidHorizonError,
    NoConvergentModelError,
    ResidualDiagnosticWarning,
    StationarityTestInconclusive,
)
from .forecasting_utils import SearchConfig, forecast_model, select_model
from .pipeline import PipelineCache, PipelineConfig, PipelineResult, run_batch_pipeline, run_forecast_pipeline
from .main import main

__all__ = [
    # Core functionality
    "main",
    "initialize_config",
    "get_config_value",
    "load_cpi_series_csv",
    "normalize_series",
    "select_model",
    "forecast_model",
    "SearchConfig",
    "PipelineConfig",
    "PipelineResult",
    "PipelineCache",
    "run_forecast_pipeline",
    "run_batch_pipeline",
    # Errors
    "CPIForecastError",
    "EmptySeriesError",
    "InvalidHorizonError",
    "NoConvergentModelError",
    "ResidualDiagnosticWarning",
    "StationarityTestInconclusive",
    # Version info
    "__version__",
    "__author__",
]
