# cpi_forecaster_src/exceptions.py

"""
Error taxonomy for the CPI forecasting pipeline.

Fatal conditions are raised as exceptions and abort the run for a single
series. Non-fatal findings (an inconclusive unit-root test, residual
diagnostics that indicate a poor fit) are ``UserWarning`` subclasses that the
pipeline returns as values and logs, but never raises.
"""

from typing import Optional


class CPIForecastError(Exception):
    """Base class for fatal pipeline errors."""


class EmptySeriesError(CPIForecastError):
    """Raised when too few observations remain after normalization."""

    def __init__(self, n_obs: int, min_obs: int, series_id: Optional[str] = None):
        self.n_obs = n_obs
        self.min_obs = min_obs
        self.series_id = series_id
        label = f" for '{series_id}'" if series_id else ""
        super().__init__(
            f"Insufficient observations{label}: {n_obs} < {min_obs} after normalization"
        )


class NoConvergentModelError(CPIForecastError):
    """Raised when no candidate order converges within the search bounds."""

    def __init__(self, n_candidates: int, reasons: Optional[dict] = None):
        self.n_candidates = n_candidates
        self.reasons = dict(reasons or {})
        super().__init__(
            f"No convergent SARIMA model among {n_candidates} candidate orders; "
            "widen the search bounds or report failure"
        )


class InvalidHorizonError(CPIForecastError, ValueError):
    """Raised for a forecast horizon outside the configured bounds."""

    def __init__(self, horizon, lower: int, upper: int):
        self.horizon = horizon
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"Invalid forecast horizon {horizon!r}: must be an integer in [{lower}, {upper}]"
        )


class StationarityTestInconclusive(UserWarning):
    """The unit-root test could not be computed; series treated as non-stationary."""


class ResidualDiagnosticWarning(UserWarning):
    """
    A residual diagnostic rejected its null hypothesis.

    Informational only: forecasting proceeds regardless.
    """

    def __init__(self, test_name: str, p_value: float, message: str):
        self.test_name = test_name
        self.p_value = p_value
        self.message = message
        super().__init__(message)

    def __eq__(self, other):
        if not isinstance(other, ResidualDiagnosticWarning):
            return NotImplemented
        return (self.test_name, self.p_value, self.message) == (
            other.test_name, other.p_value, other.message
        )

    def __hash__(self):
        return hash((self.test_name, self.p_value, self.message))
