# cpi_forecaster_src/diagnostics_utils.py

from typing import List, Optional, Union

import numpy as np
import pandas as pd
from scipy import stats
import logging

from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.stats.stattools import jarque_bera
from statsmodels.tsa.stattools import acf

from .domain import ModelSpec, ResidualReport
from .exceptions import ResidualDiagnosticWarning

logger = logging.getLogger(__name__)

DEFAULT_LJUNG_BOX_LAGS = 24


def model_residuals(model: ModelSpec) -> pd.Series:
    """
    In-sample one-step residuals of a fitted model, aligned to the training window.

    The diffuse burn-in period of the state-space fit (the first d + D*s
    observations) is dropped, since residuals there are not one-step errors.
    """
    if model.results is None:
        raise ValueError("ModelSpec carries no fitted results")
    resid = pd.Series(model.results.resid)
    burn = int(getattr(model.results, "loglikelihood_burn", 0) or 0)
    return resid.iloc[burn:].dropna()


def compute_residual_report(model: ModelSpec,
                            residuals: Optional[Union[pd.Series, np.ndarray]] = None,
                            acf_lags: Optional[int] = None,
                            ljung_box_lags: int = DEFAULT_LJUNG_BOX_LAGS,
                            significance_level: float = 0.05) -> ResidualReport:
    """
    Compute autocorrelation, Ljung-Box and distributional diagnostics of residuals.

    Diagnostics are reporting only: a failed test produces a
    ResidualDiagnosticWarning in the report and a log entry, never an exception.

    Parameters
    ----------
    model : ModelSpec
        Fitted model from the order search
    residuals : array-like, optional
        Residual sequence; defaults to model_residuals(model)
    acf_lags : int, optional
        Highest autocorrelation lag; defaults to twice the seasonal period
    ljung_box_lags : int, default=24
        Lag count of the Ljung-Box portmanteau test
    significance_level : float, default=0.05
        p-values at or below this level raise a diagnostic warning

    Returns
    -------
    ResidualReport
        Autocorrelations for lags 1..L, Ljung-Box and Jarque-Bera p-values,
        summary moments, and the residual sample itself.

    Notes
    -----
    - Ljung-Box null hypothesis: residuals are white noise (no fitted-df correction)
    - Jarque-Bera null hypothesis: residuals are normally distributed
    - Lags are capped at n-1 for short residual series
    """
    resid = model_residuals(model) if residuals is None else pd.Series(np.asarray(residuals, dtype=float)).dropna()
    n = len(resid)
    if n < 3:
        raise ValueError(f"Too few residuals for diagnostics: {n}")

    period = model.seasonal_order[3] or 12
    n_acf = int(min(acf_lags if acf_lags is not None else 2 * period, n - 1))
    acf_vals = acf(resid.values, nlags=n_acf, fft=True)
    autocorrelations = tuple((lag, float(acf_vals[lag])) for lag in range(1, n_acf + 1))

    lb_lags = int(min(ljung_box_lags, n - 1))
    lb = acorr_ljungbox(resid.values, lags=[lb_lags], return_df=True)
    lb_stat = float(lb["lb_stat"].iloc[-1])
    lb_pvalue = float(lb["lb_pvalue"].iloc[-1])

    jb_stat, jb_pvalue, skew, kurt = jarque_bera(resid.values)

    found: List[ResidualDiagnosticWarning] = []
    if np.isfinite(lb_pvalue) and lb_pvalue <= significance_level:
        found.append(ResidualDiagnosticWarning(
            "ljung_box", lb_pvalue,
            f"Serial correlation detected in residuals (Ljung-Box p={lb_pvalue:.4f}, lags={lb_lags})",
        ))
    if np.isfinite(jb_pvalue) and jb_pvalue <= significance_level:
        found.append(ResidualDiagnosticWarning(
            "jarque_bera", float(jb_pvalue),
            f"Residuals not normally distributed (Jarque-Bera p={float(jb_pvalue):.4f})",
        ))
    for w in found:
        logger.warning("%s: %s", model.label, w)

    return ResidualReport(
        autocorrelations=autocorrelations,
        ljung_box_pvalue=lb_pvalue,
        residual_sample=tuple(float(v) for v in resid.values),
        ljung_box_statistic=lb_stat,
        ljung_box_lags=lb_lags,
        acf_confidence_bound=float(stats.norm.ppf(0.975) / np.sqrt(n)),
        jarque_bera_pvalue=float(jb_pvalue),
        mean=float(np.mean(resid.values)),
        std=float(np.std(resid.values, ddof=1)),
        skewness=float(skew),
        kurtosis=float(kurt),
        warnings=tuple(found),
    )


def interpret_residual_report(report: ResidualReport) -> dict:
    """
    Translate a ResidualReport into an adequacy summary with recommendations.

    Returns
    -------
    dict
        Keys 'overall_adequacy' ('good' or 'poor'), 'issues', 'recommendations'.
    """
    issues = [w.message for w in report.warnings]
    recommendations = []
    names = {w.test_name for w in report.warnings}
    if "ljung_box" in names:
        recommendations.append("Consider widening the AR/MA search bounds")
    if "jarque_bera" in names:
        recommendations.append("Interpret Gaussian prediction intervals with caution")
    return {
        "overall_adequacy": "poor" if issues else "good",
        "issues": issues,
        "recommendations": recommendations,
    }
