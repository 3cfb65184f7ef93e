"""
Data Fetchers for the CPI forecaster

Ingestion collaborators that return raw, possibly gap-containing, dated CPI
observations ascending by date. Normalization happens in the core package.
"""

from .fred_cpi import (
    COUNTRY_CPI_CODES,
    FredCPIFetcher,
)

__all__ = [
    "COUNTRY_CPI_CODES",
    "FredCPIFetcher",
]
