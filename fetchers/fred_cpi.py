"""
FRED CPI Fetcher

Fetches monthly consumer price index series from FRED (Federal Reserve
Economic Data) for the CPI forecaster.

Two endpoints are supported:
- the JSON observations API, when an API key is available
- the public ``fredgraph.csv`` download, which needs no key
"""

import io
import logging
import os
from typing import Dict, Optional

import pandas as pd
import requests

logger = logging.getLogger(__name__)

# Monthly CPI index per country (ISO 3166 alpha-3 -> FRED series id)
COUNTRY_CPI_CODES: Dict[str, str] = {
    'USA': 'CPIAUCNS',
    'GBR': 'GBRCPIALLMINMEI',
    'BRA': 'BRACPIALLMINMEI',
    'ZAF': 'ZAFCPICORAINMEI',
    'IND': 'INDCPALTT01IXOBM',
}

FRED_API_URL = "https://api.stlouisfed.org/fred/series/observations"
FRED_GRAPH_CSV_URL = "https://fred.stlouisfed.org/graph/fredgraph.csv"


class FredCPIFetcher:
    """Fetcher for monthly CPI series from FRED."""

    def __init__(self, api_key: Optional[str] = None,
                 series_codes: Optional[Dict[str, str]] = None,
                 timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        """
        Initialize FRED CPI fetcher.

        Parameters
        ----------
        api_key : str, optional
            FRED API key. If None, the FRED_API_KEY environment variable is
            used; without any key the public CSV download is used instead.
        series_codes : dict, optional
            ISO code -> FRED series id; defaults to COUNTRY_CPI_CODES
        timeout : float, default=30.0
            HTTP timeout in seconds
        session : requests.Session, optional
            Session to reuse connections
        """
        self.api_key = api_key or os.getenv('FRED_API_KEY')
        self.series_codes = dict(series_codes or COUNTRY_CPI_CODES)
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self, country: str) -> pd.Series:
        return self.fetch_country(country)

    def resolve_code(self, country: str) -> str:
        """Map an ISO code to its FRED series id; unknown codes pass through."""
        return self.series_codes.get(country.upper(), country)

    def fetch_country(self, country: str) -> pd.Series:
        """Fetch the CPI series for a country ISO code (or a raw FRED id)."""
        series = self.fetch_series(self.resolve_code(country))
        series.name = country
        return series

    def fetch_series(self, series_id: str, start_date: Optional[str] = None) -> pd.Series:
        """
        Fetch a FRED time series.

        Parameters
        ----------
        series_id : str
            FRED series ID (e.g., 'CPIAUCNS')
        start_date : str, optional
            Start date in YYYY-MM-DD format

        Returns
        -------
        pd.Series
            Float series with DatetimeIndex, ascending; missing values are NaN.

        Raises
        ------
        requests.exceptions.RequestException
            On network or HTTP errors.
        """
        if self.api_key:
            return self._fetch_api(series_id, start_date)
        return self._fetch_graph_csv(series_id, start_date)

    def _fetch_api(self, series_id: str, start_date: Optional[str]) -> pd.Series:
        params = {
            'series_id': series_id,
            'api_key': self.api_key,
            'file_type': 'json',
            'sort_order': 'asc',
        }
        if start_date:
            params['observation_start'] = start_date

        try:
            logger.debug("Fetching FRED series via API: %s", series_id)
            response = self.session.get(FRED_API_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error("Failed to fetch FRED series %s: %s", series_id, e)
            raise

        observations = response.json().get('observations', [])
        if not observations:
            logger.warning("No observations found for series %s", series_id)
            return pd.Series(dtype=float, name=series_id)

        df = pd.DataFrame(observations)
        return self._to_series(df['date'], df['value'], series_id)

    def _fetch_graph_csv(self, series_id: str, start_date: Optional[str]) -> pd.Series:
        params = {'id': series_id}
        if start_date:
            params['cosd'] = start_date

        try:
            logger.debug("Fetching FRED series via fredgraph.csv: %s", series_id)
            response = self.session.get(FRED_GRAPH_CSV_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error("Failed to fetch FRED series %s: %s", series_id, e)
            raise

        df = pd.read_csv(io.StringIO(response.text))
        if df.shape[1] < 2:
            logger.warning("Unexpected fredgraph.csv layout for %s", series_id)
            return pd.Series(dtype=float, name=series_id)
        # First column is the observation date (header varies: DATE / observation_date)
        return self._to_series(df.iloc[:, 0], df.iloc[:, 1], series_id)

    @staticmethod
    def _to_series(dates, values, series_id: str) -> pd.Series:
        # FRED marks missing values with '.'
        series = pd.Series(
            pd.to_numeric(pd.Series(values).values, errors='coerce'),
            index=pd.to_datetime(pd.Series(dates).values),
            name=series_id,
        ).sort_index()
        logger.info("Fetched %d observations for FRED series %s", series.notna().sum(), series_id)
        return series

