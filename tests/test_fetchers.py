import numpy as np
import pandas as pd
import pytest
import requests

from fetchers import COUNTRY_CPI_CODES, FredCPIFetcher
from fetchers.fred_cpi import FRED_API_URL, FRED_GRAPH_CSV_URL


class _FakeResponse:
    def __init__(self, text="", payload=None, status=200):
        self.text = text
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        return self._payload


class _FakeSession:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, dict(params or {}), timeout))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_graph_csv_without_api_key(monkeypatch):
    monkeypatch.delenv("FRED_API_KEY", raising=False)
    csv_text = "observation_date,CPIAUCNS\n2020-02-01,258.7\n2020-01-01,257.9\n2020-03-01,.\n"
    session = _FakeSession(_FakeResponse(text=csv_text))
    fetcher = FredCPIFetcher(session=session, timeout=5)

    s = fetcher("usa")

    url, params, timeout = session.requests[0]
    assert url == FRED_GRAPH_CSV_URL
    assert params == {"id": "CPIAUCNS"}
    assert timeout == 5
    assert s.name == "usa"
    assert list(s.index) == list(pd.to_datetime(["2020-01-01", "2020-02-01", "2020-03-01"]))
    assert s.iloc[0] == pytest.approx(257.9)
    assert np.isnan(s.iloc[-1])


def test_json_api_with_key():
    payload = {"observations": [
        {"date": "2019-01-01", "value": "100.0"},
        {"date": "2019-02-01", "value": "."},
        {"date": "2019-03-01", "value": "101.5"},
    ]}
    session = _FakeSession(_FakeResponse(payload=payload))
    fetcher = FredCPIFetcher(api_key="KEY", session=session)

    s = fetcher.fetch_series("GBRCPIALLMINMEI", start_date="2019-01-01")

    url, params, _ = session.requests[0]
    assert url == FRED_API_URL
    assert params["api_key"] == "KEY"
    assert params["observation_start"] == "2019-01-01"
    assert len(s) == 3
    assert s.isna().sum() == 1


def test_empty_observations_give_empty_series():
    fetcher = FredCPIFetcher(api_key="KEY", session=_FakeSession(_FakeResponse(payload={"observations": []})))
    assert fetcher.fetch_series("X").empty


def test_http_errors_propagate(monkeypatch):
    monkeypatch.delenv("FRED_API_KEY", raising=False)
    fetcher = FredCPIFetcher(session=_FakeSession(_FakeResponse(status=500)))
    with pytest.raises(requests.exceptions.HTTPError):
        fetcher.fetch_country("BRA")

    fetcher = FredCPIFetcher(session=_FakeSession(requests.exceptions.ConnectionError("offline")))
    with pytest.raises(requests.exceptions.RequestException):
        fetcher.fetch_country("BRA")


def test_code_resolution():
    fetcher = FredCPIFetcher(series_codes={"ZAF": "CUSTOM"}, session=_FakeSession(None))
    assert fetcher.resolve_code("zaf") == "CUSTOM"
    assert fetcher.resolve_code("CPIAUCSL") == "CPIAUCSL"
    assert set(COUNTRY_CPI_CODES) == {"USA", "GBR", "BRA", "ZAF", "IND"}


def test_package_exports_only_the_fetcher_and_codes():
    import fetchers

    assert sorted(fetchers.__all__) == ["COUNTRY_CPI_CODES", "FredCPIFetcher"]
    assert not hasattr(fetchers, "fetch_country_cpi")
