import pandas as pd
import numpy as np
import pytest

from helpers.temporal import next_month_dates, parse_year_month, to_month_start


def test_to_month_start_keeps_last_value_per_month():
    idx = pd.DatetimeIndex(["2020-01-15", "2020-01-31", "2020-02-10", "2020-04-01"])
    s = pd.Series([1.0, 2.0, 3.0, 4.0], index=idx, name="CPI")
    out = to_month_start(s)

    # March stays missing; duplicates within January collapse to the last value
    assert list(out.index) == [pd.Timestamp("2020-01-01"), pd.Timestamp("2020-02-01"), pd.Timestamp("2020-04-01")]
    assert out.tolist() == [2.0, 3.0, 4.0]
    assert out.name == "CPI"


def test_to_month_start_period_and_string_index():
    s = pd.Series([1.0, 2.0], index=pd.period_range("2021-11", periods=2, freq="M"))
    out = to_month_start(s)
    assert list(out.index) == [pd.Timestamp("2021-11-01"), pd.Timestamp("2021-12-01")]

    s2 = pd.Series([5.0], index=["2022-03-20"])
    assert to_month_start(s2).index[0] == pd.Timestamp("2022-03-01")


def test_to_month_start_rejects_non_series():
    with pytest.raises(TypeError):
        to_month_start(np.arange(3))


def test_parse_year_month():
    assert parse_year_month("1990-01") == pd.Timestamp("1990-01-01")
    assert parse_year_month("2001-07-15") == pd.Timestamp("2001-07-01")


def test_next_month_dates_crosses_year_end():
    out = next_month_dates(pd.Timestamp("2024-11-01"), 3)
    assert list(out) == [pd.Timestamp("2024-12-01"), pd.Timestamp("2025-01-01"), pd.Timestamp("2025-02-01")]
    assert out.freqstr == "MS"
