import argparse

import pytest

import cpi_forecaster_src.config_utils as config_utils
from cpi_forecaster_src.config_utils import (
    DEFAULT_CONFIG_PATH,
    ConfigurationError,
    ConfigurationManager,
    get_config_value,
    initialize_config,
)

CONFIG_YAML = """
data:
  window_start: "2000-06"
forecast:
  horizon: 18
  horizon_bounds: [1, 36]
model:
  search_space:
    max_p: 3
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "forecast_config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


def test_dot_path_lookup(config_file):
    manager = ConfigurationManager(config_file)
    assert manager.get("forecast.horizon") == 18
    assert manager.get("model.search_space.max_p") == 3
    assert manager.get("model.search_space.max_q", 5) == 5
    assert manager.get("forecast.horizon.nested", "x") == "x"
    assert manager.validate_configuration() == {}


def test_precedence_cli_then_file_then_default(config_file, monkeypatch):
    monkeypatch.setattr(config_utils, "config_manager", ConfigurationManager(config_file))

    args = argparse.Namespace(horizon=6, window_start=None)
    assert get_config_value("forecast.horizon", 24, args, "horizon") == 6
    assert get_config_value("data.window_start", "1990-01", args, "window_start") == "2000-06"
    assert get_config_value("data.min_observations", 36, args, "min_obs") == 36


def test_missing_file_yields_empty_config(tmp_path, monkeypatch):
    monkeypatch.setattr(config_utils, "config_manager", None)
    manager = initialize_config(tmp_path / "nope.yaml")
    assert manager is not None
    assert manager.get("forecast.horizon") is None
    assert get_config_value("forecast.horizon", 24) == 24


def test_invalid_yaml_falls_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.setattr(config_utils, "config_manager", None)
    bad = tmp_path / "bad.yaml"
    bad.write_text("forecast: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigurationManager(bad)
    assert initialize_config(bad) is None
    assert get_config_value("forecast.horizon", 24) == 24


def test_validation_reports_problems(tmp_path):
    path = tmp_path / "c.yaml"
    path.write_text(
        "forecast:\n  horizon_bounds: [10, 2]\nmodel:\n  search_space:\n    max_p: -1\n"
        "  search:\n    method: random\n",
        encoding="utf-8",
    )
    errors = ConfigurationManager(path).validate_configuration()
    assert set(errors) == {"forecast", "model"}
    assert len(errors["model"]) == 2


def test_shipped_config_is_valid():
    manager = ConfigurationManager(DEFAULT_CONFIG_PATH)
    assert manager.validate_configuration() == {}
    assert manager.get("forecast.horizon") == 24
    assert manager.get("data_sources.fred.series")["USA"] == "CPIAUCNS"
