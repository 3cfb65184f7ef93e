# cpi_forecaster_src/config_utils.py

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "forecast_config.yaml"

# Initialized lazily by initialize_config()
config_manager = None


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


class ConfigurationManager:
    """
    YAML-backed configuration with dot-path access.

    Parameters
    ----------
    config_path : Path
        YAML file to load. A missing file yields an empty configuration.
    """

    def __init__(self, config_path: Union[str, Path] = DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path)
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.config_path.is_file():
            logger.warning("Configuration file not found: %s - using defaults", self.config_path)
            return {}
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Top level of {self.config_path} must be a mapping")
        logger.debug("Loaded configuration from %s", self.config_path)
        return data

    def get(self, key_path: str, default=None):
        """
        Look up a value by dot-separated path, e.g. ``model.search_space.max_p``.
        """
        node: Any = self._data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def validate_configuration(self) -> Dict[str, List[str]]:
        """
        Check value ranges of the keys the pipeline consumes.

        Returns
        -------
        Dict[str, List[str]]
            Section name -> list of problems; empty when valid.
        """
        errors: Dict[str, List[str]] = {}

        def _add(section: str, msg: str) -> None:
            errors.setdefault(section, []).append(msg)

        bounds = self.get("forecast.horizon_bounds")
        if bounds is not None:
            if not (isinstance(bounds, list) and len(bounds) == 2 and 1 <= int(bounds[0]) <= int(bounds[1])):
                _add("forecast", f"horizon_bounds must be [lo, hi] with 1 <= lo <= hi, got {bounds!r}")

        for key in ("max_p", "max_d", "max_q", "max_P", "max_D", "max_Q", "max_order"):
            val = self.get(f"model.search_space.{key}")
            if val is not None and (not isinstance(val, int) or val < 0):
                _add("model", f"search_space.{key} must be a non-negative integer, got {val!r}")

        method = self.get("model.search.method")
        if method is not None and method not in ("exhaustive", "stepwise"):
            _add("model", f"search.method must be 'exhaustive' or 'stepwise', got {method!r}")

        differencing = self.get("model.search.differencing")
        if differencing is not None and differencing not in ("test", "search"):
            _add("model", f"search.differencing must be 'test' or 'search', got {differencing!r}")

        min_obs = self.get("data.min_observations")
        if min_obs is not None and (not isinstance(min_obs, int) or min_obs < 1):
            _add("data", f"min_observations must be a positive integer, got {min_obs!r}")

        return errors


def initialize_config(config_path: Optional[Union[str, Path]] = None) -> Optional[ConfigurationManager]:
    """
    Initializes the global configuration manager.
    If the configuration file cannot be parsed, the error is logged and the
    run proceeds with default settings.
    """
    global config_manager
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    try:
        config_manager = ConfigurationManager(path)
        validation_errors = config_manager.validate_configuration()
        if validation_errors:
            logger.warning("Configuration validation warnings: %s", validation_errors)
    except ConfigurationError as e:
        logger.error("Failed to initialize configuration: %s. Using defaults.", e)
        config_manager = None
    return config_manager


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_manager is not None:
        config_value = config_manager.get(key_path, None)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default
