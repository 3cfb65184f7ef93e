# cpi_forecaster_src/parsing_utils.py

from typing import List, Optional, Sequence
import logging

from helpers.temporal import parse_year_month

logger = logging.getLogger(__name__)


def parse_countries(country_string: Optional[str], available: Sequence[str]) -> List[str]:
    """
    Parse a comma-separated list of country codes.

    ``None``, an empty string or 'ALL' select every available country. Codes are
    upper-cased; unknown codes are kept (they are treated as raw FRED ids) but
    logged.

    Examples
    --------
    >>> parse_countries("usa, gbr", ["USA", "GBR", "IND"])
    ['USA', 'GBR']
    >>> parse_countries("ALL", ["USA", "GBR"])
    ['USA', 'GBR']
    """
    if not country_string or country_string.strip().upper() == "ALL":
        return list(available)
    out: List[str] = []
    for c in country_string.split(","):
        code = c.strip().upper()
        if not code or code in out:
            continue
        if code not in available:
            logger.warning("Country '%s' has no configured CPI series; using it as a FRED id", code)
        out.append(code)
    return out


def validate_window_start(value: str) -> str:
    """
    Validate a 'YYYY-MM' window start and return it normalized.

    Raises
    ------
    ValueError
        If the value cannot be parsed as a calendar month.
    """
    try:
        ts = parse_year_month(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid window start '{value}'. Expected YYYY-MM.") from e
    return ts.strftime("%Y-%m")


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
