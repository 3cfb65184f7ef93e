# cpi_forecaster_src/file_utils.py

import csv
import pandas as pd
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

SUMMARY_HEADER = [
    "series_id", "model", "AICc", "adf_pvalue", "ljung_box_pvalue", "pipeline_d", "status",
]


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    Parameters
    ----------
    path : Path
        Directory path to create
    """
    path.mkdir(parents=True, exist_ok=True)


def write_forecast_csv(table: pd.DataFrame, out_dir: Path, series_id: str) -> Path:
    """
    Write the forecast export table as ``forecast_{series_id}.csv``.

    Dates are written as ISO ``YYYY-MM-DD`` strings, without the row index.

    Returns
    -------
    Path
        Path of the written file.
    """
    ensure_dir(out_dir)
    out_path = out_dir / f"forecast_{series_id}.csv"
    out = table.copy()
    out["Date"] = pd.to_datetime(out["Date"]).dt.strftime("%Y-%m-%d")
    out.to_csv(out_path, index=False)
    logger.info("Saved forecast table: %s", out_path)
    return out_path


def append_summary_csv_row(csv_path: Optional[Path],
                           row: Dict[str, Any],
                           header: List[str] = SUMMARY_HEADER) -> None:
    """
    Append a single summary row to CSV, creating header on first write.

    Parameters
    ----------
    csv_path : Optional[Path]
        Path to summary CSV file (None to skip writing)
    row : Dict[str, Any]
        Values keyed by column name; missing columns are left empty
    header : List[str]
        List of column names for the CSV
    """
    if csv_path is None:
        return

    csv_path.parent.mkdir(parents=True, exist_ok=True)
    exists = csv_path.exists()

    with csv_path.open("a", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=header, restval="", extrasaction="ignore")
        if not exists:
            writer.writeheader()
        writer.writerow(row)


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path string relative to a base directory if not absolute.

    Examples
    --------
    >>> resolve_path("out/file.csv", Path("/project"))
    PosixPath('/project/out/file.csv')
    >>> resolve_path("/absolute/path.csv", Path("/project"))
    PosixPath('/absolute/path.csv')
    """
    path = Path(path_str)
    return path if path.is_absolute() else (base_dir / path)
