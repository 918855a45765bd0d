"""
utils.py
--------
General-purpose utilities for the fund metrics toolkit.

Highlights
----------
- Filesystem helpers: ensure_dir
- Time/granularity: infer_units_year
- DataFrame hygiene: validate_gains_df
- Formatting: fmt_pct, fmt_float, fmt_metric
- Timing: time_block context manager
- Safe parquet I/O: to_parquet_safe, read_parquet_safe
"""

from __future__ import annotations

import contextlib
import logging
import time
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from .config import FREQ_SAMPLE, UNITS_YEAR
from .exceptions import InvalidArgument

logger = logging.getLogger(__name__)

DATE_COL = "Date"


# ----------------------------
# Filesystem
# ----------------------------

def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists; return Path to it.
    If 'path' is a file path, its parent directory is created.
    """
    p = Path(path)
    target = p if p.suffix == "" else p.parent
    target.mkdir(parents=True, exist_ok=True)
    return p


# ----------------------------
# Time & cadence utilities
# ----------------------------

def infer_units_year(index: pd.DatetimeIndex, sample: int = FREQ_SAMPLE) -> int:
    """
    Infer the annualization factor from the spacing of the first dates.

    Heuristic, not calendar arithmetic: take the smallest gap among the
    first `sample` observations and
      - gap of at most 1 day -> daily   -> 252
      - gap of <= 30 days    -> monthly -> 12
      - otherwise            -> yearly  -> 1
    Irregular or gappy series can be misclassified. With fewer than two
    dates there is no gap to inspect and daily is assumed.
    """
    idx = pd.DatetimeIndex(index)[:sample]
    if len(idx) < 2:
        logger.warning("Fewer than two dates; assuming daily data (%d periods/year)", UNITS_YEAR["day"])
        return UNITS_YEAR["day"]
    gaps = (idx[1:] - idx[:-1]).total_seconds() / 86400.0
    min_gap = float(np.min(gaps))
    if min_gap <= 1:
        units = UNITS_YEAR["day"]
    elif min_gap <= 30:
        units = UNITS_YEAR["month"]
    else:
        units = UNITS_YEAR["year"]
    logger.debug("Smallest gap %.2f days -> %d periods/year", min_gap, units)
    return units


# ----------------------------
# DataFrame validation
# ----------------------------

def validate_gains_df(df: pd.DataFrame, date_col: str = DATE_COL) -> pd.DataFrame:
    """
    Validate a prices/gains table and return a cleaned copy.

    - Dates come from the `date_col` column if present, else from the index.
    - Index becomes a tz-naive DatetimeIndex sorted ascending.
    - Duplicate dates are rejected.
    - Remaining columns are converted to float; a column holding values
      that are neither numeric nor missing is rejected.
    """
    if df is None or not isinstance(df, pd.DataFrame):
        raise InvalidArgument("Expected a pandas DataFrame of prices or gains")

    out = df.copy()
    if date_col in out.columns:
        out = out.set_index(date_col)
    if not isinstance(out.index, pd.DatetimeIndex):
        try:
            out.index = pd.to_datetime(out.index)
        except (ValueError, TypeError) as exc:
            raise InvalidArgument(
                f"Data must have a '{date_col}' column or a DatetimeIndex"
            ) from exc
    if out.index.tz is not None:
        out.index = out.index.tz_convert(None)
    if out.index.hasnans:
        raise InvalidArgument("Dates must not contain missing values")
    if out.index.has_duplicates:
        dups = out.index[out.index.duplicated()].unique()
        raise InvalidArgument(f"Dates must be unique; duplicated: {[str(d.date()) for d in dups[:5]]}")
    out = out.sort_index()
    out.index.name = date_col

    bad = []
    for c in out.columns:
        converted = pd.to_numeric(out[c], errors="coerce")
        if (converted.isna() & out[c].notna()).any():
            bad.append(c)
            continue
        out[c] = converted.astype("float64")
    if bad:
        raise InvalidArgument(f"Column(s) {bad} contain non-numeric values")
    return out


# ----------------------------
# Formatting helpers
# ----------------------------

def fmt_pct(x: Optional[float], digits: int = 2) -> str:
    """Format a fraction as a percentage string."""
    if x is None or (isinstance(x, float) and np.isnan(x)):
        return "n/a"
    return f"{x:.{digits}%}"


def fmt_float(x: Optional[float], digits: int = 4) -> str:
    """Format a float with fixed precision."""
    if x is None or (isinstance(x, float) and np.isnan(x)):
        return "n/a"
    return f"{x:.{digits}f}"


def fmt_metric(x: Optional[float], metric) -> str:
    """Format a raw metric value using its catalog units and decimals."""
    from .engine.metrics import METRICS, parse_metric

    spec = METRICS[parse_metric(metric)]
    if spec.units == "%":
        return fmt_pct(x, spec.decimals)
    return fmt_float(x, spec.decimals)


# ----------------------------
# Timing / profiling
# ----------------------------

@contextlib.contextmanager
def time_block(label: str = "block"):
    """
    Context manager to log elapsed wall time of a code block.

    Example:
        with time_block("metrics"):
            df = calc_metrics_overtime(...)
    """
    t0 = time.perf_counter()
    try:
        yield
    finally:
        dt = time.perf_counter() - t0
        logger.debug("[TIMER] %s: %.3fs", label, dt)


# ----------------------------
# Parquet I/O (safe)
# ----------------------------

def to_parquet_safe(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    """
    Write DataFrame to parquet; fall back to CSV next to it if no parquet
    engine is available. Returns the path actually written.
    """
    p = ensure_dir(path)
    try:
        df.to_parquet(p, index=True)
        return p
    except (ImportError, ValueError) as exc:
        alt = Path(str(p) + ".csv")
        df.to_csv(alt, index=True)
        logger.warning("Parquet write failed (%s). Wrote CSV fallback at: %s", exc, alt)
        return alt


def read_parquet_safe(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read DataFrame from parquet, falling back to CSV(.csv) if needed.
    Returns empty DataFrame if nothing is available.
    """
    p = Path(path)
    if p.exists():
        try:
            return pd.read_parquet(p)
        except (ImportError, ValueError, OSError) as exc:
            logger.warning("Parquet read failed (%s). Trying CSV fallback...", exc)
    csv_p = Path(str(p) + ".csv")
    if csv_p.exists():
        return pd.read_csv(csv_p, parse_dates=True, index_col=0)
    return pd.DataFrame()


__all__ = [
    "DATE_COL", "ensure_dir",
    "infer_units_year",
    "validate_gains_df",
    "fmt_pct", "fmt_float", "fmt_metric",
    "time_block",
    "to_parquet_safe", "read_parquet_safe",
]
