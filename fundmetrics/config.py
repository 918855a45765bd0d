"""
config.py
----------
Configuration for the fund metrics toolkit.

Defines default parameters for data ingestion, window partitioning,
annualization and report output. Every value can be overridden through
the corresponding function argument.
"""

import os
from pathlib import Path

# --- Universe & Data Parameters ---
TICKERS   = ["SSO", "UPRO"]      # Funds to analyze when none are given
BENCHMARK = "SPY"                # Benchmark for alpha/beta/r.squared/r/rho
START     = "2015-01-01"         # Start date for downloads
END       = "2025-01-01"         # End date for downloads
BAR       = "1d"                 # Data frequency: "1d" (daily) or "1h" (hourly)

# --- Windowing ---
WINDOW_TYPE = "hop.year"         # "roll.n", "hop.n", "hop.month", "hop.year" or break-point dates
MINIMUM_N   = 3                  # Minimum observations per disjoint window

# --- Annualization ---
UNITS_YEAR = dict(
    day = 252,                   # Trading days per year
    month = 12,
    year = 1,
)
FREQ_SAMPLE = 10                 # Leading observations used to infer sampling frequency

# --- Storage ---
DATA_DIR    = Path(os.environ.get("FUNDMETRICS_DATA_DIR", "data"))   # Parquet price cache
REPORTS_DIR = Path("reports")                                         # Excel + PNG output
