"""
conftest.py
-----------
Shared fixtures: an offline stand-in for Yahoo! Finance.

`fake_yahoo` replaces `yf.download` with a deterministic generator and
points the parquet cache at a temporary directory.
"""

import sys
from pathlib import Path
import numpy as np
import pandas as pd
import pytest

# --- ensure project root is on sys.path ---
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fundmetrics import config
from fundmetrics.data import loaders


# First and last date each fake ticker has data for; anything else returns nothing
LISTED = {"SPY": "2023-01-02", "NEW": "2023-01-10", "OLD": "2023-01-02"}
DELISTED = {"OLD": "2023-01-20"}
BASE = {"SPY": 100.0, "NEW": 50.0, "OLD": 80.0}


class FakeDownload:
    """Stand-in for yf.download: business days in [start, end], Yahoo column names."""

    def __init__(self):
        self.calls = []

    def __call__(self, symbol, start=None, end=None, interval="1d", **kwargs):
        self.calls.append((symbol, start, end, interval))
        if symbol not in LISTED:
            return pd.DataFrame()
        first = max(pd.Timestamp(start), pd.Timestamp(LISTED[symbol]))
        last = min(pd.Timestamp(end), pd.Timestamp(DELISTED.get(symbol, end)))
        idx = pd.bdate_range(first, last)
        # Price tied to the calendar so overlapping downloads agree
        days = (idx - pd.Timestamp(LISTED[symbol])).days.to_numpy().astype(float)
        px = BASE[symbol] * (1.0 + 0.01 * np.sin(days)) + days
        return pd.DataFrame(
            {
                "Open": px, "High": px + 1, "Low": px - 1, "Close": px,
                "Adj Close": px, "Volume": np.full(len(idx), 1000.0),
            },
            index=idx,
        )


@pytest.fixture
def fake_yahoo(tmp_path, monkeypatch):
    fake = FakeDownload()
    monkeypatch.setattr(loaders.yf, "download", fake)
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    return fake
