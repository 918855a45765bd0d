"""
test_data.py
------------
Unit tests for data loading (loaders.py).

Yahoo! Finance is replaced by the `fake_yahoo` fixture (conftest.py)
and the parquet cache lives in a temporary directory, so these run offline.

Run with:
    pytest tests/test_data.py -v
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
from fundmetrics.data.loaders import (
    _cache_path, _standardize_columns, get_price_data, load_gains, load_prices,
)
from fundmetrics.exceptions import InvalidArgument, MissingDataError


# ----------------------------
# Cache paths & standardization
# ----------------------------

def test_cache_path_formatting(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    assert str(_cache_path("SPY", "1d")).endswith("SPY_1d.parquet")
    assert _cache_path("brk/b", "1h") == tmp_path / "BRK_B_1h.parquet"


def test_invalid_bar_raises():
    with pytest.raises(ValueError):
        get_price_data("SPY", "2023-01-01", "2023-02-01", "5m")


def test_standardize_columns_handles_empty():
    df = _standardize_columns(pd.DataFrame())
    assert all(c in df.columns for c in ["open", "high", "low", "close", "adj_close", "volume"])
    assert df.empty


def test_standardize_columns_flattens_multiindex():
    idx = pd.date_range("2023-01-02", periods=3, freq="D", tz="America/New_York")
    cols = pd.MultiIndex.from_product([["Adj Close", "Close", "Open"], ["SPY"]])
    raw = pd.DataFrame(np.ones((3, 3)), index=idx, columns=cols)
    df = _standardize_columns(raw, "SPY")
    assert list(df.columns) == ["open", "close", "adj_close"]
    assert df.index.tz is None


# ----------------------------
# get_price_data
# ----------------------------

def test_get_price_data_schema(fake_yahoo):
    df = get_price_data("SPY", "2023-01-02", "2023-01-31", "1d")
    for col in ["open", "high", "low", "close", "adj_close", "volume"]:
        assert col in df.columns
    assert isinstance(df.index, pd.DatetimeIndex)
    assert df.index.is_monotonic_increasing
    assert df.index.tz is None
    assert df.index.min() >= pd.Timestamp("2023-01-02")
    assert df.index.max() <= pd.Timestamp("2023-01-31")


def test_cache_reuse(fake_yahoo):
    """Second call should be served from the cache file."""
    path = _cache_path("SPY", "1d")
    df1 = get_price_data("SPY", "2023-01-02", "2023-01-31", "1d")
    assert path.exists() or Path(str(path) + ".csv").exists()
    assert len(fake_yahoo.calls) == 1

    df2 = get_price_data("SPY", "2023-01-02", "2023-01-31", "1d")
    assert len(fake_yahoo.calls) == 1
    assert list(df1.index) == list(df2.index)
    assert df1["adj_close"].tolist() == df2["adj_close"].tolist()


def test_cache_extended_only_for_missing_range(fake_yahoo):
    get_price_data("SPY", "2023-01-02", "2023-01-31", "1d")
    df = get_price_data("SPY", "2023-01-02", "2023-02-28", "1d")
    assert len(fake_yahoo.calls) == 2
    _, start, end, _ = fake_yahoo.calls[1]
    assert start == "2023-01-31" and end == "2023-02-28"
    assert df.index.max() == pd.Timestamp("2023-02-28")


def test_download_errors_surface(tmp_path, monkeypatch):
    def boom(*args, **kwargs):
        raise ConnectionError("offline")

    monkeypatch.setattr(loaders.yf, "download", boom)
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    with pytest.raises(RuntimeError, match="offline"):
        get_price_data("SPY", "2023-01-02", "2023-01-31", "1d")


# ----------------------------
# load_prices / load_gains
# ----------------------------

def test_load_prices_mutual_start(fake_yahoo):
    prices = load_prices(["SPY", "NEW"], start="2023-01-02", end="2023-01-31")
    assert list(prices.columns) == ["SPY", "NEW"]
    assert prices.index.name == "Date"
    assert prices.index.min() == pd.Timestamp("2023-01-10")
    assert not prices.isna().any().any()


def test_load_prices_without_mutual_start_keeps_early_rows(fake_yahoo):
    prices = load_prices(["SPY", "NEW"], start="2023-01-02", end="2023-01-31", mutual_start=False)
    assert prices.index.min() == pd.Timestamp("2023-01-02")
    assert pd.isna(prices.loc["2023-01-02", "NEW"])


def test_load_prices_requires_tickers():
    with pytest.raises(InvalidArgument):
        load_prices([])


def test_unknown_ticker_is_missing_data(fake_yahoo):
    with pytest.raises(MissingDataError, match="FAKE"):
        load_prices(["SPY", "FAKE"], start="2023-01-02", end="2023-01-31")


def test_load_gains_drops_first_date(fake_yahoo):
    prices = load_prices(["SPY"], start="2023-01-02", end="2023-01-31")
    gains = load_gains(["SPY"], start="2023-01-02", end="2023-01-31")
    assert len(gains) == len(prices) - 1
    assert gains.index[0] == prices.index[1]
    assert gains["SPY"].iloc[0] == pytest.approx(prices["SPY"].iloc[1] / prices["SPY"].iloc[0] - 1)


def test_load_prices_mutual_end(fake_yahoo):
    prices = load_prices(["SPY", "OLD"], start="2023-01-02", end="2023-01-31")
    assert prices.index.max() == pd.Timestamp("2023-01-20")
    prices = load_prices(["SPY", "OLD"], start="2023-01-02", end="2023-01-31", mutual_end=False)
    assert prices.index.max() == pd.Timestamp("2023-01-31")
    assert pd.isna(prices.loc["2023-01-31", "OLD"])
