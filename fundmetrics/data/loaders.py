"""
loaders.py
----------
Loading and caching historical prices, and turning them into gains.

- Retrieves OHLCV (Open, High, Low, Close, Adjusted Close, Volume) data
  for a given symbol, date range, and bar size from Yahoo! Finance.
- Uses a local parquet file cache (e.g., "data/SPY_1d.parquet") to avoid
  repeated downloads.
- Combines adjusted closes for several tickers into one table
  (`load_prices`) and converts it to per-period gains (`load_gains`).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence, Tuple

import pandas as pd
import yfinance as yf

from .. import config
from ..engine.transforms import pdiffs
from ..exceptions import InvalidArgument, MissingDataError
from ..utils import DATE_COL, read_parquet_safe, to_parquet_safe

logger = logging.getLogger(__name__)

OHLCV_COLS = ["open", "high", "low", "close", "adj_close", "volume"]


def _cache_path(symbol: str, bar: str) -> Path:
    """Return Path to parquet cache file for (symbol, bar)."""
    safe_symbol = symbol.replace("/", "_").upper()
    return Path(config.DATA_DIR) / f"{safe_symbol}_{bar}.parquet"


def _yf_interval(bar: str) -> str:
    """Map our 'bar' to yfinance interval."""
    if bar in ("1d", "1h"):
        return bar
    raise ValueError(f"Unsupported bar '{bar}'. Use '1d' or '1h'.")


def _empty_ohlcv() -> pd.DataFrame:
    return pd.DataFrame(columns=OHLCV_COLS).astype({c: "float64" for c in OHLCV_COLS})


def _standardize_columns(df: pd.DataFrame, symbol: str | None = None) -> pd.DataFrame:
    """Map Yahoo -> ['open','high','low','close','adj_close','volume'] and make index tz-naive."""
    if df is None or df.empty:
        return _empty_ohlcv()

    if isinstance(df.columns, pd.MultiIndex):
        # Pick the level that looks like OHLCV; the other level is the ticker
        wanted = {"open", "high", "low", "close", "adj_close", "adjclose", "volume"}
        picked = None
        for i in range(df.columns.nlevels):
            vals = {str(v).lower().replace(" ", "_") for v in df.columns.get_level_values(i)}
            if len(vals & wanted) >= 3:
                picked = i
                break
        level = picked if picked is not None else 0
        df = df.copy()
        df.columns = [str(v).lower().replace(" ", "_") for v in df.columns.get_level_values(level)]
    else:
        df = df.copy()
        df.columns = [str(c).lower().strip().replace(" ", "_") for c in df.columns]

    df = df.rename(columns={"adjclose": "adj_close", "adjusted_close": "adj_close"})
    if "adj_close" not in df.columns and "close" in df.columns:
        df["adj_close"] = df["close"]
    df = df[[c for c in OHLCV_COLS if c in df.columns]]

    if not isinstance(df.index, pd.DatetimeIndex):
        df.index = pd.to_datetime(df.index, errors="coerce")
    if getattr(df.index, "tz", None) is not None:
        df.index = df.index.tz_localize(None)
    df = df[~df.index.duplicated(keep="last")].sort_index()
    return df


def _fetch_from_yahoo(symbol: str, start: str, end: str, bar: str) -> pd.DataFrame:
    """Fetch raw data from Yahoo Finance and return standardized OHLCV DataFrame."""
    interval = _yf_interval(bar)

    # Hourly only goes back ~730 days
    if bar == "1h":
        end_ts = pd.to_datetime(end)
        min_start = end_ts - pd.Timedelta(days=730)
        start = max(pd.to_datetime(start), min_start).strftime("%Y-%m-%d")

    logger.info("Downloading %s %s %s->%s", symbol, bar, start, end)
    last_err = None
    for threads in (False, True):
        try:
            df = yf.download(
                symbol,
                start=start,
                end=end,              # yfinance 'end' is exclusive
                interval=interval,
                auto_adjust=False,    # keep Adj Close separate
                group_by="column",
                progress=False,
                threads=threads,
            )
            out = _standardize_columns(df, symbol)
            if not out.empty:
                return out
        except Exception as e:  # yfinance surfaces network/parse errors untyped
            last_err = e

    if last_err:
        raise RuntimeError(f"yfinance download failed for {symbol} {start}->{end} {bar}: {last_err}")
    return _empty_ohlcv()


def _load_cache(path: Path) -> pd.DataFrame:
    """Load parquet cache if it exists; else an empty frame with proper columns."""
    cached = read_parquet_safe(path)
    if cached.empty:
        return _empty_ohlcv()
    logger.info("Cache hit: %s (%d rows)", path, len(cached))
    return _standardize_columns(cached)


def _needed_ranges(
    have: pd.DataFrame, start: pd.Timestamp, end: pd.Timestamp
) -> List[Tuple[pd.Timestamp, pd.Timestamp]]:
    """
    Determine which (start, end) ranges are missing from cached data.
    Returns a list of missing intervals in ascending order.
    """
    if have.empty:
        return [(start, end)]
    have_start, have_end = have.index.min(), have.index.max()
    missing: List[Tuple[pd.Timestamp, pd.Timestamp]] = []
    if start < have_start:
        missing.append((start, min(have_start, end)))
    if end > have_end:
        missing.append((max(have_end, start), end))
    return [(s, e) for s, e in missing if s < e]


def get_price_data(symbol: str, start, end, bar: str = config.BAR) -> pd.DataFrame:
    """
    Fetch historical price data for a given symbol with local parquet caching.

    Parameters
    ----------
    symbol : str
        Ticker symbol (e.g., "SPY", "AAPL").
    start, end : str | datetime-like
        Start and end dates. For daily bars end is inclusive;
        for intraday bars end is exclusive (yfinance convention).
    bar : str, default "1d"
        "1d" (daily) or "1h" (hourly).

    Returns
    -------
    pd.DataFrame
        Datetime-indexed DataFrame with:
        ['open','high','low','close','adj_close','volume'].
    """
    _yf_interval(bar)
    cache_file = _cache_path(symbol, bar)
    cached = _load_cache(cache_file)

    start_ts = pd.to_datetime(start)
    end_ts = pd.to_datetime(end)

    # Fetch only what the cache lacks
    gaps = _needed_ranges(cached, start_ts, end_ts)
    fetched_parts = []
    for (s, e) in gaps:
        part = _fetch_from_yahoo(symbol, s.strftime("%Y-%m-%d"), e.strftime("%Y-%m-%d"), bar)
        if not part.empty:
            fetched_parts.append(part.loc[(part.index >= s) & (part.index <= e)])

    if fetched_parts:
        parts = ([cached] if not cached.empty else []) + fetched_parts
        new_data = pd.concat(parts, axis=0)
        new_data = new_data[~new_data.index.duplicated(keep="last")].sort_index()
        to_parquet_safe(new_data, cache_file)
    else:
        new_data = cached

    new_data.index = pd.to_datetime(new_data.index)
    new_data = new_data.sort_index()

    if bar == "1d":
        # Normalize to date so boundaries match midnight
        new_data.index = new_data.index.normalize()
        s, e = start_ts.normalize(), end_ts.normalize()
        window = new_data.loc[(new_data.index >= s) & (new_data.index <= e)].copy()
    else:
        window = new_data.loc[(new_data.index >= start_ts) & (new_data.index < end_ts)].copy()

    for col in OHLCV_COLS:
        if col in window.columns:
            window[col] = pd.to_numeric(window[col], errors="coerce")
    return window


def load_prices(
    tickers: Sequence[str],
    start=config.START,
    end=config.END,
    bar: str = config.BAR,
    mutual_start: bool = True,
    mutual_end: bool = True,
) -> pd.DataFrame:
    """
    Adjusted closing prices for several tickers on a shared date index.

    Parameters
    ----------
    tickers : list of str
        Ticker symbols that Yahoo! Finance recognizes.
    start, end : str | datetime-like
        Date range.
    bar : str, default "1d"
        Bar size.
    mutual_start, mutual_end : bool, default True
        Trim to the latest first date / earliest last date across tickers,
        so every fund covers the same period.

    Returns
    -------
    pd.DataFrame
        DatetimeIndex named "Date", one float column per ticker.
    """
    tickers = list(dict.fromkeys(tickers or []))
    if not tickers:
        raise InvalidArgument("At least one ticker is required")

    series = {}
    for t in tickers:
        px = get_price_data(t, start, end, bar)["adj_close"].dropna()
        if px.empty:
            raise MissingDataError(f"No price data returned for {t} [{start}..{end}] {bar}")
        series[t] = px

    prices = pd.concat(series, axis=1).sort_index()
    if mutual_start:
        prices = prices.loc[max(s.index.min() for s in series.values()):]
    if mutual_end:
        prices = prices.loc[:min(s.index.max() for s in series.values())]
    prices.index.name = DATE_COL
    return prices


def load_gains(tickers: Sequence[str], **kwargs) -> pd.DataFrame:
    """
    Per-period gains for several tickers.

    Prices from `load_prices` (same keyword arguments) are converted
    column-wise with `pdiffs`; the first date is dropped. Gains are
    computed per ticker over its own non-missing prices, so a holiday
    in one market does not blank out the neighbouring gains.
    """
    prices = load_prices(tickers, **kwargs)
    gains = {}
    for t in prices.columns:
        px = prices[t].dropna()
        if len(px) < 2:
            raise MissingDataError(f"Not enough prices to compute gains for {t}")
        gains[t] = pd.Series(pdiffs(px.to_numpy(), 1), index=px.index[1:])
    out = pd.DataFrame(gains, columns=prices.columns).sort_index()
    out.index.name = DATE_COL
    return out


__all__ = ["get_price_data", "load_prices", "load_gains"]
