"""
overtime.py
-----------
Performance metrics over rolling or disjoint time windows.

Workflow
--------
1. Validate metric names and parse the window type (fail fast).
2. Obtain gains: given directly, derived from prices with `pdiffs`,
   or downloaded for a list of tickers.
3. Keep complete cases over the fund and benchmark columns.
4. Infer the annualization factor from the date spacing.
5. Partition the dates into windows and drop short disjoint windows.
6. Evaluate every requested metric per (fund, window), slicing the
   benchmark over the same rows for alpha/beta/r.squared/r/rho.

The result is a long table with one row per (fund, window):
    Fund | Period | Start date | End date | <metric> ...
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Union

import pandas as pd

from ..config import BENCHMARK, MINIMUM_N, WINDOW_TYPE
from ..exceptions import InvalidArgument, MissingDataError
from ..utils import infer_units_year, time_block, validate_gains_df
from .metrics import BENCHMARK_METRICS, METRICS, Metric, check_metrics
from .transforms import pdiffs
from .windows import make_windows, parse_window_type

logger = logging.getLogger(__name__)

FUND_COL = "Fund"
PERIOD_COL = "Period"
START_COL = "Start date"
END_COL = "End date"


def prices_to_gains(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Convert a prices table to a gains table.

    Each column goes through `pdiffs(x, 1)`; the first date is dropped
    since it has no preceding price.
    """
    px = validate_gains_df(prices)
    if len(px) < 2:
        raise InvalidArgument("At least two price observations are needed to compute gains")
    gains = {c: pdiffs(px[c].to_numpy(), 1) for c in px.columns}
    return pd.DataFrame(gains, index=px.index[1:], columns=px.columns)


def _resolve_gains(gains, prices, tickers, benchmark, loader_kwargs) -> pd.DataFrame:
    if gains is not None:
        return validate_gains_df(gains)
    if prices is not None:
        return prices_to_gains(prices)
    if tickers:
        from ..data.loaders import load_gains

        symbols = list(dict.fromkeys(([benchmark] if benchmark else []) + list(tickers)))
        loaded = load_gains(symbols, mutual_start=True, mutual_end=True, **loader_kwargs)
        if loaded.empty:
            raise MissingDataError(f"No gains could be loaded for {symbols}")
        return loaded
    raise MissingDataError("You must specify 'gains', 'prices', or 'tickers'")


def _empty_result(metrics: Sequence[Metric]) -> pd.DataFrame:
    cols = [FUND_COL, PERIOD_COL, START_COL, END_COL] + [m.value for m in metrics]
    return pd.DataFrame({c: pd.Series(dtype="object") for c in cols})


def calc_metrics_overtime(
    metrics: Union[str, Iterable[str]] = "growth",
    type: Union[str, Sequence] = WINDOW_TYPE,
    minimum_n: int = MINIMUM_N,
    tickers: Optional[Sequence[str]] = None,
    gains: Optional[pd.DataFrame] = None,
    prices: Optional[pd.DataFrame] = None,
    benchmark: Optional[str] = BENCHMARK,
    **loader_kwargs,
) -> pd.DataFrame:
    """
    Calculate performance metrics over time windows.

    Parameters
    ----------
    metrics : str | list of str
        Metric name(s) from the catalog, e.g. "cagr" or ["alpha", "beta"].
    type : str | sequence of dates
        "roll.n", "hop.n", "hop.month", "hop.year", or break-point dates,
        e.g. ["2019-01-01", "2019-06-01"] for three periods.
    minimum_n : int, default 3
        Minimum observations per disjoint window; shorter windows are dropped.
    tickers : list of str, optional
        Funds to analyze. When neither `gains` nor `prices` is given they
        are downloaded (together with the benchmark) via `load_gains`.
        Otherwise they select columns of the supplied table.
    gains : pd.DataFrame, optional
        Table with a Date column (or DatetimeIndex) and one gain column per fund.
    prices : pd.DataFrame, optional
        Same layout with prices; converted to gains first.
    benchmark : str, optional, default "SPY"
        Column used as benchmark for alpha, alpha.annualized, beta,
        r.squared, r and rho. Ignored for other metrics.
    **loader_kwargs
        Passed to `load_gains` when downloading (e.g. start, end).

    Returns
    -------
    pd.DataFrame
        Columns: Fund, Period, Start date, End date, one column per metric.
        Ordered by fund, then window start date.

    Raises
    ------
    InvalidArgument
        Unknown metric, malformed window type, missing columns, or a
        benchmark-based metric without a benchmark.
    MissingDataError
        No gains, prices or tickers supplied.
    """
    requested = check_metrics(metrics)
    policy = parse_window_type(type)

    needs_benchmark = any(m in BENCHMARK_METRICS for m in requested)
    if needs_benchmark and not benchmark:
        names = [m.value for m in requested if m in BENCHMARK_METRICS]
        raise InvalidArgument(f"Metric(s) {names} require a benchmark")
    bench = benchmark if needs_benchmark else None

    table = _resolve_gains(gains, prices, tickers, bench, loader_kwargs)

    if tickers and (gains is not None or prices is not None):
        funds = [t for t in dict.fromkeys(tickers) if t != bench]
    else:
        funds = [c for c in table.columns if c != bench]
    required = funds + ([bench] if bench else [])
    missing = [c for c in required if c not in table.columns]
    if missing:
        raise InvalidArgument(f"Columns not found in data: {missing}. Have: {list(table.columns)}")
    if not funds:
        raise InvalidArgument("No funds to analyze besides the benchmark")

    table = table[required]
    complete = table.dropna()
    if len(complete) < len(table):
        logger.info("Dropped %d row(s) with missing values", len(table) - len(complete))
    if complete.empty:
        logger.warning("No complete rows left after dropping missing values")
        return _empty_result(requested)

    units_year = infer_units_year(complete.index)

    with time_block("calc_metrics_overtime"):
        windows = make_windows(complete.index, funds, policy, minimum_n)
        logger.debug("%d window(s) across %d fund(s), policy %s", len(windows), len(funds), policy)
        if not windows:
            return _empty_result(requested)

        values = {c: complete[c].to_numpy() for c in required}
        bench_values = values[bench] if bench else None
        rows = []
        for w in windows:
            g = values[w.fund][w.rows]
            row = {
                FUND_COL: w.fund,
                PERIOD_COL: w.label,
                START_COL: w.start_date,
                END_COL: w.end_date,
            }
            for m in requested:
                spec = METRICS[m]
                b = bench_values[w.rows] if spec.requires_benchmark else None
                row[m.value] = spec.formula(g, units_year, b)
            rows.append(row)

    out = pd.DataFrame(rows, columns=[FUND_COL, PERIOD_COL, START_COL, END_COL] + [m.value for m in requested])
    for m in requested:
        out[m.value] = out[m.value].astype("float64")
    return out


__all__ = [
    "FUND_COL", "PERIOD_COL", "START_COL", "END_COL",
    "prices_to_gains", "calc_metrics_overtime",
]
