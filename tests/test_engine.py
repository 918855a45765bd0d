"""
test_engine.py
--------------
Unit tests for metrics over time windows (calc_metrics_overtime)
and the frequency/validation helpers it relies on.

Run with:
    pytest tests/test_engine.py -v
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

from fundmetrics.engine.overtime import calc_metrics_overtime, prices_to_gains
from fundmetrics.exceptions import InvalidArgument, MissingDataError
from fundmetrics.utils import infer_units_year, validate_gains_df


# ----------------------------
# Helpers
# ----------------------------

def make_gains(columns, start="2020-01-01", freq="D"):
    """Gains table with a Date column, one column per fund."""
    n = len(next(iter(columns.values())))
    df = pd.DataFrame(columns, dtype=float)
    df.insert(0, "Date", pd.date_range(start=start, periods=n, freq=freq))
    return df


def random_gains(n, start="2020-01-01", freq="D", seed=0):
    rng = np.random.default_rng(seed)
    spy = rng.normal(0.0004, 0.01, n)
    return make_gains(
        {"SPY": spy, "SSO": 2 * spy + 0.0001, "UPRO": 3 * spy - 0.0002},
        start=start, freq=freq,
    )


# ----------------------------
# Frequency inference & validation
# ----------------------------

def test_infer_units_year():
    assert infer_units_year(pd.date_range("2020-01-01", periods=20, freq="D")) == 252
    assert infer_units_year(pd.bdate_range("2020-01-01", periods=20)) == 252
    assert infer_units_year(pd.date_range("2020-01-01", periods=20, freq="MS")) == 12
    assert infer_units_year(pd.DatetimeIndex([f"{y}-12-31" for y in range(2000, 2020)])) == 1
    assert infer_units_year(pd.DatetimeIndex(["2020-01-01"])) == 252


def test_infer_units_year_only_looks_at_first_observations():
    # Monthly spacing up front, daily much later: still monthly
    idx = pd.DatetimeIndex(
        list(pd.date_range("2020-01-01", periods=11, freq="MS"))
        + list(pd.date_range("2021-01-01", periods=5, freq="D"))
    )
    assert infer_units_year(idx) == 12


def test_validate_gains_df_accepts_index_or_column():
    df = make_gains({"A": [0.1, 0.2]})
    out1 = validate_gains_df(df)
    out2 = validate_gains_df(df.set_index("Date"))
    pd.testing.assert_frame_equal(out1, out2)
    assert list(out1.columns) == ["A"]


def test_validate_gains_df_rejects_duplicate_dates():
    df = pd.DataFrame({"Date": pd.to_datetime(["2020-01-01", "2020-01-01"]), "A": [0.1, 0.2]})
    with pytest.raises(InvalidArgument, match="unique"):
        validate_gains_df(df)


# ----------------------------
# Prices -> gains
# ----------------------------

def test_prices_to_gains_drops_first_row():
    prices = make_gains({"A": [100.0, 110.0, 99.0], "B": [10.0, 10.0, 12.0]})
    gains = prices_to_gains(prices)
    assert len(gains) == 2
    assert gains.index[0] == pd.Timestamp("2020-01-02")
    assert gains["A"].tolist() == pytest.approx([0.1, -0.1])
    assert gains["B"].tolist() == pytest.approx([0.0, 0.2])


# ----------------------------
# End-to-end
# ----------------------------

def test_growth_and_cagr_over_single_window():
    gains = make_gains({"F": [0.01, -0.02, 0.03, 0.01, -0.01]})
    df = calc_metrics_overtime(["growth", "cagr"], type="hop.5", minimum_n=1, gains=gains)
    assert len(df) == 1
    row = df.iloc[0]
    growth = 1.01 * 0.98 * 1.03 * 1.01 * 0.99 - 1
    assert row["Fund"] == "F"
    assert row["Period"] == 1
    assert row["Start date"] == pd.Timestamp("2020-01-01")
    assert row["End date"] == pd.Timestamp("2020-01-05")
    assert row["growth"] == pytest.approx(growth)
    assert row["cagr"] == pytest.approx((1 + growth) ** (252 / 5) - 1)
    assert list(df.columns) == ["Fund", "Period", "Start date", "End date", "growth", "cagr"]


def test_breakpoints_give_two_windows_per_fund():
    gains = random_gains(91, start="2020-01-01")
    df = calc_metrics_overtime("growth", type=["2020-02-01"], gains=gains)
    assert len(df) == 6
    for fund, grp in df.groupby("Fund"):
        assert len(grp) == 2
        assert grp["Start date"].iloc[0] == pd.Timestamp("2020-01-01")
        assert grp["End date"].iloc[0] == pd.Timestamp("2020-01-31")
        assert grp["Start date"].iloc[1] == pd.Timestamp("2020-02-01")
        assert grp["End date"].iloc[1] == pd.Timestamp("2020-03-31")


def test_rolling_windows_per_fund_in_stable_order():
    gains = random_gains(30)
    df = calc_metrics_overtime("sharpe", type="roll.10", gains=gains)
    assert len(df) == 3 * 21
    assert df["Fund"].unique().tolist() == ["SPY", "SSO", "UPRO"]
    spy = df[df["Fund"] == "SPY"]
    assert spy["Start date"].is_monotonic_increasing
    assert (spy["End date"] - spy["Start date"]).eq(pd.Timedelta(days=9)).all()


def test_rolling_value_matches_direct_computation():
    gains = random_gains(15)
    df = calc_metrics_overtime("mdd", type="roll.5", gains=gains, tickers=["SSO"])
    from fundmetrics.engine.metrics import calc_metric
    g = gains["SSO"].to_numpy()
    expected = [calc_metric(g[j:j + 5], "mdd") for j in range(11)]
    assert df["mdd"].tolist() == pytest.approx(expected)


def test_monthly_data_annualizes_with_12():
    gains = make_gains({"F": [0.01] * 24}, start="2019-01-01", freq="MS")
    df = calc_metrics_overtime("cagr", type="hop.year", gains=gains)
    assert df["Period"].tolist() == ["2019", "2020"]
    assert df["cagr"].tolist() == pytest.approx([1.01 ** 12 - 1] * 2)


def test_minimum_n_drops_short_months():
    gains = random_gains(40, start="2020-01-30")
    df = calc_metrics_overtime("growth", type="hop.month", minimum_n=3, gains=gains)
    assert "2020-Jan" not in set(df["Period"])
    assert set(df["Period"]) == {"2020-Feb", "2020-Mar"}


def test_no_windows_returns_empty_frame():
    gains = random_gains(5)
    df = calc_metrics_overtime("growth", type="roll.10", gains=gains)
    assert df.empty
    assert list(df.columns) == ["Fund", "Period", "Start date", "End date", "growth"]


# ----------------------------
# Benchmark handling
# ----------------------------

def test_alpha_beta_against_benchmark():
    gains = random_gains(60)
    df = calc_metrics_overtime(["alpha", "beta"], type="hop.20", gains=gains, benchmark="SPY")
    assert set(df["Fund"]) == {"SSO", "UPRO"}
    sso = df[df["Fund"] == "SSO"]
    upro = df[df["Fund"] == "UPRO"]
    assert sso["beta"].tolist() == pytest.approx([2.0] * 3)
    assert sso["alpha"].tolist() == pytest.approx([0.0001] * 3)
    assert upro["beta"].tolist() == pytest.approx([3.0] * 3)


def test_benchmark_is_a_fund_for_non_benchmark_metrics():
    gains = random_gains(20)
    df = calc_metrics_overtime("growth", type="hop.10", gains=gains, benchmark="SPY")
    assert "SPY" in set(df["Fund"])


def test_beta_without_benchmark_column_fails_up_front():
    gains = random_gains(20).drop(columns="SPY")
    with pytest.raises(InvalidArgument, match="SPY"):
        calc_metrics_overtime("beta", type="hop.10", gains=gains, benchmark="SPY")


def test_beta_with_no_benchmark_fails_before_data_is_needed():
    with pytest.raises(InvalidArgument, match="require a benchmark"):
        calc_metrics_overtime("beta", type="hop.10", benchmark=None)


# ----------------------------
# Validation & missing data
# ----------------------------

def test_invalid_metric_fails_before_data_is_needed():
    with pytest.raises(InvalidArgument, match="not allowed"):
        calc_metrics_overtime(["growth", "volatility"])


def test_invalid_window_type_fails_with_choices():
    gains = random_gains(10)
    with pytest.raises(InvalidArgument, match="roll.n"):
        calc_metrics_overtime("growth", type="hop.week", gains=gains)


def test_no_data_source_is_fatal():
    with pytest.raises(MissingDataError):
        calc_metrics_overtime("growth", type="hop.year")


def test_unknown_fund_column_rejected():
    gains = random_gains(10)
    with pytest.raises(InvalidArgument, match="QQQ"):
        calc_metrics_overtime("growth", gains=gains, tickers=["QQQ"])


def test_incomplete_rows_are_dropped():
    gains = make_gains({"A": [0.01, np.nan, 0.02, 0.03], "B": [0.01, 0.01, np.nan, 0.01]})
    df = calc_metrics_overtime("growth", type="hop.10", minimum_n=1, gains=gains)
    # width 10 exceeds the 2 complete rows
    assert df.empty
    df = calc_metrics_overtime("growth", type="hop.2", minimum_n=1, gains=gains)
    assert df["growth"].tolist() == pytest.approx([1.01 * 1.03 - 1, 1.01 * 1.01 - 1])
    assert df["End date"].tolist() == [pd.Timestamp("2020-01-04")] * 2


def test_prices_input_equivalent_to_gains():
    prices = make_gains({"A": [100.0, 101.0, 99.0, 103.0, 104.0, 102.0]})
    gains = prices_to_gains(prices)
    a = calc_metrics_overtime("growth", type="hop.5", minimum_n=1, prices=prices)
    b = calc_metrics_overtime("growth", type="hop.5", minimum_n=1, gains=gains)
    pd.testing.assert_frame_equal(a, b)
    assert a["growth"].iloc[0] == pytest.approx(102.0 / 100.0 - 1)


def test_text_column_rejected_not_silently_emptied():
    gains = make_gains({"SPY": [0.001] * 30})
    gains["Note"] = "x"
    with pytest.raises(InvalidArgument, match="Note"):
        calc_metrics_overtime("growth", type="hop.10", gains=gains)


def test_validate_gains_df_keeps_missing_values_in_numeric_columns():
    df = make_gains({"A": [0.1, np.nan, 0.3]})
    df["B"] = [None, "0.2", 0.4]
    out = validate_gains_df(df)
    assert out["A"].isna().tolist() == [False, True, False]
    assert out["B"].tolist()[1:] == pytest.approx([0.2, 0.4])
    assert out.dtypes.eq("float64").all()


# ----------------------------
# Downloading by ticker (fake Yahoo! Finance)
# ----------------------------

def test_download_prepends_benchmark_for_benchmark_metrics(fake_yahoo):
    df = calc_metrics_overtime(
        "beta", type="hop.5", tickers=["NEW"], benchmark="SPY",
        start="2023-01-02", end="2023-01-31",
    )
    assert [c[0] for c in fake_yahoo.calls] == ["SPY", "NEW"]
    assert set(df["Fund"]) == {"NEW"}
    # NEW lists on 2023-01-10, so both series start there; first gain is the next day
    assert df["Start date"].min() == pd.Timestamp("2023-01-11")
    assert len(df) == 3
    assert np.isfinite(df["beta"]).all()


def test_download_skips_benchmark_when_not_needed(fake_yahoo):
    df = calc_metrics_overtime(
        "growth", type="hop.5", tickers=["NEW"], benchmark="SPY",
        start="2023-01-02", end="2023-01-31",
    )
    assert [c[0] for c in fake_yahoo.calls] == ["NEW"]
    assert set(df["Fund"]) == {"NEW"}


def test_download_trims_to_mutual_end(fake_yahoo):
    df = calc_metrics_overtime(
        "growth", type="hop.month", tickers=["SPY", "OLD"], minimum_n=1,
        start="2023-01-02", end="2023-01-31",
    )
    assert df["Fund"].tolist() == ["SPY", "OLD"]
    assert (df["End date"] == pd.Timestamp("2023-01-20")).all()


def test_download_of_unknown_ticker_is_missing_data(fake_yahoo):
    with pytest.raises(MissingDataError, match="FAKE"):
        calc_metrics_overtime("growth", tickers=["FAKE"], start="2023-01-02", end="2023-01-31")
