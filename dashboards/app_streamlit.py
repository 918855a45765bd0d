"""
app_streamlit.py
----------------
Interactive Streamlit dashboard for metrics over time.

Features
--------
- Sidebar controls:
    * Tickers, benchmark, date range
    * Y metric and optional X metric
    * Window type (yearly, monthly, n-day disjoint, n-day rolling, break-points)
    * Minimum observations per window

- Main tabs:
    1. Chart: interactive metric over time, or metric vs. metric (hover for window details)
    2. Data: per-window table with CSV download
    3. Summary: per-fund statistics

Usage
-----
Run from project root:
    streamlit run dashboards/app_streamlit.py
"""

import streamlit as st
import pandas as pd

# Ensure `fundmetrics` is importable when running via `streamlit run dashboards/app_streamlit.py`
import sys
from pathlib import Path
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

# --- Project imports ---
from fundmetrics.config import TICKERS, BENCHMARK, START, END, MINIMUM_N
from fundmetrics.engine.metrics import Metric, METRICS
from fundmetrics.engine.overtime import calc_metrics_overtime
from fundmetrics.exceptions import FundMetricsError
from fundmetrics.reporting.plots import plotly_metrics_overtime
from fundmetrics.reporting.reports import summarize_metrics
from fundmetrics.utils import fmt_metric


# ----------------------------
# Sidebar controls
# ----------------------------
st.set_page_config(page_title="Metrics over Time", layout="wide")

st.sidebar.header("Data")
tickers_text = st.sidebar.text_input("Tickers (comma-separated)", ", ".join(TICKERS))
tickers = [t.strip().upper() for t in tickers_text.split(",") if t.strip()]
benchmark = st.sidebar.text_input("Benchmark", BENCHMARK).strip().upper()
start = pd.to_datetime(st.sidebar.date_input("Start Date", pd.to_datetime(START)))
end = pd.to_datetime(st.sidebar.date_input("End Date", pd.to_datetime(END)))

st.sidebar.header("Metrics")
choices = [m.value for m in Metric]
y_metric = st.sidebar.selectbox("Y metric", choices, index=choices.index("growth"))
x_choice = st.sidebar.selectbox("X metric", ["(time)"] + choices, index=0)
x_metric = None if x_choice == "(time)" else x_choice

st.sidebar.header("Windows")
kind = st.sidebar.selectbox("Window type", ["hop.year", "hop.month", "hop.n", "roll.n", "break-points"])
if kind in ("hop.n", "roll.n"):
    width = st.sidebar.number_input("Width (periods)", min_value=2, value=50, step=10)
    window_type = f"{kind[:-2]}.{int(width)}"
elif kind == "break-points":
    bp_text = st.sidebar.text_input("Break-point dates (comma-separated)", "2020-01-01")
    window_type = [d.strip() for d in bp_text.split(",") if d.strip()]
else:
    window_type = kind
minimum_n = st.sidebar.number_input("Minimum observations", min_value=1, value=MINIMUM_N, step=1)


# ----------------------------
# Compute
# ----------------------------
@st.cache_data(show_spinner="Loading prices and computing metrics...")
def _compute(tickers, benchmark, start, end, metrics, window_type, minimum_n):
    return calc_metrics_overtime(
        metrics=list(metrics),
        type=window_type,
        minimum_n=minimum_n,
        tickers=list(tickers),
        benchmark=benchmark,
        start=start,
        end=end,
    )


metrics = tuple(m for m in (y_metric, x_metric) if m is not None)
try:
    df = _compute(
        tuple(tickers), benchmark, str(start.date()), str(end.date()), metrics,
        tuple(window_type) if isinstance(window_type, list) else window_type, int(minimum_n),
    )
except (FundMetricsError, RuntimeError) as exc:
    st.error(str(exc))
    st.stop()

if df.empty:
    st.warning("No windows for the selected inputs. Try a longer date range or a smaller minimum.")
    st.stop()

# ----------------------------
# Tabs
# ----------------------------
tab1, tab2, tab3 = st.tabs(["Chart", "Data", "Summary"])

# --- Tab 1: Chart ---
with tab1:
    fig, plotted = plotly_metrics_overtime(metrics=df, y_metric=y_metric, x_metric=x_metric)
    st.plotly_chart(fig, use_container_width=True)

    # Latest window per fund
    latest = plotted.groupby("Fund", sort=False).tail(1)
    cols = st.columns(max(1, len(latest)))
    for col, (_, row) in zip(cols, latest.iterrows()):
        col.metric(f"{row['Fund']} {METRICS[Metric(y_metric)].title}", fmt_metric(row[y_metric], y_metric))
        col.caption(f"{row['Start date']:%Y-%m-%d} to {row['End date']:%Y-%m-%d}")

# --- Tab 2: Data ---
with tab2:
    st.subheader("Metrics per window")
    st.dataframe(df)
    st.download_button(
        "Download CSV", df.to_csv(index=False), file_name=f"{'_'.join(metrics)}_{'_'.join(tickers)}.csv"
    )

# --- Tab 3: Summary ---
with tab3:
    st.subheader("Per-fund summary")
    st.dataframe(summarize_metrics(df, list(metrics)))
