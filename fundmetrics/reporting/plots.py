"""
plots.py
---------
Charts of performance metrics over time, plus an end-to-end runner.

What this does
--------------
- `plot_metrics_overtime`: one metric over time (one line per fund, by
  window end date), or one metric against another (one path per fund,
  arrow on the last step). Static matplotlib figure.
- `plotly_metrics_overtime`: the same chart as an interactive plotly
  figure; hovering a point shows the fund, window dates and the
  formatted metric value(s).
- `main`: loads the configured tickers, computes metrics over yearly
  windows and exports an Excel report + PNG chart.

Usage
-----
From project root:
    python -m fundmetrics.reporting.plots

Outputs
-------
- Excel + charts under reports/.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

import matplotlib
import pandas as pd
import plotly.graph_objects as go
from matplotlib import pyplot as plt

from .. import config
from ..engine.metrics import METRICS, parse_metric
from ..engine.overtime import END_COL, FUND_COL, PERIOD_COL, START_COL, calc_metrics_overtime
from ..exceptions import InvalidArgument
from ..utils import fmt_metric

logger = logging.getLogger(__name__)

KEYS = [FUND_COL, PERIOD_COL, START_COL, END_COL]


# ----------------------------
# Shared preparation
# ----------------------------

def _padded_limits(values: pd.Series):
    """Axis limits spanning 0 and the data, padded by 1% like the reference charts."""
    vals = pd.concat([values.dropna(), pd.Series([0.0])])
    lo, hi = float(vals.min()), float(vals.max())
    return lo * 1.01, hi * 1.01


def _compute(
    y_metric: Optional[str],
    x_metric: Optional[str],
    y_benchmark: Optional[str],
    x_benchmark: Optional[str],
    **calc_kwargs,
) -> pd.DataFrame:
    """Compute both metrics, with separate benchmarks if they differ."""
    wanted = [m for m in (y_metric, x_metric) if m is not None]
    if y_metric is None or x_metric is None or y_benchmark == x_benchmark:
        bench = y_benchmark if y_metric is not None else x_benchmark
        return calc_metrics_overtime(metrics=wanted, benchmark=bench, **calc_kwargs)
    df_y = calc_metrics_overtime(metrics=[y_metric], benchmark=y_benchmark, **calc_kwargs)
    df_x = calc_metrics_overtime(metrics=[x_metric], benchmark=x_benchmark, **calc_kwargs)
    return df_y.merge(df_x, on=KEYS, how="inner")


def _prepare(metrics, y_metric, x_metric, benchmark, y_benchmark, x_benchmark, calc_kwargs):
    """Validate the axes; return (df sorted by fund and end date, y_spec, x_spec)."""
    if y_metric is None and x_metric is None:
        raise InvalidArgument("At least one of y_metric and x_metric is required")
    y_metric = parse_metric(y_metric).value if y_metric is not None else None
    x_metric = parse_metric(x_metric).value if x_metric is not None else None
    y_benchmark = y_benchmark or benchmark
    x_benchmark = x_benchmark or benchmark

    if metrics is None:
        df = _compute(y_metric, x_metric, y_benchmark, x_benchmark, **calc_kwargs)
    else:
        df = metrics.copy()
        absent = [m for m in (y_metric, x_metric) if m is not None and m not in df.columns]
        if absent:
            raise InvalidArgument(f"Metrics table has no column(s) {absent}. Have: {list(df.columns)}")

    df = df.sort_values([FUND_COL, END_COL], kind="mergesort").reset_index(drop=True)
    y_spec = METRICS[parse_metric(y_metric)] if y_metric is not None else None
    x_spec = METRICS[parse_metric(x_metric)] if x_metric is not None else None
    return df, y_spec, x_spec


def _default_title(y_spec, x_spec) -> str:
    if x_spec is None:
        return f"{y_spec.title} over Time"
    if y_spec is None:
        return f"{x_spec.title} over Time"
    return f"{y_spec.title} vs. {x_spec.title}"


def _tooltips(df: pd.DataFrame, y_spec, x_spec) -> list:
    """Hover text per row: fund, window dates, then each plotted metric."""
    texts = []
    for _, row in df.iterrows():
        parts = [
            str(row[FUND_COL]),
            f"Start date: {row[START_COL]:%Y-%m-%d}",
            f"End date: {row[END_COL]:%Y-%m-%d}",
        ]
        for spec in (y_spec, x_spec):
            if spec is not None:
                parts.append(f"{spec.title}: {fmt_metric(row[spec.name.value], spec.name)}")
        texts.append("<br>".join(parts))
    return texts


# ----------------------------
# Static chart (matplotlib)
# ----------------------------

def plot_metrics_overtime(
    metrics: Optional[pd.DataFrame] = None,
    y_metric: Optional[str] = "cagr",
    x_metric: Optional[str] = None,
    benchmark: Optional[str] = config.BENCHMARK,
    y_benchmark: Optional[str] = None,
    x_benchmark: Optional[str] = None,
    ax=None,
    title: Optional[str] = None,
    **calc_kwargs,
):
    """
    Plot one performance metric over time, or one against another.

    Parameters
    ----------
    metrics : pd.DataFrame, optional
        Output of `calc_metrics_overtime`. Computed on the fly when omitted.
    y_metric : str, optional, default "cagr"
        Metric on the y-axis. With `x_metric` None, plotted against window
        end date.
    x_metric : str, optional
        Metric on the x-axis. With `y_metric` None, window end dates go on
        the y-axis.
    benchmark, y_benchmark, x_benchmark : str, optional
        Benchmark fund for alpha/beta/r.squared/r/rho; the per-axis values
        default to `benchmark`.
    ax : matplotlib Axes, optional
        Axes to draw on; a new figure is created when omitted.
    title : str, optional
        Chart title; a default is derived from the metric titles.
    **calc_kwargs
        Forwarded to `calc_metrics_overtime` (type, minimum_n, tickers,
        gains, prices, start, end, ...).

    Returns
    -------
    tuple
        (fig, ax, df) where df is the plotted data sorted by fund and end date.
    """
    df, y_spec, x_spec = _prepare(metrics, y_metric, x_metric, benchmark, y_benchmark, x_benchmark, calc_kwargs)

    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 5))
    else:
        fig = ax.figure

    for fund, grp in df.groupby(FUND_COL, sort=False):
        if x_spec is None:
            ax.plot(grp[END_COL], grp[y_spec.name.value] * y_spec.scale, marker="o", label=fund)
        elif y_spec is None:
            ax.plot(grp[x_spec.name.value] * x_spec.scale, grp[END_COL], marker="o", label=fund)
        else:
            xs = (grp[x_spec.name.value] * x_spec.scale).to_numpy()
            ys = (grp[y_spec.name.value] * y_spec.scale).to_numpy()
            line, = ax.plot(xs, ys, marker="o", label=fund)
            # Emphasize the starting point and the direction of travel
            ax.plot(xs[:1], ys[:1], marker="o", markersize=9, color=line.get_color())
            if len(xs) >= 2:
                ax.annotate(
                    "", xy=(xs[-1], ys[-1]), xytext=(xs[-2], ys[-2]),
                    arrowprops=dict(arrowstyle="-|>", color=line.get_color()),
                )

    if not df.empty:
        if y_spec is not None:
            ax.set_ylim(*_padded_limits(df[y_spec.name.value] * y_spec.scale))
        if x_spec is not None:
            ax.set_xlim(*_padded_limits(df[x_spec.name.value] * x_spec.scale))
    ax.set_xlabel(x_spec.label if x_spec is not None else "End date")
    ax.set_ylabel(y_spec.label if y_spec is not None else "End date")

    ax.set_title(title or _default_title(y_spec, x_spec))
    if not df.empty:
        ax.legend(frameon=False)
    fig.tight_layout()
    return fig, ax, df


# ----------------------------
# Interactive chart (plotly)
# ----------------------------

def plotly_metrics_overtime(
    metrics: Optional[pd.DataFrame] = None,
    y_metric: Optional[str] = "cagr",
    x_metric: Optional[str] = None,
    benchmark: Optional[str] = config.BENCHMARK,
    y_benchmark: Optional[str] = None,
    x_benchmark: Optional[str] = None,
    title: Optional[str] = None,
    **calc_kwargs,
):
    """
    Interactive version of `plot_metrics_overtime`.

    Takes the same arguments (minus `ax`). Each point carries a tooltip
    with the fund, the window's start and end dates and the metric
    value(s) formatted with their units.

    Returns
    -------
    tuple
        (fig, df) with fig a `plotly.graph_objects.Figure`.
    """
    df, y_spec, x_spec = _prepare(metrics, y_metric, x_metric, benchmark, y_benchmark, x_benchmark, calc_kwargs)
    df = df.assign(tooltip=_tooltips(df, y_spec, x_spec))

    fig = go.Figure()
    for fund, grp in df.groupby(FUND_COL, sort=False):
        xs = grp[x_spec.name.value] * x_spec.scale if x_spec is not None else grp[END_COL]
        ys = grp[y_spec.name.value] * y_spec.scale if y_spec is not None else grp[END_COL]
        trace = go.Scatter(
            x=xs, y=ys, mode="lines+markers", name=str(fund),
            hovertext=grp["tooltip"], hovertemplate="%{hovertext}<extra></extra>",
        )
        fig.add_trace(trace)
        if x_spec is not None and y_spec is not None and len(grp) >= 2:
            fig.add_annotation(
                x=xs.iloc[-1], y=ys.iloc[-1], ax=xs.iloc[-2], ay=ys.iloc[-2],
                xref="x", yref="y", axref="x", ayref="y",
                showarrow=True, arrowhead=2, text="",
            )

    if not df.empty:
        if y_spec is not None:
            fig.update_yaxes(range=list(_padded_limits(df[y_spec.name.value] * y_spec.scale)))
        if x_spec is not None:
            fig.update_xaxes(range=list(_padded_limits(df[x_spec.name.value] * x_spec.scale)))
    fig.update_layout(
        title=title or _default_title(y_spec, x_spec),
        xaxis_title=x_spec.label if x_spec is not None else "End date",
        yaxis_title=y_spec.label if y_spec is not None else "End date",
        template="plotly_white",
        hovermode="closest",
    )
    return fig, df.drop(columns="tooltip")


# ----------------------------
# Runner
# ----------------------------

def main(
    tickers: Sequence[str] = tuple(config.TICKERS),
    y_metric: str = "growth",
    x_metric: Optional[str] = None,
    type: Union[str, Sequence] = config.WINDOW_TYPE,
    reports_dir: str = str(config.REPORTS_DIR),
) -> dict:
    """
    Compute metrics for the configured tickers and export a report.
    """
    from .reports import build_metrics_report

    logger.info("[RUN] %s%s on %s (%s) %s..%s", y_metric, f" vs {x_metric}" if x_metric else "",
                list(tickers), type, config.START, config.END)
    metrics = [m for m in (y_metric, x_metric) if m is not None]
    df = calc_metrics_overtime(
        metrics=metrics, type=type, tickers=list(tickers),
        benchmark=config.BENCHMARK, start=config.START, end=config.END,
    )
    out_base = "_".join(metrics) + "_" + "_".join(tickers)
    report = build_metrics_report(
        df,
        out_xlsx=f"{reports_dir}/{out_base}.xlsx",
        out_png_dir=f"{reports_dir}/img/{out_base}",
        y_metric=y_metric,
        x_metric=x_metric,
    )
    logger.info("  -> Report: %s", report["xlsx"])
    return report


if __name__ == "__main__":
    matplotlib.use("Agg")
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    main()
