"""
reports.py
----------
Reporting utilities for windowed metric results.

Responsibilities
---------------
- Summarize each metric per fund (windows, mean, min, max, last).
- Export an Excel report with sheets:
    * Summary (per-fund statistics)
    * Metrics (one row per fund and window)
- Save the metric chart as PNG and insert it into the Summary sheet.

Notes
-----
- Expects the long table produced by `calc_metrics_overtime`.
- Values are written raw (fractions, not percentages).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import pandas as pd
from matplotlib import pyplot as plt

from ..engine.metrics import parse_metric
from ..engine.overtime import END_COL, FUND_COL, START_COL
from ..exceptions import InvalidArgument
from ..utils import ensure_dir
from .plots import plot_metrics_overtime

logger = logging.getLogger(__name__)


def summarize_metrics(df: pd.DataFrame, metric_cols) -> pd.DataFrame:
    """
    Per-fund statistics of each metric column.

    Returns a frame with one row per fund and columns
    '<metric> mean', '<metric> min', '<metric> max', '<metric> last',
    plus 'windows', 'first start' and 'last end'.
    """
    grouped = df.sort_values([FUND_COL, START_COL], kind="mergesort").groupby(FUND_COL, sort=False)
    summary = pd.DataFrame(
        {
            "windows": grouped.size(),
            "first start": grouped[START_COL].min(),
            "last end": grouped[END_COL].max(),
        }
    )
    for m in metric_cols:
        stats = grouped[m].agg(["mean", "min", "max", "last"])
        stats.columns = [f"{m} {s}" for s in stats.columns]
        summary = summary.join(stats)
    return summary.reset_index()


def build_metrics_report(
    df: pd.DataFrame,
    out_xlsx: str,
    out_png_dir: str,
    y_metric: str,
    x_metric: Optional[str] = None,
) -> dict:
    """
    Build a metrics report:
      1) Summarize metrics per fund
      2) Save the chart as PNG
      3) Write Excel with Summary and Metrics sheets, chart embedded

    Parameters
    ----------
    df : pd.DataFrame
        Output of `calc_metrics_overtime`.
    out_xlsx : str
        Output Excel file path (e.g., "reports/cagr_SPY.xlsx").
    out_png_dir : str
        Directory to write the PNG chart.
    y_metric, x_metric : str
        Metrics to chart (see `plot_metrics_overtime`).

    Returns
    -------
    dict
        {
          "summary": pd.DataFrame,
          "xlsx": Path,
          "charts": {"metrics": Path}
        }
    """
    metric_cols = [parse_metric(m).value for m in (y_metric, x_metric) if m is not None]
    absent = [m for m in metric_cols if m not in df.columns]
    if absent:
        raise InvalidArgument(f"Metrics table has no column(s) {absent}. Have: {list(df.columns)}")

    summary = summarize_metrics(df, metric_cols)

    # --- Chart ---
    charts_dir = ensure_dir(out_png_dir)
    chart_png = charts_dir / ("_vs_".join(metric_cols) + ".png")
    fig, _, _ = plot_metrics_overtime(metrics=df, y_metric=y_metric, x_metric=x_metric)
    fig.savefig(chart_png)
    plt.close(fig)

    # --- Excel export ---
    out_xlsx_path = ensure_dir(Path(out_xlsx))
    with pd.ExcelWriter(out_xlsx_path, engine="xlsxwriter", datetime_format="yyyy-mm-dd") as writer:
        summary.to_excel(writer, sheet_name="Summary", index=False)
        df.to_excel(writer, sheet_name="Metrics", index=False)
        worksheet = writer.sheets["Summary"]
        worksheet.insert_image(len(summary) + 3, 0, str(chart_png))

    logger.info("Wrote report %s (%d windows)", out_xlsx_path, len(df))
    return {"summary": summary, "xlsx": out_xlsx_path, "charts": {"metrics": chart_png}}


__all__ = ["summarize_metrics", "build_metrics_report"]
