"""
fundmetrics
-----------
Historical performance metrics for stocks, funds and portfolios over
rolling or disjoint time windows.
"""

from .engine.metrics import Metric, calc_metric
from .engine.overtime import calc_metrics_overtime, prices_to_gains
from .engine.transforms import diffs, pchanges, pdiffs, ratios
from .exceptions import FundMetricsError, InvalidArgument, MissingDataError

__version__ = "0.1.0"

__all__ = [
    "Metric", "calc_metric",
    "calc_metrics_overtime", "prices_to_gains",
    "diffs", "ratios", "pdiffs", "pchanges",
    "FundMetricsError", "InvalidArgument", "MissingDataError",
]
