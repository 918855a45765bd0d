"""
metrics.py
----------
Catalog of performance metrics computed from per-period gains.

Every metric is a pure function of
    gains : np.ndarray          per-period fractional returns (0.02 = +2%)
    units_year : int            periods per year (252 daily, 12 monthly, 1 yearly)
    benchmark_gains : ndarray   benchmark gains aligned 1:1 with `gains`, or None
and returns a float. Metrics that are undefined for a window (a single
observation, zero variance, ...) return NaN instead of raising, so a
windowed batch never aborts on a sparse edge.

Standard deviations are sample standard deviations (ddof=1) throughout.

Catalog
-------
- mean, sd               : Mean and standard deviation of gains.
- growth, cagr           : Cumulative and compound annual growth.
- mdd                    : Maximum drawdown (positive fraction).
- sharpe, sortino        : Annualized risk-adjusted returns.
- alpha, alpha.annualized, beta, r.squared, r, rho
                         : Regression/correlation against a benchmark.
- auto.pearson, auto.spearman
                         : Lag-1 autocorrelation of gains.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Union

import numpy as np
from scipy import stats

from ..exceptions import InvalidArgument


class Metric(str, Enum):
    MEAN = "mean"
    SD = "sd"
    GROWTH = "growth"
    CAGR = "cagr"
    MDD = "mdd"
    SHARPE = "sharpe"
    SORTINO = "sortino"
    ALPHA = "alpha"
    ALPHA_ANNUALIZED = "alpha.annualized"
    BETA = "beta"
    R_SQUARED = "r.squared"
    R = "r"
    RHO = "rho"
    AUTO_PEARSON = "auto.pearson"
    AUTO_SPEARMAN = "auto.spearman"


Formula = Callable[[np.ndarray, int, Optional[np.ndarray]], float]


@dataclass(frozen=True)
class MetricSpec:
    """
    Catalog entry for one metric.

    Attributes
    ----------
    name : Metric
        Metric name as used in window tables and plots.
    requires_benchmark : bool
        Whether the formula needs benchmark gains.
    is_annualized : bool
        Whether the formula uses the annualization factor.
    formula : Formula
        Pure function computing the metric.
    title : str
        Human-readable title (e.g. "Max drawdown").
    units : str
        "%" for metrics shown as percentages, "" otherwise.
    decimals : int
        Decimals to show when formatting values.
    """
    name: Metric
    requires_benchmark: bool
    is_annualized: bool
    formula: Formula
    title: str
    units: str = ""
    decimals: int = 2

    @property
    def label(self) -> str:
        """Axis label, e.g. 'CAGR (%)'."""
        return f"{self.title} ({self.units})" if self.units else self.title

    @property
    def scale(self) -> float:
        """Factor applied to raw values for display."""
        return 100.0 if self.units == "%" else 1.0


# ----------------------------
# Helpers
# ----------------------------

NAN = float("nan")


def _constant(x: np.ndarray) -> bool:
    return bool(np.all(x == x[0]))


def _sd(x: np.ndarray) -> float:
    if x.size < 2:
        return NAN
    if _constant(x):
        return 0.0
    return float(np.std(x, ddof=1))


def _pearson(x: np.ndarray, y: np.ndarray) -> float:
    if x.size < 2:
        return NAN
    if _constant(x) or _constant(y):
        return NAN
    sx, sy = np.std(x), np.std(y)
    cov = np.mean((x - x.mean()) * (y - y.mean()))
    return float(cov / (sx * sy))


def _spearman(x: np.ndarray, y: np.ndarray) -> float:
    if x.size < 2:
        return NAN
    if _constant(x) or _constant(y):
        return NAN
    return float(stats.spearmanr(x, y)[0])


def _regression(g: np.ndarray, b: np.ndarray):
    """Return (alpha, beta) of g regressed on b, NaNs when undefined."""
    if g.size < 2:
        return NAN, NAN
    if _constant(b):
        return NAN, NAN
    var_b = np.var(b, ddof=1)
    cov = np.cov(g, b, ddof=1)[0, 1]
    beta = cov / var_b
    alpha = g.mean() - beta * b.mean()
    return float(alpha), float(beta)


# ----------------------------
# Formulas
# ----------------------------

def mean_gain(g, k=252, b=None) -> float:
    return float(g.mean()) if g.size else NAN


def sd_gain(g, k=252, b=None) -> float:
    return _sd(g)


def growth(g, k=252, b=None) -> float:
    """Cumulative compounded return, prod(1 + g) - 1."""
    return float(np.prod(1.0 + g) - 1.0)


def cagr(g, k=252, b=None) -> float:
    """
    Compound annual growth rate.

    (prod(1 + g)) ** (k / n) - 1, NaN for an empty window or a
    negative cumulative product.
    """
    n = g.size
    if n == 0:
        return NAN
    total = np.prod(1.0 + g)
    if total < 0:
        return NAN
    return float(total ** (k / n) - 1.0)


def mdd(g, k=252, b=None) -> float:
    """
    Maximum drawdown of the wealth curve implied by the gains.

    Returned as a positive fraction in [0, 1] (0.2 = 20% peak-to-trough).
    """
    if g.size == 0:
        return NAN
    wealth = np.cumprod(1.0 + g)
    peaks = np.maximum.accumulate(wealth)
    with np.errstate(divide="ignore", invalid="ignore"):
        dd = (peaks - wealth) / peaks
    return float(np.nanmax(dd)) if np.any(~np.isnan(dd)) else NAN


def sharpe(g, k=252, b=None) -> float:
    """Annualized Sharpe ratio, mean(g) / sd(g) * sqrt(k)."""
    s = _sd(g)
    if s == 0 or np.isnan(s):
        return NAN
    return float(g.mean() / s * np.sqrt(k))


def sortino(g, k=252, b=None) -> float:
    """Annualized Sortino ratio; downside deviation uses only negative gains."""
    s = _sd(g[g < 0])
    if s == 0 or np.isnan(s):
        return NAN
    return float(g.mean() / s * np.sqrt(k))


def alpha(g, k=252, b=None) -> float:
    return _regression(g, b)[0]


def alpha_annualized(g, k=252, b=None) -> float:
    return _regression(g, b)[0] * k


def beta(g, k=252, b=None) -> float:
    return _regression(g, b)[1]


def r(g, k=252, b=None) -> float:
    return _pearson(g, b)


def r_squared(g, k=252, b=None) -> float:
    return _pearson(g, b) ** 2


def rho(g, k=252, b=None) -> float:
    return _spearman(g, b)


def auto_pearson(g, k=252, b=None) -> float:
    if g.size < 3:
        return NAN
    return _pearson(g[:-1], g[1:])


def auto_spearman(g, k=252, b=None) -> float:
    if g.size < 3:
        return NAN
    return _spearman(g[:-1], g[1:])


# ----------------------------
# Registry
# ----------------------------

METRICS: Dict[Metric, MetricSpec] = {
    spec.name: spec
    for spec in (
        MetricSpec(Metric.MEAN, False, False, mean_gain, "Mean of gains", "%", 3),
        MetricSpec(Metric.SD, False, False, sd_gain, "SD of gains", "%", 3),
        MetricSpec(Metric.GROWTH, False, False, growth, "Growth", "%", 1),
        MetricSpec(Metric.CAGR, False, True, cagr, "CAGR", "%", 1),
        MetricSpec(Metric.MDD, False, False, mdd, "Max drawdown", "%", 1),
        MetricSpec(Metric.SHARPE, False, True, sharpe, "Sharpe ratio", "", 3),
        MetricSpec(Metric.SORTINO, False, True, sortino, "Sortino ratio", "", 3),
        MetricSpec(Metric.ALPHA, True, False, alpha, "Alpha", "%", 3),
        MetricSpec(Metric.ALPHA_ANNUALIZED, True, True, alpha_annualized, "Annualized alpha", "%", 1),
        MetricSpec(Metric.BETA, True, False, beta, "Beta", "", 3),
        MetricSpec(Metric.R_SQUARED, True, False, r_squared, "R-squared", "", 3),
        MetricSpec(Metric.R, True, False, r, "Pearson correlation", "", 3),
        MetricSpec(Metric.RHO, True, False, rho, "Spearman correlation", "", 3),
        MetricSpec(Metric.AUTO_PEARSON, False, False, auto_pearson, "Autocorrelation", "", 3),
        MetricSpec(Metric.AUTO_SPEARMAN, False, False, auto_spearman, "Autocorrelation (Spearman)", "", 3),
    )
}

BENCHMARK_METRICS = frozenset(m for m, spec in METRICS.items() if spec.requires_benchmark)


def parse_metric(name: Union[str, Metric]) -> Metric:
    """Resolve a metric name to its `Metric` member."""
    try:
        return Metric(name)
    except ValueError:
        raise InvalidArgument(
            f"Unknown metric {name!r}. Choices: {', '.join(m.value for m in Metric)}"
        ) from None


def check_metrics(names: Union[str, Metric, Iterable[Union[str, Metric]]]) -> List[Metric]:
    """
    Validate requested metric names before any computation.

    Accepts a single name or an iterable of names; reports every invalid
    name at once.
    """
    if isinstance(names, (str, Metric)):
        names = [names]
    names = list(names)
    if not names:
        raise InvalidArgument("At least one metric must be requested")
    valid = {m.value for m in Metric}
    invalid = [str(n) for n in names if not isinstance(n, Metric) and n not in valid]
    if invalid:
        raise InvalidArgument(
            "The following metrics are not allowed: "
            f"{', '.join(invalid)} (choices: {', '.join(sorted(valid))})"
        )
    out: List[Metric] = []
    for n in names:
        m = Metric(n)
        if m not in out:
            out.append(m)
    return out


def calc_metric(
    gains,
    metric: Union[str, Metric],
    units_year: int = 252,
    benchmark_gains=None,
) -> float:
    """
    Compute one metric for one gain series.

    Parameters
    ----------
    gains : array-like
        Per-period gains for the window.
    metric : str | Metric
        Metric name (see `Metric`).
    units_year : int, default 252
        Annualization factor.
    benchmark_gains : array-like, optional
        Benchmark gains aligned with `gains`; required for
        alpha, alpha.annualized, beta, r.squared, r and rho.

    Returns
    -------
    float
        Metric value, NaN when undefined for this window.
    """
    spec = METRICS[parse_metric(metric)]
    g = np.asarray(gains, dtype=float).ravel()
    b = None
    if benchmark_gains is not None:
        b = np.asarray(benchmark_gains, dtype=float).ravel()
        if b.size != g.size:
            raise InvalidArgument(
                f"gains and benchmark_gains differ in length ({g.size} vs {b.size})"
            )
    if spec.requires_benchmark and b is None:
        raise InvalidArgument(f"Metric {spec.name.value!r} requires benchmark gains")
    return spec.formula(g, units_year, b)


__all__ = [
    "Metric", "MetricSpec", "METRICS", "BENCHMARK_METRICS",
    "parse_metric", "check_metrics", "calc_metric",
    "growth", "cagr", "mdd", "sharpe", "sortino",
]
