"""
transforms.py
-------------
Lagged transforms over numeric sequences.

Functions
---------
- diffs    : Lagged differences, x[i+lag] - x[i].
- ratios   : Successive ratios, x[i+1] / x[i].
- pdiffs   : Proportion differences, x[i+lag] / x[i] - 1 (prices -> gains).
- pchanges : Proportion changes, same formula as `pdiffs`.

All functions return a new float ndarray of length n - lag and reject
lags that would leave nothing behind. Division by zero is not special-cased:
it yields inf/NaN like any other numpy division.
"""

from __future__ import annotations

import numpy as np

from ..exceptions import InvalidArgument


def _as_array(x) -> np.ndarray:
    return np.asarray(x, dtype=float).ravel()


def _check_lag(n: int, lag: int) -> int:
    try:
        whole = int(lag)
    except (TypeError, ValueError, OverflowError):
        raise InvalidArgument(f"lag must be an integer, got {lag!r}") from None
    if isinstance(lag, bool) or whole != lag:
        raise InvalidArgument(f"lag must be an integer, got {lag!r}")
    lag = whole
    if lag < 1:
        raise InvalidArgument(f"lag must be >= 1, got {lag}")
    if lag >= n:
        raise InvalidArgument(f"lag ({lag}) must be smaller than the series length ({n})")
    return lag


def diffs(x, lag: int = 1) -> np.ndarray:
    """
    Lagged differences.

    Parameters
    ----------
    x : array-like
        Numeric sequence of length n.
    lag : int, default 1
        Distance between the two elements being differenced (1 <= lag < n).

    Returns
    -------
    np.ndarray
        Length n - lag, result[i] = x[i + lag] - x[i].
    """
    a = _as_array(x)
    lag = _check_lag(a.size, lag)
    return a[lag:] - a[:-lag]


def ratios(x) -> np.ndarray:
    """Successive ratios, result[i] = x[i + 1] / x[i]."""
    a = _as_array(x)
    _check_lag(a.size, 1)
    with np.errstate(divide="ignore", invalid="ignore"):
        return a[1:] / a[:-1]


def pdiffs(x, lag: int = 1) -> np.ndarray:
    """
    Proportion differences, result[i] = x[i + lag] / x[i] - 1.

    With lag=1 this turns a price series into a gain series
    (e.g. 100 -> 102 gives 0.02).
    """
    a = _as_array(x)
    lag = _check_lag(a.size, lag)
    with np.errstate(divide="ignore", invalid="ignore"):
        return a[lag:] / a[:-lag] - 1.0


def pchanges(x, lag: int = 1) -> np.ndarray:
    """Proportion changes; identical to `pdiffs`."""
    return pdiffs(x, lag)


__all__ = ["diffs", "ratios", "pdiffs", "pchanges"]
