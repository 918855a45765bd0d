"""
windows.py
----------
Window partitioning of an aligned, ascending date index.

Policies
--------
- Rolling(width)       : "roll.n"    overlapping windows sliding one row at a time.
- DisjointFixed(width) : "hop.n"     consecutive groups of n rows (last may be shorter).
- DisjointMonth        : "hop.month" one window per calendar month.
- DisjointYear         : "hop.year"  one window per calendar year.
- Breakpoints(dates)   : [min, d1), [d1, d2), ..., [dk, max] intervals.

A window type is parsed once with `parse_window_type` and the resulting
policy object is passed around from then on. Disjoint windows with fewer
than `minimum_n` rows are dropped; rolling windows always hold exactly
`width` rows and are never filtered.

Every window is a contiguous block of rows, described by [row_start, row_stop).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..exceptions import InvalidArgument

logger = logging.getLogger(__name__)

VALID_FORMS = (
    "'roll.n' where n is a positive integer, 'hop.n' where n is a positive integer, "
    "'hop.month', 'hop.year', or a vector of date break-points"
)

_ROLL_RE = re.compile(r"^roll\.(\d+)$")
_HOP_RE = re.compile(r"^hop\.(\d+)$")


# ----------------------------
# Policies
# ----------------------------

@dataclass(frozen=True)
class Rolling:
    width: int


@dataclass(frozen=True)
class DisjointFixed:
    width: int


@dataclass(frozen=True)
class DisjointMonth:
    pass


@dataclass(frozen=True)
class DisjointYear:
    pass


@dataclass(frozen=True)
class Breakpoints:
    dates: Tuple[pd.Timestamp, ...]


WindowPolicy = Union[Rolling, DisjointFixed, DisjointMonth, DisjointYear, Breakpoints]
_POLICY_TYPES = (Rolling, DisjointFixed, DisjointMonth, DisjointYear, Breakpoints)


@dataclass(frozen=True)
class Window:
    """
    One window of one fund's series.

    Attributes
    ----------
    fund : str
        Fund (column) name.
    label : int | str
        Window label: 1-based index for "roll.n"/"hop.n", "YYYY-Mon" for
        months, "YYYY" for years, "mm/dd/yy-mm/dd/yy" for break-points.
    start_date, end_date : pd.Timestamp
        First and last date in the window.
    row_start, row_stop : int
        Half-open row range into the aligned table.
    """
    fund: str
    label: Union[int, str]
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    row_start: int
    row_stop: int

    @property
    def observation_count(self) -> int:
        return self.row_stop - self.row_start

    @property
    def rows(self) -> slice:
        return slice(self.row_start, self.row_stop)


# ----------------------------
# Parsing
# ----------------------------

def _to_timestamps(values: Iterable) -> Tuple[pd.Timestamp, ...]:
    try:
        stamps = pd.to_datetime(list(values))
    except (ValueError, TypeError) as exc:
        raise InvalidArgument(f"The window type must be one of: {VALID_FORMS}") from exc
    if len(stamps) == 0 or stamps.isna().any():
        raise InvalidArgument(f"The window type must be one of: {VALID_FORMS}")
    return tuple(pd.Timestamp(s) for s in stamps)


def parse_window_type(type_) -> WindowPolicy:
    """
    Parse a window type into a policy object.

    Parameters
    ----------
    type_ : str | sequence of date-likes | WindowPolicy
        "roll.n", "hop.n", "hop.month", "hop.year", a single date string,
        or an ascending sequence of break-point dates.

    Returns
    -------
    WindowPolicy

    Raises
    ------
    InvalidArgument
        If the type matches none of the recognized forms, or break-points
        are not strictly ascending.
    """
    if isinstance(type_, _POLICY_TYPES):
        policy = type_
    elif isinstance(type_, str):
        text = type_.strip()
        m_roll, m_hop = _ROLL_RE.match(text), _HOP_RE.match(text)
        if text == "hop.month":
            policy = DisjointMonth()
        elif text == "hop.year":
            policy = DisjointYear()
        elif m_roll:
            policy = Rolling(int(m_roll.group(1)))
        elif m_hop:
            policy = DisjointFixed(int(m_hop.group(1)))
        elif text.startswith(("roll", "hop")):
            raise InvalidArgument(f"Unrecognized window type {type_!r}; must be one of: {VALID_FORMS}")
        else:
            policy = Breakpoints(_to_timestamps([text]))
    elif isinstance(type_, (pd.Timestamp, np.datetime64)) or hasattr(type_, "isoformat"):
        policy = Breakpoints(_to_timestamps([type_]))
    elif isinstance(type_, Iterable):
        policy = Breakpoints(_to_timestamps(type_))
    else:
        raise InvalidArgument(f"Unrecognized window type {type_!r}; must be one of: {VALID_FORMS}")

    if isinstance(policy, (Rolling, DisjointFixed)) and policy.width < 1:
        raise InvalidArgument(f"Window width must be a positive integer, got {policy.width}")
    if isinstance(policy, Breakpoints):
        bps = policy.dates
        if any(later <= earlier for earlier, later in zip(bps, bps[1:])):
            raise InvalidArgument(f"Break-point dates must be strictly ascending: {[str(d.date()) for d in bps]}")
    return policy


# ----------------------------
# Partitioning
# ----------------------------

def _runs(keys: np.ndarray) -> List[Tuple[int, int]]:
    """Contiguous [start, stop) runs of equal keys."""
    if keys.size == 0:
        return []
    cuts = np.flatnonzero(keys[1:] != keys[:-1]) + 1
    bounds = np.concatenate(([0], cuts, [keys.size]))
    return [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:])]


def _breakpoint_blocks(dates: pd.DatetimeIndex, bps: Sequence[pd.Timestamp]):
    lo, hi = dates[0], dates[-1]
    outside = [str(d.date()) for d in bps if not (lo < d < hi)]
    if outside:
        raise InvalidArgument(
            f"Break-point dates must fall strictly inside the data range "
            f"{lo.date()}..{hi.date()}; got {outside}"
        )
    breaks = [lo, *bps, hi]
    cuts = [0, *dates.searchsorted(list(bps), side="left"), len(dates)]
    blocks = []
    for i in range(len(breaks) - 1):
        label = f"{breaks[i]:%m/%d/%y}-{breaks[i + 1]:%m/%d/%y}"
        blocks.append((label, int(cuts[i]), int(cuts[i + 1])))
    return blocks


def partition_index(
    dates: pd.DatetimeIndex,
    policy: WindowPolicy,
    minimum_n: int = 1,
) -> List[Tuple[Union[int, str], int, int]]:
    """
    Split an ascending date index into windows.

    Returns
    -------
    list of (label, row_start, row_stop)
        In ascending start order, after the minimum-size filter.
    """
    dates = pd.DatetimeIndex(dates)
    m = len(dates)
    if m == 0:
        return []

    if isinstance(policy, Rolling):
        w = policy.width
        return [(j + 1, j, j + w) for j in range(max(0, m - w + 1))]

    if isinstance(policy, DisjointFixed):
        w = policy.width
        if w > m:
            blocks = []
        else:
            blocks = [(i + 1, s, min(s + w, m)) for i, s in enumerate(range(0, m, w))]
    elif isinstance(policy, DisjointMonth):
        keys = np.asarray(dates.year * 100 + dates.month)
        blocks = [(f"{dates[a]:%Y-%b}", a, b) for a, b in _runs(keys)]
    elif isinstance(policy, DisjointYear):
        keys = np.asarray(dates.year)
        blocks = [(f"{dates[a]:%Y}", a, b) for a, b in _runs(keys)]
    elif isinstance(policy, Breakpoints):
        blocks = _breakpoint_blocks(dates, policy.dates)
    else:
        raise InvalidArgument(f"Unsupported window policy {policy!r}")

    kept = [(label, a, b) for label, a, b in blocks if b > a and (b - a) >= minimum_n]
    dropped = len(blocks) - len(kept)
    if dropped:
        logger.info("Dropped %d window(s) with fewer than %d observations", dropped, minimum_n)
    return kept


def make_windows(
    dates: pd.DatetimeIndex,
    funds: Sequence[str],
    policy: WindowPolicy,
    minimum_n: int = 1,
) -> List[Window]:
    """
    Build windows for every fund over a shared date index.

    Funds share the aligned index, so the partition is computed once and
    replicated per fund. Output is ordered by fund, then window start.
    """
    if isinstance(minimum_n, bool) or int(minimum_n) != minimum_n or minimum_n < 0:
        raise InvalidArgument(f"minimum_n must be a non-negative integer, got {minimum_n!r}")
    dates = pd.DatetimeIndex(dates)
    blocks = partition_index(dates, policy, int(minimum_n))
    return [
        Window(fund, label, dates[a], dates[b - 1], a, b)
        for fund in funds
        for label, a, b in blocks
    ]


__all__ = [
    "Rolling", "DisjointFixed", "DisjointMonth", "DisjointYear", "Breakpoints",
    "WindowPolicy", "Window", "VALID_FORMS",
    "parse_window_type", "partition_index", "make_windows",
]
