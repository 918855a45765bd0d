"""
exceptions.py
-------------
Error types raised by the fund metrics toolkit.

All of them derive from ValueError so callers that already guard
against bad inputs with `except ValueError` keep working.
"""


class FundMetricsError(ValueError):
    """Base class for toolkit errors."""


class InvalidArgument(FundMetricsError):
    """
    A caller-supplied argument is malformed or inconsistent.

    Raised up front, before any window is computed: unknown metric names,
    malformed window types, bad break-points, mismatched series lengths,
    missing columns, or a benchmark-based metric without a benchmark.
    """


class MissingDataError(FundMetricsError):
    """No usable data source was supplied or retrieved."""
