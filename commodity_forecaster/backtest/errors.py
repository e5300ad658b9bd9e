"""
Exceptions raised by the forecasting core.

Both concrete errors subclass ``ValueError`` so callers that already guard
numeric input with ``except ValueError`` keep working.

Degenerate variance (a constant window, or x-values with zero spread) is
NOT an error: it is handled by the named guards in ``backtest.ols``.
"""

from __future__ import annotations


class ForecastError(Exception):
    """Base class for all forecasting-core failures."""


class InsufficientDataError(ForecastError, ValueError):
    """A training window has fewer observations than a fit requires."""

    def __init__(self, n: int, required: int = 2) -> None:
        self.n = n
        self.required = required
        super().__init__(
            f"Need at least {required} observations to fit a trend, got {n}."
        )


class NonFiniteInputError(ForecastError, ValueError):
    """An observation value is NaN or infinite."""

    def __init__(self, period: str, value: float) -> None:
        self.period = period
        self.value = value
        super().__init__(f"Non-finite value {value!r} at period '{period}'.")
