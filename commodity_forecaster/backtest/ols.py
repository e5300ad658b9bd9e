"""
Ordinary-least-squares trend forecaster.

Model
-----
A straight line is fitted to a window of observations, with the
observation's position in the window as the independent variable::

    x_i = indexer(window)[i]          (default: 0, 1, ..., n-1)
    slope     = Σ(x_i - x̄)(y_i - ȳ) / Σ(x_i - x̄)²
    intercept = ȳ - slope · x̄

The default indexer is ordinal: unequal spacing between periods (a missing
month, say) is NOT modelled.  Pass a different ``indexer`` to regress on
elapsed time instead; nothing downstream depends on the x scale.

Prediction interval
-------------------
For a forecast ``h`` steps past the last training point::

    x_new  = x_last + h               (= n - 1 + h for the ordinal indexer)
    margin = c · se · sqrt(1 + 1/n + (x_new - x̄)² / Sxx)

where ``se = sqrt(SSres / (n - 2))`` (0 when n <= 2) and ``c`` comes from a
pluggable critical-value function.  The default, ``fixed_z_critical_value``,
uses the normal quantile 1.96 for a 95% interval regardless of n, which
under-covers for short windows.  ``student_t_critical_value`` uses the
t-distribution with n - 2 degrees of freedom instead; selecting it changes
every interval and hit rate, so it is opt-in.

Degenerate variance
-------------------
``Sxx == 0`` and ``SStot == 0`` are not errors.  They go through the named
guards ``safe_divide`` (denominator replaced by 1) and ``guarded_r_squared``
(R² = 1 for a constant window), so the singular path is testable on its own.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from statistics import NormalDist
from typing import Callable, Sequence

from commodity_forecaster.backtest.errors import InsufficientDataError, NonFiniteInputError
from commodity_forecaster.models.series import Observation

log = logging.getLogger(__name__)

Z_95 = 1.96
DEFAULT_CONFIDENCE_LEVEL = 0.95
MIN_FIT_OBSERVATIONS = 2

Indexer = Callable[[Sequence[Observation]], list[float]]
CriticalValueFn = Callable[[int, float], float]


@dataclass(frozen=True)
class FitResult:
    """Least-squares line fitted to one training window.

    Attributes:
        slope:          Change in value per index step.
        intercept:      Fitted value at x = 0.
        r_squared:      Coefficient of determination (1.0 for a constant window).
        standard_error: Residual standard error; 0.0 when n <= 2.
        n:              Number of observations in the window.
        x_mean:         Mean of the x-values.
        sxx:            Σ(x - x̄)², unguarded (may be 0).
        x_last:         x-value of the last observation in the window.
    """

    slope: float
    intercept: float
    r_squared: float
    standard_error: float
    n: int
    x_mean: float
    sxx: float
    x_last: float

    def value_at(self, x: float) -> float:
        return self.slope * x + self.intercept


@dataclass(frozen=True)
class Forecast:
    """Point forecast with a symmetric prediction interval.

    Attributes:
        point_estimate:   Value of the fitted line at the target x.
        lower_bound:      point_estimate - margin.
        upper_bound:      point_estimate + margin.
        horizon_steps:    Steps past the last training observation.
        confidence_level: Nominal coverage of the interval (0.95 by default).
        margin:           Half-width of the interval.
        critical_value:   Multiplier used for the margin (1.96 by default).
    """

    point_estimate: float
    lower_bound: float
    upper_bound: float
    horizon_steps: int
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL
    margin: float = 0.0
    critical_value: float = Z_95

    @property
    def interval_width(self) -> float:
        return self.upper_bound - self.lower_bound

    def contains(self, value: float) -> bool:
        """True if ``value`` lies inside the interval, bounds inclusive."""
        return self.lower_bound <= value <= self.upper_bound


# ── Guards ─────────────────────────────────────────────────────────────────────

def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, substituting 1 for a zero denominator.

    Used for ``Sxx`` in both the slope and the interval margin.  When
    ``Sxx == 0`` the matching numerator is also 0, so the slope collapses
    to 0 and the leverage term to ``(x_new - x̄)²``.
    """
    if denominator == 0:
        return numerator / 1.0
    return numerator / denominator


def guarded_r_squared(ss_res: float, ss_tot: float) -> float:
    """Return ``1 - ss_res / ss_tot``, or 1.0 for a constant window."""
    if ss_tot == 0:
        return 1.0
    return 1.0 - ss_res / ss_tot


# ── Indexers and critical values ──────────────────────────────────────────────

def ordinal_index(window: Sequence[Observation]) -> list[float]:
    """x-values 0, 1, ..., n-1: position in the window, not calendar time."""
    return [float(i) for i in range(len(window))]


def fixed_z_critical_value(n: int, confidence_level: float) -> float:
    """Normal-quantile critical value, independent of the sample size.

    Returns exactly 1.96 for a 95% interval.
    """
    if confidence_level == DEFAULT_CONFIDENCE_LEVEL:
        return Z_95
    return NormalDist().inv_cdf(0.5 + confidence_level / 2.0)


def student_t_critical_value(n: int, confidence_level: float) -> float:
    """t-distribution critical value with ``n - 2`` degrees of freedom.

    Falls back to ``fixed_z_critical_value`` when n <= 2, where the
    residual standard error is 0 and the interval collapses anyway.
    """
    if n <= MIN_FIT_OBSERVATIONS:
        return fixed_z_critical_value(n, confidence_level)
    from scipy.stats import t

    return float(t.ppf(0.5 + confidence_level / 2.0, df=n - 2))


CRITICAL_VALUE_FUNCTIONS: dict[str, CriticalValueFn] = {
    "z": fixed_z_critical_value,
    "t": student_t_critical_value,
}


def resolve_critical_value(name: str) -> CriticalValueFn:
    """Look up a critical-value function by its config name (``"z"`` or ``"t"``)."""
    try:
        fn = CRITICAL_VALUE_FUNCTIONS[name]
    except KeyError:
        raise ValueError(
            f"Unknown critical value '{name}'. "
            f"Must be one of {sorted(CRITICAL_VALUE_FUNCTIONS)}."
        ) from None
    if fn is not fixed_z_critical_value:
        log.info("Using '%s' critical values instead of fixed z=%.2f", name, Z_95)
    return fn


# ── Fit and forecast ───────────────────────────────────────────────────────────

def fit(window: Sequence[Observation], indexer: Indexer = ordinal_index) -> FitResult:
    """Fit an OLS line to ``window``.

    Args:
        window:  Training observations in period order.
        indexer: Maps the window to its x-values (default: ordinal index).

    Returns:
        FitResult for the window.

    Raises:
        InsufficientDataError: If the window has fewer than 2 observations.
        NonFiniteInputError:   If any value is NaN or infinite.
    """
    n = len(window)
    if n < MIN_FIT_OBSERVATIONS:
        raise InsufficientDataError(n, MIN_FIT_OBSERVATIONS)

    ys = _finite_values(window)
    xs = indexer(window)
    if len(xs) != n:
        raise ValueError(f"Indexer returned {len(xs)} x-values for {n} observations.")

    x_mean = sum(xs) / n
    y_mean = sum(ys) / n

    sxy = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys))
    sxx = sum((x - x_mean) ** 2 for x in xs)

    slope = safe_divide(sxy, sxx)
    intercept = y_mean - slope * x_mean

    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in zip(xs, ys))
    ss_tot = sum((y - y_mean) ** 2 for y in ys)

    return FitResult(
        slope=slope,
        intercept=intercept,
        r_squared=guarded_r_squared(ss_res, ss_tot),
        standard_error=math.sqrt(ss_res / (n - 2)) if n > 2 else 0.0,
        n=n,
        x_mean=x_mean,
        sxx=sxx,
        x_last=xs[-1],
    )


def predict(
    fit_result: FitResult,
    horizon_steps: int = 1,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    critical_value: CriticalValueFn = fixed_z_critical_value,
) -> Forecast:
    """Extrapolate an existing fit ``horizon_steps`` past its last point."""
    if horizon_steps < 1:
        raise ValueError(f"horizon_steps must be >= 1, got {horizon_steps}")
    if not 0.0 < confidence_level < 1.0:
        raise ValueError(f"confidence_level must be in (0.0, 1.0), got {confidence_level}.")

    n = fit_result.n
    x_new = fit_result.x_last + horizon_steps
    point = fit_result.value_at(x_new)

    c = critical_value(n, confidence_level)
    leverage = safe_divide((x_new - fit_result.x_mean) ** 2, fit_result.sxx)
    margin = c * fit_result.standard_error * math.sqrt(1.0 + 1.0 / n + leverage)

    return Forecast(
        point_estimate=point,
        lower_bound=point - margin,
        upper_bound=point + margin,
        horizon_steps=horizon_steps,
        confidence_level=confidence_level,
        margin=margin,
        critical_value=c,
    )


def forecast(
    window: Sequence[Observation],
    horizon_steps: int = 1,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    critical_value: CriticalValueFn = fixed_z_critical_value,
    indexer: Indexer = ordinal_index,
) -> Forecast:
    """Fit ``window`` and forecast ``horizon_steps`` ahead. Pure function."""
    return predict(
        fit(window, indexer=indexer),
        horizon_steps=horizon_steps,
        confidence_level=confidence_level,
        critical_value=critical_value,
    )


class OLSForecaster:
    """Linear-trend forecaster with a fixed indexer and critical-value rule.

    Holds no state between calls; one instance can be shared across series.
    """

    name = "ols_linear"

    def __init__(
        self,
        confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
        critical_value: CriticalValueFn = fixed_z_critical_value,
        indexer: Indexer = ordinal_index,
    ) -> None:
        if not 0.0 < confidence_level < 1.0:
            raise ValueError(f"confidence_level must be in (0.0, 1.0), got {confidence_level}.")
        self.confidence_level = confidence_level
        self.critical_value = critical_value
        self.indexer = indexer

    def fit(self, window: Sequence[Observation]) -> FitResult:
        return fit(window, indexer=self.indexer)

    def predict(self, fit_result: FitResult, horizon_steps: int = 1) -> Forecast:
        return predict(
            fit_result,
            horizon_steps=horizon_steps,
            confidence_level=self.confidence_level,
            critical_value=self.critical_value,
        )

    def forecast(self, window: Sequence[Observation], horizon_steps: int = 1) -> Forecast:
        return self.predict(self.fit(window), horizon_steps=horizon_steps)


def _finite_values(window: Sequence[Observation]) -> list[float]:
    """Extract values, rejecting NaN and infinities."""
    values: list[float] = []
    for obs in window:
        if not math.isfinite(obs.value):
            raise NonFiniteInputError(obs.period, obs.value)
        values.append(obs.value)
    return values
