"""
Backtest evaluator: expanding-window, one-step-ahead OLS backtest.

How it works
------------
For a series of length L, minimum training size m and horizon h:

1. For each ``window_end`` in ``m-1 .. L-1-h``:
   a. train = observations[0 .. window_end]      (grows by one each step)
   b. actual = observations[window_end + h]
   c. fit the OLS line on ``train`` and extrapolate h steps.
   d. score: absolute percent error, interval hit, direction.
2. Return the TestCases in window order.

With the defaults (m = 4, h = 1) a series of length L yields exactly
``max(0, L - 4)`` test cases; 72 months give 68.

Target positions are counted in the series' index space, not calendar
time: a gap in the periods is invisible to the backtest.

Leakage proof
-------------
``train`` is a strict prefix ending at ``window_end`` and the target index is
``window_end + h`` with h >= 1, so the actual value is never part of the fit.

Batch runs
----------
``run_batch`` processes several series independently.  A failure in one
series is logged and recorded in ``BatchResult.failures``; the remaining
series still run.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from pydantic import ValidationError

from commodity_forecaster.backtest.errors import ForecastError
from commodity_forecaster.backtest.metrics import SeriesAccuracySummary, TestCase, summarize
from commodity_forecaster.backtest.ols import OLSForecaster
from commodity_forecaster.models.series import TimeSeries

log = logging.getLogger(__name__)

DEFAULT_MIN_TRAIN_SIZE = 4
DEFAULT_HORIZON_STEPS = 1


def absolute_percent_error(predicted: float, actual: float) -> float:
    """Return ``|predicted - actual| / |actual| · 100``.

    A zero actual has no defined percentage error.  It returns ``inf`` when
    the prediction is non-zero and ``0.0`` when the prediction is also
    exactly zero; it never raises.
    """
    if actual == 0:
        return 0.0 if predicted == 0 else math.inf
    return abs(predicted - actual) / abs(actual) * 100.0


def is_direction_correct(actual_change: float, slope: float) -> bool:
    """Score the slope's sign against the realised change.

    A zero change is treated as upward, so it is correct whenever the slope
    is >= 0 and wrong whenever the slope is negative.
    """
    return (actual_change >= 0 and slope >= 0) or (actual_change < 0 and slope < 0)


def run_backtest(
    series: TimeSeries,
    min_train_size: int = DEFAULT_MIN_TRAIN_SIZE,
    horizon_steps: int = DEFAULT_HORIZON_STEPS,
    forecaster: Optional[OLSForecaster] = None,
) -> list[TestCase]:
    """Run the expanding-window backtest over one series.

    Args:
        series:         The full series; read only.
        min_train_size: Observations in the first training window (>= 2).
        horizon_steps:  Index steps between the last training point and
                        the target (>= 1).
        forecaster:     Forecaster to use; defaults to a fixed-z OLSForecaster.

    Returns:
        TestCases in window order.  Empty when the series is too short for
        a single step.

    Raises:
        ValueError:          If ``min_train_size`` or ``horizon_steps`` is out of range.
        NonFiniteInputError: If a training value is NaN or infinite.
    """
    if min_train_size < 2:
        raise ValueError(f"min_train_size must be >= 2, got {min_train_size}")
    if horizon_steps < 1:
        raise ValueError(f"horizon_steps must be >= 1, got {horizon_steps}")

    model = forecaster or OLSForecaster()
    observations = series.observations
    length = len(observations)

    if length < min_train_size + horizon_steps:
        log.warning(
            "Series '%s' too short to backtest | length=%d min_train_size=%d horizon=%d",
            series.name, length, min_train_size, horizon_steps,
        )
        return []

    test_cases: list[TestCase] = []
    for window_end in range(min_train_size - 1, length - horizon_steps):
        train = observations[: window_end + 1]
        target = observations[window_end + horizon_steps]
        last_known = train[-1]

        fit_result = model.fit(train)
        fc = model.predict(fit_result, horizon_steps=horizon_steps)

        if target.value == 0:
            log.warning(
                "Zero actual value in '%s' at %s; percent error is undefined",
                series.name, target.period,
            )

        test_cases.append(TestCase(
            training_window_label=f"{train[0].period}~{last_known.period}",
            target_period=target.period,
            actual_value=target.value,
            last_known_value=last_known.value,
            forecast=fc,
            fit=fit_result,
            absolute_percent_error_pct=absolute_percent_error(fc.point_estimate, target.value),
            within_interval=fc.contains(target.value),
            direction_correct=is_direction_correct(
                target.value - last_known.value, fit_result.slope
            ),
        ))

    log.debug(
        "Backtest '%s' | length=%d | tests=%d", series.name, length, len(test_cases)
    )
    return test_cases


@dataclass
class BatchResult:
    """Outcome of backtesting several series.

    Attributes:
        summaries:  One summary per series that completed, in input order.
        test_cases: Series name -> its test cases.
        failures:   Series name -> error message for series that failed.
    """

    summaries: list[SeriesAccuracySummary] = field(default_factory=list)
    test_cases: dict[str, list[TestCase]] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def total_tests(self) -> int:
        return sum(s.test_count for s in self.summaries)


def run_batch(
    series_list: Iterable[TimeSeries],
    min_train_size: int = DEFAULT_MIN_TRAIN_SIZE,
    horizon_steps: int = DEFAULT_HORIZON_STEPS,
    forecaster: Optional[OLSForecaster] = None,
) -> BatchResult:
    """Backtest and summarise each series, isolating failures per series."""
    result = BatchResult()
    model = forecaster or OLSForecaster()

    for series in series_list:
        try:
            cases = run_backtest(
                series,
                min_train_size=min_train_size,
                horizon_steps=horizon_steps,
                forecaster=model,
            )
            summary = summarize(
                cases,
                series_name=series.name,
                total_observations=len(series),
                unit=series.unit,
            )
        except (ForecastError, ValidationError, ValueError) as exc:
            log.error("Backtest FAILED for series '%s': %s", series.name, exc)
            result.failures[series.name] = str(exc)
            continue

        result.summaries.append(summary)
        result.test_cases[series.name] = cases

    log.info(
        "Batch backtest complete | series=%d | failed=%d | tests=%d",
        len(result.summaries), len(result.failures), result.total_tests,
    )
    return result
