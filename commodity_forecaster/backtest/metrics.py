"""
Forecast accuracy metrics.

Metric design rationale
-----------------------
MAPE (Mean Absolute Percentage Error)
  Mean of ``|predicted - actual| / |actual| · 100`` over all test cases.
  Expressed in percent (5.0 = 5%), so wheat in $/MT and sugar in ¢/lb can
  be compared directly.  A zero actual value makes its term infinite (see
  ``evaluator.absolute_percent_error``); the mean then becomes ``inf``
  rather than raising.

Interval hit rate
  Percentage of actual values inside their forecast's prediction interval
  (bounds inclusive).  For a well-calibrated 95% interval this should sit
  near 95; a fixed z = 1.96 on short windows usually lands below that.

Directional accuracy
  Percentage of steps where the sign of the fitted slope matches the sign of
  the realised change from the last training value.  A zero change counts
  as "up", so it is scored correct whenever the slope is >= 0.  Unlike a
  tie-excluding definition, every test case is in the denominator.

Undefined vs zero
  With no test cases every metric is ``None``.  A zero would read as a
  perfect MAPE or a 0% hit rate, both of which are false.

Cross-series aggregate
  ``aggregate_summaries`` weights each series by its own test count, so a
  series with 68 test cases counts 68 times as much as one with a single
  test case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from commodity_forecaster.backtest.ols import FitResult, Forecast
from commodity_forecaster.backtest.slices import slice_by_year


@dataclass(frozen=True)
class TestCase:
    """One backtest step: a forecast scored against the next actual value.

    Attributes:
        training_window_label:     ``"{first_period}~{last_period}"`` of the window.
        target_period:             Period being predicted.
        actual_value:              Observed value at ``target_period``.
        last_known_value:          Last value in the training window.
        forecast:                  Forecast produced from the training window.
        fit:                       The fit the forecast was extrapolated from.
        absolute_percent_error_pct: ``|point - actual| / |actual| · 100``.
        within_interval:           Actual lies in ``[lower_bound, upper_bound]``.
        direction_correct:         Slope sign matches realised change sign
                                   (zero change counts as up).
    """

    __test__ = False  # not a pytest class

    training_window_label: str
    target_period: str
    actual_value: float
    last_known_value: float
    forecast: Forecast
    fit: FitResult
    absolute_percent_error_pct: float
    within_interval: bool
    direction_correct: bool


@dataclass(frozen=True)
class YearlyAccuracy:
    """Accuracy metrics for the test cases whose target falls in one year."""

    year: str
    test_count: int
    mape: Optional[float]
    interval_hit_rate_pct: Optional[float]
    directional_accuracy_pct: Optional[float]


@dataclass(frozen=True)
class SeriesAccuracySummary:
    """Accuracy of the rolling backtest over one series.

    Attributes:
        series_name:              Registry name of the series.
        total_observations:       Length of the source series.
        test_count:               Number of backtest steps.
        mape:                     Mean absolute percentage error, or None.
        interval_hit_rate_pct:    Percent of actuals inside the interval, or None.
        directional_accuracy_pct: Percent of correct directions, or None.
        yearly_breakdown:         Year -> metrics; years without cases omitted.
        unit:                     Unit label carried through for reporting.
    """

    series_name: str
    total_observations: int
    test_count: int
    mape: Optional[float]
    interval_hit_rate_pct: Optional[float]
    directional_accuracy_pct: Optional[float]
    yearly_breakdown: dict[str, YearlyAccuracy] = field(default_factory=dict)
    unit: Optional[str] = None


@dataclass(frozen=True)
class AggregateAccuracy:
    """Test-count-weighted accuracy across several series."""

    series_count: int
    test_count: int
    mape: Optional[float]
    interval_hit_rate_pct: Optional[float]
    directional_accuracy_pct: Optional[float]


def compute_rates(
    test_cases: list[TestCase],
) -> tuple[Optional[float], Optional[float], Optional[float]]:
    """Return ``(mape, interval_hit_rate_pct, directional_accuracy_pct)``.

    All three are None when ``test_cases`` is empty.
    """
    n = len(test_cases)
    if n == 0:
        return None, None, None

    mape = sum(t.absolute_percent_error_pct for t in test_cases) / n
    hits = sum(1 for t in test_cases if t.within_interval)
    correct = sum(1 for t in test_cases if t.direction_correct)
    return mape, 100.0 * hits / n, 100.0 * correct / n


def summarize(
    test_cases: list[TestCase],
    series_name: str,
    total_observations: int,
    unit: Optional[str] = None,
) -> SeriesAccuracySummary:
    """Reduce a series' test cases to overall and per-year accuracy.

    Args:
        test_cases:         Output of ``run_backtest`` for one series.
        series_name:        Label attached to the summary.
        total_observations: Length of the series the cases came from.
        unit:               Optional unit label for reporting.

    Returns:
        SeriesAccuracySummary.  With no test cases, ``test_count`` is 0,
        every metric is None and the yearly breakdown is empty.
    """
    mape, hit_rate, dir_acc = compute_rates(test_cases)

    yearly: dict[str, YearlyAccuracy] = {}
    for year, cases in slice_by_year(test_cases).items():
        y_mape, y_hit, y_dir = compute_rates(cases)
        yearly[year] = YearlyAccuracy(
            year=year,
            test_count=len(cases),
            mape=y_mape,
            interval_hit_rate_pct=y_hit,
            directional_accuracy_pct=y_dir,
        )

    return SeriesAccuracySummary(
        series_name=series_name,
        total_observations=total_observations,
        test_count=len(test_cases),
        mape=mape,
        interval_hit_rate_pct=hit_rate,
        directional_accuracy_pct=dir_acc,
        yearly_breakdown=yearly,
        unit=unit,
    )


def aggregate_summaries(summaries: Iterable[SeriesAccuracySummary]) -> AggregateAccuracy:
    """Combine per-series summaries, weighting each by its test count.

    ``aggregate_mape = Σ(mape_i · test_count_i) / Σ test_count_i``, and the
    same for the two rates.  Series without test cases add nothing.
    """
    summaries = list(summaries)
    scored = [s for s in summaries if s.test_count > 0]
    total = sum(s.test_count for s in scored)

    if total == 0:
        return AggregateAccuracy(
            series_count=len(summaries),
            test_count=0,
            mape=None,
            interval_hit_rate_pct=None,
            directional_accuracy_pct=None,
        )

    def _weighted(attr: str) -> float:
        return sum(getattr(s, attr) * s.test_count for s in scored) / total

    return AggregateAccuracy(
        series_count=len(summaries),
        test_count=total,
        mape=_weighted("mape"),
        interval_hit_rate_pct=_weighted("interval_hit_rate_pct"),
        directional_accuracy_pct=_weighted("directional_accuracy_pct"),
    )
