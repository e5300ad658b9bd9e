"""
Tests for MAPE tier grading.

What we test
------------
1. Tier boundaries — lower bounds inclusive (5 → good, 10 → fair, 20 → poor).
2. Infinite MAPE grades as poor.
3. NaN and negative MAPE raise ValueError.
4. group_by_tier — best tier first, empty tiers omitted, mape=None skipped.
"""

from __future__ import annotations

import math

import pytest

from commodity_forecaster.backtest.grading import (
    TIER_DESCRIPTIONS,
    Tier,
    classify,
    group_by_tier,
)
from commodity_forecaster.backtest.metrics import SeriesAccuracySummary


def _summary(name: str, mape: float | None) -> SeriesAccuracySummary:
    return SeriesAccuracySummary(
        series_name=name,
        total_observations=72,
        test_count=68 if mape is not None else 0,
        mape=mape,
        interval_hit_rate_pct=None if mape is None else 90.0,
        directional_accuracy_pct=None if mape is None else 50.0,
    )


@pytest.mark.parametrize(
    "mape, expected",
    [
        (0.0, Tier.EXCELLENT),
        (4.99, Tier.EXCELLENT),
        (5.0, Tier.GOOD),
        (9.99, Tier.GOOD),
        (10.0, Tier.FAIR),
        (19.99, Tier.FAIR),
        (20.0, Tier.POOR),
        (250.0, Tier.POOR),
        (math.inf, Tier.POOR),
    ],
)
def test_classify_boundaries(mape: float, expected: Tier) -> None:
    assert classify(mape) is expected


@pytest.mark.parametrize("mape", [math.nan, -0.1, -math.inf])
def test_classify_rejects_out_of_domain(mape: float) -> None:
    with pytest.raises(ValueError):
        classify(mape)


def test_tier_values_are_lowercase_names() -> None:
    assert [t.value for t in Tier] == ["excellent", "good", "fair", "poor"]
    assert Tier.GOOD == "good"


def test_every_tier_has_a_description() -> None:
    assert set(TIER_DESCRIPTIONS) == set(Tier)


def test_group_by_tier_orders_best_first_and_omits_empty() -> None:
    groups = group_by_tier([
        _summary("cocoa", 31.0),
        _summary("wheat", 4.0),
        _summary("eggs", 22.5),
        _summary("milk", 3.1),
    ])
    assert list(groups) == [Tier.EXCELLENT, Tier.POOR]
    assert [s.series_name for s in groups[Tier.EXCELLENT]] == ["wheat", "milk"]
    assert [s.series_name for s in groups[Tier.POOR]] == ["cocoa", "eggs"]


def test_group_by_tier_skips_series_without_tests() -> None:
    groups = group_by_tier([_summary("short", None), _summary("sugar", 7.0)])
    assert list(groups) == [Tier.GOOD]
    assert groups[Tier.GOOD][0].series_name == "sugar"
