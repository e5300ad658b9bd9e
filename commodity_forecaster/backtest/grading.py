"""
Qualitative grading of forecast error.

  Tier        MAPE range
  ---------   ----------
  excellent   [0, 5)
  good        [5, 10)
  fair        [10, 20)
  poor        [20, inf]

``classify`` is total over ``[0, inf]``: an infinite MAPE (from a zero actual
value) grades as poor.  NaN and negative inputs are outside the domain and
raise ``ValueError``.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import Iterable

from commodity_forecaster.backtest.metrics import SeriesAccuracySummary


class Tier(StrEnum):
    """Accuracy tier for a MAPE value."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


# Lower bound (inclusive) of each tier, highest bound first.
TIER_THRESHOLDS: tuple[tuple[float, Tier], ...] = (
    (20.0, Tier.POOR),
    (10.0, Tier.FAIR),
    (5.0, Tier.GOOD),
    (0.0, Tier.EXCELLENT),
)

TIER_DESCRIPTIONS: dict[Tier, str] = {
    Tier.EXCELLENT: "linear trend captured well",
    Tier.GOOD:      "mostly accurate; misses around reversals",
    Tier.FAIR:      "volatile; pair with a secondary signal",
    Tier.POOR:      "linear trend unsuitable for this series",
}


def classify(mape: float) -> Tier:
    """Map a MAPE (in percent) to its tier.

    Raises:
        ValueError: If ``mape`` is NaN or negative.
    """
    if math.isnan(mape) or mape < 0:
        raise ValueError(f"mape must be in [0, inf], got {mape!r}")
    for lower, tier in TIER_THRESHOLDS:
        if mape >= lower:
            return tier
    raise AssertionError("unreachable: mape >= 0 always matches a tier")


def group_by_tier(
    summaries: Iterable[SeriesAccuracySummary],
) -> dict[Tier, list[SeriesAccuracySummary]]:
    """Group summaries by tier, best tier first.

    Summaries without a MAPE (no test cases) are left out.  Tiers with no
    members are omitted.
    """
    groups: dict[Tier, list[SeriesAccuracySummary]] = {tier: [] for tier in Tier}
    for s in summaries:
        if s.mape is None:
            continue
        groups[classify(s.mape)].append(s)
    return {tier: members for tier, members in groups.items() if members}
