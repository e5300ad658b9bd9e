"""
Evaluation slicing — partition test cases before computing metrics.

  slice_by_year   → one group per calendar year of ``target_period``

Groups preserve the input order of test cases and only contain keys that
have at least one case, so empty years never appear downstream.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from commodity_forecaster.utils.time_utils import period_year

if TYPE_CHECKING:
    from commodity_forecaster.backtest.metrics import TestCase

UNKNOWN_YEAR = "unknown"


def slice_by_year(test_cases: list["TestCase"]) -> dict[str, list["TestCase"]]:
    """Group test cases by the four-digit year embedded in ``target_period``.

    Labels without a recognisable year are grouped under ``"unknown"``.
    Keys are returned in ascending order.
    """
    groups: dict[str, list[TestCase]] = defaultdict(list)
    for t in test_cases:
        groups[period_year(t.target_period) or UNKNOWN_YEAR].append(t)
    return {year: groups[year] for year in sorted(groups)}
