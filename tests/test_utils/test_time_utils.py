"""Tests for period-label helpers."""

from __future__ import annotations

import pytest

from commodity_forecaster.utils.time_utils import next_period_label, period_year, utcnow


@pytest.mark.parametrize(
    "period, expected",
    [
        ("2024-03", "2024"),
        ("2024Q1", "2024"),
        ("Q1 2021", "2021"),
        ("FY2023-H2", "2023"),
        ("month-7", None),
        ("20240301", None),
        ("", None),
    ],
)
def test_period_year(period: str, expected: str | None) -> None:
    assert period_year(period) == expected


@pytest.mark.parametrize(
    "period, steps, expected",
    [
        ("2025-12", 1, "2026-01"),
        ("2025-11", 3, "2026-02"),
        ("2020-01", 24, "2022-01"),
        ("week-9", 2, "week-9+2"),
        ("2025-13", 1, "2025-13+1"),
    ],
)
def test_next_period_label(period: str, steps: int, expected: str) -> None:
    assert next_period_label(period, steps) == expected


def test_utcnow_is_aware() -> None:
    assert utcnow().tzinfo is not None
