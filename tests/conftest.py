"""
Shared pytest fixtures for the Commodity Forecaster test suite.

Provides:
  - ``make_series``: factory building a ``TimeSeries`` of monthly
    observations from a list of values.
  - Sample series fixtures (linear, constant, multi-year) for use in
    multiple test modules.
  - ``series_dir``: a temporary directory holding two small series CSVs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from commodity_forecaster.config import AppConfig, DataConfig, LoggingConfig
from commodity_forecaster.models.series import Observation, TimeSeries


def monthly_periods(n: int, start_year: int = 2020, start_month: int = 1) -> list[str]:
    """``n`` consecutive ``YYYY-MM`` labels."""
    first = start_year * 12 + (start_month - 1)
    return [f"{(first + i) // 12:04d}-{(first + i) % 12 + 1:02d}" for i in range(n)]


# ── Series factories ──────────────────────────────────────────────────────────

@pytest.fixture
def make_series() -> Callable[..., TimeSeries]:
    """Return a factory: ``make_series(values, name="test", unit="$/MT", start_year=2020)``."""

    def _make(
        values: list[float],
        name: str = "test",
        unit: str = "$/MT",
        start_year: int = 2020,
    ) -> TimeSeries:
        periods = monthly_periods(len(values), start_year=start_year)
        return TimeSeries(
            name=name,
            unit=unit,
            observations=tuple(
                Observation(period=p, value=v) for p, v in zip(periods, values)
            ),
        )

    return _make


@pytest.fixture
def linear_series(make_series) -> TimeSeries:
    """Twelve months rising by exactly 10 per month, starting at 100."""
    return make_series([100.0 + 10.0 * i for i in range(12)], name="linear")


@pytest.fixture
def constant_series(make_series) -> TimeSeries:
    """Eight months at a constant 250."""
    return make_series([250.0] * 8, name="flat")


@pytest.fixture
def multi_year_series(make_series) -> TimeSeries:
    """Thirty months (2020-01 .. 2022-06) of a noisy upward trend."""
    noise = [3.0, -2.0, 1.5, -4.0, 2.5, 0.0, -1.0, 3.5, -2.5, 1.0]
    values = [200.0 + 2.0 * i + noise[i % len(noise)] for i in range(30)]
    return make_series(values, name="noisy")


# ── Filesystem fixtures ───────────────────────────────────────────────────────

@pytest.fixture
def series_dir(tmp_path: Path) -> Path:
    """Temporary directory with ``alpha.csv`` (6 rows) and ``beta.csv`` (8 rows)."""
    d = tmp_path / "series"
    d.mkdir()
    alpha = ["# display_name: Alpha", "# unit: $/kg", "period,value,source"]
    alpha += [f"{p},{10.0 + i},test" for i, p in enumerate(monthly_periods(6))]
    (d / "alpha.csv").write_text("\n".join(alpha) + "\n", encoding="utf-8")

    beta = ["period,value"]
    beta += [f"{p},{50.0 - 2 * i}" for i, p in enumerate(monthly_periods(8, 2021))]
    (d / "beta.csv").write_text("\n".join(beta) + "\n", encoding="utf-8")
    return d


@pytest.fixture
def app_config(tmp_path: Path, series_dir: Path) -> AppConfig:
    """AppConfig pointing at the temporary series dir, logging to tmp_path."""
    return AppConfig(
        data=DataConfig(series_dir=str(series_dir), output_dir=str(tmp_path / "outputs")),
        logging=LoggingConfig(log_file=str(tmp_path / "logs" / "test.log")),
    )
