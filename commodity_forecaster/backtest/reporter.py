"""
Backtest result reporting: CSV files and a JSON manifest.

Output layout (one backtest run):
  outputs/backtest/{run_date}_{run_slug[:8]}/
    summary.csv       — one row per series (overall metrics + tier)
    yearly.csv        — one row per (series, year)
    test_cases.csv    — one row per TestCase (full raw data)
    manifest.json     — run config, aggregate metrics, tier groups, failures

Metrics are written unrounded to CSV (4 decimal places) and raw to JSON;
display rounding belongs to ``reporting.formatters``.  Non-finite MAPE
values (zero actual prices) are written as ``inf`` in CSV and ``Infinity``
in JSON.
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Optional

from commodity_forecaster.backtest.grading import classify, group_by_tier
from commodity_forecaster.backtest.metrics import (
    AggregateAccuracy,
    SeriesAccuracySummary,
    TestCase,
    aggregate_summaries,
)
from commodity_forecaster.utils.time_utils import utcnow

log = logging.getLogger(__name__)


# ── Dict conversion ───────────────────────────────────────────────────────────

def summary_to_dict(summary: SeriesAccuracySummary) -> dict[str, Any]:
    """Flatten a summary (and its yearly breakdown) into JSON-ready types."""
    return {
        "series_name":              summary.series_name,
        "unit":                     summary.unit,
        "total_observations":       summary.total_observations,
        "test_count":               summary.test_count,
        "mape":                     summary.mape,
        "interval_hit_rate_pct":    summary.interval_hit_rate_pct,
        "directional_accuracy_pct": summary.directional_accuracy_pct,
        "tier":                     _tier(summary.mape),
        "yearly_breakdown": {
            year: {
                "test_count":               y.test_count,
                "mape":                     y.mape,
                "interval_hit_rate_pct":    y.interval_hit_rate_pct,
                "directional_accuracy_pct": y.directional_accuracy_pct,
            }
            for year, y in summary.yearly_breakdown.items()
        },
    }


def aggregate_to_dict(aggregate: AggregateAccuracy) -> dict[str, Any]:
    return {
        "series_count":             aggregate.series_count,
        "test_count":               aggregate.test_count,
        "mape":                     aggregate.mape,
        "interval_hit_rate_pct":    aggregate.interval_hit_rate_pct,
        "directional_accuracy_pct": aggregate.directional_accuracy_pct,
        "tier":                     _tier(aggregate.mape),
    }


# ── CSV output ─────────────────────────────────────────────────────────────────

def write_summary_csv(summaries: list[SeriesAccuracySummary], path: Path) -> None:
    """Write one row of overall metrics per series."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = [
        "series_name", "unit", "total_observations", "test_count",
        "mape", "interval_hit_rate_pct", "directional_accuracy_pct", "tier",
    ]
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for s in summaries:
            writer.writerow({
                "series_name":              s.series_name,
                "unit":                     s.unit or "",
                "total_observations":       s.total_observations,
                "test_count":               s.test_count,
                "mape":                     _fmt(s.mape),
                "interval_hit_rate_pct":    _fmt(s.interval_hit_rate_pct),
                "directional_accuracy_pct": _fmt(s.directional_accuracy_pct),
                "tier":                     _tier(s.mape) or "",
            })
    log.info("Summary CSV written: %s", path)


def write_yearly_csv(summaries: list[SeriesAccuracySummary], path: Path) -> None:
    """Write one row per (series, year) present in the yearly breakdowns."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = [
        "series_name", "year", "test_count",
        "mape", "interval_hit_rate_pct", "directional_accuracy_pct",
    ]
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for s in summaries:
            for year, y in s.yearly_breakdown.items():
                writer.writerow({
                    "series_name":              s.series_name,
                    "year":                     year,
                    "test_count":               y.test_count,
                    "mape":                     _fmt(y.mape),
                    "interval_hit_rate_pct":    _fmt(y.interval_hit_rate_pct),
                    "directional_accuracy_pct": _fmt(y.directional_accuracy_pct),
                })
    log.info("Yearly CSV written: %s", path)


def write_test_cases_csv(test_cases: dict[str, list[TestCase]], path: Path) -> None:
    """Write every TestCase of every series as CSV (for detailed inspection)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = [
        "series_name", "training_window", "target_period",
        "actual_value", "last_known_value",
        "point_estimate", "lower_bound", "upper_bound",
        "slope", "r_squared", "standard_error",
        "absolute_percent_error_pct", "within_interval", "direction_correct",
    ]
    n_rows = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for series_name, cases in test_cases.items():
            for t in cases:
                writer.writerow({
                    "series_name":      series_name,
                    "training_window":  t.training_window_label,
                    "target_period":    t.target_period,
                    "actual_value":     t.actual_value,
                    "last_known_value": t.last_known_value,
                    "point_estimate":   _fmt(t.forecast.point_estimate),
                    "lower_bound":      _fmt(t.forecast.lower_bound),
                    "upper_bound":      _fmt(t.forecast.upper_bound),
                    "slope":            _fmt(t.fit.slope),
                    "r_squared":        _fmt(t.fit.r_squared),
                    "standard_error":   _fmt(t.fit.standard_error),
                    "absolute_percent_error_pct": _fmt(t.absolute_percent_error_pct),
                    "within_interval":  int(t.within_interval),
                    "direction_correct": int(t.direction_correct),
                })
                n_rows += 1
    log.info("Test-case CSV written: %s (%d rows)", path, n_rows)


# ── JSON manifest ──────────────────────────────────────────────────────────────

def build_backtest_manifest(
    run_slug: str,
    summaries: list[SeriesAccuracySummary],
    failures: dict[str, str],
    output_dir: Path,
    config_snapshot: dict[str, Any],
) -> dict[str, Any]:
    """Build a JSON manifest summarising this backtest run."""
    aggregate = aggregate_summaries(summaries)
    return {
        "schema_version": "1.0",
        "built_at":       utcnow().isoformat(),
        "run_slug":       run_slug,
        "series":         [s.series_name for s in summaries],
        "aggregate":      aggregate_to_dict(aggregate),
        "tiers": {
            tier.value: [s.series_name for s in members]
            for tier, members in group_by_tier(summaries).items()
        },
        "failures":       failures,
        "output_files": {
            "summary_csv":    str(output_dir / "summary.csv"),
            "yearly_csv":     str(output_dir / "yearly.csv"),
            "test_cases_csv": str(output_dir / "test_cases.csv"),
        },
        "config_snapshot": config_snapshot,
    }


def write_manifest(manifest: dict[str, Any], path: Path) -> None:
    """Write the manifest dict as pretty-printed JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, default=str)
    log.info("Backtest manifest written: %s", path)


def make_output_dir(base_dir: str | Path, run_slug: str, run_date: Optional[date] = None) -> Path:
    """Build the output directory path for one backtest run."""
    day = run_date or utcnow().date()
    return Path(base_dir) / "backtest" / f"{day.isoformat()}_{run_slug[:8]}"


def _tier(mape: float | None) -> str | None:
    return classify(mape).value if mape is not None else None


def _fmt(v: float | None) -> str:
    """Format float to 4 decimal places, or empty string for None."""
    if v is None:
        return ""
    return f"{v:.4f}"
