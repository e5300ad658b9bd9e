"""
ASCII terminal formatters for CLI reporting commands.

All formatters accept backtest result objects and return plain multi-line
strings suitable for ``typer.echo()``.  No third-party dependencies.

Rounding
--------
Metrics are carried unrounded through the backtest; they are rounded here
and nowhere else: MAPE to 2 decimals, hit rate and directional accuracy
to 1 decimal.  An infinite MAPE (zero actual price) prints as ``inf``.
"""

from __future__ import annotations

import math
from typing import Sequence

from commodity_forecaster.backtest.grading import TIER_DESCRIPTIONS, classify, group_by_tier
from commodity_forecaster.backtest.metrics import (
    SeriesAccuracySummary,
    TestCase,
    aggregate_summaries,
)
from commodity_forecaster.backtest.ols import Forecast
from commodity_forecaster.models.series import TimeSeries
from commodity_forecaster.utils.time_utils import next_period_label


# ── Cell helpers ──────────────────────────────────────────────────────────────


def fmt_mape(v: float | None) -> str:
    if v is None:
        return "n/a"
    if math.isinf(v):
        return "inf"
    return f"{v:.2f}%"


def fmt_rate(v: float | None) -> str:
    return "n/a" if v is None else f"{v:.1f}%"


def _tier_label(mape: float | None) -> str:
    return classify(mape).value if mape is not None else "-"


# ── Summary table ─────────────────────────────────────────────────────────────


def format_summary_table(
    summaries: Sequence[SeriesAccuracySummary],
    failures: dict[str, str] | None = None,
) -> str:
    """Per-series accuracy table with a test-count weighted aggregate row.

    Example::

        === Backtest Summary ===
          Series        Obs  Tests     MAPE   Hit rate  Direction  Tier
          ---------------------------------------------------------------
          wheat          72     68    6.12%      91.2%      55.9%  good
          ---------------------------------------------------------------
          ALL (9)       648    612    9.87%      90.4%      53.1%  fair
    """
    lines: list[str] = ["", "=== Backtest Summary ==="]
    if not summaries:
        lines.append("  (no series completed)")
    else:
        header = (
            f"  {'Series':<12}  {'Obs':>5}  {'Tests':>5}  {'MAPE':>9}  "
            f"{'Hit rate':>9}  {'Direction':>9}  Tier"
        )
        rule = "  " + "-" * (len(header) + 4)
        lines.append(header)
        lines.append(rule)
        for s in summaries:
            lines.append(
                f"  {s.series_name:<12}  {s.total_observations:>5}  {s.test_count:>5}  "
                f"{fmt_mape(s.mape):>9}  {fmt_rate(s.interval_hit_rate_pct):>9}  "
                f"{fmt_rate(s.directional_accuracy_pct):>9}  {_tier_label(s.mape)}"
            )
        agg = aggregate_summaries(summaries)
        total_obs = sum(s.total_observations for s in summaries)
        lines.append(rule)
        lines.append(
            f"  {f'ALL ({agg.series_count})':<12}  {total_obs:>5}  {agg.test_count:>5}  "
            f"{fmt_mape(agg.mape):>9}  {fmt_rate(agg.interval_hit_rate_pct):>9}  "
            f"{fmt_rate(agg.directional_accuracy_pct):>9}  {_tier_label(agg.mape)}"
        )

    if failures:
        lines.append("")
        lines.append(f"  Failed series ({len(failures)}):")
        for name, msg in failures.items():
            lines.append(f"    {name}: {msg.splitlines()[0] if msg else ''}")
    return "\n".join(lines)


# ── Yearly MAPE table ─────────────────────────────────────────────────────────


def format_yearly_table(summaries: Sequence[SeriesAccuracySummary]) -> str:
    """MAPE per series (rows) and year (columns).  Blank cells = no tests."""
    years = sorted({y for s in summaries for y in s.yearly_breakdown})
    lines: list[str] = ["", "=== MAPE by Year ==="]
    if not years:
        lines.append("  (no yearly data)")
        return "\n".join(lines)

    lines.append(f"  {'Series':<12}" + "".join(f"  {y:>9}" for y in years))
    lines.append("  " + "-" * (12 + 11 * len(years)))
    for s in summaries:
        cells = []
        for y in years:
            acc = s.yearly_breakdown.get(y)
            cells.append(f"  {fmt_mape(acc.mape) if acc else '':>9}")
        lines.append(f"  {s.series_name:<12}" + "".join(cells))
    return "\n".join(lines)


# ── Per-series detail ─────────────────────────────────────────────────────────


def format_series_detail(
    summary: SeriesAccuracySummary,
    test_cases: Sequence[TestCase],
    recent: int = 12,
) -> str:
    """Header metrics plus the last ``recent`` test cases of one series."""
    unit = f" ({summary.unit})" if summary.unit else ""
    lines: list[str] = [
        "",
        f"=== {summary.series_name}{unit} ===",
        f"  Observations: {summary.total_observations}   Tests: {summary.test_count}",
        f"  MAPE: {fmt_mape(summary.mape)}   Hit rate: {fmt_rate(summary.interval_hit_rate_pct)}"
        f"   Direction: {fmt_rate(summary.directional_accuracy_pct)}"
        f"   Tier: {_tier_label(summary.mape)}",
    ]
    shown = list(test_cases)[-recent:] if recent > 0 else []
    if not shown:
        return "\n".join(lines)

    lines.append("")
    lines.append(f"  Last {len(shown)} test cases:")
    lines.append(
        f"    {'Target':<9}  {'Actual':>10}  {'Forecast':>10}  "
        f"{'Interval':>23}  {'APE':>8}  In  Dir"
    )
    for t in shown:
        fc = t.forecast
        interval = f"[{fc.lower_bound:.2f}, {fc.upper_bound:.2f}]"
        lines.append(
            f"    {t.target_period:<9}  {t.actual_value:>10.2f}  {fc.point_estimate:>10.2f}  "
            f"{interval:>23}  {fmt_mape(t.absolute_percent_error_pct):>8}  "
            f"{'y' if t.within_interval else 'n':>2}  {'y' if t.direction_correct else 'n':>3}"
        )
    return "\n".join(lines)


# ── Tier groups ───────────────────────────────────────────────────────────────


def format_tier_groups(summaries: Sequence[SeriesAccuracySummary]) -> str:
    groups = group_by_tier(summaries)
    lines: list[str] = ["", "=== Accuracy Tiers ==="]
    if not groups:
        lines.append("  (no graded series)")
    for tier, members in groups.items():
        names = ", ".join(s.series_name for s in members)
        lines.append(f"  {tier.value.upper():<9}  {names}")
        lines.append(f"  {'':<9}  -> {TIER_DESCRIPTIONS[tier]}")
    return "\n".join(lines)


# ── Forecast block ────────────────────────────────────────────────────────────


def format_forecast(series: TimeSeries, forecasts: Sequence[Forecast]) -> str:
    """Next-period forecasts for one series, one row per horizon step."""
    last = series.observations[-1]
    unit = f" {series.unit}" if series.unit else ""
    lines: list[str] = [
        "",
        f"=== Forecast: {series.label} ===",
        f"  Last observed: {last.period} = {last.value:.2f}{unit}",
        f"  Trained on {len(series)} observations",
        "",
        f"  {'Period':<10}  {'Point':>10}  {'Lower':>10}  {'Upper':>10}  Level",
    ]
    for fc in forecasts:
        lines.append(
            f"  {next_period_label(last.period, fc.horizon_steps):<10}  "
            f"{fc.point_estimate:>10.2f}  {fc.lower_bound:>10.2f}  {fc.upper_bound:>10.2f}  "
            f"{fc.confidence_level:.0%}"
        )
    return "\n".join(lines)
