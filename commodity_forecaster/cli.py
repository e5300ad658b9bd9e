"""
Commodity Forecaster — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (backtest, forecast, ...).
  5. Report result to stdout.

Install and run::

    pip install -e .
    commodity-forecaster --help
    commodity-forecaster validate-config
    commodity-forecaster list-series
    commodity-forecaster backtest
    commodity-forecaster backtest --series wheat --series cocoa --detail
    commodity-forecaster forecast --series coffee --horizon 3
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="commodity-forecaster",
    help="Linear-trend commodity price forecaster with expanding-window backtests.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from commodity_forecaster.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from commodity_forecaster.utils.logging import configure_logging
    configure_logging(config.logging, debug=config.debug)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Series dir:       {config.data.series_dir}")
    typer.echo(f"  Output dir:       {config.data.output_dir}")
    typer.echo(f"  Min train size:   {config.backtest.min_train_size}")
    typer.echo(f"  Horizon steps:    {config.backtest.horizon_steps}")
    typer.echo(f"  Confidence level: {config.backtest.confidence_level:.0%}")
    typer.echo(f"  Critical value:   {config.backtest.critical_value}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("list-series")
def list_series(
    series_dir: Optional[str] = typer.Option(
        None,
        "--series-dir",
        help="Directory of series CSV files. Uses config default if omitted.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """List the series available for backtesting."""
    from commodity_forecaster.ingestion.registry import FileSeriesRepository

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    repo = FileSeriesRepository(Path(series_dir or config.data.series_dir))
    names = repo.available()
    if not names:
        typer.echo(f"[ERROR] No series CSV files found in {repo.series_dir}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  {'Series':<12}  {'Obs':>5}  {'First':<8}  {'Last':<8}  Unit")
    for name in names:
        try:
            series = repo.load(name)
        except (FileNotFoundError, ValueError) as exc:
            typer.echo(f"  {name:<12}  [invalid] {str(exc).splitlines()[0]}")
            continue
        first = series.periods[0] if len(series) else "-"
        last = series.periods[-1] if len(series) else "-"
        typer.echo(f"  {name:<12}  {len(series):>5}  {first:<8}  {last:<8}  {series.unit}")

    typer.echo("")
    typer.echo(f"[OK] {len(names)} series in {repo.series_dir}")


@app.command("backtest")
def backtest(
    series: Optional[list[str]] = typer.Option(
        None,
        "--series",
        help="Series to backtest (repeatable). Default: every series in the series dir.",
    ),
    series_dir: Optional[str] = typer.Option(
        None,
        "--series-dir",
        help="Directory of series CSV files. Uses config default if omitted.",
    ),
    output_dir: Optional[str] = typer.Option(
        None,
        "--output-dir",
        help="Root directory for reports and run records. Uses config default if omitted.",
    ),
    min_train_size: Optional[int] = typer.Option(
        None,
        "--min-train-size",
        help="Observations in the first training window (>= 2).",
    ),
    horizon: Optional[int] = typer.Option(
        None,
        "--horizon",
        help="Steps ahead to forecast in each test (>= 1).",
    ),
    critical_value: Optional[str] = typer.Option(
        None,
        "--critical-value",
        help="Interval critical value: 'z' (fixed 1.96) or 't' (Student-t).",
    ),
    detail: bool = typer.Option(
        False,
        "--detail",
        help="Also print per-series detail with the most recent test cases.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Run the expanding-window OLS backtest and write reports.

    Writes summary.csv, yearly.csv, test_cases.csv and manifest.json under
    <output-dir>/backtest/<date>_<run>/, plus one JSON summary per series.
    """
    from commodity_forecaster.backtest.ols import CRITICAL_VALUE_FUNCTIONS
    from commodity_forecaster.ingestion.registry import FileSeriesRepository
    from commodity_forecaster.pipeline.backtest import BacktestStage
    from commodity_forecaster.reporting.formatters import (
        format_series_detail,
        format_summary_table,
        format_tier_groups,
        format_yearly_table,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if min_train_size is not None and min_train_size < 2:
        typer.echo("[ERROR] --min-train-size must be >= 2.", err=True)
        raise typer.Exit(code=1)
    if horizon is not None and horizon < 1:
        typer.echo("[ERROR] --horizon must be >= 1.", err=True)
        raise typer.Exit(code=1)
    if critical_value is not None and critical_value not in CRITICAL_VALUE_FUNCTIONS:
        typer.echo(
            f"[ERROR] --critical-value must be one of {sorted(CRITICAL_VALUE_FUNCTIONS)}.",
            err=True,
        )
        raise typer.Exit(code=1)

    stage = BacktestStage(config=config, output_dir=output_dir)
    repo = FileSeriesRepository(
        Path(series_dir or config.data.series_dir), output_dir=stage.output_dir
    )

    try:
        run = stage.run(
            series_names=series or None,
            repository=repo,
            min_train_size=min_train_size,
            horizon_steps=horizon,
            critical_value=critical_value,
        )
    except Exception as exc:
        typer.echo(f"[ERROR] Backtest failed: {exc}", err=True)
        raise typer.Exit(code=1)

    result = stage.result
    typer.echo(format_summary_table(result.summaries, result.failures))
    typer.echo(format_yearly_table(result.summaries))
    typer.echo(format_tier_groups(result.summaries))

    if detail:
        for summary in result.summaries:
            typer.echo(format_series_detail(
                summary,
                result.test_cases[summary.series_name],
                recent=config.report.recent_cases,
            ))

    typer.echo("")
    typer.echo(f"  Reports: {run.output_dir}")
    if not result.summaries:
        typer.echo("[ERROR] No series completed the backtest.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"[OK] Backtest complete | tests={run.rows_processed} | run={run.run_slug}")


@app.command("forecast")
def forecast(
    series: str = typer.Option(
        ...,
        "--series",
        help="Series to forecast (e.g. wheat).",
    ),
    horizon: int = typer.Option(
        1,
        "--horizon",
        help="Number of periods ahead to forecast (>= 1).",
    ),
    series_dir: Optional[str] = typer.Option(
        None,
        "--series-dir",
        help="Directory of series CSV files. Uses config default if omitted.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Fit the full series and forecast the next periods with intervals."""
    from commodity_forecaster.backtest.errors import ForecastError
    from commodity_forecaster.backtest.ols import OLSForecaster, resolve_critical_value
    from commodity_forecaster.ingestion.registry import FileSeriesRepository
    from commodity_forecaster.reporting.formatters import format_forecast

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if horizon < 1:
        typer.echo("[ERROR] --horizon must be >= 1.", err=True)
        raise typer.Exit(code=1)

    repo = FileSeriesRepository(Path(series_dir or config.data.series_dir))
    try:
        ts = repo.load(series)
        model = OLSForecaster(
            confidence_level=config.backtest.confidence_level,
            critical_value=resolve_critical_value(config.backtest.critical_value),
        )
        fit_result = model.fit(ts.observations)
        forecasts = [model.predict(fit_result, horizon_steps=h) for h in range(1, horizon + 1)]
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except (ForecastError, ValueError) as exc:
        typer.echo(f"[ERROR] Cannot forecast '{series}': {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(format_forecast(ts, forecasts))
    typer.echo("")
    typer.echo(
        f"  slope={fit_result.slope:+.4f}/period  R²={fit_result.r_squared:.3f}  "
        f"se={fit_result.standard_error:.4f}"
    )
    typer.echo("[OK] Forecast complete.")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
