"""
BacktestStage — expanding-window evaluation pipeline stage.

This stage:
1. Loads the requested series into a ``SeriesRegistry`` through a
   ``SeriesRepository`` (default: the CSV files under
   ``config.data.series_dir``).
2. Runs the OLS backtest over each series via ``run_batch``; a failing
   series is recorded and the rest continue.
3. Saves each per-series summary back through the repository.
4. Writes summary / yearly / test-case CSVs and a JSON manifest under
   ``<output_dir>/backtest/<date>_<run_slug[:8]>/``.

The finished ``BatchResult`` is kept on ``stage.result`` for callers that
want to render it (the CLI does).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from commodity_forecaster.backtest.evaluator import BatchResult
from commodity_forecaster.ingestion.registry import (
    FileSeriesRepository,
    SeriesRepository,
    load_registry,
)
from commodity_forecaster.models.meta import RunMetadata
from commodity_forecaster.pipeline.base import PipelineStage

log = logging.getLogger(__name__)


class BacktestStage(PipelineStage):
    """Backtest pipeline stage over one or more series."""

    stage_name = "backtest"

    result: Optional[BatchResult] = None
    report_dir: Optional[Path] = None

    def _execute(
        self,
        run: RunMetadata,
        series_names: list[str] | None = None,
        repository: SeriesRepository | None = None,
        min_train_size: int | None = None,
        horizon_steps: int | None = None,
        critical_value: str | None = None,
    ) -> int:
        """Backtest the requested series.

        Args:
            run:            RunMetadata being tracked.
            series_names:   Series to evaluate.  Defaults to every CSV in
                            ``config.data.series_dir``.
            repository:     Where series come from and summaries go.
                            Defaults to a ``FileSeriesRepository``.
            min_train_size: Defaults to ``config.backtest.min_train_size``.
            horizon_steps:  Defaults to ``config.backtest.horizon_steps``.
            critical_value: ``"z"`` or ``"t"``.  Defaults to
                            ``config.backtest.critical_value``.

        Returns:
            Total number of test cases across all series.

        Raises:
            ValueError: If no series are available to backtest.
        """
        from commodity_forecaster.backtest.evaluator import run_batch
        from commodity_forecaster.backtest.ols import OLSForecaster, resolve_critical_value
        from commodity_forecaster.backtest.reporter import (
            build_backtest_manifest,
            make_output_dir,
            write_manifest,
            write_summary_csv,
            write_test_cases_csv,
            write_yearly_csv,
        )

        cfg_bt = self.config.backtest

        _min_train = min_train_size or cfg_bt.min_train_size
        _horizon   = horizon_steps or cfg_bt.horizon_steps
        _cv_name   = critical_value or cfg_bt.critical_value

        repo = repository or FileSeriesRepository(
            Path(self.config.data.series_dir), output_dir=self.output_dir
        )
        names = series_names or _available(repo)
        if not names:
            raise ValueError(f"No series to backtest in {self.config.data.series_dir}.")

        # ── Load: a series that fails to load counts as a batch failure ─────
        load_failures: dict[str, str] = {}
        registry = load_registry(repo, names, failures=load_failures)

        forecaster = OLSForecaster(
            confidence_level=cfg_bt.confidence_level,
            critical_value=resolve_critical_value(_cv_name),
        )
        result = run_batch(
            list(registry),
            min_train_size=_min_train,
            horizon_steps=_horizon,
            forecaster=forecaster,
        )
        result.failures = {**load_failures, **result.failures}

        for summary in result.summaries:
            repo.save(summary)

        # ── Write CSV + manifest output files ───────────────────────────────
        out_dir = make_output_dir(self.output_dir, run.run_slug)
        out_dir.mkdir(parents=True, exist_ok=True)

        write_summary_csv(result.summaries, out_dir / "summary.csv")
        write_yearly_csv(result.summaries, out_dir / "yearly.csv")
        write_test_cases_csv(result.test_cases, out_dir / "test_cases.csv")

        manifest = build_backtest_manifest(
            run_slug=run.run_slug,
            summaries=result.summaries,
            failures=result.failures,
            output_dir=out_dir,
            config_snapshot=run.config_snapshot,
        )
        write_manifest(manifest, out_dir / "manifest.json")

        run.output_dir = str(out_dir)
        self.result = result
        self.report_dir = out_dir

        log.info(
            "Backtest done | series=%d | failed=%d | tests=%d | out=%s",
            len(result.summaries), len(result.failures), result.total_tests, out_dir,
        )
        return result.total_tests


def _available(repo: SeriesRepository) -> list[str]:
    """Every series the repository can list, or nothing if it cannot list."""
    available = getattr(repo, "available", None)
    return available() if callable(available) else []
