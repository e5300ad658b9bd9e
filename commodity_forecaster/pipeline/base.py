"""
Abstract base class for all pipeline stages.

Every stage follows the same contract:
  1. Receive ``AppConfig`` at construction.
  2. ``run(**kwargs)`` is the sole public API.
  3. ``run()`` creates a ``RunMetadata`` record, calls ``_execute()``,
     and persists the run record with final status.
  4. ``_execute()`` is the stage-specific implementation (overridden by subclasses).

Run records are written as JSON to ``<output_dir>/runs/<run_slug>.json``,
one file per run, overwritten on every status transition.

Usage::

    class MyStage(PipelineStage):
        stage_name = "backtest"

        def _execute(self, run: RunMetadata, **kwargs) -> int:
            # Do work, return test-case count
            return 42

    stage = MyStage(config=app_config)
    result = stage.run(series_names=["wheat"])
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from uuid import uuid4

from commodity_forecaster.config import AppConfig
from commodity_forecaster.models.meta import RunMetadata
from commodity_forecaster.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """Abstract base for all pipeline stages.

    Subclasses must:
      1. Set ``stage_name`` class variable.
      2. Implement ``_execute(run, **kwargs) -> int``.

    Attributes:
        stage_name: String identifier matching a valid ``RunMetadata.pipeline_stage``.
        config: The application configuration for this run.
        output_dir: Root directory for run records and reports
            (defaults to ``config.data.output_dir``).
    """

    stage_name: str  # Override in subclass

    def __init__(
        self,
        config: AppConfig,
        output_dir: str | Path | None = None,
    ) -> None:
        self.config = config
        self.output_dir = Path(output_dir or config.data.output_dir)

    def run(self, **kwargs) -> RunMetadata:
        """Execute this pipeline stage.

        Args:
            **kwargs: Stage-specific keyword arguments passed to ``_execute()``.

        Returns:
            ``RunMetadata`` with final ``status``, ``rows_processed``,
            and ``finished_at`` set.

        Raises:
            Exception: Re-raises any exception from ``_execute()`` after
                recording ``status='failed'`` in the run record.
        """
        run = RunMetadata(
            run_slug=str(uuid4()),
            pipeline_stage=self.stage_name,
            series_names=list(kwargs.get("series_names") or []),
            config_snapshot=self.config.model_dump(),
            started_at=utcnow(),
        )
        logger.info(
            "Stage [%s] starting | run_slug=%s", self.stage_name, run.run_slug
        )

        try:
            rows = self._execute(run=run, **kwargs)
            run.status = "success"
            run.rows_processed = rows
            run.finished_at = utcnow()
            logger.info(
                "Stage [%s] completed | rows=%d | run_slug=%s",
                self.stage_name, rows, run.run_slug,
            )

        except Exception as exc:
            run.status = "failed"
            run.error_message = str(exc)
            run.finished_at = utcnow()
            logger.error(
                "Stage [%s] FAILED: %s | run_slug=%s",
                self.stage_name, exc, run.run_slug,
            )
            self._persist_run(run)
            raise

        self._persist_run(run)
        return run

    @abstractmethod
    def _execute(self, run: RunMetadata, **kwargs) -> int:
        """Stage-specific implementation.

        Args:
            run: The in-progress ``RunMetadata`` record (mutable).
            **kwargs: Stage-specific parameters.

        Returns:
            Integer count of records processed.
        """
        ...

    def run_record_path(self, run: RunMetadata) -> Path:
        return self.output_dir / "runs" / f"{run.run_slug}.json"

    def _persist_run(self, run: RunMetadata) -> None:
        """Write the ``RunMetadata`` record as JSON.

        Logs rather than raises on I/O failure so that a persistence
        problem never masks the original pipeline error.
        """
        path = self.run_record_path(run)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(run.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            logger.error(
                "Failed to persist RunMetadata for run_slug=%s: %s",
                run.run_slug, exc,
            )
