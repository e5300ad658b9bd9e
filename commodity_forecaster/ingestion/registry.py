"""
Series registry and repository.

``SeriesRegistry`` is the typed, in-memory collection of series handed to a
backtest run.  It is populated by an adapter (``FileSeriesRepository`` here)
and never reaches back into storage.  ``load_registry`` fills one from any
repository, recording series that fail to load instead of stopping.

``SeriesRepository`` is the storage seam::

    load(series_name) -> TimeSeries
    save(summary)     -> None

The forecasting core never calls a repository; only pipeline stages and the
CLI do.  ``FileSeriesRepository`` reads ``<series_dir>/<name>.csv`` and
writes ``<output_dir>/summaries/<name>.json``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterator, Optional, Protocol

from commodity_forecaster.backtest.metrics import SeriesAccuracySummary
from commodity_forecaster.ingestion.series_csv import parse_series_csv
from commodity_forecaster.models.series import TimeSeries

logger = logging.getLogger(__name__)


class SeriesRepository(Protocol):
    """Load series and persist their accuracy summaries."""

    def load(self, series_name: str) -> TimeSeries: ...

    def save(self, summary: SeriesAccuracySummary) -> None: ...


class SeriesRegistry:
    """Name → ``TimeSeries`` mapping, iterated in registration order."""

    def __init__(self, series: Optional[list[TimeSeries]] = None) -> None:
        self._series: dict[str, TimeSeries] = {}
        for s in series or []:
            self.register(s)

    def register(self, series: TimeSeries) -> None:
        """Add ``series``.

        Raises:
            ValueError: If a series with the same name is already registered.
        """
        if series.name in self._series:
            raise ValueError(f"Series '{series.name}' is already registered.")
        self._series[series.name] = series

    def get(self, name: str) -> TimeSeries:
        """Return the series called ``name``.

        Raises:
            KeyError: If no such series is registered.
        """
        try:
            return self._series[name]
        except KeyError:
            raise KeyError(
                f"Unknown series '{name}'. Registered: {', '.join(self.names()) or '(none)'}"
            ) from None

    def names(self) -> list[str]:
        return list(self._series)

    def __contains__(self, name: object) -> bool:
        return name in self._series

    def __iter__(self) -> Iterator[TimeSeries]:
        return iter(self._series.values())

    def __len__(self) -> int:
        return len(self._series)


class FileSeriesRepository:
    """CSV-in, JSON-out repository rooted at two directories."""

    def __init__(self, series_dir: Path, output_dir: Optional[Path] = None) -> None:
        self.series_dir = Path(series_dir)
        self.output_dir = Path(output_dir) if output_dir is not None else None

    def available(self) -> list[str]:
        """Names of all series CSV files in ``series_dir``, sorted."""
        if not self.series_dir.is_dir():
            return []
        return sorted(p.stem for p in self.series_dir.glob("*.csv"))

    def load(self, series_name: str) -> TimeSeries:
        return parse_series_csv(self.series_dir / f"{series_name}.csv", name=series_name)

    def save(self, summary: SeriesAccuracySummary) -> None:
        """Write ``summary`` as JSON under ``<output_dir>/summaries/``.

        Raises:
            ValueError: If the repository was created without an output_dir.
        """
        from commodity_forecaster.backtest.reporter import summary_to_dict

        if self.output_dir is None:
            raise ValueError("FileSeriesRepository has no output_dir; cannot save summaries.")
        path = self.output_dir / "summaries" / f"{summary.series_name}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(summary_to_dict(summary), indent=2, default=str), encoding="utf-8")
        logger.debug("Summary written: %s", path)


def load_registry(
    repository: SeriesRepository,
    names: list[str],
    failures: Optional[dict[str, str]] = None,
) -> SeriesRegistry:
    """Load ``names`` through ``repository`` into a new registry.

    A series that is missing, fails validation, or repeats an already
    loaded name is skipped and its error recorded in ``failures`` (when
    given); the remaining series still load.
    """
    registry = SeriesRegistry()
    for name in names:
        try:
            registry.register(repository.load(name))
        except (FileNotFoundError, KeyError, ValueError) as exc:
            logger.error("Could not load series '%s': %s", name, exc)
            if failures is not None:
                failures[name] = str(exc)
    logger.info("Loaded %d of %d series", len(registry), len(names))
    return registry
