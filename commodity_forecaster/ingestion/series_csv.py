"""
CSV parser for monthly commodity price series.

Format — comma delimited, with a header row, optionally preceded by
``# key: value`` metadata lines::

    # display_name: Wheat
    # unit: $/MT
    period,value,source
    2020-01,178.24,FRED PWHEAMTUSDM
    2020-02,172.23,FRED PWHEAMTUSDM

Required columns:
  period, value

Optional columns (empty string → None):
  source

Recognised metadata keys:
  display_name, unit

Validation:
  - every row is checked before anything is returned
  - a NaN / infinite value raises ``NonFiniteInputError`` immediately;
    non-finite prices are never allowed past this boundary
  - any other bad row (missing period, unparseable number) is collected and
    reported in a single ``ValueError`` listing the first 10 failures
  - period ordering is checked by the ``TimeSeries`` model
"""

from __future__ import annotations

import csv
import io
import logging
import math
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from commodity_forecaster.backtest.errors import NonFiniteInputError
from commodity_forecaster.models.series import Observation, TimeSeries

logger = logging.getLogger(__name__)

REQUIRED_CSV_COLUMNS = frozenset({"period", "value"})
METADATA_KEYS = frozenset({"display_name", "unit"})


def parse_series_csv(
    path: Path,
    name: Optional[str] = None,
    unit: Optional[str] = None,
) -> TimeSeries:
    """Parse a series CSV file into a validated :class:`TimeSeries`.

    Args:
        path: Path to the CSV file (must exist).
        name: Series name; defaults to the file stem.
        unit: Unit label; overrides a ``# unit:`` metadata line.

    Returns:
        Validated :class:`TimeSeries`.

    Raises:
        FileNotFoundError:   If ``path`` does not exist.
        NonFiniteInputError: If any value is NaN or infinite.
        ValueError:          If required columns are missing, any row fails
                             validation, or periods repeat or go backwards.
    """
    if not path.exists():
        raise FileNotFoundError(f"Series CSV file not found: {path}")

    text = path.read_text(encoding="utf-8-sig")
    metadata, body = _split_metadata(text)

    reader = csv.DictReader(io.StringIO(body))
    if reader.fieldnames is None:
        raise ValueError(f"CSV file is empty or has no header row: {path}")

    actual_cols = {c.strip() for c in reader.fieldnames}
    missing = REQUIRED_CSV_COLUMNS - actual_cols
    if missing:
        raise ValueError(
            f"CSV missing required columns: {sorted(missing)}\n"
            f"Found columns: {sorted(actual_cols)}"
        )

    rows = [{k.strip(): (v or "") for k, v in row.items() if k} for row in reader]
    series_name = name or path.stem

    if not rows:
        logger.warning("Series CSV is empty (header only): %s", path)

    observations: list[Observation] = []
    errors: list[tuple[int, str]] = []

    for i, row in enumerate(rows):
        line_no = i + 2  # 1-based, skip header row
        try:
            observations.append(_row_to_observation(row))
        except NonFiniteInputError:
            raise
        except (ValueError, ValidationError) as exc:
            errors.append((line_no, str(exc)))

    if errors:
        max_shown = 10
        detail = "\n".join(f"  Row {ln}: {msg}" for ln, msg in errors[:max_shown])
        suffix = f"\n  … and {len(errors) - max_shown} more" if len(errors) > max_shown else ""
        raise ValueError(
            f"{len(errors)} row(s) failed validation in {path.name}:\n{detail}{suffix}"
        )

    try:
        series = TimeSeries(
            name=series_name,
            unit=unit or metadata.get("unit", ""),
            display_name=metadata.get("display_name"),
            observations=tuple(observations),
        )
    except ValidationError as exc:
        raise ValueError(f"Invalid series in {path.name}: {exc}") from exc

    logger.info("Parsed %d observations for '%s' from %s", len(series), series.name, path.name)
    return series


# ── Private helpers ────────────────────────────────────────────────────────────

def _split_metadata(text: str) -> tuple[dict[str, str], str]:
    """Strip leading ``# key: value`` lines; return (metadata, remaining CSV)."""
    metadata: dict[str, str] = {}
    lines = text.splitlines(keepends=True)
    start = 0
    for line in lines:
        stripped = line.strip()
        if not stripped.startswith("#"):
            break
        start += 1
        key, sep, value = stripped.lstrip("#").partition(":")
        key = key.strip().lower()
        if sep and key in METADATA_KEYS:
            metadata[key] = value.strip()
    return metadata, "".join(lines[start:])


def _row_to_observation(row: dict[str, str]) -> Observation:
    """Convert a CSV row dict to a validated :class:`Observation`.

    Raises:
        NonFiniteInputError: If the value parses to NaN or infinity.
        ValueError: On a missing period or an unparseable value.
    """
    period = row.get("period", "").strip()
    if not period:
        raise ValueError("Required field 'period' is empty.")

    raw_value = row.get("value", "").strip()
    if not raw_value:
        raise ValueError(f"Required field 'value' is empty for period '{period}'.")
    try:
        value = float(raw_value.replace(",", ""))
    except ValueError:
        raise ValueError(f"Cannot parse value '{raw_value}' for period '{period}'.") from None

    if not math.isfinite(value):
        raise NonFiniteInputError(period, value)

    source = row.get("source", "").strip() or None
    return Observation(period=period, value=value, source=source)
