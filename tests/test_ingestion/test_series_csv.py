"""
Tests for the series CSV parser.

What we test
------------
1. Happy path — metadata header lines, optional source column, name from
   the file stem, unit override.
2. Thousands separators in quoted values.
3. Missing file / missing columns / empty body.
4. Row errors collected into one ValueError.
5. Non-finite values raise NonFiniteInputError immediately.
6. Out-of-order periods surface as ValueError.
7. The shipped sample data parses (72 months each).
"""

from __future__ import annotations

from pathlib import Path

import pytest

from commodity_forecaster.backtest.errors import NonFiniteInputError
from commodity_forecaster.ingestion.series_csv import parse_series_csv

SAMPLE_DIR = Path(__file__).resolve().parents[2] / "data" / "series"


def _write(tmp_path: Path, text: str, name: str = "sample.csv") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


# ── Happy path ─────────────────────────────────────────────────────────────────

def test_parse_with_metadata(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "# display_name: Arabica coffee\n"
        "# unit: $/kg\n"
        "period,value,source\n"
        "2024-01,4.10,ICO\n"
        "2024-02,4.25,\n",
        name="coffee.csv",
    )
    ts = parse_series_csv(path)
    assert ts.name == "coffee"
    assert ts.display_name == "Arabica coffee"
    assert ts.unit == "$/kg"
    assert ts.values == [4.10, 4.25]
    assert ts.observations[0].source == "ICO"
    assert ts.observations[1].source is None


def test_parse_without_metadata_or_source(tmp_path: Path) -> None:
    path = _write(tmp_path, "period,value\n2024-01,1\n2024-02,2\n2024-03,3\n")
    ts = parse_series_csv(path, name="custom", unit="idx")
    assert ts.name == "custom"
    assert ts.unit == "idx"
    assert ts.display_name is None
    assert len(ts) == 3


def test_unknown_metadata_keys_are_ignored(tmp_path: Path) -> None:
    path = _write(tmp_path, "# note: revised\n# unit: $/MT\nperiod,value\n2024-01,1\n")
    assert parse_series_csv(path).unit == "$/MT"


def test_thousands_separator_in_quoted_value(tmp_path: Path) -> None:
    path = _write(tmp_path, 'period,value\n2024-01,"6,430"\n2024-02,"6,980"\n')
    assert parse_series_csv(path).values == [6430.0, 6980.0]


def test_utf8_bom_is_tolerated(tmp_path: Path) -> None:
    path = tmp_path / "bom.csv"
    path.write_bytes("\ufeffperiod,value\n2024-01,1\n".encode("utf-8"))
    assert len(parse_series_csv(path)) == 1


# ── Structural errors ──────────────────────────────────────────────────────────

def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        parse_series_csv(tmp_path / "nope.csv")


def test_missing_value_column_raises(tmp_path: Path) -> None:
    path = _write(tmp_path, "period,price\n2024-01,1\n")
    with pytest.raises(ValueError, match="missing required columns"):
        parse_series_csv(path)


def test_empty_file_raises(tmp_path: Path) -> None:
    path = _write(tmp_path, "")
    with pytest.raises(ValueError, match="empty"):
        parse_series_csv(path)


def test_header_only_gives_empty_series(tmp_path: Path) -> None:
    path = _write(tmp_path, "period,value\n")
    assert len(parse_series_csv(path)) == 0


# ── Row errors ─────────────────────────────────────────────────────────────────

def test_row_errors_are_collected(tmp_path: Path) -> None:
    path = _write(tmp_path, "period,value\n2024-01,abc\n,5\n2024-03,\n2024-04,7\n")
    with pytest.raises(ValueError) as exc_info:
        parse_series_csv(path)
    msg = str(exc_info.value)
    assert "3 row(s) failed validation" in msg
    assert "Row 2" in msg
    assert "Row 3" in msg
    assert "Row 4" in msg


def test_non_finite_value_raises_immediately(tmp_path: Path) -> None:
    path = _write(tmp_path, "period,value\n2024-01,1\n2024-02,nan\n2024-03,oops\n")
    with pytest.raises(NonFiniteInputError) as exc_info:
        parse_series_csv(path)
    assert exc_info.value.period == "2024-02"


def test_out_of_order_periods_raise_value_error(tmp_path: Path) -> None:
    path = _write(tmp_path, "period,value\n2024-02,1\n2024-01,2\n")
    with pytest.raises(ValueError, match="strictly increasing"):
        parse_series_csv(path)


def test_week_labels_keep_file_order(tmp_path: Path) -> None:
    path = _write(tmp_path, "period,value\nweek-9,1\nweek-10,2\nweek-11,3\n")
    ts = parse_series_csv(path)
    assert ts.periods == ["week-9", "week-10", "week-11"]


# ── Shipped sample data ────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "name",
    ["almonds", "butter", "cocoa", "coffee", "eggs", "milk", "sugar", "vanilla", "wheat"],
)
def test_sample_series_parse(name: str) -> None:
    ts = parse_series_csv(SAMPLE_DIR / f"{name}.csv")
    assert len(ts) == 72
    assert ts.periods[0] == "2020-01"
    assert ts.periods[-1] == "2025-12"
    assert ts.unit
