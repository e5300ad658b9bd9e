"""
Time and period-label utilities.

Period labels are opaque to the forecasting core.  The one place a calendar
meaning is read out of them is the yearly breakdown, which needs the
four-digit year embedded in labels such as ``"2024-03"`` or ``"2024Q1"``.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

_YEAR_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")


def period_year(period: str) -> Optional[str]:
    """Return the first standalone four-digit year in ``period``, or ``None``.

    Examples::

        period_year("2024-03")   -> "2024"
        period_year("Q1 2021")   -> "2021"
        period_year("month-7")   -> None
    """
    match = _YEAR_RE.search(period)
    return match.group(1) if match else None


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def next_period_label(period: str, steps: int = 1) -> str:
    """Label for the period ``steps`` after ``period``.

    ``YYYY-MM`` labels advance by calendar month; any other label gets a
    ``+steps`` suffix, since its spacing is unknown.

    Examples::

        next_period_label("2025-12")     -> "2026-01"
        next_period_label("2025-11", 3)  -> "2026-02"
        next_period_label("week-9", 2)   -> "week-9+2"
    """
    match = _MONTH_RE.match(period)
    if not match:
        return f"{period}+{steps}"
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return f"{period}+{steps}"
    index = year * 12 + (month - 1) + steps
    return f"{index // 12:04d}-{index % 12 + 1:02d}"
