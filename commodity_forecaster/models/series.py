"""
Time series input models.

``Observation`` is one (period, value) pair.  ``period`` is an opaque label
(normally a ``YYYY-MM`` month, but ``week-9`` or ``Q1 2022`` work too).  Its
order is its position in the series; the forecasting core never parses it
except to extract the calendar year for the yearly breakdown.

``TimeSeries`` is supplied whole by the ingestion layer and is read-only to
the forecasting core.  Both models are frozen.

Validation happens here, at the ingestion boundary:
  - values must be finite (NaN / ±inf rejected)
  - periods must be non-empty and unique
  - two adjacent ``YYYY-MM`` periods must also be strictly increasing
"""

from __future__ import annotations

import math
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


class Observation(BaseModel):
    """A single observed value for one period.

    Attributes:
        period: Opaque, orderable period label, e.g. ``"2024-03"``.
        value: Observed price or index value. Must be finite.
        source: Free-text provenance note (data vendor, series code).
    """

    model_config = ConfigDict(frozen=True)

    period: str
    value: float
    source: Optional[str] = None

    @field_validator("period")
    @classmethod
    def validate_period_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("period must not be empty.")
        return v.strip()

    @field_validator("value")
    @classmethod
    def validate_value_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError(f"value must be finite, got {v!r}.")
        return v


class TimeSeries(BaseModel):
    """An ordered, named series of observations.

    Attributes:
        name: Registry key, e.g. ``"wheat"``.
        unit: Unit of every value, e.g. ``"$/MT"``.
        display_name: Human-readable label; defaults to ``name``.
        observations: Observations in period order (ingestion order).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    unit: str = ""
    display_name: Optional[str] = None
    observations: tuple[Observation, ...] = ()

    @field_validator("name")
    @classmethod
    def validate_name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("series name must not be empty.")
        return v.strip()

    @model_validator(mode="after")
    def validate_period_order(self) -> "TimeSeries":
        seen: set[str] = set()
        for o in self.observations:
            if o.period in seen:
                raise ValueError(
                    f"Duplicate period '{o.period}' in series '{self.name}'."
                )
            seen.add(o.period)
        for prev, cur in zip(self.observations, self.observations[1:]):
            both_months = _MONTH_RE.match(prev.period) and _MONTH_RE.match(cur.period)
            if both_months and cur.period < prev.period:
                raise ValueError(
                    f"Periods must be strictly increasing: '{prev.period}' "
                    f"is followed by '{cur.period}' in series '{self.name}'."
                )
        return self

    def __len__(self) -> int:
        return len(self.observations)

    @property
    def label(self) -> str:
        """Display name, falling back to the registry name."""
        return self.display_name or self.name

    @property
    def values(self) -> list[float]:
        return [o.value for o in self.observations]

    @property
    def periods(self) -> list[str]:
        return [o.period for o in self.observations]
