from __future__ import annotations

import calendar
import datetime as dt
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

HOURS_PER_DAY = 24

Sample = Optional[float]
VariableSeries = Dict[str, List[Sample]]
YearlyScalar = Dict[int, float]

_MONTH_DAY_RE = re.compile(r"^(?:(\d{4})-)?(\d{1,2})[/-](\d{1,2})$")


@dataclass(frozen=True)
class GeoPoint:
    """A location in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude {self.latitude} is outside [-90, 90].")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude {self.longitude} is outside [-180, 180].")


@dataclass(frozen=True)
class CalendarDay:
    """
    A month/day pair, optionally pinned to a year.

    February 29 is accepted without a year; :meth:`on_year` raises for years
    where the day does not exist.
    """

    month: int
    day: int
    year: Optional[int] = None

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month {self.month} is outside 1-12.")
        # 2000 is a leap year, so Feb 29 is valid as a bare month/day.
        reference_year = self.year if self.year is not None else 2000
        last_day = calendar.monthrange(reference_year, self.month)[1]
        if not 1 <= self.day <= last_day:
            raise ValueError(f"Day {self.day} is not valid for month {self.month}.")

    @classmethod
    def parse(cls, value: str) -> "CalendarDay":
        """Parse ``MM/DD``, ``MM-DD`` or ``YYYY-MM-DD``."""
        match = _MONTH_DAY_RE.match(value.strip())
        if not match:
            raise ValueError(f"Cannot parse calendar day from {value!r}; expected MM/DD.")
        year, month, day = match.groups()
        return cls(int(month), int(day), int(year) if year else None)

    @property
    def suffix(self) -> str:
        """The ``MMDD`` tail of a provider date key."""
        return f"{self.month:02d}{self.day:02d}"

    def on_year(self, year: int) -> dt.date:
        return dt.date(year, self.month, self.day)


@dataclass(frozen=True)
class DailyRecord:
    """One cleaned and derived day of hourly data (hours 0-23, UTC)."""

    date: dt.date
    temperature: Tuple[Sample, ...]
    wind_speed: Tuple[Sample, ...]
    precipitation: Tuple[Sample, ...]
    precipitation_rate: Tuple[Sample, ...] = ()

    def __post_init__(self) -> None:
        for name in ("temperature", "wind_speed", "precipitation", "precipitation_rate"):
            values = getattr(self, name)
            if name == "precipitation_rate" and not values:
                continue
            if len(values) != HOURS_PER_DAY:
                raise ValueError(f"{name} for {self.date} has {len(values)} samples, expected {HOURS_PER_DAY}.")

    @property
    def year(self) -> int:
        return self.date.year

    def series(self, variable: str) -> Tuple[Sample, ...]:
        try:
            return getattr(self, variable)
        except AttributeError:
            raise KeyError(f"Unknown daily variable: {variable}") from None


@dataclass(frozen=True)
class AggregateSummary:
    """Multi-year view over a set of daily records. ``None`` means no data."""

    hourly: Mapping[str, Tuple[Sample, ...]]
    bands: Mapping[str, Mapping[str, Sample]]
    overall: Mapping[str, Sample]
    snow_depth: Sample = None
    years: Tuple[int, ...] = ()
    failed_years: Mapping[int, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ScalarSummary:
    """Per-variable yearly values for one calendar day, with their means."""

    values: Mapping[str, YearlyScalar]
    means: Mapping[str, Sample]
