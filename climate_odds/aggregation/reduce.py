"""Reduce per-year daily records into hour-of-day and time-of-day means."""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from ..core.derived import SECONDS_PER_HOUR, period_mean, precipitation_total
from ..core.models import HOURS_PER_DAY, AggregateSummary, DailyRecord, Sample, YearlyScalar

DAILY_VARIABLES: Sequence[str] = ("temperature", "wind_speed", "precipitation")

# Hours are UTC, [start, end).
DEFAULT_BANDS: Mapping[str, Tuple[int, int]] = {
    "night": (0, 8),
    "morning": (8, 16),
    "afternoon": (16, 24),
}

WHOLE_DAY: Tuple[int, int] = (0, HOURS_PER_DAY)


def resolve_bands(raw: Optional[Mapping[str, Sequence[int]]]) -> Dict[str, Tuple[int, int]]:
    """Validate a ``{name: [start_hour, end_hour]}`` mapping, falling back to the defaults."""
    if not raw:
        return dict(DEFAULT_BANDS)
    bands: Dict[str, Tuple[int, int]] = {}
    for name, bounds in raw.items():
        try:
            start, end = (int(hour) for hour in bounds)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Band {name!r} must be a [start, end] pair of hours.") from exc
        if not 0 <= start < end <= HOURS_PER_DAY:
            raise ValueError(f"Band {name!r} must satisfy 0 <= start < end <= 24, got {start}-{end}.")
        bands[str(name)] = (start, end)
    return bands


def _to_sample(value: float) -> Sample:
    if value is None or math.isnan(value):
        return None
    return float(value)


def _frame(records: Sequence[DailyRecord], variable: str) -> pd.DataFrame:
    rows = [list(record.series(variable)) for record in records]
    return pd.DataFrame(
        rows,
        index=[record.year for record in records],
        columns=range(HOURS_PER_DAY),
        dtype=float,
    )


def _rate_frame(records: Sequence[DailyRecord]) -> pd.DataFrame:
    rows = []
    for record in records:
        if record.precipitation_rate:
            rows.append(list(record.precipitation_rate))
        else:
            rows.append([None if mm is None else mm / SECONDS_PER_HOUR for mm in record.precipitation])
    return pd.DataFrame(rows, index=[record.year for record in records], columns=range(HOURS_PER_DAY), dtype=float)


def _per_year_band(frame: pd.DataFrame, band: Tuple[int, int], *, is_rate: bool) -> pd.Series:
    start, end = band
    window = frame.loc[:, start : end - 1]
    if is_rate:
        seconds = (end - start) * SECONDS_PER_HOUR
        values = [precipitation_total(row, seconds) for row in window.itertuples(index=False)]
    else:
        values = [period_mean(row) for row in window.itertuples(index=False)]
    return pd.Series(values, index=frame.index, dtype=float)


def _cross_year_mean(series: pd.Series) -> Sample:
    return _to_sample(series.mean(skipna=True)) if series.notna().any() else None


def summarise(
    records: Iterable[DailyRecord],
    snow_depth: Optional[YearlyScalar] = None,
    *,
    bands: Optional[Mapping[str, Tuple[int, int]]] = None,
    failed_years: Optional[Mapping[int, str]] = None,
) -> AggregateSummary:
    """
    Build the multi-year summary.

    Every hour, band and overall value is the mean over the years that have a
    valid sample there; with no valid sample the value is ``None``. Records are
    ordered by date first, so the result does not depend on fetch order.
    """
    ordered = sorted(records, key=lambda record: record.date)
    band_map = dict(bands) if bands is not None else dict(DEFAULT_BANDS)

    hourly: Dict[str, Tuple[Sample, ...]] = {}
    band_values: Dict[str, Dict[str, Sample]] = {}
    overall: Dict[str, Sample] = {}

    for variable in DAILY_VARIABLES:
        frame = _frame(ordered, variable)
        hourly[variable] = tuple(
            _cross_year_mean(frame[hour]) for hour in range(HOURS_PER_DAY)
        )

        is_rate = variable == "precipitation"
        source = _rate_frame(ordered) if is_rate else frame
        band_values[variable] = {
            name: _cross_year_mean(_per_year_band(source, band, is_rate=is_rate))
            for name, band in band_map.items()
        }
        overall[variable] = _cross_year_mean(_per_year_band(source, WHOLE_DAY, is_rate=is_rate))

    snow_mean = scalar_mean(snow_depth or {})

    return AggregateSummary(
        hourly=hourly,
        bands=band_values,
        overall=overall,
        snow_depth=snow_mean,
        years=tuple(record.year for record in ordered),
        failed_years=dict(sorted((failed_years or {}).items())),
    )


def scalar_mean(values: YearlyScalar) -> Sample:
    return period_mean(values[year] for year in sorted(values))


def hour_samples(records: Iterable[DailyRecord], variable: str, hour: int) -> Dict[int, float]:
    """The valid ``variable`` readings at ``hour``, one per year, in year order."""
    if not 0 <= hour < HOURS_PER_DAY:
        raise ValueError(f"Hour {hour} is outside 0-23.")
    samples: Dict[int, float] = {}
    for record in sorted(records, key=lambda record: record.date):
        value = record.series(variable)[hour]
        if value is not None:
            samples[record.year] = value
    return samples


def frequency_distribution(values: Iterable[float], bin_width: float = 0.5) -> List[Tuple[float, int]]:
    """
    Count values per ``bin_width`` bucket, sorted by bucket.

    A value falls in the bucket ``int(value / bin_width) * bin_width`` (the
    quotient truncated toward zero).
    """
    if bin_width <= 0:
        raise ValueError("bin_width must be positive.")
    series = pd.Series(list(values), dtype=float).dropna()
    if series.empty:
        return []
    buckets = (series / bin_width).astype(int) * bin_width
    counts = buckets.round(10).value_counts().sort_index()
    return [(float(bucket), int(count)) for bucket, count in counts.items()]
