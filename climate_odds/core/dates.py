from __future__ import annotations

import datetime as dt
from typing import Iterable, Optional, Tuple

DEFAULT_HISTORY_YEARS = 40


def default_year_range(today: Optional[dt.date] = None, span: int = DEFAULT_HISTORY_YEARS) -> Tuple[int, int]:
    """Return ``(start, end)`` years: ``span`` complete years ending with last year."""
    if span <= 0:
        raise ValueError("History span must be at least one year.")
    today = today or dt.date.today()
    end_year = today.year - 1
    return end_year - span + 1, end_year


def validate_year_range(year_range: Tuple[int, int]) -> Tuple[int, int]:
    start, end = (int(year) for year in year_range)
    if end < start:
        raise ValueError(f"Year range end {end} is before start {start}.")
    return start, end


def iter_years(start: int, end: int) -> Iterable[int]:
    """Yield every year between start and end (inclusive)."""
    yield from range(start, end + 1)


def iter_year_windows(start: int, end: int, window_years: int) -> Iterable[Tuple[int, int]]:
    """Yield (start, end) year pairs walking forward in ``window_years`` increments."""
    if window_years <= 0:
        window_years = 1
    current = start
    while current <= end:
        window_end = min(end, current + window_years - 1)
        yield current, window_end
        current = window_end + 1


def year_span(start: int, end: int) -> int:
    """Return the number of years covered by the inclusive span."""
    return end - start + 1
