"""Derived quantities: wind speed, unit conversions and period totals.

Sample sequences use ``None`` for missing values; the arithmetic runs on numpy
arrays with NaN standing in for ``None``.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import numpy as np

from .models import Sample

KELVIN_OFFSET = 273.15
SECONDS_PER_HOUR = 3600


def to_array(values: Iterable[Sample]) -> np.ndarray:
    return np.array([np.nan if value is None else value for value in values], dtype=float)


def from_array(array: np.ndarray) -> List[Sample]:
    return [None if np.isnan(value) else float(value) for value in array]


def wind_speed(u: Sequence[Sample], v: Sequence[Sample]) -> List[Sample]:
    """Element-wise ``sqrt(u**2 + v**2)``; missing where either component is missing."""
    if len(u) != len(v):
        raise ValueError(f"Wind components differ in length ({len(u)} vs {len(v)}).")
    return from_array(np.hypot(to_array(u), to_array(v)))


def kelvin_to_celsius(values: Sequence[Sample]) -> List[Sample]:
    return from_array(to_array(values) - KELVIN_OFFSET)


def hourly_precipitation(rates: Sequence[Sample]) -> List[Sample]:
    """Convert kg m-2 s-1 rates (mm/s) into mm accumulated over each hour."""
    return from_array(to_array(rates) * SECONDS_PER_HOUR)


def period_mean(values: Iterable[Sample]) -> Optional[float]:
    """Mean of the non-missing values, or ``None`` if there are none."""
    array = to_array(values)
    valid = array[~np.isnan(array)]
    if valid.size == 0:
        return None
    return float(valid.mean())


def precipitation_total(rates: Iterable[Sample], seconds: float) -> Optional[float]:
    """
    Total precipitation (mm) over a period from its rate samples.

    mean rate (kg m-2 s-1) * period length (s); ``None`` when the period has no
    valid sample.
    """
    mean_rate = period_mean(rates)
    if mean_rate is None:
        return None
    return mean_rate * seconds
