from __future__ import annotations

import math
from typing import Iterable, List, Optional, Tuple

from .models import HOURS_PER_DAY, Sample

FILL_VALUE_THRESHOLD = 1e10

# Physical plausibility ranges for MERRA-2 hourly fields.
TEMPERATURE_K_RANGE: Tuple[float, float] = (183.0, 333.0)  # -90 C .. 60 C
WIND_COMPONENT_RANGE: Tuple[float, float] = (-150.0, 150.0)
PRECIP_RATE_RANGE: Tuple[float, float] = (0.0, 1.0)  # kg m-2 s-1; 1.0 is ~3600 mm/h


def is_valid(value: Optional[float], valid_range: Optional[Tuple[float, float]] = None) -> bool:
    """True when ``value`` is a real reading: not missing, not a fill value, inside ``valid_range``."""
    if value is None:
        return False
    if math.isnan(value) or abs(value) >= FILL_VALUE_THRESHOLD:
        return False
    if valid_range is not None:
        low, high = valid_range
        return low <= value <= high
    return True


def clean_and_pad(
    values: Optional[Iterable[Optional[float]]],
    valid_range: Optional[Tuple[float, float]] = None,
    length: int = HOURS_PER_DAY,
) -> List[Sample]:
    """
    Return exactly ``length`` samples, bad readings replaced by ``None``.

    Input longer than ``length`` is truncated; shorter input is padded at the
    tail with ``None``.
    """
    cleaned: List[Sample] = [
        float(value) if is_valid(value, valid_range) else None
        for value in (values or ())
    ]
    cleaned = cleaned[:length]
    cleaned.extend([None] * (length - len(cleaned)))
    return cleaned
