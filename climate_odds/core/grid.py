"""MERRA-2 grid addressing (0.5 deg latitude x 0.625 deg longitude)."""

from __future__ import annotations

import math
from typing import Tuple

LAT_STEP = 0.5
LON_STEP = 0.625
MAX_LAT_INDEX = 360
MAX_LON_INDEX = 575


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def grid_indices(lat: float, lon: float) -> Tuple[int, int]:
    """
    Return the ``(lat_index, lon_index)`` grid cell holding ``(lat, lon)``.

    Coordinates outside the grid are clamped to the nearest edge cell rather
    than rejected.
    """
    lat_index = math.floor((lat + 90.0) / LAT_STEP)
    lon_index = math.floor((lon + 180.0) / LON_STEP)
    return _clamp(lat_index, 0, MAX_LAT_INDEX), _clamp(lon_index, 0, MAX_LON_INDEX)
