"""Flat CSV export of per-year, per-hour daily records."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Union

import pandas as pd

from ..core.models import HOURS_PER_DAY, DailyRecord

logger = logging.getLogger(__name__)

COLUMNS: List[str] = [
    "year",
    "month",
    "day",
    "hour",
    "temperature_celsius",
    "wind_speed_m_s",
    "precipitation_mm",
    "snow_depth_cm",
]
VALUE_COLUMNS = COLUMNS[4:]


def records_to_frame(
    records: Iterable[DailyRecord],
    scalar_map: Optional[Mapping[int, float]] = None,
) -> pd.DataFrame:
    """One row per (year, hour), years ascending; the year's snow depth repeats on every hour."""
    snow = scalar_map or {}
    rows = []
    for record in sorted(records, key=lambda record: record.date):
        snow_depth = snow.get(record.year)
        for hour in range(HOURS_PER_DAY):
            rows.append(
                {
                    "year": record.date.year,
                    "month": record.date.month,
                    "day": record.date.day,
                    "hour": hour,
                    "temperature_celsius": record.temperature[hour],
                    "wind_speed_m_s": record.wind_speed[hour],
                    "precipitation_mm": record.precipitation[hour],
                    "snow_depth_cm": snow_depth,
                }
            )
    frame = pd.DataFrame(rows, columns=COLUMNS)
    return frame.astype({column: float for column in VALUE_COLUMNS})


def export_table(
    records: Iterable[DailyRecord],
    scalar_map: Optional[Mapping[int, float]] = None,
) -> str:
    """Serialise records as CSV text; missing values are empty fields."""
    frame = records_to_frame(records, scalar_map)
    return frame.to_csv(index=False, na_rep="", lineterminator="\n")


class TableExporter:
    """Write the CSV export under a target directory."""

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    def save(
        self,
        filename: str,
        records: Iterable[DailyRecord],
        scalar_map: Optional[Mapping[int, float]] = None,
    ) -> Path:
        if not filename:
            raise ValueError("Filename must be provided for table export.")
        target = self.base_dir / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(export_table(records, scalar_map), encoding="utf-8")
        logger.info(f"Wrote {target}")
        return target
