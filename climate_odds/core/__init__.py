"""Core data model and numeric helpers."""

from .config import ConfigError, load_optional_config, load_project_config
from .dates import default_year_range, iter_year_windows, iter_years
from .grid import grid_indices
from .models import AggregateSummary, CalendarDay, DailyRecord, GeoPoint, ScalarSummary

__all__ = [
    "ConfigError",
    "load_optional_config",
    "load_project_config",
    "default_year_range",
    "iter_year_windows",
    "iter_years",
    "grid_indices",
    "AggregateSummary",
    "CalendarDay",
    "DailyRecord",
    "GeoPoint",
    "ScalarSummary",
]
