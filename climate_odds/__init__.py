"""Historical weather likelihood for a calendar day and location."""

from .aggregation import AggregationState, HistoryAggregator
from .core import AggregateSummary, CalendarDay, DailyRecord, GeoPoint
from .exporters import export_table

__all__ = [
    "AggregationState",
    "HistoryAggregator",
    "AggregateSummary",
    "CalendarDay",
    "DailyRecord",
    "GeoPoint",
    "export_table",
]
