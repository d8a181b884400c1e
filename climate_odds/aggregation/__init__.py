"""Multi-year aggregation and reduction."""

from .aggregator import AggregationState, HistoryAggregator
from .reduce import DEFAULT_BANDS, frequency_distribution, hour_samples, summarise

__all__ = [
    "AggregationState",
    "HistoryAggregator",
    "DEFAULT_BANDS",
    "frequency_distribution",
    "hour_samples",
    "summarise",
]
