"""Weather provider clients."""

from .base import (
    ApiError,
    BatchExecutorMixin,
    ConfigurationError,
    QueryBuilder,
    RequestSpec,
    TransportError,
    UpstreamError,
    WeatherClient,
)
from .merra2 import Merra2Client, Merra2QueryBuilder, parse_opendap_ascii
from .nasa_power import NasaPowerClient, PowerQueryBuilder, parse_power_daily

__all__ = [
    "ApiError",
    "BatchExecutorMixin",
    "ConfigurationError",
    "QueryBuilder",
    "RequestSpec",
    "TransportError",
    "UpstreamError",
    "WeatherClient",
    "Merra2Client",
    "Merra2QueryBuilder",
    "parse_opendap_ascii",
    "NasaPowerClient",
    "PowerQueryBuilder",
    "parse_power_daily",
]
