import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

import requests

from ..core.dates import iter_year_windows, validate_year_range
from ..core.models import CalendarDay, GeoPoint, YearlyScalar
from .base import BatchExecutorMixin, RequestSpec, UpstreamError, WeatherClient
from .config_loader import load_provider_config
from .request_utils import build_request_headers, normalise_location, perform_get

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://power.larc.nasa.gov/api/temporal/daily/point"
POWER_SENTINEL = -999.0
MAX_YEARS_PER_REQUEST = 40

DAILY_PARAMETERS: Sequence[str] = ("T2M", "PRECTOTCORR", "WS10M", "SNODP")
SNOW_DEPTH = "SNODP"


class PowerQueryBuilder:
    """
    Build NASA POWER daily point requests.

    https://power.larc.nasa.gov/docs/services/api/temporal/daily/
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, community: str = "RE") -> None:
        self.base_url = base_url
        self.community = community

    def build(
        self,
        when: Sequence[int],
        location: GeoPoint,
        variables: Sequence[str],
    ) -> RequestSpec:
        start_year, end_year = when
        params: Dict[str, str] = {
            "parameters": ",".join(variables),
            "community": self.community,
            "longitude": f"{location.longitude:.4f}",
            "latitude": f"{location.latitude:.4f}",
            "start": f"{int(start_year):04d}",
            "end": f"{int(end_year):04d}",
            "format": "JSON",
        }
        return RequestSpec(
            url=self.base_url,
            params=params,
            headers=build_request_headers(accept="application/json"),
        )


def parse_power_daily(
    payload: Mapping[str, object],
    parameters: Sequence[str],
    calendar_day: CalendarDay,
) -> Dict[str, YearlyScalar]:
    """
    Extract ``{parameter: {year: value}}`` for one calendar day.

    Only date keys ending with the day's ``MMDD`` suffix are kept, and the
    provider's -999 sentinel is dropped.
    """
    try:
        series_by_param = payload["properties"]["parameter"]  # type: ignore[index]
    except (KeyError, TypeError) as exc:
        raise UpstreamError("NASA POWER response has no properties.parameter section.") from exc
    if not isinstance(series_by_param, Mapping):
        raise UpstreamError("NASA POWER properties.parameter is not an object.")

    suffix = calendar_day.suffix
    results: Dict[str, YearlyScalar] = {}
    for param in parameters:
        series = series_by_param.get(param) or {}
        if not isinstance(series, Mapping):
            raise UpstreamError(f"NASA POWER series for {param} is not an object.")
        by_year: YearlyScalar = {}
        for stamp, value in series.items():
            stamp = str(stamp)
            if len(stamp) != 8 or not stamp.isdigit() or not stamp.endswith(suffix):
                continue
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                continue
            if float(value) == POWER_SENTINEL:
                continue
            by_year[int(stamp[:4])] = float(value)
        results[param] = dict(sorted(by_year.items()))
    return results


class NasaPowerClient(WeatherClient, BatchExecutorMixin):
    """
    Client for the NASA POWER daily point endpoint.

    The provider takes latitude/longitude directly, so no grid addressing is
    needed. Long spans are split into windows of at most 40 years.
    """

    provider = "nasa_power"

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = "config.json",
        provider: str = "nasa_power",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config_path = Path(config_path) if config_path is not None else None
        self.provider = provider
        _, provider_cfg = load_provider_config(config_path, provider)
        self.provider_cfg = provider_cfg

        self.builder = PowerQueryBuilder(
            base_url=str(provider_cfg.get("baseUrl", DEFAULT_BASE_URL)),
            community=str(provider_cfg.get("community", "RE")),
        )
        self.session = session or requests.Session()
        self.timeout: float = float(provider_cfg.get("timeout", 60))
        self.max_years_per_request: int = int(provider_cfg.get("maxYearsPerRequest", MAX_YEARS_PER_REQUEST))
        self.batch_size: int = 4

    def _request(self, spec: RequestSpec) -> dict:
        response = perform_get(self.session, spec, provider_label="NASA POWER", timeout=self.timeout)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError("NASA POWER returned a non-JSON response.") from exc

    def _get_window(
        self,
        *,
        location: GeoPoint,
        years: Tuple[int, int],
        parameters: Sequence[str],
        calendar_day: CalendarDay,
    ) -> Dict[str, YearlyScalar]:
        spec = self.builder.build(years, location, parameters)
        return parse_power_daily(self._request(spec), parameters, calendar_day)

    def get_historical_data(
        self,
        *,
        location: Union[GeoPoint, str, Sequence[float], Mapping[str, float]],
        when: Tuple[CalendarDay, Tuple[int, int]],
        variables: Optional[Sequence[str]] = None,
    ) -> Dict[str, YearlyScalar]:
        """
        Per-year values of each parameter on one calendar day.

        ``when`` is ``(calendar_day, (start_year, end_year))``. Any failed window
        raises; callers that want partial results use :meth:`get_yearly_values_batch`.
        """
        calendar_day, year_range = when
        point = normalise_location(location)
        start, end = validate_year_range(year_range)
        parameters = list(variables or DAILY_PARAMETERS)

        merged: Dict[str, YearlyScalar] = {param: {} for param in parameters}
        for window in iter_year_windows(start, end, self.max_years_per_request):
            chunk = self._get_window(location=point, years=window, parameters=parameters, calendar_day=calendar_day)
            for param, by_year in chunk.items():
                merged[param].update(by_year)
        return merged

    def get_yearly_values_batch(
        self,
        *,
        location: GeoPoint,
        calendar_day: CalendarDay,
        year_range: Tuple[int, int],
        parameters: Sequence[str],
        max_workers: Optional[int] = None,
    ) -> Tuple[Dict[str, YearlyScalar], Dict[Tuple[int, int], Exception]]:
        """Fetch every year window concurrently; return merged values plus per-window failures."""
        start, end = validate_year_range(year_range)
        windows = list(iter_year_windows(start, end, self.max_years_per_request))
        payloads: Iterable[Mapping[str, object]] = [
            {"location": location, "years": window, "parameters": parameters, "calendar_day": calendar_day}
            for window in windows
        ]
        results = self._run_batch(payloads, self._get_window, batch_size=self.batch_size, max_workers=max_workers)

        merged: Dict[str, YearlyScalar] = {param: {} for param in parameters}
        failures: Dict[Tuple[int, int], Exception] = {}
        for window, result in zip(windows, results):
            if isinstance(result, Exception):
                failures[window] = result
                continue
            for param, by_year in result.items():
                merged[param].update(by_year)
        return merged, failures
