import datetime as dt
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

import requests

from ..core.derived import hourly_precipitation, kelvin_to_celsius, wind_speed
from ..core.grid import grid_indices
from ..core.models import DailyRecord, GeoPoint, VariableSeries
from ..core.quality import (
    PRECIP_RATE_RANGE,
    TEMPERATURE_K_RANGE,
    WIND_COMPONENT_RANGE,
    clean_and_pad,
)
from .base import BatchExecutorMixin, ConfigurationError, RequestSpec, UpstreamError, WeatherClient
from .config_loader import load_provider_config
from .request_utils import build_request_headers, normalise_location, perform_get

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://goldsmr4.gesdisc.eosdis.nasa.gov/"
TOKEN_ENV_VAR = "GES_DISC_BEARER_TOKEN"

DATASET_PREFIXES: Dict[str, str] = {
    "SLV": "opendap/MERRA2/M2T1NXSLV.5.12.4",
    "FLX": "opendap/MERRA2/M2T1NXFLX.5.12.4",
}

SLV_VARIABLES: Sequence[str] = ("T2M", "U10M", "V10M")
FLX_VARIABLES: Sequence[str] = ("PRECTOT",)

# (first year, stream) - MERRA-2 production streams, newest first.
STREAM_ERAS = (
    (2011, 400),
    (2001, 300),
    (1992, 200),
    (1980, 100),
)

HOURLY_RANGE = "[0:23]"

# Grid map vectors echoed alongside each variable (e.g. ``T2M.lat, 40.5``).
COORDINATE_MAPS = frozenset({"time", "lat", "lon"})


def stream_for_year(year: int) -> int:
    """Return the MERRA-2 stream number whose files cover ``year``."""
    for first_year, stream in STREAM_ERAS:
        if year >= first_year:
            return stream
    # Pre-1980 requests still address stream 100; the server reports the miss.
    return STREAM_ERAS[-1][1]


class Merra2QueryBuilder:
    """
    Build OPeNDAP ASCII subset URLs for one day of MERRA-2 hourly data.

    https://disc.gsfc.nasa.gov/datasets/M2T1NXSLV_5.12.4/summary
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, bearer_token: Optional[str] = None) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.bearer_token = bearer_token

    def build_url(self, dataset: str, date: dt.date, location: GeoPoint, variables: Sequence[str]) -> str:
        prefix = DATASET_PREFIXES.get(dataset)
        if prefix is None:
            raise ConfigurationError(f"Unknown MERRA-2 dataset: {dataset!r}")
        file_id = dataset.lower()

        lat_index, lon_index = grid_indices(location.latitude, location.longitude)
        subset = f"{HOURLY_RANGE}[{lat_index}:{lat_index}][{lon_index}:{lon_index}]"
        variable_query = ",".join(f"{variable}{subset}" for variable in variables)
        stream = stream_for_year(date.year)

        return (
            f"{self.base_url}{prefix}/{date:%Y}/{date:%m}/"
            f"MERRA2_{stream}.tavg1_2d_{file_id}_Nx.{date:%Y%m%d}.nc4.ascii?{variable_query}"
        )

    def build(
        self,
        when: dt.date,
        location: GeoPoint,
        variables: Sequence[str],
        *,
        dataset: str = "SLV",
    ) -> RequestSpec:
        return RequestSpec(
            url=self.build_url(dataset, when, location, variables),
            headers=build_request_headers(bearer_token=self.bearer_token, accept="text/plain,*/*;q=0.8"),
        )


def parse_opendap_ascii(text: str, variables: Sequence[str]) -> Dict[str, List[float]]:
    """
    Parse a GES DISC ``.ascii`` response into ``{variable: [values...]}``.

    Each line is ``label, value[, value...]``. A line belongs to the first
    requested variable its label starts with; numeric fields are appended in
    order and anything that does not parse as a number is dropped. Coordinate
    map lines (``VAR.time``, ``VAR.lat``, ``VAR.lon``) are skipped.
    """
    results: Dict[str, List[float]] = {variable: [] for variable in variables}
    for line in text.splitlines():
        parts = line.split(",")
        if len(parts) < 2:
            continue
        label = parts[0].strip()
        if label.split("[", 1)[0].rsplit(".", 1)[-1] in COORDINATE_MAPS:
            continue
        owner = next((variable for variable in variables if label.startswith(variable)), None)
        if owner is None:
            continue
        for token in parts[1:]:
            try:
                results[owner].append(float(token.strip()))
            except ValueError:
                continue
    return results


def assemble_daily_record(date: dt.date, slv: Mapping[str, Sequence[float]], flx: Mapping[str, Sequence[float]]) -> DailyRecord:
    """Clean the raw hourly fields and derive temperature (C), wind speed and precipitation."""
    temps_k = clean_and_pad(slv.get("T2M"), TEMPERATURE_K_RANGE)
    u_wind = clean_and_pad(slv.get("U10M"), WIND_COMPONENT_RANGE)
    v_wind = clean_and_pad(slv.get("V10M"), WIND_COMPONENT_RANGE)
    precip_rates = clean_and_pad(flx.get("PRECTOT"), PRECIP_RATE_RANGE)

    return DailyRecord(
        date=date,
        temperature=tuple(kelvin_to_celsius(temps_k)),
        wind_speed=tuple(wind_speed(u_wind, v_wind)),
        precipitation=tuple(hourly_precipitation(precip_rates)),
        precipitation_rate=tuple(precip_rates),
    )


class Merra2Client(WeatherClient, BatchExecutorMixin):
    """
    Client for MERRA-2 hourly reanalysis served by the GES DISC OPeNDAP server.

    One day costs two requests: single-level fields (SLV) and surface fluxes (FLX).
    """

    provider = "gesdisc"

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = "config.json",
        provider: str = "gesdisc",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config_path = Path(config_path) if config_path is not None else None
        self.provider = provider
        _, provider_cfg = load_provider_config(config_path, provider)
        self.provider_cfg = provider_cfg

        token = provider_cfg.get("bearerToken") or os.environ.get(TOKEN_ENV_VAR, "")
        self.builder = Merra2QueryBuilder(
            base_url=str(provider_cfg.get("baseUrl", DEFAULT_BASE_URL)),
            bearer_token=str(token),
        )
        self.session = session or requests.Session()
        self.timeout: float = float(provider_cfg.get("timeout", 60))
        self.max_workers: int = int(provider_cfg.get("maxWorkers", 8))
        self.batch_size: int = int(provider_cfg.get("batchSize", 40))
        self.request_throttle_seconds = float(provider_cfg.get("throttleSeconds", 0.0))

    def fetch_dataset(
        self,
        dataset: str,
        date: dt.date,
        location: GeoPoint,
        variables: Sequence[str],
    ) -> Dict[str, List[float]]:
        if not variables:
            return {}
        spec = self.builder.build(date, location, variables, dataset=dataset)
        response = perform_get(self.session, spec, provider_label=f"GES DISC {dataset}", timeout=self.timeout)
        text = response.text
        if not text or not text.strip():
            raise UpstreamError(f"GES DISC {dataset} returned an empty body for {date.isoformat()}.")
        return parse_opendap_ascii(text, variables)

    def get_historical_data(
        self,
        *,
        location: Union[GeoPoint, str, Sequence[float], Mapping[str, float]],
        when: dt.date,
        variables: Optional[Sequence[str]] = None,
    ) -> VariableSeries:
        """Raw (uncleaned) hourly values for ``when`` keyed by MERRA-2 variable."""
        point = normalise_location(location)
        wanted = list(variables) if variables is not None else list(SLV_VARIABLES) + list(FLX_VARIABLES)
        slv_vars = [variable for variable in wanted if variable in SLV_VARIABLES]
        flx_vars = [variable for variable in wanted if variable in FLX_VARIABLES]
        series: VariableSeries = {}
        series.update(self.fetch_dataset("SLV", when, point, slv_vars))
        series.update(self.fetch_dataset("FLX", when, point, flx_vars))
        return series

    def get_daily_record(self, *, date: dt.date, location: GeoPoint) -> DailyRecord:
        slv = self.fetch_dataset("SLV", date, location, SLV_VARIABLES)
        flx = self.fetch_dataset("FLX", date, location, FLX_VARIABLES)
        return assemble_daily_record(date, slv, flx)

    def get_daily_records_batch(
        self,
        requests_payload: Iterable[Mapping[str, object]],
        *,
        batch_size: Optional[int] = None,
        max_workers: Optional[int] = None,
    ) -> List[Union[DailyRecord, Exception]]:
        effective_batch = self.batch_size if batch_size is None else batch_size
        effective_workers = self.max_workers if max_workers is None else max_workers
        return self._run_batch(
            requests_payload,
            self.get_daily_record,
            batch_size=effective_batch,
            max_workers=effective_workers,
        )
