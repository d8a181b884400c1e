from __future__ import annotations

import logging
from typing import Mapping, MutableMapping, Optional, Sequence, Union

import requests

from ..core.models import GeoPoint
from .base import RequestSpec, TransportError, UpstreamError

logger = logging.getLogger(__name__)

USER_AGENT = "climate-odds/1.0 (+historical weather likelihood)"


def build_request_headers(
    base: Optional[Mapping[str, str]] = None,
    *,
    bearer_token: Optional[str] = None,
    accept: str = "*/*",
) -> MutableMapping[str, str]:
    """
    Return the headers sent with every provider request.

    Args:
        base: Optional mapping of headers to seed the final set (values here win over defaults).
        bearer_token: When non-blank, adds an ``Authorization: Bearer`` header.
        accept: Default ``Accept`` header value.
    """
    headers: MutableMapping[str, str] = dict(base or {})
    headers["User-Agent"] = headers.get("User-Agent") or USER_AGENT
    headers["Accept"] = headers.get("Accept") or accept
    headers.setdefault("Accept-Encoding", "gzip, deflate")
    if bearer_token and bearer_token.strip():
        headers["Authorization"] = f"Bearer {bearer_token.strip()}"
    return headers


def normalise_location(location: Union[GeoPoint, str, Sequence[float], Mapping[str, float]]) -> GeoPoint:
    if isinstance(location, GeoPoint):
        return location

    if isinstance(location, str):
        if not location.strip():
            raise ValueError("Location string cannot be empty.")
        parts = [part.strip() for part in location.split(",")]
        if len(parts) != 2:
            raise ValueError("Provide location as 'latitude,longitude'.")
        lat, lon = map(float, parts)
        return GeoPoint(lat, lon)

    if isinstance(location, (tuple, list)):
        if len(location) != 2:
            raise ValueError("Expecting (latitude, longitude).")
        lat, lon = location
        return GeoPoint(float(lat), float(lon))

    if isinstance(location, Mapping):
        try:
            lat = float(location["lat"])
            lon = float(location["lon"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError("Location dict needs numeric 'lat' and 'lon' keys.") from exc
        return GeoPoint(lat, lon)

    raise TypeError("Location must be a GeoPoint, 'lat,lon' string, (lat, lon) pair, or {'lat': .., 'lon': ..} dictionary.")


def perform_get(
    session: requests.Session,
    spec: RequestSpec,
    *,
    provider_label: str,
    timeout: float,
) -> requests.Response:
    """
    Issue ``spec`` and return the response, translating failures.

    Raises:
        TransportError: the request never produced a response.
        UpstreamError: the provider answered with a status >= 400.
    """
    logger.debug("%s GET %s params=%s", provider_label, spec.url, dict(spec.params))
    try:
        response = session.get(
            spec.url,
            params=dict(spec.params) or None,
            headers=dict(spec.headers),
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise TransportError(f"{provider_label} request failed: {exc}") from exc

    if response.status_code >= 400:
        raise UpstreamError(f"{provider_label} error {response.status_code}: {response.text[:200]}")
    return response
