from __future__ import annotations

import concurrent.futures
import datetime as dt
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Union

from ..core.models import GeoPoint


class ApiError(RuntimeError):
    """Raised when a provider cannot deliver a usable response."""


class TransportError(ApiError):
    """Raised when the provider could not be reached (connection, DNS, timeout)."""


class UpstreamError(ApiError):
    """Raised when the provider answered with an error status or an unreadable body."""


class ConfigurationError(ValueError):
    """Raised when a query builder is asked for a dataset it does not know."""


@dataclass(frozen=True)
class RequestSpec:
    """Fully-qualified GET request: URL, query parameters and extra headers."""

    url: str
    params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)


class QueryBuilder(Protocol):
    """Anything that turns (when, where, what) into a :class:`RequestSpec`."""

    def build(
        self,
        when: Union[dt.date, Sequence[int]],
        location: GeoPoint,
        variables: Sequence[str],
    ) -> RequestSpec:
        ...


class WeatherClient:
    """Base class for provider clients.

    Every client returns its data keyed by provider variable code, either as an
    hourly sample sequence or as a per-year scalar mapping.
    """

    provider: str = ""

    def get_historical_data(
        self,
        *,
        location: GeoPoint,
        when: Any,
        variables: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        raise NotImplementedError


class BatchExecutorMixin:
    """
    A mixin for clients that fan out independent requests.

    This mixin provides a `_run_batch` method that uses a thread pool to execute
    requests in parallel. Requests are submitted in batches with an optional
    throttle between batches to avoid rate limiting.
    """

    request_throttle_seconds: float = 0.0

    def _run_batch(
        self,
        requests: Iterable[Mapping[str, Any]],
        worker_fn: Callable[..., Any],
        *,
        batch_size: int,
        max_workers: int | None = None,
    ) -> List[Any]:
        """
        Execute a batch of requests in parallel using a thread pool.

        Args:
            requests: An iterable of keyword-argument payloads.
            worker_fn: The function to call for each request.
            batch_size: The number of requests to submit before throttling.
            max_workers: The maximum number of worker threads to use.

        Returns:
            A list holding, for each input request and in input order, either the
            worker's return value or the exception it raised. The list is only
            returned once every request has settled.
        """
        request_list = list(requests)
        if not request_list:
            return []

        batch_size = max(1, batch_size)
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures: List[concurrent.futures.Future] = []
            for i in range(0, len(request_list), batch_size):
                batch = request_list[i : i + batch_size]
                for request_params in batch:
                    futures.append(executor.submit(worker_fn, **request_params))

                if i + batch_size < len(request_list) and self.request_throttle_seconds > 0:
                    time.sleep(self.request_throttle_seconds)

            concurrent.futures.wait(futures)

        results: List[Any] = []
        for future in futures:
            exc = future.exception()
            results.append(exc if exc is not None else future.result())
        return results
