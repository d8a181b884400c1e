"""
Multi-year aggregation across MERRA-2 (hourly) and NASA POWER (daily).

One request walks the configured historical window, issues one unit of work
per year, tolerates per-year failures, and reduces what succeeded once every
unit has settled.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import enum
import itertools
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..clients.base import ApiError, ConfigurationError
from ..clients.merra2 import Merra2Client
from ..clients.nasa_power import DAILY_PARAMETERS, SNOW_DEPTH, NasaPowerClient
from ..core.config import aggregation_setting, load_optional_config
from ..core.dates import DEFAULT_HISTORY_YEARS, default_year_range, iter_years, validate_year_range, year_span
from ..core.models import AggregateSummary, CalendarDay, DailyRecord, GeoPoint, ScalarSummary, YearlyScalar
from .reduce import resolve_bands, scalar_mean, summarise

logger = logging.getLogger(__name__)

YearRange = Tuple[int, int]


class AggregationState(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PARTIALLY_FAILED = "partially_failed"
    REDUCING = "reducing"
    READY = "ready"
    FAILED = "failed"


# Failures that only cost one unit of work its data.
UNIT_ERRORS = (ApiError, ValueError)


@dataclass
class _Run:
    """Working collection of one request; nothing here is shared with other requests."""

    seq: int
    years: YearRange
    failed_years: Dict[int, str] = field(default_factory=dict)
    failed_windows: Dict[YearRange, str] = field(default_factory=dict)


class HistoryAggregator:
    """
    Runs likelihood requests and keeps the latest results per collection.

    ``records`` and ``failed_years`` come from the latest
    :meth:`fetch_daily_history`; ``snow_depth`` from the latest request that
    fetched snow depth; ``failed_windows`` lists NASA POWER year windows that
    produced nothing in the latest request. Each request works on its own
    collection and publishes it once it has settled, so concurrent requests
    never see each other's partial state. ``state`` follows the most recently
    started request.
    """

    def __init__(
        self,
        merra2: Optional[Merra2Client] = None,
        power: Optional[NasaPowerClient] = None,
        *,
        config_path: Optional[Union[str, Path]] = "config.json",
        max_workers: Optional[int] = None,
    ) -> None:
        self.config = load_optional_config(config_path)
        self.merra2 = merra2 or Merra2Client(config_path=config_path)
        self.power = power or NasaPowerClient(config_path=config_path)
        self.max_workers = max_workers
        self.bands = resolve_bands(aggregation_setting(self.config, "bands"))
        self.history_years = int(aggregation_setting(self.config, "historyYears", DEFAULT_HISTORY_YEARS))

        self._lock = threading.Lock()
        self._sequence = itertools.count(1)
        self._latest = 0
        self._published: Dict[str, int] = {}
        self.state = AggregationState.IDLE
        self.records: List[DailyRecord] = []
        self.snow_depth: YearlyScalar = {}
        self.failed_years: Dict[int, str] = {}
        self.failed_windows: Dict[YearRange, str] = {}

    def _transition(self, run: Optional[_Run], state: AggregationState) -> None:
        # Caller holds the lock. Superseded requests leave the state alone.
        if run is not None and run.seq != self._latest:
            return
        if self.state is not state:
            logger.debug("Aggregation state %s -> %s", self.state.value, state.value)
        self.state = state

    def _set_state(self, run: Optional[_Run], state: AggregationState) -> None:
        with self._lock:
            self._transition(run, state)

    def _mark_partial(self, run: _Run) -> None:
        with self._lock:
            if self.state is AggregationState.FETCHING:
                self._transition(run, AggregationState.PARTIALLY_FAILED)

    def _publish(self, run: _Run, **collections) -> None:
        """Replace each named collection unless a later request already published it."""
        with self._lock:
            for name, value in collections.items():
                if run.seq >= self._published.get(name, 0):
                    setattr(self, name, value)
                    self._published[name] = run.seq
            self._transition(run, AggregationState.READY)

    def _begin(self, calendar_day: CalendarDay, location: GeoPoint, year_range: Optional[YearRange]) -> _Run:
        """Validate inputs and open a fresh working collection. Invalid input is fatal."""
        try:
            if not isinstance(calendar_day, CalendarDay):
                raise TypeError("calendar_day must be a CalendarDay.")
            if not isinstance(location, GeoPoint):
                raise TypeError("location must be a GeoPoint.")
            years = validate_year_range(year_range or default_year_range(span=self.history_years))
        except (TypeError, ValueError):
            self._set_state(None, AggregationState.FAILED)
            raise

        with self._lock:
            run = _Run(seq=next(self._sequence), years=years)
            self._latest = run.seq
            self._transition(run, AggregationState.FETCHING)
        return run

    def _fail(self, run: _Run) -> None:
        self._set_state(run, AggregationState.FAILED)

    def _collect_daily_records(self, run: _Run, calendar_day: CalendarDay, location: GeoPoint) -> List[DailyRecord]:
        payloads = []
        for year in iter_years(*run.years):
            try:
                date = calendar_day.on_year(year)
            except ValueError as exc:
                logger.warning("Skipping %s: %s", year, exc)
                run.failed_years[year] = str(exc)
                self._mark_partial(run)
                continue
            payloads.append((year, {"date": date, "location": location}))

        results = self.merra2.get_daily_records_batch(
            [payload for _, payload in payloads],
            max_workers=self.max_workers,
        )

        records: List[DailyRecord] = []
        for (year, _), result in zip(payloads, results):
            if isinstance(result, ConfigurationError) or (
                isinstance(result, BaseException) and not isinstance(result, UNIT_ERRORS)
            ):
                raise result
            if isinstance(result, UNIT_ERRORS):
                logger.warning("MERRA-2 fetch for %s failed: %s", year, result)
                run.failed_years[year] = str(result)
                self._mark_partial(run)
                continue
            records.append(result)
        return records

    def _collect_scalars(
        self,
        run: _Run,
        parameters: Sequence[str],
        calendar_day: CalendarDay,
        location: GeoPoint,
    ) -> Dict[str, YearlyScalar]:
        values, failures = self.power.get_yearly_values_batch(
            location=location,
            calendar_day=calendar_day,
            year_range=run.years,
            parameters=parameters,
            max_workers=self.max_workers,
        )
        for window, exc in failures.items():
            if isinstance(exc, ConfigurationError) or not isinstance(exc, UNIT_ERRORS):
                raise exc
            logger.warning("NASA POWER fetch for %s-%s failed: %s", window[0], window[1], exc)
            run.failed_windows[window] = str(exc)
            self._mark_partial(run)
        return values

    def fetch_daily_history(
        self,
        calendar_day: CalendarDay,
        location: GeoPoint,
        year_range: Optional[YearRange] = None,
    ) -> AggregateSummary:
        """
        Hourly MERRA-2 history plus POWER snow depth, reduced to an :class:`AggregateSummary`.

        The two sources are fetched concurrently; reduction begins only after
        both have settled.
        """
        run = self._begin(calendar_day, location, year_range)
        years = run.years
        logger.info(
            "Fetching %d years (%s-%s) of %s at (%.4f, %.4f)",
            year_span(*years), years[0], years[1], calendar_day.suffix, location.latitude, location.longitude,
        )

        try:
            with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
                records_future = executor.submit(self._collect_daily_records, run, calendar_day, location)
                snow_future = executor.submit(self._collect_scalars, run, [SNOW_DEPTH], calendar_day, location)
                concurrent.futures.wait([records_future, snow_future])
                records = records_future.result()
                snow = snow_future.result().get(SNOW_DEPTH, {})
        except BaseException:
            self._fail(run)
            raise

        self._set_state(run, AggregationState.REDUCING)
        records = sorted(records, key=lambda record: record.date)
        snow = dict(sorted(snow.items()))
        summary = summarise(records, snow, bands=self.bands, failed_years=run.failed_years)
        self._publish(
            run,
            records=records,
            snow_depth=snow,
            failed_years=dict(summary.failed_years),
            failed_windows=dict(run.failed_windows),
        )

        logger.info(
            "Reduced %d daily records (%d years failed, %d snow readings)",
            len(records), len(summary.failed_years), len(snow),
        )
        return summary

    def fetch_yearly_scalar(
        self,
        variable: str,
        calendar_day: CalendarDay,
        location: GeoPoint,
        year_range: Optional[YearRange] = None,
    ) -> YearlyScalar:
        """Per-year POWER values of ``variable`` on ``calendar_day``."""
        run = self._begin(calendar_day, location, year_range)
        try:
            values = self._collect_scalars(run, [variable], calendar_day, location).get(variable, {})
        except BaseException:
            self._fail(run)
            raise

        self._set_state(run, AggregationState.REDUCING)
        values = dict(sorted(values.items()))
        published = {"failed_windows": dict(run.failed_windows)}
        if variable == SNOW_DEPTH:
            published["snow_depth"] = dict(values)
        self._publish(run, **published)
        return values

    def fetch_daily_summary(
        self,
        calendar_day: CalendarDay,
        location: GeoPoint,
        year_range: Optional[YearRange] = None,
        parameters: Sequence[str] = DAILY_PARAMETERS,
    ) -> ScalarSummary:
        """Coarse daily POWER values (temperature, precipitation, wind, snow) and their multi-year means."""
        run = self._begin(calendar_day, location, year_range)
        try:
            values = self._collect_scalars(run, list(parameters), calendar_day, location)
        except BaseException:
            self._fail(run)
            raise

        self._set_state(run, AggregationState.REDUCING)
        summary = ScalarSummary(
            values={param: dict(values.get(param, {})) for param in parameters},
            means={param: scalar_mean(values.get(param, {})) for param in parameters},
        )
        published = {"failed_windows": dict(run.failed_windows)}
        if SNOW_DEPTH in parameters:
            published["snow_depth"] = dict(summary.values[SNOW_DEPTH])
        self._publish(run, **published)
        return summary

    async def afetch_daily_history(self, *args, **kwargs) -> AggregateSummary:
        return await asyncio.to_thread(self.fetch_daily_history, *args, **kwargs)

    async def afetch_yearly_scalar(self, *args, **kwargs) -> YearlyScalar:
        return await asyncio.to_thread(self.fetch_yearly_scalar, *args, **kwargs)

    async def afetch_daily_summary(self, *args, **kwargs) -> ScalarSummary:
        return await asyncio.to_thread(self.fetch_daily_summary, *args, **kwargs)
