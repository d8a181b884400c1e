import asyncio
import threading

import pytest

from climate_odds.aggregation import AggregationState, HistoryAggregator
from climate_odds.clients import merra2
from climate_odds.clients.base import ConfigurationError
from climate_odds.clients.merra2 import Merra2Client
from climate_odds.clients.nasa_power import NasaPowerClient
from climate_odds.core.models import CalendarDay, GeoPoint
from climate_odds.exporters import export_table

from fakes import DummyResp, DummySession, opendap_text, power_payload

NYC = GeoPoint(40.7, -74.0)
JULY_4 = CalendarDay(7, 4)


def merra_handler(failing_years=()):
    def handler(url, params):
        if any(f".{year}" in url for year in failing_years):
            return DummyResp(status_code=503, text="busy")
        year = int(url.split("_Nx.")[1][:4])
        if "_slv_" in url:
            kelvin = 273.15 + (year - 2000)
            return DummyResp(text=opendap_text({"T2M": [kelvin] * 24, "U10M": [3.0] * 24, "V10M": [4.0] * 24}))
        return DummyResp(text=opendap_text({"PRECTOT": [0.0001] * 24}))

    return handler


def power_handler(url, params):
    start, end = int(params["start"]), int(params["end"])
    parameters = params["parameters"].split(",")
    series = {}
    for name in parameters:
        series[name] = {}
        for year in range(start, end + 1):
            series[name][f"{year}0704"] = float(year - 2000)
            series[name][f"{year}0229"] = 99.0
    return DummyResp(payload=power_payload(series))


def make_aggregator(merra=None, power=power_handler):
    merra_session = DummySession(merra or merra_handler())
    power_session = DummySession(power)
    aggregator = HistoryAggregator(
        Merra2Client(config_path=None, session=merra_session),
        NasaPowerClient(config_path=None, session=power_session),
        config_path=None,
        max_workers=4,
    )
    return aggregator, merra_session, power_session


def test_starts_idle_with_default_settings():
    aggregator, _, _ = make_aggregator()
    assert aggregator.state is AggregationState.IDLE
    assert aggregator.history_years == 40
    assert aggregator.bands == {"night": (0, 8), "morning": (8, 16), "afternoon": (16, 24)}


def test_fetch_daily_history_all_years_succeed():
    aggregator, merra_session, power_session = make_aggregator()
    summary = aggregator.fetch_daily_history(JULY_4, NYC, (2001, 2003))

    assert aggregator.state is AggregationState.READY
    assert len(merra_session.calls) == 6
    assert len(power_session.calls) == 1
    assert summary.years == (2001, 2002, 2003)
    assert summary.failed_years == {}
    assert summary.hourly["temperature"][0] == pytest.approx(2.0)
    assert summary.overall["wind_speed"] == pytest.approx(5.0)
    assert summary.bands["precipitation"]["night"] == pytest.approx(0.0001 * 8 * 3600)
    assert summary.snow_depth == pytest.approx(2.0)
    assert aggregator.snow_depth == {2001: 1.0, 2002: 2.0, 2003: 3.0}
    assert [record.year for record in aggregator.records] == [2001, 2002, 2003]


def test_failed_years_are_tolerated():
    aggregator, _, _ = make_aggregator(merra=merra_handler(failing_years=(2002,)))
    summary = aggregator.fetch_daily_history(JULY_4, NYC, (2001, 2003))

    assert aggregator.state is AggregationState.READY
    assert summary.years == (2001, 2003)
    assert list(summary.failed_years) == [2002]
    assert "503" in summary.failed_years[2002]
    assert summary.hourly["temperature"][0] == pytest.approx(2.0)


def test_every_year_failing_still_reduces_to_none():
    aggregator, _, _ = make_aggregator(merra=merra_handler(failing_years=(2001, 2002)))
    summary = aggregator.fetch_daily_history(JULY_4, NYC, (2001, 2002))

    assert aggregator.state is AggregationState.READY
    assert summary.years == ()
    assert summary.hourly["temperature"] == (None,) * 24
    assert summary.snow_depth == pytest.approx(1.5)


def test_leap_day_skips_non_leap_years():
    aggregator, merra_session, _ = make_aggregator()
    summary = aggregator.fetch_daily_history(CalendarDay(2, 29), NYC, (2019, 2021))

    assert summary.years == (2020,)
    assert sorted(summary.failed_years) == [2019, 2021]
    assert len(merra_session.calls) == 2
    assert aggregator.snow_depth == {2019: 99.0, 2020: 99.0, 2021: 99.0}


def test_snow_window_failure_is_recorded():
    def failing_power(url, params):
        return DummyResp(status_code=500, text="down")

    aggregator, _, _ = make_aggregator(power=failing_power)
    summary = aggregator.fetch_daily_history(JULY_4, NYC, (2001, 2002))

    assert summary.years == (2001, 2002)
    assert summary.snow_depth is None
    assert list(aggregator.failed_windows) == [(2001, 2002)]


def test_configuration_error_is_fatal(monkeypatch):
    monkeypatch.setattr(merra2, "DATASET_PREFIXES", {})
    aggregator, _, _ = make_aggregator()

    with pytest.raises(ConfigurationError):
        aggregator.fetch_daily_history(JULY_4, NYC, (2001, 2002))
    assert aggregator.state is AggregationState.FAILED


def test_invalid_input_is_fatal():
    aggregator, merra_session, _ = make_aggregator()
    with pytest.raises(ValueError):
        aggregator.fetch_daily_history(JULY_4, NYC, (2005, 2001))
    assert aggregator.state is AggregationState.FAILED
    with pytest.raises(TypeError):
        aggregator.fetch_daily_history("07/04", NYC, (2001, 2002))
    assert merra_session.calls == []


def test_new_request_replaces_previous_results():
    aggregator, _, _ = make_aggregator()
    aggregator.fetch_daily_history(JULY_4, NYC, (2001, 2003))
    aggregator.fetch_daily_history(JULY_4, NYC, (2010, 2010))

    assert [record.year for record in aggregator.records] == [2010]
    assert aggregator.snow_depth == {2010: 10.0}


def test_fetch_yearly_scalar():
    aggregator, _, power_session = make_aggregator()
    values = aggregator.fetch_yearly_scalar("SNODP", JULY_4, NYC, (2001, 2003))

    assert values == {2001: 1.0, 2002: 2.0, 2003: 3.0}
    assert aggregator.snow_depth == values
    assert aggregator.state is AggregationState.READY
    assert power_session.calls[0]["params"]["parameters"] == "SNODP"


def test_fetch_daily_summary():
    aggregator, merra_session, _ = make_aggregator()
    summary = aggregator.fetch_daily_summary(JULY_4, NYC, (2001, 2004))

    assert set(summary.means) == {"T2M", "PRECTOTCORR", "WS10M", "SNODP"}
    assert summary.means["T2M"] == pytest.approx(2.5)
    assert summary.values["WS10M"][2004] == 4.0
    assert merra_session.calls == []
    assert aggregator.state is AggregationState.READY


def test_async_wrapper_returns_same_summary():
    aggregator, _, _ = make_aggregator()
    summary = asyncio.run(aggregator.afetch_daily_history(JULY_4, NYC, (2001, 2002)))
    assert summary == aggregator.fetch_daily_history(JULY_4, NYC, (2001, 2002))
    assert asyncio.run(aggregator.afetch_yearly_scalar("SNODP", JULY_4, NYC, (2001, 2001))) == {2001: 1.0}


def test_scalar_fetch_keeps_history_records_for_export():
    aggregator, _, _ = make_aggregator()
    aggregator.fetch_daily_history(JULY_4, NYC, (2001, 2003))
    snow = aggregator.fetch_yearly_scalar("SNODP", JULY_4, NYC, (2001, 2003))
    aggregator.fetch_daily_summary(JULY_4, NYC, (2001, 2003), parameters=["T2M"])

    assert [record.year for record in aggregator.records] == [2001, 2002, 2003]
    assert aggregator.snow_depth == snow
    lines = export_table(aggregator.records, aggregator.snow_depth).strip().split("\n")
    assert len(lines) == 1 + 3 * 24
    assert lines[1].endswith(",1.0")


def test_concurrent_requests_keep_their_own_failures():
    scalar_started = threading.Event()
    leap_merra = merra_handler()

    def slow_merra(url, params):
        scalar_started.wait(timeout=5)
        return leap_merra(url, params)

    def signalling_power(url, params):
        if params["start"] == "2010":
            scalar_started.set()
        return power_handler(url, params)

    aggregator, _, _ = make_aggregator(merra=slow_merra, power=signalling_power)

    async def run_both():
        return await asyncio.gather(
            aggregator.afetch_daily_history(CalendarDay(2, 29), NYC, (2019, 2021)),
            aggregator.afetch_yearly_scalar("T2M", JULY_4, NYC, (2010, 2010)),
        )

    summary, scalar = asyncio.run(run_both())

    assert sorted(summary.failed_years) == [2019, 2021]
    assert summary.years == (2020,)
    assert scalar == {2010: 10.0}
    assert sorted(aggregator.failed_years) == [2019, 2021]
    assert [record.year for record in aggregator.records] == [2020]
    assert aggregator.state is AggregationState.READY
