import datetime as dt

import pytest

from climate_odds.aggregation.reduce import (
    DEFAULT_BANDS,
    frequency_distribution,
    hour_samples,
    resolve_bands,
    scalar_mean,
    summarise,
)
from climate_odds.core.models import DailyRecord


def make_record(year, temperature=None, wind=None, precipitation=None, rate=None):
    temperature = temperature if temperature is not None else [10.0] * 24
    wind = wind if wind is not None else [2.0] * 24
    precipitation = precipitation if precipitation is not None else [0.0] * 24
    return DailyRecord(
        date=dt.date(year, 7, 4),
        temperature=tuple(temperature),
        wind_speed=tuple(wind),
        precipitation=tuple(precipitation),
        precipitation_rate=tuple(rate) if rate is not None else (),
    )


def test_hour_mean_skips_years_missing_that_hour():
    temps_a = [10.0] * 24
    temps_b = [20.0] * 24
    temps_c = [30.0] * 24
    temps_b[5] = None
    summary = summarise([make_record(2001, temps_a), make_record(2002, temps_b), make_record(2003, temps_c)])

    assert summary.hourly["temperature"][5] == pytest.approx(20.0)
    assert summary.hourly["temperature"][6] == pytest.approx(20.0)
    assert summary.years == (2001, 2002, 2003)


def test_hour_with_no_data_is_none():
    temps = [10.0] * 24
    temps[3] = None
    summary = summarise([make_record(2001, temps), make_record(2002, list(temps))])
    assert summary.hourly["temperature"][3] is None


def test_empty_input_gives_all_none():
    summary = summarise([])
    assert summary.hourly["wind_speed"] == (None,) * 24
    assert summary.bands["temperature"] == {name: None for name in DEFAULT_BANDS}
    assert summary.overall["precipitation"] is None
    assert summary.snow_depth is None
    assert summary.years == ()


def test_band_and_overall_means():
    temps = [0.0] * 8 + [10.0] * 8 + [20.0] * 8
    summary = summarise([make_record(2010, temps), make_record(2011, temps)])

    assert summary.bands["temperature"] == {
        "night": pytest.approx(0.0),
        "morning": pytest.approx(10.0),
        "afternoon": pytest.approx(20.0),
    }
    assert summary.overall["temperature"] == pytest.approx(10.0)


def test_precipitation_bands_are_totals_from_rates():
    rates = [0.0001] * 8 + [None] * 8 + [0.0002] * 8
    mm = [0.36] * 8 + [None] * 8 + [0.72] * 8
    summary = summarise([make_record(2015, precipitation=mm, rate=rates)])

    assert summary.bands["precipitation"]["night"] == pytest.approx(0.0001 * 8 * 3600)
    assert summary.bands["precipitation"]["morning"] is None
    assert summary.bands["precipitation"]["afternoon"] == pytest.approx(0.0002 * 8 * 3600)
    assert summary.overall["precipitation"] == pytest.approx(0.00015 * 24 * 3600)
    assert summary.hourly["precipitation"][0] == pytest.approx(0.36)


def test_precipitation_rate_falls_back_to_hourly_mm():
    summary = summarise([make_record(2015, precipitation=[3.6] * 24)])
    assert summary.overall["precipitation"] == pytest.approx(3.6 * 24)


def test_custom_bands_and_snow_mean():
    bands = resolve_bands({"early": [0, 12], "late": [12, 24]})
    temps = [5.0] * 12 + [15.0] * 12
    summary = summarise([make_record(2020, temps)], {2020: 4.0, 2019: 2.0}, bands=bands, failed_years={2018: "503"})

    assert set(summary.bands["temperature"]) == {"early", "late"}
    assert summary.bands["temperature"]["late"] == pytest.approx(15.0)
    assert summary.snow_depth == pytest.approx(3.0)
    assert summary.failed_years == {2018: "503"}


def test_summary_does_not_depend_on_record_order():
    records = [make_record(year, [float(year - 2000)] * 24) for year in (2003, 2001, 2002)]
    assert summarise(records) == summarise(list(reversed(records)))
    assert summarise(records) == summarise(records)


@pytest.mark.parametrize("raw", [{"bad": [8, 8]}, {"bad": [-1, 4]}, {"bad": [20, 25]}, {"bad": "night"}])
def test_resolve_bands_rejects_bad_bounds(raw):
    with pytest.raises(ValueError):
        resolve_bands(raw)


def test_resolve_bands_defaults():
    assert resolve_bands(None) == dict(DEFAULT_BANDS)
    assert resolve_bands({}) == dict(DEFAULT_BANDS)


def test_scalar_mean():
    assert scalar_mean({2001: 1.0, 2000: 3.0}) == 2.0
    assert scalar_mean({}) is None


def test_hour_samples_skips_missing_years():
    temps = [1.0] * 24
    temps[12] = None
    records = [make_record(2002, [2.0] * 24), make_record(2001, temps), make_record(2000, [0.5] * 24)]
    assert hour_samples(records, "temperature", 12) == {2000: 0.5, 2002: 2.0}
    with pytest.raises(ValueError):
        hour_samples(records, "temperature", 24)


def test_frequency_distribution_buckets():
    assert frequency_distribution([0.1, 0.4, 0.6, 1.2, 1.4, None]) == [(0.0, 2), (0.5, 1), (1.0, 2)]
    assert frequency_distribution([]) == []
    with pytest.raises(ValueError):
        frequency_distribution([1.0], bin_width=0)
