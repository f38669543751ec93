"""Unit tests for the historical (climatological) estimator."""

from datetime import datetime, timezone

import pytest

from fuelsense.data.climatology import ClimatologyEstimator

UTC = timezone.utc


@pytest.fixture
def estimator():
    return ClimatologyEstimator()


def test_deterministic_for_same_input(estimator):
    when = datetime(2025, 3, 1, 6, tzinfo=UTC)
    assert estimator.estimate(12.5, 60.1, when) == estimator.estimate(12.5, 60.1, when)


def test_varies_with_hour(estimator):
    a = estimator.estimate(12.5, 60.1, datetime(2025, 3, 1, 6, tzinfo=UTC))
    b = estimator.estimate(12.5, 60.1, datetime(2025, 3, 1, 7, tzinfo=UTC))
    assert a != b


@pytest.mark.parametrize("lat,base_wave,base_wind", [
    (5.0, 1.0, 10.0),
    (-5.0, 1.0, 10.0),
    (25.0, 1.5, 15.0),
    (-35.0, 1.5, 15.0),
    (50.0, 2.5, 22.0),
    (-55.0, 2.5, 22.0),
])
def test_latitude_bands_summer(estimator, lat, base_wave, base_wind):
    estimate = estimator.estimate(lat, 0.0, datetime(2025, 7, 15, 12, tzinfo=UTC))
    assert base_wave * 0.9 - 0.01 <= estimate.wave_height_m <= base_wave * 1.1 + 0.01
    assert base_wind * 0.9 - 0.1 <= estimate.wind_speed_kt <= base_wind * 1.1 + 0.1


def test_rougher_towards_high_latitudes(estimator):
    when = datetime(2025, 7, 15, 12, tzinfo=UTC)
    tropical = estimator.estimate(2.0, 0.0, when)
    high = estimator.estimate(55.0, 0.0, when)
    assert high.wave_height_m > tropical.wave_height_m
    assert high.wind_speed_kt > tropical.wind_speed_kt


@pytest.mark.parametrize("month", [12, 1, 2])
def test_boreal_winter_amplifies(estimator, month):
    estimate = estimator.estimate(25.0, 0.0, datetime(2025, month, 10, 0, tzinfo=UTC))
    assert estimate.wave_height_m >= 1.5 * 1.3 * 0.9 - 0.01
    assert estimate.wind_speed_kt >= 15.0 * 1.3 * 0.9 - 0.1


def test_direction_in_range(estimator):
    for lat in (-60.0, -20.0, -1.0, 0.0, 1.0, 20.0, 60.0):
        for hour in range(0, 24, 3):
            estimate = estimator.estimate(lat, 10.0, datetime(2025, 1, 1, hour, tzinfo=UTC))
            assert 0.0 <= estimate.wind_direction_deg < 360.0


def test_values_are_plain_floats(estimator):
    estimate = estimator.estimate(10.0, 10.0, datetime(2025, 1, 1, tzinfo=UTC))
    assert type(estimate.wave_height_m) is float
    assert type(estimate.wind_speed_kt) is float
