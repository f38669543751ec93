"""
Tests for the marine forecast fetcher.

Covers:
- Confidence tiers (high / medium / low)
- Grouping by rounded coordinate and 6-hour window
- One provider call per unique coordinate, shared across windows
- Per-coordinate failure isolation
- Output order and idempotence
- Cancellation
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from fuelsense.data.climatology import ClimatologyEstimator
from fuelsense.data.marine_forecast import (
    ForecastConfidence,
    MarineForecastFetcher,
    coordinate_key,
    fetch_marine_forecast,
    window_start,
)
from fuelsense.data.sea_state import SeaState, classify_sea_state
from fuelsense.errors import InvalidInput, PipelineCancelled, StructuralResponse, UpstreamUnavailable
from fuelsense.inputs import ForecastPosition
from tests.helpers import FIXED_NOW, FakeMarineClient, hourly_payload, make_series

UTC = timezone.utc


def _position(lat, lon, when):
    return {"lat": lat, "lon": lon, "datetime": when.isoformat()}


@pytest.fixture
def fetcher_factory(settings, metrics, clock):
    def build(client):
        return MarineForecastFetcher(client, settings=settings, metrics=metrics, clock=clock)
    return build


class TestGrouping:

    def test_coordinate_key_rounds_to_two_places(self):
        assert coordinate_key(1.2949, 103.8512) == (1.29, 103.85)

    @pytest.mark.parametrize("hour,expected", [(0, 0), (5, 0), (6, 6), (11, 6), (17, 12), (23, 18)])
    def test_window_start(self, hour, expected):
        when = datetime(2024, 12, 25, hour, 37, 12, tzinfo=UTC)
        assert window_start(when) == datetime(2024, 12, 25, expected, tzinfo=UTC)

    def test_groups_in_input_order(self, fetcher_factory, fake_client):
        fetcher = fetcher_factory(fake_client)
        positions = [
            ForecastPosition(lat=1.291, lon=103.851, datetime=FIXED_NOW + timedelta(hours=1)),
            ForecastPosition(lat=5.0, lon=90.0, datetime=FIXED_NOW),
            ForecastPosition(lat=1.294, lon=103.849, datetime=FIXED_NOW + timedelta(hours=4)),
            ForecastPosition(lat=1.29, lon=103.85, datetime=FIXED_NOW + timedelta(hours=7)),
        ]
        groups = fetcher.group_positions(positions)
        assert list(groups.values()) == [[0, 2], [1], [3]]


class TestConfidenceTiers:

    def test_high_confidence_from_live_sample(self, fetcher_factory):
        series = make_series(FIXED_NOW, 48, wave=2.0, wind_kt=18.0, direction=270.0)
        client = FakeMarineClient(series={(1.29, 103.85): series})
        points = fetcher_factory(client).fetch({"positions": [
            _position(1.29, 103.85, FIXED_NOW + timedelta(hours=10, minutes=30)),
        ]})
        point = points[0]
        assert point.forecast_confidence == ForecastConfidence.HIGH
        assert point.wave_height_m == 2.0
        assert point.wind_speed_kt == 18.0
        assert point.wind_direction_deg == 270.0
        assert point.sea_state == SeaState.MODERATE
        assert point.lat == 1.29 and point.lon == 103.85

    def test_beyond_horizon_is_medium_without_call(self, fetcher_factory, fake_client):
        when = FIXED_NOW + timedelta(days=17)
        points = fetcher_factory(fake_client).fetch({"positions": [_position(40.0, -30.0, when)]})
        assert points[0].forecast_confidence == ForecastConfidence.MEDIUM
        assert fake_client.calls == []
        expected = ClimatologyEstimator().estimate(40.0, -30.0, when)
        assert points[0].wave_height_m == expected.wave_height_m

    def test_exactly_at_horizon_is_live(self, fetcher_factory):
        client = FakeMarineClient(default=lambda lat, lon: make_series(FIXED_NOW, 17 * 24))
        points = fetcher_factory(client).fetch({"positions": [
            _position(0.0, 0.0, FIXED_NOW + timedelta(days=16)),
        ]})
        assert points[0].forecast_confidence == ForecastConfidence.HIGH
        assert len(client.calls) == 1

    def test_provider_failure_is_low(self, fetcher_factory, metrics):
        client = FakeMarineClient(errors={(0.0, 0.0): UpstreamUnavailable("down")})
        points = fetcher_factory(client).fetch({"positions": [_position(0.0, 0.0, FIXED_NOW)]})
        assert points[0].forecast_confidence == ForecastConfidence.LOW
        assert metrics.get_counter("provider_failures") == 1

    def test_structural_failure_is_low(self, fetcher_factory):
        client = FakeMarineClient(errors={(0.0, 0.0): StructuralResponse("missing arrays")})
        points = fetcher_factory(client).fetch({"positions": [_position(0.0, 0.0, FIXED_NOW)]})
        assert points[0].forecast_confidence == ForecastConfidence.LOW

    def test_no_sample_within_tolerance_is_low(self, fetcher_factory):
        # Series covers only the first 6 hours
        client = FakeMarineClient(default=lambda lat, lon: make_series(FIXED_NOW, 6))
        points = fetcher_factory(client).fetch({"positions": [
            _position(0.0, 0.0, FIXED_NOW + timedelta(hours=8)),
        ]})
        assert points[0].forecast_confidence == ForecastConfidence.LOW

    def test_sea_state_matches_wave_height(self, fetcher_factory, fake_client):
        positions = [_position(lat, 0.0, FIXED_NOW + timedelta(days=20)) for lat in (0.0, 30.0, 60.0)]
        for point in fetcher_factory(fake_client).fetch({"positions": positions}):
            assert point.sea_state == classify_sea_state(point.wave_height_m)


class TestBatching:

    def test_one_call_per_unique_coordinate(self, fetcher_factory, fake_client, metrics):
        positions = [
            _position(1.291, 103.851, FIXED_NOW),
            _position(1.294, 103.849, FIXED_NOW + timedelta(hours=2)),
            _position(1.29, 103.85, FIXED_NOW + timedelta(hours=13)),  # later window, same coordinate
            _position(5.0, 90.0, FIXED_NOW),
        ]
        points = fetcher_factory(fake_client).fetch({"positions": positions})
        assert len(points) == 4
        assert sorted(fake_client.calls) == [(1.29, 103.85), (5.0, 90.0)]
        assert metrics.get_counter("provider_calls") == 2

    def test_dedup_hits_count_repeat_positions_only(self, fetcher_factory, fake_client, metrics):
        positions = [
            _position(1.291, 103.851, FIXED_NOW),
            _position(1.294, 103.849, FIXED_NOW + timedelta(hours=2)),
            _position(1.29, 103.85, FIXED_NOW + timedelta(hours=13)),
            _position(5.0, 90.0, FIXED_NOW),
        ]
        fetcher_factory(fake_client).fetch({"positions": positions})
        assert metrics.get_counter("forecast_dedup_hits") == 2

    def test_no_dedup_hits_for_distinct_coordinates(self, fetcher_factory, fake_client, metrics):
        positions = [_position(float(i), 0.0, FIXED_NOW) for i in range(3)]
        fetcher_factory(fake_client).fetch({"positions": positions})
        assert metrics.get_counter("forecast_dedup_hits") == 0

    def test_failure_isolated_to_coordinate(self, fetcher_factory):
        client = FakeMarineClient(errors={(5.0, 90.0): UpstreamUnavailable("down")})
        points = fetcher_factory(client).fetch({"positions": [
            _position(1.29, 103.85, FIXED_NOW),
            _position(5.0, 90.0, FIXED_NOW),
            _position(10.0, 80.0, FIXED_NOW),
        ]})
        assert [p.forecast_confidence for p in points] == [
            ForecastConfidence.HIGH, ForecastConfidence.LOW, ForecastConfidence.HIGH,
        ]

    def test_unparseable_provider_value_isolated_to_coordinate(self, fetcher_factory, metrics):
        body = hourly_payload(FIXED_NOW, 48, wave=lambda i: "n/a" if i == 3 else 1.0)
        client = FakeMarineClient(payloads={
            (1.0, 1.0): body,
            (2.0, 2.0): hourly_payload(FIXED_NOW, 48, wave=1.0),
        })
        points = fetcher_factory(client).fetch({"positions": [
            _position(1.0, 1.0, FIXED_NOW),
            _position(2.0, 2.0, FIXED_NOW),
        ]})
        assert [p.forecast_confidence for p in points] == [ForecastConfidence.LOW, ForecastConfidence.HIGH]
        assert points[1].wave_height_m == 1.0
        assert metrics.get_counter("provider_failures") == 1

    def test_order_mirrors_input(self, fetcher_factory):
        client = FakeMarineClient(delay=0.01)
        positions = [_position(float(i), float(i), FIXED_NOW + timedelta(hours=i)) for i in range(12)]
        points = fetcher_factory(client).fetch({"positions": positions})
        assert [p.lat for p in points] == [float(i) for i in range(12)]

    def test_mixed_horizon_in_one_run(self, fetcher_factory, fake_client):
        points = fetcher_factory(fake_client).fetch({"positions": [
            _position(0.0, 0.0, FIXED_NOW),
            _position(0.0, 0.0, FIXED_NOW + timedelta(days=30)),
        ]})
        assert [p.forecast_confidence for p in points] == [ForecastConfidence.HIGH, ForecastConfidence.MEDIUM]

    def test_confidence_counters(self, fetcher_factory, fake_client, metrics):
        fetcher_factory(fake_client).fetch({"positions": [
            _position(0.0, 0.0, FIXED_NOW),
            _position(0.0, 0.0, FIXED_NOW + timedelta(days=30)),
        ]})
        assert metrics.get_counter("confidence_high") == 1
        assert metrics.get_counter("confidence_medium") == 1


class TestIdempotence:

    def test_repeat_fetch_is_identical(self, fetcher_factory, fake_client):
        positions = {"positions": [
            _position(1.29, 103.85, FIXED_NOW + timedelta(hours=h)) for h in (0, 12, 24, 36)
        ]}
        fetcher = fetcher_factory(fake_client)
        assert fetcher.fetch(positions) == fetcher.fetch(positions)

    def test_estimates_are_repeatable(self, fetcher_factory):
        client = FakeMarineClient(errors={(0.0, 0.0): UpstreamUnavailable("down")})
        request = {"positions": [_position(0.0, 0.0, FIXED_NOW)]}
        fetcher = fetcher_factory(client)
        assert fetcher.fetch(request) == fetcher.fetch(request)


class TestFailures:

    def test_invalid_input_before_any_call(self, fetcher_factory, fake_client):
        with pytest.raises(InvalidInput):
            fetcher_factory(fake_client).fetch({"positions": [{"lat": 0.0, "lon": 0.0, "datetime": "soon"}]})
        assert fake_client.calls == []

    def test_cancelled_run(self, fetcher_factory):
        client = FakeMarineClient(delay=0.5)
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(PipelineCancelled):
            fetcher_factory(client).fetch(
                {"positions": [_position(0.0, 0.0, FIXED_NOW)]},
                cancel_event=cancel,
            )


def test_to_dict_shape(fetcher_factory, fake_client):
    point = fetcher_factory(fake_client).fetch({"positions": [_position(1.29, 103.85, FIXED_NOW)]})[0]
    data = point.to_dict()
    assert data["position"] == {"lat": 1.29, "lon": 103.85}
    assert data["datetime"] == "2024-12-20T00:00:00Z"
    assert data["forecast_confidence"] == "high"
    assert data["sea_state"] in {s.value for s in SeaState}


def test_entry_point(settings, fake_client):
    points = fetch_marine_forecast(
        {"positions": [_position(0.0, 0.0, datetime.now(UTC) + timedelta(days=40))]},
        client=fake_client,
        settings=settings,
    )
    assert points[0].forecast_confidence == ForecastConfidence.MEDIUM
