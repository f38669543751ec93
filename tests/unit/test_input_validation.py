"""
Tests for request validation at the pipeline entry points.

Every entry point must reject malformed input with InvalidInput before
any provider call is made.
"""

from datetime import datetime, timezone

import pytest

from fuelsense.errors import InvalidInput
from fuelsense.inputs import (
    BunkerPort,
    MarineForecastRequest,
    PortWeatherRequest,
    WeatherConsumptionRequest,
    parse_input,
)

UTC = timezone.utc


def _port(**overrides):
    port = {
        "port_code": "SGSIN",
        "port_name": "Singapore",
        "lat": 1.29,
        "lon": 103.85,
        "estimated_arrival": "2024-12-25T08:00:00Z",
    }
    port.update(overrides)
    return port


def _consumption(**overrides):
    request = {
        "forecast_points": [{
            "datetime": "2024-12-25T08:00:00Z",
            "wave_height_m": 2.0,
            "wind_speed_kt": 15.0,
            "wind_direction_deg": 90.0,
        }],
        "base_consumption_mt": 750,
        "vessel_heading_deg": 90,
    }
    request.update(overrides)
    return request


class TestParseInput:

    def test_mapping_is_validated(self):
        req = parse_input(MarineForecastRequest, {"positions": [
            {"lat": 1.0, "lon": 2.0, "datetime": "2024-12-25T08:00:00Z"},
        ]})
        assert req.positions[0].datetime == datetime(2024, 12, 25, 8, tzinfo=UTC)

    def test_instance_passes_through(self):
        req = PortWeatherRequest(bunker_ports=[BunkerPort(**_port())])
        assert parse_input(PortWeatherRequest, req) is req

    def test_datetime_objects_normalised_to_utc(self):
        req = parse_input(MarineForecastRequest, {"positions": [
            {"lat": 1.0, "lon": 2.0, "datetime": datetime(2024, 12, 25, 8)},
        ]})
        assert req.positions[0].datetime.tzinfo is not None

    def test_all_issues_reported(self):
        with pytest.raises(InvalidInput) as exc_info:
            parse_input(MarineForecastRequest, {"positions": [
                {"lat": 95.0, "lon": 200.0, "datetime": "yesterday"},
            ]})
        message = exc_info.value.message
        assert message.startswith("Input validation failed: ")
        assert "positions.0.lat" in message
        assert "positions.0.lon" in message
        assert "ISO 8601" in message

    def test_to_dict(self):
        error = InvalidInput("Input validation failed: positions: too short")
        assert error.to_dict() == {
            "error": "InvalidInput",
            "code": "VALIDATION_ERROR",
            "detail": "Input validation failed: positions: too short",
        }


class TestMarineForecastRequest:

    def test_empty_positions_rejected(self):
        with pytest.raises(InvalidInput):
            parse_input(MarineForecastRequest, {"positions": []})


class TestPortWeatherRequest:

    def test_defaults(self):
        req = parse_input(PortWeatherRequest, {"bunker_ports": [_port()]})
        assert req.bunker_ports[0].bunkering_duration_hours is None

    @pytest.mark.parametrize("overrides", [
        {"bunkering_duration_hours": 49},
        {"bunkering_duration_hours": 0},
        {"port_code": ""},
        {"port_name": ""},
        {"lat": -91},
        {"estimated_arrival": "2024-13-45"},
    ])
    def test_invalid_port(self, overrides):
        with pytest.raises(InvalidInput):
            parse_input(PortWeatherRequest, {"bunker_ports": [_port(**overrides)]})

    def test_duration_at_limit_accepted(self):
        req = parse_input(PortWeatherRequest, {"bunker_ports": [_port(bunkering_duration_hours=48)]})
        assert req.bunker_ports[0].bunkering_duration_hours == 48

    def test_empty_port_list_rejected(self):
        with pytest.raises(InvalidInput):
            parse_input(PortWeatherRequest, {"bunker_ports": []})


class TestWeatherConsumptionRequest:

    def test_valid(self):
        req = parse_input(WeatherConsumptionRequest, _consumption(fuel_type_breakdown={"VLSFO": 600, "LSGO": 150}))
        assert req.fuel_type_breakdown == {"VLSFO": 600, "LSGO": 150}

    @pytest.mark.parametrize("overrides", [
        {"base_consumption_mt": 0},
        {"vessel_heading_deg": 360},
        {"vessel_heading_deg": -1},
        {"forecast_points": []},
        {"fuel_type_breakdown": {"VLSFO": -5}},
        {"fuel_type_breakdown": {"": 10}},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(InvalidInput):
            parse_input(WeatherConsumptionRequest, _consumption(**overrides))

    def test_negative_wave_rejected(self):
        point = {
            "datetime": "2024-12-25T08:00:00Z",
            "wave_height_m": -0.1,
            "wind_speed_kt": 15.0,
            "wind_direction_deg": 90.0,
        }
        with pytest.raises(InvalidInput):
            parse_input(WeatherConsumptionRequest, _consumption(forecast_points=[point]))
