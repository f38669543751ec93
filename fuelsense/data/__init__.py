"""Marine weather data: provider client, historical estimates and forecast fetching."""

from .sea_state import SeaState, classify_sea_state
from .open_meteo_client import HourlySample, HourlySeries, OpenMeteoMarineClient
from .climatology import ClimatologyEstimator, HistoricalEstimate
from .marine_forecast import (
    ForecastConfidence,
    ForecastPoint,
    MarineForecastFetcher,
    fetch_marine_forecast,
)

__all__ = [
    'SeaState',
    'classify_sea_state',
    'HourlySample',
    'HourlySeries',
    'OpenMeteoMarineClient',
    'ClimatologyEstimator',
    'HistoricalEstimate',
    'ForecastConfidence',
    'ForecastPoint',
    'MarineForecastFetcher',
    'fetch_marine_forecast',
]
