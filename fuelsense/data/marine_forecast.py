"""
Marine forecast fetching for vessel positions.

For each (lat, lon, datetime) position returns wave and wind conditions
tagged with a confidence tier:

- high:   live provider sample within the match tolerance (default 1h)
- medium: position beyond the provider horizon -> historical estimate,
          no live call made
- low:    live call failed after retries, or no sample close enough ->
          historical estimate

Positions are grouped by rounded coordinate (2 dp) and 6-hour UTC window.
The provider returns a whole hourly series per coordinate, so each unique
coordinate is fetched once per run; concurrent lookups of the same
coordinate share one in-flight future. Distinct coordinates are fetched
concurrently on a bounded worker pool.
"""

import logging
import threading
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from fuelsense.config import Settings, get_settings
from fuelsense.data.climatology import ClimatologyEstimator
from fuelsense.data.open_meteo_client import HourlySeries, OpenMeteoMarineClient
from fuelsense.data.sea_state import SeaState, classify_sea_state
from fuelsense.errors import PipelineCancelled, StructuralResponse, UpstreamUnavailable
from fuelsense.inputs import ForecastPosition, MarineForecastRequest, parse_input
from fuelsense.metrics import FetchMetrics
from fuelsense.resilience import await_future
from fuelsense.routes.geo import format_utc

logger = logging.getLogger(__name__)

CoordKey = Tuple[float, float]


class ForecastConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ForecastPoint:
    """Sea conditions at one requested position and time."""
    lat: float
    lon: float
    datetime: datetime
    wave_height_m: float
    wind_speed_kt: float
    wind_direction_deg: float
    sea_state: SeaState
    forecast_confidence: ForecastConfidence

    def to_dict(self) -> dict:
        return {
            "position": {"lat": self.lat, "lon": self.lon},
            "datetime": format_utc(self.datetime),
            "wave_height_m": self.wave_height_m,
            "wind_speed_kt": self.wind_speed_kt,
            "wind_direction_deg": self.wind_direction_deg,
            "sea_state": self.sea_state.value,
            "forecast_confidence": self.forecast_confidence.value,
        }


def coordinate_key(lat: float, lon: float, precision: int = 2) -> CoordKey:
    return (round(lat, precision), round(lon, precision))


def window_start(when: datetime, window_hours: int = 6) -> datetime:
    """Start of the UTC window containing `when` (floor(hour / n) * n)."""
    return when.replace(
        hour=(when.hour // window_hours) * window_hours,
        minute=0, second=0, microsecond=0,
    )


class InFlightRequests:
    """
    Per-run map of coordinate -> pending provider call.

    submit() starts the call for a coordinate once; get() hands every
    position the same future. Each get() after the first for a coordinate
    is a provider call saved and counts as a dedup hit.
    """

    def __init__(self, executor: ThreadPoolExecutor, fetch: Callable[[CoordKey], HourlySeries],
                 metrics: FetchMetrics):
        self._executor = executor
        self._fetch = fetch
        self._metrics = metrics
        self._futures: Dict[CoordKey, Future] = {}
        self._claimed: Set[CoordKey] = set()
        self._lock = threading.Lock()

    def _start(self, key: CoordKey) -> Future:
        future = self._futures.get(key)
        if future is None:
            future = self._executor.submit(self._fetch, key)
            self._futures[key] = future
        return future

    def submit(self, key: CoordKey) -> Future:
        with self._lock:
            return self._start(key)

    def get(self, key: CoordKey) -> Future:
        with self._lock:
            future = self._start(key)
            if key in self._claimed:
                self._metrics.increment("forecast_dedup_hits")
            else:
                self._claimed.add(key)
            return future

    def __len__(self) -> int:
        with self._lock:
            return len(self._futures)


class MarineForecastFetcher:
    """
    Fetch tiered-confidence marine forecasts for a list of positions.

    Usage:
        fetcher = MarineForecastFetcher(client=OpenMeteoMarineClient())
        points = fetcher.fetch({"positions": [
            {"lat": 1.29, "lon": 103.85, "datetime": "2024-12-25T08:00:00Z"},
        ]})
    """

    def __init__(
        self,
        client: OpenMeteoMarineClient,
        settings: Optional[Settings] = None,
        estimator: Optional[ClimatologyEstimator] = None,
        metrics: Optional[FetchMetrics] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            client: Provider client (anything with fetch_hourly(lat, lon, cancel_event))
            settings: Horizon, tolerance, batching and pool settings
            estimator: Historical estimate source
            metrics: Shared metrics collector
            clock: Returns the current UTC time ("now" for the horizon test)
        """
        self.client = client
        self.settings = settings or get_settings()
        self.estimator = estimator or ClimatologyEstimator()
        self.metrics = metrics or FetchMetrics()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def group_positions(self, positions: List[ForecastPosition]) -> Dict[Tuple[CoordKey, datetime], List[int]]:
        """Group position indices by rounded coordinate and UTC window, in input order."""
        groups: Dict[Tuple[CoordKey, datetime], List[int]] = {}
        for idx, pos in enumerate(positions):
            key = (
                coordinate_key(pos.lat, pos.lon, self.settings.coordinate_precision),
                window_start(pos.datetime, self.settings.batch_window_hours),
            )
            groups.setdefault(key, []).append(idx)
        return groups

    def fetch(self, request: Any, cancel_event: Optional[threading.Event] = None) -> List[ForecastPoint]:
        """
        Fetch forecasts for every requested position.

        Args:
            request: MarineForecastRequest or mapping with a positions list
            cancel_event: Cancels pending and in-flight calls once set

        Returns:
            One ForecastPoint per input position, same order

        Raises:
            InvalidInput: If the request fails validation
            PipelineCancelled: If cancel_event is set during the run
        """
        req = parse_input(MarineForecastRequest, request)
        positions = req.positions
        now = self._clock()
        horizon = timedelta(days=self.settings.forecast_days)

        groups = self.group_positions(positions)
        live_keys = []
        for (coord, _window), indices in groups.items():
            in_horizon = any(positions[i].datetime - now <= horizon for i in indices)
            if in_horizon and coord not in live_keys:
                live_keys.append(coord)

        results: List[Optional[ForecastPoint]] = [None] * len(positions)
        workers = max(1, min(self.settings.forecast_max_workers, len(live_keys)))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="forecast") as executor:
            inflight = InFlightRequests(
                executor,
                lambda key: self._fetch_coordinate(key, cancel_event),
                self.metrics,
            )
            for coord in live_keys:
                inflight.submit(coord)

            try:
                for (coord, _window), indices in groups.items():
                    for idx in indices:
                        results[idx] = self._resolve(positions[idx], coord, inflight, now, horizon, cancel_event)
            except PipelineCancelled:
                executor.shutdown(wait=False, cancel_futures=True)
                logger.warning(f"Marine forecast run cancelled with {len(live_keys)} coordinates in flight")
                raise

        tally = Counter(point.forecast_confidence.value for point in results)
        logger.info(
            f"Marine forecast: {len(positions)} positions, {len(groups)} coordinate/window groups, "
            f"{len(inflight)} provider calls, confidence high={tally['high']} "
            f"medium={tally['medium']} low={tally['low']}"
        )
        return results

    def _fetch_coordinate(self, coord: CoordKey, cancel_event: Optional[threading.Event]) -> HourlySeries:
        """Worker body: one provider call (with retries) for a rounded coordinate."""
        self.metrics.increment("provider_calls")
        try:
            with self.metrics.timer("provider_call"):
                return self.client.fetch_hourly(coord[0], coord[1], cancel_event=cancel_event)
        except (UpstreamUnavailable, StructuralResponse) as e:
            self.metrics.increment("provider_failures")
            logger.warning(
                f"Forecast unavailable for lat={coord[0]}, lon={coord[1]} "
                f"({type(e).__name__}: {e}); using historical estimate"
            )
            raise

    def _resolve(
        self,
        position: ForecastPosition,
        coord: CoordKey,
        inflight: InFlightRequests,
        now: datetime,
        horizon: timedelta,
        cancel_event: Optional[threading.Event],
    ) -> ForecastPoint:
        if position.datetime - now > horizon:
            return self._estimate(position, ForecastConfidence.MEDIUM)

        future = inflight.get(coord)
        try:
            series = await_future(future, cancel_event)
        except (UpstreamUnavailable, StructuralResponse):
            return self._estimate(position, ForecastConfidence.LOW)

        tolerance = timedelta(hours=self.settings.forecast_match_tolerance_hours)
        sample = series.nearest(position.datetime, tolerance)
        if sample is None:
            logger.debug(
                f"No hourly sample within {tolerance} of {format_utc(position.datetime)} "
                f"at lat={coord[0]}, lon={coord[1]}"
            )
            return self._estimate(position, ForecastConfidence.LOW)

        self.metrics.increment("confidence_high")
        return ForecastPoint(
            lat=position.lat,
            lon=position.lon,
            datetime=position.datetime,
            wave_height_m=sample.wave_height_m,
            wind_speed_kt=sample.wind_speed_kt,
            wind_direction_deg=sample.wind_direction_deg,
            sea_state=classify_sea_state(sample.wave_height_m),
            forecast_confidence=ForecastConfidence.HIGH,
        )

    def _estimate(self, position: ForecastPosition, confidence: ForecastConfidence) -> ForecastPoint:
        self.metrics.increment(f"confidence_{confidence.value}")
        estimate = self.estimator.estimate(position.lat, position.lon, position.datetime)
        return ForecastPoint(
            lat=position.lat,
            lon=position.lon,
            datetime=position.datetime,
            wave_height_m=estimate.wave_height_m,
            wind_speed_kt=estimate.wind_speed_kt,
            wind_direction_deg=estimate.wind_direction_deg,
            sea_state=classify_sea_state(estimate.wave_height_m),
            forecast_confidence=confidence,
        )


def fetch_marine_forecast(
    request: Any,
    client: OpenMeteoMarineClient,
    settings: Optional[Settings] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[ForecastPoint]:
    """Entry point: positions -> tiered-confidence forecast points."""
    return MarineForecastFetcher(client, settings=settings).fetch(request, cancel_event=cancel_event)
