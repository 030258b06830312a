"""Arrival-time prediction for vessels heading to a known reference port.

The weather term is a placeholder heuristic: a per-status delay table, a
slow-speed penalty and a bounded random jitter. It is not derived from real
weather data. Set ETA_WEATHER_JITTER_HOURS=0 or ETA_JITTER_SEED for
reproducible output.
"""
from __future__ import annotations

import logging
import random
import statistics
from datetime import timedelta
from typing import Optional

from fleetwatch.schemas.analytics import ETAPrediction
from fleetwatch.schemas.vessel import TrackPoint
from fleetwatch.store import VesselStore, utcnow
from fleetwatch.utils.gazetteer import Gazetteer
from fleetwatch.utils.geo import haversine_km

logger = logging.getLogger(__name__)

KNOT_TO_KMH = 1.852
SLOW_SPEED_KN = 5.0
SLOW_SPEED_DELAY_HOURS = 2.0
MIN_POINTS_FOR_CONFIDENCE = 5

# Hours of expected delay by navigational status
STATUS_DELAY_HOURS: dict[str, float] = {
    "Under Way": 0.0,
    "Anchored": 2.0,
    "Restricted Manoeuvrability": 4.0,
    "Constrained by Draught": 3.0,
    "Aground": 24.0,
    "Engaged in Fishing": 1.0,
}


def average_track_speed(track: list[TrackPoint], default: float = 10.0) -> float:
    """Mean of pairwise-averaged consecutive speeds.

    A pair is skipped when either speed is missing or zero; *default* is
    returned when no pair qualifies.
    """
    pair_means = [
        (prev.speed + curr.speed) / 2
        for prev, curr in zip(track, track[1:])
        if prev.speed and curr.speed
    ]
    return statistics.fmean(pair_means) if pair_means else default


def track_confidence(track: list[TrackPoint], average_speed: float) -> float:
    if len(track) < MIN_POINTS_FOR_CONFIDENCE:
        return 0.3
    speeds = [p.speed for p in track if p.speed]
    if not speeds or average_speed <= 0:
        return 0.5
    mad = statistics.fmean(abs(s - average_speed) for s in speeds)
    consistency = max(0.0, 1 - mad / average_speed)
    return min(0.95, max(0.1, consistency * 0.8 + 0.2))


class ETAPredictor:
    def __init__(
        self,
        store: VesselStore,
        gazetteer: Gazetteer,
        default_speed_kn: float = 10.0,
        jitter_hours: float = 2.0,
        rng: Optional[random.Random] = None,
    ):
        self._store = store
        self._gazetteer = gazetteer
        self._default_speed = default_speed_kn
        self._jitter_hours = jitter_hours
        self._rng = rng or random.Random()

    def weather_impact(self, status: str, average_speed: float) -> float:
        delay = STATUS_DELAY_HOURS.get(status, 0.0)
        if average_speed < SLOW_SPEED_KN:
            delay += SLOW_SPEED_DELAY_HOURS
        if self._jitter_hours > 0:
            delay += self._rng.uniform(0, self._jitter_hours)
        return delay

    def predict(self, vessel_id: int) -> Optional[ETAPrediction]:
        """Returns None when the vessel, its destination or enough track is missing."""
        vessel = self._store.get_by_id(vessel_id)
        if vessel is None or not vessel.destination:
            return None
        port = self._gazetteer.resolve(vessel.destination)
        if port is None:
            logger.debug("Destination %r not in gazetteer", vessel.destination)
            return None
        track = self._store.get_track(vessel_id)
        if len(track) < 2:
            return None

        average_speed = average_track_speed(track, self._default_speed)
        remaining_km = haversine_km(vessel.lat, vessel.lon, port.lat, port.lon)
        hours = remaining_km / (average_speed * KNOT_TO_KMH)
        weather = self.weather_impact(vessel.status, average_speed)

        return ETAPrediction(
            vessel_id=vessel_id,
            destination=vessel.destination,
            estimated_arrival=utcnow() + timedelta(hours=hours + weather),
            confidence=track_confidence(track, average_speed),
            remaining_distance_km=remaining_km,
            average_speed_kn=average_speed,
            weather_impact_hours=weather,
        )

    def predict_all(self) -> list[ETAPrediction]:
        """Predictions for every under-way vessel with a destination."""
        predictions = []
        for vessel in self._store.get_all():
            if vessel.destination and vessel.status == "Under Way":
                prediction = self.predict(vessel.vessel_id)
                if prediction is not None:
                    predictions.append(prediction)
        return predictions
