"""Historical route analysis over a vessel's stored track.

Port dwell detection walks the track in timestamp order and tracks
enter/exit transitions against the reference port areas:

  - a point inside a port area opens a dwell (closing any dwell in a
    different port at that point's timestamp)
  - a point outside every port area closes the open dwell
  - a dwell still open at the last point is closed at the last timestamp

Usage:
    analyzer = HistoryAnalyzer(store, gazetteer)
    analysis = analyzer.analyze(vessel_id, days=30)
"""
from __future__ import annotations

import logging
import statistics
from datetime import datetime, timedelta
from typing import Optional

from fleetwatch.schemas.analytics import (
    HeadingSample,
    HistoricalAnalysis,
    LatLon,
    PerformanceMetrics,
    RouteOptimization,
    SpeedSample,
)
from fleetwatch.schemas.vessel import TrackPoint
from fleetwatch.store import VesselStore, utcnow
from fleetwatch.utils.gazetteer import Gazetteer
from fleetwatch.utils.geo import haversine_km, initial_bearing

logger = logging.getLogger(__name__)

KNOT_TO_KMH = 1.852
FUEL_PER_KM = 0.5
_BASE_FUEL_EFFICIENCY = 80.0
_FAST_SPEED_KN = 20.0
_LONG_ROUTE_KM = 1000.0


def path_distance_km(track: list[TrackPoint]) -> float:
    return sum(
        haversine_km(a.lat, a.lon, b.lat, b.lon)
        for a, b in zip(track, track[1:])
    )


def route_efficiency(track: list[TrackPoint]) -> float:
    """Direct first-to-last distance as a percentage of the travelled path."""
    if len(track) < 2:
        return 0.0
    path = path_distance_km(track)
    if path <= 0:
        return 0.0
    first, last = track[0], track[-1]
    return haversine_km(first.lat, first.lon, last.lat, last.lon) / path * 100


def fuel_efficiency(average_speed: float, total_distance_km: float) -> float:
    speed_penalty = (average_speed - _FAST_SPEED_KN) * 2 if average_speed > _FAST_SPEED_KN else 0.0
    distance_bonus = 5.0 if total_distance_km > _LONG_ROUTE_KM else 0.0
    return max(0.0, _BASE_FUEL_EFFICIENCY - speed_penalty + distance_bonus)


class HistoryAnalyzer:
    def __init__(self, store: VesselStore, gazetteer: Gazetteer, lookback_days: int = 30):
        self._store = store
        self._gazetteer = gazetteer
        self._lookback_days = lookback_days

    def _window(self, vessel_id: int, days: int, now: Optional[datetime]) -> list[TrackPoint]:
        cutoff = (now or utcnow()) - timedelta(days=days)
        return [p for p in self._store.get_track(vessel_id) if p.timestamp >= cutoff]

    def ports_visited(self, track: list[TrackPoint]) -> list[str]:
        """Every reference port whose area contains at least one point, in first-visit order."""
        visited: dict[str, None] = {}
        for point in track:
            for port in self._gazetteer.ports():
                if port.name not in visited and port.contains(point.lat, point.lon):
                    visited[port.name] = None
        return list(visited)

    def time_at_ports(self, track: list[TrackPoint]) -> dict[str, float]:
        """Hours spent per reference port."""
        hours: dict[str, float] = {}
        current: Optional[str] = None
        entered_at: Optional[datetime] = None

        def close(at: datetime) -> None:
            hours[current] = hours.get(current, 0.0) + (at - entered_at).total_seconds() / 3600

        for point in track:
            port = self._gazetteer.port_at(point.lat, point.lon)
            if port is not None and port.name != current:
                if current is not None:
                    close(point.timestamp)
                current, entered_at = port.name, point.timestamp
            elif port is None and current is not None:
                close(point.timestamp)
                current, entered_at = None, None

        if current is not None and track:
            close(track[-1].timestamp)
        return hours

    def analyze(
        self, vessel_id: int, days: Optional[int] = None, now: Optional[datetime] = None
    ) -> Optional[HistoricalAnalysis]:
        vessel = self._store.get_by_id(vessel_id)
        if vessel is None:
            return None
        if days is None:
            days = self._lookback_days
        track = self._window(vessel_id, days, now)
        if len(track) < 2:
            return None

        speeds = [p.speed for p in track if p.speed is not None]
        return HistoricalAnalysis(
            vessel_id=vessel_id,
            vessel_name=vessel.name,
            days=days,
            point_count=len(track),
            total_distance_km=path_distance_km(track),
            average_speed_kn=statistics.fmean(speeds) if speeds else 0.0,
            max_speed_kn=max(speeds, default=0.0),
            min_speed_kn=min(speeds, default=0.0),
            route_efficiency=route_efficiency(track),
            ports_visited=self.ports_visited(track),
            time_at_ports=self.time_at_ports(track),
            speed_profile=[
                SpeedSample(timestamp=p.timestamp, speed=p.speed or 0.0, location=LatLon(lat=p.lat, lon=p.lon))
                for p in track
            ],
            heading_changes=[
                HeadingSample(timestamp=p.timestamp, heading=p.heading, location=LatLon(lat=p.lat, lon=p.lon))
                for p in track
                if p.heading is not None
            ],
        )

    def performance_metrics(
        self, vessel_id: int, now: Optional[datetime] = None
    ) -> Optional[PerformanceMetrics]:
        analysis = self.analyze(vessel_id, now=now)
        if analysis is None:
            return None
        port_hours = list(analysis.time_at_ports.values())
        return PerformanceMetrics(
            vessel_id=vessel_id,
            fuel_efficiency=fuel_efficiency(analysis.average_speed_kn, analysis.total_distance_km),
            on_time_performance=None,
            route_adherence=analysis.route_efficiency,
            average_port_time_hours=statistics.fmean(port_hours) if port_hours else 0.0,
        )

    def route_optimization(self, vessel_id: int) -> Optional[RouteOptimization]:
        """Compare the travelled track with a direct leg to the destination."""
        vessel = self._store.get_by_id(vessel_id)
        if vessel is None or not vessel.destination:
            return None
        port = self._gazetteer.resolve(vessel.destination)
        if port is None:
            return None
        track = self._store.get_track(vessel_id)
        if len(track) < 2:
            return None

        current_km = path_distance_km(track)
        optimized_km = haversine_km(vessel.lat, vessel.lon, port.lat, port.lon)
        saved_km = current_km - optimized_km
        time_saved = None
        if vessel.speed > 0:
            time_saved = saved_km / (vessel.speed * KNOT_TO_KMH) * 60

        return RouteOptimization(
            vessel_id=vessel_id,
            destination=vessel.destination,
            current_route=[LatLon(lat=p.lat, lon=p.lon) for p in track],
            optimized_route=[LatLon(lat=vessel.lat, lon=vessel.lon), LatLon(lat=port.lat, lon=port.lon)],
            current_distance_km=current_km,
            optimized_distance_km=optimized_km,
            distance_saved_km=saved_km,
            time_saved_minutes=time_saved,
            fuel_saved=saved_km * FUEL_PER_KM,
            efficiency=optimized_km / current_km * 100 if optimized_km > 0 and current_km > 0 else 0.0,
            bearing_to_destination=initial_bearing(vessel.lat, vessel.lon, port.lat, port.lon),
        )
