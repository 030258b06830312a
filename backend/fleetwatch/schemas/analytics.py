"""Computed analytics value objects. Never stored; rebuilt per request."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

GeofenceEventType = Literal["entry", "exit", "violation"]


class LatLon(BaseModel):
    lat: float
    lon: float


class GeofenceAlert(BaseModel):
    vessel_id: int
    vessel_name: str
    zone_id: int
    zone_name: str
    alert_type: GeofenceEventType
    timestamp: datetime
    distance_m: float


class ETAPrediction(BaseModel):
    vessel_id: int
    destination: str
    estimated_arrival: datetime
    confidence: float
    remaining_distance_km: float
    average_speed_kn: float
    weather_impact_hours: float


class SpeedSample(BaseModel):
    timestamp: datetime
    speed: float
    location: LatLon


class HeadingSample(BaseModel):
    timestamp: datetime
    heading: float
    location: LatLon


class HistoricalAnalysis(BaseModel):
    vessel_id: int
    vessel_name: str
    days: int
    point_count: int
    total_distance_km: float
    average_speed_kn: float
    max_speed_kn: float
    min_speed_kn: float
    route_efficiency: float
    ports_visited: list[str]
    time_at_ports: dict[str, float]
    speed_profile: list[SpeedSample]
    heading_changes: list[HeadingSample]


class PerformanceMetrics(BaseModel):
    vessel_id: int
    fuel_efficiency: float
    # No schedule data exists to derive this from
    on_time_performance: Optional[float] = None
    route_adherence: float
    average_port_time_hours: float


class RouteOptimization(BaseModel):
    vessel_id: int
    destination: str
    current_route: list[LatLon]
    optimized_route: list[LatLon]
    current_distance_km: float
    optimized_distance_km: float
    distance_saved_km: float
    time_saved_minutes: Optional[float] = None
    fuel_saved: float
    efficiency: float
    bearing_to_destination: float
