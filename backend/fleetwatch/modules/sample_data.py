"""Demo dataset: five vessels in UAE waters with short trails, three zones, two alerts.

Loaded by `fleetwatch seed` or at API startup when SEED_SAMPLE_DATA=true.
Trail jitter is drawn from a seeded RNG so repeated seeds produce the same data.
"""
from __future__ import annotations

import logging
import random
from datetime import timedelta
from typing import Optional

from fleetwatch.errors import DuplicateKeyError
from fleetwatch.schemas.alert import AlertCreate
from fleetwatch.schemas.vessel import TrackPointCreate, VesselCreate
from fleetwatch.schemas.zone import ZoneCreate
from fleetwatch.store import VesselStore, utcnow

logger = logging.getLogger(__name__)

TRAIL_POINTS = 5
TRAIL_INTERVAL = timedelta(minutes=10)

SAMPLE_VESSELS = [
    {
        "registry_id": "IMO9123456", "station_id": "636012345", "name": "Dubai Trader",
        "vessel_type": "Container", "flag": "UAE", "length": 300, "width": 45,
        "status": "Under Way", "speed": 12.5, "heading": 45, "lat": 25.2048, "lon": 55.2708,
        "destination": "Port of Dubai", "eta_hours": 1.0, "risk_level": "low",
        "risk_assessment": "Normal operations, no risk factors identified",
    },
    {
        "registry_id": "IMO9234567", "station_id": "636023456", "name": "Gulf Princess",
        "vessel_type": "Tanker", "flag": "UAE", "length": 280, "width": 50,
        "status": "Anchored", "speed": 0, "heading": 180, "lat": 25.0964, "lon": 55.1336,
        "destination": "Jebel Ali Port", "eta_hours": 2.0, "risk_level": "medium",
        "risk_assessment": "High-value cargo, increased security protocols",
    },
    {
        "registry_id": "IMO9345678", "station_id": "636034567", "name": "Emirates Star",
        "vessel_type": "Cargo", "flag": "UAE", "length": 220, "width": 32,
        "status": "Moored", "speed": 0, "heading": 90, "lat": 25.2748, "lon": 55.3208,
        "destination": "Dubai Cruise Terminal", "eta_hours": 3.0, "risk_level": "low",
        "risk_assessment": "Routine port operations",
    },
    {
        "registry_id": "IMO9456789", "station_id": "636045678", "name": "Arabian Explorer",
        "vessel_type": "Passenger", "flag": "UAE", "length": 200, "width": 28,
        "status": "Under Way", "speed": 15.2, "heading": 120, "lat": 25.1548, "lon": 55.2008,
        "destination": "Dubai Marina", "eta_hours": 1.5, "risk_level": "low",
        "risk_assessment": "Passenger vessel, routine operations",
    },
    {
        "registry_id": "IMO9567890", "station_id": "636056789", "name": "Sharjah Carrier",
        "vessel_type": "Container", "flag": "UAE", "length": 250, "width": 40,
        "status": "Under Way", "speed": 10.8, "heading": 270, "lat": 25.3548, "lon": 55.4508,
        "destination": "Sharjah Port", "eta_hours": 4.0, "risk_level": "low",
        "risk_assessment": "Standard cargo operations",
    },
]

SAMPLE_ZONES = [
    {"name": "Dubai Port Authority Zone", "kind": "port", "lat": 25.2048, "lon": 55.2708, "radius_m": 5000},
    {"name": "Jebel Ali Port Zone", "kind": "port", "lat": 25.0964, "lon": 55.1336, "radius_m": 7000},
    {"name": "Dubai Marina Zone", "kind": "marina", "lat": 25.0769, "lon": 55.1413, "radius_m": 2000},
]

# vessel_index refers to SAMPLE_VESSELS
SAMPLE_ALERTS = [
    {"vessel_index": 0, "category": "geofence", "severity": "info",
     "message": "Dubai Trader entered Dubai Port Authority Zone"},
    {"vessel_index": 1, "category": "security", "severity": "warning",
     "message": "Gulf Princess requires security inspection"},
]


def load_sample_data(store: VesselStore, seed: Optional[int] = 42) -> dict[str, int]:
    """Populate *store* with the demo dataset. Vessels already present are skipped."""
    rng = random.Random(seed)
    now = utcnow()
    stats = {"vessels": 0, "track_points": 0, "zones": 0, "alerts": 0}
    vessel_ids: list[Optional[int]] = []

    for entry in SAMPLE_VESSELS:
        data = {k: v for k, v in entry.items() if k != "eta_hours"}
        data["eta"] = now + timedelta(hours=entry["eta_hours"])
        try:
            vessel = store.create(VesselCreate(**data))
        except DuplicateKeyError:
            logger.info("Sample vessel %s already present, skipping", entry["station_id"])
            existing = store.get_by_station_id(entry["station_id"])
            vessel_ids.append(existing.vessel_id if existing else None)
            continue
        vessel_ids.append(vessel.vessel_id)
        stats["vessels"] += 1

        for i in reversed(range(TRAIL_POINTS)):
            store.append_track_point(TrackPointCreate(
                vessel_id=vessel.vessel_id,
                lat=vessel.lat + (rng.random() - 0.5) * 0.01,
                lon=vessel.lon + (rng.random() - 0.5) * 0.01,
                timestamp=now - i * TRAIL_INTERVAL,
                speed=max(0.0, vessel.speed + (rng.random() - 0.5) * 2),
                heading=(vessel.heading + (rng.random() - 0.5) * 20) % 360 if vessel.heading is not None else None,
            ))
            stats["track_points"] += 1

    if stats["vessels"]:
        for zone in SAMPLE_ZONES:
            store.create_zone(ZoneCreate(**zone))
            stats["zones"] += 1
        for alert in SAMPLE_ALERTS:
            store.create_alert(AlertCreate(
                vessel_id=vessel_ids[alert["vessel_index"]],
                category=alert["category"],
                message=alert["message"],
                severity=alert["severity"],
            ))
            stats["alerts"] += 1

    logger.info(
        "Sample data loaded: %d vessels, %d track points, %d zones, %d alerts",
        stats["vessels"], stats["track_points"], stats["zones"], stats["alerts"],
    )
    return stats
