"""Geofence evaluation: zone entry/exit transitions and restricted-zone violations.

Entry and exit are edge-triggered off a per-(vessel, zone) membership table.
A vessel inside a restricted zone raises a violation on every evaluation,
so a vessel loitering in a restricted zone keeps producing alerts.

Usage:
    evaluator = GeofenceEvaluator(store, broadcaster)
    events = evaluator.evaluate(vessel)
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from fleetwatch.modules.broadcaster import EventBroadcaster
from fleetwatch.schemas.alert import AlertCreate
from fleetwatch.schemas.analytics import GeofenceAlert, GeofenceEventType
from fleetwatch.schemas.events import EventKind
from fleetwatch.schemas.vessel import VesselRecord
from fleetwatch.schemas.zone import Zone, ZoneCreate
from fleetwatch.store import VesselStore, utcnow
from fleetwatch.utils.geo import haversine_km, haversine_meters
from fleetwatch.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

GEOFENCE_CATEGORY = "geofence"

_SEVERITY: dict[str, str] = {
    "entry": "info",
    "exit": "info",
    "violation": "high",
}


def _alert_message(alert_type: GeofenceEventType, vessel_name: str, zone_name: str) -> str:
    if alert_type == "entry":
        return f"{vessel_name} entered {zone_name}"
    if alert_type == "exit":
        return f"{vessel_name} exited {zone_name}"
    return f"{vessel_name} violated restricted zone {zone_name}"


class GeofenceEvaluator:
    def __init__(self, store: VesselStore, broadcaster: EventBroadcaster):
        self._store = store
        self._broadcaster = broadcaster
        self._vessel_locks = KeyedLock()
        self._table_lock = threading.Lock()
        self._memberships: dict[tuple[int, int], GeofenceAlert] = {}

    def evaluate(self, vessel: VesselRecord) -> list[GeofenceAlert]:
        """Check one vessel against every zone; returns the events raised."""
        raised: list[tuple[GeofenceAlert, Zone]] = []
        zones = self._store.get_zones()
        with self._vessel_locks.hold(vessel.vessel_id):
            for zone in zones:
                distance = haversine_meters(vessel.lat, vessel.lon, zone.lat, zone.lon)
                inside = distance <= zone.radius_m
                key = (vessel.vessel_id, zone.zone_id)
                with self._table_lock:
                    tracked = key in self._memberships

                if inside and not tracked:
                    event = self._event(vessel, zone, "entry", distance)
                    with self._table_lock:
                        self._memberships[key] = event
                    raised.append((event, zone))
                elif not inside and tracked:
                    with self._table_lock:
                        self._memberships.pop(key, None)
                    raised.append((self._event(vessel, zone, "exit", distance), zone))

                if inside and zone.kind == "restricted":
                    raised.append((self._event(vessel, zone, "violation", distance), zone))

        for event, zone in raised:
            self._raise_alert(event, vessel, zone)
        return [event for event, _ in raised]

    def _event(
        self, vessel: VesselRecord, zone: Zone, alert_type: GeofenceEventType, distance: float
    ) -> GeofenceAlert:
        return GeofenceAlert(
            vessel_id=vessel.vessel_id,
            vessel_name=vessel.name,
            zone_id=zone.zone_id,
            zone_name=zone.name,
            alert_type=alert_type,
            timestamp=utcnow(),
            distance_m=round(distance, 1),
        )

    def _raise_alert(self, event: GeofenceAlert, vessel: VesselRecord, zone: Zone) -> None:
        alert = self._store.create_alert(AlertCreate(
            vessel_id=vessel.vessel_id,
            category=GEOFENCE_CATEGORY,
            message=_alert_message(event.alert_type, vessel.name, zone.name),
            severity=_SEVERITY[event.alert_type],
        ))
        logger.info("Geofence %s: vessel %d zone %d", event.alert_type, vessel.vessel_id, zone.zone_id)
        self._broadcaster.publish(EventKind.GEOFENCE_ALERT, {
            "alert": alert.model_dump(mode="json"),
            "event": event.model_dump(mode="json"),
            "vessel": vessel.model_dump(mode="json"),
            "zone": zone.model_dump(mode="json"),
        })

    def active_alerts(self) -> list[GeofenceAlert]:
        """Snapshot of current memberships (the entry event that opened each)."""
        with self._table_lock:
            return list(self._memberships.values())

    def zones_near(self, lat: float, lon: float, radius_km: float = 10.0) -> list[Zone]:
        return [
            z for z in self._store.get_zones()
            if haversine_km(lat, lon, z.lat, z.lon) <= radius_km
        ]

    def clear_membership(self, vessel_id: int, zone_id: int) -> bool:
        with self._table_lock:
            return self._memberships.pop((vessel_id, zone_id), None) is not None

    def forget_vessel(self, vessel_id: int) -> int:
        """Drop every membership held by a vessel; returns how many were cleared."""
        with self._table_lock:
            keys = [k for k in self._memberships if k[0] == vessel_id]
            for key in keys:
                del self._memberships[key]
        return len(keys)

    def create_zone(
        self,
        name: str,
        lat: float,
        lon: float,
        radius_m: float,
        kind: str = "monitoring",
    ) -> Zone:
        zone = self._store.create_zone(ZoneCreate(name=name, kind=kind, lat=lat, lon=lon, radius_m=radius_m))
        self._broadcaster.publish(EventKind.ZONE_ADDED, {"zone": zone.model_dump(mode="json")})
        return zone

    def membership_for(self, vessel_id: int, zone_id: int) -> Optional[GeofenceAlert]:
        with self._table_lock:
            return self._memberships.get((vessel_id, zone_id))
