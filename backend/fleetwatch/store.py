"""VesselStore contract and the in-memory reference implementation.

The store exclusively owns vessel records, track points, zones and alerts.
Every other component reads through this contract and never mutates the
returned objects (they are snapshots).

Usage:
    store = MemoryVesselStore()
    vessel = store.create(VesselCreate(station_id="636012345", name="X", lat=25.2, lon=55.3))
"""
from __future__ import annotations

import bisect
import itertools
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from fleetwatch.errors import DuplicateKeyError, ValidationError
from fleetwatch.schemas.alert import Alert, AlertCreate, AlertUpdate
from fleetwatch.schemas.vessel import (
    TrackPoint,
    TrackPointCreate,
    VesselCreate,
    VesselRecord,
    VesselUpdate,
)
from fleetwatch.schemas.zone import Zone, ZoneCreate, ZoneUpdate

_IDENTITY_FIELDS = ("station_id", "registry_id")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_identity_change(existing: VesselRecord, changes: dict) -> None:
    """Reject reassignment of an already-assigned station or registry id."""
    for field in _IDENTITY_FIELDS:
        if field not in changes or changes[field] is None:
            continue
        current = getattr(existing, field)
        if current is not None and current != changes[field]:
            raise ValidationError(f"{field} is immutable once assigned ({current!r})")


class VesselStore(ABC):
    """Canonical state behind a minimal CRUD/query contract."""

    # Vessels
    @abstractmethod
    def get_all(self) -> list[VesselRecord]: ...

    @abstractmethod
    def get_by_id(self, vessel_id: int) -> Optional[VesselRecord]: ...

    @abstractmethod
    def get_by_station_id(self, station_id: str) -> Optional[VesselRecord]: ...

    @abstractmethod
    def get_by_registry_id(self, registry_id: str) -> Optional[VesselRecord]: ...

    @abstractmethod
    def create(self, data: VesselCreate) -> VesselRecord:
        """Assign a fresh id and stamp last_update.

        Raises DuplicateKeyError if station_id or registry_id already exists.
        """

    @abstractmethod
    def update(self, vessel_id: int, data: VesselUpdate) -> Optional[VesselRecord]:
        """Merge the explicitly set fields. Returns None if the id is unknown."""

    @abstractmethod
    def delete(self, vessel_id: int) -> bool: ...

    # Track history
    @abstractmethod
    def append_track_point(self, point: TrackPointCreate) -> TrackPoint: ...

    @abstractmethod
    def get_track(self, vessel_id: int) -> list[TrackPoint]:
        """Chronological snapshot of the vessel's track."""

    # Zones
    @abstractmethod
    def get_zones(self) -> list[Zone]: ...

    @abstractmethod
    def get_zone(self, zone_id: int) -> Optional[Zone]: ...

    @abstractmethod
    def create_zone(self, data: ZoneCreate) -> Zone: ...

    @abstractmethod
    def update_zone(self, zone_id: int, data: ZoneUpdate) -> Optional[Zone]: ...

    @abstractmethod
    def delete_zone(self, zone_id: int) -> bool: ...

    # Alerts
    @abstractmethod
    def get_alerts(self) -> list[Alert]: ...

    @abstractmethod
    def get_vessel_alerts(self, vessel_id: int) -> list[Alert]: ...

    @abstractmethod
    def create_alert(self, data: AlertCreate) -> Alert: ...

    @abstractmethod
    def update_alert(self, alert_id: int, data: AlertUpdate) -> Optional[Alert]: ...

    @abstractmethod
    def delete_alert(self, alert_id: int) -> bool: ...

    # Queries
    @abstractmethod
    def search(self, query: str) -> list[VesselRecord]:
        """Case-insensitive substring match over name, registry_id, station_id."""

    @abstractmethod
    def filter(
        self, vessel_type: Optional[str] = None, status: Optional[str] = None
    ) -> list[VesselRecord]:
        """Exact match on the provided fields; absent filters pass all."""


class MemoryVesselStore(VesselStore):
    """Single-process store. One re-entrant lock guards all maps.

    Pydantic records are replaced, never mutated in place, so handing them out
    is safe; track lists are copied on read.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._vessels: dict[int, VesselRecord] = {}
        self._by_station: dict[str, int] = {}
        self._by_registry: dict[str, int] = {}
        self._tracks: dict[int, list[TrackPoint]] = {}
        self._track_keys: dict[int, list[datetime]] = {}
        self._zones: dict[int, Zone] = {}
        self._alerts: dict[int, Alert] = {}
        self._vessel_ids = itertools.count(1)
        self._point_ids = itertools.count(1)
        self._zone_ids = itertools.count(1)
        self._alert_ids = itertools.count(1)

    # ── Vessels ──────────────────────────────────────────────────────────────

    def get_all(self) -> list[VesselRecord]:
        with self._lock:
            return list(self._vessels.values())

    def get_by_id(self, vessel_id: int) -> Optional[VesselRecord]:
        with self._lock:
            return self._vessels.get(vessel_id)

    def get_by_station_id(self, station_id: str) -> Optional[VesselRecord]:
        with self._lock:
            vid = self._by_station.get(station_id)
            return self._vessels.get(vid) if vid is not None else None

    def get_by_registry_id(self, registry_id: str) -> Optional[VesselRecord]:
        with self._lock:
            vid = self._by_registry.get(registry_id)
            return self._vessels.get(vid) if vid is not None else None

    def create(self, data: VesselCreate) -> VesselRecord:
        with self._lock:
            if data.station_id in self._by_station:
                raise DuplicateKeyError("station_id", data.station_id)
            if data.registry_id and data.registry_id in self._by_registry:
                raise DuplicateKeyError("registry_id", data.registry_id)
            record = VesselRecord(
                **data.model_dump(),
                vessel_id=next(self._vessel_ids),
                last_update=utcnow(),
            )
            self._vessels[record.vessel_id] = record
            self._by_station[record.station_id] = record.vessel_id
            if record.registry_id:
                self._by_registry[record.registry_id] = record.vessel_id
            self._tracks[record.vessel_id] = []
            self._track_keys[record.vessel_id] = []
            return record

    def update(self, vessel_id: int, data: VesselUpdate) -> Optional[VesselRecord]:
        changes = data.model_dump(exclude_unset=True)
        with self._lock:
            existing = self._vessels.get(vessel_id)
            if existing is None:
                return None
            check_identity_change(existing, changes)
            new_registry = changes.get("registry_id")
            if new_registry and existing.registry_id is None:
                owner = self._by_registry.get(new_registry)
                if owner is not None and owner != vessel_id:
                    raise DuplicateKeyError("registry_id", new_registry)
            merged = existing.model_dump()
            merged.update({k: v for k, v in changes.items() if k not in _IDENTITY_FIELDS or v is not None})
            merged["last_update"] = utcnow()
            record = VesselRecord.model_validate(merged)
            self._vessels[vessel_id] = record
            if record.registry_id and existing.registry_id is None:
                self._by_registry[record.registry_id] = vessel_id
            return record

    def delete(self, vessel_id: int) -> bool:
        with self._lock:
            record = self._vessels.pop(vessel_id, None)
            if record is None:
                return False
            self._by_station.pop(record.station_id, None)
            if record.registry_id:
                self._by_registry.pop(record.registry_id, None)
            self._tracks.pop(vessel_id, None)
            self._track_keys.pop(vessel_id, None)
            return True

    # ── Track history ────────────────────────────────────────────────────────

    def append_track_point(self, point: TrackPointCreate) -> TrackPoint:
        with self._lock:
            if point.vessel_id not in self._vessels:
                raise ValidationError(f"Unknown vessel_id {point.vessel_id}")
            stored = TrackPoint(**point.model_dump(), point_id=next(self._point_ids))
            track = self._tracks[point.vessel_id]
            keys = self._track_keys[point.vessel_id]
            if not keys or stored.timestamp >= keys[-1]:
                track.append(stored)
                keys.append(stored.timestamp)
            else:
                # Late report: keep the history chronological
                idx = bisect.bisect_right(keys, stored.timestamp)
                track.insert(idx, stored)
                keys.insert(idx, stored.timestamp)
            return stored

    def get_track(self, vessel_id: int) -> list[TrackPoint]:
        with self._lock:
            return list(self._tracks.get(vessel_id, ()))

    # ── Zones ────────────────────────────────────────────────────────────────

    def get_zones(self) -> list[Zone]:
        with self._lock:
            return list(self._zones.values())

    def get_zone(self, zone_id: int) -> Optional[Zone]:
        with self._lock:
            return self._zones.get(zone_id)

    def create_zone(self, data: ZoneCreate) -> Zone:
        with self._lock:
            zone = Zone(**data.model_dump(), zone_id=next(self._zone_ids))
            self._zones[zone.zone_id] = zone
            return zone

    def update_zone(self, zone_id: int, data: ZoneUpdate) -> Optional[Zone]:
        with self._lock:
            existing = self._zones.get(zone_id)
            if existing is None:
                return None
            zone = Zone.model_validate({**existing.model_dump(), **data.model_dump(exclude_unset=True)})
            self._zones[zone_id] = zone
            return zone

    def delete_zone(self, zone_id: int) -> bool:
        with self._lock:
            return self._zones.pop(zone_id, None) is not None

    # ── Alerts ───────────────────────────────────────────────────────────────

    def get_alerts(self) -> list[Alert]:
        with self._lock:
            return list(self._alerts.values())

    def get_vessel_alerts(self, vessel_id: int) -> list[Alert]:
        with self._lock:
            return [a for a in self._alerts.values() if a.vessel_id == vessel_id]

    def create_alert(self, data: AlertCreate) -> Alert:
        with self._lock:
            alert = Alert(**data.model_dump(), alert_id=next(self._alert_ids), created_at=utcnow())
            self._alerts[alert.alert_id] = alert
            return alert

    def update_alert(self, alert_id: int, data: AlertUpdate) -> Optional[Alert]:
        with self._lock:
            existing = self._alerts.get(alert_id)
            if existing is None:
                return None
            alert = Alert.model_validate({**existing.model_dump(), **data.model_dump(exclude_unset=True)})
            self._alerts[alert_id] = alert
            return alert

    def delete_alert(self, alert_id: int) -> bool:
        with self._lock:
            return self._alerts.pop(alert_id, None) is not None

    # ── Queries ──────────────────────────────────────────────────────────────

    def search(self, query: str) -> list[VesselRecord]:
        needle = query.casefold()
        with self._lock:
            return [
                v for v in self._vessels.values()
                if needle in v.name.casefold()
                or needle in (v.registry_id or "").casefold()
                or needle in v.station_id.casefold()
            ]

    def filter(
        self, vessel_type: Optional[str] = None, status: Optional[str] = None
    ) -> list[VesselRecord]:
        with self._lock:
            return [
                v for v in self._vessels.values()
                if (not vessel_type or v.vessel_type == vessel_type)
                and (not status or v.status == status)
            ]
