"""Relational VesselStore on SQLAlchemy.

Unique constraints on station_id / registry_id are the atomic guard for the
one-record-per-station invariant across processes: a losing concurrent insert
surfaces as IntegrityError, which is reported as DuplicateKeyError so the
reconciler falls back to its update path.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from fleetwatch.errors import DuplicateKeyError, ValidationError
from fleetwatch.models.alert import Alert as AlertRow
from fleetwatch.models.track_point import TrackPoint as TrackPointRow
from fleetwatch.models.vessel import Vessel as VesselRow
from fleetwatch.models.zone import Zone as ZoneRow
from fleetwatch.schemas.alert import Alert, AlertCreate, AlertUpdate
from fleetwatch.schemas.vessel import (
    TrackPoint,
    TrackPointCreate,
    VesselCreate,
    VesselRecord,
    VesselUpdate,
)
from fleetwatch.schemas.zone import Zone, ZoneCreate, ZoneUpdate
from fleetwatch.store import VesselStore, check_identity_change, utcnow

logger = logging.getLogger(__name__)


def _aware(ts: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on round-trip; stored values are always UTC."""
    if ts is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _to_vessel(row: VesselRow) -> VesselRecord:
    record = VesselRecord.model_validate(row)
    return record.model_copy(update={"eta": _aware(record.eta), "last_update": _aware(record.last_update)})


def _to_track_point(row: TrackPointRow) -> TrackPoint:
    point = TrackPoint.model_validate(row)
    return point.model_copy(update={"timestamp": _aware(point.timestamp)})


def _to_alert(row: AlertRow) -> Alert:
    alert = Alert.model_validate(row)
    return alert.model_copy(update={"created_at": _aware(alert.created_at)})


class SqlVesselStore(VesselStore):
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    # ── Vessels ──────────────────────────────────────────────────────────────

    def get_all(self) -> list[VesselRecord]:
        with self._session_factory() as db:
            return [_to_vessel(v) for v in db.query(VesselRow).order_by(VesselRow.vessel_id).all()]

    def get_by_id(self, vessel_id: int) -> Optional[VesselRecord]:
        with self._session_factory() as db:
            row = db.get(VesselRow, vessel_id)
            return _to_vessel(row) if row else None

    def get_by_station_id(self, station_id: str) -> Optional[VesselRecord]:
        with self._session_factory() as db:
            row = db.query(VesselRow).filter(VesselRow.station_id == station_id).first()
            return _to_vessel(row) if row else None

    def get_by_registry_id(self, registry_id: str) -> Optional[VesselRecord]:
        with self._session_factory() as db:
            row = db.query(VesselRow).filter(VesselRow.registry_id == registry_id).first()
            return _to_vessel(row) if row else None

    def create(self, data: VesselCreate) -> VesselRecord:
        with self._session_factory() as db:
            row = VesselRow(**data.model_dump(), last_update=utcnow())
            try:
                db.add(row)
                db.commit()
            except IntegrityError:
                db.rollback()
                raise self._duplicate_for(db, data.station_id, data.registry_id)
            return _to_vessel(row)

    def _duplicate_for(self, db: Session, station_id: str, registry_id: Optional[str]) -> DuplicateKeyError:
        if db.query(VesselRow).filter(VesselRow.station_id == station_id).first():
            return DuplicateKeyError("station_id", station_id)
        return DuplicateKeyError("registry_id", registry_id or "")

    def update(self, vessel_id: int, data: VesselUpdate) -> Optional[VesselRecord]:
        changes = data.model_dump(exclude_unset=True)
        with self._session_factory() as db:
            row = db.get(VesselRow, vessel_id)
            if row is None:
                return None
            check_identity_change(_to_vessel(row), changes)
            merged = _to_vessel(row).model_dump()
            merged.update({k: v for k, v in changes.items() if k not in ("station_id", "registry_id") or v is not None})
            merged["last_update"] = utcnow()
            validated = VesselRecord.model_validate(merged)
            for field, value in validated.model_dump(exclude={"vessel_id"}).items():
                setattr(row, field, value)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise DuplicateKeyError("registry_id", changes.get("registry_id") or "")
            return _to_vessel(row)

    def delete(self, vessel_id: int) -> bool:
        with self._session_factory() as db:
            row = db.get(VesselRow, vessel_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    # ── Track history ────────────────────────────────────────────────────────

    def append_track_point(self, point: TrackPointCreate) -> TrackPoint:
        with self._session_factory() as db:
            if db.get(VesselRow, point.vessel_id) is None:
                raise ValidationError(f"Unknown vessel_id {point.vessel_id}")
            row = TrackPointRow(**point.model_dump())
            db.add(row)
            db.commit()
            return _to_track_point(row)

    def get_track(self, vessel_id: int) -> list[TrackPoint]:
        with self._session_factory() as db:
            rows = (
                db.query(TrackPointRow)
                .filter(TrackPointRow.vessel_id == vessel_id)
                .order_by(TrackPointRow.timestamp, TrackPointRow.point_id)
                .all()
            )
            return [_to_track_point(r) for r in rows]

    # ── Zones ────────────────────────────────────────────────────────────────

    def get_zones(self) -> list[Zone]:
        with self._session_factory() as db:
            return [Zone.model_validate(z) for z in db.query(ZoneRow).order_by(ZoneRow.zone_id).all()]

    def get_zone(self, zone_id: int) -> Optional[Zone]:
        with self._session_factory() as db:
            row = db.get(ZoneRow, zone_id)
            return Zone.model_validate(row) if row else None

    def create_zone(self, data: ZoneCreate) -> Zone:
        with self._session_factory() as db:
            row = ZoneRow(**data.model_dump())
            db.add(row)
            db.commit()
            return Zone.model_validate(row)

    def update_zone(self, zone_id: int, data: ZoneUpdate) -> Optional[Zone]:
        with self._session_factory() as db:
            row = db.get(ZoneRow, zone_id)
            if row is None:
                return None
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(row, field, value)
            db.commit()
            return Zone.model_validate(row)

    def delete_zone(self, zone_id: int) -> bool:
        with self._session_factory() as db:
            row = db.get(ZoneRow, zone_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    # ── Alerts ───────────────────────────────────────────────────────────────

    def get_alerts(self) -> list[Alert]:
        with self._session_factory() as db:
            return [_to_alert(a) for a in db.query(AlertRow).order_by(AlertRow.alert_id).all()]

    def get_vessel_alerts(self, vessel_id: int) -> list[Alert]:
        with self._session_factory() as db:
            rows = (
                db.query(AlertRow)
                .filter(AlertRow.vessel_id == vessel_id)
                .order_by(AlertRow.alert_id)
                .all()
            )
            return [_to_alert(a) for a in rows]

    def create_alert(self, data: AlertCreate) -> Alert:
        with self._session_factory() as db:
            row = AlertRow(**data.model_dump(), created_at=utcnow())
            db.add(row)
            db.commit()
            return _to_alert(row)

    def update_alert(self, alert_id: int, data: AlertUpdate) -> Optional[Alert]:
        with self._session_factory() as db:
            row = db.get(AlertRow, alert_id)
            if row is None:
                return None
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(row, field, value)
            db.commit()
            return _to_alert(row)

    def delete_alert(self, alert_id: int) -> bool:
        with self._session_factory() as db:
            row = db.get(AlertRow, alert_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    # ── Queries ──────────────────────────────────────────────────────────────

    def search(self, query: str) -> list[VesselRecord]:
        pattern = f"%{query}%"
        with self._session_factory() as db:
            rows = (
                db.query(VesselRow)
                .filter(
                    or_(
                        VesselRow.name.ilike(pattern),
                        VesselRow.registry_id.ilike(pattern),
                        VesselRow.station_id.ilike(pattern),
                    )
                )
                .order_by(VesselRow.vessel_id)
                .all()
            )
            return [_to_vessel(v) for v in rows]

    def filter(
        self, vessel_type: Optional[str] = None, status: Optional[str] = None
    ) -> list[VesselRecord]:
        with self._session_factory() as db:
            q = db.query(VesselRow)
            if vessel_type:
                q = q.filter(VesselRow.vessel_type == vessel_type)
            if status:
                q = q.filter(VesselRow.status == status)
            return [_to_vessel(v) for v in q.order_by(VesselRow.vessel_id).all()]
