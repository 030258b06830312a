"""Reconcile raw position/identity reports into canonical vessel records.

Reports for one station arrive in any interleaving. Each station's last-known
fields are merged into a staging cache; a record is only created once a valid
position is known, so an identity report that precedes the first position is
held and applied on creation.

Usage:
    reconciler = ReportReconciler(store, evaluator, broadcaster)
    vessel = reconciler.process(PositionReport(station_id="636012345", ...))
    stats = reconciler.ingest(reports)
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Iterable, Optional

from fleetwatch.errors import DuplicateKeyError, ValidationError
from fleetwatch.modules.broadcaster import EventBroadcaster
from fleetwatch.modules.geofence import GeofenceEvaluator
from fleetwatch.modules.normalize import normalize_station_id, status_from_code, vessel_type_from_code
from fleetwatch.schemas.events import EventKind
from fleetwatch.schemas.report import IdentityReport, PositionReport, Report
from fleetwatch.schemas.vessel import TrackPointCreate, VesselCreate, VesselRecord, VesselUpdate
from fleetwatch.store import VesselStore
from fleetwatch.utils.geo import is_valid_position
from fleetwatch.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

DEFAULT_RISK_ASSESSMENT = "Real-time AIS data"


@dataclass
class StagedVessel:
    """Last-known merged fields for one station, ahead of the store."""
    station_id: str
    registry_id: Optional[str] = None
    name: Optional[str] = None
    vessel_type: Optional[str] = None
    flag: Optional[str] = None
    length: Optional[float] = None
    width: Optional[float] = None
    status: Optional[str] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    course: Optional[float] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    destination: Optional[str] = None
    eta: Optional[datetime] = None
    position_at: Optional[datetime] = None

    def known_fields(self) -> dict[str, Any]:
        skip = {"station_id", "position_at"}
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in skip and getattr(self, f.name) is not None
        }


class ReportReconciler:
    def __init__(
        self,
        store: VesselStore,
        evaluator: GeofenceEvaluator,
        broadcaster: EventBroadcaster,
    ):
        self._store = store
        self._evaluator = evaluator
        self._broadcaster = broadcaster
        self._station_locks = KeyedLock()
        self._cache_lock = threading.Lock()
        self._staged: dict[str, StagedVessel] = {}

    def staged(self, station_id: str) -> Optional[StagedVessel]:
        with self._cache_lock:
            return self._staged.get(station_id)

    def forget(self, station_id: str) -> None:
        with self._cache_lock:
            self._staged.pop(station_id, None)

    def _stage(self, station_id: str) -> StagedVessel:
        with self._cache_lock:
            entry = self._staged.get(station_id)
            if entry is None:
                entry = self._staged[station_id] = StagedVessel(station_id=station_id)
            return entry

    # ── Entry points ─────────────────────────────────────────────────────────

    def process(self, report: Report) -> Optional[VesselRecord]:
        """Apply one report. Returns the affected record, or None if nothing was written.

        Raises ValidationError for a malformed report. Store errors other than
        DuplicateKeyError propagate.
        """
        station_id = normalize_station_id(report.station_id)
        with self._station_locks.hold(station_id):
            if isinstance(report, PositionReport):
                return self._apply_position(station_id, report)
            if isinstance(report, IdentityReport):
                return self._apply_identity(station_id, report)
            raise ValidationError(f"Unsupported report type: {type(report).__name__}")

    def ingest_one(self, report: Report) -> bool:
        """Feed entry point: failures are logged and confined to this report."""
        try:
            self.process(report)
            return True
        except ValidationError as exc:
            logger.debug("Dropped report for %s: %s", report.station_id, exc)
        except Exception:
            logger.exception("Failed to reconcile report for station %s", report.station_id)
        return False

    def ingest(self, reports: Iterable[Report]) -> dict[str, int]:
        stats = {"received": 0, "applied": 0, "dropped": 0}
        for report in reports:
            stats["received"] += 1
            if self.ingest_one(report):
                stats["applied"] += 1
            else:
                stats["dropped"] += 1
        return stats

    # ── Position path ────────────────────────────────────────────────────────

    def _apply_position(self, station_id: str, report: PositionReport) -> Optional[VesselRecord]:
        staged = self._stage(station_id)
        stale = staged.position_at is not None and report.timestamp < staged.position_at

        if not is_valid_position(report.lat, report.lon):
            if not stale:
                self._merge_motion(staged, report)
            logger.debug("Staged report without usable position for %s", station_id)
            return None

        if stale:
            # Late report: history only, current state stays with the newer fix
            record = self._store.get_by_station_id(station_id)
            if record is not None:
                self._append_point(record, report)
            return record

        self._merge_motion(staged, report)
        staged.lat, staged.lon = report.lat, report.lon
        staged.position_at = report.timestamp

        record = self._store.get_by_station_id(station_id)
        if record is None:
            record = self._create(staged)
        else:
            record = self._update(record, staged)
        if record is None:
            return None

        self._append_point(record, report)
        self._evaluator.evaluate(record)
        return record

    @staticmethod
    def _merge_motion(staged: StagedVessel, report: PositionReport) -> None:
        """Merge everything but the coordinates into the staging entry."""
        if report.speed is not None:
            staged.speed = report.speed
        if report.heading is not None:
            staged.heading = report.heading
        if report.course is not None:
            staged.course = report.course
        if report.nav_status_code is not None:
            staged.status = status_from_code(report.nav_status_code)
        if report.name and not staged.name:
            staged.name = report.name.strip() or None

    def _append_point(self, record: VesselRecord, report: PositionReport) -> None:
        self._store.append_track_point(TrackPointCreate(
            vessel_id=record.vessel_id,
            lat=report.lat,
            lon=report.lon,
            timestamp=report.timestamp,
            speed=report.speed,
            heading=report.heading,
        ))

    def _create(self, staged: StagedVessel) -> Optional[VesselRecord]:
        known = staged.known_fields()
        data = VesselCreate(
            **{
                **known,
                "station_id": staged.station_id,
                "name": known.get("name") or f"Vessel {staged.station_id}",
                "vessel_type": known.get("vessel_type") or "Other",
                "status": known.get("status") or "Unknown",
                "speed": known.get("speed") or 0.0,
                "risk_level": "low",
                "risk_assessment": DEFAULT_RISK_ASSESSMENT,
            }
        )
        try:
            record = self._store.create(data)
        except DuplicateKeyError as exc:
            existing = self._store.get_by_station_id(staged.station_id)
            if existing is not None:
                return self._update(existing, staged)
            if exc.field != "registry_id":
                raise
            logger.warning("Registry id collision creating station %s: %s", staged.station_id, exc)
            staged.registry_id = None
            return self._create(staged)
        logger.info("New vessel %s (%s)", record.station_id, record.name)
        self._broadcaster.publish(EventKind.VESSEL_ADDED, {"vessel": record.model_dump(mode="json")})
        return record

    def _update(self, record: VesselRecord, staged: StagedVessel) -> Optional[VesselRecord]:
        changes = staged.known_fields()
        if record.registry_id is not None and changes.get("registry_id") not in (None, record.registry_id):
            logger.warning(
                "Ignoring registry id %s for station %s (already %s)",
                changes["registry_id"], record.station_id, record.registry_id,
            )
            changes.pop("registry_id")
            staged.registry_id = record.registry_id
        try:
            updated = self._store.update(record.vessel_id, VesselUpdate(**changes))
        except DuplicateKeyError as exc:
            logger.warning("Registry id collision for station %s: %s", record.station_id, exc)
            changes.pop("registry_id", None)
            staged.registry_id = None
            updated = self._store.update(record.vessel_id, VesselUpdate(**changes))
        if updated is None:
            return None
        self._broadcaster.publish(EventKind.VESSEL_UPDATED, {"vessel": updated.model_dump(mode="json")})
        return updated

    # ── Identity path ────────────────────────────────────────────────────────

    def _apply_identity(self, station_id: str, report: IdentityReport) -> Optional[VesselRecord]:
        staged = self._stage(station_id)
        if report.registry_id:
            if staged.registry_id is None:
                staged.registry_id = report.registry_id.strip()
            elif staged.registry_id != report.registry_id.strip():
                logger.warning(
                    "Conflicting registry id %s for station %s (staged %s)",
                    report.registry_id, station_id, staged.registry_id,
                )
        if report.name and report.name.strip():
            staged.name = report.name.strip()
        if report.type_code is not None:
            staged.vessel_type = vessel_type_from_code(report.type_code)
        for attr in ("flag", "length", "width", "destination", "eta"):
            value = getattr(report, attr)
            if value is not None:
                setattr(staged, attr, value.strip() if isinstance(value, str) else value)

        record = self._store.get_by_station_id(station_id)
        if record is None:
            return None
        return self._update(record, staged)
