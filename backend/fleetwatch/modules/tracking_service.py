"""Query surface over the ingestion pipeline and analytics.

TrackingService owns one instance of each component (store, broadcaster,
geofence evaluator, reconciler, ETA predictor, history analyzer). The API
layer, the CLI and the feed all go through it; nothing is module-global.

Absence is reported as None / empty list, never as an exception.
"""
from __future__ import annotations

import logging
import random
from typing import Any, Callable, Optional

from fleetwatch.database import init_db, make_engine, make_session_factory
from fleetwatch.errors import ConfigurationError
from fleetwatch.modules.aisstream_client import AISStreamFeed
from fleetwatch.modules.broadcaster import EventBroadcaster
from fleetwatch.modules.eta_predictor import ETAPredictor
from fleetwatch.modules.geofence import GeofenceEvaluator
from fleetwatch.modules.history_analyzer import HistoryAnalyzer
from fleetwatch.modules.reconciler import ReportReconciler
from fleetwatch.schemas.alert import Alert, AlertCreate
from fleetwatch.schemas.analytics import (
    ETAPrediction,
    GeofenceAlert,
    HistoricalAnalysis,
    PerformanceMetrics,
    RouteOptimization,
)
from fleetwatch.schemas.events import EventKind
from fleetwatch.schemas.report import Report
from fleetwatch.schemas.vessel import TrackPoint, VesselCreate, VesselRecord, VesselUpdate
from fleetwatch.schemas.zone import Zone, ZoneCreate
from fleetwatch.sql_store import SqlVesselStore
from fleetwatch.store import MemoryVesselStore, VesselStore
from fleetwatch.utils.gazetteer import Gazetteer

logger = logging.getLogger(__name__)


def build_store(settings) -> VesselStore:
    backend = settings.STORE_BACKEND.lower()
    if backend == "memory":
        return MemoryVesselStore()
    if backend == "sql":
        engine = make_engine(settings.DATABASE_URL, settings.DB_POOL_SIZE, settings.DB_MAX_OVERFLOW)
        init_db(engine)
        return SqlVesselStore(make_session_factory(engine))
    raise ConfigurationError(f"Unknown STORE_BACKEND {settings.STORE_BACKEND!r} (expected memory or sql)")


class TrackingService:
    def __init__(
        self,
        store: VesselStore,
        gazetteer: Optional[Gazetteer] = None,
        broadcaster: Optional[EventBroadcaster] = None,
        eta_rng: Optional[random.Random] = None,
        default_speed_kn: float = 10.0,
        eta_jitter_hours: float = 2.0,
        lookback_days: int = 30,
    ):
        self.store = store
        self.gazetteer = gazetteer or Gazetteer()
        self.broadcaster = broadcaster or EventBroadcaster()
        self.evaluator = GeofenceEvaluator(store, self.broadcaster)
        self.reconciler = ReportReconciler(store, self.evaluator, self.broadcaster)
        self.eta = ETAPredictor(
            store, self.gazetteer,
            default_speed_kn=default_speed_kn,
            jitter_hours=eta_jitter_hours,
            rng=eta_rng,
        )
        self.history = HistoryAnalyzer(store, self.gazetteer, lookback_days=lookback_days)
        self.feed: Optional[AISStreamFeed] = None

    @classmethod
    def from_settings(cls, settings) -> "TrackingService":
        rng = random.Random(settings.ETA_JITTER_SEED) if settings.ETA_JITTER_SEED is not None else None
        return cls(
            store=build_store(settings),
            gazetteer=Gazetteer.from_yaml(settings.REFERENCE_PORTS_CONFIG),
            broadcaster=EventBroadcaster(max_queue=settings.BROADCAST_QUEUE_SIZE),
            eta_rng=rng,
            default_speed_kn=settings.ETA_DEFAULT_SPEED_KN,
            eta_jitter_hours=settings.ETA_WEATHER_JITTER_HOURS,
            lookback_days=settings.HISTORY_LOOKBACK_DAYS,
        )

    def make_feed(self, settings, on_report: Optional[Callable[[Report], Any]] = None) -> AISStreamFeed:
        """Build the upstream feed wired to the reconciler. Raises ConfigurationError without a token."""
        self.feed = AISStreamFeed.from_settings(settings, on_report or self.reconciler.ingest_one)
        return self.feed

    def feed_status(self) -> dict[str, Any]:
        if self.feed is None:
            return {"state": "disabled"}
        return {
            "state": self.feed.state.value,
            "messages_received": self.feed.stats["messages_received"],
            "reports_applied": self.feed.stats["reports_applied"],
            "reconnects": self.feed.stats["reconnects"],
        }

    # ── Ingestion ────────────────────────────────────────────────────────────

    def ingest(self, report: Report) -> Optional[VesselRecord]:
        return self.reconciler.process(report)

    # ── Vessels ──────────────────────────────────────────────────────────────

    def list_vessels(self, limit: Optional[int] = None) -> list[VesselRecord]:
        vessels = self.store.get_all()
        return vessels[:limit] if limit else vessels

    def get_vessel(self, vessel_id: int) -> Optional[VesselRecord]:
        return self.store.get_by_id(vessel_id)

    def create_vessel(self, data: VesselCreate) -> VesselRecord:
        vessel = self.store.create(data)
        self.broadcaster.publish(EventKind.VESSEL_ADDED, {"vessel": vessel.model_dump(mode="json")})
        self.evaluator.evaluate(vessel)
        return vessel

    def update_vessel(self, vessel_id: int, data: VesselUpdate) -> Optional[VesselRecord]:
        vessel = self.store.update(vessel_id, data)
        if vessel is None:
            return None
        self.broadcaster.publish(EventKind.VESSEL_UPDATED, {"vessel": vessel.model_dump(mode="json")})
        if data.lat is not None or data.lon is not None:
            self.evaluator.evaluate(vessel)
        return vessel

    def delete_vessel(self, vessel_id: int) -> bool:
        vessel = self.store.get_by_id(vessel_id)
        if vessel is None or not self.store.delete(vessel_id):
            return False
        self.evaluator.forget_vessel(vessel_id)
        self.reconciler.forget(vessel.station_id)
        self.broadcaster.publish(EventKind.VESSEL_DELETED, {"vessel_id": vessel_id})
        return True

    def get_track(self, vessel_id: int) -> list[TrackPoint]:
        return self.store.get_track(vessel_id)

    def search(self, query: str) -> list[VesselRecord]:
        query = query.strip()
        return self.store.search(query) if query else []

    def filter(self, vessel_type: Optional[str] = None, status: Optional[str] = None) -> list[VesselRecord]:
        return self.store.filter(vessel_type=vessel_type, status=status)

    # ── Analytics ────────────────────────────────────────────────────────────

    def predict_eta(self, vessel_id: int) -> Optional[ETAPrediction]:
        return self.eta.predict(vessel_id)

    def predict_all_etas(self) -> list[ETAPrediction]:
        return self.eta.predict_all()

    def analyze_history(self, vessel_id: int, days: Optional[int] = None) -> Optional[HistoricalAnalysis]:
        return self.history.analyze(vessel_id, days=days)

    def performance_metrics(self, vessel_id: int) -> Optional[PerformanceMetrics]:
        return self.history.performance_metrics(vessel_id)

    def route_optimization(self, vessel_id: int) -> Optional[RouteOptimization]:
        return self.history.route_optimization(vessel_id)

    # ── Zones ────────────────────────────────────────────────────────────────

    def list_zones(self) -> list[Zone]:
        return self.store.get_zones()

    def create_zone(self, data: ZoneCreate) -> Zone:
        return self.evaluator.create_zone(
            name=data.name, lat=data.lat, lon=data.lon, radius_m=data.radius_m, kind=data.kind,
        )

    def zones_near(self, lat: float, lon: float, radius_km: float = 10.0) -> list[Zone]:
        return self.evaluator.zones_near(lat, lon, radius_km)

    def active_memberships(self) -> list[GeofenceAlert]:
        return self.evaluator.active_alerts()

    # ── Alerts ───────────────────────────────────────────────────────────────

    def list_alerts(self) -> list[Alert]:
        return self.store.get_alerts()

    def vessel_alerts(self, vessel_id: int) -> list[Alert]:
        return self.store.get_vessel_alerts(vessel_id)

    def create_alert(self, data: AlertCreate) -> Alert:
        alert = self.store.create_alert(data)
        self.broadcaster.publish(EventKind.ALERT_CREATED, {"alert": alert.model_dump(mode="json")})
        return alert
