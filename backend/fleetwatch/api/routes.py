from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from fleetwatch.config import settings
from fleetwatch.errors import NotFoundError
from fleetwatch.modules.tracking_service import TrackingService
from fleetwatch.schemas.alert import Alert, AlertCreate
from fleetwatch.schemas.analytics import (
    ETAPrediction,
    GeofenceAlert,
    HistoricalAnalysis,
    PerformanceMetrics,
    RouteOptimization,
)
from fleetwatch.schemas.report import IdentityReport, PositionReport
from fleetwatch.schemas.vessel import TrackPoint, VesselCreate, VesselRecord, VesselUpdate
from fleetwatch.schemas.zone import Zone, ZoneCreate

logger = logging.getLogger(__name__)

router = APIRouter()
# Mounted at the root so observers connect to /ws
ws_router = APIRouter()

# Seconds between checks of a websocket observer's queue
_WS_POLL_SECONDS = 1.0


def get_service(request: Request) -> TrackingService:
    return request.app.state.service


def _require_vessel(service: TrackingService, vessel_id: int) -> VesselRecord:
    vessel = service.get_vessel(vessel_id)
    if vessel is None:
        raise NotFoundError("Vessel not found")
    return vessel


def _unavailable(service: TrackingService, vessel_id: int, what: str):
    """None from an analytics call: missing vessel, or not enough data."""
    _require_vessel(service, vessel_id)
    raise NotFoundError(f"{what} unavailable for vessel {vessel_id}", reason="unavailable")


# ── Vessels ──────────────────────────────────────────────────────────────────

@router.get("/vessels", response_model=list[VesselRecord], tags=["vessels"])
def list_vessels(
    limit: Optional[int] = Query(None, ge=1, le=settings.MAX_QUERY_LIMIT),
    service: TrackingService = Depends(get_service),
):
    return service.list_vessels(limit=limit)


@router.get("/vessels/search", response_model=list[VesselRecord], tags=["vessels"])
def search_vessels(q: str = Query(..., min_length=1), service: TrackingService = Depends(get_service)):
    """Case-insensitive substring match on name, registry id and station id."""
    return service.search(q)


@router.get("/vessels/filter", response_model=list[VesselRecord], tags=["vessels"])
def filter_vessels(
    vessel_type: Optional[str] = Query(None, alias="type"),
    status: Optional[str] = None,
    service: TrackingService = Depends(get_service),
):
    return service.filter(vessel_type=vessel_type, status=status)


@router.get("/vessels/{vessel_id}", response_model=VesselRecord, tags=["vessels"])
def get_vessel(vessel_id: int, service: TrackingService = Depends(get_service)):
    return _require_vessel(service, vessel_id)


@router.post("/vessels", response_model=VesselRecord, status_code=201, tags=["vessels"])
def create_vessel(body: VesselCreate, service: TrackingService = Depends(get_service)):
    return service.create_vessel(body)


@router.put("/vessels/{vessel_id}", response_model=VesselRecord, tags=["vessels"])
def update_vessel(vessel_id: int, body: VesselUpdate, service: TrackingService = Depends(get_service)):
    vessel = service.update_vessel(vessel_id, body)
    if vessel is None:
        raise NotFoundError("Vessel not found")
    return vessel


@router.delete("/vessels/{vessel_id}", status_code=204, tags=["vessels"])
def delete_vessel(vessel_id: int, service: TrackingService = Depends(get_service)):
    if not service.delete_vessel(vessel_id):
        raise NotFoundError("Vessel not found")
    return Response(status_code=204)


@router.get("/vessels/{vessel_id}/track", response_model=list[TrackPoint], tags=["vessels"])
def get_track(vessel_id: int, service: TrackingService = Depends(get_service)):
    _require_vessel(service, vessel_id)
    return service.get_track(vessel_id)


@router.get("/vessels/{vessel_id}/alerts", response_model=list[Alert], tags=["vessels"])
def get_vessel_alerts(vessel_id: int, service: TrackingService = Depends(get_service)):
    _require_vessel(service, vessel_id)
    return service.vessel_alerts(vessel_id)


# ── Analytics ────────────────────────────────────────────────────────────────

@router.get("/vessels/{vessel_id}/eta", response_model=ETAPrediction, tags=["analytics"])
def get_eta(vessel_id: int, service: TrackingService = Depends(get_service)):
    prediction = service.predict_eta(vessel_id)
    if prediction is None:
        _unavailable(service, vessel_id, "ETA")
    return prediction


@router.get("/eta", response_model=list[ETAPrediction], tags=["analytics"])
def get_all_etas(service: TrackingService = Depends(get_service)):
    return service.predict_all_etas()


@router.get("/vessels/{vessel_id}/history", response_model=HistoricalAnalysis, tags=["analytics"])
def get_history(
    vessel_id: int,
    days: int = Query(settings.HISTORY_LOOKBACK_DAYS, ge=1, le=365),
    service: TrackingService = Depends(get_service),
):
    analysis = service.analyze_history(vessel_id, days=days)
    if analysis is None:
        _unavailable(service, vessel_id, "History")
    return analysis


@router.get("/vessels/{vessel_id}/performance", response_model=PerformanceMetrics, tags=["analytics"])
def get_performance(vessel_id: int, service: TrackingService = Depends(get_service)):
    metrics = service.performance_metrics(vessel_id)
    if metrics is None:
        _unavailable(service, vessel_id, "Performance metrics")
    return metrics


@router.get("/vessels/{vessel_id}/route-optimization", response_model=RouteOptimization, tags=["analytics"])
def get_route_optimization(vessel_id: int, service: TrackingService = Depends(get_service)):
    result = service.route_optimization(vessel_id)
    if result is None:
        _unavailable(service, vessel_id, "Route optimization")
    return result


# ── Zones ────────────────────────────────────────────────────────────────────

@router.get("/zones", response_model=list[Zone], tags=["zones"])
def list_zones(service: TrackingService = Depends(get_service)):
    return service.list_zones()


@router.get("/zones/near", response_model=list[Zone], tags=["zones"])
def zones_near(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(10.0, gt=0),
    service: TrackingService = Depends(get_service),
):
    return service.zones_near(lat, lon, radius_km)


@router.post("/zones", response_model=Zone, status_code=201, tags=["zones"])
def create_zone(body: ZoneCreate, service: TrackingService = Depends(get_service)):
    return service.create_zone(body)


@router.get("/geofence/memberships", response_model=list[GeofenceAlert], tags=["zones"])
def active_memberships(service: TrackingService = Depends(get_service)):
    return service.active_memberships()


# ── Alerts ───────────────────────────────────────────────────────────────────

@router.get("/alerts", response_model=list[Alert], tags=["alerts"])
def list_alerts(service: TrackingService = Depends(get_service)):
    return service.list_alerts()


@router.post("/alerts", response_model=Alert, status_code=201, tags=["alerts"])
def create_alert(body: AlertCreate, service: TrackingService = Depends(get_service)):
    return service.create_alert(body)


# ── Ingestion ────────────────────────────────────────────────────────────────

@router.post("/reports/position", response_model=Optional[VesselRecord], tags=["ingestion"])
def ingest_position(body: PositionReport, service: TrackingService = Depends(get_service)):
    """Apply one position report. Returns the affected vessel, or null if it was only staged."""
    return service.ingest(body)


@router.post("/reports/identity", response_model=Optional[VesselRecord], tags=["ingestion"])
def ingest_identity(body: IdentityReport, service: TrackingService = Depends(get_service)):
    return service.ingest(body)


@router.get("/feed/status", tags=["ingestion"])
def feed_status(service: TrackingService = Depends(get_service)) -> dict:
    return service.feed_status()


# ── Live events ──────────────────────────────────────────────────────────────

@ws_router.websocket("/ws")
async def live_events(websocket: WebSocket):
    service: TrackingService = websocket.app.state.service
    await websocket.accept()
    sub = service.broadcaster.subscribe()
    logger.info("WebSocket observer %d connected", sub.subscriber_id)
    try:
        while True:
            event = await run_in_threadpool(sub.get, _WS_POLL_SECONDS)
            if event is None:
                if sub.closed:
                    # Dropped by the broadcaster (queue overflow)
                    await websocket.close(code=1013)
                    break
                continue
            await websocket.send_json(event.to_wire())
    except WebSocketDisconnect:
        pass
    finally:
        service.broadcaster.unsubscribe(sub)
        logger.info("WebSocket observer %d disconnected", sub.subscriber_id)
