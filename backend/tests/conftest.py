"""Shared test fixtures: stores, a wired TrackingService and an API client."""
import random
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from fleetwatch.database import init_db, make_engine, make_session_factory
from fleetwatch.main import create_app
from fleetwatch.modules.tracking_service import TrackingService
from fleetwatch.schemas.report import IdentityReport, PositionReport
from fleetwatch.sql_store import SqlVesselStore
from fleetwatch.store import MemoryVesselStore
from fleetwatch.utils.gazetteer import Gazetteer, ReferencePort

DUBAI = (25.2048, 55.2708)
JEBEL_ALI = (24.9964, 55.0136)


@pytest.fixture
def memory_store():
    return MemoryVesselStore()


@pytest.fixture
def sql_store():
    """SqlVesselStore over a private in-memory SQLite database."""
    engine = make_engine("sqlite://")
    init_db(engine)
    yield SqlVesselStore(make_session_factory(engine))
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def any_store(request):
    """Runs a test once per VesselStore implementation."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def gazetteer():
    return Gazetteer([
        ReferencePort("Port of Dubai", DUBAI[0], DUBAI[1], 5000),
        ReferencePort("Jebel Ali Port", JEBEL_ALI[0], JEBEL_ALI[1], 7000),
    ])


@pytest.fixture
def service(memory_store, gazetteer):
    """TrackingService with the weather jitter disabled for deterministic ETAs."""
    return TrackingService(
        memory_store,
        gazetteer=gazetteer,
        eta_rng=random.Random(7),
        eta_jitter_hours=0.0,
    )


@pytest.fixture
def api_client(service):
    """TestClient over an app wired to the in-memory service fixture."""
    app = create_app(service)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def base_time():
    return datetime.now(timezone.utc).replace(microsecond=0) - timedelta(hours=2)


@pytest.fixture
def position(base_time):
    """Factory for PositionReport; *minutes* is an offset from base_time."""
    def _make(station_id="636012345", lat=DUBAI[0], lon=DUBAI[1], minutes=0, **kwargs):
        kwargs.setdefault("speed", 12.0)
        kwargs.setdefault("nav_status_code", 0)
        return PositionReport(
            station_id=station_id,
            timestamp=base_time + timedelta(minutes=minutes),
            lat=lat,
            lon=lon,
            **kwargs,
        )
    return _make


@pytest.fixture
def identity(base_time):
    def _make(station_id="636012345", minutes=0, **kwargs):
        return IdentityReport(
            station_id=station_id,
            timestamp=base_time + timedelta(minutes=minutes),
            **kwargs,
        )
    return _make
