"""Tests for geofence entry/exit transitions and restricted-zone violations."""
from __future__ import annotations

import pytest

from fleetwatch.modules.broadcaster import EventBroadcaster
from fleetwatch.modules.geofence import GeofenceEvaluator
from fleetwatch.schemas.events import EventKind
from fleetwatch.schemas.vessel import VesselCreate, VesselUpdate
from fleetwatch.schemas.zone import ZoneCreate
from fleetwatch.utils.geo import haversine_meters

DUBAI = (25.2048, 55.2708)
OFFSHORE = (25.6, 55.9)


@pytest.fixture
def broadcaster():
    return EventBroadcaster()


@pytest.fixture
def evaluator(memory_store, broadcaster):
    return GeofenceEvaluator(memory_store, broadcaster)


@pytest.fixture
def vessel(memory_store):
    return memory_store.create(VesselCreate(station_id="636012345", name="Dubai Trader", lat=OFFSHORE[0], lon=OFFSHORE[1]))


def _move(store, vessel, lat, lon):
    return store.update(vessel.vessel_id, VesselUpdate(lat=lat, lon=lon))


def test_entry_and_exit_fire_exactly_once(memory_store, evaluator, vessel):
    zone = memory_store.create_zone(ZoneCreate(name="Dubai Port", kind="port", lat=DUBAI[0], lon=DUBAI[1], radius_m=5000))

    assert evaluator.evaluate(vessel) == []

    inside = _move(memory_store, vessel, *DUBAI)
    events = evaluator.evaluate(inside)
    assert [e.alert_type for e in events] == ["entry"]
    assert events[0].zone_id == zone.zone_id
    assert evaluator.evaluate(inside) == []
    assert evaluator.evaluate(inside) == []

    outside = _move(memory_store, vessel, *OFFSHORE)
    assert [e.alert_type for e in evaluator.evaluate(outside)] == ["exit"]
    assert evaluator.evaluate(outside) == []


def test_boundary_counts_as_inside(memory_store, evaluator, vessel):
    # Radius set to the exact distance of a point one degree north
    radius = haversine_meters(26.0, 55.0, 25.0, 55.0)
    memory_store.create_zone(ZoneCreate(name="Edge", lat=25.0, lon=55.0, radius_m=radius))
    at_edge = _move(memory_store, vessel, 26.0, 55.0)
    assert [e.alert_type for e in evaluator.evaluate(at_edge)] == ["entry"]


def test_violation_on_every_evaluation(memory_store, evaluator, vessel):
    memory_store.create_zone(ZoneCreate(name="Naval Area", kind="restricted", lat=DUBAI[0], lon=DUBAI[1], radius_m=3000))
    inside = _move(memory_store, vessel, *DUBAI)

    first = evaluator.evaluate(inside)
    assert sorted(e.alert_type for e in first) == ["entry", "violation"]
    for _ in range(3):
        assert [e.alert_type for e in evaluator.evaluate(inside)] == ["violation"]

    violations = [a for a in memory_store.get_alerts() if a.severity == "high"]
    assert len(violations) == 4


def test_events_create_alerts_and_broadcast(memory_store, evaluator, broadcaster, vessel):
    sub = broadcaster.subscribe()
    zone = memory_store.create_zone(ZoneCreate(name="Dubai Port", kind="port", lat=DUBAI[0], lon=DUBAI[1], radius_m=5000))
    evaluator.evaluate(_move(memory_store, vessel, *DUBAI))

    alerts = memory_store.get_vessel_alerts(vessel.vessel_id)
    assert len(alerts) == 1
    assert alerts[0].category == "geofence"
    assert alerts[0].severity == "info"
    assert alerts[0].message == "Dubai Trader entered Dubai Port"

    event = sub.get(timeout=0.1)
    assert event.kind == EventKind.GEOFENCE_ALERT
    assert event.payload["alert"]["alert_id"] == alerts[0].alert_id
    assert event.payload["vessel"]["vessel_id"] == vessel.vessel_id
    assert event.payload["zone"]["zone_id"] == zone.zone_id


def test_exit_message(memory_store, evaluator, vessel):
    memory_store.create_zone(ZoneCreate(name="Dubai Port", kind="port", lat=DUBAI[0], lon=DUBAI[1], radius_m=5000))
    evaluator.evaluate(_move(memory_store, vessel, *DUBAI))
    evaluator.evaluate(_move(memory_store, vessel, *OFFSHORE))
    messages = [a.message for a in memory_store.get_alerts()]
    assert messages == ["Dubai Trader entered Dubai Port", "Dubai Trader exited Dubai Port"]


def test_memberships_and_forget(memory_store, evaluator, vessel):
    zone = memory_store.create_zone(ZoneCreate(name="Dubai Port", lat=DUBAI[0], lon=DUBAI[1], radius_m=5000))
    inside = _move(memory_store, vessel, *DUBAI)
    evaluator.evaluate(inside)
    assert [(m.vessel_id, m.zone_id) for m in evaluator.active_alerts()] == [(vessel.vessel_id, zone.zone_id)]

    assert evaluator.forget_vessel(vessel.vessel_id) == 1
    assert evaluator.active_alerts() == []
    # Membership gone: the next evaluation is a fresh entry
    assert [e.alert_type for e in evaluator.evaluate(inside)] == ["entry"]

    assert evaluator.clear_membership(vessel.vessel_id, zone.zone_id) is True
    assert evaluator.clear_membership(vessel.vessel_id, zone.zone_id) is False


def test_zones_near(memory_store, evaluator):
    memory_store.create_zone(ZoneCreate(name="Dubai Port", lat=DUBAI[0], lon=DUBAI[1], radius_m=5000))
    memory_store.create_zone(ZoneCreate(name="Jebel Ali", lat=24.9964, lon=55.0136, radius_m=7000))
    assert [z.name for z in evaluator.zones_near(*DUBAI, radius_km=10)] == ["Dubai Port"]
    assert len(evaluator.zones_near(*DUBAI, radius_km=50)) == 2


def test_create_zone_publishes(memory_store, evaluator, broadcaster):
    sub = broadcaster.subscribe()
    zone = evaluator.create_zone("Marina", 25.0769, 55.1413, 2000, kind="marina")
    assert memory_store.get_zone(zone.zone_id).kind == "marina"
    assert sub.get(timeout=0.1).kind == EventKind.ZONE_ADDED
