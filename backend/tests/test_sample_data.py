"""Tests for the demo dataset loader."""
from __future__ import annotations

from fleetwatch.modules.sample_data import SAMPLE_VESSELS, load_sample_data


def test_load_populates_store(any_store):
    stats = load_sample_data(any_store)
    assert stats == {"vessels": 5, "track_points": 25, "zones": 3, "alerts": 2}
    assert {v.name for v in any_store.get_all()} == {e["name"] for e in SAMPLE_VESSELS}
    assert len(any_store.get_zones()) == 3


def test_trails_are_chronological_and_end_now(memory_store):
    load_sample_data(memory_store)
    vessel = memory_store.get_by_station_id("636012345")
    track = memory_store.get_track(vessel.vessel_id)
    assert len(track) == 5
    stamps = [p.timestamp for p in track]
    assert stamps == sorted(stamps)
    assert (stamps[-1] - stamps[0]).total_seconds() == 40 * 60
    assert all(abs(p.lat - vessel.lat) <= 0.005 for p in track)


def test_same_seed_same_trails(memory_store):
    from fleetwatch.store import MemoryVesselStore

    other = MemoryVesselStore()
    load_sample_data(memory_store, seed=1)
    load_sample_data(other, seed=1)
    a = [(p.lat, p.lon) for p in memory_store.get_track(memory_store.get_by_station_id("636012345").vessel_id)]
    b = [(p.lat, p.lon) for p in other.get_track(other.get_by_station_id("636012345").vessel_id)]
    assert a == b


def test_alerts_reference_seeded_vessels(memory_store):
    load_sample_data(memory_store)
    gulf = memory_store.get_by_station_id("636023456")
    assert [a.message for a in memory_store.get_vessel_alerts(gulf.vessel_id)] == [
        "Gulf Princess requires security inspection",
    ]


def test_reload_is_a_no_op(memory_store):
    load_sample_data(memory_store)
    stats = load_sample_data(memory_store)
    assert stats == {"vessels": 0, "track_points": 0, "zones": 0, "alerts": 0}
    assert len(memory_store.get_all()) == 5
    assert len(memory_store.get_zones()) == 3


def test_sample_vessels_get_etas(memory_store):
    load_sample_data(memory_store)
    assert all(v.eta is not None for v in memory_store.get_all())
