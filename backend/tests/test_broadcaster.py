"""Tests for the in-process event broadcaster."""
from __future__ import annotations

from fleetwatch.modules.broadcaster import EventBroadcaster
from fleetwatch.schemas.events import EventKind


def test_every_subscriber_receives_events_in_order():
    broadcaster = EventBroadcaster(max_queue=10)
    a, b = broadcaster.subscribe(), broadcaster.subscribe()
    for i in range(3):
        broadcaster.publish(EventKind.VESSEL_UPDATED, {"seq": i})

    for sub in (a, b):
        assert [sub.get(timeout=0.1).payload["seq"] for _ in range(3)] == [0, 1, 2]
        assert sub.get(timeout=0.01) is None


def test_full_queue_drops_only_that_observer():
    broadcaster = EventBroadcaster(max_queue=2)
    slow, fast = broadcaster.subscribe(), broadcaster.subscribe()
    broadcaster.publish(EventKind.VESSEL_ADDED, {"seq": 0})
    broadcaster.publish(EventKind.VESSEL_ADDED, {"seq": 1})
    assert fast.get(timeout=0.1).payload["seq"] == 0
    assert fast.get(timeout=0.1).payload["seq"] == 1

    # slow never drained: third publish overflows it
    broadcaster.publish(EventKind.VESSEL_ADDED, {"seq": 2})

    assert slow.closed
    assert not fast.closed
    assert broadcaster.subscriber_count == 1
    assert fast.get(timeout=0.1).payload["seq"] == 2


def test_publish_without_subscribers_is_a_no_op():
    broadcaster = EventBroadcaster()
    event = broadcaster.publish(EventKind.ALERT_CREATED, {"alert": {"alert_id": 1}})
    assert event.kind == EventKind.ALERT_CREATED


def test_unsubscribe_stops_delivery():
    broadcaster = EventBroadcaster()
    sub = broadcaster.subscribe()
    broadcaster.unsubscribe(sub)
    broadcaster.publish(EventKind.VESSEL_DELETED, {"vessel_id": 1})
    assert sub.get(timeout=0.01) is None
    assert broadcaster.subscriber_count == 0


def test_wire_format_is_flat():
    broadcaster = EventBroadcaster()
    event = broadcaster.publish(EventKind.VESSEL_DELETED, {"vessel_id": 3})
    assert event.to_wire() == {"type": "vessel_deleted", "vessel_id": 3}
