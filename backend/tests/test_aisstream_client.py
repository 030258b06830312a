"""Tests for the aisstream.io feed: message mapping and the reconnect state machine."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from fleetwatch.errors import ConfigurationError, UpstreamConnectionError, ValidationError
from fleetwatch.modules.aisstream_client import (
    AISStreamFeed,
    FeedState,
    map_position_report,
    map_static_data,
    parse_message,
)
from fleetwatch.schemas.report import IdentityReport, PositionReport


def _time_utc(offset=timedelta(minutes=-1)) -> str:
    ts = datetime.now(timezone.utc) + offset
    return ts.strftime("%Y-%m-%d %H:%M:%S.123456789 +0000 UTC")


def _position_msg(mmsi=636012345, msg_type="PositionReport", offset=timedelta(minutes=-1), **body):
    report = {"UserID": mmsi, "Latitude": 25.2, "Longitude": 55.27, "Sog": 12.3,
              "Cog": 90.0, "TrueHeading": 88, "NavigationalStatus": 0}
    report.update(body)
    return {
        "MessageType": msg_type,
        "MetaData": {"MMSI": mmsi, "ShipName": "DUBAI TRADER   ", "latitude": 25.2,
                     "longitude": 55.27, "time_utc": _time_utc(offset)},
        "Message": {msg_type: report},
    }


def _with_meta(msg, **meta):
    msg["MetaData"].update(meta)
    return msg


def _static_msg(mmsi=636012345):
    return {
        "MessageType": "ShipStaticData",
        "MetaData": {"MMSI": mmsi, "ShipName": "DUBAI TRADER", "time_utc": _time_utc()},
        "Message": {"ShipStaticData": {
            "UserID": mmsi,
            "ImoNumber": 9123456,
            "Name": "DUBAI TRADER        ",
            "Type": 70,
            "Dimension": {"A": 100, "B": 80, "C": 14, "D": 14},
            "Destination": "JEBEL ALI ",
            "Eta": {"Month": 0, "Day": 0, "Hour": 24, "Minute": 60},
        }},
    }


# ── Message mapping ──────────────────────────────────────────────────────────

class TestMapPositionReport:
    def test_class_a(self):
        report = map_position_report(_position_msg())
        assert isinstance(report, PositionReport)
        assert report.station_id == "636012345"
        assert (report.lat, report.lon) == (25.2, 55.27)
        assert report.speed == 12.3
        assert report.heading == 88.0
        assert report.course == 90.0
        assert report.nav_status_code == 0
        assert report.name == "DUBAI TRADER"
        assert report.timestamp.tzinfo is not None

    def test_class_b(self):
        msg = _position_msg(msg_type="StandardClassBPositionReport")
        assert map_position_report(msg, msg_type="StandardClassBPositionReport").station_id == "636012345"

    def test_sentinels_become_none(self):
        report = map_position_report(_position_msg(Sog=102.3, Cog=360.0, TrueHeading=511))
        assert report.speed is None
        assert report.course is None
        assert report.heading is None

    def test_coordinates_passed_through_unchecked(self):
        msg = _position_msg()
        msg["MetaData"].update(latitude=91.0, longitude=181.0)
        report = map_position_report(msg)
        assert (report.lat, report.lon) == (91.0, 181.0)

    def test_future_timestamp_rejected(self):
        with pytest.raises(ValidationError):
            map_position_report(_position_msg(offset=timedelta(minutes=10)))

    def test_small_clock_skew_accepted(self):
        assert map_position_report(_position_msg(offset=timedelta(minutes=4))) is not None

    def test_short_mmsi_is_padded(self):
        assert map_position_report(_position_msg(mmsi=24123456)).station_id == "024123456"

    def test_empty_body_rejected(self):
        msg = _position_msg()
        msg["Message"] = {}
        with pytest.raises(ValidationError):
            map_position_report(msg)


def test_map_static_data():
    report = map_static_data(_static_msg())
    assert isinstance(report, IdentityReport)
    assert report.registry_id == "9123456"
    assert report.name == "DUBAI TRADER"
    assert report.type_code == 70
    assert report.length == 180
    assert report.width == 28
    assert report.destination == "JEBEL ALI"
    assert report.eta is None


class TestParseMessage:
    def test_dispatches_by_type(self):
        assert isinstance(parse_message(json.dumps(_position_msg())), PositionReport)
        assert isinstance(parse_message(json.dumps(_static_msg())), IdentityReport)

    def test_unknown_type_ignored(self):
        assert parse_message(json.dumps({"MessageType": "AidsToNavigationReport", "Message": {}})) is None

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", json.dumps({"error": "Api Key Is Not Valid"})])
    def test_malformed_frames_rejected(self, raw):
        with pytest.raises(ValidationError):
            parse_message(raw)

    @pytest.mark.parametrize("msg", [
        _with_meta(_position_msg(), latitude="north"),
        _position_msg(NavigationalStatus="moored"),
        {**_static_msg(), "Message": [1, 2]},
        {**_position_msg(), "MetaData": "636012345"},
    ])
    def test_wrongly_typed_fields_rejected(self, msg):
        with pytest.raises(ValidationError):
            parse_message(json.dumps(msg))

    def test_wrongly_typed_static_fields_rejected(self):
        msg = _static_msg()
        msg["Message"]["ShipStaticData"]["Type"] = "tanker"
        with pytest.raises(ValidationError):
            parse_message(json.dumps(msg))


# ── Feed ─────────────────────────────────────────────────────────────────────

class FakeSocket:
    """Async context manager standing in for a websockets connection."""

    def __init__(self, frames=(), fail=None, end_with=None):
        self.frames = list(frames)
        self.fail = fail
        self.end_with = end_with
        self.sent = []

    async def __aenter__(self):
        if self.fail is not None:
            raise self.fail
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def send(self, message):
        self.sent.append(json.loads(message))

    async def recv(self):
        if self.frames:
            return self.frames.pop(0)
        if self.end_with is not None:
            raise self.end_with
        await asyncio.sleep(3600)


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def _feed(sockets, received=None, **kwargs):
    received = received if received is not None else []
    queue = iter(sockets)
    kwargs.setdefault("sleep", FakeSleep())
    return AISStreamFeed(
        "test-key",
        on_report=received.append,
        connect=lambda url: next(queue),
        **kwargs,
    )


def test_missing_api_key_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        AISStreamFeed(None, on_report=lambda r: None)


def test_subscription_message_defaults_to_whole_world():
    feed = _feed([])
    msg = feed.subscription_message()
    assert msg["APIKey"] == "test-key"
    assert msg["BoundingBoxes"] == [[[-90.0, -180.0], [90.0, 180.0]]]
    assert msg["FilterMessageTypes"] == ["PositionReport", "StandardClassBPositionReport", "ShipStaticData"]


def test_backoff_delay_doubles():
    feed = _feed([], base_delay=0.5)
    assert [feed.backoff_delay(n) for n in range(4)] == [0.5, 1.0, 2.0, 4.0]


def test_backoff_jitter_is_bounded():
    feed = _feed([], base_delay=1.0, jitter=0.5)
    assert all(2.0 <= feed.backoff_delay(1) <= 2.5 for _ in range(20))


def test_handle_frame_counts():
    received = []
    feed = _feed([], received)
    feed.handle_frame(json.dumps(_position_msg()))
    feed.handle_frame(json.dumps(_static_msg()))
    feed.handle_frame("{broken")
    feed.handle_frame(json.dumps({"MessageType": "AidsToNavigationReport"}))

    assert feed.stats["messages_received"] == 4
    assert feed.stats["position_reports"] == 1
    assert feed.stats["static_data_msgs"] == 1
    assert feed.stats["dropped"] == 1
    assert feed.stats["reports_applied"] == 2
    assert feed.stats["stations_seen"] == {"636012345"}
    assert len(received) == 2


def test_run_streams_until_deadline():
    received = []
    socket = FakeSocket(frames=[json.dumps(_position_msg()), json.dumps(_position_msg(mmsi=636023456))])
    feed = _feed([socket], received)

    summary = asyncio.run(feed.run(duration_seconds=0.2))

    assert socket.sent[0]["APIKey"] == "test-key"
    assert [r.station_id for r in received] == ["636012345", "636023456"]
    assert summary["stations_seen"] == 2
    assert summary["reconnects"] == 0
    assert "incomplete" not in summary
    assert feed.state == FeedState.DISCONNECTED


def test_run_survives_wrongly_typed_frame():
    received = []
    socket = FakeSocket(frames=[
        json.dumps(_with_meta(_position_msg(), latitude="north")),
        json.dumps(_position_msg(mmsi=636023456)),
    ])
    feed = _feed([socket], received)

    summary = asyncio.run(feed.run(duration_seconds=0.2))

    assert summary["dropped"] == 1
    assert summary["messages_received"] == 2
    assert [r.station_id for r in received] == ["636023456"]
    assert feed.state == FeedState.DISCONNECTED


def test_reconnect_resets_attempts_after_success():
    sleep = FakeSleep()
    sockets = [
        FakeSocket(fail=OSError("connection refused")),
        FakeSocket(frames=[json.dumps(_position_msg())], end_with=OSError("reset by peer")),
        FakeSocket(),
    ]
    feed = _feed(sockets, sleep=sleep, base_delay=1.0)

    summary = asyncio.run(feed.run(duration_seconds=0.2))

    # attempt counter restarts after the successful connection
    assert sleep.delays == [1.0, 1.0]
    assert summary["reconnects"] == 2
    assert summary["reports_applied"] == 1


def test_attempt_cap_fails_the_feed():
    sleep = FakeSleep()
    sockets = [FakeSocket(fail=OSError("unreachable")) for _ in range(4)]
    feed = _feed(sockets, sleep=sleep, base_delay=1.0, max_attempts=3)

    with pytest.raises(UpstreamConnectionError):
        asyncio.run(feed.run())

    assert sleep.delays == [1.0, 2.0, 4.0]
    assert feed.state == FeedState.FAILED


def test_feed_drives_the_reconciler(service):
    socket = FakeSocket(frames=[json.dumps(_static_msg()), json.dumps(_position_msg())])
    feed = AISStreamFeed(
        "test-key",
        on_report=service.reconciler.ingest_one,
        connect=lambda url: socket,
        sleep=FakeSleep(),
    )
    asyncio.run(feed.run(duration_seconds=0.2))

    vessel = service.store.get_by_station_id("636012345")
    assert vessel.registry_id == "9123456"
    assert vessel.name == "DUBAI TRADER"
    assert vessel.vessel_type == "Cargo"
    assert vessel.destination == "JEBEL ALI"
