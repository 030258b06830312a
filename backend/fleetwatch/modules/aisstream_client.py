"""aisstream.io WebSocket client: real-time AIS data streaming.

Connects to wss://stream.aisstream.io/v0/stream, maps PositionReport,
StandardClassBPositionReport and ShipStaticData messages into typed reports
and hands each one to a report handler (normally the reconciler).

Connection handling is an explicit state machine:

    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTING/CONNECTED --(error)--> BACKOFF -> CONNECTING
    BACKOFF --(attempt cap reached)--> FAILED

Usage:
    feed = AISStreamFeed(api_key, on_report=reconciler.ingest_one)
    stats = asyncio.run(feed.run(duration_seconds=300))
"""
from __future__ import annotations

import asyncio
import enum
import json
import logging
import random
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

import websockets
from pydantic import ValidationError as SchemaError

from fleetwatch.errors import ConfigurationError, UpstreamConnectionError, ValidationError
from fleetwatch.modules.normalize import (
    clean_course,
    clean_heading,
    clean_speed,
    normalize_station_id,
    parse_ais_eta,
    parse_timestamp_flexible,
)
from fleetwatch.schemas.report import IdentityReport, PositionReport, Report

logger = logging.getLogger(__name__)

DEFAULT_WS_URL = "wss://stream.aisstream.io/v0/stream"
POSITION_MESSAGE_TYPES = ("PositionReport", "StandardClassBPositionReport")
STATIC_MESSAGE_TYPE = "ShipStaticData"
DEFAULT_MESSAGE_TYPES = [*POSITION_MESSAGE_TYPES, STATIC_MESSAGE_TYPE]
_FUTURE_TOLERANCE = timedelta(minutes=5)


class FeedState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BACKOFF = "backoff"
    FAILED = "failed"


def _message_timestamp(meta: dict) -> datetime:
    ts = parse_timestamp_flexible(meta.get("time_utc", ""))
    if ts is None:
        raise ValidationError(f"Unparseable time_utc: {meta.get('time_utc')!r}")
    if ts > datetime.now(timezone.utc) + _FUTURE_TOLERANCE:
        raise ValidationError(f"Future timestamp rejected: {ts.isoformat()}")
    return ts


def _ship_name(meta: dict) -> Optional[str]:
    return (meta.get("ShipName") or "").strip() or None


def map_position_report(msg: dict, msg_type: str = "PositionReport") -> PositionReport:
    """Map an aisstream position message (Class A or Class B) to a PositionReport.

    Coordinates are passed through unchecked so the reconciler can stage them;
    SOG/COG/heading sentinels are mapped to None.
    """
    meta = msg.get("MetaData") or {}
    report = (msg.get("Message") or {}).get(msg_type) or {}
    if not report:
        raise ValidationError(f"Empty {msg_type} body")

    lat = meta.get("latitude", report.get("Latitude"))
    lon = meta.get("longitude", report.get("Longitude"))
    return PositionReport(
        station_id=normalize_station_id(meta.get("MMSI", report.get("UserID"))),
        timestamp=_message_timestamp(meta),
        lat=lat,
        lon=lon,
        speed=clean_speed(report.get("Sog")),
        heading=clean_heading(report.get("TrueHeading")),
        course=clean_course(report.get("Cog")),
        nav_status_code=report.get("NavigationalStatus"),
        name=_ship_name(meta),
    )


def map_static_data(msg: dict) -> IdentityReport:
    """Map an aisstream ShipStaticData message to an IdentityReport."""
    meta = msg.get("MetaData") or {}
    static = (msg.get("Message") or {}).get(STATIC_MESSAGE_TYPE) or {}
    if not static:
        raise ValidationError("Empty ShipStaticData body")

    length = width = None
    dim = static.get("Dimension") or {}
    if dim:
        a = dim.get("A", 0) or 0
        b = dim.get("B", 0) or 0
        c = dim.get("C", 0) or 0
        d = dim.get("D", 0) or 0
        length = (a + b) if (a + b) > 0 else None
        width = (c + d) if (c + d) > 0 else None

    timestamp = _message_timestamp(meta)
    imo = static.get("ImoNumber")
    return IdentityReport(
        station_id=normalize_station_id(meta.get("MMSI", static.get("UserID"))),
        timestamp=timestamp,
        registry_id=str(imo) if imo else None,
        name=(static.get("Name") or "").strip() or _ship_name(meta),
        type_code=static.get("Type") or None,
        length=length,
        width=width,
        destination=(static.get("Destination") or "").strip() or None,
        eta=parse_ais_eta(static.get("Eta"), timestamp),
    )


def parse_message(raw: str | bytes) -> Optional[Report]:
    """Decode one websocket frame. Returns None for message types that carry no report.

    Raises ValidationError for malformed frames.
    """
    try:
        msg = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Malformed JSON frame: {exc}")
    if not isinstance(msg, dict):
        raise ValidationError("Frame is not a JSON object")
    if "error" in msg:
        raise ValidationError(f"aisstream.io error: {msg['error']}")

    msg_type = msg.get("MessageType", "")
    try:
        if msg_type in POSITION_MESSAGE_TYPES:
            return map_position_report(msg, msg_type=msg_type)
        if msg_type == STATIC_MESSAGE_TYPE:
            return map_static_data(msg)
    except (SchemaError, TypeError, AttributeError) as exc:
        raise ValidationError(f"Malformed {msg_type} message: {exc}") from exc
    return None


class AISStreamFeed:
    def __init__(
        self,
        api_key: Optional[str],
        on_report: Callable[[Report], Any],
        ws_url: str = DEFAULT_WS_URL,
        bounding_boxes: Optional[list[list[list[float]]]] = None,
        message_types: Optional[list[str]] = None,
        base_delay: float = 1.0,
        max_attempts: int = 5,
        jitter: float = 0.0,
        connect: Optional[Callable[[str], Any]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not api_key:
            raise ConfigurationError("AISSTREAM_API_KEY is required for the aisstream.io feed")
        self._api_key = api_key
        self._on_report = on_report
        self.ws_url = ws_url
        # Whole world when no boxes are configured
        self.bounding_boxes = bounding_boxes or [[[-90.0, -180.0], [90.0, 180.0]]]
        self.message_types = message_types or list(DEFAULT_MESSAGE_TYPES)
        self.base_delay = base_delay
        self.max_attempts = max_attempts
        self.jitter = jitter
        self._connect = connect or websockets.connect
        self._sleep = sleep
        self._state = FeedState.DISCONNECTED
        self.stats: dict[str, Any] = self._fresh_stats()

    @classmethod
    def from_settings(cls, settings, on_report: Callable[[Report], Any]) -> "AISStreamFeed":
        return cls(
            api_key=settings.AISSTREAM_API_KEY,
            on_report=on_report,
            ws_url=settings.AISSTREAM_WS_URL,
            bounding_boxes=settings.AISSTREAM_BOUNDING_BOXES,
            message_types=settings.AISSTREAM_MESSAGE_TYPES,
            base_delay=settings.RECONNECT_BASE_DELAY,
            max_attempts=settings.RECONNECT_MAX_ATTEMPTS,
            jitter=settings.RECONNECT_JITTER,
        )

    @staticmethod
    def _fresh_stats() -> dict[str, Any]:
        return {
            "messages_received": 0,
            "position_reports": 0,
            "static_data_msgs": 0,
            "reports_applied": 0,
            "dropped": 0,
            "reconnects": 0,
            "stations_seen": set(),
        }

    @property
    def state(self) -> FeedState:
        return self._state

    def _set_state(self, state: FeedState) -> None:
        if state != self._state:
            logger.debug("aisstream.io feed %s -> %s", self._state.value, state.value)
            self._state = state

    def subscription_message(self) -> dict:
        return {
            "APIKey": self._api_key,
            "BoundingBoxes": self.bounding_boxes,
            "FiltersShipMMSI": [],
            "FilterMessageTypes": self.message_types,
        }

    def backoff_delay(self, attempt: int) -> float:
        """Delay before reconnect *attempt* (0-based): base * 2**attempt plus jitter."""
        delay = self.base_delay * (2 ** attempt)
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return delay

    def handle_frame(self, raw: str | bytes) -> None:
        self.stats["messages_received"] += 1
        try:
            report = parse_message(raw)
        except ValidationError as exc:
            self.stats["dropped"] += 1
            logger.debug("Dropped aisstream.io message: %s", exc)
            return
        if report is None:
            return
        if isinstance(report, PositionReport):
            self.stats["position_reports"] += 1
        else:
            self.stats["static_data_msgs"] += 1
        self.stats["stations_seen"].add(report.station_id)
        if self._on_report(report) is not False:
            self.stats["reports_applied"] += 1

    async def _consume(self, ws, deadline: Optional[float]) -> bool:
        """Read frames until the deadline. Returns True when the deadline was reached."""
        while True:
            timeout = None
            if deadline is not None:
                timeout = deadline - time.monotonic()
                if timeout <= 0:
                    return True
            try:
                raw = await asyncio.wait_for(ws.recv(), timeout=timeout)
            except asyncio.TimeoutError:
                return True
            self.handle_frame(raw)

    async def run(self, duration_seconds: float = 0) -> dict[str, Any]:
        """Stream until *duration_seconds* elapse (0 = until failure).

        Raises UpstreamConnectionError once the reconnect attempt cap is hit.
        """
        self.stats = self._fresh_stats()
        start = time.monotonic()
        deadline = start + duration_seconds if duration_seconds > 0 else None
        attempt = 0

        while True:
            self._set_state(FeedState.CONNECTING)
            reason: Exception | str
            try:
                async with self._connect(self.ws_url) as ws:
                    self._set_state(FeedState.CONNECTED)
                    attempt = 0
                    # Subscription must be sent within 3 seconds of connecting
                    await ws.send(json.dumps(self.subscription_message()))
                    logger.info(
                        "Connected to aisstream.io, streaming %d bounding boxes for %ss",
                        len(self.bounding_boxes),
                        duration_seconds or "unlimited",
                    )
                    if await self._consume(ws, deadline):
                        break
                reason = "stream closed by server"
            except (websockets.ConnectionClosed, websockets.WebSocketException, OSError) as exc:
                reason = exc

            if deadline is not None and time.monotonic() >= deadline:
                logger.warning("aisstream.io connection lost after duration expired: %s", reason)
                self.stats["incomplete"] = True
                break

            if attempt >= self.max_attempts:
                self._set_state(FeedState.FAILED)
                logger.error("aisstream.io connection lost after %d retries: %s", attempt, reason)
                raise UpstreamConnectionError(
                    f"aisstream.io unreachable after {attempt} reconnect attempts: {reason}"
                )

            delay = self.backoff_delay(attempt)
            attempt += 1
            self.stats["reconnects"] += 1
            self._set_state(FeedState.BACKOFF)
            logger.warning(
                "aisstream.io connection lost (%s), reconnecting in %.1fs (attempt %d/%d)",
                reason, delay, attempt, self.max_attempts,
            )
            await self._sleep(delay)

        self._set_state(FeedState.DISCONNECTED)
        summary = {**self.stats, "stations_seen": len(self.stats["stations_seen"])}
        summary["actual_duration_s"] = round(time.monotonic() - start, 1)
        logger.info(
            "aisstream.io session complete: %d msgs, %d reports applied, %d stations",
            summary["messages_received"],
            summary["reports_applied"],
            summary["stations_seen"],
        )
        return summary
