"""AIS report normalization and validation.

Code tables for navigational status and ship type, station-id checks,
sentinel handling for SOG/COG/heading and flexible timestamp parsing.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

from fleetwatch.errors import ValidationError


# --- Code tables ---

NAV_STATUS_LABELS: dict[int, str] = {
    0: "Under Way",
    1: "Anchored",
    2: "Not Under Command",
    3: "Restricted Manoeuvrability",
    4: "Constrained by Draught",
    5: "Moored",
    6: "Aground",
    7: "Engaged in Fishing",
    8: "Under Way Sailing",
    15: "Undefined",
}

_VESSEL_TYPE_LABELS: dict[int, str] = {
    1: "Passenger",
    2: "Cargo",
    3: "Tanker",
    4: "Container",
    5: "Fishing",
    6: "Tug",
    7: "Other",
    8: "Other",
    9: "Other",
}

VESSEL_TYPE_CATEGORIES = frozenset(_VESSEL_TYPE_LABELS.values())

_COMMON_TIMESTAMP_FORMATS = [
    "%m/%d/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%d-%m-%Y %H:%M:%S",
]


def status_from_code(code: Optional[int]) -> str:
    if code is None:
        return "Unknown"
    return NAV_STATUS_LABELS.get(code, "Unknown")


def vessel_type_from_code(code: Optional[int]) -> str:
    """Map a ship-type code onto the closed category set.

    Single-digit codes use the category table directly; two-digit ITU-R M.1371
    ship-type codes are reduced by their leading digit / special values.
    """
    if not code:
        return "Other"
    if code in _VESSEL_TYPE_LABELS:
        return _VESSEL_TYPE_LABELS[code]
    if 60 <= code <= 69:
        return "Passenger"
    if 70 <= code <= 79:
        return "Cargo"
    if 80 <= code <= 89:
        return "Tanker"
    if code == 30:
        return "Fishing"
    if code in (31, 32, 52):
        return "Tug"
    return "Other"


def normalize_station_id(raw: Any) -> str:
    """Return a 9-digit station id or raise ValidationError."""
    if raw is None or isinstance(raw, bool):
        raise ValidationError("Missing station id")
    station_id = str(raw).strip()
    if not station_id:
        raise ValidationError("Missing station id")
    # Some exporters drop leading zeros
    station_id = station_id.zfill(9)
    if not re.fullmatch(r"\d{9}", station_id):
        raise ValidationError(f"Invalid station id: {station_id!r} (must be 9 digits)")
    return station_id


def clean_speed(sog: Any) -> Optional[float]:
    """SOG in knots; 102.3 (raw 1023) means not available."""
    if sog is None:
        return None
    try:
        sog = float(sog)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid SOG: {sog!r}")
    if sog >= 102.2:
        return None
    if sog < 0:
        raise ValidationError(f"Negative SOG: {sog}")
    return sog


def clean_course(cog: Any) -> Optional[float]:
    """COG in degrees; 360.0 (raw 3600) means not available."""
    if cog is None:
        return None
    try:
        cog = float(cog)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid COG: {cog!r}")
    return None if cog >= 360.0 or cog < 0 else cog


def clean_heading(heading: Any) -> Optional[float]:
    """True heading in degrees; 511 means not available."""
    if heading is None:
        return None
    try:
        value = float(heading)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid heading: {heading!r}")
    if value == 511:
        return None
    if value < 0 or value > 360:
        raise ValidationError(f"Heading out of range: {value}")
    return value


def as_utc(ts: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)


def parse_timestamp_flexible(ts: Any) -> datetime | None:
    """Parse a timestamp from various formats into an aware UTC datetime.

    Returns None if parsing fails.
    Supports: ISO 8601, Unix epoch, common strftime formats and the Go-style
    format emitted by aisstream.io.
    """
    if isinstance(ts, datetime):
        return as_utc(ts)

    # Unix epoch (int or float)
    if isinstance(ts, (int, float)) and not isinstance(ts, bool) and ts > 1_000_000_000:
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OSError, ValueError, OverflowError):
            return None

    if isinstance(ts, str):
        ts_str = ts.strip()
        if not ts_str:
            return None

        # Go-style: "2024-12-29 18:22:32.318353 +0000 UTC" (nanosecond precision is truncated)
        if ts_str.endswith(" UTC"):
            cleaned = ts_str[:-4].strip()
            cleaned = re.sub(r"(\.\d{6})\d+", r"\1", cleaned)
            for go_fmt in (
                "%Y-%m-%d %H:%M:%S.%f %z",
                "%Y-%m-%d %H:%M:%S %z",
            ):
                try:
                    return as_utc(datetime.strptime(cleaned, go_fmt))
                except ValueError:
                    continue

        try:
            return as_utc(datetime.fromisoformat(ts_str.replace("Z", "+00:00")))
        except ValueError:
            pass

        for fmt in _COMMON_TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(ts_str, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue

    return None


def parse_ais_eta(raw: Any, reference: datetime) -> Optional[datetime]:
    """Resolve an AIS ETA into an absolute UTC datetime.

    Accepts the message-5 form {"Month", "Day", "Hour", "Minute"} (no year:
    the next occurrence at or after *reference* is used; month/day 0 and hour
    24 mean not available) or an epoch / ISO value.
    """
    if raw is None:
        return None
    if isinstance(raw, dict):
        month, day = raw.get("Month") or 0, raw.get("Day") or 0
        hour, minute = raw.get("Hour", 24), raw.get("Minute", 60)
        if not (1 <= month <= 12 and 1 <= day <= 31):
            return None
        if hour is None or minute is None or hour >= 24 or minute >= 60:
            hour, minute = 0, 0
        for year in (reference.year, reference.year + 1):
            try:
                candidate = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
            except ValueError:
                continue
            if candidate >= reference:
                return candidate
        return None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return parse_timestamp_flexible(raw)
    if isinstance(raw, str):
        return parse_timestamp_flexible(raw)
    return None
