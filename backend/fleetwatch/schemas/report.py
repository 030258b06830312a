"""Typed upstream reports. The feed's wire format is mapped into these."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, field_validator

from fleetwatch.modules.normalize import as_utc


class PositionReport(BaseModel):
    station_id: str
    timestamp: datetime
    lat: Optional[float] = None
    lon: Optional[float] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    course: Optional[float] = None
    nav_status_code: Optional[int] = None
    name: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def timestamp_in_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class IdentityReport(BaseModel):
    station_id: str
    timestamp: datetime
    registry_id: Optional[str] = None
    name: Optional[str] = None
    type_code: Optional[int] = None
    flag: Optional[str] = None
    length: Optional[float] = None
    width: Optional[float] = None
    destination: Optional[str] = None
    eta: Optional[datetime] = None

    @field_validator("timestamp", "eta")
    @classmethod
    def times_in_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return None if v is None else as_utc(v)


Report = Union[PositionReport, IdentityReport]
