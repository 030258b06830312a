"""Pydantic schemas for vessel records and track points."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fleetwatch.modules.normalize import as_utc

RiskLevel = Literal["low", "medium", "high"]


def _check_station_id(v: str) -> str:
    if not v.isdigit() or len(v) != 9:
        raise ValueError("station_id must be exactly 9 digits")
    return v


class VesselBase(BaseModel):
    station_id: str
    registry_id: Optional[str] = None
    name: str
    vessel_type: str = "Other"
    flag: Optional[str] = None
    length: Optional[float] = None
    width: Optional[float] = None
    status: str = "Unknown"
    speed: float = 0.0
    heading: Optional[float] = None
    course: Optional[float] = None
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    destination: Optional[str] = None
    eta: Optional[datetime] = None
    risk_level: RiskLevel = "low"
    risk_assessment: Optional[str] = None

    @field_validator("station_id")
    @classmethod
    def station_id_must_be_9_digits(cls, v: str) -> str:
        return _check_station_id(v)


class VesselCreate(VesselBase):
    pass


class VesselUpdate(BaseModel):
    """Partial update: only explicitly set fields are merged."""
    station_id: Optional[str] = None
    registry_id: Optional[str] = None
    name: Optional[str] = None
    vessel_type: Optional[str] = None
    flag: Optional[str] = None
    length: Optional[float] = None
    width: Optional[float] = None
    status: Optional[str] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    course: Optional[float] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lon: Optional[float] = Field(None, ge=-180, le=180)
    destination: Optional[str] = None
    eta: Optional[datetime] = None
    risk_level: Optional[RiskLevel] = None
    risk_assessment: Optional[str] = None

    @field_validator("station_id")
    @classmethod
    def station_id_must_be_9_digits(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_station_id(v)


class VesselRecord(VesselBase):
    vessel_id: int
    last_update: datetime

    model_config = ConfigDict(from_attributes=True)


class TrackPointCreate(BaseModel):
    vessel_id: int
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    timestamp: datetime
    speed: Optional[float] = None
    heading: Optional[float] = None

    @field_validator("timestamp")
    @classmethod
    def timestamp_in_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class TrackPoint(TrackPointCreate):
    point_id: int

    model_config = ConfigDict(from_attributes=True, frozen=True)
