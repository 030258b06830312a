"""Pydantic schemas for geofence zones."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _normalize_kind(v: str) -> str:
    v = v.strip().lower()
    if not v:
        raise ValueError("zone kind must not be empty")
    return v


class ZoneCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    kind: str = Field(default="monitoring")
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    radius_m: float = Field(..., gt=0)

    @field_validator("kind")
    @classmethod
    def kind_lowercase(cls, v: str) -> str:
        return _normalize_kind(v)


class ZoneUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    kind: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lon: Optional[float] = Field(None, ge=-180, le=180)
    radius_m: Optional[float] = Field(None, gt=0)

    @field_validator("kind")
    @classmethod
    def kind_lowercase(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _normalize_kind(v)


class Zone(ZoneCreate):
    zone_id: int

    model_config = ConfigDict(from_attributes=True)
