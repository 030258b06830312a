"""Pydantic schemas for alerts."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AlertCreate(BaseModel):
    vessel_id: Optional[int] = None
    category: str = Field(..., min_length=1, max_length=50)
    message: str = Field(..., min_length=1)
    severity: str = Field(default="info")
    is_active: bool = True


class AlertUpdate(BaseModel):
    message: Optional[str] = None
    severity: Optional[str] = None
    is_active: Optional[bool] = None


class Alert(AlertCreate):
    alert_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
