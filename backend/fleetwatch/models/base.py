"""Shared declarative base and enums for all models."""
from __future__ import annotations

import enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class RiskLevelEnum(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ZoneKindEnum(str, enum.Enum):
    PORT = "port"
    RESTRICTED = "restricted"
    MONITORING = "monitoring"
    # Operators may define other kinds (e.g. "marina"); the column is free text.
