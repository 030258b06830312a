"""Vessel entity: canonical identity plus latest reported state."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Float, DateTime, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from fleetwatch.models.base import Base, RiskLevelEnum


class Vessel(Base):
    __tablename__ = "vessels"
    __table_args__ = (
        CheckConstraint("lat >= -90 AND lat <= 90", name="ck_vessel_lat_bounds"),
        CheckConstraint("lon >= -180 AND lon <= 180", name="ck_vessel_lon_bounds"),
    )

    vessel_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    station_id: Mapped[str] = mapped_column(String(9), unique=True, nullable=False, index=True)
    registry_id: Mapped[Optional[str]] = mapped_column(String(20), unique=True, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    vessel_type: Mapped[str] = mapped_column(String(100), nullable=False, default="Other")
    flag: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    length: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    width: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Unknown")
    speed: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    heading: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    course: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    destination: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    eta: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    risk_level: Mapped[str] = mapped_column(String(10), nullable=False, default=RiskLevelEnum.LOW.value)
    risk_assessment: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    last_update: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), nullable=False
    )

    track_points: Mapped[list] = relationship("TrackPoint", back_populates="vessel", cascade="all, delete-orphan")
