"""TrackPoint entity: append-only movement history samples."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Float, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from fleetwatch.models.base import Base


class TrackPoint(Base):
    __tablename__ = "track_points"
    __table_args__ = (
        CheckConstraint("lat >= -90 AND lat <= 90", name="ck_track_lat_bounds"),
        CheckConstraint("lon >= -180 AND lon <= 180", name="ck_track_lon_bounds"),
        Index("ix_track_vessel_ts", "vessel_id", "timestamp"),
    )

    point_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("vessels.vessel_id", ondelete="CASCADE"), nullable=False, index=True
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    speed: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    heading: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    vessel: Mapped["Vessel"] = relationship("Vessel", back_populates="track_points")
