"""Zone entity: circular geofence defined by operators."""
from __future__ import annotations

from sqlalchemy import Integer, String, Float, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from fleetwatch.models.base import Base, ZoneKindEnum


class Zone(Base):
    __tablename__ = "zones"
    __table_args__ = (
        CheckConstraint("radius_m > 0", name="ck_zone_radius_positive"),
    )

    zone_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False, default=ZoneKindEnum.MONITORING.value)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    radius_m: Mapped[float] = mapped_column(Float, nullable=False)
