"""SQLAlchemy ORM models."""

from __future__ import annotations

import math

from sqlalchemy import Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wecarry.db.base import Base

EARTH_RADIUS_KM = 6371.0


class Location(Base):
    """A place (post origin/destination, meeting venue, user home)."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(2), nullable=False, default="")
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    @property
    def has_coords(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def distance_km(self, other: "Location") -> float | None:
        """Great-circle distance, or None when either side lacks coordinates."""
        if not (self.has_coords and other.has_coords):
            return None
        lat1, lon1 = math.radians(self.latitude), math.radians(self.longitude)
        lat2, lon2 = math.radians(other.latitude), math.radians(other.longitude)
        a = (
            math.sin((lat2 - lat1) / 2) ** 2
            + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
        )
        return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))
