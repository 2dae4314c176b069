"""
Location model — one GPS fix per row, submitted by a salesman.

Rows are append-only from the ingestion path and are removed either by the
retention sweep or by an explicit admin bulk delete.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (CheckConstraint, Column, DateTime, Float, ForeignKey,
                        Index, Integer, String)
from sqlalchemy.orm import relationship

from leaftrack.db.base import Base


class Location(Base):
    __tablename__ = "locations"
    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_location_latitude"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_location_longitude"),
        CheckConstraint("accuracy IS NULL OR accuracy >= 0", name="ck_location_accuracy"),
        Index("ix_location_salesman_timestamp", "salesman_id", "timestamp"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    salesman_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    latitude: float = Column(Float, nullable=False)  # type: ignore[assignment]
    longitude: float = Column(Float, nullable=False)  # type: ignore[assignment]
    accuracy: float | None = Column(Float, nullable=True)  # type: ignore[assignment]  # metres
    address: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    timestamp: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    salesman = relationship("User")
