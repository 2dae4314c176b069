"""Pydantic schemas for GPS fixes and the geocoding proxy."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from leaftrack.schemas.common import EntityRead, UtcDatetime
from leaftrack.schemas.user import UserRef


# ── Location ────────────────────────────────────────────────────────
class LocationCreate(BaseModel):
    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)
    accuracy: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    address: str | None = Field(default=None, max_length=500)
    timestamp: UtcDatetime | None = None

    @field_validator("address")
    @classmethod
    def _address(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class LocationRead(EntityRead):
    salesman_id: UserRef
    latitude: float
    longitude: float
    accuracy: float | None = None
    timestamp: UtcDatetime
    address: str | None = None


class LocationResponse(BaseModel):
    success: bool
    location: LocationRead


class LocationListResponse(BaseModel):
    success: bool
    count: int
    locations: list[LocationRead]


# ── Geocoding ───────────────────────────────────────────────────────
class GeocodeResponse(BaseModel):
    success: bool
    address: str | None
    details: dict[str, Any] | None = None
    cached: bool = False
