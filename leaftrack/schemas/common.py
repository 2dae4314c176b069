"""Shared response envelopes and field types."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def ensure_utc(dt: datetime) -> datetime:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class EntityRead(BaseModel):
    """Base for rows exposed to clients; the primary key is published as ``_id``."""

    id: int = Field(serialization_alias="_id")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class DeleteResponse(BaseModel):
    success: bool
    message: str


class BulkDeleteResponse(BaseModel):
    success: bool
    deleted: int
    message: str


class LogoutResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    db: bool
    redis: bool
