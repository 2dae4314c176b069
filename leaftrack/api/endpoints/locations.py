"""
Location tracking endpoints — GPS ingestion, windowed reads and expiry.

- POST /locations is salesman-only; the fix is always stamped with the
  caller's identity.
- GET /locations is role-scoped: a salesman only ever sees their own rows,
  whatever ``salesman_id`` says.
- DELETE /locations and DELETE /clear-locations are admin-only bulk deletes.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from leaftrack.api.deps import (get_current_user, get_db, require_admin,
                                require_salesman, scoped_salesman_id)
from leaftrack.core.config import settings
from leaftrack.models.location import Location
from leaftrack.models.user import User
from leaftrack.schemas.common import BulkDeleteResponse, ensure_utc
from leaftrack.schemas.location import (LocationCreate, LocationListResponse,
                                        LocationRead, LocationResponse)
from leaftrack.schemas.user import UserRef
from leaftrack.services.retention import (clear_all_locations,
                                          delete_expired_locations,
                                          retention_cutoff)

router = APIRouter(tags=["locations"])
logger = logging.getLogger(__name__)

DEFAULT_WINDOW_HOURS = 24
DEFAULT_LIMIT = 100
MAX_LIMIT = 1000


def _to_read(location: Location) -> LocationRead:
    return LocationRead(
        id=location.id,
        salesman_id=UserRef.model_validate(location.salesman),
        latitude=location.latitude,
        longitude=location.longitude,
        accuracy=location.accuracy,
        timestamp=location.timestamp,
        address=location.address,
    )


def _window_start(hours: int, now: datetime) -> datetime:
    """Start of the read window, never older than the retention cutoff."""
    cutoff = retention_cutoff(now)
    if hours * 3600 >= settings.LOCATION_RETENTION_SECONDS:
        return cutoff
    return max(now - timedelta(hours=hours), cutoff)


def _windowed_query(owner: int | None, hours: int):
    now = datetime.now(timezone.utc)
    query = (
        select(Location)
        .options(joinedload(Location.salesman))
        .where(Location.timestamp >= _window_start(hours, now))
        .order_by(Location.timestamp.desc(), Location.id.desc())
    )
    if owner is not None:
        query = query.where(Location.salesman_id == owner)
    return query


# ── Ingestion (salesman-only) ───────────────────────────────────────
@router.post("/locations", response_model=LocationResponse, status_code=201)
async def submit_location(
    body: LocationCreate,
    db: AsyncSession = Depends(get_db),
    salesman: User = Depends(require_salesman),
) -> LocationResponse:
    """Store one GPS fix for the calling salesman. Never upserts."""
    location = Location(
        salesman_id=salesman.id,
        latitude=body.latitude,
        longitude=body.longitude,
        accuracy=body.accuracy,
        address=body.address,
        timestamp=body.timestamp or datetime.now(timezone.utc),
    )
    db.add(location)
    await db.commit()

    result = await db.execute(
        select(Location)
        .options(joinedload(Location.salesman))
        .where(Location.id == location.id)
        .execution_options(populate_existing=True)
    )
    location = result.scalar_one()
    logger.info(
        "Location %d from salesman %d (%.5f, %.5f ±%s m)",
        location.id,
        salesman.id,
        location.latitude,
        location.longitude,
        location.accuracy,
    )
    return LocationResponse(success=True, location=_to_read(location))


# ── Windowed read (role-scoped) ─────────────────────────────────────
@router.get("/locations", response_model=LocationListResponse)
async def list_locations(
    hours: int = Query(default=DEFAULT_WINDOW_HOURS, ge=0),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    salesman_id: int | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LocationListResponse:
    """Fixes from the last ``hours`` hours, newest first, at most ``limit``."""
    owner = scoped_salesman_id(current_user, salesman_id)
    result = await db.execute(_windowed_query(owner, hours).limit(limit))
    locations = [_to_read(loc) for loc in result.scalars().all()]
    return LocationListResponse(success=True, count=len(locations), locations=locations)


# ── Export (admin-only) ─────────────────────────────────────────────
@router.get("/locations/export")
async def export_locations(
    hours: int = Query(default=DEFAULT_WINDOW_HOURS, ge=0),
    salesman_id: int | None = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> StreamingResponse:
    """Export the window as a CSV file download."""
    result = await db.execute(_windowed_query(salesman_id, hours))
    locations = list(result.scalars().all())

    def iter_csv():
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(
            ["id", "salesman_id", "salesman_name", "salesman_email", "latitude",
             "longitude", "accuracy", "address", "timestamp"]
        )
        for loc in locations:
            writer.writerow(
                [
                    loc.id,
                    loc.salesman_id,
                    loc.salesman.name,
                    loc.salesman.email,
                    loc.latitude,
                    loc.longitude,
                    "" if loc.accuracy is None else loc.accuracy,
                    loc.address or "",
                    ensure_utc(loc.timestamp).isoformat(),
                ]
            )
            yield buffer.getvalue()
            buffer.seek(0)
            buffer.truncate(0)
        yield buffer.getvalue()

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M")
    return StreamingResponse(
        iter_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=locations_{stamp}.csv"},
    )


# ── Bulk expiry (admin-only) ────────────────────────────────────────
@router.delete("/locations", response_model=BulkDeleteResponse)
async def delete_old_locations(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> BulkDeleteResponse:
    """Delete fixes older than the retention period (7 days)."""
    deleted = await delete_expired_locations(db)
    logger.warning("ADMIN %d deleted %d expired location records", admin.id, deleted)
    return BulkDeleteResponse(
        success=True,
        deleted=deleted,
        message=f"Deleted {deleted} old location records",
    )


@router.delete("/clear-locations", response_model=BulkDeleteResponse)
async def clear_locations(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> BulkDeleteResponse:
    """Delete every location record."""
    deleted = await clear_all_locations(db)
    logger.warning("ADMIN %d cleared all %d location records", admin.id, deleted)
    return BulkDeleteResponse(
        success=True,
        deleted=deleted,
        message=f"Cleared {deleted} location records",
    )
