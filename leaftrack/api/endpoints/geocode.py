"""
Reverse-geocoding proxy (PUBLIC) — keeps the browser away from Nominatim.

An upstream timeout surfaces as ``GeocodeTimeout`` and is rendered as 504
by the global exception handlers.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from leaftrack.api.deps import get_geocoder
from leaftrack.core.rate_limit import limiter
from leaftrack.schemas.location import GeocodeResponse
from leaftrack.services.geocoding import GeocodingService

router = APIRouter(tags=["geocode"])


@router.get("/geocode", response_model=GeocodeResponse)
@limiter.limit("30/minute")
async def reverse_geocode(
    request: Request,
    lat: float = Query(ge=-90, le=90, allow_inf_nan=False),
    lon: float = Query(ge=-180, le=180, allow_inf_nan=False),
    geocoder: GeocodingService = Depends(get_geocoder),
) -> GeocodeResponse:
    """Resolve coordinates to a human-readable address."""
    return await geocoder.reverse(lat, lon)
