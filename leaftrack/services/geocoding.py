"""
Reverse-geocoding proxy to Nominatim.

Lookups are cached in Redis by coordinates rounded to four decimals
(~11 m) and upstream calls are spaced at least
``GEOCODE_MIN_INTERVAL_SECONDS`` apart across the whole process, which
keeps us inside Nominatim's one-request-per-second usage policy.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import httpx
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from leaftrack.core.config import settings
from leaftrack.schemas.location import GeocodeResponse

logger = logging.getLogger(__name__)

CACHE_KEY_PRECISION = 4


class GeocodeTimeout(Exception):
    def __init__(self, fallback_address: str) -> None:
        super().__init__("Geocoding request timed out")
        self.fallback_address = fallback_address


def format_coordinates(lat: float, lon: float, precision: int = 6) -> str:
    return f"{lat:.{precision}f}, {lon:.{precision}f}"


def cache_key(lat: float, lon: float) -> str:
    return (
        f"geocode:{lat:.{CACHE_KEY_PRECISION}f}:{lon:.{CACHE_KEY_PRECISION}f}"
    )


class GeocodingService:
    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        cache: aioredis.Redis | None = None,
        *,
        url: str | None = None,
        min_interval_seconds: float | None = None,
        cache_ttl_seconds: int | None = None,
    ) -> None:
        self._http = http_client or httpx.AsyncClient(
            timeout=settings.GEOCODE_TIMEOUT_SECONDS,
            headers={
                "User-Agent": settings.GEOCODE_USER_AGENT,
                "Accept": "application/json",
            },
        )
        self._cache = cache
        self._url = url or settings.GEOCODE_URL
        self._min_interval = (
            settings.GEOCODE_MIN_INTERVAL_SECONDS
            if min_interval_seconds is None
            else min_interval_seconds
        )
        self._cache_ttl = cache_ttl_seconds or settings.GEOCODE_CACHE_TTL_SECONDS
        self._throttle = asyncio.Lock()
        self._last_call = 0.0

    async def aclose(self) -> None:
        await self._http.aclose()
        if self._cache is not None:
            await self._cache.aclose()

    # ── Cache ────────────────────────────────────────────────────────
    async def _cache_get(self, key: str) -> dict[str, Any] | None:
        if self._cache is None:
            return None
        try:
            raw = await self._cache.get(key)
        except RedisError as e:
            logger.warning("Geocode cache read failed: %s", e)
            return None
        if not raw:
            return None
        try:
            value = json.loads(raw)
        except ValueError as e:
            logger.warning("Geocode cache entry %s is corrupt, ignoring: %s", key, e)
            return None
        if not isinstance(value, dict) or not value.get("address"):
            logger.warning("Geocode cache entry %s has an unexpected shape, ignoring", key)
            return None
        return {"address": value["address"], "details": value.get("details")}

    async def _cache_set(self, key: str, value: dict[str, Any]) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(key, json.dumps(value), ex=self._cache_ttl)
        except RedisError as e:
            logger.warning("Geocode cache write failed: %s", e)

    # ── Upstream ─────────────────────────────────────────────────────
    async def _wait_for_slot(self) -> None:
        elapsed = time.monotonic() - self._last_call
        if elapsed < self._min_interval:
            await asyncio.sleep(self._min_interval - elapsed)

    async def _fetch(self, lat: float, lon: float) -> dict[str, Any]:
        response = await self._http.get(
            self._url,
            params={
                "format": "json",
                "lat": lat,
                "lon": lon,
                "zoom": 18,
                "addressdetails": 1,
            },
        )
        response.raise_for_status()
        return response.json()

    async def reverse(self, lat: float, lon: float) -> GeocodeResponse:
        """Resolve *lat*/*lon* to an address.

        Raises ``GeocodeTimeout`` when the upstream deadline is exceeded; any
        other upstream failure degrades to the formatted coordinates.
        """
        key = cache_key(lat, lon)
        cached = await self._cache_get(key)
        if cached is not None:
            return GeocodeResponse(success=True, cached=True, **cached)

        fallback = format_coordinates(lat, lon)
        async with self._throttle:
            # Another request may have filled the cache while we queued
            cached = await self._cache_get(key)
            if cached is not None:
                return GeocodeResponse(success=True, cached=True, **cached)

            await self._wait_for_slot()
            try:
                data = await self._fetch(lat, lon)
            except httpx.TimeoutException as e:
                logger.warning("Geocoding timeout for %s: %s", key, e)
                raise GeocodeTimeout(fallback) from e
            except (httpx.HTTPError, ValueError) as e:
                logger.error("Geocoding proxy error for %s: %s", key, e)
                return GeocodeResponse(success=False, address=fallback)
            finally:
                self._last_call = time.monotonic()

        address = data.get("display_name") if isinstance(data, dict) else None
        if not address:
            return GeocodeResponse(success=False, address=fallback)

        value = {"address": address, "details": data.get("address")}
        await self._cache_set(key, value)
        return GeocodeResponse(success=True, **value)


def build_geocoder() -> GeocodingService:
    """Service wired to the configured Redis cache."""
    cache = aioredis.from_url(
        settings.REDIS_URL,
        socket_connect_timeout=settings.REDIS_TIMEOUT_SECONDS,
        socket_timeout=settings.REDIS_TIMEOUT_SECONDS,
    )
    return GeocodingService(cache=cache)
