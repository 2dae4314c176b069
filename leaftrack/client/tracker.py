"""
Periodic GPS sampler for salesmen.

``LocationTracker`` takes a fix every ``interval`` seconds while tracking
and posts it to ``/api/locations``.  Failures are transient: they set
``error`` for the current cycle and the schedule keeps running.

Manual ``track_location()`` calls and scheduled samples may overlap; each
produces its own row on the server.  ``stop_tracking()`` only cancels the
schedule, samples already in flight are allowed to finish.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from leaftrack.client.position import (Position, PositionError, PositionOptions,
                                       PositionProvider, acquire_position)
from leaftrack.models.user import Role

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5 * 60
DEFAULT_REQUEST_TIMEOUT_SECONDS = 8.0
LOCATIONS_PATH = "/api/locations"


class SubmissionError(Exception):
    pass


@dataclass(frozen=True)
class LastLocation:
    latitude: float
    longitude: float
    accuracy: float | None
    timestamp: datetime


class LocationTracker:
    def __init__(
        self,
        http: httpx.AsyncClient,
        provider: PositionProvider | None,
        token_getter: Callable[[], str | None],
        role: Role | None,
        *,
        enabled: bool = True,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        options: PositionOptions | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._http = http
        self._provider = provider
        self._token_getter = token_getter
        self.role = role
        self.enabled = enabled
        self.interval = interval
        self.options = options or PositionOptions()
        self.request_timeout = request_timeout

        self.last_location: LastLocation | None = None
        self.error: str | None = None
        self._schedule: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[Any]] = set()

    @property
    def is_tracking(self) -> bool:
        return self._schedule is not None and not self._schedule.done()

    # ── Lifecycle ────────────────────────────────────────────────────
    def start_tracking(self) -> bool:
        """Begin periodic sampling; returns False when nothing was started."""
        if not self.enabled or self.role != Role.SALESMAN or self.is_tracking:
            return False
        self.error = None
        self._schedule = asyncio.create_task(self._run(), name="location-tracker")
        logger.info("Location tracking started (every %ss)", self.interval)
        return True

    def stop_tracking(self) -> None:
        if self._schedule is None:
            return
        self._schedule.cancel()
        self._schedule = None
        logger.info("Location tracking stopped")

    async def drain(self) -> None:
        """Wait for every sample already in flight."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            task = asyncio.create_task(self.track_location())
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            await asyncio.sleep(self.interval)

    # ── One cycle ────────────────────────────────────────────────────
    async def track_location(self) -> dict[str, Any] | None:
        """Acquire one fix and submit it; returns the stored row or None."""
        try:
            position = await acquire_position(self._provider, self.options)
            return await self._submit(position)
        except (PositionError, SubmissionError, httpx.HTTPError, ValueError) as e:
            self.error = str(e) or type(e).__name__
            logger.warning("Location tracking error: %s", self.error)
            return None

    async def _submit(self, position: Position) -> dict[str, Any]:
        token = self._token_getter()
        if not token:
            raise SubmissionError("No authentication token found")

        response = await self._http.post(
            LOCATIONS_PATH,
            json={
                "latitude": position.latitude,
                "longitude": position.longitude,
                "accuracy": position.accuracy,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.request_timeout,
        )
        data = response.json() if response.content else {}
        if response.status_code >= 400 or not data.get("success"):
            detail = data.get("detail") if isinstance(data, dict) else None
            raise SubmissionError(
                f"Failed to send location ({response.status_code}): {detail or 'unknown error'}"
            )

        self.last_location = LastLocation(
            latitude=position.latitude,
            longitude=position.longitude,
            accuracy=position.accuracy,
            timestamp=datetime.now(timezone.utc),
        )
        self.error = None
        return data["location"]
