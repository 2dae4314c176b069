"""
Location retention — expiry of GPS fixes older than the retention window.

Two paths remove expired rows and both go through
``delete_expired_locations``: the background ``LocationSweeper`` started
with the application, and the admin ``DELETE /locations`` endpoint.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete as sa_delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leaftrack.core.config import settings
from leaftrack.models.location import Location

logger = logging.getLogger(__name__)


def retention_cutoff(
    now: datetime | None = None, retention_seconds: int | None = None
) -> datetime:
    """Oldest timestamp still inside the retention window."""
    now = now or datetime.now(timezone.utc)
    seconds = retention_seconds or settings.LOCATION_RETENTION_SECONDS
    return now - timedelta(seconds=seconds)


async def delete_expired_locations(
    db: AsyncSession,
    now: datetime | None = None,
    retention_seconds: int | None = None,
) -> int:
    """Delete every fix with ``timestamp < cutoff``; returns rows deleted."""
    cutoff = retention_cutoff(now, retention_seconds)
    result = await db.execute(sa_delete(Location).where(Location.timestamp < cutoff))
    await db.commit()
    return result.rowcount or 0


async def clear_all_locations(db: AsyncSession) -> int:
    result = await db.execute(sa_delete(Location))
    await db.commit()
    return result.rowcount or 0


class LocationSweeper:
    """Periodically purges expired fixes on a background asyncio task."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float | None = None,
        retention_seconds: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.interval_seconds = interval_seconds or settings.sweep_interval_seconds
        self.retention_seconds = retention_seconds or settings.LOCATION_RETENTION_SECONDS
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> int:
        async with self._session_factory() as session:
            deleted = await delete_expired_locations(
                session, retention_seconds=self.retention_seconds
            )
        if deleted:
            logger.info("Retention sweep removed %d expired location(s)", deleted)
        return deleted

    async def _run(self) -> None:
        while True:
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Keep sweeping; the next pass retries the same predicate
                logger.exception("Retention sweep failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="location-retention-sweep")
        logger.info(
            "Location retention sweep every %ss (retention %ss)",
            self.interval_seconds,
            self.retention_seconds,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
