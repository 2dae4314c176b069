"""
Device positioning for the field client.

A ``PositionProvider`` answers "where am I?" for the tracker.  Real devices
plug in their own provider; ``StaticPositionProvider`` serves a fixed fix
for fixed sites and tests.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol


class PositionErrorCode(enum.Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"


class PositionError(Exception):
    def __init__(self, code: PositionErrorCode, message: str | None = None) -> None:
        super().__init__(message or code.value.replace("_", " ").capitalize())
        self.code = code


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float
    accuracy: float | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class PositionOptions:
    high_accuracy: bool = True
    timeout: float = 10.0  # seconds
    maximum_age: float = 60.0  # seconds a cached fix stays acceptable


class PositionProvider(Protocol):
    async def get_current_position(self, options: PositionOptions) -> Position: ...


async def acquire_position(
    provider: PositionProvider | None, options: PositionOptions
) -> Position:
    """Ask *provider* for a fix, enforcing ``options.timeout``."""
    if provider is None:
        raise PositionError(
            PositionErrorCode.UNSUPPORTED, "Geolocation is not supported by this device"
        )
    try:
        return await asyncio.wait_for(
            provider.get_current_position(options), timeout=options.timeout
        )
    except asyncio.TimeoutError:
        raise PositionError(PositionErrorCode.TIMEOUT, "Timed out acquiring position")
    except PositionError:
        raise
    except Exception as e:
        raise PositionError(PositionErrorCode.POSITION_UNAVAILABLE, str(e) or type(e).__name__) from e


class StaticPositionProvider:
    """Always reports the same coordinates."""

    def __init__(self, latitude: float, longitude: float, accuracy: float | None = None) -> None:
        self.latitude = latitude
        self.longitude = longitude
        self.accuracy = accuracy

    async def get_current_position(self, options: PositionOptions) -> Position:
        return Position(self.latitude, self.longitude, self.accuracy)
