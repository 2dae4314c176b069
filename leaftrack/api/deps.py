"""
FastAPI dependencies — auth guards, database session and app-scoped services.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaftrack.core.config import settings
from leaftrack.core.security import decode_access_token
from leaftrack.db.session import async_session_factory
from leaftrack.models.user import Role, User
from leaftrack.services.geocoding import GeocodingService
from leaftrack.services.sale_events import SaleEventBroker

# We use auto_error=False so we can manually check for the cookie if header is missing
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False
)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── App-scoped services ─────────────────────────────────────────────
def get_sale_broker(request: Request) -> SaleEventBroker:
    return request.app.state.sale_events


def get_geocoder(request: Request) -> GeocodingService:
    return request.app.state.geocoder


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),  # Read from HttpOnly Cookie
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode JWT from Header OR Cookie, look up user."""

    # Priority: Header > Cookie
    final_token = token
    if not final_token and access_token:
        # Cookie is stored as "Bearer <token>"
        if access_token.startswith("Bearer "):
            final_token = access_token.split(" ", 1)[1]
        else:
            final_token = access_token

    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not final_token:
        raise credentials_exc

    payload = decode_access_token(final_token)
    if payload is None:
        raise credentials_exc

    user_id = payload.get("sub")
    if user_id is None or not str(user_id).isdigit():
        raise credentials_exc

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exc
    return user


def _ensure_role(user: User, role: Role, detail: str) -> User:
    if user.role != role:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Only allow admin role to proceed."""
    return _ensure_role(current_user, Role.ADMIN, "Admin access required")


async def require_salesman(current_user: User = Depends(get_current_user)) -> User:
    """Only allow salesman role to proceed."""
    return _ensure_role(current_user, Role.SALESMAN, "Salesman access required")


def scoped_salesman_id(user: User, requested: int | None) -> int | None:
    """Resolve which salesman's rows a caller may see.

    Salesmen are always pinned to themselves; admins see everything unless
    they ask for a specific salesman.
    """
    if user.role == Role.SALESMAN:
        return user.id
    if user.role == Role.ADMIN:
        return requested
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown role")
