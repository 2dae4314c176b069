"""
User management endpoints (admin-only).

Deleting a user also removes that user's assignments, sales and GPS fixes
so no row is left pointing at a missing owner.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaftrack.api.deps import get_db, require_admin
from leaftrack.core.security import get_password_hash
from leaftrack.models.assignment import Assignment, Sale
from leaftrack.models.location import Location
from leaftrack.models.user import Role, User
from leaftrack.schemas.common import DeleteResponse
from leaftrack.schemas.user import UserCreate, UserRead, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("", response_model=list[UserRead])
async def list_users(
    role: Role | None = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[User]:
    query = select(User).order_by(User.created_at.desc(), User.id.desc())
    if role is not None:
        query = query.where(User.role == role)
    result = await db.execute(query)
    return list(result.scalars().all())


@router.post("", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    """Create a new user account of either role."""
    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        name=body.name,
        email=body.email,
        hashed_password=get_password_hash(body.password),
        role=body.role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created %s %d (%s)", user.role.value, user.id, user.email)
    return user


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    return await _get_user_or_404(db, user_id)


@router.put("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: int,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    user = await _get_user_or_404(db, user_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)

    email = changes.get("email")
    if email and email != user.email:
        clash = await db.execute(
            select(User).where(User.email == email, User.id != user_id)
        )
        if clash.scalar_one_or_none():
            raise HTTPException(status_code=400, detail="Email already exists")

    password = changes.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)

    for field, value in changes.items():
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    logger.info("Updated user %d (fields: %s)", user_id, sorted(body.model_fields_set))
    return user


@router.delete("/{user_id}", response_model=DeleteResponse)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> DeleteResponse:
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    user = await _get_user_or_404(db, user_id)

    await db.execute(sa_delete(Location).where(Location.salesman_id == user_id))
    await db.execute(sa_delete(Sale).where(Sale.salesman_id == user_id))
    await db.execute(sa_delete(Assignment).where(Assignment.salesman_id == user_id))
    await db.delete(user)
    await db.commit()

    logger.warning("ADMIN %d deleted user %d (%s)", admin.id, user_id, user.email)
    return DeleteResponse(success=True, message="User deleted successfully")
