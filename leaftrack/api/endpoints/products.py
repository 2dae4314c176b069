"""
Product catalogue endpoints.

- GET operations require any authenticated user.
- POST / PUT / DELETE operations require admin role.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaftrack.api.deps import get_current_user, get_db, require_admin
from leaftrack.models.assignment import Assignment, Sale
from leaftrack.models.product import Product
from leaftrack.models.user import User
from leaftrack.schemas.common import DeleteResponse
from leaftrack.schemas.product import ProductCreate, ProductRead, ProductUpdate

router = APIRouter(prefix="/products", tags=["products"])
logger = logging.getLogger(__name__)


async def _get_product_or_404(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(select(Product).where(Product.id == product_id))
    product = result.scalar_one_or_none()
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("", response_model=list[ProductRead])
async def list_products(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> list[Product]:
    result = await db.execute(
        select(Product).order_by(Product.created_at.desc(), Product.id.desc())
    )
    return list(result.scalars().all())


@router.post("", response_model=ProductRead, status_code=201)
async def create_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Product:
    product = Product(**body.model_dump())
    db.add(product)
    await db.commit()
    await db.refresh(product)
    logger.info("Created product %d (%s)", product.id, product.name)
    return product


@router.get("/{product_id}", response_model=ProductRead)
async def get_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> Product:
    return await _get_product_or_404(db, product_id)


@router.put("/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: int,
    body: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Product:
    product = await _get_product_or_404(db, product_id)

    for field, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(product, field, value)

    await db.commit()
    await db.refresh(product)
    logger.info("Updated product %d", product_id)
    return product


@router.delete("/{product_id}", response_model=DeleteResponse)
async def delete_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> DeleteResponse:
    """Delete a product together with its assignments and their sales."""
    product = await _get_product_or_404(db, product_id)

    await db.execute(sa_delete(Sale).where(Sale.product_id == product_id))
    await db.execute(sa_delete(Assignment).where(Assignment.product_id == product_id))
    await db.delete(product)
    await db.commit()

    logger.info("Deleted product %d (%s)", product_id, product.name)
    return DeleteResponse(success=True, message="Product deleted successfully")
