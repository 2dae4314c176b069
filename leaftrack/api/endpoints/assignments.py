"""
Stock assignment endpoints.

Assignments are immutable once created; what changes over time is the
amount sold against them, which lives in the sales ledger.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from leaftrack.api.deps import get_current_user, get_db, require_admin, scoped_salesman_id
from leaftrack.models.assignment import Assignment
from leaftrack.models.product import Product
from leaftrack.models.user import Role, User
from leaftrack.schemas.assignment import (AssignmentCreate, AssignmentListResponse,
                                          AssignmentRead, AssignmentResponse,
                                          StockSummary)
from leaftrack.schemas.product import ProductRef
from leaftrack.schemas.user import UserRef
from leaftrack.services.sales import SalesService

router = APIRouter(prefix="/assignments", tags=["assignments"])
logger = logging.getLogger(__name__)


def _to_read(assignment: Assignment, total_sold: int) -> AssignmentRead:
    return AssignmentRead(
        id=assignment.id,
        salesman_id=UserRef.model_validate(assignment.salesman),
        product_id=ProductRef.model_validate(assignment.product),
        quantity=assignment.quantity,
        total_sold=total_sold,
        remaining=assignment.quantity - total_sold,
        created_at=assignment.created_at,
    )


def _with_refs():
    return select(Assignment).options(
        joinedload(Assignment.salesman), joinedload(Assignment.product)
    )


@router.get("", response_model=AssignmentListResponse)
async def list_assignments(
    salesman_id: int | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AssignmentListResponse:
    """Salesmen see their own assignments, admins see all (optionally filtered)."""
    query = _with_refs().order_by(Assignment.created_at.desc(), Assignment.id.desc())
    owner = scoped_salesman_id(current_user, salesman_id)
    if owner is not None:
        query = query.where(Assignment.salesman_id == owner)

    result = await db.execute(query)
    assignments = list(result.scalars().all())
    totals = await SalesService(db).totals_for(a.id for a in assignments)
    return AssignmentListResponse(
        success=True,
        assignments=[_to_read(a, totals.get(a.id, 0)) for a in assignments],
    )


@router.post("", response_model=AssignmentResponse, status_code=201)
async def create_assignment(
    body: AssignmentCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> AssignmentResponse:
    salesman = (
        await db.execute(select(User).where(User.id == body.salesman_id))
    ).scalar_one_or_none()
    if salesman is None:
        raise HTTPException(status_code=404, detail="Salesman not found")
    if salesman.role != Role.SALESMAN:
        raise HTTPException(status_code=400, detail="Stock can only be assigned to salesmen")

    product = (
        await db.execute(select(Product).where(Product.id == body.product_id))
    ).scalar_one_or_none()
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")

    assignment = Assignment(
        salesman_id=salesman.id,
        product_id=product.id,
        quantity=body.quantity,
    )
    db.add(assignment)
    await db.commit()

    result = await db.execute(
        _with_refs()
        .where(Assignment.id == assignment.id)
        .execution_options(populate_existing=True)
    )
    assignment = result.scalar_one()
    logger.info(
        "Assigned %d x product %d to salesman %d (assignment %d)",
        assignment.quantity,
        product.id,
        salesman.id,
        assignment.id,
    )
    return AssignmentResponse(success=True, assignment=_to_read(assignment, 0))


@router.get("/{assignment_id}/stock", response_model=StockSummary)
async def assignment_stock(
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> StockSummary:
    """Assigned, sold and remaining quantities for one assignment."""
    query = select(Assignment).where(Assignment.id == assignment_id)
    owner = scoped_salesman_id(current_user, None)
    if owner is not None:
        query = query.where(Assignment.salesman_id == owner)

    assignment = (await db.execute(query)).scalar_one_or_none()
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return await SalesService(db).stock_summary(assignment)
