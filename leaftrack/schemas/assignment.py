"""Pydantic schemas for stock assignments and sales."""

from __future__ import annotations

from pydantic import BaseModel, Field

from leaftrack.schemas.common import EntityRead, UtcDatetime
from leaftrack.schemas.product import ProductRef
from leaftrack.schemas.user import UserRef


# ── Assignment ──────────────────────────────────────────────────────
class AssignmentCreate(BaseModel):
    salesman_id: int
    product_id: int
    quantity: int = Field(ge=1)


class AssignmentRead(EntityRead):
    salesman_id: UserRef
    product_id: ProductRef
    quantity: int
    total_sold: int = 0
    remaining: int
    created_at: UtcDatetime | None = None


class AssignmentResponse(BaseModel):
    success: bool
    assignment: AssignmentRead


class AssignmentListResponse(BaseModel):
    success: bool
    assignments: list[AssignmentRead]


class StockSummary(BaseModel):
    assignment_id: int
    quantity: int
    total_sold: int
    remaining: int


# ── Sale ────────────────────────────────────────────────────────────
class SaleCreate(BaseModel):
    assignment_id: int
    quantity: int = Field(ge=1)


class SaleRead(EntityRead):
    assignment_id: int
    salesman_id: int
    product_id: int
    quantity_sold: int
    sale_date: UtcDatetime | None = None


class SaleResponse(BaseModel):
    success: bool
    sale: SaleRead
    stock: StockSummary


class SaleListResponse(BaseModel):
    success: bool
    sales: list[SaleRead]


class SaleEvent(BaseModel):
    """Payload published on the sale event channel."""

    event: str = "sale.recorded"
    sale_id: int
    assignment_id: int
    salesman_id: int
    product_id: int
    quantity_sold: int
    total_sold: int
    remaining: int
    timestamp: UtcDatetime
