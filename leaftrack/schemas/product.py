"""Pydantic schemas for the product catalogue."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from leaftrack.schemas.common import EntityRead, UtcDatetime


class ProductCreate(BaseModel):
    name: str
    price: float = Field(ge=0, allow_inf_nan=False)
    stock_quantity: int = Field(default=0, ge=0)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Product name is required")
        return v


class ProductUpdate(BaseModel):
    name: str | None = None
    price: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    stock_quantity: int | None = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("Product name must not be empty")
        return v.strip() if v else v


class ProductRef(EntityRead):
    name: str
    price: float


class ProductRead(ProductRef):
    stock_quantity: int
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None
