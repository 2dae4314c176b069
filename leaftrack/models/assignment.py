"""
Assignment & Sale models — stock allocated to a salesman and the sales
recorded against that allocation.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import relationship

from leaftrack.db.base import Base


class Assignment(Base):
    __tablename__ = "assignments"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_assignment_quantity_positive"),
        Index("ix_assignment_salesman", "salesman_id"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    salesman_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    product_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    quantity: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    salesman = relationship("User")
    product = relationship("Product")


class Sale(Base):
    __tablename__ = "sales"
    __table_args__ = (
        CheckConstraint("quantity_sold >= 1", name="ck_sale_quantity_positive"),
        Index("ix_sale_assignment", "assignment_id"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    assignment_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False
    )
    salesman_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    product_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    quantity_sold: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    sale_date: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
