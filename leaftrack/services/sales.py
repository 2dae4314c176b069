"""
Sales ledger — durable record of stock sold against assignments.

``remaining`` for an assignment is always ``quantity - sum(quantity_sold)``
computed from the ``sales`` table; nothing is cached client-side.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leaftrack.models.assignment import Assignment, Sale
from leaftrack.models.user import User
from leaftrack.schemas.assignment import SaleEvent, StockSummary
from leaftrack.services.sale_events import SaleEventBroker

logger = logging.getLogger(__name__)


class AssignmentNotFound(LookupError):
    pass


class InsufficientStock(ValueError):
    def __init__(self, requested: int, remaining: int) -> None:
        super().__init__(
            f"Cannot sell {requested} units, only {remaining} remaining on this assignment"
        )
        self.requested = requested
        self.remaining = remaining


class SalesService:
    def __init__(self, db: AsyncSession, broker: SaleEventBroker | None = None) -> None:
        self.db = db
        self.broker = broker

    async def total_sold(self, assignment_id: int) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.sum(Sale.quantity_sold), 0)).where(
                Sale.assignment_id == assignment_id
            )
        )
        return int(result.scalar() or 0)

    async def totals_for(self, assignment_ids: Iterable[int]) -> dict[int, int]:
        """Sum sold quantities for many assignments in one query."""
        ids = list(assignment_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(Sale.assignment_id, func.sum(Sale.quantity_sold))
            .where(Sale.assignment_id.in_(ids))
            .group_by(Sale.assignment_id)
        )
        return {assignment_id: int(total) for assignment_id, total in result.all()}

    async def stock_summary(self, assignment: Assignment) -> StockSummary:
        sold = await self.total_sold(assignment.id)
        return StockSummary(
            assignment_id=assignment.id,
            quantity=assignment.quantity,
            total_sold=sold,
            remaining=assignment.quantity - sold,
        )

    async def record_sale(
        self, salesman: User, assignment_id: int, quantity: int
    ) -> tuple[Sale, StockSummary]:
        """Persist one sale for *salesman* and notify subscribers.

        The assignment row is locked while the remaining stock is checked so
        two concurrent sales cannot oversell it (SQLite ignores the lock).
        """
        result = await self.db.execute(
            select(Assignment)
            .where(Assignment.id == assignment_id, Assignment.salesman_id == salesman.id)
            .with_for_update()
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            raise AssignmentNotFound(f"Assignment {assignment_id} not found")

        sold = await self.total_sold(assignment.id)
        remaining = assignment.quantity - sold
        if quantity > remaining:
            raise InsufficientStock(quantity, remaining)

        sale = Sale(
            assignment_id=assignment.id,
            salesman_id=salesman.id,
            product_id=assignment.product_id,
            quantity_sold=quantity,
            sale_date=datetime.now(timezone.utc),
        )
        self.db.add(sale)
        await self.db.commit()
        await self.db.refresh(sale)

        summary = StockSummary(
            assignment_id=assignment.id,
            quantity=assignment.quantity,
            total_sold=sold + quantity,
            remaining=remaining - quantity,
        )
        logger.info(
            "Sale %d: salesman %d sold %d of assignment %d (%d remaining)",
            sale.id,
            salesman.id,
            quantity,
            assignment.id,
            summary.remaining,
        )

        if self.broker is not None:
            self.broker.publish(
                SaleEvent(
                    sale_id=sale.id,
                    assignment_id=assignment.id,
                    salesman_id=salesman.id,
                    product_id=assignment.product_id,
                    quantity_sold=quantity,
                    total_sold=summary.total_sold,
                    remaining=summary.remaining,
                    timestamp=sale.sale_date,
                )
            )
        return sale, summary
