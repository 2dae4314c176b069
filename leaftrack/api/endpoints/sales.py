"""
Sales endpoints — record sales against assignments and stream sale events.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaftrack.api.deps import (get_current_user, get_db, get_sale_broker,
                                require_salesman, scoped_salesman_id)
from leaftrack.models.assignment import Sale
from leaftrack.models.user import User
from leaftrack.schemas.assignment import (SaleCreate, SaleEvent, SaleListResponse,
                                          SaleRead, SaleResponse)
from leaftrack.services.sale_events import SaleEventBroker, format_sse
from leaftrack.services.sales import AssignmentNotFound, InsufficientStock, SalesService

router = APIRouter(prefix="/sales", tags=["sales"])
logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0


@router.post("", response_model=SaleResponse, status_code=201)
async def record_sale(
    body: SaleCreate,
    db: AsyncSession = Depends(get_db),
    broker: SaleEventBroker = Depends(get_sale_broker),
    salesman: User = Depends(require_salesman),
) -> SaleResponse:
    """Record a sale against one of the caller's own assignments."""
    service = SalesService(db, broker)
    try:
        sale, stock = await service.record_sale(salesman, body.assignment_id, body.quantity)
    except AssignmentNotFound:
        raise HTTPException(status_code=404, detail="Assignment not found")
    except InsufficientStock as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SaleResponse(success=True, sale=SaleRead.model_validate(sale), stock=stock)


@router.get("", response_model=SaleListResponse)
async def list_sales(
    assignment_id: int | None = None,
    salesman_id: int | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SaleListResponse:
    query = select(Sale).order_by(Sale.sale_date.desc(), Sale.id.desc())
    owner = scoped_salesman_id(current_user, salesman_id)
    if owner is not None:
        query = query.where(Sale.salesman_id == owner)
    if assignment_id is not None:
        query = query.where(Sale.assignment_id == assignment_id)

    result = await db.execute(query)
    return SaleListResponse(
        success=True,
        sales=[SaleRead.model_validate(s) for s in result.scalars().all()],
    )


async def sale_event_stream(
    queue: asyncio.Queue[SaleEvent],
    salesman_id: int | None,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_seconds: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE frames from *queue*, filtered to *salesman_id* when set."""
    while not await is_disconnected():
        try:
            event = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
        except asyncio.TimeoutError:
            yield ": keepalive\n\n"
            continue
        if salesman_id is not None and event.salesman_id != salesman_id:
            continue
        yield format_sse(event)


@router.get("/stream")
async def stream_sales(
    request: Request,
    broker: SaleEventBroker = Depends(get_sale_broker),
    current_user: User = Depends(get_current_user),
) -> StreamingResponse:
    """Server-sent events for recorded sales; salesmen only see their own."""
    owner = scoped_salesman_id(current_user, None)

    async def _events() -> AsyncIterator[str]:
        async with broker.subscribe() as queue:
            async for frame in sale_event_stream(queue, owner, request.is_disconnected):
                yield frame

    logger.info("User %d subscribed to sale events", current_user.id)
    return StreamingResponse(
        _events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
