"""Order lifecycle hooks called after an order change is committed."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from app.api import deps
from app.schemas import DispatchSummary, OrderLifecycleEvent
from app.services.order_events import OrderEventPublisher

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "/{order_id}/events",
    response_model=DispatchSummary,
    dependencies=[Depends(deps.require_service_key)],
)
async def publish_order_event(
    event: OrderLifecycleEvent,
    order_id: int = Path(..., ge=1),
    publisher: OrderEventPublisher = Depends(deps.get_order_event_publisher),
) -> DispatchSummary:
    result = await publisher.publish(order_id, event)
    return DispatchSummary(
        id=result.event.id,
        type=result.event.type,
        matched=result.matched,
        delivered=result.delivered,
    )
