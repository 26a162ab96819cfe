from fastapi import APIRouter, Depends

from app.api import deps
from app.schemas import ConnectionStats, DispatchSummary, NotificationSendRequest
from app.services.realtime import NotificationRouter
from app.services.registry import ConnectionRegistry
from app.utils.exceptions import InvalidFilterError, handle_invalid_filter_error

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post(
    "/send",
    response_model=DispatchSummary,
    dependencies=[Depends(deps.require_service_key)],
)
async def send_notification(
    payload: NotificationSendRequest,
    notification_router: NotificationRouter = Depends(deps.get_notification_router),
):
    """Push one event to every live connection matching the filter."""
    if payload.filter.is_empty() and not payload.allow_broadcast:
        raise handle_invalid_filter_error(
            InvalidFilterError(
                "Filter must set at least one of userId, userType or restaurantId",
                details={"hint": "set allowBroadcast to reach every connection"},
            )
        )
    result = await notification_router.send(payload.event, payload.filter)
    return DispatchSummary(
        id=result.event.id,
        type=result.event.type,
        matched=result.matched,
        delivered=result.delivered,
    )


@router.get("/connections", response_model=ConnectionStats)
def connection_stats(registry: ConnectionRegistry = Depends(deps.get_connection_registry)):
    return ConnectionStats(**registry.stats())
