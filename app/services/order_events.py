"""Translate order lifecycle changes into routed notifications."""
from __future__ import annotations

from typing import Any

from loguru import logger

from app.schemas.notification import (
    DeliveryAssignedData,
    DeliveryAssignmentData,
    NewOrderData,
    NotificationEvent,
    OrderAdminDecisionData,
    OrderApprovalData,
    OrderStatusUpdateData,
)
from app.schemas.order_event import (
    DeliveryAssignedEvent,
    DeliveryAssignmentEvent,
    NewOrderEvent,
    OrderAdminDecisionEvent,
    OrderApprovalEvent,
    OrderLifecycleEvent,
    OrderStatusUpdateEvent,
)
from app.schemas.realtime import DeliveryFilter, UserType
from app.services.realtime import DispatchResult, NotificationRouter

STATUS_LABELS = {
    "pending": "is waiting for confirmation",
    "confirmed": "was confirmed by the restaurant",
    "preparing": "is being prepared",
    "ready": "is ready for pickup",
    "picked_up": "was picked up by your courier",
    "on_the_way": "is on the way",
    "delivered": "was delivered",
    "cancelled": "was cancelled",
}


def _data(model: Any) -> dict[str, Any]:
    return model.model_dump(by_alias=True, exclude_none=True)


def build_notification(
    order_id: int, event: OrderLifecycleEvent
) -> tuple[NotificationEvent, DeliveryFilter]:
    """Return the notification for ``event`` and the filter selecting its audience."""

    if isinstance(event, NewOrderEvent):
        return (
            NotificationEvent(
                type=event.type,
                title="New order received",
                message=f"Order #{order_id} is waiting for your confirmation.",
                data=_data(
                    NewOrderData(
                        order_id=order_id,
                        restaurant_id=event.restaurant_id,
                        customer_id=event.customer_id,
                        total_amount=event.total_amount,
                        item_count=event.item_count,
                    )
                ),
            ),
            DeliveryFilter(restaurant_id=event.restaurant_id, user_type=UserType.RESTAURANT_OWNER),
        )

    if isinstance(event, OrderStatusUpdateEvent):
        label = STATUS_LABELS.get(event.status, f"is now {event.status.replace('_', ' ')}")
        return (
            NotificationEvent(
                type=event.type,
                title="Order status updated",
                message=f"Your order #{order_id} {label}.",
                data=_data(
                    OrderStatusUpdateData(
                        order_id=order_id,
                        status=event.status,
                        previous_status=event.previous_status,
                    )
                ),
            ),
            DeliveryFilter(user_id=event.customer_id, user_type=UserType.CUSTOMER),
        )

    if isinstance(event, DeliveryAssignmentEvent):
        return (
            NotificationEvent(
                type=event.type,
                title="New delivery assignment",
                message=f"You have been assigned to deliver order #{order_id}.",
                data=_data(
                    DeliveryAssignmentData(
                        order_id=order_id,
                        delivery_partner_id=event.delivery_partner_id,
                        restaurant_id=event.restaurant_id,
                        pickup_address=event.pickup_address,
                        delivery_address=event.delivery_address,
                    )
                ),
            ),
            DeliveryFilter(user_id=event.delivery_partner_id, user_type=UserType.DELIVERY_PARTNER),
        )

    if isinstance(event, DeliveryAssignedEvent):
        courier = event.delivery_partner_name or "A delivery partner"
        return (
            NotificationEvent(
                type=event.type,
                title="Courier assigned",
                message=f"{courier} will deliver your order #{order_id}.",
                data=_data(
                    DeliveryAssignedData(
                        order_id=order_id,
                        delivery_partner_id=event.delivery_partner_id,
                        delivery_partner_name=event.delivery_partner_name,
                        estimated_minutes=event.estimated_minutes,
                    )
                ),
            ),
            DeliveryFilter(user_id=event.customer_id, user_type=UserType.CUSTOMER),
        )

    if isinstance(event, OrderAdminDecisionEvent):
        verdict = "approved" if event.approved else "rejected"
        return (
            NotificationEvent(
                type=event.type,
                title=f"Order {verdict} by admin",
                message=f"Order #{order_id} was {verdict}." + (f" {event.reason}" if event.reason else ""),
                data=_data(
                    OrderAdminDecisionData(
                        order_id=order_id, approved=event.approved, reason=event.reason
                    )
                ),
            ),
            DeliveryFilter(restaurant_id=event.restaurant_id, user_type=UserType.RESTAURANT_OWNER),
        )

    if isinstance(event, OrderApprovalEvent):
        verdict = "approved" if event.approved else "declined"
        return (
            NotificationEvent(
                type=event.type,
                title=f"Order {verdict}",
                message=f"Your order #{order_id} was {verdict}." + (f" {event.reason}" if event.reason else ""),
                data=_data(
                    OrderApprovalData(order_id=order_id, approved=event.approved, reason=event.reason)
                ),
            ),
            DeliveryFilter(user_id=event.customer_id, user_type=UserType.CUSTOMER),
        )

    raise TypeError(f"Unsupported order event: {type(event).__name__}")


class OrderEventPublisher:
    """Entry point for order-mutation handlers.

    Call ``publish`` only after the order change has been committed so nobody is
    told about a write that later fails.
    """

    def __init__(self, router: NotificationRouter) -> None:
        self.router = router

    async def publish(self, order_id: int, event: OrderLifecycleEvent) -> DispatchResult:
        notification, delivery_filter = build_notification(order_id, event)
        logger.info(
            "Publishing order event",
            order_id=order_id,
            event_type=notification.type,
            filter=delivery_filter.model_dump(mode="json", exclude_none=True),
        )
        return await self.router.send(notification, delivery_filter)
