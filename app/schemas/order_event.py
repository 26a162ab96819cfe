"""Order lifecycle events accepted from order-mutation handlers."""
from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field

from app.schemas.realtime import WireModel


class NewOrderEvent(WireModel):
    """A customer placed an order; restaurant staff are told."""

    type: Literal["new_order"]
    restaurant_id: int
    customer_id: int | None = None
    total_amount: float | None = Field(None, ge=0)
    item_count: int | None = Field(None, ge=0)


class OrderStatusUpdateEvent(WireModel):
    """The order moved to a new status; the customer is told."""

    type: Literal["order_status_update"]
    customer_id: int
    status: str = Field(..., min_length=1)
    previous_status: str | None = None


class DeliveryAssignmentEvent(WireModel):
    """A delivery partner was offered the order."""

    type: Literal["delivery_assignment"]
    delivery_partner_id: int
    restaurant_id: int | None = None
    pickup_address: str | None = None
    delivery_address: str | None = None


class DeliveryAssignedEvent(WireModel):
    """A delivery partner took the order; the customer is told."""

    type: Literal["delivery_assigned"]
    customer_id: int
    delivery_partner_id: int
    delivery_partner_name: str | None = None
    estimated_minutes: int | None = Field(None, ge=0)


class OrderAdminDecisionEvent(WireModel):
    """An admin approved or rejected the order; restaurant staff are told."""

    type: Literal["order_admin_decision"]
    restaurant_id: int
    approved: bool
    reason: str | None = None


class OrderApprovalEvent(WireModel):
    """The customer learns the outcome of order approval."""

    type: Literal["order_approval"]
    customer_id: int
    approved: bool
    reason: str | None = None


OrderLifecycleEvent = Annotated[
    NewOrderEvent
    | OrderStatusUpdateEvent
    | DeliveryAssignmentEvent
    | DeliveryAssignedEvent
    | OrderAdminDecisionEvent
    | OrderApprovalEvent,
    Field(discriminator="type"),
]
