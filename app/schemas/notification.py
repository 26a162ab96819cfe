"""Notification event schemas and typed event payloads."""
from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from app.schemas.realtime import DeliveryFilter, WireModel


def new_notification_id() -> str:
    """Return a process-unique identifier (millisecond timestamp + random suffix)."""

    return f"notif_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class NotificationEvent(BaseModel):
    """Server-to-client notification frame."""

    type: str = Field(..., min_length=1, description="Open-ended event tag, e.g. new_order")
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    data: dict[str, Any] | None = None
    id: str | None = None
    timestamp: datetime | None = None
    read: bool = False

    def stamped(self) -> "NotificationEvent":
        """Return a copy ready for dispatch: id and timestamp filled in, unread."""

        return self.model_copy(
            update={
                "id": self.id or new_notification_id(),
                "timestamp": self.timestamp or datetime.now(timezone.utc),
                "read": False,
            }
        )

    def to_wire(self) -> str:
        return self.model_dump_json(exclude_none=True)


class NewOrderData(WireModel):
    order_id: int
    restaurant_id: int
    customer_id: int | None = None
    total_amount: float | None = None
    item_count: int | None = None


class OrderStatusUpdateData(WireModel):
    order_id: int
    status: str
    previous_status: str | None = None


class DeliveryAssignmentData(WireModel):
    order_id: int
    delivery_partner_id: int
    restaurant_id: int | None = None
    pickup_address: str | None = None
    delivery_address: str | None = None


class DeliveryAssignedData(WireModel):
    order_id: int
    delivery_partner_id: int
    delivery_partner_name: str | None = None
    estimated_minutes: int | None = None


class OrderAdminDecisionData(WireModel):
    order_id: int
    approved: bool
    reason: str | None = None


class OrderApprovalData(WireModel):
    order_id: int
    approved: bool
    reason: str | None = None


EVENT_DATA_MODELS: dict[str, type[WireModel]] = {
    "new_order": NewOrderData,
    "order_status_update": OrderStatusUpdateData,
    "delivery_assignment": DeliveryAssignmentData,
    "delivery_assigned": DeliveryAssignedData,
    "order_admin_decision": OrderAdminDecisionData,
    "order_approval": OrderApprovalData,
}


def decode_event_data(
    event_type: str, data: dict[str, Any] | None
) -> BaseModel | dict[str, Any] | None:
    """Decode ``data`` into the payload model registered for ``event_type``.

    Unknown event types keep their raw dict so consumers can still switch on
    ``type``. Known types with a payload that does not fit raise
    ``pydantic.ValidationError``.
    """

    if data is None:
        return None
    model = EVENT_DATA_MODELS.get(event_type)
    if model is None:
        return data
    return model.model_validate(data)


class NotificationSendRequest(WireModel):
    """Payload for publishing a raw notification to a filter."""

    event: NotificationEvent
    filter: DeliveryFilter = Field(default_factory=DeliveryFilter)
    allow_broadcast: bool = Field(
        False, description="Permit an empty filter, which reaches every open connection"
    )


class DispatchSummary(WireModel):
    """Outcome of one fan-out; counts are informational only."""

    id: str
    type: str
    matched: int
    delivered: int


class ConnectionStats(WireModel):
    total: int
    authenticated: int
    by_user_type: dict[str, int] = Field(default_factory=dict)
