"""Pydantic schemas package."""

from app.schemas.notification import (
    ConnectionStats,
    DispatchSummary,
    NotificationEvent,
    NotificationSendRequest,
    decode_event_data,
)
from app.schemas.order_event import OrderLifecycleEvent
from app.schemas.realtime import (
    AuthenticateMessage,
    ClientMessage,
    DeliveryFilter,
    PingMessage,
    UserType,
)

__all__ = [
    "ConnectionStats",
    "DispatchSummary",
    "NotificationEvent",
    "NotificationSendRequest",
    "decode_event_data",
    "OrderLifecycleEvent",
    "AuthenticateMessage",
    "ClientMessage",
    "DeliveryFilter",
    "PingMessage",
    "UserType",
]
