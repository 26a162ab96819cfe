"""Service layer package."""

from app.services.identity import IdentityBinder
from app.services.order_events import OrderEventPublisher
from app.services.presence import PresenceTracker
from app.services.reaper import ConnectionReaper
from app.services.realtime import DispatchResult, NotificationRouter
from app.services.registry import ConnectionEntry, ConnectionRegistry

__all__ = [
    "ConnectionEntry",
    "ConnectionRegistry",
    "DispatchResult",
    "IdentityBinder",
    "NotificationRouter",
    "OrderEventPublisher",
    "PresenceTracker",
    "ConnectionReaper",
]
