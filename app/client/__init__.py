"""Client-side helpers for consuming and publishing notifications."""

from app.client.inbox import NotificationInbox
from app.client.publisher import NotificationServiceClient
from app.client.session import (
    ClientIdentity,
    ClientSessionManager,
    ConnectionState,
    Subscription,
    backoff_delay,
)

__all__ = [
    "NotificationInbox",
    "NotificationServiceClient",
    "ClientIdentity",
    "ClientSessionManager",
    "ConnectionState",
    "Subscription",
    "backoff_delay",
]
