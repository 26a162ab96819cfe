"""Shared API dependencies."""
from __future__ import annotations

import secrets

from fastapi import Depends, Header

from app.config import settings
from app.services.identity import IdentityBinder
from app.services.order_events import OrderEventPublisher
from app.services.presence import PresenceTracker, build_default_presence_tracker
from app.services.realtime import NotificationRouter
from app.services.registry import ConnectionRegistry
from app.utils.exceptions import (
    ServiceAuthenticationError,
    handle_service_authentication_error,
)

_registry_singleton: ConnectionRegistry | None = None
_presence_singleton: PresenceTracker | None = None


def get_connection_registry() -> ConnectionRegistry:
    """Return the process-wide connection registry."""

    global _registry_singleton
    if _registry_singleton is None:
        _registry_singleton = ConnectionRegistry()
    return _registry_singleton


def get_presence_tracker() -> PresenceTracker:
    """Return a cached presence tracker."""

    global _presence_singleton
    if _presence_singleton is None:
        _presence_singleton = build_default_presence_tracker()
    return _presence_singleton


def get_identity_binder(
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> IdentityBinder:
    return IdentityBinder(registry)


def get_notification_router(
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> NotificationRouter:
    return NotificationRouter(registry)


def get_order_event_publisher(
    router: NotificationRouter = Depends(get_notification_router),
) -> OrderEventPublisher:
    return OrderEventPublisher(router)


def require_service_key(x_service_key: str | None = Header(default=None)) -> None:
    """Reject publishing calls without the configured service key."""

    expected = settings.NOTIFY_SERVICE_KEY
    if not expected:
        return
    if not x_service_key or not secrets.compare_digest(x_service_key, expected):
        raise handle_service_authentication_error(
            ServiceAuthenticationError("Invalid or missing service key")
        )


def reset_singletons() -> None:
    """Forget cached collaborators (used by tests and app shutdown)."""

    global _registry_singleton, _presence_singleton
    _registry_singleton = None
    _presence_singleton = None
