"""API endpoint modules for v1."""

from app.api.v1.endpoints import notifications, notifications_ws, orders

__all__ = [
    "notifications",
    "notifications_ws",
    "orders",
]
