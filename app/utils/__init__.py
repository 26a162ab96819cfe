"""Utility helpers package."""

from app.utils.exceptions import (
    InvalidFilterError,
    NotificationServiceError,
    PublishError,
    ServiceAuthenticationError,
)

__all__ = [
    "NotificationServiceError",
    "InvalidFilterError",
    "ServiceAuthenticationError",
    "PublishError",
]
