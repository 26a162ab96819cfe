"""Custom exception classes and error handling utilities."""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from loguru import logger


class NotificationServiceError(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidFilterError(NotificationServiceError):
    """Delivery filter rejected before dispatch."""
    pass


class ServiceAuthenticationError(NotificationServiceError):
    """Publishing caller failed the service key check."""
    pass


class PublishError(NotificationServiceError):
    """Remote publish call failed after retries."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


def handle_invalid_filter_error(error: InvalidFilterError) -> HTTPException:
    """Handle filter validation errors."""
    logger.warning(f"Invalid delivery filter: {error.message}")
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={
            "message": error.message,
            "details": error.details
        }
    )


def handle_service_authentication_error(error: ServiceAuthenticationError) -> HTTPException:
    """Handle service key errors."""
    logger.warning(f"Service authentication error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error.message,
    )
