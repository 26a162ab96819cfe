"""Interpret inbound frames on a notification connection."""
from __future__ import annotations

import json
from typing import Any

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from app.schemas.realtime import (
    CLIENT_MESSAGE_TYPES,
    AuthenticateMessage,
    AuthenticationSuccessMessage,
    ClientDisconnectMessage,
    ClientMessage,
    PingMessage,
    PongMessage,
)
from app.services.registry import ConnectionEntry, ConnectionRegistry

client_message_adapter = TypeAdapter(ClientMessage)


class IdentityBinder:
    """Bind announced identities and answer keep-alives.

    Bad frames are logged and dropped; nothing here closes the connection.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    def decode(self, raw: str | bytes) -> ClientMessage | None:
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError, RecursionError) as exc:
            logger.warning("Malformed WebSocket frame", error=str(exc))
            return None
        if not isinstance(payload, dict):
            logger.warning("Malformed WebSocket frame", error="payload is not an object")
            return None
        message_type = payload.get("type")
        if not isinstance(message_type, str) or message_type not in CLIENT_MESSAGE_TYPES:
            logger.debug("Ignoring unknown WebSocket message type", message_type=repr(message_type))
            return None
        try:
            return client_message_adapter.validate_python(payload)
        except ValidationError as exc:
            logger.warning(
                "Invalid WebSocket message",
                message_type=message_type,
                errors=exc.errors(include_url=False),
            )
            return None

    def process(self, entry: ConnectionEntry, raw: str | bytes) -> dict[str, Any] | None:
        """Handle one inbound frame and return the reply to send, if any."""

        message = self.decode(raw)
        if message is None:
            return None

        if isinstance(message, AuthenticateMessage):
            self.registry.bind(
                entry,
                user_id=message.user_id,
                user_type=message.user_type,
                restaurant_id=message.restaurant_id,
            )
            logger.info(
                "WebSocket authenticated",
                connection_id=str(entry.id),
                user_id=message.user_id,
                user_type=message.user_type.value if message.user_type else None,
                restaurant_id=message.restaurant_id,
            )
            return AuthenticationSuccessMessage().model_dump()

        if isinstance(message, PingMessage):
            return PongMessage().model_dump()

        if isinstance(message, ClientDisconnectMessage):
            logger.info("WebSocket client announced disconnect", connection_id=str(entry.id))
        return None
