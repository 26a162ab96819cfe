"""Fan-out of notification events to matching WebSocket connections."""
from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from starlette.websockets import WebSocketState

from app.schemas.notification import NotificationEvent
from app.schemas.realtime import DeliveryFilter
from app.services.registry import ConnectionEntry, ConnectionRegistry


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one ``send`` call. Counts are for logging only."""

    event: NotificationEvent
    matched: int
    delivered: int


def _is_writable(entry: ConnectionEntry) -> bool:
    if not entry.open:
        return False
    connection = entry.connection
    for state_attr in ("client_state", "application_state"):
        state = getattr(connection, state_attr, WebSocketState.CONNECTED)
        if state != WebSocketState.CONNECTED:
            return False
    return True


class NotificationRouter:
    """Deliver one event to every registry entry matching a filter.

    Delivery is fire-and-forget: a connection that is gone or fails mid-write is
    skipped and logged, and nothing is retried or stored.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    async def send(
        self, event: NotificationEvent, delivery_filter: DeliveryFilter | None = None
    ) -> DispatchResult:
        delivery_filter = delivery_filter or DeliveryFilter()
        event = event.stamped()
        payload = event.to_wire()

        targets = self.registry.match(delivery_filter)
        if not targets:
            logger.debug(
                "No active connections match the notification filter",
                event_type=event.type,
                filter=delivery_filter.model_dump(mode="json", exclude_none=True),
            )
            return DispatchResult(event=event, matched=0, delivered=0)

        delivered = 0
        for entry in targets:
            # The socket may have closed while an earlier write was awaited.
            if not _is_writable(entry):
                continue
            try:
                await entry.connection.send_text(payload)
            except Exception as exc:
                logger.warning(
                    "Failed to deliver notification",
                    connection_id=str(entry.id),
                    event_id=event.id,
                    error=str(exc),
                )
                continue
            delivered += 1

        logger.info(
            "Notification dispatched",
            event_id=event.id,
            event_type=event.type,
            delivered=delivered,
            matched=len(targets),
        )
        return DispatchResult(event=event, matched=len(targets), delivered=delivered)
