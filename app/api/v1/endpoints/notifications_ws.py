"""Real-time WebSocket endpoint for order notifications."""
from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from loguru import logger

from app.api.deps import get_connection_registry, get_identity_binder, get_presence_tracker
from app.config import settings
from app.services.identity import IdentityBinder
from app.services.presence import PresenceTracker
from app.services.registry import ConnectionRegistry

router = APIRouter(tags=["realtime"])


@router.websocket(settings.WS_PATH)
async def notification_stream(
    websocket: WebSocket,
    registry: ConnectionRegistry = Depends(get_connection_registry),
    binder: IdentityBinder = Depends(get_identity_binder),
    presence: PresenceTracker = Depends(get_presence_tracker),
) -> None:
    await websocket.accept()
    entry = registry.add(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            registry.touch(entry)

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue

            reply = binder.process(entry, raw)
            if reply is None:
                continue

            if entry.is_authenticated:
                await presence.mark_seen(entry)
            try:
                await websocket.send_json(reply)
            except (WebSocketDisconnect, RuntimeError) as exc:
                logger.debug("Reply not sent, connection closing", connection_id=str(entry.id), error=str(exc))
                break
    except WebSocketDisconnect:
        pass
    finally:
        registry.remove(entry)
        await presence.forget(entry)
