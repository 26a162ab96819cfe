"""Periodic removal of connections that have gone silent."""
from __future__ import annotations

import asyncio
from typing import List, Optional

from loguru import logger

from app.config import settings
from app.services.registry import ConnectionEntry, ConnectionRegistry

GOING_AWAY = 1001


class ConnectionReaper:
    """Close and forget connections with no inbound frame within ``idle_timeout``.

    Clients ping every 30 seconds, so a live connection is never idle for long.
    A half-open socket whose peer vanished keeps no traffic flowing and is
    dropped on the next sweep.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        interval: float = 30.0,
        idle_timeout: float = 60.0,
    ) -> None:
        self.registry = registry
        self.interval = interval
        self.idle_timeout = idle_timeout
        self._task: Optional[asyncio.Task] = None

    async def sweep(self, now: float | None = None) -> List[ConnectionEntry]:
        """Run one pass and return the entries that were dropped."""

        stale = self.registry.stale(self.idle_timeout, now=now)
        for entry in stale:
            # Removal first so routing skips the entry while close is awaited.
            self.registry.remove(entry)
            logger.info(
                "Terminating inactive WebSocket connection",
                connection_id=str(entry.id),
                user_id=entry.user_id,
            )
            try:
                await entry.connection.close(code=GOING_AWAY)
            except Exception as exc:
                logger.debug("Close of inactive connection failed", connection_id=str(entry.id), error=str(exc))
        return stale

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.sweep()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def build_default_reaper(registry: ConnectionRegistry) -> ConnectionReaper | None:
    """Reaper configured from settings, or None when idle reaping is disabled."""

    if settings.WS_IDLE_TIMEOUT_SECONDS is None:
        return None
    return ConnectionReaper(
        registry,
        interval=settings.WS_REAPER_INTERVAL_SECONDS,
        idle_timeout=settings.WS_IDLE_TIMEOUT_SECONDS,
    )
