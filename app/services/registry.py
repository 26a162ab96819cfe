"""In-memory registry of live notification connections."""
from __future__ import annotations

import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from loguru import logger

from app.schemas.realtime import DeliveryFilter, UserType


@dataclass
class ConnectionEntry:
    """A live socket and the identity it announced, if any."""

    connection: Any
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    user_id: int | None = None
    user_type: UserType | None = None
    restaurant_id: int | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity: float = field(default_factory=time.monotonic)
    open: bool = True

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None or self.user_type is not None or self.restaurant_id is not None

    def matches(self, delivery_filter: DeliveryFilter) -> bool:
        if delivery_filter.user_id is not None and self.user_id != delivery_filter.user_id:
            return False
        if delivery_filter.user_type is not None and self.user_type != delivery_filter.user_type:
            return False
        if (
            delivery_filter.restaurant_id is not None
            and self.restaurant_id != delivery_filter.restaurant_id
        ):
            return False
        return True


class ConnectionRegistry:
    """Track open connections and their bound identity attributes.

    All methods are synchronous so a mutation never spans an ``await``; callers
    running on the event loop see each add/remove/bind as one step.
    """

    def __init__(self) -> None:
        self._entries: Dict[uuid.UUID, ConnectionEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, connection: Any) -> ConnectionEntry:
        """Register a freshly opened connection with no identity."""

        entry = ConnectionEntry(connection=connection)
        self._entries[entry.id] = entry
        logger.info("WebSocket connection registered", connection_id=str(entry.id))
        return entry

    def remove(self, entry: ConnectionEntry) -> bool:
        """Drop a closed connection. Returns False if it was already gone."""

        removed = self._entries.pop(entry.id, None)
        entry.open = False
        if removed is None:
            return False
        logger.info(
            "WebSocket connection removed",
            connection_id=str(entry.id),
            user_id=entry.user_id,
            user_type=entry.user_type.value if entry.user_type else None,
        )
        return True

    def bind(
        self,
        entry: ConnectionEntry,
        *,
        user_id: int | None = None,
        user_type: UserType | None = None,
        restaurant_id: int | None = None,
    ) -> ConnectionEntry:
        """Attach identity attributes; a later bind overwrites the earlier one."""

        if entry.is_authenticated:
            logger.info(
                "WebSocket connection re-bound",
                connection_id=str(entry.id),
                previous_user_id=entry.user_id,
                user_id=user_id,
            )
        entry.user_id = user_id
        entry.user_type = user_type
        entry.restaurant_id = restaurant_id
        return entry

    def match(self, delivery_filter: DeliveryFilter) -> List[ConnectionEntry]:
        """Return a snapshot of the entries matching every present filter field."""

        return [entry for entry in self._entries.values() if entry.matches(delivery_filter)]

    def entries(self) -> List[ConnectionEntry]:
        return list(self._entries.values())

    def touch(self, entry: ConnectionEntry, now: float | None = None) -> None:
        """Record inbound traffic on ``entry``."""

        entry.last_activity = time.monotonic() if now is None else now

    def stale(self, idle_seconds: float, now: float | None = None) -> List[ConnectionEntry]:
        """Entries with no inbound frame for at least ``idle_seconds``."""

        now = time.monotonic() if now is None else now
        return [entry for entry in self.entries() if now - entry.last_activity >= idle_seconds]

    def stats(self) -> dict[str, Any]:
        entries = list(self._entries.values())
        by_type = Counter(entry.user_type.value for entry in entries if entry.user_type)
        return {
            "total": len(entries),
            "authenticated": sum(1 for entry in entries if entry.is_authenticated),
            "by_user_type": dict(by_type),
        }
