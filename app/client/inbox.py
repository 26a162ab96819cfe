"""Local notification history for one signed-in identity."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List

from loguru import logger
from pydantic import ValidationError

from app.client.session import ClientIdentity, ClientSessionManager, Subscription
from app.config import settings
from app.schemas.notification import NotificationEvent

STORAGE_PREFIX = "notifications"


def storage_key(identity: ClientIdentity) -> str:
    parts = [
        "" if identity.user_id is None else str(identity.user_id),
        identity.user_type or "",
        "" if identity.restaurant_id is None else str(identity.restaurant_id),
    ]
    return "_".join([STORAGE_PREFIX, *parts])


class NotificationInbox:
    """Keep received notifications (newest first) and persist them to disk.

    Events are de-duplicated by ``id``. Read state lives here only; the server
    never learns about it through the socket.
    """

    def __init__(self, identity: ClientIdentity, state_dir: Path | None = None) -> None:
        self.identity = identity
        directory = Path(state_dir) if state_dir is not None else settings.CLIENT_STATE_DIR
        self.path = directory / f"{storage_key(identity)}.json"
        self._notifications: List[Dict[str, Any]] = self._load()

    def attach(self, manager: ClientSessionManager) -> Callable[[], None]:
        """Subscribe to ``manager``; returns the unsubscribe function."""

        subscription = Subscription(id=f"inbox_{storage_key(self.identity)}", on_message=self.receive)
        return manager.subscribe(subscription)

    def receive(self, frame: Dict[str, Any]) -> bool:
        """Store a notification frame; returns False for duplicates and non-notifications."""

        if not frame.get("id") or not frame.get("title"):
            return False
        try:
            event = NotificationEvent.model_validate(frame)
        except ValidationError as exc:
            logger.debug("Ignoring frame that is not a notification", errors=exc.error_count())
            return False
        if any(item["id"] == event.id for item in self._notifications):
            return False
        self._notifications.insert(0, event.model_dump(mode="json", exclude_none=True))
        self._persist()
        return True

    @property
    def notifications(self) -> List[Dict[str, Any]]:
        return [dict(item) for item in self._notifications]

    def events(self) -> List[NotificationEvent]:
        return [NotificationEvent.model_validate(item) for item in self._notifications]

    def recent(self, limit: int = 5) -> List[Dict[str, Any]]:
        return self.notifications[:limit]

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self._notifications if not item.get("read"))

    def mark_as_read(self, notification_id: str) -> bool:
        for item in self._notifications:
            if item["id"] == notification_id:
                item["read"] = True
                self._persist()
                return True
        return False

    def mark_all_as_read(self) -> None:
        for item in self._notifications:
            item["read"] = True
        self._persist()

    def clear(self, notification_id: str) -> bool:
        remaining = [item for item in self._notifications if item["id"] != notification_id]
        if len(remaining) == len(self._notifications):
            return False
        self._notifications = remaining
        self._persist()
        return True

    def clear_all(self) -> None:
        self._notifications = []
        self._persist()

    def _load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            stored = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not load stored notifications", path=str(self.path), error=str(exc))
            return []
        if not isinstance(stored, list):
            return []
        return [item for item in stored if isinstance(item, dict) and item.get("id")]

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(self._notifications), encoding="utf-8")
        tmp_path.replace(self.path)
