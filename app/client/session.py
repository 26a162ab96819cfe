"""Shared client connection to the notification service.

One :class:`ClientSessionManager` owns a single WebSocket and multiplexes it
between any number of subscribers. Construct it once at application start and
hand the instance to whatever needs it.

States move ``DISCONNECTED -> CONNECTING -> CONNECTED`` and fall back to
``DISCONNECTED`` on close or error. A close with any code other than 1000
schedules a reconnect with exponential backoff and jitter; after
``max_reconnect_attempts`` the manager stays offline until :meth:`resume` or
:meth:`connect` is called.

All state changes happen synchronously on the event loop, so subscribers never
observe a half-applied transition.
"""
from __future__ import annotations

import asyncio
import json
import random
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from loguru import logger
from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import ConnectionClosed

from app.config import settings

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
LIVENESS_TIMEOUT_CLOSURE = 4000


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


STATUS_LABELS = {
    ConnectionState.CONNECTED: "Connected",
    ConnectionState.CONNECTING: "Connecting",
    ConnectionState.DISCONNECTED: "Offline",
}


class ClientSocket(Protocol):
    """The slice of a websockets client connection the manager relies on."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None: ...


Connector = Callable[[str], Awaitable[ClientSocket]]
MessageHandler = Callable[[Dict[str, Any]], None]
StatusHandler = Callable[[], None]


@dataclass(frozen=True)
class ClientIdentity:
    """Identity announced right after every successful connect."""

    user_id: int | None = None
    user_type: str | None = None
    restaurant_id: int | None = None

    def is_empty(self) -> bool:
        return self.user_id is None and self.user_type is None and self.restaurant_id is None

    def to_message(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {"type": "authenticate"}
        if self.user_id is not None:
            message["userId"] = self.user_id
        if self.user_type is not None:
            message["userType"] = self.user_type
        if self.restaurant_id is not None:
            message["restaurantId"] = self.restaurant_id
        return message


@dataclass
class Subscription:
    """Callbacks registered by one consumer of the shared connection."""

    id: str = field(default_factory=lambda: f"subscription_{uuid.uuid4().hex[:8]}")
    on_message: MessageHandler | None = None
    on_connect: StatusHandler | None = None
    on_disconnect: StatusHandler | None = None


def backoff_delay(
    attempt: int,
    *,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    max_jitter: float = 1.0,
    rng: Callable[[], float] = random.random,
) -> float:
    """Delay before reconnect ``attempt``: capped exponential plus jitter."""

    return min(max_delay, base_delay * (2 ** attempt)) + rng() * max_jitter


async def _default_connector(url: str) -> ClientSocket:
    # Keep-alive is handled with application pings; disable protocol pings so a
    # missed pong never closes the socket on its own.
    return await websocket_connect(url, ping_interval=None)


class ClientSessionManager:
    """Own one notification socket and share it between subscribers."""

    def __init__(
        self,
        url: str,
        identity: ClientIdentity | None = None,
        *,
        connector: Connector | None = None,
        ping_interval: float | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
        max_jitter: float | None = None,
        max_reconnect_attempts: int | None = None,
        liveness_timeout: float | None = None,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.url = url
        self.identity = identity or ClientIdentity()
        self._connector: Connector = connector or _default_connector
        self.ping_interval = (
            ping_interval if ping_interval is not None else settings.CLIENT_PING_INTERVAL_SECONDS
        )
        self.base_delay = (
            base_delay if base_delay is not None else settings.CLIENT_RECONNECT_BASE_DELAY_SECONDS
        )
        self.max_delay = (
            max_delay if max_delay is not None else settings.CLIENT_RECONNECT_MAX_DELAY_SECONDS
        )
        self.max_jitter = (
            max_jitter if max_jitter is not None else settings.CLIENT_RECONNECT_MAX_JITTER_SECONDS
        )
        self.max_reconnect_attempts = (
            max_reconnect_attempts
            if max_reconnect_attempts is not None
            else settings.CLIENT_MAX_RECONNECT_ATTEMPTS
        )
        self.liveness_timeout = (
            liveness_timeout
            if liveness_timeout is not None
            else settings.CLIENT_LIVENESS_TIMEOUT_SECONDS
        )
        self._rng = rng

        self._state = ConnectionState.DISCONNECTED
        self._socket: Optional[ClientSocket] = None
        self._session_task: Optional[asyncio.Task] = None
        self._ping_task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._reconnect_attempts = 0
        self._gave_up = False
        self._subscriptions: Dict[str, Subscription] = {}

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def reconnect_exhausted(self) -> bool:
        return self._gave_up and self._state is ConnectionState.DISCONNECTED

    @property
    def status_label(self) -> str:
        return STATUS_LABELS[self._state]

    # -- lifecycle -------------------------------------------------------

    def initialize(self, identity: ClientIdentity) -> None:
        """Remember who we are and open the connection."""

        self.identity = identity
        self.connect()

    def connect(self) -> None:
        """Open a fresh socket, tearing down any existing one.

        Must be called from a running event loop. Does nothing while a connect
        is already in flight.
        """

        if self._state is ConnectionState.CONNECTING:
            return

        self._cancel_reconnect()
        previous = self._detach()
        self._gave_up = False
        self._state = ConnectionState.CONNECTING
        loop = asyncio.get_running_loop()
        self._session_task = loop.create_task(self._run(previous))

    def resume(self) -> None:
        """External trigger (page visible, network back) to reconnect if needed."""

        if self._state is ConnectionState.CONNECTED:
            return
        self._reconnect_attempts = 0
        logger.info("Resuming notification connection", state=self._state.value)
        self.connect()

    async def disconnect(self) -> None:
        """Close on purpose; a normal close never schedules a reconnect."""

        self._cancel_reconnect()
        socket = self._detach()
        if socket is not None:
            await self._close_socket(socket)
        self._state = ConnectionState.DISCONNECTED
        self._notify_status("on_disconnect")
        logger.info("Disconnected from notification service")

    # -- subscriptions ---------------------------------------------------

    def subscribe(self, subscription: Subscription) -> Callable[[], None]:
        """Register callbacks and return an idempotent unsubscribe function."""

        self._subscriptions[subscription.id] = subscription
        if self._state is ConnectionState.CONNECTED and subscription.on_connect is not None:
            self._invoke(subscription, subscription.on_connect)

        def unsubscribe() -> None:
            if self._subscriptions.get(subscription.id) is subscription:
                del self._subscriptions[subscription.id]

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def send_message(self, message: Dict[str, Any] | str) -> bool:
        """Send when connected; returns False instead of raising."""

        socket = self._socket
        if socket is None or self._state is not ConnectionState.CONNECTED:
            return False
        payload = message if isinstance(message, str) else json.dumps(message)
        try:
            await socket.send(payload)
        except (ConnectionClosed, OSError) as exc:
            logger.warning("Failed to send notification frame", error=str(exc))
            return False
        return True

    # -- reconnect policy ------------------------------------------------

    def schedule_reconnect(self) -> float | None:
        """Arm the next reconnect and return its delay, or None once exhausted."""

        self._cancel_reconnect()
        if self._reconnect_attempts >= self.max_reconnect_attempts:
            self._gave_up = True
            logger.warning(
                "Maximum reconnect attempts reached, staying offline",
                attempts=self._reconnect_attempts,
            )
            return None

        self._reconnect_attempts += 1
        delay = backoff_delay(
            self._reconnect_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            max_jitter=self.max_jitter,
            rng=self._rng,
        )
        logger.info(
            "Scheduling reconnect",
            attempt=self._reconnect_attempts,
            delay=round(delay, 3),
        )
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(delay, self._reconnect)
        return delay

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        logger.info("Attempting to reconnect", attempt=self._reconnect_attempts)
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    # -- socket handling -------------------------------------------------

    async def _run(self, previous: ClientSocket | None) -> None:
        if previous is not None:
            await self._close_socket(previous)

        try:
            socket = await self._connector(self.url)
        except Exception as exc:
            # OSError, timeouts and InvalidHandshake all end up here.
            logger.warning("Could not open notification socket", url=self.url, error=str(exc))
            self._state = ConnectionState.DISCONNECTED
            self._notify_status("on_disconnect")
            self.schedule_reconnect()
            return

        self._socket = socket
        await self._handle_open()
        code = await self._read_loop(socket)
        if self._session_task is not asyncio.current_task():
            # A newer connect() replaced this session while it was reading.
            return
        self._handle_close(code)

    async def _handle_open(self) -> None:
        logger.info("Notification connection established", url=self.url)
        self._state = ConnectionState.CONNECTED
        self._reconnect_attempts = 0
        self._gave_up = False
        if not self.identity.is_empty():
            await self.send_message(self.identity.to_message())
        self._start_ping()
        self._notify_status("on_connect")

    async def _read_loop(self, socket: ClientSocket) -> int:
        """Pump frames until the socket closes and return the close code."""

        while True:
            try:
                if self.liveness_timeout:
                    raw = await asyncio.wait_for(socket.recv(), self.liveness_timeout)
                else:
                    raw = await socket.recv()
            except asyncio.TimeoutError:
                logger.warning(
                    "No frame within liveness window, closing",
                    timeout=self.liveness_timeout,
                )
                try:
                    await socket.close(code=LIVENESS_TIMEOUT_CLOSURE, reason="liveness timeout")
                except (ConnectionClosed, OSError) as exc:
                    logger.debug("Close after liveness timeout failed", error=str(exc))
                return LIVENESS_TIMEOUT_CLOSURE
            except ConnectionClosed as exc:
                return exc.rcvd.code if exc.rcvd is not None else ABNORMAL_CLOSURE
            except OSError as exc:
                # Reported once, as an abnormal close.
                logger.warning("Notification socket error", error=str(exc))
                self._state = ConnectionState.DISCONNECTED
                return ABNORMAL_CLOSURE
            self._handle_frame(raw)

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            logger.warning("Unreadable frame from notification service", error=str(exc))
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object frame from notification service")
            return
        if data.get("type") == "pong":
            logger.debug("Received pong from notification service")
            return
        for subscription in list(self._subscriptions.values()):
            if subscription.on_message is not None:
                self._invoke(subscription, subscription.on_message, data)

    def _handle_close(self, code: int) -> None:
        logger.info("Notification connection closed", code=code)
        self._stop_ping()
        self._cancel_reconnect()
        self._socket = None
        self._session_task = None
        self._state = ConnectionState.DISCONNECTED
        self._notify_status("on_disconnect")
        if code != NORMAL_CLOSURE:
            self.schedule_reconnect()

    def _detach(self) -> ClientSocket | None:
        """Stop the current session task and hand back its socket, if any."""

        task, self._session_task = self._session_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._stop_ping()
        socket, self._socket = self._socket, None
        return socket

    async def _close_socket(self, socket: ClientSocket) -> None:
        try:
            await socket.send(json.dumps({"type": "client_disconnect"}))
        except (ConnectionClosed, OSError) as exc:
            logger.debug("Could not announce disconnect", error=str(exc))
        try:
            await socket.close(code=NORMAL_CLOSURE, reason="Client disconnecting normally")
        except (ConnectionClosed, OSError) as exc:
            logger.warning("Error closing notification socket", error=str(exc))

    # -- keep-alive ------------------------------------------------------

    def _start_ping(self) -> None:
        self._stop_ping()
        self._ping_task = asyncio.get_running_loop().create_task(self._ping_loop())

    def _stop_ping(self) -> None:
        task, self._ping_task = self._ping_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _ping_loop(self) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            if self._state is ConnectionState.CONNECTED:
                await self.send_message({"type": "ping", "timestamp": int(time.time() * 1000)})

    # -- subscriber dispatch ---------------------------------------------

    def _notify_status(self, callback_name: str) -> None:
        for subscription in list(self._subscriptions.values()):
            callback = getattr(subscription, callback_name)
            if callback is not None:
                self._invoke(subscription, callback)

    @staticmethod
    def _invoke(subscription: Subscription, callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception as exc:
            logger.warning(
                "Notification subscriber callback failed",
                subscription_id=subscription.id,
                error=str(exc),
            )
