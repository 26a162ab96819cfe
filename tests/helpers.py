"""Fakes shared across tests."""
from __future__ import annotations

import asyncio
import json
from typing import Any

from starlette.websockets import WebSocketState
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close


class FakeConnection:
    """Stand-in for a server-side Starlette WebSocket."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.sent: list[str] = []
        self.fail_with = fail_with
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.closed_with: int | None = None

    async def send_text(self, payload: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(payload)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code
        self.client_state = WebSocketState.DISCONNECTED


class FakeSocket:
    """Stand-in for a ``websockets`` client connection."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.closed_with: int | None = None

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]

    async def send(self, message: str) -> None:
        if self.closed_with is not None:
            raise ConnectionClosedOK(Close(self.closed_with, ""), Close(self.closed_with, ""))
        self.sent.append(message)

    async def recv(self) -> str:
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = code

    def feed(self, payload: dict[str, Any] | str) -> None:
        self.incoming.put_nowait(payload if isinstance(payload, str) else json.dumps(payload))

    def drop(self, code: int | None = None) -> None:
        """Simulate the server going away with ``code`` (None = no close frame)."""

        if code == 1000:
            self.incoming.put_nowait(ConnectionClosedOK(Close(1000, "bye"), None))
        elif code is None:
            self.incoming.put_nowait(ConnectionClosedError(None, None))
        else:
            self.incoming.put_nowait(ConnectionClosedError(Close(code, "gone"), None))

    def fail(self, exc: BaseException) -> None:
        self.incoming.put_nowait(exc)


class FakeConnector:
    """Hand out prepared sockets (or raise prepared errors) in order."""

    def __init__(self, *outcomes: FakeSocket | BaseException) -> None:
        self.outcomes = list(outcomes)
        self.urls: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.urls)

    async def __call__(self, url: str) -> FakeSocket:
        self.urls.append(url)
        if not self.outcomes:
            raise OSError("connection refused")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


async def settle(rounds: int = 10) -> None:
    """Let pending event-loop callbacks run."""

    for _ in range(rounds):
        await asyncio.sleep(0)


async def eventually(predicate, timeout: float = 1.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` seconds pass."""

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)
