"""Pytest fixtures for the notification service tests."""
from __future__ import annotations

from collections.abc import AsyncGenerator, Generator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import deps
from app.config import settings
from app.main import create_app
from app.services.presence import PresenceTracker
from app.services.registry import ConnectionRegistry


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch) -> Generator[None, None, None]:
    monkeypatch.setattr(settings, "NOTIFY_SERVICE_KEY", None)
    monkeypatch.setattr(settings, "REDIS_URL", None)
    deps.reset_singletons()
    try:
        yield
    finally:
        deps.reset_singletons()


@pytest.fixture()
def app() -> FastAPI:
    application = create_app()
    application.dependency_overrides[deps.get_presence_tracker] = lambda: PresenceTracker(redis_url=None)
    return application


@pytest.fixture()
def registry(app: FastAPI) -> ConnectionRegistry:
    return deps.get_connection_registry()


@pytest.fixture()
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
