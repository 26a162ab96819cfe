"""FastAPI application factory."""
from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from app.api import deps
from app.api.v1.api import api_router
from app.api.v1.endpoints import notifications_ws
from app.config import settings
from app.services.reaper import build_default_reaper
from app.services.registry import ConnectionRegistry


tags_metadata: List[dict[str, str]] = [
    {"name": "notifications", "description": "Publish notifications to live connections."},
    {"name": "orders", "description": "Order lifecycle hooks that fan out notifications."},
    {"name": "realtime", "description": "WebSocket channel delivering notifications."},
]


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), backtrace=False, diagnose=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    reaper = build_default_reaper(deps.get_connection_registry())
    if reaper is not None:
        reaper.start()
    yield
    if reaper is not None:
        await reaper.stop()
    await deps.get_presence_tracker().close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""

    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Real-time order notifications for customers, restaurants and couriers.",
        version="0.1.0",
        openapi_tags=tags_metadata,
        docs_url=f"{settings.API_V1_STR}/docs",
        redoc_url=f"{settings.API_V1_STR}/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.errors(), "message": "Validation failed"},
        )

    @app.get("/health", tags=["realtime"])
    def health(registry: ConnectionRegistry = Depends(deps.get_connection_registry)) -> dict:
        return {"status": "ok", "connections": len(registry)}

    app.include_router(notifications_ws.router)
    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
