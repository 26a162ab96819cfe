"""Application configuration management."""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import AnyUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    PROJECT_NAME: str = "Order Notification Service"
    API_V1_STR: str = "/api/v1"
    WS_PATH: str = Field("/ws", description="Path of the notification WebSocket endpoint")
    LOG_LEVEL: str = Field("INFO", description="Minimum level for the loguru sink")
    WS_REAPER_INTERVAL_SECONDS: float = Field(30.0, description="How often silent connections are swept")
    WS_IDLE_TIMEOUT_SECONDS: Optional[float] = Field(
        60.0,
        description="Close connections with no inbound frame for this long (disabled if unset)",
    )

    BACKEND_CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost", "http://localhost:3000"],
        description="Allowed CORS origins",
    )

    NOTIFY_SERVICE_KEY: Optional[str] = Field(
        None,
        description="Shared key required in X-Service-Key for publishing endpoints (unset = open)",
    )

    REDIS_URL: Optional[AnyUrl] = Field(
        None, description="Redis connection string used to mirror connection presence"
    )
    PRESENCE_TTL_SECONDS: int = Field(3600, description="Expiry applied to the presence hash")

    CLIENT_PING_INTERVAL_SECONDS: float = Field(30.0, description="Keep-alive ping cadence")
    CLIENT_RECONNECT_BASE_DELAY_SECONDS: float = 1.0
    CLIENT_RECONNECT_MAX_DELAY_SECONDS: float = 30.0
    CLIENT_RECONNECT_MAX_JITTER_SECONDS: float = 1.0
    CLIENT_MAX_RECONNECT_ATTEMPTS: int = Field(10, description="Automatic reconnect attempts")
    CLIENT_LIVENESS_TIMEOUT_SECONDS: Optional[float] = Field(
        None,
        description="Force a reconnect when no frame arrives within this window (disabled if unset)",
    )
    CLIENT_STATE_DIR: Path = Field(
        Path.home() / ".order-notifications",
        description="Directory where the client inbox persists received notifications",
    )

    HTTP_CLIENT_TIMEOUT_SECONDS: float = Field(10.0, description="Timeout for publish HTTP calls")
    HTTP_CLIENT_MAX_RETRIES: int = Field(3, description="Retry attempts for failed publish calls")

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parent.parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


settings = get_settings()
