"""HTTP client used by order services to publish notifications."""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import settings
from app.schemas.notification import ConnectionStats, DispatchSummary, NotificationEvent
from app.schemas.realtime import DeliveryFilter, WireModel
from app.utils.exceptions import PublishError


class _ServerError(Exception):
    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"server returned {response.status_code}")


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying notification publish",
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


class NotificationServiceClient:
    """Talk to the notification REST API with retries on transient failures."""

    def __init__(
        self,
        base_url: str,
        *,
        service_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_wait_max: float = 8.0,
        retry_wait_multiplier: float = 1.0,
        api_prefix: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"X-Service-Key": service_key} if service_key else {}
        self.api_prefix = api_prefix if api_prefix is not None else settings.API_V1_STR
        self.max_retries = max_retries if max_retries is not None else settings.HTTP_CLIENT_MAX_RETRIES
        self.retry_wait_max = retry_wait_max
        self.retry_wait_multiplier = retry_wait_multiplier
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout if timeout is not None else settings.HTTP_CLIENT_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "NotificationServiceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        event: NotificationEvent,
        delivery_filter: DeliveryFilter,
        *,
        allow_broadcast: bool = False,
    ) -> DispatchSummary:
        payload = {
            "event": event.model_dump(mode="json", exclude_none=True),
            "filter": delivery_filter.model_dump(mode="json", by_alias=True, exclude_none=True),
            "allowBroadcast": allow_broadcast,
        }
        data = await self._request("POST", "/notifications/send", json=payload)
        return DispatchSummary.model_validate(data)

    async def publish_order_event(self, order_id: int, event: WireModel) -> DispatchSummary:
        """Publish one of the ``app.schemas.order_event`` models for ``order_id``."""

        payload = event.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = await self._request("POST", f"/orders/{order_id}/events", json=payload)
        return DispatchSummary.model_validate(data)

    async def connection_stats(self) -> ConnectionStats:
        data = await self._request("GET", "/notifications/connections")
        return ConnectionStats.model_validate(data)

    async def _request(
        self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        url = f"{self.api_prefix}{path}"
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=self.retry_wait_multiplier, max=self.retry_wait_max),
                retry=retry_if_exception_type((httpx.TransportError, _ServerError)),
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    response = await self._client.request(method, url, json=json)
                    if response.status_code >= 500:
                        raise _ServerError(response)
        except httpx.TransportError as exc:
            raise PublishError(f"Notification service unreachable: {exc}") from exc
        except _ServerError as exc:
            raise PublishError(
                f"Notification service error {exc.response.status_code}",
                details={"body": exc.response.text},
                status_code=exc.response.status_code,
            ) from exc

        if response.status_code >= 400:
            logger.error(
                "Notification service rejected request",
                status=response.status_code,
                body=response.text,
            )
            raise PublishError(
                f"Notification service rejected request with {response.status_code}",
                details={"body": response.text},
                status_code=response.status_code,
            )
        return response.json()
