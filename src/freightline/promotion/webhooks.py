"""Webhook delivery of promotion domain events.

:class:`WebhookNotifier` POSTs JSON payloads to every configured endpoint
subscribed to an event type, retrying server errors and transport failures
with exponential backoff. :class:`WebhookEventRecorder` plugs it into the
fan-out as an EventRecorder; delivery is fire-and-forget and never fails a
promotion.

Example:
    >>> from freightline.config import WebhookConfig
    >>> notifier = WebhookNotifier([WebhookConfig(url="https://hooks.example.com/x")])
    >>> notifier.should_notify("promotion_created")
    True
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from freightline.promotion.events import PROMOTION_CREATED, PromotionCreatedEvent
from freightline.telemetry.sanitization import sanitize_error_message
from freightline.telemetry.tracing import create_span

if TYPE_CHECKING:
    from freightline.config import WebhookConfig

BACKOFF_BASE_SECONDS = 1.0
"""Base delay for exponential backoff (doubles each retry)."""

logger = structlog.get_logger(__name__)


class WebhookNotificationResult(BaseModel):
    """Result of delivering one event to one endpoint.

    Attributes:
        success: Whether the endpoint accepted the event.
        status_code: Last HTTP status received, if any.
        url: Target endpoint.
        error: Last error if delivery failed.
        attempts: Number of attempts made.
    """

    model_config = ConfigDict(extra="forbid")

    success: bool = Field(..., description="Whether notification delivered successfully")
    status_code: int | None = Field(default=None)
    url: str = Field(..., description="Target webhook URL")
    error: str | None = Field(default=None)
    attempts: int = Field(default=1, ge=1)


class WebhookNotifier:
    """Delivers event payloads to configured webhook endpoints.

    Attributes:
        configs: Endpoint configurations, each with its own event filter,
            headers, timeout and retry count.
    """

    def __init__(
        self,
        configs: list[WebhookConfig],
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.configs = configs
        self._transport = transport

    def should_notify(self, event_type: str) -> bool:
        return any(event_type in c.events for c in self.configs)

    def build_payload(self, event_type: str, event_data: dict[str, Any]) -> dict[str, Any]:
        return {"event_type": event_type, **event_data}

    async def notify(
        self,
        config: WebhookConfig,
        event_type: str,
        event_data: dict[str, Any],
    ) -> WebhookNotificationResult:
        """Deliver one event to one endpoint with retries.

        Client errors (4xx) are not retried; server errors, timeouts and
        transport errors are, with backoff of 1s, 2s, 4s ...
        """
        url = config.url
        max_attempts = 1 + config.retry_count
        payload = self.build_payload(event_type, event_data)
        last_status_code: int | None = None
        last_error: str | None = None

        with create_span(
            "freightline.webhook.notify",
            attributes={
                "freightline.webhook.url": url,
                "freightline.webhook.event_type": event_type,
                "freightline.webhook.max_retries": config.retry_count,
            },
        ) as span:
            start_time = time.monotonic()
            async with httpx.AsyncClient(
                timeout=config.timeout_seconds,
                transport=self._transport,
            ) as client:
                for attempt in range(1, max_attempts + 1):
                    try:
                        response = await client.post(
                            url=url,
                            json=payload,
                            headers=config.headers or {},
                        )
                    except httpx.TimeoutException:
                        last_error = "Request timed out"
                    except httpx.RequestError as e:
                        last_error = sanitize_error_message(str(e))
                    else:
                        last_status_code = response.status_code
                        if response.status_code < 400:
                            duration_ms = int((time.monotonic() - start_time) * 1000)
                            span.set_attribute("freightline.webhook.attempts", attempt)
                            span.set_attribute(
                                "freightline.webhook.status_code", response.status_code
                            )
                            logger.info(
                                "webhook_notification_sent",
                                url=url,
                                event_type=event_type,
                                status_code=response.status_code,
                                attempts=attempt,
                                duration_ms=duration_ms,
                            )
                            return WebhookNotificationResult(
                                success=True,
                                status_code=response.status_code,
                                url=url,
                                attempts=attempt,
                            )
                        if response.status_code < 500:
                            last_error = f"Client error: {response.status_code}"
                            max_attempts = attempt
                            break
                        last_error = f"Server error: {response.status_code}"

                    if attempt < max_attempts:
                        backoff_delay = BACKOFF_BASE_SECONDS * (2 ** (attempt - 1))
                        logger.warning(
                            "webhook_notification_retry",
                            url=url,
                            event_type=event_type,
                            error=last_error,
                            attempt=attempt,
                            max_attempts=max_attempts,
                            backoff_seconds=backoff_delay,
                        )
                        await asyncio.sleep(backoff_delay)

            span.set_attribute("freightline.webhook.attempts", max_attempts)
            span.set_attribute("freightline.webhook.success", False)
            logger.error(
                "webhook_notification_failed",
                url=url,
                event_type=event_type,
                status_code=last_status_code,
                error=last_error,
                attempts=max_attempts,
            )
            return WebhookNotificationResult(
                success=False,
                status_code=last_status_code,
                url=url,
                error=last_error,
                attempts=max_attempts,
            )

    async def notify_all(
        self,
        event_type: str,
        event_data: dict[str, Any],
    ) -> list[WebhookNotificationResult]:
        """Deliver to every endpoint subscribed to ``event_type``.

        One endpoint failing does not stop delivery to the others.
        """
        results: list[WebhookNotificationResult] = []
        for config in self.configs:
            if event_type not in config.events:
                logger.debug(
                    "webhook_skipped",
                    url=config.url,
                    event_type=event_type,
                    reason="event_type_not_subscribed",
                )
                continue
            results.append(await self.notify(config, event_type, event_data))
        return results


class WebhookEventRecorder:
    """EventRecorder that forwards PromotionCreated events to webhooks."""

    def __init__(self, notifier: WebhookNotifier) -> None:
        self.notifier = notifier

    def record_promotion_created(self, event: PromotionCreatedEvent) -> None:
        if not self.notifier.should_notify(PROMOTION_CREATED):
            return
        try:
            results = asyncio.run(self.notifier.notify_all(PROMOTION_CREATED, event.payload()))
        except Exception as e:
            # Webhook failures never fail the promotion.
            logger.error(
                "webhook_notification_error",
                promotion=event.promotion,
                error=sanitize_error_message(str(e)),
            )
            return
        for result in results:
            if not result.success:
                logger.warning(
                    "webhook_notification_failed",
                    promotion=event.promotion,
                    url=result.url,
                    error=result.error,
                    attempts=result.attempts,
                )


__all__ = [
    "BACKOFF_BASE_SECONDS",
    "WebhookEventRecorder",
    "WebhookNotificationResult",
    "WebhookNotifier",
]
