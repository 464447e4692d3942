"""Notification gateway clients."""

import logging
from typing import Optional, Protocol

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from turnover.config import settings
from turnover.db.base import get_session
from turnover.db.repositories import NotificationRepository
from turnover.engine.errors import NotificationDeliveryError
from turnover.integrations.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
)
from turnover.models import NotificationPayload

logger = logging.getLogger(__name__)


class NotificationGateway(Protocol):
    """Fans a notification out across its channels.

    Implementations must be idempotent per notification_id and raise
    NotificationDeliveryError on failure. The caller passes the session whose
    transaction produced the notification; gateways that persist write in it
    so the notification shares that transaction's fate.
    """

    async def send(
        self, payload: NotificationPayload, session: Optional[AsyncSession] = None
    ) -> None: ...


class HttpNotificationGateway:
    """
    Delivers notifications to an external gateway over HTTP.

    The notification id is sent as the Idempotency-Key header so that a
    retried delivery is collapsed by the gateway.
    """

    def __init__(self, base_url: str, token: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._circuit_breaker: Optional[CircuitBreaker] = None
        if settings.notification_circuit_breaker_enabled:
            self._circuit_breaker = CircuitBreaker(
                "notification_gateway",
                CircuitBreakerConfig(
                    failure_threshold=settings.notification_circuit_breaker_failure_threshold,
                    timeout_seconds=settings.notification_circuit_breaker_timeout_seconds,
                    half_open_max_calls=settings.notification_circuit_breaker_half_open_max_calls,
                    success_threshold=settings.notification_circuit_breaker_success_threshold,
                ),
            )

    async def send(
        self, payload: NotificationPayload, session: Optional[AsyncSession] = None
    ) -> None:
        try:
            if self._circuit_breaker:
                await self._circuit_breaker.call(self._post, payload)
            else:
                await self._post(payload)
        except CircuitBreakerOpen as e:
            raise NotificationDeliveryError(str(payload.notification_id), str(e)) from e
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(str(payload.notification_id), repr(e)) from e

    async def _post(self, payload: NotificationPayload) -> None:
        headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": str(payload.notification_id),
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        body = {
            "notificationId": str(payload.notification_id),
            "recipientId": payload.recipient_id,
            "title": payload.title,
            "message": payload.message,
            "channels": [c.value for c in payload.channels],
            "priority": payload.priority.value,
            "relatedTaskId": str(payload.related_task_id) if payload.related_task_id else None,
            "relatedBookingId": payload.related_booking_id,
        }
        timeout = settings.notification_timeout_ms / 1000
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(f"{self.base_url}/notifications", json=body, headers=headers)
            response.raise_for_status()

    def get_circuit_stats(self) -> Optional[dict]:
        if not self._circuit_breaker:
            return None
        return self._circuit_breaker.stats.as_dict()


class InboxNotificationGateway:
    """
    Stores notifications in the in-app inbox table, once per id.

    Given the caller's session, the row is written in a savepoint of it and
    becomes visible only when the caller commits. Without one, the row is
    committed in a session of its own.
    """

    async def send(
        self, payload: NotificationPayload, session: Optional[AsyncSession] = None
    ) -> None:
        try:
            if session is not None:
                async with session.begin_nested():  # SAVEPOINT
                    created = await NotificationRepository(session).create_if_absent(payload)
            else:
                async with get_session() as own_session:
                    created = await NotificationRepository(own_session).create_if_absent(payload)
        except Exception as e:
            raise NotificationDeliveryError(str(payload.notification_id), repr(e)) from e
        if not created:
            logger.debug("Notification %s already delivered", payload.notification_id)


# Singleton instance
_notification_gateway: Optional[NotificationGateway] = None


def get_notification_gateway() -> NotificationGateway:
    """Get or create the configured notification gateway."""
    global _notification_gateway
    if _notification_gateway is None:
        if settings.notification_gateway_url:
            _notification_gateway = HttpNotificationGateway(
                settings.notification_gateway_url,
                settings.notification_gateway_token,
            )
        else:
            _notification_gateway = InboxNotificationGateway()
    return _notification_gateway
