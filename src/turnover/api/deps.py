"""API dependencies."""

import logging
import secrets
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from turnover.config import Environment, settings
from turnover.db.base import get_session
from turnover.engine.core import TurnoverEngine
from turnover.integrations.notifications import NotificationGateway, get_notification_gateway
from turnover.monitor.timeline_monitor import TimelineMonitor

logger = logging.getLogger("turnover.api")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session; commits when the request succeeds."""
    async with get_session() as session:
        yield session


def get_notifier() -> NotificationGateway:
    return get_notification_gateway()


async def get_engine(
    session: AsyncSession = Depends(get_db_session),
    notifier: NotificationGateway = Depends(get_notifier),
) -> TurnoverEngine:
    return TurnoverEngine(session, notifier=notifier)


def get_monitor(request: Request) -> Optional[TimelineMonitor]:
    return getattr(request.app.state, "monitor", None)


def _insecure_dev() -> bool:
    return settings.allow_insecure_dev and settings.env == Environment.DEVELOPMENT


async def verify_api_key(
    authorization: str | None = Header(None),
    x_api_key: str | None = Header(None, alias="X-API-Key"),
) -> None:
    """
    Verify the shared API key.

    Accepts Authorization: Bearer <key> or X-API-Key. Fails closed when no
    key is configured outside insecure dev mode.
    """
    if _insecure_dev():
        return

    api_key = None
    if authorization and authorization.startswith("Bearer "):
        api_key = authorization[7:]
    elif x_api_key:
        api_key = x_api_key

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Use Authorization: Bearer <key> or X-API-Key header",
        )

    if not settings.api_key:
        logger.error("No API key configured; rejecting request")
        raise HTTPException(
            status_code=503,
            detail="Server misconfigured: authentication not properly initialized",
        )

    if not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")


async def verify_admin_key(
    x_admin_key: str | None = Header(None, alias="X-Admin-Key"),
) -> None:
    """Privileged operations need the admin key in X-Admin-Key."""
    if _insecure_dev() and not settings.admin_api_key:
        return
    if not settings.admin_api_key:
        raise HTTPException(status_code=403, detail="Admin operations are disabled")
    if not x_admin_key or not secrets.compare_digest(x_admin_key, settings.admin_api_key):
        raise HTTPException(status_code=403, detail="Admin key required")


def validate_auth_config() -> None:
    """
    Validate authentication configuration at startup.

    Raises:
        RuntimeError: If insecure dev mode is enabled outside development
    """
    if settings.allow_insecure_dev and settings.env != Environment.DEVELOPMENT:
        raise RuntimeError(
            f"SECURITY ERROR: allow_insecure_dev=true is only permitted in development. "
            f"Current environment: {settings.env.value}. "
            f"Set TURNOVER_ALLOW_INSECURE_DEV=false for {settings.env.value}."
        )

    if settings.allow_insecure_dev:
        logger.warning(
            "WARNING: Running in INSECURE DEV MODE - API key checks are disabled. "
            "Set TURNOVER_ALLOW_INSECURE_DEV=false for any deployment."
        )
    else:
        logger.info("Authentication enabled for %s", settings.env.value)

    if not settings.admin_api_key and not settings.allow_insecure_dev:
        logger.info("No TURNOVER_ADMIN_API_KEY configured; manual sweep triggers are disabled")
