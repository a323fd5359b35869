"""Access-token lifecycle: periodic refresh-token exchange.

A failed refresh never clears the current token and never stops the job;
the next interval simply tries again.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum

from stockwatch.api import CatalogClient
from stockwatch.errors import CatalogError, ConfigError
from stockwatch.models import utcnow
from stockwatch.notifications import NotificationDispatcher
from stockwatch.scheduler import RepeatingJob
from stockwatch.session import SessionStore

logger = logging.getLogger(__name__)


class TokenState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    REFRESHED = "refreshed"
    FAILED = "failed"


class TokenLifecycleManager:
    def __init__(
        self,
        client: CatalogClient,
        store: SessionStore,
        dispatcher: NotificationDispatcher,
        interval_seconds: float = 50 * 60,
        scheduler=None,
    ) -> None:
        self.client = client
        self.store = store
        self.dispatcher = dispatcher
        self.job = RepeatingJob("token-refresh", self.refresh, interval_seconds, scheduler)
        self.state = TokenState.IDLE
        self.last_outcome: TokenState | None = None
        self.last_refresh_at: datetime | None = None
        self.last_error: str | None = None
        self.expires_at: datetime | None = None

    @property
    def active(self) -> bool:
        return self.job.active

    def start(self) -> bool:
        """Start refreshing (first exchange runs immediately).

        Without a refresh token this is a silent no-op.
        """
        if not self.store.current.refresh_token:
            logger.info("No refresh token configured - automatic refresh disabled")
            return False
        return self.job.start(run_now=True)

    def stop(self) -> bool:
        return self.job.stop()

    async def refresh(self) -> bool:
        """Exchange the refresh token once. Returns True on success."""
        refresh_token = self.store.current.refresh_token
        if not refresh_token:
            logger.warning("No refresh token configured, skipping refresh")
            return False

        logger.info("Refreshing access token...")
        self.state = TokenState.REFRESHING
        try:
            resp = await self.client.exchange_refresh_token(refresh_token)
        except CatalogError as e:
            self.last_outcome = TokenState.FAILED
            self.last_error = str(e)
            logger.error("Token refresh failed: %s", e)
            await self.dispatcher.token_refresh_failed(str(e))
            return False
        finally:
            self.state = TokenState.IDLE

        self.store.update_credentials(
            access_token=resp.access_token, refresh_token=resp.refresh_token
        )
        self.last_outcome = TokenState.REFRESHED
        self.last_error = None
        self.last_refresh_at = utcnow()
        self.expires_at = self.last_refresh_at + timedelta(seconds=resp.expires_in)
        self.dispatcher.reset_expired_alert()
        logger.info("Token refreshed, expires in %ds", resp.expires_in)
        await self.dispatcher.token_refreshed(resp.expires_in)
        return True

    async def refresh_now(self) -> bool:
        """Manual trigger; shares the job's non-overlap guard."""
        if not self.store.current.refresh_token:
            raise ConfigError("No refresh token configured")
        if not await self.job.fire():
            return False
        return self.last_outcome is TokenState.REFRESHED
