"""Monitoring engine: wires the stores, the catalog client and the three jobs.

    stock-poll     every poll_interval: registry -> diff -> (reserve) -> alert
    token-refresh  every ~50 min while a refresh token is configured
    cart-extend    while the cart holds a reservation

All three run on one asyncio loop. Shared state (session, registry, dedup
sets) is only touched from that loop and every job has its own non-overlap
guard, so nothing here takes a lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from stockwatch.api import CatalogClient
from stockwatch.cart import CartLifecycleManager
from stockwatch.errors import CatalogError, ConfigError, Unauthorized
from stockwatch.models import (
    MonitorSettings,
    ProductDetails,
    ReservationResult,
    StockEntry,
    TransitionEvent,
    utcnow,
)
from stockwatch.notifications import NotificationDispatcher
from stockwatch.registry import WatchedProduct, WatchRegistry
from stockwatch.reservation import ReservationAttempter
from stockwatch.scheduler import RepeatingJob
from stockwatch.session import SessionStore
from stockwatch.stock import StockDiffEngine
from stockwatch.tokens import TokenLifecycleManager

logger = logging.getLogger(__name__)


@dataclass
class Alert:
    event: TransitionEvent
    reservation: ReservationResult | None = None


@dataclass
class AddWatchResult:
    product: WatchedProduct
    alerts: list[Alert] = field(default_factory=list)


class StockMonitor:
    """
    Owns every piece of mutable state in the service.

        async with StockMonitor(settings, scheduler=scheduler) as monitor:
            await monitor.add_watch("ZZO459V", "ZZO31NV42-M00", ["ZZO31NV42-M000003000"])
    """

    def __init__(
        self,
        settings: MonitorSettings | None = None,
        scheduler=None,
        client: CatalogClient | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.settings = settings = settings or MonitorSettings()
        self.started_at = utcnow()
        self.auto_reserve = settings.auto_reserve

        self.store = SessionStore(
            access_token=settings.access_token.get_secret_value() if settings.access_token else None,
            refresh_token=settings.refresh_token.get_secret_value() if settings.refresh_token else None,
        )
        self.registry = WatchRegistry()
        self.client = client or CatalogClient(
            self.store,
            identity=settings.identity,
            base_url=settings.api_base_url,
            token_url=settings.token_url,
            token_client_id=settings.token_client_id,
            timeout=settings.request_timeout_seconds,
        )
        self.dispatcher = dispatcher or NotificationDispatcher(
            settings.webhook_url, settings.shop_base_url
        )

        self.engine = StockDiffEngine(self.client)
        self.cart = CartLifecycleManager(
            self.client, self.dispatcher, settings.cart_extend_interval_seconds, scheduler
        )
        self.reserver = ReservationAttempter(self.client, self.cart)
        self.tokens = TokenLifecycleManager(
            self.client,
            self.store,
            self.dispatcher,
            settings.token_refresh_interval_seconds,
            scheduler,
        )
        self.poll_job = RepeatingJob(
            "stock-poll", self.poll_once, settings.poll_interval_seconds, scheduler
        )

    async def __aenter__(self) -> StockMonitor:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    async def start(self) -> None:
        await self.client.open()
        await self.dispatcher.open()
        self.tokens.start()
        if len(self.registry):
            self.poll_job.start()

    async def stop(self) -> None:
        self.poll_job.stop()
        self.tokens.stop()
        self.cart.stop()
        await self.client.aclose()
        await self.dispatcher.aclose()

    # ------------------------------------------------------------------
    # Watches
    # ------------------------------------------------------------------

    async def _auth_guard(self, coro):
        """Await a catalog call from a config request; 401/403 also alerts."""
        try:
            return await coro
        except Unauthorized as e:
            await self.dispatcher.credentials_expired(str(e))
            raise

    async def preview(
        self, campaign_id: str, article_id: str
    ) -> tuple[ProductDetails, dict[str, StockEntry]]:
        """Product details plus live stock, without registering a watch."""
        details = await self._auth_guard(
            self.client.fetch_product_details(campaign_id, article_id)
        )
        stock = await self._auth_guard(
            self.client.check_stock(
                details.product_info.config_sku, details.variant_skus, campaign_id
            )
        )
        return details, stock

    async def add_watch(
        self, campaign_id: str, article_id: str, watched_variants: list[str]
    ) -> AddWatchResult:
        """Register a watch and alert right away for variants already in stock."""
        if not watched_variants:
            raise ConfigError("At least one variant SKU must be watched")

        details, stock = await self.preview(campaign_id, article_id)
        product = WatchedProduct(
            campaign_id=campaign_id,
            article_id=article_id,
            product_info=details.product_info,
            size_mapping=details.size_mapping,
            variant_skus=details.variant_skus,
        )
        product.set_watched_variants(watched_variants)

        # Empty previous snapshot: anything watched and in stock alerts now
        events = self.engine.record(product, stock)
        self.registry.add(product)
        alerts = await self._handle_events(product, events)

        self.poll_job.start()
        return AddWatchResult(product=product, alerts=alerts)

    def remove_watch(self, key: str) -> WatchedProduct:
        product = self.registry.remove(key)
        if not len(self.registry):
            self.poll_job.stop()
        return product

    def update_watched_variants(self, key: str, skus: list[str]) -> WatchedProduct:
        product = self.registry.require(key)
        product.set_watched_variants(skus)
        logger.info("%s now watching %d variants", key, len(product.watched_variants))
        return product

    def reset_notifications(self, key: str) -> WatchedProduct:
        product = self.registry.require(key)
        product.reset_notifications()
        logger.info("%s dedup state reset", key)
        return product

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def update_credentials(
        self, access_token: str | None = None, refresh_token: str | None = None
    ) -> None:
        self.store.update_credentials(access_token, refresh_token)
        self.dispatcher.reset_expired_alert()
        if refresh_token:
            self.tokens.start()

    def update_security(
        self, cookies: dict[str, str] | None = None, sensor_data: str | None = None
    ) -> None:
        self.store.update_security(cookies, sensor_data)
        self.dispatcher.reset_expired_alert()

    def clear_security(self) -> None:
        self.store.clear_security()

    async def add_to_cart(
        self, config_sku: str, variant_sku: str, campaign_id: str
    ) -> ReservationResult:
        """Manual cart insert, e.g. to check a freshly pasted security session.

        Catalog errors propagate to the caller. A successful insert starts
        cart auto-extension like any reservation.
        """
        result = await self.client.insert_cart_item(
            config_sku, variant_sku, campaign_id, attach_security_session=True
        )
        if result.success:
            logger.info("Manual cart insert of %s succeeded", variant_sku)
            self.cart.ensure_running()
        else:
            logger.warning("Manual cart insert of %s returned an empty cart", variant_sku)
        return result

    def set_auto_reserve(self, enabled: bool) -> None:
        self.auto_reserve = enabled
        logger.info("Auto-reserve %s", "enabled" if enabled else "disabled")

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_once(self) -> None:
        """One pass over every watch, sequentially."""
        for product in self.registry:
            await self._check_product(product)

    async def _check_product(self, product: WatchedProduct) -> list[Alert]:
        try:
            snapshot = await self.engine.fetch(product)
        except Unauthorized as e:
            product.error_count += 1
            product.last_error = str(e)
            logger.warning("Unauthorized while checking %s: %s", product.key, e)
            await self.dispatcher.credentials_expired(str(e))
            return []
        except CatalogError as e:
            product.error_count += 1
            product.last_error = str(e)
            logger.error("Error monitoring %s: %s", product.key, e)
            return []

        if not self.registry.is_current(product):
            logger.debug("%s was removed mid-check, discarding snapshot", product.key)
            return []

        logger.debug("Checked %s", product.label)
        events = self.engine.record(product, snapshot)
        return await self._handle_events(product, events)

    async def _handle_events(
        self, product: WatchedProduct, events: list[TransitionEvent]
    ) -> list[Alert]:
        alerts: list[Alert] = []
        for event in events:
            reservation = None
            if self.auto_reserve:
                reservation = await self.reserver.attempt(product, event)
            await self.dispatcher.stock_alert(product, event, reservation)
            alerts.append(Alert(event=event, reservation=reservation))
        return alerts

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def health(self) -> dict:
        now = utcnow()
        uptime = (now - self.started_at).total_seconds()
        hours, rem = divmod(int(uptime), 3600)
        minutes, seconds = divmod(rem, 60)
        session = self.store.current
        cart = self.cart.last_cart

        return {
            "status": "alive",
            "uptime": f"{hours}h {minutes}m {seconds}s",
            "uptime_seconds": uptime,
            "monitored_products": len(self.registry),
            "is_monitoring": self.poll_job.active,
            "last_poll_at": _iso(self.poll_job.last_run_at),
            "auto_reserve": self.auto_reserve,
            "token_refresh_active": self.tokens.active,
            "token_state": self.tokens.state.value,
            "last_token_refresh": _iso(self.tokens.last_refresh_at),
            "last_token_outcome": self.tokens.last_outcome.value if self.tokens.last_outcome else None,
            "token_expires_at": _iso(self.tokens.expires_at),
            "credentials_expired_alerted": self.dispatcher.expired_alert_sent,
            "cart_extension_active": self.cart.job.active,
            "cart_remaining_seconds": cart.remaining_seconds if cart else None,
            "session": {
                "has_access_token": bool(session.access_token),
                "has_refresh_token": bool(session.refresh_token),
                "has_cookies": bool(session.cookies),
                "cookie_names": sorted(session.cookies),
                "has_sensor_data": bool(session.sensor_data),
                "last_updated_at": _iso(session.last_updated_at),
            },
            "timestamp": now.isoformat(),
        }


def _iso(dt) -> str | None:
    return dt.isoformat() if dt else None
