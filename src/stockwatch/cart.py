"""Cart reservation-window extension.

Runs only while the cart holds something: each tick reads the cart, stops
the job when it is empty, otherwise prolongs the reservation.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum

from stockwatch.api import CatalogClient
from stockwatch.errors import Unauthorized
from stockwatch.models import CartState, utcnow
from stockwatch.notifications import NotificationDispatcher
from stockwatch.scheduler import RepeatingJob

logger = logging.getLogger(__name__)


class CartPhase(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class CartLifecycleManager:
    def __init__(
        self,
        client: CatalogClient,
        dispatcher: NotificationDispatcher,
        interval_seconds: float = 300.0,
        scheduler=None,
    ) -> None:
        self.client = client
        self.dispatcher = dispatcher
        self.job = RepeatingJob("cart-extend", self.tick, interval_seconds, scheduler)
        self.last_cart: CartState | None = None
        self.last_extended_at: datetime | None = None
        # Set when a reservation lands while a tick is reading the cart
        self._reserved_during_tick = False

    @property
    def phase(self) -> CartPhase:
        return CartPhase.RUNNING if self.job.active else CartPhase.STOPPED

    def ensure_running(self) -> bool:
        """Enter RUNNING. No-op (returns False) if already running."""
        if self.job.in_flight:
            self._reserved_during_tick = True
        return self.job.start()

    def stop(self) -> bool:
        return self.job.stop()

    async def tick(self) -> None:
        self._reserved_during_tick = False
        try:
            cart = await self.client.get_cart()
            self.last_cart = cart
            if cart.is_empty:
                if self._reserved_during_tick:
                    logger.info("Cart read raced a reservation, keeping auto-extension")
                    return
                logger.info("Cart is empty, stopping auto-extension")
                if self.job.stop():
                    await self.dispatcher.cart_emptied()
                return

            cart = await self.client.extend_cart()
        except Unauthorized as e:
            logger.warning("Cart extension rejected: %s", e)
            await self.dispatcher.credentials_expired(str(e))
            return

        self.last_cart = cart
        self.last_extended_at = utcnow()
        logger.info(
            "Cart extended: %d items, %ss remaining (prolong #%d)",
            len(cart.items),
            cart.remaining_seconds,
            cart.prolong_counter,
        )

    async def check_now(self) -> CartState | None:
        """Run one tick immediately (through the same non-overlap guard)."""
        await self.job.fire()
        return self.last_cart
