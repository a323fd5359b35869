"""Opportunistic cart reservation on a stock transition.

One attempt, no retry. The security session is whatever the store holds at
the moment of the call; a sensor blob is never assumed to survive more than
one use.
"""

from __future__ import annotations

import logging

from stockwatch.api import CatalogClient
from stockwatch.cart import CartLifecycleManager
from stockwatch.errors import CatalogError
from stockwatch.models import ReservationResult, TransitionEvent
from stockwatch.registry import WatchedProduct

logger = logging.getLogger(__name__)


class ReservationAttempter:
    def __init__(self, client: CatalogClient, cart: CartLifecycleManager) -> None:
        self.client = client
        self.cart = cart

    async def attempt(
        self, product: WatchedProduct, event: TransitionEvent
    ) -> ReservationResult:
        try:
            result = await self.client.insert_cart_item(
                product.product_info.config_sku,
                event.variant_sku,
                product.campaign_id,
                attach_security_session=True,
            )
        except CatalogError as e:
            logger.warning(
                "Reservation of %s (%s) failed: %s", product.label, event.variant_sku, e
            )
            return ReservationResult(success=False, error=str(e))

        if result.success:
            logger.info(
                "Reserved %s size %s, %ss left in cart",
                product.label,
                product.size_of(event.variant_sku),
                result.remaining_seconds,
            )
            self.cart.ensure_running()
        else:
            logger.warning("Reservation of %s returned an empty cart", event.variant_sku)
        return result
