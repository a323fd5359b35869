"""Stock diffing and alert deduplication.

Dedup is keyed to the in-stock streak, not to time: a variant alerts once
when it comes back, and is re-armed the first time it is seen out of stock.
"""

from __future__ import annotations

import logging

from stockwatch.api import CatalogClient
from stockwatch.models import StockEntry, TransitionEvent, utcnow
from stockwatch.registry import WatchedProduct

logger = logging.getLogger(__name__)


def apply_snapshot(
    product: WatchedProduct, snapshot: dict[str, StockEntry]
) -> list[TransitionEvent]:
    """Diff a fresh snapshot against the product's previous one.

    Mutates ``notified_variants`` and replaces ``previous_stock``. Returns one
    event per watched variant that went out -> in and was not yet alerted.
    """
    events: list[TransitionEvent] = []

    for sku, entry in snapshot.items():
        prev = product.previous_stock.get(sku)
        was_out = prev is None or not prev.in_stock
        now_in = entry.in_stock

        if (
            sku in product.watched_variants
            and was_out
            and now_in
            and sku not in product.notified_variants
        ):
            events.append(
                TransitionEvent(
                    product_key=product.key,
                    variant_sku=sku,
                    previous_in_stock=not was_out,
                    current_in_stock=now_in,
                    quantity=entry.quantity,
                )
            )
            product.notified_variants.add(sku)
            logger.info(
                "NEW STOCK: %s size %s (%s) - %d units",
                product.label,
                product.size_of(sku),
                sku,
                entry.quantity,
            )

        if not now_in:
            # Re-arm for the next restock
            product.notified_variants.discard(sku)

    product.previous_stock = dict(snapshot)
    return events


class StockDiffEngine:
    """Fetches a fresh snapshot for one product and diffs it."""

    def __init__(self, client: CatalogClient) -> None:
        self.client = client

    async def fetch(self, product: WatchedProduct) -> dict[str, StockEntry]:
        return await self.client.check_stock(
            product.product_info.config_sku,
            product.variant_skus,
            product.campaign_id,
        )

    def record(
        self, product: WatchedProduct, snapshot: dict[str, StockEntry]
    ) -> list[TransitionEvent]:
        events = apply_snapshot(product, snapshot)
        product.check_count += 1
        product.last_checked_at = utcnow()
        product.last_error = None
        return events

    async def check(self, product: WatchedProduct) -> list[TransitionEvent]:
        return self.record(product, await self.fetch(product))
