"""In-memory watch registry.

WatchedProduct is ephemeral job state (lost on restart, like everything else
in stockwatch). The registry is the only place products are added or removed;
per-product mutation during a poll tick stays inside that product's record.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime

from stockwatch.errors import ConfigError, WatchNotFoundError
from stockwatch.models import (
    ProductInfo,
    SizeInfo,
    StockEntry,
    WatchHistoryEntry,
    utcnow,
)

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100


def product_key(campaign_id: str, article_id: str) -> str:
    return f"{campaign_id}-{article_id}"


@dataclass
class WatchedProduct:
    campaign_id: str
    article_id: str
    product_info: ProductInfo
    size_mapping: dict[str, SizeInfo]
    variant_skus: list[str]
    watched_variants: set[str] = field(default_factory=set)
    previous_stock: dict[str, StockEntry] = field(default_factory=dict)
    notified_variants: set[str] = field(default_factory=set)
    added_at: datetime = field(default_factory=utcnow)
    last_checked_at: datetime | None = None
    last_error: str | None = None
    check_count: int = 0
    error_count: int = 0
    alerts_sent: int = 0

    @property
    def key(self) -> str:
        return product_key(self.campaign_id, self.article_id)

    @property
    def label(self) -> str:
        return f"{self.product_info.brand} - {self.product_info.title}"

    def size_of(self, sku: str) -> str:
        info = self.size_mapping.get(sku)
        return info.size if info else sku

    def set_watched_variants(self, skus: Iterable[str]) -> None:
        """Replace the watch set; dedup entries outside it are dropped."""
        skus = set(skus)
        unknown = skus - self.size_mapping.keys()
        if unknown:
            raise ConfigError(f"Unknown variant SKUs for {self.key}: {sorted(unknown)}")
        self.watched_variants = skus
        self.notified_variants &= skus

    def reset_notifications(self) -> None:
        self.notified_variants.clear()

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "campaign_id": self.campaign_id,
            "article_id": self.article_id,
            "product_info": self.product_info.model_dump(),
            "size_mapping": {k: v.model_dump() for k, v in self.size_mapping.items()},
            "watched_variants": sorted(self.watched_variants),
            "current_stock": {k: v.model_dump() for k, v in self.previous_stock.items()},
            "notified_variants": sorted(self.notified_variants),
            "added_at": self.added_at.isoformat(),
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "last_error": self.last_error,
            "check_count": self.check_count,
            "error_count": self.error_count,
            "alerts_sent": self.alerts_sent,
        }


class WatchRegistry:
    """Mapping of product key -> WatchedProduct, plus a bounded history."""

    def __init__(self, history_limit: int = HISTORY_LIMIT) -> None:
        self._products: dict[str, WatchedProduct] = {}
        self._history: deque[WatchHistoryEntry] = deque(maxlen=history_limit)

    def __len__(self) -> int:
        return len(self._products)

    def __contains__(self, key: str) -> bool:
        return key in self._products

    def __iter__(self) -> Iterator[WatchedProduct]:
        # Snapshot so callers may add/remove while iterating
        return iter(list(self._products.values()))

    def get(self, key: str) -> WatchedProduct | None:
        return self._products.get(key)

    def require(self, key: str) -> WatchedProduct:
        product = self._products.get(key)
        if product is None:
            raise WatchNotFoundError(f"Product not found: {key}")
        return product

    def is_current(self, product: WatchedProduct) -> bool:
        """False once the record was removed or replaced."""
        return self._products.get(product.key) is product

    def add(self, product: WatchedProduct) -> WatchedProduct:
        replaced = self._products.get(product.key)
        if replaced is not None:
            self._record_removal(replaced)
        self._products[product.key] = product
        self._history.append(
            WatchHistoryEntry(
                key=product.key,
                campaign_id=product.campaign_id,
                article_id=product.article_id,
                title=product.product_info.title,
                brand=product.product_info.brand,
                added_at=product.added_at,
            )
        )
        logger.info("Watching %s (%s)", product.label, product.key)
        return product

    def remove(self, key: str) -> WatchedProduct:
        product = self.require(key)
        del self._products[key]
        self._record_removal(product)
        logger.info("Stopped watching %s (%s)", product.label, key)
        return product

    def _record_removal(self, product: WatchedProduct) -> None:
        for entry in reversed(self._history):
            if entry.key == product.key and entry.removed_at is None:
                entry.removed_at = utcnow()
                entry.alerts_sent = product.alerts_sent
                break

    def history(self) -> list[WatchHistoryEntry]:
        """Most recent first. Active watches have removed_at=None."""
        for entry in self._history:
            product = self._products.get(entry.key)
            if entry.removed_at is None and product is not None:
                entry.alerts_sent = product.alerts_sent
        return list(reversed(self._history))
