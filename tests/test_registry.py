"""Tests for the watch registry."""

import pytest

from conftest import SKU_L, SKU_M, SKU_S, make_product
from stockwatch.errors import ConfigError, WatchNotFoundError
from stockwatch.registry import WatchRegistry, product_key


class TestWatchedProduct:
    def test_key_and_label(self):
        product = make_product()
        assert product.key == product_key(product.campaign_id, product.article_id)
        assert product.label == "Acme - Hooded Jacket"

    def test_size_of_unknown_sku_falls_back(self):
        product = make_product()
        assert product.size_of(SKU_M) == "M"
        assert product.size_of("nope") == "nope"

    def test_unknown_watched_sku_rejected(self):
        product = make_product()
        with pytest.raises(ConfigError, match="Unknown variant"):
            product.set_watched_variants([SKU_S, "bogus"])
        assert product.watched_variants == {SKU_S, SKU_M}

    def test_narrowing_watch_set_drops_dedup_entries(self):
        product = make_product(watched=[SKU_S, SKU_M, SKU_L])
        product.notified_variants = {SKU_S, SKU_L}

        product.set_watched_variants([SKU_L])

        assert product.notified_variants == {SKU_L}

    def test_to_dict_is_json_friendly(self):
        data = make_product().to_dict()
        assert data["watched_variants"] == sorted([SKU_S, SKU_M])
        assert data["last_checked_at"] is None
        assert isinstance(data["added_at"], str)


class TestWatchRegistry:
    def setup_method(self):
        self.registry = WatchRegistry()

    def test_add_and_get(self):
        product = self.registry.add(make_product())
        assert len(self.registry) == 1
        assert product.key in self.registry
        assert self.registry.get(product.key) is product
        assert self.registry.is_current(product)

    def test_require_missing(self):
        with pytest.raises(WatchNotFoundError):
            self.registry.require("nope")
        with pytest.raises(WatchNotFoundError):
            self.registry.remove("nope")

    def test_remove_records_history(self):
        product = self.registry.add(make_product())
        product.alerts_sent = 2

        self.registry.remove(product.key)

        assert len(self.registry) == 0
        assert not self.registry.is_current(product)
        [entry] = self.registry.history()
        assert entry.removed_at is not None
        assert entry.alerts_sent == 2

    def test_replacing_a_watch(self):
        old = self.registry.add(make_product())
        new = self.registry.add(make_product(watched=[SKU_L]))

        assert len(self.registry) == 1
        assert not self.registry.is_current(old)
        assert self.registry.is_current(new)
        history = self.registry.history()
        assert len(history) == 2
        assert history[0].removed_at is None  # most recent first
        assert history[1].removed_at is not None

    def test_history_tracks_live_alert_count(self):
        product = self.registry.add(make_product())
        product.alerts_sent = 5
        assert self.registry.history()[0].alerts_sent == 5

    def test_history_bounded(self):
        registry = WatchRegistry(history_limit=3)
        for _ in range(5):
            registry.add(make_product())
        assert len(registry.history()) == 3

    def test_iteration_is_a_snapshot(self):
        product = self.registry.add(make_product())
        for p in self.registry:
            self.registry.remove(p.key)
        assert product.key not in self.registry
