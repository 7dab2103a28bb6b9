"""
Tests for the response cache and invalidation rules
"""
from unittest.mock import MagicMock, patch

import pytest

from cache import (
    ALL_CATEGORIES_KEY,
    ALL_PRODUCTS_KEY,
    CacheInvalidator,
    ResponseCache,
    cache_key,
    category_products_key,
    product_id_key,
    product_title_key,
)


@pytest.mark.unit
class TestResponseCache:

    def test_get_set_delete(self, cache):
        cache.set("k", {"a": 1})
        assert cache.get("k") == {"a": 1}

        cache.delete("k")
        assert cache.get("k") is None
        assert cache.hits == 1
        assert cache.misses == 1

    def test_entries_expire(self, cache):
        with patch("cache.time.monotonic", return_value=1000.0):
            cache.set("k", "v", ttl=300)
        with patch("cache.time.monotonic", return_value=1299.0):
            assert cache.get("k") == "v"
        with patch("cache.time.monotonic", return_value=1300.0):
            assert cache.get("k") is None

    def test_lru_eviction(self):
        cache = ResponseCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_clear_and_stats(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.clear()

        stats = cache.stats()
        assert stats["size"] == 0
        assert stats["hits"] == 1


@pytest.mark.unit
class TestCacheKeys:

    def test_keys_are_hashed_per_namespace(self):
        key = category_products_key("Shirts:all")

        assert key.startswith("category_products:")
        assert ":all" not in key
        assert key != cache_key("category_products", "Shirts") + ":all"

    def test_case_folding(self):
        assert category_products_key("Shirts") == category_products_key("SHIRTS")
        assert product_title_key("Classic Tee") == product_title_key("classic tee")
        assert product_id_key("abc") != product_id_key("ABC")


@pytest.mark.unit
class TestCacheInvalidator:

    def _filled(self, cache):
        for key in (ALL_PRODUCTS_KEY, ALL_CATEGORIES_KEY, product_id_key("p1"),
                    product_title_key("New Title"), category_products_key("Tops"), "other"):
            cache.set(key, "cached")
        return CacheInvalidator(cache)

    def test_category_created_and_deleted(self, cache):
        invalidator = self._filled(cache)

        invalidator.category_created()
        assert cache.get(ALL_CATEGORIES_KEY) is None
        assert cache.get(ALL_PRODUCTS_KEY) == "cached"

        cache.set(ALL_CATEGORIES_KEY, "cached")
        invalidator.category_deleted()
        assert cache.get(ALL_CATEGORIES_KEY) is None

    def test_category_renamed(self, cache):
        invalidator = self._filled(cache)

        invalidator.category_updated(new_name="tops")

        assert cache.get(ALL_CATEGORIES_KEY) is None
        assert cache.get(category_products_key("Tops")) is None
        assert cache.get(ALL_PRODUCTS_KEY) == "cached"

    def test_category_updated_without_rename(self, cache):
        invalidator = self._filled(cache)

        invalidator.category_updated()

        assert cache.get(category_products_key("Tops")) == "cached"

    def test_product_created_clears_everything(self, cache):
        invalidator = self._filled(cache)

        invalidator.product_created()

        assert cache.stats()["size"] == 0

    def test_product_updated(self, cache):
        invalidator = self._filled(cache)

        invalidator.product_updated("p1", new_title="New Title")

        assert cache.get(ALL_PRODUCTS_KEY) is None
        assert cache.get(product_id_key("p1")) is None
        assert cache.get(product_title_key("New Title")) is None
        assert cache.get(ALL_CATEGORIES_KEY) == "cached"

    def test_product_deleted(self, cache):
        invalidator = self._filled(cache)

        invalidator.product_deleted("p1")

        assert cache.get(ALL_PRODUCTS_KEY) is None
        assert cache.get(product_id_key("p1")) is None
        assert cache.get("other") == "cached"

    def test_cache_failures_are_swallowed(self, caplog):
        broken = MagicMock()
        broken.delete.side_effect = ConnectionError("cache down")
        broken.clear.side_effect = ConnectionError("cache down")
        invalidator = CacheInvalidator(broken)

        invalidator.product_deleted("p1")
        invalidator.product_created()

        assert "Failed to invalidate" in caplog.text

    def test_read_through(self, cache):
        invalidator = CacheInvalidator(cache, ttl=300)
        compute = MagicMock(return_value=[1, 2])

        assert invalidator.read_through("k", compute) == [1, 2]
        assert invalidator.read_through("k", compute) == [1, 2]
        compute.assert_called_once()
