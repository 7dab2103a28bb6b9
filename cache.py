"""
Response cache for catalog read paths.

Implements a TTL + LRU cache for serialized responses and the invalidation
rules that keep it in step with catalog mutations.
"""

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Tuple

from config import settings

logger = logging.getLogger(__name__)

ALL_PRODUCTS_KEY = "all_products"
ALL_CATEGORIES_KEY = "all_categories_with_products"

PRODUCT_BY_ID = "product_by_id"
PRODUCT_BY_TITLE = "product_by_title"
CATEGORY_PRODUCTS = "category_products"


def cache_key(namespace: str, value: str, fold_case: bool = False) -> str:
    """
    Build a content-addressed cache key.

    The value is hashed, so separators or other special characters in
    request input can never collide with another key.

    Args:
        namespace: Fixed key prefix
        value: Lookup value taken from the request
        fold_case: Case-fold the value first (for case-insensitive lookups)

    Returns:
        Cache key string
    """
    canonical = value.casefold() if fold_case else value
    return f"{namespace}:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"


def product_id_key(mongo_id: str) -> str:
    return cache_key(PRODUCT_BY_ID, mongo_id)


def product_title_key(title: str) -> str:
    return cache_key(PRODUCT_BY_TITLE, title, fold_case=True)


def category_products_key(name: str) -> str:
    return cache_key(CATEGORY_PRODUCTS, name, fold_case=True)


class ResponseCache:
    """
    In-process cache with a per-entry TTL and an LRU size bound.

    Attributes:
        max_size: Maximum number of cached entries
        cache: OrderedDict of key -> (expires_at, value)
    """

    def __init__(self, max_size: int = 1000, default_ttl: int = 300) -> None:
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.cache: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, value = entry
            if expires_at <= time.monotonic():
                del self.cache[key]
                self.misses += 1
                return None
            self.cache.move_to_end(key)
            self.hits += 1
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self.cache[key] = (time.monotonic() + ttl, value)
            self.cache.move_to_end(key)
            while len(self.cache) > self.max_size:
                evicted, _ = self.cache.popitem(last=False)
                logger.debug("Evicted cache entry %s", evicted)

    def delete(self, key: str) -> None:
        with self._lock:
            self.cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self.cache.clear()
        logger.info("Response cache cleared")

    def stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "size": len(self.cache),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total, 3) if total else 0.0,
        }


class CacheInvalidator:
    """
    Drops derived cache entries after successful catalog mutations.

    Cache failures are logged and never propagate, so a mutation that already
    succeeded is always reported as such.
    """

    def __init__(self, cache: ResponseCache, ttl: Optional[int] = None):
        self.cache = cache
        self.ttl = settings.CACHE_TTL_SECONDS if ttl is None else ttl

    def _drop(self, *keys: str) -> None:
        for key in keys:
            try:
                self.cache.delete(key)
            except Exception as exc:
                logger.warning("Failed to invalidate cache key %s: %s", key, exc)

    def read_through(self, key: str, compute: Callable[[], Any]) -> Any:
        try:
            cached = self.cache.get(key)
        except Exception as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            cached = None
        if cached is not None:
            return cached
        value = compute()
        try:
            self.cache.set(key, value, self.ttl)
        except Exception as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
        return value

    def category_created(self) -> None:
        self._drop(ALL_CATEGORIES_KEY)

    def category_updated(self, new_name: Optional[str] = None) -> None:
        self._drop(ALL_CATEGORIES_KEY)
        if new_name is not None:
            self._drop(category_products_key(new_name))

    def category_deleted(self) -> None:
        self._drop(ALL_CATEGORIES_KEY)

    def product_created(self) -> None:
        try:
            self.cache.clear()
        except Exception as exc:
            logger.warning("Failed to clear cache: %s", exc)

    def product_updated(self, mongo_id: str, new_title: Optional[str] = None) -> None:
        self._drop(ALL_PRODUCTS_KEY, product_id_key(mongo_id))
        if new_title is not None:
            self._drop(product_title_key(new_title))

    def product_deleted(self, mongo_id: str) -> None:
        self._drop(ALL_PRODUCTS_KEY, product_id_key(mongo_id))


response_cache = ResponseCache(max_size=settings.CACHE_MAX_SIZE, default_ttl=settings.CACHE_TTL_SECONDS)


def get_cache() -> ResponseCache:
    return response_cache
