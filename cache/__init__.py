"""In-memory TTL caches with single-flight lookups."""

from cache.keys import PhotoKey, SearchKey, TextSearchKey
from cache.ttl_cache import TTLCache

__all__ = ["PhotoKey", "SearchKey", "TTLCache", "TextSearchKey"]
