"""缓存层对外暴露的接口"""
from .memory_cache import (
    BoundedCache,
    CacheEntry,
    CacheInterface,
    CacheMetrics,
    CacheStatus,
)
from .response_cache import (
    CachedResponse,
    ResponseCache,
    InMemoryResponseCache,
)

__all__ = [
    "BoundedCache",
    "CacheEntry",
    "CacheInterface",
    "CacheMetrics",
    "CacheStatus",
    "CachedResponse",
    "ResponseCache",
    "InMemoryResponseCache",
]
