"""
共享 HTTP 响应缓存（边缘缓存）

按完整请求 URL 缓存完整响应，与限流/目录列表用的 BoundedCache 是不同实例。
遵循响应自身的 Cache-Control：no-store 不缓存，max-age 决定存活时间。
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from core.logging_config import get_logger
from .memory_cache import BoundedCache, Clock

logger = get_logger(__name__)

_MAX_AGE = re.compile(r"(?:^|,)\s*max-age=(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class CachedResponse:
    status_code: int
    headers: tuple[tuple[str, str], ...]
    body: bytes

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None


@runtime_checkable
class ResponseCache(Protocol):
    async def match(self, key: str) -> Optional[CachedResponse]: ...

    async def put(self, key: str, response: CachedResponse) -> None: ...


class InMemoryResponseCache:
    """Process-local stand-in for a platform edge cache.

    Besides the entry cap, body bytes are limited per entry and in total.
    When a new body would push the total over ``max_total_bytes``, entries
    closest to expiry are dropped first.
    """

    def __init__(
        self,
        max_entries: int = 256,
        max_body_bytes: int = 10 * 1024 * 1024,
        max_total_bytes: int = 64 * 1024 * 1024,
        default_ttl_seconds: int = 3600,
        clock: Optional[Clock] = None,
    ):
        self.max_body_bytes = max_body_bytes
        self.max_total_bytes = max_total_bytes
        self.default_ttl_seconds = default_ttl_seconds
        self._store = BoundedCache(max_entries=max_entries, clock=clock, name="edge")
        self._sizes: dict[str, int] = {}

    async def match(self, key: str) -> Optional[CachedResponse]:
        return self._store.get(key)

    async def put(self, key: str, response: CachedResponse) -> None:
        size = len(response.body)
        if size > min(self.max_body_bytes, self.max_total_bytes):
            logger.debug("edge_cache_skip_large_body", key=key, size=size)
            return
        ttl = self._ttl_seconds(response.header("cache-control"))
        if ttl <= 0:
            return

        self._forget_dropped()
        self._sizes.pop(key, None)
        self._make_room(size)
        self._store.set(key, response, ttl * 1000)
        self._sizes[key] = size

    @property
    def total_bytes(self) -> int:
        self._forget_dropped()
        return sum(self._sizes.values())

    def _forget_dropped(self) -> None:
        # 过期或被条目数上限逐出的键不再计入字节总量
        self._store.sweep()
        for key in [k for k in self._sizes if k not in self._store]:
            del self._sizes[key]

    def _make_room(self, size: int) -> None:
        total = sum(self._sizes.values())
        evicted = 0
        while self._sizes and total + size > self.max_total_bytes:
            victim = min(self._sizes, key=lambda k: self._store.expires_at(k) or 0)
            self._store.delete(victim)
            total -= self._sizes.pop(victim)
            evicted += 1
        if evicted:
            logger.info("edge_cache_evicted_for_bytes", evicted=evicted, total_bytes=total)

    def _ttl_seconds(self, cache_control: Optional[str]) -> int:
        if not cache_control:
            return self.default_ttl_seconds
        if "no-store" in cache_control.lower():
            return 0
        match = _MAX_AGE.search(cache_control)
        return int(match.group(1)) if match else self.default_ttl_seconds

    def __len__(self) -> int:
        return len(self._store)
