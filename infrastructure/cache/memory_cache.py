"""
进程内有界 TTL 缓存

用于两类互不相关的数据：限流计数器与目录列表。没有后台定时器，
过期条目只在 get 时惰性清理，或在 sweep()（路由前 / 写入前满容量时）批量清理。
"""
from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from core.logging_config import get_logger

logger = get_logger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


class CacheStatus(Enum):
    """缓存状态枚举"""
    HIT = "hit"
    MISS = "miss"
    EXPIRED = "expired"


class CacheMetrics:
    """缓存指标统计"""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.expired = 0
        self.evictions = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def record_get(self, status: CacheStatus):
        if status == CacheStatus.HIT:
            self.hits += 1
        else:
            # 过期命中同样算作未命中
            self.misses += 1
            if status == CacheStatus.EXPIRED:
                self.expired += 1

    def snapshot(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expired": self.expired,
            "evictions": self.evictions,
            "hit_rate": round(self.hit_rate, 4),
        }


class CacheInterface(ABC):
    """缓存抽象接口（测试中可替换为假实现）"""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """获取缓存值，未命中或已过期返回 default"""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        """设置缓存值"""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """删除键，返回是否存在"""

    @abstractmethod
    def sweep(self) -> int:
        """清理所有已过期条目，返回清理数量"""


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at_ms: int


class BoundedCache(CacheInterface):
    """
    有界 TTL 缓存

    容量是缓解内存压力的建议上限而非严格 LRU：写入新键时若已满，先 sweep()；
    仍满则按过期时间最早者优先（同值按插入顺序）逐出，直到腾出一个位置。
    所有操作由同一把锁保护，可在多线程宿主下安全使用。
    """

    def __init__(
        self,
        max_entries: int = 1000,
        clock: Optional[Clock] = None,
        name: str = "default",
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.name = name
        self._clock: Clock = clock or now_ms
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._metrics = CacheMetrics()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._metrics.record_get(CacheStatus.MISS)
                return default
            if entry.expires_at_ms < self._clock():
                del self._entries[key]
                self._metrics.record_get(CacheStatus.EXPIRED)
                return default
            self._metrics.record_get(CacheStatus.HIT)
            return entry.value

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        if ttl_ms <= 0:
            # 非正 TTL 等价于立即过期
            self.delete(key)
            return
        with self._lock:
            now = self._clock()
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._sweep_locked(now)
                self._evict_locked()
            self._entries[key] = CacheEntry(value=value, expires_at_ms=now + ttl_ms)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """删除所有以 prefix 开头的键（目录列表整体失效用）"""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def sweep(self) -> int:
        with self._lock:
            return self._sweep_locked(self._clock())

    def expires_at(self, key: str) -> Optional[int]:
        """未过期条目的过期时间（毫秒时间戳），不存在或已过期返回 None"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.expires_at_ms < self._clock():
                return None
            return entry.expires_at_ms

    def _sweep_locked(self, now: int) -> int:
        expired = [k for k, e in self._entries.items() if e.expires_at_ms < now]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("cache_swept", cache=self.name, removed=len(expired))
        return len(expired)

    def _evict_locked(self) -> None:
        overflow = len(self._entries) - self.max_entries + 1
        if overflow <= 0:
            return
        # sorted 稳定，过期时间相同时保留插入顺序
        victims = sorted(self._entries, key=lambda k: self._entries[k].expires_at_ms)[:overflow]
        for k in victims:
            del self._entries[k]
        self._metrics.evictions += len(victims)
        logger.warning("cache_evicted_live_entries", cache=self.name, evicted=len(victims))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.expires_at(key) is not None

    @property
    def metrics(self) -> CacheMetrics:
        return self._metrics
