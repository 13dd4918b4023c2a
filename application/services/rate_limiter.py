"""Fixed-window request limiter keyed by client identity."""
from __future__ import annotations

import math
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from application.ports.cache import KeyValueCache
from core.logging_config import get_logger

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateLimitCounter:
    count: int
    window_ends_at_ms: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int  # seconds until the current window closes


class RateLimiter:
    """
    固定窗口限流

    计数器存放在共享的 BoundedCache 中，键为 ``rate_limit:<client>``。
    窗口在第一次请求时打开，TTL 只在此时设定；之后的递增沿用剩余 TTL，
    因此持续访问的客户端也会在窗口结束时被重置。
    """

    KEY_PREFIX = "rate_limit:"

    def __init__(
        self,
        cache: KeyValueCache,
        max_requests: int = 100,
        window_seconds: int = 60,
        clock: Optional[Callable[[], int]] = None,
    ):
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self._cache = cache
        self.max_requests = max_requests
        self.window_ms = window_seconds * 1000
        self._clock = clock or _now_ms

    def check(self, client_id: Optional[str]) -> RateLimitDecision:
        key = self.KEY_PREFIX + (client_id or UNKNOWN_CLIENT)
        now = self._clock()

        current: Optional[RateLimitCounter] = self._cache.get(key)
        if current is None or current.window_ends_at_ms <= now:
            current = RateLimitCounter(count=0, window_ends_at_ms=now + self.window_ms)
        counter = replace(current, count=current.count + 1)
        remaining_ms = counter.window_ends_at_ms - now
        retry_after = max(1, math.ceil(remaining_ms / 1000))

        if counter.count > self.max_requests:
            logger.warning(
                "rate_limit_exceeded",
                client_id=client_id or UNKNOWN_CLIENT,
                count=counter.count,
                limit=self.max_requests,
            )
            return RateLimitDecision(False, self.max_requests, 0, retry_after)

        self._cache.set(key, counter, remaining_ms)
        return RateLimitDecision(
            True,
            self.max_requests,
            self.max_requests - counter.count,
            retry_after,
        )
