"""
限流中间件

在任何路由分类之前执行：先清理共享缓存中的过期条目，再按客户端标识检查固定窗口计数。
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from application.services.rate_limiter import RateLimiter
from core.exceptions import RateLimitException, build_error_response
from infrastructure.cache import CacheInterface

from .request_id import resolve_client_id


class RateLimitMiddleware(BaseHTTPMiddleware):
    # 不参与限流的路径（探活）
    EXEMPT_PATHS = {"/health"}

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        cache: CacheInterface,
        client_ip_header: str = "X-Forwarded-For",
        enabled: bool = True,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.cache = cache
        self.client_ip_header = client_ip_header
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next):
        self.cache.sweep()

        if not self.enabled or request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        client_id = resolve_client_id(request.headers, self.client_ip_header)
        decision = self.limiter.check(client_id)
        if not decision.allowed:
            exc = RateLimitException(retry_after=decision.retry_after)
            response = build_error_response(exc, getattr(request.state, "request_id", None))
            response.headers["X-RateLimit-Limit"] = str(decision.limit)
            response.headers["X-RateLimit-Remaining"] = "0"
            return response

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
