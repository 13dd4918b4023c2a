"""
访问日志中间件

每个请求输出一条开始事件和一条结束事件；结束事件带上状态码、耗时，
以及边缘缓存命中情况和限流余量，便于排查图片分发问题。
请求体一律不记录（上传内容是二进制图片）。
"""
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging_config import get_logger


logger = get_logger(__name__)

# 响应头 -> 日志字段
_RESPONSE_FIELDS = {
    "X-Cache": "edge_cache",
    "X-RateLimit-Remaining": "rate_limit_remaining",
    "Content-Length": "response_bytes",
}


class LoggingMiddleware(BaseHTTPMiddleware):
    # 探活与浏览器自动请求不记录
    SKIP_PATHS = {"/health", "/favicon.ico", "/robots.txt"}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        request_info = {"method": request.method, "path": request.url.path}
        if request.query_params:
            request_info["query"] = str(request.query_params)
        upload_bytes = request.headers.get("Content-Length")
        if request.method == "POST" and upload_bytes:
            request_info["request_bytes"] = int(upload_bytes) if upload_bytes.isdigit() else upload_bytes
        logger.info("request_started", user_agent=request.headers.get("User-Agent"), **request_info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error=str(exc),
                error_type=type(exc).__name__,
                **request_info,
            )
            # 堆栈由错误边界记录一次，这里只记耗时
            raise

        duration = time.perf_counter() - started
        self._log_response(response, duration, request_info)
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response

    def _log_response(self, response: Response, duration: float, request_info: dict):
        log_data = {
            "status_code": response.status_code,
            "duration_ms": round(duration * 1000, 2),
            **request_info,
        }
        for header, field in _RESPONSE_FIELDS.items():
            value = response.headers.get(header)
            if value is not None:
                log_data[field] = value

        if response.status_code < 400:
            logger.info("request_completed", **log_data)
        elif response.status_code < 500:
            logger.warning("request_client_error", **log_data)
        else:
            logger.error("request_server_error", **log_data)
