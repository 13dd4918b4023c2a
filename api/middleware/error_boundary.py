"""
错误边界中间件（纯 ASGI）

位于 CORS 头中间件之内、其它中间件之外：任何未被异常处理器转换的异常
都在这里变成 500 结构化 JSON，不再继续抛给 ASGI 服务器。
"""
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.exceptions import build_unhandled_error_response
from core.logging_config import get_logger

from .request_id import RequestIDMiddleware


logger = get_logger(__name__)


class ErrorBoundaryMiddleware:
    def __init__(self, app: ASGIApp, debug: bool = False):
        self.app = app
        self.debug = debug

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            request = Request(scope)
            request_id = getattr(request.state, "request_id", None)
            logger.error(
                "unhandled_exception",
                request_id=request_id,
                path=scope.get("path"),
                error=str(exc),
                error_type=type(exc).__name__,
                response_started=response_started,
                exc_info=True,
            )
            # 响应头已发出时只能结束本次请求
            if response_started:
                return

            response = build_unhandled_error_response(exc, request_id, debug=self.debug)
            if request_id:
                response.headers[RequestIDMiddleware.HEADER_NAME] = request_id
            await response(scope, receive, send)
