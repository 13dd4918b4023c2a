"""
CORS 头中间件（纯 ASGI）

Starlette 自带的 CORSMiddleware 只在请求携带 Origin 时才回写头，
这里对每个 HTTP 响应都补上 ``Access-Control-Allow-Origin: *``。
预检（OPTIONS）由路由层直接返回 204 和完整头集合。
"""
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.response import CORS_ALLOW_ORIGIN


class CORSHeadersMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message: Message):
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in CORS_ALLOW_ORIGIN.items():
                    if key not in headers:
                        headers[key] = value
            await send(message)

        await self.app(scope, receive, send_wrapper)
