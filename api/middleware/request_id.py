"""
Request ID 中间件
用于生成或透传追踪ID，并通过contextvars传递给日志系统
"""
import uuid
from typing import Mapping

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

import structlog

from application.services.rate_limiter import UNKNOWN_CLIENT


def resolve_client_id(headers: Mapping[str, str], header_name: str) -> str:
    """
    从可信代理写入的头中取客户端标识

    Args:
        headers: 请求头
        header_name: 配置的转发 IP 头（如 X-Forwarded-For）

    Returns:
        第一个地址；头缺失时返回 "unknown"（所有此类客户端共享同一计数器）
    """
    raw = headers.get(header_name) or ""
    first = raw.split(",")[0].strip()
    return first or UNKNOWN_CLIENT


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Request ID 追踪中间件

    功能：
    1. 从请求头获取或生成新的request_id
    2. 将request_id存入contextvars，供日志系统使用
    3. 在响应头中返回request_id
    """

    HEADER_NAME = "X-Request-ID"

    def __init__(self, app, client_ip_header: str = "X-Forwarded-For"):
        super().__init__(app)
        self.client_ip_header = client_ip_header

    async def dispatch(self, request: Request, call_next):
        # 从请求头获取request_id，如果不存在则生成新的
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        client_ip = resolve_client_id(request.headers, self.client_ip_header)

        # 设置到request.state以便在应用内部访问
        request.state.request_id = request_id
        request.state.client_ip = client_ip

        # 绑定到structlog上下文
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response
