"""
自定义异常映射与全局异常处理器
"""
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette import status as http_status
import traceback

from .response import error_response, json_response
from shared.codes import BusinessCode
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, UploadFailedException


logger = get_logger(__name__)


class RateLimitException(BusinessException):
    """限流异常"""

    def __init__(self, retry_after: Optional[int] = None):
        details = {"retry_after": retry_after} if retry_after else None
        super().__init__(
            code=BusinessCode.TOO_MANY_REQUESTS,
            message="Too many requests, please try again later",
            error_type="RateLimit",
            details=details,
            context="main",
        )
        self.retry_after = retry_after


_STATUS_BY_CODE = {
    BusinessCode.PARAM_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.FILE_MISSING: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.TOO_MANY_FILES: http_status.HTTP_400_BAD_REQUEST,

    BusinessCode.BUSINESS_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.UPLOAD_FAILED: http_status.HTTP_502_BAD_GATEWAY,
    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.IMAGE_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,

    BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.NETWORK_ERROR: http_status.HTTP_502_BAD_GATEWAY,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    BusinessCode.UPSTREAM_ERROR: http_status.HTTP_502_BAD_GATEWAY,

    BusinessCode.TOO_MANY_REQUESTS: http_status.HTTP_429_TOO_MANY_REQUESTS,
}


def business_code_to_http_status(code: int) -> int:
    """根据业务码映射HTTP状态码（默认400）。"""
    try:
        return _STATUS_BY_CODE.get(BusinessCode(code), http_status.HTTP_400_BAD_REQUEST)
    except ValueError:
        return http_status.HTTP_400_BAD_REQUEST


def _request_id(request: Request) -> Optional[str]:
    return getattr(getattr(request, "state", object()), "request_id", None)


def build_error_response(exc: BusinessException, request_id: Optional[str] = None) -> JSONResponse:
    """业务异常 -> 统一错误响应（中间件与异常处理器共用）。"""
    errors = files = None
    if isinstance(exc, UploadFailedException):
        errors, files = exc.errors, []
    body = error_response(
        code=exc.code,
        message=exc.message,
        context=exc.context,
        errors=errors,
        files=files,
        details=exc.details,
        request_id=request_id,
    )
    headers = None
    if isinstance(exc, RateLimitException) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return json_response(
        body,
        status_code=business_code_to_http_status(exc.code),
        no_store=True,
        headers=headers,
    )


def build_unhandled_error_response(
    exc: Exception,
    request_id: Optional[str] = None,
    debug: bool = False,
) -> JSONResponse:
    """未捕获异常 -> 500 结构化错误（错误边界中间件使用）。"""
    # 在开发环境可以返回详细错误信息
    details = None
    if debug:
        details = {
            "exception": str(exc),
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        }

    body = error_response(
        code=BusinessCode.SYSTEM_ERROR,
        message="Internal server error",
        context="main",
        details=details,
        request_id=request_id,
    )
    return json_response(
        body,
        status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        no_store=True,
    )


def register_exception_handlers(app: FastAPI):
    """
    注册全局异常处理器

    未捕获异常不在这里处理，由 ErrorBoundaryMiddleware 统一兜底。

    Args:
        app: FastAPI应用实例
    """

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        """处理业务异常"""
        return build_error_response(exc, _request_id(request))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """处理参数验证异常"""
        errors = exc.errors()
        first_error = errors[0] if errors else {}
        body = error_response(
            code=BusinessCode.PARAM_ERROR,
            message=f"Validation failed: {first_error.get('msg', 'unknown')}",
            context="route",
            request_id=_request_id(request),
        )
        return json_response(body, status_code=http_status.HTTP_400_BAD_REQUEST, no_store=True)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """处理HTTP异常"""
        code_mapping = {
            404: BusinessCode.NOT_FOUND,
            405: BusinessCode.NOT_FOUND,
            429: BusinessCode.TOO_MANY_REQUESTS,
            503: BusinessCode.SERVICE_UNAVAILABLE,
        }
        body = error_response(
            code=code_mapping.get(exc.status_code, BusinessCode.SYSTEM_ERROR),
            message=str(exc.detail),
            context="route",
            request_id=_request_id(request),
        )
        return json_response(
            body,
            status_code=exc.status_code,
            no_store=True,
            headers=getattr(exc, "headers", None),
        )

