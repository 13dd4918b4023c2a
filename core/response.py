"""
统一响应格式定义
"""
from typing import Any, Optional, Literal
from pydantic import BaseModel, Field, field_serializer
from datetime import datetime, timezone
from fastapi.responses import JSONResponse


# 所有响应都带的 CORS 头；OPTIONS 预检额外返回完整的一组
CORS_ALLOW_ORIGIN = {"Access-Control-Allow-Origin": "*"}
CORS_PREFLIGHT_HEADERS = {
    **CORS_ALLOW_ORIGIN,
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Max-Age": "86400",
}
NO_STORE = {"Cache-Control": "no-store"}


class ErrorBody(BaseModel):
    """统一错误响应体：{success:false, message, code, context, timestamp}"""
    success: Literal[False] = False
    message: str
    code: int
    context: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    # 上传整体失败时附带逐个文件的错误与（空的）成功列表
    errors: Optional[list[str]] = None
    files: Optional[list[Any]] = None
    details: Optional[dict] = None
    request_id: Optional[str] = None

    @field_serializer('timestamp')
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """序列化时间戳为 UTC ISO8601，统一使用 Z 结尾"""
        ts = timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        else:
            ts = ts.astimezone(timezone.utc)
        return ts.isoformat().replace("+00:00", "Z")


def success_response(**payload: Any) -> dict:
    """
    创建成功响应体

    Args:
        **payload: 与 success 并列输出的字段（files、errors 等）

    Returns:
        dict: {"success": True, **payload}
    """
    return {"success": True, **payload}


def error_response(
    code: int,
    message: str,
    context: str = "main",
    *,
    errors: Optional[list[str]] = None,
    files: Optional[list[Any]] = None,
    details: Optional[dict] = None,
    request_id: Optional[str] = None,
) -> ErrorBody:
    """
    创建错误响应体

    Args:
        code: 业务状态码
        message: 错误消息
        context: 出错的子系统（upload/getImage/getImages/route/main）
        errors: 逐个文件的错误信息
        files: 成功文件列表（整体失败时为空列表）
        details: 错误详情
        request_id: 请求ID

    Returns:
        ErrorBody: 统一错误响应对象
    """
    return ErrorBody(
        code=code,
        message=message,
        context=context,
        errors=errors,
        files=files,
        details=details,
        request_id=request_id,
    )


def json_response(
    content: Any,
    status_code: int = 200,
    *,
    no_store: bool = False,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """输出 JSON，统一附带 CORS 头，可选 Cache-Control: no-store。"""
    merged = {**CORS_ALLOW_ORIGIN}
    if no_store:
        merged.update(NO_STORE)
    if headers:
        merged.update(headers)
    if isinstance(content, BaseModel):
        content = content.model_dump(mode="json", exclude_none=True)
    return JSONResponse(status_code=status_code, content=content, headers=merged)
