"""
Shared business codes used across layers (Domain/Core/API).

This module provides a single source of truth to avoid drift between
multiple enum definitions scattered across the codebase.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """业务状态码定义（单一来源）"""

    # 成功
    SUCCESS = 0

    # 参数错误 (1xxxx)
    PARAM_ERROR = 10000
    FILE_MISSING = 10001
    UNSUPPORTED_FILE_TYPE = 10002
    FILE_TOO_LARGE = 10003
    TOO_MANY_FILES = 10004

    # 业务错误 (2xxxx)
    BUSINESS_ERROR = 20000
    UPLOAD_FAILED = 20001
    NOT_FOUND = 20006  # 资源未找到（通用）
    IMAGE_NOT_FOUND = 20007

    # 系统错误 (4xxxx)
    SYSTEM_ERROR = 40000
    NETWORK_ERROR = 40002
    SERVICE_UNAVAILABLE = 40003
    UPSTREAM_ERROR = 40004

    # 限流错误 (5xxxx)
    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode"]
