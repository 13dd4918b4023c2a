"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
``context`` 标识出错的子系统（upload/getImage/getImages/route/main），
由统一错误格式化器原样输出。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        context: str = "main",
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.context = context
        super().__init__(self.message)


class FileValidationException(BusinessException):
    """客户端可修正的文件校验错误（类型/大小/数量）"""

    def __init__(
        self,
        message: str,
        *,
        code: int = BusinessCode.PARAM_ERROR,
        error_type: str = "ValidationError",
        details: Optional[dict] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
            context="upload",
        )


class NoFileProvidedException(FileValidationException):
    def __init__(self):
        super().__init__(
            "No file selected",
            code=BusinessCode.FILE_MISSING,
            error_type="NoFileProvided",
        )


class TooManyFilesException(FileValidationException):
    def __init__(self, count: int, max_files: int):
        super().__init__(
            f"Too many files: {count} > {max_files}",
            code=BusinessCode.TOO_MANY_FILES,
            error_type="TooManyFiles",
            details={"count": count, "max_files": max_files},
        )


class UnsupportedImageTypeException(FileValidationException):
    def __init__(self, filename: str, mime_type: Optional[str]):
        super().__init__(
            f"{filename}: unsupported file type {mime_type or 'unknown'}, only images are allowed",
            code=BusinessCode.UNSUPPORTED_FILE_TYPE,
            error_type="UnsupportedImageType",
            details={"filename": filename, "mime_type": mime_type},
        )


class FileTooLargeException(FileValidationException):
    def __init__(self, filename: str, size: int, max_size: int):
        super().__init__(
            f"{filename}: file exceeds size limit of {max_size // (1024 * 1024)}MB",
            code=BusinessCode.FILE_TOO_LARGE,
            error_type="FileTooLarge",
            details={"filename": filename, "size": size, "max_size": max_size},
        )


class UploadFailedException(BusinessException):
    """一个文件都没有成功时的整体失败，携带逐个文件的错误信息。"""

    def __init__(self, errors: list[str], *, validation_only: bool):
        self.errors = errors
        super().__init__(
            code=BusinessCode.PARAM_ERROR if validation_only else BusinessCode.UPLOAD_FAILED,
            message=errors[0] if len(errors) == 1 else f"All {len(errors)} files failed to upload",
            error_type="ValidationError" if validation_only else "UploadFailed",
            context="upload",
        )


class UpstreamException(BusinessException):
    """存储后端不可达或返回非 2xx"""

    def __init__(self, message: str, *, context: str, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.UPSTREAM_ERROR,
            message=message,
            error_type="UpstreamError",
            details=details,
            context=context,
        )


class ImageNotFoundException(BusinessException):
    def __init__(self, path: str):
        super().__init__(
            code=BusinessCode.IMAGE_NOT_FOUND,
            message="Image not found",
            error_type="NotFound",
            details={"path": path},
            context="getImage",
        )


class RouteNotFoundException(BusinessException):
    def __init__(self, path: str):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Not Found",
            error_type="NotFound",
            details={"path": path},
            context="route",
        )


class DirectoryNotFoundException(BusinessException):
    def __init__(self, path: str):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Directory not found",
            error_type="NotFound",
            details={"path": path},
            context="getImages",
        )
