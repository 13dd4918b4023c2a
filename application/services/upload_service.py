"""
图片上传服务

逐个校验文件，通过校验的文件按 ``max_concurrency`` 分批并发写入存储。
单个文件的失败只记录为一条错误信息，不影响同批其它文件；
只有全部失败时才抛出 ``UploadFailedException``。
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional, Sequence
from urllib.parse import quote

from application.ports.storage import StoragePort
from application.services.image_list_service import ImageListService
from core.logging_config import get_logger
from domain.common.exceptions import (
    FileTooLargeException,
    FileValidationException,
    NoFileProvidedException,
    TooManyFilesException,
    UnsupportedImageTypeException,
    UploadFailedException,
)
from domain.image import UploadedFileDescriptor, generate_file_name
from infrastructure.external.storage.exceptions import StorageError

logger = get_logger(__name__)


@dataclass(frozen=True)
class IncomingFile:
    """框架无关的上传文件视图（由 API 层从 multipart 表单构造）"""

    filename: str
    content_type: Optional[str]
    read: Callable[[], Awaitable[bytes]]
    size: Optional[int] = None


@dataclass
class UploadReport:
    files: list[UploadedFileDescriptor] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _Outcome:
    index: int
    descriptor: Optional[UploadedFileDescriptor] = None
    error: Optional[str] = None
    validation: bool = False


class ImageUploadService:
    def __init__(
        self,
        storage: StoragePort,
        image_lists: ImageListService,
        *,
        max_file_size: int,
        allowed_types: Iterable[str],
        max_concurrency: int = 5,
        max_files: int = 20,
        name_factory: Callable[..., str] = generate_file_name,
    ):
        self._storage = storage
        self._image_lists = image_lists
        self.max_file_size = max_file_size
        self.allowed_types = frozenset(t.lower() for t in allowed_types)
        self.max_concurrency = max(1, max_concurrency)
        self.max_files = max_files
        self._name_factory = name_factory

    def validate(self, upload: IncomingFile) -> None:
        """类型与（已知的）大小校验，失败抛出 FileValidationException 子类"""
        mime_type = (upload.content_type or "").split(";", 1)[0].strip().lower()
        if not mime_type.startswith("image/") or mime_type not in self.allowed_types:
            raise UnsupportedImageTypeException(upload.filename, upload.content_type)
        if upload.size is not None and upload.size > self.max_file_size:
            raise FileTooLargeException(upload.filename, upload.size, self.max_file_size)

    async def upload(self, uploads: Sequence[IncomingFile], origin: str) -> UploadReport:
        if not uploads:
            raise NoFileProvidedException()
        if len(uploads) > self.max_files:
            raise TooManyFilesException(len(uploads), self.max_files)

        outcomes: list[_Outcome] = []
        accepted: list[tuple[int, IncomingFile]] = []
        for index, upload in enumerate(uploads):
            try:
                self.validate(upload)
            except FileValidationException as exc:
                outcomes.append(_Outcome(index, error=exc.message, validation=True))
                continue
            accepted.append((index, upload))

        for start in range(0, len(accepted), self.max_concurrency):
            batch = accepted[start:start + self.max_concurrency]
            outcomes.extend(await asyncio.gather(
                *(self._store(index, upload, origin) for index, upload in batch)
            ))

        outcomes.sort(key=lambda o: o.index)
        report = UploadReport(
            files=[o.descriptor for o in outcomes if o.descriptor is not None],
            errors=[o.error for o in outcomes if o.error is not None],
        )

        if not report.files:
            validation_only = all(o.validation for o in outcomes)
            logger.warning(
                "upload_all_failed",
                count=len(uploads),
                validation_only=validation_only,
            )
            raise UploadFailedException(report.errors, validation_only=validation_only)

        self._image_lists.invalidate()
        logger.info("upload_completed", stored=len(report.files), failed=len(report.errors))
        return report

    async def _store(self, index: int, upload: IncomingFile, origin: str) -> _Outcome:
        try:
            data = await upload.read()
            if len(data) > self.max_file_size:
                raise FileTooLargeException(upload.filename, len(data), self.max_file_size)
            name = self._name_factory(upload.filename, upload.content_type)
            await self._storage.put(name, data, upload.content_type)
        except FileValidationException as exc:
            return _Outcome(index, error=exc.message, validation=True)
        except StorageError as exc:
            logger.error(
                "upload_file_failed",
                filename=upload.filename,
                status_code=exc.status_code,
                error=str(exc),
            )
            return _Outcome(index, error=f"{upload.filename}: upload failed")
        except Exception as exc:
            # 单个文件的意外错误同样只记为该文件失败，同批其它文件照常完成
            logger.error(
                "upload_file_unexpected_error",
                filename=upload.filename,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            return _Outcome(index, error=f"{upload.filename}: upload failed")

        return _Outcome(
            index,
            descriptor=UploadedFileDescriptor(
                original_name=upload.filename,
                generated_name=name,
                url=f"{origin}/{quote(name)}",
                size_bytes=len(data),
                mime_type=upload.content_type or "",
            ),
        )
