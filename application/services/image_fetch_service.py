"""Open a stored image as a stream together with its response headers."""
from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from typing import Callable, Optional

from application.ports.storage import DownloadStream, StoragePort
from core.logging_config import get_logger
from domain.common.exceptions import ImageNotFoundException, UpstreamException
from domain.image import content_type_for
from infrastructure.external.storage.exceptions import NotFoundError, StorageError

logger = get_logger(__name__)

# 存储中的文件名带时间戳、内容不会改变，可以长期缓存
IMAGE_CACHE_CONTROL = "public, max-age=31536000, immutable, stale-while-revalidate=86400"


@dataclass
class ImagePayload:
    path: str
    stream: DownloadStream
    headers: dict[str, str]


def make_etag(path: str, fetched_at_ms: int) -> str:
    digest = hashlib.md5(f"{path}:{fetched_at_ms}".encode("utf-8")).hexdigest()
    return f'"{digest}"'


class ImageFetchService:
    def __init__(self, storage: StoragePort, clock: Optional[Callable[[], int]] = None):
        self._storage = storage
        self._clock = clock or (lambda: int(time.time() * 1000))

    async def fetch(self, path: str) -> ImagePayload:
        try:
            stream = await self._storage.get(path)
        except NotFoundError as exc:
            raise ImageNotFoundException(path) from exc
        except StorageError as exc:
            logger.error("image_fetch_failed", path=path, status_code=exc.status_code, error=str(exc))
            raise UpstreamException(
                "Failed to fetch image",
                context="getImage",
                details={"path": path, "status_code": exc.status_code},
            ) from exc

        headers = {
            "Content-Type": content_type_for(path),
            "Cache-Control": IMAGE_CACHE_CONTROL,
            "ETag": make_etag(path, self._clock()),
            "Vary": "Accept-Encoding",
        }
        if stream.content_length is not None:
            headers["Content-Length"] = str(stream.content_length)
        return ImagePayload(path=path, stream=stream, headers=headers)
