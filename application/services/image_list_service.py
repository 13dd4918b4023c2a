"""Image listing with a per-directory cache entry."""
from __future__ import annotations

from application.ports.cache import KeyValueCache
from application.ports.storage import StoragePort
from core.logging_config import get_logger
from domain.common.exceptions import DirectoryNotFoundException, UpstreamException
from domain.image import DirectoryListing, ImageEntry, is_image_file, normalize_storage_path
from infrastructure.external.storage.exceptions import NotFoundError, StorageError

logger = get_logger(__name__)

IMAGE_LIST_PREFIX = "image_list:"


class ImageListService:
    def __init__(self, storage: StoragePort, cache: KeyValueCache, ttl_seconds: int = 24 * 3600):
        self._storage = storage
        self._cache = cache
        self.ttl_ms = ttl_seconds * 1000

    @staticmethod
    def cache_key(directory: str) -> str:
        return IMAGE_LIST_PREFIX + (directory or "root")

    async def list_images(self, subdir: str = "") -> DirectoryListing:
        directory = normalize_storage_path(subdir)
        if directory is None:
            raise DirectoryNotFoundException(subdir)

        key = self.cache_key(directory)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("image_list_cache_hit", directory=directory or "/")
            return cached

        try:
            children = await self._storage.list(directory)
        except NotFoundError as exc:
            raise DirectoryNotFoundException(directory) from exc
        except StorageError as exc:
            logger.error("image_list_backend_failed", directory=directory or "/", error=str(exc))
            raise UpstreamException(
                "Failed to list images",
                context="getImages",
                details={"directory": directory, "status_code": exc.status_code},
            ) from exc

        entries = tuple(
            ImageEntry(name=child.name, path=f"{directory}/{child.name}" if directory else child.name)
            for child in children
            if not child.is_directory and is_image_file(child.name)
        )
        listing = DirectoryListing(directory=directory, entries=entries)
        self._cache.set(key, listing, self.ttl_ms)
        logger.info("image_list_refreshed", directory=directory or "/", count=len(entries))
        return listing

    def invalidate(self) -> int:
        """Drop every cached listing (after a successful upload)."""
        return self._cache.delete_prefix(IMAGE_LIST_PREFIX)
