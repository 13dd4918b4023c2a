"""Application-owned storage port abstraction (hexagonal architecture).

Defines the minimal capability the request handlers need from the remote
file store (put/get/list) so that the application layer does not depend
on the WebDAV client or its HTTP library.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class DirectoryEntry:
    """One child returned by a directory listing; ``href`` is as the backend sent it."""

    href: str
    name: str
    is_directory: bool


async def _noop_close() -> None:
    return None


@dataclass
class DownloadStream:
    """An open download; the caller must drain ``chunks`` or call ``aclose``."""

    chunks: AsyncIterator[bytes]
    content_length: Optional[int] = None
    close: Callable[[], Awaitable[None]] = _noop_close

    async def aclose(self) -> None:
        await self.close()

    async def read(self) -> bytes:
        try:
            return b"".join([chunk async for chunk in self.chunks])
        finally:
            await self.aclose()

    @classmethod
    def from_bytes(cls, data: bytes, chunk_size: int = 64 * 1024) -> "DownloadStream":
        async def _iter() -> AsyncIterator[bytes]:
            for i in range(0, len(data), chunk_size):
                yield data[i:i + chunk_size]

        return cls(chunks=_iter(), content_length=len(data))


@runtime_checkable
class StoragePort(Protocol):
    async def put(self, name: str, data: bytes, content_type: Optional[str] = None) -> None: ...

    async def get(self, name: str) -> DownloadStream: ...

    async def list(self, path: str = "") -> list[DirectoryEntry]: ...

    async def health_check(self) -> bool: ...
