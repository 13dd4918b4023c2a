"""Domain values describing stored images and directory listings."""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class UploadedFileDescriptor:
    """One successfully stored file of an upload request (lives for one response)."""

    original_name: str
    generated_name: str
    url: str
    size_bytes: int
    mime_type: str


@dataclass(frozen=True)
class ImageEntry:
    """An image found in a directory listing; ``path`` is storage-relative."""

    name: str
    path: str


@dataclass(frozen=True)
class DirectoryListing:
    """Image entries under one directory, in backend order.

    Only whitelisted image files are kept, sub-directories never appear.
    """

    directory: str
    entries: tuple[ImageEntry, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.entries)
