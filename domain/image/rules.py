"""Image naming, type and path rules shared by routing and the services."""
from __future__ import annotations

import random
import time
from typing import Optional

# 扩展名 -> MIME，未知扩展名统一回退到 application/octet-stream
_CONTENT_TYPES = {
    "html": "text/html",
    "js": "application/javascript",
    "css": "text/css",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "ico": "image/x-icon",
    "txt": "text/plain",
}

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})

# 上传时原始文件名缺少可用扩展名，按声明的 MIME 补齐
_EXTENSION_BY_MIME = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def extension_of(filename: str) -> str:
    """Lower-cased extension of the last path segment, '' when there is none."""
    name = filename.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def content_type_for(filename: str) -> str:
    return _CONTENT_TYPES.get(extension_of(filename), DEFAULT_CONTENT_TYPE)


def is_image_file(filename: str) -> bool:
    return extension_of(filename) in IMAGE_EXTENSIONS


def generate_file_name(
    original_name: str,
    mime_type: Optional[str] = None,
    *,
    now_ms: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Build ``<epoch ms><6-digit token>.<ext>`` for a stored upload.

    Collisions are astronomically unlikely but not checked against the backend.
    """
    ext = extension_of(original_name)
    if ext not in IMAGE_EXTENSIONS:
        ext = _EXTENSION_BY_MIME.get((mime_type or "").lower(), ext or "bin")
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    token = (rng or random).randrange(1_000_000)
    return f"{stamp}{token:06d}.{ext}"


def normalize_storage_path(path: str) -> Optional[str]:
    """Strip surrounding slashes and reject traversal.

    Returns ``None`` when a segment is empty, ``.`` or ``..``; an empty input
    normalizes to ``''`` (the storage root).
    """
    stripped = path.strip("/")
    if not stripped:
        return ""
    segments = stripped.split("/")
    if any(seg in ("", ".", "..") for seg in segments):
        return None
    return "/".join(segments)
