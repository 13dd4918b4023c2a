"""Request classification: map (method, path) onto exactly one handling strategy.

Order matters, the first matching rule wins:

1. OPTIONS                         -> preflight
2. ``/`` (upload page is not ``/``) -> redirect
3. POST ``/upload``                -> upload
4. GET ``/images[/<subpath>]``     -> list images
5. ``/carousel[/<subpath>]``       -> carousel page
6. static aliases                  -> static asset
7. GET ``/<...>.<image ext>``      -> image fetch
8. anything else                   -> not found
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from domain.image import is_image_file, normalize_storage_path


class RouteKind(str, Enum):
    PREFLIGHT = "preflight"
    REDIRECT = "redirect"
    UPLOAD = "upload"
    LIST_IMAGES = "list_images"
    CAROUSEL = "carousel"
    STATIC = "static"
    IMAGE = "image"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RouteMatch:
    kind: RouteKind
    # subpath for list/carousel, canonical filename for static, storage path for image
    param: str = ""


_FIXED_STATIC = {
    "/app.js": "app.js",
    "/styles.css": "styles.css",
    "/favicon.ico": "favicon.ico",
    "/robots.txt": "robots.txt",
}
INDEX_PAGE = "index.html"


def _subpath(path: str, prefix: str) -> Optional[str]:
    if path == prefix:
        return ""
    if path.startswith(prefix + "/"):
        return path[len(prefix) + 1:].strip("/")
    return None


class RequestClassifier:
    def __init__(self, upload_page_path: str):
        # config layer guarantees exactly one leading '/'
        self.upload_page_path = upload_page_path

    def static_filename(self, path: str) -> Optional[str]:
        """Canonical static filename for an alias path, ``None`` if not an alias."""
        if path in _FIXED_STATIC:
            return _FIXED_STATIC[path]
        if path in (self.upload_page_path, self.upload_page_path + ".html", "/index.html", "/"):
            return INDEX_PAGE
        return None

    def classify(self, method: str, path: str) -> RouteMatch:
        method = method.upper()

        if method == "OPTIONS":
            return RouteMatch(RouteKind.PREFLIGHT)

        if path == "/" and self.upload_page_path != "/":
            return RouteMatch(RouteKind.REDIRECT)

        if path == "/upload" and method == "POST":
            return RouteMatch(RouteKind.UPLOAD)

        if method == "GET":
            subpath = _subpath(path, "/images")
            if subpath is not None:
                return RouteMatch(RouteKind.LIST_IMAGES, subpath)

        subpath = _subpath(path, "/carousel")
        if subpath is not None:
            return RouteMatch(RouteKind.CAROUSEL, subpath)

        filename = self.static_filename(path)
        if filename is not None:
            return RouteMatch(RouteKind.STATIC, filename)

        if method == "GET" and is_image_file(path[1:]):
            storage_path = normalize_storage_path(path)
            if storage_path:
                return RouteMatch(RouteKind.IMAGE, storage_path)

        return RouteMatch(RouteKind.NOT_FOUND)
