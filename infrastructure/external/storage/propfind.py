"""Parsing of WebDAV PROPFIND multistatus bodies."""
from __future__ import annotations

import xml.etree.ElementTree as ET
from urllib.parse import unquote, urlparse

from application.ports.storage import DirectoryEntry
from .exceptions import ResponseParseError

DAV_NS = "{DAV:}"

PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop><d:resourcetype/></d:prop></d:propfind>'
)


def _entry_path(href: str) -> str:
    # href may be absolute (http://host/dav/a.jpg) or a bare path (/dav/a.jpg)
    return unquote(urlparse(href).path)


def parse_multistatus(body: bytes | str, request_path: str = "") -> list[DirectoryEntry]:
    """Return the children listed in a 207 body, in document order.

    The entry describing the requested collection itself is dropped.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise ResponseParseError(f"Invalid PROPFIND response: {exc}") from exc

    own_path = unquote(request_path).rstrip("/")
    entries: list[DirectoryEntry] = []
    for response in root.iter(f"{DAV_NS}response"):
        href_el = response.find(f"{DAV_NS}href")
        if href_el is None or not (href_el.text or "").strip():
            continue
        href = href_el.text.strip()
        path = _entry_path(href)
        if own_path and path.rstrip("/") == own_path:
            continue
        is_collection = response.find(f".//{DAV_NS}resourcetype/{DAV_NS}collection") is not None
        name = path.rstrip("/").rsplit("/", 1)[-1]
        if not name:
            continue
        entries.append(
            DirectoryEntry(
                href=href,
                name=name,
                is_directory=href.endswith("/") or is_collection,
            )
        )
    return entries
