"""Immutable table of static payloads plus the templated carousel page."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Optional

from jinja2 import Environment, StrictUndefined, Template

from domain.image import content_type_for

CAROUSEL_TEMPLATE = "carousel.html"


@dataclass(frozen=True)
class StaticAsset:
    filename: str
    content: bytes
    content_type: str


class StaticAssetTable(Mapping):
    """filename -> StaticAsset, fixed once built.

    The carousel page is a Jinja2 template; its subpath is injected through
    the ``tojson`` filter so it always lands in the script as an escaped
    string literal.
    """

    def __init__(self, assets: Mapping[str, bytes], carousel_template: Optional[str] = None):
        self._assets = MappingProxyType({
            name: StaticAsset(name, content, content_type_for(name))
            for name, content in assets.items()
        })
        self._carousel: Optional[Template] = None
        if carousel_template is not None:
            env = Environment(autoescape=True, undefined=StrictUndefined)
            self._carousel = env.from_string(carousel_template)

    @classmethod
    def from_directory(cls, directory: Path) -> "StaticAssetTable":
        assets: dict[str, bytes] = {}
        template: Optional[str] = None
        for path in sorted(directory.iterdir()):
            if not path.is_file():
                continue
            if path.name == CAROUSEL_TEMPLATE:
                template = path.read_text(encoding="utf-8")
            else:
                assets[path.name] = path.read_bytes()
        return cls(assets, template)

    def __getitem__(self, filename: str) -> StaticAsset:
        return self._assets[filename]

    def __iter__(self) -> Iterator[str]:
        return iter(self._assets)

    def __len__(self) -> int:
        return len(self._assets)

    @property
    def has_carousel(self) -> bool:
        return self._carousel is not None

    def render_carousel(self, subpath: str) -> bytes:
        if self._carousel is None:
            raise KeyError(CAROUSEL_TEMPLATE)
        return self._carousel.render(subpath=subpath).encode("utf-8")
