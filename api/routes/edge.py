"""边缘路由：一个通配路由承接所有请求，按 RequestClassifier 的结果分派。"""
from __future__ import annotations

from typing import AsyncIterator, Optional
from urllib.parse import quote

from fastapi import APIRouter, Request
from starlette.background import BackgroundTask
from starlette.datastructures import UploadFile
from starlette.responses import RedirectResponse, Response, StreamingResponse

from api.dependencies import (
    get_classifier,
    get_image_fetch_service,
    get_image_list_service,
    get_response_cache,
    get_settings,
    get_static_assets,
    get_upload_service,
    request_origin,
)
from application.dto import ImageItemDTO, ImageListResponseDTO, UploadedFileDTO, UploadResponseDTO
from application.ports.storage import DownloadStream
from application.routing import RouteKind, RouteMatch
from application.services.upload_service import IncomingFile
from core.logging_config import get_logger
from core.response import CORS_ALLOW_ORIGIN, CORS_PREFLIGHT_HEADERS, NO_STORE, json_response
from domain.common.exceptions import RouteNotFoundException
from infrastructure.cache import CachedResponse, ResponseCache

logger = get_logger(__name__)

router = APIRouter()

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

UPLOAD_FIELD = "file"

# 不写入边缘缓存的逐请求头
_UNCACHED_HEADERS = {"content-length", "x-cache"}


@router.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
async def dispatch(request: Request, full_path: str):
    match = get_classifier(request).classify(request.method, request.url.path)
    handler = _HANDLERS[match.kind]
    return await handler(request, match)


async def _preflight(request: Request, match: RouteMatch) -> Response:
    return Response(status_code=204, headers=CORS_PREFLIGHT_HEADERS)


async def _redirect(request: Request, match: RouteMatch) -> Response:
    return RedirectResponse(get_settings(request).ROOT_REDIRECT_URL, status_code=302)


async def _upload(request: Request, match: RouteMatch) -> Response:
    form = await request.form()
    try:
        incoming = [
            IncomingFile(
                filename=item.filename or "unnamed",
                content_type=item.content_type,
                read=item.read,
                size=item.size,
            )
            for item in form.getlist(UPLOAD_FIELD)
            if isinstance(item, UploadFile)
        ]
        report = await get_upload_service(request).upload(incoming, request_origin(request))
    finally:
        await form.close()

    body = UploadResponseDTO(
        files=[UploadedFileDTO.from_descriptor(d) for d in report.files],
        errors=report.errors or None,
    )
    return json_response(body.to_json(), no_store=True)


async def _list_images(request: Request, match: RouteMatch) -> Response:
    listing = await get_image_list_service(request).list_images(match.param)
    origin = request_origin(request)
    body = ImageListResponseDTO(
        files=[ImageItemDTO(url=f"{origin}/{quote(entry.path)}", name=entry.name) for entry in listing.entries]
    )
    return json_response(body.to_json())


async def _carousel(request: Request, match: RouteMatch) -> Response:
    assets = get_static_assets(request)
    if not assets.has_carousel:
        raise RouteNotFoundException(request.url.path)
    return Response(
        content=assets.render_carousel(match.param),
        media_type="text/html",
        headers={**CORS_ALLOW_ORIGIN, **NO_STORE},
    )


async def _static(request: Request, match: RouteMatch) -> Response:
    asset = get_static_assets(request).get(match.param)
    if asset is None:
        raise RouteNotFoundException(request.url.path)
    return Response(content=asset.content, media_type=asset.content_type, headers=CORS_ALLOW_ORIGIN)


async def _image(request: Request, match: RouteMatch) -> Response:
    cache = get_response_cache(request)
    cache_key = str(request.url)

    if cache is not None:
        hit = await cache.match(cache_key)
        if hit is not None:
            logger.debug("edge_cache_hit", path=match.param)
            return Response(
                content=hit.body,
                status_code=hit.status_code,
                headers={**dict(hit.headers), "X-Cache": "HIT"},
            )

    payload = await get_image_fetch_service(request).fetch(match.param)
    headers = {**payload.headers, **CORS_ALLOW_ORIGIN, "X-Cache": "MISS"}

    if cache is None:
        return StreamingResponse(
            _passthrough(payload.stream),
            headers=headers,
            background=BackgroundTask(payload.stream.aclose),
        )

    capture = _BodyCapture(payload.stream, get_settings(request).edge_cache.max_body_bytes)
    cached_headers = tuple((k, v) for k, v in headers.items() if k.lower() not in _UNCACHED_HEADERS)
    return StreamingResponse(
        capture,
        headers=headers,
        # 响应体发送完毕后才执行，缓存写入不阻塞也不影响客户端响应
        background=BackgroundTask(_populate_edge_cache, cache, cache_key, cached_headers, capture),
    )


async def _not_found(request: Request, match: RouteMatch) -> Response:
    raise RouteNotFoundException(request.url.path)


_HANDLERS = {
    RouteKind.PREFLIGHT: _preflight,
    RouteKind.REDIRECT: _redirect,
    RouteKind.UPLOAD: _upload,
    RouteKind.LIST_IMAGES: _list_images,
    RouteKind.CAROUSEL: _carousel,
    RouteKind.STATIC: _static,
    RouteKind.IMAGE: _image,
    RouteKind.NOT_FOUND: _not_found,
}


async def _passthrough(stream: DownloadStream) -> AsyncIterator[bytes]:
    async for chunk in stream.chunks:
        yield chunk


class _BodyCapture:
    """边转发边收集响应体；超过上限后放弃收集但继续转发。"""

    def __init__(self, stream: DownloadStream, limit: int):
        self._stream = stream
        self._limit = limit
        self._buffer = bytearray()
        self.cacheable = True
        self.complete = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._stream.chunks:
                if self.cacheable:
                    if len(self._buffer) + len(chunk) > self._limit:
                        self.cacheable = False
                        self._buffer.clear()
                    else:
                        self._buffer.extend(chunk)
                yield chunk
            self.complete = True
        finally:
            await self._stream.aclose()

    @property
    def body(self) -> Optional[bytes]:
        if self.complete and self.cacheable:
            return bytes(self._buffer)
        return None


async def _populate_edge_cache(
    cache: ResponseCache,
    key: str,
    headers: tuple[tuple[str, str], ...],
    capture: _BodyCapture,
) -> None:
    body = capture.body
    if body is None:
        return
    try:
        await cache.put(key, CachedResponse(status_code=200, headers=headers, body=body))
    except Exception as exc:
        # 缓存写入失败只记录，不影响已经发出的响应
        logger.warning("edge_cache_write_failed", key=key, error=str(exc))
