"""WebDAV storage client (authenticated PUT / GET / PROPFIND over httpx)."""
from __future__ import annotations

import time
from typing import Optional
from urllib.parse import quote, urlparse

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from application.ports.storage import DirectoryEntry, DownloadStream
from core.logging_config import get_logger
from .config import StorageConfig
from .exceptions import (
    StorageError,
    NotFoundError,
    PermissionDeniedError,
    TransientError,
)
from .propfind import PROPFIND_BODY, parse_multistatus

logger = get_logger(__name__)

TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class WebDAVStorageClient:
    """Stateless apart from its config and pooled HTTP connection.

    Safe to share between concurrent requests.
    """

    def __init__(
        self,
        config: StorageConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: Storage configuration
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    async def client(self) -> httpx.AsyncClient:
        """获取或创建HTTP客户端"""
        if self._client is None:
            auth = None
            if self.config.username or self.config.password:
                auth = httpx.BasicAuth(self.config.username, self.config.password)
            self._client = httpx.AsyncClient(
                auth=auth,
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _url(self, path: str, *, collection: bool = False) -> str:
        clean = path.strip("/")
        url = f"{self.config.base_url}/{quote(clean, safe='/')}" if clean else f"{self.config.base_url}/"
        if collection and not url.endswith("/"):
            url += "/"
        return url

    @staticmethod
    def _raise_for_status(status_code: int, operation: str, path: str) -> None:
        message = f"WebDAV {operation} {path or '/'} failed with status {status_code}"
        if status_code == 404:
            raise NotFoundError(message, status_code)
        if status_code in (401, 403):
            raise PermissionDeniedError(message, status_code)
        if status_code in TRANSIENT_STATUS_CODES:
            raise TransientError(message, status_code)
        raise StorageError(message, status_code)

    async def put(self, name: str, data: bytes, content_type: Optional[str] = None) -> None:
        """Upload ``data`` as ``name``; connection failures are retried, HTTP errors are not."""
        url = self._url(name)
        client = await self.client
        headers = {"Content-Type": content_type or "application/octet-stream"}
        start = time.time()

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self.config.max_retry_attempts)),
            wait=wait_exponential(multiplier=0.2, max=2),
            retry=retry_if_exception_type(httpx.TransportError),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await client.put(url, content=data, headers=headers)
        except httpx.TransportError as exc:
            logger.error("webdav_request_failed", operation="put", path=name, error=str(exc))
            raise TransientError(f"WebDAV put {name} failed: {exc}") from exc

        if not response.is_success:
            logger.error("webdav_request_failed", operation="put", path=name, status_code=response.status_code)
            self._raise_for_status(response.status_code, "put", name)

        logger.info(
            "webdav_put_completed",
            path=name,
            size=len(data),
            elapsed_ms=f"{(time.time() - start) * 1000:.2f}",
        )

    async def get(self, name: str) -> DownloadStream:
        """Open a streamed download; the returned stream owns the HTTP response."""
        client = await self.client
        request = client.build_request("GET", self._url(name))
        try:
            response = await client.send(request, stream=True)
        except httpx.TransportError as exc:
            logger.error("webdav_request_failed", operation="get", path=name, error=str(exc))
            raise TransientError(f"WebDAV get {name} failed: {exc}") from exc

        if not response.is_success:
            await response.aclose()
            logger.warning("webdav_request_failed", operation="get", path=name, status_code=response.status_code)
            self._raise_for_status(response.status_code, "get", name)

        length = response.headers.get("content-length")
        return DownloadStream(
            chunks=response.aiter_bytes(),
            content_length=int(length) if length and length.isdigit() else None,
            close=response.aclose,
        )

    async def list(self, path: str = "") -> list[DirectoryEntry]:
        """PROPFIND (Depth: 1) on a collection and return its direct children."""
        url = self._url(path, collection=True)
        client = await self.client
        try:
            response = await client.request(
                "PROPFIND",
                url,
                content=PROPFIND_BODY,
                headers={"Depth": "1", "Content-Type": "application/xml; charset=utf-8"},
            )
        except httpx.TransportError as exc:
            logger.error("webdav_request_failed", operation="list", path=path, error=str(exc))
            raise TransientError(f"WebDAV list {path or '/'} failed: {exc}") from exc

        if not response.is_success:
            logger.warning("webdav_request_failed", operation="list", path=path, status_code=response.status_code)
            self._raise_for_status(response.status_code, "list", path)

        entries = parse_multistatus(response.content, urlparse(url).path)
        logger.debug("webdav_list_completed", path=path, entries=len(entries))
        return entries

    async def health_check(self) -> bool:
        """PROPFIND (Depth: 0) on the base URL."""
        client = await self.client
        try:
            response = await client.request(
                "PROPFIND",
                self._url("", collection=True),
                content=PROPFIND_BODY,
                headers={"Depth": "0", "Content-Type": "application/xml; charset=utf-8"},
            )
        except httpx.TransportError as exc:
            logger.warning("webdav_health_check_failed", error=str(exc))
            return False
        return response.is_success
