"""Storage service entry point."""
from functools import lru_cache
from typing import Optional

import httpx

from core.config import Settings, settings as default_settings
from core.logging_config import get_logger
from .config import StorageConfig
from .exceptions import (
    StorageError,
    NotFoundError,
    PermissionDeniedError,
    TransientError,
    ConfigurationError,
    ResponseParseError,
)
from .webdav import WebDAVStorageClient

logger = get_logger(__name__)


def get_storage_config(app_settings: Optional[Settings] = None) -> StorageConfig:
    """Assemble StorageConfig from settings.webdav (single source of truth).

    Args:
        app_settings: Settings instance, defaults to the process settings

    Returns:
        Storage configuration instance
    """
    s = (app_settings or default_settings).webdav
    return StorageConfig(
        base_url=s.url,
        username=s.username,
        password=s.password,
        timeout=s.timeout,
        max_retry_attempts=s.max_retry_attempts,
    )


@lru_cache
def _default_config() -> StorageConfig:
    return get_storage_config()


def create_storage_client(
    config: Optional[StorageConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> WebDAVStorageClient:
    """Build the WebDAV client; the HTTP connection pool opens lazily."""
    config = config or _default_config()
    if not config.base_url:
        raise ConfigurationError("WEBDAV__URL is required")
    client = WebDAVStorageClient(config, transport=transport)
    logger.info("storage_client_created", base_url=config.base_url, authenticated=bool(config.username))
    return client


# Export public interface
__all__ = [
    "get_storage_config",
    "create_storage_client",
    "StorageConfig",
    "WebDAVStorageClient",
    # Exceptions
    "StorageError",
    "NotFoundError",
    "PermissionDeniedError",
    "TransientError",
    "ConfigurationError",
    "ResponseParseError",
]