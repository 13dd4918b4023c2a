"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request

from api.dependencies import get_bounded_cache, get_response_cache
from api.middleware import (
    CORSHeadersMiddleware,
    ErrorBoundaryMiddleware,
    LoggingMiddleware,
    RateLimitMiddleware,
    RequestIDMiddleware,
)
from api.routes import edge
from application.ports.storage import StoragePort
from application.routing import RequestClassifier
from application.services.image_fetch_service import ImageFetchService
from application.services.image_list_service import ImageListService
from application.services.rate_limiter import RateLimiter
from application.services.upload_service import ImageUploadService
from application.static_assets import StaticAssetTable
from core.config import Settings, settings as default_settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import json_response, success_response
from infrastructure.cache import BoundedCache, InMemoryResponseCache, ResponseCache
from infrastructure.external.storage import create_storage_client, get_storage_config


# 初始化日志：在入口处显式配置
configure_logging()
logger = get_logger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "api" / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    storage = app.state.storage
    # 健康检查只记录结果，后端暂时不可用不阻止启动
    if await storage.health_check():
        logger.info("storage_health_check_passed", message="Storage health check passed")
    else:
        logger.warning("storage_health_check_failed", message="Storage backend is not reachable")

    yield

    close = getattr(storage, "close", None)
    if callable(close):
        await close()
        logger.info("storage_shutdown", message="Storage client closed")
    logger.info("application_shutdown", message="Application shutdown")


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[StoragePort] = None,
    response_cache: Optional[ResponseCache] = None,
) -> FastAPI:
    """
    装配应用：所有组件显式构造并挂在 app.state 上，测试可替换存储与边缘缓存

    Args:
        settings: 配置，默认读取环境变量
        storage: 存储后端，默认 WebDAV 客户端
        response_cache: 边缘响应缓存，默认进程内实现（edge_cache.enabled=False 时关闭）
    """
    settings = settings or default_settings
    storage = storage or create_storage_client(get_storage_config(settings))

    cache = BoundedCache(max_entries=settings.cache.max_entries, name="shared")
    if response_cache is None and settings.edge_cache.enabled:
        response_cache = InMemoryResponseCache(
            max_entries=settings.edge_cache.max_entries,
            max_body_bytes=settings.edge_cache.max_body_bytes,
            max_total_bytes=settings.edge_cache.max_total_bytes,
        )

    limiter = RateLimiter(
        cache,
        max_requests=settings.rate_limit.max_requests,
        window_seconds=settings.rate_limit.window_seconds,
    )
    image_lists = ImageListService(storage, cache, ttl_seconds=settings.cache.image_list_ttl_seconds)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="WebDAV 图片上传与分发边缘服务",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.settings = settings
    app.state.storage = storage
    app.state.cache = cache
    app.state.response_cache = response_cache
    app.state.rate_limiter = limiter
    app.state.classifier = RequestClassifier(settings.UPLOAD_PAGE_PATH)
    app.state.static_assets = StaticAssetTable.from_directory(STATIC_DIR)
    app.state.image_list_service = image_lists
    app.state.image_fetch_service = ImageFetchService(storage)
    app.state.upload_service = ImageUploadService(
        storage,
        image_lists,
        max_file_size=settings.upload.max_file_size,
        allowed_types=settings.upload.allowed_types,
        max_concurrency=settings.upload.max_concurrency,
        max_files=settings.upload.max_files,
    )

    # 添加中间件（注意顺序：从下往上执行）
    # 1. 限流（最内层，路由分类之前执行）
    app.add_middleware(
        RateLimitMiddleware,
        limiter=limiter,
        cache=cache,
        client_ip_header=settings.rate_limit.client_ip_header,
        enabled=settings.rate_limit.enabled,
    )
    # 2. 日志中间件（依赖request_id）
    app.add_middleware(LoggingMiddleware)
    # 3. Request ID中间件（为后续中间件提供request_id）
    app.add_middleware(RequestIDMiddleware, client_ip_header=settings.rate_limit.client_ip_header)
    # 4. 错误边界（未捕获异常 -> 500 JSON，不再抛给服务器）
    app.add_middleware(ErrorBoundaryMiddleware, debug=settings.DEBUG)
    # 5. CORS 头（最外层，覆盖所有响应）
    app.add_middleware(CORSHeadersMiddleware)

    # 注册全局异常处理器
    register_exception_handlers(app)

    # 健康检查（必须先于通配路由注册）
    @app.get("/health", include_in_schema=False)
    async def health_check(request: Request):
        """健康检查端点（不访问存储后端）"""
        cache = get_bounded_cache(request)
        edge_cache = get_response_cache(request)
        return json_response(
            success_response(
                status="healthy",
                version=settings.VERSION,
                cache={"size": len(cache), **cache.metrics.snapshot()},
                edge_cache={
                    "enabled": edge_cache is not None,
                    "size": len(edge_cache) if hasattr(edge_cache, "__len__") else None,
                },
            ),
            no_store=True,
        )

    app.include_router(edge.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG,
        log_level="debug" if default_settings.DEBUG else "info",
        proxy_headers=True,
    )
