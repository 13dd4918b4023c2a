"""
API依赖项 - 从 app.state 取出启动时装配好的组件
"""
from typing import Optional

from fastapi import Request

from application.routing import RequestClassifier
from application.services.image_fetch_service import ImageFetchService
from application.services.image_list_service import ImageListService
from application.services.upload_service import ImageUploadService
from application.static_assets import StaticAssetTable
from core.config import Settings
from infrastructure.cache import BoundedCache, ResponseCache


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_classifier(request: Request) -> RequestClassifier:
    return request.app.state.classifier


def get_static_assets(request: Request) -> StaticAssetTable:
    return request.app.state.static_assets


def get_upload_service(request: Request) -> ImageUploadService:
    return request.app.state.upload_service


def get_image_list_service(request: Request) -> ImageListService:
    return request.app.state.image_list_service


def get_image_fetch_service(request: Request) -> ImageFetchService:
    return request.app.state.image_fetch_service


def get_bounded_cache(request: Request) -> BoundedCache:
    return request.app.state.cache


def get_response_cache(request: Request) -> Optional[ResponseCache]:
    """None 表示边缘缓存被关闭"""
    return request.app.state.response_cache


def request_origin(request: Request) -> str:
    """服务对外的 origin（scheme://host[:port]），不带结尾 '/'"""
    return str(request.base_url).rstrip("/")
