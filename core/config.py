"""
配置文件 - 项目配置管理
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator


class WebDAVSettings(BaseModel):
    url: str = "http://localhost:8080/webdav"
    username: str = ""
    password: str = ""
    timeout: float = 30.0
    # 仅用于 PUT 的传输层重试（连接失败/超时）
    max_retry_attempts: int = 3

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class RateLimitSettings(BaseModel):
    enabled: bool = True
    max_requests: int = 100
    window_seconds: int = 60
    # 可信代理写入的客户端 IP 头，取第一个地址；缺失时所有客户端共享 "unknown"
    client_ip_header: str = "X-Forwarded-For"


class CacheSettings(BaseModel):
    max_entries: int = 1000
    image_list_ttl_seconds: int = 24 * 3600


class EdgeCacheSettings(BaseModel):
    enabled: bool = True
    max_entries: int = 256
    max_body_bytes: int = 10 * 1024 * 1024  # 超过该大小的图片不进入响应缓存
    max_total_bytes: int = 64 * 1024 * 1024  # 响应缓存中所有图片字节的上限


class UploadSettings(BaseModel):
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    allowed_types: list[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/gif", "image/webp"]
    )
    max_concurrency: int = 5
    max_files: int = 20


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="WebDAV Image Edge")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    # 为空时 DEBUG 下为 DEBUG，否则 INFO
    LOG_LEVEL: Optional[str] = Field(default=None)

    # 上传页面路径，始终规范为以单个 '/' 开头
    UPLOAD_PAGE_PATH: str = Field(default="upload", validate_default=True)
    # 根路径重定向目标（UPLOAD_PAGE_PATH 为 '/' 时不重定向）
    ROOT_REDIRECT_URL: str = Field(default="https://www.bing.com")

    # 分组配置：采用嵌套模型，环境变量形如 WEBDAV__URL
    webdav: WebDAVSettings = Field(default_factory=WebDAVSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    edge_cache: EdgeCacheSettings = Field(default_factory=EdgeCacheSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
        frozen=True,
    )

    @field_validator("UPLOAD_PAGE_PATH", mode="before")
    @classmethod
    def _normalize_upload_page_path(cls, v):
        """确保以 '/' 开头并去掉多余的前导 '/'，空值回退为 /upload。"""
        s = (v or "").strip() if isinstance(v, str) else v
        if not s:
            s = "upload"
        return "/" + s.lstrip("/")


settings = Settings()
