"""Application configuration."""

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    AnyUrl,
    BaseModel,
    BeforeValidator,
    Field,
    computed_field,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",")]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class SourceSettings(BaseModel):
    """单个签名目录源的配置。"""

    name: str = Field(..., description="源名称")
    url: str = Field(..., description="目录下载地址，签名为 url + .minisig")
    minisign_key: str = Field(..., description="minisign 公钥（base64）")
    cache_file: str = Field(..., description="本地缓存文件路径")
    format: Literal["v1", "v2"] = Field(default="v2", description="目录格式")
    prefix: str = Field(default="", description="条目名称前缀")
    refresh_delay_hours: int = Field(default=72, description="刷新间隔提示（小时）")

    @field_validator("url")
    @classmethod
    def _validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must be a valid HTTP(S) URL")
        return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "resolverSources"
    SERVER_PORT: int = 8000
    ROOTPATH: str = ""
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "UTC"

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []
    CORS_ALLOW_METHODS: list[str] = ["GET", "POST"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    @computed_field
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    # Sources
    SOURCES_CACHE_DIR: str = "var/cache/sources"
    SOURCES_UPDATE_DELAY_SEC: int = 86400  # 24 hours freshness window
    SOURCES_RETRY_DELAY_SEC: int = 600  # 抓取失败后的最小重试间隔
    SOURCES_FETCH_TIMEOUT_SEC: float = 30.0
    SOURCES_USER_AGENT: str = "resolverSources/0.1 (+https://github.com/)"
    SOURCES_PREFETCH_INTERVAL_SEC: int = 60
    SOURCES: list[SourceSettings] = []

    def resolve_cache_file(self, cache_file: str) -> str:
        """相对路径的缓存文件解析到 SOURCES_CACHE_DIR 下。"""
        path = Path(cache_file)
        if path.is_absolute():
            return str(path)
        return str(Path(self.SOURCES_CACHE_DIR) / path)

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Celery Settings
    CELERY_BROKER_URL: str | None = None  # 默认使用 REDIS_URL
    CELERY_RESULT_BACKEND: str | None = None  # 默认使用 REDIS_URL
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    CELERY_ACCEPT_CONTENT: list[str] = ["json"]

    @computed_field
    @property
    def celery_broker_url(self) -> str:
        """获取 Celery Broker URL，默认使用 Redis URL。"""
        return self.CELERY_BROKER_URL or self.REDIS_URL

    @computed_field
    @property
    def celery_result_backend(self) -> str:
        """获取 Celery Result Backend URL，默认使用 Redis URL。"""
        return self.CELERY_RESULT_BACKEND or self.REDIS_URL

    @field_validator("SOURCES_UPDATE_DELAY_SEC", "SOURCES_RETRY_DELAY_SEC")
    @classmethod
    def _positive_delay(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("delay must be positive")
        return v


settings = Settings()
