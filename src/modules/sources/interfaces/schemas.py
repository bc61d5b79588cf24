"""Source API schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SourceFormat(str, Enum):
    """Source format enum for API layer."""

    V1 = "v1"
    V2 = "v2"


class RefreshRecordResponse(BaseModel):
    """Prefetch record response."""

    url: str = Field(..., description="预取 URL")
    cache_file: str = Field(..., description="缓存文件")
    next_eligible: datetime = Field(..., description="下次可刷新时间")


class SourceResponse(BaseModel):
    """Source response."""

    name: str = Field(..., description="源名称")
    url: str = Field(..., description="目录地址")
    format: SourceFormat = Field(..., description="目录格式")
    loaded: bool = Field(..., description="是否已成功加载")
    entries_count: int = Field(..., description="条目数")
    error: str | None = Field(None, description="最近一次错误")
    error_code: str | None = Field(None, description="错误代码")
    loaded_at: datetime | None = Field(None, description="最近加载时间")
    refresh_records: list[RefreshRecordResponse] = Field(default_factory=list)


class ServerEntryResponse(BaseModel):
    """Catalog entry response."""

    name: str = Field(..., description="服务器名称")
    stamp: str = Field(..., description="sdns:// stamp")
    protocol: str = Field(..., description="协议")
    dnssec: bool = Field(..., description="是否支持 DNSSEC")
    no_log: bool = Field(..., description="是否声明不记录日志")
