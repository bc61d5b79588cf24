"""Fetcher domain interfaces and models."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from src.modules.sources.domain.exceptions import SourceFetchError


@dataclass
class FetchOutcome:
    """抓取结果封装。

    delay 为距离下一次允许刷新的时间：
    - 缓存命中：新鲜度窗口剩余时间（已过期则为 0）
    - 网络抓取成功：完整窗口
    - 失败：最小重试间隔
    """

    content: str | None
    served_from_cache: bool
    delay: timedelta
    error: SourceFetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def from_cache(cls, content: str, delay: timedelta) -> "FetchOutcome":
        return cls(content=content, served_from_cache=True, delay=delay)

    @classmethod
    def fetched(cls, content: str, delay: timedelta) -> "FetchOutcome":
        return cls(content=content, served_from_cache=False, delay=delay)

    @classmethod
    def failed(cls, error: SourceFetchError, delay: timedelta) -> "FetchOutcome":
        return cls(content=None, served_from_cache=False, delay=delay, error=error)


class CachedFetcher(Protocol):
    def fetch_with_cache(self, url: str, cache_file: str) -> FetchOutcome: ...

    def close(self) -> None: ...
