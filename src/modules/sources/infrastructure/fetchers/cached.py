"""带缓存的 URL 抓取器。

缓存命中时无论是否过期都直接返回缓存内容（stale-while-scheduled），
过期只会缩短下一次预取的等待时间，不会在本次调用中同步重新抓取。
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import httpx
from loguru import logger

from src.core.config import settings
from src.modules.sources.domain.entities import decode_payload
from src.modules.sources.domain.exceptions import CacheReadError, SourceFetchError
from src.modules.sources.domain.fetcher import FetchOutcome
from src.modules.sources.infrastructure.cache_store import FileCacheStore


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CachedURLFetcher:
    """Serve a URL from its cache file, or download it when absent."""

    def __init__(
        self,
        cache_store: FileCacheStore | None = None,
        client: httpx.Client | None = None,
        freshness_window: timedelta | None = None,
        retry_delay: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.cache_store = cache_store or FileCacheStore()
        self._client = client
        self.freshness_window = freshness_window or timedelta(
            seconds=settings.SOURCES_UPDATE_DELAY_SEC
        )
        self.retry_delay = retry_delay or timedelta(
            seconds=settings.SOURCES_RETRY_DELAY_SEC
        )
        self.clock = clock

    @property
    def client(self) -> httpx.Client:
        """获取 HTTP 客户端（延迟初始化）。"""
        if self._client is None:
            self._client = httpx.Client(
                timeout=settings.SOURCES_FETCH_TIMEOUT_SEC,
                follow_redirects=True,
                headers={"User-Agent": settings.SOURCES_USER_AGENT},
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def fetch_with_cache(self, url: str, cache_file: str) -> FetchOutcome:
        try:
            cached = self.cache_store.read_if_present(cache_file)
        except CacheReadError as e:
            logger.warning(f"{e.message}; falling back to [{url}]")
            cached = None

        if cached is not None:
            delay = self.cache_store.remaining_freshness(
                cached, self.freshness_window, self.clock()
            )
            if delay > timedelta(0):
                logger.debug(f"Cache file [{cache_file}] is still fresh")
            else:
                logger.debug(f"Cache file [{cache_file}] needs to be refreshed")
            logger.debug(f"Delay till next update: {delay}")
            return FetchOutcome.from_cache(cached.content, delay)

        return self._fetch_remote(url)

    def _fetch_remote(self, url: str) -> FetchOutcome:
        start_time = time.time()
        logger.info(f"Loading source information from URL [{url}]")
        try:
            response = self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Source fetch HTTP error for {url}: {e.response.status_code}"
            )
            return FetchOutcome.failed(
                SourceFetchError(
                    url,
                    f"Webserver returned code {e.response.status_code}",
                    status_code=e.response.status_code,
                ),
                self.retry_delay,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Source fetch error for {url}: {e}")
            return FetchOutcome.failed(SourceFetchError(url, str(e)), self.retry_delay)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(f"Fetched [{url}] ({len(response.content)} bytes, {duration_ms} ms)")
        return FetchOutcome.fetched(decode_payload(response.content), self.freshness_window)
