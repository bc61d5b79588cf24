"""Source module dependencies."""

from functools import lru_cache

from src.modules.sources.application.prefetch_scheduler import PrefetchScheduler
from src.modules.sources.application.services import SourceCatalogService
from src.modules.sources.application.source_manager import SourceManager
from src.modules.sources.infrastructure.cache_store import FileCacheStore
from src.modules.sources.infrastructure.fetchers.cached import CachedURLFetcher
from src.modules.sources.infrastructure.minisign import MinisignVerifier
from src.modules.stamps.domain.codec import DNSStampCodec


@lru_cache
def get_source_manager() -> SourceManager:
    cache_store = FileCacheStore()
    return SourceManager(
        fetcher=CachedURLFetcher(cache_store=cache_store),
        verifier=MinisignVerifier(),
        codec=DNSStampCodec(),
        cache_store=cache_store,
    )


@lru_cache
def get_prefetch_scheduler() -> PrefetchScheduler:
    return PrefetchScheduler(get_source_manager())


@lru_cache
def get_source_catalog_service() -> SourceCatalogService:
    return SourceCatalogService(
        source_manager=get_source_manager(),
        scheduler=get_prefetch_scheduler(),
    )
