"""Source catalog application service."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from loguru import logger

from src.core.config import Settings, SourceSettings, settings
from src.core.domain.exceptions import DomainException
from src.modules.sources.application.prefetch_scheduler import PrefetchScheduler
from src.modules.sources.application.source_manager import SourceManager
from src.modules.sources.domain.entities import CatalogEntry, RefreshRecord, Source
from src.modules.sources.domain.exceptions import SourceNotFoundError


@dataclass
class LoadedSource:
    """某个配置源最近一次加载的结果。"""

    config: SourceSettings
    source: Source | None = None
    entries: list[CatalogEntry] = field(default_factory=list)
    refresh_records: list[RefreshRecord] = field(default_factory=list)
    error: DomainException | None = None
    loaded_at: datetime | None = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def ok(self) -> bool:
        return self.error is None and self.source is not None


class SourceCatalogService:
    """加载所有配置的目录源并保存解析结果。

    职责：
    - 通过 SourceManager 获取并校验目录
    - 解析出条目
    - 将预取记录交给 PrefetchScheduler（如果提供）
    """

    def __init__(
        self,
        source_manager: SourceManager,
        sources: list[SourceSettings] | None = None,
        scheduler: PrefetchScheduler | None = None,
        app_settings: Settings | None = None,
    ):
        self.source_manager = source_manager
        self.scheduler = scheduler
        self.settings = app_settings or settings
        configured = self.settings.SOURCES if sources is None else sources
        self._configs = {config.name: config for config in configured}
        self._loaded: dict[str, LoadedSource] = {}

    def load_all(self) -> list[LoadedSource]:
        return [self.reload(name) for name in self._configs]

    def reload(self, name: str) -> LoadedSource:
        config = self._get_config(name)
        result = self.source_manager.acquire(
            url=config.url,
            public_key=config.minisign_key,
            cache_file=self.settings.resolve_cache_file(config.cache_file),
            format_name=config.format,
            refresh_delay=timedelta(hours=config.refresh_delay_hours),
        )
        if self.scheduler is not None:
            self.scheduler.register(result.refresh_records)

        loaded = LoadedSource(
            config=config,
            source=result.source,
            refresh_records=result.refresh_records,
            error=result.error,
            loaded_at=datetime.now(UTC),
        )
        if result.source is not None:
            try:
                loaded.entries = self.source_manager.parse(result.source, config.prefix)
            except DomainException as e:
                logger.error(f"Unable to parse source [{config.name}]: {e.message}")
                loaded.error = e
        else:
            logger.warning(f"Unable to load source [{config.name}]: {result.error}")

        self._loaded[name] = loaded
        return loaded

    def list_sources(self) -> list[LoadedSource]:
        return [
            self._loaded.get(name) or LoadedSource(config=config)
            for name, config in self._configs.items()
        ]

    def get(self, name: str) -> LoadedSource:
        self._get_config(name)
        loaded = self._loaded.get(name)
        if loaded is None:
            loaded = self.reload(name)
        return loaded

    def get_entries(self, name: str) -> list[CatalogEntry]:
        return self.get(name).entries

    def _get_config(self, name: str) -> SourceSettings:
        config = self._configs.get(name)
        if config is None:
            raise SourceNotFoundError(name)
        return config
