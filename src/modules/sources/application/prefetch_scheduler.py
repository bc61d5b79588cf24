"""预取调度簿记。

调度器本身不启动任何定时器，由外部时钟（Celery Beat）周期性调用 run_due。
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from loguru import logger

from src.modules.sources.application.source_manager import SourceManager
from src.modules.sources.domain.entities import RefreshRecord


@dataclass
class PrefetchReport:
    """一次 run_due 的结果。"""

    refreshed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.refreshed) + len(self.failed)


class PrefetchScheduler:
    """Keeps refresh records keyed by URL and refreshes the due ones."""

    def __init__(self, source_manager: SourceManager):
        self.source_manager = source_manager
        self._records: dict[str, RefreshRecord] = {}

    def register(self, records: Iterable[RefreshRecord]) -> None:
        """登记预取记录；同一 URL 的新记录覆盖旧记录。"""
        for record in records:
            self._records[record.url] = record

    @property
    def records(self) -> list[RefreshRecord]:
        return list(self._records.values())

    def due(self, now: datetime | None = None) -> list[RefreshRecord]:
        now = now or datetime.now(UTC)
        return sorted(
            (r for r in self._records.values() if r.is_due(now)),
            key=lambda r: r.next_eligible,
        )

    def next_wakeup(self) -> datetime | None:
        if not self._records:
            return None
        return min(r.next_eligible for r in self._records.values())

    def run_due(self, now: datetime | None = None) -> PrefetchReport:
        report = PrefetchReport()
        for record in self.due(now):
            error = self.source_manager.refresh_cached_url(record)
            if error is None:
                report.refreshed.append(record.url)
            else:
                logger.warning(f"Prefetch failed for [{record.url}]: {error.message}")
                report.failed[record.url] = error.message
        if report.total:
            logger.info(
                f"Prefetched {len(report.refreshed)} URLs, {len(report.failed)} failed"
            )
        return report
