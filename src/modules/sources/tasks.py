"""目录源 Celery 任务。

由 Celery Beat 周期性调用，保持缓存新鲜，不阻塞前台请求。
"""

from datetime import UTC, datetime

from celery import shared_task
from loguru import logger

from src.core.infrastructure.celery.queues import Queues
from src.core.infrastructure.logging import get_business_logger


@shared_task(
    name="src.modules.sources.tasks.prefetch_due_sources",
    bind=True,
    max_retries=0,  # 调度任务不重试
    queue=Queues.PREFETCH,
)
def prefetch_due_sources(_self: object) -> dict[str, int]:
    """预取到期的目录与签名。

    worker 首次运行时先完整加载一次所有配置源，以获得预取记录。
    """
    from src.modules.sources.infrastructure.dependencies import (
        get_prefetch_scheduler,
        get_source_catalog_service,
    )

    scheduler = get_prefetch_scheduler()
    if not scheduler.records:
        logger.info("Bootstrapping prefetch records from configured sources")
        get_source_catalog_service().load_all()

    now = datetime.now(UTC)
    report = scheduler.run_due(now)

    next_wakeup = scheduler.next_wakeup()
    get_business_logger().info(
        "sources_prefetch_completed",
        refreshed=len(report.refreshed),
        failed=len(report.failed),
        next_wakeup=next_wakeup.isoformat() if next_wakeup else None,
    )
    return {"refreshed": len(report.refreshed), "failed": len(report.failed)}
