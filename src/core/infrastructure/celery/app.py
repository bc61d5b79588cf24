"""Celery 应用配置。

- 使用 JSON 序列化
- Beat 周期性触发目录预取（调度器本身不持有定时器）
"""

from celery import Celery
from kombu import Exchange, Queue

from src.core.config import settings
from src.core.infrastructure.celery.queues import TASK_ROUTES, Queues

celery_app = Celery("resolver_sources")

celery_app.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.CELERY_ACCEPT_CONTENT,
    timezone=settings.TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 分钟硬超时
    task_soft_time_limit=240,  # 4 分钟软超时
    task_acks_late=True,
    result_expires=3600,
    # 预取记录保存在 worker 进程内存中，只使用单个 worker 进程
    worker_prefetch_multiplier=1,
    worker_concurrency=1,
)

default_exchange = Exchange("default", type="direct")
celery_app.conf.task_queues = (
    Queue(Queues.PREFETCH, default_exchange, routing_key=Queues.PREFETCH),
)
celery_app.conf.task_routes = TASK_ROUTES
celery_app.conf.task_default_queue = Queues.PREFETCH

celery_app.conf.beat_schedule = {
    "prefetch-due-sources": {
        "task": "src.modules.sources.tasks.prefetch_due_sources",
        "schedule": float(settings.SOURCES_PREFETCH_INTERVAL_SEC),
        "options": {"queue": Queues.PREFETCH},
    },
}

celery_app.autodiscover_tasks(["src.modules.sources"], related_name="tasks")
