"""Celery 队列定义。"""

from enum import StrEnum


class Queues(StrEnum):
    """Celery 队列枚举。"""

    PREFETCH = "q_prefetch"


# 任务名称模式 -> 队列
TASK_ROUTES = {
    "src.modules.sources.tasks.*": {"queue": Queues.PREFETCH},
}
