"""Logging configuration with structlog integration.

提供两种日志记录方式：
1. loguru: 用于一般调试日志
2. structlog: 用于关键业务事件的结构化日志
"""

import sys
from typing import Any

import structlog
from loguru import logger

from src.core.config import settings


def setup_logging() -> None:
    """Configure application logging with structlog and loguru."""
    # 配置 structlog
    _configure_structlog()

    # 配置 loguru
    _configure_loguru()

    logger.info(f"Logging configured with level: {settings.LOG_LEVEL}")


def _configure_structlog() -> None:
    """配置 structlog 处理器链。"""
    # 根据环境选择渲染器
    if settings.ENVIRONMENT == "local":
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _get_log_level_number(settings.LOG_LEVEL)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _configure_loguru() -> None:
    """配置 loguru。"""
    logger.remove()

    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
    )

    if settings.ENVIRONMENT != "local":
        logger.add(
            "logs/resolver_sources_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="30 days",
            level="INFO",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )


def _get_log_level_number(level: str) -> int:
    """将日志级别字符串转换为数字。"""
    levels = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    return levels.get(level.upper(), 20)


# ============================================================================
# 业务事件日志记录器
# ============================================================================


def get_business_logger() -> structlog.BoundLogger:
    """获取业务事件日志记录器。

    Usage:
        from src.core.infrastructure.logging import get_business_logger

        log = get_business_logger()
        log.info("source_prefetch_scheduled", url="...", next_eligible="...")
    """
    return structlog.get_logger("business")


class BusinessEvents:
    """业务事件日志助手类。

    提供统一的业务事件日志记录接口，确保事件格式一致。

    Usage:
        from src.core.infrastructure.logging import BusinessEvents

        BusinessEvents.source_loaded(url="https://...", entries=42)
    """

    _log = structlog.get_logger("business.events")

    @classmethod
    def source_loaded(
        cls,
        url: str,
        from_cache: bool,
        **extra: Any,
    ) -> None:
        """记录目录源加载成功事件。"""
        cls._log.info(
            "source_loaded",
            event_type="source",
            url=url,
            from_cache=from_cache,
            **extra,
        )

    @classmethod
    def source_fetch_failed(
        cls,
        url: str,
        error: str,
        **extra: Any,
    ) -> None:
        """记录源抓取失败事件。"""
        cls._log.warning(
            "source_fetch_failed",
            event_type="fetch_error",
            url=url,
            error=error,
            **extra,
        )

    @classmethod
    def source_verification_failed(
        cls,
        url: str,
        error: str,
        **extra: Any,
    ) -> None:
        """记录签名校验失败事件（缓存已作废）。"""
        cls._log.warning(
            "source_verification_failed",
            event_type="trust_error",
            url=url,
            error=error,
            **extra,
        )

    @classmethod
    def source_cache_persist_failed(
        cls,
        cache_file: str,
        error: str,
        **extra: Any,
    ) -> None:
        """记录缓存写入失败事件。"""
        cls._log.warning(
            "source_cache_persist_failed",
            event_type="cache_error",
            cache_file=cache_file,
            error=error,
            **extra,
        )

    @classmethod
    def source_prefetched(
        cls,
        url: str,
        success: bool,
        next_eligible: str,
        **extra: Any,
    ) -> None:
        """记录后台预取事件。"""
        level = "info" if success else "warning"
        getattr(cls._log, level)(
            "source_prefetched",
            event_type="prefetch",
            url=url,
            success=success,
            next_eligible=next_eligible,
            **extra,
        )
