#!/usr/bin/env python3
"""目录源检查脚本。

加载（缓存或网络）并校验所有配置的目录源，输出每个源的状态。
可作为运维脚本或监控探针使用。

使用方式：
    # 检查所有目录源
    python scripts/check_sources.py

    # 只检查特定目录源
    python scripts/check_sources.py --source public-resolvers

    # JSON 输出
    python scripts/check_sources.py --json

    # 退出码检查（用于 CI/CD）
    python scripts/check_sources.py --strict
"""

import argparse
import json
import sys
from datetime import UTC, datetime
from pathlib import Path

# 添加项目根目录到 Python 路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.domain.exceptions import DomainException  # noqa: E402
from src.modules.sources.application.services import LoadedSource  # noqa: E402
from src.modules.sources.infrastructure.dependencies import (  # noqa: E402
    get_source_catalog_service,
)


def _summarize(loaded: LoadedSource) -> dict:
    next_prefetch = min(
        (record.next_eligible for record in loaded.refresh_records), default=None
    )
    return {
        "status": "healthy" if loaded.ok else "unhealthy",
        "url": loaded.config.url,
        "format": loaded.config.format,
        "entries": len(loaded.entries),
        "next_prefetch": next_prefetch.isoformat() if next_prefetch else None,
        "error": loaded.error.message if loaded.error else None,
    }


def run_check(source: str | None = None) -> dict:
    """加载目录源并汇总结果。"""
    service = get_source_catalog_service()
    results = {
        "timestamp": datetime.now(UTC).isoformat(),
        "overall_status": "healthy",
        "sources": {},
    }

    if source:
        try:
            loaded = [service.reload(source)]
        except DomainException as e:
            results["overall_status"] = "unhealthy"
            results["sources"][source] = {"status": "error", "error": e.message}
            return results
    else:
        loaded = service.load_all()

    for item in loaded:
        results["sources"][item.name] = _summarize(item)

    statuses = [s["status"] for s in results["sources"].values()]
    if not statuses or all(s != "healthy" for s in statuses):
        results["overall_status"] = "unhealthy"
    elif any(s != "healthy" for s in statuses):
        results["overall_status"] = "degraded"

    return results


def print_result(result: dict, json_output: bool = False):
    """打印检查结果。"""
    if json_output:
        print(json.dumps(result, indent=2))
        return

    print(f"\n{'=' * 60}")
    print(f"Source Check Report - {result['timestamp']}")
    print(f"{'=' * 60}")
    print(f"\nOverall Status: {result['overall_status'].upper()}")
    print(f"\n{'-' * 40}")

    for name, info in result["sources"].items():
        print(f"{name}: {info['status']}")
        for key, value in info.items():
            if key != "status" and value is not None:
                print(f"    {key}: {value}")

    print(f"\n{'=' * 60}\n")


def main():
    """主函数。"""
    parser = argparse.ArgumentParser(description="目录源检查脚本")
    parser.add_argument(
        "--source",
        "-s",
        type=str,
        help="只检查特定目录源",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="输出 JSON 格式",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="严格模式：任何非 healthy 状态都返回非零退出码",
    )

    args = parser.parse_args()

    result = run_check(args.source)
    print_result(result, args.json)

    if args.strict and result["overall_status"] != "healthy":
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
