"""目录缓存文件读写。

每个目录源在磁盘上对应两个文件：<cache_file> 与 <cache_file>.minisig。
新鲜度完全由文件修改时间决定，没有额外的元数据文件。
"""

import contextlib
import os
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from loguru import logger

from src.modules.sources.domain.entities import decode_payload
from src.modules.sources.domain.exceptions import CachePersistError, CacheReadError

CACHE_FILE_MODE = 0o644


@dataclass(frozen=True)
class CachedFile:
    """A cache file's content and last modification time."""

    content: str
    modified_at: datetime


class FileCacheStore:
    """Filesystem cache with atomic replace semantics."""

    def read_if_present(self, path: str) -> CachedFile | None:
        """读取缓存文件。

        Returns:
            文件不存在或无法 stat 时返回 None

        Raises:
            CacheReadError: 文件存在但读取失败
        """
        file_path = Path(path)
        try:
            stat = file_path.stat()
        except OSError:
            return None
        try:
            data = file_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheReadError(f"Unable to read cache file [{path}]: {e}") from e
        return CachedFile(
            content=decode_payload(data),
            modified_at=datetime.fromtimestamp(stat.st_mtime, UTC),
        )

    def atomic_write(self, path: str, data: bytes) -> None:
        """先写临时文件再 rename，读者不会看到写了一半的文件。"""
        file_path = Path(path)
        tmp_name: str | None = None
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, CACHE_FILE_MODE)
            os.replace(tmp_name, file_path)
            tmp_name = None
        except OSError as e:
            raise CachePersistError(f"{path}: {e}") from e
        finally:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.remove(tmp_name)

    def delete(self, path: str) -> None:
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Unable to remove cache file [{path}]: {e}")

    @staticmethod
    def remaining_freshness(
        cached: CachedFile, window: timedelta, now: datetime
    ) -> timedelta:
        """新鲜度窗口剩余时间，已过期时为 0。"""
        elapsed = now - cached.modified_at
        if elapsed < window:
            return window - elapsed
        return timedelta(0)
