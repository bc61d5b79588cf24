"""缓存文件读写单元测试。"""

import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from src.modules.sources.domain.exceptions import CachePersistError, CacheReadError
from src.modules.sources.infrastructure.cache_store import CachedFile, FileCacheStore


class TestReadIfPresent:
    def test_missing_file_returns_none(self, tmp_path: Path):
        store = FileCacheStore()
        assert store.read_if_present(str(tmp_path / "missing.md")) is None

    def test_reads_content_and_mtime(self, tmp_path: Path, set_mtime):
        path = tmp_path / "catalog.md"
        path.write_text("## alpha\n", encoding="utf-8")
        when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
        set_mtime(path, when)

        cached = FileCacheStore().read_if_present(str(path))

        assert cached is not None
        assert cached.content == "## alpha\n"
        assert cached.modified_at == when

    def test_unreadable_file_raises_read_error(self, tmp_path: Path):
        # 目录可以 stat，但不能当文件读取
        directory = tmp_path / "catalog.md"
        directory.mkdir()

        with pytest.raises(CacheReadError):
            FileCacheStore().read_if_present(str(directory))


class TestAtomicWrite:
    def test_creates_parent_directories(self, tmp_path: Path):
        path = tmp_path / "nested" / "dir" / "catalog.md"
        FileCacheStore().atomic_write(str(path), b"content")
        assert path.read_bytes() == b"content"

    def test_replaces_existing_file_without_leftovers(self, tmp_path: Path):
        path = tmp_path / "catalog.md"
        path.write_bytes(b"old")

        FileCacheStore().atomic_write(str(path), b"new")

        assert path.read_bytes() == b"new"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["catalog.md"]

    def test_file_mode(self, tmp_path: Path):
        path = tmp_path / "catalog.md"
        FileCacheStore().atomic_write(str(path), b"x")
        assert path.stat().st_mode & 0o777 == 0o644

    def test_failure_raises_persist_error(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(CachePersistError):
            FileCacheStore().atomic_write(str(blocker / "catalog.md"), b"x")

    def test_write_refreshes_mtime(self, tmp_path: Path, set_mtime):
        path = tmp_path / "catalog.md"
        path.write_bytes(b"x")
        set_mtime(path, datetime(2020, 1, 1, tzinfo=UTC))

        FileCacheStore().atomic_write(str(path), b"x")

        modified = datetime.fromtimestamp(os.stat(path).st_mtime, UTC)
        assert modified > datetime(2021, 1, 1, tzinfo=UTC)


class TestDelete:
    def test_delete_existing(self, tmp_path: Path):
        path = tmp_path / "catalog.md"
        path.write_text("x")
        FileCacheStore().delete(str(path))
        assert not path.exists()

    def test_delete_missing_is_not_an_error(self, tmp_path: Path):
        FileCacheStore().delete(str(tmp_path / "missing.md"))


class TestRemainingFreshness:
    def test_fresh_file(self):
        now = datetime(2024, 1, 2, tzinfo=UTC)
        cached = CachedFile(content="", modified_at=now - timedelta(hours=20))
        delay = FileCacheStore.remaining_freshness(cached, timedelta(hours=24), now)
        assert delay == timedelta(hours=4)

    def test_stale_file_is_floored_at_zero(self):
        now = datetime(2024, 1, 2, tzinfo=UTC)
        cached = CachedFile(content="", modified_at=now - timedelta(hours=30))
        delay = FileCacheStore.remaining_freshness(cached, timedelta(hours=24), now)
        assert delay == timedelta(0)
