"""Tests for upload directory accounting and cleanup."""

import os
from unittest.mock import patch

import pytest
from components.storage_lifecycle import RETENTION_PERIOD_NS, StorageManager

DAY_NS = 24 * 60 * 60 * 1_000_000_000
NOW_NS = 1_800_000_000 * 1_000_000_000


def make_file(directory, name, size, age_ns):
    path = directory / name
    path.write_bytes(b"x" * size)
    mtime = NOW_NS - age_ns
    os.utime(path, ns=(mtime, mtime))
    return path


@pytest.fixture
def upload_dir(tmp_path):
    directory = tmp_path / "uploads"
    directory.mkdir()
    return directory


class TestStats:
    def test_missing_directory_is_empty(self, tmp_path):
        info = StorageManager(str(tmp_path / "nope")).stats()
        assert info.total_files == 0
        assert info.total_size_bytes == 0
        assert info.files == []

    def test_counts_regular_files_only(self, upload_dir):
        make_file(upload_dir, "a.txt", 1024, DAY_NS)
        make_file(upload_dir, "b.pdf", 2048, DAY_NS)
        (upload_dir / "subdir").mkdir()

        info = StorageManager(str(upload_dir)).stats()

        assert info.total_files == 2
        assert info.total_size_bytes == 3072
        assert [f.name for f in info.files] == ["a.txt", "b.pdf"]
        assert info.files[0].size_bytes == 1024
        assert info.files[0].modified is not None

    def test_size_in_megabytes(self, upload_dir):
        make_file(upload_dir, "big.bin", 3 * 1024 * 1024 // 2, DAY_NS)
        info = StorageManager(str(upload_dir)).stats()
        assert info.total_size_mb == 1.5


class TestCleanup:
    def test_mixed_ages(self, upload_dir):
        make_file(upload_dir, "ten.txt", 100, 10 * DAY_NS)
        make_file(upload_dir, "twentynine.txt", 200, 29 * DAY_NS)
        make_file(upload_dir, "thirtyone.txt", 300, 31 * DAY_NS)

        result = StorageManager(str(upload_dir)).cleanup(now_ns=NOW_NS)

        assert result.deleted_files == 1
        assert result.freed_space_bytes == 300
        assert result.failed_files == []
        assert sorted(p.name for p in upload_dir.iterdir()) == [
            "ten.txt",
            "twentynine.txt",
        ]

    def test_boundary_exactly_at_cutoff_is_kept(self, upload_dir):
        make_file(upload_dir, "edge.txt", 10, RETENTION_PERIOD_NS)
        make_file(upload_dir, "older.txt", 20, RETENTION_PERIOD_NS + 1000)

        result = StorageManager(str(upload_dir)).cleanup(now_ns=NOW_NS)

        assert result.deleted_files == 1
        assert result.freed_space_bytes == 20
        assert (upload_dir / "edge.txt").exists()
        assert not (upload_dir / "older.txt").exists()

    def test_missing_directory(self, tmp_path):
        result = StorageManager(str(tmp_path / "nope")).cleanup(now_ns=NOW_NS)
        assert result.deleted_files == 0
        assert result.freed_space_mb == 0.0

    def test_failure_on_one_file_does_not_stop_the_pass(self, upload_dir):
        make_file(upload_dir, "locked.txt", 50, 40 * DAY_NS)
        make_file(upload_dir, "old.txt", 70, 40 * DAY_NS)
        real_remove = os.remove

        def flaky_remove(path, *args, **kwargs):
            if str(path).endswith("locked.txt"):
                raise PermissionError("in use")
            return real_remove(path, *args, **kwargs)

        with patch(
            "components.storage_lifecycle.storage_manager.os.remove",
            side_effect=flaky_remove,
        ):
            result = StorageManager(str(upload_dir)).cleanup(now_ns=NOW_NS)

        assert result.deleted_files == 1
        assert result.freed_space_bytes == 70
        assert result.failed_files == ["locked.txt"]
        assert (upload_dir / "locked.txt").exists()

    def test_retention_is_thirty_days(self):
        assert RETENTION_PERIOD_NS == 30 * DAY_NS
