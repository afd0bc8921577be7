"""Space accounting and age-based eviction for the upload directory.

Cleanup only removes raw uploaded files. Indexed vectors are left alone, so
answers stay available after the source upload has aged out.
"""

import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from components.knowledge_service.models import CleanupResult, StorageInfo, StoredFile

logger = logging.getLogger(__name__)

RETENTION_DAYS = 30
RETENTION_PERIOD_NS = RETENTION_DAYS * 24 * 60 * 60 * 1_000_000_000


def _to_mb(size_bytes: int) -> float:
    return round(size_bytes / (1024 * 1024), 2)


class StorageManager:
    """Reports on and prunes files in the upload directory."""

    def __init__(self, upload_dir: str, retention_ns: int = RETENTION_PERIOD_NS):
        self.upload_dir = Path(upload_dir)
        self.retention_ns = retention_ns

    def _regular_files(self) -> List[os.DirEntry]:
        if not self.upload_dir.is_dir():
            return []
        with os.scandir(self.upload_dir) as it:
            return [entry for entry in it if entry.is_file(follow_symlinks=False)]

    def stats(self) -> StorageInfo:
        """Enumerate the upload directory. A missing directory is reported as empty."""
        files = []
        total = 0
        for entry in self._regular_files():
            try:
                st = entry.stat(follow_symlinks=False)
            except OSError as e:
                logger.warning(f"Could not stat {entry.name}: {e}")
                continue
            total += st.st_size
            modified = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
            files.append(
                StoredFile(
                    name=entry.name,
                    size_bytes=st.st_size,
                    size_mb=_to_mb(st.st_size),
                    modified=modified.isoformat(),
                )
            )

        files.sort(key=lambda f: f.name)
        logger.info(f"Retrieved storage info: {len(files)} files, {_to_mb(total)} MB total")
        return StorageInfo(
            upload_dir=str(self.upload_dir),
            total_files=len(files),
            total_size_bytes=total,
            total_size_mb=_to_mb(total),
            files=files,
        )

    def cleanup(self, now_ns: Optional[int] = None) -> CleanupResult:
        """
        Delete files whose modification time is strictly older than the
        retention window.

        A file that cannot be inspected or removed is logged, listed in
        ``failed_files`` and skipped; it does not stop the pass.

        Args:
            now_ns: Reference time in nanoseconds since the epoch. Defaults to now.
        """
        now_ns = time.time_ns() if now_ns is None else now_ns
        cutoff_ns = now_ns - self.retention_ns
        result = CleanupResult()

        for entry in self._regular_files():
            try:
                st = entry.stat(follow_symlinks=False)
                if st.st_mtime_ns >= cutoff_ns:
                    continue
                os.remove(entry.path)
            except OSError as e:
                logger.warning(f"Failed to delete old file {entry.name}: {e}")
                result.failed_files.append(entry.name)
                continue

            result.deleted_files += 1
            result.freed_space_bytes += st.st_size
            logger.debug(f"Deleted expired upload {entry.name}")

        result.freed_space_mb = _to_mb(result.freed_space_bytes)
        logger.info(
            f"Cleanup removed {result.deleted_files} files, "
            f"freed {result.freed_space_mb} MB, {len(result.failed_files)} failures"
        )
        return result
