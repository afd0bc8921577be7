"""Upload directory accounting and retention-based cleanup."""

from .storage_manager import RETENTION_PERIOD_NS, StorageManager

__all__ = ["RETENTION_PERIOD_NS", "StorageManager"]
