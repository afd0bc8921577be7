"""Small thread-safe LRU cache with hit/miss accounting."""

import hashlib
import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


def hash_key(*parts: str) -> str:
    """SHA-256 over the length-prefixed parts, used as a cache key."""
    sha256 = hashlib.sha256()
    for part in parts:
        data = part.encode("utf-8")
        sha256.update(len(data).to_bytes(8, "big"))
        sha256.update(data)
    return sha256.hexdigest()


class BoundedCache(Generic[V]):
    """Least-recently-used cache bounded to ``max_size`` entries."""

    def __init__(self, max_size: int, name: str = "cache"):
        if max_size < 0:
            raise ValueError("max_size must be >= 0")
        self.max_size = max_size
        self.name = name
        self._data: "OrderedDict[str, V]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
                self._hits += 1
                return self._data[key]
            self._misses += 1
            return None

    def put(self, key: str, value: V) -> None:
        if self.max_size == 0:
            return
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self.max_size:
                self._data.popitem(last=False)
                logger.debug(f"Evicted oldest entry from {self.name}")

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._hits = 0
            self._misses = 0
        logger.info(f"{self.name} cleared")

    def __len__(self) -> int:
        return len(self._data)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            hit_rate = (self._hits / total * 100.0) if total else 0.0
            return {
                "size": len(self._data),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": f"{hit_rate:.1f}%",
            }
