"""
In-memory storage backend.

Snapshots live only as long as the process. Used by tests and for
throwaway ledgers.
"""

import copy
import threading
from typing import Any

from storage.base import StorageBackend


class MemoryStorage(StorageBackend):
    """Thread-safe in-memory snapshot holder."""

    def __init__(self):
        self._data: dict[str, Any] | None = None
        self._saves = 0
        self._lock = threading.Lock()

    def load_state(self) -> dict[str, Any] | None:
        with self._lock:
            if self._data is None:
                return None
            # Copy so callers cannot mutate the stored snapshot
            return copy.deepcopy(self._data)

    def save_state(self, state: dict[str, Any]) -> None:
        with self._lock:
            self._data = copy.deepcopy(state)
            self._saves += 1

    def is_available(self) -> bool:
        return True

    def get_info(self) -> dict[str, Any]:
        info = super().get_info()
        with self._lock:
            info.update({"has_data": self._data is not None, "save_count": self._saves})
        return info
