"""
Storage abstraction layer for QuorumID.

Pluggable persistence for ledger snapshots:

- JSON file (default)
- Memory (for testing)

Usage:
    from storage import get_storage_backend

    storage = get_storage_backend()
    storage.save_state(ledger.to_dict())
    data = storage.load_state()
"""

import os

from storage.base import StorageBackend, StorageError, StorageReadError, StorageWriteError
from storage.json_file import JSONFileStorage
from storage.memory import MemoryStorage

__all__ = [
    "JSONFileStorage",
    "MemoryStorage",
    "StorageBackend",
    "StorageError",
    "StorageReadError",
    "StorageWriteError",
    "get_storage_backend",
]


def get_storage_backend() -> StorageBackend:
    """
    Get the storage backend selected by environment variables.

    Environment variables:
        STORAGE_BACKEND: "json" (default) or "memory"
        LEDGER_DATA_FILE: Path for JSON file storage (default: ledger_data.json)
    """
    backend_type = os.getenv("STORAGE_BACKEND", "json").lower()

    if backend_type == "json":
        return JSONFileStorage(os.getenv("LEDGER_DATA_FILE", "ledger_data.json"))
    elif backend_type == "memory":
        return MemoryStorage()
    else:
        raise StorageError(f"Unknown storage backend: {backend_type}")
