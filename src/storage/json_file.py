"""
JSON file storage backend.

The default backend: the ledger snapshot is written to one JSON file,
replaced atomically on every save.
"""

import json
import os
import threading
from typing import Any

from storage.base import StorageBackend, StorageReadError, StorageWriteError


class JSONFileStorage(StorageBackend):
    """Stores the ledger snapshot as a JSON document on disk."""

    def __init__(self, file_path: str = "ledger_data.json"):
        self.file_path = file_path
        self._lock = threading.Lock()

    def load_state(self) -> dict[str, Any] | None:
        """
        Load the snapshot from disk.

        Returns:
            Snapshot dictionary, or None if the file is missing or empty

        Raises:
            StorageReadError: If the file cannot be read or parsed
        """
        with self._lock:
            try:
                with open(self.file_path, encoding="utf-8") as f:
                    raw_data = f.read()
            except FileNotFoundError:
                return None
            except PermissionError as e:
                raise StorageReadError(f"Permission denied: {self.file_path}") from e
            except OSError as e:
                raise StorageReadError(f"Failed to read {self.file_path}: {e}") from e

            if not raw_data.strip():
                return None
            try:
                return json.loads(raw_data)
            except json.JSONDecodeError as e:
                raise StorageReadError(f"Invalid JSON format: {e}") from e

    def save_state(self, state: dict[str, Any]) -> None:
        """
        Write the snapshot to disk.

        Raises:
            StorageWriteError: If writing fails
        """
        with self._lock:
            temp_path = f"{self.file_path}.tmp"
            try:
                data = json.dumps(state, indent=2, sort_keys=True)
                with open(temp_path, "w", encoding="utf-8") as f:
                    f.write(data)
                # Atomic rename
                os.replace(temp_path, self.file_path)
            except PermissionError as e:
                raise StorageWriteError(f"Permission denied: {self.file_path}") from e
            except (OSError, TypeError, ValueError) as e:
                raise StorageWriteError(f"Failed to save ledger: {e}") from e

    def is_available(self) -> bool:
        directory = os.path.dirname(os.path.abspath(self.file_path))
        return os.path.isdir(directory) and os.access(directory, os.W_OK)

    def get_info(self) -> dict[str, Any]:
        info = super().get_info()
        exists = os.path.exists(self.file_path)
        info.update({"file_path": self.file_path, "file_exists": exists})
        if exists:
            stat = os.stat(self.file_path)
            info["file_size_bytes"] = stat.st_size
            info["last_modified"] = stat.st_mtime
        return info
