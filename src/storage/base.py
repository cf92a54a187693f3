"""
Abstract base class for ledger storage backends.

A backend persists whole-ledger snapshots produced by
IdentityLedger.to_dict() and hands them back on startup.
"""

from abc import ABC, abstractmethod
from typing import Any


class StorageError(Exception):
    """Base exception for storage-related errors."""


class StorageReadError(StorageError):
    """Raised when reading from storage fails."""


class StorageWriteError(StorageError):
    """Raised when writing to storage fails."""


class StorageBackend(ABC):
    """Interface every snapshot backend implements."""

    @abstractmethod
    def load_state(self) -> dict[str, Any] | None:
        """
        Load the most recent ledger snapshot.

        Returns:
            Snapshot dictionary, or None if nothing has been saved

        Raises:
            StorageReadError: If reading fails
        """

    @abstractmethod
    def save_state(self, state: dict[str, Any]) -> None:
        """
        Replace the stored snapshot.

        Raises:
            StorageWriteError: If writing fails
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the backend can currently be written to."""

    def get_info(self) -> dict[str, Any]:
        """Describe the backend for status output."""
        return {
            "backend_type": self.__class__.__name__,
            "available": self.is_available(),
        }
