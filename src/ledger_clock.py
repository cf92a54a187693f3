"""
QuorumID - Logical Block Clock

Expiry in the registry is measured in block height, not wall time.
A clock only ever moves forward; nothing is evicted when it does, expired
records simply become rejectable by later calls.
"""

import os
import threading
import time
from abc import ABC, abstractmethod
from typing import Any

# Default wall-clock seconds per block (1440 blocks ~= 10 days)
DEFAULT_BLOCK_SECONDS = 600


class Clock(ABC):
    """Monotonic source of the current block height."""

    @abstractmethod
    def block_height(self) -> int:
        """Return the current block height."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {"type": self.__class__.__name__, "block_height": self.block_height()}


class BlockClock(Clock):
    """
    Manually advanced clock.

    Used by tests and by hosts that drive the height from their own
    block production.
    """

    def __init__(self, start_height: int = 0):
        if start_height < 0:
            raise ValueError("start_height must be non-negative")
        self._height = start_height
        self._lock = threading.Lock()

    def block_height(self) -> int:
        with self._lock:
            return self._height

    def advance(self, blocks: int = 1) -> int:
        """
        Move the clock forward.

        Args:
            blocks: Number of blocks to advance (must be >= 0)

        Returns:
            The new block height
        """
        if blocks < 0:
            raise ValueError("Clock cannot move backwards")
        with self._lock:
            self._height += blocks
            return self._height


class WallClockBlocks(Clock):
    """Derives block height from elapsed wall time at a fixed cadence."""

    def __init__(
        self,
        block_seconds: float = DEFAULT_BLOCK_SECONDS,
        genesis_time: float | None = None,
        start_height: int = 0,
    ):
        if block_seconds <= 0:
            raise ValueError("block_seconds must be positive")
        self.block_seconds = block_seconds
        self.genesis_time = time.time() if genesis_time is None else genesis_time
        self.start_height = start_height

    def block_height(self) -> int:
        elapsed = max(0.0, time.time() - self.genesis_time)
        return self.start_height + int(elapsed // self.block_seconds)


def clock_from_env(start_height: int = 0) -> Clock:
    """
    Build the clock selected by environment variables.

    Environment variables:
        QUORUMID_CLOCK: "manual" (default) or "wall"
        QUORUMID_BLOCK_SECONDS: Seconds per block for the wall clock
    """
    clock_type = os.getenv("QUORUMID_CLOCK", "manual").lower()
    if clock_type == "wall":
        block_seconds = float(os.getenv("QUORUMID_BLOCK_SECONDS", str(DEFAULT_BLOCK_SECONDS)))
        return WallClockBlocks(block_seconds=block_seconds, start_height=start_height)
    if clock_type == "manual":
        return BlockClock(start_height=start_height)
    raise ValueError(f"Unknown clock type: {clock_type}")
