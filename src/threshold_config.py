"""
QuorumID - Global Threshold Configuration

Holds the minimum number of validator signatures a claim needs before it
auto-verifies. The object is passed explicitly to the attestation store so
different ledgers (and tests) can run with different quorums side by side.
"""

import logging
import threading

from registry_errors import InvalidThresholdError, OwnerOnlyError

logger = logging.getLogger(__name__)

# Minimum validators for a verified claim unless configured otherwise
DEFAULT_MIN_VALIDATORS = 3


def require_admin(caller: str, admin: str, operation: str) -> None:
    """
    Admin-only guard shared by the registry components.

    Raises:
        OwnerOnlyError: If caller is not the admin principal
    """
    if caller != admin:
        raise OwnerOnlyError(
            f"{operation} is restricted to the ledger admin",
            operation=operation,
            details={"caller": caller},
        )


class GlobalThresholdConfig:
    """Admin-mutable minimum-validator quorum."""

    def __init__(
        self,
        admin: str,
        min_validators: int = DEFAULT_MIN_VALIDATORS,
        lock: "threading.RLock | None" = None,
    ):
        if min_validators <= 0:
            raise InvalidThresholdError(
                "min_validators must be positive",
                operation="init_threshold_config",
                details={"min_validators": min_validators},
            )
        self.admin = admin
        self._min_validators = min_validators
        self._lock = lock or threading.RLock()

    def get_min_validators(self) -> int:
        with self._lock:
            return self._min_validators

    def set_min_validators(self, n: int, caller: str) -> int:
        """
        Change the quorum used for future attestations.

        Existing verified records are not re-evaluated.

        Raises:
            OwnerOnlyError: If caller is not the admin
            InvalidThresholdError: If n is zero
        """
        with self._lock:
            require_admin(caller, self.admin, "set_min_validators")
            if n <= 0:
                raise InvalidThresholdError(
                    "Minimum validators must be greater than zero",
                    operation="set_min_validators",
                    details={"requested": n},
                )
            previous = self._min_validators
            self._min_validators = n
            logger.info("Minimum validators changed from %d to %d", previous, n)
            return n
