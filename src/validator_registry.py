"""
QuorumID - Validator Registry

Tracks which principals may attest to identity claims. Membership is
admin-controlled: validators are registered once and deactivated rather
than deleted, so their attestation history stays auditable.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any

from ledger_clock import Clock
from registry_errors import AlreadyExistsError, NotFoundError
from threshold_config import require_admin

logger = logging.getLogger(__name__)


@dataclass
class Validator:
    """A principal trusted to attest to identity claims."""

    validator_id: str
    registered_at: int
    active: bool = True
    attestation_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "validator_id": self.validator_id,
            "active": self.active,
            "attestation_count": self.attestation_count,
            "registered_at": self.registered_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Validator":
        return cls(
            validator_id=data["validator_id"],
            registered_at=data["registered_at"],
            active=data.get("active", True),
            attestation_count=data.get("attestation_count", 0),
        )


class ValidatorRegistry:
    """
    Admin-gated validator membership.

    There is no re-activation path: a deactivated validator stays
    deactivated.
    """

    def __init__(self, admin: str, clock: Clock, lock: "threading.RLock | None" = None):
        self.admin = admin
        self.clock = clock
        self._validators: dict[str, Validator] = {}
        self._lock = lock or threading.RLock()

    def register(self, validator_id: str, caller: str) -> Validator:
        """
        Register a new active validator.

        Args:
            validator_id: Principal to register
            caller: Principal making the call (must be admin)

        Returns:
            The new validator record

        Raises:
            OwnerOnlyError: If caller is not the admin
            AlreadyExistsError: If the validator is already registered
        """
        with self._lock:
            require_admin(caller, self.admin, "register_validator")
            if validator_id in self._validators:
                raise AlreadyExistsError(
                    f"Validator {validator_id} already registered",
                    operation="register_validator",
                    details={"validator_id": validator_id},
                )
            validator = Validator(
                validator_id=validator_id, registered_at=self.clock.block_height()
            )
            self._validators[validator_id] = validator
            logger.info("Registered validator %s", validator_id)
            return validator

    def deactivate(self, validator_id: str, caller: str) -> Validator:
        """
        Deactivate a validator, keeping its record.

        Raises:
            OwnerOnlyError: If caller is not the admin
            NotFoundError: If the validator is not registered
        """
        with self._lock:
            require_admin(caller, self.admin, "deactivate_validator")
            validator = self._validators.get(validator_id)
            if validator is None:
                raise NotFoundError(
                    f"Validator {validator_id} not found",
                    operation="deactivate_validator",
                    details={"validator_id": validator_id},
                )
            validator.active = False
            logger.info("Deactivated validator %s", validator_id)
            return validator

    def is_active(self, validator_id: str) -> bool:
        with self._lock:
            validator = self._validators.get(validator_id)
            return validator is not None and validator.active

    def get(self, validator_id: str) -> Validator | None:
        with self._lock:
            return self._validators.get(validator_id)

    def list_validators(self, active_only: bool = False) -> list[Validator]:
        with self._lock:
            return [
                v for v in self._validators.values() if v.active or not active_only
            ]

    def record_attestation(self, validator_id: str) -> None:
        """Bump the audit counter after a successful attestation."""
        with self._lock:
            validator = self._validators.get(validator_id)
            if validator is not None:
                validator.attestation_count += 1

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {"validators": [v.to_dict() for v in self._validators.values()]}

    def load_dict(self, data: dict[str, Any]) -> None:
        with self._lock:
            self._validators = {
                d["validator_id"]: Validator.from_dict(d) for d in data.get("validators", [])
            }
