"""
QuorumID - Identity Ledger

Single entry point for every registry operation. The ledger owns the
identity store, validator registry, quorum config, attestation store and
recovery consensus, and hands all of them one shared re-entrant lock, so
each operation runs as one indivisible step even when the host calls in
from many threads.

Usage:
    ledger = IdentityLedger(admin="admin")
    ledger.register_identity("alice", root)
    ledger.register_validator("v1", caller="admin")
    ledger.attest("alice", "kyc", "kyc-basic", "v1")
"""

import logging
import os
import threading
from collections.abc import Callable
from functools import wraps
from typing import Any

from attestation_store import AttestationRecord, ThresholdAttestationStore
from identity_store import AttributeProof, ChainLink, IdentityRecord, IdentityStore
from ledger_clock import BlockClock, Clock, clock_from_env
from monitoring.logging import LoggingContext
from monitoring.metrics import MetricsCollector, metrics
from registry_errors import RegistryError, UnauthorizedError
from social_recovery import (
    RECOVERY_WINDOW_BLOCKS,
    Guardian,
    RecoveryConsensus,
    RecoveryRequest,
    RecoveryState,
)
from storage.base import StorageBackend
from threshold_config import DEFAULT_MIN_VALIDATORS, GlobalThresholdConfig, require_admin
from validator_registry import Validator, ValidatorRegistry

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
DEFAULT_ADMIN = "admin"


def ledger_operation(name: str) -> Callable:
    """
    Run a ledger method as one serialized transaction.

    Holds the ledger lock for the whole call, tags log lines with the
    operation name and counts the outcome. Registry errors are logged and
    re-raised unchanged.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(self: "IdentityLedger", *args, **kwargs):
            with self._lock, LoggingContext(operation=name):
                try:
                    result = func(self, *args, **kwargs)
                except RegistryError as e:
                    self.metrics.increment(
                        "ledger_operations_total",
                        labels={"operation": name, "outcome": e.kind.value},
                    )
                    logger.warning("%s rejected: %s", name, e)
                    raise
                self.metrics.increment(
                    "ledger_operations_total",
                    labels={"operation": name, "outcome": "ok"},
                )
                return result

        return wrapper

    return decorator


class IdentityLedger:
    """Facade over the registry components with a single transaction lock."""

    def __init__(
        self,
        admin: str = DEFAULT_ADMIN,
        clock: Clock | None = None,
        min_validators: int = DEFAULT_MIN_VALIDATORS,
        recovery_window: int = RECOVERY_WINDOW_BLOCKS,
        metrics_collector: MetricsCollector | None = None,
    ):
        self.admin = admin
        self.clock = clock or BlockClock()
        self.metrics = metrics_collector or metrics
        self._lock = threading.RLock()

        self.identities = IdentityStore(lock=self._lock)
        self.config = GlobalThresholdConfig(
            admin=admin, min_validators=min_validators, lock=self._lock
        )
        self.validators = ValidatorRegistry(admin=admin, clock=self.clock, lock=self._lock)
        self.attestations = ThresholdAttestationStore(
            validators=self.validators,
            identities=self.identities,
            config=self.config,
            clock=self.clock,
            lock=self._lock,
        )
        self.recovery = RecoveryConsensus(
            identities=self.identities,
            clock=self.clock,
            window_blocks=recovery_window,
            lock=self._lock,
        )

    @classmethod
    def from_env(cls) -> "IdentityLedger":
        """
        Build a ledger from environment variables.

        Environment variables:
            QUORUMID_ADMIN: Admin principal (default: admin)
            QUORUMID_MIN_VALIDATORS: Initial quorum (default: 3)
            QUORUMID_CLOCK / QUORUMID_BLOCK_SECONDS: Clock selection
        """
        return cls(
            admin=os.getenv("QUORUMID_ADMIN", DEFAULT_ADMIN),
            clock=clock_from_env(),
            min_validators=int(
                os.getenv("QUORUMID_MIN_VALIDATORS", str(DEFAULT_MIN_VALIDATORS))
            ),
        )

    def block_height(self) -> int:
        return self.clock.block_height()

    @ledger_operation("advance_clock")
    def advance_clock(self, blocks: int, caller: str) -> int:
        """Advance a manual clock (admin-only)."""
        require_admin(caller, self.admin, "advance_clock")
        if not isinstance(self.clock, BlockClock):
            raise UnauthorizedError(
                f"{type(self.clock).__name__} cannot be advanced manually",
                operation="advance_clock",
            )
        return self.clock.advance(blocks)

    # =========================================================================
    # Identities
    # =========================================================================

    @ledger_operation("register_identity")
    def register_identity(self, owner: str, merkle_root: bytes | str) -> IdentityRecord:
        return self.identities.register(owner, merkle_root, self.block_height())

    def get_identity(self, owner: str) -> IdentityRecord | None:
        return self.identities.get(owner)

    @ledger_operation("deactivate_identity")
    def deactivate_identity(self, owner: str, caller: str) -> IdentityRecord:
        if caller not in (owner, self.admin):
            raise UnauthorizedError(
                "Only the owner or admin may deactivate an identity",
                operation="deactivate_identity",
                details={"owner": owner, "caller": caller},
            )
        return self.identities.deactivate(owner, self.block_height())

    @ledger_operation("adjust_reputation")
    def adjust_reputation(self, owner: str, delta: int, caller: str) -> IdentityRecord:
        require_admin(caller, self.admin, "adjust_reputation")
        return self.identities.adjust_reputation(owner, delta, self.block_height())

    @ledger_operation("record_attribute_proof")
    def record_attribute_proof(
        self, owner: str, attribute: str, proof_hash: bytes | str, validator_id: str
    ) -> AttributeProof:
        """Store a validator-vouched proof hash (the proof itself is never checked)."""
        if not self.validators.is_active(validator_id):
            raise UnauthorizedError(
                f"{validator_id} is not an active validator",
                operation="record_attribute_proof",
                details={"validator_id": validator_id},
            )
        return self.identities.record_attribute_proof(
            owner, attribute, proof_hash, validator_id, self.block_height()
        )

    @ledger_operation("link_chain")
    def link_chain(self, owner: str, chain_id: str, address: str, caller: str) -> ChainLink:
        if caller != owner:
            raise UnauthorizedError(
                "Only the owner may link addresses",
                operation="link_chain",
                details={"owner": owner, "caller": caller},
            )
        return self.identities.link_chain(owner, chain_id, address, self.block_height())

    # =========================================================================
    # Validators & Quorum
    # =========================================================================

    @ledger_operation("register_validator")
    def register_validator(self, validator_id: str, caller: str) -> Validator:
        return self.validators.register(validator_id, caller)

    @ledger_operation("deactivate_validator")
    def deactivate_validator(self, validator_id: str, caller: str) -> Validator:
        return self.validators.deactivate(validator_id, caller)

    def is_validator_active(self, validator_id: str) -> bool:
        return self.validators.is_active(validator_id)

    @ledger_operation("set_min_validators")
    def set_min_validators(self, n: int, caller: str) -> int:
        return self.config.set_min_validators(n, caller)

    def get_min_validators(self) -> int:
        return self.config.get_min_validators()

    # =========================================================================
    # Attestations
    # =========================================================================

    @ledger_operation("attest")
    def attest(
        self,
        subject: str,
        claim_id: str,
        claim_type: str,
        attester_id: str,
        quorum: int | None = None,
    ) -> AttestationRecord:
        was_verified = False
        existing = self.attestations.get(subject, claim_id)
        if existing is not None:
            was_verified = existing.verified
        record = self.attestations.attest(subject, claim_id, claim_type, attester_id, quorum)
        if record.verified and not was_verified:
            self.metrics.increment("attestations_verified_total")
        return record

    def get_attestation(self, subject: str, claim_id: str) -> AttestationRecord | None:
        return self.attestations.get(subject, claim_id)

    # =========================================================================
    # Recovery
    # =========================================================================

    @ledger_operation("appoint_guardian")
    def appoint_guardian(self, owner: str, guardian_id: str, caller: str) -> Guardian:
        return self.recovery.appoint_guardian(owner, guardian_id, caller)

    @ledger_operation("deactivate_guardian")
    def deactivate_guardian(self, owner: str, guardian_id: str, caller: str) -> Guardian:
        return self.recovery.deactivate_guardian(owner, guardian_id, caller)

    @ledger_operation("initiate_recovery")
    def initiate_recovery(
        self, owner: str, new_root: bytes | str, threshold: int, initiator_id: str
    ) -> RecoveryRequest:
        return self.recovery.initiate_recovery(owner, new_root, threshold, initiator_id)

    @ledger_operation("approve_recovery")
    def approve_recovery(self, owner: str, approver_id: str) -> RecoveryRequest:
        return self.recovery.approve_recovery(owner, approver_id)

    @ledger_operation("execute_recovery")
    def execute_recovery(self, owner: str) -> RecoveryRequest:
        request = self.recovery.execute_recovery(owner)
        self.metrics.increment("recoveries_executed_total")
        return request

    def get_recovery(self, owner: str) -> RecoveryRequest | None:
        return self.recovery.get_request(owner)

    def recovery_state(self, owner: str) -> RecoveryState:
        return self.recovery.state(owner)

    # =========================================================================
    # Snapshots
    # =========================================================================

    def stats(self) -> dict[str, Any]:
        """Summary counts for status endpoints."""
        with self._lock:
            snapshot = self.to_dict()
            return {
                "block_height": self.block_height(),
                "min_validators": self.get_min_validators(),
                "identities": len(snapshot["identities"]["identities"]),
                "validators": len(self.validators.list_validators()),
                "active_validators": len(self.validators.list_validators(active_only=True)),
                "attestations": len(snapshot["attestations"]["attestations"]),
                "recovery_requests": len(snapshot["recovery"]["requests"]),
            }

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of the full ledger state."""
        with self._lock:
            return {
                "version": SNAPSHOT_VERSION,
                "admin": self.admin,
                "block_height": self.block_height(),
                "min_validators": self.config.get_min_validators(),
                "recovery_window": self.recovery.window_blocks,
                "identities": self.identities.to_dict(),
                "validators": self.validators.to_dict(),
                "attestations": self.attestations.to_dict(),
                "recovery": self.recovery.to_dict(),
            }

    def save(self, storage: StorageBackend) -> None:
        """
        Write a snapshot to a storage backend under the ledger lock.

        Saves are serialized with every operation, so a later save always
        holds a state at least as new as an earlier one.

        Raises:
            StorageError: If the backend fails to write
        """
        with self._lock:
            storage.save_state(self.to_dict())

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        clock: Clock | None = None,
        metrics_collector: MetricsCollector | None = None,
    ) -> "IdentityLedger":
        """
        Restore a ledger from a to_dict() snapshot.

        Without an explicit clock, the clock selected by QUORUMID_CLOCK
        resumes at the saved height.
        """
        version = data.get("version", SNAPSHOT_VERSION)
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version: {version}")

        ledger = cls(
            admin=data.get("admin", DEFAULT_ADMIN),
            clock=clock or clock_from_env(start_height=data.get("block_height", 0)),
            min_validators=data.get("min_validators", DEFAULT_MIN_VALIDATORS),
            recovery_window=data.get("recovery_window", RECOVERY_WINDOW_BLOCKS),
            metrics_collector=metrics_collector,
        )
        ledger.identities.load_dict(data.get("identities", {}))
        ledger.validators.load_dict(data.get("validators", {}))
        ledger.attestations.load_dict(data.get("attestations", {}))
        ledger.recovery.load_dict(data.get("recovery", {}))
        logger.info("Restored ledger snapshot at block %d", ledger.block_height())
        return ledger


# =============================================================================
# Module-level convenience functions
# =============================================================================

_default_ledger: IdentityLedger | None = None


def get_ledger() -> IdentityLedger:
    """Get the default ledger singleton."""
    global _default_ledger
    if _default_ledger is None:
        _default_ledger = IdentityLedger.from_env()
    return _default_ledger


def reset_ledger() -> None:
    """Reset the default ledger (useful for testing)."""
    global _default_ledger
    _default_ledger = None
