"""
QuorumID - Social Recovery Consensus

An identity owner appoints guardians. If the owner loses control, a
guardian proposes a replacement fingerprint and the other guardians
approve it. Once the request's own threshold is met, anyone may execute
it and the identity is rekeyed in a single step.

State per owner:

    NO_REQUEST -> PENDING -> EXECUTED
                          -> EXPIRED

A request is never removed, even after it executes or expires, so each
owner gets exactly one recovery.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from approval_set import MAX_APPROVERS, BoundedApprovalSet
from identity_store import IdentityStore, normalize_fingerprint
from ledger_clock import Clock
from registry_errors import (
    AlreadyApprovedError,
    AlreadyExecutedError,
    AlreadyExistsError,
    ExpiredError,
    InsufficientApprovalsError,
    InvalidThresholdError,
    NotFoundError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# Blocks a recovery request stays open (~10 days at 10 minutes per block)
RECOVERY_WINDOW_BLOCKS = 1440


class RecoveryState(Enum):
    """Lifecycle of an owner's recovery slot."""

    NO_REQUEST = "no_request"
    PENDING = "pending"
    EXECUTED = "executed"
    EXPIRED = "expired"


@dataclass
class Guardian:
    """A principal appointed by an owner to help recover their identity."""

    owner: str
    guardian_id: str
    appointed_at: int
    active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "guardian_id": self.guardian_id,
            "appointed_at": self.appointed_at,
            "active": self.active,
        }


@dataclass
class RecoveryRequest:
    """A proposed fingerprint replacement collecting guardian approvals."""

    owner: str
    new_root: bytes
    threshold: int
    initiated_by: str
    created_at: int
    expires_at: int
    approvers: BoundedApprovalSet = field(
        default_factory=lambda: BoundedApprovalSet(capacity=MAX_APPROVERS)
    )
    executed: bool = False
    executed_at: int | None = None

    @property
    def approver_count(self) -> int:
        return len(self.approvers)

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at

    def state(self, now: int) -> RecoveryState:
        if self.executed:
            return RecoveryState.EXECUTED
        if self.is_expired(now):
            return RecoveryState.EXPIRED
        return RecoveryState.PENDING

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "owner": self.owner,
            "new_root": self.new_root.hex(),
            "threshold": self.threshold,
            "initiated_by": self.initiated_by,
            "approvers": self.approvers.to_list(),
            "approver_count": self.approver_count,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "executed": self.executed,
            "executed_at": self.executed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecoveryRequest":
        return cls(
            owner=data["owner"],
            new_root=bytes.fromhex(data["new_root"]),
            threshold=data["threshold"],
            initiated_by=data["initiated_by"],
            created_at=data["created_at"],
            expires_at=data["expires_at"],
            approvers=BoundedApprovalSet(data.get("approvers", [])),
            executed=data.get("executed", False),
            executed_at=data.get("executed_at"),
        )


class RecoveryConsensus:
    """
    Guardian registry plus one recovery request per owner.

    Guardianship is per owner; validators play no part here.
    """

    def __init__(
        self,
        identities: IdentityStore,
        clock: Clock,
        window_blocks: int = RECOVERY_WINDOW_BLOCKS,
        lock: "threading.RLock | None" = None,
    ):
        self.identities = identities
        self.clock = clock
        self.window_blocks = window_blocks
        self._guardians: dict[tuple[str, str], Guardian] = {}
        self._requests: dict[str, RecoveryRequest] = {}
        self._lock = lock or threading.RLock()

    # =========================================================================
    # Guardians
    # =========================================================================

    def appoint_guardian(self, owner: str, guardian_id: str, caller: str) -> Guardian:
        """
        Appoint (or re-appoint) a guardian for the calling owner.

        Raises:
            UnauthorizedError: If caller is not the owner, or owner tries to guard itself
            NotFoundError: If owner has no registered identity
        """
        with self._lock:
            self._require_owner(owner, caller, "appoint_guardian")
            if not self.identities.exists(owner):
                raise NotFoundError(
                    f"Identity {owner} not found",
                    operation="appoint_guardian",
                    details={"owner": owner},
                )
            if guardian_id == owner:
                raise UnauthorizedError(
                    "An owner cannot be its own guardian",
                    operation="appoint_guardian",
                    details={"owner": owner},
                )
            guardian = Guardian(
                owner=owner,
                guardian_id=guardian_id,
                appointed_at=self.clock.block_height(),
            )
            self._guardians[(owner, guardian_id)] = guardian
            logger.info("Owner %s appointed guardian %s", owner, guardian_id)
            return guardian

    def deactivate_guardian(self, owner: str, guardian_id: str, caller: str) -> Guardian:
        with self._lock:
            self._require_owner(owner, caller, "deactivate_guardian")
            guardian = self._guardians.get((owner, guardian_id))
            if guardian is None:
                raise NotFoundError(
                    f"{guardian_id} is not a guardian of {owner}",
                    operation="deactivate_guardian",
                    details={"owner": owner, "guardian_id": guardian_id},
                )
            guardian.active = False
            logger.info("Owner %s deactivated guardian %s", owner, guardian_id)
            return guardian

    def is_active_guardian(self, owner: str, guardian_id: str) -> bool:
        with self._lock:
            guardian = self._guardians.get((owner, guardian_id))
            return guardian is not None and guardian.active

    def get_guardian(self, owner: str, guardian_id: str) -> Guardian | None:
        with self._lock:
            return self._guardians.get((owner, guardian_id))

    def list_guardians(self, owner: str) -> list[Guardian]:
        with self._lock:
            return [g for (o, _), g in self._guardians.items() if o == owner]

    def _require_owner(self, owner: str, caller: str, operation: str) -> None:
        if caller != owner:
            raise UnauthorizedError(
                f"Only {owner} may change its guardians",
                operation=operation,
                details={"owner": owner, "caller": caller},
            )

    def _require_guardian(self, owner: str, principal: str, operation: str) -> None:
        if not self.is_active_guardian(owner, principal):
            raise UnauthorizedError(
                f"{principal} is not an active guardian of {owner}",
                operation=operation,
                details={"owner": owner, "principal": principal},
            )

    # =========================================================================
    # Recovery Requests
    # =========================================================================

    def _require_open_request(self, owner: str, operation: str) -> RecoveryRequest:
        request = self._requests.get(owner)
        if request is None:
            raise NotFoundError(
                f"No recovery request for {owner}",
                operation=operation,
                details={"owner": owner},
            )
        if request.executed:
            raise AlreadyExecutedError(
                f"Recovery for {owner} already executed",
                operation=operation,
                details={"owner": owner, "executed_at": request.executed_at},
            )
        now = self.clock.block_height()
        if request.is_expired(now):
            raise ExpiredError(
                f"Recovery for {owner} expired at block {request.expires_at}",
                operation=operation,
                details={"owner": owner, "expires_at": request.expires_at, "now": now},
            )
        return request

    def initiate_recovery(
        self,
        owner: str,
        new_root: bytes | str,
        threshold: int,
        initiator_id: str,
    ) -> RecoveryRequest:
        """
        Open the owner's recovery request.

        The initiator counts as the first approval.

        Args:
            owner: Identity to recover
            new_root: Replacement fingerprint (32 bytes)
            threshold: Approvals needed to execute (1..10)
            initiator_id: Guardian opening the request

        Raises:
            UnauthorizedError: If initiator is not an active guardian
            AlreadyExistsError: If the owner ever had a recovery request
            InvalidThresholdError: If threshold is outside 1..10
            InvalidProofError: If new_root is not 32 bytes
        """
        with self._lock:
            self._require_guardian(owner, initiator_id, "initiate_recovery")
            if owner in self._requests:
                raise AlreadyExistsError(
                    f"A recovery request already exists for {owner}",
                    operation="initiate_recovery",
                    details={"owner": owner},
                )
            if threshold <= 0 or threshold > MAX_APPROVERS:
                raise InvalidThresholdError(
                    f"Threshold must be between 1 and {MAX_APPROVERS}",
                    operation="initiate_recovery",
                    details={"threshold": threshold},
                )
            root = normalize_fingerprint(new_root, operation="initiate_recovery")

            now = self.clock.block_height()
            request = RecoveryRequest(
                owner=owner,
                new_root=root,
                threshold=threshold,
                initiated_by=initiator_id,
                created_at=now,
                expires_at=now + self.window_blocks,
            )
            request.approvers.add(initiator_id, operation="initiate_recovery")
            self._requests[owner] = request
            logger.info(
                "Guardian %s initiated recovery for %s (threshold %d, expires %d)",
                initiator_id,
                owner,
                threshold,
                request.expires_at,
            )
            return request

    def approve_recovery(self, owner: str, approver_id: str) -> RecoveryRequest:
        """
        Add a guardian's approval to the owner's pending request.

        Raises:
            UnauthorizedError: If approver is not an active guardian
            NotFoundError: If there is no request
            AlreadyExecutedError: If the request already executed
            ExpiredError: If the request has expired
            AlreadyApprovedError: If approver already approved
            CapacityExceededError: If the request has 10 approvers
        """
        with self._lock:
            self._require_guardian(owner, approver_id, "approve_recovery")
            request = self._require_open_request(owner, "approve_recovery")
            request.approvers.add(
                approver_id,
                operation="approve_recovery",
                duplicate_error=AlreadyApprovedError,
            )
            logger.info(
                "Guardian %s approved recovery for %s (%d/%d)",
                approver_id,
                owner,
                request.approver_count,
                request.threshold,
            )
            return request

    def execute_recovery(self, owner: str) -> RecoveryRequest:
        """
        Rekey the owner's identity with the approved fingerprint.

        The identity write happens before the request is marked executed;
        if the write fails the request stays pending.

        Raises:
            NotFoundError: If there is no request
            AlreadyExecutedError: If the request already executed
            ExpiredError: If the request has expired
            InsufficientApprovalsError: If the threshold is not met
        """
        with self._lock:
            request = self._require_open_request(owner, "execute_recovery")
            if request.approver_count < request.threshold:
                raise InsufficientApprovalsError(
                    f"Recovery for {owner} has {request.approver_count} of "
                    f"{request.threshold} approvals",
                    operation="execute_recovery",
                    details={
                        "owner": owner,
                        "approver_count": request.approver_count,
                        "threshold": request.threshold,
                    },
                )
            now = self.clock.block_height()
            self.identities.set_merkle_root(owner, request.new_root, now)
            request.executed = True
            request.executed_at = now
            logger.info("Recovery executed for %s at block %d", owner, now)
            return request

    def get_request(self, owner: str) -> RecoveryRequest | None:
        with self._lock:
            return self._requests.get(owner)

    def state(self, owner: str) -> RecoveryState:
        with self._lock:
            request = self._requests.get(owner)
            if request is None:
                return RecoveryState.NO_REQUEST
            return request.state(self.clock.block_height())

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "guardians": [g.to_dict() for g in self._guardians.values()],
                "requests": [r.to_dict() for r in self._requests.values()],
            }

    def load_dict(self, data: dict[str, Any]) -> None:
        with self._lock:
            self._guardians = {}
            for d in data.get("guardians", []):
                guardian = Guardian(**d)
                self._guardians[(guardian.owner, guardian.guardian_id)] = guardian
            self._requests = {
                d["owner"]: RecoveryRequest.from_dict(d) for d in data.get("requests", [])
            }
