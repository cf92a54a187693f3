"""
QuorumID - Threshold Attestation Store

Validators attest to claims about an identity. Each (subject, claim_id)
pair accumulates validator signatures until the quorum is reached, at
which point the claim auto-verifies.

Verification is evaluated only when a signature is appended and never
reverts: raising the global quorum later leaves verified claims verified.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from approval_set import MAX_APPROVERS, BoundedApprovalSet
from identity_store import IdentityStore
from ledger_clock import Clock
from registry_errors import (
    AlreadyAttestedError,
    InvalidThresholdError,
    NotFoundError,
    UnauthorizedError,
)
from threshold_config import GlobalThresholdConfig
from validator_registry import ValidatorRegistry

logger = logging.getLogger(__name__)


@dataclass
class AttestationRecord:
    """Accumulated validator signatures on one claim about one subject."""

    subject: str
    claim_id: str
    claim_type: str
    created_at: int
    signers: BoundedApprovalSet = field(
        default_factory=lambda: BoundedApprovalSet(capacity=MAX_APPROVERS)
    )
    verified: bool = False
    verified_at: int | None = None

    @property
    def signer_count(self) -> int:
        return len(self.signers)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "subject": self.subject,
            "claim_id": self.claim_id,
            "claim_type": self.claim_type,
            "signers": self.signers.to_list(),
            "signer_count": self.signer_count,
            "created_at": self.created_at,
            "verified": self.verified,
            "verified_at": self.verified_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttestationRecord":
        return cls(
            subject=data["subject"],
            claim_id=data["claim_id"],
            claim_type=data["claim_type"],
            created_at=data["created_at"],
            signers=BoundedApprovalSet(data.get("signers", [])),
            verified=data.get("verified", False),
            verified_at=data.get("verified_at"),
        )


class ThresholdAttestationStore:
    """
    Per (subject, claim) accumulating-approval records.

    Reads the validator registry to decide who may attest and the
    threshold config to decide when a claim verifies.
    """

    def __init__(
        self,
        validators: ValidatorRegistry,
        identities: IdentityStore,
        config: GlobalThresholdConfig,
        clock: Clock,
        lock: "threading.RLock | None" = None,
    ):
        self.validators = validators
        self.identities = identities
        self.config = config
        self.clock = clock
        self._records: dict[tuple[str, str], AttestationRecord] = {}
        self._lock = lock or threading.RLock()

    def attest(
        self,
        subject: str,
        claim_id: str,
        claim_type: str,
        attester_id: str,
        quorum: int | None = None,
    ) -> AttestationRecord:
        """
        Add a validator's signature to a claim.

        Args:
            subject: Identity the claim is about
            claim_id: Claim identifier, unique per subject
            claim_type: Claim category (fixed by the first attestation)
            attester_id: Validator signing the claim
            quorum: Signatures needed to verify (default: global minimum)

        Returns:
            The created or updated attestation record

        Raises:
            UnauthorizedError: If attester is not an active validator
            NotFoundError: If subject has no registered identity
            InvalidThresholdError: If an explicit quorum is not positive
            AlreadyAttestedError: If attester already signed this claim
            CapacityExceededError: If the claim already has 10 signers
        """
        with self._lock:
            if not self.validators.is_active(attester_id):
                raise UnauthorizedError(
                    f"{attester_id} is not an active validator",
                    operation="attest",
                    details={"attester_id": attester_id},
                )
            if not self.identities.exists(subject):
                raise NotFoundError(
                    f"Identity {subject} not found",
                    operation="attest",
                    details={"subject": subject},
                )
            if quorum is None:
                quorum = self.config.get_min_validators()
            elif quorum <= 0:
                raise InvalidThresholdError(
                    "Quorum must be greater than zero",
                    operation="attest",
                    details={"quorum": quorum},
                )

            now = self.clock.block_height()
            key = (subject, claim_id)
            record = self._records.get(key)

            if record is None:
                record = AttestationRecord(
                    subject=subject,
                    claim_id=claim_id,
                    claim_type=claim_type,
                    created_at=now,
                )
                record.signers.add(attester_id, operation="attest")
                self._records[key] = record
            else:
                if claim_type != record.claim_type:
                    logger.warning(
                        "Ignoring claim type %s for %s/%s (fixed as %s)",
                        claim_type,
                        subject,
                        claim_id,
                        record.claim_type,
                    )
                record.signers.add(
                    attester_id, operation="attest", duplicate_error=AlreadyAttestedError
                )

            self.validators.record_attestation(attester_id)

            if not record.verified and record.signer_count >= quorum:
                record.verified = True
                record.verified_at = now
                logger.info(
                    "Claim %s for %s verified with %d/%d signatures",
                    claim_id,
                    subject,
                    record.signer_count,
                    quorum,
                )
            return record

    def get(self, subject: str, claim_id: str) -> AttestationRecord | None:
        with self._lock:
            return self._records.get((subject, claim_id))

    def list_for_subject(self, subject: str) -> list[AttestationRecord]:
        with self._lock:
            return [r for (s, _), r in self._records.items() if s == subject]

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {"attestations": [r.to_dict() for r in self._records.values()]}

    def load_dict(self, data: dict[str, Any]) -> None:
        with self._lock:
            self._records = {}
            for d in data.get("attestations", []):
                record = AttestationRecord.from_dict(d)
                self._records[(record.subject, record.claim_id)] = record
