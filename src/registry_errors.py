"""
QuorumID - Registry Exception Hierarchy

Every ledger operation either returns the new/updated record or raises
exactly one of these errors. Each error carries a machine-readable kind
and structured details for logging and API responses.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Error kinds surfaced by ledger operations."""

    OWNER_ONLY = "OwnerOnly"
    NOT_FOUND = "NotFound"
    UNAUTHORIZED = "Unauthorized"
    ALREADY_EXISTS = "AlreadyExists"
    INVALID_THRESHOLD = "InvalidThreshold"
    INSUFFICIENT_APPROVALS = "InsufficientApprovals"
    INVALID_PROOF = "InvalidProof"
    CAPACITY_EXCEEDED = "CapacityExceeded"
    ALREADY_EXECUTED = "AlreadyExecuted"
    EXPIRED = "Expired"


class RegistryError(Exception):
    """
    Base exception for all registry errors.

    Raised before any state is mutated, so a caller that catches it
    observes the ledger exactly as it was before the call.
    """

    kind: ErrorKind = ErrorKind.UNAUTHORIZED

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.details = details or {}
        self.timestamp = datetime.now(UTC).isoformat()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error": self.kind.value,
            "error_type": type(self).__name__,
            "message": self.message,
            "operation": self.operation,
            "details": self.details,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        return f"[{self.kind.value}:{self.operation}] {self.message}"


# =============================================================================
# Authorization Errors
# =============================================================================


class OwnerOnlyError(RegistryError):
    """Raised when a non-admin principal calls an admin-only operation."""

    kind = ErrorKind.OWNER_ONLY


class UnauthorizedError(RegistryError):
    """Raised when the caller lacks the role an operation requires."""

    kind = ErrorKind.UNAUTHORIZED


class AlreadyExecutedError(UnauthorizedError):
    """Raised when acting on a recovery request that already executed."""

    kind = ErrorKind.ALREADY_EXECUTED


class ExpiredError(UnauthorizedError):
    """Raised when acting on a recovery request past its expiry height."""

    kind = ErrorKind.EXPIRED


# =============================================================================
# Lookup / Existence Errors
# =============================================================================


class NotFoundError(RegistryError):
    """Raised when a referenced record does not exist."""

    kind = ErrorKind.NOT_FOUND


class AlreadyExistsError(RegistryError):
    """Raised when creating a record whose key is already taken."""

    kind = ErrorKind.ALREADY_EXISTS


class AlreadyAttestedError(AlreadyExistsError):
    """Raised when a validator attests the same claim twice."""


class AlreadyApprovedError(AlreadyExistsError):
    """Raised when a guardian approves the same recovery twice."""


# =============================================================================
# Validation Errors
# =============================================================================


class InvalidThresholdError(RegistryError):
    """Raised for a zero or unreachable quorum/threshold."""

    kind = ErrorKind.INVALID_THRESHOLD


class InvalidProofError(RegistryError):
    """Raised when a fingerprint or proof hash is not a 32-byte value."""

    kind = ErrorKind.INVALID_PROOF


class CapacityExceededError(RegistryError):
    """Raised when appending to a full signer/approver set."""

    kind = ErrorKind.CAPACITY_EXCEEDED


class InsufficientApprovalsError(RegistryError):
    """Raised when executing a recovery below its threshold."""

    kind = ErrorKind.INSUFFICIENT_APPROVALS


# HTTP status codes for API responses
HTTP_STATUS_BY_KIND = {
    ErrorKind.OWNER_ONLY: 403,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.ALREADY_EXECUTED: 403,
    ErrorKind.EXPIRED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.INVALID_THRESHOLD: 400,
    ErrorKind.INVALID_PROOF: 400,
    ErrorKind.INSUFFICIENT_APPROVALS: 422,
    ErrorKind.CAPACITY_EXCEEDED: 422,
}


def http_status_for(error: RegistryError) -> int:
    """Map a registry error to an HTTP status code."""
    return HTTP_STATUS_BY_KIND.get(error.kind, 400)
