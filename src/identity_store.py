"""
QuorumID - Identity Store

Flat key-value storage for identities and the data hung off them:
- Identity records anchored by a 32-byte fingerprint (merkle root)
- Reputation scores
- Attribute proofs (opaque 32-byte hashes recorded by validators)
- Cross-chain address links

Each operation has a single guard clause. The fingerprint is never
decoded; it is only stored and replaced.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from registry_errors import AlreadyExistsError, InvalidProofError, NotFoundError

logger = logging.getLogger(__name__)

FINGERPRINT_BYTES = 32

# Reputation bounds
INITIAL_REPUTATION = 100
MIN_REPUTATION = 0
MAX_REPUTATION = 1000


def normalize_fingerprint(value: bytes | str, operation: str = "fingerprint") -> bytes:
    """
    Coerce a fingerprint or proof hash to 32 raw bytes.

    Accepts raw bytes or a 64-character hex string (optionally 0x-prefixed).

    Raises:
        InvalidProofError: If the value is not exactly 32 bytes
    """
    raw = value
    if isinstance(value, str):
        text = value[2:] if value.lower().startswith("0x") else value
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise InvalidProofError(
                "Fingerprint must be hex encoded", operation=operation
            ) from None
    if not isinstance(raw, (bytes, bytearray)) or len(raw) != FINGERPRINT_BYTES:
        raise InvalidProofError(
            f"Fingerprint must be exactly {FINGERPRINT_BYTES} bytes",
            operation=operation,
        )
    return bytes(raw)


@dataclass
class IdentityRecord:
    """An identity anchored by an opaque merkle root."""

    owner: str
    merkle_root: bytes
    registered_at: int
    updated_at: int
    active: bool = True
    reputation: int = INITIAL_REPUTATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "merkle_root": self.merkle_root.hex(),
            "registered_at": self.registered_at,
            "updated_at": self.updated_at,
            "active": self.active,
            "reputation": self.reputation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IdentityRecord":
        return cls(
            owner=data["owner"],
            merkle_root=bytes.fromhex(data["merkle_root"]),
            registered_at=data["registered_at"],
            updated_at=data["updated_at"],
            active=data.get("active", True),
            reputation=data.get("reputation", INITIAL_REPUTATION),
        )


@dataclass
class AttributeProof:
    """A validator-recorded proof hash for one attribute of an identity."""

    owner: str
    attribute: str
    proof_hash: bytes
    validator_id: str
    recorded_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "attribute": self.attribute,
            "proof_hash": self.proof_hash.hex(),
            "validator_id": self.validator_id,
            "recorded_at": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttributeProof":
        return cls(
            owner=data["owner"],
            attribute=data["attribute"],
            proof_hash=bytes.fromhex(data["proof_hash"]),
            validator_id=data["validator_id"],
            recorded_at=data["recorded_at"],
        )


@dataclass
class ChainLink:
    """An address owned by the identity on another chain."""

    owner: str
    chain_id: str
    address: str
    linked_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "chain_id": self.chain_id,
            "address": self.address,
            "linked_at": self.linked_at,
        }


class IdentityStore:
    """
    Identity records and their attached key-value data.

    The recovery flow only needs exists/is_active/set_merkle_root; the
    remaining operations back the identity endpoints.
    """

    def __init__(self, lock: "threading.RLock | None" = None):
        self._identities: dict[str, IdentityRecord] = {}
        self._proofs: dict[tuple[str, str], AttributeProof] = {}
        self._links: dict[tuple[str, str], ChainLink] = {}
        self._lock = lock or threading.RLock()

    # =========================================================================
    # Identity Records
    # =========================================================================

    def register(self, owner: str, merkle_root: bytes | str, at: int) -> IdentityRecord:
        """
        Register a new identity.

        Raises:
            InvalidProofError: If the root is not 32 bytes
            AlreadyExistsError: If the owner already has an identity
        """
        root = normalize_fingerprint(merkle_root, operation="register_identity")
        with self._lock:
            if owner in self._identities:
                raise AlreadyExistsError(
                    f"Identity {owner} already registered",
                    operation="register_identity",
                    details={"owner": owner},
                )
            record = IdentityRecord(
                owner=owner, merkle_root=root, registered_at=at, updated_at=at
            )
            self._identities[owner] = record
            logger.info("Registered identity %s at block %d", owner, at)
            return record

    def exists(self, owner: str) -> bool:
        with self._lock:
            return owner in self._identities

    def is_active(self, owner: str) -> bool:
        with self._lock:
            record = self._identities.get(owner)
            return record is not None and record.active

    def get(self, owner: str) -> IdentityRecord | None:
        with self._lock:
            return self._identities.get(owner)

    def _require(self, owner: str, operation: str) -> IdentityRecord:
        record = self._identities.get(owner)
        if record is None:
            raise NotFoundError(
                f"Identity {owner} not found",
                operation=operation,
                details={"owner": owner},
            )
        return record

    def set_merkle_root(self, owner: str, root: bytes | str, at: int) -> IdentityRecord:
        """Replace the fingerprint of an existing identity."""
        new_root = normalize_fingerprint(root, operation="set_merkle_root")
        with self._lock:
            record = self._require(owner, "set_merkle_root")
            record.merkle_root = new_root
            record.updated_at = at
            return record

    def deactivate(self, owner: str, at: int) -> IdentityRecord:
        with self._lock:
            record = self._require(owner, "deactivate_identity")
            record.active = False
            record.updated_at = at
            logger.info("Deactivated identity %s", owner)
            return record

    # =========================================================================
    # Reputation
    # =========================================================================

    def adjust_reputation(self, owner: str, delta: int, at: int) -> IdentityRecord:
        """Add delta to an identity's reputation, clamped to the allowed range."""
        with self._lock:
            record = self._require(owner, "adjust_reputation")
            record.reputation = max(
                MIN_REPUTATION, min(MAX_REPUTATION, record.reputation + delta)
            )
            record.updated_at = at
            return record

    # =========================================================================
    # Attribute Proofs
    # =========================================================================

    def record_attribute_proof(
        self,
        owner: str,
        attribute: str,
        proof_hash: bytes | str,
        validator_id: str,
        at: int,
    ) -> AttributeProof:
        """Store (or replace) the proof hash for one attribute."""
        proof = normalize_fingerprint(proof_hash, operation="record_attribute_proof")
        with self._lock:
            self._require(owner, "record_attribute_proof")
            record = AttributeProof(
                owner=owner,
                attribute=attribute,
                proof_hash=proof,
                validator_id=validator_id,
                recorded_at=at,
            )
            self._proofs[(owner, attribute)] = record
            return record

    def get_attribute_proof(self, owner: str, attribute: str) -> AttributeProof | None:
        with self._lock:
            return self._proofs.get((owner, attribute))

    # =========================================================================
    # Cross-Chain Links
    # =========================================================================

    def link_chain(self, owner: str, chain_id: str, address: str, at: int) -> ChainLink:
        with self._lock:
            self._require(owner, "link_chain")
            link = ChainLink(owner=owner, chain_id=chain_id, address=address, linked_at=at)
            self._links[(owner, chain_id)] = link
            return link

    def get_chain_links(self, owner: str) -> list[ChainLink]:
        with self._lock:
            return [link for (o, _), link in self._links.items() if o == owner]

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "identities": [r.to_dict() for r in self._identities.values()],
                "proofs": [p.to_dict() for p in self._proofs.values()],
                "links": [link.to_dict() for link in self._links.values()],
            }

    def load_dict(self, data: dict[str, Any]) -> None:
        """Replace the store contents with a snapshot produced by to_dict()."""
        with self._lock:
            self._identities = {
                d["owner"]: IdentityRecord.from_dict(d) for d in data.get("identities", [])
            }
            self._proofs = {}
            for d in data.get("proofs", []):
                proof = AttributeProof.from_dict(d)
                self._proofs[(proof.owner, proof.attribute)] = proof
            self._links = {}
            for d in data.get("links", []):
                link = ChainLink(**d)
                self._links[(link.owner, link.chain_id)] = link
