"""
Tests for threshold claim attestation.

Tests cover:
- Auto-verification exactly when the quorum is reached
- Monotonic verification across quorum changes
- Duplicate attesters (rejected with AlreadyAttested)
- Capacity of 10 signers per claim
- Authorization and identity preconditions
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from approval_set import MAX_APPROVERS
from registry_errors import (
    AlreadyAttestedError,
    AlreadyExistsError,
    CapacityExceededError,
    InvalidThresholdError,
    NotFoundError,
    UnauthorizedError,
)

ADMIN = "admin"


class TestQuorumVerification:
    """Verification flips exactly when K distinct signers reach Q."""

    def test_scenario_three_validators_quorum_three(self, populated_ledger):
        results = [
            populated_ledger.attest("alice", "C", "kyc", vid).verified
            for vid in ("v1", "v2", "v3")
        ]

        assert results == [False, False, True]

    @pytest.mark.parametrize("quorum", [1, 2, 4, 7, 10])
    def test_verified_exactly_at_quorum(self, populated_ledger, quorum):
        for k in range(1, MAX_APPROVERS + 1):
            record = populated_ledger.attest("alice", "claim", "kyc", f"v{k}", quorum=quorum)
            assert record.signer_count == k
            assert record.verified is (k >= quorum)

    def test_quorum_of_one_verifies_on_creation(self, populated_ledger):
        record = populated_ledger.attest("alice", "C", "kyc", "v1", quorum=1)

        assert record.verified is True
        assert record.verified_at == populated_ledger.block_height()

    def test_default_quorum_from_config(self, populated_ledger):
        populated_ledger.set_min_validators(2, caller=ADMIN)

        populated_ledger.attest("alice", "C", "kyc", "v1")
        record = populated_ledger.attest("alice", "C", "kyc", "v2")

        assert record.verified is True

    def test_raising_quorum_does_not_unverify(self, populated_ledger):
        for vid in ("v1", "v2", "v3"):
            populated_ledger.attest("alice", "C", "kyc", vid)
        populated_ledger.set_min_validators(8, caller=ADMIN)

        record = populated_ledger.attest("alice", "C", "kyc", "v4")

        assert record.verified is True
        assert populated_ledger.get_attestation("alice", "C").verified is True

    def test_lowering_quorum_applies_on_next_append(self, populated_ledger):
        populated_ledger.attest("alice", "C", "kyc", "v1")
        populated_ledger.set_min_validators(1, caller=ADMIN)

        # Not re-evaluated until the next signature lands
        assert populated_ledger.get_attestation("alice", "C").verified is False
        assert populated_ledger.attest("alice", "C", "kyc", "v2").verified is True

    def test_zero_quorum_rejected(self, populated_ledger):
        with pytest.raises(InvalidThresholdError):
            populated_ledger.attest("alice", "C", "kyc", "v1", quorum=0)
        assert populated_ledger.get_attestation("alice", "C") is None

    def test_verified_counter_incremented_once(self, populated_ledger, collector):
        for vid in ("v1", "v2", "v3", "v4"):
            populated_ledger.attest("alice", "C", "kyc", vid)

        assert collector.get_counter("attestations_verified_total") == 1


class TestDuplicateAttesters:
    """The signer set is a true set: a repeat attester is rejected."""

    def test_repeat_attester_rejected(self, populated_ledger):
        populated_ledger.attest("alice", "C", "kyc", "v1")

        with pytest.raises(AlreadyAttestedError):
            populated_ledger.attest("alice", "C", "kyc", "v1")

        record = populated_ledger.get_attestation("alice", "C")
        assert record.signer_count == 1
        assert record.signers.to_list() == ["v1"]

    def test_repeat_attester_is_already_exists_kind(self, populated_ledger):
        populated_ledger.attest("alice", "C", "kyc", "v1")

        with pytest.raises(AlreadyExistsError):
            populated_ledger.attest("alice", "C", "kyc", "v1")

    def test_repeat_attester_cannot_reach_quorum(self, populated_ledger):
        populated_ledger.attest("alice", "C", "kyc", "v1", quorum=2)

        with pytest.raises(AlreadyAttestedError):
            populated_ledger.attest("alice", "C", "kyc", "v1", quorum=2)
        assert populated_ledger.get_attestation("alice", "C").verified is False

    def test_same_validator_different_claims(self, populated_ledger):
        populated_ledger.attest("alice", "C1", "kyc", "v1")
        populated_ledger.attest("alice", "C2", "kyc", "v1")
        populated_ledger.attest("bob", "C1", "kyc", "v1")

        assert populated_ledger.validators.get("v1").attestation_count == 3


class TestSignerCapacity:
    """At most 10 signers per claim."""

    def test_eleventh_attester_rejected(self, populated_ledger):
        for k in range(1, MAX_APPROVERS + 1):
            populated_ledger.attest("alice", "C", "kyc", f"v{k}", quorum=12)
        before = populated_ledger.get_attestation("alice", "C").to_dict()

        with pytest.raises(CapacityExceededError):
            populated_ledger.attest("alice", "C", "kyc", "v11", quorum=12)

        after = populated_ledger.get_attestation("alice", "C").to_dict()
        assert after == before
        assert after["signer_count"] == MAX_APPROVERS
        assert populated_ledger.validators.get("v11").attestation_count == 0


class TestAttestationPreconditions:
    """Who may attest, and about whom."""

    def test_unknown_validator_unauthorized(self, populated_ledger):
        with pytest.raises(UnauthorizedError):
            populated_ledger.attest("alice", "C", "kyc", "stranger")
        assert populated_ledger.get_attestation("alice", "C") is None

    def test_deactivated_validator_unauthorized(self, populated_ledger):
        populated_ledger.deactivate_validator("v1", caller=ADMIN)

        with pytest.raises(UnauthorizedError):
            populated_ledger.attest("alice", "C", "kyc", "v1")

    def test_unregistered_subject_not_found(self, populated_ledger):
        with pytest.raises(NotFoundError):
            populated_ledger.attest("carol", "C", "kyc", "v1")

    def test_authorization_checked_before_identity(self, populated_ledger):
        with pytest.raises(UnauthorizedError):
            populated_ledger.attest("carol", "C", "kyc", "stranger")

    def test_claim_type_fixed_by_first_attestation(self, populated_ledger):
        populated_ledger.attest("alice", "C", "kyc", "v1")
        record = populated_ledger.attest("alice", "C", "employment", "v2")

        assert record.claim_type == "kyc"

    def test_list_for_subject(self, populated_ledger):
        populated_ledger.attest("alice", "C1", "kyc", "v1")
        populated_ledger.attest("alice", "C2", "age", "v1")
        populated_ledger.attest("bob", "C1", "kyc", "v1")

        claims = {r.claim_id for r in populated_ledger.attestations.list_for_subject("alice")}
        assert claims == {"C1", "C2"}
