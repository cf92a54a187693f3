"""
Tests for the ledger facade.

Tests cover:
- Serialized execution under concurrent callers
- Operation metrics and logging of rejections
- Snapshot round trip through to_dict/from_dict
- Clock handling and environment configuration
"""

import logging
import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from approval_set import BoundedApprovalSet, MAX_APPROVERS
from identity_ledger import IdentityLedger, get_ledger, reset_ledger
from ledger_clock import BlockClock, WallClockBlocks, clock_from_env
from registry_errors import (
    AlreadyApprovedError,
    CapacityExceededError,
    OwnerOnlyError,
    RegistryError,
    UnauthorizedError,
)
from social_recovery import RecoveryState

ROOT_A = bytes.fromhex("aa" * 32)
ROOT_R = bytes.fromhex("cd" * 32)


class TestBoundedApprovalSet:
    def test_keeps_insertion_order(self):
        approvals = BoundedApprovalSet(["c", "a", "b"])
        assert list(approvals) == ["c", "a", "b"]
        assert "a" in approvals
        assert len(approvals) == 3

    def test_rejects_duplicates_before_capacity(self):
        approvals = BoundedApprovalSet([f"p{i}" for i in range(MAX_APPROVERS)])

        with pytest.raises(AlreadyApprovedError):
            approvals.add("p0", duplicate_error=AlreadyApprovedError)
        with pytest.raises(CapacityExceededError):
            approvals.add("new")
        assert len(approvals) == MAX_APPROVERS


class TestConcurrency:
    """Concurrent callers never double count a crossing approval."""

    def test_concurrent_approvals(self, populated_ledger):
        guardians = [f"cg{i}" for i in range(20)]
        for g in guardians:
            populated_ledger.appoint_guardian("alice", g, caller="alice")
        populated_ledger.initiate_recovery("alice", ROOT_R, MAX_APPROVERS, "g1")

        outcomes = []
        outcomes_lock = threading.Lock()
        barrier = threading.Barrier(len(guardians))

        def approve(guardian_id):
            barrier.wait()
            try:
                populated_ledger.approve_recovery("alice", guardian_id)
                result = "ok"
            except RegistryError as e:
                result = e.kind.value
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=approve, args=(g,)) for g in guardians]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        request = populated_ledger.get_recovery("alice")
        assert request.approver_count == MAX_APPROVERS
        assert outcomes.count("ok") == MAX_APPROVERS - 1
        assert outcomes.count("CapacityExceeded") == len(guardians) - (MAX_APPROVERS - 1)

    def test_concurrent_attestations_verify_once(self, populated_ledger, collector):
        barrier = threading.Barrier(10)

        def attest(vid):
            barrier.wait()
            populated_ledger.attest("alice", "C", "kyc", vid, quorum=5)

        threads = [
            threading.Thread(target=attest, args=(f"v{i}",)) for i in range(1, 11)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        record = populated_ledger.get_attestation("alice", "C")
        assert record.signer_count == 10
        assert record.verified is True
        assert collector.get_counter("attestations_verified_total") == 1

    def test_concurrent_execute_succeeds_once(self, populated_ledger):
        populated_ledger.initiate_recovery("alice", ROOT_R, 1, "g1")
        outcomes = []
        barrier = threading.Barrier(8)

        def execute():
            barrier.wait()
            try:
                populated_ledger.execute_recovery("alice")
                outcomes.append("ok")
            except RegistryError as e:
                outcomes.append(e.kind.value)

        threads = [threading.Thread(target=execute) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("AlreadyExecuted") == 7


class TestOperationMetrics:
    def test_success_and_rejection_counted(self, ledger, collector):
        ledger.register_identity("alice", ROOT_A)
        with pytest.raises(RegistryError):
            ledger.register_identity("alice", ROOT_A)

        ok = {"operation": "register_identity", "outcome": "ok"}
        rejected = {"operation": "register_identity", "outcome": "AlreadyExists"}
        assert collector.get_counter("ledger_operations_total", labels=ok) == 1
        assert collector.get_counter("ledger_operations_total", labels=rejected) == 1

    def test_rejection_logged(self, ledger, caplog):
        with caplog.at_level(logging.WARNING, logger="identity_ledger"):
            with pytest.raises(OwnerOnlyError):
                ledger.register_validator("v1", caller="mallory")

        assert "register_validator rejected" in caplog.text


class TestClock:
    def test_advance_clock_admin_only(self, ledger):
        start = ledger.block_height()
        with pytest.raises(OwnerOnlyError):
            ledger.advance_clock(5, caller="alice")

        assert ledger.advance_clock(5, caller="admin") == start + 5

    def test_block_clock_never_moves_back(self):
        clock = BlockClock(start_height=3)
        with pytest.raises(ValueError):
            clock.advance(-1)
        assert clock.block_height() == 3

    def test_wall_clock_cannot_be_advanced(self, collector):
        ledger = IdentityLedger(
            clock=WallClockBlocks(block_seconds=600), metrics_collector=collector
        )
        with pytest.raises(UnauthorizedError):
            ledger.advance_clock(1, caller="admin")

    def test_wall_clock_height(self):
        clock = WallClockBlocks(block_seconds=10, genesis_time=0, start_height=0)
        assert clock.block_height() > 0

    def test_clock_from_env(self, monkeypatch):
        monkeypatch.setenv("QUORUMID_CLOCK", "wall")
        monkeypatch.setenv("QUORUMID_BLOCK_SECONDS", "30")
        clock = clock_from_env()

        assert isinstance(clock, WallClockBlocks)
        assert clock.block_seconds == 30

        monkeypatch.setenv("QUORUMID_CLOCK", "sundial")
        with pytest.raises(ValueError):
            clock_from_env()


class TestSnapshots:
    def test_round_trip(self, populated_ledger, clock, collector):
        populated_ledger.attest("alice", "C", "kyc", "v1")
        populated_ledger.attest("alice", "C", "kyc", "v2")
        populated_ledger.deactivate_validator("v12", caller="admin")
        populated_ledger.link_chain("alice", "eip155:1", "0xabc", caller="alice")
        populated_ledger.initiate_recovery("alice", ROOT_R, 2, "g1")
        clock.advance(10)

        snapshot = populated_ledger.to_dict()
        restored = IdentityLedger.from_dict(snapshot, metrics_collector=collector)

        assert restored.to_dict() == snapshot
        assert restored.block_height() == clock.block_height()
        assert restored.get_attestation("alice", "C").signers.to_list() == ["v1", "v2"]
        assert not restored.is_validator_active("v12")
        assert restored.recovery_state("alice") == RecoveryState.PENDING

        # Restored state keeps enforcing the same rules
        restored.approve_recovery("alice", "g2")
        restored.execute_recovery("alice")
        assert restored.get_identity("alice").merkle_root == ROOT_R

    def test_restore_keeps_configured_wall_clock(self, monkeypatch, collector):
        monkeypatch.setenv("QUORUMID_CLOCK", "wall")
        ledger = IdentityLedger(
            clock=WallClockBlocks(block_seconds=600, genesis_time=0),
            metrics_collector=collector,
        )
        snapshot = ledger.to_dict()

        restored = IdentityLedger.from_dict(snapshot, metrics_collector=collector)
        assert isinstance(restored.clock, WallClockBlocks)
        assert restored.block_height() >= snapshot["block_height"]

    def test_server_restart_keeps_wall_clock(self, monkeypatch, collector):
        from api import state
        from storage.memory import MemoryStorage

        storage = MemoryStorage()
        IdentityLedger(metrics_collector=collector).save(storage)
        monkeypatch.setenv("QUORUMID_CLOCK", "wall")

        restored = state.init_state(storage_backend=storage)
        assert isinstance(restored.clock, WallClockBlocks)

    def test_unknown_version_rejected(self, ledger):
        snapshot = ledger.to_dict()
        snapshot["version"] = 99
        with pytest.raises(ValueError):
            IdentityLedger.from_dict(snapshot)

    def test_stats(self, populated_ledger):
        populated_ledger.deactivate_validator("v1", caller="admin")
        stats = populated_ledger.stats()

        assert stats["identities"] == 2
        assert stats["validators"] == 12
        assert stats["active_validators"] == 11
        assert stats["recovery_requests"] == 0


class TestDefaultLedger:
    def test_singleton_from_env(self, monkeypatch):
        monkeypatch.setenv("QUORUMID_ADMIN", "root")
        monkeypatch.setenv("QUORUMID_MIN_VALIDATORS", "2")
        monkeypatch.delenv("QUORUMID_CLOCK", raising=False)
        reset_ledger()
        try:
            ledger = get_ledger()
            assert ledger is get_ledger()
            assert ledger.admin == "root"
            assert ledger.get_min_validators() == 2
        finally:
            reset_ledger()
