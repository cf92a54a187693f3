"""
Pytest configuration and shared fixtures for QuorumID tests.

This module provides:
- A fresh ledger on a manual block clock with an isolated metrics collector
- Pre-registered identities, validators and guardians
- Flask app and client backed by in-memory storage
"""

import os
import sys

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

# Set up test environment before any imports
os.environ["QUORUMID_API_KEY"] = "test-api-key-12345"
os.environ["QUORUMID_REQUIRE_AUTH"] = "true"
os.environ["STORAGE_BACKEND"] = "memory"

ADMIN = "admin"

# Distinct 32-byte fingerprints
ROOT_A = bytes.fromhex("aa" * 32)
ROOT_B = bytes.fromhex("bb" * 32)
ROOT_R = bytes.fromhex("cd" * 32)


@pytest.fixture
def clock():
    from ledger_clock import BlockClock
    return BlockClock(start_height=100)


@pytest.fixture
def collector():
    from monitoring.metrics import MetricsCollector
    return MetricsCollector()


@pytest.fixture
def ledger(clock, collector):
    """Fresh ledger with quorum 3."""
    from identity_ledger import IdentityLedger
    return IdentityLedger(admin=ADMIN, clock=clock, min_validators=3, metrics_collector=collector)


@pytest.fixture
def populated_ledger(ledger):
    """Ledger with identities alice/bob, validators v1..v12 and guardians g1..g3 for alice."""
    ledger.register_identity("alice", ROOT_A)
    ledger.register_identity("bob", ROOT_B)
    for i in range(1, 13):
        ledger.register_validator(f"v{i}", caller=ADMIN)
    for g in ("g1", "g2", "g3"):
        ledger.appoint_guardian("alice", g, caller="alice")
    return ledger


@pytest.fixture
def memory_storage():
    from storage.memory import MemoryStorage
    return MemoryStorage()


@pytest.fixture
def flask_app(ledger, memory_storage):
    """Flask test app serving a fresh ledger."""
    from api import create_app
    app = create_app(ledger=ledger, storage_backend=memory_storage)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def flask_client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def test_auth_headers():
    """Headers for authenticated requests."""
    return {
        "Content-Type": "application/json",
        "X-API-Key": "test-api-key-12345",
    }
