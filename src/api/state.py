"""
Shared state for the QuorumID API.

Holds the ledger and storage backend used by every blueprint. Blueprints
read ``state.ledger`` at request time so tests can swap in a fresh ledger.
"""

import logging

from identity_ledger import IdentityLedger
from storage import StorageBackend, StorageError, get_storage_backend

logger = logging.getLogger(__name__)

# ============================================================
# Shared State
# ============================================================

ledger: IdentityLedger | None = None
storage: StorageBackend | None = None


def init_state(
    ledger_instance: IdentityLedger | None = None,
    storage_backend: StorageBackend | None = None,
) -> IdentityLedger:
    """
    Install the ledger and storage backend.

    Without an explicit ledger, the last saved snapshot is restored, or a
    new ledger is built from the environment.
    """
    global ledger, storage

    storage = storage_backend or get_storage_backend()
    if ledger_instance is not None:
        ledger = ledger_instance
        return ledger

    snapshot = storage.load_state()
    if snapshot:
        ledger = IdentityLedger.from_dict(snapshot)
    else:
        logger.info("No saved ledger found, starting fresh")
        ledger = IdentityLedger.from_env()
    return ledger


def get_ledger() -> IdentityLedger:
    if ledger is None:
        return init_state()
    return ledger


def save_ledger() -> None:
    """
    Persist the current ledger snapshot.

    A failed write is logged, not raised: the operation it follows has
    already been applied in memory.
    """
    if storage is None or ledger is None:
        return
    try:
        ledger.save(storage)
    except StorageError as e:
        logger.error("Failed to persist ledger: %s", e)
