"""
Versioned state store abstraction for the population data ledger.

This module provides a pluggable backend interface supporting:
- SQLite (single-node durable storage)
- In-memory (for testing)

The state store is the single source of truth. It keeps, for every key,
the current value plus the append-only history of every committed value.

Invariants:
    - History is append-only; versions are never reordered or removed
    - Transactions are serializable per store
    - A failed transaction leaves no partial writes

How to change safely:
    - New backends must implement the VersionedStateStore protocol
    - Run the shared backend test suite against every implementation
"""

from .base import (
    KeyModification,
    StateStoreConnectionError,
    StateStoreError,
    StateStoreTimeoutError,
    StateTransaction,
    VersionedStateStore,
    create_state_store,
)
from .memory import InMemoryStateStore
from .sqlite import SqliteStateStore

__all__ = [
    # Protocol and types
    "VersionedStateStore",
    "StateTransaction",
    "KeyModification",
    "StateStoreError",
    "StateStoreConnectionError",
    "StateStoreTimeoutError",
    # Factory
    "create_state_store",
    # Implementations
    "SqliteStateStore",
    "InMemoryStateStore",
]
