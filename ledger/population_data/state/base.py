"""
Base protocol and types for the versioned state store abstraction.

This module defines the VersionedStateStore protocol that all backends must
implement, along with the version record type and common errors.

Invariants:
    - Every key has an append-only, totally ordered list of versions
    - The current value of a key is the value of its last version
    - An absent key is reported as None, never as an empty value
    - Writes made inside a transaction become visible only on commit

How to change safely:
    - Protocol changes require updating all implementations
    - Never reorder or drop versions retroactively; history is an audit log
    - Keep sequence numbering 0-based and gap-free per key
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    AsyncContextManager,
    AsyncIterator,
    Optional,
    Protocol,
    runtime_checkable,
)
import logging

if TYPE_CHECKING:
    from ..config import ServerConfig

logger = logging.getLogger(__name__)


class StateStoreError(Exception):
    """Base exception for state store operations."""
    pass


class StateStoreConnectionError(StateStoreError):
    """State store is not connected or could not be opened."""
    pass


class StateStoreTimeoutError(StateStoreError):
    """State store operation timed out waiting for a lock."""
    pass


@dataclass(frozen=True)
class KeyModification:
    """One committed version of a key.

    Attributes:
        key: Key the version was written under
        value: Raw stored bytes
        sequence: 0-based position of this version in the key's history
        tx_id: Identifier of the transaction that committed the version
        timestamp_ms: Commit time (Unix ms)
    """
    key: str
    value: bytes
    sequence: int
    tx_id: str
    timestamp_ms: int

    def __str__(self) -> str:
        return f"{self.key}@{self.sequence}"


@runtime_checkable
class StateTransaction(Protocol):
    """Read/write view of the store inside one transaction.

    Reads observe writes staged earlier in the same transaction.
    """

    @abstractmethod
    async def get_state(self, key: str) -> Optional[bytes]:
        """Get the current value of a key, or None if absent."""
        ...

    @abstractmethod
    async def put_state(self, key: str, value: bytes) -> KeyModification:
        """Stage a new version of a key.

        Returns:
            The version that will be committed with the transaction
        """
        ...


@runtime_checkable
class VersionedStateStore(Protocol):
    """Protocol for versioned key-value backends.

    Isolation contract:
        - transaction() blocks are serializable with respect to each other,
          so a read-check-write sequence inside one block is atomic
        - A block that raises commits nothing

    Ordering contract:
        - get_history_for_key() yields versions oldest first
        - Sequence numbers are 0-based and contiguous per key

    Example:
        >>> store = InMemoryStateStore()
        >>> await store.connect()
        >>> async with store.transaction() as tx:
        ...     if await tx.get_state("1") is None:
        ...         await tx.put_state("1", b"{}")
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the backend.

        Raises:
            StateStoreConnectionError: If the backend cannot be opened
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...

    @abstractmethod
    async def get_state(self, key: str) -> Optional[bytes]:
        """Point lookup of the current value.

        Returns:
            Stored bytes, or None if the key was never written

        Raises:
            StateStoreConnectionError: If not connected
        """
        ...

    @abstractmethod
    def get_history_for_key(self, key: str) -> AsyncIterator[KeyModification]:
        """Enumerate every committed version of a key, oldest first.

        The iterator pulls versions lazily. A key that was never written
        yields nothing.

        Raises:
            StateStoreConnectionError: If not connected
        """
        ...

    @abstractmethod
    def transaction(self) -> AsyncContextManager[StateTransaction]:
        """Open a serializable read/write transaction.

        Raises:
            StateStoreConnectionError: If not connected
            StateStoreTimeoutError: If the write lock cannot be acquired
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the backend is open."""
        ...


def create_state_store(config: "ServerConfig") -> VersionedStateStore:
    """Factory function to create a state store from configuration.

    Args:
        config: Server configuration

    Returns:
        Appropriate VersionedStateStore implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StateBackend
    from .memory import InMemoryStateStore
    from .sqlite import SqliteStateStore

    storage = config.storage
    if storage.backend == StateBackend.SQLITE:
        return SqliteStateStore(
            data_dir=storage.data_dir,
            db_name=storage.db_name,
            wal_mode=storage.wal_mode,
            busy_timeout_ms=storage.busy_timeout_ms,
            history_batch_size=storage.history_batch_size,
        )
    elif storage.backend == StateBackend.MEMORY:
        return InMemoryStateStore()
    else:
        raise ValueError(f"Unsupported state backend: {storage.backend}")
