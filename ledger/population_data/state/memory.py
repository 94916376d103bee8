"""
In-memory versioned state store for testing.

This module provides a simple in-memory backend for:
- Unit tests
- Integration tests of the HTTP API
- Local development without a data directory

Invariants:
    - All data is lost on process exit
    - Provides the same isolation and ordering guarantees as SqliteStateStore
    - Transactions are serialized by a single asyncio lock

How to change safely:
    - Keep interface compatible with VersionedStateStore protocol
    - Add testing helpers at the bottom, never in the protocol methods
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional
import logging

from .base import (
    KeyModification,
    StateStoreConnectionError,
)

logger = logging.getLogger(__name__)


class InMemoryTransaction:
    """Transaction over InMemoryStateStore.

    Writes are staged locally and applied by the store on commit.
    """

    def __init__(self, store: InMemoryStateStore, tx_id: str) -> None:
        self._store = store
        self.tx_id = tx_id
        self._staged: List[KeyModification] = []

    async def get_state(self, key: str) -> Optional[bytes]:
        for mod in reversed(self._staged):
            if mod.key == key:
                return mod.value
        return self._store._current_value(key)

    async def put_state(self, key: str, value: bytes) -> KeyModification:
        staged_for_key = sum(1 for mod in self._staged if mod.key == key)
        mod = KeyModification(
            key=key,
            value=bytes(value),
            sequence=len(self._store._history[key]) + staged_for_key,
            tx_id=self.tx_id,
            timestamp_ms=int(time.time() * 1000),
        )
        self._staged.append(mod)
        return mod

    @property
    def staged(self) -> List[KeyModification]:
        return list(self._staged)


class InMemoryStateStore:
    """In-memory implementation of VersionedStateStore.

    Stores, per key, the full list of committed versions. The current value
    is the last element of that list.

    Thread safety:
        Uses an asyncio lock around transactions. Safe to use from
        multiple coroutines on one event loop.

    Example:
        >>> store = InMemoryStateStore()
        >>> await store.connect()
        >>> async with store.transaction() as tx:
        ...     await tx.put_state("1", b'{"PassportNumber": "1"}')
        >>> await store.get_state("1")
        b'{"PassportNumber": "1"}'
    """

    def __init__(self) -> None:
        self._history: Dict[str, List[KeyModification]] = defaultdict(list)
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryStateStore connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._history.clear()
        logger.debug("InMemoryStateStore closed")

    async def get_state(self, key: str) -> Optional[bytes]:
        """Get the current value of a key.

        Args:
            key: Record key

        Returns:
            Stored bytes or None if absent
        """
        self._ensure_connected()
        return self._current_value(key)

    async def get_history_for_key(self, key: str) -> AsyncIterator[KeyModification]:
        """Yield committed versions of a key, oldest first.

        Iterates over a snapshot of the version list taken when iteration
        starts, so versions committed mid-iteration are not observed.
        """
        self._ensure_connected()
        versions = list(self._history.get(key, ()))
        for mod in versions:
            yield mod

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryTransaction]:
        """Open a serialized transaction.

        Staged writes are appended to history only if the block exits
        without raising.
        """
        self._ensure_connected()

        async with self._lock:
            tx = InMemoryTransaction(self, tx_id=uuid.uuid4().hex)
            yield tx

            for mod in tx.staged:
                self._history[mod.key].append(mod)

        if tx.staged:
            logger.debug(
                "Transaction committed to in-memory state",
                extra={"tx_id": tx.tx_id, "writes": len(tx.staged)},
            )

    def _current_value(self, key: str) -> Optional[bytes]:
        versions = self._history.get(key)
        if not versions:
            return None
        return versions[-1].value

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise StateStoreConnectionError("Not connected")

    # Testing helpers

    def get_version_count(self, key: str) -> int:
        """Get the number of committed versions for a key (testing helper)."""
        return len(self._history.get(key, ()))

    def get_all_keys(self) -> List[str]:
        """Get every key with at least one version (testing helper)."""
        return sorted(k for k, v in self._history.items() if v)

    def inject_raw_version(self, key: str, value: bytes) -> KeyModification:
        """Append a raw value bypassing transactions (testing helper).

        Used to simulate corrupted payloads written by a faulty producer.
        """
        versions = self._history[key]
        mod = KeyModification(
            key=key,
            value=value,
            sequence=len(versions),
            tx_id=f"raw-{uuid.uuid4().hex}",
            timestamp_ms=int(time.time() * 1000),
        )
        versions.append(mod)
        return mod
