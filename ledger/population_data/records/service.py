"""
Record service: create, read, update and history of person records.

The service is a thin, stateless layer over a VersionedStateStore. It owns
the record-level invariants; the store owns durability and isolation.

Invariants:
    - A passport number is created at most once (create guard)
    - Only existing passport numbers can be updated (update guard)
    - The stored PassportNumber always equals the key it is stored under
    - A failed guard aborts before any write is issued
    - History is oldest-first and includes the create and every update

How to change safely:
    - Keep every guard and its write in the same store transaction
    - Never cache values; every call reads through to the store
    - Never return partial history; decoding is fail-fast
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import aclosing, contextmanager

from ..errors import (
    AlreadyExistsError,
    BackendUnavailableError,
    CorruptRecordError,
    NotFoundError,
)
from ..state import StateStoreError, VersionedStateStore
from .model import PersonRecord, RecordDecodeError, RecordVersion

logger = logging.getLogger(__name__)


@contextmanager
def _backend_call(operation: str, passport_number: str) -> Iterator[None]:
    """Translate state store failures into BackendUnavailableError."""
    try:
        yield
    except StateStoreError as e:
        logger.error(
            f"State store failed during {operation}: {e}",
            extra={"operation": operation, "passport_number": passport_number},
        )
        raise BackendUnavailableError(
            f"state store unavailable during {operation}: {e}",
            operation=operation,
        ) from e


def _decode(passport_number: str, raw: bytes, sequence: int | None = None) -> PersonRecord:
    try:
        return PersonRecord.from_json(raw)
    except RecordDecodeError as e:
        logger.warning(
            "Corrupt record payload",
            extra={
                "passport_number": passport_number,
                "sequence": sequence,
                "reason": str(e),
            },
        )
        raise CorruptRecordError(passport_number, str(e), sequence=sequence) from e


class RecordHistory:
    """Lazy, restartable view of a record's version log.

    Each ``async for`` starts a fresh enumeration from the store, pulling
    and decoding one version at a time. Versions committed between two
    enumerations show up in the later one.

    Example:
        >>> history = await service.history("2")
        >>> async for record in history:
        ...     print(record.name)
        >>> records = await history.collect()
    """

    def __init__(self, store: VersionedStateStore, passport_number: str) -> None:
        self._store = store
        self.passport_number = passport_number

    def __aiter__(self) -> AsyncIterator[PersonRecord]:
        return self._records()

    async def _records(self) -> AsyncIterator[PersonRecord]:
        async for version in self.versions():
            yield version.record

    async def versions(self) -> AsyncIterator[RecordVersion]:
        """Yield each version with its commit metadata, oldest first.

        Raises:
            CorruptRecordError: On the first version that fails to decode
            BackendUnavailableError: If the store fails mid-enumeration
        """
        key = self.passport_number
        with _backend_call("history", key):
            async with aclosing(self._store.get_history_for_key(key)) as modifications:
                async for mod in modifications:
                    record = _decode(key, mod.value, sequence=mod.sequence)
                    yield RecordVersion.from_modification(record, mod)

    async def collect(self) -> list[PersonRecord]:
        """Materialize the full history.

        Raises instead of returning a prefix if any version is corrupt.
        """
        return [record async for record in self]

    async def collect_versions(self) -> list[RecordVersion]:
        """Materialize the full history with commit metadata."""
        return [version async for version in self.versions()]


class RecordService:
    """Create/read/update/history operations over a versioned state store.

    Attributes:
        store: Backend holding world state and history

    Thread safety:
        Holds no state or locks of its own. Concurrent creates of the same
        key are resolved by the store's transaction isolation.

    Example:
        >>> service = RecordService(InMemoryStateStore())
        >>> await service.create(PersonRecord(passport_number="3", name="Ivan"))
        >>> (await service.read("3")).name
        'Ivan'
    """

    def __init__(self, store: VersionedStateStore) -> None:
        self.store = store

    async def exists(self, passport_number: str) -> bool:
        """Check whether a current value is stored for a passport number."""
        with _backend_call("exists", passport_number):
            raw = await self.store.get_state(passport_number)
        return raw is not None

    async def create(self, record: PersonRecord) -> PersonRecord:
        """Store a new record under its passport number.

        Args:
            record: Record to create; its passport_number is the key

        Returns:
            The stored record

        Raises:
            AlreadyExistsError: If the passport number is already stored
            BackendUnavailableError: If the store fails
        """
        key = record.passport_number

        with _backend_call("create", key):
            async with self.store.transaction() as tx:
                if await tx.get_state(key) is not None:
                    raise AlreadyExistsError(key)
                mod = await tx.put_state(key, record.to_json())

        logger.debug(
            "Created record",
            extra={"passport_number": key, "sequence": mod.sequence, "tx_id": mod.tx_id},
        )
        return record

    async def read(self, passport_number: str) -> PersonRecord:
        """Get the current record for a passport number.

        Raises:
            NotFoundError: If no record is stored
            CorruptRecordError: If the stored value cannot be decoded
            BackendUnavailableError: If the store fails
        """
        with _backend_call("read", passport_number):
            raw = await self.store.get_state(passport_number)

        if raw is None:
            raise NotFoundError(passport_number)
        return _decode(passport_number, raw)

    async def update(self, passport_number: str, record: PersonRecord) -> PersonRecord:
        """Replace the current record for an existing passport number.

        The stored record always carries ``passport_number``; a different
        value in ``record`` is ignored.

        Returns:
            The stored record

        Raises:
            NotFoundError: If no record is stored
            BackendUnavailableError: If the store fails
        """
        if record.passport_number != passport_number:
            logger.debug(
                "Ignoring mismatched passport number in update payload",
                extra={"passport_number": passport_number, "payload_key": record.passport_number},
            )
        stored = record.with_passport_number(passport_number)

        with _backend_call("update", passport_number):
            async with self.store.transaction() as tx:
                if await tx.get_state(passport_number) is None:
                    raise NotFoundError(passport_number)
                mod = await tx.put_state(passport_number, stored.to_json())

        logger.debug(
            "Updated record",
            extra={"passport_number": passport_number, "sequence": mod.sequence, "tx_id": mod.tx_id},
        )
        return stored

    async def history(self, passport_number: str) -> RecordHistory:
        """Get the version log of an existing record.

        Existence is checked eagerly; versions are fetched lazily as the
        returned RecordHistory is iterated.

        Raises:
            NotFoundError: If no record is stored
            BackendUnavailableError: If the store fails
        """
        if not await self.exists(passport_number):
            raise NotFoundError(passport_number)
        return RecordHistory(self.store, passport_number)

    async def history_list(self, passport_number: str) -> list[PersonRecord]:
        """Get the full version log of an existing record, oldest first."""
        history = await self.history(passport_number)
        return await history.collect()
