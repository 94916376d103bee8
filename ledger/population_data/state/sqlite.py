"""
SQLite-backed versioned state store.

This module persists world state and per-key history in a single SQLite
database file. It is the default backend for single-node deployments.

Invariants:
    - world_state holds exactly one row per key: the latest version
    - key_history holds every version ever committed, keyed by (key, sequence)
    - world_state and key_history are written in the same SQLite transaction
    - Rows in key_history are never updated or deleted

How to change safely:
    - Schema migrations must be backward compatible
    - Use BEGIN IMMEDIATE for every write so read-check-write is serialized
    - Keep history reads cursor-based; do not fetchall() a key's history

Table schema:
    world_state:
        - key TEXT PRIMARY KEY
        - value BLOB
        - sequence INTEGER (sequence of the latest version)
        - updated_at INTEGER (Unix ms)

    key_history:
        - key TEXT
        - sequence INTEGER
        - value BLOB
        - tx_id TEXT
        - committed_at INTEGER (Unix ms)
        - PRIMARY KEY (key, sequence)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
import uuid
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager, suppress
from pathlib import Path

from .base import (
    KeyModification,
    StateStoreConnectionError,
    StateStoreError,
    StateStoreTimeoutError,
)

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Map sqlite3 errors onto the state store error hierarchy."""
    try:
        yield
    except sqlite3.OperationalError as e:
        message = str(e).lower()
        if "locked" in message or "busy" in message:
            raise StateStoreTimeoutError(f"{operation} timed out: {e}") from e
        raise StateStoreError(f"{operation} failed: {e}") from e
    except sqlite3.Error as e:
        raise StateStoreError(f"{operation} failed: {e}") from e


class SqliteTransaction:
    """Transaction over an open SQLite connection.

    Statements run inside the caller's BEGIN IMMEDIATE block, so reads see
    writes made earlier in the same transaction.
    """

    def __init__(self, conn: sqlite3.Connection, tx_id: str) -> None:
        self._conn = conn
        self.tx_id = tx_id
        self.writes = 0

    async def get_state(self, key: str) -> bytes | None:
        with _translate_errors("get_state"):
            cursor = self._conn.execute(
                "SELECT value FROM world_state WHERE key = ?",
                (key,),
            )
            row = cursor.fetchone()
        return bytes(row["value"]) if row else None

    async def put_state(self, key: str, value: bytes) -> KeyModification:
        now = int(time.time() * 1000)

        with _translate_errors("put_state"):
            cursor = self._conn.execute(
                "SELECT sequence FROM world_state WHERE key = ?",
                (key,),
            )
            row = cursor.fetchone()
            sequence = row["sequence"] + 1 if row else 0

            self._conn.execute(
                """
                INSERT INTO key_history (key, sequence, value, tx_id, committed_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (key, sequence, sqlite3.Binary(value), self.tx_id, now),
            )
            self._conn.execute(
                """
                INSERT INTO world_state (key, value, sequence, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    sequence = excluded.sequence,
                    updated_at = excluded.updated_at
                """,
                (key, sqlite3.Binary(value), sequence, now),
            )

        self.writes += 1
        return KeyModification(
            key=key,
            value=bytes(value),
            sequence=sequence,
            tx_id=self.tx_id,
            timestamp_ms=now,
        )


class SqliteStateStore:
    """SQLite implementation of VersionedStateStore.

    Thread safety:
        Each operation opens its own connection. Write transactions are
        serialized in-process by an asyncio lock and across processes by
        BEGIN IMMEDIATE.

    Example:
        >>> store = SqliteStateStore("/var/lib/population-data")
        >>> await store.connect()
        >>> async with store.transaction() as tx:
        ...     await tx.put_state("1", b'{"PassportNumber": "1"}')
        >>> async for version in store.get_history_for_key("1"):
        ...     print(version.sequence)
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        db_name: str = "ledger.db",
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        history_batch_size: int = 100,
    ) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory for the SQLite database file
            db_name: Database file name
            wal_mode: Enable SQLite WAL journal mode
            busy_timeout_ms: SQLite busy timeout
            history_batch_size: Rows fetched per round trip when reading history
        """
        self.data_dir = Path(data_dir)
        self.db_name = db_name
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.history_batch_size = history_batch_size
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def is_connected(self) -> bool:
        return self._connected

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the database file.

        Yields:
            SQLite connection

        Raises:
            StateStoreConnectionError: If the store is not connected
        """
        if not self._connected:
            raise StateStoreConnectionError("Not connected")

        with _translate_errors("connect"):
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        conn.row_factory = sqlite3.Row

        try:
            with _translate_errors("connect"):
                conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
                if self.wal_mode:
                    conn.execute("PRAGMA journal_mode = WAL")
                conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS world_state (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL,
                sequence INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS key_history (
                key TEXT NOT NULL,
                sequence INTEGER NOT NULL,
                value BLOB NOT NULL,
                tx_id TEXT NOT NULL,
                committed_at INTEGER NOT NULL,
                PRIMARY KEY (key, sequence)
            );

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def connect(self) -> None:
        """Create the data directory and schema if needed."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateStoreConnectionError(
                f"Cannot create data directory {self.data_dir}: {e}"
            ) from e

        self._connected = True
        try:
            with self._get_connection() as conn:
                with _translate_errors("create schema"):
                    self._create_schema(conn)
        except BaseException:
            self._connected = False
            raise

        logger.info(f"Opened state database: {self.db_path}")

    async def close(self) -> None:
        self._connected = False
        logger.debug("SqliteStateStore closed")

    async def get_state(self, key: str) -> bytes | None:
        """Get the current value of a key, or None if absent."""
        with self._get_connection() as conn:
            with _translate_errors("get_state"):
                cursor = conn.execute(
                    "SELECT value FROM world_state WHERE key = ?",
                    (key,),
                )
                row = cursor.fetchone()
        return bytes(row["value"]) if row else None

    async def get_history_for_key(self, key: str) -> AsyncIterator[KeyModification]:
        """Yield committed versions of a key, oldest first.

        Rows are pulled from the cursor in batches of history_batch_size.
        """
        with self._get_connection() as conn:
            with _translate_errors("get_history_for_key"):
                cursor = conn.execute(
                    """
                    SELECT key, sequence, value, tx_id, committed_at
                    FROM key_history
                    WHERE key = ?
                    ORDER BY sequence ASC
                    """,
                    (key,),
                )

            while True:
                with _translate_errors("get_history_for_key"):
                    rows = cursor.fetchmany(self.history_batch_size)
                if not rows:
                    break

                for row in rows:
                    yield KeyModification(
                        key=row["key"],
                        value=bytes(row["value"]),
                        sequence=row["sequence"],
                        tx_id=row["tx_id"],
                        timestamp_ms=row["committed_at"],
                    )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqliteTransaction]:
        """Open a BEGIN IMMEDIATE transaction.

        Commits when the block exits cleanly and rolls back otherwise.
        """
        async with self._lock:
            with self._get_connection() as conn:
                with _translate_errors("begin transaction"):
                    conn.execute("BEGIN IMMEDIATE")

                tx = SqliteTransaction(conn, tx_id=uuid.uuid4().hex)
                try:
                    yield tx
                except BaseException:
                    with suppress(sqlite3.Error):
                        conn.execute("ROLLBACK")
                    raise

                with _translate_errors("commit"):
                    conn.execute("COMMIT")

        if tx.writes:
            logger.debug(
                "Transaction committed to SQLite state",
                extra={"tx_id": tx.tx_id, "writes": tx.writes},
            )

    async def get_stats(self) -> dict[str, int]:
        """Get row counts for the database.

        Returns:
            Dictionary with key and version counts
        """
        with self._get_connection() as conn, _translate_errors("get_stats"):
            stats = {}

            cursor = conn.execute("SELECT COUNT(*) FROM world_state")
            stats["keys"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM key_history")
            stats["versions"] = cursor.fetchone()[0]

            return stats

    def inject_raw_version(self, key: str, value: bytes) -> None:
        """Write a raw value bypassing the record layer (testing helper)."""
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                cursor = conn.execute(
                    "SELECT sequence FROM world_state WHERE key = ?", (key,)
                )
                row = cursor.fetchone()
                sequence = row["sequence"] + 1 if row else 0
                now = int(time.time() * 1000)
                conn.execute(
                    "INSERT INTO key_history (key, sequence, value, tx_id, committed_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (key, sequence, sqlite3.Binary(value), f"raw-{uuid.uuid4().hex}", now),
                )
                conn.execute(
                    "INSERT INTO world_state (key, value, sequence, updated_at) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "sequence = excluded.sequence, updated_at = excluded.updated_at",
                    (key, sqlite3.Binary(value), sequence, now),
                )
                conn.execute("COMMIT")
            except Exception:
                with suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                raise
