"""
Registry storage for TxRegistry.

A store maps identity keys to registry entries and offers one mutating
operation, claim(), which is an atomic compare-and-insert: the first
claim for a key creates the entry, every later claim returns the
existing entry untouched. There is no update and no delete.
"""

import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .models import RegistryEntry, TransactionDescriptor


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


class RegistryStore(ABC):
    """Abstract append-only mapping from identity key to RegistryEntry."""

    @abstractmethod
    def claim(
        self,
        identity_key: str,
        submitter: str,
        descriptor: TransactionDescriptor
    ) -> Tuple[bool, RegistryEntry]:
        """
        Atomically claim an identity key.

        Returns:
            (created, entry) where entry is the winning claim: the new one
            if created is True, the pre-existing one otherwise
        """
        pass

    @abstractmethod
    def get(self, identity_key: str) -> Optional[RegistryEntry]:
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    @abstractmethod
    def entries(self) -> List[RegistryEntry]:
        """All entries in claim order."""
        pass

    def close(self) -> None:
        pass


class InMemoryRegistryStore(RegistryStore):
    """
    Process-local store. All access is serialized by one lock, so readers
    never observe a partially-built entry.
    """

    def __init__(self):
        self._entries: Dict[str, RegistryEntry] = {}
        self._lock = threading.Lock()

    def claim(self, identity_key, submitter, descriptor):
        with self._lock:
            existing = self._entries.get(identity_key)
            if existing is not None:
                return False, existing
            entry = RegistryEntry(
                identity_key=identity_key,
                submitter=submitter,
                operation=descriptor.operation,
                record_id=descriptor.record_id,
                timestamp=descriptor.timestamp,
                sequence=len(self._entries) + 1,
                claimed_at=now_epoch(),
            )
            self._entries[identity_key] = entry
            return True, entry

    def get(self, identity_key):
        with self._lock:
            return self._entries.get(identity_key)

    def count(self):
        with self._lock:
            return len(self._entries)

    def entries(self):
        with self._lock:
            return sorted(self._entries.values(), key=lambda e: e.sequence)


class SqliteRegistryStore(RegistryStore):
    """
    SQLite-backed store.

    Connections are thread-local. claim() runs INSERT OR IGNORE inside a
    BEGIN IMMEDIATE transaction and then reads back the row, so concurrent
    writers on the same file (threads or processes) see exactly one winner.
    """

    def __init__(self, db_path: str):
        if db_path == ":memory:":
            # each thread-local connection would get its own empty database
            raise ValueError("use InMemoryRegistryStore for in-memory registries")
        self._db_path = Path(db_path)
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._conn_lock = threading.Lock()
        self.init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a thread-local database connection.
        Connections are reused within the same thread.
        """
        conn = getattr(self._local, "conn", None)
        if conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            # isolation_level=None: transactions are managed explicitly below
            conn = sqlite3.connect(str(self._db_path), timeout=30.0,
                                   isolation_level=None, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
            with self._conn_lock:
                self._connections.append(conn)
        return conn

    @contextmanager
    def _transaction(self, mode: str = "DEFERRED") -> Iterator[sqlite3.Connection]:
        """
        Context manager for database transactions.
        Commits on success, rolls back on failure.
        """
        conn = self._get_connection()
        conn.execute(f"BEGIN {mode}")
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    def init_schema(self) -> None:
        """Safe to call multiple times (uses IF NOT EXISTS)."""
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS registry_entries (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                identity_key TEXT NOT NULL UNIQUE,
                submitter TEXT NOT NULL,
                operation BLOB NOT NULL,
                record_id BLOB NOT NULL,
                timestamp TEXT NOT NULL,
                claimed_at INTEGER NOT NULL
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_registry_entries_submitter
            ON registry_entries(submitter);""")

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> RegistryEntry:
        return RegistryEntry(
            identity_key=row["identity_key"],
            submitter=row["submitter"],
            operation=row["operation"],
            record_id=row["record_id"],
            # stored as text: 256-bit values overflow SQLite integers
            timestamp=int(row["timestamp"]),
            sequence=row["seq"],
            claimed_at=row["claimed_at"],
        )

    def _select(self, conn: sqlite3.Connection, identity_key: str) -> Optional[RegistryEntry]:
        cur = conn.execute(
            "SELECT seq, identity_key, submitter, operation, record_id, timestamp, claimed_at "
            "FROM registry_entries WHERE identity_key=?",
            (identity_key,)
        )
        row = cur.fetchone()
        return self._row_to_entry(row) if row else None

    def claim(self, identity_key, submitter, descriptor):
        with self._transaction("IMMEDIATE") as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO registry_entries"
                "(identity_key, submitter, operation, record_id, timestamp, claimed_at) "
                "VALUES(?,?,?,?,?,?)",
                (identity_key, submitter, descriptor.operation, descriptor.record_id,
                 str(descriptor.timestamp), now_epoch())
            )
            created = cur.rowcount == 1
            entry = self._select(conn, identity_key)
        return created, entry

    def get(self, identity_key):
        return self._select(self._get_connection(), identity_key)

    def count(self):
        cur = self._get_connection().execute("SELECT COUNT(*) AS cnt FROM registry_entries")
        return cur.fetchone()["cnt"]

    def entries(self):
        cur = self._get_connection().execute(
            "SELECT seq, identity_key, submitter, operation, record_id, timestamp, claimed_at "
            "FROM registry_entries ORDER BY seq ASC"
        )
        return [self._row_to_entry(row) for row in cur.fetchall()]

    def close(self) -> None:
        """Close every connection this store opened."""
        with self._conn_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()


def get_store(store_type: str = "sqlite", db_path: str = "data/txregistry.db") -> RegistryStore:
    """
    Factory function to create the configured registry store.

    Args:
        store_type: "sqlite" or "memory"
        db_path: SQLite file path (sqlite store only)
    """
    if store_type == "memory":
        return InMemoryRegistryStore()
    if store_type == "sqlite":
        return SqliteRegistryStore(db_path)
    raise ValueError(f"Unknown store type: {store_type}")
