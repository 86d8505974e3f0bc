"""
Version Ledger

Tracks the highest accepted version per role. This is the anti-rollback
state: for a role, accepted versions only ever go up.

The ledger is loaded from a LedgerStore at construction and written back
through it on every accepted document. The compare and the commit for a
role happen under that role's lock, so two concurrent submissions can never
both advance the ledger from the same stale value. Different roles never
wait on each other beyond the lock-table lookup.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from .errors import LowVersion, Outcome

logger = logging.getLogger(__name__)


class LedgerStore(ABC):
    """
    Durable role -> version storage.

    Implementations must never lower a stored version.
    """

    @abstractmethod
    def load(self) -> Dict[str, int]:
        """Return every stored role version."""
        pass

    @abstractmethod
    def save(self, role: str, version: int) -> int:
        """
        Persist version for role unless a higher one is already stored.

        Returns the version stored for role after the write, which is above
        version when another writer got there first. Raise if it cannot be
        made durable.
        """
        pass


class InMemoryLedgerStore(LedgerStore):
    """
    Non-durable store for tests and short-lived processes.

    WARNING: versions are lost on restart, which re-opens rollback windows.
    """

    def __init__(self, initial: Optional[Dict[str, int]] = None):
        self._versions: Dict[str, int] = dict(initial or {})
        self._lock = threading.Lock()

    def load(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._versions)

    def save(self, role: str, version: int) -> int:
        with self._lock:
            if version > self._versions.get(role, 0):
                self._versions[role] = version
            return self._versions.get(role, 0)


class SQLiteLedgerStore(LedgerStore):
    """
    SQLite-backed store.

    Uses one connection per thread. The upsert only ever raises a stored
    version, so several processes sharing a file cannot roll each other back.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._local = threading.local()
        self._init_schema()

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._path), check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=FULL;")
            self._local.conn = conn
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _init_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS role_versions (
                role TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                updated_at INTEGER DEFAULT (strftime('%s', 'now'))
            );""")

    def load(self) -> Dict[str, int]:
        rows = self._connection().execute("SELECT role, version FROM role_versions").fetchall()
        return {role: int(version) for role, version in rows}

    def save(self, role: str, version: int) -> int:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO role_versions(role, version) VALUES(?, ?)
                ON CONFLICT(role) DO UPDATE SET
                    version = excluded.version,
                    updated_at = strftime('%s', 'now')
                WHERE excluded.version > role_versions.version
                """,
                (role, version),
            )
            # Read back inside the write transaction
            row = conn.execute("SELECT version FROM role_versions WHERE role = ?", (role,)).fetchone()
        return int(row[0])

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None


class VersionLedger:
    """
    Process-wide map of role name -> highest accepted version.

    Pass one instance to every orchestrator that must share rollback
    protection.
    """

    def __init__(self, store: Optional[LedgerStore] = None):
        self._store = store or InMemoryLedgerStore()
        self._versions: Dict[str, int] = dict(self._store.load())
        self._role_locks: Dict[str, threading.Lock] = {}
        self._table_lock = threading.Lock()

    def _lock_for(self, role: str) -> threading.Lock:
        with self._table_lock:
            lock = self._role_locks.get(role)
            if lock is None:
                lock = self._role_locks[role] = threading.Lock()
            return lock

    def current(self, role: str) -> int:
        """Highest accepted version for role; 0 if none has been accepted."""
        return self._versions.get(role, 0)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._versions)

    def compare_and_commit(self, role: str, version: int) -> Outcome:
        """
        Atomically accept version for role if it is strictly higher than the
        current one.

        The store is written before the in-memory value changes; if the store
        raises, the ledger is left untouched and the exception propagates. If
        the store already holds a higher version (another ledger sharing it
        committed first), the version is rejected and this ledger catches up
        to the stored value.

        Returns:
            Accepted, or Rejected(LowVersion) when version <= current
        """
        with self._lock_for(role):
            current = self._versions.get(role, 0)
            if version <= current:
                return Outcome.reject(LowVersion(actual=version, current=current))

            stored = self._store.save(role, version)
            self._versions[role] = stored
            if stored != version:
                return Outcome.reject(LowVersion(actual=version, current=stored))

        logger.debug("Ledger advanced: role=%s %d -> %d", role, current, version)
        return Outcome.accept()
