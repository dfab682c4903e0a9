"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing)
and SQLite (persistence). All monetary values stored as Decimal strings.

Records are keyed by auto-increment integer ids handed out by ``next_id``.
``atomic()`` makes a block of reads and writes indivisible: no other caller
of the same store observes or interleaves with it, and an exception inside
the block rolls every write back.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union, ClassVar, Tuple
from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
import copy
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from contextlib import contextmanager

from .errors import StorageError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC"""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: int
    created_at: datetime

    # Field coercions applied by from_dict
    _decimal_fields: ClassVar[Tuple[str, ...]] = ()
    _datetime_fields: ClassVar[Tuple[str, ...]] = ("created_at",)
    _enum_fields: ClassVar[Dict[str, type]] = {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, Decimal):
                result[key] = str(value)
            elif isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Enum):
                result[key] = value.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from dictionary, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}

        for name in cls._datetime_fields:
            if values.get(name) is not None:
                values[name] = parse_timestamp(values[name])
        for name in cls._decimal_fields:
            if values.get(name) is not None:
                values[name] = Decimal(str(values[name]))
        for name, enum_type in cls._enum_fields.items():
            if values.get(name) is not None:
                values[name] = enum_type(values[name])

        return cls(**values)


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: Union[int, str], data: Dict[str, Any]) -> None:
        """Save a record to storage"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: Union[int, str]) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: Union[int, str]) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: Union[int, str]) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def next_id(self, table: str) -> int:
        """Allocate the next auto-increment id for a table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        self.commit()


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for key, value in filters.items():
        if key not in record or record[key] != value:
            return False
    return True


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._sequences: Dict[str, int] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._snapshot = None

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}

    def save(self, table: str, record_id: Union[int, str], data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        with self._lock:
            self._ensure_table(table)
            # Deep copy to prevent external mutation
            self._data[table][str(record_id)] = json.loads(json.dumps(data, default=str))

    def load(self, table: str, record_id: Union[int, str]) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(str(record_id))
            if record:
                return copy.deepcopy(record)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            return [copy.deepcopy(record) for record in self._data[table].values()]

    def delete(self, table: str, record_id: Union[int, str]) -> bool:
        """Delete a record from memory"""
        with self._lock:
            self._ensure_table(table)
            return self._data[table].pop(str(record_id), None) is not None

    def exists(self, table: str, record_id: Union[int, str]) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            return str(record_id) in self._data[table]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            self._ensure_table(table)
            return [copy.deepcopy(record) for record in self._data[table].values()
                    if _matches(record, filters)]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def next_id(self, table: str) -> int:
        """Allocate the next auto-increment id"""
        with self._lock:
            value = self._sequences.get(table, 0) + 1
            self._sequences[table] = value
            return value

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._data[table] = {}

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    def begin_transaction(self) -> None:
        """Take the store lock and snapshot state for rollback"""
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = (copy.deepcopy(self._data), dict(self._sequences))
        self._depth += 1

    def commit(self) -> None:
        """Release the store lock, keeping all writes"""
        self._depth -= 1
        if self._depth == 0:
            self._snapshot = None
        self._lock.release()

    def rollback(self) -> None:
        """Restore the snapshot taken by the outermost transaction"""
        self._depth -= 1
        if self._depth == 0 and self._snapshot is not None:
            self._data, self._sequences = self._snapshot
            self._snapshot = None
        self._lock.release()


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # Transactions are managed explicitly through BEGIN IMMEDIATE
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._tables = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

        self._execute("""
            CREATE TABLE IF NOT EXISTS _sequences (
                name TEXT PRIMARY KEY,
                value INTEGER NOT NULL
            )
        """)

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"Storage operation failed: {e}") from e

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        self._execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_created_at
            ON {table}(created_at)
        """)
        self._tables.add(table)

    def save(self, table: str, record_id: Union[int, str], data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._lock:
            self._ensure_table(table)

            now = utc_now().isoformat()
            data_json = json.dumps(data, default=str)
            key = str(record_id)

            self._execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?,
                    COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?),
                    ?)
            """, (key, data_json, key, now, now))

    def load(self, table: str, record_id: Union[int, str]) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            row = self._execute(f"""
                SELECT data FROM {table} WHERE id = ?
            """, (str(record_id),)).fetchone()
            if row:
                return json.loads(row['data'])
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._execute(f"""
                SELECT data FROM {table} ORDER BY created_at
            """)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def delete(self, table: str, record_id: Union[int, str]) -> bool:
        """Delete a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._execute(f"""
                DELETE FROM {table} WHERE id = ?
            """, (str(record_id),))
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: Union[int, str]) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            row = self._execute(f"""
                SELECT 1 FROM {table} WHERE id = ? LIMIT 1
            """, (str(record_id),)).fetchone()
            return row is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters (simple JSON key matching)"""
        return [record for record in self.load_all(table) if _matches(record, filters)]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            row = self._execute(f"""
                SELECT COUNT(*) as count FROM {table}
            """).fetchone()
            return row['count']

    def next_id(self, table: str) -> int:
        """Allocate the next auto-increment id"""
        with self._lock:
            self._execute("""
                INSERT INTO _sequences (name, value) VALUES (?, 1)
                ON CONFLICT(name) DO UPDATE SET value = value + 1
            """, (table,))
            row = self._execute(
                "SELECT value FROM _sequences WHERE name = ?", (table,)
            ).fetchone()
            return row['value']

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            self._execute(f"DELETE FROM {table}")

    def begin_transaction(self) -> None:
        """Start an immediate (write-locking) transaction"""
        self._lock.acquire()
        if self._depth == 0:
            try:
                self._execute("BEGIN IMMEDIATE")
            except StorageError:
                self._lock.release()
                raise
        self._depth += 1

    def commit(self) -> None:
        """Commit current transaction; a failed commit is rolled back"""
        try:
            self._depth -= 1
            if self._depth == 0:
                try:
                    self._execute("COMMIT")
                except StorageError:
                    if self._connection.in_transaction:
                        self._connection.execute("ROLLBACK")
                    self._tables.clear()
                    raise
        finally:
            self._lock.release()

    def rollback(self) -> None:
        """Rollback current transaction"""
        try:
            self._depth -= 1
            if self._depth == 0:
                self._execute("ROLLBACK")
                # Tables created inside the rolled back block are gone
                self._tables.clear()
        finally:
            self._lock.release()

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a URL.

    ``memory://`` gives an InMemoryStorage; ``sqlite:///path/to.db`` (or
    ``sqlite://`` for an in-memory SQLite database) gives a SQLiteStorage.
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteStorage(path or ":memory:")
    raise ValueError(f"Unsupported database URL: {database_url}")
