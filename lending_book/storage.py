"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing)
and SQLite (persistence). Records are JSON documents keyed by id; all monetary
values are stored as Decimal strings and dates as ISO strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union, get_type_hints
from decimal import Decimal
from datetime import date, datetime, timezone
from enum import Enum
import sqlite3
import json
import re
import threading
import typing
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from contextlib import contextmanager

from .exceptions import PersistenceError


_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def _encode_value(value: Any) -> Any:
    """Convert a Python value into its JSON-friendly storage form"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _decode_value(annotation: Any, value: Any) -> Any:
    """Convert a stored value back to the type named by a dataclass annotation"""
    if value is None:
        return None

    # Unwrap Optional[X]
    if typing.get_origin(annotation) is Union:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        annotation = args[0] if len(args) == 1 else Any

    if annotation is Decimal and not isinstance(value, Decimal):
        return Decimal(str(value))
    if annotation is datetime and isinstance(value, str):
        return datetime.fromisoformat(value)
    if annotation is date and isinstance(value, str):
        return date.fromisoformat(value[:10])
    if isinstance(annotation, type) and issubclass(annotation, Enum) and not isinstance(value, annotation):
        return annotation(value)
    return value


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {key: _encode_value(value) for key, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from dictionary, restoring Decimal, date and Enum fields"""
        hints = get_type_hints(cls)
        known = {f.name for f in fields(cls)}
        kwargs = {
            key: _decode_value(hints.get(key, Any), value)
            for key, value in data.items()
            if key in known
        }
        return cls(**kwargs)


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to storage"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table in insertion order"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records whose fields equal every filter value"""
        pass

    @abstractmethod
    def compare_and_swap(
        self,
        table: str,
        record_id: str,
        expected: Dict[str, Any],
        data: Dict[str, Any]
    ) -> bool:
        """
        Replace a record only if its current fields match `expected`

        Returns:
            True if the record was replaced, False if it is missing or changed
        """
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
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
            self.commit()
        except Exception:
            self.rollback()
            raise


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    return all(record.get(key) == value for key, value in filters.items())


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def _ensure_table(self, table: str) -> None:
        if table not in self._data:
            self._data[table] = {}

    @staticmethod
    def _copy(record: Dict[str, Any]) -> Dict[str, Any]:
        # Deep copy to prevent external mutation
        return json.loads(json.dumps(record, default=str))

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)
            self._data[table][record_id] = self._copy(data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(record_id)
            return self._copy(record) if record is not None else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            return [self._copy(record) for record in self._data[table].values()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            return self._data[table].pop(record_id, None) is not None

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            return record_id in self._data[table]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            return [
                self._copy(record)
                for record in self._data[table].values()
                if _matches(record, filters)
            ]

    def compare_and_swap(
        self,
        table: str,
        record_id: str,
        expected: Dict[str, Any],
        data: Dict[str, Any]
    ) -> bool:
        with self._lock:
            self._ensure_table(table)
            current = self._data[table].get(record_id)
            if current is None or not _matches(current, expected):
                return False
            self._data[table][record_id] = self._copy(data)
            return True

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._data[table] = {}

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        self._in_transaction = False
        self._depth = 0
        self._tables: set = set()
        try:
            # isolation_level='DEFERRED' enables manual transaction control
            self._connection = sqlite3.connect(
                self.db_path, check_same_thread=False, isolation_level='DEFERRED'
            )
            self._connection.row_factory = sqlite3.Row

            # WAL mode for better concurrent access
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open SQLite database {self.db_path}: {e}")

    @contextmanager
    def _guard(self, operation: str, table: str):
        """Serialize access and translate driver errors into PersistenceError"""
        with self._lock:
            try:
                yield
            except sqlite3.Error as e:
                raise PersistenceError(
                    f"SQLite {operation} on {table} failed: {e}",
                    {"operation": operation, "table": table}
                ) from e

    def _ensure_table(self, table: str) -> None:
        if table in self._tables:
            return
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table}")
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._connection.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_created_at
            ON {table}(created_at)
        """)
        self._maybe_commit()
        self._tables.add(table)

    def _maybe_commit(self) -> None:
        # Only commit if not in transaction
        if not self._in_transaction:
            self._connection.commit()

    @staticmethod
    def _where(filters: Dict[str, Any]):
        conditions = []
        params: List[Any] = []
        for key, value in filters.items():
            if not _IDENTIFIER.match(key):
                raise ValueError(f"Invalid filter field: {key}")
            if value is None:
                conditions.append(f"json_extract(data, '$.{key}') IS NULL")
            else:
                conditions.append(f"json_extract(data, '$.{key}') = ?")
                params.append(value)
        return conditions, params

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._guard("save", table):
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            self._connection.execute(f"""
                INSERT INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
            """, (record_id, json.dumps(data, default=str), now, now))
            self._maybe_commit()

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._guard("load", table):
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT data FROM {table} WHERE id = ?", (record_id,)
            ).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._guard("load_all", table):
            self._ensure_table(table)
            cursor = self._connection.execute(
                f"SELECT data FROM {table} ORDER BY created_at, rowid"
            )
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._guard("delete", table):
            self._ensure_table(table)
            cursor = self._connection.execute(
                f"DELETE FROM {table} WHERE id = ?", (record_id,)
            )
            self._maybe_commit()
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        with self._guard("exists", table):
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (record_id,)
            ).fetchone()
            return row is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters using SQLite JSON functions"""
        with self._guard("find", table):
            self._ensure_table(table)
            conditions, params = self._where(filters)
            where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
            cursor = self._connection.execute(
                f"SELECT data FROM {table} {where_clause} ORDER BY created_at, rowid",
                params
            )
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def compare_and_swap(
        self,
        table: str,
        record_id: str,
        expected: Dict[str, Any],
        data: Dict[str, Any]
    ) -> bool:
        """Conditional replace as a single UPDATE statement"""
        with self._guard("compare_and_swap", table):
            self._ensure_table(table)
            conditions, params = self._where(expected)
            conditions.insert(0, "id = ?")
            now = datetime.now(timezone.utc).isoformat()
            cursor = self._connection.execute(
                f"UPDATE {table} SET data = ?, updated_at = ? WHERE {' AND '.join(conditions)}",
                [json.dumps(data, default=str), now, record_id, *params]
            )
            self._maybe_commit()
            return cursor.rowcount > 0

    def count(self, table: str) -> int:
        with self._guard("count", table):
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT COUNT(*) AS count FROM {table}"
            ).fetchone()
            return row['count']

    def clear_table(self, table: str) -> None:
        with self._guard("clear_table", table):
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")
            self._maybe_commit()

    def begin_transaction(self) -> None:
        # Held until the matching commit/rollback so other threads cannot
        # interleave statements; nested calls join the outer transaction
        self._lock.acquire()
        self._depth += 1
        # The driver opens the transaction on the first DML statement
        self._in_transaction = True

    def commit(self) -> None:
        try:
            with self._guard("commit", "*"):
                if self._depth == 1:
                    self._connection.commit()
                    self._in_transaction = False
        finally:
            self._depth -= 1
            self._lock.release()

    def rollback(self) -> None:
        try:
            with self._guard("rollback", "*"):
                if self._depth == 1:
                    self._connection.rollback()
                    self._in_transaction = False
        finally:
            self._depth -= 1
            self._lock.release()

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
