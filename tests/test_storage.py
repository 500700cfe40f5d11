"""
Tests for storage backends, compare-and-swap and transaction support
"""

import pytest
import tempfile
import os
from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from lending_book.storage import InMemoryStorage, SQLiteStorage, StorageRecord
from lending_book.exceptions import PersistenceError


class Color(Enum):
    RED = "red"
    BLUE = "blue"


@dataclass
class SampleRecord(StorageRecord):
    amount: Decimal
    due: date
    color: Color = Color.RED
    note: Optional[str] = None
    paid_on: Optional[date] = None


@pytest.fixture
def sqlite_path():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(path + suffix):
            os.unlink(path + suffix)


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, sqlite_path):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(sqlite_path)
    yield backend
    backend.close()


class TestStorageRecord:
    """Test record serialization"""

    def test_round_trip_restores_types(self):
        """Decimal, date, datetime and Enum fields survive to_dict/from_dict"""
        now = datetime.now(timezone.utc)
        record = SampleRecord(
            id="r1", created_at=now, updated_at=now,
            amount=Decimal('123.45'), due=date(2024, 2, 29), color=Color.BLUE
        )
        data = record.to_dict()

        assert data["amount"] == "123.45"
        assert data["due"] == "2024-02-29"
        assert data["color"] == "blue"
        assert data["paid_on"] is None

        restored = SampleRecord.from_dict(data)
        assert restored == record
        assert isinstance(restored.amount, Decimal)

    def test_unknown_keys_ignored(self):
        now = datetime.now(timezone.utc)
        data = SampleRecord(
            id="r1", created_at=now, updated_at=now, amount=Decimal('1'), due=date(2024, 1, 1)
        ).to_dict()
        data["legacy_field"] = "x"
        assert SampleRecord.from_dict(data).id == "r1"


class TestStorageBackends:
    """Behaviour shared by every backend"""

    def test_basic_operations(self, storage):
        """Save, load, exists, load_all, count and delete"""
        storage.save("items", "a", {"id": "a", "amount": "10.00"})
        storage.save("items", "b", {"id": "b", "amount": "20.00"})

        assert storage.load("items", "a") == {"id": "a", "amount": "10.00"}
        assert storage.load("items", "missing") is None
        assert storage.exists("items", "a")
        assert not storage.exists("items", "missing")
        assert [r["id"] for r in storage.load_all("items")] == ["a", "b"]
        assert storage.count("items") == 2

        assert storage.delete("items", "a")
        assert not storage.delete("items", "a")
        assert storage.count("items") == 1

    def test_save_overwrites(self, storage):
        storage.save("items", "a", {"id": "a", "status": "pending"})
        storage.save("items", "a", {"id": "a", "status": "paid"})

        assert storage.load("items", "a")["status"] == "paid"
        assert storage.count("items") == 1

    def test_find_by_fields(self, storage):
        """Find matches every filter, including None values"""
        storage.save("items", "a", {"id": "a", "loan_id": "L1", "status": "pending", "paid": None})
        storage.save("items", "b", {"id": "b", "loan_id": "L1", "status": "paid", "paid": "2024-01-01"})
        storage.save("items", "c", {"id": "c", "loan_id": "L2", "status": "pending", "paid": None})

        assert {r["id"] for r in storage.find("items", {"loan_id": "L1"})} == {"a", "b"}
        assert [r["id"] for r in storage.find("items", {"loan_id": "L1", "status": "pending"})] == ["a"]
        assert {r["id"] for r in storage.find("items", {"paid": None})} == {"a", "c"}
        assert storage.find("items", {"loan_id": "L9"}) == []

    def test_find_integer_field(self, storage):
        storage.save("loans", "x", {"id": "x", "version": 2})
        assert len(storage.find("loans", {"version": 2})) == 1
        assert storage.find("loans", {"version": 3}) == []

    def test_loaded_records_are_copies(self, storage):
        """Mutating a loaded record does not change storage"""
        storage.save("items", "a", {"id": "a", "status": "pending"})
        loaded = storage.load("items", "a")
        loaded["status"] = "paid"
        assert storage.load("items", "a")["status"] == "pending"

    def test_clear_table(self, storage):
        storage.save("items", "a", {"id": "a"})
        storage.clear_table("items")
        assert storage.count("items") == 0


class TestCompareAndSwap:
    """Test conditional writes"""

    def test_swap_when_expected_matches(self, storage):
        storage.save("items", "a", {"id": "a", "status": "pending", "version": 0})

        assert storage.compare_and_swap(
            "items", "a", {"status": "pending", "version": 0},
            {"id": "a", "status": "paid", "version": 1}
        )
        assert storage.load("items", "a") == {"id": "a", "status": "paid", "version": 1}

    def test_no_swap_when_changed(self, storage):
        storage.save("items", "a", {"id": "a", "status": "paid", "version": 1})

        assert not storage.compare_and_swap(
            "items", "a", {"status": "pending"}, {"id": "a", "status": "overdue"}
        )
        assert not storage.compare_and_swap(
            "items", "a", {"status": "paid", "version": 0}, {"id": "a", "status": "paid"}
        )
        assert storage.load("items", "a")["version"] == 1

    def test_no_swap_for_missing_record(self, storage):
        assert not storage.compare_and_swap("items", "ghost", {}, {"id": "ghost"})
        assert not storage.exists("items", "ghost")

    def test_only_one_of_two_competing_writers_wins(self, storage):
        storage.save("items", "a", {"id": "a", "status": "pending"})
        first = storage.compare_and_swap("items", "a", {"status": "pending"}, {"id": "a", "status": "paid"})
        second = storage.compare_and_swap("items", "a", {"status": "pending"}, {"id": "a", "status": "paid"})
        assert (first, second) == (True, False)


class TestSQLiteStorage:
    """SQLite specific behaviour"""

    def test_persists_across_connections(self, sqlite_path):
        storage = SQLiteStorage(sqlite_path)
        storage.save("clients", "c1", {"id": "c1", "document_id": "123"})
        storage.close()

        reopened = SQLiteStorage(sqlite_path)
        assert reopened.load("clients", "c1") == {"id": "c1", "document_id": "123"}
        reopened.close()

    def test_atomic_rollback(self, sqlite_path):
        """Writes inside a failed atomic block are discarded"""
        storage = SQLiteStorage(sqlite_path)
        storage.count("loans")

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("loans", "l1", {"id": "l1"})
                raise RuntimeError("boom")

        assert storage.load("loans", "l1") is None
        storage.close()

    def test_nested_atomic_commits_once(self, sqlite_path):
        storage = SQLiteStorage(sqlite_path)
        storage.count("loans")

        with storage.atomic():
            storage.save("loans", "l1", {"id": "l1"})
            with storage.atomic():
                storage.save("loans", "l2", {"id": "l2"})

        assert storage.count("loans") == 2
        storage.close()

    def test_driver_errors_become_persistence_errors(self, sqlite_path):
        """sqlite3 errors are translated into PersistenceError"""
        storage = SQLiteStorage(sqlite_path)
        storage.save("items", "a", {"id": "a"})
        storage._connection.execute("DROP TABLE items")

        with pytest.raises(PersistenceError):
            storage.save("items", "b", {"id": "b"})
        storage.close()

    def test_rejects_unsafe_field_names(self, sqlite_path):
        storage = SQLiteStorage(sqlite_path)
        with pytest.raises(ValueError):
            storage.find("items", {"status') OR 1=1 --": "x"})
        storage.close()
