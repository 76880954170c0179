"""
Tests for storage backends and transaction support
"""

import pytest
from dataclasses import dataclass
from datetime import datetime, timezone

from loan_engine.exceptions import ConfigurationError
from loan_engine.storage import (
    InMemoryStorage, SQLiteStorage, StorageRecord, create_storage
)


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "test.db")
    yield backend
    backend.close()


def installment(record_id, loan_id, due_date, amount=100):
    return {"id": record_id, "loan_id": loan_id, "due_date": due_date, "amount": amount}


class TestStorageBackends:
    """Test CRUD operations shared by every backend"""

    def test_basic_operations(self, storage):
        """Test save, load, exists, count, delete and clear"""
        data = installment("r1", "loan-1", "2023-02-01")
        storage.save("test_table", "r1", data)

        assert storage.load("test_table", "r1") == data
        assert storage.load("test_table", "missing") is None
        assert storage.exists("test_table", "r1")
        assert not storage.exists("test_table", "missing")

        storage.save("test_table", "r2", installment("r2", "loan-1", "2023-03-01"))
        assert storage.count("test_table") == 2
        assert [r["id"] for r in storage.load_all("test_table")] == ["r1", "r2"]

        assert storage.delete("test_table", "r1")
        assert not storage.delete("test_table", "r1")
        assert storage.count("test_table") == 1

        storage.clear_table("test_table")
        assert storage.count("test_table") == 0

    def test_save_replaces_record(self, storage):
        """Test that saving an existing id replaces it in place"""
        storage.save("test_table", "r1", installment("r1", "loan-1", "2023-02-01"))
        storage.save("test_table", "r2", installment("r2", "loan-1", "2023-03-01"))
        storage.save("test_table", "r1", installment("r1", "loan-1", "2023-02-01", amount=0))

        records = storage.load_all("test_table")
        assert [r["id"] for r in records] == ["r1", "r2"]
        assert records[0]["amount"] == 0
        assert storage.count("test_table") == 2

    def test_loaded_records_are_copies(self, storage):
        storage.save("test_table", "r1", installment("r1", "loan-1", "2023-02-01"))

        loaded = storage.load("test_table", "r1")
        loaded["amount"] = 999

        assert storage.load("test_table", "r1")["amount"] == 100

    def test_find_with_filters(self, storage):
        """Test that find matches every filter"""
        storage.save("test_table", "r1", installment("r1", "loan-1", "2023-02-01"))
        storage.save("test_table", "r2", installment("r2", "loan-2", "2023-02-01"))
        storage.save("test_table", "r3", installment("r3", "loan-1", "2023-03-01", amount=50))

        assert [r["id"] for r in storage.find("test_table", {"loan_id": "loan-1"})] == ["r1", "r3"]
        assert [r["id"] for r in storage.find("test_table", {"loan_id": "loan-1", "amount": 50})] == ["r3"]
        assert storage.find("test_table", {"loan_id": "loan-3"}) == []
        assert len(storage.find("test_table", {})) == 3

    def test_find_ordered(self, storage):
        """Test ordering by a field with insertion order as tie-break"""
        storage.save("test_table", "c", installment("c", "loan-1", "2023-04-01"))
        storage.save("test_table", "a", installment("a", "loan-1", "2023-02-01"))
        storage.save("test_table", "b2", installment("b2", "loan-1", "2023-03-01"))
        storage.save("test_table", "b1", installment("b1", "loan-1", "2023-03-01"))

        results = storage.find("test_table", {"loan_id": "loan-1"}, order_by="due_date")

        assert [r["id"] for r in results] == ["a", "b2", "b1", "c"]

    def test_find_ordered_numerically(self, storage):
        for sequence in (10, 2, 1):
            storage.save("test_table", f"e{sequence}", {"sequence": sequence})

        results = storage.find("test_table", {}, order_by="sequence")

        assert [r["sequence"] for r in results] == [1, 2, 10]


class TestTransactions:
    """Test all-or-nothing writes"""

    def test_atomic_commit(self, storage):
        with storage.atomic():
            storage.save("test_table", "r1", {"id": "r1"})
            storage.save("test_table", "r2", {"id": "r2"})

        assert storage.count("test_table") == 2

    def test_atomic_rollback(self, storage):
        """Test that an error inside the block discards every write"""
        storage.save("test_table", "r0", {"id": "r0", "value": 0})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("test_table", "r0", {"id": "r0", "value": 1})
                storage.save("test_table", "r1", {"id": "r1"})
                raise RuntimeError("boom")

        assert storage.count("test_table") == 1
        assert storage.load("test_table", "r0")["value"] == 0

    def test_rollback_of_new_table(self, storage):
        """Test that a table first created inside a rolled back block is usable afterwards"""
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("fresh_table", "r1", {"id": "r1"})
                raise RuntimeError("boom")

        storage.save("fresh_table", "r2", {"id": "r2"})
        assert storage.count("fresh_table") == 1

    def test_nested_atomic(self, storage):
        """Test that an inner block does not commit the outer one"""
        with pytest.raises(RuntimeError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("test_table", "r1", {"id": "r1"})
                storage.save("test_table", "r2", {"id": "r2"})
                raise RuntimeError("boom")

        assert storage.count("test_table") == 0

    def test_inner_rollback_keeps_outer_writes(self, storage):
        """Test that a failed inner block undoes only its own writes"""
        with storage.atomic():
            storage.save("test_table", "r1", {"id": "r1"})
            with pytest.raises(RuntimeError):
                with storage.atomic():
                    storage.save("test_table", "r2", {"id": "r2"})
                    storage.save("test_table", "r1", {"id": "r1", "value": 2})
                    raise RuntimeError("boom")
            storage.save("test_table", "r3", {"id": "r3"})

        assert storage.load("test_table", "r1") == {"id": "r1"}
        assert not storage.exists("test_table", "r2")
        assert storage.exists("test_table", "r3")

    def test_sqlite_persists_across_connections(self, tmp_path):
        db_path = tmp_path / "persist.db"
        first = SQLiteStorage(db_path)
        with first.atomic():
            first.save("test_table", "r1", {"id": "r1", "loan_id": "loan-1"})
        first.close()

        second = SQLiteStorage(db_path)
        assert second.load("test_table", "r1") == {"id": "r1", "loan_id": "loan-1"}
        second.close()


class TestStorageRecord:
    """Test record serialization"""

    @dataclass
    class Sample(StorageRecord):
        name: str

    def test_round_trip(self):
        now = datetime(2023, 1, 1, 12, 0, tzinfo=timezone.utc)
        record = self.Sample(id="s1", created_at=now, updated_at=now, name="sample")

        data = record.to_dict()
        assert data == {
            "id": "s1",
            "created_at": "2023-01-01T12:00:00+00:00",
            "updated_at": "2023-01-01T12:00:00+00:00",
            "name": "sample",
        }
        assert self.Sample.from_dict(data) == record


class TestCreateStorage:
    """Test storage selection from a database URL"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_urls(self, tmp_path):
        in_memory = create_storage("sqlite://:memory:")
        assert isinstance(in_memory, SQLiteStorage)
        assert in_memory.db_path == ":memory:"
        in_memory.close()

        on_disk = create_storage(f"sqlite:///{tmp_path / 'engine.db'}")
        assert on_disk.db_path == str(tmp_path / "engine.db")
        on_disk.close()

    def test_unsupported_url(self):
        with pytest.raises(ConfigurationError, match="Unsupported"):
            create_storage("postgresql://localhost/loans")

    def test_invalid_table_name(self):
        storage = SQLiteStorage()
        with pytest.raises(ValueError, match="table name"):
            storage.save("loans; DROP TABLE x", "r1", {})
        storage.close()
