"""Tests for the in-memory, JSON-file and SQL record stores."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

from sprint_rollover.config.settings import StorageSettings
from sprint_rollover.infra.errors import PersistenceError
from sprint_rollover.storage import (
    InMemoryRecordStore,
    JsonFileRecordStore,
    RecordStore,
    SqlRecordStore,
    build_stores,
    read_blob,
    write_blob,
)
from sprint_rollover.storage.sql import create_record_engine, ensure_schema


class _BrokenStore(RecordStore):
    @property
    def key(self) -> str:
        return "broken"

    def load(self):
        raise OSError("disk gone")

    def save(self, value) -> None:
        raise OSError("disk full")

    def clear(self) -> None:
        pass


def _sql_store(tmp_path: Path, key: str) -> SqlRecordStore:
    settings = StorageSettings(database_url=f"sqlite:///{tmp_path / 'records.db'}")
    engine = create_record_engine(settings)
    ensure_schema(engine)
    return SqlRecordStore(sessionmaker(engine, expire_on_commit=False), key)


class TestInMemoryRecordStore:
    def test_empty_loads_none(self) -> None:
        assert InMemoryRecordStore("k").load() is None

    def test_save_is_isolated_from_caller(self) -> None:
        store = InMemoryRecordStore("k")
        value = {"a": [1, 2]}
        store.save(value)
        value["a"].append(3)
        loaded = store.load()
        assert loaded == {"a": [1, 2]}
        loaded["a"].append(4)
        assert store.load() == {"a": [1, 2]}

    def test_clear(self) -> None:
        store = InMemoryRecordStore("k", initial=[1])
        store.clear()
        assert store.load() is None


class TestJsonFileRecordStore:
    def test_round_trip(self, tmp_path: Path) -> None:
        store = JsonFileRecordStore(tmp_path / "data", "cycle")
        store.save({"milestoneName": "14 KW 23", "ended": True})
        assert store.path == tmp_path / "data" / "cycle.json"
        assert store.load() == {"milestoneName": "14 KW 23", "ended": True}
        assert list((tmp_path / "data").glob("*.tmp")) == []

    def test_failed_write_keeps_previous_document(self, tmp_path: Path) -> None:
        store = JsonFileRecordStore(tmp_path, "cycle")
        store.save({"ended": False})
        with pytest.raises(TypeError):
            store.save({"ended": object()})
        assert store.load() == {"ended": False}
        assert list(tmp_path.glob("*.tmp")) == []

    def test_missing_and_blank_files_load_none(self, tmp_path: Path) -> None:
        store = JsonFileRecordStore(tmp_path, "cycle")
        assert store.load() is None
        store.path.write_text("  \n", encoding="utf-8")
        assert store.load() is None

    def test_clear_missing_is_noop(self, tmp_path: Path) -> None:
        store = JsonFileRecordStore(tmp_path, "cycle")
        store.clear()
        store.save([])
        store.clear()
        assert not store.path.exists()


class TestSqlRecordStore:
    def test_round_trip_and_overwrite(self, tmp_path: Path) -> None:
        store = _sql_store(tmp_path, "history")
        assert store.load() is None
        store.save([{"id": "1"}])
        store.save([{"id": "2"}, {"id": "1"}])
        assert store.load() == [{"id": "2"}, {"id": "1"}]

    def test_keys_are_independent(self, tmp_path: Path) -> None:
        settings = StorageSettings(database_url=f"sqlite:///{tmp_path / 'records.db'}")
        engine = create_record_engine(settings)
        ensure_schema(engine)
        factory = sessionmaker(engine, expire_on_commit=False)
        cycle = SqlRecordStore(factory, "cycle")
        history = SqlRecordStore(factory, "history")
        cycle.save({"ended": True})
        history.save([])
        cycle.clear()
        assert cycle.load() is None
        assert history.load() == []


class TestBuildStores:
    def test_memory_backend(self) -> None:
        cycle, history = build_stores(StorageSettings(backend="memory"))
        assert isinstance(cycle, InMemoryRecordStore)
        assert (cycle.key, history.key) == (
            "gitLabHelperSprintState",
            "gitLabHelperSprintHistory",
        )

    def test_json_backend(self, tmp_path: Path) -> None:
        cycle, history = build_stores(StorageSettings(backend="json", json_dir=tmp_path))
        assert isinstance(cycle, JsonFileRecordStore)
        assert history.path == tmp_path / "gitLabHelperSprintHistory.json"

    def test_sql_backend_creates_schema(self, tmp_path: Path) -> None:
        settings = StorageSettings(
            backend="sql", database_url=f"sqlite:///{tmp_path / 'records.db'}"
        )
        cycle, history = build_stores(settings)
        assert isinstance(cycle, SqlRecordStore)
        history.save([{"id": "a"}])
        assert history.load() == [{"id": "a"}]


class TestBlobHelpers:
    def test_read_failure_wrapped(self) -> None:
        with pytest.raises(PersistenceError, match="Failed to load 'broken'") as exc_info:
            read_blob(_BrokenStore())
        assert exc_info.value.code == "PERSISTENCE_FAILED"
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_write_failure_wrapped(self) -> None:
        with pytest.raises(PersistenceError, match="disk full"):
            write_blob(_BrokenStore(), {})
