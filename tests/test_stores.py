import sqlite3

import pytest

from vocab_srs.config import Settings
from vocab_srs.errors import StorageError
from vocab_srs.schedule_config import ScheduleConfig
from vocab_srs.scheduler import ReviewScheduler
from vocab_srs.store import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore, create_store
from vocab_srs.store import _normalize_emulator_host
from vocab_srs.store.firestore_store import FirestoreKeyValueStore
from tests.firestore_fakes import FakeFirestoreClient, ensure_firestore_test_env, use_fake_firestore_client


@pytest.fixture(params=["memory", "sqlite_file", "sqlite_memory", "firestore"])
def kv_store(request, tmp_path) -> KeyValueStore:
    if request.param == "memory":
        return InMemoryKeyValueStore()
    if request.param == "sqlite_file":
        return SQLiteKeyValueStore(str(tmp_path / "nested" / "srs.sqlite3"))
    if request.param == "sqlite_memory":
        return SQLiteKeyValueStore(":memory:")
    return FirestoreKeyValueStore(FakeFirestoreClient())  # type: ignore[arg-type]


def test_store_contract(kv_store):
    assert isinstance(kv_store, KeyValueStore)
    assert kv_store.get("missing") is None

    assert kv_store.set("k", b'{"a":1}') is True
    assert kv_store.get("k") == b'{"a":1}'

    assert kv_store.set("k", "ü".encode("utf-8")) is True
    assert kv_store.get("k") == "ü".encode("utf-8")

    assert kv_store.delete("k") is True
    assert kv_store.get("k") is None
    assert kv_store.delete("k") is True


def test_scheduler_round_trips_through_each_store(kv_store):
    scheduler = ReviewScheduler(kv_store, ScheduleConfig(kv_store))
    scheduler.config.set_stage_intervals([1, 2])
    scheduler.init_for_word("Cat")
    scheduler.mark_reviewed("cat", "good")

    reloaded = ReviewScheduler(kv_store, ScheduleConfig(kv_store))
    assert reloaded.config.get_stage_intervals() == [1, 2]
    assert reloaded.peek("cat").stage == 1


def test_sqlite_file_persists_across_instances(tmp_path):
    path = str(tmp_path / "srs.sqlite3")
    SQLiteKeyValueStore(path).set("k", b"v")
    assert SQLiteKeyValueStore(path).get("k") == b"v"


def test_sqlite_read_failure_raises_storage_error(tmp_path):
    path = tmp_path / "srs.sqlite3"
    store = SQLiteKeyValueStore(str(path))
    with sqlite3.connect(path) as conn:
        conn.execute("DROP TABLE kv_records;")

    with pytest.raises(StorageError) as excinfo:
        store.get("k")
    assert excinfo.value.key == "k"
    assert store.set("k", b"v") is False


def test_firestore_failures_are_reported():
    client = FakeFirestoreClient()
    store = FirestoreKeyValueStore(client, collection="custom")  # type: ignore[arg-type]
    assert store.set("k", b"v")
    assert client._data["custom"]["k"]["value"] == b"v"

    client.fail_reads = True
    with pytest.raises(StorageError):
        store.get("k")

    client.fail_writes = True
    assert store.set("k", b"w") is False
    assert store.delete("k") is False


def test_scheduler_degrades_when_firestore_is_down():
    client = FakeFirestoreClient()
    store = FirestoreKeyValueStore(client)  # type: ignore[arg-type]
    scheduler = ReviewScheduler(store, ScheduleConfig(store))
    scheduler.init_for_word("a")

    client.fail_reads = True
    assert scheduler.due_keys() == []
    assert scheduler.config.set_rolling_interval(60) is False

    client.fail_reads = False
    assert scheduler.peek("a") is not None


def test_create_store_selects_backend(tmp_path):
    assert isinstance(create_store(Settings(srs_store_backend="memory")), InMemoryKeyValueStore)

    db_path = tmp_path / "data" / "srs.sqlite3"
    store = create_store(Settings(srs_store_backend="sqlite", srs_db_path=str(db_path)))
    assert isinstance(store, SQLiteKeyValueStore)
    assert db_path.parent.exists()


def test_create_store_builds_firestore_with_fake_client(monkeypatch):
    ensure_firestore_test_env(monkeypatch)
    fake = use_fake_firestore_client(monkeypatch)

    store = create_store(
        Settings(srs_store_backend="firestore", srs_firestore_collection="srs_test")
    )
    assert isinstance(store, FirestoreKeyValueStore)
    assert store.set("k", b"v")
    assert fake._data["srs_test"]["k"]["value"] == b"v"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, None),
        ("  ", None),
        ("localhost:8080", "http://localhost:8080"),
        ("https://emulator:8443", "https://emulator:8443"),
    ],
)
def test_normalize_emulator_host(raw, expected):
    assert _normalize_emulator_host(raw) == expected
