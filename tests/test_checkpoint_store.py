import os

import pytest

from Storage.checkpoint_store import open_store
from Storage import jsonl_store
from Storage.jsonl_store import JsonlCheckpointStore
from Storage.sqlite_store import SqliteCheckpointStore
from Utils.errors import ConfigurationError, StorageWriteError
from Utils.messages import Found, ObservedState, Tried


def _tried(candidate, balance=0, worker_id=0):
    return Tried(worker_id=worker_id, candidate=candidate, identity="id-" + candidate.replace(" ", ""),
                 state=ObservedState(balance=balance))


def _found(candidate, balance=100):
    return Found(worker_id=0, candidate=candidate, identity="id-" + candidate.replace(" ", ""),
                 state=ObservedState(balance=balance))


@pytest.fixture(params=["sqlite", "jsonl"])
def store_factory(request, tmp_path):
    path = str(tmp_path / ("cp.db" if request.param == "sqlite" else "cp"))
    return lambda: open_store(request.param, path)


def test_empty_store_loads_from_scratch(store_factory):
    store = store_factory()
    tried, next_seq = store.load()
    assert tried == frozenset()
    assert next_seq == 1
    store.close()


def test_restart_resumes_sequence(store_factory):
    store = store_factory()
    store.load()
    candidates = [f"w{i} x y" for i in range(5)]
    records = [store.append_tried(_tried(c)) for c in candidates]
    assert [r.sequence for r in records] == [1, 2, 3, 4, 5]
    store.close()

    reopened = store_factory()
    tried, next_seq = reopened.load()
    assert tried == frozenset(candidates)
    assert len(tried) == 5
    assert next_seq == 6
    assert reopened.append_tried(_tried("fresh one")).sequence == 6
    reopened.close()


def test_schema_creation_is_idempotent(store_factory):
    store = store_factory()
    store.load()
    store.append_tried(_tried("a b"))
    store.ensure_schema()
    store.ensure_schema()
    assert [r.candidate for r in store.tried_records()] == ["a b"]
    store.close()


def test_duplicate_candidate_is_not_appended_twice(store_factory):
    store = store_factory()
    store.load()
    assert store.append_tried(_tried("a b")) is not None
    assert store.append_tried(_tried("a b", worker_id=1)) is None
    assert len(store.tried_records()) == 1
    assert store.next_sequence == 2
    store.close()


def test_found_records_persist(store_factory):
    store = store_factory()
    store.load()
    store.append_tried(_tried("a b", balance=100))
    rec = store.append_found(_found("a b"))
    store.close()

    reopened = store_factory()
    reopened.load()
    found = reopened.found_records()
    assert found == [rec]
    assert found[0].balance == 100
    assert reopened.tried_records()[0].balance == 100
    reopened.close()


def test_jsonl_partial_trailing_line_is_dropped(tmp_path):
    directory = str(tmp_path / "cp")
    store = JsonlCheckpointStore(directory)
    store.load()
    store.append_tried(_tried("a b"))
    store.append_tried(_tried("c d"))
    store.close()

    with open(os.path.join(directory, "tried.jsonl"), "ab") as fh:
        fh.write(b'{"candidate": "e f", "seq')

    reopened = JsonlCheckpointStore(directory)
    tried, next_seq = reopened.load()
    assert tried == frozenset({"a b", "c d"})
    assert next_seq == 3
    reopened.append_tried(_tried("g h"))
    assert [r.sequence for r in reopened.tried_records()] == [1, 2, 3]
    reopened.close()


def test_sqlite_write_failure_raises_storage_write_error(tmp_path):
    store = SqliteCheckpointStore(str(tmp_path / "cp.db"))
    store.load()
    store.conn.execute("DROP TABLE tried")
    with pytest.raises(StorageWriteError):
        store.append_tried(_tried("a b"))
    assert store.next_sequence == 1
    store.close()


def test_jsonl_append_before_load_is_a_write_error(tmp_path):
    store = JsonlCheckpointStore(str(tmp_path / "cp"))
    with pytest.raises(StorageWriteError):
        store.append_found(_found("a b"))


def test_unknown_backend_is_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        open_store("postgres", str(tmp_path))


def test_jsonl_unreadable_middle_line_keeps_later_records(tmp_path):
    directory = str(tmp_path / "cp")
    store = JsonlCheckpointStore(directory)
    store.load()
    store.append_found(_found("a b", balance=1))
    store.close()

    path = os.path.join(directory, "found.jsonl")
    with open(path, "ab") as fh:
        fh.write(b'{"identity": "id-cd", "bal\n')
    store = JsonlCheckpointStore(directory)
    store.load()
    store.append_found(_found("e f", balance=2))
    store.close()

    reopened = JsonlCheckpointStore(directory)
    reopened.load()
    assert [f.identity for f in reopened.found_records()] == ["id-ab", "id-ef"]
    reopened.close()


def test_jsonl_failed_append_is_rolled_back(tmp_path, monkeypatch):
    directory = str(tmp_path / "cp")
    store = JsonlCheckpointStore(directory)
    store.load()
    store.append_tried(_tried("a b"))

    def broken_fsync(fd):
        raise OSError("I/O error")

    monkeypatch.setattr(jsonl_store.os, "fsync", broken_fsync)
    with pytest.raises(StorageWriteError):
        store.append_tried(_tried("c d"))
    monkeypatch.undo()

    assert store.next_sequence == 2
    store.append_tried(_tried("c d"))
    store.close()

    with open(os.path.join(directory, "tried.jsonl"), "rb") as fh:
        lines = fh.read().splitlines()
    assert len(lines) == 2
    reopened = JsonlCheckpointStore(directory)
    tried, next_seq = reopened.load()
    assert tried == frozenset({"a b", "c d"})
    assert next_seq == 3
    reopened.close()
