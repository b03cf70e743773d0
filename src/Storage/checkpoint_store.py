"""
Durable ledgers of tried and found outcomes.

Single writer: only the supervisor thread appends. Every append is durable
before it returns; a crash after the return cannot lose the record, a crash
before it simply leaves the candidate eligible for the next run.
"""
import threading
from abc import ABC, abstractmethod
from typing import FrozenSet, Iterable, List, Optional, Tuple

from Utils.messages import Found, FoundRecord, Tried, TriedRecord


class CheckpointStore(ABC):

    def __init__(self):
        self._tried = set()
        self._next_seq = 1
        # guards readers (status API) against the writer; appends are single-threaded anyway
        self.lock = threading.RLock()

    # --- backend hooks ---

    @abstractmethod
    def ensure_schema(self):
        """Create tables/files if missing. Idempotent."""

    @abstractmethod
    def _read_tried(self) -> Iterable[Tuple[int, str]]:
        """Yield (sequence, candidate) for every persisted tried record."""

    @abstractmethod
    def _write_tried(self, record: TriedRecord):
        """Persist durably or raise StorageWriteError leaving nothing behind."""

    @abstractmethod
    def _write_found(self, record: FoundRecord):
        ...

    @abstractmethod
    def tried_records(self) -> List[TriedRecord]:
        ...

    @abstractmethod
    def found_records(self) -> List[FoundRecord]:
        ...

    def close(self):
        pass

    # --- public contract ---

    def load(self) -> Tuple[FrozenSet[str], int]:
        """Returns (tried-set snapshot, next sequence number)."""
        with self.lock:
            self.ensure_schema()
            last = 0
            tried = set()
            for seq, candidate in self._read_tried():
                tried.add(candidate)
                last = max(last, int(seq))
            self._tried = tried
            self._next_seq = last + 1
            return frozenset(self._tried), self._next_seq

    @property
    def next_sequence(self) -> int:
        return self._next_seq

    def tried_snapshot(self) -> FrozenSet[str]:
        with self.lock:
            return frozenset(self._tried)

    def __len__(self):
        return len(self._tried)

    def append_tried(self, msg: Tried) -> Optional[TriedRecord]:
        """Append a tried outcome. Returns None if the candidate is already recorded."""
        with self.lock:
            if msg.candidate in self._tried:
                return None
            record = TriedRecord(sequence=self._next_seq, candidate=msg.candidate, identity=msg.identity,
                                 balance=msg.state.balance, observed_at=msg.sent_at)
            self._write_tried(record)
            self._tried.add(record.candidate)
            self._next_seq += 1
            return record

    def append_found(self, msg: Found) -> FoundRecord:
        with self.lock:
            record = FoundRecord.from_message(msg)
            self._write_found(record)
            return record


def open_store(backend: str, path: str) -> CheckpointStore:
    if backend == "sqlite":
        from Storage.sqlite_store import SqliteCheckpointStore
        return SqliteCheckpointStore(path)
    if backend == "jsonl":
        from Storage.jsonl_store import JsonlCheckpointStore
        return JsonlCheckpointStore(path)
    from Utils.errors import ConfigurationError
    raise ConfigurationError(f"Unknown storage backend: {backend}")
