import json
import logging
import os
from typing import Iterable, List, Optional, Tuple

from Storage.checkpoint_store import CheckpointStore
from Utils.errors import ConfigurationError, StorageWriteError
from Utils.messages import FoundRecord, TriedRecord

logger = logging.getLogger(__name__)

TRIED_FILE = "tried.jsonl"
FOUND_FILE = "found.jsonl"


def _scan(path: str) -> Tuple[List[dict], int]:
    """
    Parse a JSON-lines ledger. Returns (entries, valid_size) where valid_size
    is the byte offset just past the last newline-terminated line.

    A complete line that does not parse is logged and skipped, so records
    after it survive. Only an unterminated final line (a crash mid-append)
    lies beyond valid_size.
    """
    entries = []
    valid_size = 0
    with open(path, "rb") as fh:
        for lineno, raw in enumerate(fh, start=1):
            if not raw.endswith(b"\n"):
                break
            valid_size += len(raw)
            if not raw.strip():
                continue
            try:
                entries.append(json.loads(raw.decode("utf-8")))
            except ValueError:
                logger.error("[Checkpoint] Skipping unreadable line %d in %s", lineno, path)
    return entries, valid_size


class JsonlCheckpointStore(CheckpointStore):
    """
    Checkpoint ledgers as two append-only JSON-lines files in one directory.
    Each record goes out in a single unbuffered write and is fsynced before
    returning; a failed write is truncated back to the previous end of file.
    """
    def __init__(self, directory: str = "data/checkpoint"):
        super().__init__()
        self.directory = directory
        self.tried_path = os.path.join(directory, TRIED_FILE)
        self.found_path = os.path.join(directory, FOUND_FILE)
        self._tried_fd: Optional[int] = None
        self._found_fd: Optional[int] = None

    def ensure_schema(self):
        try:
            os.makedirs(self.directory, exist_ok=True)
            for path in (self.tried_path, self.found_path):
                if not os.path.exists(path):
                    with open(path, "a", encoding="utf-8"):
                        pass
            for path in (self.tried_path, self.found_path):
                self._repair(path)
            if self._tried_fd is None:
                self._tried_fd = os.open(self.tried_path, os.O_WRONLY | os.O_APPEND)
            if self._found_fd is None:
                self._found_fd = os.open(self.found_path, os.O_WRONLY | os.O_APPEND)
        except OSError as e:
            raise ConfigurationError(f"Cannot prepare checkpoint directory {self.directory}: {e}") from e

    def _repair(self, path: str):
        _, valid_size = _scan(path)
        size = os.path.getsize(path)
        if size > valid_size:
            logger.warning("[Checkpoint] Dropping %d trailing byte(s) of partial record in %s",
                           size - valid_size, path)
            with open(path, "r+b") as fh:
                fh.truncate(valid_size)
                fh.flush()
                os.fsync(fh.fileno())

    def _read_tried(self) -> Iterable[Tuple[int, str]]:
        entries, _ = _scan(self.tried_path)
        return [(e["sequence"], e["candidate"]) for e in entries]

    def _append_line(self, fd: Optional[int], payload: dict, what: str):
        if fd is None:
            raise StorageWriteError(f"{what}: store not initialised, call load() first")
        data = (json.dumps(payload, sort_keys=True) + "\n").encode("utf-8")
        pos = os.lseek(fd, 0, os.SEEK_END)
        try:
            written = os.write(fd, data)
            if written != len(data):
                raise OSError(f"short write ({written} of {len(data)} bytes)")
            os.fsync(fd)
        except OSError as e:
            # roll back a partial line so a retry starts on a clean line boundary
            try:
                os.ftruncate(fd, pos)
            except OSError:
                logger.error("[Checkpoint] Could not roll back partial write (%s)", what)
            raise StorageWriteError(f"{what}: {e}") from e

    def _write_tried(self, record: TriedRecord):
        self._append_line(self._tried_fd, record.model_dump(mode="json"), f"tried #{record.sequence}")

    def _write_found(self, record: FoundRecord):
        self._append_line(self._found_fd, record.model_dump(mode="json"), f"found {record.identity}")

    def tried_records(self) -> List[TriedRecord]:
        with self.lock:
            entries, _ = _scan(self.tried_path)
        return [TriedRecord.model_validate(e) for e in entries]

    def found_records(self) -> List[FoundRecord]:
        with self.lock:
            entries, _ = _scan(self.found_path)
        return [FoundRecord.model_validate(e) for e in entries]

    def close(self):
        with self.lock:
            for fd in (self._tried_fd, self._found_fd):
                if fd is not None:
                    os.close(fd)
            self._tried_fd = None
            self._found_fd = None
