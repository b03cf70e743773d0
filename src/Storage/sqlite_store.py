import os
import sqlite3
from datetime import datetime
from typing import Iterable, List, Tuple

from Storage.checkpoint_store import CheckpointStore
from Utils.errors import ConfigurationError, StorageWriteError
from Utils.messages import FoundRecord, TriedRecord


class SqliteCheckpointStore(CheckpointStore):
    """
    Checkpoint ledgers in one SQLite file.
    Commit per append with synchronous=FULL. Usable from the supervisor thread
    and read from the status API thread (shared connection under self.lock).
    """
    def __init__(self, db_path: str = "data/checkpoint.db"):
        super().__init__()
        self.db_path = db_path
        try:
            parent = os.path.dirname(os.path.abspath(db_path))
            os.makedirs(parent, exist_ok=True)
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
            self.conn.execute("PRAGMA synchronous=FULL")
        except (OSError, sqlite3.Error) as e:
            raise ConfigurationError(f"Cannot open checkpoint database {db_path}: {e}") from e

    def ensure_schema(self):
        try:
            with self.conn:
                self.conn.execute("""
                CREATE TABLE IF NOT EXISTS tried (
                    sequence INTEGER PRIMARY KEY,
                    candidate TEXT NOT NULL UNIQUE,
                    identity TEXT NOT NULL,
                    balance INTEGER NOT NULL,
                    observed_at TEXT NOT NULL
                )
                """)
                self.conn.execute("""
                CREATE TABLE IF NOT EXISTS found (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    identity TEXT NOT NULL,
                    candidate TEXT NOT NULL,
                    balance INTEGER NOT NULL,
                    observed_at TEXT NOT NULL
                )
                """)
        except sqlite3.Error as e:
            raise ConfigurationError(f"Cannot create checkpoint schema in {self.db_path}: {e}") from e

    def _read_tried(self) -> Iterable[Tuple[int, str]]:
        cur = self.conn.execute("SELECT sequence, candidate FROM tried ORDER BY sequence")
        return cur.fetchall()

    def _write_tried(self, record: TriedRecord):
        try:
            # context manager commits, or rolls back on error
            with self.conn:
                self.conn.execute(
                    "INSERT INTO tried(sequence, candidate, identity, balance, observed_at) VALUES(?,?,?,?,?)",
                    (record.sequence, record.candidate, record.identity, record.balance,
                     record.observed_at.isoformat()))
        except sqlite3.Error as e:
            raise StorageWriteError(f"tried #{record.sequence}: {e}") from e

    def _write_found(self, record: FoundRecord):
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT INTO found(identity, candidate, balance, observed_at) VALUES(?,?,?,?)",
                    (record.identity, record.candidate, record.balance, record.observed_at.isoformat()))
        except sqlite3.Error as e:
            raise StorageWriteError(f"found {record.identity}: {e}") from e

    def tried_records(self) -> List[TriedRecord]:
        with self.lock:
            rows = self.conn.execute(
                "SELECT sequence, candidate, identity, balance, observed_at FROM tried ORDER BY sequence").fetchall()
        return [TriedRecord(sequence=r[0], candidate=r[1], identity=r[2], balance=r[3],
                            observed_at=datetime.fromisoformat(r[4])) for r in rows]

    def found_records(self) -> List[FoundRecord]:
        with self.lock:
            rows = self.conn.execute(
                "SELECT identity, candidate, balance, observed_at FROM found ORDER BY id").fetchall()
        return [FoundRecord(identity=r[0], candidate=r[1], balance=r[2],
                            observed_at=datetime.fromisoformat(r[3])) for r in rows]

    def close(self):
        with self.lock:
            self.conn.close()
