"""
Message protocol between workers and the supervisor, plus the durable record types.

Workers never touch storage; everything they learn travels to the supervisor
as one of the messages below through a single inbox queue:

  Tried          definitive probe result for a candidate
  Found          positive result; always sent right after the matching Tried
  ProbeFailed    recoverable probe error; supervisor raises the pool-wide delay
  WorkerCrashed  uncaught exception in the worker loop; supervisor respawns
  WorkerStopped  worker left its loop (halt observed or terminal Found)
"""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ObservedState(BaseModel):
    model_config = ConfigDict(frozen=True)

    balance: int = 0

    @property
    def is_positive(self) -> bool:
        return self.balance > 0


class WorkerMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    worker_id: int
    sent_at: datetime = Field(default_factory=utc_now)


class Tried(WorkerMessage):
    candidate: str
    identity: str
    state: ObservedState


class Found(WorkerMessage):
    candidate: str
    identity: str
    state: ObservedState


class ProbeFailed(WorkerMessage):
    identity: str
    error_type: str
    error: str
    retry_after: Optional[float] = None


class WorkerCrashed(WorkerMessage):
    error: str
    trace: Optional[str] = None


class WorkerStopped(WorkerMessage):
    reason: str = "halted"


class TriedRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    sequence: int
    candidate: str
    identity: str
    balance: int
    observed_at: datetime


class FoundRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity: str
    candidate: str
    balance: int
    observed_at: datetime

    @classmethod
    def from_message(cls, msg: Found) -> "FoundRecord":
        return cls(identity=msg.identity, candidate=msg.candidate,
                   balance=msg.state.balance, observed_at=msg.sent_at)
