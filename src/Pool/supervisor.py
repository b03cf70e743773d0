import logging
import queue
import threading
import time
import traceback
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from Pool.context import SupervisorContext
from Pool.retry_coordinator import DelayChannel
from Pool.worker import Worker
from Probes.probe_client import assign_endpoints, check_endpoints
from Utils.constants import SENTINEL
from Utils.dlq import write_dlq
from Utils.errors import StorageWriteError
from Utils.messages import Found, FoundRecord, ProbeFailed, Tried, WorkerCrashed, WorkerStopped
from Utils.retry import call_with_retry

logger = logging.getLogger(__name__)

REASON_FOUND = "found"
REASON_STOPPED = "stopped"
REASON_DEGRADED = "degraded"
REASON_EXHAUSTED = "exhausted"


class RunSummary(BaseModel):
    reason: str
    tried_appended: int = 0
    duplicates: int = 0
    probe_failures: int = 0
    worker_crashes: int = 0
    spilled: int = 0
    next_sequence: int = 1
    found: List[FoundRecord] = Field(default_factory=list)
    totals: Dict[str, Any] = Field(default_factory=dict)


class _Slot:
    __slots__ = ("worker", "thread", "channel", "restarts")

    def __init__(self):
        self.worker: Optional[Worker] = None
        self.thread: Optional[threading.Thread] = None
        self.channel: Optional[DelayChannel] = None
        self.restarts = 0

    def alive(self) -> bool:
        return self.thread is not None and self.thread.is_alive()


class Supervisor:
    """
    Owns the checkpoint store and the retry coordinator, runs N worker threads
    and is the only writer of durable state.

    Message routing (run()):
      Tried         -> store.append_tried (ignored once a Found was processed)
      Found         -> store.append_found, THEN halt the pool
      ProbeFailed   -> coordinator.report_failure (broadcast to workers)
      WorkerCrashed -> respawn the slot with a fresh tried snapshot
    A store write that still fails after bounded retries puts the run in a
    degraded halt: workers stop and remaining outcomes go to the DLQ.
    """
    def __init__(self, context: SupervisorContext, poll_interval: float = 0.2, join_timeout: float = 5.0):
        self.ctx = context
        self.config = context.config
        self.poll_interval = float(poll_interval)
        self.join_timeout = float(join_timeout)
        self.endpoints = assign_endpoints(self.config.endpoints, self.config.workers)
        self._slots = [_Slot() for _ in range(self.config.workers)]
        self._stop_requested = threading.Event()
        self._started = False
        self._running = False
        self.reason: Optional[str] = None
        self.found: List[FoundRecord] = []
        self.tried_appended = 0
        self.duplicates = 0
        self.probe_failures = 0
        self.worker_crashes = 0
        self.spilled = 0

    # --- lifecycle ---

    def start(self):
        """Load the checkpoint, verify endpoints, spawn workers. ConfigurationError aborts before any spawn."""
        tried, next_seq = self.ctx.store.load()
        if tried:
            logger.info("[Supervisor] Progress loaded: %d candidates already tried, next sequence #%d",
                        len(tried), next_seq)
        else:
            logger.info("[Supervisor] No previous progress, starting from scratch")
        check_endpoints(sorted(set(self.endpoints)), self.ctx.client_factory, logger)

        for slot_id in range(len(self._slots)):
            self._spawn(slot_id, tried)
        self._started = True
        self._running = True
        logger.info("[Supervisor] Started %d worker(s) over %d endpoint(s)",
                    len(self._slots), len(set(self.endpoints)))

    def _spawn(self, slot_id: int, tried, initial_delay: float = 0.0):
        slot = self._slots[slot_id]
        if slot.channel is not None:
            self.ctx.coordinator.unsubscribe(slot.channel)
        slot.channel = self.ctx.coordinator.subscribe()
        slot.worker = Worker(
            worker_id=slot_id,
            source=self.ctx.source.fork(),
            deriver=self.ctx.deriver,
            client=self.ctx.client_factory(self.endpoints[slot_id]),
            tried=tried,
            outbox=self.ctx.inbox,
            channel=slot.channel,
            halt=self.ctx.halt,
            metrics=self.ctx.metrics,
            probe_interval=self.config.probe_interval,
            fallback_delay=self.config.base_delay,
            initial_delay=initial_delay,
        )
        slot.thread = threading.Thread(target=slot.worker.run, name=f"Worker-{slot_id}", daemon=True)
        slot.thread.start()

    def stop(self):
        """Request an orderly shutdown; safe to call from any thread or a signal handler."""
        self._stop_requested.set()
        try:
            self.ctx.inbox.put_nowait(SENTINEL)
        except queue.Full:
            pass

    @property
    def running(self) -> bool:
        return self._running

    def run(self, timeout: Optional[float] = None) -> RunSummary:
        """Route worker messages until found, stopped, degraded or every worker is gone."""
        if not self._started:
            self.start()
        deadline = time.monotonic() + timeout if timeout is not None else None
        inbox = self.ctx.inbox
        try:
            while not self.ctx.halt.is_set():
                if self._stop_requested.is_set() or (deadline is not None and time.monotonic() >= deadline):
                    self._halt(REASON_STOPPED)
                    break
                try:
                    msg = inbox.get(timeout=self.poll_interval)
                except queue.Empty:
                    if not any(s.alive() for s in self._slots) and inbox.empty():
                        logger.error("[Supervisor] No live workers left")
                        self._halt(REASON_EXHAUSTED)
                    continue
                self._dispatch(msg)
        finally:
            self._shutdown()
        return self.summary()

    def _halt(self, reason: str):
        if self.reason is None:
            self.reason = reason
        self.ctx.halt.set()

    # --- routing ---

    def _dispatch(self, msg, draining: bool = False):
        if msg is SENTINEL:
            return
        if self.reason == REASON_DEGRADED and isinstance(msg, (Tried, Found)):
            self._spill(msg, "store degraded, outcome not persisted")
            return
        if isinstance(msg, Tried):
            self._on_tried(msg)
        elif isinstance(msg, Found):
            self._on_found(msg)
        elif isinstance(msg, ProbeFailed):
            if not draining:
                self._on_probe_failed(msg)
        elif isinstance(msg, WorkerCrashed):
            self._on_crash(msg, respawn=not draining)
        elif isinstance(msg, WorkerStopped):
            logger.debug("[Supervisor] Worker %d stopped (%s)", msg.worker_id, msg.reason)
        else:
            logger.error("[Supervisor] Unknown message type: %s", type(msg).__name__)

    def _persist(self, func, msg):
        try:
            return call_with_retry(func, msg, max_attempts=self.config.storage_max_attempts,
                                   backoff=self.config.storage_backoff, retry_on=(StorageWriteError,))
        except StorageWriteError as e:
            self._enter_degraded(msg, e)
            return None

    def _on_tried(self, msg: Tried):
        if self.reason == REASON_FOUND:
            logger.debug("[Supervisor] Discarding tried outcome after found: %s", msg.identity)
            return
        record = self._persist(self.ctx.store.append_tried, msg)
        if record is None:
            if self.reason != REASON_DEGRADED:
                self.duplicates += 1
                logger.debug("[Supervisor] Duplicate tried outcome from worker %d: %s", msg.worker_id, msg.identity)
            return
        self.tried_appended += 1
        self.ctx.coordinator.report_success()
        logger.info("[Supervisor] Tried #%d saved: identity=%s balance=%d",
                    record.sequence, record.identity, record.balance)

    def _on_found(self, msg: Found):
        record = self._persist(self.ctx.store.append_found, msg)
        if record is None:
            return
        self.found.append(record)
        logger.warning("[Supervisor] FOUND identity=%s balance=%d (worker %d); record saved",
                       record.identity, record.balance, msg.worker_id)
        # the record is durable before any worker is told to stop
        self._halt(REASON_FOUND)

    def _on_probe_failed(self, msg: ProbeFailed):
        self.probe_failures += 1
        delay = self.ctx.coordinator.report_failure()
        logger.info("[Supervisor] Worker %d probe failure (%s); pool delay now %.2fs",
                    msg.worker_id, msg.error_type, delay)

    def _on_crash(self, msg: WorkerCrashed, respawn: bool = True):
        self.worker_crashes += 1
        logger.error("[Supervisor] Worker %d crashed: %s\n%s", msg.worker_id, msg.error, msg.trace or "")
        if not respawn or self.ctx.halt.is_set():
            return
        slot = self._slots[msg.worker_id]
        if slot.thread is not None:
            slot.thread.join(self.join_timeout)
        if slot.restarts >= self.config.max_worker_restarts:
            logger.error("[Supervisor] Worker %d exceeded %d restarts, not respawning",
                         msg.worker_id, self.config.max_worker_restarts)
            return
        slot.restarts += 1
        self.ctx.metrics.record_restart(msg.worker_id)
        delay = self.ctx.coordinator.current_delay()
        logger.info("[Supervisor] Respawning worker %d (restart %d, delay %.2fs)",
                    msg.worker_id, slot.restarts, delay)
        self._spawn(msg.worker_id, self.ctx.store.tried_snapshot(), initial_delay=delay)

    # --- degraded halt ---

    def _enter_degraded(self, msg, error: Exception):
        logger.critical("[Supervisor] Checkpoint write failed after %d attempts: %s; entering degraded halt",
                        self.config.storage_max_attempts, error)
        # a failed write overrides any earlier reason
        self.reason = REASON_DEGRADED
        self.ctx.halt.set()
        self._spill(msg, str(error), traceback.format_exc())

    def _spill(self, msg, error: str, trace: Optional[str] = None):
        try:
            write_dlq(msg, error, exc_trace=trace, dlq_dir=self.config.dlq_dir)
            self.spilled += 1
        except OSError as e:
            logger.critical("[Supervisor] DLQ write failed (%s); unpersisted outcome: %s",
                            e, msg.model_dump_json())

    # --- shutdown ---

    def _shutdown(self):
        self.ctx.halt.set()
        deadline = time.monotonic() + self.join_timeout
        for slot in self._slots:
            if slot.thread is not None:
                slot.thread.join(max(0.0, deadline - time.monotonic()))
        stuck = [i for i, s in enumerate(self._slots) if s.alive()]
        if stuck:
            logger.warning("[Supervisor] Worker(s) %s still in flight at shutdown", stuck)

        # outcomes already queued: persisted on stop, discarded (Tried) after found, spilled when degraded
        while True:
            try:
                msg = self.ctx.inbox.get_nowait()
            except queue.Empty:
                break
            self._dispatch(msg, draining=True)

        for slot in self._slots:
            if slot.channel is not None:
                self.ctx.coordinator.unsubscribe(slot.channel)
        self._running = False
        logger.info("[Supervisor] Stopped: reason=%s tried=%d found=%d failures=%d",
                    self.reason, self.tried_appended, len(self.found), self.probe_failures)

    # --- reporting ---

    def summary(self) -> RunSummary:
        return RunSummary(
            reason=self.reason or REASON_STOPPED,
            tried_appended=self.tried_appended,
            duplicates=self.duplicates,
            probe_failures=self.probe_failures,
            worker_crashes=self.worker_crashes,
            spilled=self.spilled,
            next_sequence=self.ctx.store.next_sequence,
            found=list(self.found),
            totals=self.ctx.metrics.totals(),
        )

    def status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "reason": self.reason,
            "workers_alive": sum(1 for s in self._slots if s.alive()),
            "workers": len(self._slots),
            "current_delay": self.ctx.coordinator.current_delay(),
            "tried_total": len(self.ctx.store),
            "tried_appended": self.tried_appended,
            "duplicates": self.duplicates,
            "probe_failures": self.probe_failures,
            "worker_crashes": self.worker_crashes,
            "found": len(self.found),
            "next_sequence": self.ctx.store.next_sequence,
        }
