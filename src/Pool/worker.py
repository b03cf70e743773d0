import logging
import queue
import threading
import time
import traceback
from typing import AbstractSet, Optional

from Pool.retry_coordinator import DelayChannel
from Probes.identity import IdentityDeriver
from Probes.probe_client import ProbeClient
from Sources.candidate_source import CandidateSource
from Utils.errors import ProbeError
from Utils.log import log_outcome
from Utils.messages import Found, ProbeFailed, Tried, WorkerCrashed, WorkerStopped
from Utils.metrics import MetricsCollector

logger = logging.getLogger(__name__)

# slice used while waiting for the coordinator so a halt is seen promptly
_POLL = 0.1


class Worker:
    """
    One generate -> dedupe -> derive -> probe -> report -> sleep loop.

    Talks to the supervisor only through the outbox queue and receives backoff
    broadcasts through its DelayChannel. Never writes durable state. Exits when
    the halt event is set, after sending Found, or by crashing (reported as
    WorkerCrashed so the supervisor can respawn it).
    """
    def __init__(self, worker_id: int, source: CandidateSource, deriver: IdentityDeriver, client: ProbeClient,
                 tried: AbstractSet[str], outbox: queue.Queue, channel: DelayChannel, halt: threading.Event,
                 metrics: MetricsCollector, probe_interval: float = 2.0, fallback_delay: float = 5.0,
                 reply_timeout: float = 5.0, initial_delay: float = 0.0):
        self.worker_id = worker_id
        self.source = source
        self.deriver = deriver
        self.client = client
        self.tried = frozenset(tried)
        self.outbox = outbox
        self.channel = channel
        self.halt = halt
        self.metrics = metrics
        self.probe_interval = float(probe_interval)
        self.fallback_delay = float(fallback_delay)
        self.reply_timeout = float(reply_timeout)
        self.initial_delay = float(initial_delay)

    def run(self):
        reason = "halted"
        try:
            self._pause(self.initial_delay)
            while not self.halt.is_set():
                if self._step():
                    reason = "found"
                    break
        except Exception as e:
            logger.error("[Worker %d] Crashed: %s", self.worker_id, e)
            self.outbox.put(WorkerCrashed(worker_id=self.worker_id, error=f"{type(e).__name__}: {e}",
                                          trace=traceback.format_exc()))
            return
        finally:
            self.client.close()
        logger.debug("[Worker %d] Stopped (%s)", self.worker_id, reason)
        self.outbox.put(WorkerStopped(worker_id=self.worker_id, reason=reason))

    def _step(self) -> bool:
        """One loop iteration. Returns True when this worker reached its terminal state."""
        candidate = self.source.generate()
        if self.source.is_known(candidate, self.tried):
            self.metrics.record_skip(self.worker_id)
            log_outcome(logger, "dedupe", candidate, status="skip")
            self._sleep()
            return False

        identity = self.deriver.derive(candidate)
        start = time.time()
        try:
            state = self.client.probe(identity)
        except ProbeError as e:
            if not e.recoverable:
                raise
            self._on_failure(identity, e)
            return False

        self.metrics.record_probe(self.worker_id, time.time() - start, positive=state.is_positive)
        log_outcome(logger, "probe", identity, status=f"balance={state.balance}")
        self.outbox.put(Tried(worker_id=self.worker_id, candidate=candidate, identity=identity, state=state))
        if state.is_positive:
            logger.info("[Worker %d] Positive state for %s: balance=%d", self.worker_id, identity, state.balance)
            self.outbox.put(Found(worker_id=self.worker_id, candidate=candidate, identity=identity, state=state))
            return True
        self._sleep()
        return False

    def _on_failure(self, identity: str, error: ProbeError):
        self.metrics.record_failure(self.worker_id)
        logger.warning("[Worker %d] Probe failed for %s (%s): %s", self.worker_id, identity,
                       type(error).__name__, error)
        # broadcasts that arrived before this failure are superseded by the reply below
        stale = self.channel.drain()
        retry_after = getattr(error, "retry_after", None)
        self.outbox.put(ProbeFailed(worker_id=self.worker_id, identity=identity, error_type=type(error).__name__,
                                    error=str(error), retry_after=retry_after))
        delay = self._await_delay()
        if delay is None:
            delay = max(stale or 0.0, self.fallback_delay)
        if retry_after:
            delay = max(delay, retry_after)
        logger.info("[Worker %d] Backing off %.2fs", self.worker_id, delay)
        self._pause(delay)

    def _await_delay(self) -> Optional[float]:
        deadline = time.monotonic() + self.reply_timeout
        while not self.halt.is_set() and time.monotonic() < deadline:
            delay = self.channel.wait(_POLL)
            if delay is not None:
                return delay
        return None

    def _sleep(self):
        # a broadcast received since the last iteration throttles this worker too
        delay = self.probe_interval
        pending = self.channel.drain()
        if pending is not None:
            delay = max(delay, pending)
        self._pause(delay)

    def _pause(self, seconds: float):
        if seconds > 0:
            self.halt.wait(seconds)
