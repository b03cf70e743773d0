import logging
import queue
import random
import threading
from typing import List, Optional

from Utils.constants import DEFAULT_BASE_DELAY, DEFAULT_JITTER

logger = logging.getLogger(__name__)


class DelayChannel:
    """
    Receiving end of the coordinator broadcast, one per worker.
    Only floats travel through it; the worker never reads the coordinator's state.
    """
    def __init__(self):
        self._q: "queue.Queue[float]" = queue.Queue()

    def publish(self, delay: float):
        self._q.put(delay)

    def drain(self) -> Optional[float]:
        """Latest published delay since the last read, or None."""
        latest = None
        while True:
            try:
                latest = self._q.get_nowait()
            except queue.Empty:
                return latest

    def wait(self, timeout: float) -> Optional[float]:
        """Block for the next publication, then return the newest one available."""
        try:
            first = self._q.get(timeout=timeout)
        except queue.Empty:
            return None
        later = self.drain()
        return first if later is None else max(first, later)


class RetryCoordinator:
    """
    Process-wide probe backoff.

    report_failure() raises the delay to max(current, base + U(0, jitter)),
    capped at max_delay, and publishes it to every subscribed channel so the
    whole pool slows down together. Within a run the delay only goes up,
    unless decay_after is set: then decay_after consecutive successes reset it.
    """
    def __init__(self, base_delay: float = DEFAULT_BASE_DELAY, jitter: float = DEFAULT_JITTER,
                 max_delay: Optional[float] = None, decay_after: Optional[int] = None,
                 initial_delay: float = 0.0, rng: Optional[random.Random] = None):
        self.base_delay = float(base_delay)
        self.jitter = float(jitter)
        self.max_delay = float(max_delay) if max_delay is not None else self.base_delay + self.jitter
        self.decay_after = decay_after
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._delay = min(float(initial_delay), self.max_delay)
        self._successes = 0
        self._failures = 0
        self._channels: List[DelayChannel] = []

    def subscribe(self) -> DelayChannel:
        ch = DelayChannel()
        with self._lock:
            self._channels.append(ch)
        return ch

    def unsubscribe(self, channel: DelayChannel):
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)

    def current_delay(self) -> float:
        with self._lock:
            return self._delay

    @property
    def failures(self) -> int:
        return self._failures

    def report_failure(self) -> float:
        with self._lock:
            proposed = self.base_delay + self._rng.uniform(0.0, self.jitter)
            self._delay = min(self.max_delay, max(self._delay, proposed))
            self._successes = 0
            self._failures += 1
            delay = self._delay
            channels = list(self._channels)
        for ch in channels:
            ch.publish(delay)
        return delay

    def report_success(self):
        if not self.decay_after:
            return
        with self._lock:
            self._successes += 1
            if self._delay == 0.0 or self._successes < self.decay_after:
                return
            self._delay = 0.0
            self._successes = 0
        logger.info("[Backoff] %d consecutive successes, delay reset", self.decay_after)
