"""
Demo Controller - runs the pool offline against a simulated probe backend.
- Builds a SupervisorContext with DemoProbeClient instead of HTTP
- Runs the Supervisor on a background thread
- Prints per-worker metrics periodically (throughput, skips, failures, backoff)
"""

import logging
import random
import threading
import time

from Pool.context import build_context
from Pool.supervisor import Supervisor
from Probes.probe_client import ProbeClient
from Utils.config import PoolConfig
from Utils.errors import RateLimited, TransientNetworkError
from Utils.messages import ObservedState

logger = logging.getLogger(__name__)


class DemoProbeClient(ProbeClient):
    """
    Simulated backend: an identity is "positive" when its digest falls into a
    1/hit_modulus bucket, so the outcome is stable per identity. A fraction of
    calls fail to exercise the backoff path.
    """
    def __init__(self, endpoint: str, hit_modulus: int = 400, failure_rate: float = 0.05, latency: float = 0.01):
        self.endpoint = endpoint
        self.hit_modulus = hit_modulus
        self.failure_rate = failure_rate
        self.latency = latency
        self._rng = random.Random()

    def probe(self, identity: str) -> ObservedState:
        time.sleep(self.latency)
        roll = self._rng.random()
        if roll < self.failure_rate / 2:
            raise RateLimited("simulated 429", endpoint=self.endpoint)
        if roll < self.failure_rate:
            raise TransientNetworkError("simulated connection reset", endpoint=self.endpoint)
        bucket = int(identity[:8], 16) % self.hit_modulus
        return ObservedState(balance=100 if bucket == 0 else 0)

    def check_connectivity(self) -> str:
        return "demo-1.0"


class DemoController:
    """
    Simple controller to start the pool and periodically print metrics.
    Use to demonstrate throughput, dedup, backoff broadcast and found-halt.
    """
    def __init__(self, config: PoolConfig, hit_modulus: int = 400, failure_rate: float = 0.05):
        factory = lambda ep: DemoProbeClient(ep, hit_modulus=hit_modulus, failure_rate=failure_rate)
        self.supervisor = Supervisor(build_context(config, client_factory=factory))
        self.summary = None

    def _run(self):
        self.summary = self.supervisor.run()

    def print_metrics(self):
        st = self.supervisor.status()
        lines = [f"[Demo] stored={st['tried_total']} found={st['found']} delay={st['current_delay']:.2f}s "
                 f"failures={st['probe_failures']}"]
        for entry in self.supervisor.ctx.metrics.snapshot():
            lines.append(f"  Worker {entry['worker']}: probed={entry['probed']}, skipped={entry['skipped']}, "
                         f"failures={entry['failures']}, avg_latency={entry['avg_latency']:.4f}s")
        print("\n".join(lines))

    def run_blocking(self, report_every: float = 1.0):
        self.supervisor.start()
        t = threading.Thread(target=self._run, name="Supervisor", daemon=True)
        t.start()
        try:
            while t.is_alive():
                t.join(report_every)
                self.print_metrics()
        except KeyboardInterrupt:
            self.supervisor.stop()
            t.join()
        finally:
            self.supervisor.ctx.store.close()
        return self.summary
