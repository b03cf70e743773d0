import threading
import time
from typing import Any, Dict, List


class _WorkerCounters:
    __slots__ = ("probed", "skipped", "failures", "positives", "total_time", "restarts")

    def __init__(self):
        self.probed = 0
        self.skipped = 0
        self.failures = 0
        self.positives = 0
        self.total_time = 0.0
        self.restarts = 0


class MetricsCollector:
    """
    Thread-safe per-worker metrics: probes, dedup skips, probe failures, latency.
    Workers call record_*; supervisor / API read snapshot().
    """
    def __init__(self, num_workers: int):
        self._lock = threading.Lock()
        self._num_workers = max(0, int(num_workers))
        self._workers = [_WorkerCounters() for _ in range(self._num_workers)]
        self._started_ts = time.time()

    def _get(self, worker_id: int):
        if worker_id < 0 or worker_id >= self._num_workers:
            return None
        return self._workers[worker_id]

    def record_probe(self, worker_id: int, elapsed: float, positive: bool = False):
        with self._lock:
            w = self._get(worker_id)
            if w is None:
                return
            w.probed += 1
            w.total_time += float(elapsed)
            if positive:
                w.positives += 1

    def record_skip(self, worker_id: int):
        with self._lock:
            w = self._get(worker_id)
            if w is not None:
                w.skipped += 1

    def record_failure(self, worker_id: int):
        with self._lock:
            w = self._get(worker_id)
            if w is not None:
                w.failures += 1

    def record_restart(self, worker_id: int):
        with self._lock:
            w = self._get(worker_id)
            if w is not None:
                w.restarts += 1

    def snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            out = []
            for i, w in enumerate(self._workers):
                avg = (w.total_time / w.probed) if w.probed else 0.0
                out.append({"worker": i, "probed": w.probed, "skipped": w.skipped, "failures": w.failures,
                            "positives": w.positives, "restarts": w.restarts, "avg_latency": avg})
            return out

    def totals(self) -> Dict[str, Any]:
        snap = self.snapshot()
        elapsed = max(1e-9, time.time() - self._started_ts)
        probed = sum(e["probed"] for e in snap)
        return {
            "probed": probed,
            "skipped": sum(e["skipped"] for e in snap),
            "failures": sum(e["failures"] for e in snap),
            "positives": sum(e["positives"] for e in snap),
            "restarts": sum(e["restarts"] for e in snap),
            "elapsed": elapsed,
            "probes_per_sec": probed / elapsed,
        }
