import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from Pool.context import build_context
from Pool.supervisor import REASON_FOUND, REASON_STOPPED, RunSummary, Supervisor
from Utils.config import load_config
from Utils.errors import ConfigurationError
from Utils.log import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="probe-pool", description="Run the concurrent probe pool")
    p.add_argument("--config", "-c", type=str, default=None, help="JSON config file")
    p.add_argument("--vocabulary", dest="vocabulary_path", type=str, default=None,
                   help="Newline-delimited word list")
    p.add_argument("--endpoint", dest="endpoints", action="append", default=None,
                   help="Probe endpoint URL (repeat for several; assigned round-robin)")
    p.add_argument("--workers", type=int, default=None, help="Number of worker threads")
    p.add_argument("--phrase-length", type=int, default=None, help="Words per candidate")
    p.add_argument("--storage-backend", choices=["sqlite", "jsonl"], default=None)
    p.add_argument("--storage-path", type=str, default=None,
                   help="SQLite file or JSON-lines directory")
    p.add_argument("--probe-interval", type=float, default=None, help="Seconds between probes per worker")
    p.add_argument("--seed", type=int, default=None, help="Seed for reproducible candidate streams")
    p.add_argument("--status-port", type=int, default=None, help="Serve the status API on this port")
    p.add_argument("--report-every", type=float, default=30.0, help="Seconds between progress lines")
    p.add_argument("--log-level", type=str, default="INFO")
    return p


def _serve_status(supervisor: Supervisor, port: int) -> threading.Thread:
    import uvicorn
    from api.main import create_app

    server = uvicorn.Server(uvicorn.Config(create_app(supervisor), host="0.0.0.0", port=port, log_level="warning"))
    # signal handling stays with the main thread
    server.install_signal_handlers = lambda: None
    t = threading.Thread(target=server.run, name="StatusAPI", daemon=True)
    t.start()
    logger.info("[StatusAPI] Serving on port %d", port)
    return t


def _print_progress(supervisor: Supervisor):
    totals = supervisor.ctx.metrics.totals()
    st = supervisor.status()
    logger.info("[Progress] probed=%d skipped=%d failures=%d stored=%d delay=%.2fs rate=%.2f/s workers=%d/%d",
                totals["probed"], totals["skipped"], totals["failures"], st["tried_total"],
                st["current_delay"], totals["probes_per_sec"], st["workers_alive"], st["workers"])


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = load_config(
            args.config,
            vocabulary_path=args.vocabulary_path,
            endpoints=args.endpoints,
            workers=args.workers,
            phrase_length=args.phrase_length,
            storage_backend=args.storage_backend,
            storage_path=args.storage_path,
            probe_interval=args.probe_interval,
            seed=args.seed,
        )
        supervisor = Supervisor(build_context(config))
    except ConfigurationError as e:
        logger.error("[Startup] %s", e)
        return 2
    try:
        supervisor.start()
    except ConfigurationError as e:
        logger.error("[Startup] %s", e)
        supervisor.ctx.store.close()
        return 2

    if args.status_port:
        _serve_status(supervisor, args.status_port)

    result = {}

    def _run():
        result["summary"] = supervisor.run()

    runner = threading.Thread(target=_run, name="Supervisor")
    runner.start()

    def _on_signal(signum, frame):
        logger.info("[Startup] Signal %d received, stopping", signum)
        supervisor.stop()

    signal.signal(signal.SIGTERM, _on_signal)
    try:
        while runner.is_alive():
            runner.join(args.report_every)
            if runner.is_alive():
                _print_progress(supervisor)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping pool")
        supervisor.stop()
        runner.join()
    finally:
        supervisor.ctx.store.close()

    summary: RunSummary = result.get("summary") or supervisor.summary()
    _print_progress(supervisor)
    for rec in summary.found:
        logger.warning("[Result] FOUND identity=%s balance=%d", rec.identity, rec.balance)
    return 0 if summary.reason in (REASON_FOUND, REASON_STOPPED) else 1


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
