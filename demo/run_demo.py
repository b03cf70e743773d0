import os
import sys
import argparse

# Ensure src is importable
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from demo_controller import DemoController
from Utils.config import load_config
from Utils.log import setup_logging


def main():
    p = argparse.ArgumentParser(description="Run the probe pool against a simulated backend")
    p.add_argument("--workers", type=int, default=2, help="Number of worker threads")
    p.add_argument("--phrase-length", type=int, default=12)
    p.add_argument("--vocabulary", type=str, default=os.path.join(ROOT, "data", "input", "vocabulary.txt"))
    p.add_argument("--storage", type=str, default=os.path.join(ROOT, "data", "demo_checkpoint.db"))
    p.add_argument("--hit-modulus", type=int, default=400, help="About one identity in N is positive")
    p.add_argument("--failure-rate", type=float, default=0.05)
    p.add_argument("--log-level", type=str, default="WARNING")
    args = p.parse_args()

    setup_logging(args.log_level)
    config = load_config(
        vocabulary_path=args.vocabulary,
        endpoints=["demo://a", "demo://b"],
        workers=args.workers,
        phrase_length=args.phrase_length,
        storage_path=args.storage,
        probe_interval=0.0,
        base_delay=0.2,
        jitter=0.3,
        dlq_dir=os.path.join(ROOT, "data", "dlq"),
    )
    summary = DemoController(config, hit_modulus=args.hit_modulus, failure_rate=args.failure_rate).run_blocking()
    if summary is not None:
        print(f"Run ended: {summary.reason}; tried={summary.tried_appended}, found={len(summary.found)}")
        for rec in summary.found:
            print(f"  {rec.identity} balance={rec.balance}")

if __name__ == "__main__":
    main()
