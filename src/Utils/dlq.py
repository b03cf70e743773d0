import json
import logging
import os
import time
import uuid
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _default_dlq_dir() -> str:
    # project root = two levels up from src/Utils
    root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
    return os.path.join(root, "data", "dlq")


def _payload(message: Any) -> Any:
    if hasattr(message, "model_dump"):
        out = message.model_dump(mode="json")
        out["type"] = type(message).__name__
        return out
    if isinstance(message, dict):
        return message
    return {"type": type(message).__name__, "repr": repr(message)[:500]}


def write_dlq(message: Any, error: str, exc_trace: Optional[str] = None, dlq_dir: Optional[str] = None) -> str:
    """
    Spill an outcome that could not be persisted to the checkpoint store.
    Returns the path of the written JSON file.

    Stored fields: message (model dump), error, trace, ts, uuid.
    """
    dlq_dir = dlq_dir or _default_dlq_dir()
    os.makedirs(dlq_dir, exist_ok=True)
    entry = {
        "message": _payload(message),
        "error": error,
        "trace": exc_trace,
        "ts": time.time(),
        "uuid": uuid.uuid4().hex,
    }
    fname = f"dlq_{int(entry['ts'])}_{entry['uuid']}.json"
    out_path = os.path.join(dlq_dir, fname)
    with open(out_path, "w", encoding="utf-8") as fh:
        json.dump(entry, fh, indent=2, default=str)
        fh.flush()
        os.fsync(fh.fileno())
    logger.warning("[DLQ] Wrote %s to %s", entry["message"].get("type", "entry"), out_path)
    return out_path
