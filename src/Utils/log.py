import logging
import threading

LOG_FORMAT = "[%(levelname)s %(asctime)s] [%(threadName)s] %(message)s"


def setup_logging(level: str = "INFO"):
    """Configure the root logger once; later calls only change the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    root.setLevel(level.upper())


def log_outcome(logger: logging.Logger, tag: str, candidate_id: str, status: str = "done", level: int = logging.DEBUG):
    thread_name = threading.current_thread().name
    logger.log(level, "[%s][%s] %s %s", thread_name, tag, status.upper(), candidate_id)
