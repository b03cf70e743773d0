# SENTINEL object used to wake the supervisor inbox on shutdown; compare with "is"
SENTINEL = object()

DEFAULT_PHRASE_LENGTH = 12
DEFAULT_WORKERS = 5

# seconds
DEFAULT_PROBE_INTERVAL = 2.0
DEFAULT_BASE_DELAY = 5.0
DEFAULT_JITTER = 5.0
DEFAULT_PROBE_TIMEOUT = 10.0

DEFAULT_STORAGE_MAX_ATTEMPTS = 3
DEFAULT_STORAGE_BACKOFF = 0.2
DEFAULT_MAX_WORKER_RESTARTS = 5

DEFAULT_DERIVATION_PATH = "m/0'/0'"
DEFAULT_STATUS_PORT = 3000

ENV_PREFIX = "PROBE_POOL_"

# Message contract (see Utils.messages):
# worker -> supervisor:  Tried | Found | ProbeFailed | WorkerCrashed | WorkerStopped
# coordinator -> worker: float delay pushed to each worker's DelayChannel
