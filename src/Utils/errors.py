class ProbePoolError(Exception):
    """Base class for every error raised by the pool."""


class ConfigurationError(ProbePoolError):
    """Fatal at startup: bad vocabulary, bad settings, unreachable storage or endpoint."""


class InvalidConfiguration(ConfigurationError):
    """Candidate generation cannot be satisfied (e.g. phrase length > vocabulary size)."""


class MalformedCandidate(ConfigurationError):
    pass


class StorageWriteError(ProbePoolError):
    """A checkpoint append did not reach durable storage."""


class ProbeError(ProbePoolError):
    """Base for probe failures. Everything except FatalProbeError is recoverable."""
    recoverable = True

    def __init__(self, message: str = "", endpoint: str = None):
        super().__init__(message)
        self.endpoint = endpoint


class ProbeTimeout(ProbeError):
    pass


class RateLimited(ProbeError):
    def __init__(self, message: str = "", endpoint: str = None, retry_after: float = None):
        super().__init__(message, endpoint=endpoint)
        self.retry_after = retry_after


class TransientNetworkError(ProbeError):
    pass


class FatalProbeError(ProbeError):
    recoverable = False
