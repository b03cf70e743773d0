from abc import ABC, abstractmethod
from typing import Callable, List, Sequence

from Utils.errors import ConfigurationError, ProbeError
from Utils.messages import ObservedState


class ProbeClient(ABC):
    """
    Queries external state for one identity.

    probe() returns the observed state or raises a ProbeError subclass:
    ProbeTimeout, RateLimited, TransientNetworkError (recoverable) or
    FatalProbeError. Calls for different identities are independent.
    """
    endpoint: str = ""

    @abstractmethod
    def probe(self, identity: str) -> ObservedState:
        ...

    @abstractmethod
    def check_connectivity(self) -> str:
        """Return the backend version string or raise ProbeError."""

    def close(self):
        pass


ClientFactory = Callable[[str], ProbeClient]


def assign_endpoints(endpoints: Sequence[str], n_workers: int) -> List[str]:
    """Round-robin endpoint per worker slot."""
    if not endpoints:
        raise ConfigurationError("At least one probe endpoint is required")
    return [endpoints[i % len(endpoints)] for i in range(n_workers)]


def check_endpoints(endpoints: Sequence[str], factory: ClientFactory, logger) -> None:
    """Fail fast at startup when any endpoint is unreachable."""
    for ep in endpoints:
        client = factory(ep)
        try:
            version = client.check_connectivity()
        except ProbeError as e:
            raise ConfigurationError(f"Probe endpoint {ep} unreachable: {e}") from e
        finally:
            client.close()
        logger.info("[Probe] Connected to %s (version %s)", ep, version)
