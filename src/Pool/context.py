import queue
import threading
from dataclasses import dataclass, field
from typing import Optional

from Pool.retry_coordinator import RetryCoordinator
from Probes.http_probe import HttpProbeClient
from Probes.identity import DigestDeriver, IdentityDeriver
from Probes.probe_client import ClientFactory
from Sources.candidate_source import CandidateSource
from Sources.vocabulary import load_vocabulary
from Storage.checkpoint_store import CheckpointStore, open_store
from Utils.config import PoolConfig
from Utils.metrics import MetricsCollector


@dataclass
class SupervisorContext:
    """Everything a run shares, owned by the Supervisor and passed explicitly."""
    config: PoolConfig
    source: CandidateSource
    deriver: IdentityDeriver
    client_factory: ClientFactory
    store: CheckpointStore
    coordinator: RetryCoordinator
    metrics: MetricsCollector
    inbox: queue.Queue = field(default_factory=queue.Queue)
    halt: threading.Event = field(default_factory=threading.Event)


def http_client_factory(config: PoolConfig) -> ClientFactory:
    def factory(endpoint: str) -> HttpProbeClient:
        return HttpProbeClient(endpoint, state_path=config.state_path, version_path=config.version_path,
                               balance_field=config.balance_field, timeout=config.probe_timeout)
    return factory


def build_context(config: PoolConfig, client_factory: Optional[ClientFactory] = None,
                  deriver: Optional[IdentityDeriver] = None,
                  store: Optional[CheckpointStore] = None) -> SupervisorContext:
    """
    Resolve a config into live collaborators. Raises ConfigurationError for a
    missing vocabulary, a phrase longer than the vocabulary or unusable storage.
    """
    vocabulary = load_vocabulary(config.vocabulary_path)
    source = CandidateSource(vocabulary, config.phrase_length, seed=config.seed)
    coordinator = RetryCoordinator(base_delay=config.base_delay, jitter=config.jitter,
                                   max_delay=config.max_delay, decay_after=config.decay_after)
    return SupervisorContext(
        config=config,
        source=source,
        deriver=deriver if deriver is not None else DigestDeriver(config.derivation_path),
        client_factory=client_factory if client_factory is not None else http_client_factory(config),
        store=store if store is not None else open_store(config.storage_backend, config.storage_path),
        coordinator=coordinator,
        metrics=MetricsCollector(config.workers),
    )
