import hashlib
from abc import ABC, abstractmethod

from Utils.constants import DEFAULT_DERIVATION_PATH

Identity = str


class IdentityDeriver(ABC):
    """candidate -> identity. Must be pure: no I/O, same input, same output."""

    @abstractmethod
    def derive(self, candidate: str) -> Identity:
        ...


class DigestDeriver(IdentityDeriver):
    """
    SHA-256 over "<path>|<candidate>", hex encoded.
    The derivation path namespaces identities so two deployments probing the
    same vocabulary do not collide.
    """
    def __init__(self, path: str = DEFAULT_DERIVATION_PATH):
        self.path = path
        self._prefix = (path + "|").encode("utf-8")

    def derive(self, candidate: str) -> Identity:
        return hashlib.sha256(self._prefix + candidate.encode("utf-8")).hexdigest()
