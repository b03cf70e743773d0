import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter

from Probes.probe_client import ProbeClient
from Utils.constants import DEFAULT_PROBE_TIMEOUT
from Utils.errors import FatalProbeError, ProbeTimeout, RateLimited, TransientNetworkError
from Utils.messages import ObservedState

logger = logging.getLogger(__name__)


def build_session(pool_size: int = 4) -> requests.Session:
    # no transport-level retries: every failure must reach the RetryCoordinator
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=0, pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _retry_after(resp: requests.Response) -> Optional[float]:
    value = resp.headers.get("Retry-After")
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class HttpProbeClient(ProbeClient):
    """
    Reads the state of an identity from a JSON HTTP endpoint.

    GET <endpoint><state_path>  with "{identity}" substituted, expecting a JSON
    object carrying an integer under balance_field (dotted paths allowed,
    e.g. "result.value"). GET <endpoint><version_path> answers the startup
    connectivity check.
    """
    def __init__(self, endpoint: str, state_path: str = "/state/{identity}", version_path: str = "/version",
                 balance_field: str = "balance", timeout: float = DEFAULT_PROBE_TIMEOUT,
                 headers: Optional[Dict[str, str]] = None, session: Optional[requests.Session] = None):
        self.endpoint = endpoint.rstrip("/")
        self.state_path = state_path
        self.version_path = version_path
        self.balance_field = balance_field
        self.timeout = float(timeout)
        self.headers = dict(headers or {})
        self.session = session or build_session()

    def _get(self, url: str) -> Any:
        try:
            resp = self.session.get(url, timeout=self.timeout, headers=self.headers)
        except requests.exceptions.Timeout as e:
            raise ProbeTimeout(f"Timeout after {self.timeout}s: {url}", endpoint=self.endpoint) from e
        except requests.exceptions.RequestException as e:
            raise TransientNetworkError(f"{type(e).__name__}: {e}", endpoint=self.endpoint) from e

        if resp.status_code == 429:
            raise RateLimited(f"Rate limited by {self.endpoint}", endpoint=self.endpoint,
                              retry_after=_retry_after(resp))
        if resp.status_code >= 500:
            raise TransientNetworkError(f"HTTP {resp.status_code} from {url}", endpoint=self.endpoint)
        if resp.status_code >= 400:
            raise FatalProbeError(f"HTTP {resp.status_code} from {url}", endpoint=self.endpoint)
        try:
            return resp.json()
        except ValueError as e:
            # proxies and load balancers answer with HTML pages while degraded
            raise TransientNetworkError(f"Non-JSON response from {url}", endpoint=self.endpoint) from e

    def _extract_balance(self, payload: Any) -> int:
        value = payload
        for part in self.balance_field.split("."):
            if not isinstance(value, dict) or part not in value:
                raise FatalProbeError(f"Response has no field {self.balance_field!r}", endpoint=self.endpoint)
            value = value[part]
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise FatalProbeError(f"Field {self.balance_field!r} is not an integer: {value!r}",
                                  endpoint=self.endpoint) from e

    def probe(self, identity: str) -> ObservedState:
        url = self.endpoint + self.state_path.format(identity=identity)
        return ObservedState(balance=self._extract_balance(self._get(url)))

    def check_connectivity(self) -> str:
        payload = self._get(self.endpoint + self.version_path)
        if isinstance(payload, dict):
            return str(payload.get("version", payload))
        return str(payload)

    def close(self):
        self.session.close()
