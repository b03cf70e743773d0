import json
import os
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from Utils.constants import (
    DEFAULT_BASE_DELAY,
    DEFAULT_DERIVATION_PATH,
    DEFAULT_JITTER,
    DEFAULT_MAX_WORKER_RESTARTS,
    DEFAULT_PHRASE_LENGTH,
    DEFAULT_PROBE_INTERVAL,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_STORAGE_BACKOFF,
    DEFAULT_STORAGE_MAX_ATTEMPTS,
    DEFAULT_WORKERS,
    ENV_PREFIX,
)
from Utils.errors import ConfigurationError


class PoolConfig(BaseModel):
    """
    Every externally supplied setting of a run.

    Sources, lowest precedence first: JSON file, PROBE_POOL_* environment
    variables, explicit overrides (CLI flags). See load_config().
    """
    vocabulary_path: str
    endpoints: List[str] = Field(default_factory=list)
    phrase_length: int = DEFAULT_PHRASE_LENGTH
    workers: int = DEFAULT_WORKERS

    storage_backend: Literal["sqlite", "jsonl"] = "sqlite"
    storage_path: str = "data/checkpoint.db"
    storage_max_attempts: int = DEFAULT_STORAGE_MAX_ATTEMPTS
    storage_backoff: float = DEFAULT_STORAGE_BACKOFF
    dlq_dir: Optional[str] = None

    probe_interval: float = DEFAULT_PROBE_INTERVAL
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    base_delay: float = DEFAULT_BASE_DELAY
    jitter: float = DEFAULT_JITTER
    max_delay: Optional[float] = None
    decay_after: Optional[int] = None

    max_worker_restarts: int = DEFAULT_MAX_WORKER_RESTARTS
    derivation_path: str = DEFAULT_DERIVATION_PATH
    seed: Optional[int] = None

    # HttpProbeClient settings
    state_path: str = "/state/{identity}"
    version_path: str = "/version"
    balance_field: str = "balance"

    @field_validator("workers", "phrase_length", "storage_max_attempts")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("probe_timeout")
    @classmethod
    def _strictly_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("probe_interval", "base_delay", "jitter", "storage_backoff", "max_worker_restarts")
    @classmethod
    def _non_negative(cls, v):
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("endpoints", mode="before")
    @classmethod
    def _split_endpoints(cls, v):
        # env vars carry a comma separated list
        if isinstance(v, str):
            return [e.strip() for e in v.split(",") if e.strip()]
        return v

    @model_validator(mode="after")
    def _check_delays(self) -> "PoolConfig":
        if self.max_delay is None:
            self.max_delay = self.base_delay + self.jitter
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.decay_after is not None and self.decay_after < 1:
            raise ValueError("decay_after must be >= 1")
        return self


def _read_config_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot load config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")
    return data


def _read_env(env: Mapping[str, str]) -> Dict[str, Any]:
    out = {}
    for name in PoolConfig.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in env and env[key] != "":
            out[name] = env[key]
    return out


def load_config(config_file: Optional[str] = None, env: Optional[Mapping[str, str]] = None,
                **overrides) -> PoolConfig:
    data: Dict[str, Any] = {}
    if config_file:
        data.update(_read_config_file(config_file))
    data.update(_read_env(os.environ if env is None else env))
    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return PoolConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
