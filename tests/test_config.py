import json

import pytest

from Utils.config import load_config
from Utils.errors import ConfigurationError


def test_defaults_follow_reference_timings(vocab_path):
    config = load_config(env={}, vocabulary_path=vocab_path, endpoints=["http://x"])
    assert config.phrase_length == 12
    assert config.workers == 5
    assert config.probe_interval == 2.0
    assert config.max_delay == config.base_delay + config.jitter
    assert config.storage_backend == "sqlite"


def test_env_overrides_file_and_flags_override_env(tmp_path, vocab_path):
    cfg = tmp_path / "pool.json"
    cfg.write_text(json.dumps({"vocabulary_path": vocab_path, "workers": 3, "endpoints": ["http://file"]}),
                   encoding="utf-8")
    env = {"PROBE_POOL_WORKERS": "4", "PROBE_POOL_ENDPOINTS": "http://a, http://b", "PROBE_POOL_SEED": ""}

    config = load_config(str(cfg), env=env)
    assert config.workers == 4
    assert config.endpoints == ["http://a", "http://b"]
    assert config.seed is None

    config = load_config(str(cfg), env=env, workers=8, phrase_length=None)
    assert config.workers == 8
    assert config.phrase_length == 12


@pytest.mark.parametrize("overrides", [
    {"workers": 0},
    {"phrase_length": 0},
    {"storage_backend": "redis"},
    {"base_delay": 5.0, "max_delay": 1.0},
    {"probe_interval": -1},
    {"decay_after": 0},
    {"probe_timeout": 0},
    {"probe_timeout": -2.5},
])
def test_invalid_values_are_configuration_errors(vocab_path, overrides):
    with pytest.raises(ConfigurationError):
        load_config(env={}, vocabulary_path=vocab_path, endpoints=["http://x"], **overrides)


def test_missing_vocabulary_path_is_configuration_error():
    with pytest.raises(ConfigurationError):
        load_config(env={})


def test_unreadable_config_file(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(str(bad), env={})
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "missing.json"), env={})
