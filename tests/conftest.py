import string

import pytest

from Utils.config import PoolConfig

WORDS = list(string.ascii_lowercase)


@pytest.fixture
def vocab_words():
    return list(WORDS)


@pytest.fixture
def vocab_path(tmp_path):
    path = tmp_path / "vocabulary.txt"
    path.write_text("\n".join(WORDS) + "\n", encoding="utf-8")
    return str(path)


@pytest.fixture
def make_config(tmp_path, vocab_path):
    def _make(**overrides) -> PoolConfig:
        values = dict(
            vocabulary_path=vocab_path,
            endpoints=["stub://a", "stub://b"],
            workers=2,
            storage_path=str(tmp_path / "checkpoint.db"),
            probe_interval=0.0,
            base_delay=0.01,
            jitter=0.01,
            storage_backoff=0.0,
            dlq_dir=str(tmp_path / "dlq"),
            seed=7,
        )
        values.update(overrides)
        return PoolConfig(**values)
    return _make
