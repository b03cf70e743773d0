import sqlite3

import pytest

from Pool import cli
from Pool.cli import build_parser, run
from Pool.context import build_context
from Utils.errors import TransientNetworkError

from stubs import StubFactory


def test_parser_collects_repeated_endpoints():
    args = build_parser().parse_args(["--endpoint", "http://a", "--endpoint", "http://b", "--workers", "3"])
    assert args.endpoints == ["http://a", "http://b"]
    assert args.workers == 3
    assert args.phrase_length is None


def test_missing_vocabulary_exits_with_configuration_status(tmp_path):
    code = run(["--vocabulary", str(tmp_path / "nope.txt"), "--endpoint", "http://127.0.0.1:9",
                "--storage-path", str(tmp_path / "c.db"), "--log-level", "ERROR"])
    assert code == 2


def test_phrase_longer_than_vocabulary_exits_with_configuration_status(tmp_path):
    vocab = tmp_path / "v.txt"
    vocab.write_text("a\nb\nc\n", encoding="utf-8")
    code = run(["--vocabulary", str(vocab), "--endpoint", "http://127.0.0.1:9", "--phrase-length", "4",
                "--storage-path", str(tmp_path / "c.db"), "--log-level", "ERROR"])
    assert code == 2


def test_unreachable_endpoint_closes_the_store(tmp_path, monkeypatch, vocab_path):
    opened = []

    def context_with_refusing_endpoints(config):
        ctx = build_context(config, client_factory=StubFactory(connectivity_error=TransientNetworkError("refused")))
        opened.append(ctx.store)
        return ctx

    monkeypatch.setattr(cli, "build_context", context_with_refusing_endpoints)
    code = cli.run(["--vocabulary", vocab_path, "--endpoint", "http://127.0.0.1:9",
                    "--storage-path", str(tmp_path / "c.db"), "--log-level", "ERROR"])

    assert code == 2
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].conn.execute("SELECT 1")
