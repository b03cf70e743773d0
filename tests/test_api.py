from fastapi.testclient import TestClient

from api.main import create_app
from Pool.context import build_context
from Pool.supervisor import Supervisor
from Probes.identity import DigestDeriver
from Utils.messages import Found, ObservedState

from stubs import StubFactory


def _client(config):
    supervisor = Supervisor(build_context(config, client_factory=StubFactory()))
    return supervisor, TestClient(create_app(supervisor))


def test_status_before_start(make_config):
    supervisor, client = _client(make_config(workers=3))
    res = client.get("/api/status")
    assert res.status_code == 200
    body = res.json()
    assert body["running"] is False
    assert body["reason"] is None
    assert body["workers"] == 3
    assert body["workers_alive"] == 0
    assert body["next_sequence"] == 1
    supervisor.ctx.store.close()


def test_workers_lists_every_slot(make_config):
    supervisor, client = _client(make_config(workers=2))
    supervisor.ctx.metrics.record_probe(1, 0.5, positive=False)
    rows = client.get("/api/workers").json()
    assert [r["worker"] for r in rows] == [0, 1]
    assert rows[1]["probed"] == 1
    supervisor.ctx.store.close()


def test_found_reads_the_store(make_config):
    supervisor, client = _client(make_config())
    store = supervisor.ctx.store
    store.load()
    candidate = "a b c d e f g h i j k l"
    store.append_found(Found(worker_id=0, candidate=candidate, identity=DigestDeriver().derive(candidate),
                             state=ObservedState(balance=12)))
    rows = client.get("/api/found").json()
    assert len(rows) == 1
    assert rows[0]["candidate"] == candidate
    assert rows[0]["balance"] == 12
    store.close()


def test_stop_requires_running_pool(make_config):
    supervisor, client = _client(make_config())
    assert client.post("/api/stop").status_code == 409
    supervisor.ctx.store.close()
