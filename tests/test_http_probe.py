import pytest
import requests

from Probes.http_probe import HttpProbeClient
from Utils.errors import FatalProbeError, ProbeTimeout, RateLimited, TransientNetworkError


class _Response:
    def __init__(self, status_code=200, payload=None, headers=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self._text = text

    def json(self):
        if self._text is not None:
            raise ValueError("not json")
        return self._payload


class _Session:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.urls = []
        self.closed = False

    def get(self, url, timeout=None, headers=None):
        self.urls.append(url)
        if self.exc is not None:
            raise self.exc
        return self.response

    def close(self):
        self.closed = True


def _client(**session_kwargs):
    session = _Session(**session_kwargs)
    return HttpProbeClient("http://node:8899/", session=session, balance_field="result.value"), session


def test_probe_reads_nested_balance_field():
    client, session = _client(response=_Response(payload={"result": {"value": 42}}))
    assert client.probe("abc").balance == 42
    assert session.urls == ["http://node:8899/state/abc"]


def test_check_connectivity_returns_version():
    client, session = _client(response=_Response(payload={"version": "1.18.2"}))
    assert client.check_connectivity() == "1.18.2"
    assert session.urls == ["http://node:8899/version"]


@pytest.mark.parametrize("kwargs, expected", [
    ({"exc": requests.exceptions.ConnectTimeout("slow")}, ProbeTimeout),
    ({"exc": requests.exceptions.ConnectionError("reset")}, TransientNetworkError),
    ({"response": _Response(status_code=503)}, TransientNetworkError),
    ({"response": _Response(text="<html>")}, TransientNetworkError),
    ({"response": _Response(status_code=404)}, FatalProbeError),
    ({"response": _Response(payload={"other": 1})}, FatalProbeError),
    ({"response": _Response(payload={"result": {"value": "lots"}})}, FatalProbeError),
])
def test_error_taxonomy(kwargs, expected):
    client, _ = _client(**kwargs)
    with pytest.raises(expected) as info:
        client.probe("abc")
    assert info.value.endpoint == "http://node:8899"
    assert info.value.recoverable is (expected is not FatalProbeError)


def test_rate_limit_carries_retry_after():
    client, _ = _client(response=_Response(status_code=429, headers={"Retry-After": "7"}))
    with pytest.raises(RateLimited) as info:
        client.probe("abc")
    assert info.value.retry_after == 7.0


def test_close_closes_session():
    client, session = _client(response=_Response(payload={}))
    client.close()
    assert session.closed
