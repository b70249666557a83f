"""HTTP routes of the live runtime."""

import time

import pytest
from fastapi.testclient import TestClient

from sctpsim.annotation import StubAnnotator
from sctpsim.config import SimConfig
from sctpsim.runtime.http_app import create_app


@pytest.fixture
def slow_client():
    """Runtime whose packets stay in flight for the whole test."""
    app = create_app(SimConfig(latency_ms=60_000), annotator=StubAnnotator())
    with TestClient(app) as client:
        yield client


def test_connect_then_drop(slow_client):
    r = slow_client.post("/connect").json()
    assert r["ok"] is True
    assert (r["packet"]["flag"], r["packet"]["seq"]) == ("SYN", 100)

    again = slow_client.post("/connect").json()
    assert again == {"ok": False, "reason": "client is SYN_SENT"}

    [packet] = slow_client.get("/packets").json()
    assert slow_client.post(f"/packets/{packet['id']}/drop").json() == {"ok": True}
    assert slow_client.post(f"/packets/{packet['id']}/drop").json() == {"ok": False}

    state = slow_client.get("/state").json()
    assert state["inFlight"] == []
    assert state["stats"]["dropped"] == 1
    assert state["client"]["connectionState"] == "SYN_SENT"
    logs = slow_client.get("/logs/client").json()
    assert logs[-1]["message"] == "Packet SYN lost/dropped in transit!"
    assert logs[-1]["category"] == "error"


def test_rejected_actions_are_not_errors(slow_client):
    r = slow_client.post("/data", json={"payload": "x"})
    assert r.status_code == 200
    assert r.json() == {"ok": False, "reason": "client is CLOSED"}
    assert slow_client.post("/disconnect").json()["ok"] is False
    assert slow_client.post("/listen").json() == {"ok": False, "reason": "server is LISTEN"}


def test_reset_restores_initial_state(slow_client):
    slow_client.post("/connect")
    assert slow_client.post("/reset").json() == {"ok": True}
    state = slow_client.get("/state").json()
    assert state["client"]["connectionState"] == "CLOSED"
    assert state["client"]["seq"] == 100
    assert state["inFlight"] == []


def test_handshake_and_generated_data_over_http():
    app = create_app(SimConfig(latency_ms=20), annotator=StubAnnotator(payload="0xBEEF"))
    with TestClient(app) as client:
        client.post("/connect")
        time.sleep(0.5)
        state = client.get("/state").json()
        assert state["client"]["connectionState"] == "ESTABLISHED"
        assert state["server"]["connectionState"] == "ESTABLISHED"
        assert state["client"]["sessionId"] == state["server"]["sessionId"]

        r = client.post("/data").json()
        assert r["ok"] is True
        assert r["packet"]["payload"] == "0xBEEF"
        time.sleep(0.3)
        assert client.get("/state").json()["server"]["lastAckReceived"] == 102


def test_logs_for_unknown_role_is_not_found(slow_client):
    slow_client.post("/connect")
    assert slow_client.get("/logs/bogus").status_code == 404
    assert slow_client.get("/logs/server").json() == []
    assert slow_client.get("/logs/CLIENT").json()[0]["message"] == "Sent SYN (Seq=100 Ack=0)"
