import pytest

from pooltopo.api import app


@pytest.fixture()
def client():
    with app.test_client() as client:
        yield client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["ok"] is True
    assert payload["data"]["ts"] > 0


def test_topology_returns_positioned_graph(client, demo_payload):
    response = client.post("/topology", json=demo_payload)
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["ok"] is True

    data = payload["data"]
    assert data["profileCount"] == 3
    assert data["serverCount"] == 2
    assert data["callerCount"] == 4
    assert data["instanceCount"] == 2

    first = data["nodes"][0]
    assert first["id"] == "profile:default"
    assert set(first["position"]) == {"x", "y"}
    assert {e["tierClass"] for e in data["edges"]} == {
        "caller-profile", "profile-server", "server-instance",
    }


def test_topology_accepts_layout_override(client, demo_payload):
    body = dict(demo_payload, layout={"columns": {"profile": 500}})
    data = client.post("/topology", json=body).get_json()["data"]
    profiles = [n for n in data["nodes"] if n["type"] == "profile"]
    assert all(n["position"]["x"] == 500 for n in profiles)


def test_topology_empty_body_object(client):
    response = client.post("/topology", json={})
    assert response.status_code == 200
    assert response.get_json()["data"]["nodes"] == []


def test_topology_rejects_non_json(client):
    response = client.post("/topology", data="nope", content_type="text/plain")
    assert response.status_code == 400
    payload = response.get_json()
    assert payload["ok"] is False
    assert "expected JSON" in payload["error"]


def test_related(client, demo_payload):
    body = dict(demo_payload, nodeId="caller:notebook")
    payload = client.post("/related", json=body).get_json()
    assert payload["ok"] is True
    assert payload["data"]["related"] == ["caller:notebook", "profile:research"]


def test_related_requires_node_id(client, demo_payload):
    response = client.post("/related", json=demo_payload)
    assert response.status_code == 400
    assert "nodeId" in response.get_json()["error"]


def test_stats(client, demo_payload):
    payload = client.post("/stats", json={"runtimeStatus": demo_payload["runtimeStatus"]}).get_json()
    assert payload["ok"] is True
    assert payload["data"]["totalServers"] == 2
    assert payload["data"]["totalInstances"] == 3
    assert [s["specKey"] for s in payload["data"]["servers"]] == ["fs", "ghost-server"]


def test_stats_with_metrics_and_init_status(client):
    body = {
        "runtimeStatus": [
            {
                "specKey": "fs",
                "instances": [{"id": "a", "state": "busy"}],
                "metrics": {"totalCalls": 10, "totalErrors": 2, "totalDurationMs": 500, "startCount": 1},
            },
        ],
        "initStatus": [
            {"specKey": "fs", "state": "ready", "ready": 1, "minReady": 1},
            {"specKey": "git", "state": "suspended"},
        ],
    }
    data = client.post("/stats", json=body).get_json()["data"]
    assert data["totalCalls"] == 10
    assert data["errorRate"] == 20.0
    assert data["avgDurationMs"] == 50.0
    assert data["suspendedServers"] == 1
    server = data["servers"][0]
    assert server["pool"]["busy"] == 1
    assert server["metrics"]["avgResponseMs"] == 50.0
    assert server["metrics"]["lastCallAgeMs"] is None


def test_stats_malformed_status_returns_json_error(client):
    response = client.post("/stats", json={"runtimeStatus": ["oops"]})
    assert response.status_code == 500
    payload = response.get_json()
    assert payload["ok"] is False
    assert "stats failed" in payload["error"]


def test_stats_rejects_non_json(client):
    response = client.post("/stats", data="nope", content_type="text/plain")
    assert response.status_code == 400
    assert response.get_json()["ok"] is False
