import copy

from conftest import make_instances, make_server

from pooltopo.graph import build_server_tags, build_topology
from pooltopo.snapshot import TopologySnapshot


def build(raw):
    return build_topology(TopologySnapshot.from_dict(raw))


def test_unknown_caller_profile_becomes_missing_placeholder():
    result = build({
        "callers": {"ide-a": "default", "ide-b": "ghost"},
        "profiles": [{"name": "default", "isDefault": True}],
    })

    profiles = result.nodes_of("profile")
    assert [n.data["name"] for n in profiles] == ["default", "ghost"]
    assert [n.data["isMissing"] for n in profiles] == [False, True]
    assert len(result.nodes_of("caller")) == 2
    caller_edges = [e for e in result.edges if e.tier_class == "caller-profile"]
    assert {(e.source, e.target) for e in caller_edges} == {
        ("caller:ide-a", "profile:default"),
        ("caller:ide-b", "profile:ghost"),
    }
    assert result.profile_count == 2
    assert result.caller_count == 2


def test_shared_spec_key_yields_single_server_node():
    result = build({
        "profiles": [{"name": "default"}, {"name": "other"}],
        "profileDetails": [
            {"name": "default", "servers": [make_server("fs", "s1", max_concurrent=4)]},
            {"name": "other", "servers": [make_server("fs", "s1", max_concurrent=8)]},
        ],
    })

    servers = result.nodes_of("server")
    assert len(servers) == 1
    s1 = servers[0]
    assert s1.id == "server:s1"
    assert s1.data["maxConcurrent"] == 8
    assert s1.data["profileNames"] == ["default", "other"]
    assert "Profiles 2" in s1.data["tags"]
    assert result.server_count == 1
    assert len([e for e in result.edges if e.tier_class == "profile-server"]) == 2


def test_runtime_instances_become_nodes_centred_on_server():
    result = build({
        "profiles": [{"name": "default"}],
        "profileDetails": [{"name": "default", "servers": [make_server("fs", "s1")]}],
        "runtimeStatus": [{"specKey": "s1", "instances": make_instances("i1", "i2", "i3")}],
    })

    server = result.node("server:s1")
    instances = result.nodes_of("instance")
    assert len(instances) == 3
    assert result.instance_count == 3
    assert [n.y for n in instances] == [server.y - 60.0, server.y, server.y + 60.0]
    inst_edges = [e for e in result.edges if e.tier_class == "server-instance"]
    assert [e.target for e in inst_edges] == [n.id for n in instances]
    assert all(e.source == "server:s1" for e in inst_edges)


def test_ttl_disagreement_is_reported_as_mixed():
    result = build({
        "profiles": [{"name": "a"}, {"name": "b"}],
        "profileDetails": [
            {"name": "a", "servers": [make_server("git", "g", strategy="stateful", ttl=60)]},
            {"name": "b", "servers": [make_server("git", "g", strategy="stateful", ttl=120)]},
        ],
    })
    data = result.node("server:g").data
    assert data["sessionTTLMixed"] is True
    assert "Session TTL Mixed" in data["tags"]


def test_runtime_status_without_server_and_server_without_status(demo_payload):
    result = build(demo_payload)

    # "ghost-server" has runtime status but no spec; "git" has a spec but no status
    assert result.node("server:ghost-server") is None
    assert not [n for n in result.nodes_of("instance") if n.data["serverKey"] == "git"]
    assert result.node("server:git").data["pool"] is None
    assert result.instance_count == 2


def test_active_caller_edge_is_marked(demo_payload):
    result = build(demo_payload)
    edges = {e.source: e for e in result.edges if e.tier_class == "caller-profile"}
    assert edges["caller:vscode"].active is True
    assert edges["caller:vscode"].style["animated"] is True
    assert edges["caller:cursor"].active is False
    assert result.node("caller:vscode").data["pid"] == 4123
    assert result.node("caller:cursor").data["pid"] is None
    assert set(edges["caller:cursor"].style) >= {"stroke", "strokeWidth", "strokeOpacity"}


def test_active_caller_outside_caller_map_is_ignored():
    result = build({
        "profiles": [{"name": "default"}],
        "callers": {"ide": "default"},
        "activeCallers": [{"caller": "stray", "pid": 99, "profile": "nowhere"}],
    })
    assert result.node("caller:stray") is None
    assert result.node("profile:nowhere") is None
    assert result.profile_count == 1
    assert result.caller_count == 1
    edges = [e for e in result.edges if e.tier_class == "caller-profile"]
    assert [(e.source, e.active) for e in edges] == [("caller:ide", False)]


def test_counts_include_placeholders(demo_payload):
    result = build(demo_payload)
    assert result.profile_count == 3
    assert result.server_count == 2
    assert result.caller_count == 4
    assert result.has_data


def test_same_input_gives_identical_graph(demo_payload):
    first = build(demo_payload).to_dict()
    second = build(copy.deepcopy(demo_payload)).to_dict()
    assert first == second
    assert len({e["id"] for e in first["edges"]}) == len(first["edges"])
    assert len({n["id"] for n in first["nodes"]}) == len(first["nodes"])


def test_empty_snapshot_is_well_formed():
    result = build({})
    assert result.to_dict() == {
        "nodes": [],
        "edges": [],
        "profileCount": 0,
        "serverCount": 0,
        "callerCount": 0,
        "instanceCount": 0,
    }
    assert not result.has_data


def test_edge_ids_derive_from_endpoints(demo_payload):
    result = build(demo_payload)
    for e in result.edges:
        assert e.id == f"edge:{e.source}->{e.target}"


def test_server_tags():
    assert build_server_tags("stateless", False, 0, False, 0, 0, 1) == []
    assert build_server_tags("stateful", False, 300, False, 4, 2, 3) == [
        "Stateful", "Session TTL 300s", "Max 4", "Tools 2", "Profiles 3",
    ]
    assert build_server_tags("stateful", False, 0, False, 0, 0, 1) == ["Stateful", "Session TTL Off"]
    assert build_server_tags("mixed", True, 0, True, 0, 0, 1) == ["Strategy Mixed"]
    assert build_server_tags("custom", False, 0, False, 0, 0, 1) == ["custom"]
