from conftest import make_server

from pooltopo.aggregate import aggregate
from pooltopo.snapshot import TopologySnapshot


def snap(**raw):
    return TopologySnapshot.from_dict(raw)


def test_missing_profiles_follow_known_ones_sorted():
    agg = aggregate(snap(
        profiles=[{"name": "zeta", "isDefault": True}, {"name": "alpha"}],
        callers={"c1": "zulu", "c2": "bravo", "c3": "alpha"},
    ))

    assert [p.name for p in agg.profiles] == ["zeta", "alpha", "bravo", "zulu"]
    assert [p.is_missing for p in agg.profiles] == [False, False, True, True]
    assert agg.profiles[0].is_default is True
    assert agg.caller_count == 3


def test_callers_grouped_and_sorted_per_profile():
    agg = aggregate(snap(callers={"zed": "p", "amy": "p", "bob": "q"}))
    assert agg.callers_by_profile == {"p": ["amy", "zed"], "q": ["bob"]}


def test_shared_spec_key_collapses_into_one_server():
    agg = aggregate(snap(
        profiles=[{"name": "default"}, {"name": "other"}],
        profileDetails=[
            {"name": "default", "servers": [make_server("fs", "s1", max_concurrent=4, tools=["a"])]},
            {"name": "other", "servers": [make_server("fs-copy", "s1", max_concurrent=8, tools=["a", "b"], protocol="2024-11-05")]},
        ],
    ))

    assert list(agg.servers) == ["s1"]
    s1 = agg.servers["s1"]
    assert s1.name == "fs"
    assert s1.max_concurrent == 8
    assert s1.expose_tools_count == 2
    assert s1.profile_names == {"default", "other"}
    assert s1.protocol_versions == {"2025-06-18", "2024-11-05"}
    assert s1.protocol_version == "mixed"
    assert s1.session_ttl_mixed is False


def test_disagreeing_ttl_sets_mixed_flag():
    agg = aggregate(snap(
        profiles=[{"name": "a"}, {"name": "b"}],
        profileDetails=[
            {"name": "a", "servers": [make_server("git", "g", strategy="stateful", ttl=60)]},
            {"name": "b", "servers": [make_server("git", "g", strategy="stateless", ttl=300)]},
        ],
    ))
    g = agg.servers["g"]
    assert g.session_ttl_mixed is True
    assert g.strategy_mixed is True
    assert g.strategy == "mixed"


def test_key_falls_back_to_display_name_and_empty_protocol_is_default():
    agg = aggregate(snap(
        profiles=[{"name": "a"}],
        profileDetails=[{"name": "a", "servers": [make_server("browser", "", protocol="")]}],
    ))
    assert list(agg.servers) == ["browser"]
    assert agg.servers["browser"].protocol_version == "default"


def test_detail_for_unknown_profile_is_ignored_and_missing_detail_is_empty():
    agg = aggregate(snap(
        profiles=[{"name": "a"}],
        profileDetails=[{"name": "not-listed", "servers": [make_server("x", "x")]}],
    ))
    assert agg.servers == {}
    assert agg.profiles[0].server_count == 0


def test_empty_snapshot_yields_empty_aggregation():
    agg = aggregate(TopologySnapshot())
    assert agg.profiles == []
    assert agg.servers == {}
    assert agg.caller_count == 0
