import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def make_server(name, spec_key="", **kw):
    return {
        "name": name,
        "specKey": spec_key,
        "protocolVersion": kw.get("protocol", "2025-06-18"),
        "strategy": kw.get("strategy", "stateless"),
        "sessionTTLSeconds": kw.get("ttl", 0),
        "maxConcurrent": kw.get("max_concurrent", 1),
        "exposeTools": kw.get("tools", []),
    }


def make_instances(*ids, state="ready"):
    return [{"id": i, "state": state, "busyCount": 0} for i in ids]


@pytest.fixture()
def demo_payload():
    return {
        "profiles": [
            {"name": "default", "isDefault": True, "serverCount": 2},
            {"name": "research", "isDefault": False, "serverCount": 1},
        ],
        "profileDetails": [
            {
                "name": "default",
                "servers": [
                    make_server("filesystem", "fs", max_concurrent=4, tools=["read", "write"]),
                    make_server("git", "git", strategy="stateful", ttl=300),
                ],
            },
            {
                "name": "research",
                "servers": [make_server("filesystem", "fs", max_concurrent=8, protocol="2025-03-26")],
            },
        ],
        "callers": {"vscode": "default", "cursor": "default", "notebook": "research", "old": "archived"},
        "activeCallers": [
            {"caller": "vscode", "pid": 4123, "profile": "default", "lastHeartbeat": "2026-10-18T09:00:00Z"}
        ],
        "runtimeStatus": [
            {"specKey": "fs", "serverName": "filesystem", "instances": make_instances("b", "a")},
            {"specKey": "ghost-server", "serverName": "gone", "instances": make_instances("x")},
        ],
    }
