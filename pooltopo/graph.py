#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
pooltopo/graph.py — Snapshot in, positioned four-tier graph out.

What it does
------------
- aggregate()          merge profiles/servers, synthesize missing profiles
- PositionAllocator    x/y per node (see pooltopo/layout.py)
- EdgeSynthesizer      caller→profile, profile→server, server→instance
- pack nodes + edges + counts into a GraphResult

Key API
-------
result = build_topology(snapshot, config=None)
result.to_dict()  → {"nodes": [...], "edges": [...], "profileCount": int,
                     "serverCount": int, "callerCount": int, "instanceCount": int}

Node shape
----------
{"id": "server:s1", "type": "caller|profile|server|instance",
 "position": {"x": float, "y": float}, "data": {...tier payload...}}

Notes
-----
- Stateless and total: any snapshot (including an empty one) yields a result.
- The five inputs are not mutually consistent; dangling references are
  either placeholdered (profiles) or skipped (runtime status, details).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .aggregate import AggregatedServer, Aggregation, aggregate
from .edges import Edge, EdgeSynthesizer, caller_id, instance_id, profile_id, server_id
from .layout import LayoutConfig, Placement, PositionAllocator
from .snapshot import TopologySnapshot
from .stats import pool_stats

log = logging.getLogger(__name__)

STRATEGY_LABELS = {
    "stateless": "Stateless",
    "stateful": "Stateful",
    "persistent": "Persistent",
    "singleton": "Singleton",
}


@dataclass
class Node:
    id: str
    type: str
    x: float
    y: float
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "position": {"x": self.x, "y": self.y},
            "data": self.data,
        }


@dataclass
class GraphResult:
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    profile_count: int = 0
    server_count: int = 0
    caller_count: int = 0
    instance_count: int = 0

    @property
    def has_data(self) -> bool:
        return bool(self.profile_count or self.server_count or self.caller_count or self.instance_count)

    def node(self, node_id: str) -> Optional[Node]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def nodes_of(self, node_type: str) -> List[Node]:
        return [n for n in self.nodes if n.type == node_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "profileCount": self.profile_count,
            "serverCount": self.server_count,
            "callerCount": self.caller_count,
            "instanceCount": self.instance_count,
        }


# ----------------------------- server tags -----------------------------

def build_server_tags(
    strategy: str,
    strategy_mixed: bool,
    session_ttl_seconds: int,
    session_ttl_mixed: bool,
    max_concurrent: int,
    expose_tools_count: int,
    profile_count: int,
) -> List[str]:
    tags: List[str] = []

    if strategy_mixed:
        tags.append("Strategy Mixed")
    elif strategy != "stateless":
        tags.append(STRATEGY_LABELS.get(strategy, strategy))

    if strategy == "stateful":
        if session_ttl_mixed:
            tags.append("Session TTL Mixed")
        elif session_ttl_seconds > 0:
            tags.append(f"Session TTL {session_ttl_seconds}s")
        else:
            tags.append("Session TTL Off")

    if max_concurrent > 0:
        tags.append(f"Max {max_concurrent}")
    if expose_tools_count > 0:
        tags.append(f"Tools {expose_tools_count}")
    if profile_count > 1:
        tags.append(f"Profiles {profile_count}")
    return tags


def server_payload(server: AggregatedServer, agg: Aggregation) -> Dict[str, Any]:
    status = agg.runtime_by_key.get(server.key)
    return {
        "key": server.key,
        "name": server.name,
        "protocolVersion": server.protocol_version,
        "protocolVersions": sorted(server.protocol_versions),
        "strategies": sorted(server.strategies),
        "sessionTTLSeconds": server.session_ttl_seconds,
        "sessionTTLMixed": server.session_ttl_mixed,
        "maxConcurrent": server.max_concurrent,
        "exposeToolsCount": server.expose_tools_count,
        "profileNames": sorted(server.profile_names),
        "tags": build_server_tags(
            strategy=server.strategy,
            strategy_mixed=server.strategy_mixed,
            session_ttl_seconds=server.session_ttl_seconds,
            session_ttl_mixed=server.session_ttl_mixed,
            max_concurrent=server.max_concurrent,
            expose_tools_count=server.expose_tools_count,
            profile_count=len(server.profile_names),
        ),
        "pool": pool_stats(status) if status is not None else None,
    }


# ----------------------------- assembly -----------------------------

def _pack_nodes(agg: Aggregation, placement: Placement) -> List[Node]:
    nodes: List[Node] = []

    for profile in agg.profiles:
        px, py = placement.profiles[profile.name]
        nodes.append(Node(
            id=profile_id(profile.name),
            type="profile",
            x=px,
            y=py,
            data={
                "name": profile.name,
                "serverCount": profile.server_count,
                "isDefault": profile.is_default,
                "isMissing": profile.is_missing,
            },
        ))
        for caller, cx, cy in placement.callers.get(profile.name, []):
            session = agg.active_callers.get(caller)
            nodes.append(Node(
                id=caller_id(caller),
                type="caller",
                x=cx,
                y=cy,
                data={
                    "name": caller,
                    "profileName": profile.name,
                    "active": session is not None,
                    "pid": session.pid if session else None,
                    "lastHeartbeat": session.last_heartbeat if session else None,
                },
            ))

    for key, _, y in placement.servers:
        nodes.append(Node(
            id=server_id(key),
            type="server",
            x=placement.server_x,
            y=y,
            data=server_payload(agg.servers[key], agg),
        ))

    for key, _, _ in placement.servers:
        for inst, ix, iy in placement.instances.get(key, []):
            nodes.append(Node(
                id=instance_id(key, inst.id),
                type="instance",
                x=ix,
                y=iy,
                data={
                    "id": inst.id,
                    "serverKey": key,
                    "state": inst.state,
                    "busyCount": inst.busy_count,
                },
            ))
    return nodes


class GraphAssembler:
    def __init__(self, config: Optional[LayoutConfig] = None):
        self.allocator = PositionAllocator(config)
        self.edges = EdgeSynthesizer()

    def build(self, snapshot: TopologySnapshot) -> GraphResult:
        agg = aggregate(snapshot)
        placement = self.allocator.allocate(agg)
        edges = self.edges.synthesize(agg, placement)
        nodes = _pack_nodes(agg, placement)

        instance_count = sum(len(v) for v in placement.instances.values())
        log.debug(
            "topology built: %d profiles, %d servers, %d callers, %d instances",
            len(agg.profiles), len(agg.servers), agg.caller_count, instance_count,
        )
        return GraphResult(
            nodes=nodes,
            edges=edges,
            profile_count=len(agg.profiles),
            server_count=len(agg.servers),
            caller_count=agg.caller_count,
            instance_count=instance_count,
        )


def build_topology(snapshot: TopologySnapshot, config: Optional[LayoutConfig] = None) -> GraphResult:
    return GraphAssembler(config).build(snapshot)
