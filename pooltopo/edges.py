#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
pooltopo/edges.py — Directed edges between adjacent topology tiers.

Tier classes
------------
caller-profile    caller:<name>   → profile:<name>   (active when the caller has a live session)
profile-server    profile:<name>  → server:<key>
server-instance   server:<key>    → instance:<key>:<id>

Edge ids are derived from the endpoints only, so the same snapshot always
yields the same ids and a renderer can diff successive graphs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .aggregate import Aggregation
from .layout import Placement

CALLER_PROFILE = "caller-profile"
PROFILE_SERVER = "profile-server"
SERVER_INSTANCE = "server-instance"

# Visual weights used by the panel; renderers may ignore them.
EDGE_STYLES: Dict[str, Dict[str, Any]] = {
    "caller-profile:active": {
        "stroke": "var(--chart-4)",
        "strokeWidth": 2.0,
        "strokeOpacity": 0.9,
        "strokeDasharray": "6 4",
        "animated": True,
    },
    CALLER_PROFILE: {
        "stroke": "var(--info)",
        "strokeWidth": 1.4,
        "strokeOpacity": 0.55,
        "strokeDasharray": "4 4",
        "animated": False,
    },
    PROFILE_SERVER: {
        "stroke": "var(--chart-2)",
        "strokeWidth": 1.5,
        "strokeOpacity": 0.6,
        "animated": False,
    },
    SERVER_INSTANCE: {
        "stroke": "var(--border)",
        "strokeWidth": 1.0,
        "strokeOpacity": 0.5,
        "animated": False,
    },
}


def caller_id(name: str) -> str:
    return f"caller:{name}"


def profile_id(name: str) -> str:
    return f"profile:{name}"


def server_id(key: str) -> str:
    return f"server:{key}"


def instance_id(server_key: str, inst_id: str) -> str:
    return f"instance:{server_key}:{inst_id}"


def edge_id(source: str, target: str) -> str:
    return f"edge:{source}->{target}"


@dataclass
class Edge:
    id: str
    source: str
    target: str
    tier_class: str
    active: bool = False
    style: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "tierClass": self.tier_class,
            "active": self.active,
            "style": dict(self.style),
        }


def _style(tier_class: str, active: bool = False) -> Dict[str, Any]:
    key = f"{tier_class}:active" if active else tier_class
    return dict(EDGE_STYLES[key])


class EdgeSynthesizer:
    def caller_edges(self, agg: Aggregation, placement: Placement) -> List[Edge]:
        edges: List[Edge] = []
        for profile in agg.profiles:
            target = profile_id(profile.name)
            for caller, _, _ in placement.callers.get(profile.name, []):
                source = caller_id(caller)
                active = caller in agg.active_callers
                edges.append(Edge(
                    id=edge_id(source, target),
                    source=source,
                    target=target,
                    tier_class=CALLER_PROFILE,
                    active=active,
                    style=_style(CALLER_PROFILE, active),
                ))
        return edges

    def server_edges(self, agg: Aggregation) -> List[Edge]:
        edges: List[Edge] = []
        for profile in agg.profiles:
            source = profile_id(profile.name)
            for key in profile.server_keys:
                target = server_id(key)
                edges.append(Edge(
                    id=edge_id(source, target),
                    source=source,
                    target=target,
                    tier_class=PROFILE_SERVER,
                    style=_style(PROFILE_SERVER),
                ))
        return edges

    def instance_edges(self, placement: Placement) -> List[Edge]:
        edges: List[Edge] = []
        for key, _, _ in placement.servers:
            source = server_id(key)
            for inst, _, _ in placement.instances.get(key, []):
                target = instance_id(key, inst.id)
                edges.append(Edge(
                    id=edge_id(source, target),
                    source=source,
                    target=target,
                    tier_class=SERVER_INSTANCE,
                    style=_style(SERVER_INSTANCE),
                ))
        return edges

    def synthesize(self, agg: Aggregation, placement: Placement) -> List[Edge]:
        return (
            self.caller_edges(agg, placement)
            + self.server_edges(agg)
            + self.instance_edges(placement)
        )
