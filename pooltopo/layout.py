#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
pooltopo/layout.py — Deterministic four-column placement for the topology graph.

Columns (x) are fixed per tier: caller < profile < server < instance.
Rows (y) are computed tier by tier:

- Profiles/callers: a running cursor. Each profile owns a cluster of height
  max((n-1)*node_gap, min_cluster_height) where n is its caller count; the
  profile sits at the cluster centre and callers spread around it.
- Servers: desired y is the mean y of the profiles that use it. Servers are
  sorted by desired y and packed greedily so neighbours are >= server_gap apart.
- Instances: spread around their server's y at instance_gap, sorted by id.

Tuning knobs
------------
Defaults live in DEFAULT_LAYOUT. Override via LayoutConfig.from_dict(),
LayoutConfig.load(path) (YAML), or the TOPO_LAYOUT_CONFIG environment variable.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .aggregate import Aggregation
from .snapshot import Instance, load_payload, safe_float

DEFAULT_LAYOUT: Dict[str, Any] = {
    "columns": {
        "caller": 0.0,
        "profile": 280.0,
        "server": 560.0,
        "instance": 800.0,
    },
    "node_gap": 96.0,
    "server_gap": 84.0,
    "instance_gap": 60.0,
    "cluster_gap": 140.0,
    "min_cluster_height": 120.0,
}

LAYOUT_ENV = "TOPO_LAYOUT_CONFIG"


@dataclass(frozen=True)
class LayoutConfig:
    caller_x: float = DEFAULT_LAYOUT["columns"]["caller"]
    profile_x: float = DEFAULT_LAYOUT["columns"]["profile"]
    server_x: float = DEFAULT_LAYOUT["columns"]["server"]
    instance_x: float = DEFAULT_LAYOUT["columns"]["instance"]
    node_gap: float = DEFAULT_LAYOUT["node_gap"]
    server_gap: float = DEFAULT_LAYOUT["server_gap"]
    instance_gap: float = DEFAULT_LAYOUT["instance_gap"]
    cluster_gap: float = DEFAULT_LAYOUT["cluster_gap"]
    min_cluster_height: float = DEFAULT_LAYOUT["min_cluster_height"]

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "LayoutConfig":
        """
        Shape mirrors DEFAULT_LAYOUT; camelCase spellings are accepted too.
        Unknown keys are ignored, unparsable numbers fall back to defaults.
        """
        raw = raw or {}
        cols = {**DEFAULT_LAYOUT["columns"], **(raw.get("columns") or {})}

        def num(snake: str, camel: str) -> float:
            val = raw.get(snake, raw.get(camel))
            return safe_float(val, DEFAULT_LAYOUT[snake])

        return cls(
            caller_x=safe_float(cols.get("caller"), DEFAULT_LAYOUT["columns"]["caller"]),
            profile_x=safe_float(cols.get("profile"), DEFAULT_LAYOUT["columns"]["profile"]),
            server_x=safe_float(cols.get("server"), DEFAULT_LAYOUT["columns"]["server"]),
            instance_x=safe_float(cols.get("instance"), DEFAULT_LAYOUT["columns"]["instance"]),
            node_gap=num("node_gap", "nodeGap"),
            server_gap=num("server_gap", "serverGap"),
            instance_gap=num("instance_gap", "instanceGap"),
            cluster_gap=num("cluster_gap", "clusterGap"),
            min_cluster_height=num("min_cluster_height", "minClusterHeight"),
        )

    @classmethod
    def load(cls, path: Union[str, Path]) -> "LayoutConfig":
        return cls.from_dict(load_payload(path))

    @classmethod
    def from_env(cls) -> "LayoutConfig":
        path = os.environ.get(LAYOUT_ENV)
        if not path:
            return cls()
        return cls.load(path)


# ----------------------------- results -----------------------------

@dataclass
class Placement:
    """Coordinates per tier, keyed by entity name/key."""
    profiles: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    # profile → [(caller, x, y), ...]
    callers: Dict[str, List[Tuple[str, float, float]]] = field(default_factory=dict)
    # clusters in cursor order: (profile, top, height)
    clusters: List[Tuple[str, float, float]] = field(default_factory=list)
    # servers in resolved order: (key, desired_y, resolved_y)
    servers: List[Tuple[str, float, float]] = field(default_factory=list)
    server_x: float = 0.0
    # server key → [(instance, x, y), ...]
    instances: Dict[str, List[Tuple[Instance, float, float]]] = field(default_factory=dict)


def _spread(center: float, count: int, gap: float) -> List[float]:
    start = center - ((count - 1) * gap) / 2.0
    return [start + i * gap for i in range(count)]


class PositionAllocator:
    def __init__(self, config: Optional[LayoutConfig] = None):
        self.cfg = config or LayoutConfig()

    def cluster_height(self, caller_count: int) -> float:
        cfg = self.cfg
        size = max(caller_count, 1)
        return max((size - 1) * cfg.node_gap, cfg.min_cluster_height)

    # --------- tiers ---------

    def place_profiles(self, agg: Aggregation, out: Placement) -> None:
        cfg = self.cfg
        cursor = 0.0
        for profile in agg.profiles:
            callers = agg.callers_by_profile.get(profile.name, [])
            height = self.cluster_height(len(callers))
            y = cursor + height / 2.0
            out.profiles[profile.name] = (cfg.profile_x, y)
            out.clusters.append((profile.name, cursor, height))
            out.callers[profile.name] = [
                (caller, cfg.caller_x, cy)
                for caller, cy in zip(callers, _spread(y, len(callers), cfg.node_gap))
            ]
            cursor += height + cfg.cluster_gap

    def place_servers(self, agg: Aggregation, out: Placement) -> None:
        out.server_x = self.cfg.server_x
        entries: List[Tuple[float, str]] = []
        for key, server in agg.servers.items():
            ys = [
                out.profiles[name][1]
                for name in sorted(server.profile_names)
                if name in out.profiles
            ]
            desired = sum(ys) / len(ys) if ys else 0.0
            entries.append((desired, key))

        # ties broken by key
        entries.sort(key=lambda e: (e[0], e[1]))

        last: Optional[float] = None
        for desired, key in entries:
            resolved = desired if last is None else max(desired, last + self.cfg.server_gap)
            out.servers.append((key, desired, resolved))
            last = resolved

    def place_instances(self, agg: Aggregation, out: Placement) -> None:
        cfg = self.cfg
        for key, _, server_y in out.servers:
            status = agg.runtime_by_key.get(key)
            if status is None or not status.instances:
                continue
            ordered = sorted(status.instances, key=lambda i: i.id)
            out.instances[key] = [
                (inst, cfg.instance_x, y)
                for inst, y in zip(ordered, _spread(server_y, len(ordered), cfg.instance_gap))
            ]

    def allocate(self, agg: Aggregation) -> Placement:
        out = Placement()
        self.place_profiles(agg, out)
        self.place_servers(agg, out)
        self.place_instances(agg, out)
        return out
