#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
pooltopo/aggregate.py — Merge raw snapshots into profile and server entities.

What it does
------------
- Groups caller names by the profile they are mapped to.
- Orders profiles: known ones as listed, then caller-only ("missing") ones
  sorted by name. Missing profiles become placeholders, never dropped.
- Collapses server specs referenced from several profiles into one
  AggregatedServer per key (spec key, else display name):
    • protocol versions / strategies / owning profiles → union
    • max_concurrent / expose_tools_count              → max
    • session TTL disagreement                         → session_ttl_mixed

Key API
-------
agg = aggregate(snapshot)
agg.profiles            → [ProfileEntry, ...] in display order
agg.servers             → {key: AggregatedServer} in first-seen order
agg.callers_by_profile  → {profile: [caller, ...] sorted}

Notes
-----
- Pure: reads the snapshot, allocates fresh entities, never fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set

from .snapshot import ActiveCaller, ProfileDetail, ServerRuntimeStatus, ServerSpecDetail, TopologySnapshot

log = logging.getLogger(__name__)

DEFAULT_PROTOCOL_LABEL = "default"
MIXED = "mixed"


@dataclass
class ProfileEntry:
    name: str
    is_default: bool = False
    is_missing: bool = False
    server_keys: List[str] = field(default_factory=list)
    server_count: int = 0


@dataclass
class AggregatedServer:
    key: str
    name: str
    protocol_versions: Set[str] = field(default_factory=set)
    strategies: Set[str] = field(default_factory=set)
    session_ttl_seconds: int = 0
    session_ttl_mixed: bool = False
    max_concurrent: int = 0
    expose_tools_count: int = 0
    profile_names: Set[str] = field(default_factory=set)

    @classmethod
    def from_spec(cls, key: str, spec: ServerSpecDetail, profile: str) -> "AggregatedServer":
        return cls(
            key=key,
            name=spec.name,
            protocol_versions={spec.protocol_version or DEFAULT_PROTOCOL_LABEL},
            strategies={spec.strategy},
            session_ttl_seconds=spec.session_ttl_seconds,
            max_concurrent=spec.max_concurrent,
            expose_tools_count=len(spec.expose_tools),
            profile_names={profile},
        )

    def merge(self, spec: ServerSpecDetail, profile: str) -> None:
        self.strategies.add(spec.strategy)
        if self.session_ttl_seconds != spec.session_ttl_seconds:
            self.session_ttl_mixed = True
        self.max_concurrent = max(self.max_concurrent, spec.max_concurrent)
        self.expose_tools_count = max(self.expose_tools_count, len(spec.expose_tools))
        self.profile_names.add(profile)
        self.protocol_versions.add(spec.protocol_version or DEFAULT_PROTOCOL_LABEL)

    @property
    def protocol_version(self) -> str:
        if len(self.protocol_versions) == 1:
            return next(iter(self.protocol_versions))
        return MIXED

    @property
    def strategy_mixed(self) -> bool:
        return len(self.strategies) > 1

    @property
    def strategy(self) -> str:
        if len(self.strategies) == 1:
            return next(iter(self.strategies))
        return MIXED


@dataclass
class Aggregation:
    profiles: List[ProfileEntry] = field(default_factory=list)
    servers: Dict[str, AggregatedServer] = field(default_factory=dict)
    callers_by_profile: Dict[str, List[str]] = field(default_factory=dict)
    active_callers: Dict[str, ActiveCaller] = field(default_factory=dict)
    runtime_by_key: Dict[str, ServerRuntimeStatus] = field(default_factory=dict)
    caller_count: int = 0


# ----------------------------- steps -----------------------------

def group_callers(callers: Dict[str, str]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for caller, profile in callers.items():
        grouped.setdefault(profile, []).append(caller)
    for bucket in grouped.values():
        bucket.sort()
    return grouped


def order_profiles(snapshot: TopologySnapshot, callers_by_profile: Dict[str, List[str]]) -> List[ProfileEntry]:
    ordered: List[ProfileEntry] = []
    seen: Set[str] = set()
    for p in snapshot.profiles:
        if p.name in seen:
            continue
        seen.add(p.name)
        ordered.append(ProfileEntry(name=p.name, is_default=p.is_default))

    missing = sorted(name for name in callers_by_profile if name not in seen)
    for name in missing:
        log.debug("profile %r referenced only by callers; adding placeholder", name)
        ordered.append(ProfileEntry(name=name, is_missing=True))
    return ordered


def merge_servers(
    profiles: List[ProfileEntry],
    details: Dict[str, ProfileDetail],
) -> Dict[str, AggregatedServer]:
    servers: Dict[str, AggregatedServer] = {}
    for profile in profiles:
        detail = details.get(profile.name)
        specs = detail.servers if detail else ()
        profile.server_count = len(specs)
        for spec in specs:
            key = spec.key
            existing = servers.get(key)
            if existing is None:
                servers[key] = AggregatedServer.from_spec(key, spec, profile.name)
            else:
                existing.merge(spec, profile.name)
            if key not in profile.server_keys:
                profile.server_keys.append(key)
    return servers


def aggregate(snapshot: TopologySnapshot) -> Aggregation:
    """Snapshot → ordered profiles + deduplicated servers. Never raises."""
    callers = dict(snapshot.callers)
    callers_by_profile = group_callers(callers)
    profiles = order_profiles(snapshot, callers_by_profile)

    # last detail wins if the data layer returned a profile twice
    details = {d.name: d for d in snapshot.profile_details}
    servers = merge_servers(profiles, details)

    runtime_by_key: Dict[str, ServerRuntimeStatus] = {}
    for status in snapshot.runtime_status:
        runtime_by_key[status.spec_key] = status
        if status.spec_key not in servers:
            log.debug("runtime status for unknown server key %r ignored", status.spec_key)

    return Aggregation(
        profiles=profiles,
        servers=servers,
        callers_by_profile=callers_by_profile,
        active_callers={a.caller: a for a in snapshot.active_callers},
        runtime_by_key=runtime_by_key,
        caller_count=len(callers),
    )
