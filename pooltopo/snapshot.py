#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
pooltopo/snapshot.py — Input snapshots for the pool topology builder.

Responsibilities
---------------
- Typed, immutable views of the five collections the panel polls:
    • profiles          → ProfileSummary[]
    • profile details   → ProfileDetail[] (nested ServerSpecDetail[])
    • caller map        → {caller: profile}
    • active callers    → ActiveCaller[]
    • runtime status    → ServerRuntimeStatus[] (nested Instance[])
- Lenient coercion from wire payloads (camelCase) or YAML files (snake_case)
- TopologySnapshot bundles the five so callers pass one object around

Design notes
------------
- The five collections refresh independently; nothing here cross-checks them.
- Numerics are coerced with safe_int/safe_float (bad values become 0).
- No schema validation beyond that; the data layer already validated shapes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml


class SnapshotError(ValueError):
    """Raised when a snapshot file cannot be read or parsed."""


# ----------------------------- helpers -----------------------------

def safe_float(x: Any, default: float = 0.0) -> float:
    try:
        return float(x)
    except Exception:
        return default


def safe_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return default


def _pick(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key wins; lets one loader accept wire and YAML spellings."""
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return default


def _str(x: Any) -> str:
    return "" if x is None else str(x)


# ----------------------------- data classes -----------------------------

@dataclass(frozen=True)
class ProfileSummary:
    name: str
    is_default: bool = False
    server_count: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ProfileSummary":
        return cls(
            name=_str(raw.get("name")),
            is_default=bool(_pick(raw, "isDefault", "is_default", default=False)),
            server_count=safe_int(_pick(raw, "serverCount", "server_count", default=0)),
        )


@dataclass(frozen=True)
class ServerSpecDetail:
    name: str
    spec_key: str = ""
    protocol_version: str = ""
    strategy: str = ""
    session_ttl_seconds: int = 0
    max_concurrent: int = 0
    expose_tools: Tuple[str, ...] = ()

    @property
    def key(self) -> str:
        """Aggregation key: explicit spec key, else display name."""
        return self.spec_key or self.name

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ServerSpecDetail":
        tools = _pick(raw, "exposeTools", "expose_tools", default=[]) or []
        return cls(
            name=_str(raw.get("name")),
            spec_key=_str(_pick(raw, "specKey", "spec_key", default="")),
            protocol_version=_str(_pick(raw, "protocolVersion", "protocol_version", default="")),
            strategy=_str(raw.get("strategy")),
            session_ttl_seconds=safe_int(
                _pick(raw, "sessionTTLSeconds", "session_ttl_seconds", default=0)
            ),
            max_concurrent=safe_int(_pick(raw, "maxConcurrent", "max_concurrent", default=0)),
            expose_tools=tuple(_str(t) for t in tools),
        )


@dataclass(frozen=True)
class ProfileDetail:
    name: str
    servers: Tuple[ServerSpecDetail, ...] = ()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ProfileDetail":
        return cls(
            name=_str(raw.get("name")),
            servers=tuple(ServerSpecDetail.from_dict(s) for s in (raw.get("servers") or [])),
        )


@dataclass(frozen=True)
class ActiveCaller:
    caller: str
    pid: int = 0
    profile: str = ""
    last_heartbeat: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ActiveCaller":
        hb = _pick(raw, "lastHeartbeat", "last_heartbeat")
        return cls(
            caller=_str(raw.get("caller")),
            pid=safe_int(raw.get("pid"), 0),
            profile=_str(raw.get("profile")),
            last_heartbeat=None if hb is None else str(hb),
        )


@dataclass(frozen=True)
class Instance:
    id: str
    state: str = "stopped"
    busy_count: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Instance":
        return cls(
            id=_str(raw.get("id")),
            state=_str(raw.get("state") or "stopped").lower(),
            busy_count=safe_int(_pick(raw, "busyCount", "busy_count", default=0)),
        )


@dataclass(frozen=True)
class PoolStatsSnapshot:
    """Per-state instance counts as reported by the runtime."""
    total: int = 0
    ready: int = 0
    busy: int = 0
    starting: int = 0
    initializing: int = 0
    handshaking: int = 0
    draining: int = 0
    failed: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PoolStatsSnapshot":
        return cls(**{k: safe_int(raw.get(k), 0) for k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class ServerMetrics:
    """Cumulative call counters for one server, as reported by the runtime."""
    total_calls: int = 0
    total_errors: int = 0
    total_duration_ms: float = 0.0
    last_call_at: Optional[str] = None
    start_count: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ServerMetrics":
        last = _pick(raw, "lastCallAt", "last_call_at")
        return cls(
            total_calls=safe_int(_pick(raw, "totalCalls", "total_calls", default=0)),
            total_errors=safe_int(_pick(raw, "totalErrors", "total_errors", default=0)),
            total_duration_ms=safe_float(_pick(raw, "totalDurationMs", "total_duration_ms", default=0.0)),
            last_call_at=str(last) if last else None,
            start_count=safe_int(_pick(raw, "startCount", "start_count", default=0)),
        )


@dataclass(frozen=True)
class ServerRuntimeStatus:
    spec_key: str
    server_name: str = ""
    instances: Tuple[Instance, ...] = ()
    stats: Optional[PoolStatsSnapshot] = None
    metrics: Optional[ServerMetrics] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ServerRuntimeStatus":
        stats = raw.get("stats")
        metrics = raw.get("metrics")
        return cls(
            spec_key=_str(_pick(raw, "specKey", "spec_key", default="")),
            server_name=_str(_pick(raw, "serverName", "server_name", default="")),
            instances=tuple(Instance.from_dict(i) for i in (raw.get("instances") or [])),
            stats=PoolStatsSnapshot.from_dict(stats) if isinstance(stats, Mapping) else None,
            metrics=ServerMetrics.from_dict(metrics) if isinstance(metrics, Mapping) else None,
        )


@dataclass(frozen=True)
class ServerInitStatus:
    """Warm-up state of one server: pending, starting, ready, degraded, failed or suspended."""
    spec_key: str
    server_name: str = ""
    state: str = "pending"
    ready: int = 0
    min_ready: int = 0
    last_error: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ServerInitStatus":
        return cls(
            spec_key=_str(_pick(raw, "specKey", "spec_key", default="")),
            server_name=_str(_pick(raw, "serverName", "server_name", default="")),
            state=_str(raw.get("state") or "pending").lower(),
            ready=safe_int(raw.get("ready"), 0),
            min_ready=safe_int(_pick(raw, "minReady", "min_ready", default=0)),
            last_error=_str(_pick(raw, "lastError", "last_error", default="")),
        )


@dataclass(frozen=True)
class TopologySnapshot:
    """The five polled collections, as seen at one instant (not consistent)."""
    profiles: Tuple[ProfileSummary, ...] = ()
    profile_details: Tuple[ProfileDetail, ...] = ()
    callers: Mapping[str, str] = field(default_factory=dict)
    active_callers: Tuple[ActiveCaller, ...] = ()
    runtime_status: Tuple[ServerRuntimeStatus, ...] = ()

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "TopologySnapshot":
        """
        Accepts either spelling per key:
          profiles, profileDetails|profile_details, callers,
          activeCallers|active_callers, runtimeStatus|runtime_status
        Missing keys are empty collections.
        """
        raw = raw or {}
        callers = raw.get("callers") or {}
        return cls(
            profiles=tuple(ProfileSummary.from_dict(p) for p in (raw.get("profiles") or [])),
            profile_details=tuple(
                ProfileDetail.from_dict(p)
                for p in (_pick(raw, "profileDetails", "profile_details", default=[]) or [])
            ),
            callers={_str(k): _str(v) for k, v in dict(callers).items()},
            active_callers=tuple(
                ActiveCaller.from_dict(a)
                for a in (_pick(raw, "activeCallers", "active_callers", default=[]) or [])
            ),
            runtime_status=tuple(
                ServerRuntimeStatus.from_dict(s)
                for s in (_pick(raw, "runtimeStatus", "runtime_status", default=[]) or [])
            ),
        )


# ----------------------------- file loading -----------------------------

def load_payload(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a JSON or YAML file into a dict (YAML is a superset of JSON)."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise SnapshotError(f"cannot read {p}: {e}") from e
    try:
        if p.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise SnapshotError(f"cannot parse {p}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SnapshotError(f"{p}: expected a mapping at top level, got {type(data).__name__}")
    return data


def load_snapshot(path: Union[str, Path]) -> TopologySnapshot:
    return TopologySnapshot.from_dict(load_payload(path))


def runtime_status_list(raw: Any) -> List[ServerRuntimeStatus]:
    return [ServerRuntimeStatus.from_dict(s) for s in (raw or [])]


def init_status_list(raw: Any) -> List[ServerInitStatus]:
    return [ServerInitStatus.from_dict(s) for s in (raw or [])]
