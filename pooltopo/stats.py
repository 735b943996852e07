#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
pooltopo/stats.py — Pool and call statistics over server runtime status.

pool_stats(status)          → {total, ready, busy, starting, failed, draining}
metrics_summary(status)     → {totalCalls, totalErrors, avgResponseMs, lastCallAgeMs, startCount}
aggregate_stats(status*, init*) → totals across servers, utilization and error rate (percent)

starting folds in initializing and handshaking. When the runtime did not send
a stats block, counts are derived from the instance states instead.
Averages and rates are only computed when there is something to divide by;
otherwise avgResponseMs is None and the rates stay 0.
"""

from __future__ import annotations

import re
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from .snapshot import PoolStatsSnapshot, ServerInitStatus, ServerMetrics, ServerRuntimeStatus

# fromisoformat before 3.11 takes at most 6 fractional digits and no "Z"
_FRACTION = re.compile(r"(\.\d{6})\d+")


def utc_ms() -> int:
    return int(time.time() * 1000)


def parse_timestamp_ms(value: Optional[str]) -> Optional[int]:
    """RFC 3339 timestamp → epoch ms; None when absent or unparsable."""
    if not value:
        return None
    text = _FRACTION.sub(r"\1", value.strip())
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def _counts(status: ServerRuntimeStatus) -> PoolStatsSnapshot:
    if status.stats is not None:
        return status.stats
    c = Counter(inst.state for inst in status.instances)
    return PoolStatsSnapshot(
        total=len(status.instances),
        ready=c["ready"],
        busy=c["busy"],
        starting=c["starting"],
        initializing=c["initializing"],
        handshaking=c["handshaking"],
        draining=c["draining"],
        failed=c["failed"],
    )


def pool_stats(status: ServerRuntimeStatus) -> Dict[str, int]:
    s = _counts(status)
    return {
        "total": s.ready + s.busy + s.starting + s.initializing + s.handshaking + s.draining + s.failed,
        "ready": s.ready,
        "busy": s.busy,
        "starting": s.starting + s.initializing + s.handshaking,
        "failed": s.failed,
        "draining": s.draining,
    }


def metrics_summary(status: ServerRuntimeStatus, now_ms: Optional[int] = None) -> Dict[str, Any]:
    m = status.metrics or ServerMetrics()
    avg = m.total_duration_ms / m.total_calls if m.total_calls > 0 else None

    last_ms = parse_timestamp_ms(m.last_call_at)
    age = None
    if last_ms is not None:
        now = utc_ms() if now_ms is None else now_ms
        age = max(0, now - last_ms)

    return {
        "totalCalls": m.total_calls,
        "totalErrors": m.total_errors,
        "avgResponseMs": avg,
        "lastCallAgeMs": age,
        "startCount": m.start_count,
    }


def aggregate_stats(
    statuses: Iterable[ServerRuntimeStatus],
    init_statuses: Optional[Iterable[ServerInitStatus]] = None,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "totalServers": 0,
        "totalInstances": 0,
        "readyInstances": 0,
        "busyInstances": 0,
        "startingInstances": 0,
        "failedInstances": 0,
        "drainingInstances": 0,
        "suspendedServers": 0,
        "totalCalls": 0,
        "totalErrors": 0,
        "avgDurationMs": 0.0,
        "errorRate": 0.0,
        "utilization": 0.0,
    }

    if init_statuses is not None:
        out["suspendedServers"] = sum(1 for s in init_statuses if s.state == "suspended")

    total_duration = 0.0
    for status in statuses:
        p = pool_stats(status)
        out["totalServers"] += 1
        out["totalInstances"] += p["total"]
        out["readyInstances"] += p["ready"]
        out["busyInstances"] += p["busy"]
        out["startingInstances"] += p["starting"]
        out["failedInstances"] += p["failed"]
        out["drainingInstances"] += p["draining"]

        if status.metrics is not None:
            out["totalCalls"] += status.metrics.total_calls
            out["totalErrors"] += status.metrics.total_errors
            total_duration += status.metrics.total_duration_ms

    if out["totalCalls"] > 0:
        out["avgDurationMs"] = round(total_duration / out["totalCalls"], 3)
        out["errorRate"] = round(out["totalErrors"] / out["totalCalls"] * 100.0, 2)

    if out["totalInstances"] > 0:
        live = out["readyInstances"] + out["busyInstances"]
        out["utilization"] = round(live / out["totalInstances"] * 100.0, 2)
    return out
