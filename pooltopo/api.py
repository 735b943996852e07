#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
pooltopo/api.py — Flask API over the pool topology builder

Endpoints
---------
GET  /health
POST /topology           { profiles, profileDetails, callers, activeCallers, runtimeStatus, layout? }
POST /related            { ...same snapshot keys..., nodeId, layout? }
POST /stats              { runtimeStatus: [...], initStatus?: [...] }

Every response uses the envelope {ok: true, data} / {ok: false, error}.
The API keeps no state: each request carries the snapshot it wants drawn.

Run
---
export FLASK_APP=pooltopo.api:app
flask run -h 127.0.0.1 -p 8085

or:

python3 -m pooltopo.api --host 127.0.0.1 --port 8085
"""

from __future__ import annotations
import argparse
import logging
import os
import time
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from .focus import related_node_ids
from .graph import build_topology
from .layout import LayoutConfig
from .snapshot import TopologySnapshot, init_status_list, runtime_status_list
from .stats import aggregate_stats, metrics_summary, pool_stats

log = logging.getLogger(__name__)

# -----------------------------------
# App singletons
# -----------------------------------

BASE_LAYOUT = LayoutConfig.from_env()

app = Flask(__name__)


# -----------------------------------
# Helpers
# -----------------------------------


def _ok(data: Any, status: int = 200):
    return jsonify({"ok": True, "data": data}), status


def _err(msg: str, status: int = 400, **extra):
    return jsonify({"ok": False, "error": msg, **extra}), status


def _layout_for(body: Dict[str, Any]) -> LayoutConfig:
    override: Optional[Dict[str, Any]] = body.get("layout")
    if not override:
        return BASE_LAYOUT
    return LayoutConfig.from_dict(override)


def _json_body() -> Optional[Dict[str, Any]]:
    if not request.is_json:
        return None
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else None


# -----------------------------------
# Routes
# -----------------------------------


@app.get("/health")
def health():
    return _ok({"ts": int(time.time() * 1000)})


@app.post("/topology")
def topology():
    """
    Build the graph for one snapshot.
    Body:
    {
      "profiles": [ {name, isDefault, serverCount}, ... ],
      "profileDetails": [ {name, servers: [ {name, specKey, ...}, ... ]}, ... ],
      "callers": { "<caller>": "<profile>", ... },
      "activeCallers": [ {caller, pid, profile, lastHeartbeat}, ... ],
      "runtimeStatus": [ {specKey, serverName, instances: [...], stats}, ... ],
      "layout": { nodeGap?, serverGap?, columns?: {...}, ... }
    }
    """
    body = _json_body()
    if body is None:
        return _err("expected JSON object body")
    try:
        snapshot = TopologySnapshot.from_dict(body)
        result = build_topology(snapshot, _layout_for(body))
    except Exception as e:
        log.exception("topology build failed")
        return _err(f"topology failed: {e}", status=500)
    return _ok(result.to_dict())


@app.post("/related")
def related():
    body = _json_body()
    if body is None:
        return _err("expected JSON object body")
    node_id = body.get("nodeId") or body.get("node_id")
    if not node_id:
        return _err("missing 'nodeId'")
    try:
        result = build_topology(TopologySnapshot.from_dict(body), _layout_for(body))
    except Exception as e:
        log.exception("topology build failed")
        return _err(f"topology failed: {e}", status=500)
    return _ok({"nodeId": node_id, "related": related_node_ids(result, str(node_id))})


@app.post("/stats")
def stats():
    """
    Pool and call totals across servers, plus a per-server breakdown.
    Body: { runtimeStatus: [...], initStatus?: [ {specKey, state, ready, minReady, lastError}, ... ] }
    """
    body = _json_body()
    if body is None:
        return _err("expected JSON object body")
    try:
        statuses = runtime_status_list(body.get("runtimeStatus") or body.get("runtime_status"))
        raw_init = body.get("initStatus") or body.get("init_status")
        inits = init_status_list(raw_init) if raw_init is not None else None
        now = int(time.time() * 1000)
        data = aggregate_stats(statuses, inits)
        data["servers"] = [
            {
                "specKey": s.spec_key,
                "serverName": s.server_name,
                "pool": pool_stats(s),
                "metrics": metrics_summary(s, now_ms=now),
            }
            for s in statuses
        ]
    except Exception as e:
        log.exception("stats failed")
        return _err(f"stats failed: {e}", status=500)
    return _ok(data)


# -----------------------------------
# CLI entrypoint
# -----------------------------------


def main():
    ap = argparse.ArgumentParser(description="Pool topology API")
    ap.add_argument("--host", default=os.environ.get("TOPO_API_HOST", "127.0.0.1"))
    ap.add_argument(
        "--port", type=int, default=int(os.environ.get("TOPO_API_PORT", "8085"))
    )
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
