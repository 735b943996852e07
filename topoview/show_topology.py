#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topoview/show_topology.py — build the pool topology graph from a snapshot file (local or remote).

Usage
-----
# Local (imports pooltopo.* directly)
python3 -m topoview.show_topology --snapshot snapshots/demo.yaml

# Remote (use if pooltopo/api.py is running on another process/machine)
python3 -m topoview.show_topology --remote http://127.0.0.1:8085 --snapshot snapshots/demo.yaml

# Focus one node and save the full graph JSON
python3 -m topoview.show_topology --snapshot snapshots/demo.yaml --focus server:s1 --out /tmp/graph.json

Options
-------
--snapshot PATH       YAML/JSON with profiles, profileDetails, callers, activeCallers, runtimeStatus
--layout PATH         YAML/JSON layout overrides (columns, nodeGap, serverGap, ...)
--remote URL          If provided, POSTs to {URL}/topology instead of building locally
--focus NODE_ID       Also list the nodes related to NODE_ID (e.g. profile:default)
--out PATH            Save the graph JSON here
-v, --verbose         Debug logging
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from rich.console import Console
from rich.table import Table

from pooltopo.focus import related_node_ids
from pooltopo.graph import GraphResult, build_topology
from pooltopo.layout import DEFAULT_LAYOUT, LayoutConfig
from pooltopo.snapshot import SnapshotError, TopologySnapshot, load_payload

console = Console()


def build_local(payload: Dict[str, Any], layout: Optional[LayoutConfig]) -> Dict[str, Any]:
    result: GraphResult = build_topology(TopologySnapshot.from_dict(payload), layout)
    return result.to_dict()


def build_remote(
    base_url: str,
    payload: Dict[str, Any],
    layout: Optional[Dict[str, Any]] = None,
    timeout: float = 30.0,
) -> Dict[str, Any]:
    base = base_url.rstrip("/")
    body = dict(payload)
    if layout:
        body["layout"] = layout
    r = requests.post(f"{base}/topology", json=body, timeout=timeout)
    j = r.json()
    if not j.get("ok"):
        raise RuntimeError(f"remote /topology error: {j}")
    return j["data"]


def print_summary(graph: Dict[str, Any]):
    head = Table(title="Topology", show_lines=False)
    for col in ("Profiles", "Servers", "Callers", "Instances"):
        head.add_column(col, justify="right")
    head.add_row(
        str(graph.get("profileCount", 0)),
        str(graph.get("serverCount", 0)),
        str(graph.get("callerCount", 0)),
        str(graph.get("instanceCount", 0)),
    )
    console.print(head)

    nodes = graph.get("nodes") or []
    if not nodes:
        console.print("[dim]no profiles, servers, callers or instances[/dim]")
        return

    tbl = Table(show_lines=False)
    tbl.add_column("Tier", style="bold")
    tbl.add_column("Node")
    tbl.add_column("x", justify="right")
    tbl.add_column("y", justify="right")
    tbl.add_column("Details", style="dim")

    for n in nodes:
        data = n.get("data") or {}
        typ = n.get("type")
        if typ == "profile":
            flags = [f for f, on in (("default", data.get("isDefault")), ("missing", data.get("isMissing"))) if on]
            detail = f"servers={data.get('serverCount')} {' '.join(flags)}".strip()
        elif typ == "caller":
            detail = f"pid={data.get('pid')}" if data.get("active") else "idle"
        elif typ == "server":
            detail = f"proto={data.get('protocolVersion')} " + ", ".join(data.get("tags") or [])
        else:
            detail = f"{data.get('state')} busy={data.get('busyCount')}"
        pos = n.get("position") or {}
        tbl.add_row(
            str(typ),
            str(n.get("id")),
            f"{pos.get('x', 0):.0f}",
            f"{pos.get('y', 0):.0f}",
            detail,
        )
    console.print(tbl)


def main(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(description="Pool topology — build the caller/profile/server/instance graph")
    ap.add_argument("--snapshot", required=True, help="Path to snapshot YAML/JSON")
    ap.add_argument("--layout", default=None, help="Layout overrides YAML/JSON (defaults: %s)" % ", ".join(sorted(DEFAULT_LAYOUT)))
    ap.add_argument("--remote", default=None, help="Base URL of pooltopo/api (e.g., http://127.0.0.1:8085)")
    ap.add_argument("--focus", default=None, help="Node id to list neighbours for")
    ap.add_argument("--out", default=None, help="Write graph JSON to this path")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    snap_path = Path(args.snapshot)
    if not snap_path.exists():
        print(f"error: snapshot file not found: {snap_path}", file=sys.stderr)
        sys.exit(2)

    try:
        payload = load_payload(snap_path)
        layout_raw = load_payload(args.layout) if args.layout else None
    except SnapshotError as e:
        print(f"error: failed to load input: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        if args.remote:
            graph = build_remote(args.remote, payload, layout=layout_raw)
        else:
            layout = LayoutConfig.from_dict(layout_raw) if layout_raw else LayoutConfig.from_env()
            graph = build_local(payload, layout)
    except (requests.RequestException, RuntimeError, SnapshotError) as e:
        print(f"error: topology build failed: {e}", file=sys.stderr)
        sys.exit(1)

    print_summary(graph)

    if args.focus:
        related = related_node_ids(graph, args.focus)
        if len(related) > 1:
            console.print(f"[bold]Focus[/bold] {args.focus}: " + ", ".join(related[1:]))
        elif related:
            console.print(f"[bold]Focus[/bold] {args.focus}: no neighbours")
        else:
            print(f"warn: node not in graph: {args.focus}", file=sys.stderr)

    if args.out:
        outp = Path(args.out)
        try:
            outp.parent.mkdir(parents=True, exist_ok=True)
            outp.write_text(json.dumps(graph, indent=2), encoding="utf-8")
            console.print(f"[green]Saved graph →[/green] {outp}")
        except OSError as e:
            print(f"warn: failed to write --out file: {e}", file=sys.stderr)


if __name__ == "__main__":
    main()
