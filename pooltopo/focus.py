"""Which nodes belong in view when one node is focused.

The panel zooms to a clicked node plus its immediate neighbours on one side:
caller → its profile, profile → its callers, server → its instances,
instance → its server. The clicked node always comes first.

Works on a GraphResult or on its wire form (GraphResult.to_dict()), so a
client holding a graph fetched from pooltopo/api can use it too.
"""

from __future__ import annotations

from typing import Any, Dict, List, Union

from .edges import CALLER_PROFILE, SERVER_INSTANCE
from .graph import GraphResult

# node type → (edge tier, which end the node sits on, which end to collect)
NEIGHBOURS = {
    "caller": (CALLER_PROFILE, "source", "target"),
    "profile": (CALLER_PROFILE, "target", "source"),
    "server": (SERVER_INSTANCE, "source", "target"),
    "instance": (SERVER_INSTANCE, "target", "source"),
}


def related_node_ids(graph: Union[GraphResult, Dict[str, Any]], node_id: str) -> List[str]:
    if isinstance(graph, GraphResult):
        graph = graph.to_dict()

    types = {n.get("id"): n.get("type") for n in graph.get("nodes") or []}
    if node_id not in types:
        return []

    related = [node_id]
    rule = NEIGHBOURS.get(types[node_id])
    if rule is None:
        return related
    tier, own_end, other_end = rule
    for e in graph.get("edges") or []:
        if e.get("tierClass") == tier and e.get(own_end) == node_id:
            related.append(e.get(other_end))
    return related
