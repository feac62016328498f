# flowpatch/model/integrity.py

from collections import Counter
from typing import Dict, Any, List

import networkx as nx
from jsonschema import Draft7Validator

from .schema import WORKFLOW_SCHEMA

_VALIDATOR = Draft7Validator(WORKFLOW_SCHEMA)


def build_name_graph(workflow: Dict[str, Any]) -> nx.MultiDiGraph:
    """
    Build a directed multigraph keyed by node name from n8n connections.

    Endpoints that name no node are still added, flagged with `missing=True`,
    so dangling references can be reported instead of silently dropped.
    """
    G = nx.MultiDiGraph()
    for n in workflow.get("nodes", []) or []:
        name = n.get("name")
        if name is not None:
            G.add_node(name, id=n.get("id"), type=n.get("type"), missing=False)

    conns = workflow.get("connections") or {}
    for src, outs in conns.items():
        if src not in G:
            G.add_node(src, missing=True)
        if not isinstance(outs, dict):
            continue
        for out_type, slots in outs.items():
            if not isinstance(slots, list):
                continue
            for out_idx, slot in enumerate(slots):
                for e in slot if isinstance(slot, list) else []:
                    tgt = e.get("node") if isinstance(e, dict) else None
                    if tgt is None:
                        continue
                    if tgt not in G:
                        G.add_node(tgt, missing=True)
                    G.add_edge(
                        src, tgt,
                        output_type=out_type, output_index=out_idx,
                        input_type=e.get("type"), input_index=e.get("index"),
                    )
    return G


def check_integrity(workflow: Dict[str, Any]) -> Dict[str, Any]:
    """
    Structural integrity report for a workflow document.

    Returns:
        {"valid": bool, "issues": [str, ...]}
    """
    issues: List[str] = []

    # 1) Schema
    for err in sorted(_VALIDATOR.iter_errors(workflow), key=lambda e: list(e.path)):
        where = "/".join(str(p) for p in err.path) or "<root>"
        issues.append(f"[SCHEMA] {where}: {err.message}")

    nodes = workflow.get("nodes") if isinstance(workflow.get("nodes"), list) else []
    nodes = [n for n in nodes if isinstance(n, dict)]

    # 2) Identity
    for nid, count in Counter(n.get("id") for n in nodes).items():
        if nid is not None and count > 1:
            issues.append(f"[IDENTITY] Duplicate node id '{nid}' ({count} nodes)")
    for name, count in Counter(n.get("name") for n in nodes).items():
        if name is not None and count > 1:
            issues.append(f"[IDENTITY] Duplicate node name '{name}' ({count} nodes)")

    # 3) Connection references
    if isinstance(workflow.get("connections"), dict):
        G = build_name_graph({"nodes": nodes, "connections": workflow["connections"]})
        for name, data in G.nodes(data=True):
            if not data.get("missing"):
                continue
            if G.out_degree(name) > 0:
                issues.append(f"[CONNECTION] Connections declared for unknown source node '{name}'")
            for src in sorted(set(G.predecessors(name))):
                issues.append(f"[CONNECTION] '{src}' connects to unknown node '{name}'")

    return {"valid": not issues, "issues": issues}
