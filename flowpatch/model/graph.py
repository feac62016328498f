# flowpatch/model/graph.py
"""
Helpers over the n8n workflow document.

A workflow is the JSON-like dict exchanged with the store:

    {"name": ..., "nodes": [node, ...], "connections": {...}, "tags": [...], ...}

Connections are keyed by node *name*:

    connections[source_name][output_type][output_index] -> [
        {"node": target_name, "type": input_type, "index": input_index}, ...
    ]

Every function here mutates the document it is given; callers that need
isolation clone first with `clone_document`.
"""
from __future__ import annotations

import random
import string
import time
from typing import Any, Dict, List, Optional

from flowpatch.errors import NodeNotFoundError, OperationError

MAIN = "main"
FIRST_POSITION = [250, 300]
POSITION_STEP_X = 200

Connections = Dict[str, Dict[str, List[List[Dict[str, Any]]]]]


# ---------- Cloning ----------

def clone_document(value: Any) -> Any:
    """Structural copy of a JSON-like tree: dicts and lists are rebuilt, leaves shared."""
    if isinstance(value, dict):
        return {k: clone_document(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [clone_document(v) for v in value]
    return value


# ---------- Node lookup ----------

def nodes_of(workflow: Dict[str, Any]) -> List[Dict[str, Any]]:
    nodes = workflow.get("nodes")
    if nodes is None:
        nodes = workflow["nodes"] = []
    return nodes


def find_node(workflow: Dict[str, Any], node_id: str) -> Optional[Dict[str, Any]]:
    for n in workflow.get("nodes") or []:
        if n.get("id") == node_id:
            return n
    return None


def find_node_by_name(workflow: Dict[str, Any], name: str) -> Optional[Dict[str, Any]]:
    for n in workflow.get("nodes") or []:
        if n.get("name") == name:
            return n
    return None


def require_node(workflow: Dict[str, Any], node_id: str, role: str = "Node") -> Dict[str, Any]:
    node = find_node(workflow, node_id)
    if node is None:
        raise NodeNotFoundError(f'{role} with ID "{node_id}" not found')
    return node


def require_node_by_name(workflow: Dict[str, Any], name: str, role: str = "Node") -> Dict[str, Any]:
    node = find_node_by_name(workflow, name)
    if node is None:
        raise NodeNotFoundError(f'{role} with name "{name}" not found')
    return node


def generate_node_id() -> str:
    """Millisecond timestamp plus a short random suffix, e.g. node_1718000000000_k3x9qa."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"node_{int(time.time() * 1000)}_{suffix}"


def default_position(nodes: List[Dict[str, Any]]) -> List[float]:
    """Place a new node one step right of the rightmost node, on that node's row."""
    placed = [n["position"] for n in nodes if isinstance(n.get("position"), (list, tuple)) and len(n["position"]) == 2]
    if not placed:
        return list(FIRST_POSITION)
    x, y = max(placed, key=lambda p: p[0])
    return [x + POSITION_STEP_X, y]


def unique_name(nodes: List[Dict[str, Any]], base: str) -> str:
    """`base`, or `base1`, `base2`, ... if already taken (n8n's own convention)."""
    taken = {n.get("name") for n in nodes}
    if base not in taken:
        return base
    i = 1
    while f"{base}{i}" in taken:
        i += 1
    return f"{base}{i}"


# ---------- Dot-path parameters ----------

def set_param(params: Dict[str, Any], path: str, value: Any) -> None:
    """
    Write `value` at a dot-separated path, creating intermediate dicts and
    replacing any non-dict found on the way.
    """
    head, _, rest = path.partition(".")
    if not rest:
        params[head] = value
        return
    child = params.get(head)
    if not isinstance(child, dict):
        child = params[head] = {}
    set_param(child, rest, value)


def unset_param(params: Dict[str, Any], path: str) -> bool:
    """Delete the value at a dot-separated path. Returns False if the path did not resolve."""
    head, _, rest = path.partition(".")
    if not rest:
        if head in params:
            del params[head]
            return True
        return False
    child = params.get(head)
    if not isinstance(child, dict):
        return False
    return unset_param(child, rest)


# ---------- Connections ----------

def connections_of(workflow: Dict[str, Any]) -> Connections:
    conns = workflow.get("connections")
    if conns is None:
        conns = workflow["connections"] = {}
    return conns


def _check_index(kind: str, index: Any) -> None:
    # bool is an int subclass but never a slot number
    if not isinstance(index, int) or isinstance(index, bool) or index < 0:
        raise OperationError(f"{kind} index must be a non-negative integer, got {index!r}")


def _same_endpoint(e: Dict[str, Any], target: str, input_type: str, input_index: int) -> bool:
    return e.get("node") == target and e.get("type") == input_type and e.get("index") == input_index


def add_connection(
    connections: Connections,
    source: str,
    target: str,
    output_type: str = MAIN,
    output_index: int = 0,
    input_type: str = MAIN,
    input_index: int = 0,
) -> Dict[str, Any]:
    """Append an endpoint at connections[source][output_type][output_index]; duplicates are rejected."""
    _check_index("Output", output_index)
    _check_index("Input", input_index)
    slots = connections.setdefault(source, {}).setdefault(output_type, [])
    while len(slots) <= output_index:
        slots.append([])
    slot = slots[output_index]
    if any(_same_endpoint(e, target, input_type, input_index) for e in slot):
        raise OperationError(
            f"Connection already exists from {source}[{output_index}] to {target}[{input_index}]"
        )
    endpoint = {"node": target, "type": input_type, "index": input_index}
    slot.append(endpoint)
    return endpoint


def remove_connection(
    connections: Optional[Connections],
    source: str,
    target: str,
    output_type: str = MAIN,
    output_index: int = 0,
    input_type: str = MAIN,
    input_index: int = 0,
) -> None:
    """
    Remove the one matching endpoint. The slot is dropped only when this removal
    empties it, then the output type and source once they hold nothing;
    padding slots elsewhere on the source are left in place.
    """
    _check_index("Output", output_index)
    _check_index("Input", input_index)
    if connections is None:
        raise OperationError("No connections exist in workflow")
    outputs = connections.get(source) or {}
    slots = outputs.get(output_type)
    if not slots or output_index >= len(slots):
        raise OperationError(f"No connection found from {source}[{output_index}]")
    slot = slots[output_index]
    for i, e in enumerate(slot):
        if _same_endpoint(e, target, input_type, input_index):
            del slot[i]
            break
    else:
        raise OperationError(
            f"Connection not found from {source}[{output_index}] to {target}[{input_index}]"
        )
    if slot:
        return
    del slots[output_index]
    if not slots:
        del outputs[output_type]
        if not outputs:
            del connections[source]


def remove_node_connections(connections: Optional[Connections], name: str) -> None:
    """Drop every connection that starts or ends at `name`, pruning empty containers."""
    if not connections:
        return
    connections.pop(name, None)
    for source in list(connections):
        outputs = connections[source]
        for output_type in list(outputs):
            outputs[output_type] = [
                [e for e in slot if e.get("node") != name] for slot in outputs[output_type]
            ]
        _prune_source(connections, source)


def rename_node_connections(connections: Optional[Connections], old: str, new: str) -> None:
    """Re-key a renamed node's outgoing entry and rewrite endpoints that target it."""
    if not connections or old == new:
        return
    if old in connections:
        connections[new] = connections.pop(old)
    for outputs in connections.values():
        for slots in outputs.values():
            for slot in slots:
                for e in slot:
                    if e.get("node") == old:
                        e["node"] = new


def _prune_source(connections: Connections, source: str) -> None:
    outputs = connections.get(source)
    if outputs is None:
        return
    for output_type in list(outputs):
        slots = [slot for slot in outputs[output_type] if slot]
        if slots:
            outputs[output_type] = slots
        else:
            del outputs[output_type]
    if not outputs:
        del connections[source]


# ---------- Node edits shared by batch and point mutations ----------

def remove_node(workflow: Dict[str, Any], node_id: str) -> Dict[str, Any]:
    """Remove a node by id and cascade into its connections. Returns the removed node."""
    node = require_node(workflow, node_id)
    nodes = nodes_of(workflow)
    del nodes[next(i for i, n in enumerate(nodes) if n is node)]
    if node.get("name") is not None:
        remove_node_connections(workflow.get("connections"), node["name"])
    return node


def rename_node(workflow: Dict[str, Any], node: Dict[str, Any], new_name: Any) -> None:
    """Rename a node, keeping name-keyed connections pointing at it."""
    old_name = node.get("name")
    if new_name == old_name:
        return
    if not isinstance(new_name, str) or not new_name:
        raise OperationError("Node name must be a non-empty string")
    if find_node_by_name(workflow, new_name) is not None:
        raise OperationError(f'Node with name "{new_name}" already exists')
    if old_name is not None:
        rename_node_connections(workflow.get("connections"), old_name, new_name)
    node["name"] = new_name
