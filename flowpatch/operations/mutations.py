# flowpatch/operations/mutations.py
"""
Point mutations: each builder returns a function that edits a workflow dict in
place. They are pure with respect to everything but that dict, so the
concurrency controller can re-run them against a freshly fetched document.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Sequence

from flowpatch.errors import OperationError
from flowpatch.model import graph

Mutation = Callable[[Dict[str, Any]], None]


def add_node(
    node_id: str,
    node_type: str,
    name: Optional[str] = None,
    parameters: Optional[Dict[str, Any]] = None,
    position: Optional[Sequence[float]] = None,
    credentials: Optional[Dict[str, Any]] = None,
    type_version: int = 1,
) -> Mutation:
    """
    Append a node. Without a position it goes one step right of the rightmost
    node; without a name it takes the last dot-segment of its type.
    """
    def mutate(workflow: Dict[str, Any]) -> None:
        nodes = graph.nodes_of(workflow)
        if graph.find_node(workflow, node_id) is not None:
            raise OperationError(f'Node with ID "{node_id}" already exists')
        if name is not None:
            if graph.find_node_by_name(workflow, name) is not None:
                raise OperationError(f'Node with name "{name}" already exists')
            node_name = name
        else:
            node_name = graph.unique_name(nodes, node_type.split(".")[-1] or "New Node")
        nodes.append({
            "id": node_id,
            "name": node_name,
            "type": node_type,
            "typeVersion": type_version,
            "position": list(position) if position is not None else graph.default_position(nodes),
            "parameters": graph.clone_document(parameters or {}),
            "credentials": graph.clone_document(credentials or {}),
        })

    return mutate


def update_node(
    node_id: str,
    name: Optional[str] = None,
    parameters: Optional[Dict[str, Any]] = None,
    credentials: Optional[Dict[str, Any]] = None,
    type_version: Optional[int] = None,
) -> Mutation:
    """Merge parameters/credentials into the node; overwrite name and typeVersion when given."""
    def mutate(workflow: Dict[str, Any]) -> None:
        node = graph.require_node(workflow, node_id)
        if parameters is not None:
            node["parameters"] = {**(node.get("parameters") or {}), **graph.clone_document(parameters)}
        if credentials is not None:
            node["credentials"] = {**(node.get("credentials") or {}), **graph.clone_document(credentials)}
        if name is not None:
            graph.rename_node(workflow, node, name)
        if type_version is not None:
            node["typeVersion"] = type_version

    return mutate


def connect(from_id: str, to_id: str, output_index: int = 0, input_index: int = 0) -> Mutation:
    def mutate(workflow: Dict[str, Any]) -> None:
        source = graph.require_node(workflow, from_id, "Source node")
        target = graph.require_node(workflow, to_id, "Target node")
        graph.add_connection(
            graph.connections_of(workflow),
            source=source["name"],
            target=target["name"],
            output_index=output_index,
            input_index=input_index,
        )

    return mutate


def delete_node(node_id: str) -> Mutation:
    def mutate(workflow: Dict[str, Any]) -> None:
        graph.remove_node(workflow, node_id)

    return mutate


def set_position(node_id: str, x: float, y: float) -> Mutation:
    def mutate(workflow: Dict[str, Any]) -> None:
        graph.require_node(workflow, node_id)["position"] = [x, y]

    return mutate
