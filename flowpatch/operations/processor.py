# flowpatch/operations/processor.py
"""
Atomic batch application of edit operations.

`apply_operations` works on a structural clone of the workflow and applies the
operations in order. The first failing operation stops the batch and the
result carries no workflow at all, so a caller can never observe a partial edit.

Result shapes:

    {"success": True, "workflow": {...}}
    {"success": False, "errors": [{"operationIndex": i, "operation": op, "error": msg, "details": ...}]}
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from jsonschema import Draft7Validator

from flowpatch.errors import OperationError
from flowpatch.model import graph
from flowpatch.model.schema import OPERATION_SCHEMAS, WORKFLOW_FIELDS
from flowpatch.utils.logger import get_logger

logger = get_logger("operations")

Operation = Dict[str, Any]
Workflow = Dict[str, Any]

_VALIDATORS = {kind: Draft7Validator(schema) for kind, schema in OPERATION_SCHEMAS.items()}


# ---------- Public API ----------

def apply_operations(workflow: Workflow, operations: Optional[List[Operation]]) -> Dict[str, Any]:
    """
    Apply `operations` to a private copy of `workflow`, all or nothing.

    The caller's `workflow` is never modified.
    """
    working = graph.clone_document(workflow)
    ops = operations if isinstance(operations, list) else []

    for i, op in enumerate(ops):
        try:
            apply_operation(working, op)
        except OperationError as e:
            logger.info(f"Operation {i} ({_kind(op)}) rejected: {e}")
            return _failure(i, op, str(e))
        except Exception as e:
            logger.warning(f"Operation {i} ({_kind(op)}) failed unexpectedly: {e!r}")
            return _failure(i, op, str(e) or type(e).__name__, details=type(e).__name__)

    return {"success": True, "workflow": working}


def apply_operation(workflow: Workflow, op: Operation) -> None:
    """Apply one operation in place. Raises OperationError when it cannot be applied."""
    if not isinstance(op, dict):
        raise OperationError("Operation must be an object")
    kind = op.get("type")
    handler = HANDLERS.get(kind)
    if handler is None:
        raise OperationError(f"Unknown operation type: {kind}")

    problem = next(iter(_VALIDATORS[kind].iter_errors(op)), None)
    if problem is not None:
        where = "/".join(str(p) for p in problem.path)
        raise OperationError(f"Invalid {kind} operation{' at ' + where if where else ''}: {problem.message}")

    handler(workflow, op)


# ---------- Node operations ----------

def _add_node(workflow: Workflow, op: Operation) -> None:
    node = graph.clone_document(op["node"])
    if graph.find_node(workflow, node["id"]) is not None:
        raise OperationError(f'Node with ID "{node["id"]}" already exists')
    if node.get("name") is not None and graph.find_node_by_name(workflow, node["name"]) is not None:
        raise OperationError(f'Node with name "{node["name"]}" already exists')
    graph.nodes_of(workflow).append(node)


def _delete_node(workflow: Workflow, op: Operation) -> None:
    graph.remove_node(workflow, op["nodeId"])


def _update_node(workflow: Workflow, op: Operation) -> None:
    node = graph.require_node(workflow, op["nodeId"])
    updates = graph.clone_document(op["updates"])

    if "id" in updates and updates["id"] != node["id"]:
        raise OperationError(f'Node ID "{node["id"]}" cannot be changed')

    if "name" in updates:
        graph.rename_node(workflow, node, updates["name"])
    node.update(updates)


def _set_param(workflow: Workflow, op: Operation) -> None:
    node = graph.require_node(workflow, op["nodeId"])
    if not isinstance(node.get("parameters"), dict):
        node["parameters"] = {}
    graph.set_param(node["parameters"], op["paramPath"], graph.clone_document(op["value"]))


def _unset_param(workflow: Workflow, op: Operation) -> None:
    node = graph.require_node(workflow, op["nodeId"])
    params = node.get("parameters")
    if isinstance(params, dict):
        graph.unset_param(params, op["paramPath"])


# ---------- Connection operations ----------

def _endpoints(op: Operation) -> Dict[str, Any]:
    src, dst = op["from"], op["to"]
    return {
        "source": src["nodeName"],
        "output_type": src.get("outputType") or graph.MAIN,
        "output_index": src.get("outputIndex", 0),
        "target": dst["nodeName"],
        "input_type": dst.get("inputType") or graph.MAIN,
        "input_index": dst.get("inputIndex", 0),
    }


def _connect(workflow: Workflow, op: Operation) -> None:
    ends = _endpoints(op)
    graph.require_node_by_name(workflow, ends["source"], "Source node")
    graph.require_node_by_name(workflow, ends["target"], "Target node")
    graph.add_connection(graph.connections_of(workflow), **ends)


def _disconnect(workflow: Workflow, op: Operation) -> None:
    graph.remove_connection(workflow.get("connections"), **_endpoints(op))


# ---------- Workflow operations ----------

def _set_workflow_property(workflow: Workflow, op: Operation) -> None:
    prop = op["property"]
    if prop not in workflow and prop not in WORKFLOW_FIELDS:
        raise OperationError(f'Property "{prop}" does not exist on workflow')
    workflow[prop] = graph.clone_document(op["value"])


def _tag_matches(existing: Any, tag: str) -> bool:
    # tags come back from n8n either as plain names or as {"id", "name"} objects
    if isinstance(existing, dict):
        return tag in (existing.get("name"), existing.get("id"))
    return existing == tag


def _add_tag(workflow: Workflow, op: Operation) -> None:
    tags = workflow.get("tags")
    if tags is None:
        tags = workflow["tags"] = []
    if any(_tag_matches(t, op["tag"]) for t in tags):
        raise OperationError(f'Tag "{op["tag"]}" already exists')
    tags.append(op["tag"])


def _remove_tag(workflow: Workflow, op: Operation) -> None:
    tags = workflow.get("tags")
    if tags is None:
        raise OperationError("No tags exist on workflow")
    for i, t in enumerate(tags):
        if _tag_matches(t, op["tag"]):
            del tags[i]
            return
    raise OperationError(f'Tag "{op["tag"]}" not found')


HANDLERS: Dict[str, Callable[[Workflow, Operation], None]] = {
    "addNode": _add_node,
    "deleteNode": _delete_node,
    "updateNode": _update_node,
    "setParam": _set_param,
    "unsetParam": _unset_param,
    "connect": _connect,
    "disconnect": _disconnect,
    "setWorkflowProperty": _set_workflow_property,
    "addTag": _add_tag,
    "removeTag": _remove_tag,
}


# ---------- Helpers ----------

def _kind(op: Any) -> str:
    return str(op.get("type")) if isinstance(op, dict) else type(op).__name__


def _failure(index: int, op: Any, message: str, details: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"operationIndex": index, "operation": op, "error": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "errors": [error]}
