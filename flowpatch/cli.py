#!/usr/bin/env python3
# flowpatch/cli.py

from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from flowpatch.catalog.registry import build_catalog
from flowpatch.config import load_settings
from flowpatch.errors import ConcurrencyError, FlowpatchError
from flowpatch.model.integrity import check_integrity
from flowpatch.operations.processor import apply_operations
from flowpatch.service import WorkflowEditor
from flowpatch.utils.io import dumps, read_mapping, read_operations, write_json
from flowpatch.validation.validator import validate_full_node_config

app = typer.Typer(help="flowpatch CLI - Safe structured edits of n8n workflows")


def _make_editor() -> WorkflowEditor:
    return WorkflowEditor.from_settings(load_settings())


def _read(reader, path: Path, *args) -> Any:
    try:
        return reader(path, *args)
    except (OSError, ValueError) as e:
        raise typer.BadParameter(str(e))


def _load_workflow(path: Path) -> Dict[str, Any]:
    return _read(read_mapping, path, "workflow fields")


def _load_ops(path: Path) -> List[Dict[str, Any]]:
    return _read(read_operations, path)


def _load_mapping(path: Optional[Path], what: str) -> Optional[Dict[str, Any]]:
    return None if path is None else _read(read_mapping, path, what)


def _catalog():
    try:
        return build_catalog(load_settings().catalog_paths)
    except (FlowpatchError, OSError, ValueError) as e:
        print(f"[error] cannot load node catalog: {e}")
        raise typer.Exit(code=1)


def _run_point(action, *args, **kwargs) -> None:
    """Run a point mutation, mapping flowpatch errors to exit code 1."""
    try:
        result = action(*args, **kwargs)
    except ConcurrencyError as e:
        print(f"[conflict] {e}")
        raise typer.Exit(code=1)
    except FlowpatchError as e:
        print(f"[error] {e}")
        raise typer.Exit(code=1)
    print(dumps(result))


@app.command()
def apply(
    workflow_id: str = typer.Argument(..., help="Workflow ID in the n8n instance"),
    ops: Path = typer.Option(..., "--ops", "-o", exists=True, readable=True, help="JSON/YAML file with the operation list"),
):
    """
    Apply a batch of operations atomically and save the result.
    Nothing is saved unless every operation succeeds.
    """
    result = _make_editor().apply_batch(workflow_id, _load_ops(ops))
    print(dumps(result))
    if not result["success"]:
        raise typer.Exit(code=1)


@app.command()
def preview(
    workflow: Path = typer.Option(..., "--workflow", "-w", exists=True, readable=True, help="Path to n8n workflow JSON"),
    ops: Path = typer.Option(..., "--ops", "-o", exists=True, readable=True, help="JSON/YAML file with the operation list"),
    out: Optional[Path] = typer.Option(None, "--out", help="Write the edited workflow to this path"),
):
    """Run a batch against a local workflow file without touching any store."""
    wf = _load_workflow(workflow)
    result = apply_operations(wf, _load_ops(ops))
    if not result["success"]:
        print(dumps(result))
        raise typer.Exit(code=1)
    if out is not None:
        write_json(out, result["workflow"])
        print(f"[ok] wrote {out}")
    else:
        print(dumps(result))


@app.command("create-node")
def create_node(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    node_type: str = typer.Option(..., "--type", "-t", help="Node type, e.g. n8n-nodes-base.httpRequest"),
    name: Optional[str] = typer.Option(None, "--name", help="Display name (defaults to the type's last segment)"),
    params: Optional[Path] = typer.Option(None, "--params", exists=True, readable=True, help="JSON/YAML parameters"),
    credentials: Optional[Path] = typer.Option(None, "--credentials", exists=True, readable=True, help="JSON/YAML credentials"),
    x: Optional[float] = typer.Option(None, "--x", help="Canvas x (requires --y)"),
    y: Optional[float] = typer.Option(None, "--y", help="Canvas y (requires --x)"),
):
    """Add a node, placing it right of the rightmost node unless --x/--y are given."""
    if (x is None) != (y is None):
        raise typer.BadParameter("--x and --y must be given together")
    position = [x, y] if x is not None else None
    _run_point(
        _make_editor().create_node,
        workflow_id, node_type,
        name=name,
        parameters=_load_mapping(params, "parameters"),
        position=position,
        credentials=_load_mapping(credentials, "credentials"),
    )


@app.command("update-node")
def update_node(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    node_id: str = typer.Argument(..., help="Node ID"),
    name: Optional[str] = typer.Option(None, "--name", help="New display name"),
    params: Optional[Path] = typer.Option(None, "--params", exists=True, readable=True, help="Parameters to merge in"),
    credentials: Optional[Path] = typer.Option(None, "--credentials", exists=True, readable=True, help="Credentials to merge in"),
    type_version: Optional[int] = typer.Option(None, "--type-version", help="New typeVersion"),
):
    """Merge parameters/credentials into a node, optionally renaming it."""
    _run_point(
        _make_editor().update_node,
        workflow_id, node_id,
        name=name,
        parameters=_load_mapping(params, "parameters"),
        credentials=_load_mapping(credentials, "credentials"),
        type_version=type_version,
    )


@app.command()
def connect(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    from_id: str = typer.Option(..., "--from", help="Source node ID"),
    to_id: str = typer.Option(..., "--to", help="Target node ID"),
    output_index: int = typer.Option(0, "--output-index", min=0, help="Source output slot"),
    input_index: int = typer.Option(0, "--input-index", min=0, help="Target input slot"),
):
    """Connect two nodes by ID."""
    _run_point(
        _make_editor().connect_nodes,
        workflow_id,
        {"nodeId": from_id, "outputIndex": output_index},
        {"nodeId": to_id, "inputIndex": input_index},
    )


@app.command("delete-node")
def delete_node(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    node_id: str = typer.Argument(..., help="Node ID"),
):
    """Delete a node and every connection touching it."""
    _run_point(_make_editor().delete_node, workflow_id, node_id)


@app.command("move-node")
def move_node(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    node_id: str = typer.Argument(..., help="Node ID"),
    x: float = typer.Option(..., "--x", help="Canvas x"),
    y: float = typer.Option(..., "--y", help="Canvas y"),
):
    """Move a node on the canvas."""
    _run_point(_make_editor().set_node_position, workflow_id, node_id, x, y)


@app.command()
def validate(
    node_type: str = typer.Argument(..., help="Node type to validate against"),
    params: Path = typer.Option(..., "--params", exists=True, readable=True, help="JSON/YAML parameters"),
    credentials: Optional[Path] = typer.Option(None, "--credentials", exists=True, readable=True, help="JSON/YAML credentials"),
):
    """Validate node parameters (and credentials) against the node-type catalog."""
    result = validate_full_node_config(
        node_type,
        _load_mapping(params, "parameters"),
        _load_mapping(credentials, "credentials"),
        catalog=_catalog(),
    )
    print(dumps(result))
    if not result["valid"]:
        raise typer.Exit(code=1)


@app.command()
def check(
    input: Path = typer.Argument(..., exists=True, readable=True, help="Path to n8n workflow JSON"),
):
    """Report structural problems in a local workflow file."""
    report = check_integrity(_load_workflow(input))
    if report["valid"]:
        print("[ok] workflow is structurally sound")
        return
    print("Detected issues:")
    for it in report["issues"]:
        print(f"- {it}")
    raise typer.Exit(code=1)


@app.command("node-types")
def node_types():
    """List node types known to the catalog."""
    for name in _catalog().list_node_type_names():
        print(name)


if __name__ == "__main__":
    app()
