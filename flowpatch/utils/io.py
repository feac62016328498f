# flowpatch/utils/io.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

PathLike = Union[str, Path]

_READERS = {
    ".json": json.load,
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
}


def read_document(path: PathLike) -> Any:
    """
    Load a JSON or YAML file, chosen by extension.
    Raises ValueError for other extensions or unparsable content.
    """
    p = Path(path)
    reader = _READERS.get(p.suffix.lower())
    if reader is None:
        raise ValueError(f"Unsupported extension: {p.suffix or '<none>'} for {p}")
    with p.open("r", encoding="utf-8") as f:
        try:
            return reader(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ValueError(f"Cannot parse {p}: {e}") from e


def read_operations(path: PathLike) -> List[Dict[str, Any]]:
    """An operation list, either bare or under an "operations" (or "ops") key."""
    data = read_document(path)
    if isinstance(data, dict):
        data = data.get("operations", data.get("ops"))
    if not isinstance(data, list):
        raise ValueError(f"{path} must hold a list of operations (or {{'operations': [...]}})")
    return data


def read_mapping(path: PathLike, what: str = "values") -> Dict[str, Any]:
    data = read_document(path)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must hold an object of {what}")
    return data


def write_json(path: PathLike, data: Any, indent: int = 2) -> Path:
    """Write JSON atomically (temp file then replace), creating parent dirs."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(p.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=indent)
    tmp.replace(p)
    return p


def dumps(data: Any) -> str:
    """Pretty JSON for terminal output."""
    return json.dumps(data, ensure_ascii=False, indent=2, default=str)
