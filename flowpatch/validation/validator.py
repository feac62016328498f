# flowpatch/validation/validator.py
"""
Schema-driven validation of node parameters and credentials.

Nothing here raises on bad input: every problem becomes an error entry

    {"property": ..., "message": ..., "code": ..., "expected": ..., "actual": ...}

inside a result {"valid": bool, "errors": [...]}. The node-type catalog is the
only source of type-specific rules.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from flowpatch.catalog.registry import NodeCatalog, default_catalog
from flowpatch.utils.logger import get_logger

logger = get_logger("validator")

MISSING_REQUIRED = "MISSING_REQUIRED"
INVALID_TYPE = "INVALID_TYPE"
INVALID_ENUM = "INVALID_ENUM"
INVALID_RANGE = "INVALID_RANGE"
MISSING_CREDENTIAL = "MISSING_CREDENTIAL"

_UNCHECKED_TYPES = ("hidden", "notice")


# ---------- Public API ----------

def validate_node_config(
    node_type: str,
    parameters: Optional[Dict[str, Any]],
    catalog: Optional[NodeCatalog] = None,
) -> Dict[str, Any]:
    """
    Validate `parameters` against the descriptor of `node_type`.

    An unknown node type yields a single INVALID_TYPE error and nothing else.
    Properties hidden by their display options are skipped entirely.
    """
    catalog = catalog or default_catalog()
    descriptor = catalog.describe(node_type)
    if descriptor is None:
        return _result([_error("type", f"Unknown node type: {node_type}", INVALID_TYPE,
                               "Known node type", node_type)])

    if parameters is None:
        parameters = {}
    if not isinstance(parameters, dict):
        return _result([_error("parameters", "Node parameters must be an object", INVALID_TYPE,
                               "object", _type_name(parameters))])

    errors: List[Dict[str, Any]] = []
    for prop in descriptor.get("properties") or []:
        errors.extend(_check_property(prop, parameters.get(prop.get("name")), parameters))
    return _result(errors)


def validate_credentials(
    node_type: str,
    credentials: Optional[Dict[str, Any]] = None,
    catalog: Optional[NodeCatalog] = None,
) -> List[Dict[str, Any]]:
    """MISSING_CREDENTIAL for each required credential slot absent from `credentials`."""
    catalog = catalog or default_catalog()
    descriptor = catalog.describe(node_type)
    if descriptor is None:
        # no opinion on types we do not know
        return []

    credentials = credentials if isinstance(credentials, dict) else {}
    errors: List[Dict[str, Any]] = []
    for slot in descriptor.get("credentials") or []:
        name = slot.get("name")
        if slot.get("required") and not credentials.get(name):
            errors.append(_error("credentials", f"Required credential '{name}' is missing",
                                 MISSING_CREDENTIAL, name, "undefined"))
    return errors


def validate_full_node_config(
    node_type: str,
    parameters: Optional[Dict[str, Any]],
    credentials: Optional[Dict[str, Any]] = None,
    catalog: Optional[NodeCatalog] = None,
) -> Dict[str, Any]:
    """Parameter validation plus credential-slot validation in one result."""
    params = validate_node_config(node_type, parameters, catalog=catalog)
    creds = validate_credentials(node_type, credentials, catalog=catalog)
    return _result(params["errors"] + creds)


def is_property_visible(prop: Dict[str, Any], parameters: Dict[str, Any]) -> bool:
    """
    Evaluate a property's displayOptions against the sibling parameters.

    `show`: every listed sibling must equal one of its values.
    `hide`: any listed sibling equal to one of its values hides the property.
    """
    display = prop.get("displayOptions") or {}
    for sibling, allowed in (display.get("show") or {}).items():
        if not _contains(allowed, parameters.get(sibling)):
            return False
    for sibling, hidden in (display.get("hide") or {}).items():
        if _contains(hidden, parameters.get(sibling)):
            return False
    return True


# ---------- Property checks ----------

def _check_property(prop: Dict[str, Any], value: Any, parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
    if not is_property_visible(prop, parameters):
        return []

    name = prop.get("name")
    label = prop.get("displayName") or name
    ptype = prop.get("type")

    if prop.get("required") and (value is None or value == ""):
        return [_error(name, f"Required property '{label}' is missing", MISSING_REQUIRED,
                       f"Non-empty value of type {ptype}", value)]
    if value is None:
        return []

    if ptype == "string":
        if not isinstance(value, str):
            return [_type_error(name, f"Property '{label}' must be a string", "string", value)]

    elif ptype == "number":
        if not _is_number(value):
            return [_type_error(name, f"Property '{label}' must be a number", "number", value)]
        return _check_range(prop, name, label, value)

    elif ptype == "boolean":
        if not isinstance(value, bool):
            return [_type_error(name, f"Property '{label}' must be a boolean", "boolean", value)]

    elif ptype == "options":
        allowed = _option_values(prop)
        if allowed is not None and not _contains(allowed, value):
            return [_error(name, f"Property '{label}' must be one of: {_join(allowed)}",
                           INVALID_ENUM, allowed, value)]

    elif ptype == "multiOptions":
        if not isinstance(value, (list, tuple)):
            return [_type_error(name, f"Property '{label}' must be an array", "array", value)]
        allowed = _option_values(prop)
        if allowed is not None:
            invalid = [v for v in value if not _contains(allowed, v)]
            if invalid:
                return [_error(name, f"Property '{label}' contains invalid values: {_join(invalid)}",
                               INVALID_ENUM, allowed, invalid)]

    elif ptype == "credentials":
        if not isinstance(value, str) or not value.strip():
            return [_error(name, f"Property '{label}' requires a valid credential",
                           MISSING_CREDENTIAL, "non-empty credential string", value)]

    elif ptype in ("collection", "fixedCollection"):
        if not isinstance(value, dict):
            return [_type_error(name, f"Property '{label}' must be an object", "object", value)]

    elif ptype in _UNCHECKED_TYPES:
        pass

    else:
        # Newer property kinds pass until the catalog teaches us about them.
        logger.warning(f"Unknown property type: {ptype} for property {name}")

    return []


def _check_range(prop: Dict[str, Any], name: str, label: str, value: float) -> List[Dict[str, Any]]:
    opts = prop.get("typeOptions") or {}
    lo, hi = opts.get("minValue"), opts.get("maxValue")
    errors = []
    if lo is not None and value < lo:
        errors.append(_error(name, f"Property '{label}' must be at least {lo}", INVALID_RANGE, f">= {lo}", value))
    if hi is not None and value > hi:
        errors.append(_error(name, f"Property '{label}' must be at most {hi}", INVALID_RANGE, f"<= {hi}", value))
    return errors


# ---------- Helpers ----------

def _result(errors: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"valid": not errors, "errors": errors}


def _error(prop: Optional[str], message: str, code: str, expected: Any, actual: Any) -> Dict[str, Any]:
    return {"property": prop, "message": message, "code": code, "expected": expected, "actual": actual}


def _type_error(prop: str, message: str, expected: str, value: Any) -> Dict[str, Any]:
    return _error(prop, message, INVALID_TYPE, expected, _type_name(value))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _same_value(a: Any, b: Any) -> bool:
    # True == 1 in Python; parameter values follow JSON, where they differ
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    return a == b


def _contains(values: Any, value: Any) -> bool:
    return any(_same_value(v, value) for v in values or [])


def _option_values(prop: Dict[str, Any]) -> Optional[List[Any]]:
    options = prop.get("options")
    if options is None:
        return None
    return [o.get("value") if isinstance(o, dict) else o for o in options]


def _join(values: List[Any]) -> str:
    return ", ".join(str(v) for v in values)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
