#flowpatch/model/schema.py

_ENDPOINT = {
    "type": "object",
    "required": ["node", "type", "index"],
    "properties": {
        "node": {"type": "string", "minLength": 1},
        "type": {"type": "string", "minLength": 1},
        "index": {"type": "integer", "minimum": 0},
    },
    "additionalProperties": True,
}

NODE_SCHEMA = {
    "type": "object",
    "required": ["id", "name", "type"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "name": {"type": "string", "minLength": 1},
        "type": {"type": "string", "minLength": 1},
        "typeVersion": {"type": ["integer", "number"]},
        # n8n stores canvas coordinates as an [x, y] pair
        "position": {
            "type": "array",
            "items": {"type": "number"},
            "minItems": 2,
            "maxItems": 2,
        },
        "parameters": {"type": "object"},
        "credentials": {"type": "object"},
        "disabled": {"type": "boolean"},
        "notes": {"type": "string"},
    },
    "additionalProperties": True,
}

WORKFLOW_SCHEMA = {
    "type": "object",
    "required": ["name", "nodes", "connections"],
    "properties": {
        "id": {"type": ["string", "integer"]},
        "name": {"type": "string"},
        "nodes": {"type": "array", "items": NODE_SCHEMA},
        "active": {"type": "boolean"},
        "settings": {"type": "object"},
        "tags": {"type": "array"},

        # source node name -> output type -> output slot -> endpoints
        "connections": {
            "type": "object",
            "patternProperties": {
                "^.+$": {
                    "type": "object",
                    "patternProperties": {
                        "^.+$": {
                            "type": "array",
                            "items": {"type": "array", "items": _ENDPOINT},
                        }
                    },
                    "additionalProperties": False,
                }
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": True,
}

# Fields a setWorkflowProperty operation may target even when the document
# does not carry them yet.
WORKFLOW_FIELDS = (
    "name",
    "nodes",
    "connections",
    "active",
    "settings",
    "staticData",
    "tags",
    "pinData",
    "versionId",
    "meta",
)

_NODE_REF = {"type": "string", "minLength": 1}
_PARAM_PATH = {"type": "string", "minLength": 1, "pattern": r"^[^.]+(\.[^.]+)*$"}

_SOURCE = {
    "type": "object",
    "required": ["nodeName"],
    "properties": {
        "nodeName": {"type": "string", "minLength": 1},
        "outputType": {"type": "string", "minLength": 1},
        "outputIndex": {"type": "integer", "minimum": 0},
    },
}

_TARGET = {
    "type": "object",
    "required": ["nodeName"],
    "properties": {
        "nodeName": {"type": "string", "minLength": 1},
        "inputType": {"type": "string", "minLength": 1},
        "inputIndex": {"type": "integer", "minimum": 0},
    },
}


def _op(required, **properties):
    return {
        "type": "object",
        "required": ["type", *required],
        "properties": properties,
        "additionalProperties": True,
    }


OPERATION_SCHEMAS = {
    "addNode": _op(["node"], node=dict(NODE_SCHEMA, required=["id"])),
    "deleteNode": _op(["nodeId"], nodeId=_NODE_REF),
    "updateNode": _op(["nodeId", "updates"], nodeId=_NODE_REF, updates={"type": "object"}),
    "setParam": _op(["nodeId", "paramPath", "value"], nodeId=_NODE_REF, paramPath=_PARAM_PATH),
    "unsetParam": _op(["nodeId", "paramPath"], nodeId=_NODE_REF, paramPath=_PARAM_PATH),
    "connect": _op(["from", "to"], **{"from": _SOURCE, "to": _TARGET}),
    "disconnect": _op(["from", "to"], **{"from": _SOURCE, "to": _TARGET}),
    "setWorkflowProperty": _op(["property", "value"], property={"type": "string", "minLength": 1}),
    "addTag": _op(["tag"], tag={"type": "string", "minLength": 1}),
    "removeTag": _op(["tag"], tag={"type": "string", "minLength": 1}),
}
