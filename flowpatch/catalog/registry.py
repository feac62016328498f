# flowpatch/catalog/registry.py
"""
Static catalog of n8n node-type descriptors.

A descriptor is plain data:

    {
      "name": "n8n-nodes-base.httpRequest",
      "displayName": "HTTP Request",
      "properties": [
          {"name": "method", "displayName": "Method", "type": "options",
           "required": True, "options": [{"name": "GET", "value": "GET"}, ...],
           "displayOptions": {"show": {...}, "hide": {...}},
           "typeOptions": {"minValue": 0, "maxValue": 10}},
          ...
      ],
      "credentials": [{"name": "httpBasicAuth", "required": False}, ...],
    }

The validator reads nothing but this data, so supporting a new node type is a
catalog change, never a code change.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from flowpatch.utils.io import read_document
from flowpatch.utils.logger import get_logger

logger = get_logger("catalog")

BASE_PREFIX = "n8n-nodes-base."

_HTTP_METHODS = ["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]


def _choices(*values: str) -> List[Dict[str, str]]:
    return [{"name": v, "value": v} for v in values]


NODE_CATALOG: Dict[str, Dict[str, Any]] = {
    "n8n-nodes-base.httpRequest": {
        "name": "n8n-nodes-base.httpRequest",
        "displayName": "HTTP Request",
        "description": "Makes an HTTP request and returns the response data",
        "version": [1, 2, 3, 4],
        "defaults": {"name": "HTTP Request", "color": "#2196F3"},
        "inputs": ["main"],
        "outputs": ["main"],
        "category": "Core Nodes",
        "properties": [
            {
                "displayName": "Method",
                "name": "method",
                "type": "options",
                "required": True,
                "default": "GET",
                "description": "The HTTP method to use",
                "options": _choices(*_HTTP_METHODS),
            },
            {
                "displayName": "URL",
                "name": "url",
                "type": "string",
                "required": True,
                "default": "",
                "placeholder": "https://httpbin.org/get",
                "description": "The URL to make the request to",
            },
            {
                "displayName": "Authentication",
                "name": "authentication",
                "type": "options",
                "default": "none",
                "description": "The authentication method to use",
                "options": [
                    {"name": "None", "value": "none"},
                    {"name": "Basic Auth", "value": "basicAuth"},
                    {"name": "Header Auth", "value": "headerAuth"},
                    {"name": "OAuth1", "value": "oAuth1Api"},
                    {"name": "OAuth2", "value": "oAuth2Api"},
                ],
            },
            {
                "displayName": "Request Headers",
                "name": "headers",
                "type": "fixedCollection",
                "default": {},
                "description": "Headers to send with the request",
            },
            {
                "displayName": "Send Body",
                "name": "sendBody",
                "type": "boolean",
                "default": False,
                "description": "Whether to send a body with the request",
                "displayOptions": {"show": {"method": ["POST", "PUT", "PATCH"]}},
            },
            {
                "displayName": "Body Content Type",
                "name": "contentType",
                "type": "options",
                "default": "json",
                "description": "Content-Type to use to send body",
                "options": [
                    {"name": "JSON", "value": "json"},
                    {"name": "Form-Data Multipart", "value": "multipart-form-data"},
                    {"name": "Form Encoded", "value": "form-urlencoded"},
                    {"name": "Raw/Custom", "value": "raw"},
                ],
                "displayOptions": {"show": {"sendBody": [True]}},
            },
        ],
        "credentials": [
            {"name": "httpBasicAuth"},
            {"name": "httpHeaderAuth"},
            {"name": "oAuth1Api"},
            {"name": "oAuth2Api"},
        ],
    },
    "n8n-nodes-base.webhook": {
        "name": "n8n-nodes-base.webhook",
        "displayName": "Webhook",
        "description": "Starts the workflow when a webhook is called",
        "version": [1, 2],
        "defaults": {"name": "Webhook", "color": "#FF6D5A"},
        "inputs": [],
        "outputs": ["main"],
        "category": "Core Nodes",
        "properties": [
            {
                "displayName": "HTTP Method",
                "name": "httpMethod",
                "type": "options",
                "required": True,
                "default": "GET",
                "description": "The HTTP method to listen for",
                "options": _choices("DELETE", "GET", "HEAD", "PATCH", "POST", "PUT"),
            },
            {
                "displayName": "Path",
                "name": "path",
                "type": "string",
                "required": True,
                "default": "",
                "placeholder": "webhook-path",
                "description": "The path for the webhook. All paths are case sensitive.",
            },
            {
                "displayName": "Authentication",
                "name": "authentication",
                "type": "options",
                "default": "none",
                "description": "The authentication method to use",
                "options": [
                    {"name": "None", "value": "none"},
                    {"name": "Basic Auth", "value": "basicAuth"},
                    {"name": "Header Auth", "value": "headerAuth"},
                ],
            },
            {
                "displayName": "Response Mode",
                "name": "responseMode",
                "type": "options",
                "default": "onReceived",
                "description": "When to respond to the webhook",
                "options": [
                    {"name": "Immediately", "value": "onReceived"},
                    {"name": "When Last Node Finishes", "value": "lastNode"},
                    {"name": "Using Respond to Webhook Node", "value": "responseNode"},
                ],
            },
        ],
        "credentials": [{"name": "httpBasicAuth"}, {"name": "httpHeaderAuth"}],
    },
    "n8n-nodes-base.set": {
        "name": "n8n-nodes-base.set",
        "displayName": "Edit Fields",
        "description": "Sets values on items and optionally remove other values",
        "version": [1, 2, 3],
        "defaults": {"name": "Edit Fields", "color": "#0000FF"},
        "inputs": ["main"],
        "outputs": ["main"],
        "category": "Core Nodes",
        "properties": [
            {
                "displayName": "Fields to Set",
                "name": "fields",
                "type": "fixedCollection",
                "required": True,
                "default": {"values": []},
                "description": "The fields to add to the output",
            },
            {
                "displayName": "Options",
                "name": "options",
                "type": "collection",
                "default": {},
                "description": "Additional options",
            },
        ],
    },
    "n8n-nodes-base.noOp": {
        "name": "n8n-nodes-base.noOp",
        "displayName": "No Operation, do nothing",
        "description": "No Operation",
        "version": 1,
        "defaults": {"name": "No Op", "color": "#b0b0b0"},
        "inputs": ["main"],
        "outputs": ["main"],
        "category": "Core Nodes",
        "properties": [],
    },
}


def _example_node(node_id: str, name: str, type_name: str, version: int, parameters: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": node_id,
        "name": name,
        "type": type_name,
        "typeVersion": version,
        "position": [250, 300],
        "parameters": parameters,
    }


NODE_EXAMPLES: Dict[str, List[Dict[str, Any]]] = {
    "n8n-nodes-base.httpRequest": [
        {
            "name": "Simple GET Request",
            "description": "Make a basic GET request to an API",
            "workflow": {
                "nodes": [_example_node("http-request", "HTTP Request", "n8n-nodes-base.httpRequest", 4, {
                    "method": "GET",
                    "url": "https://jsonplaceholder.typicode.com/posts/1",
                })],
                "connections": {},
            },
        },
        {
            "name": "POST with JSON Body",
            "description": "Send JSON data in a POST request",
            "workflow": {
                "nodes": [_example_node("http-post", "HTTP POST", "n8n-nodes-base.httpRequest", 4, {
                    "method": "POST",
                    "url": "https://jsonplaceholder.typicode.com/posts",
                    "sendBody": True,
                    "contentType": "json",
                })],
                "connections": {},
            },
        },
    ],
    "n8n-nodes-base.webhook": [
        {
            "name": "Basic Webhook",
            "description": "Receive HTTP requests on a path",
            "workflow": {
                "nodes": [_example_node("webhook", "Webhook", "n8n-nodes-base.webhook", 2, {
                    "httpMethod": "POST",
                    "path": "my-webhook",
                    "responseMode": "onReceived",
                })],
                "connections": {},
            },
        },
    ],
    "n8n-nodes-base.set": [
        {
            "name": "Add Fields",
            "description": "Add new fields to the data",
            "workflow": {
                "nodes": [_example_node("set", "Edit Fields", "n8n-nodes-base.set", 3, {
                    "fields": {"values": [
                        {"name": "timestamp", "type": "string", "value": "={{ $now }}"},
                        {"name": "processed", "type": "boolean", "value": True},
                    ]},
                })],
                "connections": {},
            },
        },
    ],
    "n8n-nodes-base.noOp": [
        {
            "name": "Pass Through",
            "description": "Simply pass data through without modification",
            "workflow": {
                "nodes": [_example_node("no-op", "No Op", "n8n-nodes-base.noOp", 1, {})],
                "connections": {},
            },
        },
    ],
}


class NodeCatalog:
    """Read-only lookup over descriptors, optionally extended from JSON/YAML files."""

    def __init__(
        self,
        descriptors: Optional[Dict[str, Dict[str, Any]]] = None,
        examples: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    ) -> None:
        self._descriptors = dict(NODE_CATALOG if descriptors is None else descriptors)
        self._examples = dict(NODE_EXAMPLES if examples is None else examples)

    def describe(self, type_name: str) -> Optional[Dict[str, Any]]:
        """Descriptor for `type_name`; bare names like "httpRequest" resolve to n8n-nodes-base.*."""
        desc = self._descriptors.get(type_name)
        if desc is None and type_name and "." not in type_name:
            desc = self._descriptors.get(BASE_PREFIX + type_name)
        return desc

    def list_node_type_names(self) -> List[str]:
        return sorted(self._descriptors)

    def list_node_types(self) -> List[Dict[str, Any]]:
        return [self._descriptors[n] for n in self.list_node_type_names()]

    def get_node_examples(self, type_name: str) -> List[Dict[str, Any]]:
        desc = self.describe(type_name)
        return list(self._examples.get(desc["name"] if desc else type_name, []))

    def load_file(self, path: Union[str, Path]) -> int:
        """
        Merge descriptors from a JSON/YAML file holding either a list of
        descriptors or a mapping of type name -> descriptor. Returns the count.
        """
        data = read_document(path)
        if isinstance(data, dict):
            items = [dict(desc, name=desc.get("name") or key) if isinstance(desc, dict) else desc
                     for key, desc in data.items()]
        else:
            items = data
        count = 0
        for desc in items or []:
            if not isinstance(desc, dict) or not desc.get("name"):
                raise ValueError(f"Descriptor without a name in {path}")
            self._descriptors[desc["name"]] = desc
            count += 1
        logger.info(f"Loaded {count} node descriptor(s) from {path}")
        return count


def build_catalog(paths: Iterable[Union[str, Path]] = ()) -> NodeCatalog:
    catalog = NodeCatalog()
    for p in paths:
        catalog.load_file(p)
    return catalog


_default_catalog = NodeCatalog()


def default_catalog() -> NodeCatalog:
    return _default_catalog

