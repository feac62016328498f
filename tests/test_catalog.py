import json

import pytest

from flowpatch.catalog.registry import NodeCatalog, build_catalog, default_catalog


def test_builtin_types():
    assert default_catalog().list_node_type_names() == [
        "n8n-nodes-base.httpRequest",
        "n8n-nodes-base.noOp",
        "n8n-nodes-base.set",
        "n8n-nodes-base.webhook",
    ]
    assert [d["name"] for d in default_catalog().list_node_types()] == default_catalog().list_node_type_names()


@pytest.mark.parametrize("name", ["n8n-nodes-base.webhook", "webhook"])
def test_describe_resolves_bare_names(name):
    assert default_catalog().describe(name)["displayName"] == "Webhook"


@pytest.mark.parametrize("name", ["", "other.webhook", "Webhook"])
def test_describe_unknown(name):
    assert default_catalog().describe(name) is None


def test_examples():
    examples = default_catalog().get_node_examples("n8n-nodes-base.set")
    assert examples[0]["workflow"]["nodes"][0]["type"] == "n8n-nodes-base.set"
    assert default_catalog().get_node_examples("missing") == []


def test_examples_are_copies():
    default_catalog().get_node_examples("noOp").clear()
    assert default_catalog().get_node_examples("noOp")


def test_load_list_file(tmp_path):
    path = tmp_path / "extra.json"
    path.write_text(json.dumps([{"name": "acme.ping", "properties": []}]), encoding="utf-8")
    catalog = NodeCatalog()
    assert catalog.load_file(path) == 1
    assert "acme.ping" in catalog.list_node_type_names()
    # the shared default catalog is untouched
    assert default_catalog().describe("acme.ping") is None


def test_load_mapping_file_names_from_keys(tmp_path):
    path = tmp_path / "extra.yaml"
    path.write_text(
        "acme.ping:\n  displayName: Ping\n"
        "n8n-nodes-base.noOp:\n  name: n8n-nodes-base.noOp\n  properties: []\n  displayName: Override\n",
        encoding="utf-8",
    )
    catalog = build_catalog([path])
    assert catalog.describe("acme.ping")["name"] == "acme.ping"
    assert catalog.describe("noOp")["displayName"] == "Override"


def test_load_rejects_nameless(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps([{"displayName": "x"}]), encoding="utf-8")
    with pytest.raises(ValueError, match="without a name"):
        NodeCatalog().load_file(path)


def test_custom_catalog_replaces_builtins():
    catalog = NodeCatalog({"x.only": {"name": "x.only"}}, examples={})
    assert catalog.list_node_type_names() == ["x.only"]
    assert catalog.describe("httpRequest") is None
